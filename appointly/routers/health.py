from fastapi import APIRouter, Depends, HTTPException

from appointly.core.errors import TransportError
from appointly.dependencies import get_services
from appointly.services import Services
from appointly.sync.hub import CollectionKind

router = APIRouter()


@router.get("/health")
async def health_root():
    return {"status": "ok"}


@router.get("/health/db")
async def health_db(services: Services = Depends(get_services)):
    """Readiness probe: store round-trip plus the list of open change-feeds."""
    try:
        await services.store.ping()
    except TransportError as exc:
        raise HTTPException(status_code=503, detail="database_unavailable") from exc
    return {
        "status": "ok",
        "feeds": [kind.value for kind in CollectionKind if services.hub.is_watching(kind)],
    }
