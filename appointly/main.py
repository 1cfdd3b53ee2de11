# appointly/main.py
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from appointly.core.config import Settings, settings as default_settings
from appointly.core.errors import (
    AppError,
    AuthorizationError,
    ConflictError,
    NotFoundError,
    TransportError,
    ValidationError,
)
from appointly.core.logs import configure_logging
from appointly.routers import appointments, brands, doctors, health, sync
from appointly.services import Services

logger = logging.getLogger(__name__)

# Most specific class first: InvalidTransition is a ValidationError
ERROR_STATUS = (
    (AuthorizationError, 403),
    (NotFoundError, 404),
    (ConflictError, 409),
    (ValidationError, 422),
    (TransportError, 503),
)


def status_for(exc: AppError) -> int:
    for error_type, status_code in ERROR_STATUS:
        if isinstance(exc, error_type):
            return status_code
    return 400


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    status_code = status_for(exc)
    if status_code >= 500:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc.code)
    return JSONResponse(status_code=status_code, content={"detail": exc.code})


def create_app(settings: Optional[Settings] = None, services: Optional[Services] = None) -> FastAPI:
    """
    Build the API. Pass `services` to run against an already configured
    store (tests); otherwise they are built from `settings` at startup.
    """
    settings = settings or default_settings
    configure_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.services = services or Services(settings)
        await app.state.services.start()
        logger.info("API ready on prefix %s", settings.API_PREFIX)
        try:
            yield
        finally:
            await app.state.services.close()

    app = FastAPI(
        title="Appointly - appointment scheduling API",
        debug=settings.DEBUG,
        lifespan=lifespan,
    )
    app.add_exception_handler(AppError, app_error_handler)

    app.include_router(health.router, prefix=settings.API_PREFIX, tags=["health"])
    app.include_router(doctors.router, prefix=settings.API_PREFIX)
    app.include_router(appointments.router, prefix=settings.API_PREFIX)
    app.include_router(brands.router, prefix=settings.API_PREFIX)
    app.include_router(sync.router, prefix=settings.API_PREFIX)

    @app.get("/")
    def root():
        return {"message": "Appointly API running"}

    return app


app = create_app()
