# appointly/routers/__init__.py
from . import health
from . import doctors
from . import appointments
from . import brands
from . import sync

__all__ = ["health", "doctors", "appointments", "brands", "sync"]
