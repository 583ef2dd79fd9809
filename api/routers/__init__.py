"""API routers for the DQ Flags application.

This module exports all API routers for inclusion in the main FastAPI app.
"""

from .classes import router as classes_router
from .flags import router as flags_router
from .health import router as health_router

__all__ = [
    "classes_router",
    "flags_router",
    "health_router",
]
