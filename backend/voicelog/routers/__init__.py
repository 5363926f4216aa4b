"""API routers for the voicelog backend."""

from .meetings import router as meetings_router

__all__ = ["meetings_router"]
