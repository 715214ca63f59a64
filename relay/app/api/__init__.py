"""API endpoints package for the relay."""

from relay.app.api.explain import router as explain_router

__all__ = [
    "explain_router",
]
