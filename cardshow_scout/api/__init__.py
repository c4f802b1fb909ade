"""Admin review HTTP API."""

from cardshow_scout.api.routes import admin_router

__all__ = ["admin_router"]
