from __future__ import annotations

from app.api.routes.editor import router as editor_router
from app.api.routes.health import router as health_router

__all__ = ["editor_router", "health_router"]
