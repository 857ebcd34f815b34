from __future__ import annotations

from grom.api.routes.health import router as health_router
from grom.api.routes.toolkit import router as toolkit_router

__all__ = ["health_router", "toolkit_router"]
