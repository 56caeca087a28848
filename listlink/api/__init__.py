"""HTTP routers."""

from .alexa import router as alexa_router
from .oauth import router as oauth_router
from .routes import router as callable_router

__all__ = ["alexa_router", "callable_router", "oauth_router"]
