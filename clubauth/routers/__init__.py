"""API routers."""

from clubauth.routers.auth import router as auth_router
from clubauth.routers.etlab import router as etlab_router
from clubauth.routers.google_oauth import router as google_oauth_router
from clubauth.routers.health import router as health_router
from clubauth.routers.passkeys import router as passkeys_router

__all__ = [
    "auth_router",
    "etlab_router",
    "google_oauth_router",
    "health_router",
    "passkeys_router",
]
