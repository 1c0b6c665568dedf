"""HTTP and WebSocket routers for the SecureChat API."""

from .endpoints.auth import router as auth_router
from .endpoints.files import download_router as files_download_router
from .endpoints.files import router as files_router
from .endpoints.friendships import router as friendships_router
from .endpoints.messages import router as messages_router
from .endpoints.realtime import router as realtime_router
from .endpoints.users import router as users_router

__all__ = [
    "auth_router",
    "files_download_router",
    "files_router",
    "friendships_router",
    "messages_router",
    "realtime_router",
    "users_router",
]
