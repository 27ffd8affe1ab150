from .communities import router as communities_router
from .media import router as media_router
from .posts import router as posts_router
from .profiles import router as profiles_router
from .session import router as session_router

__all__ = ["communities_router", "media_router", "posts_router", "profiles_router", "session_router"]
