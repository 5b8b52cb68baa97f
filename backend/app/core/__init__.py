from .cache import cache
from .cache_invalidation import invalidator
from .config import settings
from .database import AsyncSessionLocal, engine, get_db
from .logging import logger, setup_logging

__all__ = [
    "AsyncSessionLocal",
    "cache",
    "engine",
    "get_db",
    "invalidator",
    "logger",
    "settings",
    "setup_logging"
]
