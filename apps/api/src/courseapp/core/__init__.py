"""
Core module - Configuration, database, errors, security, and gateways.
"""

from courseapp.core.config import get_settings, settings
from courseapp.core.database import Base, close_db, get_db, init_db
from courseapp.core.redis import close_redis, init_redis

__all__ = [
    # Config
    "settings",
    "get_settings",
    # Database
    "Base",
    "get_db",
    "init_db",
    "close_db",
    # Redis
    "init_redis",
    "close_redis",
]
