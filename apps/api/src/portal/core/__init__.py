"""
Core module - Configuration, database, security, and utilities.
"""

from portal.core.config import get_settings, settings
from portal.core.database import Base, close_db, get_db, init_db
from portal.core.exceptions import ServiceError, to_http_exception
from portal.core.redis import close_redis, get_redis, init_redis
from portal.core.security import (
    create_access_token,
    create_refresh_token,
    decode_token,
    hash_password,
    verify_password,
)

__all__ = [
    # Config
    "settings",
    "get_settings",
    # Database
    "Base",
    "get_db",
    "init_db",
    "close_db",
    # Errors
    "ServiceError",
    "to_http_exception",
    # Redis
    "get_redis",
    "init_redis",
    "close_redis",
    # Security
    "hash_password",
    "verify_password",
    "create_access_token",
    "create_refresh_token",
    "decode_token",
]
