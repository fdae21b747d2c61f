"""
Core infrastructure package for the Call Sync service.

Provides:
- Configuration management via pydantic-settings
- Async PostgreSQL database connectivity via asyncpg
- FastAPI dependency injection utilities
- The package exception hierarchy

Usage Examples:
    from callsync.core import get_settings, get_db_pool, ConfigurationError

    settings = get_settings()
    pool = await get_db_pool()
"""

from callsync.core.config import Settings, get_settings
from callsync.core.database import init_db, close_db, get_db_pool
from callsync.core.dependencies import (
    get_settings_dependency,
    get_sync_lock,
    SettingsDep,
    SyncLockDep,
)
from callsync.core.exceptions import (
    CallSyncError,
    ConfigurationError,
    FeedError,
    SyncAbortedError,
)

__all__ = [
    # Configuration management (from config.py)
    'Settings',
    'get_settings',
    # Database pool lifecycle (from database.py)
    'init_db',
    'close_db',
    'get_db_pool',
    # FastAPI dependency injection (from dependencies.py)
    'get_settings_dependency',
    'get_sync_lock',
    'SettingsDep',
    'SyncLockDep',
    # Errors (from exceptions.py)
    'CallSyncError',
    'ConfigurationError',
    'FeedError',
    'SyncAbortedError',
]
