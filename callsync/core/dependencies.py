"""
FastAPI dependency injection utilities.

Provides injectable dependencies for endpoint handlers:
- get_settings_dependency / SettingsDep: the cached Settings instance
- get_sync_lock / SyncLockDep: the process-wide lock that keeps sync runs
  from overlapping when triggered over HTTP

Usage:
    from callsync.core.dependencies import SettingsDep, SyncLockDep

    @router.post("/sync")
    async def trigger_sync(settings: SettingsDep, lock: SyncLockDep):
        ...

Testing:
    app.dependency_overrides[get_settings_dependency] = lambda: mock_settings
"""

import asyncio
from typing import Annotated, Optional

from fastapi import Depends

from callsync.core.config import Settings, get_settings


# =============================================================================
# Settings Dependency
# =============================================================================

def get_settings_dependency() -> Settings:
    """
    Return the Settings singleton instance.

    Thin wrapper around get_settings() so tests can override it through
    app.dependency_overrides.
    """
    return get_settings()


# =============================================================================
# Sync Run Lock
# =============================================================================

# Created lazily so it binds to the running event loop
_sync_lock: Optional[asyncio.Lock] = None


def get_sync_lock() -> asyncio.Lock:
    """
    Return the lock guarding HTTP-triggered sync runs.

    Reconciliation assumes at most one run at a time; the endpoint refuses a
    second request while the lock is held instead of queueing it.
    """
    global _sync_lock

    if _sync_lock is None:
        _sync_lock = asyncio.Lock()

    return _sync_lock


# =============================================================================
# Type Aliases for Dependency Injection
# =============================================================================

SettingsDep = Annotated[Settings, Depends(get_settings_dependency)]

SyncLockDep = Annotated[asyncio.Lock, Depends(get_sync_lock)]
