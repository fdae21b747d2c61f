"""
FastAPI router for triggering reconciliation.

Endpoints:
- POST /sync: reconcile a date range (optionally one category) and return
  the SyncSummary
- GET /sync/schedules: the scheduler configuration
- POST /sync/schedules/{name}/run: execute one schedule now (used by the
  external cron trigger)

Only one run may be in flight per process. A request arriving while another
run holds the lock gets 409 instead of waiting.
"""

import logging

from fastapi import APIRouter, HTTPException, status
from pydantic import ValidationError

from callsync.core.dependencies import SettingsDep, SyncLockDep
from callsync.core.exceptions import ConfigurationError, SyncAbortedError
from callsync.jobs.scheduler import DEFAULT_SCHEDULER_CONFIG, find_schedule, run_schedule
from callsync.models.schemas import (
    ScheduleExecutionResult,
    SchedulerConfig,
    SyncRequest,
    SyncSummary,
    SyncWindow,
)
from callsync.services.reconciliation import run_sync

logger = logging.getLogger(__name__)

router = APIRouter()


def get_scheduler_config() -> SchedulerConfig:
    """Scheduler configuration served and executed by this router."""
    return DEFAULT_SCHEDULER_CONFIG


def _reject_if_running(lock) -> None:
    if lock.locked():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A sync run is already in progress",
        )


@router.post("", response_model=SyncSummary)
async def trigger_sync(
    request: SyncRequest,
    settings: SettingsDep,
    lock: SyncLockDep,
) -> SyncSummary:
    """
    Reconcile the requested Eastern date range.

    Raises:
        HTTPException 409: Another run is in progress.
        HTTPException 422: end_date is before start_date.
        HTTPException 500: Feed credentials or campaign targets are missing.
        HTTPException 502: The target calls could not be read.
    """
    try:
        window = SyncWindow(
            start_date=request.start_date,
            end_date=request.end_date or request.start_date,
        )
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="; ".join(error['msg'] for error in e.errors()),
        ) from e

    _reject_if_running(lock)
    async with lock:
        try:
            return await run_sync(window, request.category, settings=settings)
        except ConfigurationError as e:
            logger.error(f"Sync not started: {e}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=str(e),
            )
        except SyncAbortedError as e:
            logger.error(f"Sync aborted at {e.stage}: {e}")
            raise HTTPException(
                status_code=status.HTTP_502_BAD_GATEWAY,
                detail=str(e),
            )


@router.get("/schedules", response_model=SchedulerConfig)
async def list_schedules() -> SchedulerConfig:
    return get_scheduler_config()


@router.post("/schedules/{name}/run", response_model=ScheduleExecutionResult)
async def run_named_schedule(
    name: str,
    settings: SettingsDep,
    lock: SyncLockDep,
) -> ScheduleExecutionResult:
    """Execute every enabled service of one schedule, sequentially."""
    schedule = find_schedule(get_scheduler_config(), name)
    if schedule is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Schedule '{name}' not found",
        )

    _reject_if_running(lock)
    async with lock:
        return await run_schedule(schedule, settings=settings)
