"""
Sequential scheduler for reconciliation services.

A schedule is a named group of services run one after another. The cron
trigger itself lives outside this service (a platform cron or a POST to the
API); this module only knows how to execute a schedule once it fires.

Configuration is an explicit SchedulerConfig value passed by the caller.
DEFAULT_SCHEDULER_CONFIG holds the production schedules.

Execution rules:
- services run strictly sequentially, never concurrently
- each service window is computed from days_back / current_day_only, with
  "today" taken as the current Eastern civil date
- a failing service is recorded and the next service still runs
- a Slack digest is posted afterwards when a webhook is configured
"""

import logging
import time
from datetime import date, datetime, timedelta, timezone
from typing import Awaitable, Callable, Optional

from callsync.core.config import Settings, get_settings
from callsync.models.enums import Category, ServiceType
from callsync.models.schemas import (
    ScheduleConfig,
    ScheduleExecutionResult,
    SchedulerConfig,
    ServiceConfig,
    ServiceExecutionResult,
    SyncSummary,
    SyncWindow,
)
from callsync.jobs.sync_digest import post_sync_digest
from callsync.services.reconciliation import run_sync
from callsync.services.timezone import eastern_date

logger = logging.getLogger(__name__)


SyncRunner = Callable[..., Awaitable[SyncSummary]]


# =============================================================================
# Default Configuration
# =============================================================================

DEFAULT_SCHEDULER_CONFIG = SchedulerConfig(
    timezone='Asia/Kolkata',
    schedules=[
        ScheduleConfig(
            name='Origin Sync',
            description='Fetch origin calls and enrich target calls for the past 10 days',
            cron='4 3 * * *',
            time='03:04',
            timezone='Asia/Kolkata',
            services=[
                ServiceConfig(
                    name='Origin Sync - Past 10 Days',
                    type=ServiceType.ORIGIN_SYNC,
                    category=None,
                    description='Reconcile all categories for the past 10 days',
                    days_back=10,
                ),
            ],
        ),
        ScheduleConfig(
            name='Evening Sync',
            description='Evening reconciliation after the publisher-side fetch',
            cron='0 21 * * *',
            time='21:00',
            timezone='Asia/Kolkata',
            services=[
                ServiceConfig(
                    name='Origin Sync - STATIC Current Day',
                    type=ServiceType.ORIGIN_SYNC,
                    category=Category.STATIC,
                    description='Reconcile static line calls for the current day',
                    current_day_only=True,
                ),
                ServiceConfig(
                    name='Origin Sync - Past 10 Days',
                    type=ServiceType.ORIGIN_SYNC,
                    category=None,
                    description='Reconcile all categories for the past 10 days',
                    days_back=10,
                ),
            ],
        ),
    ],
)


def find_schedule(config: SchedulerConfig, name: str) -> Optional[ScheduleConfig]:
    """Look up a schedule by name (case-insensitive)."""
    for schedule in config.schedules:
        if schedule.name.lower() == name.lower():
            return schedule
    return None


# =============================================================================
# Windows
# =============================================================================

def current_eastern_date() -> date:
    return eastern_date(datetime.now(timezone.utc))


def compute_sync_window(service: ServiceConfig, today: Optional[date] = None) -> SyncWindow:
    """
    Window of Eastern civil dates a service should reconcile.

    current_day_only -> today only; days_back=N -> today minus N through
    today; neither -> today only.
    """
    today = today or current_eastern_date()

    if service.current_day_only or not service.days_back:
        return SyncWindow(start_date=today, end_date=today)

    return SyncWindow(start_date=today - timedelta(days=service.days_back), end_date=today)


# =============================================================================
# Execution
# =============================================================================

async def run_service(
    service: ServiceConfig,
    today: Optional[date] = None,
    runner: SyncRunner = run_sync,
    settings: Optional[Settings] = None,
) -> ServiceExecutionResult:
    """
    Run one service and capture its outcome.

    Never raises: any error is recorded on the returned result.
    """
    started = time.monotonic()

    try:
        if service.type != ServiceType.ORIGIN_SYNC:
            raise ValueError(f"Unknown service type: {service.type}")

        window = compute_sync_window(service, today)
        logger.info(
            f"Executing {service.name}: {window.start_date} to {window.end_date} "
            f"(category={service.category.value if service.category else 'all'})"
        )
        summary = await runner(window, service.category, settings=settings)

    except Exception as e:
        duration = time.monotonic() - started
        logger.exception(f"Service {service.name} failed after {duration:.2f}s")
        return ServiceExecutionResult(
            service_name=service.name,
            success=False,
            duration_seconds=duration,
            error=str(e) or type(e).__name__,
        )

    duration = time.monotonic() - started
    logger.info(f"Service {service.name} succeeded in {duration:.2f}s")
    return ServiceExecutionResult(
        service_name=service.name,
        success=True,
        duration_seconds=duration,
        summary=summary,
    )


async def run_schedule(
    schedule: ScheduleConfig,
    *,
    today: Optional[date] = None,
    runner: SyncRunner = run_sync,
    settings: Optional[Settings] = None,
    notify: bool = True,
) -> ScheduleExecutionResult:
    """
    Run every enabled service of a schedule, one after another.

    Args:
        schedule: Schedule to execute.
        today: Eastern civil date the windows are computed from (current date when omitted).
        runner: Sync entry point, run_sync unless replaced.
        settings: Settings passed through to the runner and the digest.
        notify: Post a Slack digest afterwards when a webhook is configured.

    Returns:
        ScheduleExecutionResult with one entry per enabled service.
    """
    settings = settings or get_settings()
    started_at = datetime.now(timezone.utc)
    started = time.monotonic()
    execution = ScheduleExecutionResult(schedule_name=schedule.name, started_at=started_at)

    if not schedule.enabled:
        logger.info(f"Schedule {schedule.name} is disabled, nothing to run")
        return execution

    services = [s for s in schedule.services if s.enabled]
    logger.info(f"Running schedule {schedule.name} with {len(services)} services")

    for service in services:
        result = await run_service(service, today=today, runner=runner, settings=settings)
        execution.service_results.append(result)

    execution.total_duration_seconds = time.monotonic() - started
    logger.info(f"Schedule finished: {execution.to_log_dict()}")

    if notify:
        digest = post_sync_digest(execution, settings=settings)
        if not digest['success']:
            logger.warning(f"Sync digest not delivered: {digest.get('error')}")

    return execution
