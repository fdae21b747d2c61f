"""
Scheduled jobs for Call Sync.

- scheduler.py: sequential execution of configured reconciliation schedules
- sync_digest.py: Slack Block Kit digest of a schedule execution

Environment Requirements:
- SLACK_WEBHOOK_URL: Slack incoming webhook URL (optional; without it the
  digest is skipped)

Usage Examples:

    from callsync.jobs import DEFAULT_SCHEDULER_CONFIG, find_schedule, run_schedule

    schedule = find_schedule(DEFAULT_SCHEDULER_CONFIG, 'Evening Sync')
    execution = await run_schedule(schedule)
    print(execution.to_log_dict())
"""

from callsync.jobs.scheduler import (
    DEFAULT_SCHEDULER_CONFIG,
    compute_sync_window,
    find_schedule,
    run_schedule,
    run_service,
)
from callsync.jobs.sync_digest import format_sync_digest, post_sync_digest

__all__ = [
    'DEFAULT_SCHEDULER_CONFIG',
    'compute_sync_window',
    'find_schedule',
    'run_schedule',
    'run_service',
    'format_sync_digest',
    'post_sync_digest',
]
