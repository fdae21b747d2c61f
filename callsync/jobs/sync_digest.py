"""
Slack sync digest for scheduled reconciliation runs.

After a schedule executes, a Block Kit summary is posted to the incoming
webhook configured in SLACK_WEBHOOK_URL: one line per service with its
outcome and the key sync counts, plus the unmatched breakdown.

Without a webhook the digest is skipped. Delivery problems never propagate:
they are reported in the returned dict, the same way the sync itself reports
per-row failures.

Usage:
    execution = await run_schedule(schedule)
    result = post_sync_digest(execution)
    if not result['success']:
        logger.warning(result['error'])
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from slack_sdk.webhook import WebhookClient

from callsync.core.config import Settings, get_settings
from callsync.models.schemas import ScheduleExecutionResult, ServiceExecutionResult

logger = logging.getLogger(__name__)


def _service_line(result: ServiceExecutionResult) -> str:
    if not result.success:
        return f":x: *{result.service_name}* failed after {result.duration_seconds:.1f}s: {result.error}"

    s = result.summary
    if s is None:
        return f":white_check_mark: *{result.service_name}* ({result.duration_seconds:.1f}s)"

    return (
        f":white_check_mark: *{result.service_name}* ({result.duration_seconds:.1f}s)\n"
        f"   {s.start_date} to {s.end_date} | {s.category} | "
        f"origin {s.origin_fetched:,} | target {s.target_fetched:,}\n"
        f"   matched *{s.matched:,}* | enriched *{s.enriched:,}* | "
        f"already enriched {s.skipped_already_enriched:,} | "
        f"unmatched {s.unmatched:,} | failed {s.failed + s.mirror_failed:,}"
    )


def _unmatched_lines(results: List[ServiceExecutionResult]) -> List[str]:
    totals: Dict[str, int] = {}
    for result in results:
        if result.summary is None:
            continue
        for reason, count in result.summary.unmatched_by_reason.items():
            totals[reason] = totals.get(reason, 0) + count

    return [
        f"• {reason.replace('_', ' ')}: {count:,}"
        for reason, count in sorted(totals.items(), key=lambda item: item[1], reverse=True)
        if count > 0
    ]


def format_sync_digest(execution: ScheduleExecutionResult) -> List[Dict[str, Any]]:
    """
    Build the Block Kit blocks for one schedule execution.

    Args:
        execution: Result returned by run_schedule().

    Returns:
        List of Block Kit block dicts ready for WebhookClient.send().
    """
    status = ":white_check_mark:" if execution.success else ":warning:"
    started = execution.started_at.strftime('%Y-%m-%d %H:%M UTC')

    blocks: List[Dict[str, Any]] = [
        {
            "type": "header",
            "text": {
                "type": "plain_text",
                "text": f"Call Sync: {execution.schedule_name}",
                "emoji": True,
            },
        },
        {
            "type": "section",
            "text": {
                "type": "mrkdwn",
                "text": (
                    f"{status} *{execution.success_count}* succeeded, "
                    f"*{execution.failure_count}* failed "
                    f"in {execution.total_duration_seconds:.1f}s (started {started})"
                ),
            },
        },
        {"type": "divider"},
    ]

    for result in execution.service_results:
        blocks.append({
            "type": "section",
            "text": {"type": "mrkdwn", "text": _service_line(result)},
        })

    unmatched = _unmatched_lines(execution.service_results)
    if unmatched:
        blocks.append({"type": "divider"})
        blocks.append({
            "type": "section",
            "text": {"type": "mrkdwn", "text": "*Unmatched by reason*\n" + "\n".join(unmatched)},
        })

    generated = datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M:%S UTC')
    blocks.append({
        "type": "context",
        "elements": [{"type": "mrkdwn", "text": f"Generated at {generated}"}],
    })
    return blocks


def post_sync_digest(
    execution: ScheduleExecutionResult,
    settings: Optional[Settings] = None,
) -> Dict[str, Any]:
    """
    Post the digest for a schedule execution to Slack.

    Returns:
        Dict with:
        - success: True when posted, or skipped because no webhook is set
        - skipped: True when no webhook is configured
        - error: Error message (if failed)
    """
    settings = settings or get_settings()

    if not settings.slack_webhook_url:
        logger.info("SLACK_WEBHOOK_URL not configured, skipping sync digest")
        return {'success': True, 'skipped': True}

    blocks = format_sync_digest(execution)

    try:
        client = WebhookClient(settings.slack_webhook_url)
        response = client.send(blocks=blocks)
    except Exception as e:
        logger.warning(f"Failed to send sync digest: {e}")
        return {'success': False, 'error': f'Failed to send Slack message: {e}'}

    if response.status_code == 200:
        logger.info(f"Sync digest posted for {execution.schedule_name}")
        return {'success': True, 'schedule': execution.schedule_name}

    logger.warning(f"Slack returned {response.status_code} for sync digest")
    return {
        'success': False,
        'error': f'Slack API returned status {response.status_code}: {response.body}',
    }
