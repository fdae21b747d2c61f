"""
Origin call-log feed client (Ringba call logs API).

One POST per page:

    POST {base_url}/{account_id}/calllogs
    Authorization: Token {api_token}
    {
        "reportStart": "2026-02-03T05:00:00.000Z",
        "reportEnd": "2026-02-04T04:59:59.999Z",
        "offset": 0,
        "size": 1000,
        "orderByColumns": [{"column": "callDt", "direction": "desc"}],
        "valueColumns": [...],
        "filters": [{"anyConditionToMatch": [{"column": "targetId", ...}]}],
        "formatDateTime": true
    }

The response carries `report.records` and `report.totalCount`. Records are
normalized into CallRecord before they leave this module. HTTP and transport
failures surface as FeedError.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx

from callsync.core.config import Settings
from callsync.core.exceptions import ConfigurationError, FeedError
from callsync.models.schemas import OriginPage
from callsync.services.normalization import origin_record_from_feed
from callsync.services.timezone import format_utc_iso

logger = logging.getLogger(__name__)


MAX_PAGE_SIZE = 1000

VALUE_COLUMNS: List[str] = [
    'inboundCallId',
    'callDt',
    'targetName',
    'targetId',
    'conversionAmount',
    'payoutAmount',
    'callLengthInSeconds',
    'inboundPhoneNumber',
    'tag:InboundNumber:Number',
    'campaignName',
    'publisherName',
]


def build_call_log_request(
    target_id: str,
    start: datetime,
    end: datetime,
    offset: int,
    page_size: int,
) -> Dict[str, Any]:
    """JSON body for one call-log page restricted to a campaign target."""
    return {
        'reportStart': format_utc_iso(start),
        'reportEnd': format_utc_iso(end),
        'offset': offset,
        'size': min(page_size, MAX_PAGE_SIZE),
        'orderByColumns': [{'column': 'callDt', 'direction': 'desc'}],
        'valueColumns': [{'column': column} for column in VALUE_COLUMNS],
        'filters': [
            {
                'anyConditionToMatch': [
                    {
                        'column': 'targetId',
                        'comparisonType': 'EQUALS',
                        'value': target_id,
                        'isNegativeMatch': False,
                    }
                ]
            }
        ],
        'formatDateTime': True,
    }


class RingbaCallLogClient:
    """
    Async client for the origin call-log feed.

    Use as an async context manager, or call aclose() when done. A caller
    supplied httpx.AsyncClient is used as-is and left open.
    """

    def __init__(
        self,
        account_id: str,
        api_token: str,
        base_url: str = 'https://api.ringba.com/v2',
        target_names: Optional[Dict[str, str]] = None,
        timeout: float = 60.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        if not account_id or not api_token:
            raise ConfigurationError("Origin feed account id and API token are required")

        self.account_id = account_id
        self.target_names = dict(target_names or {})
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=base_url.rstrip('/'),
            timeout=timeout,
        )
        self._headers = {
            'Authorization': f'Token {api_token}',
            'Content-Type': 'application/json',
        }

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        client: Optional[httpx.AsyncClient] = None,
    ) -> 'RingbaCallLogClient':
        """
        Build a client from application settings.

        Raises:
            ConfigurationError: If RINGBA_ACCOUNT_ID or RINGBA_API_TOKEN is not set.
        """
        missing = [
            name for name, value in (
                ('RINGBA_ACCOUNT_ID', settings.ringba_account_id),
                ('RINGBA_API_TOKEN', settings.ringba_api_token),
            )
            if not value
        ]
        if missing:
            raise ConfigurationError(f"Missing origin feed configuration: {', '.join(missing)}")

        return cls(
            account_id=settings.ringba_account_id,
            api_token=settings.ringba_api_token,
            base_url=settings.ringba_base_url,
            target_names=settings.origin_target_ids,
            timeout=settings.feed_timeout_seconds,
            client=client,
        )

    async def fetch_page(
        self,
        target_id: str,
        start: datetime,
        end: datetime,
        offset: int,
        page_size: int,
    ) -> OriginPage:
        """
        Fetch one page of call logs for a campaign target.

        Raises:
            FeedError: On a non-2xx response, a transport error or an
                unreadable body.
        """
        url = f'/{self.account_id}/calllogs'
        body = build_call_log_request(target_id, start, end, offset, page_size)

        try:
            response = await self._client.post(url, json=body, headers=self._headers)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            raise FeedError(
                f"Call log request for target {target_id} failed with "
                f"HTTP {e.response.status_code}",
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            raise FeedError(f"Call log request for target {target_id} failed: {e}") from e
        except ValueError as e:
            raise FeedError(f"Call log response for target {target_id} is not JSON") from e

        if not isinstance(data, dict):
            raise FeedError(f"Call log response for target {target_id} is not a JSON object")
        report = data.get('report') or {}
        rows = (report.get('records') or []) if isinstance(report, dict) else None
        if not isinstance(rows, list):
            raise FeedError(f"Call log response for target {target_id} has no record list")
        total = report.get('totalCount', report.get('total'))

        try:
            records = [
                origin_record_from_feed(row, target_id, self.target_names)
                for row in rows
            ]
            total_count = int(total) if total is not None else None
            page = OriginPage(records=records, total_count=total_count)
        except (AttributeError, TypeError, ValueError) as e:
            raise FeedError(f"Call log response for target {target_id} is malformed: {e}") from e

        logger.debug(
            f"Target {target_id} offset {offset}: {len(records)} records of {total_count}"
        )
        return page

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> 'RingbaCallLogClient':
        return self

    async def __aexit__(self, *args) -> None:
        await self.aclose()
