"""
Idempotent Persistence Gateway.

Reads target calls and writes reconciliation results through the asyncpg
pool. Every write is safe to repeat:

- upsert_origin_call(): INSERT ... ON CONFLICT (external_id) DO UPDATE on the
  origin mirror, so re-running a window never duplicates rows.
- merge_enrichment(): inside one transaction the target row is locked
  (SELECT ... FOR UPDATE), checked for existing enrichment, and only then
  updated. A row counts as already enriched when it carries a link id or a
  non-zero amount, so rows merged with zero amounts are skipped on re-run.
  Existing enrichment is never overwritten; a missing link id is the only
  thing backfilled on an already-enriched row.

Per-row exceptions propagate to the caller, which counts and logs them.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Awaitable, Callable, List, Optional

from asyncpg import Pool

from callsync.core.database import get_db_pool
from callsync.models.enums import Category, MergeOutcome, UpsertOutcome
from callsync.models.schemas import CallRecord
from callsync.services.normalization import target_record_from_row
from callsync.services.timezone import eastern_date_str, format_eastern
from callsync.sql.call_queries import (
    SCHEMA_STATEMENTS,
    get_enrichment_fill_query,
    get_link_backfill_query,
    get_origin_upsert_query,
    get_target_by_id_query,
    get_target_lock_query,
    get_target_range_query,
)

logger = logging.getLogger(__name__)


ZERO = Decimal('0')


def _has_amount(value: Optional[Decimal]) -> bool:
    return value is not None and value != ZERO


def _row_id(target_id: str) -> Optional[int]:
    try:
        return int(target_id)
    except (TypeError, ValueError):
        return None


class PostgresCallStore:
    """
    Target reads and reconciliation writes against PostgreSQL.

    Args:
        pool_getter: Coroutine function returning the asyncpg pool. Defaults
            to the application pool singleton.
    """

    def __init__(self, pool_getter: Callable[[], Awaitable[Pool]] = get_db_pool):
        self._pool_getter = pool_getter

    async def ensure_schema(self) -> None:
        """Create both reconciliation tables and their indexes if missing."""
        pool = await self._pool_getter()
        async with pool.acquire() as conn:
            async with conn.transaction():
                for statement in SCHEMA_STATEMENTS:
                    await conn.execute(statement)
        logger.info("Reconciliation schema is in place")

    # =========================================================================
    # Target Reads
    # =========================================================================

    async def fetch_target_calls(
        self,
        start: datetime,
        end: datetime,
        category: Optional[Category] = None,
    ) -> List[CallRecord]:
        """
        Target calls whose Eastern civil date falls between those of two instants.

        Args:
            start: First instant of the range (UTC-aware).
            end: Last instant of the range (UTC-aware).
            category: Restrict to one category; all when None.

        Returns:
            Normalized target calls ordered by call time then id.
        """
        start_day = eastern_date_str(start)
        end_day = eastern_date_str(end)

        pool = await self._pool_getter()
        async with pool.acquire() as conn:
            rows = await conn.fetch(get_target_range_query(category), start_day, end_day)

        records = [target_record_from_row(row) for row in rows]
        logger.info(
            f"Fetched {len(records)} target calls for {start_day}..{end_day} "
            f"(category={category.value if category else 'all'})"
        )
        return records

    async def fetch_target_by_id(self, target_id: str) -> Optional[CallRecord]:
        row_id = _row_id(target_id)
        if row_id is None:
            return None

        pool = await self._pool_getter()
        async with pool.acquire() as conn:
            row = await conn.fetchrow(get_target_by_id_query(), row_id)

        return target_record_from_row(row) if row else None

    # =========================================================================
    # Writes
    # =========================================================================

    async def upsert_origin_call(self, record: CallRecord) -> UpsertOutcome:
        """
        Mirror one origin call into origin_calls.

        Raises:
            ValueError: If the record has no external id.
        """
        if not record.external_id:
            raise ValueError("Origin call without external id cannot be mirrored")

        eastern = format_eastern(record.timestamp_instant) if record.timestamp_instant else None

        pool = await self._pool_getter()
        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                get_origin_upsert_query(),
                record.external_id,
                record.timestamp_raw,
                eastern,
                record.caller_phone,
                record.caller_phone_normalized,
                record.category.value if record.category else None,
                record.payout if record.payout is not None else ZERO,
                record.revenue if record.revenue is not None else ZERO,
                record.duration_seconds or 0,
                record.target_id,
                record.target_name,
                record.campaign_name,
                record.publisher_name,
                record.inbound_phone,
            )

        return UpsertOutcome.INSERTED if row and row['inserted'] else UpsertOutcome.UPDATED

    async def merge_enrichment(
        self,
        target_id: str,
        payout: Optional[Decimal],
        revenue: Optional[Decimal],
        link_id: Optional[str],
    ) -> MergeOutcome:
        """
        Merge origin payout/revenue onto one target call.

        Args:
            target_id: External id (row id) of the target call.
            payout: Origin payout; None is stored as 0.
            revenue: Origin revenue; None is stored as 0.
            link_id: External id of the linked origin call.

        Returns:
            UPDATED when enrichment was written, SKIPPED_ALREADY_ENRICHED when
            the row was already linked or carried non-zero amounts (a
            missing link id is still backfilled), NOT_FOUND when the row does not exist.
        """
        row_id = _row_id(target_id)
        if row_id is None:
            return MergeOutcome.NOT_FOUND

        pool = await self._pool_getter()
        async with pool.acquire() as conn:
            async with conn.transaction():
                row = await conn.fetchrow(get_target_lock_query(), row_id)
                if row is None:
                    return MergeOutcome.NOT_FOUND

                if (
                    row['link_id'] is not None
                    or _has_amount(row['enriched_payout'])
                    or _has_amount(row['enriched_revenue'])
                ):
                    if row['link_id'] is None and link_id:
                        await conn.execute(get_link_backfill_query(), row_id, link_id)
                    return MergeOutcome.SKIPPED_ALREADY_ENRICHED

                await conn.execute(
                    get_enrichment_fill_query(),
                    row_id,
                    payout if payout is not None else ZERO,
                    revenue if revenue is not None else ZERO,
                    link_id,
                )
                return MergeOutcome.UPDATED
