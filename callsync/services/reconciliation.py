"""
Reconciliation Orchestrator.

Drives one sync run over a window of Eastern civil dates through a fixed,
forward-only sequence of stages:

    INIT -> FETCH_TARGET -> FETCH_ORIGIN -> BUILD_INDEX -> MATCH -> PERSIST
         -> SUMMARIZE -> DONE

- INIT: check collaborators and the campaign targets for the category.
- FETCH_TARGET: one range query for the window widened by one Eastern day
  on each side, so calls near midnight still find their counterpart. A
  failure here aborts the run before any write.
- FETCH_ORIGIN: per Eastern day, per campaign target, all pages. A failed
  day/target is logged, counted and skipped. Records are deduplicated by
  external id; records without one are dropped.
- BUILD_INDEX / MATCH: bucket target calls and greedily assign origin calls.
- PERSIST: mirror every origin call, then merge enrichment for every
  assignment. Row failures are counted, never fatal.

ReconciliationRun.advance() executes exactly one stage, so a caller can stop
between steps. run_sync() drives a fresh run to completion. The candidate
index and the consumed set belong to the run object and are discarded with it.
"""

import asyncio
import logging
from datetime import datetime
from decimal import Decimal
from typing import Awaitable, Callable, Dict, List, Optional, Protocol

from callsync.core.config import Settings, get_settings
from callsync.core.exceptions import ConfigurationError, FeedError, SyncAbortedError
from callsync.models.enums import Category, MergeOutcome, SyncStage, UpsertOutcome
from callsync.models.schemas import CallRecord, OriginPage, SyncSummary, SyncWindow
from callsync.services.matching import CandidateIndex, MatchingRules, MatchResult, match_calls
from callsync.services.normalization import category_from_target
from callsync.services.persistence import PostgresCallStore
from callsync.services.timezone import eastern_day_bounds, iter_days, window_bounds

logger = logging.getLogger(__name__)


SleepFunc = Callable[[float], Awaitable[None]]

# Target window is widened by this many Eastern days on each side
TARGET_BUFFER_DAYS = 1


# =============================================================================
# Collaborator Interfaces
# =============================================================================

class OriginFeedFetcher(Protocol):
    """Paged access to the origin call-log feed."""

    async def fetch_page(
        self,
        target_id: str,
        start: datetime,
        end: datetime,
        offset: int,
        page_size: int,
    ) -> OriginPage:
        ...


class CallStore(Protocol):
    """Target reads and reconciliation writes."""

    async def fetch_target_calls(
        self,
        start: datetime,
        end: datetime,
        category: Optional[Category] = None,
    ) -> List[CallRecord]:
        ...

    async def fetch_target_by_id(self, target_id: str) -> Optional[CallRecord]:
        ...

    async def upsert_origin_call(self, record: CallRecord) -> UpsertOutcome:
        ...

    async def merge_enrichment(
        self,
        target_id: str,
        payout: Optional[Decimal],
        revenue: Optional[Decimal],
        link_id: Optional[str],
    ) -> MergeOutcome:
        ...


# =============================================================================
# Origin Paging
# =============================================================================

async def fetch_all_origin_calls(
    fetcher: OriginFeedFetcher,
    target_id: str,
    start: datetime,
    end: datetime,
    page_size: int = 1000,
    page_delay_seconds: float = 0.1,
    sleep: SleepFunc = asyncio.sleep,
) -> List[CallRecord]:
    """
    Fetch every page of origin calls for one target and time range.

    Pages are requested by offset until the feed's total count is reached.
    When the feed reports no total, a page shorter than page_size ends the
    loop. An empty page always ends it.

    Raises:
        FeedError: Propagated from the fetcher; earlier pages are discarded.
    """
    records: List[CallRecord] = []
    offset = 0

    while True:
        page = await fetcher.fetch_page(target_id, start, end, offset, page_size)
        records.extend(page.records)
        offset += len(page.records)

        if not page.records:
            break
        if page.total_count is not None:
            if offset >= page.total_count:
                break
        elif len(page.records) < page_size:
            break
        await sleep(page_delay_seconds)

    return records


# =============================================================================
# Run State Machine
# =============================================================================

class ReconciliationRun:
    """
    One reconciliation run over a SyncWindow.

    Args:
        window: Eastern civil dates to reconcile.
        category: Restrict to one category; all categories when None.
        fetcher: Origin feed fetcher.
        store: Target reads and reconciliation writes.
        settings: Delays, page size, campaign targets and matching rules.
        sleep: Awaitable used for the fixed delays between feed calls.

    Example:
        >>> run = ReconciliationRun(window, None, fetcher, store, settings)
        >>> await run.advance()   # INIT -> FETCH_TARGET
        >>> summary = await run.run()
    """

    def __init__(
        self,
        window: SyncWindow,
        category: Optional[Category],
        fetcher: OriginFeedFetcher,
        store: CallStore,
        settings: Settings,
        sleep: SleepFunc = asyncio.sleep,
        rules: Optional[MatchingRules] = None,
    ):
        self.window = window
        self.category = category
        self.fetcher = fetcher
        self.store = store
        self.settings = settings
        self.sleep = sleep
        self.rules = rules or MatchingRules.from_settings(settings)

        self.stage = SyncStage.INIT
        self.summary = SyncSummary(
            start_date=window.start_date,
            end_date=window.end_date,
            category=category.value if category else 'all',
        )

        self.origin_targets: Dict[str, str] = {}
        self.target_records: List[CallRecord] = []
        self.origin_records: List[CallRecord] = []
        self.index: Optional[CandidateIndex] = None
        self.result: Optional[MatchResult] = None

        self._handlers = {
            SyncStage.INIT: self._init,
            SyncStage.FETCH_TARGET: self._fetch_target,
            SyncStage.FETCH_ORIGIN: self._fetch_origin,
            SyncStage.BUILD_INDEX: self._build_index,
            SyncStage.MATCH: self._match,
            SyncStage.PERSIST: self._persist,
            SyncStage.SUMMARIZE: self._summarize,
        }

    @property
    def done(self) -> bool:
        return self.stage == SyncStage.DONE

    async def advance(self) -> SyncStage:
        """
        Execute the current stage and move to the next one.

        Returns:
            The stage the run is in afterwards.

        Raises:
            ConfigurationError: From INIT.
            SyncAbortedError: From FETCH_TARGET.
            RuntimeError: If the run is already done.
        """
        if self.done:
            raise RuntimeError("Reconciliation run is already done")

        handler = self._handlers[self.stage]
        self.stage = await handler()
        logger.debug(f"Reconciliation run advanced to {self.stage.value}")
        return self.stage

    async def run(self) -> SyncSummary:
        """Advance until DONE and return the summary."""
        while not self.done:
            await self.advance()
        return self.summary

    # =========================================================================
    # Stages
    # =========================================================================

    async def _init(self) -> SyncStage:
        if self.fetcher is None:
            raise ConfigurationError("An origin feed fetcher is required")
        if self.store is None:
            raise ConfigurationError("A call store is required")

        self.origin_targets = {
            target_id: name
            for target_id, name in self.settings.origin_target_ids.items()
            if self.category is None or category_from_target(name) == self.category
        }
        if not self.origin_targets:
            raise ConfigurationError(
                f"No origin campaign targets configured for category {self.summary.category}"
            )

        logger.info(
            f"Starting sync {self.window.start_date}..{self.window.end_date} "
            f"(category={self.summary.category}, targets={len(self.origin_targets)})"
        )
        return SyncStage.FETCH_TARGET

    async def _fetch_target(self) -> SyncStage:
        start, end = window_bounds(
            self.window.start_date,
            self.window.end_date,
            buffer_days=TARGET_BUFFER_DAYS,
        )
        try:
            self.target_records = await self.store.fetch_target_calls(start, end, self.category)
        except Exception as e:
            logger.error(f"Target fetch failed, aborting sync: {e}")
            raise SyncAbortedError(
                f"Target fetch failed: {e}",
                stage=SyncStage.FETCH_TARGET.value,
            ) from e

        self.summary.target_fetched = len(self.target_records)
        return SyncStage.FETCH_ORIGIN

    async def _fetch_origin(self) -> SyncStage:
        seen = set()
        first_call = True

        for day in iter_days(self.window.start_date, self.window.end_date):
            day_start, day_end = eastern_day_bounds(day)

            for target_id, target_name in self.origin_targets.items():
                if not first_call:
                    await self.sleep(self.settings.feed_call_delay_seconds)
                first_call = False

                try:
                    records = await fetch_all_origin_calls(
                        self.fetcher,
                        target_id,
                        day_start,
                        day_end,
                        page_size=self.settings.origin_page_size,
                        page_delay_seconds=self.settings.feed_page_delay_seconds,
                        sleep=self.sleep,
                    )
                except FeedError as e:
                    logger.warning(f"Skipping {day} for target {target_name} ({target_id}): {e}")
                    self.summary.fetch_errors += 1
                    continue

                for record in records:
                    if not record.external_id:
                        logger.warning(
                            f"Dropping origin call without id on {day} "
                            f"(target {target_id}, caller {record.caller_phone})"
                        )
                        self.summary.origin_missing_id += 1
                        continue
                    if record.external_id in seen:
                        continue
                    seen.add(record.external_id)
                    self.origin_records.append(record)

        self.summary.origin_fetched = len(self.origin_records)
        logger.info(
            f"Fetched {self.summary.origin_fetched} origin calls "
            f"({self.summary.fetch_errors} fetches skipped)"
        )
        return SyncStage.BUILD_INDEX

    async def _build_index(self) -> SyncStage:
        self.index = CandidateIndex.build(self.target_records)
        self.summary.target_without_identity = len(self.index.without_identity)
        return SyncStage.MATCH

    async def _match(self) -> SyncStage:
        self.result = match_calls(self.origin_records, self.index, self.rules)
        self.summary.matched = len(self.result.assignments)
        self.summary.unmatched = len(self.result.unmatched)
        self.summary.unmatched_by_reason = self.result.reason_counts()
        return SyncStage.PERSIST

    async def _persist(self) -> SyncStage:
        for record in self.origin_records:
            try:
                outcome = await self.store.upsert_origin_call(record)
            except Exception:
                logger.exception(f"Failed to mirror origin call {record.external_id}")
                self.summary.mirror_failed += 1
                continue

            if outcome == UpsertOutcome.INSERTED:
                self.summary.mirror_inserted += 1
            else:
                self.summary.mirror_updated += 1

        for assignment in self.result.assignments:
            target_id = assignment.target.external_id
            try:
                outcome = await self.store.merge_enrichment(
                    target_id,
                    assignment.origin.payout,
                    assignment.origin.revenue,
                    assignment.origin.external_id,
                )
            except Exception:
                logger.exception(f"Failed to merge enrichment onto target call {target_id}")
                self.summary.failed += 1
                continue

            if outcome == MergeOutcome.UPDATED:
                self.summary.enriched += 1
            elif outcome == MergeOutcome.SKIPPED_ALREADY_ENRICHED:
                self.summary.skipped_already_enriched += 1
            else:
                logger.warning(f"Target call {target_id} disappeared before enrichment")
                self.summary.failed += 1

        return SyncStage.SUMMARIZE

    async def _summarize(self) -> SyncStage:
        s = self.summary
        logger.info(
            f"Sync {s.start_date}..{s.end_date} ({s.category}) complete: "
            f"origin={s.origin_fetched} target={s.target_fetched} matched={s.matched} "
            f"enriched={s.enriched} skipped={s.skipped_already_enriched} "
            f"unmatched={s.unmatched} failed={s.failed} mirror_failed={s.mirror_failed}"
        )
        return SyncStage.DONE


# =============================================================================
# Entry Point
# =============================================================================

async def run_sync(
    window: SyncWindow,
    category: Optional[Category] = None,
    *,
    fetcher: Optional[OriginFeedFetcher] = None,
    store: Optional[CallStore] = None,
    settings: Optional[Settings] = None,
    sleep: SleepFunc = asyncio.sleep,
) -> SyncSummary:
    """
    Reconcile one window of Eastern civil dates.

    Args:
        window: Dates to reconcile.
        category: Restrict to one category; all when None.
        fetcher: Origin feed fetcher; an origin feed client built from
            settings when omitted.
        store: Call store; PostgresCallStore when omitted.
        settings: Application settings; get_settings() when omitted.
        sleep: Awaitable used for the fixed inter-call delays.

    Returns:
        SyncSummary with the counts of the run.

    Raises:
        ConfigurationError: Missing credentials or campaign targets, before any fetch.
        SyncAbortedError: The target fetch failed; nothing was written.
    """
    settings = settings or get_settings()
    store = store or PostgresCallStore()

    if fetcher is not None:
        run = ReconciliationRun(window, category, fetcher, store, settings, sleep=sleep)
        return await run.run()

    # imported here: the client module itself depends on this package
    from callsync.clients.ringba import RingbaCallLogClient

    async with RingbaCallLogClient.from_settings(settings) as client:
        run = ReconciliationRun(window, category, client, store, settings, sleep=sleep)
        return await run.run()
