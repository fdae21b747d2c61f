"""
Call Sync Services Module

Business logic of the reconciliation engine, leaf first:

- timezone: Eastern civil calendar, timestamp parsing, fetch windows
- normalization: canonical caller phone and category, feed rows -> CallRecord
- matching: candidate index and greedy best-match assignment
- persistence: idempotent PostgreSQL reads and writes
- reconciliation: staged sync run and the run_sync entry point

Services receive their collaborators (fetcher, store, settings) as arguments,
so they can be exercised with in-memory fakes.
"""

# =============================================================================
# Timezone Exports
# =============================================================================

from callsync.services.timezone import (
    parse_timestamp,
    eastern_offset,
    utc_to_eastern,
    eastern_date,
    eastern_date_str,
    eastern_day_bounds,
    window_bounds,
    format_eastern,
    format_utc_iso,
    minutes_between,
    days_between,
    iter_days,
)

# =============================================================================
# Normalization Exports
# =============================================================================

from callsync.services.normalization import (
    normalize_phone,
    category_from_target,
    parse_category,
    parse_amount,
    origin_record_from_feed,
    target_record_from_row,
)

# =============================================================================
# Matching Exports
# =============================================================================

from callsync.services.matching import (
    MatchingRules,
    CandidateIndex,
    CandidateScore,
    MatchAssignment,
    Matched,
    Unmatched,
    MatchOutcome,
    MatchResult,
    evaluate_candidate,
    match_one,
    match_calls,
)

# =============================================================================
# Persistence Exports
# =============================================================================

from callsync.services.persistence import PostgresCallStore

# =============================================================================
# Reconciliation Exports
# =============================================================================

from callsync.services.reconciliation import (
    OriginFeedFetcher,
    CallStore,
    ReconciliationRun,
    fetch_all_origin_calls,
    run_sync,
)

__all__ = [
    # Timezone
    'parse_timestamp',
    'eastern_offset',
    'utc_to_eastern',
    'eastern_date',
    'eastern_date_str',
    'eastern_day_bounds',
    'window_bounds',
    'format_eastern',
    'format_utc_iso',
    'minutes_between',
    'days_between',
    'iter_days',
    # Normalization
    'normalize_phone',
    'category_from_target',
    'parse_category',
    'parse_amount',
    'origin_record_from_feed',
    'target_record_from_row',
    # Matching
    'MatchingRules',
    'CandidateIndex',
    'CandidateScore',
    'MatchAssignment',
    'Matched',
    'Unmatched',
    'MatchOutcome',
    'MatchResult',
    'evaluate_candidate',
    'match_one',
    'match_calls',
    # Persistence
    'PostgresCallStore',
    # Reconciliation
    'OriginFeedFetcher',
    'CallStore',
    'ReconciliationRun',
    'fetch_all_origin_calls',
    'run_sync',
]
