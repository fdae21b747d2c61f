"""
Enumeration definitions for the Call Sync service.

All enums inherit from both `str` and `Enum` so they serialize as plain
strings in Pydantic models, API responses and database parameters.
"""

from enum import Enum


class Category(str, Enum):
    """
    Campaign category a call belongs to.

    - STATIC: Static-line campaigns (origin target names containing "static")
    - API: Everything else; also the fallback for unknown origin targets
    """
    STATIC = "STATIC"
    API = "API"


class CivilZone(str, Enum):
    """
    Zone used to read a timestamp that carries no UTC offset.

    - EASTERN: US Eastern civil time (target feed, stored mirror timestamps)
    - UTC: Coordinated Universal Time (origin feed call logs)
    """
    EASTERN = "eastern"
    UTC = "utc"


class UnmatchedReason(str, Enum):
    """
    Why an origin call did not receive a match.

    - no_identity: Missing normalized caller phone or category
    - parse_failure: Call time could not be parsed
    - no_candidate: No unconsumed target call shares category and phone
    - day_window_exceeded: Every candidate is more than one Eastern day away
    - time_window_exceeded: Candidates exist on an allowed day but are too far
      apart in minutes (120 same day, 1440 adjacent day)
    """
    NO_IDENTITY = "no_identity"
    PARSE_FAILURE = "parse_failure"
    NO_CANDIDATE = "no_candidate"
    DAY_WINDOW_EXCEEDED = "day_window_exceeded"
    TIME_WINDOW_EXCEEDED = "time_window_exceeded"


class SyncStage(str, Enum):
    """
    Stages of one reconciliation run, in execution order.

    A run only ever moves forward: init -> fetch_target -> fetch_origin ->
    build_index -> match -> persist -> summarize -> done.
    """
    INIT = "init"
    FETCH_TARGET = "fetch_target"
    FETCH_ORIGIN = "fetch_origin"
    BUILD_INDEX = "build_index"
    MATCH = "match"
    PERSIST = "persist"
    SUMMARIZE = "summarize"
    DONE = "done"


class UpsertOutcome(str, Enum):
    """Result of mirroring one origin call into origin_calls."""
    INSERTED = "inserted"
    UPDATED = "updated"


class MergeOutcome(str, Enum):
    """
    Result of merging enrichment onto one target call.

    - updated: Enrichment written (or link id backfilled on an empty row)
    - skipped_already_enriched: Row was already linked or carried non-zero
      enrichment; only a missing link id may have been filled
    - not_found: No target row with that id
    """
    UPDATED = "updated"
    SKIPPED_ALREADY_ENRICHED = "skipped_already_enriched"
    NOT_FOUND = "not_found"


class ServiceType(str, Enum):
    """Service kinds the sequential scheduler knows how to run."""
    ORIGIN_SYNC = "origin-sync"
