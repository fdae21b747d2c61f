"""
Pydantic schemas for the Call Sync service.

Models:
- CallRecord: normalized call from either feed
- SyncWindow: requested civil date range (US Eastern)
- SyncSummary: flat counts produced by one reconciliation run
- OriginPage: one page of the origin call-log feed
- SyncRequest: body of POST /sync
- ServiceConfig / ScheduleConfig / SchedulerConfig: sequential scheduler configuration
- ServiceExecutionResult / ScheduleExecutionResult: scheduler run results
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from callsync.models.enums import Category, ServiceType, UnmatchedReason


# =============================================================================
# Call Records
# =============================================================================

class CallRecord(BaseModel):
    """
    A call from either feed after normalization.

    Origin calls carry the feed's inbound call id as external_id and the
    descriptive campaign fields; target calls carry their row id as
    external_id and the enrichment columns.
    """
    external_id: str = Field(
        default='',
        description="Id unique within the owning feed (origin inbound call id or target row id)"
    )
    caller_phone: Optional[str] = Field(
        default=None,
        description="Caller number as received"
    )
    caller_phone_normalized: Optional[str] = Field(
        default=None,
        description="Canonical +E.164-like caller number; None means no identity"
    )
    category: Optional[Category] = Field(
        default=None,
        description="Campaign category"
    )
    timestamp_raw: str = Field(
        default='',
        description="Call time exactly as received, kept for storage"
    )
    timestamp_instant: Optional[datetime] = Field(
        default=None,
        description="Absolute call time (UTC-aware); None when unparseable"
    )
    payout: Optional[Decimal] = Field(default=None, description="Payout amount")
    revenue: Optional[Decimal] = Field(default=None, description="Revenue amount")
    duration_seconds: Optional[int] = Field(default=None, ge=0, description="Call duration")

    # Target-only enrichment columns
    enriched_payout: Optional[Decimal] = Field(default=None)
    enriched_revenue: Optional[Decimal] = Field(default=None)
    link_id: Optional[str] = Field(
        default=None,
        description="External id of the origin call linked to this target call"
    )

    # Origin-only descriptive fields
    target_id: Optional[str] = Field(default=None, description="Origin campaign target id")
    target_name: Optional[str] = Field(default=None)
    campaign_name: Optional[str] = Field(default=None)
    publisher_name: Optional[str] = Field(default=None)
    inbound_phone: Optional[str] = Field(default=None, description="Number the caller dialed")

    @property
    def has_identity(self) -> bool:
        """True when the call can take part in matching."""
        return bool(self.caller_phone_normalized) and self.category is not None

    @property
    def has_enrichment(self) -> bool:
        """
        True when a previous merge already reached this row.

        A link id marks the row as merged even when the amounts written were
        zero; otherwise any non-zero amount counts.
        """
        return bool(self.link_id) or bool(self.enriched_payout) or bool(self.enriched_revenue)


# =============================================================================
# Sync Window and Summary
# =============================================================================

class SyncWindow(BaseModel):
    """Inclusive civil date range, read in US Eastern."""
    model_config = ConfigDict(frozen=True)

    start_date: date
    end_date: date

    @model_validator(mode='after')
    def _check_order(self) -> 'SyncWindow':
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self

    @property
    def days(self) -> int:
        return (self.end_date - self.start_date).days + 1


def _empty_reason_counts() -> Dict[str, int]:
    return {reason.value: 0 for reason in UnmatchedReason}


class SyncSummary(BaseModel):
    """
    Flat counts of one reconciliation run.

    `unmatched` is data-level (expected); `failed` and `mirror_failed` are
    operational write failures (rare, actionable). They are never merged.
    """
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "start_date": "2026-02-03",
                "end_date": "2026-02-03",
                "category": "all",
                "origin_fetched": 42,
                "mirror_inserted": 40,
                "mirror_updated": 2,
                "mirror_failed": 0,
                "target_fetched": 57,
                "target_without_identity": 1,
                "matched": 38,
                "enriched": 35,
                "skipped_already_enriched": 3,
                "unmatched": 4,
                "unmatched_by_reason": {
                    "no_identity": 1,
                    "parse_failure": 0,
                    "no_candidate": 2,
                    "day_window_exceeded": 0,
                    "time_window_exceeded": 1,
                },
                "failed": 0,
                "fetch_errors": 0,
                "origin_missing_id": 0,
            }
        }
    )

    start_date: date
    end_date: date
    category: str = Field(default='all', description="Category filter, or 'all'")

    origin_fetched: int = Field(default=0, ge=0, description="Unique origin calls fetched")
    mirror_inserted: int = Field(default=0, ge=0)
    mirror_updated: int = Field(default=0, ge=0)
    mirror_failed: int = Field(default=0, ge=0, description="Origin mirror writes that raised")

    target_fetched: int = Field(default=0, ge=0, description="Target calls in the buffered window")
    target_without_identity: int = Field(default=0, ge=0)

    matched: int = Field(default=0, ge=0, description="Match assignments produced")
    enriched: int = Field(default=0, ge=0, description="Target rows that received enrichment")
    skipped_already_enriched: int = Field(default=0, ge=0)

    unmatched: int = Field(default=0, ge=0)
    unmatched_by_reason: Dict[str, int] = Field(default_factory=_empty_reason_counts)

    failed: int = Field(default=0, ge=0, description="Enrichment merges that raised or found no row")
    fetch_errors: int = Field(default=0, ge=0, description="Origin day/target fetches skipped")
    origin_missing_id: int = Field(default=0, ge=0, description="Origin calls dropped for lack of id")


class OriginPage(BaseModel):
    """One page of origin call-log records plus the feed's total for the query."""
    records: List[CallRecord] = Field(default_factory=list)
    total_count: Optional[int] = Field(
        default=None, ge=0, description="None when the feed did not report a total"
    )


class SyncRequest(BaseModel):
    """Body of POST /sync."""
    start_date: date
    end_date: Optional[date] = Field(
        default=None,
        description="Defaults to start_date"
    )
    category: Optional[Category] = Field(
        default=None,
        description="Restrict to one category; all categories when omitted"
    )


# =============================================================================
# Scheduler Configuration
# =============================================================================

class ServiceConfig(BaseModel):
    """One service run inside a schedule."""
    model_config = ConfigDict(frozen=True)

    name: str
    type: ServiceType = ServiceType.ORIGIN_SYNC
    enabled: bool = True
    category: Optional[Category] = Field(
        default=None,
        description="None means all categories"
    )
    description: str = ''
    days_back: Optional[int] = Field(
        default=None,
        ge=0,
        description="Sync from today minus days_back through today"
    )
    current_day_only: bool = False


class ScheduleConfig(BaseModel):
    """A named group of services run one after another."""
    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ''
    cron: str = Field(..., description="Cron expression, interpreted by the external trigger")
    time: str = Field(..., description="Human-readable trigger time, e.g. '21:00'")
    timezone: str = 'Asia/Kolkata'
    enabled: bool = True
    services: List[ServiceConfig] = Field(default_factory=list)


class SchedulerConfig(BaseModel):
    """All schedules; an explicit value owned by the caller."""
    model_config = ConfigDict(frozen=True)

    timezone: str = 'Asia/Kolkata'
    schedules: List[ScheduleConfig] = Field(default_factory=list)


class ServiceExecutionResult(BaseModel):
    """Outcome of one service inside a schedule execution."""
    service_name: str
    success: bool
    duration_seconds: float = Field(default=0.0, ge=0)
    summary: Optional[SyncSummary] = None
    error: Optional[str] = None


class ScheduleExecutionResult(BaseModel):
    """Outcome of running one schedule."""
    schedule_name: str
    started_at: datetime
    total_duration_seconds: float = Field(default=0.0, ge=0)
    service_results: List[ServiceExecutionResult] = Field(default_factory=list)

    @property
    def success_count(self) -> int:
        return sum(1 for r in self.service_results if r.success)

    @property
    def failure_count(self) -> int:
        return sum(1 for r in self.service_results if not r.success)

    @property
    def success(self) -> bool:
        return self.failure_count == 0

    def to_log_dict(self) -> Dict[str, Any]:
        return {
            'schedule': self.schedule_name,
            'succeeded': self.success_count,
            'failed': self.failure_count,
            'duration_seconds': round(self.total_duration_seconds, 2),
        }
