"""
Package initialization file for Call Sync models.

Re-exports all Pydantic schemas and enumerations so other modules can import
them from callsync.models directly.

Usage:
    from callsync.models import Category, CallRecord, SyncSummary
"""

# =============================================================================
# Enums
# =============================================================================

from callsync.models.enums import (
    Category,
    CivilZone,
    UnmatchedReason,
    SyncStage,
    UpsertOutcome,
    MergeOutcome,
    ServiceType,
)

# =============================================================================
# Schemas
# =============================================================================

from callsync.models.schemas import (
    CallRecord,
    SyncWindow,
    SyncSummary,
    OriginPage,
    SyncRequest,
    ServiceConfig,
    ScheduleConfig,
    SchedulerConfig,
    ServiceExecutionResult,
    ScheduleExecutionResult,
)

__all__ = [
    # Enums
    'Category',
    'CivilZone',
    'UnmatchedReason',
    'SyncStage',
    'UpsertOutcome',
    'MergeOutcome',
    'ServiceType',
    # Schemas
    'CallRecord',
    'SyncWindow',
    'SyncSummary',
    'OriginPage',
    'SyncRequest',
    'ServiceConfig',
    'ScheduleConfig',
    'SchedulerConfig',
    'ServiceExecutionResult',
    'ScheduleExecutionResult',
]
