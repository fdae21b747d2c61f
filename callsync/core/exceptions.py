"""
Exception hierarchy for the Call Sync service.

Only operational problems are exceptions. Data-level outcomes (a call with no
counterpart, an unparseable timestamp) are reported through match results and
summary counts, never raised.

- CallSyncError: base class for everything raised by this package
- ConfigurationError: missing credentials or collaborators; fatal, raised
  before any fetch begins
- FeedError: an origin feed request failed (HTTP status or transport error)
- SyncAbortedError: a stage that must succeed before any write failed
"""

from typing import Optional


class CallSyncError(Exception):
    """Base class for Call Sync errors."""


class ConfigurationError(CallSyncError):
    """Required configuration is missing or invalid."""


class FeedError(CallSyncError):
    """
    An origin feed request failed.

    Attributes:
        status_code: HTTP status returned by the feed, or None for transport errors.
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class SyncAbortedError(CallSyncError):
    """
    A sync run was aborted before reaching the persist stage.

    Attributes:
        stage: Name of the stage that failed.
    """

    def __init__(self, message: str, stage: str):
        super().__init__(message)
        self.stage = stage
