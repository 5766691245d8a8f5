"""
Exception hierarchy for CivicTrack.

Responsibility: Typed errors raised by the sync engine and repositories
"""

from typing import Optional


class CivicTrackError(Exception):
    """Base class for all CivicTrack errors"""


class SyncError(CivicTrackError):
    """Raised when a bill synchronization pass fails"""

    def __init__(self, message: str, sync_run_id: Optional[int] = None):
        super().__init__(message)
        self.sync_run_id = sync_run_id


class FeedUnavailableError(SyncError):
    """Raised when the upstream legislative feed cannot be reached or parsed"""


class SyncInProgressError(SyncError):
    """Raised when another sync run of the same kind is still running"""


class BillValidationError(CivicTrackError):
    """Raised when a bill fails validation before persistence"""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class BillNotFoundError(CivicTrackError):
    """Raised when a bill id does not exist"""
