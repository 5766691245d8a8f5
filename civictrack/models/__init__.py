"""
Domain models for CivicTrack.

Feed records, adapter envelopes and shared enumerations.
"""

from .adapter_models import AdapterError, AdapterMetrics, AdapterResponse, AdapterStatus
from .bill_record import BillRecord
from .enums import (
    Chamber,
    FeatureState,
    NotificationJobStatus,
    NotificationKind,
    SponsorshipType,
    StageStatus,
    SyncRunStatus,
)

__all__ = [
    "AdapterError",
    "AdapterMetrics",
    "AdapterResponse",
    "AdapterStatus",
    "BillRecord",
    "Chamber",
    "FeatureState",
    "NotificationJobStatus",
    "NotificationKind",
    "SponsorshipType",
    "StageStatus",
    "SyncRunStatus",
]
