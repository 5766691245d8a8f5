"""
Result envelope shared by the feed adapters.

A bulk fetch reports a clean, partial or failed outcome through
AdapterResponse; the sync engine inspects ``status`` instead of
catching transport errors.
"""

from datetime import datetime
from enum import Enum
from typing import Generic, TypeVar, Optional, List, Dict, Any

from pydantic import BaseModel, Field


class AdapterStatus(str, Enum):
    SUCCESS = "success"
    PARTIAL_SUCCESS = "partial_success"  # at least one record failed to normalize
    FAILURE = "failure"
    SOURCE_UNAVAILABLE = "source_unavailable"  # network or 5xx, worth retrying later


class AdapterError(BaseModel):
    """One failure observed while fetching or normalizing."""
    timestamp: datetime
    error_type: str = Field(description="Exception class name")
    message: str
    context: Dict[str, Any] = Field(
        default_factory=dict,
        description="Where it happened, e.g. the request path or bill number"
    )
    retryable: bool = False


class AdapterMetrics(BaseModel):
    records_attempted: int = Field(ge=0)
    records_succeeded: int = Field(ge=0)
    records_failed: int = Field(ge=0)
    duration_seconds: float = Field(ge=0.0)


T = TypeVar('T')


class AdapterResponse(BaseModel, Generic[T]):
    """
    Outcome of one adapter call.

    ``data`` is None only when the whole call failed; a partial result
    carries both records and errors.
    """
    status: AdapterStatus
    data: Optional[List[T]] = None
    errors: List[AdapterError] = Field(default_factory=list)
    metrics: AdapterMetrics
    source: str = Field(description="Adapter that produced the response")
    fetch_timestamp: datetime = Field(description="Completion time (UTC)")

    @property
    def failed(self) -> bool:
        """True when no usable data came back"""
        return self.status in (AdapterStatus.FAILURE, AdapterStatus.SOURCE_UNAVAILABLE)
