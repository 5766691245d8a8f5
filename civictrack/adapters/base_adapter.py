"""
Common plumbing for upstream bill feeds.

A feed adapter turns remote payloads into BillRecords and reports the
outcome as an AdapterResponse, so the sync engine never has to catch
transport errors from a bulk fetch.
"""

from abc import ABC, abstractmethod
from datetime import datetime, UTC
from typing import Generic, TypeVar, Any, Optional
import logging

from ..models.adapter_models import (
    AdapterResponse,
    AdapterStatus,
    AdapterError,
    AdapterMetrics,
)
from ..utils.throttle import RequestThrottle


T = TypeVar('T')


class BaseAdapter(ABC, Generic[T]):
    """
    Shared base for feed adapters.

    Subclasses implement fetch() and normalize(). fetch() reports failures
    through the response envelope instead of raising, and every outbound
    request waits on self.throttle first.
    """

    def __init__(
        self,
        source_name: str,
        rate_limit_per_second: float = 0.5,
        max_retries: int = 3,
        timeout_seconds: int = 30
    ):
        self.source_name = source_name
        self.max_retries = max_retries
        self.timeout_seconds = timeout_seconds
        self.throttle = RequestThrottle(rate_limit_per_second)
        self.logger = logging.getLogger(f"adapter.{source_name}")

    @abstractmethod
    async def fetch(self, **kwargs: Any) -> AdapterResponse[T]:
        """Retrieve and normalize a batch of records."""

    @abstractmethod
    def normalize(self, raw_data: Any, **kwargs: Any) -> T:
        """
        Map one raw payload onto the domain model.

        Raises:
            ValueError: when required fields are missing; fetch() records
                the failure and keeps the rest of the batch
        """

    def _respond(
        self,
        status: AdapterStatus,
        data: Optional[list[T]],
        errors: list[AdapterError],
        start_time: datetime,
    ) -> AdapterResponse[T]:
        finished = datetime.now(UTC)
        succeeded = len(data) if data else 0
        failed = len(errors) if data is not None else 0

        return AdapterResponse(
            status=status,
            data=data,
            errors=errors,
            metrics=AdapterMetrics(
                records_attempted=succeeded + failed,
                records_succeeded=succeeded,
                records_failed=failed,
                duration_seconds=(finished - start_time).total_seconds(),
            ),
            source=self.source_name,
            fetch_timestamp=finished,
        )

    def _build_success_response(
        self,
        data: list[T],
        errors: list[AdapterError],
        start_time: datetime,
    ) -> AdapterResponse[T]:
        """Envelope for a completed fetch; per-record errors make it partial."""
        status = AdapterStatus.PARTIAL_SUCCESS if errors else AdapterStatus.SUCCESS
        return self._respond(status, data, errors, start_time)

    def _build_failure_response(
        self,
        error: Exception,
        start_time: datetime,
        retryable: bool = False
    ) -> AdapterResponse[T]:
        """Envelope for a fetch that produced nothing at all."""
        status = AdapterStatus.SOURCE_UNAVAILABLE if retryable else AdapterStatus.FAILURE
        failure = AdapterError(
            timestamp=datetime.now(UTC),
            error_type=type(error).__name__,
            message=str(error),
            context={"adapter": self.source_name},
            retryable=retryable,
        )
        return self._respond(status, None, [failure], start_time)
