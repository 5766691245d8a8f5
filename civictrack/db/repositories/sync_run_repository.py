"""
Repository for sync run records.

A sync run row replaces a process-wide "sync started / completed" flag:
it records each pass, its counters and outcome, and a RUNNING row acts
as an advisory lock for its kind.

Responsibility: Start, finish and query synchronization runs
"""

from datetime import datetime, timedelta, UTC
from typing import Any, List, Optional
from sqlalchemy import select, update, and_
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from ..models import SyncRunModel
from ...exceptions import SyncInProgressError
from ...models.enums import SyncRunStatus

logger = logging.getLogger(__name__)


class SyncRunRepository:
    """Repository for sync run operations."""

    def __init__(self, session: AsyncSession, stale_after_seconds: int = 3600):
        """
        Args:
            session: Active database session
            stale_after_seconds: Age after which a RUNNING row stops blocking new runs
        """
        self.session = session
        self.stale_after_seconds = stale_after_seconds

    async def get(self, run_id: int) -> Optional[SyncRunModel]:
        result = await self.session.execute(
            select(SyncRunModel)
            .where(SyncRunModel.id == run_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def find_active(self, kind: str) -> Optional[SyncRunModel]:
        """Most recent non-stale RUNNING run of this kind"""
        cutoff = datetime.now(UTC) - timedelta(seconds=self.stale_after_seconds)
        result = await self.session.execute(
            select(SyncRunModel)
            .where(
                and_(
                    SyncRunModel.kind == kind,
                    SyncRunModel.status == SyncRunStatus.RUNNING,
                    SyncRunModel.started_at >= cutoff
                )
            )
            .order_by(SyncRunModel.started_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def start(self, kind: str) -> SyncRunModel:
        """
        Record the start of a run.

        Raises:
            SyncInProgressError: If a non-stale run of the same kind is RUNNING
        """
        active = await self.find_active(kind)
        if active is not None:
            raise SyncInProgressError(
                f"A {kind} sync is already running (run {active.id})",
                sync_run_id=active.id
            )

        run = SyncRunModel(kind=kind, status=SyncRunStatus.RUNNING, started_at=datetime.now(UTC))
        self.session.add(run)
        await self.session.flush()

        logger.info(f"Sync run {run.id} ({kind}) started")
        return run

    async def complete(self, run_id: int, duration_seconds: float, **counters: Any) -> None:
        """Mark a run completed and store its counters."""
        await self._finish(run_id, SyncRunStatus.COMPLETED, duration_seconds, None, counters)
        logger.info(f"Sync run {run_id} completed in {duration_seconds:.2f}s: {counters}")

    async def fail(self, run_id: int, error: BaseException, duration_seconds: float, **counters: Any) -> None:
        """Mark a run failed with the error message."""
        message = f"{type(error).__name__}: {error}"
        await self._finish(run_id, SyncRunStatus.FAILED, duration_seconds, message, counters)
        logger.error(f"Sync run {run_id} failed after {duration_seconds:.2f}s: {message}")

    async def _finish(
        self,
        run_id: int,
        status: SyncRunStatus,
        duration_seconds: float,
        error_message: Optional[str],
        counters: dict
    ) -> None:
        # UPDATE statement so it works even after the session rolled back
        await self.session.execute(
            update(SyncRunModel)
            .where(SyncRunModel.id == run_id)
            .values(
                status=status,
                completed_at=datetime.now(UTC),
                duration_seconds=duration_seconds,
                error_message=error_message,
                **counters
            )
        )

    async def recent(self, kind: Optional[str] = None, limit: int = 20) -> List[SyncRunModel]:
        query = select(SyncRunModel)
        if kind:
            query = query.where(SyncRunModel.kind == kind)
        result = await self.session.execute(query.order_by(SyncRunModel.id.desc()).limit(limit))
        return list(result.scalars().all())
