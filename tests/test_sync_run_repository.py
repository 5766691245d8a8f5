from datetime import datetime, timedelta, UTC

import pytest

from civictrack.db.models import SyncRunModel
from civictrack.db.repositories import SyncRunRepository
from civictrack.exceptions import SyncInProgressError
from civictrack.models.enums import SyncRunStatus


@pytest.mark.asyncio
async def test_start_and_complete(session):
    repo = SyncRunRepository(session)

    run = await repo.start("bills")
    await repo.complete(run.id, 1.5, records_fetched=10, bills_created=4)
    stored = await repo.get(run.id)

    assert stored.status == SyncRunStatus.COMPLETED
    assert stored.records_fetched == 10
    assert stored.bills_created == 4
    assert stored.duration_seconds == 1.5
    assert stored.error_message is None


@pytest.mark.asyncio
async def test_running_sync_blocks_same_kind_only(session):
    repo = SyncRunRepository(session)
    first = await repo.start("bills")

    with pytest.raises(SyncInProgressError) as exc_info:
        await repo.start("bills")

    assert exc_info.value.sync_run_id == first.id
    assert (await repo.start("members")).kind == "members"


@pytest.mark.asyncio
async def test_failed_run_releases_the_lock(session):
    repo = SyncRunRepository(session)
    run = await repo.start("bills")

    await repo.fail(run.id, RuntimeError("boom"), 0.2, records_failed=1)
    stored = await repo.get(run.id)

    assert stored.status == SyncRunStatus.FAILED
    assert stored.error_message == "RuntimeError: boom"
    assert stored.records_failed == 1
    assert (await repo.start("bills")).id != run.id


@pytest.mark.asyncio
async def test_stale_running_sync_is_ignored(session):
    session.add(SyncRunModel(
        kind="bills",
        status=SyncRunStatus.RUNNING,
        started_at=datetime.now(UTC) - timedelta(minutes=10),
    ))
    await session.flush()

    assert await SyncRunRepository(session, stale_after_seconds=60).find_active("bills") is None
    assert await SyncRunRepository(session, stale_after_seconds=3600).find_active("bills") is not None


@pytest.mark.asyncio
async def test_recent_lists_newest_first(session):
    repo = SyncRunRepository(session)
    first = await repo.start("bills")
    await repo.complete(first.id, 0.1)
    second = await repo.start("bills")

    assert [run.id for run in await repo.recent("bills")] == [second.id, first.id]
