"""Shared fixtures: in-memory database, feed and dispatcher fakes."""

from datetime import date, datetime, timedelta, UTC
from typing import List, Optional

import pytest
import pytest_asyncio

from civictrack.db.session import Database
from civictrack.models.adapter_models import AdapterMetrics, AdapterResponse, AdapterStatus
from civictrack.models.bill_record import BillRecord
from civictrack.services.notification_dispatcher import NotificationDispatcher


TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


def make_record(**overrides) -> BillRecord:
    """Relevant House bill record; keyword arguments override fields."""
    data = dict(
        congress=118,
        number="H.R.1234",
        bill_type="hr",
        title="Clean Water Infrastructure Act",
        summary="Funds water system upgrades.",
        full_text_url="https://www.congress.gov/118/bills/hr1234/BILLS-118hr1234ih.pdf",
        introduced_on=date(2023, 3, 1),
    )
    data.update(overrides)
    return BillRecord(**data)


class RecordingDispatcher(NotificationDispatcher):
    """Keeps scheduled notifications in memory.

    transactional=False makes it behave like the Redis queue, which only
    hears about a bill once its record has committed.
    """

    def __init__(self, transactional: bool = True):
        self.transactional = transactional
        self.scheduled = []

    async def schedule(self, kind: str, subject_type: str, subject_id: int, delay: timedelta) -> None:
        self.scheduled.append((kind, subject_type, subject_id, delay))

    @property
    def kinds(self) -> List[str]:
        return [kind for kind, _, _, _ in self.scheduled]


class FakeFeed:
    """Stands in for ProPublicaBillsAdapter."""

    def __init__(
        self,
        records: Optional[List[BillRecord]] = None,
        single: Optional[BillRecord] = None,
        status: AdapterStatus = AdapterStatus.SUCCESS,
    ):
        self.records = records or []
        self.single = single
        self.status = status
        self.requested = []
        self.closed = False

    async def fetch_recent(self) -> AdapterResponse[BillRecord]:
        failed = self.status in (AdapterStatus.FAILURE, AdapterStatus.SOURCE_UNAVAILABLE)
        return AdapterResponse[BillRecord](
            status=self.status,
            data=None if failed else self.records,
            errors=[],
            metrics=AdapterMetrics(
                records_attempted=len(self.records),
                records_succeeded=0 if failed else len(self.records),
                records_failed=len(self.records) if failed else 0,
                duration_seconds=0.0,
            ),
            source="fake",
            fetch_timestamp=datetime.now(UTC),
        )

    async def fetch_one(self, slug: str, congress: Optional[int] = None) -> BillRecord:
        self.requested.append((slug, congress))
        return self.single

    async def close(self) -> None:
        self.closed = True


@pytest_asyncio.fixture
async def database():
    """Fresh in-memory database with all tables."""
    database = Database(TEST_DATABASE_URL)
    await database.initialize()
    await database.create_tables()

    yield database

    await database.close()


@pytest_asyncio.fixture
async def session(database: Database):
    async with database.session() as session:
        yield session


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()
