"""
Bill synchronization service.

Pulls recently updated bills from the ProPublica feed and upserts them:
core fields are overwritten, timeline dates are first-write-wins, and a
one-time enrichment ("deep scrape") attaches committees, tags and
sponsors. Saves that change a watched column enqueue a delayed
notification.

Each record is its own transaction. A sync_runs row records the pass
and acts as an advisory lock against concurrent passes.

Responsibility: Orchestrate bill sync passes, single-bill refreshes and change notifications
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, UTC
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple, TYPE_CHECKING
import logging
import re

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..adapters.propublica_bills import ProPublicaBillsAdapter
from ..config import SyncConfig, settings
from ..db.models import BillModel, SyncRunModel
from ..db.repositories.bill_repository import BillRepository
from ..db.repositories.reference_repository import (
    CommitteeRepository,
    CongressRepository,
    MemberRepository,
    TagRepository,
)
from ..db.repositories.sync_run_repository import SyncRunRepository
from ..exceptions import BillNotFoundError, CivicTrackError, FeedUnavailableError, SyncError
from ..models.bill_record import BillRecord
from ..models.enums import NotificationKind
from .notification_dispatcher import NotificationDispatcher, DatabaseNotificationDispatcher, build_dispatcher

if TYPE_CHECKING:
    from ..db.session import Database

logger = logging.getLogger(__name__)

SYNC_KIND = "bills"
SUBJECT_TYPE = "Bill"

# Notification kind -> column whose change triggers it
NOTIFICATION_COLUMNS: Dict[NotificationKind, str] = {
    NotificationKind.BILL_HOUSE_CHANGE: "house_result",
    NotificationKind.BILL_SENATE_CHANGE: "senate_result",
    NotificationKind.BILL_ENACTED: "enacted_on",
    NotificationKind.BILL_VETOED: "vetoed_on",
}


class UpsertStatus(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"


@dataclass(slots=True)
class UpsertOutcome:
    """Result of upserting one feed record"""
    model: BillModel
    status: UpsertStatus
    changes: Set[str] = field(default_factory=set)
    enriched: bool = False
    notifications: List[NotificationKind] = field(default_factory=list)


def _empty_counters() -> Dict[str, int]:
    return {
        "records_fetched": 0,
        "records_relevant": 0,
        "bills_created": 0,
        "bills_updated": 0,
        "bills_unchanged": 0,
        "bills_enriched": 0,
        "records_failed": 0,
        "notifications_scheduled": 0,
    }


class BillSyncService:
    """
    Bill sync engine.

    Example:
        async with db.session() as session:
            service = BillSyncService(session, ProPublicaBillsAdapter())
            run = await service.sync_all()
            print(run.bills_created, run.bills_updated)
    """

    def __init__(
        self,
        session: AsyncSession,
        feed: ProPublicaBillsAdapter,
        dispatcher: Optional[NotificationDispatcher] = None,
        config: Optional[SyncConfig] = None,
    ):
        """
        Args:
            session: Session used for every read and write of the pass
            feed: Source of bill records
            dispatcher: Notification queue (defaults to the database outbox)
            config: Sync settings (defaults to settings.sync)
        """
        self.session = session
        self.feed = feed
        self.dispatcher = dispatcher or DatabaseNotificationDispatcher(session)
        self.config = config or settings.sync

        self.bills = BillRepository(session)
        self.congresses = CongressRepository(session)
        self.committees = CommitteeRepository(session)
        self.tags = TagRepository(session)
        self.members = MemberRepository(session)
        self.sync_runs = SyncRunRepository(session, stale_after_seconds=self.config.stale_after_seconds)

        # (kind, bill id) waiting for the current record to commit
        self._held: List[Tuple[str, int]] = []

    # MARK: - Full pass

    async def sync_all(self) -> SyncRunModel:
        """
        Run one full synchronization pass.

        Returns:
            The completed sync run with its counters

        Raises:
            SyncInProgressError: If another bills sync is still running
            FeedUnavailableError: If the feed returned no usable data
            BillValidationError: If a record fails validation (unless continue_on_error)
            SyncError: For any other failure
        """
        run = await self.sync_runs.start(SYNC_KIND)
        run_id = run.id
        await self.session.commit()

        start_time = datetime.now(UTC)
        counters = _empty_counters()

        try:
            response = await self.feed.fetch_recent()
            if response.failed:
                messages = "; ".join(e.message for e in response.errors) or response.status.value
                raise FeedUnavailableError(f"Bill feed unavailable: {messages}", sync_run_id=run_id)

            records = response.data or []
            relevant = [record for record in records if record.relevant]
            counters["records_fetched"] = len(records)
            counters["records_relevant"] = len(relevant)

            logger.info(f"Sync run {run_id}: {len(relevant)} of {len(records)} records are relevant")

            for record in relevant:
                try:
                    outcome = await self.upsert_one(record)
                    await self.commit()
                except Exception as e:
                    await self.rollback()
                    if not self.config.continue_on_error:
                        raise
                    counters["records_failed"] += 1
                    logger.warning(f"Skipping bill {record.number} (congress {record.congress}): {e}")
                    continue

                counters[f"bills_{outcome.status.value}"] += 1
                if outcome.enriched:
                    counters["bills_enriched"] += 1
                counters["notifications_scheduled"] += len(outcome.notifications)

        except (CivicTrackError, SQLAlchemyError) as e:
            await self._fail_run(run_id, e, start_time, counters)
            raise
        except Exception as e:
            await self._fail_run(run_id, e, start_time, counters)
            raise SyncError(f"Bill sync failed: {e}", sync_run_id=run_id) from e

        duration = (datetime.now(UTC) - start_time).total_seconds()
        await self.sync_runs.complete(run_id, duration, **counters)
        await self.session.commit()

        return await self.sync_runs.get(run_id)

    async def _fail_run(
        self,
        run_id: int,
        error: BaseException,
        start_time: datetime,
        counters: Dict[str, int]
    ) -> None:
        await self.rollback()
        duration = (datetime.now(UTC) - start_time).total_seconds()
        try:
            await self.sync_runs.fail(run_id, error, duration, **counters)
            await self.session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Could not record failure of sync run {run_id}: {e}")

    # MARK: - Single record

    async def upsert_one(self, record: BillRecord) -> UpsertOutcome:
        """
        Create or update the bill for one feed record.

        Does not commit; sync_all commits after each record. Notifications
        for a non-transactional dispatcher are held until commit().
        """
        congress = await self.congresses.find_or_create(record.congress)
        bill = await self.bills.find_or_initialize(congress, record.number.replace(".", ""))
        is_new = bill.id is None

        self._assign_core_fields(bill, record)
        self._assign_timeline_fields(bill, record)

        changes = await self.bills.save(bill)

        enriched = False
        if bill.deep_scraped_on is None:
            await self._deep_scrape(bill, record)
            enriched = True

        notifications = await self.dispatch_change_notifications(bill, changes)

        if is_new:
            status = UpsertStatus.CREATED
        elif changes:
            status = UpsertStatus.UPDATED
        else:
            status = UpsertStatus.UNCHANGED

        logger.debug(f"Bill {bill.number} {status.value} (changes: {sorted(changes)})")

        return UpsertOutcome(
            model=bill,
            status=status,
            changes=changes,
            enriched=enriched,
            notifications=notifications,
        )

    @staticmethod
    def _assign_core_fields(bill: BillModel, record: BillRecord) -> None:
        bill.number = record.number
        bill.title = record.title
        bill.summary = record.summary
        bill.full_text_url = record.full_text_url

    @staticmethod
    def _assign_timeline_fields(bill: BillModel, record: BillRecord) -> None:
        """First write wins: a date is only taken while the bill's is unset"""
        if bill.introduced_on is None:
            bill.introduced_on = record.introduced_on
        if bill.house_voted_on is None:
            bill.house_voted_on = record.house_voted_on
        if bill.senate_voted_on is None:
            bill.senate_voted_on = record.senate_voted_on
        if bill.enacted_on is None:
            bill.enacted_on = record.enacted_on
        if bill.vetoed_on is None:
            bill.vetoed_on = record.vetoed_on

    async def _deep_scrape(self, bill: BillModel, record: BillRecord) -> None:
        """One-time enrichment with committees, tags and sponsors"""
        for bioguide_id in record.committee_bioguide_ids:
            committee = await self.committees.find_by_bioguide_id(bioguide_id)
            if committee is None:
                logger.debug(f"Bill {bill.number}: unknown committee {bioguide_id}, skipping")
                continue
            self.bills.add_committee(bill, committee)

        for name in record.tag_names:
            tag = await self.tags.find_or_create(name)
            self.bills.add_tag(bill, tag)

        sponsor = await self.members.find_by_bioguide_id(record.sponsor_bioguide_id)
        self.bills.set_sponsor(bill, sponsor)

        if record.cosponsor_bioguide_ids:
            cosponsors = await self.members.find_all_by_bioguide_ids(record.cosponsor_bioguide_ids)
            self.bills.replace_cosponsors(bill, cosponsors)

        await self.session.flush()
        await self.bills.touch(bill, "deep_scraped_on")

        logger.info(
            f"Enriched bill {bill.number}: {len(bill.committees)} committees, "
            f"{len(bill.tags)} tags, sponsor={sponsor.bioguide_id if sponsor else None}"
        )

    # MARK: - Refresh

    async def refresh_one(self, bill: BillModel) -> BillModel:
        """
        Re-fetch one bill and overwrite every refreshable field.

        No first-write-wins guard and no enrichment. The bill's congress
        must be loaded. Does not commit; see commit().

        Raises:
            FeedUnavailableError: If the feed request fails
            BillValidationError: If the refreshed bill is invalid
        """
        slug = re.sub(r"[^0-9A-Za-z]", "", bill.number)
        record = await self.feed.fetch_one(slug, congress=bill.congress.number)

        self._assign_core_fields(bill, record)
        bill.introduced_on = record.introduced_on
        bill.house_voted_on = record.house_voted_on
        bill.senate_voted_on = record.senate_voted_on
        bill.enacted_on = record.enacted_on
        bill.vetoed_on = record.vetoed_on
        bill.house_result = record.house_result
        bill.senate_result = record.senate_result

        changes = await self.bills.save(bill)
        await self.dispatch_change_notifications(bill, changes)

        logger.info(f"Refreshed bill {bill.number} (changes: {sorted(changes)})")
        return bill

    # MARK: - Notifications

    async def dispatch_change_notifications(
        self,
        bill: BillModel,
        changes: Iterable[str]
    ) -> List[NotificationKind]:
        """
        Schedule one delayed notification per watched column in changes.

        A transactional dispatcher is called right away. Otherwise the
        notifications are held and only sent by commit(), so a rolled back
        bill never reaches the queue.

        Returns:
            The notification kinds scheduled, in a fixed order
        """
        changed = set(changes)
        scheduled: List[NotificationKind] = []

        for kind, column in NOTIFICATION_COLUMNS.items():
            if column not in changed:
                continue
            if self.dispatcher.transactional:
                await self._schedule(kind.value, bill.id)
            else:
                self._held.append((kind.value, bill.id))
            scheduled.append(kind)

        if scheduled:
            logger.info(f"Bill {bill.number}: scheduled {[k.value for k in scheduled]}")

        return scheduled

    async def _schedule(self, kind: str, bill_id: int) -> None:
        delay = timedelta(seconds=self.config.notification_delay_seconds)
        await self.dispatcher.schedule(kind, SUBJECT_TYPE, bill_id, delay)

    async def commit(self) -> None:
        """Commit the session, then send the notifications held for it"""
        await self.session.commit()

        held, self._held = self._held, []
        for kind, bill_id in held:
            await self._schedule(kind, bill_id)

    async def rollback(self) -> None:
        """Roll back the session and drop the notifications held for it"""
        await self.session.rollback()

        if self._held:
            logger.debug(f"Dropping {len(self._held)} notifications of a rolled back record")
        self._held = []


def sync_run_summary(run: SyncRunModel) -> Dict[str, Any]:
    """Plain-dict view of a sync run for CLI output and flow results"""
    return {
        "sync_run_id": run.id,
        "status": getattr(run.status, "value", run.status),
        "records_fetched": run.records_fetched,
        "records_relevant": run.records_relevant,
        "bills_created": run.bills_created,
        "bills_updated": run.bills_updated,
        "bills_unchanged": run.bills_unchanged,
        "bills_enriched": run.bills_enriched,
        "records_failed": run.records_failed,
        "notifications_scheduled": run.notifications_scheduled,
        "duration_seconds": run.duration_seconds,
    }


async def run_bill_sync(
    database: "Database",
    feed: Optional[ProPublicaBillsAdapter] = None
) -> Dict[str, Any]:
    """
    Run a full pass in a fresh session.

    Owns the feed and dispatcher it creates and closes them afterwards.
    """
    owns_feed = feed is None
    feed = feed or ProPublicaBillsAdapter()

    try:
        async with database.session() as session:
            dispatcher = build_dispatcher(session)
            try:
                run = await BillSyncService(session, feed, dispatcher).sync_all()
            finally:
                await dispatcher.close()
            return sync_run_summary(run)
    finally:
        if owns_feed:
            await feed.close()


async def run_bill_refresh(
    database: "Database",
    bill_id: int,
    feed: Optional[ProPublicaBillsAdapter] = None
) -> Dict[str, Any]:
    """
    Refresh one bill by id in a fresh session.

    Raises:
        BillNotFoundError: If no bill has this id
    """
    owns_feed = feed is None
    feed = feed or ProPublicaBillsAdapter()

    try:
        async with database.session() as session:
            bill = await BillRepository(session).get_by_id(bill_id)
            if bill is None:
                raise BillNotFoundError(f"Bill {bill_id} not found")

            dispatcher = build_dispatcher(session)
            try:
                service = BillSyncService(session, feed, dispatcher)
                await service.refresh_one(bill)
                await service.commit()
            finally:
                await dispatcher.close()

            return {
                "bill_id": bill.id,
                "number": bill.number,
                "title": bill.title,
                "house_result": bill.house_result,
                "senate_result": bill.senate_result,
                "enacted_on": bill.enacted_on.isoformat() if bill.enacted_on else None,
                "vetoed_on": bill.vetoed_on.isoformat() if bill.vetoed_on else None,
            }
    finally:
        if owns_feed:
            await feed.close()
