"""Tests for the bill sync engine."""

from datetime import date, datetime, timedelta, UTC

import pytest
from sqlalchemy import func, select

from civictrack.config import SyncConfig
from civictrack.db.models import (
    BillModel,
    CommitteeModel,
    CongressModel,
    MemberModel,
    NotificationJobModel,
    SponsorshipModel,
    SyncRunModel,
)
from civictrack.db.repositories import SyncRunRepository
from civictrack.exceptions import (
    BillNotFoundError,
    BillValidationError,
    FeedUnavailableError,
    SyncError,
    SyncInProgressError,
)
from civictrack.models.adapter_models import AdapterStatus
from civictrack.models.enums import NotificationKind, SponsorshipType, SyncRunStatus
from civictrack.services.bill_sync_service import (
    BillSyncService,
    UpsertStatus,
    run_bill_refresh,
    run_bill_sync,
)
from civictrack.services.notification_dispatcher import DatabaseNotificationDispatcher

from conftest import FakeFeed, RecordingDispatcher, make_record


def _service(session, dispatcher, feed=None, **config) -> BillSyncService:
    return BillSyncService(session, feed or FakeFeed(), dispatcher, config=SyncConfig(**config))


async def _seed_members(session, *bioguide_ids):
    members = [MemberModel(bioguide_id=bioguide_id, name=bioguide_id, party="D") for bioguide_id in bioguide_ids]
    session.add_all(members)
    await session.flush()
    return members


async def _bill_count(session) -> int:
    return (await session.execute(select(func.count(BillModel.id)))).scalar_one()


# MARK: - upsert_one


@pytest.mark.asyncio
async def test_upsert_creates_bill_with_sanitized_number(session, dispatcher):
    service = _service(session, dispatcher)

    outcome = await service.upsert_one(make_record())

    assert outcome.status == UpsertStatus.CREATED
    assert outcome.model.id is not None
    assert outcome.model.number == "HR1234"
    assert outcome.model.congress.number == 118
    assert outcome.model.title == "Clean Water Infrastructure Act"
    assert outcome.enriched is True
    assert outcome.model.deep_scraped_on is not None


@pytest.mark.asyncio
async def test_upsert_matches_existing_bill_case_insensitively(session, dispatcher):
    service = _service(session, dispatcher)

    first = await service.upsert_one(make_record(number="H.R.1234"))
    second = await service.upsert_one(make_record(number="h.r.1234", title="Renamed"))

    assert second.model.id == first.model.id
    assert second.status == UpsertStatus.UPDATED
    assert second.model.title == "Renamed"
    assert await _bill_count(session) == 1


@pytest.mark.asyncio
async def test_timeline_fields_are_first_write_wins(session, dispatcher):
    service = _service(session, dispatcher)

    await service.upsert_one(make_record(introduced_on=date(2023, 3, 1)))
    outcome = await service.upsert_one(
        make_record(introduced_on=date(2023, 4, 15), house_voted_on=date(2023, 6, 1))
    )

    assert outcome.model.introduced_on == date(2023, 3, 1)
    assert outcome.model.house_voted_on == date(2023, 6, 1)


@pytest.mark.asyncio
async def test_core_fields_are_overwritten(session, dispatcher):
    service = _service(session, dispatcher)

    await service.upsert_one(make_record(summary="Old summary"))
    outcome = await service.upsert_one(make_record(summary=None, full_text_url="https://example.com/new.pdf"))

    assert outcome.model.summary is None
    assert outcome.model.full_text_url == "https://example.com/new.pdf"
    assert outcome.changes == {"summary", "full_text_url"}


@pytest.mark.asyncio
async def test_upsert_is_idempotent(session, dispatcher):
    service = _service(session, dispatcher)
    record = make_record(committee_bioguide_ids=["HSAG"], tag_names=["Environment"])

    first = await service.upsert_one(record)
    scraped_on = first.model.deep_scraped_on
    second = await service.upsert_one(record)

    assert second.status == UpsertStatus.UNCHANGED
    assert second.changes == set()
    assert second.enriched is False
    assert second.model.deep_scraped_on == scraped_on
    assert [tag.name for tag in second.model.tags] == ["Environment"]


@pytest.mark.asyncio
async def test_blank_number_fails_validation(session, dispatcher):
    service = _service(session, dispatcher)

    with pytest.raises(BillValidationError) as exc_info:
        await service.upsert_one(make_record(number=""))

    assert exc_info.value.field == "number"


# MARK: - Enrichment


@pytest.mark.asyncio
async def test_unknown_committees_are_skipped(session, dispatcher):
    session.add(CommitteeModel(bioguide_id="C1", name="Agriculture"))
    await session.flush()
    service = _service(session, dispatcher)

    outcome = await service.upsert_one(make_record(committee_bioguide_ids=["C1", "C2"]))

    assert [committee.bioguide_id for committee in outcome.model.committees] == ["C1"]


@pytest.mark.asyncio
async def test_enrichment_sets_tags_sponsor_and_cosponsors(session, dispatcher):
    await _seed_members(session, "S000001", "A000001", "B000001")
    service = _service(session, dispatcher)

    outcome = await service.upsert_one(
        make_record(
            tag_names=["Health"],
            sponsor_bioguide_id="S000001",
            cosponsor_bioguide_ids=["A000001", "B000001", "Z999999"],
        )
    )
    bill = outcome.model

    assert [tag.name for tag in bill.tags] == ["Health"]
    assert bill.primary_tag.name == "Health"
    assert bill.sponsor.bioguide_id == "S000001"
    assert sorted(member.bioguide_id for member in bill.cosponsors) == ["A000001", "B000001"]


@pytest.mark.asyncio
async def test_enrichment_runs_only_once(session, dispatcher):
    session.add_all([
        CommitteeModel(bioguide_id="C1", name="Agriculture"),
        CommitteeModel(bioguide_id="C2", name="Judiciary"),
    ])
    await session.flush()
    service = _service(session, dispatcher)

    await service.upsert_one(make_record(committee_bioguide_ids=["C1"]))
    outcome = await service.upsert_one(make_record(committee_bioguide_ids=["C2"], tag_names=["Later"]))

    assert [committee.bioguide_id for committee in outcome.model.committees] == ["C1"]
    assert outcome.model.tags == []


@pytest.mark.asyncio
async def test_unknown_sponsor_clears_primary_sponsorship(session, dispatcher):
    old_sponsor, = await _seed_members(session, "S000001")
    congress = CongressModel(number=118)
    session.add(congress)
    await session.flush()
    bill = BillModel(
        congress=congress,
        congress_id=congress.id,
        number="HR1234",
        title="Clean Water Infrastructure Act",
        committees=[],
        tags=[],
        sponsorships=[SponsorshipModel(member=old_sponsor, sponsorship_type=SponsorshipType.PRIMARY)],
    )
    session.add(bill)
    await session.flush()
    service = _service(session, dispatcher)

    outcome = await service.upsert_one(make_record(sponsor_bioguide_id="X000000"))

    assert outcome.model.id == bill.id
    assert outcome.model.sponsor is None


@pytest.mark.asyncio
async def test_cosponsors_are_replaced_as_a_set(session, dispatcher):
    old, kept, new = await _seed_members(session, "O000001", "K000001", "N000001")
    congress = CongressModel(number=118)
    session.add(congress)
    await session.flush()
    session.add(BillModel(
        congress=congress,
        congress_id=congress.id,
        number="HR1234",
        title="Clean Water Infrastructure Act",
        committees=[],
        tags=[],
        sponsorships=[
            SponsorshipModel(member=old, sponsorship_type=SponsorshipType.COSPONSOR),
            SponsorshipModel(member=kept, sponsorship_type=SponsorshipType.COSPONSOR),
        ],
    ))
    await session.flush()
    service = _service(session, dispatcher)

    outcome = await service.upsert_one(make_record(cosponsor_bioguide_ids=["K000001", "N000001"]))

    assert sorted(member.bioguide_id for member in outcome.model.cosponsors) == ["K000001", "N000001"]


# MARK: - Notifications


@pytest.mark.asyncio
async def test_enacting_a_bill_schedules_one_notification(session, dispatcher):
    service = _service(session, dispatcher, notification_delay_seconds=30)

    created = await service.upsert_one(make_record())
    assert dispatcher.scheduled == []

    outcome = await service.upsert_one(make_record(enacted_on=date(2024, 1, 5)))

    assert outcome.notifications == [NotificationKind.BILL_ENACTED]
    assert dispatcher.scheduled == [("bill_enacted", "Bill", created.model.id, timedelta(seconds=30))]


@pytest.mark.asyncio
async def test_two_watched_changes_schedule_two_notifications(session, dispatcher):
    feed = FakeFeed(single=make_record(
        house_voted_on=date(2023, 6, 14),
        house_result="passed",
        enacted_on=date(2024, 1, 5),
    ))
    service = _service(session, dispatcher, feed=feed, notification_delay_seconds=30)
    bill = (await service.upsert_one(make_record())).model
    assert dispatcher.scheduled == []

    await service.refresh_one(bill)

    assert dispatcher.scheduled == [
        ("bill_house_change", "Bill", bill.id, timedelta(seconds=30)),
        ("bill_enacted", "Bill", bill.id, timedelta(seconds=30)),
    ]


@pytest.mark.asyncio
async def test_held_notifications_are_sent_after_commit(session):
    queue = RecordingDispatcher(transactional=False)
    service = _service(session, queue, notification_delay_seconds=30)

    outcome = await service.upsert_one(make_record(enacted_on=date(2024, 1, 5)))

    assert outcome.notifications == [NotificationKind.BILL_ENACTED]
    assert queue.scheduled == []

    await service.commit()

    assert queue.scheduled == [("bill_enacted", "Bill", outcome.model.id, timedelta(seconds=30))]


@pytest.mark.asyncio
async def test_rollback_drops_held_notifications(session):
    queue = RecordingDispatcher(transactional=False)
    service = _service(session, queue)

    await service.upsert_one(make_record(enacted_on=date(2024, 1, 5)))
    await service.rollback()
    await service.commit()

    assert queue.scheduled == []
    assert await _bill_count(session) == 0


@pytest.mark.asyncio
async def test_failed_enrichment_never_reaches_the_queue(session, monkeypatch):
    queue = RecordingDispatcher(transactional=False)
    feed = FakeFeed(records=[
        make_record(enacted_on=date(2024, 1, 5), tag_names=["Water"]),
        make_record(number="S.99", bill_type="s", title="Farm Bill", vetoed_on=date(2024, 2, 2)),
    ])
    service = _service(session, queue, feed=feed, continue_on_error=True, notification_delay_seconds=30)

    async def broken_tag_lookup(name):
        raise RuntimeError("tag lookup failed")

    monkeypatch.setattr(service.tags, "find_or_create", broken_tag_lookup)

    run = await service.sync_all()

    farm_bill = (await session.execute(select(BillModel))).scalar_one()
    assert run.records_failed == 1
    assert run.bills_created == 1
    assert farm_bill.number == "S99"
    assert queue.scheduled == [("bill_vetoed", "Bill", farm_bill.id, timedelta(seconds=30))]


@pytest.mark.asyncio
async def test_unwatched_changes_schedule_nothing(session, dispatcher):
    service = _service(session, dispatcher)
    bill = (await service.upsert_one(make_record())).model

    assert await service.dispatch_change_notifications(bill, {"title", "summary"}) == []
    assert dispatcher.scheduled == []


@pytest.mark.asyncio
async def test_database_dispatcher_queues_jobs_with_the_bill(session):
    service = BillSyncService(session, FakeFeed(), DatabaseNotificationDispatcher(session))

    await service.upsert_one(make_record())
    bill = (await service.upsert_one(make_record(vetoed_on=date(2024, 2, 2)))).model

    jobs = (await session.execute(select(NotificationJobModel))).scalars().all()
    assert [(job.kind, job.subject_type, job.subject_id) for job in jobs] == [("bill_vetoed", "Bill", bill.id)]


# MARK: - sync_all


@pytest.mark.asyncio
async def test_sync_all_upserts_relevant_records(session, dispatcher):
    feed = FakeFeed(records=[
        make_record(),
        make_record(number="H.RES.12", bill_type="hres"),
        make_record(number="S.55", bill_type="s", title="  "),
        make_record(number="S.99", bill_type="s", title="Farm Bill"),
    ])
    service = _service(session, dispatcher, feed=feed)

    run = await service.sync_all()

    assert run.status == SyncRunStatus.COMPLETED
    assert run.records_fetched == 4
    assert run.records_relevant == 2
    assert run.bills_created == 2
    assert run.bills_enriched == 2
    assert run.records_failed == 0
    assert run.completed_at is not None
    assert await _bill_count(session) == 2


@pytest.mark.asyncio
async def test_second_pass_counts_unchanged_bills(session, dispatcher):
    feed = FakeFeed(records=[make_record()])
    service = _service(session, dispatcher, feed=feed)

    await service.sync_all()
    run = await service.sync_all()

    assert run.bills_created == 0
    assert run.bills_unchanged == 1
    assert run.bills_enriched == 0


@pytest.mark.asyncio
async def test_sync_all_aborts_on_first_failure(session, dispatcher):
    feed = FakeFeed(records=[make_record(), make_record(number=""), make_record(number="S.99", bill_type="s")])
    service = _service(session, dispatcher, feed=feed)

    with pytest.raises(BillValidationError):
        await service.sync_all()

    run = (await SyncRunRepository(session).recent("bills"))[0]
    assert run.status == SyncRunStatus.FAILED
    assert "BillValidationError" in run.error_message
    assert run.bills_created == 1
    assert await _bill_count(session) == 1


@pytest.mark.asyncio
async def test_sync_all_can_continue_past_failures(session, dispatcher):
    feed = FakeFeed(records=[make_record(number=""), make_record()])
    service = _service(session, dispatcher, feed=feed, continue_on_error=True)

    run = await service.sync_all()

    assert run.status == SyncRunStatus.COMPLETED
    assert run.records_failed == 1
    assert run.bills_created == 1


@pytest.mark.asyncio
async def test_sync_all_raises_when_feed_unavailable(session, dispatcher):
    service = _service(session, dispatcher, feed=FakeFeed(status=AdapterStatus.SOURCE_UNAVAILABLE))

    with pytest.raises(FeedUnavailableError) as exc_info:
        await service.sync_all()

    run = await SyncRunRepository(session).get(exc_info.value.sync_run_id)
    assert run.status == SyncRunStatus.FAILED


@pytest.mark.asyncio
async def test_sync_all_wraps_unexpected_errors(session):
    class BrokenDispatcher(RecordingDispatcher):
        async def schedule(self, kind, subject_type, subject_id, delay):
            raise RuntimeError("queue down")

    feed = FakeFeed(records=[make_record(enacted_on=date(2024, 1, 5))])
    service = _service(session, BrokenDispatcher(), feed=feed)

    with pytest.raises(SyncError) as exc_info:
        await service.sync_all()

    assert "Bill sync failed" in str(exc_info.value)
    assert isinstance(exc_info.value.__cause__, RuntimeError)


@pytest.mark.asyncio
async def test_sync_all_refuses_to_overlap_a_running_pass(session, dispatcher):
    session.add(SyncRunModel(kind="bills", status=SyncRunStatus.RUNNING, started_at=datetime.now(UTC)))
    await session.commit()
    service = _service(session, dispatcher, feed=FakeFeed(records=[make_record()]))

    with pytest.raises(SyncInProgressError):
        await service.sync_all()

    assert await _bill_count(session) == 0


@pytest.mark.asyncio
async def test_stale_running_pass_does_not_block(session, dispatcher):
    session.add(SyncRunModel(
        kind="bills",
        status=SyncRunStatus.RUNNING,
        started_at=datetime.now(UTC) - timedelta(hours=2),
    ))
    await session.commit()
    service = _service(session, dispatcher, feed=FakeFeed(records=[make_record()]), stale_after_seconds=3600)

    run = await service.sync_all()

    assert run.status == SyncRunStatus.COMPLETED


# MARK: - refresh_one


@pytest.mark.asyncio
async def test_refresh_overwrites_every_field(session, dispatcher):
    feed = FakeFeed(single=make_record(
        title="Clean Water Infrastructure Act of 2023",
        introduced_on=date(2023, 2, 20),
        house_voted_on=date(2023, 7, 1),
        house_result="passed",
    ))
    service = _service(session, dispatcher, feed=feed)
    bill = (await service.upsert_one(make_record(introduced_on=date(2023, 3, 1)))).model

    refreshed = await service.refresh_one(bill)

    assert feed.requested == [("HR1234", 118)]
    assert refreshed.title == "Clean Water Infrastructure Act of 2023"
    assert refreshed.introduced_on == date(2023, 2, 20)
    assert refreshed.house_result == "passed"
    assert dispatcher.kinds == ["bill_house_change"]


@pytest.mark.asyncio
async def test_refresh_rejects_blank_title(session, dispatcher):
    feed = FakeFeed(single=make_record(title=""))
    service = _service(session, dispatcher, feed=feed)
    bill = (await service.upsert_one(make_record())).model

    with pytest.raises(BillValidationError):
        await service.refresh_one(bill)


# MARK: - Entry points


@pytest.mark.asyncio
async def test_run_bill_sync_returns_counters(database):
    feed = FakeFeed(records=[make_record()])

    result = await run_bill_sync(database, feed=feed)

    assert result["status"] == "completed"
    assert result["bills_created"] == 1
    assert feed.closed is False


@pytest.mark.asyncio
async def test_run_bill_refresh_requires_existing_bill(database):
    with pytest.raises(BillNotFoundError):
        await run_bill_refresh(database, 999, feed=FakeFeed())
