"""
SQLAlchemy database models for CivicTrack.

ORM models that map to database tables with proper indexing,
constraints, and relationships.

Responsibility: Define database schema and ORM mappings
"""

from datetime import date, datetime, UTC
from typing import Optional, List
import sqlalchemy as sa
from sqlalchemy import (
    String, Integer, Date, DateTime, Boolean, Text, Float,
    ForeignKey, Index, UniqueConstraint, Table, Column
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship, validates

from ..models.enums import (
    FeatureState,
    NotificationJobStatus,
    SponsorshipType,
    SyncRunStatus,
)


def utcnow() -> datetime:
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Base class for all ORM models"""
    pass


bills_committees = Table(
    "bills_committees",
    Base.metadata,
    Column("bill_id", ForeignKey("bills.id", ondelete="CASCADE"), primary_key=True),
    Column("committee_id", ForeignKey("committees.id", ondelete="CASCADE"), primary_key=True),
)

bills_tags = Table(
    "bills_tags",
    Base.metadata,
    Column("bill_id", ForeignKey("bills.id", ondelete="CASCADE"), primary_key=True),
    Column("tag_id", ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True),
)


class CongressModel(Base):
    """A numbered Congress (e.g., the 118th)."""

    __tablename__ = "congresses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    number: Mapped[int] = mapped_column(Integer, nullable=False, unique=True, index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<CongressModel(id={self.id}, number={self.number})>"


class BillModel(Base):
    """
    Database model for legislative bills.

    Natural key is (congress_id, number), compared case-insensitively.
    Periods are stripped from the number on assignment ("H.R.1" -> "HR1").
    """

    __tablename__ = "bills"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    congress_id: Mapped[int] = mapped_column(
        ForeignKey("congresses.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    number: Mapped[str] = mapped_column(String(40), nullable=False)

    # Descriptive
    title: Mapped[str] = mapped_column(Text, nullable=False)
    summary: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    full_text_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    # Timeline (first write wins during sync)
    introduced_on: Mapped[Optional[date]] = mapped_column(Date, nullable=True, index=True)
    house_voted_on: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    senate_voted_on: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    enacted_on: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    vetoed_on: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    # Chamber results as reported upstream
    house_result: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    senate_result: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    # Set once the committee/tag/sponsor enrichment has run
    deep_scraped_on: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Editorial
    feature_state: Mapped[FeatureState] = mapped_column(
        sa.Enum(FeatureState, native_enum=False, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=FeatureState.UNFEATURED
    )
    feature_position: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    is_visible: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow
    )

    # Relationships
    congress: Mapped[CongressModel] = relationship()
    sponsorships: Mapped[List["SponsorshipModel"]] = relationship(
        back_populates="bill",
        cascade="all, delete-orphan"
    )
    committees: Mapped[List["CommitteeModel"]] = relationship(secondary=bills_committees)
    tags: Mapped[List["TagModel"]] = relationship(secondary=bills_tags, order_by="TagModel.id")
    votes: Mapped[List["VoteModel"]] = relationship(
        back_populates="bill",
        cascade="all, delete-orphan"
    )
    positions: Mapped[List["PositionModel"]] = relationship(
        back_populates="bill",
        cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("idx_bill_feature", "feature_state", "feature_position"),
    )

    @validates("number")
    def _sanitize_number(self, key: str, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        return value.replace(".", "")

    # The helpers below read relationships; load them eagerly before use.

    @property
    def sponsor(self) -> Optional["MemberModel"]:
        for sponsorship in self.sponsorships:
            if sponsorship.sponsorship_type == SponsorshipType.PRIMARY:
                return sponsorship.member
        return None

    @property
    def cosponsors(self) -> List["MemberModel"]:
        return [
            s.member for s in self.sponsorships
            if s.sponsorship_type == SponsorshipType.COSPONSOR
        ]

    @property
    def primary_tag(self) -> Optional["TagModel"]:
        return self.tags[0] if self.tags else None

    @property
    def is_special(self) -> bool:
        return self.feature_state in (FeatureState.FEATURED, FeatureState.HIGHLIGHTED)

    def __str__(self) -> str:
        return self.number

    def __repr__(self) -> str:
        return f"<BillModel(id={self.id}, number={self.number}, congress_id={self.congress_id})>"


class MemberModel(Base):
    """A member of Congress, keyed by bioguide id."""

    __tablename__ = "members"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    bioguide_id: Mapped[str] = mapped_column(String(20), nullable=False, unique=True, index=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    party: Mapped[Optional[str]] = mapped_column(String(20), nullable=True, index=True)
    chamber_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<MemberModel(id={self.id}, bioguide_id={self.bioguide_id})>"


class SponsorshipModel(Base):
    """Link between a bill and a sponsoring member."""

    __tablename__ = "sponsorships"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    bill_id: Mapped[int] = mapped_column(ForeignKey("bills.id", ondelete="CASCADE"), nullable=False, index=True)
    member_id: Mapped[int] = mapped_column(ForeignKey("members.id", ondelete="CASCADE"), nullable=False, index=True)
    sponsorship_type: Mapped[SponsorshipType] = mapped_column(
        sa.Enum(SponsorshipType, native_enum=False, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=SponsorshipType.COSPONSOR
    )

    bill: Mapped[BillModel] = relationship(back_populates="sponsorships")
    member: Mapped[MemberModel] = relationship(lazy="joined")


class CommitteeModel(Base):
    """A congressional committee, keyed by its upstream code."""

    __tablename__ = "committees"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    bioguide_id: Mapped[str] = mapped_column(String(20), nullable=False, unique=True, index=True)
    name: Mapped[str] = mapped_column(String(300), nullable=False)

    def __repr__(self) -> str:
        return f"<CommitteeModel(id={self.id}, bioguide_id={self.bioguide_id})>"


class TagModel(Base):
    """Subject tag."""

    __tablename__ = "tags"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False, unique=True, index=True)


class VoteModel(Base):
    """A single member's ballot on a bill."""

    __tablename__ = "votes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    bill_id: Mapped[int] = mapped_column(ForeignKey("bills.id", ondelete="CASCADE"), nullable=False, index=True)
    member_id: Mapped[int] = mapped_column(ForeignKey("members.id", ondelete="CASCADE"), nullable=False, index=True)
    chamber_id: Mapped[int] = mapped_column(Integer, nullable=False)
    position: Mapped[str] = mapped_column(String(20), nullable=False)

    bill: Mapped[BillModel] = relationship(back_populates="votes")
    member: Mapped[MemberModel] = relationship()

    __table_args__ = (
        Index("idx_vote_bill_chamber_position", "bill_id", "chamber_id", "position"),
    )


class UserModel(Base):
    """Application user (positions and favorites)."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)


class PositionModel(Base):
    """A user's stance on a bill: positive supports, negative opposes."""

    __tablename__ = "positions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    bill_id: Mapped[int] = mapped_column(ForeignKey("bills.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    bill: Mapped[BillModel] = relationship(back_populates="positions")

    __table_args__ = (
        UniqueConstraint("bill_id", "user_id", name="uq_position_bill_user"),
    )


class FavoriteModel(Base):
    """Polymorphic favorite (favoritable_type + favoritable_id)."""

    __tablename__ = "favorites"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    favoritable_type: Mapped[str] = mapped_column(String(50), nullable=False)
    favoritable_id: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    user: Mapped[UserModel] = relationship()

    __table_args__ = (
        UniqueConstraint("user_id", "favoritable_type", "favoritable_id", name="uq_favorite_user_target"),
        Index("idx_favorite_target", "favoritable_type", "favoritable_id"),
    )


class SyncRunModel(Base):
    """
    One execution of a synchronization job.

    Replaces a process-wide started/completed flag: a row in RUNNING
    status acts as an advisory lock for its kind.
    """

    __tablename__ = "sync_runs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    kind: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    status: Mapped[SyncRunStatus] = mapped_column(
        sa.Enum(SyncRunStatus, native_enum=False, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=SyncRunStatus.RUNNING,
        index=True
    )

    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    duration_seconds: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    records_fetched: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    records_relevant: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    bills_created: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    bills_updated: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    bills_unchanged: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    bills_enriched: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    records_failed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    notifications_scheduled: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<SyncRunModel(id={self.id}, kind={self.kind}, status={self.status})>"


class NotificationJobModel(Base):
    """Delayed notification waiting in the outbox."""

    __tablename__ = "notification_jobs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    kind: Mapped[str] = mapped_column(String(50), nullable=False)
    subject_type: Mapped[str] = mapped_column(String(50), nullable=False)
    subject_id: Mapped[int] = mapped_column(Integer, nullable=False)
    run_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    status: Mapped[NotificationJobStatus] = mapped_column(
        sa.Enum(NotificationJobStatus, native_enum=False, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=NotificationJobStatus.PENDING
    )

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        Index("idx_notification_due", "status", "run_at"),
    )


# Case-insensitive natural key for bills
Index(
    "uq_bill_congress_number",
    BillModel.congress_id,
    sa.func.lower(BillModel.number),
    unique=True,
)
