"""
Repository for bill data operations.

Implements the repository pattern for bills: natural-key lookups,
validated saves with change tracking, enrichment associations and
listing scopes.

Responsibility: Abstract database operations for bills
"""

from datetime import datetime, UTC
from typing import Iterable, List, Optional, Set
from sqlalchemy import select, update, delete, func, or_, and_, desc
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.attributes import set_committed_value
import logging

from ..models import (
    BillModel,
    CommitteeModel,
    CongressModel,
    FavoriteModel,
    MemberModel,
    SponsorshipModel,
    TagModel,
    UserModel,
)
from ...exceptions import BillValidationError
from ...models.enums import FeatureState, SponsorshipType

logger = logging.getLogger(__name__)

FAVORITABLE_TYPE = "Bill"


def changed_columns(instance: BillModel) -> Set[str]:
    """
    Column attributes whose pending value differs from the stored one.

    Must be called before flush; assigning an identical value does not
    count as a change.
    """
    state = sa_inspect(instance)
    changed: Set[str] = set()
    for attr in state.mapper.column_attrs:
        history = state.attrs[attr.key].history
        if not history.added:
            continue
        old = history.deleted[0] if history.deleted else None
        if history.added[0] != old:
            changed.add(attr.key)
    return changed


class BillRepository:
    """
    Repository for bill persistence.

    Example:
        repo = BillRepository(session)

        bill = await repo.find_or_initialize(congress, "H.R.1234")
        bill.title = "An Act"
        changes = await repo.save(bill)
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize repository with database session.

        Args:
            session: Active database session
        """
        self.session = session

    @staticmethod
    def _eager_options():
        return (
            selectinload(BillModel.congress),
            selectinload(BillModel.committees),
            selectinload(BillModel.tags),
            selectinload(BillModel.sponsorships).joinedload(SponsorshipModel.member),
        )

    async def get_by_id(self, bill_id: int) -> Optional[BillModel]:
        """Get bill by database ID with associations loaded"""
        result = await self.session.execute(
            select(BillModel).options(*self._eager_options()).where(BillModel.id == bill_id)
        )
        return result.scalar_one_or_none()

    async def get_by_natural_key(self, congress_id: int, number: str) -> Optional[BillModel]:
        """
        Get bill by (congress_id, number), ignoring case and periods.

        Args:
            congress_id: Congress primary key
            number: Bill number, periods allowed (e.g., "H.R.1234")
        """
        result = await self.session.execute(
            select(BillModel)
            .options(*self._eager_options())
            .where(
                and_(
                    BillModel.congress_id == congress_id,
                    func.lower(BillModel.number) == number.replace(".", "").lower()
                )
            )
        )
        return result.scalar_one_or_none()

    async def find_or_initialize(self, congress: CongressModel, number: str) -> BillModel:
        """
        Return the existing bill or a new, unsaved one.

        The new bill is not added to the session; save() does that. Its
        collections start empty so enrichment never lazy-loads them.
        """
        bill = await self.get_by_natural_key(congress.id, number)
        if bill is not None:
            return bill

        logger.debug(f"Initializing new bill {number} for congress {congress.number}")
        return BillModel(
            congress=congress,
            congress_id=congress.id,
            number=number,
            committees=[],
            tags=[],
            sponsorships=[],
        )

    async def save(self, bill: BillModel) -> Set[str]:
        """
        Validate and flush a bill.

        Returns:
            Names of the columns whose values changed in this save

        Raises:
            BillValidationError: If the title is blank or the number is taken
        """
        await self._validate(bill)

        changes = changed_columns(bill)
        if bill.id is None:
            self.session.add(bill)

        await self.session.flush()

        logger.debug(f"Saved bill {bill.number} (changes: {sorted(changes)})")
        return changes

    async def _validate(self, bill: BillModel) -> None:
        if not bill.title or not bill.title.strip():
            raise BillValidationError(f"Bill {bill.number}: title can't be blank", field="title")
        if not bill.number:
            raise BillValidationError("Bill number can't be blank", field="number")

        query = select(BillModel.id).where(
            and_(
                BillModel.congress_id == bill.congress_id,
                func.lower(BillModel.number) == bill.number.lower()
            )
        )
        if bill.id is not None:
            query = query.where(BillModel.id != bill.id)

        result = await self.session.execute(query)
        if result.first() is not None:
            raise BillValidationError(f"Bill {bill.number} has already been taken", field="number")

    async def touch(self, bill: BillModel, column: str = "deep_scraped_on") -> datetime:
        """
        Stamp a timestamp column (plus updated_at) without a full save.

        Issues a targeted UPDATE and marks the new values as committed on
        the instance so they do not show up as pending changes.
        """
        now = datetime.now(UTC)
        await self.session.execute(
            update(BillModel)
            .where(BillModel.id == bill.id)
            .values({column: now, "updated_at": now})
        )
        set_committed_value(bill, column, now)
        set_committed_value(bill, "updated_at", now)
        return now

    # MARK: - Enrichment associations

    def add_committee(self, bill: BillModel, committee: CommitteeModel) -> None:
        if committee not in bill.committees:
            bill.committees.append(committee)

    def add_tag(self, bill: BillModel, tag: TagModel) -> None:
        if tag not in bill.tags:
            bill.tags.append(tag)

    def set_sponsor(self, bill: BillModel, member: Optional[MemberModel]) -> None:
        """
        Replace the primary sponsorship.

        Passing None removes the current primary sponsor.
        """
        current = [s for s in bill.sponsorships if s.sponsorship_type == SponsorshipType.PRIMARY]
        if member is not None and any(s.member_id == member.id for s in current):
            return

        for sponsorship in current:
            bill.sponsorships.remove(sponsorship)

        if member is not None:
            bill.sponsorships.append(
                SponsorshipModel(member=member, member_id=member.id, sponsorship_type=SponsorshipType.PRIMARY)
            )

    def replace_cosponsors(self, bill: BillModel, members: Iterable[MemberModel]) -> None:
        """Make the bill's cosponsors exactly the given members."""
        wanted = {member.id: member for member in members}

        for sponsorship in list(bill.sponsorships):
            if sponsorship.sponsorship_type != SponsorshipType.COSPONSOR:
                continue
            if sponsorship.member_id in wanted:
                del wanted[sponsorship.member_id]
            else:
                bill.sponsorships.remove(sponsorship)

        for member in wanted.values():
            bill.sponsorships.append(
                SponsorshipModel(member=member, member_id=member.id, sponsorship_type=SponsorshipType.COSPONSOR)
            )

    # MARK: - Scopes

    async def list_bills(
        self,
        limit: int = 20,
        offset: int = 0,
        visible_only: bool = True,
        special_only: bool = False,
        search: Optional[str] = None,
    ) -> List[BillModel]:
        """
        List bills.

        Special bills (featured or highlighted) are ordered by
        feature_position; everything else by introduced_on DESC.
        """
        query = select(BillModel).options(*self._eager_options())

        if visible_only:
            query = query.where(BillModel.is_visible.is_(True))

        if search:
            pattern = f"%{search.strip()}%"
            query = query.where(
                or_(
                    BillModel.title.ilike(pattern),
                    BillModel.number.ilike(pattern.replace(".", "")),
                    BillModel.summary.ilike(pattern),
                )
            )

        if special_only:
            query = query.where(
                BillModel.feature_state.in_([FeatureState.FEATURED, FeatureState.HIGHLIGHTED])
            ).order_by(BillModel.feature_position.asc())
        else:
            query = query.order_by(desc(BillModel.introduced_on), BillModel.id)

        result = await self.session.execute(query.limit(limit).offset(offset))
        return list(result.scalars().all())

    async def followers(self, bill_id: int) -> List[UserModel]:
        """Users who favorited the bill"""
        result = await self.session.execute(
            select(UserModel)
            .join(FavoriteModel, FavoriteModel.user_id == UserModel.id)
            .where(
                and_(
                    FavoriteModel.favoritable_type == FAVORITABLE_TYPE,
                    FavoriteModel.favoritable_id == bill_id
                )
            )
            .order_by(UserModel.id)
        )
        return list(result.scalars().all())

    async def delete(self, bill: BillModel) -> None:
        """
        Delete a bill with its sponsorships, votes, positions and favorites.
        """
        await self.session.execute(
            delete(FavoriteModel).where(
                and_(
                    FavoriteModel.favoritable_type == FAVORITABLE_TYPE,
                    FavoriteModel.favoritable_id == bill.id
                )
            )
        )
        await self.session.delete(bill)
        await self.session.flush()

        logger.info(f"Deleted bill {bill.number} (id={bill.id})")
