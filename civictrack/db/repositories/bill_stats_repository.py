"""
Repository for bill vote and position aggregates.

Every figure is recomputed from the database on request; nothing is
cached on the bill instance. PositionSummary is an explicit snapshot
for callers that need several figures at once.

Responsibility: Count votes by chamber/party and aggregate user positions
"""

from dataclasses import dataclass
from typing import Dict, Optional, Sequence
from sqlalchemy import select, func, and_, case
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from ..models import MemberModel, PositionModel, VoteModel
from ...models.enums import Chamber
from ...services.bill_status import format_percentage

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class PositionSummary:
    """Position aggregates for one bill at one point in time"""
    bill_id: int
    upvote_count: int
    downvote_count: int

    @property
    def total_positions(self) -> int:
        return self.upvote_count + self.downvote_count

    @property
    def upvote_percentage(self) -> Optional[str]:
        return format_percentage(self.upvote_count, self.total_positions)

    @property
    def downvote_percentage(self) -> Optional[str]:
        return format_percentage(self.downvote_count, self.total_positions)


class BillStatsRepository:
    """
    Aggregate queries over votes and positions.

    Example:
        stats = BillStatsRepository(session)
        yes_dems = await stats.house_vote_breakdown(bill.id, "yes", "D")
        summary = await stats.position_summary(bill.id)
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def vote_breakdown(self, bill_id: int, chamber: int, position: str, party: str) -> int:
        """
        Count ballots on a bill cast in a chamber at a position by members of a party.

        Args:
            bill_id: Bill primary key
            chamber: Chamber identifier (1 = house, 2 = senate)
            position: Ballot value as stored (e.g., "yes")
            party: Member party affiliation (e.g., "D")
        """
        result = await self.session.execute(
            select(func.count(VoteModel.id))
            .join(MemberModel, MemberModel.id == VoteModel.member_id)
            .where(
                and_(
                    VoteModel.bill_id == bill_id,
                    VoteModel.chamber_id == int(chamber),
                    VoteModel.position == position,
                    MemberModel.party == party
                )
            )
        )
        return result.scalar_one()

    async def house_vote_breakdown(self, bill_id: int, position: str, party: str) -> int:
        return await self.vote_breakdown(bill_id, Chamber.HOUSE, position, party)

    async def senate_vote_breakdown(self, bill_id: int, position: str, party: str) -> int:
        return await self.vote_breakdown(bill_id, Chamber.SENATE, position, party)

    async def upvote_count(self, bill_id: int) -> int:
        return await self._count_positions(bill_id, PositionModel.position > 0)

    async def downvote_count(self, bill_id: int) -> int:
        return await self._count_positions(bill_id, PositionModel.position < 0)

    async def total_positions(self, bill_id: int) -> int:
        """Count of non-zero positions"""
        return await self._count_positions(bill_id, PositionModel.position != 0)

    async def upvote_percentage(self, bill_id: int) -> Optional[str]:
        return (await self.position_summary(bill_id)).upvote_percentage

    async def downvote_percentage(self, bill_id: int) -> Optional[str]:
        return (await self.position_summary(bill_id)).downvote_percentage

    async def position_summary(self, bill_id: int) -> PositionSummary:
        """Both position counts in a single query"""
        result = await self.session.execute(
            select(
                func.coalesce(func.sum(case((PositionModel.position > 0, 1), else_=0)), 0),
                func.coalesce(func.sum(case((PositionModel.position < 0, 1), else_=0)), 0),
            ).where(PositionModel.bill_id == bill_id)
        )
        upvotes, downvotes = result.one()
        return PositionSummary(bill_id=bill_id, upvote_count=int(upvotes), downvote_count=int(downvotes))

    async def position_summaries(self, bill_ids: Sequence[int]) -> Dict[int, PositionSummary]:
        """
        Summaries for many bills in one grouped query.

        Bills without positions get an all-zero summary.
        """
        summaries = {
            bill_id: PositionSummary(bill_id=bill_id, upvote_count=0, downvote_count=0)
            for bill_id in bill_ids
        }
        if not summaries:
            return summaries

        result = await self.session.execute(
            select(
                PositionModel.bill_id,
                func.sum(case((PositionModel.position > 0, 1), else_=0)),
                func.sum(case((PositionModel.position < 0, 1), else_=0)),
            )
            .where(PositionModel.bill_id.in_(list(summaries)))
            .group_by(PositionModel.bill_id)
        )
        for bill_id, upvotes, downvotes in result.all():
            summaries[bill_id] = PositionSummary(
                bill_id=bill_id,
                upvote_count=int(upvotes or 0),
                downvote_count=int(downvotes or 0)
            )
        return summaries

    async def _count_positions(self, bill_id: int, condition) -> int:
        result = await self.session.execute(
            select(func.count(PositionModel.id)).where(
                and_(PositionModel.bill_id == bill_id, condition)
            )
        )
        return result.scalar_one()
