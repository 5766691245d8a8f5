"""
GraphQL Resolvers and DataLoaders
==================================
Query resolvers and DataLoaders for N+1 prevention.

Features:
    - Query functions backed by the CivicTrack repositories
    - A per-request DataLoader for bill position summaries

Responsibility: GraphQL data fetching and batching
"""

from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from strawberry.dataloader import DataLoader

from civictrack.db.models import BillModel, CongressModel
from civictrack.db.repositories import BillRepository, BillStatsRepository, CongressRepository, PositionSummary


def get_position_summary_loader(context: Dict[str, Any]) -> DataLoader:
    """DataLoader for position summaries by bill ID, cached on the request context"""
    loader = context.get("position_summary_loader")
    if loader is not None:
        return loader

    db: AsyncSession = context["db"]

    async def load_summaries(ids: List[int]) -> List[PositionSummary]:
        summaries = await BillStatsRepository(db).position_summaries(ids)
        return [summaries[bill_id] for bill_id in ids]

    loader = DataLoader(load_fn=load_summaries)
    context["position_summary_loader"] = loader
    return loader


async def get_bills(
    db: AsyncSession,
    limit: int = 20,
    offset: int = 0,
    search: Optional[str] = None,
    special_only: bool = False,
) -> List[BillModel]:
    """Visible bills, newest first, or special bills in feature order"""
    return await BillRepository(db).list_bills(
        limit=min(limit, 100),
        offset=offset,
        search=search,
        special_only=special_only,
    )


async def get_bill(db: AsyncSession, bill_id: int) -> Optional[BillModel]:
    return await BillRepository(db).get_by_id(bill_id)


async def get_congresses(db: AsyncSession) -> List[CongressModel]:
    return await CongressRepository(db).list_all()


async def get_vote_breakdown(db: AsyncSession, bill_id: int, chamber: int, position: str, party: str) -> int:
    return await BillStatsRepository(db).vote_breakdown(bill_id, chamber, position, party)
