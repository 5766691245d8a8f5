"""
Bills GraphQL schema.

Strawberry types over the CivicTrack ORM models, with stage status and
position aggregates computed per bill.

Responsibility: Public read API for bills and congresses
"""

from datetime import date
from typing import List, Optional

import strawberry  # type: ignore[import]
from strawberry.types import Info  # type: ignore[import]

from civictrack.db.models import (
    BillModel,
    CommitteeModel,
    CongressModel,
    MemberModel,
    TagModel,
)
from civictrack.models.enums import Chamber
from civictrack.models.enums import FeatureState as FeatureStateValue
from civictrack.models.enums import SponsorshipType as SponsorshipTypeValue
from civictrack.services.bill_status import bill_status


# --------------------------------------------------------------------------- #
# Enums
# --------------------------------------------------------------------------- #


SponsorshipType = strawberry.enum(SponsorshipTypeValue, name="SponsorshipType")
FeatureState = strawberry.enum(FeatureStateValue, name="FeatureState")


# --------------------------------------------------------------------------- #
# GraphQL Types
# --------------------------------------------------------------------------- #


@strawberry.type
class Congress:
    id: int
    number: int

    @classmethod
    def from_model(cls, model: CongressModel) -> "Congress":
        return cls(id=model.id, number=model.number)


@strawberry.type
class Member:
    id: int
    bioguide_id: str
    name: str
    party: Optional[str]

    @classmethod
    def from_model(cls, model: MemberModel) -> "Member":
        return cls(
            id=model.id,
            bioguide_id=model.bioguide_id,
            name=model.name,
            party=model.party,
        )


@strawberry.type
class Committee:
    id: int
    bioguide_id: str
    name: str

    @classmethod
    def from_model(cls, model: CommitteeModel) -> "Committee":
        return cls(id=model.id, bioguide_id=model.bioguide_id, name=model.name)


@strawberry.type
class Tag:
    id: int
    name: str

    @classmethod
    def from_model(cls, model: TagModel) -> "Tag":
        return cls(id=model.id, name=model.name)


@strawberry.type
class StageStatus:
    """Status of one legislative stage (Intro, House, Senate, President)."""

    stage: str
    status: Optional[str]


@strawberry.type
class Bill:
    """A bill with its associations, stage status and position aggregates."""

    id: int
    number: str
    title: str
    summary: Optional[str]
    full_text_url: Optional[str]
    introduced_on: Optional[date]
    house_voted_on: Optional[date]
    senate_voted_on: Optional[date]
    enacted_on: Optional[date]
    vetoed_on: Optional[date]
    house_result: Optional[str]
    senate_result: Optional[str]
    feature_state: FeatureState
    feature_position: Optional[int]
    is_visible: bool
    is_special: bool
    congress: Congress
    sponsor: Optional[Member]
    cosponsors: List[Member]
    committees: List[Committee]
    tags: List[Tag]
    primary_tag: Optional[Tag]

    @strawberry.field
    def status(self) -> List[StageStatus]:
        """Per-stage status in Intro, House, Senate, President order."""
        return [StageStatus(stage=stage, status=value) for stage, value in bill_status(self).items()]

    @strawberry.field
    async def upvote_count(self, info: Info) -> int:
        return (await self._position_summary(info)).upvote_count

    @strawberry.field
    async def downvote_count(self, info: Info) -> int:
        return (await self._position_summary(info)).downvote_count

    @strawberry.field
    async def total_positions(self, info: Info) -> int:
        return (await self._position_summary(info)).total_positions

    @strawberry.field
    async def upvote_percentage(self, info: Info) -> Optional[str]:
        """Share of supporting positions, e.g. "67%"; null when nobody has taken a position."""
        return (await self._position_summary(info)).upvote_percentage

    @strawberry.field
    async def downvote_percentage(self, info: Info) -> Optional[str]:
        return (await self._position_summary(info)).downvote_percentage

    @strawberry.field
    async def house_vote_breakdown(self, info: Info, position: str, party: str) -> int:
        """Number of House members of a party who voted a given position."""
        from api.graphql.resolvers import get_vote_breakdown

        return await get_vote_breakdown(info.context["db"], self.id, Chamber.HOUSE, position, party)

    @strawberry.field
    async def senate_vote_breakdown(self, info: Info, position: str, party: str) -> int:
        from api.graphql.resolvers import get_vote_breakdown

        return await get_vote_breakdown(info.context["db"], self.id, Chamber.SENATE, position, party)

    async def _position_summary(self, info: Info):
        from api.graphql.resolvers import get_position_summary_loader

        return await get_position_summary_loader(info.context).load(self.id)

    @classmethod
    def from_model(cls, model: BillModel) -> "Bill":
        """Convert a bill loaded with its congress, sponsorships, committees and tags."""
        sponsor = model.sponsor
        primary_tag = model.primary_tag
        return cls(
            id=model.id,
            number=model.number,
            title=model.title,
            summary=model.summary,
            full_text_url=model.full_text_url,
            introduced_on=model.introduced_on,
            house_voted_on=model.house_voted_on,
            senate_voted_on=model.senate_voted_on,
            enacted_on=model.enacted_on,
            vetoed_on=model.vetoed_on,
            house_result=model.house_result,
            senate_result=model.senate_result,
            feature_state=model.feature_state,
            feature_position=model.feature_position,
            is_visible=model.is_visible,
            is_special=model.is_special,
            congress=Congress.from_model(model.congress),
            sponsor=Member.from_model(sponsor) if sponsor else None,
            cosponsors=[Member.from_model(member) for member in model.cosponsors],
            committees=[Committee.from_model(committee) for committee in model.committees],
            tags=[Tag.from_model(tag) for tag in model.tags],
            primary_tag=Tag.from_model(primary_tag) if primary_tag else None,
        )


# --------------------------------------------------------------------------- #
# Root Query
# --------------------------------------------------------------------------- #


@strawberry.type
class Query:
    """Root query type."""

    @strawberry.field
    async def bills(
        self,
        info: Info,
        limit: int = 20,
        offset: int = 0,
        search: Optional[str] = None,
        special_only: bool = False,
    ) -> List[Bill]:
        """Query visible bills with optional search."""
        from api.graphql.resolvers import get_bills

        bills = await get_bills(
            info.context["db"],
            limit=limit,
            offset=offset,
            search=search,
            special_only=special_only,
        )
        return [Bill.from_model(bill) for bill in bills]

    @strawberry.field
    async def bill(self, info: Info, id: int) -> Optional[Bill]:
        """Fetch a single bill."""
        from api.graphql.resolvers import get_bill

        bill = await get_bill(info.context["db"], id)
        return Bill.from_model(bill) if bill else None

    @strawberry.field
    async def congresses(self, info: Info) -> List[Congress]:
        from api.graphql.resolvers import get_congresses

        congresses = await get_congresses(info.context["db"])
        return [Congress.from_model(congress) for congress in congresses]


# --------------------------------------------------------------------------- #
# Schema
# --------------------------------------------------------------------------- #


schema = strawberry.Schema(query=Query)
