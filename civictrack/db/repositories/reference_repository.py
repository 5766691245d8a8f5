"""
Repositories for reference data the bill sync resolves against.

Congresses and tags are created on demand; committees and members are
maintained elsewhere and only looked up.

Responsibility: Lookups and find-or-create for congresses, committees, tags, members
"""

from typing import List, Optional, Sequence
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from ..models import CongressModel, CommitteeModel, MemberModel, TagModel

logger = logging.getLogger(__name__)


class CongressRepository:
    """Find-or-create congresses by number"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_number(self, number: int) -> Optional[CongressModel]:
        result = await self.session.execute(
            select(CongressModel).where(CongressModel.number == number)
        )
        return result.scalar_one_or_none()

    async def find_or_create(self, number: int) -> CongressModel:
        congress = await self.get_by_number(number)
        if congress is None:
            congress = CongressModel(number=number)
            self.session.add(congress)
            await self.session.flush()
            logger.info(f"Created congress {number}")
        return congress

    async def list_all(self) -> List[CongressModel]:
        result = await self.session.execute(
            select(CongressModel).order_by(CongressModel.number.desc())
        )
        return list(result.scalars().all())


class CommitteeRepository:
    """Committee lookups by upstream committee code"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def find_by_bioguide_id(self, bioguide_id: str) -> Optional[CommitteeModel]:
        result = await self.session.execute(
            select(CommitteeModel).where(CommitteeModel.bioguide_id == bioguide_id)
        )
        return result.scalar_one_or_none()


class TagRepository:
    """Find-or-create tags by name"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def find_or_create(self, name: str) -> TagModel:
        result = await self.session.execute(select(TagModel).where(TagModel.name == name))
        tag = result.scalar_one_or_none()
        if tag is None:
            tag = TagModel(name=name)
            self.session.add(tag)
            await self.session.flush()
            logger.debug(f"Created tag {name!r}")
        return tag


class MemberRepository:
    """Member lookups by bioguide id"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def find_by_bioguide_id(self, bioguide_id: Optional[str]) -> Optional[MemberModel]:
        if not bioguide_id:
            return None
        result = await self.session.execute(
            select(MemberModel).where(MemberModel.bioguide_id == bioguide_id)
        )
        return result.scalar_one_or_none()

    async def find_all_by_bioguide_ids(self, bioguide_ids: Sequence[str]) -> List[MemberModel]:
        """Members matching any of the ids; unknown ids are ignored"""
        if not bioguide_ids:
            return []
        result = await self.session.execute(
            select(MemberModel)
            .where(MemberModel.bioguide_id.in_(list(bioguide_ids)))
            .order_by(MemberModel.id)
        )
        return list(result.scalars().all())
