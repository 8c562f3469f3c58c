"""Tagging repository: resource lookups and usage aggregates."""
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from tagging_service.db.models.tag import Tag
from tagging_service.db.models.tagging import Tagging
from tagging_service.repositories.base_repository import BaseRepository

DateRange = Tuple[datetime, datetime]


class TaggingRepository(BaseRepository[Tagging]):
    """Repository for Tagging model."""

    def __init__(self, session: AsyncSession):
        """Initialize tagging repository.

        Args:
            session: Async database session
        """
        super().__init__(Tagging, session)

    async def get(self, tag_id: str, taggable_type: str, taggable_id: str) -> Optional[Tagging]:
        """Get the tagging of one tag on one resource.

        Args:
            tag_id: Tag ID
            taggable_type: Resource type
            taggable_id: Resource ID

        Returns:
            Tagging instance or None if the tag is not applied
        """
        result = await self.session.execute(
            select(Tagging).filter(
                and_(
                    Tagging.tag_id == tag_id,
                    Tagging.taggable_type == taggable_type,
                    Tagging.taggable_id == taggable_id,
                )
            )
        )
        return result.scalar_one_or_none()

    async def list_for_resource(self, taggable_type: str, taggable_id: str) -> List[Tagging]:
        """All taggings on one resource, oldest first."""
        result = await self.session.execute(
            select(Tagging)
            .filter(and_(Tagging.taggable_type == taggable_type, Tagging.taggable_id == taggable_id))
            .order_by(Tagging.created_at, Tagging.id)
        )
        return list(result.scalars().all())

    async def tags_for_resource(self, taggable_type: str, taggable_id: str) -> List[Tag]:
        """Tags applied to one resource, sorted by name."""
        result = await self.session.execute(
            select(Tag)
            .join(Tagging, Tagging.tag_id == Tag.id)
            .filter(and_(Tagging.taggable_type == taggable_type, Tagging.taggable_id == taggable_id))
            .order_by(Tag.name, Tag.id)
        )
        return list(result.scalars().all())

    async def resource_ids_by_tags(
        self, taggable_type: str, tag_ids: Sequence[str], organization_id: str
    ) -> List[str]:
        """Distinct resource IDs carrying any of the tags inside the organization.

        Args:
            taggable_type: Resource type
            tag_ids: Tag IDs (tags of other organizations match nothing)
            organization_id: Owning organization

        Returns:
            Resource IDs in first-tagged order
        """
        if not tag_ids:
            return []
        result = await self.session.execute(
            select(Tagging.taggable_id)
            .join(Tag, Tag.id == Tagging.tag_id)
            .filter(
                and_(
                    Tagging.taggable_type == taggable_type,
                    Tagging.tag_id.in_(list(tag_ids)),
                    Tag.organization_id == organization_id,
                )
            )
            .order_by(Tagging.created_at, Tagging.id)
        )
        seen: Dict[str, None] = {}
        for taggable_id in result.scalars().all():
            seen.setdefault(taggable_id, None)
        return list(seen)

    async def recent_by_user(
        self,
        user_id: str,
        taggable_type: str,
        organization_id: str,
        since: datetime,
        limit: int = 50,
    ) -> List[Tuple[Tagging, Tag]]:
        """A user's latest taggings of one resource type with their tags.

        Only tags of the organization count toward ``limit``.

        Args:
            user_id: Tagging user
            taggable_type: Resource type
            organization_id: Owning organization of the tags
            since: Lower bound on created_at
            limit: Maximum rows

        Returns:
            (Tagging, Tag) pairs, newest first
        """
        result = await self.session.execute(
            select(Tagging, Tag)
            .join(Tag, Tag.id == Tagging.tag_id)
            .filter(
                and_(
                    Tagging.tagged_by == user_id,
                    Tagging.taggable_type == taggable_type,
                    Tag.organization_id == organization_id,
                    Tagging.created_at >= since,
                )
            )
            .order_by(Tagging.created_at.desc(), Tagging.id)
            .limit(limit)
        )
        return [(row.Tagging, row.Tag) for row in result.all()]

    async def top_tags_for_type(
        self, organization_id: str, taggable_type: str, limit: int = 10
    ) -> List[Tuple[Tag, int]]:
        """Most used tags of an organization for one resource type.

        Returns:
            (Tag, usage_count) pairs, most used first
        """
        usage = func.count(Tagging.id).label("usage_count")
        result = await self.session.execute(
            select(Tag, usage)
            .join(Tagging, Tagging.tag_id == Tag.id)
            .filter(and_(Tag.organization_id == organization_id, Tagging.taggable_type == taggable_type))
            .group_by(Tag.id)
            .order_by(usage.desc(), Tag.name)
            .limit(limit)
        )
        return [(row.Tag, row.usage_count) for row in result.all()]

    async def usage_counts(self, tag_ids: Sequence[str]) -> Dict[str, int]:
        """Number of taggings per tag ID (absent tags count 0)."""
        if not tag_ids:
            return {}
        result = await self.session.execute(
            select(Tagging.tag_id, func.count(Tagging.id))
            .filter(Tagging.tag_id.in_(list(tag_ids)))
            .group_by(Tagging.tag_id)
        )
        counts = {tag_id: 0 for tag_id in tag_ids}
        counts.update({tag_id: count for tag_id, count in result.all()})
        return counts

    def _tag_filter(self, tag_id: str, date_range: Optional[DateRange]):
        clauses = [Tagging.tag_id == tag_id]
        if date_range:
            clauses.append(Tagging.created_at >= date_range[0])
            clauses.append(Tagging.created_at <= date_range[1])
        return and_(*clauses)

    async def count_for_tag(self, tag_id: str, date_range: Optional[DateRange] = None) -> int:
        """Number of taggings of a tag, optionally inside a date range."""
        result = await self.session.execute(
            select(func.count(Tagging.id)).filter(self._tag_filter(tag_id, date_range))
        )
        return result.scalar_one()

    async def counts_by_type(
        self, tag_id: str, date_range: Optional[DateRange] = None
    ) -> Dict[str, int]:
        """Taggings of a tag grouped by resource type."""
        result = await self.session.execute(
            select(Tagging.taggable_type, func.count(Tagging.id))
            .filter(self._tag_filter(tag_id, date_range))
            .group_by(Tagging.taggable_type)
            .order_by(Tagging.taggable_type)
        )
        return {taggable_type: count for taggable_type, count in result.all()}

    async def counts_by_user(
        self, tag_id: str, date_range: Optional[DateRange] = None
    ) -> List[Tuple[str, int]]:
        """Taggings of a tag grouped by tagging user (anonymous rows skipped)."""
        usage = func.count(Tagging.id).label("usage_count")
        result = await self.session.execute(
            select(Tagging.tagged_by, usage)
            .filter(and_(self._tag_filter(tag_id, date_range), Tagging.tagged_by.is_not(None)))
            .group_by(Tagging.tagged_by)
            .order_by(usage.desc(), Tagging.tagged_by)
        )
        return [(user_id, count) for user_id, count in result.all()]

    async def created_at_since(self, tag_id: str, since: datetime) -> List[datetime]:
        """Creation timestamps of a tag's taggings after a cutoff."""
        result = await self.session.execute(
            select(Tagging.created_at)
            .filter(and_(Tagging.tag_id == tag_id, Tagging.created_at >= since))
            .order_by(Tagging.created_at)
        )
        return list(result.scalars().all())

    async def co_occurring(self, tag_id: str, limit: int = 10) -> List[Tuple[str, str, int]]:
        """Tags applied to the same resources as the given tag.

        Returns:
            (tag_id, tag_name, co_occurrence_count) rows, most frequent first
        """
        t1 = aliased(Tagging)
        t2 = aliased(Tagging)
        co_count = func.count().label("co_occurrence_count")
        result = await self.session.execute(
            select(t2.tag_id, Tag.name, co_count)
            .select_from(t1)
            .join(
                t2,
                and_(
                    t1.taggable_type == t2.taggable_type,
                    t1.taggable_id == t2.taggable_id,
                    t1.tag_id != t2.tag_id,
                ),
            )
            .join(Tag, Tag.id == t2.tag_id)
            .filter(t1.tag_id == tag_id)
            .group_by(t2.tag_id, Tag.name)
            .order_by(co_count.desc(), Tag.name)
            .limit(limit)
        )
        return [(row[0], row[1], row[2]) for row in result.all()]

    async def discard(self, tagging: Tagging) -> None:
        """Delete a tagging inside a savepoint.

        Used by best-effort loops: a failure undoes only this delete.
        """
        async with self.session.begin_nested():
            await self.session.delete(tagging)
