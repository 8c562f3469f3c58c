"""Tag repository with organization scoping and sibling lookups."""
from typing import List, Optional, Sequence

from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from tagging_service.db.models.tag import Tag
from tagging_service.repositories.base_repository import BaseRepository


class TagRepository(BaseRepository[Tag]):
    """Repository for Tag model with hierarchy management."""

    def __init__(self, session: AsyncSession):
        """Initialize tag repository.

        Args:
            session: Async database session
        """
        super().__init__(Tag, session)

    async def get_in_organization(self, tag_id: str, organization_id: str) -> Optional[Tag]:
        """Get tag by ID only if it belongs to the organization.

        Args:
            tag_id: Tag ID
            organization_id: Owning organization

        Returns:
            Tag instance or None if not found
        """
        result = await self.session.execute(
            select(Tag).filter(and_(Tag.id == tag_id, Tag.organization_id == organization_id))
        )
        return result.scalar_one_or_none()

    async def find_sibling(
        self,
        organization_id: str,
        parent_id: Optional[str],
        name: str,
        exclude_id: Optional[str] = None,
    ) -> Optional[Tag]:
        """Find a tag with the same name under the same parent (or at root).

        Args:
            organization_id: Owning organization
            parent_id: Parent tag ID, None for the root level
            name: Exact tag name
            exclude_id: Tag ID to ignore (the tag being renamed)

        Returns:
            Clashing Tag or None
        """
        query = select(Tag).filter(
            and_(Tag.organization_id == organization_id, Tag.name == name)
        )
        if parent_id is None:
            query = query.filter(Tag.parent_id.is_(None))
        else:
            query = query.filter(Tag.parent_id == parent_id)
        if exclude_id:
            query = query.filter(Tag.id != exclude_id)

        result = await self.session.execute(query.limit(1))
        return result.scalar_one_or_none()

    async def list_by_organization(self, organization_id: str) -> List[Tag]:
        """List every tag of an organization ordered by name.

        Args:
            organization_id: Owning organization

        Returns:
            List of Tag instances
        """
        result = await self.session.execute(
            select(Tag).filter(Tag.organization_id == organization_id).order_by(Tag.name, Tag.id)
        )
        return list(result.scalars().all())

    async def list_level(
        self,
        organization_id: str,
        parent_id: Optional[str] = None,
        search: Optional[str] = None,
        created_by: Optional[str] = None,
    ) -> List[Tag]:
        """List the direct children of a parent (root level when None).

        Args:
            organization_id: Owning organization
            parent_id: Parent tag ID or None for roots
            search: Case-insensitive name substring
            created_by: Only tags created by this user

        Returns:
            List of Tag instances sorted by name
        """
        query = select(Tag).filter(Tag.organization_id == organization_id)

        if parent_id is None:
            query = query.filter(Tag.parent_id.is_(None))
        else:
            query = query.filter(Tag.parent_id == parent_id)

        if search:
            query = query.filter(func.lower(Tag.name).contains(search.lower(), autoescape=True))

        if created_by:
            query = query.filter(Tag.created_by == created_by)

        result = await self.session.execute(query.order_by(Tag.name, Tag.id))
        return list(result.scalars().all())

    async def count_children(self, tag_id: str) -> int:
        """Count direct children of a tag."""
        result = await self.session.execute(
            select(func.count(Tag.id)).filter(Tag.parent_id == tag_id)
        )
        return result.scalar_one()

    async def get_by_ids(
        self, tag_ids: Sequence[str], organization_id: Optional[str] = None
    ) -> List[Tag]:
        """Fetch tags by IDs, optionally restricted to one organization.

        Args:
            tag_ids: Tag IDs
            organization_id: Owning organization filter

        Returns:
            List of Tag instances sorted by name (missing IDs are skipped)
        """
        if not tag_ids:
            return []
        query = select(Tag).filter(Tag.id.in_(list(tag_ids)))
        if organization_id:
            query = query.filter(Tag.organization_id == organization_id)
        result = await self.session.execute(query.order_by(Tag.name, Tag.id))
        return list(result.scalars().all())
