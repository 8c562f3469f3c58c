"""Tag catalog and tagging engine.

Tags form a forest per organization. Applying a tag to a resource also
applies every ancestor of that tag (inheritance); removing a tag prunes
taggings that no remaining tag on the resource justifies. Both inner
loops are best-effort: each step reports a PropagationOutcome and a
failed step never aborts the requested operation.
"""
import logging
from typing import List, Optional, Sequence, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tagging_service.core.errors import TagConflictError, TaggingError, TagNotFoundError
from tagging_service.db.models.tag import Tag
from tagging_service.db.models.tagging import Tagging
from tagging_service.repositories.audit_log_repository import AuditLogRepository
from tagging_service.repositories.tag_repository import TagRepository
from tagging_service.repositories.tagging_repository import TaggingRepository
from tagging_service.schemas.audit import AuditEvent
from tagging_service.schemas.tag import (
    BulkTagging,
    PropagationOutcome,
    TaggableType,
    TagCreate,
    TagFilters,
    TagNode,
    TagUpdate,
)
from tagging_service.services.audit_service import AuditService, AuditTrail
from tagging_service.services.tag_tree import TagTree

logger = logging.getLogger(__name__)

TaggableRef = Union[TaggableType, str]


def _taggable_type(value: TaggableRef) -> str:
    return TaggableType(value).value


class TagService:
    """Service for the tag hierarchy and for tagging resources."""

    def __init__(self, session: AsyncSession, audit: Optional[AuditTrail] = None):
        """Initialize tag service.

        Args:
            session: Async database session (one unit of work)
            audit: Audit collaborator (defaults to AuditService on the same session)
        """
        self.session = session
        self.tags = TagRepository(session)
        self.taggings = TaggingRepository(session)
        self.audit = audit if audit is not None else AuditService(session)

    async def _record(self, event: AuditEvent) -> None:
        """Fire-and-forget audit: failures are logged, never raised."""
        try:
            await self.audit.record(event)
        except Exception as e:
            logger.error(
                f"Failed to create audit log for {event.action} {event.resource_type} "
                f"{event.resource_id}: {e}"
            )

    async def _load_tree(self, organization_id: str) -> TagTree:
        return TagTree(await self.tags.list_by_organization(organization_id))

    async def _get_tag(self, tag_id: str) -> Tag:
        tag = await self.tags.get_by_id(tag_id)
        if not tag:
            raise TagNotFoundError("Tag not found", details={"tag_id": tag_id})
        return tag

    # Tag CRUD

    async def create_tag(self, data: TagCreate) -> Tag:
        """Create a tag at the root or under a parent.

        Raises:
            TagNotFoundError: parent is missing from the organization
            TagConflictError: a sibling already has this name
        """
        if data.parent_id:
            parent = await self.tags.get_in_organization(data.parent_id, data.organization_id)
            if not parent:
                raise TagNotFoundError("Parent tag not found", details={"parent_id": data.parent_id})

        existing = await self.tags.find_sibling(data.organization_id, data.parent_id, data.name)
        if existing:
            raise TagConflictError(
                "Tag with this name already exists at this level",
                details={"existing_tag_id": existing.id},
            )

        tag = await self.tags.create(
            Tag(
                name=data.name,
                parent_id=data.parent_id,
                color=data.color,
                description=data.description,
                organization_id=data.organization_id,
                created_by=data.created_by,
            )
        )
        logger.info(f"Created tag {tag.id} {tag.name!r} in organization {tag.organization_id}")

        await self._record(
            AuditEvent(
                organization_id=tag.organization_id,
                user_id=data.created_by,
                action="create",
                resource_type="tag",
                resource_id=tag.id,
                new_values=tag.to_dict(),
            )
        )
        return tag

    async def update_tag(self, tag_id: str, data: TagUpdate, user_id: str) -> Tag:
        """Rename, recolor, describe or move a tag.

        Only fields set on ``data`` change. Moving a tag under one of its
        own descendants (or itself) is rejected.

        Raises:
            TagNotFoundError: tag or new parent is missing
            TagConflictError: circular parent or sibling name clash
        """
        tag = await self._get_tag(tag_id)
        changes = data.model_dump(exclude_unset=True)
        if changes.get("name") is None:
            changes.pop("name", None)

        new_parent_id = changes.get("parent_id", tag.parent_id)
        parent_changed = "parent_id" in changes and new_parent_id != tag.parent_id

        if parent_changed and new_parent_id is not None:
            if new_parent_id == tag.id:
                raise TagConflictError("Cannot set parent: would create circular reference")
            parent = await self.tags.get_in_organization(new_parent_id, tag.organization_id)
            if not parent:
                raise TagNotFoundError("Parent tag not found", details={"parent_id": new_parent_id})
            tree = await self._load_tree(tag.organization_id)
            if tree.is_descendant(new_parent_id, tag.id):
                raise TagConflictError("Cannot set parent: would create circular reference")

        new_name = changes.get("name", tag.name)
        if new_name != tag.name or parent_changed:
            duplicate = await self.tags.find_sibling(
                tag.organization_id, new_parent_id, new_name, exclude_id=tag.id
            )
            if duplicate:
                raise TagConflictError(
                    "Tag with this name already exists at this level",
                    details={"existing_tag_id": duplicate.id},
                )

        old_values = tag.to_dict()
        updated = await self.tags.update(tag, **changes)
        logger.info(f"Updated tag {tag_id}: {sorted(changes)}")

        await self._record(
            AuditEvent(
                organization_id=updated.organization_id,
                user_id=user_id,
                action="update",
                resource_type="tag",
                resource_id=tag_id,
                old_values=old_values,
                new_values=updated.to_dict(),
            )
        )
        return updated

    async def delete_tag(self, tag_id: str, user_id: str) -> None:
        """Delete a tag that has neither children nor taggings.

        Raises:
            TagNotFoundError: tag is missing
            TagConflictError: tag has children or is in use
        """
        tag = await self._get_tag(tag_id)

        if await self.tags.count_children(tag_id) > 0:
            raise TagConflictError(
                "Cannot delete tag with children. Move or delete children first."
            )
        if await self.taggings.count_for_tag(tag_id) > 0:
            raise TagConflictError(
                "Cannot delete tag that is currently in use. Remove all taggings first."
            )

        old_values = tag.to_dict()
        organization_id = tag.organization_id
        await self.tags.delete(tag)
        logger.info(f"Deleted tag {tag_id} {old_values['name']!r}")

        await self._record(
            AuditEvent(
                organization_id=organization_id,
                user_id=user_id,
                action="delete",
                resource_type="tag",
                resource_id=tag_id,
                old_values=old_values,
            )
        )

    # Hierarchy

    async def get_tag_hierarchy(
        self, organization_id: str, filters: Optional[TagFilters] = None
    ) -> List[TagNode]:
        """One level of the forest (roots by default), sorted by name.

        With ``include_children`` every node carries its full subtree;
        with ``include_usage`` every node carries tagging and child counts.
        """
        filters = filters or TagFilters()
        level = await self.tags.list_level(
            organization_id,
            parent_id=filters.parent_id,
            search=filters.search,
            created_by=filters.created_by,
        )
        if not (filters.include_children or filters.include_usage):
            return [TagNode.model_validate(tag) for tag in level]

        tree = await self._load_tree(organization_id)
        usage = {}
        if filters.include_usage:
            scope = list(level)
            if filters.include_children:
                for tag in level:
                    scope.extend(tree.descendants(tag.id))
            usage = await self.taggings.usage_counts([tag.id for tag in scope])

        def build(tag: Tag, seen: frozenset) -> TagNode:
            node = TagNode.model_validate(tag)
            children = tree.children_of(tag.id)
            if filters.include_usage:
                node.usage_count = usage.get(tag.id, 0)
                node.child_count = len(children)
            if filters.include_children:
                node.children = [
                    build(child, seen | {child.id}) for child in children if child.id not in seen
                ]
            return node

        return [build(tag, frozenset({tag.id})) for tag in level]

    async def get_tag_path(self, tag_id: str) -> List[Tag]:
        """Tags from the root down to ``tag_id``; empty for an unknown tag."""
        tag = await self.tags.get_by_id(tag_id)
        if not tag:
            return []
        tree = await self._load_tree(tag.organization_id)
        return tree.path(tag_id)

    async def get_tag_descendants(self, tag_id: str) -> List[Tag]:
        """Every tag below ``tag_id``, depth-first; empty for an unknown tag."""
        tag = await self.tags.get_by_id(tag_id)
        if not tag:
            return []
        tree = await self._load_tree(tag.organization_id)
        return tree.descendants(tag_id)

    async def rollback_tag_change(self, tag_id: str, change_id: str, user_id: str) -> Tag:
        """Restore the name, parent, color and description an update replaced.

        The restore goes through update_tag, so it is validated and audited
        like any other update.

        Raises:
            TagNotFoundError: tag or change record is missing
            TagConflictError: the change is not an update, or restoring it
                would clash with the current hierarchy
        """
        change = await AuditLogRepository(self.session).get_by_id(change_id)
        if not change or change.resource_type != "tag" or change.resource_id != tag_id:
            raise TagNotFoundError("Change record not found", details={"change_id": change_id})
        if change.action != "update" or not change.old_values:
            raise TagConflictError(
                "Only tag updates can be rolled back", details={"action": change.action}
            )

        old = change.old_values
        restore = TagUpdate(
            name=old.get("name"),
            parent_id=old.get("parent_id"),
            color=old.get("color"),
            description=old.get("description"),
        )
        logger.info(f"Rolling back change {change_id} on tag {tag_id}")
        return await self.update_tag(tag_id, restore, user_id)

    # Tagging

    async def apply_tag(
        self,
        tag_id: str,
        taggable_type: TaggableRef,
        taggable_id: str,
        tagged_by: Optional[str] = None,
    ) -> Tagging:
        """Apply a tag, and through inheritance its ancestors, to a resource.

        Idempotent: an existing tagging is returned unchanged (an inherited
        one is only marked as directly applied) and nothing is audited.

        Raises:
            TagNotFoundError: tag is missing
        """
        taggable_type = _taggable_type(taggable_type)
        tag = await self._get_tag(tag_id)

        existing = await self.taggings.get(tag_id, taggable_type, taggable_id)
        if existing:
            if existing.is_inherited:
                existing = await self.taggings.update(existing, is_inherited=False)
            return existing

        try:
            tagging = await self.taggings.create(
                Tagging(
                    tag_id=tag_id,
                    taggable_type=taggable_type,
                    taggable_id=taggable_id,
                    tagged_by=tagged_by,
                    is_inherited=False,
                )
            )
        except TagConflictError:
            # Another writer applied the same tag between the lookup and the insert
            existing = await self.taggings.get(tag_id, taggable_type, taggable_id)
            if existing is None:
                raise
            logger.info(f"Tag {tag_id} already applied to {taggable_type}:{taggable_id} concurrently")
            return existing
        logger.info(f"Applied tag {tag_id} to {taggable_type}:{taggable_id}")

        await self.propagate_inheritance(tag_id, taggable_type, taggable_id, tagged_by)

        await self._record(
            AuditEvent(
                organization_id=tag.organization_id,
                user_id=tagged_by,
                action="create",
                resource_type="tagging",
                resource_id=tagging.id,
                new_values=tagging.to_dict(),
            )
        )
        return tagging

    async def propagate_inheritance(
        self,
        tag_id: str,
        taggable_type: TaggableRef,
        taggable_id: str,
        tagged_by: Optional[str] = None,
    ) -> List[PropagationOutcome]:
        """Apply every ancestor of ``tag_id`` to the resource, best-effort.

        Returns:
            One outcome per ancestor, root first
        """
        taggable_type = _taggable_type(taggable_type)
        outcomes: List[PropagationOutcome] = []
        path = await self.get_tag_path(tag_id)

        for ancestor in path[:-1]:
            try:
                if await self.taggings.get(ancestor.id, taggable_type, taggable_id):
                    outcomes.append(PropagationOutcome(tag_id=ancestor.id, status="existing"))
                    continue
                await self.taggings.create(
                    Tagging(
                        tag_id=ancestor.id,
                        taggable_type=taggable_type,
                        taggable_id=taggable_id,
                        tagged_by=tagged_by,
                        is_inherited=True,
                    )
                )
                outcomes.append(PropagationOutcome(tag_id=ancestor.id, status="applied"))
            except (TaggingError, SQLAlchemyError) as e:
                logger.warning(
                    f"Skipped inherited tag {ancestor.id} on {taggable_type}:{taggable_id}: {e}"
                )
                outcomes.append(PropagationOutcome(tag_id=ancestor.id, status="failed", error=str(e)))

        return outcomes

    async def remove_tag(
        self,
        tag_id: str,
        taggable_type: TaggableRef,
        taggable_id: str,
        user_id: Optional[str] = None,
    ) -> List[PropagationOutcome]:
        """Remove a tag from a resource and prune what it no longer justifies.

        Returns:
            Outcomes of the pruning steps

        Raises:
            TagNotFoundError: the tag is not applied to the resource
        """
        taggable_type = _taggable_type(taggable_type)
        tagging = await self.taggings.get(tag_id, taggable_type, taggable_id)
        if not tagging:
            raise TagNotFoundError(
                "Tagging not found",
                details={"tag_id": tag_id, "taggable_type": taggable_type, "taggable_id": taggable_id},
            )

        tag = await self._get_tag(tag_id)
        old_values = tagging.to_dict()
        await self.taggings.delete(tagging)
        logger.info(f"Removed tag {tag_id} from {taggable_type}:{taggable_id}")

        outcomes = await self.prune_inherited(tag, taggable_type, taggable_id)

        await self._record(
            AuditEvent(
                organization_id=tag.organization_id,
                user_id=user_id,
                action="delete",
                resource_type="tagging",
                resource_id=old_values["id"],
                old_values=old_values,
            )
        )
        return outcomes

    async def prune_inherited(
        self, tag: Tag, taggable_type: TaggableRef, taggable_id: str
    ) -> List[PropagationOutcome]:
        """Drop taggings left unjustified after ``tag`` was removed.

        Descendants of ``tag`` go unless another tag still on the resource
        has them below it. Ancestors go only when they were inherited and
        no remaining tag sits below them, nearest ancestor first.
        Remaining taggings are re-read after every step.

        Returns:
            One outcome per descendant, then per ancestor
        """
        taggable_type = _taggable_type(taggable_type)
        tree = await self._load_tree(tag.organization_id)
        outcomes: List[PropagationOutcome] = []

        for descendant in tree.descendants(tag.id):
            remaining = await self.taggings.list_for_resource(taggable_type, taggable_id)
            current = next((t for t in remaining if t.tag_id == descendant.id), None)
            if current is None:
                outcomes.append(PropagationOutcome(tag_id=descendant.id, status="skipped"))
                continue

            justified = any(
                tree.is_descendant(descendant.id, other.tag_id)
                for other in remaining
                if other.tag_id != tag.id
            )
            if justified:
                outcomes.append(PropagationOutcome(tag_id=descendant.id, status="kept"))
                continue

            outcomes.append(await self._discard(current, taggable_type, taggable_id))

        for ancestor in reversed(tree.ancestors(tag.id)):
            remaining = await self.taggings.list_for_resource(taggable_type, taggable_id)
            current = next((t for t in remaining if t.tag_id == ancestor.id), None)
            if current is None:
                outcomes.append(PropagationOutcome(tag_id=ancestor.id, status="skipped"))
                continue

            justified = not current.is_inherited or any(
                tree.is_descendant(other.tag_id, ancestor.id) for other in remaining
            )
            if justified:
                outcomes.append(PropagationOutcome(tag_id=ancestor.id, status="kept"))
                continue

            outcomes.append(await self._discard(current, taggable_type, taggable_id))

        return outcomes

    async def _discard(
        self, tagging: Tagging, taggable_type: str, taggable_id: str
    ) -> PropagationOutcome:
        tag_id = tagging.tag_id
        try:
            await self.taggings.discard(tagging)
        except SQLAlchemyError as e:
            logger.warning(f"Could not prune tag {tag_id} from {taggable_type}:{taggable_id}: {e}")
            return PropagationOutcome(tag_id=tag_id, status="failed", error=str(e))
        return PropagationOutcome(tag_id=tag_id, status="removed")

    async def bulk_apply_tags(self, data: BulkTagging) -> List[Tagging]:
        """Apply every tag to every resource; failed pairs are logged and skipped.

        Returns:
            Taggings of the pairs that succeeded
        """
        results: List[Tagging] = []

        for tag_id in data.tag_ids:
            for taggable_id in data.taggable_ids:
                try:
                    tagging = await self.apply_tag(tag_id, data.taggable_type, taggable_id, data.tagged_by)
                    results.append(tagging)
                except (TaggingError, SQLAlchemyError) as e:
                    logger.error(f"Failed to apply tag {tag_id} to {taggable_id}: {e}")

        return results

    async def bulk_remove_tags(self, data: BulkTagging, user_id: Optional[str] = None) -> None:
        """Remove every tag from every resource; failed pairs are logged and skipped."""
        for tag_id in data.tag_ids:
            for taggable_id in data.taggable_ids:
                try:
                    await self.remove_tag(tag_id, data.taggable_type, taggable_id, user_id)
                except (TaggingError, SQLAlchemyError) as e:
                    logger.error(f"Failed to remove tag {tag_id} from {taggable_id}: {e}")

    # Resource lookups

    async def get_resource_tags(self, taggable_type: TaggableRef, taggable_id: str) -> List[Tag]:
        """Tags currently applied to one resource."""
        return await self.taggings.tags_for_resource(_taggable_type(taggable_type), taggable_id)

    async def get_resources_by_tags(
        self, taggable_type: TaggableRef, tag_ids: Sequence[str], organization_id: str
    ) -> List[str]:
        """IDs of resources carrying any of the tags within the organization."""
        return await self.taggings.resource_ids_by_tags(
            _taggable_type(taggable_type), tag_ids, organization_id
        )

    async def set_resource_tags(
        self,
        taggable_type: TaggableRef,
        taggable_id: str,
        tag_ids: Sequence[str],
        organization_id: str,
        user_id: Optional[str] = None,
    ) -> List[Tag]:
        """Make the directly applied tags of a resource equal ``tag_ids``.

        Raises:
            TagNotFoundError: some tag IDs are unknown in the organization
                (checked before anything changes)

        Returns:
            The organization's tags on the resource afterwards, inherited
            ones included
        """
        taggable_type = _taggable_type(taggable_type)
        wanted = list(dict.fromkeys(tag_ids))
        found = {tag.id for tag in await self.tags.get_by_ids(wanted, organization_id)}
        missing = [tag_id for tag_id in wanted if tag_id not in found]
        if missing:
            raise TagNotFoundError(
                f"Tags not found: {', '.join(missing)}", details={"missing_tag_ids": missing}
            )

        current = await self.taggings.list_for_resource(taggable_type, taggable_id)
        # Only this organization's taggings are replaced
        owned = {
            tag.id
            for tag in await self.tags.get_by_ids([t.tag_id for t in current], organization_id)
        }
        stale = [
            t.tag_id
            for t in current
            if t.tag_id in owned and not t.is_inherited and t.tag_id not in found
        ]
        for tag_id in stale:
            try:
                await self.remove_tag(tag_id, taggable_type, taggable_id, user_id)
            except TagNotFoundError:
                # already pruned by an earlier removal
                continue

        for tag_id in wanted:
            await self.apply_tag(tag_id, taggable_type, taggable_id, user_id)

        return [
            tag
            for tag in await self.get_resource_tags(taggable_type, taggable_id)
            if tag.organization_id == organization_id
        ]
