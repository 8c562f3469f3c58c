"""Tests for applying and removing tags, inheritance and pruning."""
import logging

import pytest
from sqlalchemy import select

from tagging_service.core.errors import TagConflictError, TagNotFoundError
from tagging_service.db.models import AuditLog, Tagging
from tagging_service.schemas import BulkTagging, TagCreate
from tagging_service.services import NullAuditTrail, TagService

from tests.conftest import ORG_ID, OTHER_ORG_ID, USER_ID


async def resource_tag_names(tag_service, taggable_id="T1", taggable_type="task"):
    return [tag.name for tag in await tag_service.get_resource_tags(taggable_type, taggable_id)]


def statuses(outcomes):
    return [(outcome.tag_id, outcome.status) for outcome in outcomes]


class TestApplyTag:
    """Test apply_tag and ancestor inheritance."""

    @pytest.mark.asyncio
    async def test_apply_adds_ancestors(self, tag_service, tree):
        tagging = await tag_service.apply_tag(tree["leaf"].id, "task", "T1", USER_ID)

        assert tagging.tag_id == tree["leaf"].id
        assert tagging.is_inherited is False
        assert await resource_tag_names(tag_service) == ["Leaf", "Middle", "Root"]

    @pytest.mark.asyncio
    async def test_inherited_taggings_are_marked(self, tag_service, tree, session):
        await tag_service.apply_tag(tree["leaf"].id, "task", "T1", USER_ID)

        rows = (await session.execute(select(Tagging))).scalars().all()
        inherited = {row.tag_id: row.is_inherited for row in rows}
        assert inherited == {
            tree["leaf"].id: False,
            tree["middle"].id: True,
            tree["root"].id: True,
        }

    @pytest.mark.asyncio
    async def test_apply_is_idempotent(self, tag_service, tree, session):
        first = await tag_service.apply_tag(tree["leaf"].id, "task", "T1", USER_ID)
        second = await tag_service.apply_tag(tree["leaf"].id, "task", "T1", USER_ID)

        assert first.id == second.id
        rows = (
            await session.execute(select(Tagging).filter(Tagging.tag_id == tree["leaf"].id))
        ).scalars().all()
        assert len(rows) == 1

    @pytest.mark.asyncio
    async def test_same_tag_on_other_resource_type_is_separate(self, tag_service, tree):
        await tag_service.apply_tag(tree["root"].id, "task", "T1")
        await tag_service.apply_tag(tree["root"].id, "document", "T1")

        assert await resource_tag_names(tag_service, "T1", "task") == ["Root"]
        assert await resource_tag_names(tag_service, "T1", "document") == ["Root"]

    @pytest.mark.asyncio
    async def test_reapplying_inherited_tag_makes_it_direct(self, tag_service, tree, session):
        await tag_service.apply_tag(tree["leaf"].id, "task", "T1")

        tagging = await tag_service.apply_tag(tree["middle"].id, "task", "T1")

        assert tagging.is_inherited is False
        logs = (
            await session.execute(select(AuditLog).filter(AuditLog.resource_type == "tagging"))
        ).scalars().all()
        assert len(logs) == 1

    @pytest.mark.asyncio
    async def test_only_direct_tagging_is_audited(self, tag_service, tree, session):
        tagging = await tag_service.apply_tag(tree["leaf"].id, "task", "T1", USER_ID)

        logs = (
            await session.execute(select(AuditLog).filter(AuditLog.resource_type == "tagging"))
        ).scalars().all()
        assert len(logs) == 1
        assert logs[0].resource_id == tagging.id
        assert logs[0].user_id == USER_ID
        assert logs[0].organization_id == ORG_ID

    @pytest.mark.asyncio
    async def test_unknown_tag_not_found(self, tag_service):
        with pytest.raises(TagNotFoundError):
            await tag_service.apply_tag("missing", "task", "T1")

    @pytest.mark.asyncio
    async def test_unknown_resource_type_rejected(self, tag_service, tree):
        with pytest.raises(ValueError):
            await tag_service.apply_tag(tree["root"].id, "invoice", "T1")

    @pytest.mark.asyncio
    async def test_propagation_reports_each_ancestor(self, tag_service, tree):
        await tag_service.apply_tag(tree["middle"].id, "task", "T1")

        outcomes = await tag_service.propagate_inheritance(tree["leaf"].id, "task", "T1")

        assert statuses(outcomes) == [
            (tree["root"].id, "existing"),
            (tree["middle"].id, "existing"),
        ]

    @pytest.mark.asyncio
    async def test_failed_ancestor_does_not_abort(self, tag_service, tree, monkeypatch):
        original_create = tag_service.taggings.create

        async def flaky_create(tagging):
            if tagging.tag_id == tree["root"].id:
                raise TagConflictError("Tagging violates a uniqueness constraint")
            return await original_create(tagging)

        monkeypatch.setattr(tag_service.taggings, "create", flaky_create)

        await tag_service.apply_tag(tree["leaf"].id, "task", "T1")
        outcomes = await tag_service.propagate_inheritance(tree["leaf"].id, "task", "T1")

        assert await resource_tag_names(tag_service) == ["Leaf", "Middle"]
        assert statuses(outcomes) == [
            (tree["root"].id, "failed"),
            (tree["middle"].id, "existing"),
        ]
        assert "uniqueness" in outcomes[0].error

    @pytest.mark.asyncio
    async def test_concurrent_apply_returns_existing_tagging(
        self, tag_service, tree, session, monkeypatch
    ):
        first = await tag_service.apply_tag(tree["other"].id, "task", "T1", USER_ID)
        original_get = tag_service.taggings.get
        calls = []

        async def stale_get(*args):
            calls.append(args)
            if len(calls) == 1:
                return None
            return await original_get(*args)

        monkeypatch.setattr(tag_service.taggings, "get", stale_get)

        second = await tag_service.apply_tag(tree["other"].id, "task", "T1", USER_ID)

        assert second.id == first.id
        assert len(calls) == 2
        rows = (
            await session.execute(select(Tagging).filter(Tagging.tag_id == tree["other"].id))
        ).scalars().all()
        assert len(rows) == 1


class TestRemoveTag:
    """Test remove_tag and pruning of unjustified taggings."""

    @pytest.mark.asyncio
    async def test_removing_only_child_prunes_inherited_parent(self, tag_service, make_tag):
        audit = await make_tag("Audit")
        field_work = await make_tag("FieldWork", parent=audit)
        await tag_service.apply_tag(field_work.id, "task", "T1")
        assert await resource_tag_names(tag_service) == ["Audit", "FieldWork"]

        outcomes = await tag_service.remove_tag(field_work.id, "task", "T1")

        assert await resource_tag_names(tag_service) == []
        assert statuses(outcomes) == [(audit.id, "removed")]

    @pytest.mark.asyncio
    async def test_sibling_keeps_shared_ancestors(self, tag_service, tree):
        await tag_service.apply_tag(tree["leaf"].id, "task", "T1")
        await tag_service.apply_tag(tree["sibling"].id, "task", "T1")

        outcomes = await tag_service.remove_tag(tree["leaf"].id, "task", "T1")

        assert await resource_tag_names(tag_service) == ["Middle", "Root", "Sibling"]
        assert statuses(outcomes) == [
            (tree["middle"].id, "kept"),
            (tree["root"].id, "kept"),
        ]

    @pytest.mark.asyncio
    async def test_removing_root_prunes_descendants(self, tag_service, tree):
        await tag_service.apply_tag(tree["leaf"].id, "task", "T1")

        outcomes = await tag_service.remove_tag(tree["root"].id, "task", "T1")

        assert await resource_tag_names(tag_service) == []
        assert statuses(outcomes) == [
            (tree["middle"].id, "removed"),
            (tree["leaf"].id, "removed"),
            (tree["sibling"].id, "skipped"),
        ]

    @pytest.mark.asyncio
    async def test_descendant_under_remaining_ancestor_is_kept(self, tag_service, tree):
        await tag_service.apply_tag(tree["leaf"].id, "task", "T1")
        await tag_service.apply_tag(tree["root"].id, "task", "T1")

        outcomes = await tag_service.remove_tag(tree["middle"].id, "task", "T1")

        assert await resource_tag_names(tag_service) == ["Leaf", "Root"]
        assert (tree["leaf"].id, "kept") in statuses(outcomes)
        assert (tree["root"].id, "kept") in statuses(outcomes)

    @pytest.mark.asyncio
    async def test_directly_applied_ancestor_is_kept(self, tag_service, tree):
        await tag_service.apply_tag(tree["middle"].id, "task", "T1")
        await tag_service.apply_tag(tree["leaf"].id, "task", "T1")

        await tag_service.remove_tag(tree["leaf"].id, "task", "T1")

        assert await resource_tag_names(tag_service) == ["Middle", "Root"]

    @pytest.mark.asyncio
    async def test_other_resources_untouched(self, tag_service, tree):
        await tag_service.apply_tag(tree["leaf"].id, "task", "T1")
        await tag_service.apply_tag(tree["leaf"].id, "task", "T2")

        await tag_service.remove_tag(tree["leaf"].id, "task", "T1")

        assert await resource_tag_names(tag_service, "T2") == ["Leaf", "Middle", "Root"]

    @pytest.mark.asyncio
    async def test_missing_tagging_not_found(self, tag_service, tree):
        with pytest.raises(TagNotFoundError, match="Tagging not found"):
            await tag_service.remove_tag(tree["leaf"].id, "task", "T1")

    @pytest.mark.asyncio
    async def test_removal_is_audited(self, tag_service, tree, session):
        tagging = await tag_service.apply_tag(tree["other"].id, "task", "T1")

        await tag_service.remove_tag(tree["other"].id, "task", "T1", USER_ID)

        log = (
            await session.execute(
                select(AuditLog).filter(
                    AuditLog.resource_type == "tagging", AuditLog.action == "delete"
                )
            )
        ).scalar_one()
        assert log.resource_id == tagging.id
        assert log.old_values["tag_id"] == tree["other"].id


class TestBulkAndLookups:
    """Test bulk operations and resource lookups."""

    @pytest.mark.asyncio
    async def test_bulk_apply_skips_failures(self, tag_service, tree, caplog):
        data = BulkTagging(
            tag_ids=[tree["other"].id, "missing"],
            taggable_type="document",
            taggable_ids=["D1", "D2"],
            tagged_by=USER_ID,
        )

        with caplog.at_level(logging.ERROR):
            results = await tag_service.bulk_apply_tags(data)

        assert len(results) == 2
        assert {t.taggable_id for t in results} == {"D1", "D2"}
        assert "Failed to apply tag missing" in caplog.text

    @pytest.mark.asyncio
    async def test_bulk_remove(self, tag_service, tree):
        for taggable_id in ("D1", "D2"):
            await tag_service.apply_tag(tree["other"].id, "document", taggable_id)

        await tag_service.bulk_remove_tags(
            BulkTagging(tag_ids=[tree["other"].id], taggable_type="document", taggable_ids=["D1", "D2", "D3"])
        )

        assert await resource_tag_names(tag_service, "D1", "document") == []
        assert await resource_tag_names(tag_service, "D2", "document") == []

    @pytest.mark.asyncio
    async def test_resources_by_tags_dedupes(self, tag_service, tree):
        await tag_service.apply_tag(tree["leaf"].id, "task", "T1")
        await tag_service.apply_tag(tree["leaf"].id, "task", "T2")
        await tag_service.apply_tag(tree["other"].id, "task", "T2")
        await tag_service.apply_tag(tree["other"].id, "email", "E1")

        ids = await tag_service.get_resources_by_tags("task", [tree["leaf"].id, tree["other"].id], ORG_ID)

        assert sorted(ids) == ["T1", "T2"]

    @pytest.mark.asyncio
    async def test_resources_by_tags_is_organization_scoped(self, tag_service, make_tag):
        foreign = await make_tag("Foreign", organization_id=OTHER_ORG_ID)
        await tag_service.apply_tag(foreign.id, "task", "T9")

        assert await tag_service.get_resources_by_tags("task", [foreign.id], ORG_ID) == []
        assert await tag_service.get_resources_by_tags("task", [foreign.id], OTHER_ORG_ID) == ["T9"]

    @pytest.mark.asyncio
    async def test_set_resource_tags_replaces_direct_tags(self, tag_service, tree):
        await tag_service.apply_tag(tree["leaf"].id, "task", "T1")
        await tag_service.apply_tag(tree["other"].id, "task", "T1")

        tags = await tag_service.set_resource_tags("task", "T1", [tree["sibling"].id], ORG_ID, USER_ID)

        assert [tag.name for tag in tags] == ["Middle", "Root", "Sibling"]

    @pytest.mark.asyncio
    async def test_set_resource_tags_keeps_other_organization_tags(self, tag_service, make_tag):
        foreign = await make_tag("Foreign", organization_id=OTHER_ORG_ID)
        mine = await make_tag("Mine")
        await tag_service.apply_tag(foreign.id, "task", "T1")

        tags = await tag_service.set_resource_tags("task", "T1", [mine.id], ORG_ID, USER_ID)

        assert [tag.name for tag in tags] == ["Mine"]
        assert await resource_tag_names(tag_service) == ["Foreign", "Mine"]

    @pytest.mark.asyncio
    async def test_set_resource_tags_rejects_unknown_before_changing(self, tag_service, tree):
        await tag_service.apply_tag(tree["other"].id, "task", "T1")

        with pytest.raises(TagNotFoundError, match="missing"):
            await tag_service.set_resource_tags("task", "T1", [tree["leaf"].id, "missing"], ORG_ID)

        assert await resource_tag_names(tag_service) == ["Other"]


class ExplodingTrail:
    async def record(self, event):
        raise RuntimeError("audit store unavailable")


class TestAuditIsolation:
    """Audit failures never fail the mutation."""

    @pytest.mark.asyncio
    async def test_audit_failure_is_logged_not_raised(self, session, caplog):
        service = TagService(session, audit=ExplodingTrail())

        with caplog.at_level(logging.ERROR):
            tag = await service.create_tag(TagCreate(name="Tax", organization_id=ORG_ID, created_by=USER_ID))
            await service.apply_tag(tag.id, "task", "T1", USER_ID)

        assert tag.id is not None
        assert [t.name for t in await service.get_resource_tags("task", "T1")] == ["Tax"]
        assert "Failed to create audit log" in caplog.text

    @pytest.mark.asyncio
    async def test_null_trail_writes_nothing(self, session):
        service = TagService(session, audit=NullAuditTrail())

        await service.create_tag(TagCreate(name="Tax", organization_id=ORG_ID, created_by=USER_ID))

        assert (await session.execute(select(AuditLog))).scalars().all() == []
