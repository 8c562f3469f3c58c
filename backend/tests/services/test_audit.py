"""Tests for the audit trail."""
from datetime import datetime, timedelta, timezone

import pytest

from tagging_service.schemas import AuditEvent, AuditLogFilters, TagUpdate
from tagging_service.services import AuditService

from tests.conftest import ORG_ID, OTHER_ORG_ID, USER_ID


class TestAuditService:
    @pytest.mark.asyncio
    async def test_record_persists_event(self, session):
        audit = AuditService(session)

        await audit.record(
            AuditEvent(
                organization_id=ORG_ID,
                user_id=USER_ID,
                action="delete",
                resource_type="tagging",
                resource_id="tagging-1",
                old_values={"tag_id": "tag-1"},
            )
        )
        page = await audit.get_audit_logs(ORG_ID)

        assert page.total == 1
        log = page.logs[0]
        assert (log.action, log.resource_type, log.resource_id) == ("delete", "tagging", "tagging-1")
        assert log.old_values == {"tag_id": "tag-1"}
        assert log.new_values is None

    @pytest.mark.asyncio
    async def test_pagination(self, session, tree):
        audit = AuditService(session)

        first = await audit.get_audit_logs(ORG_ID, page=1, limit=2)
        last = await audit.get_audit_logs(ORG_ID, page=3, limit=2)

        assert first.total == 5
        assert len(first.logs) == 2
        assert len(last.logs) == 1
        assert (last.page, last.limit) == (3, 2)

    @pytest.mark.asyncio
    async def test_filter_by_action_and_resource_type(self, session, tree, tag_service):
        await tag_service.update_tag(tree["other"].id, TagUpdate(color="#123456"), USER_ID)
        await tag_service.apply_tag(tree["other"].id, "task", "T1", USER_ID)
        audit = AuditService(session)

        updates = await audit.get_audit_logs(ORG_ID, AuditLogFilters(actions=["update"]))
        taggings = await audit.get_audit_logs(ORG_ID, AuditLogFilters(resource_types=["tagging"]))

        assert [log.resource_id for log in updates.logs] == [tree["other"].id]
        assert taggings.total == 1

    @pytest.mark.asyncio
    async def test_filter_by_user_and_resource(self, session, make_tag):
        tax = await make_tag("Tax")
        await make_tag("Audit", created_by="user-bob")
        audit = AuditService(session)

        by_bob = await audit.get_audit_logs(ORG_ID, AuditLogFilters(user_id="user-bob"))
        by_resource = await audit.get_audit_logs(ORG_ID, AuditLogFilters(resource_id=tax.id))

        assert by_bob.total == 1
        assert by_bob.logs[0].new_values["name"] == "Audit"
        assert by_resource.total == 1

    @pytest.mark.asyncio
    async def test_date_window(self, session, make_tag):
        await make_tag("Tax")
        audit = AuditService(session)
        now = datetime.now(timezone.utc)

        inside = await audit.get_audit_logs(
            ORG_ID, AuditLogFilters(start_date=now - timedelta(hours=1), end_date=now + timedelta(hours=1))
        )
        future = await audit.get_audit_logs(ORG_ID, AuditLogFilters(start_date=now + timedelta(hours=1)))

        assert inside.total == 1
        assert future.total == 0

    @pytest.mark.asyncio
    async def test_organizations_are_isolated(self, session, make_tag):
        await make_tag("Tax")
        await make_tag("Tax", organization_id=OTHER_ORG_ID)

        page = await AuditService(session).get_audit_logs(OTHER_ORG_ID)

        assert page.total == 1
        assert page.logs[0].organization_id == OTHER_ORG_ID

    @pytest.mark.asyncio
    async def test_tag_change_history(self, session, make_tag, tag_service):
        tax = await make_tag("Tax")
        other = await make_tag("Audit")
        await tag_service.update_tag(tax.id, TagUpdate(name="Taxes"), USER_ID)

        history = await AuditService(session).get_tag_change_history(tax.id)

        assert {log.action for log in history} == {"create", "update"}
        assert all(log.resource_id == tax.id for log in history)
        assert len(await AuditService(session).get_tag_change_history(other.id)) == 1
