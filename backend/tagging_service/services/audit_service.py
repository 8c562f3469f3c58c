"""Audit trail for tag and tagging mutations."""
import logging
from typing import List, Optional, Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from tagging_service.db.models.audit_log import AuditLog
from tagging_service.repositories.audit_log_repository import AuditLogRepository
from tagging_service.schemas.audit import AuditEvent, AuditLogFilters, AuditLogPage, AuditLogRead

logger = logging.getLogger(__name__)


class AuditTrail(Protocol):
    """Anything that can record an audit event."""

    async def record(self, event: AuditEvent) -> None:
        ...


class NullAuditTrail:
    """Audit trail that drops every event."""

    async def record(self, event: AuditEvent) -> None:
        return None


class AuditService:
    """Persist audit events in ``audit_logs`` and query them back."""

    def __init__(self, session: AsyncSession):
        """Initialize audit service.

        Args:
            session: Async database session shared with the mutating service
        """
        self.session = session
        self.repo = AuditLogRepository(session)

    async def record(self, event: AuditEvent) -> None:
        """Write one audit row inside a savepoint.

        A failed write rolls back only the savepoint, so the caller's
        unit of work stays usable.
        """
        async with self.session.begin_nested():
            self.session.add(AuditLog(**event.model_dump()))

    async def get_tag_change_history(self, tag_id: str, limit: int = 50) -> List[AuditLogRead]:
        """Create, update and delete records of one tag, newest first."""
        logs = await self.repo.for_resource("tag", tag_id, limit=max(limit, 1))
        return [AuditLogRead.model_validate(log) for log in logs]

    async def get_audit_logs(
        self,
        organization_id: str,
        filters: Optional[AuditLogFilters] = None,
        page: int = 1,
        limit: int = 50,
    ) -> AuditLogPage:
        """Page through an organization's audit logs, newest first.

        Args:
            organization_id: Owning organization
            filters: Optional action/resource/user/date filters
            page: 1-based page number
            limit: Page size

        Returns:
            AuditLogPage with the logs and the total match count
        """
        page = max(page, 1)
        limit = max(limit, 1)
        logs, total = await self.repo.search(
            organization_id, filters or AuditLogFilters(), (page - 1) * limit, limit
        )
        return AuditLogPage(
            logs=[AuditLogRead.model_validate(log) for log in logs],
            total=total,
            page=page,
            limit=limit,
        )
