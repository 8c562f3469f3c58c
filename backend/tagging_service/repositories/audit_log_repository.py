"""Audit log repository."""
from typing import List, Tuple

from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from tagging_service.db.models.audit_log import AuditLog
from tagging_service.repositories.base_repository import BaseRepository
from tagging_service.schemas.audit import AuditLogFilters


class AuditLogRepository(BaseRepository[AuditLog]):
    """Repository for AuditLog model."""

    def __init__(self, session: AsyncSession):
        super().__init__(AuditLog, session)

    async def search(
        self, organization_id: str, filters: AuditLogFilters, offset: int, limit: int
    ) -> Tuple[List[AuditLog], int]:
        """Filtered page of an organization's audit logs, newest first.

        Returns:
            (logs, total matching rows)
        """
        clauses = [AuditLog.organization_id == organization_id]
        if filters.actions:
            clauses.append(AuditLog.action.in_(filters.actions))
        if filters.resource_types:
            clauses.append(AuditLog.resource_type.in_(filters.resource_types))
        if filters.user_id:
            clauses.append(AuditLog.user_id == filters.user_id)
        if filters.resource_id:
            clauses.append(AuditLog.resource_id == filters.resource_id)
        if filters.start_date:
            clauses.append(AuditLog.created_at >= filters.start_date)
        if filters.end_date:
            clauses.append(AuditLog.created_at <= filters.end_date)
        where = and_(*clauses)

        total = (await self.session.execute(select(func.count(AuditLog.id)).filter(where))).scalar_one()
        result = await self.session.execute(
            select(AuditLog)
            .filter(where)
            .order_by(AuditLog.created_at.desc(), AuditLog.id)
            .offset(offset)
            .limit(limit)
        )
        return list(result.scalars().all()), total

    async def for_resource(self, resource_type: str, resource_id: str, limit: int = 50) -> List[AuditLog]:
        """Audit logs of one tag or tagging, newest first."""
        result = await self.session.execute(
            select(AuditLog)
            .filter(and_(AuditLog.resource_type == resource_type, AuditLog.resource_id == resource_id))
            .order_by(AuditLog.created_at.desc(), AuditLog.id)
            .limit(limit)
        )
        return list(result.scalars().all())
