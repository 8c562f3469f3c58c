"""Audit log model for tag and tagging mutations."""
from sqlalchemy import JSON, Column, DateTime, Index, String

from tagging_service.db.base import Base, new_id, utcnow


class AuditLog(Base):
    """One recorded mutation of a tag or a tagging."""

    __tablename__ = "audit_logs"

    id = Column(String(36), primary_key=True, default=new_id)
    organization_id = Column(String(255), nullable=False)
    user_id = Column(String(255), nullable=True)
    action = Column(String(20), nullable=False)  # create, update, delete
    resource_type = Column(String(20), nullable=False)  # tag, tagging
    resource_id = Column(String(36), nullable=False)
    old_values = Column(JSON, nullable=True)
    new_values = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        Index("idx_audit_logs_org_created", "organization_id", "created_at"),
        Index("idx_audit_logs_resource", "resource_type", "resource_id"),
    )
