"""Tag model: one node of an organization's tag forest."""
from typing import Any, Dict

from sqlalchemy import Column, DateTime, ForeignKey, Index, String, UniqueConstraint, text
from sqlalchemy.orm import relationship

from tagging_service.db.base import Base, new_id, utcnow


class Tag(Base):
    """Hierarchical tag scoped to an organization."""

    __tablename__ = "tags"

    id = Column(String(36), primary_key=True, default=new_id)
    organization_id = Column(String(255), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    parent_id = Column(String(36), ForeignKey("tags.id", ondelete="RESTRICT"), nullable=True, index=True)
    color = Column(String(7), nullable=True)
    description = Column(String(500), nullable=True)
    created_by = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    # Never lazy-loaded: async sessions go through the repositories
    parent = relationship("Tag", remote_side=[id], lazy="raise")

    __table_args__ = (
        UniqueConstraint("organization_id", "parent_id", "name", name="uq_tags_org_parent_name"),
        # NULL parent_ids never collide in the constraint above
        Index(
            "uq_tags_org_root_name",
            "organization_id",
            "name",
            unique=True,
            postgresql_where=text("parent_id IS NULL"),
            sqlite_where=text("parent_id IS NULL"),
        ),
    )

    def to_dict(self) -> Dict[str, Any]:
        """Column values as JSON-safe dict (audit snapshots)."""
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "name": self.name,
            "parent_id": self.parent_id,
            "color": self.color,
            "description": self.description,
            "created_by": self.created_by,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self) -> str:
        return f"<Tag {self.id} {self.name!r} parent={self.parent_id}>"
