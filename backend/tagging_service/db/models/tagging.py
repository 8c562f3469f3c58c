"""Tagging model: association between a tag and an external resource."""
from typing import Any, Dict

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import relationship

from tagging_service.db.base import Base, new_id, utcnow


class Tagging(Base):
    """A tag applied to a resource identified only by (type, id)."""

    __tablename__ = "taggings"

    id = Column(String(36), primary_key=True, default=new_id)
    tag_id = Column(String(36), ForeignKey("tags.id", ondelete="RESTRICT"), nullable=False, index=True)
    taggable_type = Column(String(32), nullable=False)  # task, document, email, chat_channel
    taggable_id = Column(String(255), nullable=False)
    tagged_by = Column(String(255), nullable=True, index=True)
    # True when created by ancestor propagation rather than requested directly
    is_inherited = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    tag = relationship("Tag", lazy="raise")

    __table_args__ = (
        UniqueConstraint("tag_id", "taggable_type", "taggable_id", name="uq_taggings_tag_resource"),
        Index("idx_taggings_resource", "taggable_type", "taggable_id"),
    )

    def to_dict(self) -> Dict[str, Any]:
        """Column values as JSON-safe dict (audit snapshots)."""
        return {
            "id": self.id,
            "tag_id": self.tag_id,
            "taggable_type": self.taggable_type,
            "taggable_id": self.taggable_id,
            "tagged_by": self.tagged_by,
            "is_inherited": self.is_inherited,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
