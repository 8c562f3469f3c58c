"""Database models package."""
from tagging_service.db.models.audit_log import AuditLog
from tagging_service.db.models.tag import Tag
from tagging_service.db.models.tagging import Tagging

__all__ = [
    "Tag",
    "Tagging",
    "AuditLog",
]
