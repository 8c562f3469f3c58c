"""Repository exports."""
from tagging_service.repositories.audit_log_repository import AuditLogRepository
from tagging_service.repositories.tag_repository import TagRepository
from tagging_service.repositories.tagging_repository import TaggingRepository

__all__ = [
    "TagRepository",
    "TaggingRepository",
    "AuditLogRepository",
]
