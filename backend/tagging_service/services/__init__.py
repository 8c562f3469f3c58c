"""Services package for tag business logic."""

from tagging_service.services.analytics_service import AnalyticsService
from tagging_service.services.audit_service import AuditService, AuditTrail, NullAuditTrail
from tagging_service.services.suggestion_service import SuggestionService
from tagging_service.services.tag_service import TagService
from tagging_service.services.tag_tree import TagTree
from tagging_service.services.validation_service import ValidationService

__all__ = [
    "AnalyticsService",
    "AuditService",
    "AuditTrail",
    "NullAuditTrail",
    "SuggestionService",
    "TagService",
    "TagTree",
    "ValidationService",
]
