"""Pydantic schemas for requests, responses and service results."""
from tagging_service.schemas.analytics import DailyUsage, RelatedTag, TagAnalytics, UserUsage
from tagging_service.schemas.audit import AuditEvent, AuditLogFilters, AuditLogPage, AuditLogRead
from tagging_service.schemas.suggestion import (
    TaggingRequest,
    TagSuggestion,
    TagValidationAction,
    TagValidationCondition,
    TagValidationRule,
    ValidationResult,
)
from tagging_service.schemas.tag import (
    BulkTagging,
    PropagationOutcome,
    TaggableType,
    TagCreate,
    TagFilters,
    TaggingRead,
    TagNode,
    TagRead,
    TagUpdate,
)

__all__ = [
    "AuditEvent",
    "AuditLogFilters",
    "AuditLogPage",
    "AuditLogRead",
    "BulkTagging",
    "DailyUsage",
    "PropagationOutcome",
    "RelatedTag",
    "TagAnalytics",
    "TagCreate",
    "TagFilters",
    "TagNode",
    "TagRead",
    "TagSuggestion",
    "TagUpdate",
    "TagValidationAction",
    "TagValidationCondition",
    "TagValidationRule",
    "TaggableType",
    "TaggingRead",
    "TaggingRequest",
    "UserUsage",
    "ValidationResult",
]
