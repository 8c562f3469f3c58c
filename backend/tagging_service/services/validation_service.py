"""Rule-based validation of proposed taggings."""
import logging
import re
from typing import Any, List, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from tagging_service.repositories.tag_repository import TagRepository
from tagging_service.repositories.tagging_repository import TaggingRepository
from tagging_service.schemas.suggestion import (
    TaggingRequest,
    TagSuggestion,
    TagValidationCondition,
    TagValidationRule,
    ValidationResult,
)
from tagging_service.schemas.tag import TagRead

logger = logging.getLogger(__name__)

RULE_SUGGESTION_CONFIDENCE = 0.8

_MISSING = object()
_REQUEST_FIELDS = ("tag_id", "taggable_type", "taggable_id", "tagged_by")


def resolve_field(field: str, request: TaggingRequest) -> Any:
    """Look a field up on the request, then as a dotted path in its attributes."""
    if field in _REQUEST_FIELDS:
        value = getattr(request, field)
        return getattr(value, "value", value)

    current: Any = request.attributes
    for part in field.split("."):
        if isinstance(current, dict) and part in current:
            current = current[part]
        else:
            return _MISSING
    return current


def evaluate_condition(condition: TagValidationCondition, request: TaggingRequest) -> bool:
    """Compare a request field with the condition value as strings.

    Missing or null fields never match; an invalid regex never matches.
    """
    value = resolve_field(condition.field, request)
    if value is _MISSING or value is None:
        return False
    text = str(value)

    if condition.operator == "equals":
        return text == condition.value
    if condition.operator == "contains":
        return condition.value in text
    if condition.operator == "starts_with":
        return text.startswith(condition.value)
    if condition.operator == "ends_with":
        return text.endswith(condition.value)
    if condition.operator == "regex":
        try:
            return re.search(condition.value, text) is not None
        except re.error as e:
            logger.warning(f"Invalid regex {condition.value!r} on field {condition.field}: {e}")
            return False
    return False


class ValidationService:
    """Evaluate organization tagging rules against a proposed tagging."""

    def __init__(self, session: AsyncSession):
        self.tags = TagRepository(session)
        self.taggings = TaggingRepository(session)

    async def validate_tagging(
        self, request: TaggingRequest, rules: Sequence[TagValidationRule]
    ) -> ValidationResult:
        """Run active rules whose conditions all hold.

        Tag presence is checked on the resource as it would be after the
        proposed tagging: its current tags plus ``request.tag_id``.
        ``auto_apply`` actions are not applied here; their tag IDs are
        returned for the caller.
        """
        errors: List[str] = []
        suggestions: List[TagSuggestion] = []
        auto_apply: List[str] = []

        current = await self.taggings.list_for_resource(request.taggable_type.value, request.taggable_id)
        present = {tagging.tag_id for tagging in current} | {request.tag_id}

        for rule in rules:
            if not rule.is_active:
                continue
            if not all(evaluate_condition(condition, request) for condition in rule.conditions):
                continue

            for action in rule.actions:
                if action.type == "require":
                    if not set(action.tag_ids) <= present:
                        errors.append(action.message or f"Required tags missing: {', '.join(action.tag_ids)}")
                elif action.type == "forbid":
                    if set(action.tag_ids) & present:
                        errors.append(action.message or f"Forbidden tags present: {', '.join(action.tag_ids)}")
                elif action.type == "suggest":
                    for tag in await self.tags.get_by_ids(action.tag_ids):
                        suggestions.append(
                            TagSuggestion(
                                tag=TagRead.model_validate(tag),
                                confidence=RULE_SUGGESTION_CONFIDENCE,
                                reason=action.message or "Suggested by validation rule",
                                source="template",
                            )
                        )
                elif action.type == "auto_apply":
                    auto_apply.extend(t for t in action.tag_ids if t not in auto_apply)

        if errors:
            logger.info(f"Tagging of {request.tag_id} on {request.taggable_id} failed {len(errors)} rule checks")

        return ValidationResult(
            is_valid=not errors,
            errors=errors,
            suggestions=suggestions,
            auto_apply_tag_ids=auto_apply,
        )
