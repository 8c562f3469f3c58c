"""Suggestion and validation-rule schemas."""
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from tagging_service.schemas.tag import TaggableType, TagRead

SuggestionSource = Literal["content", "context", "history", "template"]


class TagSuggestion(BaseModel):
    """Ranked, non-persisted tag recommendation."""

    tag: TagRead
    confidence: float = Field(..., ge=0.0, le=1.0)
    reason: str
    source: SuggestionSource


class TagValidationCondition(BaseModel):
    field: str
    operator: Literal["equals", "contains", "starts_with", "ends_with", "regex"]
    value: str


class TagValidationAction(BaseModel):
    type: Literal["require", "suggest", "forbid", "auto_apply"]
    tag_ids: List[str] = Field(default_factory=list)
    message: Optional[str] = None


class TagValidationRule(BaseModel):
    """Organization policy evaluated against a tagging request."""

    id: str
    name: str
    description: Optional[str] = None
    conditions: List[TagValidationCondition] = Field(default_factory=list)
    actions: List[TagValidationAction] = Field(default_factory=list)
    is_active: bool = True


class TaggingRequest(BaseModel):
    """A proposed tagging plus caller-supplied resource attributes."""

    tag_id: str
    taggable_type: TaggableType
    taggable_id: str
    tagged_by: Optional[str] = None
    attributes: Dict[str, Any] = Field(default_factory=dict)


class ValidationResult(BaseModel):
    is_valid: bool
    errors: List[str] = Field(default_factory=list)
    suggestions: List[TagSuggestion] = Field(default_factory=list)
    auto_apply_tag_ids: List[str] = Field(default_factory=list)
