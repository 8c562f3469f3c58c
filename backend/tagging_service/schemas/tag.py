"""Tag and tagging schemas."""
from datetime import datetime
from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

COLOR_PATTERN = r"^#[0-9A-Fa-f]{6}$"


class TaggableType(str, Enum):
    """Resource kinds that can carry tags."""

    TASK = "task"
    DOCUMENT = "document"
    EMAIL = "email"
    CHAT_CHANNEL = "chat_channel"


def _clean_name(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    value = value.strip()
    if not value:
        raise ValueError("Tag name must not be blank")
    return value


class TagCreate(BaseModel):
    """Schema for creating a tag."""

    name: str = Field(..., min_length=1, max_length=100)
    organization_id: str
    created_by: str
    parent_id: Optional[str] = None
    color: Optional[str] = Field(default=None, pattern=COLOR_PATTERN)
    description: Optional[str] = Field(default=None, max_length=500)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        return _clean_name(v)


class TagUpdate(BaseModel):
    """Schema for updating a tag.

    Only fields present in the payload are changed; an explicit
    ``parent_id: null`` moves the tag to the root level.
    """

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    parent_id: Optional[str] = None
    color: Optional[str] = Field(default=None, pattern=COLOR_PATTERN)
    description: Optional[str] = Field(default=None, max_length=500)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        return _clean_name(v)


class TagFilters(BaseModel):
    """Filters for listing one level of the hierarchy."""

    parent_id: Optional[str] = None  # None lists the root level
    search: Optional[str] = None
    include_children: bool = False
    include_usage: bool = False
    created_by: Optional[str] = None


class TagRead(BaseModel):
    """Tag as returned to callers."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    organization_id: str
    name: str
    parent_id: Optional[str]
    color: Optional[str] = None
    description: Optional[str] = None
    created_by: str
    created_at: datetime


class TagNode(TagRead):
    """Tag with its subtree and optional usage counters."""

    children: List["TagNode"] = Field(default_factory=list)
    usage_count: Optional[int] = None
    child_count: Optional[int] = None


class TaggingRead(BaseModel):
    """Tagging as returned to callers."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    tag_id: str
    taggable_type: TaggableType
    taggable_id: str
    tagged_by: Optional[str] = None
    is_inherited: bool = False
    created_at: datetime


class BulkTagging(BaseModel):
    """Cartesian tag x resource request."""

    tag_ids: List[str] = Field(..., min_length=1)
    taggable_type: TaggableType
    taggable_ids: List[str] = Field(..., min_length=1)
    tagged_by: Optional[str] = None


class PropagationOutcome(BaseModel):
    """Result of one best-effort inheritance step."""

    tag_id: str
    status: Literal["applied", "existing", "removed", "kept", "skipped", "failed"]
    error: Optional[str] = None


TagNode.model_rebuild()
