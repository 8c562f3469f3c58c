"""Tag analytics schemas."""
import datetime
from typing import Dict, List

from pydantic import BaseModel

from tagging_service.schemas.tag import TagRead


class UserUsage(BaseModel):
    user_id: str
    count: int


class DailyUsage(BaseModel):
    date: datetime.date
    count: int


class RelatedTag(BaseModel):
    """A tag seen on the same resources.

    ``confidence`` is co-occurrences divided by the tag's usage count,
    capped at 1. It is a ratio, not a calibrated probability.
    """

    tag_id: str
    tag_name: str
    co_occurrence_count: int
    confidence: float


class TagAnalytics(BaseModel):
    tag_id: str
    tag: TagRead
    usage_count: int
    usage_by_type: Dict[str, int]
    usage_by_user: List[UserUsage]
    usage_over_time: List[DailyUsage]
    related_tags: List[RelatedTag]
