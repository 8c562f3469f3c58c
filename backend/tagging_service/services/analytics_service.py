"""Usage analytics for a single tag."""
import logging
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from tagging_service.core.config import settings
from tagging_service.core.errors import TagNotFoundError
from tagging_service.repositories.tag_repository import TagRepository
from tagging_service.repositories.tagging_repository import TaggingRepository
from tagging_service.schemas.analytics import DailyUsage, RelatedTag, TagAnalytics, UserUsage
from tagging_service.schemas.tag import TagRead

logger = logging.getLogger(__name__)


class AnalyticsService:
    """Aggregate Tagging rows into usage figures for one tag."""

    def __init__(
        self,
        session: AsyncSession,
        window_days: int = settings.ANALYTICS_WINDOW_DAYS,
        related_limit: int = 10,
    ):
        """Initialize analytics service.

        Args:
            session: Async database session
            window_days: Length of the daily usage series (default: 30)
            related_limit: Co-occurring tags returned (default: 10)
        """
        self.tags = TagRepository(session)
        self.taggings = TaggingRepository(session)
        self.window_days = window_days
        self.related_limit = related_limit

    async def get_tag_analytics(
        self, tag_id: str, date_range: Optional[Tuple[datetime, datetime]] = None
    ) -> TagAnalytics:
        """Usage totals, breakdowns, daily series and related tags.

        ``date_range`` narrows the totals and the by-type / by-user
        breakdowns; the daily series always covers the trailing window
        and related tags always use every tagging.

        Raises:
            TagNotFoundError: tag is missing
        """
        tag = await self.tags.get_by_id(tag_id)
        if not tag:
            raise TagNotFoundError("Tag not found", details={"tag_id": tag_id})

        usage_count = await self.taggings.count_for_tag(tag_id, date_range)
        usage_by_type = await self.taggings.counts_by_type(tag_id, date_range)
        usage_by_user = await self.taggings.counts_by_user(tag_id, date_range)

        since = datetime.now(timezone.utc) - timedelta(days=self.window_days)
        per_day = Counter(created.date() for created in await self.taggings.created_at_since(tag_id, since))

        related = await self.taggings.co_occurring(tag_id, limit=self.related_limit)

        logger.info(f"Computed analytics for tag {tag_id}: {usage_count} taggings")
        return TagAnalytics(
            tag_id=tag_id,
            tag=TagRead.model_validate(tag),
            usage_count=usage_count,
            usage_by_type=usage_by_type,
            usage_by_user=[UserUsage(user_id=user, count=count) for user, count in usage_by_user],
            usage_over_time=[DailyUsage(date=day, count=per_day[day]) for day in sorted(per_day)],
            related_tags=[
                RelatedTag(
                    tag_id=related_id,
                    tag_name=name,
                    co_occurrence_count=count,
                    confidence=min(count / usage_count, 1.0) if usage_count else 0.0,
                )
                for related_id, name, count in related
            ],
        )
