"""Tag suggestions from content, the user's habits and organization history."""
import logging
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from tagging_service.core.config import settings
from tagging_service.repositories.tag_repository import TagRepository
from tagging_service.repositories.tagging_repository import TaggingRepository
from tagging_service.schemas.suggestion import TagSuggestion
from tagging_service.schemas.tag import TaggableType, TagRead

logger = logging.getLogger(__name__)


def merge_suggestions(suggestions: Iterable[TagSuggestion], limit: int) -> List[TagSuggestion]:
    """Keep the most confident suggestion per tag, best first.

    Ties keep the earlier suggestion, and the sort is stable so equal
    confidences stay in source order (content, context, history).
    """
    best: Dict[str, TagSuggestion] = {}
    for suggestion in suggestions:
        current = best.get(suggestion.tag.id)
        if current is None or current.confidence < suggestion.confidence:
            best[suggestion.tag.id] = suggestion

    ranked = sorted(best.values(), key=lambda s: s.confidence, reverse=True)
    return ranked[:limit]


class SuggestionService:
    """Rank existing tags for a piece of content."""

    def __init__(
        self,
        session: AsyncSession,
        limit: int = settings.SUGGESTION_LIMIT,
        context_days: int = settings.SUGGESTION_CONTEXT_DAYS,
        context_sample: int = settings.SUGGESTION_CONTEXT_SAMPLE,
    ):
        """Initialize suggestion service.

        Args:
            session: Async database session
            limit: Maximum suggestions returned (default: 10)
            context_days: Trailing window for the user's own taggings (default: 30)
            context_sample: Most recent user taggings considered (default: 50)
        """
        self.tags = TagRepository(session)
        self.taggings = TaggingRepository(session)
        self.limit = limit
        self.context_days = context_days
        self.context_sample = context_sample

    async def suggest_tags(
        self,
        content: str,
        taggable_type: TaggableType,
        organization_id: str,
        user_id: Optional[str] = None,
    ) -> List[TagSuggestion]:
        """Suggest up to ``limit`` tags, highest confidence first.

        Args:
            content: Free text of the resource (title, body, ...)
            taggable_type: Kind of resource being tagged
            organization_id: Organization whose catalog is searched
            user_id: When given, the user's recent habits also count

        Returns:
            Suggestions with unique tags sorted by descending confidence
        """
        taggable_type = TaggableType(taggable_type)
        suggestions: List[TagSuggestion] = []

        suggestions.extend(await self.content_suggestions(content, organization_id))

        if user_id:
            suggestions.extend(
                await self.context_suggestions(user_id, taggable_type, organization_id)
            )

        suggestions.extend(await self.history_suggestions(organization_id, taggable_type))

        ranked = merge_suggestions(suggestions, self.limit)
        logger.info(
            f"Suggested {len(ranked)} tags for {taggable_type.value} in organization {organization_id}"
        )
        return ranked

    async def content_suggestions(self, content: str, organization_id: str) -> List[TagSuggestion]:
        """Match tag name words against content words.

        A tag word matches when it contains, or is contained in, a content
        word. Confidence is matched tag words over tag words.
        """
        words = content.lower().split()
        if not words:
            return []

        suggestions: List[TagSuggestion] = []
        for tag in await self.tags.list_by_organization(organization_id):
            tag_words = tag.name.lower().split()
            if not tag_words:
                continue

            matches = sum(
                1
                for tag_word in tag_words
                if any(tag_word in word or word in tag_word for word in words)
            )
            if matches > 0:
                suggestions.append(
                    TagSuggestion(
                        tag=TagRead.model_validate(tag),
                        confidence=matches / len(tag_words),
                        reason=f'Content contains keywords related to "{tag.name}"',
                        source="content",
                    )
                )

        return suggestions

    async def context_suggestions(
        self, user_id: str, taggable_type: TaggableType, organization_id: str
    ) -> List[TagSuggestion]:
        """Tags the user applied to this resource type recently."""
        since = datetime.now(timezone.utc) - timedelta(days=self.context_days)
        recent = await self.taggings.recent_by_user(
            user_id, taggable_type.value, organization_id, since, limit=self.context_sample
        )

        frequency: Counter = Counter()
        tags = {}
        for _, tag in recent:
            frequency[tag.id] += 1
            tags[tag.id] = tag

        return [
            TagSuggestion(
                tag=TagRead.model_validate(tags[tag_id]),
                confidence=min(count / 10, 1.0),
                reason=f"You frequently use this tag for {taggable_type.value}s",
                source="context",
            )
            for tag_id, count in sorted(frequency.items(), key=lambda kv: (-kv[1], tags[kv[0]].name))
        ]

    async def history_suggestions(
        self, organization_id: str, taggable_type: TaggableType
    ) -> List[TagSuggestion]:
        """The organization's ten most used tags for this resource type."""
        usage = await self.taggings.top_tags_for_type(organization_id, taggable_type.value, limit=10)
        return [
            TagSuggestion(
                tag=TagRead.model_validate(tag),
                confidence=min(count / 100, 1.0),
                reason=f"Frequently used tag for {taggable_type.value}s",
                source="history",
            )
            for tag, count in usage
        ]
