"""In-memory view of one organization's tag forest."""
from collections import defaultdict
from typing import Dict, Iterable, List, Optional

from tagging_service.db.models.tag import Tag


class TagTree:
    """Adjacency map over an organization's tags.

    Built from a single query so path and descendant walks cost no
    further round trips. A corrupt parent chain (a stored cycle) ends
    the walk instead of looping.
    """

    def __init__(self, tags: Iterable[Tag]):
        self.by_id: Dict[str, Tag] = {}
        self._children: Dict[Optional[str], List[Tag]] = defaultdict(list)

        for tag in sorted(tags, key=lambda t: (t.name, t.id)):
            self.by_id[tag.id] = tag
            self._children[tag.parent_id].append(tag)

    def children_of(self, tag_id: Optional[str]) -> List[Tag]:
        """Direct children sorted by name (roots for None)."""
        return list(self._children.get(tag_id, []))

    def path(self, tag_id: str) -> List[Tag]:
        """Tags from the root down to ``tag_id`` (empty if unknown)."""
        path: List[Tag] = []
        seen = set()
        current = self.by_id.get(tag_id)

        while current is not None and current.id not in seen:
            seen.add(current.id)
            path.append(current)
            current = self.by_id.get(current.parent_id) if current.parent_id else None

        path.reverse()
        return path

    def ancestors(self, tag_id: str) -> List[Tag]:
        """Path without the tag itself, root first."""
        return self.path(tag_id)[:-1]

    def descendants(self, tag_id: str) -> List[Tag]:
        """All tags below ``tag_id``, depth-first pre-order."""
        descendants: List[Tag] = []
        seen = {tag_id}
        stack = list(reversed(self.children_of(tag_id)))

        while stack:
            tag = stack.pop()
            if tag.id in seen:
                continue
            seen.add(tag.id)
            descendants.append(tag)
            stack.extend(reversed(self.children_of(tag.id)))

        return descendants

    def is_descendant(self, candidate_id: str, ancestor_id: str) -> bool:
        """True when ``ancestor_id`` lies strictly above ``candidate_id``."""
        if candidate_id == ancestor_id:
            return False
        return any(tag.id == ancestor_id for tag in self.ancestors(candidate_id))
