"""Exception hierarchy for the tagging service.

    TaggingError (base)
    ├── TagNotFoundError - referenced tag, parent tag or tagging is missing
    └── TagConflictError - sibling name clash, circular parent, blocked delete

Persistence failures are not wrapped; they reach the caller unchanged.
"""
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    """Error codes included in API error responses."""

    TAG_NOT_FOUND = "TAG_NOT_FOUND"
    TAG_CONFLICT = "TAG_CONFLICT"


class TaggingError(Exception):
    """Base class for tag and tagging errors."""

    default_code = ErrorCode.TAG_CONFLICT

    def __init__(
        self,
        message: str,
        code: Optional[ErrorCode] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for API error bodies."""
        body: Dict[str, Any] = {"code": self.code.value, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body


class TagNotFoundError(TaggingError):
    """A tag, parent tag or tagging does not exist."""

    default_code = ErrorCode.TAG_NOT_FOUND


class TagConflictError(TaggingError):
    """An operation would break a catalog or tagging invariant."""

    default_code = ErrorCode.TAG_CONFLICT
