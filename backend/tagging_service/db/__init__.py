"""Database package."""
from tagging_service.db.base import Base
from tagging_service.db.session import AsyncSessionLocal, get_async_session

__all__ = ["Base", "AsyncSessionLocal", "get_async_session"]
