"""Declarative base shared by all models."""
import uuid as uuid_pkg
from datetime import datetime, timezone

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for SQLAlchemy models."""


def new_id() -> str:
    """Primary key factory (UUID4 as string)."""
    return str(uuid_pkg.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
