"""
SQLAlchemy Base class for all models.

Separated from database.py to allow importing Base
without triggering engine creation (needed for tests).
"""
import uuid
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncAttrs
from sqlalchemy.orm import DeclarativeBase


class Base(AsyncAttrs, DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


def new_uuid() -> str:
    """Primary keys are UUID strings, as issued by the auth provider for profiles."""
    return str(uuid.uuid4())


def utcnow() -> datetime:
    """Naive UTC timestamp (columns are timezone-less)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
