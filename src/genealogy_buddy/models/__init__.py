"""SQLAlchemy models."""

from genealogy_buddy.models.analysis import Analysis
from genealogy_buddy.models.base import Base, TimestampMixin
from genealogy_buddy.models.user import User

__all__ = [
    "Analysis",
    "Base",
    "TimestampMixin",
    "User",
]
