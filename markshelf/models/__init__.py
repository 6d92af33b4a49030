"""SQLAlchemy ORM models for Markshelf."""

from markshelf.models.base import Base
from markshelf.models.highlight import Highlight
from markshelf.models.resource import Resource

__all__ = [
    "Base",
    "Highlight",
    "Resource",
]
