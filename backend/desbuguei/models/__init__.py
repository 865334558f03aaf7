"""SQLAlchemy ORM models."""

from desbuguei.models.term import Term

__all__ = [
    "Term",
]
