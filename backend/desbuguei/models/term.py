"""Term model — cached glossary entries keyed by normalized id."""

from datetime import datetime, timezone

from sqlalchemy import Column, String, DateTime, Text

from desbuguei.database import Base


class Term(Base):
    __tablename__ = "terms"

    id = Column(String(200), primary_key=True)  # normalized id, e.g. "ci-cd"
    term = Column(String(200), nullable=False)
    category = Column(String(50), nullable=True)
    # Plain text copy for easier search queries
    definition = Column(Text, nullable=False)
    content = Column(Text, nullable=False)  # full TermRecord as JSON
    created_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc),
                        onupdate=lambda: datetime.now(timezone.utc))
