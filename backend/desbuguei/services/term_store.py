"""Term store — the cache the resolution pipeline reads through.

Two variants behind one interface, picked once by build_term_store():
  - SqlTermStore: SQLAlchemy-backed `terms` table (SQLite, Postgres, ...)
  - NullTermStore: used when no DATABASE_URL is configured; never hits
"""

import json
import logging
from abc import ABC, abstractmethod
from typing import Optional

from pydantic import ValidationError
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from desbuguei.config import Settings
from desbuguei.database import build_engine, build_session_factory, create_tables
from desbuguei.errors import StoreUnavailableError
from desbuguei.models.term import Term
from desbuguei.schemas.term import TermRecord

logger = logging.getLogger(__name__)


class TermStore(ABC):
    """Blocking store interface. Async callers go through asyncio.to_thread."""

    persistent: bool = True

    @abstractmethod
    def get(self, term_id: str) -> Optional[TermRecord]:
        """Return the record stored under term_id, or None."""

    @abstractmethod
    def upsert(self, record: TermRecord) -> None:
        """Insert the record, or overwrite the one with the same id."""

    @abstractmethod
    def list_terms(
        self,
        category: Optional[str] = None,
        search: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[TermRecord]:
        """Most recent records first."""


class NullTermStore(TermStore):
    persistent = False

    def get(self, term_id: str) -> Optional[TermRecord]:
        return None

    def upsert(self, record: TermRecord) -> None:
        logger.debug("No term store configured, dropping write for %s", record.id)

    def list_terms(self, category=None, search=None, limit=50, offset=0) -> list[TermRecord]:
        return []


class SqlTermStore(TermStore):
    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def get(self, term_id: str) -> Optional[TermRecord]:
        try:
            with self._session_factory() as db:
                row = db.get(Term, term_id)
                if row is None:
                    return None
                content = row.content
        except SQLAlchemyError as e:
            raise StoreUnavailableError(f"Term lookup failed for {term_id}: {e}") from e
        return _record_from_content(term_id, content)

    def upsert(self, record: TermRecord) -> None:
        # Two callers inserting the same new id race; the loser retries as an update.
        for attempt in range(2):
            try:
                with self._session_factory() as db:
                    db.merge(_row_from_record(record))
                    db.commit()
                return
            except IntegrityError:
                if attempt:
                    raise StoreUnavailableError(f"Upsert kept conflicting for {record.id}")
                logger.info("Concurrent insert for %s, retrying as update", record.id)
            except SQLAlchemyError as e:
                raise StoreUnavailableError(f"Upsert failed for {record.id}: {e}") from e

    def list_terms(self, category=None, search=None, limit=50, offset=0) -> list[TermRecord]:
        try:
            with self._session_factory() as db:
                query = db.query(Term)
                if category:
                    query = query.filter(Term.category == category)
                if search:
                    pattern = f"%{search}%"
                    query = query.filter(or_(Term.term.ilike(pattern), Term.definition.ilike(pattern)))
                rows = (
                    query.order_by(Term.created_at.desc())
                    .offset(offset)
                    .limit(limit)
                    .all()
                )
                contents = [(row.id, row.content) for row in rows]
        except SQLAlchemyError as e:
            raise StoreUnavailableError(f"Term listing failed: {e}") from e

        records = []
        for term_id, content in contents:
            record = _record_from_content(term_id, content)
            if record is not None:
                records.append(record)
        return records


def _row_from_record(record: TermRecord) -> Term:
    return Term(
        id=record.id,
        term=record.term,
        category=record.category,
        definition=record.definition,
        content=json.dumps(record.to_json(), ensure_ascii=False),
    )


def _record_from_content(term_id: str, content: str) -> Optional[TermRecord]:
    """Parse a stored JSON blob. Corrupt rows count as a miss and get regenerated."""
    try:
        return TermRecord.model_validate(json.loads(content))
    except (json.JSONDecodeError, TypeError, ValidationError) as e:
        logger.warning("Ignoring unreadable stored term %s: %s", term_id, e)
        return None


def build_term_store(settings: Settings) -> TermStore:
    """Pick the store variant once, at startup."""
    if not settings.DATABASE_URL:
        logger.warning("DATABASE_URL not set, running without a term cache")
        return NullTermStore()

    engine = build_engine(settings.DATABASE_URL)
    create_tables(engine)
    return SqlTermStore(build_session_factory(engine))
