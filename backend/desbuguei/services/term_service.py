"""
Term resolution pipeline.

resolve(query):  normalize → store lookup → local demo table → generate → heal
                 → background upsert → return

The store is a best-effort cache: its failures count as misses. Generation
failures reach the caller once; retrying is the caller's decision.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional

from desbuguei.config import Settings
from desbuguei.errors import InvalidQueryError, NotFoundError
from desbuguei.schemas.term import MAX_RELATED_TERMS, PracticalUsage, TermRecord, TitledText
from desbuguei.services.definition_client import DefinitionClient
from desbuguei.services.normalizer import normalize
from desbuguei.services.seed_data import LOCAL_TERMS, SEED_TERMS
from desbuguei.services.term_store import TermStore

logger = logging.getLogger(__name__)

DEFAULT_PRACTICAL_USAGE = PracticalUsage(
    title="Contexto Geral",
    content="Termo usado frequentemente em reuniões de tecnologia.",
)


@dataclass
class SeedReport:
    succeeded: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


class TermService:
    def __init__(self, store: TermStore, generator: DefinitionClient, settings: Settings):
        self.store = store
        self.generator = generator
        self.settings = settings
        self._pending_writes: set[asyncio.Task] = set()

    async def resolve(self, raw_query: str) -> TermRecord:
        term_id = normalize(raw_query)
        if not term_id:
            raise InvalidQueryError(f"Nothing searchable in {raw_query!r}")

        cached = await self._lookup(term_id)
        if cached is not None and cached.is_valid:
            logger.info("Cache hit: %s", term_id)
            return cached

        local = LOCAL_TERMS.get(raw_query.strip().lower())
        if local is not None:
            logger.info("Served %s from the local demo table", term_id)
            # the table is shared; frozen models still hold mutable lists
            return local.model_copy(deep=True)

        logger.info("Cache miss: %s, generating", term_id)
        payload = await self.generator.generate(raw_query.strip())
        record = heal_payload(payload, term_id, raw_query)
        if not record.is_valid:
            raise NotFoundError(f"Generated entry for '{raw_query.strip()}' has no definition")

        self._write_back(record)
        return record

    async def seed(
        self,
        on_progress: Callable[[str], Any],
        terms: Optional[Iterable[str]] = None,
        delay: Optional[float] = None,
    ) -> SeedReport:
        """Resolve a list of well-known terms one at a time, pausing between them."""
        report = SeedReport()
        if not self.store.persistent:
            on_progress("ERRO: banco de dados não configurado. Verifique a variável DATABASE_URL.")
            return report

        items = list(terms) if terms is not None else list(SEED_TERMS)
        pause = self.settings.SEED_DELAY_SECONDS if delay is None else delay

        on_progress(f"Iniciando carga de {len(items)} termos...")
        for index, term in enumerate(items):
            on_progress(f"Verificando/Gerando: {term}...")
            try:
                await self.resolve(term)
                report.succeeded.append(term)
                on_progress(f"✅ {term} processado.")
            except Exception as e:
                logger.warning("Seeding %s failed: %s", term, e)
                report.failed.append(term)
                on_progress(f"❌ Erro ao processar {term}.")
            if pause and index < len(items) - 1:
                await asyncio.sleep(pause)

        # Writes still in flight would be lost if the caller exits right away.
        await self.drain()
        on_progress("Carga finalizada!")
        return report

    async def drain(self) -> None:
        """Wait for every background write started so far."""
        if self._pending_writes:
            await asyncio.gather(*list(self._pending_writes), return_exceptions=True)

    async def _lookup(self, term_id: str) -> Optional[TermRecord]:
        try:
            return await asyncio.to_thread(self.store.get, term_id)
        except Exception as e:
            logger.warning("Store lookup failed for %s, treating as a miss: %s", term_id, e)
            return None

    def _write_back(self, record: TermRecord) -> None:
        if not self.store.persistent:
            return
        task = asyncio.create_task(self._upsert(record))
        self._pending_writes.add(task)
        task.add_done_callback(self._pending_writes.discard)

    async def _upsert(self, record: TermRecord) -> None:
        try:
            await asyncio.to_thread(self.store.upsert, record)
            logger.info("Saved %s to the term store", record.id)
        except Exception as e:
            logger.error("Error saving %s to the term store: %s", record.id, e)


# ─────────────────────────────────────────────────────────────────────────────
# Payload healing
# ─────────────────────────────────────────────────────────────────────────────

def _text(value) -> str:
    return value.strip() if isinstance(value, str) else ""


def _titled_list(value) -> list[TitledText]:
    if not isinstance(value, list):
        return []
    items = []
    for item in value:
        if not isinstance(item, dict):
            continue
        items.append(TitledText(title=_text(item.get("title")), description=_text(item.get("description"))))
    return items


def heal_payload(payload: dict, term_id: str, raw_query: str) -> TermRecord:
    """Build a record from model output, filling in whatever the model left out.

    The id always comes from our own normalization, never from the model.
    """
    term = _text(payload.get("term")) or raw_query.strip()

    related = payload.get("relatedTerms")
    related_terms = (
        [t.strip() for t in related if isinstance(t, str) and t.strip()][:MAX_RELATED_TERMS]
        if isinstance(related, list)
        else []
    )

    usage = payload.get("practicalUsage")
    if isinstance(usage, dict) and (_text(usage.get("title")) or _text(usage.get("content"))):
        practical_usage = PracticalUsage(title=_text(usage.get("title")), content=_text(usage.get("content")))
    else:
        practical_usage = DEFAULT_PRACTICAL_USAGE

    return TermRecord(
        id=term_id,
        term=term,
        full_term=_text(payload.get("fullTerm")) or term,
        category=_text(payload.get("category")),
        definition=_text(payload.get("definition")),
        phonetic=_text(payload.get("phonetic")),
        slang=_text(payload.get("slang")) or None,
        translation=_text(payload.get("translation")),
        examples=_titled_list(payload.get("examples")),
        analogies=_titled_list(payload.get("analogies")),
        practical_usage=practical_usage,
        related_terms=related_terms,
    )
