"""In-memory stand-ins for the store, the model and the audio devices."""

import asyncio
import os
import sys
from typing import Optional

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from desbuguei.config import Settings
from desbuguei.errors import GenerationError, StoreUnavailableError
from desbuguei.services.term_store import TermStore
from desbuguei.voice.devices import AudioInput
from desbuguei.voice.events import ServerMessage
from desbuguei.voice.playback import AudioOutput, PlaybackHandle


def make_settings(**overrides) -> Settings:
    values = {
        "DATABASE_URL": "",
        "GEMINI_API_KEY": "",
        "ANTHROPIC_API_KEY": "",
        "ORACLE_GENAI_MODEL": "",
        "ORACLE_GENAI_COMPARTMENT_ID": "",
        "SEED_DELAY_SECONDS": 0.0,
        "RESOLVE_ESCAPE_SECONDS": 5.0,
        "RATE_LIMIT_ENABLED": False,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


async def wait_until(condition, timeout: float = 2.0) -> None:
    """Let the event loop run until condition() holds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not condition():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.001)


# ── Term pipeline ────────────────────────────────────────────────────────────

class MemoryTermStore(TermStore):
    def __init__(self, records=None, fail_reads: bool = False):
        self.records = {r.id: r for r in (records or [])}
        self.fail_reads = fail_reads
        self.get_calls: list[str] = []
        self.upserts: list = []

    def get(self, term_id):
        self.get_calls.append(term_id)
        if self.fail_reads:
            raise StoreUnavailableError("store offline")
        return self.records.get(term_id)

    def upsert(self, record):
        self.upserts.append(record)
        self.records[record.id] = record

    def list_terms(self, category=None, search=None, limit=50, offset=0):
        records = list(self.records.values())
        if category:
            records = [r for r in records if r.category == category]
        return records[offset: offset + limit]


class FakeGenerator:
    """Returns canned payloads keyed by the query it receives."""

    def __init__(self, payloads: Optional[dict] = None, fail: bool = False, delay: float = 0.0):
        self.payloads = payloads or {}
        self.fail = fail
        self.delay = delay
        self.calls: list[str] = []

    async def generate(self, term: str) -> dict:
        self.calls.append(term)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail or term not in self.payloads:
            raise GenerationError(f"no canned payload for {term}")
        return dict(self.payloads[term])


class ExplodingGenerator:
    async def generate(self, term: str) -> dict:
        raise AssertionError("the generator must not be called on a cache hit")


def payload(term: str, **extra) -> dict:
    data = {
        "term": term,
        "fullTerm": f"{term} (full)",
        "category": "Desenvolvimento",
        "definition": f"{term} explicado para o negócio.",
        "phonetic": term.lower(),
        "translation": term.upper(),
        "examples": [{"title": "Exemplo", "description": "Uso em vendas."}],
        "analogies": [{"title": "Analogia", "description": "Como um garçom."}],
        "practicalUsage": {"title": "Na daily", "content": f"O {term} caiu de novo."},
        "relatedTerms": ["API", "REST"],
    }
    data.update(extra)
    return data


# ── Voice session ────────────────────────────────────────────────────────────

class FakeLiveSession:
    def __init__(self, script=None, fail_sends: bool = False):
        self.sent: list[tuple[str, str]] = []
        self.closed = False
        self.fail_sends = fail_sends
        self.inbound: asyncio.Queue = asyncio.Queue()
        for item in script or []:
            self.inbound.put_nowait(item)

    def push(self, item) -> None:
        """Queue a ServerMessage, or an exception to raise from the stream."""
        self.inbound.put_nowait(item)

    async def send_audio(self, data: str, mime_type: str) -> None:
        if self.fail_sends or self.closed:
            raise RuntimeError("socket closing")
        self.sent.append((data, mime_type))

    async def receive(self):
        while True:
            item = await self.inbound.get()
            if item is None:
                return
            if isinstance(item, BaseException):
                raise item
            yield item

    async def close(self) -> None:
        self.closed = True
        self.inbound.put_nowait(None)


class FakeConnector:
    def __init__(self, error: Optional[BaseException] = None, script=None):
        self.error = error
        self.script = script
        self.sessions: list[FakeLiveSession] = []
        self.configs: list = []

    async def connect(self, config):
        self.configs.append(config)
        if self.error is not None:
            raise self.error
        session = FakeLiveSession(script=self.script)
        self.sessions.append(session)
        return session


class FakeAudioInput(AudioInput):
    def __init__(self):
        self.queue: asyncio.Queue = asyncio.Queue()
        self.started = False
        self.stopped = False
        self.closed = False

    async def start(self):
        self.started = True

    async def frames(self):
        while not self.stopped:
            frame = await self.queue.get()
            if frame is None:
                return
            yield frame

    def stop(self):
        self.stopped = True
        self.queue.put_nowait(None)

    def close(self):
        self.closed = True


class FakeAudioOutput(AudioOutput):
    """Playback context with a hand-driven clock."""

    def __init__(self, sample_rate: int = 24000, now: float = 0.0):
        self.sample_rate = sample_rate
        self.now = now
        self.played: list[tuple[PlaybackHandle, object]] = []
        self.resumed = 0

    @property
    def current_time(self) -> float:
        return self.now

    def play(self, samples, start_time, on_ended):
        handle = PlaybackHandle(start_time, len(samples) / self.sample_rate)
        self.played.append((handle, on_ended))
        return handle

    async def resume(self):
        self.resumed += 1

    def finish(self, index: int) -> None:
        handle, on_ended = self.played[index]
        if not handle.stopped:
            on_ended(handle)


def silence_b64(seconds: float, sample_rate: int = 24000) -> str:
    import base64
    return base64.b64encode(b"\x00\x00" * int(seconds * sample_rate)).decode("ascii")


def audio_message(seconds: float) -> ServerMessage:
    return ServerMessage(audio=silence_b64(seconds))
