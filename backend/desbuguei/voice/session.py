"""
Realtime voice session controller.

State machine:  connecting → listening ⇄ speaking,  processing on tool dispatch,
                closed from anywhere via close().

Transport, capture and playback callbacks only enqueue events; a single
consumer task applies every transition, so the controller can be driven in
tests with fake devices and a fake model session.
"""

import asyncio
import inspect
import logging
from typing import Any, AsyncIterator, Callable, Optional, Protocol
from urllib.parse import quote

from desbuguei.agents.prompts import SEARCH_TERM_TOOL, build_voice_instruction
from desbuguei.config import Settings
from desbuguei.errors import SessionError, ToolArgumentError
from desbuguei.schemas.voice import Speaker, TranscriptLine, USER_LABEL, VoiceSnapshot, VoiceStatus
from desbuguei.voice.audio import decode_pcm16, encode_pcm16, pcm_mime
from desbuguei.voice.devices import AudioInput
from desbuguei.voice.events import (
    LiveConfig,
    PlaybackEnded,
    ServerMessage,
    SessionEnded,
    SessionErrored,
    SessionOpened,
    ToolCall,
)
from desbuguei.voice.playback import AudioOutput, PlaybackHandle, PlaybackScheduler

logger = logging.getLogger(__name__)

SESSION_UNAVAILABLE = "Serviço indisponível no momento."
START_FAILED = "Erro ao iniciar microfone ou IA."


class LiveSession(Protocol):
    async def send_audio(self, data: str, mime_type: str) -> None: ...

    def receive(self) -> AsyncIterator[ServerMessage]: ...

    async def close(self) -> None: ...


class LiveConnector(Protocol):
    async def connect(self, config: LiveConfig) -> LiveSession: ...


def term_from_tool_call(call: ToolCall) -> str:
    term = call.args.get("term") if isinstance(call.args, dict) else None
    if not isinstance(term, str) or not term.strip():
        raise ToolArgumentError(f"{call.name} called without a usable 'term': {call.args!r}")
    return term.strip()


def term_path(term: str) -> str:
    return f"/term/{quote(term, safe='')}"


class VoiceSessionController:
    def __init__(
        self,
        persona: dict,
        connector: LiveConnector,
        input_factory: Callable[[], AudioInput],
        output_factory: Callable[[], AudioOutput],
        navigate: Callable[[str], Any],
        settings: Settings,
        on_change: Optional[Callable[[VoiceSnapshot], Any]] = None,
    ):
        self.persona = persona
        self.settings = settings
        self._connector = connector
        self._input_factory = input_factory
        self._output_factory = output_factory
        self._navigate = navigate
        self._on_change = on_change

        self._closed = True
        self._session: Optional[LiveSession] = None
        self._input: Optional[AudioInput] = None
        self._output: Optional[AudioOutput] = None
        self._scheduler: Optional[PlaybackScheduler] = None
        self._events: Optional[asyncio.Queue] = None
        self._tasks: dict[str, asyncio.Task] = {}
        # teardown + navigation after a search_term call; never cancelled by close()
        self._dispatch: Optional[asyncio.Task] = None
        self._reset_state()

    def _reset_state(self) -> None:
        self.status = VoiceStatus.CONNECTING
        self.transcript: list[TranscriptLine] = []
        self.pending_user_text = ""
        self.pending_assistant_text = ""

    # ── Read side ────────────────────────────────────────────────────────────

    @property
    def is_open(self) -> bool:
        return not self._closed

    @property
    def session(self) -> Optional[LiveSession]:
        return self._session

    @property
    def capture(self) -> Optional[AudioInput]:
        return self._input

    @property
    def scheduled_buffers(self) -> int:
        return len(self._scheduler.active) if self._scheduler else 0

    def snapshot(self) -> VoiceSnapshot:
        return VoiceSnapshot(
            status=self.status,
            persona=self.persona["name"],
            transcript=list(self.transcript),
            pending_user_text=self.pending_user_text,
            pending_assistant_text=self.pending_assistant_text,
        )

    def live_config(self) -> LiveConfig:
        return LiveConfig(
            system_instruction=build_voice_instruction(self.persona),
            voice_name=self.persona["voice_name"],
            tools=[SEARCH_TERM_TOOL],
        )

    # ── Lifecycle ────────────────────────────────────────────────────────────

    async def open(self) -> bool:
        """Start capture and connect. False when the session could not start."""
        await self._wait_for_dispatch()
        self._dispatch = None
        if not self._closed:
            await self.close()

        self._reset_state()
        self._closed = False
        events: asyncio.Queue = asyncio.Queue()
        self._events = events
        self._tasks["consumer"] = asyncio.create_task(self._run(events))
        self._notify()

        try:
            self._input = self._input_factory()
            self._output = self._output_factory()
            self._scheduler = PlaybackScheduler(self._output)
            await self._input.start()
            session = await self._connector.connect(self.live_config())
        except SessionError as e:
            logger.error("Voice session refused: %s", e)
            await self._fail_open(str(e))
            return False
        except Exception:
            logger.exception("Could not start voice session")
            await self._fail_open(START_FAILED)
            return False

        if self._closed:
            # close() ran while we were connecting
            await _close_quietly(session)
            return False

        self._session = session
        self._tasks["receiver"] = asyncio.create_task(self._receive(session, events))
        events.put_nowait(SessionOpened())
        logger.info("Voice session opened with %s", self.persona["name"])
        return True

    async def close(self) -> None:
        """Tear everything down and reset to the initial state. Safe from any state."""
        await self._release()
        self._reset_state()
        self._notify()
        await self._wait_for_dispatch()

    async def stop(self) -> Optional[str]:
        """User pressed stop: close, then search whatever the user last said.

        Does nothing while a search_term dispatch is already navigating.
        """
        if self._dispatching:
            await self._wait_for_dispatch()
            return None
        text = self.pending_user_text.strip() or self._last_user_text()
        await self.close()
        if text:
            await self._go_to(text)
        return text or None

    async def _fail_open(self, notice: str) -> None:
        await self._release()
        self.status = VoiceStatus.CONNECTING
        self.transcript.append(TranscriptLine(speaker=Speaker.SYSTEM, text=notice))
        self._notify()

    @property
    def _dispatching(self) -> bool:
        return self._dispatch is not None and not self._dispatch.done()

    def _start_dispatch(self, term: str) -> None:
        # No further messages are handled for this session instance.
        self._closed = True
        self._dispatch = asyncio.create_task(self._dispatch_navigation(term))

    async def _dispatch_navigation(self, term: str) -> None:
        try:
            await self.close()
        finally:
            try:
                await self._go_to(term)
            except Exception:
                logger.exception("Navigation to %s failed", term)

    async def _wait_for_dispatch(self) -> None:
        dispatch = self._dispatch
        if dispatch is not None and dispatch is not asyncio.current_task():
            await asyncio.shield(dispatch)

    async def _release(self) -> None:
        self._closed = True

        audio_input, self._input = self._input, None
        if audio_input is not None:
            audio_input.stop()

        pump = self._tasks.pop("pump", None)
        if pump is not None:
            pump.cancel()

        if audio_input is not None:
            audio_input.close()
        output, self._output = self._output, None
        if output is not None and not output.closed:
            output.close()

        if self._scheduler is not None:
            self._scheduler.stop_all()
            self._scheduler = None

        session, self._session = self._session, None
        if session is not None:
            await _close_quietly(session)

        current = asyncio.current_task()
        for name in ("receiver", "consumer"):
            task = self._tasks.pop(name, None)
            if task is not None and task is not current:
                task.cancel()
        self._events = None

    # ── Event loop ───────────────────────────────────────────────────────────

    async def _receive(self, session: LiveSession, events: asyncio.Queue) -> None:
        try:
            async for message in session.receive():
                events.put_nowait(message)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            events.put_nowait(SessionErrored(e))
        else:
            events.put_nowait(SessionEnded())

    async def _run(self, events: asyncio.Queue) -> None:
        while not self._closed:
            event = await events.get()
            if self._closed:
                break
            try:
                await self._handle(event)
            except Exception:
                logger.exception("Voice event %s failed", type(event).__name__)

    async def _handle(self, event) -> None:
        if isinstance(event, ServerMessage):
            await self._on_message(event)
        elif isinstance(event, PlaybackEnded):
            if self._scheduler is not None and self._scheduler.finished(event.handle):
                self.status = VoiceStatus.LISTENING
        elif isinstance(event, SessionOpened):
            self.status = VoiceStatus.LISTENING
            self._tasks["pump"] = asyncio.create_task(self._pump(self._input, self._session))
        elif isinstance(event, SessionErrored):
            logger.error("Voice session error: %s", event.error)
            self.status = VoiceStatus.CONNECTING
            self.transcript.append(TranscriptLine(speaker=Speaker.SYSTEM, text=SESSION_UNAVAILABLE))
        elif isinstance(event, SessionEnded):
            logger.info("Voice session closed by the server")
            return
        if not self._closed:
            self._notify()

    async def _on_message(self, message: ServerMessage) -> None:
        for call in message.tool_calls:
            if call.name != SEARCH_TERM_TOOL["name"]:
                logger.warning("Ignoring unknown tool call %s", call.name)
                continue
            try:
                term = term_from_tool_call(call)
            except ToolArgumentError as e:
                logger.warning("Failing the current turn: %s", e)
                self.status = VoiceStatus.LISTENING
                continue
            self.status = VoiceStatus.PROCESSING
            self._notify()
            self._start_dispatch(term)
            return

        if message.input_transcription:
            self.pending_user_text += message.input_transcription
        if message.output_transcription:
            self.pending_assistant_text += message.output_transcription

        if message.turn_complete:
            self._flush_turn()

        if message.audio:
            await self._play(message.audio)

    def _flush_turn(self) -> None:
        if self.pending_user_text:
            self.transcript.append(
                TranscriptLine(speaker=Speaker.USER, label=USER_LABEL, text=self.pending_user_text.strip())
            )
            self.pending_user_text = ""
        if self.pending_assistant_text:
            self.transcript.append(
                TranscriptLine(
                    speaker=Speaker.ASSISTANT,
                    label=self.persona["name"],
                    text=self.pending_assistant_text.strip(),
                )
            )
            self.pending_assistant_text = ""

    async def _play(self, data) -> None:
        output = self._output
        if output is None:
            return
        samples = decode_pcm16(data)
        if not len(samples):
            logger.debug("Ignoring an audio chunk with no whole samples")
            return
        self.status = VoiceStatus.SPEAKING
        await output.resume()
        if self._closed or self._scheduler is None:
            return
        self._scheduler.schedule(samples, self._playback_ended)

    def _playback_ended(self, handle: PlaybackHandle) -> None:
        if not self._closed and self._events is not None:
            self._events.put_nowait(PlaybackEnded(handle))

    async def _pump(self, audio_input: Optional[AudioInput], session: Optional[LiveSession]) -> None:
        if audio_input is None or session is None:
            return
        mime = pcm_mime(self.settings.INPUT_SAMPLE_RATE)
        async for frame in audio_input.frames():
            if self._closed:
                break
            try:
                await session.send_audio(encode_pcm16(frame), mime)
            except Exception as e:
                logger.debug("Dropped an audio frame: %s", e)

    # ── Helpers ──────────────────────────────────────────────────────────────

    def _last_user_text(self) -> str:
        for line in reversed(self.transcript):
            if line.speaker == Speaker.USER and line.text:
                return line.text
        return ""

    async def _go_to(self, term: str) -> None:
        path = term_path(term)
        logger.info("Voice navigation to %s", path)
        result = self._navigate(path)
        if inspect.isawaitable(result):
            await result

    def _notify(self) -> None:
        if self._on_change is None:
            return
        try:
            self._on_change(self.snapshot())
        except Exception:
            logger.exception("Voice state listener failed")


async def _close_quietly(session: LiveSession) -> None:
    try:
        await session.close()
    except Exception as e:
        logger.info("Error closing voice session: %s", e)
