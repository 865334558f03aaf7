"""Tests for the voice session state machine with a fake model and fake devices."""

import asyncio
import base64
import sys
import os

import numpy as np

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from desbuguei.agents.personas import get_persona
from desbuguei.errors import SessionError
from desbuguei.schemas.voice import Speaker, VoiceStatus
from desbuguei.voice.events import ServerMessage, ToolCall
from desbuguei.voice.session import (
    SESSION_UNAVAILABLE,
    START_FAILED,
    VoiceSessionController,
    term_path,
)
from fakes import FakeAudioInput, FakeAudioOutput, FakeConnector, audio_message, make_settings, wait_until


class Harness:
    """A controller wired to fakes, with everything it produced recorded."""

    def __init__(self, connector=None, now: float = 0.0):
        self.connector = connector or FakeConnector()
        self.inputs: list[FakeAudioInput] = []
        self.outputs: list[FakeAudioOutput] = []
        self.navigations: list[str] = []
        self.snapshots = []
        self.now = now
        self.controller = VoiceSessionController(
            persona=get_persona("jessica"),
            connector=self.connector,
            input_factory=self._make_input,
            output_factory=self._make_output,
            navigate=self.navigations.append,
            settings=make_settings(),
            on_change=self.snapshots.append,
        )

    def _make_input(self):
        self.inputs.append(FakeAudioInput())
        return self.inputs[-1]

    def _make_output(self):
        self.outputs.append(FakeAudioOutput(now=self.now))
        return self.outputs[-1]

    @property
    def session(self):
        return self.connector.sessions[-1]

    async def open(self) -> bool:
        ok = await self.controller.open()
        if ok:
            await wait_until(lambda: self.controller.status == VoiceStatus.LISTENING)
        return ok

    async def send(self, message: ServerMessage) -> None:
        self.session.push(message)
        await asyncio.sleep(0.01)


def assert_torn_down(harness: Harness) -> None:
    controller = harness.controller
    assert not controller.is_open
    assert controller.session is None
    assert controller.capture is None
    assert controller.scheduled_buffers == 0
    assert controller.status == VoiceStatus.CONNECTING
    assert controller.transcript == []
    assert controller.pending_user_text == ""
    assert controller.pending_assistant_text == ""


class TestOpen:
    def test_open_reaches_listening(self):
        async def scenario():
            h = Harness()
            assert await h.open()
            return h

        h = asyncio.run(scenario())
        assert h.inputs[0].started
        config = h.connector.configs[0]
        assert config.voice_name == get_persona("jessica")["voice_name"]
        assert config.tools[0]["name"] == "search_term"
        assert config.response_modalities == ["AUDIO"]
        assert "Jessica" in config.system_instruction
        assert h.snapshots[-1].status == VoiceStatus.LISTENING

    def test_capture_frames_are_streamed_as_pcm16(self):
        async def scenario():
            h = Harness()
            await h.open()
            h.inputs[0].queue.put_nowait(np.zeros(4096, dtype=np.float32))
            await wait_until(lambda: h.session.sent)
            await h.controller.close()
            return h

        h = asyncio.run(scenario())
        data, mime = h.session.sent[0]
        assert mime == "audio/pcm;rate=16000"
        assert isinstance(data, str) and data

    def test_send_failures_are_dropped(self):
        async def scenario():
            h = Harness()
            await h.open()
            h.session.fail_sends = True
            h.inputs[0].queue.put_nowait(np.zeros(16, dtype=np.float32))
            await asyncio.sleep(0.01)
            return h

        h = asyncio.run(scenario())
        assert h.controller.is_open
        assert h.session.sent == []

    def test_missing_key_shows_message(self):
        async def scenario():
            h = Harness(FakeConnector(error=SessionError("ERRO: API Key não encontrada.")))
            ok = await h.controller.open()
            return h, ok

        h, ok = asyncio.run(scenario())
        assert ok is False
        assert not h.controller.is_open
        assert h.controller.status == VoiceStatus.CONNECTING
        assert h.controller.transcript[-1].text == "ERRO: API Key não encontrada."
        assert h.inputs[0].closed

    def test_connect_failure_shows_generic_message(self):
        async def scenario():
            h = Harness(FakeConnector(error=RuntimeError("socket refused")))
            ok = await h.controller.open()
            return h, ok

        h, ok = asyncio.run(scenario())
        assert ok is False
        assert h.controller.transcript[-1].text == START_FAILED
        assert h.controller.transcript[-1].speaker == Speaker.SYSTEM

    def test_reopen_uses_a_fresh_session(self):
        async def scenario():
            h = Harness()
            await h.open()
            await h.controller.close()
            await h.open()
            return h

        h = asyncio.run(scenario())
        assert len(h.connector.sessions) == 2
        assert h.connector.sessions[0].closed
        assert not h.connector.sessions[1].closed
        assert h.controller.session is h.connector.sessions[1]


class TestTranscript:
    def test_fragments_flush_on_turn_complete(self):
        async def scenario():
            h = Harness()
            await h.open()
            await h.send(ServerMessage(input_transcription="o que é "))
            await h.send(ServerMessage(input_transcription="Docker"))
            pending = h.controller.pending_user_text
            await h.send(ServerMessage(output_transcription="Você disse Docker?", turn_complete=True))
            return h, pending

        h, pending = asyncio.run(scenario())
        assert pending == "o que é Docker"
        lines = [line.render() for line in h.controller.transcript]
        assert lines == ["Você: o que é Docker", "Jessica: Você disse Docker?"]
        assert h.controller.pending_user_text == ""
        assert h.controller.pending_assistant_text == ""

    def test_session_error_appends_notice(self):
        async def scenario():
            h = Harness()
            await h.open()
            h.session.push(ConnectionResetError("gone"))
            await wait_until(lambda: h.controller.transcript)
            return h

        h = asyncio.run(scenario())
        assert h.controller.status == VoiceStatus.CONNECTING
        assert h.controller.transcript[-1].text == SESSION_UNAVAILABLE


class TestPlayback:
    def test_audio_sets_speaking_then_listening(self):
        async def scenario():
            h = Harness(now=2.0)
            await h.open()
            await h.send(audio_message(0.5))
            await h.send(audio_message(0.25))
            speaking = h.controller.status
            output = h.outputs[0]
            starts = [(handle.start_time, handle.end_time) for handle, _ in output.played]
            output.finish(0)
            await asyncio.sleep(0.01)
            after_first = h.controller.status
            output.finish(1)
            await asyncio.sleep(0.01)
            return h, speaking, starts, after_first

        h, speaking, starts, after_first = asyncio.run(scenario())
        assert speaking == VoiceStatus.SPEAKING
        assert starts == [(2.0, 2.5), (2.5, 2.75)]
        assert after_first == VoiceStatus.SPEAKING
        assert h.controller.status == VoiceStatus.LISTENING
        assert h.controller.scheduled_buffers == 0

    def test_chunk_without_whole_samples_keeps_listening(self):
        async def scenario():
            h = Harness()
            await h.open()
            await h.send(ServerMessage(audio=base64.b64encode(b"\x01").decode("ascii")))
            status = h.controller.status
            await h.send(audio_message(0.1))
            return h, status

        h, status = asyncio.run(scenario())
        assert status == VoiceStatus.LISTENING
        assert len(h.outputs[0].played) == 1
        assert h.controller.status == VoiceStatus.SPEAKING

    def test_close_while_speaking_stops_buffers(self):
        async def scenario():
            h = Harness()
            await h.open()
            await h.send(audio_message(1.0))
            busy = h.controller.scheduled_buffers
            await h.controller.close()
            h.outputs[0].finish(0)
            await asyncio.sleep(0.01)
            return h, busy

        h, busy = asyncio.run(scenario())
        assert busy == 1
        assert h.outputs[0].played[0][0].stopped
        assert h.outputs[0].closed
        assert_torn_down(h)


class TestToolCalls:
    def test_search_term_navigates_once_and_tears_down(self):
        async def scenario():
            h = Harness()
            await h.open()
            await h.send(audio_message(0.5))
            await h.send(ServerMessage(tool_calls=[ToolCall(name="search_term", args={"term": "Redis"})]))
            await wait_until(lambda: h.navigations)
            await asyncio.sleep(0.01)
            return h

        h = asyncio.run(scenario())
        assert h.navigations == ["/term/Redis"]
        assert h.connector.sessions[0].closed
        assert h.inputs[0].stopped and h.inputs[0].closed
        assert VoiceStatus.PROCESSING in [s.status for s in h.snapshots]
        assert_torn_down(h)

    def test_term_with_slash_is_escaped(self):
        async def scenario():
            h = Harness()
            await h.open()
            await h.send(ServerMessage(tool_calls=[ToolCall(name="search_term", args={"term": "CI/CD"})]))
            await wait_until(lambda: h.navigations)
            return h

        h = asyncio.run(scenario())
        assert h.navigations == ["/term/CI%2FCD"]

    def test_missing_term_keeps_session_open(self):
        async def scenario():
            h = Harness()
            await h.open()
            await h.send(ServerMessage(tool_calls=[ToolCall(name="search_term", args={})]))
            return h

        h = asyncio.run(scenario())
        assert h.navigations == []
        assert h.controller.is_open
        assert h.controller.status == VoiceStatus.LISTENING

    def _slow_close(self, h: Harness) -> None:
        session = h.session
        original = session.close

        async def slow_close():
            await asyncio.sleep(0.02)
            await original()

        session.close = slow_close

    def test_close_during_dispatch_still_navigates_once(self):
        async def scenario():
            h = Harness()
            await h.open()
            self._slow_close(h)
            h.session.push(ServerMessage(tool_calls=[ToolCall(name="search_term", args={"term": "Redis"})]))
            await wait_until(lambda: h.controller.status == VoiceStatus.PROCESSING)
            await h.controller.close()
            await asyncio.sleep(0.05)
            return h

        h = asyncio.run(scenario())
        assert h.navigations == ["/term/Redis"]
        assert h.connector.sessions[0].closed
        assert_torn_down(h)

    def test_stop_during_dispatch_keeps_the_tool_term(self):
        async def scenario():
            h = Harness()
            await h.open()
            await h.send(ServerMessage(input_transcription="Kafka"))
            self._slow_close(h)
            h.session.push(ServerMessage(tool_calls=[ToolCall(name="search_term", args={"term": "Redis"})]))
            await wait_until(lambda: h.controller.status == VoiceStatus.PROCESSING)
            text = await h.controller.stop()
            await asyncio.sleep(0.05)
            return h, text

        h, text = asyncio.run(scenario())
        assert text is None
        assert h.navigations == ["/term/Redis"]
        assert_torn_down(h)

    def test_reopen_after_dispatch_gets_new_session(self):
        async def scenario():
            h = Harness()
            await h.open()
            h.session.push(ServerMessage(tool_calls=[ToolCall(name="search_term", args={"term": "Redis"})]))
            await wait_until(lambda: h.navigations)
            await h.open()
            return h

        h = asyncio.run(scenario())
        assert len(h.connector.sessions) == 2
        assert h.controller.is_open
        assert h.controller.session is h.connector.sessions[1]

    def test_term_path_escaping(self):
        assert term_path("Kubernetes") == "/term/Kubernetes"
        assert term_path("Dados & IA") == "/term/Dados%20%26%20IA"


class TestStop:
    def test_stop_searches_pending_speech(self):
        async def scenario():
            h = Harness()
            await h.open()
            await h.send(ServerMessage(input_transcription=" Kafka "))
            text = await h.controller.stop()
            return h, text

        h, text = asyncio.run(scenario())
        assert text == "Kafka"
        assert h.navigations == ["/term/Kafka"]
        assert_torn_down(h)

    def test_stop_falls_back_to_last_user_line(self):
        async def scenario():
            h = Harness()
            await h.open()
            await h.send(ServerMessage(input_transcription="Docker", turn_complete=True))
            await h.send(ServerMessage(input_transcription="Kubernetes", turn_complete=True))
            return h, await h.controller.stop()

        h, text = asyncio.run(scenario())
        assert text == "Kubernetes"
        assert h.navigations == ["/term/Kubernetes"]

    def test_stop_without_speech_only_closes(self):
        async def scenario():
            h = Harness()
            await h.open()
            return h, await h.controller.stop()

        h, text = asyncio.run(scenario())
        assert text is None
        assert h.navigations == []
        assert_torn_down(h)
