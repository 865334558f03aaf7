"""Gemini Live adapter for the voice session controller."""

import base64
import contextlib
import logging
from typing import AsyncIterator

from google.genai import types

from desbuguei.config import Settings
from desbuguei.errors import SessionError
from desbuguei.services.ai_client import AIClient
from desbuguei.voice.events import LiveConfig, ServerMessage, ToolCall

logger = logging.getLogger(__name__)


def build_connect_config(config: LiveConfig) -> types.LiveConnectConfig:
    kwargs: dict = {
        "response_modalities": [types.Modality(m) for m in config.response_modalities],
        "speech_config": types.SpeechConfig(
            voice_config=types.VoiceConfig(
                prebuilt_voice_config=types.PrebuiltVoiceConfig(voice_name=config.voice_name),
            ),
        ),
        "tools": [types.Tool(function_declarations=[types.FunctionDeclaration(**t) for t in config.tools])],
        "system_instruction": config.system_instruction,
    }
    if config.input_transcription:
        kwargs["input_audio_transcription"] = types.AudioTranscriptionConfig()
    if config.output_transcription:
        kwargs["output_audio_transcription"] = types.AudioTranscriptionConfig()
    return types.LiveConnectConfig(**kwargs)


def to_server_message(message: types.LiveServerMessage) -> ServerMessage:
    """Flatten the SDK message into the fields the controller reacts to."""
    result = ServerMessage()

    if message.tool_call and message.tool_call.function_calls:
        result.tool_calls = [
            ToolCall(name=fc.name or "", args=dict(fc.args or {}), call_id=fc.id)
            for fc in message.tool_call.function_calls
        ]

    content = message.server_content
    if content is None:
        return result

    if content.input_transcription and content.input_transcription.text:
        result.input_transcription = content.input_transcription.text
    if content.output_transcription and content.output_transcription.text:
        result.output_transcription = content.output_transcription.text
    result.turn_complete = bool(content.turn_complete)

    if content.model_turn and content.model_turn.parts:
        inline = content.model_turn.parts[0].inline_data
        if inline is not None and inline.data:
            result.audio = inline.data
    return result


class GeminiLiveSession:
    def __init__(self, session, stack: contextlib.AsyncExitStack):
        self._session = session
        self._stack = stack
        self._closed = False

    async def send_audio(self, data: str, mime_type: str) -> None:
        if self._closed:
            raise SessionError("session is closed")
        await self._session.send_realtime_input(
            audio=types.Blob(data=base64.b64decode(data), mime_type=mime_type),
        )

    async def receive(self) -> AsyncIterator[ServerMessage]:
        # The SDK iterator stops at every turn boundary; keep reading until the
        # connection itself goes quiet.
        while not self._closed:
            received = False
            async for message in self._session.receive():
                received = True
                yield to_server_message(message)
            if not received:
                return

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._stack.aclose()


class GeminiLiveConnector:
    def __init__(self, ai: AIClient, settings: Settings):
        self.ai = ai
        self.settings = settings

    async def connect(self, config: LiveConfig) -> GeminiLiveSession:
        if not self.settings.GEMINI_API_KEY:
            raise SessionError("ERRO: API Key não encontrada.")

        stack = contextlib.AsyncExitStack()
        try:
            session = await stack.enter_async_context(
                self.ai.gemini().aio.live.connect(
                    model=self.settings.GEMINI_LIVE_MODEL,
                    config=build_connect_config(config),
                )
            )
        except Exception:
            await stack.aclose()
            raise
        logger.info("Connected to %s with voice %s", self.settings.GEMINI_LIVE_MODEL, config.voice_name)
        return GeminiLiveSession(session, stack)
