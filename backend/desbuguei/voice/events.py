"""Internal events feeding the voice session state machine.

Transport callbacks and audio callbacks never touch session state directly;
they put one of these on the controller's queue.
"""

from dataclasses import dataclass, field
from typing import Any, Optional, Union


@dataclass
class ToolCall:
    name: str
    args: dict[str, Any] = field(default_factory=dict)
    call_id: Optional[str] = None


@dataclass
class ServerMessage:
    """One inbound message from the conversational model, any field may be empty."""
    tool_calls: list[ToolCall] = field(default_factory=list)
    input_transcription: Optional[str] = None
    output_transcription: Optional[str] = None
    turn_complete: bool = False
    audio: Optional[Union[str, bytes]] = None  # int16 PCM, base64 or raw


@dataclass
class SessionOpened:
    pass


@dataclass
class SessionErrored:
    error: BaseException


@dataclass
class SessionEnded:
    """The remote side closed the stream."""


@dataclass
class PlaybackEnded:
    handle: Any


@dataclass
class LiveConfig:
    """Everything the duplex session is opened with."""
    system_instruction: str
    voice_name: str
    tools: list[dict]
    response_modalities: list[str] = field(default_factory=lambda: ["AUDIO"])
    input_transcription: bool = True
    output_transcription: bool = True


VoiceEvent = Union[ServerMessage, SessionOpened, SessionErrored, SessionEnded, PlaybackEnded]
