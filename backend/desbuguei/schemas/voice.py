"""Voice assistant schemas — session status, transcript and persona catalogue."""

from enum import Enum
from typing import Optional
from pydantic import BaseModel


class VoiceStatus(str, Enum):
    CONNECTING = "connecting"
    LISTENING = "listening"
    SPEAKING = "speaking"
    PROCESSING = "processing"


class Speaker(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"  # localized notices such as "Serviço indisponível"


USER_LABEL = "Você"


class TranscriptLine(BaseModel):
    speaker: Speaker
    text: str
    label: Optional[str] = None  # display name of the speaker

    class Config:
        frozen = True

    def render(self) -> str:
        if self.speaker == Speaker.SYSTEM or not self.label:
            return self.text
        return f"{self.label}: {self.text}"


class VoiceSnapshot(BaseModel):
    """What the UI renders for an open assistant panel."""
    status: VoiceStatus
    persona: str
    transcript: list[TranscriptLine]
    pending_user_text: str = ""
    pending_assistant_text: str = ""


class PersonaResponse(BaseModel):
    id: str
    name: str
    archetype: str
    gender: str
    voice_name: str
    speed: float
    description: str
    preview_text: str
