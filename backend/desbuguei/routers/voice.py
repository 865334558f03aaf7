"""Voice router — persona catalogue and the realtime assistant WebSocket.

Protocol on /api/voice/ws?persona=<id>:
  client → server   binary frames: float32 little-endian microphone samples
                    text frames:   {"type": "stop"} | {"type": "close"} | {"type": "open"}
  server → client   {"type": "state", status, persona, transcript, ...}
                    {"type": "audio", data, start, duration, sampleRate}
                    {"type": "navigate", path}
"""

import asyncio
import json
import logging
from typing import Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from desbuguei.agents.personas import PERSONAS, resolve_persona
from desbuguei.schemas.voice import PersonaResponse, VoiceSnapshot
from desbuguei.voice.devices import QueueAudioInput
from desbuguei.voice.playback import VirtualAudioOutput
from desbuguei.voice.session import VoiceSessionController

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/voice", tags=["voice"])


@router.get("/personas", response_model=list[PersonaResponse])
def list_personas():
    """All assistant personas, in display order."""
    return [
        PersonaResponse(
            id=key,
            name=p["name"],
            archetype=p["archetype"],
            gender=p["gender"],
            voice_name=p["voice_name"],
            speed=p["speed"],
            description=p["description"],
            preview_text=p["preview_text"],
        )
        for key, p in PERSONAS.items()
    ]


async def _forward(websocket: WebSocket, outbound: asyncio.Queue) -> None:
    while True:
        payload = await outbound.get()
        try:
            await websocket.send_json(payload)
        except (WebSocketDisconnect, RuntimeError):
            return


@router.websocket("/ws")
async def voice_socket(websocket: WebSocket, persona: Optional[str] = None):
    await websocket.accept()
    services = websocket.app.state.services
    settings = services.settings
    outbound: asyncio.Queue = asyncio.Queue()
    capture: dict = {"input": None}

    def make_input() -> QueueAudioInput:
        capture["input"] = QueueAudioInput(settings.INPUT_FRAME_SIZE)
        return capture["input"]

    def make_output() -> VirtualAudioOutput:
        return VirtualAudioOutput(
            settings.OUTPUT_SAMPLE_RATE,
            sink=lambda data, start, duration: outbound.put_nowait({
                "type": "audio",
                "data": data,
                "start": start,
                "duration": duration,
                "sampleRate": settings.OUTPUT_SAMPLE_RATE,
            }),
        )

    def publish(snapshot: VoiceSnapshot) -> None:
        outbound.put_nowait({"type": "state", **snapshot.model_dump(mode="json")})

    controller = VoiceSessionController(
        persona=resolve_persona(persona, settings.DEFAULT_PERSONA),
        connector=services.live_connector,
        input_factory=make_input,
        output_factory=make_output,
        navigate=lambda path: outbound.put_nowait({"type": "navigate", "path": path}),
        settings=settings,
        on_change=publish,
    )
    sender = asyncio.create_task(_forward(websocket, outbound))

    try:
        await controller.open()
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            if message.get("bytes"):
                if capture["input"] is not None and controller.is_open:
                    capture["input"].push(message["bytes"])
                continue
            try:
                command = json.loads(message.get("text") or "{}")
            except json.JSONDecodeError:
                logger.warning("Ignoring malformed voice command")
                continue
            kind = command.get("type") if isinstance(command, dict) else None
            if kind == "stop":
                await controller.stop()
            elif kind == "close":
                await controller.close()
            elif kind == "open":
                await controller.open()
    except WebSocketDisconnect:
        pass
    finally:
        await controller.close()
        # let queued state/navigate events reach the client before we stop sending
        for _ in range(100):
            if outbound.empty() or sender.done():
                break
            await asyncio.sleep(0.01)
        sender.cancel()
