"""Audio capture sources for the voice session."""

import asyncio
from abc import ABC, abstractmethod
from typing import AsyncIterator, Optional

import numpy as np


class AudioInput(ABC):
    """Microphone-like source yielding fixed-size float32 frames."""

    @abstractmethod
    async def start(self) -> None:
        """Acquire the device. May wait on a permission prompt."""

    @abstractmethod
    def frames(self) -> AsyncIterator[np.ndarray]:
        """Frames in capture order until the source is stopped."""

    @abstractmethod
    def stop(self) -> None:
        """Release the capture tracks. Pending frames are dropped."""

    def close(self) -> None:
        """Close the capture context."""


class QueueAudioInput(AudioInput):
    """Capture fed by the browser: raw float32 chunks re-cut into frames.

    The client streams whatever chunk sizes its audio worklet produces;
    frames() always yields exactly `frame_size` samples.
    """

    def __init__(self, frame_size: int, max_frames: int = 64):
        self.frame_size = frame_size
        self._queue: asyncio.Queue[Optional[np.ndarray]] = asyncio.Queue(maxsize=max_frames)
        self._buffer = np.zeros(0, dtype=np.float32)
        self.started = False
        self.stopped = False
        self.closed = False

    async def start(self) -> None:
        self.started = True

    def push(self, chunk: bytes) -> None:
        """Accept little-endian float32 samples from the client."""
        if self.stopped or not chunk:
            return
        usable = len(chunk) - len(chunk) % 4
        samples = np.frombuffer(chunk[:usable], dtype="<f4")
        self._buffer = np.concatenate([self._buffer, samples])
        while len(self._buffer) >= self.frame_size:
            frame, self._buffer = self._buffer[: self.frame_size], self._buffer[self.frame_size:]
            if self._queue.full():
                # Slow uplink: drop the oldest frame rather than grow without bound
                self._queue.get_nowait()
            self._queue.put_nowait(frame.copy())

    async def frames(self) -> AsyncIterator[np.ndarray]:
        while not self.stopped:
            frame = await self._queue.get()
            if frame is None:
                return
            yield frame

    def stop(self) -> None:
        if self.stopped:
            return
        self.stopped = True
        self._buffer = np.zeros(0, dtype=np.float32)
        while not self._queue.empty():
            self._queue.get_nowait()
        self._queue.put_nowait(None)

    def close(self) -> None:
        self.closed = True
