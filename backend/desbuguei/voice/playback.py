"""Audio output contexts and gapless playback scheduling."""

import asyncio
import inspect
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

import numpy as np

from desbuguei.voice.audio import duration_of, encode_pcm16

logger = logging.getLogger(__name__)


class PlaybackHandle:
    """One scheduled buffer. stop() is safe to call at any time, repeatedly."""

    def __init__(self, start_time: float, duration: float):
        self.start_time = start_time
        self.duration = duration
        self.stopped = False
        self._timer: Optional[asyncio.TimerHandle] = None

    @property
    def end_time(self) -> float:
        return self.start_time + self.duration

    def stop(self) -> None:
        self.stopped = True
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None


class AudioOutput(ABC):
    """A playback context with its own clock, in seconds."""

    sample_rate: int
    closed: bool = False

    @property
    @abstractmethod
    def current_time(self) -> float: ...

    @abstractmethod
    def play(
        self,
        samples: np.ndarray,
        start_time: float,
        on_ended: Callable[[PlaybackHandle], None],
    ) -> PlaybackHandle:
        """Start `samples` at `start_time` and call on_ended when they finish."""

    async def resume(self) -> None:
        """Wait until the context is allowed to produce sound."""

    def close(self) -> None:
        self.closed = True


class VirtualAudioOutput(AudioOutput):
    """Playback context whose "speaker" is a sink callable, e.g. a WebSocket.

    Each buffer is handed to the sink with its start time; the end callback
    fires on the event loop once the buffer would have finished playing.
    """

    def __init__(
        self,
        sample_rate: int,
        sink: Callable[[str, float, float], Any],
        clock: Callable[[], float] = time.monotonic,
    ):
        self.sample_rate = sample_rate
        self._sink = sink
        self._clock = clock
        self._origin = clock()

    @property
    def current_time(self) -> float:
        return self._clock() - self._origin

    def play(self, samples, start_time, on_ended):
        handle = PlaybackHandle(start_time, duration_of(samples, self.sample_rate))
        if self.closed:
            handle.stopped = True
            return handle

        result = self._sink(encode_pcm16(samples), start_time, handle.duration)
        if inspect.isawaitable(result):
            asyncio.ensure_future(result)

        loop = asyncio.get_running_loop()
        delay = max(0.0, handle.end_time - self.current_time)

        def _finished():
            handle._timer = None
            if not handle.stopped:
                on_ended(handle)

        handle._timer = loop.call_later(delay, _finished)
        return handle


class PlaybackScheduler:
    """Queues model audio back to back: no gaps, no overlaps."""

    def __init__(self, output: AudioOutput):
        self.output = output
        self.next_start_time = 0.0
        self.active: set[PlaybackHandle] = set()

    def schedule(self, samples: np.ndarray, on_ended: Callable[[PlaybackHandle], None]) -> PlaybackHandle:
        start = max(self.next_start_time, self.output.current_time)
        handle = self.output.play(samples, start, on_ended)
        self.next_start_time = start + handle.duration
        self.active.add(handle)
        return handle

    def finished(self, handle: PlaybackHandle) -> bool:
        """Forget a buffer that ended. True when nothing else is queued."""
        self.active.discard(handle)
        return not self.active

    def stop_all(self) -> None:
        for handle in list(self.active):
            handle.stop()
        self.active.clear()
