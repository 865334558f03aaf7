"""PCM helpers for the realtime voice stream.

Microphone frames go out as 16-bit little-endian PCM, base64 encoded.
Model audio comes back the same way at the output sample rate.
"""

import base64
from typing import Union

import numpy as np

PCM16_MAX = 0x7FFF
PCM16_SCALE = 32768.0


def pcm_mime(sample_rate: int) -> str:
    return f"audio/pcm;rate={sample_rate}"


def encode_pcm16(samples) -> str:
    """Float samples in [-1, 1] -> base64 int16 PCM. Out-of-range values are clipped."""
    clipped = np.clip(np.asarray(samples, dtype=np.float32), -1.0, 1.0)
    # astype truncates toward zero, the same way a typed-array store does
    pcm = (clipped * PCM16_MAX).astype("<i2")
    return base64.b64encode(pcm.tobytes()).decode("ascii")


def decode_pcm16(data: Union[str, bytes]) -> np.ndarray:
    """Base64 (or raw) int16 PCM -> float32 samples in [-1, 1)."""
    raw = base64.b64decode(data) if isinstance(data, str) else bytes(data)
    if len(raw) % 2:
        raw = raw[:-1]  # drop a dangling half sample
    return np.frombuffer(raw, dtype="<i2").astype(np.float32) / PCM16_SCALE


def duration_of(samples: np.ndarray, sample_rate: int) -> float:
    return len(samples) / float(sample_rate)
