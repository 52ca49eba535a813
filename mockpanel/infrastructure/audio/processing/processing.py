"""
PCM conversions between the live provider's wire format and numpy buffers.

The provider speaks 16-bit little-endian mono PCM, either as raw bytes or
base64 text. Internally audio is float32 in [-1, 1].
"""
import base64
from typing import Union

import numpy as np

AudioPayload = Union[str, bytes, bytearray]

PCM16_SCALE = 32768.0


def stereo_to_mono(x: np.ndarray) -> np.ndarray:
    """Convert interleaved multi-channel audio to mono by averaging channels."""
    return np.mean(x, axis=1)


def payload_bytes(payload: AudioPayload) -> bytes:
    """Raw PCM bytes from either base64 text or bytes."""
    if isinstance(payload, str):
        return base64.b64decode(payload, validate=True)
    if isinstance(payload, (bytes, bytearray)):
        return bytes(payload)
    raise TypeError(f"Unsupported audio payload type: {type(payload).__name__}")


def decode_pcm16(payload: AudioPayload) -> np.ndarray:
    """
    Decode a PCM16 chunk to float32 samples.

    Raises:
        ValueError: payload is not valid base64 or not whole 16-bit samples
        TypeError: payload is neither text nor bytes
    """
    raw = payload_bytes(payload)
    if len(raw) % 2:
        raise ValueError(f"PCM16 payload has odd length {len(raw)}")
    return np.frombuffer(raw, dtype="<i2").astype(np.float32) / PCM16_SCALE


def encode_pcm16(samples: np.ndarray) -> bytes:
    """Encode float32 samples as PCM16 bytes, clipping out-of-range values."""
    clipped = np.clip(np.asarray(samples, dtype=np.float32), -1.0, 1.0)
    return (clipped * 32767.0).astype("<i2").tobytes()


def encode_pcm16_base64(samples: np.ndarray) -> str:
    return base64.b64encode(encode_pcm16(samples)).decode("ascii")


def pcm_mime_type(sample_rate: int) -> str:
    return f"audio/pcm;rate={sample_rate}"
