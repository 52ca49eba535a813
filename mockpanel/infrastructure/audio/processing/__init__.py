"""
Audio processing: PCM conversion and microphone capture.
"""

from .processing import (
    decode_pcm16, encode_pcm16, encode_pcm16_base64,
    stereo_to_mono, pcm_mime_type,
)
from .capture import MediaCapture

__all__ = [
    "decode_pcm16", "encode_pcm16", "encode_pcm16_base64",
    "stereo_to_mono", "pcm_mime_type",
    "MediaCapture",
]
