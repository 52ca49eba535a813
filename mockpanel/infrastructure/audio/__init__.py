"""
Audio I/O for the live interview.

This module contains all audio-related functionality organized into submodules:
- processing: PCM conversion and microphone capture
- playback: sequential speech playback and speaker output
"""

from .processing import decode_pcm16, encode_pcm16, MediaCapture
from .playback import AudioPlaybackQueue, PlaybackCursor, AudioSink, PyAudioSink

__all__ = [
    "decode_pcm16",
    "encode_pcm16",
    "MediaCapture",
    "AudioPlaybackQueue",
    "PlaybackCursor",
    "AudioSink",
    "PyAudioSink",
]
