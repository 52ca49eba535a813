"""Infrastructure components for the mock interview panel.

This module contains the technical layers the interview logic runs on:
audio I/O, live speech provider sessions and the advisory channel.
"""

# Audio infrastructure
from .audio import AudioPlaybackQueue, PlaybackCursor, PyAudioSink, MediaCapture

# Live speech sessions
from .live import LiveSessionController, StreamingSession, LiveMessage

__all__ = [
    # Audio
    "AudioPlaybackQueue", "PlaybackCursor", "PyAudioSink", "MediaCapture",

    # Live sessions
    "LiveSessionController", "StreamingSession", "LiveMessage",
]
