"""Sequential speech playback and speaker output."""

from .queue import AudioPlaybackQueue, PlaybackCursor, AudioSink, PlaybackHandle
from .speaker import PyAudioSink

__all__ = ["AudioPlaybackQueue", "PlaybackCursor", "AudioSink", "PlaybackHandle", "PyAudioSink"]
