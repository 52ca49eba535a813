"""Live speech sessions: provider boundary, session lifecycle and the Gemini adapter."""

from .provider import LiveMessage, LiveConnection, LiveProvider, TranscriptionFlags
from .session import SessionState, StreamingSession, LiveSessionController

__all__ = [
    "LiveMessage", "LiveConnection", "LiveProvider", "TranscriptionFlags",
    "SessionState", "StreamingSession", "LiveSessionController",
]
