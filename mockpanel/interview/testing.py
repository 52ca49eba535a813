"""
Testing infrastructure with fake providers and devices for the interview system.
"""
import asyncio
from typing import Any, Dict, List, Optional

import numpy as np

from .errors import MediaDeviceError, SessionHandshakeError
from .models import CandidateProfile, Persona, build_panel
from ..infrastructure.live.provider import LiveMessage, MessageHandler, TranscriptionFlags
from ..infrastructure.audio.processing.processing import encode_pcm16


class ManualClock:
    """Wall clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now


class FakeLiveConnection:
    """Records everything sent to it; tests push provider messages with ``emit``."""

    def __init__(self, voice: str, system_instruction: str, on_message: MessageHandler,
                 transcription: TranscriptionFlags):
        self.voice = voice
        self.system_instruction = system_instruction
        self.on_message = on_message
        self.transcription = transcription
        self.media: List[bytes] = []
        self.texts: List[str] = []
        self.closed = False

    async def send_realtime_input(self, media: bytes) -> None:
        self.media.append(media)

    async def send_text(self, text: str) -> None:
        self.texts.append(text)

    async def close(self) -> None:
        self.closed = True

    def emit(self, message: LiveMessage) -> None:
        self.on_message(message)


class FakeLiveProvider:
    """
    In-memory live provider.

    ``fail_next`` makes that many upcoming handshakes fail. Setting ``gate``
    to an unset asyncio.Event holds every connect until the event is set.
    """

    def __init__(self, fail_next: int = 0):
        self.fail_next = fail_next
        self.gate: Optional[asyncio.Event] = None
        self.connections: List[FakeLiveConnection] = []
        self.connect_calls = 0

    @property
    def latest(self) -> FakeLiveConnection:
        return self.connections[-1]

    async def connect(self,
                      voice: str,
                      system_instruction: str,
                      on_message: MessageHandler,
                      transcription: TranscriptionFlags = TranscriptionFlags()) -> FakeLiveConnection:
        self.connect_calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_next > 0:
            self.fail_next -= 1
            raise SessionHandshakeError(f"Handshake refused for voice {voice}")
        connection = FakeLiveConnection(voice, system_instruction, on_message, transcription)
        self.connections.append(connection)
        return connection


class ManualPlayback:
    """Playback handle that remembers whether it was cut off."""

    def __init__(self, samples: np.ndarray, start_at: float):
        self.samples = samples
        self.start_at = start_at
        self.stopped = False

    def stop(self) -> None:
        self.stopped = True


class ManualAudioSink:
    """
    AudioSink with a hand-driven clock.

    With ``auto_advance`` the clock jumps to the end of each chunk as soon as
    the queue waits on it. Without it, playback only progresses on ``advance``.
    """

    def __init__(self, auto_advance: bool = True, start: float = 0.0):
        self.auto_advance = auto_advance
        self.now = start
        self.plays: List[ManualPlayback] = []
        self.closed = False
        self._waiters: List[asyncio.Event] = []

    @property
    def start_times(self) -> List[float]:
        return [handle.start_at for handle in self.plays]

    def current_time(self) -> float:
        return self.now

    def play(self, samples: np.ndarray, start_at: float) -> ManualPlayback:
        handle = ManualPlayback(samples, start_at)
        self.plays.append(handle)
        return handle

    async def wait_until(self, when: float) -> None:
        if self.auto_advance:
            self.now = max(self.now, when)
            await asyncio.sleep(0)
            return
        while self.now < when:
            event = asyncio.Event()
            self._waiters.append(event)
            await event.wait()

    def advance(self, seconds: float) -> None:
        self.now += seconds
        waiters, self._waiters = self._waiters, []
        for event in waiters:
            event.set()

    def close(self) -> None:
        self.closed = True


class FakeCapture:
    """Stands in for MediaCapture without touching any device."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.started = False
        self.stopped = False
        self.muted = False

    def start(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        if self.fail:
            raise MediaDeviceError("Permission denied")
        self.started = True

    def toggle_mute(self) -> bool:
        self.muted = not self.muted
        return self.muted

    def stop(self) -> None:
        self.stopped = True


def pcm_chunk(seconds: float, sample_rate: int = 24000) -> bytes:
    """Silent PCM16 chunk of the given length."""
    return encode_pcm16(np.zeros(int(round(seconds * sample_rate)), dtype=np.float32))


def create_mock_panel() -> List[Persona]:
    """Three-person panel used across the tests."""
    return build_panel([
        {"id": "p1", "name": "Priya Raman", "role": "Engineering Manager",
         "focus": "leadership and teamwork", "description": "Warm but direct"},
        {"id": "p2", "name": "Marcus Lee", "role": "Staff Engineer",
         "focus": "system design", "description": "Curious and precise"},
        {"id": "p3", "name": "Dana Ortiz", "role": "Product Lead",
         "focus": "communication", "description": "Friendly, asks for specifics"},
    ])


def create_mock_candidate(**overrides: Any) -> CandidateProfile:
    data: Dict[str, Any] = {
        "name": "Alex Kim",
        "targetRole": "Backend Engineer",
        "skills": ["Python", "PostgreSQL", "Kubernetes"],
        "experience": ["4 years building payment APIs"],
        "education": ["BSc Computer Science"],
    }
    data.update(overrides)
    return CandidateProfile.from_dict(data)
