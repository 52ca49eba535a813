"""
Boundary types for the live speech provider.

A provider opens one bidirectional session per persona. Media goes in,
transcription text, audio chunks and an interruption signal come out.
"""
from dataclasses import dataclass
from typing import Callable, Optional, Protocol, Union


@dataclass(frozen=True)
class TranscriptionFlags:
    """Which sides of the conversation the provider should transcribe."""
    input_audio: bool = True
    output_audio: bool = True


@dataclass
class LiveMessage:
    """One normalized server message."""
    text_delta: Optional[str] = None
    input_text_delta: Optional[str] = None
    audio_chunk: Optional[Union[bytes, str]] = None
    interrupted: bool = False
    turn_complete: bool = False


MessageHandler = Callable[[LiveMessage], None]


class LiveConnection(Protocol):
    async def send_realtime_input(self, media: bytes) -> None: ...

    async def send_text(self, text: str) -> None: ...

    async def close(self) -> None: ...


class LiveProvider(Protocol):
    async def connect(self,
                      voice: str,
                      system_instruction: str,
                      on_message: MessageHandler,
                      transcription: TranscriptionFlags = TranscriptionFlags()) -> LiveConnection: ...
