"""
Live session lifecycle.

Each persona activation gets its own StreamingSession:

    Idle -> Connecting -> Active -> Closing -> Closed

LiveSessionController swaps sessions transactionally. Only one activation may
be in flight at a time, the previous session is closed (errors swallowed) and
allowed to settle before the next one connects, and outbound media silently
goes nowhere while no session is active.
"""
import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, Optional, Set

from .provider import LiveProvider, LiveConnection, LiveMessage, MessageHandler, TranscriptionFlags
from ...config import SESSION_SETTLE_SECONDS
from ...interview.errors import SessionHandshakeError
from ...interview.models import Persona

logger = logging.getLogger("live_session")

Sleep = Callable[[float], Awaitable[None]]


class SessionState(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    ACTIVE = "active"
    CLOSING = "closing"
    CLOSED = "closed"


class StreamingSession:
    """One live connection bound to one persona's voice and instructions."""

    def __init__(self,
                 provider: LiveProvider,
                 persona: Persona,
                 system_instruction: str,
                 on_message: MessageHandler,
                 settle_seconds: float = SESSION_SETTLE_SECONDS,
                 sleep: Sleep = asyncio.sleep,
                 transcription: TranscriptionFlags = TranscriptionFlags()):
        self.provider = provider
        self.persona = persona
        self.system_instruction = system_instruction
        self.on_message = on_message
        self.settle_seconds = settle_seconds
        self.sleep = sleep
        self.transcription = transcription
        self.state = SessionState.IDLE
        self._connection: Optional[LiveConnection] = None
        self._sends: Set[asyncio.Task] = set()

    @property
    def is_active(self) -> bool:
        return self.state == SessionState.ACTIVE

    async def open(self) -> None:
        """
        Connect to the provider.

        Raises:
            SessionHandshakeError: the provider failed to open the session
        """
        if self.state != SessionState.IDLE:
            raise SessionHandshakeError(f"Cannot open a session in state {self.state.value}")
        self.state = SessionState.CONNECTING
        logger.info(f"Connecting {self.persona.name} with voice {self.persona.voice}")
        try:
            self._connection = await self.provider.connect(
                voice=self.persona.voice,
                system_instruction=self.system_instruction,
                on_message=self._dispatch,
                transcription=self.transcription,
            )
        except SessionHandshakeError:
            self.state = SessionState.CLOSED
            raise
        except Exception as e:
            self.state = SessionState.CLOSED
            raise SessionHandshakeError(f"Handshake failed for {self.persona.name}: {e}")
        self.state = SessionState.ACTIVE
        logger.info(f"{self.persona.name} session active")

    def _dispatch(self, message: LiveMessage) -> None:
        # Anything arriving after close belongs to a superseded session
        if self.state != SessionState.ACTIVE:
            return
        self.on_message(message)

    def send_media(self, chunk: bytes) -> None:
        """Fire-and-forget media send. Never blocks and never raises."""
        if self.state != SessionState.ACTIVE or self._connection is None:
            return
        task = asyncio.get_running_loop().create_task(self._connection.send_realtime_input(chunk))
        self._sends.add(task)
        task.add_done_callback(self._send_done)

    def _send_done(self, task: asyncio.Task) -> None:
        self._sends.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.debug(f"Media send failed on {self.persona.name}: {task.exception()}")

    async def send_text(self, text: str) -> None:
        if self.state != SessionState.ACTIVE or self._connection is None:
            return
        try:
            await self._connection.send_text(text)
        except Exception as e:
            logger.warning(f"Failed to send text to {self.persona.name}: {e}")

    async def close(self) -> None:
        """Graceful close followed by the settle delay."""
        if self.state in (SessionState.CLOSING, SessionState.CLOSED):
            return
        self.state = SessionState.CLOSING
        await self._close_connection()
        await self.sleep(self.settle_seconds)
        self.state = SessionState.CLOSED
        logger.info(f"{self.persona.name} session closed")

    def abort(self) -> None:
        """Close without waiting. Used when the call ends."""
        if self.state == SessionState.CLOSED:
            return
        self.state = SessionState.CLOSED
        for task in list(self._sends):
            task.cancel()
        if self._connection is not None:
            try:
                asyncio.get_running_loop().create_task(self._close_connection())
            except RuntimeError:
                self._connection = None

    async def _close_connection(self) -> None:
        connection, self._connection = self._connection, None
        if connection is None:
            return
        try:
            await connection.close()
        except Exception as e:
            logger.warning(f"Error closing {self.persona.name} session: {e}")


class LiveSessionController:
    """Owns "the current session" and replaces it one activation at a time."""

    def __init__(self,
                 provider: LiveProvider,
                 settle_seconds: float = SESSION_SETTLE_SECONDS,
                 sleep: Sleep = asyncio.sleep):
        self.provider = provider
        self.settle_seconds = settle_seconds
        self.sleep = sleep
        self.current: Optional[StreamingSession] = None
        self._in_flight = False

    @property
    def is_transitioning(self) -> bool:
        return self._in_flight

    @property
    def active_persona(self) -> Optional[Persona]:
        session = self.current
        return session.persona if session is not None and session.is_active else None

    async def activate(self,
                       persona: Persona,
                       system_instruction: str,
                       on_message: MessageHandler,
                       kickoff: Optional[str] = None) -> bool:
        """
        Replace the current session with one for ``persona``.

        Returns:
            True if the new session is active; False if another activation was
            already in flight or the handshake failed
        """
        if self._in_flight:
            logger.info(f"Activation of {persona.name} skipped, another activation is in flight")
            return False

        self._in_flight = True
        try:
            previous, self.current = self.current, None
            if previous is not None:
                await previous.close()

            session = StreamingSession(
                self.provider, persona, system_instruction, on_message,
                settle_seconds=self.settle_seconds, sleep=self.sleep,
            )
            try:
                await session.open()
            except SessionHandshakeError as e:
                logger.error(f"Activation aborted: {e}")
                return False

            self.current = session
            if kickoff:
                await session.send_text(kickoff)
            return True
        finally:
            self._in_flight = False

    def send_realtime_input(self, chunk: bytes) -> None:
        """Forward captured media to whichever session is active, if any."""
        session = self.current
        if session is None:
            return
        session.send_media(chunk)

    async def send_text(self, text: str) -> None:
        session = self.current
        if session is not None:
            await session.send_text(text)

    async def close(self) -> None:
        session, self.current = self.current, None
        if session is not None:
            await session.close()

    def abort(self) -> None:
        session, self.current = self.current, None
        if session is not None:
            session.abort()
