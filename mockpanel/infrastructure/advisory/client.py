"""
Advisory channel client.

A secondary, latency-tolerant websocket to the advisory server. Finalized
transcript turns go out, hints and clock updates come back. Nothing here may
block or break the live conversation: publishing only enqueues, and a failed or
dropped connection just means no guidance is available.
"""
import asyncio
import json
import logging
import time
from typing import Any, Callable, Dict, Optional

import websockets
from pydantic import ValidationError
from websockets.exceptions import WebSocketException

from ...config import ADVISORY_CONNECT_TIMEOUT, HINT_TTL_SECONDS, HINT_THROTTLE_SECONDS
from ...interview.errors import AdvisoryProtocolError
from ...interview.models import Hint
from ...interview.schemas import (
    InitMessage, TranscriptUpdateMessage, InitializedMessage, OrchestrationHintMessage,
    PhaseChangeMessage, InterviewCompleteMessage, TimeUpdateMessage, ErrorMessage,
    WireModel, server_message_adapter, SERVER_MESSAGE_TYPES,
)

logger = logging.getLogger("advisory_client")


class AdvisoryChannel:
    """
    Client side of the advisory protocol.

    Hints are last-write-wins. ``take_hint()`` hands out the newest hint at
    most once per throttle window and never returns one older than the TTL.
    """

    def __init__(self,
                 url: str,
                 hint_ttl: float = HINT_TTL_SECONDS,
                 throttle: float = HINT_THROTTLE_SECONDS,
                 connect_timeout: float = ADVISORY_CONNECT_TIMEOUT,
                 clock: Callable[[], float] = time.monotonic,
                 connect: Callable = websockets.connect,
                 on_hint: Optional[Callable[[Hint], None]] = None,
                 on_phase_change: Optional[Callable[[PhaseChangeMessage], None]] = None,
                 on_time_update: Optional[Callable[[TimeUpdateMessage], None]] = None,
                 on_complete: Optional[Callable[[InterviewCompleteMessage], None]] = None):
        self.url = url
        self.hint_ttl = hint_ttl
        self.throttle = throttle
        self.connect_timeout = connect_timeout
        self.clock = clock
        self._connect = connect
        self.on_hint = on_hint
        self.on_phase_change = on_phase_change
        self.on_time_update = on_time_update
        self.on_complete = on_complete

        self.session_id: Optional[str] = None
        self._ws = None
        self._outbound: Optional[asyncio.Queue] = None
        self._reader: Optional[asyncio.Task] = None
        self._writer: Optional[asyncio.Task] = None
        self._hint: Optional[Hint] = None
        self._last_taken: Optional[float] = None
        self._closed = False

    @property
    def connected(self) -> bool:
        return self._ws is not None and not self._closed

    async def start(self, init_message: InitMessage) -> bool:
        """
        Connect and send ``init``.

        Returns:
            False if the server could not be reached; the interview then runs
            without hints
        """
        try:
            self._ws = await asyncio.wait_for(self._connect(self.url), timeout=self.connect_timeout)
        except (OSError, asyncio.TimeoutError, WebSocketException) as e:
            logger.warning(f"Advisory server unavailable at {self.url}: {e}")
            self._ws = None
            return False

        self._closed = False
        self._outbound = asyncio.Queue()
        self._reader = asyncio.create_task(self._read_loop())
        self._writer = asyncio.create_task(self._write_loop())
        self.publish(init_message)
        logger.info(f"Advisory channel connected to {self.url}")
        return True

    def publish(self, message: WireModel) -> None:
        """Queue a message for the server. Never blocks."""
        if not self.connected or self._outbound is None:
            return
        self._outbound.put_nowait(message.to_wire())

    def publish_transcript(self, speaker: str, text: str, timestamp: float,
                           persona_name: Optional[str] = None) -> None:
        self.publish(TranscriptUpdateMessage(
            speaker=speaker, text=text, timestamp=timestamp, persona_name=persona_name,
        ))

    def peek_hint(self) -> Optional[Hint]:
        """Newest hint usable right now (unexpired, outside the throttle window), not consumed."""
        hint = self._hint
        if hint is None:
            return None
        now = self.clock()
        if now - hint.received_at > self.hint_ttl:
            logger.debug(f"Hint '{hint.suggested_topic}' expired unread")
            self._hint = None
            return None
        if self._last_taken is not None and now - self._last_taken < self.throttle:
            return None
        return hint

    def take_hint(self) -> Optional[Hint]:
        """Consume the newest hint, subject to expiry and the throttle window."""
        hint = self.peek_hint()
        if hint is not None:
            self.consume_hint(hint)
        return hint

    def consume_hint(self, hint: Hint) -> None:
        """Mark ``hint`` as used. A newer hint that arrived since it was peeked stays available."""
        self._last_taken = self.clock()
        if self._hint is hint:
            self._hint = None

    async def _write_loop(self) -> None:
        try:
            while True:
                payload = await self._outbound.get()
                await self._ws.send(json.dumps(payload))
        except asyncio.CancelledError:
            raise
        except (WebSocketException, OSError) as e:
            logger.warning(f"Advisory channel send failed, continuing without hints: {e}")
            self._disconnected()

    async def _read_loop(self) -> None:
        try:
            async for raw in self._ws:
                try:
                    self.handle_raw(raw)
                except AdvisoryProtocolError as e:
                    logger.warning(f"Ignoring advisory message: {e}")
        except asyncio.CancelledError:
            raise
        except (WebSocketException, OSError) as e:
            logger.warning(f"Advisory channel dropped: {e}")
        self._disconnected()

    def handle_raw(self, raw: Any) -> None:
        """
        Parse and dispatch one server frame.

        Raises:
            AdvisoryProtocolError: the frame is not valid JSON or fails validation
        """
        try:
            data = json.loads(raw)
        except (TypeError, json.JSONDecodeError) as e:
            raise AdvisoryProtocolError(f"Malformed frame: {e}")

        message_type = data.get("type") if isinstance(data, dict) else None
        if message_type not in SERVER_MESSAGE_TYPES:
            logger.debug(f"Unknown advisory message type: {message_type}")
            return

        try:
            message = server_message_adapter.validate_python(data)
        except ValidationError as e:
            raise AdvisoryProtocolError(f"Invalid {message_type} message: {e}")

        if isinstance(message, OrchestrationHintMessage):
            self._store_hint(message)
        elif isinstance(message, InitializedMessage):
            self.session_id = message.session_id
            logger.info(f"Advisory session {message.session_id} initialized")
        elif isinstance(message, PhaseChangeMessage):
            logger.info(f"Interview phase: {message.phase} ({message.remaining_seconds}s left)")
            self._notify(self.on_phase_change, message)
        elif isinstance(message, TimeUpdateMessage):
            self._notify(self.on_time_update, message)
        elif isinstance(message, InterviewCompleteMessage):
            logger.info(f"Advisory server reports interview complete: {message.question_count} questions")
            self._notify(self.on_complete, message)
        elif isinstance(message, ErrorMessage):
            logger.warning(f"Advisory server error: {message.message}")

    def _store_hint(self, message: OrchestrationHintMessage) -> None:
        hint = Hint(
            suggested_topic=message.suggested_topic,
            suggested_depth=message.suggested_depth,
            should_follow_up=message.should_follow_up,
            reasoning=message.reasoning,
            confidence=message.confidence,
            suggested_persona_index=message.suggested_persona_index,
            received_at=self.clock(),
        )
        self._hint = hint
        logger.debug(f"Hint received: {hint.suggested_topic} (depth {hint.suggested_depth})")
        self._notify(self.on_hint, hint)

    @staticmethod
    def _notify(callback: Optional[Callable], payload: Any) -> None:
        if callback is None:
            return
        try:
            callback(payload)
        except Exception as e:
            logger.error(f"Advisory callback failed: {e}")

    def _disconnected(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._writer is not None and self._writer is not asyncio.current_task():
            self._writer.cancel()

    def close(self) -> None:
        """Drop the connection without waiting. Safe to call repeatedly."""
        self._closed = True
        for task in (self._reader, self._writer):
            if task is not None and task is not asyncio.current_task() and not task.done():
                task.cancel()
        self._reader = self._writer = None
        ws, self._ws = self._ws, None
        if ws is None:
            return
        try:
            asyncio.get_running_loop().create_task(self._close_socket(ws))
        except RuntimeError:
            pass

    @staticmethod
    async def _close_socket(ws) -> None:
        try:
            await ws.close()
        except (WebSocketException, OSError) as e:
            logger.debug(f"Error closing advisory socket: {e}")
