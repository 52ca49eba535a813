"""
Event-driven architecture for the live interview session.

The presentation layer subscribes here for transcript lines, the active
speaker, phase and time updates.
"""
import logging
from abc import ABC
from typing import Dict, Any, List, Callable, Optional
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger("events")


class EventType(str, Enum):
    """Types of session events."""
    SESSION_STARTED = "session_started"
    PERSONA_ACTIVATED = "persona_activated"
    TRANSCRIPT_UPDATED = "transcript_updated"
    TURN_FINALIZED = "turn_finalized"
    HANDOFF_SCHEDULED = "handoff_scheduled"
    PLAYBACK_INTERRUPTED = "playback_interrupted"
    HINT_RECEIVED = "hint_received"
    PHASE_CHANGED = "phase_changed"
    TIME_UPDATED = "time_updated"
    SESSION_ENDED = "session_ended"
    ERROR_OCCURRED = "error_occurred"


@dataclass
class SessionEvent(ABC):
    """Base class for all session events."""
    event_type: EventType
    session_id: str
    timestamp: float
    data: Dict[str, Any]


@dataclass
class SessionStartedEvent(SessionEvent):
    """Event fired when the first persona is live and capture is running."""
    def __init__(self, session_id: str, timestamp: float, persona_names: List[str]):
        super().__init__(
            event_type=EventType.SESSION_STARTED,
            session_id=session_id,
            timestamp=timestamp,
            data={"personas": persona_names}
        )


@dataclass
class PersonaActivatedEvent(SessionEvent):
    """Event fired when a persona's live session becomes active."""
    def __init__(self, session_id: str, timestamp: float, persona_index: int,
                 persona_name: str, voice: str):
        super().__init__(
            event_type=EventType.PERSONA_ACTIVATED,
            session_id=session_id,
            timestamp=timestamp,
            data={
                "persona_index": persona_index,
                "persona_name": persona_name,
                "voice": voice
            }
        )


@dataclass
class TranscriptUpdatedEvent(SessionEvent):
    """Event fired when the in-progress line for a speaker changes."""
    def __init__(self, session_id: str, timestamp: float, speaker: str, text: str):
        super().__init__(
            event_type=EventType.TRANSCRIPT_UPDATED,
            session_id=session_id,
            timestamp=timestamp,
            data={"speaker": speaker, "text": text}
        )


@dataclass
class TurnFinalizedEvent(SessionEvent):
    """Event fired when a transcript line is final."""
    def __init__(self, session_id: str, timestamp: float, speaker: str, text: str):
        super().__init__(
            event_type=EventType.TURN_FINALIZED,
            session_id=session_id,
            timestamp=timestamp,
            data={"speaker": speaker, "text": text}
        )


@dataclass
class HandoffScheduledEvent(SessionEvent):
    """Event fired when the floor is about to pass to another persona."""
    def __init__(self, session_id: str, timestamp: float, from_index: int, to_index: int):
        super().__init__(
            event_type=EventType.HANDOFF_SCHEDULED,
            session_id=session_id,
            timestamp=timestamp,
            data={"from_index": from_index, "to_index": to_index}
        )


@dataclass
class PlaybackInterruptedEvent(SessionEvent):
    """Event fired on barge-in."""
    def __init__(self, session_id: str, timestamp: float, dropped_chunks: int):
        super().__init__(
            event_type=EventType.PLAYBACK_INTERRUPTED,
            session_id=session_id,
            timestamp=timestamp,
            data={"dropped_chunks": dropped_chunks}
        )


@dataclass
class HintReceivedEvent(SessionEvent):
    """Event fired when the advisory server suggests a direction."""
    def __init__(self, session_id: str, timestamp: float, topic: str, depth: int,
                 confidence: float, persona_index: Optional[int]):
        super().__init__(
            event_type=EventType.HINT_RECEIVED,
            session_id=session_id,
            timestamp=timestamp,
            data={
                "topic": topic,
                "depth": depth,
                "confidence": confidence,
                "persona_index": persona_index
            }
        )


@dataclass
class PhaseChangedEvent(SessionEvent):
    """Event fired when the interview enters a new phase."""
    def __init__(self, session_id: str, timestamp: float, phase: str, remaining_seconds: float):
        super().__init__(
            event_type=EventType.PHASE_CHANGED,
            session_id=session_id,
            timestamp=timestamp,
            data={"phase": phase, "remaining_seconds": remaining_seconds}
        )


@dataclass
class TimeUpdatedEvent(SessionEvent):
    """Event fired on every timer poll."""
    def __init__(self, session_id: str, timestamp: float, phase: str, remaining_seconds: float):
        super().__init__(
            event_type=EventType.TIME_UPDATED,
            session_id=session_id,
            timestamp=timestamp,
            data={"phase": phase, "remaining_seconds": remaining_seconds}
        )


@dataclass
class SessionEndedEvent(SessionEvent):
    """Event fired when the call ends, for any reason."""
    def __init__(self, session_id: str, timestamp: float, reason: str, turn_count: int):
        super().__init__(
            event_type=EventType.SESSION_ENDED,
            session_id=session_id,
            timestamp=timestamp,
            data={"reason": reason, "turn_count": turn_count}
        )


@dataclass
class ErrorOccurredEvent(SessionEvent):
    """Event fired when an error occurs."""
    def __init__(self, session_id: str, timestamp: float, error_type: str,
                 error_message: str, component: str):
        super().__init__(
            event_type=EventType.ERROR_OCCURRED,
            session_id=session_id,
            timestamp=timestamp,
            data={
                "error_type": error_type,
                "error_message": error_message,
                "component": component
            }
        )


EventHandler = Callable[[SessionEvent], None]


class SessionEventBus:
    """Event bus between the orchestrator and whatever presents the call."""

    def __init__(self):
        self._handlers: Dict[EventType, List[EventHandler]] = {}
        self._global_handlers: List[EventHandler] = []

    def subscribe(self, event_type: EventType, handler: EventHandler) -> None:
        """
        Subscribe to specific event type.

        Args:
            event_type: Type of event to listen for
            handler: Function to call when event occurs
        """
        if event_type not in self._handlers:
            self._handlers[event_type] = []
        self._handlers[event_type].append(handler)
        logger.debug(f"Subscribed handler to {event_type}")

    def subscribe_all(self, handler: EventHandler) -> None:
        """Subscribe to all events."""
        self._global_handlers.append(handler)
        logger.debug("Subscribed global handler")

    def emit(self, event: SessionEvent) -> None:
        """
        Emit an event to all subscribers. Handler errors are logged, never raised.

        Args:
            event: Event to emit
        """
        logger.debug(f"Emitting event: {event.event_type} for session {event.session_id}")

        for handler in self._handlers.get(event.event_type, []):
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Error in event handler for {event.event_type}: {e}")

        for handler in self._global_handlers:
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Error in global event handler: {e}")

    def clear_handlers(self) -> None:
        """Clear all event handlers."""
        self._handlers.clear()
        self._global_handlers.clear()
        logger.debug("Cleared all event handlers")


class EventLogger:
    """Logs all events for debugging and analysis."""

    QUIET_EVENTS = {EventType.TRANSCRIPT_UPDATED, EventType.TIME_UPDATED}

    def __init__(self, log_level: int = logging.INFO):
        self.logger = logging.getLogger("event_logger")
        self.logger.setLevel(log_level)

    def handle_event(self, event: SessionEvent) -> None:
        """Log event details. Streaming updates go to DEBUG."""
        level = logging.DEBUG if event.event_type in self.QUIET_EVENTS else logging.INFO
        self.logger.log(level, f"Event: {event.event_type.value} | Session: {event.session_id} | Data: {event.data}")


class SessionMetrics:
    """Collects metrics from session events."""

    def __init__(self):
        self.reset()

    def handle_event(self, event: SessionEvent) -> None:
        """Update metrics based on event."""
        if event.event_type == EventType.TURN_FINALIZED:
            self.turns_finalized += 1
        elif event.event_type == EventType.PERSONA_ACTIVATED:
            self.persona_activations += 1
        elif event.event_type == EventType.HANDOFF_SCHEDULED:
            self.handoffs += 1
        elif event.event_type == EventType.PLAYBACK_INTERRUPTED:
            self.interruptions += 1
        elif event.event_type == EventType.HINT_RECEIVED:
            self.hints_received += 1
        elif event.event_type == EventType.ERROR_OCCURRED:
            self.errors_occurred += 1

    def get_metrics(self) -> Dict[str, int]:
        """Get current metrics snapshot."""
        return {
            "turns_finalized": self.turns_finalized,
            "persona_activations": self.persona_activations,
            "handoffs": self.handoffs,
            "interruptions": self.interruptions,
            "hints_received": self.hints_received,
            "errors_occurred": self.errors_occurred
        }

    def reset(self) -> None:
        """Reset all metrics to zero."""
        self.turns_finalized = 0
        self.persona_activations = 0
        self.handoffs = 0
        self.interruptions = 0
        self.hints_received = 0
        self.errors_occurred = 0
