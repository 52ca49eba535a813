"""Interview system components.

This module contains the business logic of the live panel interview:
turn selection, handoffs, transcript assembly, the interview clock and the
orchestrator that ties them to the live speech session.
"""

# Core orchestrator class
from .orchestrator import LiveInterviewOrchestrator

# Data models
from .models import (
    Persona, CandidateProfile, TurnRecord, Hint, SelfCorrection, NextQuestion,
    PARTICIPANT, build_panel,
)

# Session state and advisory wire messages
from .schemas import ConversationState, client_message_adapter, server_message_adapter

# Turn-taking logic
from .decision_engine import TurnSelector, analyze_answer
from .handoff import HandoffDetector
from .transcript import TranscriptAggregator
from .phase_timer import PhaseTimer, InterviewPhase
from .analysis import SelfCorrectionReviewer
from .prompts import InterviewPrompts

# Errors
from .errors import MockPanelError, SessionHandshakeError, MediaDeviceError, AdvisoryProtocolError

# Event system
from .events import (
    SessionEventBus, EventLogger, SessionMetrics, EventType, SessionEvent,
    SessionStartedEvent, PersonaActivatedEvent, TranscriptUpdatedEvent,
    TurnFinalizedEvent, HandoffScheduledEvent, PlaybackInterruptedEvent,
    HintReceivedEvent, PhaseChangedEvent, TimeUpdatedEvent, SessionEndedEvent,
    ErrorOccurredEvent,
)

__all__ = [
    # Orchestrator
    "LiveInterviewOrchestrator",

    # Data models
    "Persona", "CandidateProfile", "TurnRecord", "Hint", "SelfCorrection",
    "NextQuestion", "PARTICIPANT", "build_panel",

    # State and wire messages
    "ConversationState", "client_message_adapter", "server_message_adapter",

    # Turn-taking
    "TurnSelector", "analyze_answer", "HandoffDetector", "TranscriptAggregator",
    "PhaseTimer", "InterviewPhase", "SelfCorrectionReviewer", "InterviewPrompts",

    # Errors
    "MockPanelError", "SessionHandshakeError", "MediaDeviceError", "AdvisoryProtocolError",

    # Events
    "SessionEventBus", "EventLogger", "SessionMetrics", "EventType", "SessionEvent",
    "SessionStartedEvent", "PersonaActivatedEvent", "TranscriptUpdatedEvent",
    "TurnFinalizedEvent", "HandoffScheduledEvent", "PlaybackInterruptedEvent",
    "HintReceivedEvent", "PhaseChangedEvent", "TimeUpdatedEvent", "SessionEndedEvent",
    "ErrorOccurredEvent",
]
