"""
Structured state and wire schemas for the interview panel.

ConversationState is the per-session repository: created when the session
starts, cleared when it ends, exported for the report layer. Nothing here is
process-wide.
"""
import time
import uuid
from collections import Counter
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, List, Literal, Union, Annotated

from pydantic import BaseModel, ConfigDict, Field, AliasChoices, TypeAdapter
from pydantic.alias_generators import to_camel

from .models import Persona, CandidateProfile, TurnRecord, SelfCorrection, PARTICIPANT
from ..config import MIN_DEPTH, MAX_DEPTH, TARGET_DURATION_MINUTES

CANDIDATE_INTRO_MIN_CHARS = 20


def clamp_depth(depth: int) -> int:
    return max(MIN_DEPTH, min(MAX_DEPTH, int(depth)))


@dataclass
class ConversationState:
    """Shared record of personas, transcript and topic/depth progress."""
    session_id: str
    candidate: CandidateProfile
    personas: List[Persona]
    target_duration_seconds: float = TARGET_DURATION_MINUTES * 60
    session_start: float = field(default_factory=time.time)
    active_persona_index: int = 0
    question_count: int = 0
    topics_covered: List[str] = field(default_factory=list)
    current_topic: Optional[str] = None
    transcript: List[TurnRecord] = field(default_factory=list)
    self_correction_log: List[SelfCorrection] = field(default_factory=list)
    candidate_intro: Optional[str] = None
    _depth_level: int = field(default=MIN_DEPTH, repr=False)

    @classmethod
    def create(cls,
               candidate: CandidateProfile,
               personas: List[Persona],
               session_id: Optional[str] = None,
               target_duration_seconds: float = TARGET_DURATION_MINUTES * 60,
               now: Optional[float] = None) -> 'ConversationState':
        """Start a fresh session record."""
        if not personas:
            raise ValueError("A panel needs at least one persona")
        return cls(
            session_id=session_id or str(uuid.uuid4()),
            candidate=candidate,
            personas=list(personas),
            target_duration_seconds=target_duration_seconds,
            session_start=time.time() if now is None else now,
        )

    @property
    def depth_level(self) -> int:
        return self._depth_level

    @depth_level.setter
    def depth_level(self, value: int) -> None:
        self._depth_level = clamp_depth(value)

    @property
    def active_persona(self) -> Persona:
        return self.personas[self.active_persona_index]

    def add_topic(self, topic: str) -> None:
        """Record a topic as covered. The covered list only ever grows."""
        if topic not in self.topics_covered:
            self.topics_covered.append(topic)

    def append_turn(self, speaker: str, text: str, timestamp: Optional[float] = None) -> TurnRecord:
        record = TurnRecord(speaker=speaker, text=text, timestamp=time.time() if timestamp is None else timestamp)
        self.transcript.append(record)
        if (record.is_participant and self.candidate_intro is None
                and len(text) > CANDIDATE_INTRO_MIN_CHARS):
            self.candidate_intro = text
        return record

    def recent_turns(self, count: int) -> List[TurnRecord]:
        return self.transcript[-count:] if self.transcript else []

    def last_participant_turn(self, window: int) -> Optional[TurnRecord]:
        """Most recent participant turn among the last ``window`` records."""
        for record in reversed(self.recent_turns(window)):
            if record.is_participant:
                return record
        return None

    def persona_index(self, persona_id: str) -> int:
        for index, persona in enumerate(self.personas):
            if persona.id == persona_id:
                return index
        return -1

    def persona_by_name(self, name: str) -> Optional[Persona]:
        for persona in self.personas:
            if persona.name == name:
                return persona
        return None

    def questions_by_persona(self) -> List[int]:
        """Number of turns each persona has spoken, in panel order."""
        counts = [0] * len(self.personas)
        for record in self.transcript:
            if record.is_participant:
                continue
            index = self.persona_index(record.speaker)
            if index != -1:
                counts[index] += 1
        return counts

    def speaker_label(self, record: TurnRecord) -> str:
        if record.is_participant:
            return "Candidate"
        index = self.persona_index(record.speaker)
        return self.personas[index].name if index != -1 else record.speaker

    def elapsed_seconds(self, now: Optional[float] = None) -> float:
        return max(0.0, (time.time() if now is None else now) - self.session_start)

    def remaining_seconds(self, now: Optional[float] = None) -> float:
        return max(0.0, self.target_duration_seconds - self.elapsed_seconds(now))

    def progress(self, now: Optional[float] = None) -> Dict[str, Any]:
        """Progress summary in whole minutes."""
        elapsed_minutes = int(self.elapsed_seconds(now) // 60)
        target_minutes = int(self.target_duration_seconds // 60)
        return {
            "question_count": self.question_count,
            "topics_covered": len(self.topics_covered),
            "time_elapsed": elapsed_minutes,
            "estimated_remaining": max(0, target_minutes - elapsed_minutes),
            "current_topic": self.current_topic,
            "current_depth": self.depth_level,
        }

    def self_correction_stats(self) -> Dict[str, Any]:
        total = len(self.self_correction_log)
        first_issues = Counter(entry.issue.split(";")[0].strip() for entry in self.self_correction_log)
        return {
            "total_corrections": total,
            "correction_rate": total / self.question_count if self.question_count else 0.0,
            "common_issues": [issue for issue, _ in first_issues.most_common(3)],
        }

    def export(self, now: Optional[float] = None) -> Dict[str, Any]:
        """Plain snapshot for the report layer."""
        return {
            "session_id": self.session_id,
            "candidate": self.candidate.name,
            "personas": [persona.to_dict() for persona in self.personas],
            "transcript": [
                {"speaker": self.speaker_label(r), "text": r.text, "timestamp": r.timestamp}
                for r in self.transcript
            ],
            "topics_covered": list(self.topics_covered),
            "candidate_intro": self.candidate_intro,
            "progress": self.progress(now),
            "self_corrections": self.self_correction_stats(),
        }

    def clear(self) -> None:
        """Drop everything collected for this session."""
        self.transcript.clear()
        self.self_correction_log.clear()
        self.topics_covered.clear()
        self.current_topic = None
        self.question_count = 0
        self.active_persona_index = 0
        self.candidate_intro = None
        self._depth_level = MIN_DEPTH


# =============================================================================
# ADVISORY CHANNEL WIRE MESSAGES
# =============================================================================

class WireModel(BaseModel):
    """camelCase on the wire, snake_case in Python."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class InitMessage(WireModel):
    type: Literal["init"] = "init"
    candidate: Dict[str, Any] = Field(default_factory=dict)
    personas: List[Dict[str, Any]] = Field(
        default_factory=list,
        validation_alias=AliasChoices("personas", "panelists"),
        serialization_alias="personas",
    )


class TranscriptUpdateMessage(WireModel):
    type: Literal["transcript_update"] = "transcript_update"
    speaker: Literal["user", "ai"]
    text: str
    timestamp: float
    persona_name: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("personaName", "persona_name", "panelistName"),
        serialization_alias="personaName",
    )


class InitializedMessage(WireModel):
    type: Literal["initialized"] = "initialized"
    session_id: str


class OrchestrationHintMessage(WireModel):
    type: Literal["orchestration_hint"] = "orchestration_hint"
    suggested_topic: str
    suggested_depth: int = Field(ge=MIN_DEPTH, le=MAX_DEPTH)
    should_follow_up: bool
    reasoning: str
    confidence: float = Field(ge=0.0, le=1.0)
    suggested_persona_index: Optional[int] = None


class PhaseChangeMessage(WireModel):
    type: Literal["interview_phase_change"] = "interview_phase_change"
    phase: str
    remaining_seconds: int
    should_start_closing: bool


class InterviewCompleteMessage(WireModel):
    type: Literal["interview_complete"] = "interview_complete"
    total_duration: int
    question_count: int
    topics_covered: List[str]


class TimeUpdateMessage(WireModel):
    type: Literal["time_update"] = "time_update"
    remaining_seconds: int
    phase: str


class ErrorMessage(WireModel):
    type: Literal["error"] = "error"
    message: str


ClientMessage = Annotated[
    Union[InitMessage, TranscriptUpdateMessage],
    Field(discriminator="type"),
]
ServerMessage = Annotated[
    Union[InitializedMessage, OrchestrationHintMessage, PhaseChangeMessage,
          InterviewCompleteMessage, TimeUpdateMessage, ErrorMessage],
    Field(discriminator="type"),
]

client_message_adapter = TypeAdapter(ClientMessage)
server_message_adapter = TypeAdapter(ServerMessage)

CLIENT_MESSAGE_TYPES = {"init", "transcript_update"}
SERVER_MESSAGE_TYPES = {
    "initialized", "orchestration_hint", "interview_phase_change",
    "interview_complete", "time_update", "error",
}
