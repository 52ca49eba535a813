"""
Data models for the interview panel.
"""
from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any, Sequence

from ..config import PANELIST_VOICES

PARTICIPANT = "participant"


@dataclass(frozen=True)
class Persona:
    """A simulated interviewer. Immutable once the panel is built."""
    id: str
    name: str
    role: str
    focus: str
    description: str = ""
    voice: str = PANELIST_VOICES[0]

    @property
    def first_name(self) -> str:
        return self.name.split()[0] if self.name.strip() else self.name

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "role": self.role,
            "focus": self.focus,
            "description": self.description,
            "voice": self.voice,
        }


def build_panel(entries: Sequence[Dict[str, Any]]) -> List[Persona]:
    """
    Build personas from plain dicts, assigning voices round the voice ring.

    An entry may pin its own voice with ``voiceName`` (or ``voice``); otherwise
    the voice is picked by panel position.
    """
    panel = []
    for index, entry in enumerate(entries):
        voice = entry.get("voiceName") or entry.get("voice") or PANELIST_VOICES[index % len(PANELIST_VOICES)]
        panel.append(Persona(
            id=str(entry.get("id") or f"persona-{index + 1}"),
            name=entry["name"],
            role=entry.get("role", ""),
            focus=entry.get("focus", ""),
            description=entry.get("description", ""),
            voice=voice,
        ))
    return panel


@dataclass
class CandidateProfile:
    """Summary of the participant, as supplied by the resume parser."""
    name: str = "Candidate"
    target_role: str = ""
    skills: List[str] = field(default_factory=list)
    experience: List[str] = field(default_factory=list)
    education: List[str] = field(default_factory=list)
    raw_text: str = ""

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'CandidateProfile':
        data = data or {}
        return cls(
            name=data.get("name") or "Candidate",
            target_role=data.get("targetRole") or data.get("target_role") or "",
            skills=list(data.get("skills") or []),
            experience=[str(item) for item in data.get("experience") or []],
            education=[str(item) for item in data.get("education") or []],
            raw_text=data.get("rawText") or data.get("raw_text") or "",
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "targetRole": self.target_role,
            "skills": list(self.skills),
            "experience": list(self.experience),
            "education": list(self.education),
        }


@dataclass(frozen=True)
class TurnRecord:
    """One finalized utterance. Never mutated after it is appended."""
    speaker: str
    text: str
    timestamp: float

    @property
    def is_participant(self) -> bool:
        return self.speaker == PARTICIPANT


@dataclass
class Hint:
    """Non-binding advice from the advisory server. Last write wins."""
    suggested_topic: str
    suggested_depth: int
    should_follow_up: bool
    reasoning: str
    confidence: float
    suggested_persona_index: Optional[int] = None
    received_at: float = 0.0


@dataclass
class SelfCorrection:
    """A question that failed review."""
    question_id: str
    original_question: str
    issue: str
    correction: str
    timestamp: float


@dataclass
class NextQuestion:
    """Outcome of a turn selection."""
    persona: Persona
    persona_index: int
    topic: str
    depth: int
    instruction_text: str
    should_follow_up: bool
    confidence: float
    reasoning: str
