"""
Handoff detection between panel personas.

Personas may end a turn with a ``[PASS: Name]`` directive. The directive is
removed from anything shown to the participant, and at most one target is
latched until the current persona's audio has fully drained. If the target
does not resolve, the panel rotates round-robin instead, but only after the
current persona has asked enough questions and a cooldown has passed.
"""
import re
import time
import logging
from typing import Callable, List, Optional

from .models import Persona
from ..config import ROTATION_MIN_QUESTIONS, ROTATION_COOLDOWN_SECONDS

logger = logging.getLogger("handoff")

PASS_DIRECTIVE = re.compile(r"\[PASS:\s*([^\]]+)\]", re.IGNORECASE)
# A directive still being streamed, e.g. "... [PASS: Pri"
PARTIAL_DIRECTIVE = re.compile(r"\[PASS(?::[^\]]*)?$", re.IGNORECASE)
SPEAKER_PREFIX = re.compile(r"^\[([^\]]+)\]:?\s*")
WHITESPACE = re.compile(r"\s+")


def strip_speaker_prefix(text: str) -> str:
    """Remove a leading ``[Name]:`` label personas are asked to emit."""
    match = SPEAKER_PREFIX.match(text)
    if match and not match.group(1).strip().upper().startswith("PASS:"):
        return text[match.end():]
    return text


def strip_directives(text: str) -> str:
    cleaned = PARTIAL_DIRECTIVE.sub("", PASS_DIRECTIVE.sub("", text))
    return WHITESPACE.sub(" ", cleaned).strip()


class HandoffDetector:
    """Finds, latches and resolves persona handoff targets."""

    def __init__(self,
                 personas: List[Persona],
                 min_questions: int = ROTATION_MIN_QUESTIONS,
                 cooldown_seconds: float = ROTATION_COOLDOWN_SECONDS,
                 clock: Callable[[], float] = time.monotonic):
        self.personas = list(personas)
        self.min_questions = min_questions
        self.cooldown_seconds = cooldown_seconds
        self.clock = clock
        self.questions_since_rotation = 0
        self.last_rotation = clock()
        self._pending: Optional[str] = None

    @property
    def pending_target(self) -> Optional[str]:
        return self._pending

    def process(self, text: str) -> str:
        """
        Scan persona text for a handoff directive.

        Returns:
            Text safe for display, with the speaker prefix and directives removed
        """
        match = PASS_DIRECTIVE.search(text)
        if match:
            target = match.group(1).strip()
            if self._pending is None and target:
                self._pending = target
                logger.info(f"Latched handoff target: {target}")
            elif target and target != self._pending:
                logger.debug(f"Ignoring handoff to {target}, {self._pending} already pending")
        return strip_directives(strip_speaker_prefix(text))

    def resolve(self, name: str) -> Optional[int]:
        """
        Map a directive target to a panel index.

        Exact full-name match first (case-insensitive), then a persona whose
        first name starts with the target's first word.
        """
        wanted = name.strip().lower()
        if not wanted:
            return None
        for index, persona in enumerate(self.personas):
            if persona.name.lower() == wanted:
                return index
        first_word = wanted.split()[0]
        for index, persona in enumerate(self.personas):
            if persona.first_name.lower().startswith(first_word):
                return index
        return None

    def rotation_due(self) -> bool:
        if len(self.personas) < 2:
            return False
        elapsed = self.clock() - self.last_rotation
        return self.questions_since_rotation >= self.min_questions and elapsed >= self.cooldown_seconds

    def on_playback_drained(self, current_index: int) -> Optional[int]:
        """
        Decide the handoff once the current persona has finished speaking.

        Each drain counts as one question asked by the current persona.

        Returns:
            Index of the persona to activate next, or None to stay put
        """
        self.questions_since_rotation += 1

        if self._pending is not None:
            target = self._pending
            self._pending = None
            index = self.resolve(target)
            if index is not None and index != current_index:
                logger.info(f"Handing off to {self.personas[index].name} on request")
                return index
            logger.warning(f"Could not resolve handoff target '{target}', falling back to rotation")

        if self.rotation_due():
            index = (current_index + 1) % len(self.personas)
            logger.info(f"Rotating to {self.personas[index].name} after {self.questions_since_rotation} questions")
            return index
        return None

    def mark_rotated(self) -> None:
        """Reset counters once a new persona is active."""
        self.questions_since_rotation = 0
        self.last_rotation = self.clock()
        self._pending = None

    def clear(self) -> None:
        self._pending = None
