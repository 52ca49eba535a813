"""
Merges streamed transcription fragments into finalized turn lines.

The live provider re-sends the growing utterance with every update, so
fragments are treated as cumulative: a longer fragment that extends the
buffer replaces it, an unseen fragment is appended, and anything already in
the buffer is dropped as a repeat.
"""
import re
import time
import logging
from typing import Callable, Dict, List, Optional

from .models import TurnRecord, PARTICIPANT

logger = logging.getLogger("transcript")

NOISE_MARKERS = re.compile(r"\[(?:noise|inaudible)\]", re.IGNORECASE)
WHITESPACE = re.compile(r"\s+")

FinalizeHandler = Callable[[TurnRecord], None]


def clean_participant_text(text: str) -> str:
    """Remove recognizer noise markers and collapse whitespace."""
    return WHITESPACE.sub(" ", NOISE_MARKERS.sub("", text)).strip()


def merge_fragment(buffer: str, fragment: str) -> str:
    """Apply the cumulative merge rule to one speaker's buffer."""
    if fragment.startswith(buffer) and len(fragment) > len(buffer):
        return fragment
    if fragment not in buffer:
        return f"{buffer} {fragment}" if buffer else fragment
    return buffer


class TranscriptAggregator:
    """Builds the ordered transcript from per-speaker streaming fragments."""

    def __init__(self,
                 on_finalize: Optional[FinalizeHandler] = None,
                 clock: Callable[[], float] = time.time):
        self.on_finalize = on_finalize
        self.clock = clock
        self.turns: List[TurnRecord] = []
        self._buffers: Dict[str, str] = {}
        self._started_at: Dict[str, float] = {}
        self._current_speaker: Optional[str] = None

    @property
    def current_speaker(self) -> Optional[str]:
        return self._current_speaker

    def pending_text(self, speaker: Optional[str] = None) -> str:
        """Text buffered for a speaker (the current one by default), not yet final."""
        speaker = speaker if speaker is not None else self._current_speaker
        if speaker is None:
            return ""
        return self._buffers.get(speaker, "")

    def add_fragment(self, speaker: str, fragment: str) -> str:
        """
        Merge a fragment for ``speaker``.

        A fragment from a different speaker than the one currently buffered
        finalizes the previous speaker's turn first.

        Returns:
            The speaker's buffered text after merging
        """
        if speaker == PARTICIPANT:
            fragment = clean_participant_text(fragment)
        else:
            fragment = fragment.strip()
        if not fragment:
            return self._buffers.get(speaker, "")

        if self._current_speaker is not None and self._current_speaker != speaker:
            self._finalize(self._current_speaker)

        if speaker not in self._buffers:
            self._buffers[speaker] = ""
            self._started_at[speaker] = self.clock()
        self._current_speaker = speaker
        self._buffers[speaker] = merge_fragment(self._buffers[speaker], fragment)
        return self._buffers[speaker]

    def flush(self) -> Optional[TurnRecord]:
        """Finalize whatever is buffered, e.g. when the call ends."""
        if self._current_speaker is None:
            return None
        return self._finalize(self._current_speaker)

    def discard_pending(self) -> None:
        self._buffers.clear()
        self._started_at.clear()
        self._current_speaker = None

    def lines(self, label: Callable[[str], str] = str) -> List[str]:
        """Finalized turns rendered as ``Speaker: text``."""
        return [f"{label(turn.speaker)}: {turn.text}" for turn in self.turns]

    def _finalize(self, speaker: str) -> Optional[TurnRecord]:
        text = self._buffers.pop(speaker, "").strip()
        started_at = self._started_at.pop(speaker, self.clock())
        if self._current_speaker == speaker:
            self._current_speaker = None
        if not text:
            return None

        record = TurnRecord(speaker=speaker, text=text, timestamp=started_at)
        self.turns.append(record)
        logger.debug(f"Finalized turn from {speaker}: {text[:80]}")
        if self.on_finalize:
            try:
                self.on_finalize(record)
            except Exception as e:
                logger.error(f"Error in transcript finalize handler: {e}")
        return record
