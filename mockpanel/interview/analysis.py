"""
Quality review of persona questions.

The reviewer is telemetry only: it flags questions that look malformed, too
complex for the current depth, off-topic or compound, and records them on the
session. It never rewrites what the persona said.
"""
import time
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Callable

from .models import SelfCorrection
from .schemas import ConversationState

logger = logging.getLogger("interview_analysis")

MIN_QUESTION_CHARS = 20
COMPLEXITY_MARKERS = ("furthermore", "moreover", "additionally", "specifically")

ISSUE_VAGUE = "Question too vague or malformed"
ISSUE_TOO_COMPLEX = "Question too complex for intro depth"
ISSUE_OFF_TOPIC = "Question drifted off-topic"
ISSUE_COMPOUND = "Multiple questions in one (compound question)"


@dataclass
class ReviewResult:
    """Outcome of reviewing one question."""
    had_issue: bool
    issue: Optional[str] = None
    issues: List[str] = field(default_factory=list)


class SelfCorrectionReviewer:
    """Read-only quality gate over generated question text."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self.clock = clock

    def find_issues(self, text: str, topic: Optional[str], depth: int) -> List[str]:
        """Run every check and return the issues in check order."""
        issues = []
        lowered = text.lower()

        if len(text) < MIN_QUESTION_CHARS or "?" not in text:
            issues.append(ISSUE_VAGUE)

        if depth == 1 and any(marker in lowered for marker in COMPLEXITY_MARKERS):
            issues.append(ISSUE_TOO_COMPLEX)

        if topic:
            keyword = topic.lower().split(" ")[0]
            if keyword and keyword not in lowered:
                issues.append(ISSUE_OFF_TOPIC)

        if text.count("?") > 1:
            issues.append(ISSUE_COMPOUND)

        return issues

    def review(self,
               text: str,
               topic: Optional[str],
               depth: int,
               state: Optional[ConversationState] = None) -> ReviewResult:
        """
        Review a question. The first issue found is the one reported.

        Args:
            text: The persona's question as displayed
            topic: Topic the question is meant to cover
            depth: Depth level it was asked at
            state: If given, a flagged question is appended to its correction log

        Returns:
            ReviewResult with all issues and the reported one
        """
        issues = self.find_issues(text, topic, depth)
        if not issues:
            return ReviewResult(had_issue=False)

        if state is not None:
            state.self_correction_log.append(SelfCorrection(
                question_id=f"q-{state.question_count}",
                original_question=text,
                issue="; ".join(issues),
                correction="Flagged for review, not regenerated",
                timestamp=self.clock(),
            ))
        logger.info(f"Question flagged ({len(issues)} issue(s)): {issues[0]}")
        return ReviewResult(had_issue=True, issue=issues[0], issues=issues)
