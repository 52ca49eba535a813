"""
Interview decision engine: what to ask next, and who asks it.
"""
import re
import random
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from .models import NextQuestion, TurnRecord, Hint
from .schemas import ConversationState
from .prompts import InterviewPrompts
from ..config import (
    MAX_DEPTH, FOLLOW_UP_WORD_TARGET, PERSONA_FOCUS_WEIGHT, RECENT_TURN_WINDOW,
)

logger = logging.getLogger("decision_engine")

TECHNICAL_TOPICS = ["system design", "algorithms", "code quality", "debugging", "architecture"]
BEHAVIORAL_TOPICS = ["teamwork", "conflict resolution", "leadership", "communication"]
DOMAIN_TOPICS = {
    "frontend": ["UI/UX", "performance", "accessibility"],
    "backend": ["scalability", "databases", "APIs"],
    "product": ["product strategy", "user research", "roadmap"],
}
GENERAL_DOMAIN_TOPICS = ["project management", "stakeholder communication"]

EXAMPLE_PATTERN = re.compile(r"for example|such as|like when|instance", re.IGNORECASE)
NUMBER_PATTERN = re.compile(r"\d+")
HEDGING_PATTERN = re.compile(r"maybe|perhaps|i think|not sure|don't know", re.IGNORECASE)
PROBEABLE_KEYWORDS = ("project", "experience", "challenge")

NO_ANSWER_CONFIDENCE = 0.3


@dataclass
class AnswerAnalysis:
    """Heuristic read of the participant's latest answer."""
    answer_completeness: float = 0.0
    answer_quality: float = 0.0
    has_probeable_content: bool = False
    has_answer: bool = False
    word_count: int = 0
    mentioned_topics: List[str] = field(default_factory=list)


def analyze_answer(turn: Optional[TurnRecord]) -> AnswerAnalysis:
    """Score an answer. No answer yields the low-confidence defaults."""
    if turn is None or not turn.text.strip():
        return AnswerAnalysis()

    text = turn.text
    lowered = text.lower()
    word_count = len(text.split())
    has_examples = bool(EXAMPLE_PATTERN.search(text))
    has_specifics = has_examples or bool(NUMBER_PATTERN.search(text))

    quality = 0.5
    if has_specifics:
        quality += 0.3
    if word_count > 30:
        quality += 0.2
    if HEDGING_PATTERN.search(text):
        quality -= 0.3

    return AnswerAnalysis(
        answer_completeness=min(word_count / FOLLOW_UP_WORD_TARGET, 1.0),
        answer_quality=max(0.0, min(1.0, quality)),
        has_probeable_content=has_examples or any(k in lowered for k in PROBEABLE_KEYWORDS),
        has_answer=True,
        word_count=word_count,
        mentioned_topics=[k for k in PROBEABLE_KEYWORDS if k in lowered],
    )


def should_follow_up(analysis: AnswerAnalysis, depth: int) -> bool:
    return (
        analysis.answer_completeness < 0.6
        or (analysis.answer_quality > 0.8 and depth < MAX_DEPTH)
        or (analysis.has_probeable_content and depth < 3)
        or depth < 2
    )


def topic_pool_for_role(target_role: str) -> List[str]:
    """Technical, behavioral and role-specific domain topics, in that order."""
    role = (target_role or "general").lower()
    domain = GENERAL_DOMAIN_TOPICS
    for keyword, topics in DOMAIN_TOPICS.items():
        if keyword in role:
            domain = topics
            break
    return TECHNICAL_TOPICS + BEHAVIORAL_TOPICS + domain


def focus_matches(focus: str, topic: str) -> bool:
    """Substring match either way, or any shared keyword."""
    focus, topic = focus.lower().strip(), topic.lower().strip()
    if not focus or not topic:
        return False
    if focus in topic or topic in focus:
        return True
    focus_words = set(re.findall(r"[a-z]{3,}", focus))
    topic_words = set(re.findall(r"[a-z]{3,}", topic))
    return bool(focus_words & topic_words)


class TurnSelector:
    """
    Decides the next topic, depth and persona from the latest answer.

    Randomness comes from an injectable ``random.Random`` so the 70/30
    persona draw and topic picks are reproducible under a seed.
    """

    def __init__(self, rng: Optional[random.Random] = None, topic_pool: Optional[List[str]] = None):
        self.rng = rng or random.Random()
        self.topic_pool = list(topic_pool) if topic_pool else None

    def select_topic(self, state: ConversationState) -> str:
        pool = self.topic_pool or topic_pool_for_role(state.candidate.target_role)
        uncovered = [t for t in pool if t not in state.topics_covered]
        if uncovered:
            return self.rng.choice(uncovered)
        # Everything covered: revisit one for deeper exploration
        return self.rng.choice(pool)

    def select_persona(self, state: ConversationState, topic: str) -> int:
        counts = state.questions_by_persona()
        least_active = counts.index(min(counts))

        best_for_topic = None
        for index, persona in enumerate(state.personas):
            if focus_matches(persona.focus, topic):
                best_for_topic = index
                break
        if best_for_topic is None:
            best_for_topic = least_active

        if self.rng.random() < PERSONA_FOCUS_WEIGHT:
            return best_for_topic
        return least_active

    def determine_next_question(self, state: ConversationState) -> NextQuestion:
        """
        Pick the next question and record the decision on ``state``.

        Mutates question_count, current_topic, depth_level, topics_covered and
        active_persona_index. Never raises for missing data.
        """
        last_answer = state.last_participant_turn(RECENT_TURN_WINDOW)
        analysis = analyze_answer(last_answer)
        follow_up = should_follow_up(analysis, state.depth_level) and bool(state.current_topic)

        if follow_up:
            persona_index = state.active_persona_index
            topic = state.current_topic
            depth = min(state.depth_level + 1, MAX_DEPTH)
            reasoning = (f"Following up on {topic}: completeness {analysis.answer_completeness:.2f}, "
                         f"quality {analysis.answer_quality:.2f}")
        else:
            topic = self.select_topic(state)
            persona_index = self.select_persona(state, topic)
            depth = 1
            state.active_persona_index = persona_index
            state.add_topic(topic)
            reasoning = f"Moving to {topic} after {len(state.topics_covered) - 1} topics covered"

        state.current_topic = topic
        state.depth_level = depth
        state.question_count += 1

        persona = state.personas[persona_index]
        recent_lines = [f"{state.speaker_label(r)}: {r.text}" for r in state.recent_turns(6)]
        instruction = InterviewPrompts.question_instruction(
            persona, state.candidate, topic, state.depth_level, recent_lines
        )

        logger.info(f"Next question #{state.question_count}: {persona.name} on '{topic}' "
                    f"depth {state.depth_level} (follow_up={follow_up})")

        return NextQuestion(
            persona=persona,
            persona_index=persona_index,
            topic=topic,
            depth=state.depth_level,
            instruction_text=instruction,
            should_follow_up=follow_up,
            confidence=self._confidence(analysis, state),
            reasoning=reasoning,
        )

    def next_hint(self, state: ConversationState, now: float = 0.0) -> Hint:
        """Run a selection and package it as an advisory hint."""
        question = self.determine_next_question(state)
        return Hint(
            suggested_topic=question.topic,
            suggested_depth=question.depth,
            should_follow_up=question.should_follow_up,
            reasoning=(f"{question.reasoning}. {state.question_count} questions across "
                       f"{len(state.topics_covered)} topics"),
            confidence=question.confidence,
            suggested_persona_index=question.persona_index,
            received_at=now,
        )

    @staticmethod
    def _confidence(analysis: AnswerAnalysis, state: ConversationState) -> float:
        if not analysis.has_answer:
            return NO_ANSWER_CONFIDENCE
        confidence = 0.7
        if analysis.answer_quality > 0.7:
            confidence += 0.2
        if state.question_count > 5:
            confidence += 0.1
        return min(1.0, confidence)
