"""
Tests for ConversationState and the advisory wire models
========================================================
"""

from dataclasses import FrozenInstanceError

import pytest
from pydantic import ValidationError

from mockpanel.interview.models import PARTICIPANT, CandidateProfile, build_panel
from mockpanel.interview.schemas import (
    ConversationState,
    InitMessage,
    OrchestrationHintMessage,
    TranscriptUpdateMessage,
    client_message_adapter,
    server_message_adapter,
)


# ═══════════════════════════════════════════════════════════════════════════════
# PANEL
# ═══════════════════════════════════════════════════════════════════════════════


class TestBuildPanel:

    def test_voices_follow_the_ring(self):
        panel = build_panel([{"name": f"P{i}"} for i in range(6)])
        assert [p.voice for p in panel] == ["Kore", "Charon", "Fenrir", "Aoede", "Puck", "Kore"]

    def test_explicit_voice_wins(self):
        panel = build_panel([{"name": "Priya", "voiceName": "Puck"}])
        assert panel[0].voice == "Puck"

    def test_default_ids(self):
        panel = build_panel([{"name": "A"}, {"name": "B"}])
        assert [p.id for p in panel] == ["persona-1", "persona-2"]

    def test_personas_are_immutable(self, panel):
        with pytest.raises(FrozenInstanceError):
            panel[0].name = "Someone else"


class TestCandidateProfile:

    def test_camel_case_input(self):
        profile = CandidateProfile.from_dict({"name": "Sam", "targetRole": "Frontend Dev", "skills": ["React"]})
        assert profile.target_role == "Frontend Dev"
        assert profile.to_dict()["targetRole"] == "Frontend Dev"

    def test_missing_data_defaults(self):
        assert CandidateProfile.from_dict(None).name == "Candidate"


# ═══════════════════════════════════════════════════════════════════════════════
# STATE
# ═══════════════════════════════════════════════════════════════════════════════


class TestConversationState:

    def test_empty_panel_rejected(self, candidate):
        with pytest.raises(ValueError):
            ConversationState.create(candidate, [])

    def test_topics_only_grow_without_duplicates(self, state):
        state.add_topic("teamwork")
        state.add_topic("databases")
        state.add_topic("teamwork")

        assert state.topics_covered == ["teamwork", "databases"]

    def test_candidate_intro_captured_once(self, state):
        state.append_turn(PARTICIPANT, "Hi")
        state.append_turn(PARTICIPANT, "I'm Alex, I have been building payment APIs for four years.")
        state.append_turn(PARTICIPANT, "Another long answer that should not replace the intro.")

        assert state.candidate_intro == "I'm Alex, I have been building payment APIs for four years."

    def test_last_participant_turn_respects_window(self, state):
        state.append_turn(PARTICIPANT, "Old answer")
        for i in range(5):
            state.append_turn("p1", f"Question {i}?")

        assert state.last_participant_turn(5) is None
        assert state.last_participant_turn(6).text == "Old answer"

    def test_questions_by_persona(self, state):
        state.append_turn("p1", "Q?")
        state.append_turn(PARTICIPANT, "A")
        state.append_turn("p3", "Q?")
        state.append_turn("p3", "Q?")

        assert state.questions_by_persona() == [1, 0, 2]

    def test_progress_and_remaining(self, state, clock):
        clock.advance(125)

        progress = state.progress(clock())

        assert progress["time_elapsed"] == 2
        assert progress["estimated_remaining"] == 28
        assert state.remaining_seconds(clock()) == 30 * 60 - 125

    def test_export_then_clear(self, state, clock):
        state.add_topic("teamwork")
        state.append_turn("p2", "How do you scale writes?")
        state.append_turn(PARTICIPANT, "We partitioned by merchant id across many shards.")

        exported = state.export(clock())

        assert exported["session_id"] == "session-test"
        assert exported["transcript"][0]["speaker"] == "Marcus Lee"
        assert exported["transcript"][1]["speaker"] == "Candidate"
        assert exported["topics_covered"] == ["teamwork"]

        state.clear()
        assert state.transcript == []
        assert state.topics_covered == []
        assert state.candidate_intro is None
        assert state.depth_level == 1


# ═══════════════════════════════════════════════════════════════════════════════
# WIRE MODELS
# ═══════════════════════════════════════════════════════════════════════════════


class TestWireModels:

    def test_transcript_update_accepts_camel_case(self):
        message = client_message_adapter.validate_python({
            "type": "transcript_update", "speaker": "ai", "text": "Hello",
            "timestamp": 1.5, "personaName": "Priya Raman",
        })

        assert isinstance(message, TranscriptUpdateMessage)
        assert message.persona_name == "Priya Raman"

    def test_panelists_alias_for_init(self):
        message = client_message_adapter.validate_python({
            "type": "init", "candidate": {"name": "Alex"}, "panelists": [{"name": "Priya"}],
        })

        assert isinstance(message, InitMessage)
        assert message.personas == [{"name": "Priya"}]
        assert "personas" in message.to_wire()

    def test_speaker_must_be_user_or_ai(self):
        with pytest.raises(ValidationError):
            client_message_adapter.validate_python({
                "type": "transcript_update", "speaker": "robot", "text": "x", "timestamp": 0,
            })

    def test_hint_serializes_camel_case_and_drops_none(self):
        wire = OrchestrationHintMessage(
            suggested_topic="databases", suggested_depth=2, should_follow_up=False,
            reasoning="r", confidence=0.7,
        ).to_wire()

        assert wire["type"] == "orchestration_hint"
        assert wire["suggestedTopic"] == "databases"
        assert "suggestedPersonaIndex" not in wire

    def test_hint_depth_is_bounded(self):
        with pytest.raises(ValidationError):
            server_message_adapter.validate_python({
                "type": "orchestration_hint", "suggestedTopic": "x", "suggestedDepth": 7,
                "shouldFollowUp": True, "reasoning": "", "confidence": 0.5,
            })
