"""
Tests for HandoffDetector
=========================

Directive parsing, name resolution and the rotation fallback.
"""

from mockpanel.interview.handoff import HandoffDetector, strip_directives, strip_speaker_prefix
from mockpanel.interview.models import build_panel
from mockpanel.interview.testing import ManualClock


def detector_for(panel, **kwargs):
    clock = ManualClock(start=0.0)
    detector = HandoffDetector(panel, clock=clock, **kwargs)
    return detector, clock


# ═══════════════════════════════════════════════════════════════════════════════
# DISPLAY TEXT
# ═══════════════════════════════════════════════════════════════════════════════


class TestDisplayText:

    def test_directive_removed_from_display(self, panel):
        detector, _ = detector_for(panel)

        shown = detector.process("...great point. [PASS: Priya]")

        assert shown == "...great point."
        assert detector.pending_target == "Priya"

    def test_partial_directive_hidden_while_streaming(self):
        assert strip_directives("Thanks for that. [PASS: Pri") == "Thanks for that."
        assert strip_directives("Thanks for that. [PA") == "Thanks for that. [PA"
        assert strip_directives("Thanks for that. [PASS") == "Thanks for that."

    def test_speaker_prefix_stripped(self):
        assert strip_speaker_prefix("[Marcus Lee]: How would you shard it?") == "How would you shard it?"

    def test_leading_directive_is_not_a_speaker_prefix(self):
        assert strip_speaker_prefix("[PASS: Dana] thanks") == "[PASS: Dana] thanks"


# ═══════════════════════════════════════════════════════════════════════════════
# LATCHING AND RESOLUTION
# ═══════════════════════════════════════════════════════════════════════════════


class TestResolution:

    def test_first_directive_wins(self, panel):
        detector, _ = detector_for(panel)
        detector.process("Over to you [PASS: Marcus]")
        detector.process("Actually [PASS: Dana]")

        assert detector.pending_target == "Marcus"

    def test_exact_full_name_case_insensitive(self, panel):
        detector, _ = detector_for(panel)
        assert detector.resolve("dana ortiz") == 2

    def test_first_name_prefix(self, panel):
        detector, _ = detector_for(panel)
        assert detector.resolve("Mar") == 1

    def test_unknown_name(self, panel):
        detector, _ = detector_for(panel)
        assert detector.resolve("Zed") is None
        assert detector.resolve("  ") is None


# ═══════════════════════════════════════════════════════════════════════════════
# DRAIN DECISIONS
# ═══════════════════════════════════════════════════════════════════════════════


class TestOnPlaybackDrained:

    def test_pending_target_consumed_on_drain(self, panel):
        detector, _ = detector_for(panel)
        detector.process("Good answer. [PASS: Dana]")

        assert detector.on_playback_drained(0) == 2
        assert detector.pending_target is None

    def test_unresolved_target_falls_back_to_rotation(self, panel):
        detector, clock = detector_for(panel, min_questions=1, cooldown_seconds=5.0)
        clock.advance(10.0)
        detector.process("Let me pass you on. [PASS: Nobody]")

        assert detector.on_playback_drained(0) == 1

    def test_unresolved_target_without_rotation_stays(self, panel):
        detector, _ = detector_for(panel)
        detector.process("[PASS: Nobody]")

        assert detector.on_playback_drained(0) is None
        assert detector.pending_target is None

    def test_self_target_is_ignored(self, panel):
        detector, _ = detector_for(panel)
        detector.process("[PASS: Priya]")

        assert detector.on_playback_drained(0) is None

    def test_rotation_needs_questions_and_cooldown(self, panel):
        detector, clock = detector_for(panel, min_questions=2, cooldown_seconds=5.0)

        assert detector.on_playback_drained(0) is None
        assert detector.on_playback_drained(0) is None  # two questions, no cooldown yet
        clock.advance(6.0)
        assert detector.on_playback_drained(0) == 1

    def test_rotation_wraps_around(self, panel):
        detector, clock = detector_for(panel, min_questions=1, cooldown_seconds=0.0)
        assert detector.on_playback_drained(2) == 0

    def test_mark_rotated_resets_counters(self, panel):
        detector, clock = detector_for(panel, min_questions=1, cooldown_seconds=5.0)
        clock.advance(10.0)
        detector.process("[PASS: Marcus]")
        detector.mark_rotated()

        assert detector.questions_since_rotation == 0
        assert detector.last_rotation == 10.0
        assert detector.pending_target is None

    def test_single_persona_never_rotates(self):
        solo = build_panel([{"name": "Priya Raman", "role": "EM", "focus": "teamwork"}])
        detector, clock = detector_for(solo, min_questions=1, cooldown_seconds=0.0)
        clock.advance(100.0)

        for _ in range(5):
            assert detector.on_playback_drained(0) is None
