"""
Tests for LiveInterviewOrchestrator
===================================

End-to-end behaviour of a live panel call against fake provider, speaker and
microphone.
"""

import asyncio
import json

import pytest

from mockpanel.infrastructure.advisory.client import AdvisoryChannel
from mockpanel.infrastructure.live.provider import LiveMessage
from mockpanel.interview.errors import MediaDeviceError
from mockpanel.interview.orchestrator import LiveInterviewOrchestrator
from mockpanel.interview.prompts import InterviewPrompts
from mockpanel.interview.testing import FakeCapture, ManualAudioSink, ManualClock, pcm_chunk


async def no_sleep(seconds):
    return None


async def wait_for(predicate, timeout=1.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached")
        await asyncio.sleep(0.005)


async def refuse(url):
    raise ConnectionRefusedError("advisory server down")


@pytest.fixture
def build(panel, candidate, provider, sink, capture):
    def factory(**kwargs):
        kwargs.setdefault("sink", sink)
        kwargs.setdefault("capture", capture)
        kwargs.setdefault("handoff_pause", 0)
        kwargs.setdefault("sleep", no_sleep)
        return LiveInterviewOrchestrator(
            provider, personas=panel, candidate=candidate, clock=ManualClock(), **kwargs
        )
    return factory


# ═══════════════════════════════════════════════════════════════════════════════
# STARTUP
# ═══════════════════════════════════════════════════════════════════════════════


class TestStart:

    @pytest.mark.asyncio
    async def test_first_persona_greets(self, build, panel, provider, capture):
        orchestrator = build()

        assert await orchestrator.start() is True

        assert capture.started is True
        assert provider.latest.voice == panel[0].voice
        assert provider.latest.texts == [InterviewPrompts.kickoff_message(panel[0], True)]
        assert orchestrator.active_persona == panel[0]
        assert orchestrator.get_metrics()["persona_activations"] == 1
        orchestrator.end_call()

    @pytest.mark.asyncio
    async def test_microphone_failure_aborts_before_connecting(self, build, provider):
        orchestrator = build(capture=FakeCapture(fail=True))

        with pytest.raises(MediaDeviceError):
            await orchestrator.start()

        assert provider.connect_calls == 0
        assert orchestrator.get_metrics()["errors_occurred"] == 1

    @pytest.mark.asyncio
    async def test_runs_without_advisory_server(self, build, provider):
        advisory = AdvisoryChannel("ws://advisory.test", connect=refuse)
        orchestrator = build(advisory=advisory)

        assert await orchestrator.start() is True
        assert provider.connect_calls == 1
        orchestrator.end_call()


# ═══════════════════════════════════════════════════════════════════════════════
# TRANSCRIPT
# ═══════════════════════════════════════════════════════════════════════════════


class TestTranscript:

    @pytest.mark.asyncio
    async def test_turns_interleave_in_order(self, build, provider):
        orchestrator = build()
        await orchestrator.start()
        connection = provider.latest

        connection.emit(LiveMessage(text_delta="[Priya Raman]: Tell me about yourself?"))
        connection.emit(LiveMessage(input_text_delta="I have"))
        connection.emit(LiveMessage(input_text_delta="I have four years [noise] of backend work"))
        connection.emit(LiveMessage(text_delta="Thanks."))
        orchestrator.end_call()

        assert orchestrator.transcript_lines() == [
            "Priya Raman: Tell me about yourself?",
            "Candidate: I have four years of backend work",
            "Priya Raman: Thanks.",
        ]
        assert orchestrator.state.question_count == 2

    @pytest.mark.asyncio
    async def test_directive_never_reaches_transcript(self, build, provider):
        orchestrator = build()
        await orchestrator.start()

        provider.latest.emit(LiveMessage(text_delta="Great point. [PASS: Marcus]"))
        provider.latest.emit(LiveMessage(turn_complete=True))
        await wait_for(lambda: provider.connect_calls == 2)

        assert orchestrator.state.transcript[0].text == "Great point."
        orchestrator.end_call()


# ═══════════════════════════════════════════════════════════════════════════════
# HANDOFF
# ═══════════════════════════════════════════════════════════════════════════════


class TestHandoff:

    @pytest.mark.asyncio
    async def test_directive_hands_floor_to_named_persona(self, build, panel, provider):
        orchestrator = build()
        await orchestrator.start()
        first = provider.latest

        first.emit(LiveMessage(text_delta="Over to you. [PASS: Dana]"))
        first.emit(LiveMessage(turn_complete=True))
        await wait_for(lambda: provider.connect_calls == 2 and orchestrator.state.active_persona_index == 2)

        assert first.closed is True
        assert provider.latest.voice == panel[2].voice
        assert provider.latest.texts == [InterviewPrompts.kickoff_message(panel[2], False)]
        assert orchestrator.get_metrics()["handoffs"] == 1
        orchestrator.end_call()

    @pytest.mark.asyncio
    async def test_handoff_waits_for_audio_to_finish(self, build, provider):
        sink = ManualAudioSink(auto_advance=False)
        orchestrator = build(sink=sink)
        await orchestrator.start()

        provider.latest.emit(LiveMessage(audio_chunk=pcm_chunk(0.5)))
        provider.latest.emit(LiveMessage(text_delta="Your turn. [PASS: Marcus]"))
        provider.latest.emit(LiveMessage(turn_complete=True))
        await wait_for(lambda: len(sink.plays) == 1)
        await asyncio.sleep(0.01)

        assert provider.connect_calls == 1

        sink.advance(0.5)
        await wait_for(lambda: orchestrator.state.active_persona_index == 1)
        assert provider.connect_calls == 2
        orchestrator.end_call()

    @pytest.mark.asyncio
    async def test_no_handoff_before_turn_complete(self, build, provider):
        orchestrator = build()
        await orchestrator.start()

        provider.latest.emit(LiveMessage(text_delta="Let me bring in Marcus. [PASS: Marcus]"))
        provider.latest.emit(LiveMessage(audio_chunk=pcm_chunk(0.2)))
        await asyncio.sleep(0.05)

        assert provider.connect_calls == 1
        orchestrator.end_call()

    @pytest.mark.asyncio
    async def test_turn_started_during_pause_is_not_cut_off(self, build, panel, provider):
        pause = asyncio.Event()

        async def held_pause(seconds):
            if seconds == 0.8:
                await pause.wait()

        orchestrator = build(handoff_pause=0.8, sleep=held_pause)
        await orchestrator.start()
        first = provider.latest

        first.emit(LiveMessage(text_delta="Over to you. [PASS: Dana]"))
        first.emit(LiveMessage(turn_complete=True))
        assert orchestrator.get_metrics()["handoffs"] == 1

        # Priya picks up again before the pause is over
        first.emit(LiveMessage(input_text_delta="Sorry, one more thing"))
        first.emit(LiveMessage(text_delta="Of course, go ahead."))
        first.emit(LiveMessage(audio_chunk=pcm_chunk(0.2)))
        await wait_for(lambda: orchestrator.queue.is_idle)
        pause.set()
        await asyncio.sleep(0.05)

        assert provider.connect_calls == 1
        assert first.closed is False

        first.emit(LiveMessage(turn_complete=True))
        await wait_for(lambda: orchestrator.state.active_persona_index == 2)
        assert first.closed is True
        assert provider.latest.voice == panel[2].voice
        orchestrator.end_call()

    @pytest.mark.asyncio
    async def test_failed_switch_keeps_state(self, build, provider):
        advisory = AdvisoryChannel("ws://advisory.test", connect=refuse)
        orchestrator = build(advisory=advisory)
        await orchestrator.start()
        advisory.handle_raw(json.dumps({
            "type": "orchestration_hint", "suggestedTopic": "databases", "suggestedDepth": 3,
            "shouldFollowUp": False, "reasoning": "Exploring new topic", "confidence": 0.8,
        }))
        provider.latest.emit(LiveMessage(text_delta="Tell me about your last project"))
        provider.fail_next = 1

        assert await orchestrator.switch_to_persona(1) is False

        assert orchestrator.state.active_persona_index == 0
        assert orchestrator.state.transcript == []
        assert orchestrator.state.question_count == 0
        assert orchestrator.state.current_topic is None
        assert advisory.peek_hint().suggested_topic == "databases"
        assert orchestrator.get_metrics()["persona_activations"] == 1

        assert await orchestrator.switch_to_persona(1) is True
        assert orchestrator.state.transcript[0].text == "Tell me about your last project"
        assert orchestrator.state.current_topic == "databases"
        assert advisory.peek_hint() is None
        orchestrator.end_call()

    @pytest.mark.asyncio
    async def test_hint_applied_on_successful_switch(self, build, provider):
        advisory = AdvisoryChannel("ws://advisory.test", connect=refuse)
        orchestrator = build(advisory=advisory)
        await orchestrator.start()

        advisory.handle_raw(json.dumps({
            "type": "orchestration_hint", "suggestedTopic": "databases", "suggestedDepth": 3,
            "shouldFollowUp": False, "reasoning": "Exploring new topic", "confidence": 0.8,
        }))
        assert await orchestrator.switch_to_persona(1) is True

        assert orchestrator.state.current_topic == "databases"
        assert orchestrator.state.depth_level == 3
        assert "databases" in provider.latest.system_instruction
        assert orchestrator.get_metrics()["hints_received"] == 1
        orchestrator.end_call()


# ═══════════════════════════════════════════════════════════════════════════════
# INTERRUPTION
# ═══════════════════════════════════════════════════════════════════════════════


class TestInterruption:

    @pytest.mark.asyncio
    async def test_barge_in_stops_playback(self, build, provider):
        sink = ManualAudioSink(auto_advance=False)
        orchestrator = build(sink=sink)
        await orchestrator.start()

        for _ in range(3):
            provider.latest.emit(LiveMessage(audio_chunk=pcm_chunk(0.5)))
        await wait_for(lambda: len(sink.plays) == 1)

        provider.latest.emit(LiveMessage(interrupted=True))

        assert sink.plays[0].stopped is True
        assert orchestrator.queue.is_idle
        assert orchestrator.get_metrics()["interruptions"] == 1
        orchestrator.end_call()


# ═══════════════════════════════════════════════════════════════════════════════
# ENDING THE CALL
# ═══════════════════════════════════════════════════════════════════════════════


class TestEndCall:

    @pytest.mark.asyncio
    async def test_end_call_is_idempotent(self, build, provider, sink, capture):
        orchestrator = build()
        await orchestrator.start()
        events = []
        orchestrator.event_bus.subscribe_all(events.append)

        orchestrator.end_call()
        orchestrator.end_call("time_up")
        await asyncio.sleep(0)

        assert capture.stopped is True
        assert sink.closed is True
        assert provider.latest.closed is True
        assert [e.data["reason"] for e in events if e.event_type.value == "session_ended"] == ["ended_by_user"]

    @pytest.mark.asyncio
    async def test_subscribers_released_after_end(self, build):
        orchestrator = build()
        await orchestrator.start()
        events = []
        orchestrator.event_bus.subscribe_all(events.append)

        orchestrator.end_call()
        orchestrator._emit_error(RuntimeError("late"), "test")

        assert [e.event_type.value for e in events] == ["session_ended"]

    @pytest.mark.asyncio
    async def test_toggle_mic(self, build, capture):
        orchestrator = build()
        await orchestrator.start()

        assert orchestrator.toggle_mic() is True
        assert capture.muted is True
        assert orchestrator.toggle_mic() is False
        orchestrator.end_call()

    @pytest.mark.asyncio
    async def test_export_includes_metrics(self, build, provider):
        orchestrator = build()
        await orchestrator.start()
        provider.latest.emit(LiveMessage(text_delta="What drew you to backend work?"))
        orchestrator.end_call()

        snapshot = orchestrator.export()

        assert snapshot["transcript"][0]["speaker"] == "Priya Raman"
        assert snapshot["metrics"]["turns_finalized"] == 1

    @pytest.mark.asyncio
    async def test_partial_turn_kept_on_end(self, build, provider):
        orchestrator = build()
        await orchestrator.start()

        provider.latest.emit(LiveMessage(input_text_delta="So my last project was"))
        orchestrator.end_call()

        assert orchestrator.transcript_lines() == ["Candidate: So my last project was"]

    @pytest.mark.asyncio
    async def test_messages_after_end_are_ignored(self, build, provider):
        orchestrator = build()
        await orchestrator.start()
        connection = provider.latest
        orchestrator.end_call()

        connection.emit(LiveMessage(text_delta="Are you still there?"))

        assert orchestrator.state.transcript == []

    @pytest.mark.asyncio
    async def test_end_during_activation_closes_new_session(self, build, provider):
        orchestrator = build()
        await orchestrator.start()
        provider.gate = asyncio.Event()

        switching = asyncio.ensure_future(orchestrator.switch_to_persona(1))
        await wait_for(lambda: provider.connect_calls == 2)
        orchestrator.end_call()
        provider.gate.set()

        assert await switching is False
        await wait_for(lambda: provider.latest.closed)
        assert orchestrator.state.active_persona_index == 0

    @pytest.mark.asyncio
    async def test_advisory_completion_ends_call(self, build):
        advisory = AdvisoryChannel("ws://advisory.test", connect=refuse)
        orchestrator = build(advisory=advisory)
        await orchestrator.start()
        events = []
        orchestrator.event_bus.subscribe_all(events.append)

        advisory.handle_raw(json.dumps({
            "type": "interview_complete", "totalDuration": 1800,
            "questionCount": 9, "topicsCovered": [],
        }))

        assert orchestrator.ended is True
        assert events[-1].data["reason"] == "time_up"

    @pytest.mark.asyncio
    async def test_closing_phase_prompts_wrap_up(self, build, provider):
        advisory = AdvisoryChannel("ws://advisory.test", connect=refuse)
        orchestrator = build(advisory=advisory)
        await orchestrator.start()

        advisory.handle_raw(json.dumps({
            "type": "interview_phase_change", "phase": "closing",
            "remainingSeconds": 175, "shouldStartClosing": True,
        }))
        await wait_for(lambda: InterviewPrompts.closing_message() in provider.latest.texts)
        orchestrator.end_call()
