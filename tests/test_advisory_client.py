"""
Tests for AdvisoryChannel
=========================

Connection handling, outbound publishing and hint freshness rules.
"""

import asyncio
import json

import pytest

from mockpanel.infrastructure.advisory.client import AdvisoryChannel
from mockpanel.interview.errors import AdvisoryProtocolError
from mockpanel.interview.schemas import InitMessage
from mockpanel.interview.testing import ManualClock


class FakeWebSocket:
    """Server side is driven by ``push``; ``None`` ends the stream."""

    def __init__(self):
        self.sent = []
        self.closed = False
        self._inbound = asyncio.Queue()

    async def send(self, payload):
        self.sent.append(json.loads(payload))

    async def close(self):
        self.closed = True

    def push(self, message):
        self._inbound.put_nowait(None if message is None else json.dumps(message))

    def __aiter__(self):
        return self

    async def __anext__(self):
        item = await self._inbound.get()
        if item is None:
            raise StopAsyncIteration
        return item


def hint_frame(topic="databases", depth=2):
    return {
        "type": "orchestration_hint", "suggestedTopic": topic, "suggestedDepth": depth,
        "shouldFollowUp": False, "reasoning": "Exploring new topic", "confidence": 0.7,
    }


async def settle():
    for _ in range(5):
        await asyncio.sleep(0)


@pytest.fixture
def websocket():
    return FakeWebSocket()


@pytest.fixture
def channel_factory(websocket):
    def build(**kwargs):
        async def connect(url):
            return websocket
        kwargs.setdefault("clock", ManualClock(start=0.0))
        return AdvisoryChannel("ws://advisory.test/ws/interview", connect=connect, **kwargs)
    return build


# ═══════════════════════════════════════════════════════════════════════════════
# CONNECTION
# ═══════════════════════════════════════════════════════════════════════════════


class TestConnection:

    @pytest.mark.asyncio
    async def test_unreachable_server_returns_false(self):
        async def refuse(url):
            raise ConnectionRefusedError("nothing listening")

        channel = AdvisoryChannel("ws://advisory.test", connect=refuse)

        assert await channel.start(InitMessage()) is False
        assert channel.connected is False

    @pytest.mark.asyncio
    async def test_init_is_sent_first(self, channel_factory, websocket):
        channel = channel_factory()
        started = await channel.start(InitMessage(candidate={"name": "Alex"}, personas=[{"name": "Priya"}]))
        channel.publish_transcript("user", "Hello there", 1.0)
        await settle()

        assert started is True
        assert [m["type"] for m in websocket.sent] == ["init", "transcript_update"]
        assert websocket.sent[0]["personas"] == [{"name": "Priya"}]
        channel.close()

    @pytest.mark.asyncio
    async def test_persona_name_goes_out_camel_case(self, channel_factory, websocket):
        channel = channel_factory()
        await channel.start(InitMessage())
        channel.publish_transcript("ai", "Tell me about a project.", 2.0, persona_name="Marcus Lee")
        await settle()

        assert websocket.sent[-1]["personaName"] == "Marcus Lee"
        channel.close()

    @pytest.mark.asyncio
    async def test_publish_after_close_is_noop(self, channel_factory, websocket):
        channel = channel_factory()
        await channel.start(InitMessage())
        await settle()
        channel.close()

        channel.publish_transcript("user", "Anyone there?", 3.0)
        await settle()

        assert [m["type"] for m in websocket.sent] == ["init"]
        assert websocket.closed is True

    @pytest.mark.asyncio
    async def test_server_hangup_disconnects(self, channel_factory, websocket):
        channel = channel_factory()
        await channel.start(InitMessage())
        websocket.push(None)
        await settle()

        assert channel.connected is False


# ═══════════════════════════════════════════════════════════════════════════════
# INBOUND MESSAGES
# ═══════════════════════════════════════════════════════════════════════════════


class TestInbound:

    def test_malformed_frame_raises(self, channel_factory):
        with pytest.raises(AdvisoryProtocolError):
            channel_factory().handle_raw("{not json")

    def test_invalid_hint_raises(self, channel_factory):
        with pytest.raises(AdvisoryProtocolError):
            channel_factory().handle_raw(json.dumps(hint_frame(depth=9)))

    def test_unknown_type_ignored(self, channel_factory):
        channel = channel_factory()
        channel.handle_raw(json.dumps({"type": "mystery"}))
        assert channel.peek_hint() is None

    def test_initialized_sets_session_id(self, channel_factory):
        channel = channel_factory()
        channel.handle_raw(json.dumps({"type": "initialized", "sessionId": "session_1_abc"}))
        assert channel.session_id == "session_1_abc"

    def test_phase_and_complete_callbacks(self, channel_factory):
        phases, completions = [], []
        channel = channel_factory(on_phase_change=phases.append, on_complete=completions.append)

        channel.handle_raw(json.dumps({
            "type": "interview_phase_change", "phase": "closing",
            "remainingSeconds": 170, "shouldStartClosing": True,
        }))
        channel.handle_raw(json.dumps({
            "type": "interview_complete", "totalDuration": 1800,
            "questionCount": 12, "topicsCovered": ["teamwork"],
        }))

        assert phases[0].should_start_closing is True
        assert completions[0].question_count == 12

    def test_callback_errors_are_contained(self, channel_factory):
        def broken(hint):
            raise RuntimeError("ui gone")

        channel = channel_factory(on_hint=broken)
        channel.handle_raw(json.dumps(hint_frame()))

        assert channel.peek_hint().suggested_topic == "databases"

    @pytest.mark.asyncio
    async def test_reader_survives_bad_frames(self, channel_factory, websocket):
        channel = channel_factory()
        await channel.start(InitMessage())
        websocket._inbound.put_nowait("garbage")
        websocket.push(hint_frame("teamwork"))
        await settle()

        assert channel.connected is True
        assert channel.peek_hint().suggested_topic == "teamwork"
        channel.close()


# ═══════════════════════════════════════════════════════════════════════════════
# HINT FRESHNESS
# ═══════════════════════════════════════════════════════════════════════════════


class TestHints:

    def test_last_write_wins(self, channel_factory):
        channel = channel_factory()
        channel.handle_raw(json.dumps(hint_frame("databases")))
        channel.handle_raw(json.dumps(hint_frame("teamwork")))

        assert channel.take_hint().suggested_topic == "teamwork"
        assert channel.take_hint() is None

    def test_expired_hint_is_discarded(self):
        clock = ManualClock(start=0.0)
        channel = AdvisoryChannel("ws://x", clock=clock, hint_ttl=30.0)
        channel.handle_raw(json.dumps(hint_frame()))

        clock.advance(31.0)

        assert channel.take_hint() is None
        assert channel.peek_hint() is None

    def test_throttle_window(self):
        clock = ManualClock(start=0.0)
        channel = AdvisoryChannel("ws://x", clock=clock, throttle=2.0)

        channel.handle_raw(json.dumps(hint_frame("databases")))
        assert channel.take_hint() is not None

        clock.advance(1.0)
        channel.handle_raw(json.dumps(hint_frame("teamwork")))
        assert channel.take_hint() is None

        clock.advance(1.5)
        assert channel.take_hint().suggested_topic == "teamwork"

    def test_hint_carries_receive_time(self):
        clock = ManualClock(start=42.0)
        channel = AdvisoryChannel("ws://x", clock=clock)
        channel.handle_raw(json.dumps(hint_frame()))

        assert channel.peek_hint().received_at == 42.0

    def test_consume_keeps_newer_hint(self):
        clock = ManualClock(start=0.0)
        channel = AdvisoryChannel("ws://x", clock=clock, throttle=2.0)
        channel.handle_raw(json.dumps(hint_frame("databases")))
        used = channel.peek_hint()

        channel.handle_raw(json.dumps(hint_frame("teamwork")))
        channel.consume_hint(used)

        assert channel.peek_hint() is None
        clock.advance(2.5)
        assert channel.take_hint().suggested_topic == "teamwork"

    def test_peek_leaves_hint_in_place(self, channel_factory):
        channel = channel_factory()
        channel.handle_raw(json.dumps(hint_frame()))

        assert channel.peek_hint() is channel.peek_hint()
        assert channel.take_hint().suggested_topic == "databases"
