"""
Live interview orchestrator.

Wires one live provider session per active persona to the microphone, the
speaker queue, the transcript and the optional advisory channel, and moves the
floor between personas once the current one has finished speaking.
"""
import asyncio
import logging
import time
import uuid
from typing import Any, Awaitable, Callable, Dict, List, Optional

from .errors import MediaDeviceError
from .events import (
    SessionEventBus, EventLogger, SessionMetrics,
    SessionStartedEvent, PersonaActivatedEvent, TranscriptUpdatedEvent,
    TurnFinalizedEvent, HandoffScheduledEvent, PlaybackInterruptedEvent,
    HintReceivedEvent, PhaseChangedEvent, TimeUpdatedEvent, SessionEndedEvent,
    ErrorOccurredEvent,
)
from .handoff import HandoffDetector, strip_directives, strip_speaker_prefix
from .models import CandidateProfile, Hint, Persona, TurnRecord, PARTICIPANT
from .prompts import InterviewPrompts
from .schemas import (
    ConversationState, InitMessage, PhaseChangeMessage, TimeUpdateMessage,
    InterviewCompleteMessage,
)
from .transcript import TranscriptAggregator
from ..config import (
    HANDOFF_PAUSE_SECONDS, OUTPUT_SAMPLE_RATE, RECENT_TURN_WINDOW,
    SESSION_SETTLE_SECONDS, TARGET_DURATION_MINUTES,
)
from ..infrastructure.advisory.client import AdvisoryChannel
from ..infrastructure.audio.playback.queue import AudioPlaybackQueue, AudioSink
from ..infrastructure.audio.processing.capture import MediaCapture
from ..infrastructure.live.provider import LiveMessage, LiveProvider
from ..infrastructure.live.session import LiveSessionController

logger = logging.getLogger("orchestrator")

Sleep = Callable[[float], Awaitable[None]]


class LiveInterviewOrchestrator:
    """
    Runs one live panel interview.

    Everything here executes on a single event loop; provider callbacks,
    capture chunks and advisory messages all arrive on it, so conversation
    state is only ever touched from one place at a time.
    """

    def __init__(self,
                 provider: LiveProvider,
                 sink: AudioSink,
                 personas: List[Persona],
                 candidate: CandidateProfile,
                 advisory: Optional[AdvisoryChannel] = None,
                 capture: Optional[Any] = None,
                 session_id: Optional[str] = None,
                 target_duration_seconds: float = TARGET_DURATION_MINUTES * 60,
                 handoff_pause: float = HANDOFF_PAUSE_SECONDS,
                 settle_seconds: float = SESSION_SETTLE_SECONDS,
                 sample_rate: int = OUTPUT_SAMPLE_RATE,
                 handoff_detector: Optional[HandoffDetector] = None,
                 event_bus: Optional[SessionEventBus] = None,
                 sleep: Sleep = asyncio.sleep,
                 clock: Callable[[], float] = time.time):
        self.clock = clock
        self.sleep = sleep
        self.handoff_pause = handoff_pause
        self.state = ConversationState.create(
            candidate=candidate,
            personas=personas,
            session_id=session_id or str(uuid.uuid4()),
            target_duration_seconds=target_duration_seconds,
            now=clock(),
        )

        # Initialize event system
        self.event_bus = event_bus or SessionEventBus()
        self.event_logger = EventLogger()
        self.metrics = SessionMetrics()
        self.event_bus.subscribe_all(self.event_logger.handle_event)
        self.event_bus.subscribe_all(self.metrics.handle_event)

        self.controller = LiveSessionController(provider, settle_seconds=settle_seconds, sleep=sleep)
        self.queue = AudioPlaybackQueue(sink, sample_rate=sample_rate, on_drained=self._on_playback_drained)
        self.transcript = TranscriptAggregator(on_finalize=self._on_turn_finalized, clock=clock)
        self.handoff = handoff_detector or HandoffDetector(personas)
        self.capture = capture or MediaCapture(on_chunk=self.controller.send_realtime_input)

        self.advisory = advisory
        if advisory is not None:
            advisory.on_hint = self._on_hint
            advisory.on_phase_change = self._on_phase_change
            advisory.on_time_update = self._on_time_update
            advisory.on_complete = self._on_advisory_complete

        self.ended = False
        self._turn_complete = False
        self._handoff_task: Optional[asyncio.Task] = None
        self._turn_finished = asyncio.Event()
        self._background: set = set()

    @property
    def session_id(self) -> str:
        return self.state.session_id

    @property
    def active_persona(self) -> Optional[Persona]:
        return self.controller.active_persona

    async def start(self) -> bool:
        """
        Open the microphone, connect the advisory channel and bring in the
        first persona.

        Returns:
            True once the first persona is live

        Raises:
            MediaDeviceError: the microphone could not be opened
        """
        try:
            self.capture.start(asyncio.get_running_loop())
        except MediaDeviceError as e:
            logger.error(f"Cannot start interview, microphone unavailable: {e}")
            self._emit_error(e, "capture")
            raise

        if self.advisory is not None:
            init = InitMessage(
                candidate=self.state.candidate.to_dict(),
                personas=[persona.to_dict() for persona in self.state.personas],
            )
            if not await self.advisory.start(init):
                logger.warning("Continuing without advisory hints")

        print(f"\n🎙️  Starting panel interview with {', '.join(p.name for p in self.state.personas)}")
        print("=" * 50)

        activated = await self.switch_to_persona(0, is_intro=True)
        if activated:
            self.event_bus.emit(SessionStartedEvent(
                self.session_id, self.clock(), [p.name for p in self.state.personas]
            ))
        return activated

    async def switch_to_persona(self, index: int, is_intro: bool = False) -> bool:
        """
        Replace the live session with one for ``personas[index]``.

        Conversation state only changes if the new session comes up.
        """
        if self.ended:
            return False
        if self.controller.is_transitioning:
            logger.info("Persona switch already in progress, ignoring request")
            return False

        persona = self.state.personas[index]
        # The outgoing session is closed whether or not the new one comes up
        self.queue.interrupt()

        hint = None
        if self.advisory is not None and not is_intro:
            hint = self.advisory.peek_hint()

        instruction = InterviewPrompts.panelist_instruction(
            persona,
            self.state.personas,
            self.state.candidate,
            is_intro=is_intro,
            recent_lines=self.recent_lines(),
            candidate_intro=self.state.candidate_intro,
            hint=hint,
        )
        activated = await self.controller.activate(persona, instruction, self.handle_live_message)

        if self.ended:
            # The call ended while this session was connecting
            self.controller.abort()
            return False
        if not activated:
            logger.error(f"Could not bring in {persona.name}, staying with the previous state")
            return False

        self.transcript.flush()
        self.state.active_persona_index = index
        if hint is not None:
            self.advisory.consume_hint(hint)
            self._apply_hint(hint)
        self.handoff.mark_rotated()
        self._turn_complete = False
        print(f"🗣️  {persona.name} ({persona.role}) has the floor")
        self.event_bus.emit(PersonaActivatedEvent(
            self.session_id, self.clock(), index, persona.name, persona.voice
        ))
        await self.controller.send_text(InterviewPrompts.kickoff_message(persona, is_intro))
        return True

    def handle_live_message(self, message: LiveMessage) -> None:
        """Route one provider message. Runs on the event loop, never blocks."""
        if self.ended:
            return

        if message.interrupted:
            dropped = self.queue.interrupt()
            self.event_bus.emit(PlaybackInterruptedEvent(self.session_id, self.clock(), dropped))

        persona = self.controller.active_persona
        if self._handoff_task is not None and (message.text_delta or message.audio_chunk):
            # The persona started another turn while the handoff was pending
            self._turn_finished.clear()

        if message.text_delta and persona is not None:
            buffered = self.transcript.add_fragment(persona.id, message.text_delta)
            display = self.handoff.process(buffered)
            if display:
                self.event_bus.emit(TranscriptUpdatedEvent(self.session_id, self.clock(), persona.name, display))

        if message.input_text_delta:
            buffered = self.transcript.add_fragment(PARTICIPANT, message.input_text_delta)
            if buffered:
                self.event_bus.emit(TranscriptUpdatedEvent(self.session_id, self.clock(), "Candidate", buffered))

        if message.audio_chunk:
            self._turn_complete = False
            self.queue.enqueue(message.audio_chunk)

        if message.turn_complete:
            self._turn_complete = True
            self._turn_finished.set()
            if persona is not None and self.transcript.current_speaker == persona.id:
                self.transcript.flush()
            if self.queue.is_idle:
                self._on_playback_drained()

    def _on_turn_finalized(self, record: TurnRecord) -> None:
        if record.is_participant:
            text = record.text
            persona_name = None
        else:
            text = strip_directives(strip_speaker_prefix(record.text))
            index = self.state.persona_index(record.speaker)
            persona_name = self.state.personas[index].name if index != -1 else None
        if not text:
            return
        if not record.is_participant:
            self.state.question_count += 1

        self.state.append_turn(record.speaker, text, record.timestamp)
        label = "Candidate" if record.is_participant else (persona_name or record.speaker)
        print(f"{'👤' if record.is_participant else '🤖'} {label}: {text}")
        self.event_bus.emit(TurnFinalizedEvent(self.session_id, self.clock(), label, text))

        if self.advisory is not None:
            self.advisory.publish_transcript(
                "user" if record.is_participant else "ai",
                text, record.timestamp, persona_name,
            )

    def _on_playback_drained(self) -> None:
        """The current persona's audio ran out. Hand off only once its turn is over."""
        if self.ended or not self._turn_complete or self._handoff_task is not None:
            return
        self._turn_complete = False

        current = self.state.active_persona_index
        target = self.handoff.on_playback_drained(current)
        if target is None:
            return

        self._turn_finished.set()
        self.event_bus.emit(HandoffScheduledEvent(self.session_id, self.clock(), current, target))
        self._handoff_task = asyncio.get_running_loop().create_task(self._handoff_after_pause(target))

    async def _handoff_after_pause(self, target: int) -> None:
        try:
            await self.sleep(self.handoff_pause)
            # Switch only once any turn begun during the pause has ended and played out
            while True:
                await self._turn_finished.wait()
                await self.queue.wait_drained()
                if self._turn_finished.is_set():
                    break
            if self.ended:
                return
            await self.switch_to_persona(target)
        finally:
            self._handoff_task = None

    def _apply_hint(self, hint: Hint) -> None:
        self.state.current_topic = hint.suggested_topic
        self.state.add_topic(hint.suggested_topic)
        self.state.depth_level = hint.suggested_depth
        logger.info(f"Using hint: {hint.suggested_topic} at depth {hint.suggested_depth} "
                    f"(confidence {hint.confidence:.2f})")

    def _on_hint(self, hint: Hint) -> None:
        self.event_bus.emit(HintReceivedEvent(
            self.session_id, self.clock(), hint.suggested_topic, hint.suggested_depth,
            hint.confidence, hint.suggested_persona_index,
        ))

    def _on_phase_change(self, message: PhaseChangeMessage) -> None:
        self.event_bus.emit(PhaseChangedEvent(
            self.session_id, self.clock(), message.phase, message.remaining_seconds
        ))
        if message.should_start_closing and not self.ended:
            print("⏰ Time is nearly up, wrapping up")
            self._spawn(self.controller.send_text(InterviewPrompts.closing_message()))

    def _on_time_update(self, message: TimeUpdateMessage) -> None:
        self.event_bus.emit(TimeUpdatedEvent(
            self.session_id, self.clock(), message.phase, message.remaining_seconds
        ))

    def _on_advisory_complete(self, message: InterviewCompleteMessage) -> None:
        self.end_call(reason="time_up")

    def _spawn(self, coro: Awaitable[None]) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    def toggle_mic(self) -> bool:
        """Mute or unmute the microphone. Returns True if now muted."""
        return self.capture.toggle_mute()

    def end_call(self, reason: str = "ended_by_user") -> None:
        """
        Stop everything right now. Capture stops first, then both channels and
        the speaker are released without waiting for anything to finish.
        """
        if self.ended:
            return
        self.ended = True
        logger.info(f"Ending call: {reason}")

        self.capture.stop()
        if self._handoff_task is not None and not self._handoff_task.done():
            self._handoff_task.cancel()
        self._handoff_task = None
        for task in list(self._background):
            task.cancel()

        self.controller.abort()
        self.queue.close()
        if self.advisory is not None:
            self.advisory.close()

        # Keep whatever was mid-utterance
        self.transcript.flush()
        self.handoff.clear()

        self.event_bus.emit(SessionEndedEvent(
            self.session_id, self.clock(), reason, len(self.state.transcript)
        ))
        # Presentation subscribers are released once the call is over
        self.event_bus.clear_handlers()

    def recent_lines(self) -> List[str]:
        return [
            f"{self.state.speaker_label(record)}: {record.text}"
            for record in self.state.recent_turns(RECENT_TURN_WINDOW)
        ]

    def transcript_lines(self) -> List[str]:
        return [f"{self.state.speaker_label(record)}: {record.text}" for record in self.state.transcript]

    def export(self) -> Dict[str, Any]:
        snapshot = self.state.export(self.clock())
        snapshot["metrics"] = self.metrics.get_metrics()
        return snapshot

    def get_metrics(self) -> Dict[str, int]:
        """Get current session metrics."""
        return self.metrics.get_metrics()

    def _emit_error(self, error: Exception, component: str) -> None:
        self.event_bus.emit(ErrorOccurredEvent(
            self.session_id, self.clock(), type(error).__name__, str(error), component
        ))
