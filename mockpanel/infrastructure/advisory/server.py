"""
Advisory server: strategic hints for a live interview.

The live client talks to the speech provider directly. This server only
receives the finalized transcript, runs turn selection after each participant
answer, reviews persona questions, and keeps the interview clock.

Endpoints
---------
  GET       /api/health      Service liveness
  WEBSOCKET /ws/interview    Advisory channel, one interview per connection
"""
import asyncio
import json
import logging
import random
import time
import uuid
from typing import Any, Awaitable, Callable, Dict, Optional

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError

from ...config import (
    TARGET_DURATION_MINUTES, PHASE_POLL_SECONDS, CLOSING_THRESHOLD_SECONDS,
    OPENING_WINDOW_SECONDS, COMPLETION_GRACE_SECONDS,
)
from ...interview.analysis import SelfCorrectionReviewer
from ...interview.decision_engine import TurnSelector
from ...interview.models import CandidateProfile, build_panel, PARTICIPANT
from ...interview.phase_timer import PhaseTimer, InterviewPhase
from ...interview.schemas import (
    ConversationState, InitMessage, TranscriptUpdateMessage, InitializedMessage,
    OrchestrationHintMessage, PhaseChangeMessage, InterviewCompleteMessage,
    TimeUpdateMessage, ErrorMessage, WireModel, client_message_adapter,
    CLIENT_MESSAGE_TYPES,
)

logger = logging.getLogger("advisory_server")

SendJson = Callable[[Dict[str, Any]], Awaitable[None]]


class LiveInterviewHandler:
    """
    One advisory session. All state mutation goes through ``_lock`` so two
    decisions never compute at once for the same interview.
    """

    def __init__(self,
                 send_json: SendJson,
                 session_id: Optional[str] = None,
                 target_duration_seconds: float = TARGET_DURATION_MINUTES * 60,
                 rng: Optional[random.Random] = None,
                 timer_options: Optional[Dict[str, Any]] = None,
                 clock: Callable[[], float] = time.time):
        self.send_json = send_json
        self.session_id = session_id or f"session_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"
        self.target_duration_seconds = target_duration_seconds
        self.rng = rng
        self.timer_options = timer_options or {}
        self.clock = clock
        self.state: Optional[ConversationState] = None
        self.selector: Optional[TurnSelector] = None
        self.reviewer = SelfCorrectionReviewer(clock=clock)
        self.timer: Optional[PhaseTimer] = None
        self._timer_task: Optional[asyncio.Task] = None
        self._lock = asyncio.Lock()

    async def send(self, message: WireModel) -> None:
        try:
            await self.send_json(message.to_wire())
        except (WebSocketDisconnect, RuntimeError) as e:
            logger.debug(f"[{self.session_id}] Dropped {message.type}, socket gone: {e}")

    async def send_error(self, message: str) -> None:
        await self.send(ErrorMessage(message=message))

    async def handle_raw(self, raw: str) -> None:
        """Parse and dispatch one inbound text frame."""
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.error(f"[{self.session_id}] Malformed message: {e}")
            await self.send_error("Failed to process message")
            return

        message_type = data.get("type") if isinstance(data, dict) else None
        if message_type not in CLIENT_MESSAGE_TYPES:
            logger.warning(f"[{self.session_id}] Unknown message type: {message_type}")
            return

        try:
            message = client_message_adapter.validate_python(data)
        except ValidationError as e:
            logger.error(f"[{self.session_id}] Invalid {message_type} message: {e}")
            await self.send_error(f"Invalid {message_type} message")
            return

        async with self._lock:
            if isinstance(message, InitMessage):
                await self.initialize(message)
            else:
                await self.handle_transcript_update(message)

    async def initialize(self, message: InitMessage) -> None:
        if self.state is not None:
            logger.info(f"[{self.session_id}] Session already active, cleaning up before re-initializing")
            await self.cleanup()

        try:
            personas = build_panel(message.personas)
            self.state = ConversationState.create(
                candidate=CandidateProfile.from_dict(message.candidate),
                personas=personas,
                session_id=self.session_id,
                target_duration_seconds=self.target_duration_seconds,
                now=self.clock(),
            )
        except (KeyError, ValueError, TypeError) as e:
            logger.error(f"[{self.session_id}] Failed to initialize: {e}")
            await self.send_error("Failed to initialize orchestration service")
            return

        self.selector = TurnSelector(rng=self.rng)
        options = {
            "poll_interval": PHASE_POLL_SECONDS,
            "closing_threshold_seconds": CLOSING_THRESHOLD_SECONDS,
            "opening_window_seconds": OPENING_WINDOW_SECONDS,
            "grace_seconds": COMPLETION_GRACE_SECONDS,
        }
        options.update(self.timer_options)
        self.timer = PhaseTimer(
            self.target_duration_seconds,
            start_time=self.state.session_start,
            clock=self.clock,
            on_phase_change=self._on_phase_change,
            on_tick=self._on_tick,
            on_complete=self._on_complete,
            **options,
        )
        self._timer_task = asyncio.create_task(self.timer.run())

        logger.info(f"[{self.session_id}] Orchestrator initialized with {len(personas)} personas")
        await self.send(InitializedMessage(session_id=self.session_id))

    async def handle_transcript_update(self, message: TranscriptUpdateMessage) -> None:
        if self.state is None:
            logger.warning(f"[{self.session_id}] Transcript update before init, ignoring")
            return

        state = self.state
        if message.speaker == "user":
            state.append_turn(PARTICIPANT, message.text, message.timestamp)
            # Hints only follow participant answers
            hint = self.selector.next_hint(state, now=self.clock())
            await self.send(OrchestrationHintMessage(
                suggested_topic=hint.suggested_topic,
                suggested_depth=hint.suggested_depth,
                should_follow_up=hint.should_follow_up,
                reasoning=hint.reasoning,
                confidence=hint.confidence,
                suggested_persona_index=hint.suggested_persona_index,
            ))
            logger.info(f"[{self.session_id}] Hint sent: topic='{hint.suggested_topic}' "
                        f"depth={hint.suggested_depth} follow_up={hint.should_follow_up}")
            return

        persona = state.persona_by_name(message.persona_name) if message.persona_name else None
        if persona is None:
            persona = state.active_persona
        state.append_turn(persona.id, message.text, message.timestamp)
        self.reviewer.review(message.text, state.current_topic, state.depth_level, state)

    async def _on_phase_change(self, phase: InterviewPhase, remaining: float) -> None:
        await self.send(PhaseChangeMessage(
            phase=phase.value,
            remaining_seconds=int(remaining),
            should_start_closing=phase == InterviewPhase.CLOSING,
        ))

    async def _on_tick(self, phase: InterviewPhase, remaining: float) -> None:
        await self.send(TimeUpdateMessage(remaining_seconds=int(remaining), phase=phase.value))

    async def _on_complete(self) -> None:
        async with self._lock:
            state = self.state
            if state is None:
                return
            await self.send(InterviewCompleteMessage(
                total_duration=int(state.elapsed_seconds(self.clock())),
                question_count=state.question_count,
                topics_covered=list(state.topics_covered),
            ))
            logger.info(f"[{self.session_id}] Interview complete after {state.question_count} questions")
            await self.cleanup()

    def export(self) -> Optional[Dict[str, Any]]:
        return self.state.export(self.clock()) if self.state is not None else None

    async def cleanup(self) -> None:
        """Stop the clock and drop the session state."""
        if self.timer is not None:
            self.timer.stop()
        task, self._timer_task = self._timer_task, None
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        if self.state is not None:
            self.state.clear()
        self.state = None
        self.timer = None
        logger.info(f"Session {self.session_id} cleaned up")


def create_app(target_duration_seconds: Optional[float] = None,
               rng: Optional[random.Random] = None,
               timer_options: Optional[Dict[str, Any]] = None) -> FastAPI:
    """Build the advisory FastAPI app."""
    app = FastAPI(title="MockPanel Advisory Server")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.handlers = {}
    duration = target_duration_seconds or TARGET_DURATION_MINUTES * 60

    @app.get("/api/health")
    async def health() -> Dict[str, Any]:
        """Liveness probe."""
        return {
            "status": "ok",
            "activeSessions": len(app.state.handlers),
            "timestamp": time.time(),
        }

    @app.websocket("/ws/interview")
    async def interview_socket(websocket: WebSocket) -> None:
        await websocket.accept()
        handler = LiveInterviewHandler(
            websocket.send_json,
            target_duration_seconds=duration,
            rng=rng,
            timer_options=timer_options,
        )
        app.state.handlers[handler.session_id] = handler
        logger.info(f"New WebSocket connection: {handler.session_id}")
        try:
            while True:
                raw = await websocket.receive_text()
                await handler.handle_raw(raw)
        except WebSocketDisconnect:
            logger.info(f"WebSocket connection closed: {handler.session_id}")
        finally:
            await handler.cleanup()
            app.state.handlers.pop(handler.session_id, None)

    return app
