"""
Interview phase tracking driven by a fixed poll.
"""
import asyncio
import inspect
import time
import logging
from enum import Enum
from typing import Callable, Optional, Any, Awaitable

from ..config import (
    PHASE_POLL_SECONDS, CLOSING_THRESHOLD_SECONDS,
    OPENING_WINDOW_SECONDS, COMPLETION_GRACE_SECONDS,
)

logger = logging.getLogger("phase_timer")


class InterviewPhase(str, Enum):
    """Interview phases. COMPLETED is terminal."""
    OPENING = "opening"
    ACTIVE = "active"
    CLOSING = "closing"
    COMPLETED = "completed"


PhaseHandler = Callable[[InterviewPhase, float], Any]
TickHandler = Callable[[InterviewPhase, float], Any]
CompleteHandler = Callable[[], Any]


async def _call(handler: Optional[Callable[..., Any]], *args: Any) -> None:
    if handler is None:
        return
    try:
        result = handler(*args)
        if inspect.isawaitable(result):
            await result
    except Exception as e:
        logger.error(f"Error in phase timer handler: {e}")


class PhaseTimer:
    """
    Tracks elapsed/remaining time and moves the interview through its phases.

    ``evaluate`` is the pure transition step; ``run`` polls it and fires the
    callbacks, then tears the session down after a grace delay once the
    interview completes.
    """

    def __init__(self,
                 target_duration_seconds: float,
                 start_time: Optional[float] = None,
                 closing_threshold_seconds: float = CLOSING_THRESHOLD_SECONDS,
                 opening_window_seconds: float = OPENING_WINDOW_SECONDS,
                 poll_interval: float = PHASE_POLL_SECONDS,
                 grace_seconds: float = COMPLETION_GRACE_SECONDS,
                 clock: Callable[[], float] = time.time,
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
                 on_phase_change: Optional[PhaseHandler] = None,
                 on_tick: Optional[TickHandler] = None,
                 on_complete: Optional[CompleteHandler] = None):
        self.target_duration_seconds = target_duration_seconds
        self.clock = clock
        self.start_time = clock() if start_time is None else start_time
        self.closing_threshold_seconds = closing_threshold_seconds
        self.opening_window_seconds = opening_window_seconds
        self.poll_interval = poll_interval
        self.grace_seconds = grace_seconds
        self.sleep = sleep
        self.on_phase_change = on_phase_change
        self.on_tick = on_tick
        self.on_complete = on_complete
        self._phase = InterviewPhase.OPENING
        self._stopped = False

    @property
    def phase(self) -> InterviewPhase:
        return self._phase

    @property
    def is_completed(self) -> bool:
        return self._phase == InterviewPhase.COMPLETED

    def elapsed_seconds(self) -> float:
        return max(0.0, self.clock() - self.start_time)

    def remaining_seconds(self) -> float:
        return max(0.0, self.target_duration_seconds - self.elapsed_seconds())

    def evaluate(self) -> Optional[InterviewPhase]:
        """
        Apply at most one transition for the current time.

        Returns:
            The new phase if it changed, otherwise None
        """
        if self._phase == InterviewPhase.COMPLETED:
            return None

        remaining = self.remaining_seconds()
        new_phase = None
        if remaining <= 0:
            new_phase = InterviewPhase.COMPLETED
        elif remaining <= self.closing_threshold_seconds:
            if self._phase != InterviewPhase.CLOSING:
                new_phase = InterviewPhase.CLOSING
        elif self._phase == InterviewPhase.OPENING and self.elapsed_seconds() >= self.opening_window_seconds:
            new_phase = InterviewPhase.ACTIVE

        if new_phase is not None:
            logger.info(f"Phase {self._phase.value} -> {new_phase.value} ({remaining:.0f}s remaining)")
            self._phase = new_phase
        return new_phase

    async def poll_once(self) -> Optional[InterviewPhase]:
        """One evaluation with notifications."""
        changed = self.evaluate()
        remaining = self.remaining_seconds()
        if changed is not None:
            await _call(self.on_phase_change, changed, remaining)
        await _call(self.on_tick, self._phase, remaining)
        return changed

    async def run(self) -> None:
        """Poll until the interview completes or the timer is stopped."""
        logger.info(f"Phase timer started: {self.target_duration_seconds:.0f}s target")
        while not self._stopped:
            await self.sleep(self.poll_interval)
            if self._stopped:
                return
            await self.poll_once()
            if self.is_completed:
                await self.sleep(self.grace_seconds)
                if not self._stopped:
                    await _call(self.on_complete)
                return

    def stop(self) -> None:
        self._stopped = True
