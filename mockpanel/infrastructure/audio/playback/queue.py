"""
Strictly sequential playback of a persona's speech chunks.

Chunks play in arrival order, never overlapping. A monotonic cursor on the
sink's clock decides when each chunk may start:

    start  = max(now, cursor)
    cursor = start + duration

so a burst of chunks that arrive faster than they can be decoded still lines
up back to back. The queue is the only authority on whether a persona is
currently speaking.
"""
import asyncio
import logging
from collections import deque
from typing import Callable, Deque, Optional, Protocol, Any

import numpy as np

from ....config import OUTPUT_SAMPLE_RATE
from ..processing.processing import decode_pcm16, AudioPayload

logger = logging.getLogger("playback")


class PlaybackHandle(Protocol):
    def stop(self) -> None: ...


class AudioSink(Protocol):
    """Where decoded audio goes. Owns the audio clock."""

    def current_time(self) -> float: ...

    def play(self, samples: np.ndarray, start_at: float) -> PlaybackHandle: ...

    async def wait_until(self, when: float) -> None: ...

    def close(self) -> None: ...


class PlaybackCursor:
    """Next allowed start time on the audio clock."""

    def __init__(self, now: float = 0.0):
        self.position = now

    def schedule(self, now: float, duration: float) -> float:
        start = max(now, self.position)
        self.position = start + duration
        return start

    def reset(self, now: float) -> None:
        self.position = now


class AudioPlaybackQueue:
    """
    FIFO of audio chunks for the active persona session.

    ``enqueue`` and ``interrupt`` are synchronous so they can be called straight
    from provider callbacks. ``on_drained`` fires only when the queue empties
    naturally, never after an interruption.
    """

    def __init__(self,
                 sink: AudioSink,
                 sample_rate: int = OUTPUT_SAMPLE_RATE,
                 decoder: Callable[[AudioPayload], np.ndarray] = decode_pcm16,
                 on_drained: Optional[Callable[[], Any]] = None,
                 prefetch: bool = True):
        self.sink = sink
        self.sample_rate = sample_rate
        self.decoder = decoder
        self.on_drained = on_drained
        self.prefetch = prefetch
        self.cursor = PlaybackCursor(sink.current_time())
        self._chunks: Deque[AudioPayload] = deque()
        self._prefetched: Optional[asyncio.Future] = None
        self._current: Optional[PlaybackHandle] = None
        self._pump_task: Optional[asyncio.Task] = None
        self._generation = 0
        self._speaking = False
        self._drained_event = asyncio.Event()
        self._drained_event.set()

    @property
    def is_speaking(self) -> bool:
        return self._speaking

    @property
    def pending(self) -> int:
        return len(self._chunks) + (1 if self._prefetched is not None else 0)

    @property
    def is_idle(self) -> bool:
        return not self._speaking and self.pending == 0 and self._pump_task is None

    def enqueue(self, chunk: AudioPayload) -> None:
        """Add a chunk and make sure the pump is running."""
        self._chunks.append(chunk)
        self._drained_event.clear()
        if self._pump_task is None or self._pump_task.done():
            self._pump_task = asyncio.get_running_loop().create_task(self._pump(self._generation))

    async def wait_drained(self) -> None:
        await self._drained_event.wait()

    def interrupt(self) -> int:
        """
        Barge-in: stop the current chunk, drop everything queued, reset the
        cursor to now and report idle. Idempotent.

        Returns:
            Number of chunks discarded (not counting the one cut off)
        """
        self._generation += 1
        dropped = len(self._chunks)
        self._chunks.clear()

        if self._prefetched is not None:
            self._prefetched.cancel()
            self._prefetched = None
            dropped += 1

        if self._current is not None:
            try:
                self._current.stop()
            except Exception as e:
                logger.warning(f"Error stopping playback: {e}")
            self._current = None

        if self._pump_task is not None and not self._pump_task.done():
            self._pump_task.cancel()
        self._pump_task = None

        self.cursor.reset(self.sink.current_time())
        was_speaking = self._speaking
        self._speaking = False
        self._drained_event.set()
        if was_speaking or dropped:
            logger.info(f"Playback interrupted, dropped {dropped} queued chunk(s)")
        return dropped

    def close(self) -> None:
        self.interrupt()
        self.sink.close()

    def _decode(self, chunk: AudioPayload) -> Optional[np.ndarray]:
        try:
            return self.decoder(chunk)
        except (ValueError, TypeError) as e:
            logger.warning(f"Skipping undecodable audio chunk: {e}")
            return None

    def _start_prefetch(self) -> None:
        if not self.prefetch or self._prefetched is not None or not self._chunks:
            return
        chunk = self._chunks.popleft()
        loop = asyncio.get_running_loop()
        self._prefetched = loop.run_in_executor(None, self._decode, chunk)

    async def _next_samples(self) -> Optional[np.ndarray]:
        if self._prefetched is not None:
            future, self._prefetched = self._prefetched, None
            return await future
        return self._decode(self._chunks.popleft())

    async def _pump(self, generation: int) -> None:
        while generation == self._generation and (self._chunks or self._prefetched is not None):
            samples = await self._next_samples()
            if generation != self._generation:
                return
            if samples is None or len(samples) == 0:
                continue

            # Decode the next chunk while this one plays
            self._start_prefetch()

            duration = len(samples) / float(self.sample_rate)
            start = self.cursor.schedule(self.sink.current_time(), duration)
            self._speaking = True
            self._current = self.sink.play(samples, start)
            await self.sink.wait_until(start + duration)
            if generation != self._generation:
                return
            self._current = None

        if generation != self._generation:
            return
        self._speaking = False
        self._pump_task = None
        self._drained_event.set()
        logger.debug("Playback queue drained")
        if self.on_drained is not None:
            try:
                self.on_drained()
            except Exception as e:
                logger.error(f"Error in playback drained handler: {e}")
