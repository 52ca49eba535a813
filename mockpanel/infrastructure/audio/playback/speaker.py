"""
Speaker output through PyAudio.

Blocking writes happen on a dedicated writer thread so the event loop never
stalls on the sound card. Each scheduled chunk can be stopped between blocks,
which is what makes barge-in audible immediately.
"""
import queue
import threading
import time
import asyncio
import logging
from typing import Optional

import numpy as np

from ....config import OUTPUT_SAMPLE_RATE, SPEAKER_BLOCK_FRAMES
from ..processing.processing import encode_pcm16
from ....interview.errors import MediaDeviceError

logger = logging.getLogger("speaker")


class ScheduledPlayback:
    """Handle for one chunk handed to the writer thread."""

    def __init__(self, samples: np.ndarray, start_at: float):
        self.samples = samples
        self.start_at = start_at
        self._stopped = threading.Event()

    @property
    def stopped(self) -> bool:
        return self._stopped.is_set()

    def stop(self) -> None:
        self._stopped.set()


class PyAudioSink:
    """AudioSink backed by a PyAudio output stream."""

    def __init__(self,
                 sample_rate: int = OUTPUT_SAMPLE_RATE,
                 output_device: Optional[int] = None,
                 block_frames: int = SPEAKER_BLOCK_FRAMES,
                 volume: float = 1.0):
        self.sample_rate = sample_rate
        self.output_device = output_device
        self.block_frames = block_frames
        self.volume = max(0.0, min(1.0, volume))
        self._epoch = time.monotonic()
        self._pending: "queue.Queue[Optional[ScheduledPlayback]]" = queue.Queue()
        self._pa = None
        self._stream = None
        self._writer: Optional[threading.Thread] = None

    def open(self) -> None:
        """Open the output stream and start the writer thread."""
        if self._stream is not None:
            return
        try:
            import pyaudio
        except ImportError as e:
            raise MediaDeviceError(f"PyAudio is not installed: {e}")

        self._pa = pyaudio.PyAudio()
        try:
            self._stream = self._pa.open(
                format=pyaudio.paInt16,
                channels=1,
                rate=self.sample_rate,
                output=True,
                output_device_index=self.output_device,
                frames_per_buffer=self.block_frames,
            )
        except (IOError, OSError) as e:
            self._pa.terminate()
            self._pa = None
            raise MediaDeviceError(f"Failed to open speaker: {e}")
        self._writer = threading.Thread(target=self._write_loop, name="speaker-writer", daemon=True)
        self._writer.start()
        logger.info(f"Speaker opened at {self.sample_rate} Hz")

    def current_time(self) -> float:
        return time.monotonic() - self._epoch

    def play(self, samples: np.ndarray, start_at: float) -> ScheduledPlayback:
        playback = ScheduledPlayback(samples * self.volume, start_at)
        self._pending.put(playback)
        return playback

    async def wait_until(self, when: float) -> None:
        delay = when - self.current_time()
        if delay > 0:
            await asyncio.sleep(delay)

    def _write_loop(self) -> None:
        while True:
            playback = self._pending.get()
            if playback is None:
                return
            if playback.stopped:
                continue

            delay = playback.start_at - self.current_time()
            if delay > 0:
                time.sleep(delay)

            for offset in range(0, len(playback.samples), self.block_frames):
                stream = self._stream
                if playback.stopped or stream is None:
                    break
                block = playback.samples[offset:offset + self.block_frames]
                try:
                    stream.write(encode_pcm16(block))
                except (IOError, OSError) as e:
                    logger.warning(f"Speaker write failed: {e}")
                    break

    def close(self) -> None:
        """Release the device without waiting for queued audio."""
        self._pending.put(None)
        stream, self._stream = self._stream, None
        if self._writer is not None:
            self._writer.join(timeout=1.0)
            self._writer = None
        if stream is not None:
            try:
                stream.stop_stream()
                stream.close()
            except (IOError, OSError) as e:
                logger.warning(f"Error closing speaker: {e}")
        if self._pa is not None:
            self._pa.terminate()
            self._pa = None
