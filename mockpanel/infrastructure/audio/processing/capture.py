"""
Continuous microphone capture for the live session.

Capture runs on PyAudio's callback thread and hands each buffer to the event
loop. It never waits on the session state machine: whatever session is active
when the buffer arrives gets it.
"""
import asyncio
import logging
from typing import Callable, Optional

import numpy as np

from ....config import INPUT_SAMPLE_RATE, CAPTURE_FRAMES_PER_BUFFER
from ....interview.errors import MediaDeviceError
from .processing import stereo_to_mono, encode_pcm16

logger = logging.getLogger("audio_capture")

ChunkHandler = Callable[[bytes], None]


def find_input_device(pa) -> Optional[int]:
    """Index of the default input device, or the first device that can record."""
    try:
        return int(pa.get_default_input_device_info()["index"])
    except (IOError, OSError) as e:
        logger.warning(f"No default input device: {e}")

    for i in range(pa.get_device_count()):
        try:
            info = pa.get_device_info_by_index(i)
        except (IOError, OSError):
            continue
        if int(info.get("maxInputChannels", 0)) > 0:
            logger.info(f"Using input device {i}: {info.get('name')}")
            return i
    return None


class MediaCapture:
    """Streams 16 kHz mono PCM16 from the microphone to a handler on the event loop."""

    def __init__(self,
                 on_chunk: ChunkHandler,
                 input_device: Optional[int] = None,
                 num_channels: int = 1,
                 sample_rate: int = INPUT_SAMPLE_RATE,
                 frames_per_buffer: int = CAPTURE_FRAMES_PER_BUFFER):
        self.on_chunk = on_chunk
        self.input_device = input_device
        self.num_channels = num_channels
        self.sample_rate = sample_rate
        self.frames_per_buffer = frames_per_buffer
        self.muted = False
        self._pa = None
        self._stream = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def is_running(self) -> bool:
        return self._stream is not None

    def start(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        """
        Open the microphone.

        Raises:
            MediaDeviceError: no usable input device, or the device refused to open
        """
        if self._stream is not None:
            return
        self._loop = loop or asyncio.get_running_loop()

        try:
            import pyaudio
        except ImportError as e:
            raise MediaDeviceError(f"PyAudio is not installed: {e}")

        self._pa = pyaudio.PyAudio()
        try:
            device = self.input_device if self.input_device is not None else find_input_device(self._pa)
            if device is None:
                raise MediaDeviceError("No microphone found")

            logger.info(f"Opening microphone: device {device}, {self.num_channels} channel(s) "
                        f"at {self.sample_rate} Hz, {self.frames_per_buffer} frames per buffer")
            self._stream = self._pa.open(
                format=pyaudio.paFloat32,
                channels=self.num_channels,
                rate=self.sample_rate,
                input=True,
                input_device_index=device,
                frames_per_buffer=self.frames_per_buffer,
                stream_callback=self._callback,
            )
            self._stream.start_stream()
        except MediaDeviceError:
            self._release()
            raise
        except (IOError, OSError, ValueError) as e:
            self._release()
            raise MediaDeviceError(f"Failed to open microphone: {e}")

    def _callback(self, in_data, frame_count, time_info, status):
        import pyaudio

        if not self.muted and self._loop is not None:
            samples = np.frombuffer(in_data, dtype=np.float32)
            if self.num_channels > 1:
                samples = stereo_to_mono(samples.reshape(-1, self.num_channels))
            chunk = encode_pcm16(samples)
            try:
                self._loop.call_soon_threadsafe(self.on_chunk, chunk)
            except RuntimeError:
                # Loop already closed during shutdown
                return (None, pyaudio.paComplete)
        return (None, pyaudio.paContinue)

    def toggle_mute(self) -> bool:
        self.muted = not self.muted
        logger.info(f"Microphone {'muted' if self.muted else 'unmuted'}")
        return self.muted

    def stop(self) -> None:
        """Stop capture immediately. Safe to call more than once."""
        if self._stream is not None:
            logger.info("Stopping microphone")
        self._release()

    def _release(self) -> None:
        stream, self._stream = self._stream, None
        pa, self._pa = self._pa, None
        if stream is not None:
            try:
                stream.stop_stream()
                stream.close()
            except (IOError, OSError) as e:
                logger.warning(f"Error closing microphone stream: {e}")
        if pa is not None:
            pa.terminate()
