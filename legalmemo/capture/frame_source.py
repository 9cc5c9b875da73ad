"""Microphone frame source producing fixed-size 16-bit PCM frames.

PortAudio invokes the stream callback on its own thread; frames are handed
to the event loop with call_soon_threadsafe so every consumer runs on the
loop.
"""

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Callable

import numpy as np
import structlog

from legalmemo.config import settings

try:
    import sounddevice as sd
except Exception:  # PortAudio library missing on this host
    sd = None

logger = structlog.get_logger()

FrameCallback = Callable[[bytes], None]


class MicrophonePermissionError(Exception):
    """Raised when no usable input device is available."""

    pass


class AudioCaptureError(Exception):
    """Raised when the input stream cannot be started."""

    pass


class AudioFrameSource(ABC):
    """Produces PCM frames and delivers them to a callback on the event loop."""

    @abstractmethod
    async def ensure_permission(self) -> None:
        """Raise MicrophonePermissionError if capture is not permitted."""

    @abstractmethod
    def start(self, on_frame: FrameCallback) -> None:
        """Begin capturing; on_frame is called on the running event loop."""

    @abstractmethod
    def stop(self) -> None:
        """Stop capturing. Safe to call more than once."""


class MicrophoneFrameSource(AudioFrameSource):
    """Captures mono int16 PCM from the default (or given) input device."""

    def __init__(
        self,
        sample_rate: int | None = None,
        frame_ms: int | None = None,
        device: int | str | None = None,
    ):
        self.sample_rate = sample_rate or settings.streaming_sample_rate
        self.frame_ms = frame_ms or settings.audio_frame_ms
        self.device = device
        self.level = 0.0
        self._stream = None

    @property
    def frame_samples(self) -> int:
        return self.sample_rate * self.frame_ms // 1000

    async def ensure_permission(self) -> None:
        if sd is None:
            raise MicrophonePermissionError(
                "sounddevice is unavailable; install PortAudio to capture audio"
            )
        try:
            info = await asyncio.to_thread(sd.query_devices, self.device, "input")
            await asyncio.to_thread(
                sd.check_input_settings,
                device=self.device,
                channels=1,
                dtype="int16",
                samplerate=self.sample_rate,
            )
        except Exception as e:
            raise MicrophonePermissionError(f"Microphone not available: {e}") from e
        logger.info("input device ready", device=info.get("name"))

    def start(self, on_frame: FrameCallback) -> None:
        if sd is None:
            raise AudioCaptureError("sounddevice is unavailable")
        if self._stream is not None:
            return

        loop = asyncio.get_running_loop()

        def callback(indata, frames, time_info, status):
            if status:
                logger.warning("input stream status", status=str(status))
            samples = np.asarray(indata, dtype=np.int16).reshape(-1)
            self.level = float(
                np.sqrt(np.mean(np.square(samples.astype(np.float32)))) / 32768.0
            )
            loop.call_soon_threadsafe(on_frame, samples.tobytes())

        try:
            self._stream = sd.InputStream(
                samplerate=self.sample_rate,
                blocksize=self.frame_samples,
                channels=1,
                dtype="int16",
                device=self.device,
                callback=callback,
            )
            self._stream.start()
        except Exception as e:
            self._stream = None
            raise AudioCaptureError(f"Could not start input stream: {e}") from e
        logger.info(
            "audio capture started",
            sample_rate=self.sample_rate,
            frame_samples=self.frame_samples,
        )

    def stop(self) -> None:
        stream, self._stream = self._stream, None
        if stream is None:
            return
        try:
            stream.stop()
            stream.close()
        except Exception as e:
            logger.warning("error closing input stream", error=str(e))
        logger.info("audio capture stopped")
