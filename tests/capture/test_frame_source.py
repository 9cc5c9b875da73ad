"""Tests for the microphone frame source with sounddevice replaced."""

import asyncio

import numpy as np
import pytest

from legalmemo.capture import frame_source
from legalmemo.capture.frame_source import (
    AudioCaptureError,
    MicrophoneFrameSource,
    MicrophonePermissionError,
)


class FakeInputStream:
    """Records its settings and lets the test drive the callback."""

    instances: list["FakeInputStream"] = []

    def __init__(self, samplerate, blocksize, channels, dtype, device, callback):
        self.samplerate = samplerate
        self.blocksize = blocksize
        self.callback = callback
        self.started = False
        self.closed = False
        FakeInputStream.instances.append(self)

    def start(self):
        self.started = True

    def stop(self):
        self.started = False

    def close(self):
        self.closed = True


class FakeSoundDevice:
    InputStream = FakeInputStream

    def __init__(self, has_input: bool = True):
        self.has_input = has_input

    def query_devices(self, device=None, kind=None):
        if not self.has_input:
            raise ValueError("No input device matching")
        return {"name": "Test Mic"}

    def check_input_settings(self, **kwargs):
        return None


@pytest.fixture(autouse=True)
def reset_streams():
    FakeInputStream.instances = []


class TestPermission:
    """Tests for ensure_permission."""

    async def test_missing_backend(self, monkeypatch):
        monkeypatch.setattr(frame_source, "sd", None)
        with pytest.raises(MicrophonePermissionError):
            await MicrophoneFrameSource().ensure_permission()

    async def test_no_input_device(self, monkeypatch):
        monkeypatch.setattr(frame_source, "sd", FakeSoundDevice(has_input=False))
        with pytest.raises(MicrophonePermissionError, match="Microphone not available"):
            await MicrophoneFrameSource().ensure_permission()

    async def test_device_available(self, monkeypatch):
        monkeypatch.setattr(frame_source, "sd", FakeSoundDevice())
        await MicrophoneFrameSource().ensure_permission()


class TestCapture:
    """Tests for frame delivery."""

    async def test_frame_size_is_100ms(self):
        source = MicrophoneFrameSource(sample_rate=16000, frame_ms=100)
        assert source.frame_samples == 1600

    async def test_frames_delivered_on_loop(self, monkeypatch):
        monkeypatch.setattr(frame_source, "sd", FakeSoundDevice())
        received: list[bytes] = []
        source = MicrophoneFrameSource(sample_rate=16000, frame_ms=100)

        source.start(received.append)
        stream = FakeInputStream.instances[0]
        block = np.full((1600, 1), 1000, dtype=np.int16)
        stream.callback(block, 1600, None, None)
        await asyncio.sleep(0)

        assert stream.blocksize == 1600
        assert len(received) == 1
        assert len(received[0]) == 3200
        assert source.level > 0

        source.stop()
        assert stream.closed is True

    async def test_start_without_backend(self, monkeypatch):
        monkeypatch.setattr(frame_source, "sd", None)
        with pytest.raises(AudioCaptureError):
            MicrophoneFrameSource().start(lambda frame: None)

    async def test_stop_is_idempotent(self, monkeypatch):
        monkeypatch.setattr(frame_source, "sd", FakeSoundDevice())
        source = MicrophoneFrameSource()
        source.start(lambda frame: None)
        source.stop()
        source.stop()
