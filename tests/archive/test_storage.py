"""Tests for the local audio object store."""

import pytest

from legalmemo.archive.storage import AudioStorage, StorageError, mp3_key, recording_key


class TestRecordingKey:
    def test_namespaced_by_user_and_meeting(self):
        assert recording_key("user-1", "m-1") == "user-1/m-1/recording.wav"

    def test_mp3_key_sits_beside_recording(self):
        assert mp3_key("user-1/m-1/recording.wav") == "user-1/m-1/recording.mp3"
        assert mp3_key("user-1/m-1/recording") == "user-1/m-1/recording.mp3"


class TestAudioStorage:
    """Tests for AudioStorage."""

    async def test_upload_then_download(self, tmp_path):
        storage = AudioStorage(tmp_path)
        key = recording_key("user-1", "m-1")

        assert await storage.upload(key, b"RIFFdata") == key
        assert await storage.download(key) == b"RIFFdata"
        assert await storage.exists(key) is True

    async def test_upload_overwrites(self, tmp_path):
        storage = AudioStorage(tmp_path)
        await storage.upload("u/m/recording.wav", b"first")
        await storage.upload("u/m/recording.wav", b"second")

        assert await storage.download("u/m/recording.wav") == b"second"
        assert not (tmp_path / "u" / "m" / "recording.wav.part").exists()

    async def test_download_missing_raises(self, tmp_path):
        storage = AudioStorage(tmp_path)
        with pytest.raises(StorageError, match="not found"):
            await storage.download("u/m/recording.wav")

    async def test_key_outside_root_rejected(self, tmp_path):
        storage = AudioStorage(tmp_path / "root")
        with pytest.raises(StorageError):
            storage.path_for("../escape.wav")

    async def test_delete_meeting(self, tmp_path):
        storage = AudioStorage(tmp_path)
        await storage.upload(recording_key("u", "m"), b"data")

        await storage.delete_meeting("u", "m")

        assert await storage.exists(recording_key("u", "m")) is False

    async def test_delete_missing_meeting_is_noop(self, tmp_path):
        storage = AudioStorage(tmp_path)
        await storage.delete_meeting("u", "missing")
