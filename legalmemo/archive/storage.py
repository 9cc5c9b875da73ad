"""Audio object store on the local filesystem.

Objects are keyed ``{user_id}/{meeting_id}/recording.wav`` (and the converted
``recording.mp3`` beside it) under a single root directory, mirroring the
bucket layout used for uploads.
"""

import asyncio
import shutil
from pathlib import Path, PurePosixPath

import structlog

from legalmemo.config import settings
from legalmemo.retry import transient_retry

logger = structlog.get_logger()

RECORDING_FILENAME = "recording.wav"


class StorageError(Exception):
    """Raised when an object cannot be read or written."""

    pass


def recording_key(user_id: str, meeting_id: str) -> str:
    """Object key for a meeting's archived recording."""
    return f"{user_id}/{meeting_id}/{RECORDING_FILENAME}"


def mp3_key(raw_key: str) -> str:
    """Key of the MP3 stored next to a raw recording."""
    return PurePosixPath(raw_key).with_suffix(".mp3").as_posix()


class AudioStorage:
    """Stores archived recordings namespaced by user and meeting."""

    def __init__(self, root: Path | str | None = None):
        self._root = Path(root or settings.audio_storage_root).resolve()

    @property
    def root(self) -> Path:
        return self._root

    def path_for(self, key: str) -> Path:
        """Resolve an object key to a path inside the root.

        Raises:
            StorageError: If the key escapes the storage root
        """
        path = (self._root / key).resolve()
        if not path.is_relative_to(self._root):
            raise StorageError(f"Object key outside storage root: {key}")
        return path

    @transient_retry()
    async def upload(self, key: str, data: bytes) -> str:
        """Write (or overwrite) an object.

        Returns:
            The object key
        """
        path = self.path_for(key)

        def _write() -> None:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp = path.with_suffix(path.suffix + ".part")
            tmp.write_bytes(data)
            tmp.replace(path)

        try:
            await asyncio.to_thread(_write)
        except PermissionError as e:
            raise StorageError(f"Cannot write {key}: {e}") from e
        logger.info("audio uploaded", key=key, size=len(data))
        return key

    async def download(self, key: str) -> bytes:
        """Read an object.

        Raises:
            StorageError: If the object does not exist
        """
        path = self.path_for(key)
        try:
            return await asyncio.to_thread(path.read_bytes)
        except FileNotFoundError as e:
            raise StorageError(f"Audio file not found: {key}") from e

    async def exists(self, key: str) -> bool:
        return await asyncio.to_thread(self.path_for(key).is_file)

    async def delete_meeting(self, user_id: str, meeting_id: str) -> None:
        """Remove every object stored for a meeting."""
        directory = self.path_for(f"{user_id}/{meeting_id}")
        if await asyncio.to_thread(directory.exists):
            await asyncio.to_thread(shutil.rmtree, directory)
            logger.info("deleted meeting audio", meeting_id=meeting_id)
