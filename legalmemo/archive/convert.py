"""Transcode archived recordings to MP3 with ffmpeg.

The archived audio is piped to ffmpeg on stdin and the MP3 is read back
from stdout, so no temporary files are written.
"""

import asyncio
import shutil

import structlog

from legalmemo.config import settings

logger = structlog.get_logger()


class AudioConversionError(Exception):
    """Raised when audio cannot be transcoded."""

    pass


class Mp3Converter:
    """Converts WAV (or any ffmpeg-readable) audio to mono MP3."""

    def __init__(
        self,
        ffmpeg_path: str | None = None,
        bitrate: str | None = None,
        timeout_seconds: float | None = None,
    ):
        self._ffmpeg_path = ffmpeg_path or settings.ffmpeg_path
        self._bitrate = bitrate or settings.mp3_bitrate
        self._timeout = timeout_seconds or settings.conversion_timeout_seconds

    def build_command(self, ffmpeg: str) -> list[str]:
        return [
            ffmpeg,
            "-hide_banner",
            "-loglevel", "error",
            "-i", "pipe:0",
            "-vn",
            "-ac", "1",
            "-b:a", self._bitrate,
            "-f", "mp3",
            "pipe:1",
        ]

    async def to_mp3(self, audio: bytes) -> bytes:
        """Transcode audio bytes to MP3.

        Args:
            audio: Source audio, e.g. an archived WAV

        Returns:
            MP3 bytes

        Raises:
            AudioConversionError: If ffmpeg is missing, fails, times out or
                produces no output
        """
        if not audio:
            raise AudioConversionError("No audio to convert")

        ffmpeg = shutil.which(self._ffmpeg_path)
        if ffmpeg is None:
            raise AudioConversionError(
                f"ffmpeg is required for MP3 conversion but was not found: {self._ffmpeg_path}"
            )

        try:
            process = await asyncio.create_subprocess_exec(
                *self.build_command(ffmpeg),
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise AudioConversionError(f"Could not start ffmpeg: {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(audio), timeout=self._timeout
            )
        except TimeoutError as e:
            process.kill()
            await process.wait()
            raise AudioConversionError(
                f"ffmpeg conversion timed out after {self._timeout:g}s"
            ) from e

        if process.returncode != 0:
            detail = stderr.decode(errors="replace").strip()[:500]
            raise AudioConversionError(f"ffmpeg conversion failed: {detail}")
        if not stdout:
            raise AudioConversionError("ffmpeg produced no output")

        logger.info("audio converted to mp3", input_bytes=len(audio), output_bytes=len(stdout))
        return stdout
