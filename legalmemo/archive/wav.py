"""Chunk archiver: reassemble captured PCM frames into a canonical WAV file.

Layout of the 44-byte header (all integers little-endian):

    "RIFF" <36 + data_length> "WAVE"
    "fmt " <16> <format 1 = PCM> <channels> <sample_rate> <byte_rate>
           <block_align> <bits_per_sample>
    "data" <data_length>
"""

import base64
import binascii
import struct
from dataclasses import dataclass
from pathlib import Path

import structlog

logger = structlog.get_logger()

WAV_HEADER_SIZE = 44
PCM_FORMAT_TAG = 1
SAMPLE_RATE = 16000
CHANNELS = 1
BITS_PER_SAMPLE = 16

_HEADER = struct.Struct("<4sI4s4sIHHIIHH4sI")


class ArchiveError(Exception):
    """Raised when no audio can be reassembled."""

    pass


@dataclass
class WavInfo:
    """Fields parsed back out of a WAV header."""

    channels: int
    sample_rate: int
    byte_rate: int
    block_align: int
    bits_per_sample: int
    data_length: int


def build_wav_header(
    data_length: int,
    sample_rate: int = SAMPLE_RATE,
    channels: int = CHANNELS,
    bits_per_sample: int = BITS_PER_SAMPLE,
) -> bytes:
    """Build the canonical 44-byte PCM WAV header for data_length bytes."""
    block_align = channels * bits_per_sample // 8
    byte_rate = sample_rate * block_align
    return _HEADER.pack(
        b"RIFF",
        36 + data_length,
        b"WAVE",
        b"fmt ",
        16,
        PCM_FORMAT_TAG,
        channels,
        sample_rate,
        byte_rate,
        block_align,
        bits_per_sample,
        b"data",
        data_length,
    )


def read_wav_header(data: bytes) -> WavInfo:
    """Parse a canonical header produced by build_wav_header.

    Raises:
        ArchiveError: If the bytes are not a canonical PCM WAV header
    """
    if len(data) < WAV_HEADER_SIZE:
        raise ArchiveError("File is shorter than a WAV header")
    (
        riff,
        _,
        wave,
        fmt,
        _,
        format_tag,
        channels,
        sample_rate,
        byte_rate,
        block_align,
        bits,
        data_tag,
        data_length,
    ) = _HEADER.unpack_from(data)
    if (riff, wave, fmt, data_tag) != (b"RIFF", b"WAVE", b"fmt ", b"data"):
        raise ArchiveError("Not a canonical RIFF/WAVE file")
    if format_tag != PCM_FORMAT_TAG:
        raise ArchiveError(f"Unsupported WAV format tag {format_tag}")
    return WavInfo(channels, sample_rate, byte_rate, block_align, bits, data_length)


def decode_chunk(chunk: bytes | str) -> bytes | None:
    """Return the raw PCM payload of one buffered frame.

    Text chunks are base64 as delivered by capture bridges; byte chunks are
    already raw. Returns None when a text chunk is not valid base64.
    """
    if isinstance(chunk, bytes | bytearray):
        return bytes(chunk)
    try:
        return base64.b64decode(chunk, validate=True)
    except (binascii.Error, ValueError):
        return None


def assemble(
    chunks: list[bytes | str],
    sample_rate: int = SAMPLE_RATE,
    channels: int = CHANNELS,
    bits_per_sample: int = BITS_PER_SAMPLE,
) -> bytes:
    """Concatenate frames behind a WAV header.

    Undecodable chunks are skipped with a warning.

    Returns:
        Complete WAV file contents, exactly 44 + total payload bytes

    Raises:
        ArchiveError: If no chunk yields any audio
    """
    payloads: list[bytes] = []
    for index, chunk in enumerate(chunks):
        payload = decode_chunk(chunk)
        if payload is None:
            logger.warning("skipping undecodable audio chunk", index=index)
            continue
        if payload:
            payloads.append(payload)

    data_length = sum(len(p) for p in payloads)
    if data_length == 0:
        raise ArchiveError("No valid audio data to save")

    header = build_wav_header(data_length, sample_rate, channels, bits_per_sample)
    return header + b"".join(payloads)


class ChunkArchiver:
    """Append-only buffer of every frame sent during a recording."""

    def __init__(self, sample_rate: int = SAMPLE_RATE):
        self.sample_rate = sample_rate
        self._chunks: list[bytes | str] = []

    def append(self, chunk: bytes | str) -> None:
        self._chunks.append(chunk)

    @property
    def chunk_count(self) -> int:
        return len(self._chunks)

    def assemble(self) -> bytes:
        return assemble(self._chunks, sample_rate=self.sample_rate)

    def write(self, path: Path) -> int:
        """Assemble the buffered frames and write them to path.

        Returns:
            Number of bytes written
        """
        data = self.assemble()
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        logger.info("audio archived", path=str(path), size=len(data), chunks=self.chunk_count)
        return len(data)

    def clear(self) -> None:
        self._chunks = []
