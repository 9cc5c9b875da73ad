"""Tests for WAV reassembly of captured frames."""

import base64
import wave
from io import BytesIO

import pytest

from legalmemo.archive.wav import (
    WAV_HEADER_SIZE,
    ArchiveError,
    ChunkArchiver,
    assemble,
    build_wav_header,
    decode_chunk,
    read_wav_header,
)


class TestHeader:
    """Tests for the 44-byte header."""

    def test_header_fields(self):
        header = build_wav_header(3200)
        info = read_wav_header(header)

        assert len(header) == WAV_HEADER_SIZE
        assert header[:4] == b"RIFF"
        assert header[8:12] == b"WAVE"
        assert info.sample_rate == 16000
        assert info.channels == 1
        assert info.bits_per_sample == 16
        assert info.byte_rate == 32000
        assert info.block_align == 2
        assert info.data_length == 3200

    def test_rejects_non_wav(self):
        with pytest.raises(ArchiveError):
            read_wav_header(b"ID3" + b"\x00" * 60)

    def test_rejects_short_input(self):
        with pytest.raises(ArchiveError):
            read_wav_header(b"RIFF")


class TestDecodeChunk:
    """Tests for decoding buffered frames."""

    def test_bytes_pass_through(self):
        assert decode_chunk(b"\x01\x02") == b"\x01\x02"

    def test_base64_text_is_decoded(self):
        assert decode_chunk(base64.b64encode(b"\x01\x02").decode()) == b"\x01\x02"

    def test_invalid_base64_returns_none(self):
        assert decode_chunk("not*base64!") is None


class TestAssemble:
    """Tests for assembling a complete file."""

    def test_size_is_header_plus_payload(self):
        """N frames of total length L produce exactly 44 + L bytes."""
        frames = [b"\x01\x00" * 1600, b"\x02\x00" * 1600, b"\x03\x00" * 800]
        total = sum(len(f) for f in frames)

        data = assemble(frames)

        assert len(data) == WAV_HEADER_SIZE + total
        assert read_wav_header(data).data_length == total
        assert data[WAV_HEADER_SIZE:] == b"".join(frames)

    def test_mixed_base64_and_bytes(self):
        frames = [base64.b64encode(b"\x01\x00" * 4).decode(), b"\x02\x00" * 4]
        data = assemble(frames)
        assert data[WAV_HEADER_SIZE:] == b"\x01\x00" * 4 + b"\x02\x00" * 4

    def test_undecodable_chunks_are_skipped(self):
        data = assemble(["@@@", b"\x01\x00" * 4])
        assert read_wav_header(data).data_length == 8

    def test_no_valid_frames_raises(self):
        """Zero decodable frames fails loudly."""
        with pytest.raises(ArchiveError, match="No valid audio data"):
            assemble(["@@@", b""])

    def test_empty_list_raises(self):
        with pytest.raises(ArchiveError):
            assemble([])

    def test_readable_by_wave_module(self):
        """The standard library wave reader accepts the output."""
        data = assemble([b"\x00\x00" * 16000])
        with wave.open(BytesIO(data)) as reader:
            assert reader.getframerate() == 16000
            assert reader.getnchannels() == 1
            assert reader.getsampwidth() == 2
            assert reader.getnframes() == 16000


class TestChunkArchiver:
    """Tests for the append-only archiver."""

    def test_append_and_assemble(self):
        archiver = ChunkArchiver()
        archiver.append(b"\x01\x00" * 10)
        archiver.append(b"\x02\x00" * 10)

        assert archiver.chunk_count == 2
        assert len(archiver.assemble()) == WAV_HEADER_SIZE + 40

    def test_write_creates_file(self, tmp_path):
        archiver = ChunkArchiver()
        archiver.append(b"\x01\x00" * 10)
        path = tmp_path / "nested" / "recording.wav"

        written = archiver.write(path)

        assert written == WAV_HEADER_SIZE + 20
        assert path.read_bytes()[:4] == b"RIFF"

    def test_clear(self):
        archiver = ChunkArchiver()
        archiver.append(b"\x01\x00")
        archiver.clear()
        assert archiver.chunk_count == 0
