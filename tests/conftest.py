"""Pytest configuration and shared fixtures for trackmeta tests."""

from __future__ import annotations

import io
import logging
import struct
from collections.abc import Callable
from pathlib import Path

import pytest
from PIL import Image

# =============================================================================
# Images
# =============================================================================


def make_image_bytes(
    image_format: str = "PNG", color: str = "red", size: tuple[int, int] = (8, 8)
) -> bytes:
    """Encode a solid color image."""
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format=image_format)
    return buffer.getvalue()


@pytest.fixture
def png_bytes() -> bytes:
    """A small decodable PNG image."""
    return make_image_bytes("PNG", "red")


@pytest.fixture
def jpeg_bytes() -> bytes:
    """A small decodable JPEG image."""
    return make_image_bytes("JPEG", "blue", (16, 8))


@pytest.fixture
def broken_image_bytes() -> bytes:
    """Bytes that look like a PNG but do not decode."""
    return b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


@pytest.fixture
def image_factory() -> Callable[..., bytes]:
    return make_image_bytes


# =============================================================================
# Audio files
# =============================================================================


def create_minimal_mp3(path: Path) -> None:
    """Create a minimal MP3 file for testing."""
    # ID3v2.4 header with 0 size
    id3_header = b"ID3\x04\x00\x00\x00\x00\x00\x00"
    # MPEG-1 Layer III frame header (128 kbit/s, 44.1 kHz) plus frame body
    mpeg_frame = b"\xff\xfb\x90\x00" + b"\x00" * 417

    with open(path, "wb") as f:
        f.write(id3_header)
        f.write(mpeg_frame)


def create_wav(path: Path, info: dict[str, str] | None = None) -> None:
    """Create a short PCM WAV file with an optional LIST/INFO chunk."""
    channels, sample_rate, bits = 2, 44100, 16
    block_align = channels * bits // 8
    fmt = struct.pack(
        "<HHIIHH", 1, channels, sample_rate, sample_rate * block_align, block_align, bits
    )
    data = b"\x00" * block_align * 441  # 10 ms of silence

    chunks = [
        b"fmt " + struct.pack("<I", len(fmt)) + fmt,
        b"data" + struct.pack("<I", len(data)) + data,
    ]
    if info:
        body = b"INFO"
        for chunk_id, text in info.items():
            value = text.encode("latin-1") + b"\x00"
            if len(value) % 2:
                value += b"\x00"
            body += chunk_id.encode("ascii") + struct.pack("<I", len(value)) + value
        chunks.append(b"LIST" + struct.pack("<I", len(body)) + body)

    payload = b"WAVE" + b"".join(chunks)
    path.write_bytes(b"RIFF" + struct.pack("<I", len(payload)) + payload)


@pytest.fixture
def minimal_mp3(tmp_path: Path) -> Path:
    path = tmp_path / "track.mp3"
    create_minimal_mp3(path)
    return path


@pytest.fixture
def wav_factory(tmp_path: Path) -> Callable[..., Path]:
    def factory(name: str = "track.wav", info: dict[str, str] | None = None) -> Path:
        path = tmp_path / name
        create_wav(path, info)
        return path

    return factory


# =============================================================================
# Logging
# =============================================================================


@pytest.fixture
def test_logger() -> logging.Logger:
    """Logger injected into adapters so that caplog can filter on it."""
    return logging.getLogger("trackmeta.tests")
