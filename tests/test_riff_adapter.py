"""Tests for the RIFF INFO adapter and chunk reader."""

from __future__ import annotations

import io
import struct

from trackmeta.adapters.riff import RiffInfoAdapter
from trackmeta.audiofile import read_riff_info
from trackmeta.model import TrackMetadata


def test_import_fields():
    tags = {
        "INAM": "Song",
        "IART": b"Artist\x00",
        "IPRD": "Album",
        "ICRD": "1995-07-01",
        "IPRT": "9",
        "IGNR": "Jungle",
    }

    metadata = TrackMetadata()
    assert RiffInfoAdapter().import_metadata(tags, metadata)

    assert metadata.title == "Song"
    assert metadata.artist == "Artist"
    assert metadata.album == "Album"
    assert metadata.genre == "Jungle"
    assert metadata.year == "1995"
    assert metadata.track_number == "9"


def test_import_track_fallback():
    metadata = TrackMetadata()
    RiffInfoAdapter().import_metadata({"ITRK": "4/12"}, metadata)

    assert metadata.track_number == "4"
    # The total is not part of the generic fields
    assert metadata.track_total == ""


def test_import_ignores_non_positive_track():
    metadata = TrackMetadata()
    RiffInfoAdapter().import_metadata({"IPRT": "0"}, metadata)

    assert metadata.track_number == ""


def test_export_is_not_supported():
    tags = {"INAM": "Song"}

    assert not RiffInfoAdapter().export_metadata(tags, TrackMetadata(title="Other"))
    assert tags == {"INAM": "Song"}


def test_read_riff_info(wav_factory):
    path = wav_factory(info={"INAM": "Song", "IART": "Artiste"})

    with open(path, "rb") as fileobj:
        info = read_riff_info(fileobj)

    assert info == {"INAM": "Song", "IART": "Artiste"}


def test_read_riff_info_without_list_chunk(wav_factory):
    path = wav_factory()

    with open(path, "rb") as fileobj:
        assert read_riff_info(fileobj) == {}


def test_read_riff_info_not_riff():
    assert read_riff_info(io.BytesIO(b"ID3\x04\x00")) == {}


def test_read_riff_info_truncated_list_chunk():
    # The LIST chunk declares 40 bytes but the file ends after 19
    data = (
        b"RIFF"
        + struct.pack("<I", 36)
        + b"WAVE"
        + b"LIST"
        + struct.pack("<I", 40)
        + b"INFO"
        + b"INAM"
        + struct.pack("<I", 5)
        + b"Song\x00\x00"
        + b"IA"
    )

    assert read_riff_info(io.BytesIO(data)) == {"INAM": "Song"}
