"""Tests for the MP4 atom adapter."""

from __future__ import annotations

import logging

import pytest
from mutagen.mp4 import AtomDataType, MP4Cover, MP4FreeForm, MP4Tags

from trackmeta.adapters.mp4 import Mp4Adapter
from trackmeta.model import Bpm, ReplayGain, TrackMetadata
from trackmeta.policy import db_to_ratio


def free_form(text: str) -> list[MP4FreeForm]:
    return [MP4FreeForm(text.encode("utf-8"), dataformat=AtomDataType.UTF8)]


@pytest.fixture
def adapter(test_logger) -> Mp4Adapter:
    return Mp4Adapter(logger=test_logger)


# =============================================================================
# Import
# =============================================================================


def test_import_fields(adapter):
    tags = MP4Tags()
    tags["\xa9nam"] = ["Song"]
    tags["\xa9ART"] = ["Artist"]
    tags["aART"] = ["Various"]
    tags["\xa9day"] = ["2003-09-12"]
    tags["trkn"] = [(6, 14)]
    tags[Mp4Adapter.REPLAYGAIN_TRACK_GAIN_ATOM] = free_form("-4.00 dB")
    tags[Mp4Adapter.REPLAYGAIN_TRACK_PEAK_ATOM] = free_form("0.800000")
    tags["----:com.apple.iTunes:KEY"] = free_form("F#m")

    metadata = TrackMetadata()
    assert adapter.import_metadata(tags, metadata)

    assert metadata.title == "Song"
    assert metadata.artist == "Artist"
    assert metadata.album_artist == "Various"
    assert metadata.year == "2003-09-12"
    assert metadata.track_number == "6"
    assert metadata.track_total == "14"
    assert metadata.replay_gain.ratio == pytest.approx(db_to_ratio(-4.0))
    assert metadata.replay_gain.peak == 0.8
    assert metadata.key == "F#m"


def test_import_track_without_total(adapter):
    tags = MP4Tags()
    tags["trkn"] = [(3, 0)]

    metadata = TrackMetadata()
    adapter.import_metadata(tags, metadata)

    assert metadata.track_number == "3"
    assert metadata.track_total == ""


def test_import_free_form_bpm_wins_over_tempo(adapter):
    tags = MP4Tags()
    tags["tmpo"] = [128]
    tags[Mp4Adapter.BPM_ATOM] = free_form("127.8")

    metadata = TrackMetadata()
    adapter.import_metadata(tags, metadata)

    assert metadata.bpm.value == 127.8


def test_import_tempo_fallback(adapter):
    tags = MP4Tags()
    tags["tmpo"] = [96]

    metadata = TrackMetadata()
    adapter.import_metadata(tags, metadata)

    assert metadata.bpm.value == 96.0


# =============================================================================
# Export
# =============================================================================


def test_export_fields(adapter):
    tags = MP4Tags()
    metadata = TrackMetadata(
        title="Song",
        year="2003",
        track_number="6",
        track_total="14",
        composer="Composer",
        bpm=Bpm(127.8),
        replay_gain=ReplayGain(ratio=db_to_ratio(-4.0), peak=0.8),
        key="F#m",
    )

    assert adapter.export_metadata(tags, metadata)

    assert tags["\xa9nam"] == ["Song"]
    assert tags["\xa9day"] == ["2003"]
    assert tags["\xa9wrt"] == ["Composer"]
    assert tags["trkn"] == [(6, 14)]
    assert tags["tmpo"] == [128]
    assert bytes(tags[Mp4Adapter.BPM_ATOM][0]) == b"127.8"
    assert bytes(tags[Mp4Adapter.REPLAYGAIN_TRACK_GAIN_ATOM][0]) == b"-4 dB"
    assert bytes(tags["----:com.apple.iTunes:initialkey"][0]) == b"F#m"
    assert "----:com.apple.iTunes:KEY" not in tags


def test_export_updates_existing_key_alternative(adapter):
    tags = MP4Tags()
    tags["----:com.apple.iTunes:KEY"] = free_form("Am")

    adapter.export_metadata(tags, TrackMetadata(key="Cm"))

    assert bytes(tags["----:com.apple.iTunes:KEY"][0]) == b"Cm"


def test_export_empty_model_purges_atoms(adapter):
    tags = MP4Tags()
    tags["\xa9nam"] = ["Song"]
    tags["trkn"] = [(1, 2)]
    tags["tmpo"] = [120]
    tags[Mp4Adapter.BPM_ATOM] = free_form("120")

    adapter.export_metadata(tags, TrackMetadata())

    assert "\xa9nam" not in tags
    assert "trkn" not in tags
    assert "tmpo" not in tags
    assert Mp4Adapter.BPM_ATOM not in tags


def test_export_invalid_track_numbers_keeps_atom(adapter, caplog):
    tags = MP4Tags()
    tags["trkn"] = [(1, 2)]

    with caplog.at_level(logging.WARNING, logger="trackmeta.tests"):
        adapter.export_metadata(tags, TrackMetadata(track_number="B2"))

    assert tags["trkn"] == [(1, 2)]
    assert "Invalid track numbers: B2/" in caplog.text


# =============================================================================
# Cover art
# =============================================================================


def test_import_cover_art_first_decodable(adapter, caplog, png_bytes, broken_image_bytes):
    tags = MP4Tags()
    tags["covr"] = [
        MP4Cover(broken_image_bytes, imageformat=MP4Cover.FORMAT_PNG),
        MP4Cover(png_bytes, imageformat=MP4Cover.FORMAT_PNG),
    ]

    with caplog.at_level(logging.WARNING, logger="trackmeta.tests"):
        cover_art = adapter.import_cover_art(tags)

    assert cover_art is not None
    assert cover_art.data == png_bytes
    assert cover_art.mime_type == "image/png"
    assert "Failed to decode covr picture" in caplog.text


def test_import_cover_art_without_covers(adapter):
    assert adapter.import_cover_art(MP4Tags()) is None
