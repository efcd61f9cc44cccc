"""Tests for container families and adapter lookup."""

from __future__ import annotations

from pathlib import Path

import pytest

from trackmeta.adapters import ADAPTER_REGISTRY, Id3v2Adapter, get_adapter
from trackmeta.containers import BeatgridEncoding, ContainerFamily, TagFormat


@pytest.mark.parametrize(
    ("file_name", "family"),
    [
        ("track.mp3", ContainerFamily.MP3),
        ("TRACK.MP3", ContainerFamily.MP3),
        ("track.m4a", ContainerFamily.MP4),
        ("track.flac", ContainerFamily.FLAC),
        ("track.ogg", ContainerFamily.OGG),
        ("track.opus", ContainerFamily.OPUS),
        ("track.wav", ContainerFamily.WAV),
        ("track.wv", ContainerFamily.WV),
        ("track.aif", ContainerFamily.AIFF),
        ("track.aiff", ContainerFamily.AIFF),
        ("track.txt", ContainerFamily.UNKNOWN),
        ("track", ContainerFamily.UNKNOWN),
    ],
)
def test_from_file_name(file_name, family):
    assert ContainerFamily.from_file_name(file_name) == family


def test_from_file_name_accepts_paths():
    assert ContainerFamily.from_file_name(Path("/music/a.b/track.flac")) == ContainerFamily.FLAC


def test_tag_formats_import_order():
    # The container's native format is imported last and wins
    assert ContainerFamily.MP3.tag_formats[-1] == TagFormat.ID3V2
    assert ContainerFamily.FLAC.tag_formats[-1] == TagFormat.VORBIS_COMMENT
    assert ContainerFamily.WAV.tag_formats == (TagFormat.RIFF_INFO, TagFormat.ID3V2)
    assert ContainerFamily.UNKNOWN.tag_formats == ()


def test_beatgrid_encoding():
    assert ContainerFamily.MP3.beatgrid_encoding == BeatgridEncoding.RAW
    assert ContainerFamily.AIFF.beatgrid_encoding == BeatgridEncoding.RAW
    assert ContainerFamily.MP4.beatgrid_encoding == BeatgridEncoding.BASE64
    assert ContainerFamily.FLAC.beatgrid_encoding == BeatgridEncoding.BASE64
    assert ContainerFamily.OGG.beatgrid_encoding is None
    assert ContainerFamily.WAV.beatgrid_encoding is None


def test_every_tag_format_has_an_adapter():
    assert set(ADAPTER_REGISTRY) == set(TagFormat)


def test_get_adapter():
    adapter = get_adapter("id3v2", max_bpm=180.0)

    assert isinstance(adapter, Id3v2Adapter)
    assert adapter.max_bpm == 180.0


def test_get_adapter_unknown_format():
    with pytest.raises(ValueError):
        get_adapter("lyrics3")
