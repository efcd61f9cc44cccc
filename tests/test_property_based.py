"""Property-based tests for trackmeta.

Uses hypothesis to validate codec and adapter invariants across
generated inputs.
"""

from __future__ import annotations

import math
from dataclasses import replace
from datetime import date

from hypothesis import given, settings
from hypothesis import strategies as st
from mutagen._vorbis import VCommentDict
from mutagen.apev2 import APEv2
from mutagen.id3 import ID3
from mutagen.mp4 import MP4Tags

from trackmeta.adapters import ApeAdapter, Id3v2Adapter, Mp4Adapter, VorbisCommentAdapter
from trackmeta.beatgrid import BeatGrid, NonTerminalMarker, TerminalMarker
from trackmeta.containers import ContainerFamily
from trackmeta.model import PEAK_UNDEFINED, RATIO_UNDEFINED, Bpm, ReplayGain, TrackMetadata
from trackmeta.policy import (
    correct_bpm_scale,
    db_to_ratio,
    join_track_number,
    parse_bpm,
    split_track_number,
)

float32s = st.floats(width=32, allow_nan=False, allow_infinity=False)
positions = st.floats(min_value=0.0, max_value=3600.0, width=32)


@st.composite
def beat_grids(
    draw: st.DrawFn,
    max_beats: int = 2**32 - 1,
    bpms: st.SearchStrategy[float] = float32s,
) -> BeatGrid:
    sorted_positions = sorted(draw(st.lists(positions, min_size=1, max_size=8)))
    non_terminal = tuple(
        NonTerminalMarker(position, draw(st.integers(min_value=0, max_value=max_beats)))
        for position in sorted_positions[:-1]
    )
    terminal = TerminalMarker(sorted_positions[-1], draw(bpms))
    return BeatGrid(non_terminal, terminal, draw(st.integers(min_value=0, max_value=255)))


# Grids that expand into a bounded number of beats
playable_grids = beat_grids(
    max_beats=16, bpms=st.floats(min_value=40.0, max_value=300.0, width=32)
)


# Beatgrid properties


@given(beat_grids())
@settings(max_examples=100)
def test_beatgrid_raw_round_trip(grid: BeatGrid):
    """Property: Parsing a dumped raw grid yields the same grid."""
    data = grid.dump(ContainerFamily.MP3)
    assert len(data) == 7 + 8 * len(grid.markers)
    assert BeatGrid.parse(data, ContainerFamily.MP3) == grid


@given(beat_grids())
@settings(max_examples=100)
def test_beatgrid_base64_round_trip(grid: BeatGrid):
    """Property: Parsing a dumped base64 grid yields the same grid."""
    data = grid.dump(ContainerFamily.FLAC)
    assert all(len(line) <= 72 for line in data.split(b"\n"))
    assert BeatGrid.parse(data, ContainerFamily.FLAC) == grid


@given(st.one_of(st.binary(max_size=64), st.text(max_size=64)))
@settings(max_examples=200)
def test_beatgrid_parse_never_raises(data: bytes | str):
    """Property: Arbitrary bytes or text either parse or yield None."""
    for family in (ContainerFamily.MP3, ContainerFamily.FLAC, ContainerFamily.MP4):
        result = BeatGrid.parse(data, family)
        assert result is None or isinstance(result, BeatGrid)


@given(playable_grids, st.floats(min_value=0.0, max_value=600.0))
@settings(max_examples=50)
def test_beat_positions_sorted(grid: BeatGrid, track_length: float):
    """Property: Beat positions never decrease."""
    beats = grid.beat_positions(track_length)
    assert all(a <= b for a, b in zip(beats, beats[1:], strict=False))


# Policy properties


@given(st.floats(min_value=1e-3, max_value=1e9), st.floats(min_value=1.0, max_value=1000.0))
@settings(max_examples=100)
def test_corrected_bpm_within_range(value: float, max_bpm: float):
    """Property: A corrected BPM never exceeds the maximum."""
    corrected = correct_bpm_scale(value, max_bpm)
    assert 0 < corrected <= max_bpm
    if value <= max_bpm:
        assert corrected == value


@given(st.text(max_size=20))
@settings(max_examples=100)
def test_parse_bpm_validity(text: str):
    """Property: Valid BPM values are finite and positive."""
    value, is_valid = parse_bpm(text)
    if is_valid:
        assert math.isfinite(value) and value > 0
    else:
        assert value == 0.0


track_parts = st.from_regex(r"[1-9][0-9]{0,2}", fullmatch=True)


@given(track_parts, st.one_of(st.just(""), track_parts))
def test_track_number_split_join(number: str, total: str):
    """Property: Splitting a joined track number restores both parts."""
    assert split_track_number(join_track_number(number, total)) == (number, total)


# Adapter properties

text_values = st.text(alphabet=st.characters(categories=["L"]), max_size=20)
years = st.one_of(
    st.just(""),
    st.integers(min_value=1900, max_value=2099).map(str),
    st.dates(min_value=date(1900, 1, 1), max_value=date(2099, 12, 31)).map(date.isoformat),
)
bpms = st.one_of(st.just(Bpm()), st.floats(min_value=1.0, max_value=300.0).map(Bpm))
# Gains as stored by scanners, in hundredths of a dB; 0 dB reads back as undefined
gain_ratios = st.integers(min_value=-2000, max_value=2000).filter(bool).map(
    lambda hundredths: db_to_ratio(hundredths / 100)
)
replay_gains = st.builds(
    ReplayGain,
    ratio=st.one_of(st.just(RATIO_UNDEFINED), gain_ratios),
    peak=st.one_of(st.just(PEAK_UNDEFINED), st.floats(min_value=0.0, max_value=2.0)),
)


@st.composite
def track_metadata(draw: st.DrawFn) -> TrackMetadata:
    return TrackMetadata(
        title=draw(text_values),
        artist=draw(text_values),
        album=draw(text_values),
        album_artist=draw(text_values),
        genre=draw(text_values),
        comment=draw(text_values),
        composer=draw(text_values),
        grouping=draw(text_values),
        year=draw(years),
        track_number=draw(st.one_of(st.just(""), track_parts)),
        track_total=draw(st.one_of(st.just(""), track_parts)),
        bpm=draw(bpms),
        replay_gain=draw(replay_gains),
        key=draw(text_values),
    )


@given(track_metadata())
@settings(max_examples=50)
def test_ape_export_import(metadata: TrackMetadata):
    """Property: Importing exported APEv2 items restores the model (APEv2 has no key item)."""
    adapter = ApeAdapter()
    tags = APEv2()
    adapter.export_metadata(tags, metadata)

    reimported = TrackMetadata()
    adapter.import_metadata(tags, reimported)
    assert reimported == replace(metadata, key="")


@given(track_metadata())
@settings(max_examples=50)
def test_vorbis_export_import(metadata: TrackMetadata):
    """Property: Importing exported Vorbis comments restores the model."""
    adapter = VorbisCommentAdapter()
    tags = VCommentDict()
    adapter.export_metadata(tags, metadata)

    reimported = TrackMetadata()
    adapter.import_metadata(tags, reimported)
    assert reimported == metadata


# MP4 stores the total in the "trkn" pair, which needs a track number
numbered_track_metadata = track_metadata().filter(
    lambda metadata: metadata.track_number or not metadata.track_total
)


@given(numbered_track_metadata)
@settings(max_examples=50)
def test_mp4_export_import(metadata: TrackMetadata):
    """Property: Importing exported MP4 atoms restores the model."""
    adapter = Mp4Adapter()
    tags = MP4Tags()
    adapter.export_metadata(tags, metadata)

    reimported = TrackMetadata()
    adapter.import_metadata(tags, reimported)
    assert reimported == metadata


@given(track_metadata())
@settings(max_examples=50)
def test_id3_export_is_idempotent(metadata: TrackMetadata):
    """Property: Exporting the re-imported model does not change the tag."""
    adapter = Id3v2Adapter()
    tags = ID3()
    adapter.export_metadata(tags, metadata)

    reimported = TrackMetadata()
    adapter.import_metadata(tags, reimported)
    assert reimported.key == metadata.key
    assert reimported.year == metadata.year
    assert reimported.replay_gain == metadata.replay_gain

    adapter.export_metadata(tags, reimported)
    again = TrackMetadata()
    adapter.import_metadata(tags, again)
    assert again == reimported
