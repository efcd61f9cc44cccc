"""APEv2 adapter (WavPack, and APE tags found in MP3/FLAC files)."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from mutagen.apev2 import BINARY, TEXT, APEv2
from mutagen.id3 import PictureType

from trackmeta.adapters.base import TagAdapter
from trackmeta.containers import TagFormat
from trackmeta.cover_art import PictureCandidate
from trackmeta.model import TrackMetadata
from trackmeta.policy import (
    first_non_empty,
    format_bpm,
    format_replay_gain_peak,
    format_replay_gain_ratio,
    join_track_number,
    split_track_number,
)

COVER_ART_FRONT = "COVER ART (FRONT)"


class ApeAdapter(TagAdapter):
    """Adapter for mutagen APEv2 tags; item keys are case-insensitive."""

    TAG_FORMAT = TagFormat.APE

    COMMON_FIELDS = {
        "title": "Title",
        "artist": "Artist",
        "album": "Album",
        "genre": "Genre",
        "comment": "Comment",
        "year": "Year",
        "track_number": "Track",
    }

    SPECIFIC_ITEMS = {
        "album_artist": "Album Artist",
        "composer": "Composer",
        "grouping": "Grouping",
    }

    def _get_text(self, tags: APEv2, key: str) -> str:
        value = tags.get(key)
        if value is None or value.kind != TEXT:
            return ""
        # Multiple values are separated by NUL characters
        return first_non_empty(value)

    def _set_text(self, tags: APEv2, key: str, value: str) -> None:
        if value:
            tags[key] = value
        elif key in tags:
            del tags[key]

    def _import_specific(self, tags: APEv2, metadata: TrackMetadata) -> None:
        for field_name, key in self.SPECIFIC_ITEMS.items():
            if value := self._get_text(tags, key):
                setattr(metadata, field_name, value)

        # "Year" holds an ISO 8601 date, not just the calendar year
        if year := self._get_text(tags, "Year"):
            metadata.year = year
        if track := self._get_text(tags, "Track"):
            metadata.track_number, metadata.track_total = split_track_number(track)

        if bpm := self._get_text(tags, "BPM"):
            self._apply_bpm(metadata, bpm)
        if gain := self._get_text(tags, "REPLAYGAIN_TRACK_GAIN"):
            self._apply_track_gain(metadata, gain)
        if peak := self._get_text(tags, "REPLAYGAIN_TRACK_PEAK"):
            self._apply_track_peak(metadata, peak)

    def _export(self, tags: APEv2, metadata: TrackMetadata) -> bool:
        self._export_common(tags, metadata)

        self._set_text(
            tags, "Track", join_track_number(metadata.track_number, metadata.track_total)
        )
        self._set_text(tags, "Year", metadata.year)
        for field_name, key in self.SPECIFIC_ITEMS.items():
            self._set_text(tags, key, getattr(metadata, field_name))

        self._set_text(tags, "BPM", format_bpm(metadata.bpm))
        self._set_text(
            tags, "REPLAYGAIN_TRACK_GAIN", format_replay_gain_ratio(metadata.replay_gain)
        )
        self._set_text(
            tags, "REPLAYGAIN_TRACK_PEAK", format_replay_gain_peak(metadata.replay_gain)
        )
        return True

    def _picture_candidates(
        self, tags: APEv2 | None, pictures: Iterable[Any] | None
    ) -> Iterable[PictureCandidate]:
        if tags is None:
            return
        value = tags.get(COVER_ART_FRONT)
        if value is None or value.kind != BINARY:
            return
        # A file name terminated by NUL precedes the image data
        data = value.value
        separator = data.find(b"\x00")
        if separator < 0:
            self.log.warning("Missing file name terminator in APE cover art item")
            return
        yield PictureCandidate(
            data=data[separator + 1 :],
            picture_type=PictureType.COVER_FRONT,
            source=COVER_ART_FRONT,
        )
