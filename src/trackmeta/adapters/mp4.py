"""MP4 atom adapter (M4A/MP4 files)."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from mutagen.id3 import PictureType
from mutagen.mp4 import AtomDataType, MP4Cover, MP4FreeForm, MP4Tags

from trackmeta.adapters.base import TagAdapter
from trackmeta.containers import TagFormat
from trackmeta.cover_art import PictureCandidate, select_first_decodable
from trackmeta.model import CoverArt, TrackMetadata
from trackmeta.policy import (
    TrackNumbersParse,
    first_non_empty,
    format_bpm,
    format_bpm_integer,
    format_replay_gain_peak,
    format_replay_gain_ratio,
    format_track_numbers,
    parse_track_numbers,
)

ITUNES_PREFIX = "----:com.apple.iTunes:"

COVER_MIME_TYPES = {
    MP4Cover.FORMAT_JPEG: "image/jpeg",
    MP4Cover.FORMAT_PNG: "image/png",
}


class Mp4Adapter(TagAdapter):
    """Adapter for mutagen MP4 tags (iTunes metadata atoms)."""

    TAG_FORMAT = TagFormat.MP4

    COMMON_FIELDS = {
        "title": "\xa9nam",
        "artist": "\xa9ART",
        "album": "\xa9alb",
        "genre": "\xa9gen",
        "comment": "\xa9cmt",
        "year": "\xa9day",
        "track_number": "trkn",
    }

    SPECIFIC_ATOMS = {
        "album_artist": "aART",
        "composer": "\xa9wrt",
        "grouping": "\xa9grp",
    }
    BPM_ATOM = ITUNES_PREFIX + "BPM"
    REPLAYGAIN_TRACK_GAIN_ATOM = ITUNES_PREFIX + "replaygain_track_gain"
    REPLAYGAIN_TRACK_PEAK_ATOM = ITUNES_PREFIX + "replaygain_track_peak"
    # Recommended atom first, then the alternative
    KEY_ATOMS = (ITUNES_PREFIX + "initialkey", ITUNES_PREFIX + "KEY")

    def _get_text(self, tags: MP4Tags, key: str) -> str:
        values = tags.get(key) or []
        if key.startswith("----:"):
            # Free-form atoms hold raw bytes
            values = [bytes(value).decode("utf-8", errors="replace") for value in values]
        return first_non_empty(value for value in values if isinstance(value, str))

    def _set_text(self, tags: MP4Tags, key: str, value: str) -> None:
        if not value:
            if key in tags:
                del tags[key]
        elif key.startswith("----:"):
            tags[key] = [MP4FreeForm(value.encode("utf-8"), dataformat=AtomDataType.UTF8)]
        else:
            tags[key] = [value]

    def _read_track_pair(self, tags: MP4Tags) -> tuple[int, int] | None:
        values = tags.get("trkn")
        if not values:
            return None
        pair = values[0]
        number = pair[0] if len(pair) > 0 else 0
        total = pair[1] if len(pair) > 1 else 0
        return number, total

    def _read_generic_track(self, tags: MP4Tags) -> str:
        pair = self._read_track_pair(tags)
        return str(pair[0]) if pair else ""

    def _import_specific(self, tags: MP4Tags, metadata: TrackMetadata) -> None:
        for field_name, key in self.SPECIFIC_ATOMS.items():
            if value := self._get_text(tags, key):
                setattr(metadata, field_name, value)

        if year := self._get_text(tags, "\xa9day"):
            metadata.year = year

        if pair := self._read_track_pair(tags):
            metadata.track_number, metadata.track_total = format_track_numbers(*pair)

        # The free-form atom keeps the fractional digits that "tmpo" cannot
        if not self._apply_bpm(metadata, self._get_text(tags, self.BPM_ATOM)):
            self._import_tempo(tags, metadata)

        if gain := self._get_text(tags, self.REPLAYGAIN_TRACK_GAIN_ATOM):
            self._apply_track_gain(metadata, gain)
        if peak := self._get_text(tags, self.REPLAYGAIN_TRACK_PEAK_ATOM):
            self._apply_track_peak(metadata, peak)

        if key := first_non_empty(self._get_text(tags, atom) for atom in self.KEY_ATOMS):
            metadata.key = key

    def _import_tempo(self, tags: MP4Tags, metadata: TrackMetadata) -> bool:
        values = tags.get("tmpo") or []
        for value in values:
            # Only integer atoms are accepted
            if isinstance(value, int) and not isinstance(value, bool):
                return self._apply_bpm(metadata, str(value))
        return False

    def _export(self, tags: MP4Tags, metadata: TrackMetadata) -> bool:
        self._export_common(tags, metadata)

        result, number, total = parse_track_numbers(metadata.track_number, metadata.track_total)
        if result == TrackNumbersParse.EMPTY:
            if "trkn" in tags:
                del tags["trkn"]
        elif result == TrackNumbersParse.VALID:
            tags["trkn"] = [(number, total)]
        else:
            self.log.warning(
                "Invalid track numbers: %s/%s", metadata.track_number, metadata.track_total
            )

        self._set_text(tags, "\xa9day", metadata.year)
        for field_name, key in self.SPECIFIC_ATOMS.items():
            self._set_text(tags, key, getattr(metadata, field_name))

        if metadata.bpm.has_value():
            tags["tmpo"] = [int(format_bpm_integer(metadata.bpm))]
        elif "tmpo" in tags:
            del tags["tmpo"]
        self._set_text(tags, self.BPM_ATOM, format_bpm(metadata.bpm))

        self._set_text(
            tags,
            self.REPLAYGAIN_TRACK_GAIN_ATOM,
            format_replay_gain_ratio(metadata.replay_gain),
        )
        self._set_text(
            tags,
            self.REPLAYGAIN_TRACK_PEAK_ATOM,
            format_replay_gain_peak(metadata.replay_gain),
        )

        recommended, *alternatives = self.KEY_ATOMS
        self._set_text(tags, recommended, metadata.key)
        for atom in alternatives:
            if atom in tags:
                self._set_text(tags, atom, metadata.key)
        return True

    def import_cover_art(
        self, tags: MP4Tags | None, pictures: Iterable[Any] | None = None
    ) -> CoverArt | None:
        """Return the first decodable `covr` image; MP4 covers carry no picture type."""
        if tags is None and pictures is None:
            return None
        return select_first_decodable(self._picture_candidates(tags, pictures), self.log)

    def _picture_candidates(
        self, tags: MP4Tags | None, pictures: Iterable[Any] | None
    ) -> Iterable[PictureCandidate]:
        covers = pictures if pictures is not None else (tags.get("covr") or [])
        for cover in covers:
            yield PictureCandidate(
                data=bytes(cover),
                picture_type=PictureType.OTHER,
                mime_type=COVER_MIME_TYPES.get(getattr(cover, "imageformat", None), ""),
                source="covr",
            )
