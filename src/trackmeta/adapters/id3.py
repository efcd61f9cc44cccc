"""ID3v2 adapter (MP3, AIFF, WAV and leftover tags in FLAC files)."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from mutagen.id3 import COMM, ID3, TXXX, Encoding, Frames

from trackmeta.adapters.base import TagAdapter
from trackmeta.containers import TagFormat
from trackmeta.cover_art import PictureCandidate
from trackmeta.model import TrackMetadata
from trackmeta.policy import (
    compose_id3_date,
    first_resolved,
    format_bpm_integer,
    format_calendar_year,
    format_replay_gain_peak,
    format_replay_gain_ratio,
    join_track_number,
    split_id3_date,
    split_track_number,
)

# Frames holding numeric strings, written as Latin-1 into ID3v2.3 tags
NUMERIC_FRAMES = frozenset({"TRCK", "TBPM", "TYER", "TDAT", "TDRC"})
NUMERIC_USER_TEXT = frozenset({"REPLAYGAIN_TRACK_GAIN", "REPLAYGAIN_TRACK_PEAK"})

# Legacy frame used by some applications instead of COMM
COMMENT_USER_TEXT = "COMMENT"


def _frame_text(frame: Any) -> str:
    text = getattr(frame, "text", None)
    if not text:
        return ""
    return str(text[0])


def find_first_frame(
    frames: Iterable[Any], description: str, prefer_not_empty: bool = True
) -> Any | None:
    """
    Find the first COMM/TXXX frame whose description matches (case-insensitive).

    Among duplicates a frame with non-empty text is preferred, unless
    `prefer_not_empty` is False.
    """
    first_match = None
    for frame in frames:
        if frame.desc.lower() != description.lower():
            continue
        if not prefer_not_empty or _frame_text(frame):
            return frame
        if first_match is None:
            first_match = frame
    return first_match


class Id3v2Adapter(TagAdapter):
    """
    Adapter for mutagen ID3 tags.

    Only ID3v2.3 and ID3v2.4 tags are exported. Text encoding follows the
    tag version: UTF-8 for v2.4, UTF-16 for text and Latin-1 for numeric
    frames in v2.3.
    """

    TAG_FORMAT = TagFormat.ID3V2

    COMMON_FIELDS = {
        "title": "TIT2",
        "artist": "TPE1",
        "album": "TALB",
        "genre": "TCON",
        "comment": "COMM",
        "year": "TDRC",
        "track_number": "TRCK",
    }
    EXPORT_SKIPPED_FIELDS = frozenset({"comment", "year", "track_number"})

    SPECIFIC_FRAMES = {
        "album_artist": "TPE2",
        "composer": "TCOM",
        "grouping": "TIT1",
        "key": "TKEY",
    }
    REPLAYGAIN_TRACK_GAIN = "REPLAYGAIN_TRACK_GAIN"
    REPLAYGAIN_TRACK_PEAK = "REPLAYGAIN_TRACK_PEAK"

    @staticmethod
    def major_version(tags: ID3) -> int:
        version = getattr(tags, "version", None)
        if not version or version[0] != 2:
            return 0
        return version[1]

    def _encoding(self, tags: ID3, numeric: bool) -> Encoding:
        if self.major_version(tags) >= 4:
            return Encoding.UTF8
        return Encoding.LATIN1 if numeric else Encoding.UTF16

    # Text primitives

    def _get_text(self, tags: ID3, key: str) -> str:
        if key == "COMM":
            frames = tags.getall("COMM")
            frame = find_first_frame(frames, "", prefer_not_empty=False)
            if frame is None and frames:
                frame = frames[0]
            return _frame_text(frame)
        frame = tags.get(key)
        if frame is None:
            return ""
        if key == "TCON":
            genres = frame.genres
            return genres[0] if genres else ""
        return _frame_text(frame)

    def _set_text(self, tags: ID3, key: str, value: str) -> None:
        tags.delall(key)
        if value:
            frame_class = Frames[key]
            tags.add(frame_class(encoding=self._encoding(tags, key in NUMERIC_FRAMES), text=[value]))

    def _get_user_text(self, tags: ID3, description: str) -> str | None:
        frame = find_first_frame(tags.getall("TXXX"), description)
        return None if frame is None else _frame_text(frame)

    def _set_user_text(self, tags: ID3, description: str, value: str) -> None:
        for frame in tags.getall("TXXX"):
            if frame.desc.lower() == description.lower():
                del tags[frame.HashKey]
        if value:
            encoding = self._encoding(tags, description in NUMERIC_USER_TEXT)
            tags.add(TXXX(encoding=encoding, desc=description, text=[value]))

    def _get_comment(self, tags: ID3, description: str = "") -> str | None:
        frame = find_first_frame(tags.getall("COMM"), description)
        return None if frame is None else _frame_text(frame)

    def _set_comment(self, tags: ID3, value: str, description: str = "") -> None:
        language = "eng"
        for frame in tags.getall("COMM"):
            if frame.desc.lower() == description.lower():
                language = frame.lang
                del tags[frame.HashKey]
        if value:
            tags.add(
                COMM(
                    encoding=self._encoding(tags, numeric=False),
                    lang=language,
                    desc=description,
                    text=[value],
                )
            )

    # Import

    def _import_specific(self, tags: ID3, metadata: TrackMetadata) -> None:
        comment = first_resolved(
            [
                lambda: self._get_comment(tags),
                lambda: self._get_user_text(tags, COMMENT_USER_TEXT),
            ]
        )
        if comment is not None:
            metadata.comment = comment

        for field_name, frame_id in self.SPECIFIC_FRAMES.items():
            if value := self._get_text(tags, frame_id):
                setattr(metadata, field_name, value)
        if not metadata.album and (original_album := self._get_text(tags, "TOAL")):
            metadata.album = original_album

        if year := self._read_year(tags):
            metadata.year = year

        if track := self._get_text(tags, "TRCK"):
            metadata.track_number, metadata.track_total = split_track_number(track)

        if bpm := self._get_text(tags, "TBPM"):
            self._apply_bpm(metadata, bpm)

        if gain := self._get_user_text(tags, self.REPLAYGAIN_TRACK_GAIN):
            self._apply_track_gain(metadata, gain)
        if peak := self._get_user_text(tags, self.REPLAYGAIN_TRACK_PEAK):
            self._apply_track_peak(metadata, peak)

    def _read_year(self, tags: ID3) -> str:
        def recording_time() -> str | None:
            if self.major_version(tags) >= 4:
                return self._get_text(tags, "TDRC").strip() or None
            return None

        def year_and_date() -> str | None:
            tyer = self._get_text(tags, "TYER")
            if not tyer.strip():
                return None
            return compose_id3_date(tyer, self._get_text(tags, "TDAT"))

        def upgraded_recording_time() -> str | None:
            # mutagen merges TYER/TDAT into TDRC when loading v2.3 tags from a file
            return self._get_text(tags, "TDRC").strip() or None

        return first_resolved([recording_time, year_and_date, upgraded_recording_time]) or ""

    # Export

    def _export(self, tags: ID3, metadata: TrackMetadata) -> bool:
        major_version = self.major_version(tags)
        if major_version < 3:
            self.log.warning("Export of ID3v2.%d tags is not supported", major_version)
            return False

        self._export_common(tags, metadata)

        self._set_comment(tags, metadata.comment)
        self._remove_user_text_comments(tags)

        self._set_text(
            tags, "TRCK", join_track_number(metadata.track_number, metadata.track_total)
        )
        self._write_year(tags, metadata.year, major_version)

        for field_name, frame_id in self.SPECIFIC_FRAMES.items():
            self._set_text(tags, frame_id, getattr(metadata, field_name))
        # TBPM is defined as an integer
        self._set_text(tags, "TBPM", format_bpm_integer(metadata.bpm))

        self._set_user_text(
            tags, self.REPLAYGAIN_TRACK_GAIN, format_replay_gain_ratio(metadata.replay_gain)
        )
        self._set_user_text(
            tags, self.REPLAYGAIN_TRACK_PEAK, format_replay_gain_peak(metadata.replay_gain)
        )
        return True

    def _remove_user_text_comments(self, tags: ID3) -> None:
        removed = 0
        for frame in tags.getall("TXXX"):
            if frame.desc.lower() == COMMENT_USER_TEXT.lower():
                del tags[frame.HashKey]
                removed += 1
        if removed:
            self.log.warning(
                "Removed %d non-standard ID3v2 TXXX comment frame(s)", removed
            )

    def _write_year(self, tags: ID3, year: str, major_version: int) -> None:
        if major_version >= 4 or "TDRC" in tags:
            self._set_text(tags, "TDRC", year)
        if major_version >= 4:
            return

        if not year:
            tags.delall("TYER")
            tags.delall("TDAT")
            return
        if parts := split_id3_date(year):
            tyer, tdat = parts
            self._set_text(tags, "TYER", tyer)
            self._set_text(tags, "TDAT", tdat)
            return
        calendar_year, is_valid = format_calendar_year(year)
        if is_valid:
            self._set_text(tags, "TYER", calendar_year)
            tags.delall("TDAT")
        else:
            self.log.debug("Cannot write year '%s' into ID3v2.3 TYER frame", year)

    # Cover art

    def _picture_candidates(
        self, tags: ID3 | None, pictures: Iterable[Any] | None
    ) -> Iterable[PictureCandidate]:
        frames = pictures if pictures is not None else tags.getall("APIC")
        for frame in frames:
            yield PictureCandidate(
                data=frame.data,
                picture_type=int(frame.type),
                mime_type=frame.mime,
                source="APIC",
            )
