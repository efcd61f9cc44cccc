"""Vorbis comment adapter (FLAC, Ogg Vorbis, Opus)."""

from __future__ import annotations

import base64
import binascii
import struct
from collections.abc import Iterable

from mutagen._vorbis import VCommentDict
from mutagen.flac import Picture
from mutagen.flac import error as FLACError
from mutagen.id3 import PictureType

from trackmeta.adapters.base import TagAdapter
from trackmeta.containers import TagFormat
from trackmeta.cover_art import PictureCandidate, select_cover_art, select_first_decodable
from trackmeta.model import CoverArt, TrackMetadata
from trackmeta.policy import (
    first_non_empty,
    first_resolved,
    format_bpm,
    format_replay_gain_peak,
    format_replay_gain_ratio,
    split_track_number,
)

METADATA_BLOCK_PICTURE = "METADATA_BLOCK_PICTURE"
COVERART = "COVERART"


class VorbisCommentAdapter(TagAdapter):
    """
    Adapter for Vorbis comments.

    Several fields have competing names in the wild. On export the
    recommended field is always written (or purged), while each
    alternative field is only updated if it already exists.
    """

    TAG_FORMAT = TagFormat.VORBIS_COMMENT

    COMMON_FIELDS = {
        "title": "TITLE",
        "artist": "ARTIST",
        "album": "ALBUM",
        "genre": "GENRE",
        "comment": "DESCRIPTION",
        "year": "DATE",
        "track_number": "TRACKNUMBER",
    }
    # Written together with the alternative COMMENT field
    EXPORT_SKIPPED_FIELDS = frozenset({"comment", "year", "track_number"})

    # Recommended field first, then the alternatives
    FIELD_ALTERNATIVES = {
        "comment": ("DESCRIPTION", "COMMENT"),
        "album_artist": ("ALBUMARTIST", "ALBUM_ARTIST", "ALBUM ARTIST", "ENSEMBLE"),
        "composer": ("COMPOSER",),
        "grouping": ("GROUPING",),
        "track_total": ("TRACKTOTAL", "TOTALTRACKS"),
        "key": ("INITIALKEY", "KEY"),
    }
    BPM_FIELDS = ("TEMPO", "BPM")

    def _get_text(self, tags: VCommentDict, key: str) -> str:
        return first_non_empty(tags.get(key, []))

    def _set_text(self, tags: VCommentDict, key: str, value: str) -> None:
        if value:
            tags[key] = [value]
        elif key in tags:
            del tags[key]

    def _update_text(self, tags: VCommentDict, key: str, value: str) -> None:
        """Like _set_text(), but never introduce a field that does not exist yet."""
        if key in tags:
            self._set_text(tags, key, value)

    def _import_specific(self, tags: VCommentDict, metadata: TrackMetadata) -> None:
        for field_name, keys in self.FIELD_ALTERNATIVES.items():
            if field_name == "track_total":
                continue
            if value := first_non_empty(self._get_text(tags, key) for key in keys):
                setattr(metadata, field_name, value)

        if year := self._get_text(tags, "DATE"):
            metadata.year = year

        # TRACKNUMBER may contain both number and total
        number, total = split_track_number(self._get_text(tags, "TRACKNUMBER"))
        if number:
            metadata.track_number = number
        total_keys = self.FIELD_ALTERNATIVES["track_total"]
        if total := first_non_empty([*(self._get_text(tags, key) for key in total_keys), total]):
            metadata.track_total = total

        for key in self.BPM_FIELDS:
            if self._apply_bpm(metadata, self._get_text(tags, key)):
                break

        if gain := self._get_text(tags, "REPLAYGAIN_TRACK_GAIN"):
            self._apply_track_gain(metadata, gain)
        if peak := self._get_text(tags, "REPLAYGAIN_TRACK_PEAK"):
            self._apply_track_peak(metadata, peak)

    def _export(self, tags: VCommentDict, metadata: TrackMetadata) -> bool:
        self._export_common(tags, metadata)

        self._set_text(tags, "DATE", metadata.year)
        # TRACKNUMBER holds the number only, the total is stored separately
        self._set_text(tags, "TRACKNUMBER", metadata.track_number)

        for field_name, keys in self.FIELD_ALTERNATIVES.items():
            value = getattr(metadata, field_name)
            recommended, *alternatives = keys
            self._set_text(tags, recommended, value)
            for key in alternatives:
                self._update_text(tags, key, value)

        bpm = format_bpm(metadata.bpm)
        recommended, *alternatives = self.BPM_FIELDS
        self._set_text(tags, recommended, bpm)
        for key in alternatives:
            self._update_text(tags, key, bpm)

        self._set_text(
            tags, "REPLAYGAIN_TRACK_GAIN", format_replay_gain_ratio(metadata.replay_gain)
        )
        self._set_text(
            tags, "REPLAYGAIN_TRACK_PEAK", format_replay_gain_peak(metadata.replay_gain)
        )
        return True

    # Cover art

    def import_cover_art(
        self, tags: VCommentDict | None, pictures: Iterable[Picture] | None = None
    ) -> CoverArt | None:
        """
        Select the cover art of a FLAC/Ogg file.

        The structured picture list (`FLAC.pictures`) is searched first. Only
        if it yields nothing the legacy METADATA_BLOCK_PICTURE and COVERART
        comment fields are tried, in that order.
        """
        return first_resolved(
            [
                lambda: select_cover_art(self._picture_candidates(tags, pictures), self.log),
                lambda: self._import_block_pictures(tags),
                lambda: self._import_coverart_field(tags),
            ]
        )

    def _picture_candidates(
        self, tags: VCommentDict | None, pictures: Iterable[Picture] | None
    ) -> Iterable[PictureCandidate]:
        for picture in pictures or ():
            yield self._to_candidate(picture, source="picture")

    @staticmethod
    def _to_candidate(picture: Picture, source: str) -> PictureCandidate:
        return PictureCandidate(
            data=picture.data,
            picture_type=int(picture.type),
            mime_type=picture.mime,
            source=source,
        )

    def _decode_base64(self, key: str, value: str) -> bytes | None:
        try:
            return base64.b64decode(value.encode("ascii"), validate=False)
        except (binascii.Error, UnicodeEncodeError, ValueError):
            self.log.warning("Failed to decode base64 encoded %s field", key)
            return None

    def _import_block_pictures(self, tags: VCommentDict | None) -> CoverArt | None:
        if tags is None or METADATA_BLOCK_PICTURE not in tags:
            return None
        self.log.warning("Legacy code path: reading cover art from %s", METADATA_BLOCK_PICTURE)
        candidates = []
        for value in tags[METADATA_BLOCK_PICTURE]:
            data = self._decode_base64(METADATA_BLOCK_PICTURE, value)
            if data is None:
                continue
            try:
                picture = Picture(data)
            except (FLACError, struct.error, ValueError):
                self.log.warning("Failed to parse binary picture record")
                continue
            candidates.append(self._to_candidate(picture, source=METADATA_BLOCK_PICTURE))
        return select_cover_art(candidates, self.log)

    def _import_coverart_field(self, tags: VCommentDict | None) -> CoverArt | None:
        if tags is None or COVERART not in tags:
            return None
        self.log.warning("Legacy code path: reading cover art from deprecated %s", COVERART)
        candidates = []
        for value in tags[COVERART]:
            data = self._decode_base64(COVERART, value)
            if data:
                candidates.append(
                    PictureCandidate(data=data, picture_type=PictureType.OTHER, source=COVERART)
                )
        return select_first_decodable(candidates, self.log)
