from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable
from typing import Any, ClassVar

from trackmeta.containers import TagFormat
from trackmeta.cover_art import PictureCandidate, select_cover_art
from trackmeta.model import DEFAULT_MAX_BPM, Bpm, CoverArt, TrackMetadata
from trackmeta.policy import (
    correct_bpm_scale,
    format_calendar_year,
    parse_bpm,
    parse_replay_gain_peak,
    parse_track_gain,
    split_track_number,
)


class TagAdapter(ABC):
    """
    Translates between TrackMetadata and one tag container format.

    Subclasses declare COMMON_FIELDS, mapping the generic fields to their
    container keys, and implement the text primitives on top of the tag
    object. Every field is read or written independently: a value that
    fails to parse leaves the model untouched, an empty model value purges
    the container field on export.
    """

    TAG_FORMAT: ClassVar[TagFormat]
    COMMON_FIELDS: ClassVar[dict[str, str]] = {}
    # Generic fields written by the format-specific export code
    EXPORT_SKIPPED_FIELDS: ClassVar[frozenset[str]] = frozenset({"year", "track_number"})

    def __init__(
        self, max_bpm: float = DEFAULT_MAX_BPM, logger: logging.Logger | None = None
    ) -> None:
        self.max_bpm = max_bpm
        self.log = logger or logging.getLogger(type(self).__module__)

    def import_metadata(self, tags: Any, metadata: TrackMetadata) -> bool:
        """
        Populate `metadata` from a tag object.

        Returns:
            True, also when there is no tag object to import from
        """
        if tags is None:
            self.log.debug("No %s tag to import", self.TAG_FORMAT)
            return True
        self._import_common(tags, metadata)
        self._import_specific(tags, metadata)
        return True

    def export_metadata(self, tags: Any, metadata: TrackMetadata) -> bool:
        """
        Push `metadata` into a tag object.

        Returns:
            False if there is no tag object or it cannot be written
        """
        if tags is None:
            self.log.debug("No %s tag to export into", self.TAG_FORMAT)
            return False
        return self._export(tags, metadata)

    def import_cover_art(
        self, tags: Any, pictures: Iterable[Any] | None = None
    ) -> CoverArt | None:
        """Select the cover art among the pictures embedded in the tag."""
        if tags is None and pictures is None:
            return None
        return select_cover_art(self._picture_candidates(tags, pictures), self.log)

    @abstractmethod
    def _get_text(self, tags: Any, key: str) -> str:
        """Return the first non-empty text value stored under `key`, else ""."""

    def _set_text(self, tags: Any, key: str, value: str) -> None:
        """Replace the value stored under `key`, removing it for an empty value."""
        raise NotImplementedError(f"{self.TAG_FORMAT} tags are read-only")

    def _import_specific(self, tags: Any, metadata: TrackMetadata) -> None:
        pass

    def _export(self, tags: Any, metadata: TrackMetadata) -> bool:
        self._export_common(tags, metadata)
        return True

    def _picture_candidates(
        self, tags: Any, pictures: Iterable[Any] | None
    ) -> Iterable[PictureCandidate]:
        return ()

    # Generic accessor

    def _read_generic_year(self, tags: Any) -> str:
        key = self.COMMON_FIELDS.get("year")
        return self._get_text(tags, key) if key else ""

    def _read_generic_track(self, tags: Any) -> str:
        key = self.COMMON_FIELDS.get("track_number")
        return self._get_text(tags, key) if key else ""

    def _import_common(self, tags: Any, metadata: TrackMetadata) -> None:
        for field_name, key in self.COMMON_FIELDS.items():
            if field_name in ("year", "track_number"):
                continue
            if value := self._get_text(tags, key):
                setattr(metadata, field_name, value)

        year, is_valid = format_calendar_year(self._read_generic_year(tags))
        if is_valid:
            metadata.year = year

        number, _ = split_track_number(self._read_generic_track(tags))
        try:
            track = int(number)
        except ValueError:
            track = 0
        if track > 0:
            metadata.track_number = str(track)

    def _export_common(self, tags: Any, metadata: TrackMetadata) -> None:
        for field_name, key in self.COMMON_FIELDS.items():
            if field_name in self.EXPORT_SKIPPED_FIELDS:
                continue
            self._set_text(tags, key, getattr(metadata, field_name))

    # Shared field parsing

    def _apply_bpm(self, metadata: TrackMetadata, text: str) -> bool:
        value, is_valid = parse_bpm(text)
        if not is_valid:
            return False
        corrected = correct_bpm_scale(value, self.max_bpm)
        if corrected != value:
            self.log.warning(
                "Corrected BPM of '%s - %s' from %s to %s",
                metadata.artist,
                metadata.title,
                value,
                corrected,
            )
        metadata.bpm = Bpm(corrected)
        return True

    def _apply_track_gain(self, metadata: TrackMetadata, text: str) -> bool:
        ratio, is_valid = parse_track_gain(text, self.log)
        if is_valid:
            metadata.replay_gain.ratio = ratio
        return is_valid

    def _apply_track_peak(self, metadata: TrackMetadata, text: str) -> bool:
        peak, is_valid = parse_replay_gain_peak(text)
        if is_valid:
            metadata.replay_gain.peak = peak
        return is_valid
