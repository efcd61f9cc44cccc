"""RIFF INFO adapter (WAV files), import only."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from trackmeta.adapters.base import TagAdapter
from trackmeta.containers import TagFormat
from trackmeta.model import TrackMetadata


class RiffInfoAdapter(TagAdapter):
    """
    Adapter for the INFO list chunk of RIFF files.

    The tag object is a mapping of four-character chunk ids to their text
    (str, or bytes as stored in the chunk). Only the generic fields are
    supported and there is no export path.
    """

    TAG_FORMAT = TagFormat.RIFF_INFO

    COMMON_FIELDS = {
        "title": "INAM",
        "artist": "IART",
        "album": "IPRD",
        "comment": "ICMT",
        "genre": "IGNR",
        "year": "ICRD",
        "track_number": "IPRT",
    }
    TRACK_FALLBACK = "ITRK"

    def _get_text(self, tags: Mapping[str, Any], key: str) -> str:
        value = tags.get(key)
        if isinstance(value, bytes):
            # Chunk data is NUL terminated
            value = value.split(b"\x00", 1)[0].decode("latin-1")
        if not isinstance(value, str):
            return ""
        return value.strip("\x00").strip()

    def _read_generic_track(self, tags: Mapping[str, Any]) -> str:
        return self._get_text(tags, "IPRT") or self._get_text(tags, self.TRACK_FALLBACK)

    def _export(self, tags: Mapping[str, Any], metadata: TrackMetadata) -> bool:
        self.log.debug("Export of RIFF INFO chunks is not supported")
        return False
