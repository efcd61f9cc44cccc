"""Container families and the tag formats they carry."""

from __future__ import annotations

from enum import StrEnum
from pathlib import PurePath


class TagFormat(StrEnum):
    """Tag container formats handled by the adapters."""

    ID3V2 = "id3v2"
    APE = "ape"
    VORBIS_COMMENT = "vorbis_comment"
    MP4 = "mp4"
    RIFF_INFO = "riff_info"


class BeatgridEncoding(StrEnum):
    """Wire encoding of the Serato beatgrid blob."""

    RAW = "raw"  # binary frame (ID3 GEOB)
    BASE64 = "base64"  # text field


class ContainerFamily(StrEnum):
    """
    Audio container family, derived from the file type.

    Selects the adapters and the beatgrid wire encoding that apply.
    """

    MP3 = "mp3"
    FLAC = "flac"
    OGG = "ogg"
    OPUS = "opus"
    MP4 = "mp4"
    WAV = "wav"
    WV = "wv"
    AIFF = "aiff"
    UNKNOWN = "unknown"

    @classmethod
    def from_file_name(cls, file_name: str | PurePath) -> ContainerFamily:
        """Derive the family from a file name's extension (case-insensitive)."""
        suffix = PurePath(file_name).suffix.lower().lstrip(".")
        if suffix.startswith("aif"):
            return cls.AIFF
        return _SUFFIXES.get(suffix, cls.UNKNOWN)

    @property
    def tag_formats(self) -> tuple[TagFormat, ...]:
        """Tag formats the family may carry, in import order (later wins)."""
        return _TAG_FORMATS[self]

    @property
    def beatgrid_encoding(self) -> BeatgridEncoding | None:
        return _BEATGRID_ENCODINGS.get(self)


_SUFFIXES = {
    "mp3": ContainerFamily.MP3,
    "m4a": ContainerFamily.MP4,
    "mp4": ContainerFamily.MP4,
    "flac": ContainerFamily.FLAC,
    "ogg": ContainerFamily.OGG,
    "opus": ContainerFamily.OPUS,
    "wav": ContainerFamily.WAV,
    "wv": ContainerFamily.WV,
}

# FLAC files may carry leftover ID3v2/APEv2 tags; the Vorbis comment is
# authoritative and therefore imported last.
_TAG_FORMATS: dict[ContainerFamily, tuple[TagFormat, ...]] = {
    ContainerFamily.MP3: (TagFormat.APE, TagFormat.ID3V2),
    ContainerFamily.FLAC: (TagFormat.ID3V2, TagFormat.APE, TagFormat.VORBIS_COMMENT),
    ContainerFamily.OGG: (TagFormat.VORBIS_COMMENT,),
    ContainerFamily.OPUS: (TagFormat.VORBIS_COMMENT,),
    ContainerFamily.MP4: (TagFormat.MP4,),
    ContainerFamily.WAV: (TagFormat.RIFF_INFO, TagFormat.ID3V2),
    ContainerFamily.WV: (TagFormat.APE,),
    ContainerFamily.AIFF: (TagFormat.ID3V2,),
    ContainerFamily.UNKNOWN: (),
}

_BEATGRID_ENCODINGS = {
    ContainerFamily.MP3: BeatgridEncoding.RAW,
    ContainerFamily.AIFF: BeatgridEncoding.RAW,
    ContainerFamily.MP4: BeatgridEncoding.BASE64,
    ContainerFamily.FLAC: BeatgridEncoding.BASE64,
}
