"""Open audio files with mutagen and run the tag adapters on them."""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, BinaryIO

import mutagen
from mutagen.apev2 import APEv2
from mutagen.id3 import ID3

from trackmeta.adapters import get_adapter
from trackmeta.beatgrid import BeatGrid, read_beatgrid_field
from trackmeta.containers import ContainerFamily, TagFormat
from trackmeta.model import DEFAULT_MAX_BPM, TrackMetadata, import_audio_properties

logger = logging.getLogger(__name__)

_CHUNK_HEADER = struct.Struct("<4sI")


@dataclass
class AudioFile:
    """Tag objects of one audio file, keyed by tag format."""

    path: Path
    family: ContainerFamily
    tags: dict[TagFormat, Any] = field(default_factory=dict)
    pictures: list[Any] = field(default_factory=list)  # FLAC picture blocks
    info: Any = None  # mutagen stream info


def read_riff_info(fileobj: BinaryIO) -> dict[str, str]:
    """
    Read the text chunks of the LIST/INFO chunk of a RIFF (WAV) file.

    Returns:
        Mapping of chunk ids (e.g. "INAM") to text, empty if there is none
    """
    header = fileobj.read(12)
    if len(header) < 12 or header[:4] != b"RIFF":
        return {}

    info: dict[str, str] = {}
    while len(chunk_header := fileobj.read(_CHUNK_HEADER.size)) == _CHUNK_HEADER.size:
        chunk_id, size = _CHUNK_HEADER.unpack(chunk_header)
        padded_size = size + (size & 1)
        if chunk_id != b"LIST":
            fileobj.seek(padded_size, 1)
            continue
        data = fileobj.read(padded_size)
        if data[:4] != b"INFO":
            continue
        offset = 4
        end = min(size, len(data))
        while offset + _CHUNK_HEADER.size <= end:
            sub_id, sub_size = _CHUNK_HEADER.unpack_from(data, offset)
            offset += _CHUNK_HEADER.size
            value = data[offset : offset + sub_size].split(b"\x00", 1)[0]
            info[sub_id.decode("latin-1")] = value.decode("latin-1")
            offset += sub_size + (sub_size & 1)
    return info


def open_audio_file(path: Path) -> AudioFile:
    """
    Load the tag objects of an audio file.

    Raises:
        OSError: if the file cannot be opened
    """
    family = ContainerFamily.from_file_name(path)
    audio_file = AudioFile(path=path, family=family)

    try:
        audio = mutagen.File(path)
    except mutagen.MutagenError as e:
        # Tags may still be readable without a parseable audio stream
        logger.warning("Failed to read audio stream of %s: %s", path, e)
        audio = None
    if audio is not None:
        audio_file.info = audio.info
        audio_file.pictures = list(getattr(audio, "pictures", []))

    for tag_format in family.tag_formats:
        tags = _load_tags(path, tag_format, audio)
        if tags is not None:
            audio_file.tags[tag_format] = tags
    return audio_file


def _load_tags(path: Path, tag_format: TagFormat, audio: Any) -> Any:
    main_tags = getattr(audio, "tags", None)
    if tag_format == TagFormat.ID3V2:
        if isinstance(main_tags, ID3):
            return main_tags
        try:
            return ID3(path)
        except mutagen.MutagenError:
            return None
    if tag_format == TagFormat.APE:
        if isinstance(main_tags, APEv2):
            return main_tags
        try:
            return APEv2(path)
        except mutagen.MutagenError:
            return None
    if tag_format == TagFormat.RIFF_INFO:
        with open(path, "rb") as fileobj:
            return read_riff_info(fileobj) or None
    # Vorbis comments and MP4 atoms are the container's own tags
    return main_tags


def read_metadata(
    audio_file: AudioFile,
    max_bpm: float = DEFAULT_MAX_BPM,
    with_cover_art: bool = True,
) -> TrackMetadata:
    """Import every tag format present in the file; later formats win."""
    metadata = TrackMetadata()
    import_audio_properties(metadata, audio_file.info)

    for tag_format, tags in audio_file.tags.items():
        adapter = get_adapter(tag_format, max_bpm=max_bpm)
        adapter.import_metadata(tags, metadata)
        if with_cover_art and tag_format != TagFormat.RIFF_INFO:
            pictures = audio_file.pictures if tag_format == TagFormat.VORBIS_COMMENT else None
            if cover_art := adapter.import_cover_art(tags, pictures):
                metadata.cover_art = cover_art
    return metadata


def read_beatgrid(audio_file: AudioFile) -> BeatGrid | None:
    """Read and parse the Serato beatgrid of the file, None if absent or malformed."""
    tag_format = {
        ContainerFamily.MP3: TagFormat.ID3V2,
        ContainerFamily.AIFF: TagFormat.ID3V2,
        ContainerFamily.FLAC: TagFormat.VORBIS_COMMENT,
        ContainerFamily.MP4: TagFormat.MP4,
    }.get(audio_file.family)
    if tag_format is None:
        logger.debug("No beatgrid support for %s", audio_file.path)
        return None
    data = read_beatgrid_field(audio_file.tags.get(tag_format), audio_file.family)
    if not data:
        return None
    return BeatGrid.parse(data, audio_file.family)
