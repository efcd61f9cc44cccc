"""Serato BeatGrid codec.

Serato DJ stores the beatgrid of a track in a tag field. The payload is the
same in every container, only its wire encoding differs:

Raw (ID3v2 GEOB frame "Serato BeatGrid", MP3 and AIFF files):

    offset  size  field
    0       2     version, 01 00
    2       4     marker count N (big-endian uint32)
    6       8*N   markers
    6+8*N   1     footer (opaque, preserved)

Each marker starts with its position in seconds (big-endian float32).
Non-terminal markers continue with the number of beats until the next
marker (big-endian uint32), the last marker is the terminal marker and
continues with the BPM (big-endian float32).

Base64 (FLAC comment SERATO_BEATGRID, MP4 atom ----:com.serato.dj:beatgrid):
the raw payload behind the prefix "application/octet-stream\\0\\0Serato
BeatGrid\\0", base64 encoded and wrapped into lines of 72 characters.

See https://github.com/Holzhaus/serato-tags for the format documentation.
"""

from __future__ import annotations

import base64
import binascii
import logging
import math
import struct
from dataclasses import dataclass
from typing import Any

from mutagen.id3 import GEOB, Encoding
from mutagen.mp4 import AtomDataType, MP4FreeForm

from trackmeta.containers import BeatgridEncoding, ContainerFamily
from trackmeta.policy import first_non_empty

logger = logging.getLogger(__name__)

VERSION = b"\x01\x00"
BASE64_PREFIX = b"application/octet-stream\x00\x00Serato BeatGrid\x00"
BASE64_LINE_LENGTH = 72

ID3_GEOB_DESCRIPTION = "Serato BeatGrid"
ID3_GEOB_MIME_TYPE = "application/octet-stream"
VORBIS_FIELD = "SERATO_BEATGRID"
MP4_ATOM = "----:com.serato.dj:beatgrid"

_HEADER = struct.Struct(">2sI")
_NON_TERMINAL = struct.Struct(">fI")
_TERMINAL = struct.Struct(">ff")
_FOOTER_SIZE = 1
_FLOAT32 = struct.Struct(">f")
_UINT32_MAX = 0xFFFFFFFF


def to_float32(value: float) -> float:
    """Round a value to the nearest float32, as stored on the wire."""
    try:
        return _FLOAT32.unpack(_FLOAT32.pack(value))[0]
    except (OverflowError, struct.error) as e:
        raise ValueError(f"Not representable as float32: {value}") from e


@dataclass(frozen=True)
class NonTerminalMarker:
    """Marker followed by a fixed number of beats until the next marker."""

    position: float  # seconds
    beats_till_next_marker: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "position", to_float32(self.position))
        if not 0 <= self.beats_till_next_marker <= _UINT32_MAX:
            raise ValueError(f"Beat count out of range: {self.beats_till_next_marker}")


@dataclass(frozen=True)
class TerminalMarker:
    """Last marker; its tempo applies to all following beats."""

    position: float  # seconds
    bpm: float

    def __post_init__(self) -> None:
        object.__setattr__(self, "position", to_float32(self.position))
        object.__setattr__(self, "bpm", to_float32(self.bpm))


@dataclass(frozen=True)
class BeatGrid:
    """
    Ordered beatgrid markers plus the trailing footer byte.

    Raises:
        ValueError: if markers are unordered, the footer is not a byte, or
            non-terminal markers are not followed by a terminal marker
    """

    non_terminal_markers: tuple[NonTerminalMarker, ...] = ()
    terminal_marker: TerminalMarker | None = None
    footer: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "non_terminal_markers", tuple(self.non_terminal_markers))
        if not 0 <= self.footer <= 0xFF:
            raise ValueError(f"Footer is not a byte: {self.footer}")
        if self.non_terminal_markers and self.terminal_marker is None:
            raise ValueError("Non-terminal markers must be followed by a terminal marker")

        previous = -math.inf
        for marker in self.markers:
            if math.isnan(marker.position) or marker.position < previous:
                raise ValueError(f"Marker positions are not in order at {marker.position}")
            previous = marker.position

    @property
    def markers(self) -> list[NonTerminalMarker | TerminalMarker]:
        markers: list[NonTerminalMarker | TerminalMarker] = list(self.non_terminal_markers)
        if self.terminal_marker is not None:
            markers.append(self.terminal_marker)
        return markers

    def is_empty(self) -> bool:
        return self.terminal_marker is None

    # Codec

    @classmethod
    def parse(
        cls, data: bytes | str, family: ContainerFamily, log: logging.Logger | None = None
    ) -> BeatGrid | None:
        """
        Parse a beatgrid field value stored in a container of `family`.

        Returns:
            The parsed grid, or None if the family has no beatgrid support
            or the data is malformed
        """
        log = log or logger
        encoding = family.beatgrid_encoding
        if encoding == BeatgridEncoding.RAW:
            if isinstance(data, str):
                try:
                    data = data.encode("latin-1")
                except UnicodeEncodeError:
                    log.warning("Beatgrid text is not Latin-1 encoded")
                    return None
            return cls._parse_raw(data, log)
        if encoding == BeatgridEncoding.BASE64:
            return cls._parse_base64(data, log)
        log.warning("Beatgrids are not supported for %s files", family)
        return None

    def dump(self, family: ContainerFamily, log: logging.Logger | None = None) -> bytes:
        """
        Serialize the grid for a container of `family`.

        Returns:
            The field value, empty for families without beatgrid support
        """
        encoding = family.beatgrid_encoding
        if encoding == BeatgridEncoding.RAW:
            return self._dump_raw()
        if encoding == BeatgridEncoding.BASE64:
            return self._dump_base64()
        (log or logger).warning("Beatgrids are not supported for %s files", family)
        return b""

    @classmethod
    def _parse_raw(cls, data: bytes, log: logging.Logger) -> BeatGrid | None:
        if len(data) < _HEADER.size + _FOOTER_SIZE:
            log.warning("Beatgrid data is truncated (%d bytes)", len(data))
            return None
        version, count = _HEADER.unpack_from(data)
        if version != VERSION:
            log.warning("Unsupported beatgrid version %s", version.hex())
            return None
        expected_size = _HEADER.size + count * _NON_TERMINAL.size + _FOOTER_SIZE
        if len(data) != expected_size:
            log.warning(
                "Beatgrid with %d markers has %d bytes instead of %d",
                count,
                len(data),
                expected_size,
            )
            return None

        non_terminal_markers = []
        terminal_marker = None
        offset = _HEADER.size
        for index in range(count):
            if index < count - 1:
                position, beats = _NON_TERMINAL.unpack_from(data, offset)
                non_terminal_markers.append(NonTerminalMarker(position, beats))
            else:
                position, bpm = _TERMINAL.unpack_from(data, offset)
                terminal_marker = TerminalMarker(position, bpm)
            offset += _NON_TERMINAL.size

        try:
            return cls(tuple(non_terminal_markers), terminal_marker, data[-1])
        except ValueError as e:
            log.warning("Inconsistent beatgrid: %s", e)
            return None

    @classmethod
    def _parse_base64(cls, data: bytes | str, log: logging.Logger) -> BeatGrid | None:
        text = data.encode("ascii", errors="replace") if isinstance(data, str) else data
        # Line breaks are not part of the encoding, padding may be missing
        text = b"".join(text.split())
        text += b"=" * (-len(text) % 4)
        try:
            decoded = base64.b64decode(text, validate=True)
        except (binascii.Error, ValueError):
            log.warning("Beatgrid is not valid base64")
            return None
        if not decoded.startswith(BASE64_PREFIX):
            log.warning("Beatgrid lacks the expected base64 prefix")
            return None
        return cls._parse_raw(decoded[len(BASE64_PREFIX) :], log)

    def _dump_raw(self) -> bytes:
        parts = [_HEADER.pack(VERSION, len(self.markers))]
        for marker in self.non_terminal_markers:
            parts.append(_NON_TERMINAL.pack(marker.position, marker.beats_till_next_marker))
        if self.terminal_marker is not None:
            parts.append(_TERMINAL.pack(self.terminal_marker.position, self.terminal_marker.bpm))
        parts.append(bytes([self.footer]))
        return b"".join(parts)

    def _dump_base64(self) -> bytes:
        encoded = base64.b64encode(BASE64_PREFIX + self._dump_raw())
        lines = [
            encoded[start : start + BASE64_LINE_LENGTH]
            for start in range(0, len(encoded), BASE64_LINE_LENGTH)
        ]
        return b"\n".join(lines)

    # Beats

    def beat_positions(self, track_length: float, timing_offset: float = 0.0) -> list[float]:
        """
        Expand the grid into beat positions in seconds.

        Beats between two markers are spread evenly. After the terminal
        marker beats follow at its tempo until `track_length`.

        Args:
            track_length: Duration of the track in seconds
            timing_offset: Added to every position, e.g. to compensate the
                decoder delay of MP3 files
        """
        if not math.isfinite(track_length):
            raise ValueError(f"Invalid track length: {track_length}")
        positions: list[float] = []
        markers = self.markers
        for index, marker in enumerate(self.non_terminal_markers):
            beats = marker.beats_till_next_marker
            if beats == 0:
                continue
            next_position = markers[index + 1].position
            step = (next_position - marker.position) / beats
            positions.extend(marker.position + beat * step + timing_offset for beat in range(beats))

        terminal = self.terminal_marker
        if terminal is None:
            return positions
        if not math.isfinite(terminal.bpm) or terminal.bpm <= 0:
            positions.append(terminal.position + timing_offset)
            return positions
        step = 60.0 / terminal.bpm
        beats = max(0, math.ceil((track_length - terminal.position) / step))
        positions.extend(terminal.position + beat * step + timing_offset for beat in range(beats))
        return positions


# Tag fields


def read_beatgrid_field(
    tags: Any, family: ContainerFamily, log: logging.Logger | None = None
) -> bytes | None:
    """Return the raw value of the beatgrid field in a mutagen tag object."""
    if tags is None:
        return None
    if family in (ContainerFamily.MP3, ContainerFamily.AIFF):
        for frame in tags.getall("GEOB"):
            if frame.desc == ID3_GEOB_DESCRIPTION:
                return frame.data
        return None
    if family == ContainerFamily.FLAC:
        value = first_non_empty(tags.get(VORBIS_FIELD, []))
        return value.encode("ascii", errors="replace") if value else None
    if family == ContainerFamily.MP4:
        values = tags.get(MP4_ATOM)
        return bytes(values[0]) if values else None
    (log or logger).debug("No beatgrid field for %s files", family)
    return None


def write_beatgrid_field(
    tags: Any, family: ContainerFamily, data: bytes, log: logging.Logger | None = None
) -> bool:
    """
    Store a dumped beatgrid in a mutagen tag object; empty data purges the field.

    Returns:
        False if the family has no beatgrid field
    """
    if tags is None:
        return False
    if family in (ContainerFamily.MP3, ContainerFamily.AIFF):
        for frame in tags.getall("GEOB"):
            if frame.desc == ID3_GEOB_DESCRIPTION:
                del tags[frame.HashKey]
        if data:
            tags.add(
                GEOB(
                    encoding=Encoding.LATIN1,
                    mime=ID3_GEOB_MIME_TYPE,
                    filename="",
                    desc=ID3_GEOB_DESCRIPTION,
                    data=data,
                )
            )
        return True
    if family == ContainerFamily.FLAC:
        if data:
            tags[VORBIS_FIELD] = [data.decode("ascii")]
        elif VORBIS_FIELD in tags:
            del tags[VORBIS_FIELD]
        return True
    if family == ContainerFamily.MP4:
        if data:
            tags[MP4_ATOM] = [MP4FreeForm(data, dataformat=AtomDataType.UTF8)]
        elif MP4_ATOM in tags:
            del tags[MP4_ATOM]
        return True
    (log or logger).warning("Cannot store a beatgrid in %s files", family)
    return False
