"""Canonical track metadata model.

Every tag adapter imports into and exports from these dataclasses. They
carry no container-specific behavior.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any

BPM_UNDEFINED = 0.0
DEFAULT_MAX_BPM = 300.0

RATIO_UNDEFINED = 0.0
RATIO_0DB = 1.0
PEAK_UNDEFINED = -1.0


@dataclass
class Bpm:
    """Beats per minute of the main part of a track."""

    value: float = BPM_UNDEFINED

    def has_value(self) -> bool:
        return math.isfinite(self.value) and self.value > BPM_UNDEFINED


@dataclass
class ReplayGain:
    """Track replay gain as a linear ratio plus the sample peak."""

    ratio: float = RATIO_UNDEFINED
    peak: float = PEAK_UNDEFINED

    def has_ratio(self) -> bool:
        return math.isfinite(self.ratio) and self.ratio > RATIO_UNDEFINED

    def has_peak(self) -> bool:
        return math.isfinite(self.peak) and self.peak >= 0.0


@dataclass
class CoverArt:
    """Embedded picture selected as cover art.

    `data` holds the raw bytes as stored in the container. `image` is the
    Pillow image produced while checking that the bytes decode.
    """

    data: bytes
    mime_type: str = ""
    image: Any = field(default=None, compare=False, repr=False)

    @property
    def size(self) -> tuple[int, int] | None:
        if self.image is None:
            return None
        return self.image.size


@dataclass
class TrackMetadata:
    """
    Canonical metadata of a single track.

    Empty strings mean "absent". Exporting an empty text field purges the
    corresponding container field instead of writing an empty value.
    """

    title: str = ""
    artist: str = ""
    album: str = ""
    album_artist: str = ""
    genre: str = ""
    comment: str = ""
    composer: str = ""
    grouping: str = ""
    year: str = ""  # ISO 8601 date (or prefix) or calendar year
    track_number: str = ""
    track_total: str = ""
    bpm: Bpm = field(default_factory=Bpm)
    replay_gain: ReplayGain = field(default_factory=ReplayGain)
    key: str = ""

    # Informational, overwritten after decoding the audio stream
    channels: int = 0
    sample_rate: int = 0
    bitrate: int = 0  # kbit/s
    duration: timedelta = field(default_factory=timedelta)

    cover_art: CoverArt | None = None


def import_audio_properties(metadata: TrackMetadata, info: Any) -> bool:
    """
    Copy the audio properties declared by the container into `metadata`.

    Args:
        metadata: Target model
        info: mutagen stream info (`channels`, `sample_rate`, `bitrate` in
            bit/s and `length` in seconds); missing attributes are skipped

    Returns:
        False if no stream info was given
    """
    if info is None:
        return False

    channels = getattr(info, "channels", None)
    if isinstance(channels, int):
        metadata.channels = channels
    sample_rate = getattr(info, "sample_rate", None)
    if isinstance(sample_rate, int):
        metadata.sample_rate = sample_rate
    bitrate = getattr(info, "bitrate", None)
    if isinstance(bitrate, int):
        metadata.bitrate = bitrate // 1000
    length = getattr(info, "length", None)
    if isinstance(length, int | float) and math.isfinite(length) and length >= 0:
        metadata.duration = timedelta(seconds=length)
    return True
