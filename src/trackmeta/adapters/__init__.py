"""
Tag container adapters.

Each adapter translates between TrackMetadata and the in-memory tag object
of one container format.
"""

from __future__ import annotations

__all__ = [
    "TagAdapter",
    "Id3v2Adapter",
    "ApeAdapter",
    "VorbisCommentAdapter",
    "Mp4Adapter",
    "RiffInfoAdapter",
    "ADAPTER_REGISTRY",
    "get_adapter",
]

import logging

from trackmeta.adapters.ape import ApeAdapter
from trackmeta.adapters.base import TagAdapter
from trackmeta.adapters.id3 import Id3v2Adapter
from trackmeta.adapters.mp4 import Mp4Adapter
from trackmeta.adapters.riff import RiffInfoAdapter
from trackmeta.adapters.vorbis import VorbisCommentAdapter
from trackmeta.containers import TagFormat
from trackmeta.model import DEFAULT_MAX_BPM

ADAPTER_REGISTRY: dict[TagFormat, type[TagAdapter]] = {
    TagFormat.ID3V2: Id3v2Adapter,
    TagFormat.APE: ApeAdapter,
    TagFormat.VORBIS_COMMENT: VorbisCommentAdapter,
    TagFormat.MP4: Mp4Adapter,
    TagFormat.RIFF_INFO: RiffInfoAdapter,
}


def get_adapter(
    tag_format: TagFormat | str,
    max_bpm: float = DEFAULT_MAX_BPM,
    logger: logging.Logger | None = None,
) -> TagAdapter:
    """Get the adapter for a tag format."""
    adapter_class = ADAPTER_REGISTRY.get(TagFormat(tag_format))
    if adapter_class is None:
        raise ValueError(f"Unsupported tag format: {tag_format}")
    return adapter_class(max_bpm=max_bpm, logger=logger)
