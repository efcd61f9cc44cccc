"""Cover art selection across embedded pictures.

ID3v2 APIC frames and FLAC picture blocks share the picture type numbering
of the ID3v2 specification. MP4 `covr` entries carry no type and are
reported as OTHER.
"""

from __future__ import annotations

import io
import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from mutagen.id3 import PictureType
from PIL import Image

from trackmeta.model import CoverArt

logger = logging.getLogger(__name__)

PRIORITY = (
    PictureType.COVER_FRONT,
    PictureType.MEDIA,
    PictureType.ILLUSTRATION,
    PictureType.OTHER,
)


@dataclass(frozen=True)
class PictureCandidate:
    """An embedded picture as found in a container."""

    data: bytes
    picture_type: int = PictureType.OTHER
    mime_type: str = ""
    source: str = ""  # e.g. "APIC", "METADATA_BLOCK_PICTURE", "covr"


def decode_image(data: bytes) -> Image.Image | None:
    """
    Decode image bytes with Pillow.

    Returns:
        The fully loaded image, or None if the bytes are not a decodable image
    """
    if not data:
        return None
    try:
        image = Image.open(io.BytesIO(data))
        image.load()
    except (OSError, SyntaxError, ValueError, Image.DecompressionBombError):
        return None
    return image


def _try_decode(candidate: PictureCandidate, log: logging.Logger) -> CoverArt | None:
    image = decode_image(candidate.data)
    if image is None:
        log.warning(
            "Failed to decode %s picture (type %d, %d bytes)",
            candidate.source or "embedded",
            candidate.picture_type,
            len(candidate.data),
        )
        return None
    mime_type = candidate.mime_type
    if not mime_type and image.format:
        mime_type = Image.MIME.get(image.format, "")
    return CoverArt(data=candidate.data, mime_type=mime_type, image=image)


def select_cover_art(
    candidates: Iterable[PictureCandidate],
    log: logging.Logger | None = None,
    priority: Sequence[int] = PRIORITY,
) -> CoverArt | None:
    """
    Select the cover art among embedded pictures.

    Pictures are tried by type in priority order; the first one that
    decodes wins. If no prioritized picture decodes, the first decodable
    picture of any type is returned. Each failure is logged and skipped.
    """
    log = log or logger
    pictures = list(candidates)
    if not pictures:
        return None

    failed: set[int] = set()
    for picture_type in priority:
        for index, candidate in enumerate(pictures):
            if candidate.picture_type != picture_type or index in failed:
                continue
            if cover_art := _try_decode(candidate, log):
                return cover_art
            failed.add(index)

    for index, candidate in enumerate(pictures):
        if index in failed:
            continue
        if cover_art := _try_decode(candidate, log):
            return cover_art
    return None


def select_first_decodable(
    candidates: Iterable[PictureCandidate], log: logging.Logger | None = None
) -> CoverArt | None:
    """Return the first decodable picture, ignoring picture types."""
    return select_cover_art(candidates, log, priority=())
