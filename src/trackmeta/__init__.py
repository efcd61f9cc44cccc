__all__ = (
    "main",
    "Config",
    # Canonical model
    "TrackMetadata",
    "Bpm",
    "ReplayGain",
    "CoverArt",
    "import_audio_properties",
    # Containers
    "ContainerFamily",
    "TagFormat",
    "BeatgridEncoding",
    # Adapters
    "TagAdapter",
    "Id3v2Adapter",
    "ApeAdapter",
    "VorbisCommentAdapter",
    "Mp4Adapter",
    "RiffInfoAdapter",
    "get_adapter",
    # Cover art
    "PictureCandidate",
    "select_cover_art",
    # Beatgrid
    "BeatGrid",
    "NonTerminalMarker",
    "TerminalMarker",
    "read_beatgrid_field",
    "write_beatgrid_field",
    # Files
    "AudioFile",
    "open_audio_file",
    "read_metadata",
    "read_beatgrid",
)

from trackmeta.adapters import (
    ApeAdapter,
    Id3v2Adapter,
    Mp4Adapter,
    RiffInfoAdapter,
    TagAdapter,
    VorbisCommentAdapter,
    get_adapter,
)
from trackmeta.audiofile import AudioFile, open_audio_file, read_beatgrid, read_metadata
from trackmeta.beatgrid import (
    BeatGrid,
    NonTerminalMarker,
    TerminalMarker,
    read_beatgrid_field,
    write_beatgrid_field,
)
from trackmeta.cli import main
from trackmeta.config import Config
from trackmeta.containers import BeatgridEncoding, ContainerFamily, TagFormat
from trackmeta.cover_art import PictureCandidate, select_cover_art
from trackmeta.model import Bpm, CoverArt, ReplayGain, TrackMetadata, import_audio_properties
