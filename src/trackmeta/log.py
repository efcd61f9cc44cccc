"""Logging setup for the trackmeta command line.

File paths passed as log arguments are shortened to their last two
components, or hashed, so that logs of a music library do not disclose
its directory layout.
"""

from __future__ import annotations

import hashlib
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

AUDIO_SUFFIXES = frozenset(
    {".mp3", ".m4a", ".mp4", ".flac", ".ogg", ".opus", ".wav", ".wv", ".aif", ".aiff"}
)


def hash_path(file_path: Path | str, length: int = 12) -> str:
    """Deterministic, truncated SHA256 hash of a file path."""
    return hashlib.sha256(str(file_path).encode()).hexdigest()[:length]


def shorten_path(file_path: Path | str, library_root: Path | str | None = None) -> str:
    """Path relative to `library_root` if possible, else "parent/name"."""
    path = Path(file_path)
    if library_root:
        try:
            return str(path.relative_to(library_root))
        except ValueError:
            pass
    if path.parent.name:
        return f"{path.parent.name}/{path.name}"
    return path.name


class PathSafeFormatter(logging.Formatter):
    """Formatter that shortens or hashes file paths found in the record's args."""

    def __init__(
        self,
        fmt: str | None = None,
        datefmt: str | None = None,
        hash_paths: bool = False,
        library_root: Path | str | None = None,
    ):
        super().__init__(fmt, datefmt)
        self.hash_paths = hash_paths
        self.library_root = library_root

    def format(self, record: logging.LogRecord) -> str:
        # Copy so that other handlers still see the original record
        record = logging.makeLogRecord(record.__dict__)
        if isinstance(record.args, Mapping):
            record.args = {key: self._safe_value(value) for key, value in record.args.items()}
        elif record.args:
            record.args = tuple(self._safe_value(arg) for arg in record.args)
        return super().format(record)

    def _safe_value(self, value: Any) -> Any:
        if isinstance(value, Path):
            return self._safe_path(value)
        if isinstance(value, str) and "/" in value:
            path = Path(value)
            if path.suffix.lower() in AUDIO_SUFFIXES:
                return self._safe_path(path)
        return value

    def _safe_path(self, path: Path) -> str:
        if self.hash_paths:
            return f"file:{hash_path(path)}"
        return shorten_path(path, self.library_root)


def configure_logging(
    level: int | str = logging.WARNING,
    format_string: str | None = None,
    hash_paths: bool = False,
) -> None:
    """
    Install a PathSafeFormatter stream handler on the root logger.

    Args:
        level: Logging level (number or name, e.g. "DEBUG")
        format_string: Optional custom format string
        hash_paths: Whether to hash file paths instead of shortening them
    """
    handler = logging.StreamHandler()
    handler.setFormatter(
        PathSafeFormatter(fmt=format_string or DEFAULT_FORMAT, hash_paths=hash_paths)
    )

    root_logger = logging.getLogger()
    # Replace the handler of a previous call
    for existing in list(root_logger.handlers):
        if isinstance(existing.formatter, PathSafeFormatter):
            root_logger.removeHandler(existing)
    root_logger.setLevel(level.upper() if isinstance(level, str) else level)
    root_logger.addHandler(handler)


## Tests


def _record(msg: str, *args: Any) -> logging.LogRecord:
    return logging.LogRecord(
        name="test", level=logging.INFO, pathname="", lineno=0, msg=msg, args=args, exc_info=None
    )


def test_hash_path():
    """Test path hashing."""
    first = hash_path(Path("/home/user/music/song.mp3"))

    assert len(first) == 12
    assert first == hash_path("/home/user/music/song.mp3")
    assert first != hash_path(Path("/home/user/music/other.mp3"))


def test_shorten_path():
    path = Path("/home/user/music/artist/album/song.mp3")

    assert shorten_path(path, "/home/user/music") == "artist/album/song.mp3"
    assert shorten_path(path) == "album/song.mp3"
    assert shorten_path(path, "/elsewhere") == "album/song.mp3"


def test_formatter_shortens_paths():
    formatter = PathSafeFormatter(fmt="%(message)s")

    formatted = formatter.format(_record("Reading %s", Path("/home/user/music/album/song.flac")))

    assert formatted == "Reading album/song.flac"


def test_formatter_hashes_string_paths():
    formatter = PathSafeFormatter(fmt="%(message)s", hash_paths=True)

    formatted = formatter.format(_record("Reading %s", "/home/user/music/song.mp3"))

    assert formatted.startswith("Reading file:")
    assert "song.mp3" not in formatted


def test_formatter_keeps_other_args():
    formatter = PathSafeFormatter(fmt="%(message)s", hash_paths=True)

    formatted = formatter.format(_record("BPM %s of %s", 120.5, "AC/DC"))

    assert formatted == "BPM 120.5 of AC/DC"
