"""Field resolution policy shared by all tag adapters.

Provides the primitives used when reading or writing container fields:
- Selecting the first non-empty value among repeated or synonymous fields
- Ordered fallback chains for legacy field layouts
- Parsing and formatting of BPM, replay gain, track numbers and dates

Parsers never raise; they return the parsed value together with a
validity flag so that callers can leave the target field untouched.
"""

from __future__ import annotations

import logging
import math
import re
from collections.abc import Callable, Iterable
from datetime import date
from enum import StrEnum
from typing import TypeVar

from trackmeta.model import (
    BPM_UNDEFINED,
    PEAK_UNDEFINED,
    RATIO_0DB,
    RATIO_UNDEFINED,
    Bpm,
    ReplayGain,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# http://id3.org/id3v2.3.0: TYER is always four characters long (yyyy),
# TDAT is a numeric string in the DDMM format.
ID3_TYER_LENGTH = 4
ID3_TDAT_LENGTH = 4

_CALENDAR_YEAR = re.compile(r"^\s*(\d{4})(?!\d)")
_GAIN_SUFFIX = "db"


def first_non_empty(candidates: Iterable[str | None]) -> str:
    """Return the first candidate that is a non-empty string, else ""."""
    for candidate in candidates:
        if candidate:
            return candidate
    return ""


def first_resolved(strategies: Iterable[Callable[[], T | None]]) -> T | None:
    """
    Try an ordered chain of strategies until one yields a value.

    Each strategy is a zero-argument callable that returns None when it
    cannot resolve the value. Later strategies are not evaluated once an
    earlier one succeeded.
    """
    for strategy in strategies:
        result = strategy()
        if result is not None:
            return result
    return None


# BPM


def parse_bpm(text: str | None) -> tuple[float, bool]:
    """Parse a decimal BPM value; valid values are finite and positive."""
    if not text:
        return BPM_UNDEFINED, False
    try:
        value = float(text.strip())
    except ValueError:
        return BPM_UNDEFINED, False
    if not math.isfinite(value) or value <= BPM_UNDEFINED:
        return BPM_UNDEFINED, False
    return value, True


def correct_bpm_scale(value: float, max_bpm: float) -> float:
    """
    Undo a dropped decimal point in a BPM value.

    Some taggers wrote 1352 or 14525 instead of 135.2 or 145.25. The value
    is divided by 10 until it no longer exceeds `max_bpm`.
    """
    if not math.isfinite(value) or max_bpm <= 0:
        return value
    while value > max_bpm:
        value /= 10.0
    return value


def format_bpm(bpm: Bpm) -> str:
    """Format a BPM with fractional digits, "" if undefined."""
    if not bpm.has_value():
        return ""
    text = repr(float(bpm.value))
    if text.endswith(".0"):
        text = text[:-2]
    return text


def format_bpm_integer(bpm: Bpm) -> str:
    """Format a BPM as an integer string (rounded half up), "" if undefined."""
    if not bpm.has_value():
        return ""
    return str(int(math.floor(bpm.value + 0.5)))


# Replay gain


def db_to_ratio(db: float) -> float:
    return math.pow(10.0, db / 20.0)


def ratio_to_db(ratio: float) -> float:
    return 20.0 * math.log10(ratio)


def parse_replay_gain_ratio(text: str | None) -> tuple[float, bool]:
    """
    Parse a gain like "-6.50 dB" into a linear ratio.

    The "dB" suffix is optional and case-insensitive.
    """
    if not text:
        return RATIO_UNDEFINED, False
    normalized = text.strip()
    if normalized.lower().endswith(_GAIN_SUFFIX):
        normalized = normalized[: -len(_GAIN_SUFFIX)].strip()
    try:
        db = float(normalized)
    except ValueError:
        return RATIO_UNDEFINED, False
    if not math.isfinite(db):
        return RATIO_UNDEFINED, False
    try:
        ratio = db_to_ratio(db)
    except OverflowError:
        return RATIO_UNDEFINED, False
    if not math.isfinite(ratio) or ratio <= RATIO_UNDEFINED:
        return RATIO_UNDEFINED, False
    return ratio, True


def parse_track_gain(text: str | None, log: logging.Logger | None = None) -> tuple[float, bool]:
    """
    Parse a stored track gain for the canonical model.

    Some applications (e.g. Rapid Evolution 3) write 0 dB even if the gain
    is undefined. A parsed ratio of exactly 0 dB therefore yields
    RATIO_UNDEFINED while still being reported as valid.
    """
    ratio, is_valid = parse_replay_gain_ratio(text)
    if is_valid and ratio == RATIO_0DB:
        (log or logger).debug("Ignoring possibly undefined gain: %s", text)
        ratio = RATIO_UNDEFINED
    return ratio, is_valid


def format_replay_gain_ratio(replay_gain: ReplayGain) -> str:
    """
    Format a ratio as a gain in dB, "" if undefined.

    Uses the shortest decimal that parses back to the same ratio, so that
    small gains are not rounded to 0 dB.
    """
    if not replay_gain.has_ratio():
        return ""
    db = ratio_to_db(replay_gain.ratio)
    # log10/pow may be off by an ulp, so try the neighbours of db as well
    candidates = (db, math.nextafter(db, -math.inf), math.nextafter(db, math.inf))
    for places in range(21):
        for candidate in candidates:
            text = f"{candidate:.{places}f}"
            if db_to_ratio(float(text)) == replay_gain.ratio:
                return f"{text} dB"
    return f"{db!r} dB"


def parse_replay_gain_peak(text: str | None) -> tuple[float, bool]:
    if not text:
        return PEAK_UNDEFINED, False
    try:
        peak = float(text.strip())
    except ValueError:
        return PEAK_UNDEFINED, False
    if not math.isfinite(peak) or peak < 0.0:
        return PEAK_UNDEFINED, False
    return peak, True


def format_replay_gain_peak(replay_gain: ReplayGain) -> str:
    if not replay_gain.has_peak():
        return ""
    return repr(float(replay_gain.peak))


# Track numbers


class TrackNumbersParse(StrEnum):
    """Outcome of parsing a track number/total pair into integers."""

    EMPTY = "empty"
    VALID = "valid"
    INVALID = "invalid"


def split_track_number(text: str | None) -> tuple[str, str]:
    """Split "N/M" into (number, total); total is "" if not present."""
    if not text:
        return "", ""
    parts = text.split("/")
    number = parts[0].strip()
    total = parts[1].strip() if len(parts) > 1 else ""
    return number, total


def join_track_number(number: str, total: str) -> str:
    """Inverse of split_track_number(), omitting "/total" for an empty total."""
    if not total:
        return number
    return f"{number}/{total}"


def _parse_track_int(text: str) -> int | None:
    if not text:
        return 0
    try:
        value = int(text)
    except ValueError:
        return None
    return value if value >= 0 else None


def parse_track_numbers(number: str, total: str) -> tuple[TrackNumbersParse, int, int]:
    """Parse number and total strings into non-negative integers (0 = absent)."""
    number = number.strip()
    total = total.strip()
    if not number and not total:
        return TrackNumbersParse.EMPTY, 0, 0
    actual = _parse_track_int(number)
    count = _parse_track_int(total)
    if actual is None or count is None:
        return TrackNumbersParse.INVALID, 0, 0
    return TrackNumbersParse.VALID, actual, count


def format_track_numbers(number: int, total: int) -> tuple[str, str]:
    """Format an integer pair as strings, mapping non-positive values to ""."""
    return (str(number) if number > 0 else "", str(total) if total > 0 else "")


# Dates


def parse_date(text: str | None) -> date | None:
    """Parse the ISO 8601 calendar date at the start of `text`."""
    if not text:
        return None
    candidate = text.strip()[:10]
    try:
        return date.fromisoformat(candidate)
    except ValueError:
        return None


def format_calendar_year(text: str | None) -> tuple[str, bool]:
    """Extract the calendar year (yyyy) from a date or year string."""
    parsed = parse_date(text)
    if parsed is not None:
        return f"{parsed.year:04d}", True
    if text and (match := _CALENDAR_YEAR.match(text)):
        return match.group(1), int(match.group(1)) > 0
    return "", False


def compose_id3_date(tyer: str, tdat: str) -> str:
    """
    Combine ID3v2.3 TYER (yyyy) and TDAT (ddMM) into an ISO date.

    Falls back to the bare year if TDAT is missing or does not form a
    valid date together with TYER.
    """
    year = tyer.strip()
    day_month = tdat.strip()
    if len(year) != ID3_TYER_LENGTH or len(day_month) != ID3_TDAT_LENGTH:
        return year
    if not (year.isdigit() and day_month.isdigit()):
        return year
    try:
        composed = date(int(year), int(day_month[2:4]), int(day_month[0:2]))
    except ValueError:
        return year
    return composed.isoformat()


def split_id3_date(text: str | None) -> tuple[str, str] | None:
    """Split a full date into ID3v2.3 (TYER, TDAT) strings, None if no date."""
    parsed = parse_date(text)
    if parsed is None:
        return None
    return f"{parsed.year:04d}", f"{parsed.day:02d}{parsed.month:02d}"
