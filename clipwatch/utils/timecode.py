"""Timecode parsing helpers."""
import math


class TimecodeError(ValueError):
    """Malformed highlight timecode."""
    pass


def timecode_to_seconds(value) -> float:
    """
    Convert a timecode to seconds.

    Accepts "HH:MM:SS", "MM:SS" or bare seconds; every part may carry a
    fractional component ("00:01:02.5"). Numbers are passed through.

    Raises:
        TimecodeError: If the value is empty, non-numeric, non-finite or negative
    """
    if isinstance(value, bool):
        raise TimecodeError(f"Invalid timecode: {value!r}")
    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            raise TimecodeError(f"Non-finite timecode: {value!r}")
        if value < 0:
            raise TimecodeError(f"Negative timecode: {value!r}")
        return float(value)
    if not isinstance(value, str) or not value.strip():
        raise TimecodeError(f"Invalid timecode: {value!r}")

    parts = value.strip().split(":")
    if len(parts) > 3:
        raise TimecodeError(f"Too many fields in timecode: {value!r}")

    try:
        numbers = [float(part) for part in parts]
    except ValueError:
        raise TimecodeError(f"Invalid timecode: {value!r}")

    if not all(math.isfinite(n) for n in numbers):
        raise TimecodeError(f"Non-finite timecode: {value!r}")
    if any(n < 0 for n in numbers):
        raise TimecodeError(f"Negative timecode: {value!r}")

    seconds = 0.0
    for n in numbers:
        seconds = seconds * 60 + n
    if not math.isfinite(seconds):
        raise TimecodeError(f"Timecode out of range: {value!r}")
    return seconds
