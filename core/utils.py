"""Utility functions for common operations."""

import time
import uuid


def now_ms() -> int:
    """Current wall-clock time in integer epoch milliseconds."""
    return int(time.time() * 1000)


def new_entry_id() -> str:
    """Opaque unique id for queue and roster entries."""
    return uuid.uuid4().hex[:10]


def new_room_id() -> str:
    """Short room id that is easy to read out loud."""
    return uuid.uuid4().hex[:6]


def clamp_duration(seconds: float, minimum: int, maximum: int) -> int:
    """
    Round a requested slot duration and clamp it to the allowed range.

    Examples:
        clamp_duration(2, 5, 1200) -> 5
        clamp_duration(90.6, 5, 1200) -> 91
    """
    return max(minimum, min(maximum, int(round(seconds))))


def format_clock(seconds: float) -> str:
    """
    Format remaining seconds for a timer display.

    Examples:
        65.4 -> "01:05"
        3725 -> "01:02:05"

    Args:
        seconds: Remaining seconds (negative values display as zero)

    Returns:
        "MM:SS", or "HH:MM:SS" once an hour or more remains
    """
    total = max(0, int(seconds))
    hours = total // 3600
    minutes = (total % 3600) // 60
    secs = total % 60

    if hours > 0:
        return f"{hours:02d}:{minutes:02d}:{secs:02d}"
    return f"{minutes:02d}:{secs:02d}"
