"""Pause-aware countdown arithmetic.

All functions are pure: they take timer fields and the current time in epoch
milliseconds and return new values. Resuming slides the deadline forward by
exactly the paused interval, so only speaking time counts toward completion.
"""

from typing import TypeVar

from models.session import TimerFields

T = TypeVar("T", bound=TimerFields)


def arm(duration_sec: int, now: int, paused: bool = False) -> TimerFields:
    """Fresh timer for a slot starting at ``now``."""
    return TimerFields(
        base_duration_sec=duration_sec,
        start_time_ms=now,
        end_time_ms=now + duration_sec * 1000,
        paused=paused,
        paused_at_ms=now if paused else None,
        accumulated_pause_ms=0,
    )


def armed_fields(duration_sec: int, now: int, paused: bool = False) -> dict:
    """Timer fields as a model_copy update for any TimerFields subclass."""
    return dict(arm(duration_sec, now, paused=paused))


def remaining_seconds(timer: TimerFields | None, now: int) -> float:
    """
    Seconds left on the timer, clamped at zero.

    While paused the value is frozen at the moment of pausing.
    """
    if timer is None:
        return 0.0
    if timer.paused:
        paused_at = timer.paused_at_ms if timer.paused_at_ms is not None else now
        return max(0.0, (timer.end_time_ms - paused_at) / 1000)
    return max(0.0, (timer.end_time_ms - now) / 1000)


def is_finished(timer: TimerFields | None, now: int) -> bool:
    """True once a running timer has no time left."""
    return timer is not None and remaining_seconds(timer, now) <= 0


def pause(timer: T, now: int) -> T:
    if timer.paused:
        return timer
    return timer.model_copy(update={"paused": True, "paused_at_ms": now})


def resume(timer: T, now: int) -> T:
    if not timer.paused:
        return timer
    paused_at = timer.paused_at_ms if timer.paused_at_ms is not None else now
    delta = max(0, now - paused_at)
    return timer.model_copy(
        update={
            "paused": False,
            "paused_at_ms": None,
            "accumulated_pause_ms": timer.accumulated_pause_ms + delta,
            "end_time_ms": timer.end_time_ms + delta,
        }
    )


def reset(timer: T, now: int, duration_sec: int | None = None, paused: bool = False) -> T:
    """Re-anchor the timer at ``now`` with its base (or a new) duration."""
    duration = timer.base_duration_sec if duration_sec is None else duration_sec
    return timer.model_copy(update=armed_fields(duration, now, paused=paused))
