"""Rate and delta computation shared by every model.

Turns two readings of a cumulative kernel counter plus the elapsed time
between them into a percentage or a per-second rate.

Functions:
    elapsed_usec: Whole microseconds in an interval
    usec_pct: Percentage of wall-clock time from a microsecond counter
    count_per_sec: Per-second rate of a plain counter
    opt_add: Sum of optional values, absence is the additive identity
    opt_multiply: Scale an optional value

Every function returns None when an operand is absent or the interval is not
usable. No clamping is done when a counter goes backwards; the signed
difference is returned as is. Counter resets are detected by the callers
(e.g. cgroup inode checks) rather than here.
"""

from __future__ import annotations

from datetime import timedelta
from typing import TypeVar

from sysview.core.constants import USEC_PER_SEC

T = TypeVar("T")


def elapsed_usec(elapsed: timedelta) -> int:
    """Whole microseconds in ``elapsed``."""
    return elapsed // timedelta(microseconds=1)


def usec_pct(begin: int | None, end: int | None, elapsed: timedelta) -> float | None:
    """Compute the share of ``elapsed`` spent according to a microsecond counter.

    Args:
        begin: Counter value at the start of the interval
        end: Counter value at the end of the interval
        elapsed: Wall-clock time between the two readings

    Returns:
        Percentage (may exceed 100 on multi-core counters), None if an
        operand is missing or ``elapsed`` is not positive
    """
    if begin is None or end is None:
        return None
    usec = elapsed_usec(elapsed)
    if usec <= 0:
        return None
    return (end - begin) * 100.0 / usec


def count_per_sec(begin: int | None, end: int | None, elapsed: timedelta) -> float | None:
    """Compute the per-second rate of a plain counter.

    Args:
        begin: Counter value at the start of the interval
        end: Counter value at the end of the interval
        elapsed: Wall-clock time between the two readings

    Returns:
        Rate per second, None if an operand is missing or ``elapsed`` is not
        positive
    """
    if begin is None or end is None:
        return None
    usec = elapsed_usec(elapsed)
    if usec <= 0:
        return None
    return (end - begin) * USEC_PER_SEC / usec


def opt_add(lhs: T | None, rhs: T | None) -> T | None:
    """Add two optional values.

    ``None + None`` is None, ``None + x`` is ``x``. Works for any type with
    ``+``, including models that define field-wise addition.
    """
    if lhs is None:
        return rhs
    if rhs is None:
        return lhs
    return lhs + rhs  # type: ignore[operator]


def opt_multiply(value: int | float | None, factor: int | float) -> int | float | None:
    """Scale an optional value, e.g. sectors to bytes."""
    if value is None:
        return None
    return value * factor
