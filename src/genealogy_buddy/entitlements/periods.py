"""Monthly accounting periods.

A period starts at the first instant of a calendar month in UTC (server
clock) and ends, exclusive, at the first instant of the next month. The
usage counter, the evaluator and the reporter all go through these helpers
so they never disagree on the current period.
"""

from collections.abc import Callable
from datetime import UTC, datetime

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Default clock."""
    return datetime.now(UTC)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def period_start(now: datetime) -> datetime:
    """First instant of the month containing ``now``."""
    now = ensure_utc(now)
    return datetime(now.year, now.month, 1, tzinfo=UTC)


def period_end(now: datetime) -> datetime:
    """First instant of the month after the one containing ``now``."""
    start = period_start(now)
    if start.month == 12:
        return datetime(start.year + 1, 1, 1, tzinfo=UTC)
    return datetime(start.year, start.month + 1, 1, tzinfo=UTC)


def next_reset_at(now: datetime) -> datetime:
    """When the counters of the current period stop applying."""
    return period_end(now)
