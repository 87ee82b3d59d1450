"""
Cohort predicate.

A cohort classifies a contributor by comparing two adjacent, equal-length
windows: the current window [now - range, now] and the previous window
[now - 2*range, now - range). Every category store applies the same filter so
counts stay comparable across categories.
"""
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable, Iterable, List, Optional


class Cohort(str, Enum):
    ALL = 'all'
    ACTIVE = 'active'
    NEW = 'new'
    ALUMNI = 'alumni'

    @classmethod
    def parse(cls, value) -> 'Cohort':
        """Return the matching cohort; anything unrecognized falls back to ALL."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value or '').strip().lower())
        except ValueError:
            return cls.ALL


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _identity(item):
    return item


def cohort_windows(range_days: int, now: datetime):
    """Return (previous_start, current_start, now) for the given range."""
    span = timedelta(days=range_days)
    return now - span - span, now - span, now


def _split(items: Iterable[Any], range_days: int, now: datetime, time_of: Callable[[Any], datetime]):
    previous_start, current_start, end = cohort_windows(range_days, now)
    current: List[Any] = []
    previous: List[Any] = []
    for item in items:
        t = time_of(item)
        if current_start <= t <= end:
            current.append(item)
        elif previous_start <= t < current_start:
            previous.append(item)
    return current, previous


def _holds(cohort: 'Cohort', current: list, previous: list) -> bool:
    if cohort == Cohort.ACTIVE:
        return bool(current) and bool(previous)
    if cohort == Cohort.NEW:
        return bool(current) and not previous
    if cohort == Cohort.ALUMNI:
        return not current and bool(previous)
    return bool(current)


def matches_cohort(cohort, times: Iterable[datetime], range_days: int, now: Optional[datetime] = None) -> bool:
    """True when a contributor with these event times belongs to the cohort."""
    current, previous = _split(times, range_days, now or utc_now(), _identity)
    return _holds(Cohort.parse(cohort), current, previous)


def cohort_filter(
    cohort,
    range_days: int,
    now: Optional[datetime] = None,
    time_of: Callable[[Any], datetime] = _identity,
) -> Callable[[Iterable[Any]], List[Any]]:
    """Build the temporal filter for a cohort.

    The returned callable takes one contributor's events (or bare timestamps,
    see ``time_of``) and returns the qualifying ones. For ALL these are the
    current-window events. For the other cohorts the predicate is evaluated
    over both windows and, when it holds, every event of the double window
    qualifies; otherwise none do.
    """
    cohort = Cohort.parse(cohort)
    now = now or utc_now()

    def _apply(items: Iterable[Any]) -> List[Any]:
        current, previous = _split(items, range_days, now, time_of)
        if cohort == Cohort.ALL:
            return current
        if not _holds(cohort, current, previous):
            return []
        return previous + current

    return _apply
