"""Meal period lookup and tally weekday resolution."""

from datetime import datetime
from types import MappingProxyType

from anything.models import Periods, Weekday

HOURS_PER_DAY = 24


def period_for_hour(periods: Periods, hour: int) -> str | None:
    """Return the name of the period covering an hour, or None in a gap.

    A period (start, end) covers start <= hour < end. When start > end the
    period wraps past midnight and covers hour >= start or hour < end.
    Periods are assumed not to overlap.
    """
    for name, (start, end) in periods.items():
        if start < end:
            if start <= hour < end:
                return name
        elif start > end:
            if hour >= start or hour < end:
                return name
    return None


def hours_for_period(start: int, end: int) -> list[int]:
    """List the hours covered by the half-open period [start, end)."""
    if start < end:
        return list(range(start, end))
    return list(range(start, HOURS_PER_DAY)) + list(range(end))


def sorted_periods(periods: Periods) -> list[str]:
    """Period names ordered by start hour, for navigation and resolution."""
    return sorted(periods, key=lambda name: (periods[name][0], name))


def resolve_tally_weekday(
    periods: Periods, period_order: list[str], now: datetime, requested: str
) -> Weekday:
    """Pick the weekday a tally for the requested period should show.

    If the requested period is the current one, or is still to come today,
    the tally is for today. If it is an earlier period that has already
    passed, the tally is for tomorrow. When the current hour falls in a gap
    there is no way to tell, so today is used.

    Args:
        periods: Period table
        period_order: Period names sorted by start hour
        now: Current time, already in the configured timezone
        requested: Period name being asked for

    Returns:
        The weekday to display.
    """
    today = Weekday.of(now)
    current = period_for_hour(periods, now.hour)
    if current == requested:
        return today

    if current in period_order and requested in period_order:
        if period_order.index(requested) < period_order.index(current):
            return today.next()

    return today


def weekday_for_short(short: str) -> Weekday | None:
    """Reverse lookup from a three-letter code ("mon") to a Weekday."""
    return _WEEKDAYS_BY_SHORT.get(short)


_WEEKDAYS_BY_SHORT = MappingProxyType({wd.short: wd for wd in Weekday})
