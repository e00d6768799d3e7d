"""Shared test helpers."""

from datetime import datetime, timezone

import pytest

from anything.models import Entry, Weekday
from anything.store import Store

PEOPLE = {
    "alice": "tokenA",
    "bob": "tokenB",
}

PERIODS = {
    "breakfast": (0, 10),
    "lunch": (10, 15),
    "dinner": (15, 0),
}


def make_entries() -> list[Entry]:
    """Four entries in two groups with different schedules and costs."""
    return [
        Entry(
            name="Pizza Place",
            group="Downtown",
            cost=2,
            open={"mon": ["lunch", "dinner"], "tue": ["lunch"], "wed": ["lunch", "dinner"]},
        ),
        Entry(
            name="Burger Joint",
            group="Downtown",
            cost=1,
            open={"mon": ["lunch", "dinner"], "tue": ["lunch", "dinner"]},
        ),
        Entry(
            name="Sushi Bar",
            group="Uptown",
            cost=4,
            open={"mon": ["dinner"], "fri": ["lunch", "dinner"]},
        ),
        Entry(
            name="Taco Stand",
            group="Uptown",
            cost=1,
            open={"mon": ["breakfast", "lunch"], "tue": ["breakfast", "lunch"]},
        ),
    ]


def at(weekday: Weekday, hour: int) -> datetime:
    """A UTC datetime on the given weekday and hour (week of 2024-01-01, a Monday)."""
    day = 1 + (int(weekday) - int(Weekday.MONDAY)) % 7
    return datetime(2024, 1, day, hour, 0, tzinfo=timezone.utc)


def make_store(entries: list[Entry] | None = None, **kwargs) -> Store:
    """Build a Store with the default people and periods."""
    kwargs.setdefault("people", PEOPLE)
    kwargs.setdefault("periods", PERIODS)
    return Store(entries=make_entries() if entries is None else entries, **kwargs)


def group_names(groups) -> list[str]:
    return [g.name for g in groups]


@pytest.fixture
def store():
    return make_store()
