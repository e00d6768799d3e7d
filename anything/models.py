"""Core data models for entries, votes, weekdays and view data."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import IntEnum
from types import MappingProxyType
from typing import Any, Self

# Vote value -> numeric score, lowest to highest.
VOTE_SCORES = MappingProxyType({
    "strong-no": 0,
    "no": 1,
    "yes": 2,
    "strong-yes": 3,
})

DEFAULT_VOTE = "yes"
VETO_VOTE = "strong-no"

# Separator between group and entry name in form keys.
KEY_SEPARATOR = "|"

COST_GLYPH = "$"
MIN_COST = 1
MAX_COST = 4

# Period name -> (start_hour, end_hour), half-open, wrapping when start > end.
Periods = dict[str, tuple[int, int]]

# person -> group -> entry name -> vote value
Votes = dict[str, dict[str, dict[str, str]]]


def is_valid_vote(value: str) -> bool:
    return value in VOTE_SCORES


def _or_zero(value: Any, zero: Any) -> Any:
    return zero if value is None else value


class Weekday(IntEnum):
    """Day of the week, numbered from Sunday like most calendars."""
    SUNDAY = 0
    MONDAY = 1
    TUESDAY = 2
    WEDNESDAY = 3
    THURSDAY = 4
    FRIDAY = 5
    SATURDAY = 6

    @property
    def short(self) -> str:
        """Three-letter lowercase code used as open-schedule keys."""
        return self.name[:3].lower()

    @property
    def full(self) -> str:
        return self.name.capitalize()

    @classmethod
    def of(cls, moment: datetime) -> Self:
        """Weekday of a datetime (Python numbers Monday as 0)."""
        return cls((moment.weekday() + 1) % 7)

    def next(self) -> "Weekday":
        return Weekday((self + 1) % 7)

    def previous(self) -> "Weekday":
        return Weekday((self - 1) % 7)

    def to_dict(self) -> dict[str, str]:
        return {"short": self.short, "full": self.full}


@dataclass
class Entry:
    """A votable place or dish.

    Attributes:
        name: Entry name, unique within its group
        group: Group the entry is listed under
        cost: Cost tier (1 = cheapest)
        open: Dict mapping weekday short code -> period names the entry is open

    Example:
        >>> entry = Entry(
        ...     name="Pizza Place",
        ...     group="Downtown",
        ...     cost=2,
        ...     open={"mon": ["lunch", "dinner"], "tue": ["lunch"]},
        ... )
    """
    name: str
    group: str
    cost: int
    open: dict[str, list[str]] = field(default_factory=dict)

    @property
    def key(self) -> tuple[str, str]:
        return (self.group, self.name)

    @property
    def cost_display(self) -> str:
        return COST_GLYPH * self.cost

    def is_open(self, weekday: Weekday, period: str) -> bool:
        """Check whether the entry is open on a weekday during a period."""
        return period in self.open.get(weekday.short, [])

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "group": self.group,
            "cost": self.cost,
            "open": {day: list(periods) for day, periods in self.open.items()},
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        """Build an Entry from a snapshot object.

        Keys are matched case-insensitively so that older snapshots written
        with capitalized field names still load. Missing or null fields take
        their zero value ("", 0 or an empty schedule), and a null entry is an
        entry with every field zero.

        Raises:
            ValueError: If a field has the wrong type
        """
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ValueError(f"entry must be an object, got {type(data).__name__}")
        fields = {str(k).lower(): v for k, v in data.items()}

        name = _or_zero(fields.get("name"), "")
        group = _or_zero(fields.get("group"), "")
        cost = _or_zero(fields.get("cost"), 0)
        open_ = _or_zero(fields.get("open"), {})

        if not isinstance(name, str) or not isinstance(group, str):
            raise ValueError("entry name and group must be strings")
        if isinstance(cost, bool) or not isinstance(cost, int):
            raise ValueError(f"entry {name!r} cost must be an integer")
        if not isinstance(open_, dict):
            raise ValueError(f"entry {name!r} open schedule must be an object")
        schedule: dict[str, list[str]] = {}
        for day, periods in open_.items():
            periods = _or_zero(periods, [])
            if not isinstance(periods, list) or not all(isinstance(p, str) for p in periods):
                raise ValueError(f"entry {name!r} periods for {day!r} must be a list of strings")
            schedule[day] = list(periods)

        return cls(name=name, group=group, cost=cost, open=schedule)


@dataclass
class EntryView:
    """An entry as shown on the vote, tally or edit page.

    Vote and edit views fill current_vote and open; tally views fill score,
    closed and strong_no.
    """
    name: str
    group: str
    cost: int
    current_vote: str = ""
    score: int = 0
    open: dict[str, list[str]] = field(default_factory=dict)
    closed: bool = False
    strong_no: bool = False

    @property
    def cost_display(self) -> str:
        return COST_GLYPH * self.cost

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "group": self.group,
            "cost": self.cost,
            "cost_display": self.cost_display,
            "current_vote": self.current_vote,
            "score": self.score,
            "open": self.open,
            "closed": self.closed,
            "strong_no": self.strong_no,
        }


@dataclass
class GroupView:
    """A named group of entries in display order."""
    name: str
    entries: list[EntryView] = field(default_factory=list)

    def entry_names(self) -> list[str]:
        return [e.name for e in self.entries]

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "entries": [e.to_dict() for e in self.entries],
        }
