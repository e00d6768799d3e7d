"""In-memory vote and entry store with JSON snapshot persistence."""

import copy
import io
import json
import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone, tzinfo
from typing import IO, Any

from anything.logger import get_logger
from anything.models import KEY_SEPARATOR, Entry, GroupView, Periods, Votes, Weekday, is_valid_vote
from anything.ranking import build_entries_view, build_tally_view, build_vote_view
from anything.rwlock import RWLock
from anything.schedule import period_for_hour, resolve_tally_weekday, sorted_periods

log = get_logger("anything.store")


class SnapshotError(ValueError):
    """Raised when a persisted snapshot cannot be deserialized."""
    pass


@dataclass
class _State:
    entries: list[Entry] = field(default_factory=list)
    votes: Votes = field(default_factory=dict)
    group_order: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "entries": [e.to_dict() for e in self.entries],
            "votes": self.votes,
            "groupOrder": self.group_order,
        }

    def entry_keys(self) -> set[tuple[str, str]]:
        return {e.key for e in self.entries}


class Store:
    """Shared state of the application: entries, votes and group order.

    All state sits behind one reader/writer lock. Queries run concurrently;
    mutations and snapshot loads are exclusive. The store never does I/O on
    its own: it is loaded and saved by a persistence collaborator, which it
    notifies through on_change after every mutation.

    Args:
        people: Dict mapping person name -> access token
        periods: Period table
        entries: Initial entry catalog
        group_order: Initial explicit group ordering
        tz: Timezone used to read the clock
        now_func: Returns the current time; defaults to the system clock
        on_change: Called with no arguments after every mutation
    """

    def __init__(
        self,
        people: dict[str, str],
        periods: Periods,
        entries: Iterable[Entry] = (),
        group_order: list[str] | None = None,
        tz: tzinfo = timezone.utc,
        now_func: Callable[[], datetime] | None = None,
        on_change: Callable[[], None] | None = None,
    ):
        self._people = dict(people)
        self._tokens = {token: person for person, token in self._people.items() if token}
        self._periods = {name: (int(b[0]), int(b[1])) for name, b in periods.items()}
        self._period_list = sorted_periods(self._periods)
        self._tz = tz
        self._now_func = now_func or (lambda: datetime.now(timezone.utc))
        self.on_change = on_change

        self._lock = RWLock()
        self._state = _State(
            entries=[copy.deepcopy(e) for e in entries],
            group_order=list(group_order or []),
        )

    # ------------------------------------------------------------------
    # Static lookups (immutable after construction, no lock needed)
    # ------------------------------------------------------------------

    @property
    def people(self) -> list[str]:
        return sorted(self._people)

    @property
    def periods(self) -> Periods:
        return dict(self._periods)

    @property
    def period_list(self) -> list[str]:
        """Period names sorted by start hour."""
        return list(self._period_list)

    def is_period(self, name: str) -> bool:
        return name in self._periods

    def person_for_token(self, token: str) -> str | None:
        """Look up who a token belongs to. Empty and unknown tokens give None."""
        if not token:
            return None
        return self._tokens.get(token)

    def now(self) -> datetime:
        return self._now_func().astimezone(self._tz)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def _changed(self) -> None:
        if self.on_change is not None:
            self.on_change()

    def update_votes(self, person: str, votes: dict[str, str]) -> None:
        """Replace all of a person's votes.

        Keys are "Group|Name". Keys without a separator, keys naming an entry
        that does not exist and unknown vote values are dropped. Anything not
        in the submission is no longer voted by this person.
        """
        with self._lock.write():
            known = self._state.entry_keys()
            cleaned: dict[str, dict[str, str]] = {}
            for key, vote in votes.items():
                group, sep, name = key.partition(KEY_SEPARATOR)
                if not sep:
                    continue
                if (group, name) not in known:
                    continue
                if not is_valid_vote(vote):
                    continue
                cleaned.setdefault(group, {})[name] = vote
            self._state.votes[person] = cleaned
        self._changed()

    def update_entries(self, entries: Iterable[Entry]) -> None:
        """Replace the whole entry catalog.

        Votes for removed entries are kept but never shown.
        """
        entries = [copy.deepcopy(e) for e in entries]
        with self._lock.write():
            self._state.entries = entries
        self._changed()

    def update_group_order(self, order: Iterable[str]) -> None:
        order = list(order)
        with self._lock.write():
            self._state.group_order = order
        self._changed()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def load(self, fp: IO[str]) -> None:
        """Load state from a JSON snapshot.

        An empty or truncated snapshot leaves the current state untouched:
        losing saved data is better than refusing to start. Fields missing
        from the document (or null) are left as they are, as is the whole
        state when the document itself is null.

        Raises:
            SnapshotError: If the document is not valid JSON or has the
                wrong shape
        """
        text = fp.read()
        if isinstance(text, bytes):
            text = text.decode("utf-8")
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            if _is_truncated(text, e):
                log.warning(f"Ignoring empty or truncated snapshot ({e})")
                return
            raise SnapshotError(f"cannot deserialize data: {e}") from e

        if data is None:
            log.warning("Ignoring null snapshot")
            return

        entries, votes, group_order = _parse_snapshot(data)

        with self._lock.write():
            if entries is not None:
                self._state.entries = entries
            if votes is not None:
                self._state.votes = votes
            if group_order is not None:
                self._state.group_order = group_order
            counts = len(self._state.entries), len(self._state.votes)
        log.info(f"Loaded snapshot: {counts[0]} entries, {counts[1]} people with votes")

    def save(self, fp: IO[str]) -> None:
        """Write the full state as a JSON snapshot."""
        with self._lock.read():
            text = json.dumps(self._state.to_dict(), ensure_ascii=False)
        fp.write(text + "\n")

    def dumps(self) -> str:
        buf = io.StringIO()
        self.save(buf)
        return buf.getvalue()

    def loads(self, text: str) -> None:
        self.load(io.StringIO(text))

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def entries(self) -> list[Entry]:
        with self._lock.read():
            return copy.deepcopy(self._state.entries)

    def votes(self) -> Votes:
        with self._lock.read():
            return copy.deepcopy(self._state.votes)

    def group_order(self) -> list[str]:
        with self._lock.read():
            return list(self._state.group_order)

    def vote_view(self, person: str) -> list[GroupView]:
        """Entries grouped for the voting page, with the person's current votes."""
        with self._lock.read():
            return build_vote_view(
                self._state.entries,
                copy.deepcopy(self._state.votes.get(person)),
                self._state.group_order,
            )

    def entries_view(self) -> list[GroupView]:
        with self._lock.read():
            return build_entries_view(self._state.entries, self._state.group_order)

    def tally_view(self, weekday: Weekday, period: str) -> list[GroupView]:
        """Ranked entries for a weekday and period."""
        with self._lock.read():
            return build_tally_view(
                self._state.entries,
                self._state.votes,
                self._people,
                weekday,
                period,
                self._state.group_order,
            )

    def tally_weekday(self, period: str) -> Weekday:
        """Weekday a tally for the period should show, given the current time."""
        return resolve_tally_weekday(self._periods, self._period_list, self.now(), period)

    def current_slot(self) -> tuple[Weekday, str | None]:
        """Current weekday and period (None when the hour is in a gap)."""
        now = self.now()
        return Weekday.of(now), period_for_hour(self._periods, now.hour)


def _parse_snapshot(data: Any) -> tuple[list[Entry] | None, Votes | None, list[str] | None]:
    """Validate a decoded snapshot document.

    Returns:
        (entries, votes, group_order), each None when absent from the document.

    Raises:
        SnapshotError: If the document or one of its fields has the wrong shape
    """
    if not isinstance(data, dict):
        raise SnapshotError(f"cannot deserialize data: expected an object, got {type(data).__name__}")

    entries = None
    raw_entries = data.get("entries")
    if raw_entries is not None:
        if not isinstance(raw_entries, list):
            raise SnapshotError("cannot deserialize data: entries must be a list")
        try:
            entries = [Entry.from_dict(item) for item in raw_entries]
        except ValueError as e:
            raise SnapshotError(f"cannot deserialize data: {e}") from e

    votes = None
    raw_votes = data.get("votes")
    if raw_votes is not None:
        if not isinstance(raw_votes, dict):
            raise SnapshotError("cannot deserialize data: votes must be an object")
        votes = {}
        for person, groups in raw_votes.items():
            if groups is None:
                votes[person] = {}
                continue
            if not isinstance(groups, dict):
                raise SnapshotError(f"cannot deserialize data: votes for {person!r} must be an object")
            votes[person] = {}
            for group, names in groups.items():
                if names is None:
                    names = {}
                if not isinstance(names, dict) or not all(v is None or isinstance(v, str) for v in names.values()):
                    raise SnapshotError(
                        f"cannot deserialize data: votes for {person!r} in {group!r} must map names to strings"
                    )
                votes[person][group] = {name: vote or "" for name, vote in names.items()}

    group_order = None
    raw_order = data.get("groupOrder")
    if raw_order is not None:
        if not isinstance(raw_order, list) or not all(g is None or isinstance(g, str) for g in raw_order):
            raise SnapshotError("cannot deserialize data: groupOrder must be a list of strings")
        group_order = [g or "" for g in raw_order]

    return entries, votes, group_order


# Prefixes of JSON literals, and of a number cut after "." or an exponent marker.
_LITERALS = ("true", "false", "null", "NaN", "Infinity", "-Infinity")
_NUMBER_TAIL = re.compile(r"\.|[eE][-+]?")


def _is_truncated(text: str, error: json.JSONDecodeError) -> bool:
    """Whether a decode error is caused by the text ending mid-document.

    That is the case when nothing but whitespace follows the error
    position, when a string is left open, or when what follows is the
    unfinished start of a literal or number.
    """
    rest = text[error.pos:].strip()
    if not rest:
        return True
    if error.msg.startswith("Unterminated string"):
        return True
    if any(literal.startswith(rest) for literal in _LITERALS):
        return True
    return _NUMBER_TAIL.fullmatch(rest) is not None
