"""Grouping and ordering of entries for the vote, tally and edit views."""

from collections.abc import Iterable

from anything.models import Entry, EntryView, GroupView, Votes, Weekday
from anything.scoring import entry_votes, score_for


def sort_group_names(names: Iterable[str], group_order: list[str] | None) -> list[str]:
    """Sort group names for display.

    Groups listed in group_order come first, in the order given. The rest
    follow alphabetically. Names in group_order that are not in names are
    ignored, and a name listed more than once takes its last position.
    """
    order_index = {name: i for i, name in enumerate(group_order or [])}

    def sort_key(name: str) -> tuple[int, int, str]:
        if name in order_index:
            return (0, order_index[name], "")
        return (1, 0, name)

    return sorted(set(names), key=sort_key)


def _group_entries(entries: Iterable[Entry]) -> dict[str, list[Entry]]:
    groups: dict[str, list[Entry]] = {}
    for entry in entries:
        groups.setdefault(entry.group, []).append(entry)
    return groups


def build_vote_view(
    entries: Iterable[Entry],
    person_votes: dict[str, dict[str, str]] | None,
    group_order: list[str] | None,
) -> list[GroupView]:
    """Build the voting page view for one person.

    Entries are sorted by name within each group and annotated with the
    person's current vote ("" if they have not voted). No scores are
    computed.
    """
    person_votes = person_votes or {}
    groups = _group_entries(entries)

    result = []
    for group_name in sort_group_names(groups, group_order):
        group_votes = person_votes.get(group_name, {})
        views = [
            EntryView(
                name=e.name,
                group=e.group,
                cost=e.cost,
                current_vote=group_votes.get(e.name, ""),
                open={day: list(periods) for day, periods in e.open.items()},
            )
            for e in sorted(groups[group_name], key=lambda e: e.name)
        ]
        result.append(GroupView(name=group_name, entries=views))
    return result


def build_entries_view(entries: Iterable[Entry], group_order: list[str] | None) -> list[GroupView]:
    """Build the entry editing view: the vote view without a person."""
    return build_vote_view(entries, None, group_order)


def _tally_sort_key(view: EntryView) -> tuple[int, int, str]:
    # Score descending, then cost ascending, then name ascending.
    return (-view.score, view.cost, view.name)


def build_tally_view(
    entries: Iterable[Entry],
    votes: Votes,
    people: Iterable[str],
    weekday: Weekday,
    period: str,
    group_order: list[str] | None,
) -> list[GroupView]:
    """Build the ranked tally for a weekday and period.

    Within each group, entries open at that time are listed before closed
    ones, whatever their score. Each of the two partitions is sorted by
    score (highest first), then cost (cheapest first), then name.

    Args:
        entries: Entry catalog
        votes: Full vote map (person -> group -> name -> vote)
        people: Everyone in the roster
        weekday: Day being tallied
        period: Period being tallied
        group_order: Explicit group precedence, may be empty

    Returns:
        Groups in display order with their ranked entries.
    """
    people = list(people)
    groups = _group_entries(entries)

    result = []
    for group_name in sort_group_names(groups, group_order):
        open_views: list[EntryView] = []
        closed_views: list[EntryView] = []
        for e in groups[group_name]:
            score = score_for(e, entry_votes(votes, e), people)
            closed = not e.is_open(weekday, period)
            view = EntryView(
                name=e.name,
                group=e.group,
                cost=e.cost,
                score=score.value,
                closed=closed,
                strong_no=score.strong_no,
            )
            (closed_views if closed else open_views).append(view)

        open_views.sort(key=_tally_sort_key)
        closed_views.sort(key=_tally_sort_key)
        result.append(GroupView(name=group_name, entries=open_views + closed_views))
    return result
