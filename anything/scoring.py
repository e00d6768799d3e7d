"""Weighted scoring of entries from everyone's votes."""

from collections.abc import Iterable
from dataclasses import dataclass

from anything.models import DEFAULT_VOTE, VETO_VOTE, VOTE_SCORES, Entry, Votes

# Multiplier applied to the summed vote scores before subtracting cost.
CONSENSUS_WEIGHT = 3


@dataclass(frozen=True)
class Score:
    """Score of an entry.

    Attributes:
        value: sum of vote scores * CONSENSUS_WEIGHT - cost
        strong_no: Whether anyone voted strong-no for the entry
    """
    value: int
    strong_no: bool = False


def entry_votes(votes: Votes, entry: Entry) -> dict[str, str]:
    """Collect each person's vote for one entry.

    Returns:
        Dict mapping person -> vote value, only for people who voted.
    """
    result = {}
    for person, person_votes in votes.items():
        vote = person_votes.get(entry.group, {}).get(entry.name)
        if vote is not None:
            result[person] = vote
    return result


def score_for(entry: Entry, votes_for_entry: dict[str, str], people: Iterable[str]) -> Score:
    """Compute the score of an entry.

    Every person in the roster counts. Anyone who has not voted on the entry
    is treated as voting "yes", so an unvoted entry is acceptable rather than
    neutral. Votes from people outside the roster are ignored.

    Args:
        entry: The entry being scored
        votes_for_entry: Dict mapping person -> vote value for this entry
        people: Names of everyone in the roster

    Returns:
        Score with the weighted value and the veto flag.
    """
    total = 0
    strong_no = False
    for person in people:
        vote = votes_for_entry.get(person, DEFAULT_VOTE)
        # Unknown values from a loaded snapshot score as strong-no, without the veto.
        total += VOTE_SCORES.get(vote, 0)
        if vote == VETO_VOTE:
            strong_no = True
    return Score(value=total * CONSENSUS_WEIGHT - entry.cost, strong_no=strong_no)
