"""
Vote tally engine.

Counts come straight from the votes table on every call; the weighted
score is a pure function of those counts. Nothing is cached across
requests.
"""
import math
from typing import Dict, Iterable, NamedTuple
from sqlalchemy import func, select
from sqlalchemy.orm import Session
from debate_archive.models import Vote, VoteType

WILSON_Z = 1.96  # 95% confidence


class VoteTally(NamedTuple):
    upvotes: int
    downvotes: int
    weighted_score: float


def weighted_score(upvotes: int, downvotes: int) -> float:
    """
    Lower bound of the Wilson score interval for the upvote share,
    scaled to 0..100. Few votes pull the score toward zero, so 1 up / 0
    down ranks below 40 up / 2 down.
    """
    n = upvotes + downvotes
    if n == 0:
        return 0.0
    p = upvotes / n
    z2 = WILSON_Z * WILSON_Z
    centre = p + z2 / (2 * n)
    margin = WILSON_Z * math.sqrt((p * (1 - p) + z2 / (4 * n)) / n)
    lower = (centre - margin) / (1 + z2 / n)
    return round(max(lower, 0.0) * 100, 2)


def _make(upvotes: int, downvotes: int) -> VoteTally:
    return VoteTally(upvotes, downvotes, weighted_score(upvotes, downvotes))


def tally(db: Session, entry_id: int) -> VoteTally:
    return tally_many(db, [entry_id])[entry_id]


def tally_many(db: Session, entry_ids: Iterable[int]) -> Dict[int, VoteTally]:
    """One grouped query for a page of entries. Entries without votes get zeros."""
    ids = list(entry_ids)
    counts = {entry_id: {VoteType.UPVOTE: 0, VoteType.DOWNVOTE: 0} for entry_id in ids}
    if ids:
        rows = db.execute(
            select(Vote.entry_id, Vote.vote_type, func.count())
            .where(Vote.entry_id.in_(ids))
            .group_by(Vote.entry_id, Vote.vote_type)
        ).all()
        for entry_id, vote_type, count in rows:
            counts[entry_id][VoteType(vote_type)] = count

    return {
        entry_id: _make(c[VoteType.UPVOTE], c[VoteType.DOWNVOTE])
        for entry_id, c in counts.items()
    }
