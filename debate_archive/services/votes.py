"""
Casting and rescinding votes. One vote per (voter, entry); re-voting
overwrites the previous vote_type instead of adding a row.
"""
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from debate_archive.errors import NotFound
from debate_archive.models import Entry, Vote, VoteType, utcnow


def cast_vote(db: Session, voter_id: str, entry_id: int, vote_type: VoteType, ip_hash: str) -> Vote:
    if db.get(Entry, entry_id) is None:
        raise NotFound("Entry not found")

    vote = db.get(Vote, (voter_id, entry_id))
    if vote is None:
        try:
            with db.begin_nested():
                vote = Vote(voter_id=voter_id, entry_id=entry_id, vote_type=vote_type, ip_hash=ip_hash)
                db.add(vote)
            return vote
        except IntegrityError:
            # Same voter raced us on another request; fall through to overwrite
            vote = db.get(Vote, (voter_id, entry_id), populate_existing=True)

    vote.vote_type = vote_type
    vote.ip_hash = ip_hash
    vote.updated_at = utcnow()
    db.flush()
    return vote


def rescind_vote(db: Session, voter_id: str, entry_id: int) -> None:
    """Remove the caller's own vote. NotFound if the entry or the vote is absent."""
    if db.get(Entry, entry_id) is None:
        raise NotFound("Entry not found")
    vote = db.get(Vote, (voter_id, entry_id))
    if vote is None:
        raise NotFound("No vote to remove")
    db.delete(vote)
    db.flush()
