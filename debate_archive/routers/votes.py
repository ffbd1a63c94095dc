"""
Votes router: cast and rescind votes.

Business rules:
1. One vote per user per entry; re-voting overwrites
2. Casting is rate limited (per user and per IP, per minute)
3. Every response carries a tally recomputed after the write
"""
from fastapi import APIRouter, Query
from debate_archive.dependencies import (
    AppSettings,
    CurrentIdentity,
    DbSession,
    IpHash,
    Limiter,
)
from debate_archive.models import RateLimitAction
from debate_archive.schemas import (
    VoteCountResponse,
    VoteCreate,
    VoteDeleteResponse,
    VoteResponse,
    VoteResultResponse,
)
from debate_archive.services import votes as vote_service
from debate_archive.services.tally import tally

router = APIRouter()


@router.post(
    "/votes",
    response_model=VoteResultResponse,
    summary="Cast or change a vote",
    responses={
        400: {"description": "Invalid vote type or entry id"},
        401: {"description": "Not authenticated"},
        404: {"description": "Entry not found"},
        429: {"description": "Rate limit exceeded"}
    }
)
async def cast_vote(
    ballot: VoteCreate,
    identity: CurrentIdentity,
    ip_hash: IpHash,
    limiter: Limiter,
    settings: AppSettings,
    db: DbSession,
):
    limiter.enforce(
        identity.user_id,
        ip_hash,
        RateLimitAction.VOTE.value,
        actor_limit=settings.VOTE_ACTOR_LIMIT,
        ip_limit=settings.VOTE_IP_LIMIT,
        window_minutes=settings.VOTE_WINDOW_MINUTES,
    )

    vote = vote_service.cast_vote(
        db, identity.user_id, ballot.entry_id, ballot.vote_type, ip_hash
    )
    limiter.record(identity.user_id, ip_hash, RateLimitAction.VOTE.value)

    return VoteResultResponse(
        vote=VoteResponse.model_validate(vote),
        vote_count=VoteCountResponse.from_tally(tally(db, ballot.entry_id)),
    )


@router.delete(
    "/votes",
    response_model=VoteDeleteResponse,
    summary="Remove my vote",
    responses={
        401: {"description": "Not authenticated"},
        404: {"description": "Entry or vote not found"}
    }
)
async def delete_vote(
    identity: CurrentIdentity,
    db: DbSession,
    entry_id: int = Query(...),
):
    vote_service.rescind_vote(db, identity.user_id, entry_id)
    return VoteDeleteResponse(
        success=True,
        vote_count=VoteCountResponse.from_tally(tally(db, entry_id)),
    )
