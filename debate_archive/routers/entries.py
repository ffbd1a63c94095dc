"""
Entries router: public listing, submission and verifier moderation.

Business rules:
1. GET endpoints are public; listing defaults to VERIFIED entries
2. Submission requires a session and is rate limited per user and per IP
3. PATCH/DELETE require verifier capability
4. Every moderation change writes a revision in the same transaction
5. Every response carries a tally computed in this request
"""
from fastapi import APIRouter, status
from typing import Optional
from debate_archive.dependencies import (
    AppSettings,
    CurrentIdentity,
    DbSession,
    IpHash,
    Limiter,
    PageParams,
    VerifierIdentity,
)
from debate_archive.models import EntryStatus, RateLimitAction
from debate_archive.schemas import (
    EntryCreate,
    EntryResponse,
    EntryUpdate,
    RevisionResponse,
    SuccessResponse,
)
from debate_archive.services import entries as entry_service
from debate_archive.services import revisions
from debate_archive.services.tally import tally, tally_many

router = APIRouter()


@router.get(
    "/entries",
    response_model=list[EntryResponse],
    summary="List entries by status",
    responses={
        200: {"description": "Entries with stats, verses and vote counts"},
        400: {"description": "Invalid paging or status"}
    }
)
async def list_entries(
    db: DbSession,
    page: PageParams,
    status: EntryStatus = EntryStatus.VERIFIED,
    q: Optional[str] = None,
):
    """
    Public listing, newest first.

    Query:
    - status: pending / verified / rejected (default verified)
    - q: case-insensitive match on question or answer summary
    - limit/offset: paging (limit default 20, max 100)

    Tallies for the whole page come from one grouped query.
    """
    found = entry_service.list_entries(
        db, status=status, q=q, limit=page.limit, offset=page.offset
    )
    tallies = tally_many(db, [e.id for e in found])
    return [EntryResponse.build(e, tallies[e.id]) for e in found]


@router.get(
    "/entries/{entry_id}",
    response_model=EntryResponse,
    summary="Get a single entry",
    responses={404: {"description": "Entry not found"}}
)
async def get_entry(entry_id: int, db: DbSession):
    entry = entry_service.get_entry(db, entry_id)
    return EntryResponse.build(entry, tally(db, entry.id))


@router.post(
    "/entries",
    response_model=EntryResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit new entry",
    responses={
        201: {"description": "Entry created (pending review)"},
        400: {"description": "Invalid YouTube URL or malformed input"},
        401: {"description": "Not authenticated"},
        429: {"description": "Rate limit exceeded"}
    }
)
async def create_entry(
    submission: EntryCreate,
    identity: CurrentIdentity,
    ip_hash: IpHash,
    limiter: Limiter,
    settings: AppSettings,
    db: DbSession,
):
    """
    Create a new PENDING entry.
    Flow:
    1. Check rate limits (per user, per IP)
    2. Parse YouTube URL, validate and expand verses (400 on failure)
    3. Insert entry, then upsert and link stats and verses
    4. Record the rate-limited action
    5. Commit (get_db) and return with a zero tally

    The action is recorded only after the insert succeeds, so rejected
    submissions do not use up the caller's quota.
    """
    limiter.enforce(
        identity.user_id,
        ip_hash,
        RateLimitAction.SUBMIT_ENTRY.value,
        actor_limit=settings.SUBMIT_ACTOR_LIMIT,
        ip_limit=settings.SUBMIT_IP_LIMIT,
        window_minutes=settings.SUBMIT_WINDOW_MINUTES,
    )

    entry = entry_service.submit_entry(
        db,
        submitted_by=identity.user_id,
        question=submission.question,
        answer_summary=submission.answer_summary,
        youtube_url=submission.youtube_url,
        stats=submission.stats,
        bible_verses=submission.bible_verses,
        verse_ranges=submission.bible_verse_ranges,
        max_verses=settings.MAX_VERSES_PER_SUBMISSION,
    )

    limiter.record(identity.user_id, ip_hash, RateLimitAction.SUBMIT_ENTRY.value)

    return EntryResponse.build(entry, tally(db, entry.id))


@router.patch(
    "/entries/{entry_id}",
    response_model=EntryResponse,
    summary="Moderate an entry",
    responses={
        200: {"description": "Entry updated, revision written"},
        401: {"description": "Not authenticated"},
        403: {"description": "Verifier access required"},
        404: {"description": "Entry not found"},
        409: {"description": "Entry is locked"}
    }
)
async def update_entry(
    entry_id: int,
    changes: EntryUpdate,
    verifier: VerifierIdentity,
    db: DbSession,
):
    """
    Change verified_status and/or is_locked, and optionally edit content.

    Transaction guarantees:
    - Entry update + revision insert both commit or both roll back
    - Row lock (PostgreSQL) serializes concurrent moderators
    """
    entry = entry_service.moderate_entry(
        db,
        entry_id,
        moderator_id=verifier.user_id,
        verified_status=changes.verified_status,
        is_locked=changes.is_locked,
        content=changes.content_changes(),
    )
    return EntryResponse.build(entry, tally(db, entry.id))


@router.delete(
    "/entries/{entry_id}",
    response_model=SuccessResponse,
    summary="Delete an entry",
    responses={
        200: {"description": "Entry deleted, snapshot revision written"},
        401: {"description": "Not authenticated"},
        403: {"description": "Verifier access required"},
        404: {"description": "Entry not found"}
    }
)
async def delete_entry(entry_id: int, verifier: VerifierIdentity, db: DbSession):
    entry_service.delete_entry(db, entry_id, moderator_id=verifier.user_id)
    return SuccessResponse(success=True)


@router.get(
    "/entries/{entry_id}/revisions",
    response_model=list[RevisionResponse],
    summary="Audit trail for an entry",
    responses={
        401: {"description": "Not authenticated"},
        403: {"description": "Verifier access required"}
    }
)
async def list_entry_revisions(entry_id: int, verifier: VerifierIdentity, db: DbSession):
    """
    Oldest first. Works for deleted entries too, since revisions keep
    their entry_id after the entry row is gone.
    """
    return [RevisionResponse.model_validate(r) for r in revisions.list_revisions(db, entry_id)]
