"""
Append-only audit log of moderator mutations.

Revisions are added to the same session as the mutation they describe,
so both commit or both roll back with the request transaction.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional
from sqlalchemy import select
from sqlalchemy.orm import Session
from debate_archive.models import Entry, EntryRevision, RevisionAction, utcnow


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def snapshot_entry(entry: Entry) -> Dict[str, Any]:
    """JSON-safe copy of the entry row and its linked stats and verses."""
    return {
        "id": entry.id,
        "question": entry.question,
        "answer_summary": entry.answer_summary,
        "video_id": entry.video_id,
        "start_seconds": entry.start_seconds,
        "submitted_by": entry.submitted_by,
        "verified_status": entry.verified_status.value,
        "is_locked": entry.is_locked,
        "created_at": _iso(entry.created_at),
        "updated_at": _iso(entry.updated_at),
        "stats": [
            {"id": s.id, "description": s.description, "source_url": s.source_url or None}
            for s in entry.stats
        ],
        "bible_verses": [
            {"id": v.id, "book": v.book, "chapter": v.chapter, "verse": v.verse, "text": v.text}
            for v in entry.bible_verses
        ],
    }


def record_update(
    db: Session,
    entry: Entry,
    moderator_id: str,
    old: Dict[str, Any],
    new: Dict[str, Any],
) -> EntryRevision:
    """
    old/new hold verified_status and is_locked (always both) plus any
    edited content fields.
    """
    changes = {
        "action": RevisionAction.UPDATED.value,
        "old_value": old,
        "new_value": new,
        "timestamp": utcnow().isoformat(),
    }
    revision = EntryRevision(entry_id=entry.id, revised_by=moderator_id, changes_json=changes)
    db.add(revision)
    return revision


def record_deletion(db: Session, entry: Entry, moderator_id: str) -> EntryRevision:
    changes = {
        "action": RevisionAction.DELETED.value,
        "old_value": snapshot_entry(entry),
        "new_value": None,
        "timestamp": utcnow().isoformat(),
    }
    revision = EntryRevision(entry_id=entry.id, revised_by=moderator_id, changes_json=changes)
    db.add(revision)
    return revision


def list_revisions(db: Session, entry_id: int) -> List[EntryRevision]:
    return list(db.execute(
        select(EntryRevision)
        .where(EntryRevision.entry_id == entry_id)
        .order_by(EntryRevision.created_at.asc(), EntryRevision.id.asc())
    ).scalars())
