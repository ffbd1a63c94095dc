"""
Entry lifecycle: submission, listing, moderation and deletion.

Business rules:
1. New entries always start PENDING, whatever the caller sends
2. Child rows (stats, verses) are linked only after the entry insert
3. Stats and verses are upserted by content and shared between entries
4. Moderator changes append a revision in the same transaction
5. Locked entries refuse content edits; status and lock stay mutable
"""
import logging
from typing import List, Optional, Sequence
from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload
from debate_archive.errors import EntryLocked, NotFound, ValidationFailed
from debate_archive.models import (
    BibleVerse,
    Entry,
    EntryBibleVerse,
    EntryStat,
    EntryStatus,
    SEARCH_CONFIG,
    Stat,
    entry_search_document,
    utcnow,
)
from debate_archive.services import revisions
from debate_archive.services.verses import VerseRef, dedupe, expand_range, validate_reference
from debate_archive.services.youtube import parse_youtube_url

logger = logging.getLogger(__name__)

CONTENT_FIELDS = ("question", "answer_summary")


def _with_relations(query):
    return query.options(
        selectinload(Entry.stat_links).joinedload(EntryStat.stat),
        selectinload(Entry.verse_links).joinedload(EntryBibleVerse.verse),
    )


# ===============================
# UPSERT HELPERS
# ===============================

def upsert_stat(db: Session, description: str, source_url: Optional[str]) -> Stat:
    """
    Find-or-create by content. A concurrent insert of the same content
    surfaces as IntegrityError inside the savepoint; the winner's row is
    re-read instead.
    """
    source_url = source_url or ""
    query = select(Stat).where(Stat.description == description, Stat.source_url == source_url)
    stat = db.execute(query).scalar_one_or_none()
    if stat is not None:
        return stat
    try:
        with db.begin_nested():
            stat = Stat(description=description, source_url=source_url)
            db.add(stat)
    except IntegrityError:
        stat = db.execute(query).scalar_one()
    return stat


def upsert_verse(db: Session, ref: VerseRef) -> BibleVerse:
    """Find-or-create by (book, chapter, verse). A non-empty text fills an empty one."""
    query = select(BibleVerse).where(
        BibleVerse.book == ref.book,
        BibleVerse.chapter == ref.chapter,
        BibleVerse.verse == ref.verse,
    )
    verse = db.execute(query).scalar_one_or_none()
    if verse is None:
        try:
            with db.begin_nested():
                verse = BibleVerse(book=ref.book, chapter=ref.chapter, verse=ref.verse, text=ref.text)
                db.add(verse)
            return verse
        except IntegrityError:
            verse = db.execute(query).scalar_one()

    if ref.text and not verse.text:
        verse.text = ref.text
    return verse


# ===============================
# SUBMISSION
# ===============================

def collect_verses(bible_verses: Sequence, verse_ranges: Sequence, max_verses: int) -> List[VerseRef]:
    """
    Validate single verses, expand ranges, drop duplicates. Objects need
    book/chapter/verse (singles) or book/start_chapter/start_verse/
    end_chapter/end_verse (ranges), each with optional text.
    """
    refs: List[VerseRef] = []
    for v in bible_verses:
        refs.append(validate_reference(v.book, v.chapter, v.verse, v.text))
    for r in verse_ranges:
        refs.extend(expand_range(
            r.book, r.start_chapter, r.start_verse, r.end_chapter, r.end_verse, r.text
        ))
        if len(refs) > max_verses:
            break

    refs = dedupe(refs)
    if len(refs) > max_verses:
        raise ValidationFailed(f"Too many verses: at most {max_verses} per submission")
    return refs


def submit_entry(
    db: Session,
    submitted_by: str,
    question: str,
    answer_summary: Optional[str],
    youtube_url: str,
    stats: Sequence = (),
    bible_verses: Sequence = (),
    verse_ranges: Sequence = (),
    max_verses: int = 500,
) -> Entry:
    """
    Create a PENDING entry with its stats and verses.
    All validation happens before the first write.
    """
    video = parse_youtube_url(youtube_url)
    if video is None:
        raise ValidationFailed("Invalid YouTube URL")

    verse_refs = collect_verses(bible_verses, verse_ranges, max_verses)

    entry = Entry(
        question=question,
        answer_summary=answer_summary or None,
        video_id=video.video_id,
        start_seconds=video.start_seconds,
        submitted_by=submitted_by,
        verified_status=EntryStatus.PENDING,  # All start as PENDING
        is_locked=False,
    )
    db.add(entry)
    db.flush()  # Parent id before any link rows

    linked_stats = set()
    for stat_in in stats:
        stat = upsert_stat(db, stat_in.description, stat_in.source_url)
        if stat.id in linked_stats:
            continue
        linked_stats.add(stat.id)
        entry.stat_links.append(EntryStat(stat=stat, position=len(linked_stats) - 1))

    linked_verses = set()
    for ref in verse_refs:
        verse = upsert_verse(db, ref)
        if verse.id in linked_verses:
            continue
        linked_verses.add(verse.id)
        entry.verse_links.append(EntryBibleVerse(verse=verse, position=len(linked_verses) - 1))

    db.flush()
    logger.info(
        f"Entry {entry.id} submitted: video={entry.video_id} "
        f"stats={len(linked_stats)} verses={len(linked_verses)}"
    )
    return entry


# ===============================
# READS
# ===============================

def search_clause(dialect_name: str, q: str):
    """
    PostgreSQL: full-text match of q against question + answer summary.
    Elsewhere (SQLite): case-insensitive substring match with LIKE
    wildcards in q escaped.
    """
    if dialect_name == "postgresql":
        return entry_search_document().bool_op("@@")(func.plainto_tsquery(SEARCH_CONFIG, q))

    term = q.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    pattern = f"%{term}%"
    return or_(
        Entry.question.ilike(pattern, escape="\\"),
        Entry.answer_summary.ilike(pattern, escape="\\"),
    )


def list_entries(
    db: Session,
    status: EntryStatus = EntryStatus.VERIFIED,
    q: Optional[str] = None,
    limit: int = 20,
    offset: int = 0,
) -> List[Entry]:
    """
    Entries in one moderation state, newest first, with stats and verses
    loaded. q is a full-text query on PostgreSQL and a case-insensitive
    substring match elsewhere (see search_clause).
    """
    query = select(Entry).where(Entry.verified_status == status)
    if q and q.strip():
        query = query.where(search_clause(db.get_bind().dialect.name, q.strip()))
    query = _with_relations(query).order_by(
        Entry.created_at.desc(), Entry.id.desc()
    ).offset(offset).limit(limit)
    return list(db.execute(query).scalars().unique())


def get_entry(db: Session, entry_id: int, for_update: bool = False) -> Entry:
    query = _with_relations(select(Entry).where(Entry.id == entry_id))
    if for_update:
        # SELECT ... FOR UPDATE on PostgreSQL; SQLite ignores it
        query = query.with_for_update(of=Entry)
    entry = db.execute(query).scalars().unique().one_or_none()
    if entry is None:
        raise NotFound("Entry not found")
    return entry


# ===============================
# MODERATION
# ===============================

def _moderation_state(entry: Entry) -> dict:
    return {
        "verified_status": entry.verified_status.value,
        "is_locked": entry.is_locked,
    }


def moderate_entry(
    db: Session,
    entry_id: int,
    moderator_id: str,
    verified_status: Optional[EntryStatus] = None,
    is_locked: Optional[bool] = None,
    content: Optional[dict] = None,
) -> Entry:
    """
    Apply a verifier PATCH.

    Content edits (question, answer_summary) are allowed only when the
    effective lock state (requested is_locked, else current) is false.
    Exactly one revision is written when anything changes; none when the
    request is a no-op.
    """
    entry = get_entry(db, entry_id, for_update=True)
    content = {k: v for k, v in (content or {}).items() if k in CONTENT_FIELDS}

    effective_lock = entry.is_locked if is_locked is None else is_locked
    content_changes = {k: v for k, v in content.items() if getattr(entry, k) != v}
    if content_changes and effective_lock:
        raise EntryLocked()

    old = _moderation_state(entry)
    new = dict(old)
    if verified_status is not None:
        new["verified_status"] = EntryStatus(verified_status).value
    if is_locked is not None:
        new["is_locked"] = is_locked

    if new == old and not content_changes:
        return entry

    for field, value in content_changes.items():
        old[field] = getattr(entry, field)
        new[field] = value
        setattr(entry, field, value)

    entry.verified_status = EntryStatus(new["verified_status"])
    entry.is_locked = new["is_locked"]
    entry.updated_at = utcnow()

    revisions.record_update(db, entry, moderator_id, old, new)
    db.flush()
    logger.info(
        f"Entry {entry.id} moderated: status {old['verified_status']}->{new['verified_status']} "
        f"locked {old['is_locked']}->{new['is_locked']} content={sorted(content_changes)}"
    )
    return entry


def delete_entry(db: Session, entry_id: int, moderator_id: str) -> None:
    """
    Snapshot into a "deleted" revision, then delete. Both are in the
    request transaction; the revision row has no FK so it survives.
    """
    entry = get_entry(db, entry_id, for_update=True)
    revisions.record_deletion(db, entry, moderator_id)
    db.delete(entry)
    db.flush()
    logger.info(f"Entry {entry_id} deleted")
