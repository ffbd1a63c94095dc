"""
SQLAlchemy ORM models.
Design principles:
1. Explicit constraints prevent invalid states at DB level
2. Enums enforce finite state machines
3. Shared content (stats, verses) is deduplicated by unique constraints
4. Audit and rate-limit tables are append-only
"""
from sqlalchemy import (
    Column, Integer, String, Boolean, Text, DateTime, Enum, ForeignKey, Index,
    JSON, UniqueConstraint, CheckConstraint, func,
)
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
import enum
from debate_archive.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _enum_values(enum_cls):
    # Store "pending", not "PENDING"
    return [member.value for member in enum_cls]

# ======================================
# ENUMS - Finite State Machines
# ======================================

class EntryStatus(str, enum.Enum):
    """
    Moderation states.
    Every transition is an explicit verifier PATCH; any state may be
    revisited. The independent is_locked flag blocks content edits only.
    """
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"

class VoteType(str, enum.Enum):
    UPVOTE = "upvote"
    DOWNVOTE = "downvote"

class RevisionAction(str, enum.Enum):
    UPDATED = "updated"
    DELETED = "deleted"

class RateLimitAction(str, enum.Enum):
    SUBMIT_ENTRY = "submit_entry"
    VOTE = "vote"


# ==================
# MODELS
# ==================

class Entry(Base):
    """
    A submitted debate-clip citation.

    Constraints:
    - question: Required, max 500 chars
    - video_id/start_seconds: Parsed from the submitted YouTube URL
    - submitted_by: Opaque identity-provider user id
    - verified_status: Always PENDING on creation
    - is_locked: Blocks question/answer_summary edits when true

    Indexes:
    - (verified_status, created_at): public listing filtered by status, newest first
    """
    __tablename__ = "entries"
    __table_args__ = (
        Index("ix_entries_status_created_at", "verified_status", "created_at"),
        CheckConstraint("start_seconds >= 0", name="ck_entries_start_seconds"),
    )

    id = Column(Integer, primary_key=True, index=True)
    question = Column(
        String(500),
        nullable=False,
        comment="Debate question or topic"
    )
    answer_summary = Column(
        Text,
        nullable=True,
        comment="Optional summary of the answer given in the clip"
    )
    video_id = Column(
        String(64),
        nullable=False,
        comment="YouTube video id"
    )
    start_seconds = Column(
        Integer,
        default=0,
        nullable=False,
        comment="Clip start offset in seconds"
    )
    submitted_by = Column(
        String(255),
        nullable=False,
        index=True,
        comment="Identity provider user id of the submitter"
    )
    verified_status = Column(
        Enum(EntryStatus, name="entry_status_enum", values_callable=_enum_values),
        default=EntryStatus.PENDING,
        nullable=False,
        comment="Current moderation state"
    )
    is_locked = Column(
        Boolean,
        default=False,
        nullable=False,
        comment="Prevents content edits while true"
    )
    created_at = Column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
        comment="Submission timestamp (UTC)"
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
        comment="Last modification timestamp (UTC)"
    )

    # Relationships
    stat_links = relationship(
        "EntryStat",
        back_populates="entry",
        order_by="EntryStat.position",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    verse_links = relationship(
        "EntryBibleVerse",
        back_populates="entry",
        order_by="EntryBibleVerse.position",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    votes = relationship(
        "Vote",
        back_populates="entry",
        lazy="select",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def stats(self):
        return [link.stat for link in self.stat_links]

    @property
    def bible_verses(self):
        return [link.verse for link in self.verse_links]

    def __repr__(self):
        return f"<Entry(id={self.id}, status={self.verified_status.value}, locked={self.is_locked})>"


# Text search document for PostgreSQL full-text search (question + answer summary).
# The GIN index must use the exact expression the search query uses.
SEARCH_CONFIG = "english"


def entry_search_document():
    return func.to_tsvector(
        SEARCH_CONFIG,
        Entry.question + " " + func.coalesce(Entry.answer_summary, ""),
    )


Index(
    "ix_entries_search_document",
    entry_search_document(),
    postgresql_using="gin",
).ddl_if(dialect="postgresql")


class Stat(Base):
    """
    Reusable statistical claim, shared across entries.
    Upserted by content: (description, source_url) is unique. A missing
    source is stored as "" so the unique constraint also collapses
    source-less duplicates (NULLs never compare equal).
    """
    __tablename__ = "stats"
    __table_args__ = (
        UniqueConstraint("description", "source_url", name="uq_stats_content"),
    )

    id = Column(Integer, primary_key=True, index=True)
    description = Column(Text, nullable=False)
    source_url = Column(String(1000), nullable=False, default="")

    def __repr__(self):
        return f"<Stat(id={self.id})>"


class BibleVerse(Base):
    """
    A single scriptural verse. (book, chapter, verse) is the identity;
    ranges are expanded into one row per verse before storage.
    """
    __tablename__ = "bible_verses"
    __table_args__ = (
        UniqueConstraint("book", "chapter", "verse", name="uq_bible_verses_ref"),
        CheckConstraint("chapter >= 1", name="ck_bible_verses_chapter"),
        CheckConstraint("verse >= 1", name="ck_bible_verses_verse"),
    )

    id = Column(Integer, primary_key=True, index=True)
    book = Column(String(50), nullable=False)
    chapter = Column(Integer, nullable=False)
    verse = Column(Integer, nullable=False)
    text = Column(Text, nullable=True)

    def __repr__(self):
        return f"<BibleVerse({self.book} {self.chapter}:{self.verse})>"


class EntryStat(Base):
    __tablename__ = "entry_stats"

    entry_id = Column(
        Integer,
        ForeignKey("entries.id", ondelete="CASCADE"),
        primary_key=True,
    )
    stat_id = Column(
        Integer,
        ForeignKey("stats.id", ondelete="RESTRICT"),  # Shared rows outlive entries
        primary_key=True,
    )
    position = Column(Integer, nullable=False, default=0)

    entry = relationship("Entry", back_populates="stat_links")
    stat = relationship("Stat", lazy="joined")


class EntryBibleVerse(Base):
    __tablename__ = "entry_bible_verses"

    entry_id = Column(
        Integer,
        ForeignKey("entries.id", ondelete="CASCADE"),
        primary_key=True,
    )
    verse_id = Column(
        Integer,
        ForeignKey("bible_verses.id", ondelete="RESTRICT"),
        primary_key=True,
    )
    position = Column(Integer, nullable=False, default=0)

    entry = relationship("Entry", back_populates="verse_links")
    verse = relationship("BibleVerse", lazy="joined")


class Vote(Base):
    """
    One vote per (voter, entry). The composite primary key is the
    uniqueness guarantee; re-voting updates vote_type in place.
    """
    __tablename__ = "votes"

    voter_id = Column(
        String(255),
        primary_key=True,
        comment="Identity provider user id of the voter"
    )
    entry_id = Column(
        Integer,
        ForeignKey("entries.id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    )
    vote_type = Column(
        Enum(VoteType, name="vote_type_enum", values_callable=_enum_values),
        nullable=False,
    )
    ip_hash = Column(String(64), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    entry = relationship("Entry", back_populates="votes")

    def __repr__(self):
        return f"<Vote(entry_id={self.entry_id}, vote_type={self.vote_type.value})>"


class VerifierAllowlistEntry(Base):
    """
    Hashed allow-list of verifiers. Only one-way hashes are stored, so
    membership can be confirmed but current verifiers cannot be listed
    back as plaintext ids.
    """
    __tablename__ = "verifier_allowlist"

    id_hash = Column(String(64), primary_key=True, comment="SHA-256 of the verifier's user id")
    added_by_hash = Column(String(64), nullable=False, comment="SHA-256 of the granting verifier's user id")
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    def __repr__(self):
        return f"<VerifierAllowlistEntry(id_hash={self.id_hash[:12]}...)>"


class RateLimitRecord(Base):
    """
    Append-only action log for the rate limiter. Rows are counted within
    a trailing window and pruned by retention; never updated.
    """
    __tablename__ = "rate_limits"
    __table_args__ = (
        Index("ix_rate_limits_actor_action_created", "actor_hash", "action_type", "created_at"),
        Index("ix_rate_limits_ip_action_created", "ip_hash", "action_type", "created_at"),
    )

    id = Column(Integer, primary_key=True)
    actor_hash = Column(String(64), nullable=False)
    ip_hash = Column(String(64), nullable=False)
    action_type = Column(String(50), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)


class EntryRevision(Base):
    """
    Immutable audit trail of moderator mutations.

    entry_id is a plain indexed column, not a foreign key: the deletion
    snapshot must outlive the entry it describes.
    """
    __tablename__ = "entry_revisions"

    id = Column(Integer, primary_key=True, index=True)
    entry_id = Column(Integer, nullable=False, index=True)
    revised_by = Column(
        String(255),
        nullable=False,
        comment="Identity provider user id of the moderator"
    )
    changes_json = Column(JSON, nullable=False)
    created_at = Column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
        index=True,
    )

    def __repr__(self):
        return f"<EntryRevision(id={self.id}, entry_id={self.entry_id}, action={self.changes_json.get('action')})>"
