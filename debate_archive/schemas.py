"""
Pydantic schemas for request/response validation.
Separation of concerns:
- Models (ORM): Database persistence, relationships
- Schemas: API transport, validation, sanitization

Never expose ip_hash in responses.
"""
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from typing import Any, Dict, List, Optional
from datetime import datetime
from debate_archive.models import Entry, EntryStatus, VoteType
from debate_archive.services.tally import VoteTally
from debate_archive.services.youtube import build_youtube_url


def _strip_or_none(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    v = v.strip()
    return v or None


def _clean_question(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("Question cannot be empty")
    if len(v) > 500:
        raise ValueError("Question max 500 characters")
    return v


def _clean_answer_summary(v: Optional[str]) -> Optional[str]:
    v = _strip_or_none(v)
    if v is not None and len(v) > 5000:
        raise ValueError("Answer summary max 5,000 characters")
    return v

# ================================
# ENTRY SUBMISSION SCHEMAS
# ===============================

class StatIn(BaseModel):
    """A claimed statistic with optional source link"""
    description: str
    source_url: Optional[str] = None

    @field_validator('description')
    @classmethod
    def validate_description(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Stat description cannot be empty")
        if len(v) > 2000:
            raise ValueError("Stat description max 2,000 characters")
        return v

    @field_validator('source_url')
    @classmethod
    def validate_source_url(cls, v: Optional[str]) -> Optional[str]:
        """
        Source URL constraints:
        - Optional; blank is treated as missing
        - http(s) only, max 1000 chars (matches DB column)
        """
        v = _strip_or_none(v)
        if v is None:
            return None
        if not v.startswith(("https://", "http://")):
            raise ValueError("Source URL must start with http:// or https://")
        if len(v) > 1000:
            raise ValueError("Source URL max 1,000 characters")
        return v


class BibleVerseIn(BaseModel):
    """A single verse reference"""
    book: str
    chapter: int = Field(ge=1)
    verse: int = Field(ge=1)
    text: Optional[str] = None


class BibleVerseRangeIn(BaseModel):
    """
    Inclusive verse range, expanded server-side into single verses.
    Accepts snake_case or camelCase keys.
    """
    book: str
    start_chapter: int = Field(ge=1, validation_alias=AliasChoices("start_chapter", "startChapter"))
    start_verse: int = Field(ge=1, validation_alias=AliasChoices("start_verse", "startVerse"))
    end_chapter: Optional[int] = Field(default=None, ge=1, validation_alias=AliasChoices("end_chapter", "endChapter"))
    end_verse: Optional[int] = Field(default=None, ge=1, validation_alias=AliasChoices("end_verse", "endVerse"))
    text: Optional[str] = None


class EntryCreate(BaseModel):
    """
    Submission request. Status fields are not accepted; every new entry
    is PENDING.
    """
    question: str
    answer_summary: Optional[str] = None
    youtube_url: str
    stats: List[StatIn] = []
    bible_verses: List[BibleVerseIn] = []
    bible_verse_ranges: List[BibleVerseRangeIn] = []

    @field_validator('question')
    @classmethod
    def validate_question(cls, v: str) -> str:
        return _clean_question(v)

    @field_validator('answer_summary')
    @classmethod
    def validate_answer_summary(cls, v: Optional[str]) -> Optional[str]:
        return _clean_answer_summary(v)


class EntryUpdate(BaseModel):
    """
    Verifier PATCH. Any subset of fields; content fields are refused on
    locked entries.
    """
    verified_status: Optional[EntryStatus] = None
    is_locked: Optional[bool] = None
    question: Optional[str] = None
    answer_summary: Optional[str] = None

    @field_validator('question')
    @classmethod
    def validate_question(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return _clean_question(v)

    @field_validator('answer_summary')
    @classmethod
    def validate_answer_summary(cls, v: Optional[str]) -> Optional[str]:
        return _clean_answer_summary(v)

    def content_changes(self) -> Dict[str, Any]:
        """Content fields explicitly present in the request body."""
        data = self.model_dump(exclude_unset=True, include={"question", "answer_summary"})
        # question cannot be cleared
        if data.get("question", "") is None:
            data.pop("question")
        return data

# ================================
# ENTRY RESPONSE SCHEMAS
# ===============================

class StatResponse(BaseModel):
    id: int
    description: str
    source_url: Optional[str] = None


class BibleVerseResponse(BaseModel):
    id: int
    book: str
    chapter: int
    verse: int
    text: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class VoteCountResponse(BaseModel):
    upvotes: int
    downvotes: int
    weighted_score: float

    @classmethod
    def from_tally(cls, tally: VoteTally) -> "VoteCountResponse":
        return cls(upvotes=tally.upvotes, downvotes=tally.downvotes, weighted_score=tally.weighted_score)


class EntryResponse(BaseModel):
    """Entry with joined stats, verses and a fresh tally"""
    id: int
    question: str
    answer_summary: Optional[str]
    video_id: str
    start_seconds: int
    youtube_url: str
    submitted_by: str
    verified_status: EntryStatus
    is_locked: bool
    created_at: datetime
    updated_at: datetime
    stats: List[StatResponse] = []
    bible_verses: List[BibleVerseResponse] = []
    vote_count: VoteCountResponse

    @classmethod
    def build(cls, entry: Entry, tally: VoteTally) -> "EntryResponse":
        """
        Serialize inside the request, while the session is open, so
        nothing lazy-loads after commit.
        """
        return cls(
            id=entry.id,
            question=entry.question,
            answer_summary=entry.answer_summary,
            video_id=entry.video_id,
            start_seconds=entry.start_seconds,
            youtube_url=build_youtube_url(entry.video_id, entry.start_seconds),
            submitted_by=entry.submitted_by,
            verified_status=entry.verified_status,
            is_locked=entry.is_locked,
            created_at=entry.created_at,
            updated_at=entry.updated_at,
            stats=[
                StatResponse(id=s.id, description=s.description, source_url=s.source_url or None)
                for s in entry.stats
            ],
            bible_verses=[BibleVerseResponse.model_validate(v) for v in entry.bible_verses],
            vote_count=VoteCountResponse.from_tally(tally),
        )


class RevisionResponse(BaseModel):
    """Audit trail row"""
    id: int
    entry_id: int
    revised_by: str
    changes_json: Dict[str, Any]
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class SuccessResponse(BaseModel):
    success: bool = True

# =============================
# VOTE SCHEMAS
# ============================

class VoteCreate(BaseModel):
    entry_id: int
    vote_type: VoteType


class VoteResponse(BaseModel):
    voter_id: str
    entry_id: int
    vote_type: VoteType
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class VoteResultResponse(BaseModel):
    vote: VoteResponse
    vote_count: VoteCountResponse


class VoteDeleteResponse(BaseModel):
    success: bool = True
    vote_count: VoteCountResponse

# =============================
# VERIFIER SCHEMAS
# ============================

class VerifierCreate(BaseModel):
    clerk_user_id: str

    @field_validator('clerk_user_id')
    @classmethod
    def validate_user_id(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("User ID required")
        if len(v) > 255:
            raise ValueError("User ID max 255 characters")
        return v


class VerifierStatusResponse(BaseModel):
    is_verifier: bool
    hashed_id: str


class VerifierChangeResponse(BaseModel):
    success: bool = True
    message: str
    hashed_id: Optional[str] = None
