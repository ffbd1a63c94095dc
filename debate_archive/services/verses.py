"""
Bible reference validation and range expansion.

A range (book, start chapter:verse, optional end chapter:verse) becomes
one VerseRef per verse, bounded by the real chapter lengths in
bible_canon rather than a sentinel upper bound.
"""
from typing import Iterable, List, NamedTuple, Optional
from debate_archive.errors import ValidationFailed
from debate_archive.services.bible_canon import canonical_book, last_verse


class VerseRef(NamedTuple):
    book: str
    chapter: int
    verse: int
    text: Optional[str] = None


def validate_reference(book: str, chapter: int, verse: int, text: Optional[str] = None) -> VerseRef:
    canonical = canonical_book(book)
    if canonical is None:
        raise ValidationFailed(f"Unknown book: {book!r}")
    max_verse = last_verse(canonical, chapter)
    if max_verse is None:
        raise ValidationFailed(f"{canonical} has no chapter {chapter}")
    if not (1 <= verse <= max_verse):
        raise ValidationFailed(f"{canonical} {chapter} has {max_verse} verses, not {verse}")
    return VerseRef(canonical, chapter, verse, text or None)


def expand_range(
    book: str,
    start_chapter: int,
    start_verse: int,
    end_chapter: Optional[int] = None,
    end_verse: Optional[int] = None,
    text: Optional[str] = None,
) -> List[VerseRef]:
    """
    Expand an inclusive verse range.

    end_chapter defaults to start_chapter. end_verse defaults to
    start_verse within one chapter, and to the last verse of end_chapter
    when the range spans chapters. Intermediate chapters run to their
    real last verse.
    """
    first = validate_reference(book, start_chapter, start_verse)
    canonical = first.book

    if end_chapter is None:
        end_chapter = start_chapter
    if end_verse is None:
        end_verse = start_verse if end_chapter == start_chapter else last_verse(canonical, end_chapter)
        if end_verse is None:
            raise ValidationFailed(f"{canonical} has no chapter {end_chapter}")
    validate_reference(canonical, end_chapter, end_verse)

    if (end_chapter, end_verse) < (start_chapter, start_verse):
        raise ValidationFailed(
            f"Range end {end_chapter}:{end_verse} precedes start {start_chapter}:{start_verse}"
        )

    refs = []
    for chapter in range(start_chapter, end_chapter + 1):
        low = start_verse if chapter == start_chapter else 1
        high = end_verse if chapter == end_chapter else last_verse(canonical, chapter)
        for verse in range(low, high + 1):
            refs.append(VerseRef(canonical, chapter, verse, text or None))
    return refs


def dedupe(refs: Iterable[VerseRef]) -> List[VerseRef]:
    """Keep the first occurrence of each (book, chapter, verse), preserving order."""
    seen = set()
    unique = []
    for ref in refs:
        key = (ref.book, ref.chapter, ref.verse)
        if key in seen:
            continue
        seen.add(key)
        unique.append(ref)
    return unique
