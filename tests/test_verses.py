import pytest

from debate_archive.errors import ValidationFailed
from debate_archive.services.bible_canon import VERSE_COUNTS, canonical_book, chapter_count, last_verse
from debate_archive.services.verses import VerseRef, dedupe, expand_range, validate_reference


class TestCanon:
    def test_sixty_six_books(self):
        assert len(VERSE_COUNTS) == 66

    def test_known_chapter_lengths(self):
        assert chapter_count("Genesis") == 50
        assert chapter_count("Psalms") == 150
        assert chapter_count("Revelation") == 22
        assert last_verse("Genesis", 1) == 31
        assert last_verse("John", 3) == 36
        assert last_verse("John", 4) == 54
        assert last_verse("Psalms", 117) == 2
        assert last_verse("Psalms", 119) == 176

    def test_missing_chapter(self):
        assert last_verse("Jude", 2) is None
        assert last_verse("Jude", 0) is None
        assert last_verse("Hezekiah", 1) is None

    @pytest.mark.parametrize("name, expected", [
        ("john", "John"),
        ("  JOHN  ", "John"),
        ("Psalm", "Psalms"),
        ("1 john", "1 John"),
        ("1john", "1 John"),
        ("I John", "1 John"),
        ("First Corinthians", "1 Corinthians"),
        ("2nd Kings", "2 Kings"),
        ("III John", "3 John"),
        ("Song of Songs", "Song of Solomon"),
        ("Revelations", "Revelation"),
        ("Hezekiah", None),
        ("", None),
    ])
    def test_canonical_book(self, name, expected):
        assert canonical_book(name) == expected


class TestValidateReference:
    def test_valid(self):
        assert validate_reference("john", 3, 16, "For God so loved") == VerseRef("John", 3, 16, "For God so loved")

    def test_blank_text_becomes_none(self):
        assert validate_reference("John", 3, 16, "").text is None

    def test_unknown_book(self):
        with pytest.raises(ValidationFailed, match="Unknown book"):
            validate_reference("Hezekiah", 1, 1)

    def test_chapter_out_of_range(self):
        with pytest.raises(ValidationFailed, match="no chapter"):
            validate_reference("John", 22, 1)

    def test_verse_out_of_range(self):
        with pytest.raises(ValidationFailed, match="36 verses"):
            validate_reference("John", 3, 37)


class TestExpandRange:
    def test_single_chapter(self):
        refs = expand_range("John", 3, 16, 3, 17)
        assert [(r.chapter, r.verse) for r in refs] == [(3, 16), (3, 17)]

    def test_end_defaults_to_start(self):
        assert expand_range("John", 3, 16) == [VerseRef("John", 3, 16)]

    def test_cross_chapter_uses_real_chapter_length(self):
        refs = expand_range("John", 3, 35, 4, 2)
        assert [(r.chapter, r.verse) for r in refs] == [(3, 35), (3, 36), (4, 1), (4, 2)]

    def test_cross_chapter_open_end_runs_to_last_verse(self):
        refs = expand_range("Jude", 1, 24) + expand_range("Ruth", 3, 17, 4)
        assert [(r.book, r.chapter, r.verse) for r in refs][-1] == ("Ruth", 4, 22)
        assert len(refs) == 1 + 2 + 22

    def test_spans_intermediate_chapters(self):
        refs = expand_range("Ruth", 1, 22, 3, 1)
        # 1:22, all of chapter 2, 3:1
        assert len(refs) == 1 + 23 + 1

    def test_text_copied_to_every_verse(self):
        refs = expand_range("John", 3, 16, 3, 17, text="shared")
        assert all(r.text == "shared" for r in refs)

    def test_end_before_start(self):
        with pytest.raises(ValidationFailed, match="precedes"):
            expand_range("John", 3, 17, 3, 16)

    def test_end_past_chapter(self):
        with pytest.raises(ValidationFailed):
            expand_range("John", 3, 16, 3, 40)

    def test_end_chapter_missing(self):
        with pytest.raises(ValidationFailed, match="no chapter"):
            expand_range("Jude", 1, 1, 2)


def test_dedupe_keeps_first():
    refs = [VerseRef("John", 3, 16, "a"), VerseRef("John", 3, 17), VerseRef("John", 3, 16, "b")]
    assert dedupe(refs) == [VerseRef("John", 3, 16, "a"), VerseRef("John", 3, 17)]
