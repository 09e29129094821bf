"""Tests for data models and validation helpers."""

import pytest

from fiszki.exceptions import ValidationError
from fiszki.models import (
    Category,
    CategorySnapshot,
    LanguagePair,
    OperationType,
    QueuedOperation,
    SyncMode,
    WordPair,
    WordSide,
    build_sides,
    normalize_category_updates,
    normalize_pairs,
)
from fiszki.utils import TextParser


class TestValidation:

    def test_build_sides_trims(self):
        lang1, lang2 = build_sides(" train ", None, "pociąg", "  ")
        assert lang1 == WordSide("train", "")
        assert lang2 == WordSide("pociąg", "")

    @pytest.mark.parametrize("word1, word2", [("", "pociąg"), ("train", "   "), (None, "x")])
    def test_build_sides_requires_both_terms(self, word1, word2):
        with pytest.raises(ValidationError):
            build_sides(word1, "", word2, "")

    def test_normalize_pairs_reports_position(self):
        with pytest.raises(ValidationError, match="Word pair #3"):
            normalize_pairs([
                {"lang1": {"word": "a"}, "lang2": {"word": "b"}},
                WordPair(None, None, WordSide("c"), WordSide("d")),
                {"lang1": {"word": "e"}},
            ])

    def test_normalize_category_updates(self):
        normalized = normalize_category_updates({
            "name": "  Travel ",
            "language_pair": {"lang1": "English"},
            "wordCount": 99,
        })
        assert normalized == {
            "name": "Travel",
            "languagePair": {"lang1": "English", "lang2": "Language 2"},
        }

    def test_normalize_category_updates_rejects_empty_name(self):
        with pytest.raises(ValidationError):
            normalize_category_updates({"name": " "})

    def test_clean_term_collapses_whitespace(self):
        assert TextParser.clean_term("  ice \t  cream\n") == "ice cream"
        assert TextParser.clean_term(None) == ""


class TestSerialization:

    def test_category_wire_names(self):
        category = Category(1, "Travel", language_pair=LanguagePair("English", "Polish"), word_count=3)
        data = category.to_dict()
        assert data["languagePair"] == {"lang1": "English", "lang2": "Polish"}
        assert data["wordCount"] == 3
        assert Category.from_dict(data) == category

    def test_snapshot_document_shape(self):
        snapshot = CategorySnapshot(
            name="Travel",
            words=[WordPair(5, 1, WordSide("train"), WordSide("pociąg"), "2024-01-01")],
            exported_at="2024-02-01T00:00:00+00:00",
        )

        data = snapshot.to_dict()

        assert set(data) == {"category", "words", "exportedAt", "version"}
        assert data["version"] == 1
        # Ids and timestamps are not part of the portable form
        assert data["words"] == [{
            "lang1": {"word": "train", "pronunciation": ""},
            "lang2": {"word": "pociąg", "pronunciation": ""},
        }]

    def test_snapshot_from_partial_document(self):
        snapshot = CategorySnapshot.from_dict({"category": {"name": "Travel"}, "words": []})
        assert snapshot.language_pair == LanguagePair()
        assert snapshot.version == 1

    def test_queued_operation_round_trip(self):
        entry = QueuedOperation(OperationType.IMPORT_WORDS, {"categoryId": 1, "localIds": [2, 3]})
        assert QueuedOperation.from_dict(entry.to_dict()) == entry
        assert entry.to_dict()["operation"] == "import-words"


class TestSyncMode:

    @pytest.mark.parametrize("value, expected", [
        ("auto", SyncMode.AUTO),
        ("MANUAL", SyncMode.MANUAL),
        (" offline-only ", SyncMode.OFFLINE_ONLY),
        (SyncMode.MANUAL, SyncMode.MANUAL),
        ("bogus", SyncMode.AUTO),
        (None, SyncMode.AUTO),
    ])
    def test_parse(self, value, expected):
        assert SyncMode.parse(value) is expected

    def test_parse_custom_default(self):
        assert SyncMode.parse("bogus", SyncMode.MANUAL) is SyncMode.MANUAL
