"""Tests for the SQLite local store."""

import unicodedata

import pandas as pd
import pytest

from fiszki.exceptions import ConflictError, NotFoundError, StoreError, ValidationError
from fiszki.models import Category, CategorySnapshot, LanguagePair, WordPair, WordSide
from fiszki.services import LocalStore


class TestCategories:

    async def test_add_and_get(self, local_store):
        created = await local_store.add_category("  Travel  ", "Trip words", {"lang1": "English", "lang2": "Polish"})

        fetched = await local_store.get_category(created.id)

        assert fetched == created
        assert fetched.name == "Travel"
        assert fetched.language_pair == LanguagePair("English", "Polish")
        assert fetched.word_count == 0
        assert fetched.created_at == fetched.updated_at

    async def test_default_language_pair(self, local_store):
        created = await local_store.add_category("Travel")
        assert created.language_pair == LanguagePair("Language 1", "Language 2")

    async def test_duplicate_name_conflicts(self, local_store):
        await local_store.add_category("Travel")
        with pytest.raises(ConflictError):
            await local_store.add_category("Travel")

    async def test_empty_name_rejected(self, local_store):
        with pytest.raises(ValidationError):
            await local_store.add_category("   ")
        assert await local_store.get_all_categories() == []

    async def test_missing_category(self, local_store):
        with pytest.raises(NotFoundError):
            await local_store.get_category(42)

    async def test_list_in_creation_order(self, local_store):
        for name in ("Travel", "Food", "Work"):
            await local_store.add_category(name)
        assert [c.name for c in await local_store.get_all_categories()] == ["Travel", "Food", "Work"]

    async def test_update_category(self, local_store):
        created = await local_store.add_category("Travel")

        updated = await local_store.update_category(created.id, {
            "name": "Journeys",
            "languagePair": {"lang1": "English", "lang2": "German"},
        })

        assert updated.name == "Journeys"
        assert updated.description == ""
        assert updated.language_pair.lang2 == "German"
        assert updated.created_at == created.created_at

    async def test_update_to_taken_name_conflicts(self, local_store):
        await local_store.add_category("Travel")
        food = await local_store.add_category("Food")
        with pytest.raises(ConflictError):
            await local_store.update_category(food.id, {"name": "Travel"})

    async def test_update_missing_category(self, local_store):
        with pytest.raises(NotFoundError):
            await local_store.update_category(7, {"name": "Nope"})

    async def test_delete_category_removes_words(self, local_store):
        category = await local_store.add_category("Travel")
        word = await local_store.add_word(category.id, "train", "", "pociąg", "")

        await local_store.delete_category(category.id)

        with pytest.raises(NotFoundError):
            await local_store.get_category(category.id)
        with pytest.raises(NotFoundError):
            await local_store.get_word(word.id)


class TestWords:

    async def test_add_word_trims_and_normalizes(self, local_store):
        category = await local_store.add_category("Travel")
        decomposed = unicodedata.normalize("NFD", "pociąg")

        word = await local_store.add_word(category.id, "  train ", " treɪn ", decomposed, "")

        assert word.lang1 == WordSide("train", "treɪn")
        assert word.lang2.word == unicodedata.normalize("NFC", "pociąg")
        assert await local_store.get_words_by_category(category.id) == [word]

    async def test_empty_term_rejected(self, local_store):
        category = await local_store.add_category("Travel")
        with pytest.raises(ValidationError):
            await local_store.add_word(category.id, "train", "", "  ", "")
        assert await local_store.get_words_by_category(category.id) == []

    async def test_add_word_to_missing_category(self, local_store):
        with pytest.raises(NotFoundError):
            await local_store.add_word(99, "train", "", "pociąg", "")

    async def test_word_count_is_not_automatic(self, local_store):
        category = await local_store.add_category("Travel")
        await local_store.add_word(category.id, "train", "", "pociąg", "")
        await local_store.add_word(category.id, "bus", "", "autobus", "")

        assert (await local_store.get_category(category.id)).word_count == 0
        assert await local_store.recompute_word_count(category.id) == 2
        assert (await local_store.get_category(category.id)).word_count == 2

    async def test_recompute_keeps_updated_at(self, local_store):
        category = await local_store.add_category("Travel")
        await local_store.add_word(category.id, "train", "", "pociąg", "")
        await local_store.recompute_word_count(category.id)
        assert (await local_store.get_category(category.id)).updated_at == category.updated_at

    async def test_import_words_validates_whole_batch(self, local_store):
        category = await local_store.add_category("Travel")

        with pytest.raises(ValidationError, match="#2"):
            await local_store.import_words_to_category(category.id, [
                {"lang1": {"word": "train"}, "lang2": {"word": "pociąg"}},
                {"lang1": {"word": "bus"}, "lang2": {"word": ""}},
            ])

        assert await local_store.get_words_by_category(category.id) == []

    async def test_import_words_returns_count(self, local_store):
        category = await local_store.add_category("Travel")
        count = await local_store.import_words_to_category(category.id, [
            {"lang1": {"word": "train"}, "lang2": {"word": "pociąg"}},
            {"lang1": {"word": "bus", "pronunciation": "bʌs"}, "lang2": {"word": "autobus"}},
        ])
        assert count == 2
        words = await local_store.get_words_by_category(category.id)
        assert [w.lang1.word for w in words] == ["train", "bus"]
        assert words[1].lang1.pronunciation == "bʌs"

    async def test_update_word(self, local_store):
        category = await local_store.add_category("Travel")
        word = await local_store.add_word(category.id, "train", "", "pociąg", "")

        updated = await local_store.update_word(word.id, {"lang1": {"pronunciation": "treɪn"}})

        assert updated.lang1 == WordSide("train", "treɪn")
        assert updated.lang2.word == "pociąg"
        assert await local_store.get_word(word.id) == updated

    async def test_update_word_cannot_empty_a_side(self, local_store):
        category = await local_store.add_category("Travel")
        word = await local_store.add_word(category.id, "train", "", "pociąg", "")
        with pytest.raises(ValidationError):
            await local_store.update_word(word.id, {"lang2": {"word": ""}})

    async def test_delete_word(self, local_store):
        category = await local_store.add_category("Travel")
        word = await local_store.add_word(category.id, "train", "", "pociąg", "")

        await local_store.delete_word(word.id)

        assert await local_store.get_words_by_category(category.id) == []
        with pytest.raises(NotFoundError):
            await local_store.delete_word(word.id)

    async def test_delete_words_by_category(self, local_store):
        travel = await local_store.add_category("Travel")
        food = await local_store.add_category("Food")
        await local_store.add_word(travel.id, "train", "", "pociąg", "")
        await local_store.add_word(food.id, "bread", "", "chleb", "")

        await local_store.delete_words_by_category(travel.id)

        assert await local_store.get_words_by_category(travel.id) == []
        assert len(await local_store.get_words_by_category(food.id)) == 1


class TestSnapshotsAndStatistics:

    async def test_export_then_import_under_new_name(self, local_store):
        source = await local_store.add_category("Travel", "Trip words", {"lang1": "English", "lang2": "Polish"})
        await local_store.add_word(source.id, "train", "treɪn", "pociąg", "")

        snapshot = (await local_store.export_category(source.id)).to_dict()
        snapshot["category"]["name"] = "Travel (copy)"
        imported = await local_store.import_category_from_snapshot(snapshot)

        assert imported.word_count == 1
        assert imported.language_pair == LanguagePair("English", "Polish")
        (word,) = await local_store.get_words_by_category(imported.id)
        assert word.lang1 == WordSide("train", "treɪn")

    async def test_invalid_snapshot_leaves_store_untouched(self, local_store):
        snapshot = CategorySnapshot(
            name="Travel",
            words=[WordPair(None, None, WordSide("train"), WordSide(""))],
        )
        with pytest.raises(ValidationError):
            await local_store.import_category_from_snapshot(snapshot)
        assert await local_store.get_all_categories() == []

    async def test_statistics(self, local_store):
        travel = await local_store.add_category("Travel")
        await local_store.add_category("Food")
        await local_store.import_words_to_category(travel.id, [
            {"lang1": {"word": "train"}, "lang2": {"word": "pociąg"}},
            {"lang1": {"word": "bus"}, "lang2": {"word": "autobus"}},
        ])
        await local_store.recompute_word_count(travel.id)

        stats = (await local_store.get_statistics()).to_dict()

        assert stats["totalCategories"] == 2
        assert stats["totalWords"] == 2
        assert stats["categories"][0] == {"id": travel.id, "name": "Travel", "wordCount": 2}


class TestMaintenance:

    async def test_clear_all_data_resets_ids(self, local_store):
        category = await local_store.add_category("Travel")
        await local_store.add_word(category.id, "train", "", "pociąg", "")

        await local_store.clear_all_data()

        assert await local_store.get_all_categories() == []
        again = await local_store.add_category("Travel")
        assert again.id == 1

    async def test_restore_category_keeps_timestamps(self, local_store):
        remote = Category(
            id="c0ffee",
            name="Travel",
            language_pair=LanguagePair("English", "Polish"),
            created_at="2024-01-01T00:00:01+00:00",
            updated_at="2024-01-02T00:00:00+00:00",
        )
        words = [WordPair("w1", "c0ffee", WordSide("train"), WordSide("pociąg"), "2024-01-01T00:00:02+00:00")]

        category, restored = await local_store.restore_category(remote, words)

        assert category.id == 1
        assert category.created_at == remote.created_at
        assert category.updated_at == remote.updated_at
        assert category.word_count == 1
        assert (await local_store.get_category(1)).word_count == 1
        assert restored[0].created_at == "2024-01-01T00:00:02+00:00"
        assert restored[0].category_id == 1

    async def test_export_to_csv(self, local_store, tmp_path):
        travel = await local_store.add_category("Travel", "", {"lang1": "English", "lang2": "Polish"})
        await local_store.add_word(travel.id, "train", "treɪn", "pociąg", "")
        await local_store.add_word(travel.id, "bus", "", "autobus", "")
        csv_path = tmp_path / "export" / "words.csv"

        rows = await local_store.export_to_csv(str(csv_path))

        assert rows == 2
        df = pd.read_csv(csv_path, sep='|', encoding='utf-8-sig', keep_default_na=False)
        assert list(df["word2"]) == ["pociąg", "autobus"]
        assert list(df["category"]) == ["Travel", "Travel"]
        assert df.loc[0, "pronunciation1"] == "treɪn"

    async def test_init_is_repeatable(self, local_store):
        await local_store.add_category("Travel")
        assert await local_store.init()
        assert len(await local_store.get_all_categories()) == 1

    async def test_sqlite_failures_surface_as_store_errors(self, tmp_path):
        # A directory can not be opened as a database file
        store = LocalStore(str(tmp_path))
        try:
            assert await store.init() is False
            with pytest.raises(StoreError):
                await store.get_all_categories()
        finally:
            await store.close()
