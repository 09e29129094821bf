"""
Shared test fixtures.

Provides:
- Isolated settings file per test
- Temporary SQLite LocalStore
- In-memory FakeRemoteStore with switchable failures
- A SyncCoordinator wired to both
"""

import asyncio
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional

import pytest

from fiszki.config import SettingsManager
from fiszki.exceptions import RejectedError
from fiszki.models import (
    Category,
    LanguagePair,
    WordPair,
    build_sides,
    clean_category_name,
    normalize_category_updates,
    normalize_pairs,
)
from fiszki.services import (
    BaseStore,
    IdMapping,
    LocalStore,
    OperationQueue,
    SyncCoordinator,
    SyncState,
)
from fiszki.utils import TextParser

_EPOCH = datetime(2024, 1, 1, tzinfo=timezone.utc)


class FakeRemoteStore(BaseStore):
    """
    In-memory stand-in for the Supabase store.

    Ids are UUID strings, timestamps strictly increase, and every data call
    yields to the event loop once. ``fail(method, error)`` makes a method
    raise until ``heal`` is called; ``hold(method)`` parks callers until
    the returned event is set.
    """

    def __init__(self):
        self.categories: Dict[str, Category] = {}
        self.words: Dict[str, WordPair] = {}
        self.calls: List[str] = []
        self.failures: Dict[str, Exception] = {}
        self.gates: Dict[str, asyncio.Event] = {}
        self.init_result = True
        self.healthy = True
        self.closed = False
        self._clock = 0

    def fail(self, method: str, error: Exception) -> None:
        self.failures[method] = error

    def hold(self, method: str) -> asyncio.Event:
        """Block calls to ``method`` until the returned event is set."""
        gate = asyncio.Event()
        self.gates[method] = gate
        return gate

    def heal(self, method: Optional[str] = None) -> None:
        if method is None:
            self.failures.clear()
        else:
            self.failures.pop(method, None)

    def _now(self) -> str:
        self._clock += 1
        return (_EPOCH + timedelta(seconds=self._clock)).isoformat()

    async def _enter(self, method: str) -> None:
        self.calls.append(method)
        await asyncio.sleep(0)
        gate = self.gates.get(method)
        if gate is not None:
            await gate.wait()
        error = self.failures.get(method)
        if error is not None:
            raise error

    def _count(self, category_id: str) -> int:
        return sum(1 for w in self.words.values() if w.category_id == category_id)

    def _with_count(self, category: Category) -> Category:
        return Category(
            id=category.id,
            name=category.name,
            description=category.description,
            language_pair=category.language_pair,
            created_at=category.created_at,
            updated_at=category.updated_at,
            word_count=self._count(category.id),
        )

    def _require_category(self, category_id: Any) -> Category:
        category = self.categories.get(category_id)
        if category is None:
            raise RejectedError(f"Category {category_id} not found", status=404)
        return category

    async def init(self) -> bool:
        await self._enter("init")
        return self.init_result

    async def health_check(self) -> bool:
        return self.healthy

    async def close(self) -> None:
        self.closed = True

    async def add_category(self, name, description="", language_pair=None) -> Category:
        await self._enter("add_category")
        name = clean_category_name(name)
        if any(c.name == name for c in self.categories.values()):
            raise RejectedError("duplicate key value violates unique constraint", status=409)
        now = self._now()
        category = Category(
            id=str(uuid.uuid4()),
            name=name,
            description=TextParser.clean_term(description),
            language_pair=LanguagePair.from_value(language_pair),
            created_at=now,
            updated_at=now,
        )
        self.categories[category.id] = category
        return self._with_count(category)

    async def get_all_categories(self) -> List[Category]:
        await self._enter("get_all_categories")
        ordered = sorted(self.categories.values(), key=lambda c: c.created_at, reverse=True)
        return [self._with_count(c) for c in ordered]

    async def get_category(self, category_id) -> Category:
        await self._enter("get_category")
        return self._with_count(self._require_category(category_id))

    async def update_category(self, category_id, updates) -> Category:
        await self._enter("update_category")
        category = self._require_category(category_id)
        normalized = normalize_category_updates(updates)
        if "name" in normalized:
            category.name = normalized["name"]
        if "description" in normalized:
            category.description = normalized["description"]
        if "languagePair" in normalized:
            category.language_pair = LanguagePair.from_value(normalized["languagePair"])
        category.updated_at = self._now()
        return self._with_count(category)

    async def delete_category(self, category_id) -> None:
        await self._enter("delete_category")
        self.words = {k: w for k, w in self.words.items() if w.category_id != category_id}
        self.categories.pop(category_id, None)

    async def add_word(self, category_id, word1, pronunciation1, word2, pronunciation2) -> WordPair:
        await self._enter("add_word")
        lang1, lang2 = build_sides(word1, pronunciation1, word2, pronunciation2)
        self._require_category(category_id)
        word = WordPair(str(uuid.uuid4()), category_id, lang1, lang2, self._now())
        self.words[word.id] = word
        return word

    async def get_word(self, word_id) -> WordPair:
        await self._enter("get_word")
        if word_id not in self.words:
            raise RejectedError(f"Word pair {word_id} not found", status=404)
        return self.words[word_id]

    async def get_words_by_category(self, category_id) -> List[WordPair]:
        await self._enter("get_words_by_category")
        words = [w for w in self.words.values() if w.category_id == category_id]
        return sorted(words, key=lambda w: w.created_at)

    async def import_words(self, category_id, pairs: Iterable) -> List[WordPair]:
        await self._enter("import_words")
        normalized = normalize_pairs(pairs)
        self._require_category(category_id)
        created = []
        for lang1, lang2 in normalized:
            word = WordPair(str(uuid.uuid4()), category_id, lang1, lang2, self._now())
            self.words[word.id] = word
            created.append(word)
        return created

    async def delete_word(self, word_id) -> None:
        await self._enter("delete_word")
        self.words.pop(word_id, None)

    async def delete_words_by_category(self, category_id) -> None:
        await self._enter("delete_words_by_category")
        self.words = {k: w for k, w in self.words.items() if w.category_id != category_id}

    async def clear_all_data(self) -> None:
        await self._enter("clear_all_data")
        self.words.clear()
        self.categories.clear()


@pytest.fixture(autouse=True)
def settings(tmp_path, monkeypatch):
    """Fresh SettingsManager backed by a temporary file, no env overrides."""
    for key in SettingsManager.DEFAULTS:
        monkeypatch.delenv(key, raising=False)
    SettingsManager.reset_instance()
    manager = SettingsManager(str(tmp_path / "settings.json"))
    yield manager
    SettingsManager.reset_instance()


@pytest.fixture
async def local_store(tmp_path):
    store = LocalStore(str(tmp_path / "fiszki.db"))
    assert await store.init()
    yield store
    await store.close()


@pytest.fixture
def remote_store():
    return FakeRemoteStore()


@pytest.fixture
def make_coordinator(tmp_path, local_store, remote_store, settings):
    """Build (but don't init) a coordinator over the shared fixtures."""

    def factory(remote: Optional[BaseStore] = remote_store) -> SyncCoordinator:
        return SyncCoordinator(
            local=local_store,
            remote=remote,
            queue=OperationQueue(str(tmp_path / "sync_queue.json")),
            id_mapping=IdMapping(str(tmp_path / "id_mapping.json")),
            state=SyncState(settings),
            auto_sync_interval=0.01,
        )

    return factory


@pytest.fixture
async def coordinator(make_coordinator):
    coord = make_coordinator()
    await coord.init()
    yield coord
    await coord.stop_background_sync()
