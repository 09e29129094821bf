"""
Repository Pattern - Abstract flashcard store.

The local SQLite store and the remote Supabase store implement the same
contract, so the sync coordinator never depends on a concrete backend and
tests can substitute an in-memory store.
"""

from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Any, Dict, Iterable, List, Tuple, Union

from ..models import (
    Category,
    CategorySnapshot,
    CategoryStat,
    LanguagePair,
    Statistics,
    WordPair,
    clean_category_name,
    normalize_pairs,
)

PairInput = Union[WordPair, Dict[str, Any]]


class BaseStore(ABC):
    """
    Abstract base class for flashcard stores.

    Defines the contract for all data access operations. Snapshot export and
    import, statistics and the default word-count recomputation are written
    once here on top of the primitives.
    """

    @abstractmethod
    async def init(self) -> bool:
        """Prepare the store. Returns True if a usable session/connection exists."""
        pass

    # ==================== Categories ====================

    @abstractmethod
    async def add_category(
        self,
        name: str,
        description: str = "",
        language_pair: Union[LanguagePair, Dict[str, Any], None] = None,
    ) -> Category:
        """Create a category."""
        pass

    @abstractmethod
    async def get_all_categories(self) -> List[Category]:
        """Get all categories."""
        pass

    @abstractmethod
    async def get_category(self, category_id: Any) -> Category:
        """Get one category. Raises NotFoundError if absent."""
        pass

    @abstractmethod
    async def update_category(self, category_id: Any, updates: Dict[str, Any]) -> Category:
        """Apply a partial update (name, description, languagePair)."""
        pass

    @abstractmethod
    async def delete_category(self, category_id: Any) -> None:
        """Delete a category together with its word pairs."""
        pass

    # ==================== Word pairs ====================

    @abstractmethod
    async def add_word(
        self,
        category_id: Any,
        word1: str,
        pronunciation1: str,
        word2: str,
        pronunciation2: str,
    ) -> WordPair:
        """Add one word pair to a category."""
        pass

    @abstractmethod
    async def get_word(self, word_id: Any) -> WordPair:
        """Get one word pair. Raises NotFoundError if absent."""
        pass

    @abstractmethod
    async def get_words_by_category(self, category_id: Any) -> List[WordPair]:
        """Get every word pair of a category, oldest first."""
        pass

    @abstractmethod
    async def import_words(self, category_id: Any, pairs: Iterable[PairInput]) -> List[WordPair]:
        """Insert a batch of word pairs. Returns the created pairs in input order."""
        pass

    @abstractmethod
    async def delete_word(self, word_id: Any) -> None:
        """Delete one word pair."""
        pass

    @abstractmethod
    async def delete_words_by_category(self, category_id: Any) -> None:
        """Delete every word pair of a category."""
        pass

    @abstractmethod
    async def clear_all_data(self) -> None:
        """Remove all categories and word pairs."""
        pass

    # ==================== Shared implementations ====================

    async def import_words_to_category(self, category_id: Any, pairs: Iterable[PairInput]) -> int:
        """Insert a batch of word pairs. Returns the number imported."""
        return len(await self.import_words(category_id, pairs))

    async def recompute_word_count(self, category_id: Any) -> int:
        """
        Count the word pairs of a category.

        Stores that cache the count override this to write it back.
        """
        return len(await self.get_words_by_category(category_id))

    async def restore_category(
        self,
        category: Category,
        words: List[WordPair],
    ) -> Tuple[Category, List[WordPair]]:
        """
        Recreate a category copied from another store.

        The default creates fresh records; stores that can keep the source
        timestamps override it.
        """
        created = await self.add_category(category.name, category.description, category.language_pair)
        created_words = await self.import_words(created.id, words) if words else []
        count = await self.recompute_word_count(created.id)
        return replace(created, word_count=count), created_words

    async def export_category(self, category_id: Any) -> CategorySnapshot:
        """Export a category and its word pairs as a portable snapshot."""
        category = await self.get_category(category_id)
        words = await self.get_words_by_category(category_id)
        return CategorySnapshot(
            name=category.name,
            description=category.description,
            language_pair=category.language_pair,
            words=words,
        )

    async def import_snapshot(
        self,
        snapshot: Union[CategorySnapshot, Dict[str, Any]],
    ) -> Tuple[Category, List[WordPair]]:
        """
        Create a category from a snapshot.

        All word pairs are validated before the category is created, so an
        invalid snapshot leaves the store untouched.

        Returns:
            The new category (with its word count) and the created word pairs
        """
        snapshot = CategorySnapshot.coerce(snapshot)
        clean_category_name(snapshot.name)
        normalize_pairs(snapshot.words)

        category = await self.add_category(snapshot.name, snapshot.description, snapshot.language_pair)
        words = await self.import_words(category.id, snapshot.words) if snapshot.words else []
        count = await self.recompute_word_count(category.id)
        return replace(category, word_count=count), words

    async def import_category_from_snapshot(
        self,
        snapshot: Union[CategorySnapshot, Dict[str, Any]],
    ) -> Category:
        """Create a category from a snapshot. Returns the new category."""
        category, _ = await self.import_snapshot(snapshot)
        return category

    async def get_statistics(self) -> Statistics:
        """Totals computed from the categories' cached word counts."""
        categories = await self.get_all_categories()
        return Statistics(
            total_categories=len(categories),
            total_words=sum(c.word_count for c in categories),
            categories=[CategoryStat(c.id, c.name, c.word_count) for c in categories],
        )

    @property
    def is_configured(self) -> bool:
        """False when the store lacks the settings it needs to ever connect."""
        return True

    async def health_check(self) -> bool:
        """True if the store is reachable. Local stores always are."""
        return True

    async def close(self) -> None:
        """
        Close any open resources (sessions, connections, etc.).

        Subclasses should override this to clean up their resources.
        """
        pass

    async def __aenter__(self) -> "BaseStore":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit - ensure resources are closed."""
        await self.close()
