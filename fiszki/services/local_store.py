"""
Local Store - SQLite-backed flashcard storage.

The durable, always-available half of the local-first design. Blocking
sqlite3 calls run on a single-worker thread pool, so every public method is
an await point and writes never interleave.
"""

import asyncio
import functools
import logging
import sqlite3
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Dict, Generator, Iterable, List, Optional, Tuple, Union

import pandas as pd

from ..config import Config
from ..exceptions import ConflictError, NotFoundError, StoreError
from ..models import (
    Category,
    LanguagePair,
    WordPair,
    WordSide,
    build_sides,
    clean_category_name,
    normalize_category_updates,
    normalize_pairs,
)
from ..utils.helpers import utc_now_iso
from ..utils.parsing import TextParser
from .repository import BaseStore, PairInput

logger = logging.getLogger(__name__)


class LocalStore(BaseStore):
    """
    SQLite-based store implementation.

    Provides:
    - Transactional writes per call
    - Category name uniqueness (ConflictError)
    - Explicit word-count recomputation (see ``recompute_word_count``)
    - Timestamp-preserving restore used by full resync
    """

    # Schema version for migrations
    SCHEMA_VERSION = 1

    def __init__(self, db_path: Optional[str] = None):
        """
        Initialize SQLite store.

        Args:
            db_path: Path to SQLite database file
        """
        if db_path is None:
            db_path = Config.DB_FILE

        self.db_path = Path(db_path)
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="fiszki-local")
        self._ensure_db_dir()

    def _ensure_db_dir(self) -> None:
        """Ensure database directory exists."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    @contextmanager
    def _get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        """Get database connection with context manager."""
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            yield conn
        finally:
            conn.close()

    async def _run(self, func: Callable, *args: Any) -> Any:
        """Run a blocking call on the store's worker thread."""
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(self._executor, functools.partial(func, *args))
        except sqlite3.Error as e:
            raise StoreError(f"SQLite error in {func.__name__}: {e}") from e

    def _init_schema(self) -> None:
        """Initialize database schema."""
        with self._get_connection() as conn:
            cursor = conn.cursor()

            # Schema versioning table
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS schema_version (
                    version INTEGER PRIMARY KEY,
                    applied_at TEXT NOT NULL
                )
            """)

            # AUTOINCREMENT: ids are not reused until clear_all_data resets
            # the sequences. Ids taken before a clear are stale afterwards.
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS categories (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL UNIQUE,
                    description TEXT NOT NULL DEFAULT '',
                    lang1 TEXT NOT NULL,
                    lang2 TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    word_count INTEGER NOT NULL DEFAULT 0
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS words (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    category_id INTEGER NOT NULL REFERENCES categories(id) ON DELETE CASCADE,
                    word1 TEXT NOT NULL CHECK(length(trim(word1)) > 0),
                    pronunciation1 TEXT NOT NULL DEFAULT '',
                    word2 TEXT NOT NULL CHECK(length(trim(word2)) > 0),
                    pronunciation2 TEXT NOT NULL DEFAULT '',
                    created_at TEXT NOT NULL
                )
            """)

            # Indexes for common queries
            cursor.execute("CREATE INDEX IF NOT EXISTS idx_words_category ON words(category_id)")
            cursor.execute("CREATE INDEX IF NOT EXISTS idx_categories_created ON categories(created_at)")

            # Record schema version
            cursor.execute("INSERT OR IGNORE INTO schema_version (version, applied_at) VALUES (?, ?)",
                           (self.SCHEMA_VERSION, utc_now_iso()))

            conn.commit()

    async def init(self) -> bool:
        """Initialize database and schema."""
        try:
            await self._run(self._init_schema)
            return True
        except StoreError as e:
            logger.error("Error initializing SQLite store %s: %s", self.db_path, e)
            return False

    async def close(self) -> None:
        """Stop the worker thread."""
        self._executor.shutdown(wait=True)

    # ==================== Row conversion ====================

    @staticmethod
    def _row_to_category(row: sqlite3.Row) -> Category:
        return Category(
            id=row["id"],
            name=row["name"],
            description=row["description"],
            language_pair=LanguagePair(row["lang1"], row["lang2"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            word_count=row["word_count"],
        )

    @staticmethod
    def _row_to_word(row: sqlite3.Row) -> WordPair:
        return WordPair(
            id=row["id"],
            category_id=row["category_id"],
            lang1=WordSide(row["word1"], row["pronunciation1"]),
            lang2=WordSide(row["word2"], row["pronunciation2"]),
            created_at=row["created_at"],
        )

    @staticmethod
    def _fetch_category(conn: sqlite3.Connection, category_id: Any) -> sqlite3.Row:
        row = conn.execute("SELECT * FROM categories WHERE id = ?", (category_id,)).fetchone()
        if row is None:
            raise NotFoundError(f"Category {category_id} not found")
        return row

    @staticmethod
    def _fetch_word(conn: sqlite3.Connection, word_id: Any) -> sqlite3.Row:
        row = conn.execute("SELECT * FROM words WHERE id = ?", (word_id,)).fetchone()
        if row is None:
            raise NotFoundError(f"Word pair {word_id} not found")
        return row

    @staticmethod
    def _clean_description(description: Any) -> str:
        return TextParser.clean_term(description)

    # ==================== Categories ====================

    def _add_category(self, name: Any, description: Any, language_pair: Any) -> Category:
        name = clean_category_name(name)
        description = self._clean_description(description)
        pair = LanguagePair.from_value(language_pair)
        now = utc_now_iso()

        with self._get_connection() as conn:
            try:
                cursor = conn.execute(
                    """
                    INSERT INTO categories (name, description, lang1, lang2, created_at, updated_at, word_count)
                    VALUES (?, ?, ?, ?, ?, ?, 0)
                    """,
                    (name, description, pair.lang1, pair.lang2, now, now),
                )
                conn.commit()
            except sqlite3.IntegrityError as e:
                raise ConflictError(f"Category '{name}' already exists") from e

        return Category(
            id=cursor.lastrowid,
            name=name,
            description=description,
            language_pair=pair,
            created_at=now,
            updated_at=now,
            word_count=0,
        )

    async def add_category(
        self,
        name: str,
        description: str = "",
        language_pair: Union[LanguagePair, Dict[str, Any], None] = None,
    ) -> Category:
        return await self._run(self._add_category, name, description, language_pair)

    def _get_all_categories(self) -> List[Category]:
        with self._get_connection() as conn:
            rows = conn.execute("SELECT * FROM categories ORDER BY id").fetchall()
        return [self._row_to_category(row) for row in rows]

    async def get_all_categories(self) -> List[Category]:
        return await self._run(self._get_all_categories)

    def _get_category(self, category_id: Any) -> Category:
        with self._get_connection() as conn:
            return self._row_to_category(self._fetch_category(conn, category_id))

    async def get_category(self, category_id: Any) -> Category:
        return await self._run(self._get_category, category_id)

    def _update_category(self, category_id: Any, updates: Dict[str, Any]) -> Category:
        normalized = normalize_category_updates(updates)

        columns: Dict[str, Any] = {}
        if "name" in normalized:
            columns["name"] = normalized["name"]
        if "description" in normalized:
            columns["description"] = normalized["description"]
        if "languagePair" in normalized:
            columns["lang1"] = normalized["languagePair"]["lang1"]
            columns["lang2"] = normalized["languagePair"]["lang2"]
        columns["updated_at"] = utc_now_iso()

        set_clause = ", ".join(f"{k} = ?" for k in columns)
        values = list(columns.values()) + [category_id]

        with self._get_connection() as conn:
            self._fetch_category(conn, category_id)
            try:
                conn.execute(f"UPDATE categories SET {set_clause} WHERE id = ?", values)
                conn.commit()
            except sqlite3.IntegrityError as e:
                raise ConflictError(f"Category '{columns.get('name')}' already exists") from e
            return self._row_to_category(self._fetch_category(conn, category_id))

    async def update_category(self, category_id: Any, updates: Dict[str, Any]) -> Category:
        return await self._run(self._update_category, category_id, updates)

    def _delete_category(self, category_id: Any) -> None:
        with self._get_connection() as conn:
            self._fetch_category(conn, category_id)
            # Delete all words in this category first
            conn.execute("DELETE FROM words WHERE category_id = ?", (category_id,))
            conn.execute("DELETE FROM categories WHERE id = ?", (category_id,))
            conn.commit()

    async def delete_category(self, category_id: Any) -> None:
        await self._run(self._delete_category, category_id)

    # ==================== Word pairs ====================

    def _add_word(self, category_id: Any, word1: Any, pronunciation1: Any,
                  word2: Any, pronunciation2: Any) -> WordPair:
        lang1, lang2 = build_sides(word1, pronunciation1, word2, pronunciation2)
        now = utc_now_iso()

        with self._get_connection() as conn:
            category_id = self._fetch_category(conn, category_id)["id"]
            cursor = conn.execute(
                """
                INSERT INTO words (category_id, word1, pronunciation1, word2, pronunciation2, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (category_id, lang1.word, lang1.pronunciation, lang2.word, lang2.pronunciation, now),
            )
            conn.commit()

        return WordPair(id=cursor.lastrowid, category_id=category_id, lang1=lang1, lang2=lang2, created_at=now)

    async def add_word(
        self,
        category_id: Any,
        word1: str,
        pronunciation1: str,
        word2: str,
        pronunciation2: str,
    ) -> WordPair:
        """Add a word pair. The category's word count is NOT recomputed."""
        return await self._run(self._add_word, category_id, word1, pronunciation1, word2, pronunciation2)

    def _get_word(self, word_id: Any) -> WordPair:
        with self._get_connection() as conn:
            return self._row_to_word(self._fetch_word(conn, word_id))

    async def get_word(self, word_id: Any) -> WordPair:
        return await self._run(self._get_word, word_id)

    def _get_words_by_category(self, category_id: Any) -> List[WordPair]:
        with self._get_connection() as conn:
            rows = conn.execute(
                "SELECT * FROM words WHERE category_id = ? ORDER BY id", (category_id,)
            ).fetchall()
        return [self._row_to_word(row) for row in rows]

    async def get_words_by_category(self, category_id: Any) -> List[WordPair]:
        return await self._run(self._get_words_by_category, category_id)

    def _import_words(self, category_id: Any, pairs: List[PairInput]) -> List[WordPair]:
        normalized = normalize_pairs(pairs)
        created: List[WordPair] = []

        with self._get_connection() as conn:
            category_id = self._fetch_category(conn, category_id)["id"]
            for lang1, lang2 in normalized:
                now = utc_now_iso()
                cursor = conn.execute(
                    """
                    INSERT INTO words (category_id, word1, pronunciation1, word2, pronunciation2, created_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (category_id, lang1.word, lang1.pronunciation, lang2.word, lang2.pronunciation, now),
                )
                created.append(WordPair(cursor.lastrowid, category_id, lang1, lang2, now))
            conn.commit()

        return created

    async def import_words(self, category_id: Any, pairs: Iterable[PairInput]) -> List[WordPair]:
        """Batch insert in one transaction. The word count is NOT recomputed."""
        return await self._run(self._import_words, category_id, list(pairs))

    def _update_word(self, word_id: Any, updates: Dict[str, Any]) -> WordPair:
        with self._get_connection() as conn:
            current = self._row_to_word(self._fetch_word(conn, word_id))
            lang1 = WordSide.from_value({**current.lang1.to_dict(), **(updates.get("lang1") or {})})
            lang2 = WordSide.from_value({**current.lang2.to_dict(), **(updates.get("lang2") or {})})
            lang1, lang2 = build_sides(lang1.word, lang1.pronunciation, lang2.word, lang2.pronunciation)
            conn.execute(
                """
                UPDATE words SET word1 = ?, pronunciation1 = ?, word2 = ?, pronunciation2 = ?
                WHERE id = ?
                """,
                (lang1.word, lang1.pronunciation, lang2.word, lang2.pronunciation, word_id),
            )
            conn.commit()
        return WordPair(current.id, current.category_id, lang1, lang2, current.created_at)

    async def update_word(self, word_id: Any, updates: Dict[str, Any]) -> WordPair:
        """Partially update a word pair's sides (``{"lang1": {...}, "lang2": {...}}``)."""
        return await self._run(self._update_word, word_id, updates)

    def _delete_word(self, word_id: Any) -> None:
        with self._get_connection() as conn:
            self._fetch_word(conn, word_id)
            conn.execute("DELETE FROM words WHERE id = ?", (word_id,))
            conn.commit()

    async def delete_word(self, word_id: Any) -> None:
        """Delete a word pair. The word count is NOT recomputed."""
        await self._run(self._delete_word, word_id)

    def _delete_words_by_category(self, category_id: Any) -> None:
        with self._get_connection() as conn:
            conn.execute("DELETE FROM words WHERE category_id = ?", (category_id,))
            conn.commit()

    async def delete_words_by_category(self, category_id: Any) -> None:
        await self._run(self._delete_words_by_category, category_id)

    def _recompute_word_count(self, category_id: Any) -> int:
        with self._get_connection() as conn:
            count = conn.execute(
                "SELECT COUNT(*) FROM words WHERE category_id = ?", (category_id,)
            ).fetchone()[0]
            # Cache refresh only: updated_at is left alone
            cursor = conn.execute(
                "UPDATE categories SET word_count = ? WHERE id = ?", (count, category_id)
            )
            if cursor.rowcount == 0:
                raise NotFoundError(f"Category {category_id} not found")
            conn.commit()
        return count

    async def recompute_word_count(self, category_id: Any) -> int:
        """
        Count the category's word pairs and write the count back.

        Not called by the word mutations themselves; callers invoke it once
        after a batch of changes.
        """
        return await self._run(self._recompute_word_count, category_id)

    def _clear_all_data(self) -> None:
        with self._get_connection() as conn:
            conn.execute("DELETE FROM words")
            conn.execute("DELETE FROM categories")
            conn.execute("DELETE FROM sqlite_sequence WHERE name IN ('categories', 'words')")
            conn.commit()

    async def clear_all_data(self) -> None:
        await self._run(self._clear_all_data)

    # ==================== SQLite-specific methods ====================

    def _restore_category(self, category: Category, words: List[WordPair]) -> Tuple[Category, List[WordPair]]:
        normalized = normalize_pairs(words)
        name = clean_category_name(category.name)
        description = self._clean_description(category.description)
        pair = LanguagePair.from_value(category.language_pair)
        created_at = category.created_at or utc_now_iso()
        updated_at = category.updated_at or created_at

        with self._get_connection() as conn:
            try:
                cursor = conn.execute(
                    """
                    INSERT INTO categories (name, description, lang1, lang2, created_at, updated_at, word_count)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (name, description, pair.lang1, pair.lang2, created_at, updated_at, len(normalized)),
                )
            except sqlite3.IntegrityError as e:
                raise ConflictError(f"Category '{name}' already exists") from e
            category_id = cursor.lastrowid

            restored_words = []
            for source, (lang1, lang2) in zip(words, normalized):
                word_created = source.created_at or utc_now_iso()
                cursor = conn.execute(
                    """
                    INSERT INTO words (category_id, word1, pronunciation1, word2, pronunciation2, created_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (category_id, lang1.word, lang1.pronunciation, lang2.word, lang2.pronunciation, word_created),
                )
                restored_words.append(WordPair(cursor.lastrowid, category_id, lang1, lang2, word_created))
            conn.commit()

        restored = Category(
            id=category_id,
            name=name,
            description=description,
            language_pair=pair,
            created_at=created_at,
            updated_at=updated_at,
            word_count=len(restored_words),
        )
        return restored, restored_words

    async def restore_category(
        self,
        category: Category,
        words: List[WordPair],
    ) -> Tuple[Category, List[WordPair]]:
        """Insert a category copied from the remote store, keeping its timestamps."""
        return await self._run(self._restore_category, category, list(words))

    def _export_to_csv(self, csv_path: str) -> int:
        with self._get_connection() as conn:
            df = pd.read_sql_query(
                """
                SELECT c.name AS category, c.lang1, c.lang2,
                       w.word1, w.pronunciation1, w.word2, w.pronunciation2, w.created_at
                FROM words w
                JOIN categories c ON c.id = w.category_id
                ORDER BY c.id, w.id
                """,
                conn,
            )
        Path(csv_path).parent.mkdir(parents=True, exist_ok=True)
        df.to_csv(csv_path, sep='|', index=False, encoding='utf-8-sig')
        return len(df)

    async def export_to_csv(self, csv_path: str) -> int:
        """
        Export every word pair with its category to a pipe-separated CSV file.

        Args:
            csv_path: Output file

        Returns:
            Number of rows written
        """
        return await self._run(self._export_to_csv, csv_path)
