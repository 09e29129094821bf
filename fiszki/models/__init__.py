"""Data models for Fiszki."""

from .flashcard import (
    LanguagePair,
    WordSide,
    Category,
    WordPair,
    CategorySnapshot,
    CategoryStat,
    Statistics,
    clean_category_name,
    build_sides,
    normalize_pairs,
    normalize_category_updates,
)
from .operation import OperationType, QueuedOperation
from .sync import SyncMode, SyncStatus, SyncResult

__all__ = [
    'LanguagePair',
    'WordSide',
    'Category',
    'WordPair',
    'CategorySnapshot',
    'CategoryStat',
    'Statistics',
    'clean_category_name',
    'build_sides',
    'normalize_pairs',
    'normalize_category_updates',
    'OperationType',
    'QueuedOperation',
    'SyncMode',
    'SyncStatus',
    'SyncResult',
]
