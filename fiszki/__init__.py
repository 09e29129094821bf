"""Fiszki - Local-first flashcards with cloud sync"""

__version__ = "1.0.0"
__author__ = "Fiszki Team"

from .config import Config, SettingsManager
from .models import Category, WordPair, CategorySnapshot, SyncMode
from .services import LocalStore, RemoteStore, SyncCoordinator

__all__ = [
    'Config',
    'SettingsManager',
    'Category',
    'WordPair',
    'CategorySnapshot',
    'SyncMode',
    'LocalStore',
    'RemoteStore',
    'SyncCoordinator',
]
