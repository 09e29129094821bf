"""Persistent settings manager with JSON storage and environment fallback."""

import copy
import json
import logging
import os
from pathlib import Path
from threading import Lock
from typing import Any, Dict, Optional

from .settings import Config

logger = logging.getLogger(__name__)


class SettingsManager:
    """
    Manages application settings with JSON persistence.

    Settings are loaded from a JSON file with fallback to environment variables.
    Changes are immediately persisted to disk. Credentials are never written
    to the file.

    Usage:
        settings = SettingsManager()
        mode = settings.get("SYNC_MODE", "auto")
        settings.set("SYNC_MODE", "manual")
    """

    _instance: Optional["SettingsManager"] = None
    _lock: Lock = Lock()

    DEFAULT_SETTINGS_FILE: str = Config.SETTINGS_FILE

    # Default values for all settings
    # NOTE: credentials should come from environment variables, not defaults!
    DEFAULTS: Dict[str, Any] = {
        # Cloud backend - keys loaded from environment
        "SUPABASE_URL": Config.SUPABASE_URL,
        "SUPABASE_ANON_KEY": Config.SUPABASE_ANON_KEY,
        "SUPABASE_ACCESS_TOKEN": Config.SUPABASE_ACCESS_TOKEN,

        # Sync settings
        "SYNC_MODE": Config.SYNC_MODE,
        "AUTO_SYNC_INTERVAL": Config.AUTO_SYNC_INTERVAL,
        "CONNECTIVITY_CHECK_INTERVAL": Config.CONNECTIVITY_CHECK_INTERVAL,
        "TIMEOUT": Config.TIMEOUT,

        # Paths
        "DATA_DIR": Config.DATA_DIR,
    }

    # Never persisted to the settings file
    SECRET_KEYS = frozenset({"SUPABASE_ANON_KEY", "SUPABASE_ACCESS_TOKEN"})

    def __new__(cls, settings_file: Optional[str] = None) -> "SettingsManager":
        """Singleton pattern to ensure only one instance exists."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    instance = super().__new__(cls)
                    instance._initialized = False
                    cls._instance = instance
        return cls._instance

    def __init__(self, settings_file: Optional[str] = None) -> None:
        """
        Initialize the settings manager.

        Args:
            settings_file: Path to the settings JSON file.
                          Defaults to 'settings.json' in the project root.
        """
        if getattr(self, "_initialized", False):
            return

        self._settings_file: Path = Path(settings_file or self.DEFAULT_SETTINGS_FILE)
        self._settings: Dict[str, Any] = {}
        self._file_lock: Lock = Lock()

        self._load_settings()
        self._initialized = True

    @property
    def settings_file(self) -> Path:
        return self._settings_file

    def _load_settings(self) -> None:
        """Load settings from JSON file with environment variable fallback."""
        # Start with defaults
        self._settings = self.DEFAULTS.copy()

        # Load from file if exists
        if self._settings_file.exists():
            try:
                with open(self._settings_file, "r", encoding="utf-8") as f:
                    file_settings = json.load(f)
                    self._settings.update(file_settings)
            except (json.JSONDecodeError, IOError) as e:
                # Log error but continue with defaults
                logger.warning("Could not load settings file: %s", e)

        # Override with environment variables (highest priority)
        for key in self.DEFAULTS:
            env_value = os.environ.get(key)
            if env_value is not None:
                self._settings[key] = self._parse_env_value(env_value, key)

        # Ensure file exists with current settings
        self._save_settings()

    def _parse_env_value(self, value: str, key: str) -> Any:
        """
        Coerce an environment string to the type of the key's default.

        Unparseable numbers keep the default; SYNC_MODE is lower-cased.
        """
        default = self.DEFAULTS.get(key)

        if isinstance(default, bool):
            return value.strip().lower() in ("true", "1", "yes", "on")
        if isinstance(default, (int, float)):
            try:
                return type(default)(value)
            except ValueError:
                logger.warning("Ignoring %s=%r: expected %s", key, value, type(default).__name__)
                return default
        if key == "SYNC_MODE":
            return value.strip().lower()
        return value

    def _save_settings(self) -> None:
        """Save current settings (minus secrets) to JSON file."""
        persisted = {k: v for k, v in self._settings.items() if k not in self.SECRET_KEYS}
        temp_file = self._settings_file.with_name(self._settings_file.name + ".tmp")
        with self._file_lock:
            try:
                self._settings_file.parent.mkdir(parents=True, exist_ok=True)
                # Atomic write: temp file + rename
                with open(temp_file, "w", encoding="utf-8") as f:
                    json.dump(persisted, f, indent=2, ensure_ascii=False)
                os.replace(temp_file, self._settings_file)
            except OSError as e:
                logger.warning("Could not save settings file %s: %s", self._settings_file, e)

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a setting value.

        Returns a deep copy for mutable objects (dict, list) to prevent
        accidental modification of internal state.

        Args:
            key: The setting key
            default: Default value if key not found

        Returns:
            The setting value (copy for mutable types), or default if not found
        """
        value = self._settings.get(key, default)
        if isinstance(value, (dict, list)):
            return copy.deepcopy(value)
        return value

    def set(self, key: str, value: Any, persist: bool = True) -> None:
        """
        Set a setting value and immediately persist to disk.

        Args:
            key: The setting key
            value: The value to set
            persist: Write the settings file right away
        """
        self._settings[key] = value
        if persist:
            self._save_settings()

    def get_all(self) -> Dict[str, Any]:
        """
        Get a copy of all current settings.

        Returns:
            Dictionary containing all settings
        """
        return self._settings.copy()

    def reset(self, key: Optional[str] = None) -> None:
        """
        Reset settings to defaults.

        Args:
            key: Specific key to reset. If None, resets all settings.
        """
        if key is not None:
            if key in self.DEFAULTS:
                self._settings[key] = self.DEFAULTS[key]
        else:
            self._settings = self.DEFAULTS.copy()

        self._save_settings()

    def reload(self) -> None:
        """Reload settings from disk."""
        self._load_settings()

    @classmethod
    def reset_instance(cls) -> None:
        """Reset the singleton instance. Useful for testing."""
        with cls._lock:
            cls._instance = None
