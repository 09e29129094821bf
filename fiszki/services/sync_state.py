"""Connectivity flag, sync-in-progress guard and persisted sync mode."""

import logging
from contextlib import contextmanager
from typing import Iterator, Optional, Union

from ..config import SettingsManager
from ..models import SyncMode

logger = logging.getLogger(__name__)

SYNC_MODE_KEY = "SYNC_MODE"


class SyncState:
    """
    Shared state of the sync layer.

    Written only by the connectivity path (``is_online``), the mode setter
    and the in-progress guard.
    """

    def __init__(self, settings: Optional[SettingsManager] = None, is_online: bool = True):
        self._settings = settings or SettingsManager()
        self.is_online = is_online
        self._in_progress = False
        self._mode = SyncMode.parse(self._settings.get(SYNC_MODE_KEY))

    @property
    def mode(self) -> SyncMode:
        return self._mode

    @property
    def in_progress(self) -> bool:
        return self._in_progress

    @property
    def remote_enabled(self) -> bool:
        """True when remote calls should be attempted at all."""
        return self.is_online and self._mode is not SyncMode.OFFLINE_ONLY

    def load_mode(self) -> SyncMode:
        """Re-read the persisted mode."""
        self._mode = SyncMode.parse(self._settings.get(SYNC_MODE_KEY))
        return self._mode

    def set_mode(self, mode: Union[SyncMode, str]) -> SyncMode:
        """
        Change and persist the sync mode.

        Raises:
            ValueError: For an unknown mode name
        """
        new_mode = mode if isinstance(mode, SyncMode) else SyncMode(str(mode).strip().lower())
        if new_mode is not self._mode:
            logger.info("Sync mode: %s -> %s", self._mode.value, new_mode.value)
        self._mode = new_mode
        self._settings.set(SYNC_MODE_KEY, new_mode.value)
        return new_mode

    @contextmanager
    def exclusive(self) -> Iterator[bool]:
        """
        Hold the in-progress guard.

        Yields False (and holds nothing) when another sync or drain already
        owns it. Check and set happen without an await in between.
        """
        if self._in_progress:
            yield False
            return

        self._in_progress = True
        try:
            yield True
        finally:
            self._in_progress = False
