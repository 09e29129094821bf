"""Sync mode and sync reporting models."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from ..utils.helpers import utc_now_iso


class SyncMode(Enum):
    """How the coordinator talks to the remote store."""
    AUTO = "auto"
    MANUAL = "manual"
    OFFLINE_ONLY = "offline-only"

    @classmethod
    def parse(cls, value: Union["SyncMode", str, None], default: "SyncMode" = None) -> "SyncMode":
        """Parse a mode name, falling back to ``default`` (auto) for unknown values."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            if default is None:
                return cls.AUTO
            return default


@dataclass
class SyncStatus:
    is_online: bool
    is_syncing: bool
    sync_mode: SyncMode
    queue_length: int
    last_sync_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "isOnline": self.is_online,
            "isSyncing": self.is_syncing,
            "syncMode": self.sync_mode.value,
            "queueLength": self.queue_length,
            "lastSyncAt": self.last_sync_at,
        }


@dataclass
class SyncResult:
    """Outcome of one full resync."""
    replayed: int = 0
    failed: int = 0
    categories: int = 0
    words: int = 0
    failed_categories: List[str] = field(default_factory=list)
    finished_at: str = field(default_factory=utc_now_iso)
