"""Queued remote write operations."""

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict


class OperationType(Enum):
    """Remote writes that can be deferred to the operation queue."""
    CREATE_CATEGORY = "create-category"
    UPDATE_CATEGORY = "update-category"
    DELETE_CATEGORY = "delete-category"
    CREATE_WORD = "create-word"
    IMPORT_WORDS = "import-words"
    DELETE_WORD = "delete-word"
    DELETE_WORDS_BY_CATEGORY = "delete-words-by-category"
    IMPORT_CATEGORY_FROM_SNAPSHOT = "import-category-from-snapshot"


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class QueuedOperation:
    """
    A remote write whose local half already succeeded.

    ``params`` keeps the original call's arguments (with local ids) in a
    JSON-serializable form. Entries are immutable: a failed replay leaves
    the entry exactly as it was enqueued.
    """

    operation: OperationType
    params: Dict[str, Any]
    timestamp: int = field(default_factory=_now_ms)
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "operation": self.operation.value,
            "params": self.params,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "QueuedOperation":
        return cls(
            operation=OperationType(data["operation"]),
            params=data.get("params") or {},
            timestamp=int(data.get("timestamp") or 0),
            id=data.get("id") or uuid.uuid4().hex,
        )
