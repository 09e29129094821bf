"""Durable FIFO queue of remote writes waiting for connectivity."""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from ..config import Config
from ..exceptions import FiszkiError
from ..models import OperationType, QueuedOperation
from ..utils.helpers import read_json, write_json_atomic

logger = logging.getLogger(__name__)

ReplayCallback = Callable[[QueuedOperation], Awaitable[Any]]


class OperationQueue:
    """
    Append-only log of pending remote writes.

    Every mutation is flushed to the queue file before the call returns, so
    entries survive a restart. File writes are serialized with an asyncio
    lock; entries are only ever appended or removed whole.
    """

    def __init__(self, queue_file: Optional[str] = None):
        """
        Initialize the queue.

        Args:
            queue_file: Path to the queue JSON file (defaults to data/sync_queue.json)
        """
        if queue_file is None:
            queue_file = Config.QUEUE_FILE

        self.queue_file = queue_file
        self._entries: List[QueuedOperation] = []
        self._async_lock: Optional[asyncio.Lock] = None  # Lazy init, needs a running loop
        self._draining = False

    def _get_async_lock(self) -> asyncio.Lock:
        """Get or create async lock (lazy initialization)."""
        if self._async_lock is None:
            self._async_lock = asyncio.Lock()
        return self._async_lock

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def is_draining(self) -> bool:
        return self._draining

    async def load(self) -> int:
        """
        Load entries from the queue file, replacing the in-memory list.

        Malformed entries are logged and skipped.

        Returns:
            Number of entries loaded
        """
        raw = await read_json(self.queue_file, default=[])
        entries = []
        for item in raw if isinstance(raw, list) else []:
            try:
                entries.append(QueuedOperation.from_dict(item))
            except (KeyError, ValueError, TypeError) as e:
                logger.warning("Skipping malformed queue entry %r: %s", item, e)
        self._entries = entries
        logger.debug("Loaded %d queued operation(s) from %s", len(entries), self.queue_file)
        return len(entries)

    async def _flush(self) -> None:
        """Write the current entries to disk. Caller must hold the lock."""
        await write_json_atomic(self.queue_file, [e.to_dict() for e in self._entries])

    async def enqueue(
        self,
        operation: Union[QueuedOperation, OperationType],
        params: Optional[Dict[str, Any]] = None,
    ) -> QueuedOperation:
        """
        Append an operation and persist the queue.

        Args:
            operation: A ready QueuedOperation, or the operation type
            params: Call parameters when ``operation`` is a type

        Returns:
            The queued entry
        """
        if not isinstance(operation, QueuedOperation):
            operation = QueuedOperation(operation=OperationType(operation), params=dict(params or {}))

        async with self._get_async_lock():
            self._entries.append(operation)
            await self._flush()

        logger.info("Queued %s (%d pending)", operation.operation.value, len(self._entries))
        return operation

    def peek_all(self) -> List[QueuedOperation]:
        """Entries in FIFO order (a copy)."""
        return list(self._entries)

    def has_pending(self, predicate: Callable[[QueuedOperation], bool]) -> bool:
        """True if any queued entry matches ``predicate``."""
        return any(predicate(entry) for entry in self._entries)

    async def _remove(self, entry_id: str) -> None:
        async with self._get_async_lock():
            self._entries = [e for e in self._entries if e.id != entry_id]
            await self._flush()

    async def clear(self) -> None:
        """Drop every entry."""
        async with self._get_async_lock():
            self._entries = []
            await self._flush()

    async def drain(self, replay: ReplayCallback) -> int:
        """
        Replay a snapshot of the queue in FIFO order.

        Each entry is handled independently: only a successful replay removes
        it, any FiszkiError keeps it verbatim for the next pass. Entries enqueued while draining are left for the next pass. A drain
        started while another is running returns 0 immediately.

        Args:
            replay: Coroutine function performing the remote call for one entry

        Returns:
            Number of entries successfully replayed
        """
        if self._draining:
            logger.debug("Drain already running, skipping")
            return 0

        self._draining = True
        replayed = 0
        try:
            for entry in list(self._entries):
                try:
                    await replay(entry)
                except FiszkiError as e:
                    logger.warning("Replay of %s (%s) failed, keeping it queued: %s",
                                   entry.operation.value, entry.id, e)
                    continue

                await self._remove(entry.id)
                replayed += 1
        finally:
            self._draining = False

        if replayed:
            logger.info("Replayed %d queued operation(s), %d pending", replayed, len(self._entries))
        return replayed
