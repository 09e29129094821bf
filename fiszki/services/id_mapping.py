"""Persisted translation table between local and remote entity ids."""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from ..config import Config
from ..utils.helpers import read_json, write_json_atomic

logger = logging.getLogger(__name__)

KINDS = ("category", "word")


class IdMapping:
    """
    Bidirectional local-id <-> remote-id table, one per entity kind.

    Local ids are SQLite integers, remote ids are UUID strings. Keys are
    compared as strings so ids read back from JSON match the originals.

    File layout::

        {"category": [[local, remote], ...], "word": [[local, remote], ...]}
    """

    def __init__(self, mapping_file: Optional[str] = None):
        if mapping_file is None:
            mapping_file = Config.ID_MAPPING_FILE

        self.mapping_file = mapping_file
        self._forward: Dict[str, Dict[str, Any]] = {kind: {} for kind in KINDS}
        self._reverse: Dict[str, Dict[str, Any]] = {kind: {} for kind in KINDS}
        self._async_lock: Optional[asyncio.Lock] = None

    def _get_async_lock(self) -> asyncio.Lock:
        if self._async_lock is None:
            self._async_lock = asyncio.Lock()
        return self._async_lock

    def __len__(self) -> int:
        return sum(len(table) for table in self._forward.values())

    async def load(self) -> int:
        """Load the table from disk. Returns the number of mappings."""
        raw = await read_json(self.mapping_file, default={})
        self._reset()
        for kind in KINDS:
            for pair in (raw or {}).get(kind, []):
                if isinstance(pair, list) and len(pair) == 2:
                    self._put(kind, pair[0], pair[1])
                else:
                    logger.warning("Skipping malformed %s mapping %r", kind, pair)
        return len(self)

    async def save(self) -> None:
        data: Dict[str, List[List[Any]]] = {
            kind: [[local, remote] for local, remote in self._pairs(kind)]
            for kind in KINDS
        }
        async with self._get_async_lock():
            await write_json_atomic(self.mapping_file, data)

    def _reset(self) -> None:
        for kind in KINDS:
            self._forward[kind] = {}
            self._reverse[kind] = {}

    def _pairs(self, kind: str):
        reverse = self._reverse[kind]
        return [(reverse[str(remote)], remote) for remote in self._forward[kind].values()]

    def _put(self, kind: str, local_id: Any, remote_id: Any) -> None:
        # Drop stale links in both directions first
        old_remote = self._forward[kind].pop(str(local_id), None)
        if old_remote is not None:
            self._reverse[kind].pop(str(old_remote), None)
        old_local = self._reverse[kind].pop(str(remote_id), None)
        if old_local is not None:
            self._forward[kind].pop(str(old_local), None)

        self._forward[kind][str(local_id)] = remote_id
        self._reverse[kind][str(remote_id)] = local_id

    def to_remote(self, kind: str, local_id: Any) -> Optional[Any]:
        """Remote id for a local id, or None if unmapped."""
        return self._forward[kind].get(str(local_id))

    def to_local(self, kind: str, remote_id: Any) -> Optional[Any]:
        """Local id for a remote id, or None if unmapped."""
        return self._reverse[kind].get(str(remote_id))

    async def record(self, kind: str, local_id: Any, remote_id: Any, persist: bool = True) -> None:
        """
        Link a local id to a remote id, replacing any previous link of either.

        Args:
            kind: "category" or "word"
            local_id: Id in the local store
            remote_id: Id in the remote store
            persist: Write the table to disk right away
        """
        self._put(kind, local_id, remote_id)
        if persist:
            await self.save()

    async def forget(self, kind: str, local_id: Any, persist: bool = True) -> None:
        """Remove the link of a local id, if any."""
        remote_id = self._forward[kind].pop(str(local_id), None)
        if remote_id is not None:
            self._reverse[kind].pop(str(remote_id), None)
            if persist:
                await self.save()

    async def clear(self) -> None:
        self._reset()
        await self.save()
