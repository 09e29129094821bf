"""
Sync Service - Local-first orchestration of the local and remote stores.

Every write lands in the local store first, then is mirrored to the remote
store when possible. Writes that fail for transient reasons are queued and
replayed later; a full resync rebuilds the local store from the remote one.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, Iterable, List, Optional, Union

from ..config import Config, SettingsManager
from ..exceptions import FiszkiError, NetworkError, NotFoundError, StoreError, SyncError
from ..models import (
    Category,
    CategorySnapshot,
    LanguagePair,
    OperationType,
    QueuedOperation,
    Statistics,
    SyncMode,
    SyncResult,
    SyncStatus,
    WordPair,
    normalize_category_updates,
)
from ..utils.helpers import utc_now_iso
from .connectivity import ConnectivityMonitor
from .id_mapping import IdMapping
from .local_store import LocalStore
from .operation_queue import OperationQueue
from .remote_store import RemoteStore
from .repository import BaseStore, PairInput
from .sync_state import SyncState

logger = logging.getLogger(__name__)

CATEGORY = "category"
WORD = "word"


class _UnresolvedId(FiszkiError):
    """A local id has no remote counterpart (yet)."""

    def __init__(self, kind: str, local_id: Any, pending: bool):
        state = "waiting for a queued create" if pending else "never created remotely"
        super().__init__(f"{kind} {local_id} has no remote id ({state})")
        self.pending = pending


class SyncCoordinator:
    """
    Orchestrates the local store, the remote store and the operation queue.

    Mutating calls:
    1. run against the local store (its errors propagate, nothing else happens)
    2. stop there in offline-only mode
    3. queue the remote half when offline or when the remote call hits a
       NetworkError; a RejectedError propagates with the local write kept

    Reads prefer the remote store and fall back to the local one.

    Usage:
        coordinator = SyncCoordinator.create()
        await coordinator.init()
        category = await coordinator.add_category("Travel")
    """

    def __init__(
        self,
        local: BaseStore,
        remote: Optional[BaseStore] = None,
        queue: Optional[OperationQueue] = None,
        id_mapping: Optional[IdMapping] = None,
        state: Optional[SyncState] = None,
        auto_sync_interval: Optional[float] = None,
    ):
        """
        Initialize the coordinator.

        Args:
            local: Durable local store
            remote: Cloud store, or None to run local-only
            queue: Pending remote writes
            id_mapping: Local <-> remote id table
            state: Connectivity / mode / in-progress state
            auto_sync_interval: Seconds between background syncs
        """
        settings = SettingsManager()
        if remote is not None and not remote.is_configured:
            logger.info("Cloud store is not configured, running local-only")
            remote = None
        self.local = local
        self.remote = remote
        self.queue = queue or OperationQueue()
        self.id_mapping = id_mapping or IdMapping()
        self.state = state or SyncState(settings)
        self.auto_sync_interval = auto_sync_interval or settings.get("AUTO_SYNC_INTERVAL", Config.AUTO_SYNC_INTERVAL)
        self.last_sync_at: Optional[str] = None

        self._remote_ready = False
        self._sync_task: Optional[asyncio.Task] = None
        self._pending_sync: Optional[asyncio.Task] = None

        # Held by every mutating call and by the local rebuild of a resync
        self._write_lock: Optional[asyncio.Lock] = None  # Lazy init, needs a running loop
        # Bumped whenever the local store is wiped; local ids from an older generation are stale
        self._generation = 0

        self._handlers: Dict[OperationType, Callable[[Dict[str, Any]], Awaitable[Any]]] = {
            OperationType.CREATE_CATEGORY: self._replay_create_category,
            OperationType.UPDATE_CATEGORY: self._replay_update_category,
            OperationType.DELETE_CATEGORY: self._replay_delete_category,
            OperationType.CREATE_WORD: self._replay_create_word,
            OperationType.IMPORT_WORDS: self._replay_import_words,
            OperationType.DELETE_WORD: self._replay_delete_word,
            OperationType.DELETE_WORDS_BY_CATEGORY: self._replay_delete_words_by_category,
            OperationType.IMPORT_CATEGORY_FROM_SNAPSHOT: self._replay_import_snapshot,
        }

    @classmethod
    def create(cls, settings: Optional[SettingsManager] = None) -> "SyncCoordinator":
        """Build a coordinator with the default stores under the DATA_DIR setting."""
        settings = settings or SettingsManager()
        data_dir = Path(settings.get("DATA_DIR", Config.DATA_DIR))
        return cls(
            local=LocalStore(str(data_dir / Path(Config.DB_FILE).name)),
            remote=RemoteStore(),
            queue=OperationQueue(str(data_dir / Path(Config.QUEUE_FILE).name)),
            id_mapping=IdMapping(str(data_dir / Path(Config.ID_MAPPING_FILE).name)),
            state=SyncState(settings),
        )

    # ==================== Lifecycle ====================

    async def init(self) -> bool:
        """
        Load persisted state, open the stores and run the first sync.

        Returns:
            True if a remote session is available
        """
        self.state.load_mode()
        await self.queue.load()
        await self.id_mapping.load()

        if not await self.local.init():
            raise StoreError("Local store could not be initialised")

        if self.remote is not None and self.state.remote_enabled:
            await self._ensure_remote()
            if self._remote_ready and self.state.mode is SyncMode.AUTO:
                await self._auto_sync()

        logger.info(
            "Sync coordinator ready (mode=%s, remote=%s, %d queued)",
            self.state.mode.value, self._remote_ready, len(self.queue),
        )
        return self._remote_ready

    async def _ensure_remote(self) -> bool:
        """Open the remote session if that has not happened yet."""
        if self.remote is None:
            return False
        if not self._remote_ready:
            try:
                self._remote_ready = await self.remote.init()
            except StoreError as e:
                logger.warning("Remote store unavailable: %s", e)
                self._remote_ready = False
        return self._remote_ready

    def _remote_usable(self) -> bool:
        return self.remote is not None and self._remote_ready and self.state.remote_enabled

    async def close(self) -> None:
        """Stop background work, flush state and close both stores."""
        await self.stop_background_sync()
        if self._pending_sync is not None and not self._pending_sync.done():
            await self._pending_sync
        self._pending_sync = None

        await self.id_mapping.save()
        if self.remote is not None:
            await self.remote.close()
        await self.local.close()

    async def __aenter__(self) -> "SyncCoordinator":
        await self.init()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    # ==================== Id translation ====================

    def _local_id(self, kind: str, any_id: Any) -> Any:
        """Accept a local or a remote id, return the local one."""
        mapped = self.id_mapping.to_local(kind, any_id)
        return any_id if mapped is None else mapped

    def _lenient_remote_id(self, kind: str, any_id: Any) -> Any:
        mapped = self.id_mapping.to_remote(kind, any_id)
        return any_id if mapped is None else mapped

    def _has_pending_create(self, kind: str, local_id: Any) -> bool:
        key = str(local_id)

        def creates(entry: QueuedOperation) -> bool:
            params = entry.params
            if kind == CATEGORY:
                return (entry.operation in (OperationType.CREATE_CATEGORY,
                                            OperationType.IMPORT_CATEGORY_FROM_SNAPSHOT)
                        and str(params.get("localId")) == key)
            if entry.operation is OperationType.CREATE_WORD:
                return str(params.get("localId")) == key
            if entry.operation is OperationType.IMPORT_WORDS:
                return key in {str(i) for i in params.get("localIds", [])}
            if entry.operation is OperationType.IMPORT_CATEGORY_FROM_SNAPSHOT:
                return key in {str(i) for i in params.get("localWordIds", [])}
            return False

        return self.queue.has_pending(creates)

    def _get_write_lock(self) -> asyncio.Lock:
        if self._write_lock is None:
            self._write_lock = asyncio.Lock()
        return self._write_lock

    @asynccontextmanager
    async def _local_write(self, kind: Optional[str] = None, any_id: Any = None) -> AsyncIterator[Any]:
        """
        Hold the write lock for one mutating call and yield the local id of ``any_id``.

        A resync that finishes while the call waits renumbers the local rows,
        so the id is carried across it by its remote counterpart.

        Raises:
            NotFoundError: The entity did not survive the resync
        """
        generation = self._generation
        carried = None
        if kind is not None:
            carried = self.id_mapping.to_remote(kind, self._local_id(kind, any_id))

        async with self._get_write_lock():
            if kind is None:
                yield None
                return
            if generation == self._generation:
                yield self._local_id(kind, any_id)
                return
            local_id = None if carried is None else self.id_mapping.to_local(kind, carried)
            if local_id is None:
                raise NotFoundError(f"{kind} {any_id} no longer exists after a resync")
            yield local_id

    def _remote_id(self, kind: str, local_id: Any) -> Any:
        """
        Strict translation used by writes.

        Raises:
            _UnresolvedId: When the local id has no mapping
        """
        remote_id = self.id_mapping.to_remote(kind, local_id)
        if remote_id is None:
            raise _UnresolvedId(kind, local_id, self._has_pending_create(kind, local_id))
        return remote_id

    # ==================== Remote write handlers ====================
    # Shared by the immediate attempt and by queue replay; params carry local ids.

    async def _replay_create_category(self, params: Dict[str, Any]) -> Category:
        created = await self.remote.add_category(
            params["name"], params.get("description", ""), params.get("languagePair"),
        )
        await self.id_mapping.record(CATEGORY, params["localId"], created.id)
        return created

    async def _replay_update_category(self, params: Dict[str, Any]) -> Category:
        remote_id = self._remote_id(CATEGORY, params["id"])
        return await self.remote.update_category(remote_id, params["updates"])

    async def _replay_delete_category(self, params: Dict[str, Any]) -> None:
        remote_id = self._remote_id(CATEGORY, params["id"])
        await self.remote.delete_category(remote_id)
        await self.id_mapping.forget(CATEGORY, params["id"])

    async def _replay_create_word(self, params: Dict[str, Any]) -> WordPair:
        category_id = self._remote_id(CATEGORY, params["categoryId"])
        created = await self.remote.add_word(
            category_id,
            params["word1"], params.get("pronunciation1", ""),
            params["word2"], params.get("pronunciation2", ""),
        )
        await self.id_mapping.record(WORD, params["localId"], created.id)
        return created

    async def _replay_import_words(self, params: Dict[str, Any]) -> int:
        category_id = self._remote_id(CATEGORY, params["categoryId"])
        created = await self.remote.import_words(category_id, params["wordPairs"])
        for local_id, word in zip(params.get("localIds", []), created):
            await self.id_mapping.record(WORD, local_id, word.id, persist=False)
        await self.id_mapping.save()
        return len(created)

    async def _replay_delete_word(self, params: Dict[str, Any]) -> None:
        remote_id = self._remote_id(WORD, params["id"])
        await self.remote.delete_word(remote_id)
        await self.id_mapping.forget(WORD, params["id"])

    async def _replay_delete_words_by_category(self, params: Dict[str, Any]) -> None:
        category_id = self._remote_id(CATEGORY, params["categoryId"])
        await self.remote.delete_words_by_category(category_id)

    async def _replay_import_snapshot(self, params: Dict[str, Any]) -> Category:
        category, words = await self.remote.import_snapshot(params["snapshot"])
        await self.id_mapping.record(CATEGORY, params["localId"], category.id, persist=False)
        for local_id, word in zip(params.get("localWordIds", []), words):
            await self.id_mapping.record(WORD, local_id, word.id, persist=False)
        await self.id_mapping.save()
        return category

    async def _write_remote(self, operation: OperationType, params: Dict[str, Any]) -> Any:
        """
        Mirror a local write to the remote store.

        Returns:
            The remote result, or None when the write was queued or skipped

        Raises:
            RejectedError: The remote store refused the write (not queued)
        """
        if self.remote is None or self.state.mode is SyncMode.OFFLINE_ONLY:
            return None

        if not self.state.is_online or not self._remote_ready:
            await self.queue.enqueue(operation, params)
            return None

        try:
            return await self._handlers[operation](params)
        except NetworkError as e:
            logger.warning("Remote %s failed, queued for retry: %s", operation.value, e)
            await self.queue.enqueue(operation, params)
        except _UnresolvedId as e:
            if e.pending:
                await self.queue.enqueue(operation, params)
            else:
                logger.warning("Skipping remote %s: %s", operation.value, e)
        return None

    async def _replay(self, entry: QueuedOperation) -> Any:
        """Replay one queued entry. Any failure leaves it queued."""
        return await self._handlers[entry.operation](entry.params)

    # ==================== Categories ====================

    async def add_category(
        self,
        name: str,
        description: str = "",
        language_pair: Union[LanguagePair, Dict[str, Any], None] = None,
    ) -> Category:
        async with self._local_write():
            category = await self.local.add_category(name, description, language_pair)
            remote = await self._write_remote(OperationType.CREATE_CATEGORY, {
                "localId": category.id,
                "name": category.name,
                "description": category.description,
                "languagePair": category.language_pair.to_dict(),
            })
        return remote or category

    async def get_all_categories(self) -> List[Category]:
        if self._remote_usable():
            try:
                return await self.remote.get_all_categories()
            except StoreError as e:
                logger.warning("Remote categories unavailable, using local store: %s", e)
        return await self.local.get_all_categories()

    async def get_category(self, category_id: Any) -> Category:
        if self._remote_usable():
            try:
                return await self.remote.get_category(self._lenient_remote_id(CATEGORY, category_id))
            except StoreError as e:
                logger.warning("Remote category %s unavailable, using local store: %s", category_id, e)
        return await self.local.get_category(self._local_id(CATEGORY, category_id))

    async def update_category(self, category_id: Any, updates: Dict[str, Any]) -> Category:
        async with self._local_write(CATEGORY, category_id) as local_id:
            updated = await self.local.update_category(local_id, updates)
            remote = await self._write_remote(OperationType.UPDATE_CATEGORY, {
                "id": local_id,
                "updates": normalize_category_updates(updates),
            })
        return remote or updated

    async def delete_category(self, category_id: Any) -> None:
        async with self._local_write(CATEGORY, category_id) as local_id:
            await self.local.delete_category(local_id)
            await self._write_remote(OperationType.DELETE_CATEGORY, {"id": local_id})

    # ==================== Word pairs ====================

    async def add_word(
        self,
        category_id: Any,
        word1: str,
        pronunciation1: str,
        word2: str,
        pronunciation2: str,
    ) -> WordPair:
        async with self._local_write(CATEGORY, category_id) as local_category:
            word = await self.local.add_word(local_category, word1, pronunciation1, word2, pronunciation2)
            await self.local.recompute_word_count(local_category)
            remote = await self._write_remote(OperationType.CREATE_WORD, {
                "localId": word.id,
                "categoryId": local_category,
                "word1": word.lang1.word,
                "pronunciation1": word.lang1.pronunciation,
                "word2": word.lang2.word,
                "pronunciation2": word.lang2.pronunciation,
            })
        return remote or word

    async def get_words_by_category(self, category_id: Any) -> List[WordPair]:
        if self._remote_usable():
            try:
                return await self.remote.get_words_by_category(self._lenient_remote_id(CATEGORY, category_id))
            except StoreError as e:
                logger.warning("Remote words of %s unavailable, using local store: %s", category_id, e)
        return await self.local.get_words_by_category(self._local_id(CATEGORY, category_id))

    async def import_words_to_category(self, category_id: Any, pairs: Iterable[PairInput]) -> int:
        """
        Import a batch of word pairs.

        The whole batch is validated before anything is written and the word
        count is recomputed once at the end.

        Returns:
            Number of word pairs imported
        """
        async with self._local_write(CATEGORY, category_id) as local_category:
            created = await self.local.import_words(local_category, pairs)
            await self.local.recompute_word_count(local_category)
            if created:
                await self._write_remote(OperationType.IMPORT_WORDS, {
                    "categoryId": local_category,
                    "wordPairs": [w.sides_dict() for w in created],
                    "localIds": [w.id for w in created],
                })
        return len(created)

    async def delete_word(self, word_id: Any) -> None:
        async with self._local_write(WORD, word_id) as local_id:
            word = await self.local.get_word(local_id)
            await self.local.delete_word(local_id)
            await self.local.recompute_word_count(word.category_id)
            await self._write_remote(OperationType.DELETE_WORD, {"id": local_id})

    async def delete_words_by_category(self, category_id: Any) -> None:
        async with self._local_write(CATEGORY, category_id) as local_category:
            await self.local.delete_words_by_category(local_category)
            await self.local.recompute_word_count(local_category)
            await self._write_remote(OperationType.DELETE_WORDS_BY_CATEGORY, {"categoryId": local_category})

    # ==================== Snapshots & statistics ====================

    async def export_category(self, category_id: Any) -> CategorySnapshot:
        if self._remote_usable():
            try:
                return await self.remote.export_category(self._lenient_remote_id(CATEGORY, category_id))
            except StoreError as e:
                logger.warning("Remote export of %s failed, using local store: %s", category_id, e)
        return await self.local.export_category(self._local_id(CATEGORY, category_id))

    async def import_category_from_snapshot(
        self,
        snapshot: Union[CategorySnapshot, Dict[str, Any]],
    ) -> Category:
        snapshot = CategorySnapshot.coerce(snapshot)
        async with self._local_write():
            category, words = await self.local.import_snapshot(snapshot)
            remote = await self._write_remote(OperationType.IMPORT_CATEGORY_FROM_SNAPSHOT, {
                "localId": category.id,
                "localWordIds": [w.id for w in words],
                "snapshot": snapshot.to_dict(),
            })
        return remote or category

    async def get_statistics(self) -> Statistics:
        if self._remote_usable():
            try:
                return await self.remote.get_statistics()
            except StoreError as e:
                logger.warning("Remote statistics unavailable, using local store: %s", e)
        return await self.local.get_statistics()

    # ==================== Bulk operations ====================

    async def clear_all_data(self) -> None:
        """Clear the local store, the queue and the id table, then the remote store if reachable."""
        async with self._local_write():
            await self.local.clear_all_data()
            self._generation += 1
            await self.id_mapping.clear()
            await self.queue.clear()

        if self._remote_usable():
            try:
                await self.remote.clear_all_data()
            except StoreError as e:
                logger.warning("Remote data could not be cleared: %s", e)

    async def migrate_local_to_remote(self) -> int:
        """
        Copy local categories that have no remote counterpart to the remote store.

        Returns:
            Number of categories migrated

        Raises:
            SyncError: When offline, in offline-only mode, not signed in or
                while another sync is running
        """
        if self.remote is None or not self.state.remote_enabled:
            raise SyncError("Cannot migrate to the cloud while offline or in offline-only mode")
        if not await self._ensure_remote():
            raise SyncError("Sign in to the cloud store before migrating")

        with self.state.exclusive() as acquired:
            if not acquired:
                raise SyncError("A sync is already in progress")

            migrated = 0
            for category in await self.local.get_all_categories():
                if self.id_mapping.to_remote(CATEGORY, category.id) is not None:
                    continue
                try:
                    words = await self.local.get_words_by_category(category.id)
                    remote_category, remote_words = await self.remote.restore_category(category, words)
                except StoreError as e:
                    logger.warning("Could not migrate category '%s': %s", category.name, e)
                    continue

                await self.id_mapping.record(CATEGORY, category.id, remote_category.id, persist=False)
                for local_word, remote_word in zip(words, remote_words):
                    await self.id_mapping.record(WORD, local_word.id, remote_word.id, persist=False)
                migrated += 1

            await self.id_mapping.save()

        logger.info("Migrated %d categor(ies) to the cloud", migrated)
        return migrated

    # ==================== Sync ====================

    async def drain_queue(self) -> int:
        """Replay queued writes. Returns the number replayed (0 if skipped)."""
        if self.remote is None or not self.state.remote_enabled:
            return 0

        with self.state.exclusive() as acquired:
            if not acquired:
                return 0
            if not await self._ensure_remote():
                return 0
            return await self.queue.drain(self._replay)

    async def sync_all(self) -> Optional[SyncResult]:
        """
        Drain the queue, then rebuild the local store from the remote one.

        Returns:
            SyncResult, or None when skipped (offline, offline-only, no
            remote session, or another sync running)

        Raises:
            SyncError: Queued writes could not all be replayed (local data
                is left untouched) or some categories failed
        """
        if self.remote is None or not self.state.remote_enabled:
            logger.debug("Sync skipped: remote disabled")
            return None

        with self.state.exclusive() as acquired:
            if not acquired:
                logger.info("Sync already in progress, skipping")
                return None
            if not await self._ensure_remote():
                logger.info("Sync skipped: no remote session")
                return None
            async with self._get_write_lock():
                return await self._rebuild_from_remote()

    async def _rebuild_from_remote(self) -> SyncResult:
        """Caller must hold the in-progress guard and the write lock."""
        result = SyncResult()
        result.replayed = await self.queue.drain(self._replay)
        if len(self.queue):
            result.failed = len(self.queue)
            raise SyncError(
                f"{result.failed} queued operation(s) could not be replayed; local data left untouched"
            )

        try:
            remote_categories = await self.remote.get_all_categories()
        except StoreError as e:
            raise SyncError(f"Could not fetch remote categories: {e}") from e

        # Fetch everything before touching the local store
        fetched = []
        for category in sorted(remote_categories, key=lambda c: c.created_at or ""):
            try:
                words = await self.remote.get_words_by_category(category.id)
            except StoreError as e:
                logger.warning("Could not fetch words of '%s': %s", category.name, e)
                result.failed_categories.append(category.name)
                continue
            fetched.append((category, words))

        if result.failed_categories:
            raise SyncError(
                "Could not fetch remote categories: " + ", ".join(result.failed_categories)
            )

        await self.local.clear_all_data()
        self._generation += 1
        await self.id_mapping.clear()

        for category, words in fetched:
            try:
                local_category, local_words = await self.local.restore_category(category, words)
            except FiszkiError as e:
                logger.error("Could not restore category '%s': %s", category.name, e)
                result.failed_categories.append(category.name)
                continue

            await self.id_mapping.record(CATEGORY, local_category.id, category.id, persist=False)
            for local_word, remote_word in zip(local_words, words):
                await self.id_mapping.record(WORD, local_word.id, remote_word.id, persist=False)
            result.categories += 1
            result.words += len(local_words)

        await self.id_mapping.save()
        result.finished_at = utc_now_iso()
        self.last_sync_at = result.finished_at

        if result.failed_categories:
            raise SyncError("Some categories failed to sync: " + ", ".join(result.failed_categories))

        logger.info(
            "Sync finished: %d replayed, %d categories, %d words",
            result.replayed, result.categories, result.words,
        )
        return result

    async def _auto_sync(self) -> Optional[SyncResult]:
        """sync_all for automatic triggers: errors are logged, never raised."""
        try:
            return await self.sync_all()
        except FiszkiError as e:
            logger.warning("Automatic sync failed: %s", e)
            return None

    # ==================== Mode & connectivity ====================

    def get_sync_mode(self) -> SyncMode:
        return self.state.mode

    def set_sync_mode(self, mode: Union[SyncMode, str]) -> SyncMode:
        return self.state.set_mode(mode)

    def get_sync_status(self) -> SyncStatus:
        return SyncStatus(
            is_online=self.state.is_online,
            is_syncing=self.state.in_progress,
            sync_mode=self.state.mode,
            queue_length=len(self.queue),
            last_sync_at=self.last_sync_at,
        )

    def set_online(self, online: bool) -> Optional[asyncio.Task]:
        """
        Record a connectivity change.

        Going from offline to online in auto mode schedules a sync in the
        background. Repeating the current state does nothing.

        Returns:
            The scheduled sync task, if any
        """
        if online == self.state.is_online:
            return None
        logger.info("Connectivity changed: %s", "online" if online else "offline")
        self.state.is_online = online

        if online and self.state.mode is SyncMode.AUTO and self.remote is not None:
            if self._pending_sync is None or self._pending_sync.done():
                self._pending_sync = asyncio.create_task(self._auto_sync())
            return self._pending_sync
        return None

    def create_monitor(self, interval: Optional[float] = None) -> ConnectivityMonitor:
        """Connectivity monitor probing the remote store and feeding ``set_online``."""
        if self.remote is None:
            raise SyncError("No remote store to monitor")
        if interval is None:
            interval = SettingsManager().get("CONNECTIVITY_CHECK_INTERVAL", Config.CONNECTIVITY_CHECK_INTERVAL)
        return ConnectivityMonitor(self.remote.health_check, self.set_online, interval)

    # ==================== Background sync ====================

    async def start_background_sync(self) -> None:
        """Start background sync task."""
        if self._sync_task is not None and not self._sync_task.done():
            return
        self._sync_task = asyncio.create_task(self._sync_loop())
        logger.info("Started background sync (every %ss)", self.auto_sync_interval)

    async def stop_background_sync(self) -> None:
        """Stop background sync task."""
        if self._sync_task:
            self._sync_task.cancel()
            try:
                await self._sync_task
            except asyncio.CancelledError:
                pass
            self._sync_task = None
            logger.info("Stopped background sync")

    async def _sync_loop(self) -> None:
        """Background sync loop."""
        while True:
            try:
                await asyncio.sleep(self.auto_sync_interval)

                if await self._check_online() and self.state.mode is SyncMode.AUTO:
                    await self._auto_sync()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.exception("Sync loop error: %s", e)

    async def _check_online(self) -> bool:
        """Probe the remote store and record the result."""
        if self.remote is None:
            return False
        online = await self.remote.health_check()
        if online != self.state.is_online:
            logger.info("Connectivity changed: %s", "online" if online else "offline")
        self.state.is_online = online
        return online
