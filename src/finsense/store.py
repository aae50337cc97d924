"""Saved-article stores with live, full-snapshot subscriptions.

Records are keyed by ``{namespace}/{user_id}/saved_articles/{article_id}``. Every
change for a user pushes that user's complete saved set, newest ``saved_at``
first, to each active subscriber. Subscribers replace their state with each
snapshot rather than merging it.
"""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, List, Optional, Protocol, Tuple

from pydantic import ValidationError

from .errors import StoreError
from .models import SavedRecord

logger = logging.getLogger(__name__)

Snapshot = Tuple[SavedRecord, ...]
SnapshotCallback = Callable[[Snapshot], None]
ErrorCallback = Callable[[Exception], None]


def saved_key(namespace: str, user_id: str, article_id: str) -> str:
    return f"{namespace}/{user_id}/saved_articles/{article_id}"


class Subscription:
    """Handle returned by `subscribe`; call `unsubscribe()` when the identity ends."""

    def __init__(self, cancel: Optional[Callable[[], None]] = None):
        self._cancel = cancel

    @property
    def active(self) -> bool:
        return self._cancel is not None

    def unsubscribe(self) -> None:
        cancel, self._cancel = self._cancel, None
        if cancel is not None:
            cancel()


class SavedStateStore(Protocol):
    namespace: str

    async def upsert(self, user_id: str, record: SavedRecord) -> SavedRecord: ...

    async def delete(self, user_id: str, article_id: str) -> None: ...

    def subscribe(
        self,
        user_id: str,
        on_snapshot: SnapshotCallback,
        on_error: Optional[ErrorCallback] = None,
    ) -> Subscription: ...

    def snapshot(self, user_id: str) -> Snapshot: ...

    def refresh(self, user_id: str) -> None: ...

    def listener_count(self, user_id: str) -> int: ...


class _Listener:
    def __init__(self, on_snapshot: SnapshotCallback, on_error: Optional[ErrorCallback]):
        self.on_snapshot = on_snapshot
        self.on_error = on_error


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _require_id(kind: str, value: str) -> str:
    if not value or "/" in value or "\\" in value or value in {".", ".."}:
        raise StoreError(f"Invalid {kind}: {value!r}")
    return value


class MemorySavedStore:
    """Process-local store; also the base for persistent variants."""

    # True when `_load` reads a backing copy, so the in-memory cache is disposable.
    _backed = False

    def __init__(
        self,
        namespace: str = "default-app-id",
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.namespace = namespace
        self._clock = clock
        self._records: Dict[str, Dict[str, SavedRecord]] = {}
        self._listeners: Dict[str, List[_Listener]] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    # -- persistence hooks (no-ops in memory) ------------------------------

    def _load(self, user_id: str) -> Dict[str, SavedRecord]:
        return {}

    async def _persist(self, user_id: str, record: SavedRecord) -> None:
        await asyncio.sleep(0)

    async def _erase(self, user_id: str, article_id: str) -> None:
        await asyncio.sleep(0)

    # -- internals ---------------------------------------------------------

    def _user_records(self, user_id: str) -> Dict[str, SavedRecord]:
        records = self._records.get(user_id)
        if records is None:
            records = self._load(user_id)
            self._records[user_id] = records
        return records

    def _lock_for(self, user_id: str) -> asyncio.Lock:
        lock = self._locks.get(user_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[user_id] = lock
        return lock

    def _release(self, user_id: str) -> None:
        """Forget cached state for a user nobody is watching any more."""
        if not self._backed:
            return
        self._records.pop(user_id, None)
        lock = self._locks.get(user_id)
        if lock is not None and not lock.locked():
            del self._locks[user_id]

    def _publish(self, user_id: str) -> None:
        current = self.snapshot(user_id)
        for listener in list(self._listeners.get(user_id, ())):
            try:
                listener.on_snapshot(current)
            except Exception:
                # The write is already committed.
                logger.exception("Saved-article subscriber for %s failed", user_id)

    # -- public API --------------------------------------------------------

    def snapshot(self, user_id: str) -> Snapshot:
        """Current saved set for `user_id`, newest first."""
        _require_id("user id", user_id)
        records = self._user_records(user_id).values()
        return tuple(
            sorted(
                records,
                key=lambda rec: rec.saved_at or datetime.min.replace(tzinfo=timezone.utc),
                reverse=True,
            )
        )

    def listener_count(self, user_id: str) -> int:
        return len(self._listeners.get(user_id, ()))

    async def upsert(self, user_id: str, record: SavedRecord) -> SavedRecord:
        """Write `record` under its article id, replacing any earlier save."""
        _require_id("user id", user_id)
        _require_id("article id", record.id)
        async with self._lock_for(user_id):
            self._user_records(user_id)  # fail before writing if the set is unreadable
            committed = record.model_copy(update={"saved_at": self._clock()})
            await self._persist(user_id, committed)
            # Re-fetch: a refresh may have replaced the cache while we awaited.
            self._user_records(user_id)[committed.id] = committed
            logger.debug("Upserted %s", saved_key(self.namespace, user_id, committed.id))
        self._publish(user_id)
        return committed

    async def delete(self, user_id: str, article_id: str) -> None:
        """Remove the record for `article_id`; a missing key is not an error."""
        _require_id("user id", user_id)
        _require_id("article id", article_id)
        async with self._lock_for(user_id):
            self._user_records(user_id)
            await self._erase(user_id, article_id)
            self._user_records(user_id).pop(article_id, None)
            logger.debug("Deleted %s", saved_key(self.namespace, user_id, article_id))
        self._publish(user_id)

    def refresh(self, user_id: str) -> None:
        """
        Re-read `user_id`'s records from backing storage and push a snapshot.

        Picks up writes made by other processes sharing the storage. A failed
        read ends the user's live subscriptions through `fail_subscriptions`.
        """
        _require_id("user id", user_id)
        if self._backed:
            try:
                self._records[user_id] = self._load(user_id)
            except StoreError as exc:
                logger.error("Could not refresh saved articles for %s: %s", user_id, exc)
                self.fail_subscriptions(user_id, exc)
                return
        self._publish(user_id)

    def subscribe(
        self,
        user_id: str,
        on_snapshot: SnapshotCallback,
        on_error: Optional[ErrorCallback] = None,
    ) -> Subscription:
        """
        Deliver the current snapshot now and again after every change.

        If the initial read fails, `on_error` receives the exception and the
        returned subscription is already inactive.
        """
        try:
            initial = self.snapshot(user_id)
        except StoreError as exc:
            if on_error is None:
                raise
            on_error(exc)
            return Subscription()

        listener = _Listener(on_snapshot, on_error)
        self._listeners.setdefault(user_id, []).append(listener)

        def cancel() -> None:
            listeners = self._listeners.get(user_id, [])
            if listener in listeners:
                listeners.remove(listener)
            if not listeners:
                self._listeners.pop(user_id, None)
                self._release(user_id)

        on_snapshot(initial)
        return Subscription(cancel)

    def fail_subscriptions(self, user_id: str, exc: Exception) -> None:
        """
        Terminate every live subscription for `user_id` with `exc`.

        Called by `refresh` when the backing read fails; adapters for remote
        backends call it when their live query errors out.
        """
        listeners = self._listeners.pop(user_id, [])
        self._release(user_id)
        for listener in listeners:
            if listener.on_error is not None:
                listener.on_error(exc)


class FileSavedStore(MemorySavedStore):
    """
    Store that keeps one JSON document per saved article.

    Layout: ``<root>/<namespace>/users/<user_id>/saved_articles/<article_id>.json``.
    Files are re-read by `refresh` and whenever a user's cache has been dropped.
    Commits for one user are serialized and written atomically via a temporary
    file.
    """

    _backed = True

    def __init__(
        self,
        root: Path | str,
        namespace: str = "default-app-id",
        clock: Callable[[], datetime] = _utcnow,
    ):
        super().__init__(namespace=namespace, clock=clock)
        self.root = Path(root).expanduser()

    def collection_dir(self, user_id: str) -> Path:
        return self.root / self.namespace / "users" / user_id / "saved_articles"

    def record_path(self, user_id: str, article_id: str) -> Path:
        return self.collection_dir(user_id) / f"{article_id}.json"

    def _load(self, user_id: str) -> Dict[str, SavedRecord]:
        directory = self.collection_dir(user_id)
        records: Dict[str, SavedRecord] = {}
        if not directory.exists():
            return records
        for path in sorted(directory.glob("*.json")):
            try:
                data = json.loads(path.read_text(encoding="utf-8"))
                record = SavedRecord.model_validate(data)
            except (OSError, json.JSONDecodeError, ValidationError) as exc:
                raise StoreError(f"Unreadable saved record {path}: {exc}") from exc
            records[record.id] = record
        return records

    def _write(self, path: Path, payload: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(".json.tmp")
        tmp.write_text(payload, encoding="utf-8")
        tmp.replace(path)

    async def _persist(self, user_id: str, record: SavedRecord) -> None:
        path = self.record_path(user_id, record.id)
        payload = record.model_dump_json(by_alias=True)
        try:
            await asyncio.to_thread(self._write, path, payload)
        except OSError as exc:
            raise StoreError(f"Could not write {path}: {exc}") from exc

    async def _erase(self, user_id: str, article_id: str) -> None:
        path = self.record_path(user_id, article_id)
        try:
            await asyncio.to_thread(path.unlink, missing_ok=True)
        except OSError as exc:
            raise StoreError(f"Could not delete {path}: {exc}") from exc
