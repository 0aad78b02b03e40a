"""Persistence gateway backed by a single JSON document.

Every public method is one transaction: it takes the store lock, reads the
document, applies its change and writes it back with an atomic replace
before returning. Jobs never hold records across calls without re-reading.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Callable

from .models.feed import FeedSubscription, HashHistory
from .models.queue_state import QueueState
from .models.torrent_record import TorrentRecord

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised when the state file cannot be read or written."""


def _empty_document() -> dict[str, Any]:
    return {"torrents": {}, "queues": {}, "feeds": [], "hash_history": []}


class JsonStore:
    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> dict[str, Any]:
        if not self._path.exists():
            return _empty_document()
        try:
            data = json.loads(self._path.read_text() or "{}")
        except (OSError, ValueError) as exc:
            raise StorageError(f"Failed to read {self._path}: {exc}") from exc
        if not isinstance(data, dict):
            raise StorageError(f"Unexpected document in {self._path}")
        for key, value in _empty_document().items():
            data.setdefault(key, value)
        return data

    def _save(self, data: dict[str, Any]) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(
                dir=str(self._path.parent), prefix=self._path.name, suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w") as fh:
                    json.dump(data, fh, indent=2, sort_keys=True)
                    fh.flush()
                    os.fsync(fh.fileno())
                os.replace(tmp, self._path)
            except BaseException:
                if os.path.exists(tmp):
                    os.unlink(tmp)
                raise
        except OSError as exc:
            raise StorageError(f"Failed to write {self._path}: {exc}") from exc

    def _read(self, fn: Callable[[dict[str, Any]], Any]) -> Any:
        with self._lock:
            return fn(self._load())

    def _write(self, fn: Callable[[dict[str, Any]], Any]) -> Any:
        with self._lock:
            data = self._load()
            result = fn(data)
            self._save(data)
            return result

    # Torrent records

    def fetch_all_records(self) -> list[TorrentRecord]:
        return self._read(
            lambda d: [TorrentRecord.from_dict(r) for r in d["torrents"].values()]
        )

    def fetch_record(self, torrent_hash: str) -> TorrentRecord | None:
        def _get(d: dict[str, Any]) -> TorrentRecord | None:
            raw = d["torrents"].get(torrent_hash.lower())
            return TorrentRecord.from_dict(raw) if raw else None

        return self._read(_get)

    def update_record(self, record: TorrentRecord) -> None:
        """Insert or replace the record stored under its hash."""
        record.hash = record.hash.lower()

        def _put(d: dict[str, Any]) -> None:
            d["torrents"][record.hash] = record.to_dict()

        self._write(_put)

    def patch_record(
        self, torrent_hash: str, changes: dict[str, object]
    ) -> TorrentRecord | None:
        """Apply only `changes` to the stored record.

        Returns the updated record, or None when the hash is unknown (the
        record may have been deleted externally in the meantime).
        """

        def _patch(d: dict[str, Any]) -> TorrentRecord | None:
            raw = d["torrents"].get(torrent_hash.lower())
            if raw is None:
                return None
            raw.update(changes)
            return TorrentRecord.from_dict(raw)

        return self._write(_patch)

    # Queue state

    def fetch_queue_state(self) -> QueueState:
        return self._read(lambda d: QueueState.from_dict(d["queues"]))

    def update_queue_state(self, queue: QueueState) -> None:
        def _put(d: dict[str, Any]) -> None:
            d["queues"] = queue.to_dict()

        self._write(_put)

    # Feeds

    def fetch_feed_subscriptions(self) -> list[FeedSubscription]:
        return self._read(lambda d: [FeedSubscription.from_dict(f) for f in d["feeds"]])

    def update_feed_subscriptions(self, feeds: list[FeedSubscription]) -> None:
        def _put(d: dict[str, Any]) -> None:
            d["feeds"] = [f.to_dict() for f in feeds]

        self._write(_put)

    def add_feed_subscription(self, url: str, name: str = "") -> bool:
        """Subscribe to `url` unless already subscribed. Returns True if added."""

        def _add(d: dict[str, Any]) -> bool:
            if any(f.get("url") == url for f in d["feeds"]):
                return False
            d["feeds"].append(FeedSubscription(url=url, name=name).to_dict())
            return True

        added = self._write(_add)
        if added:
            logger.info("Subscribed to feed %s", url)
        return added

    # Hash history

    def fetch_hash_history(self) -> HashHistory:
        return self._read(
            lambda d: HashHistory(hashes={str(h).lower() for h in d["hash_history"]})
        )

    def add_to_hash_history(self, *hashes: str) -> None:
        def _add(d: dict[str, Any]) -> None:
            known = {str(h).lower() for h in d["hash_history"]}
            known.update(h.lower() for h in hashes if h)
            d["hash_history"] = sorted(known)

        self._write(_add)
