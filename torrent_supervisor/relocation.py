"""Bounded pool for post-completion relocation.

Moving a finished torrent can take minutes, so the reconciler submits it here
and returns immediately. The caller must already have persisted
``moved=True``; when a move fails the completion callback asks the engine to
recheck the data and resets ``moved`` so a later reconciliation retries.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable

from . import filesystem
from .engine import EngineError, TransferEngine
from .storage import JsonStore, StorageError

logger = logging.getLogger(__name__)


class Relocator:
    def __init__(
        self,
        store: JsonStore,
        engine: TransferEngine,
        max_workers: int = 2,
        mover: Callable[[str, str], str] = filesystem.move_and_link_back,
    ) -> None:
        self.store = store
        self.engine = engine
        self._mover = mover
        self._pool = ThreadPoolExecutor(
            max_workers=max(1, max_workers), thread_name_prefix="relocate"
        )
        self._lock = threading.Lock()
        self._in_flight: set[str] = set()

    def in_flight(self) -> set[str]:
        with self._lock:
            return set(self._in_flight)

    def dispatch(
        self, torrent_hash: str, name: str, src: str, dst_dir: str
    ) -> Future | None:
        """Submit a relocation. Returns None if one is already running for the hash."""
        with self._lock:
            if torrent_hash in self._in_flight:
                logger.debug("Relocation of %s already in flight", name)
                return None
            self._in_flight.add(torrent_hash)
        future = self._pool.submit(self._mover, src, dst_dir)
        future.add_done_callback(
            lambda f: self._on_done(f, torrent_hash, name, src, dst_dir)
        )
        return future

    def _on_done(
        self, future: Future, torrent_hash: str, name: str, src: str, dst_dir: str
    ) -> None:
        # Cleared before moved is reset so a re-dispatch is never refused.
        with self._lock:
            self._in_flight.discard(torrent_hash)
        if future.cancelled():
            return
        exc = future.exception()
        if exc is None:
            logger.info("Relocated %s to %s", name, dst_dir)
            return

        logger.error("Failed to move torrent %s from %s: %s", name, src, exc)
        try:
            self.engine.verify(torrent_hash)
        except EngineError as verify_exc:
            logger.warning("Recheck of %s failed: %s", name, verify_exc)
        try:
            self.store.patch_record(torrent_hash, {"moved": False})
        except StorageError:
            logger.exception("Could not reset moved flag for %s", name)

    def shutdown(self, wait: bool = True) -> None:
        self._pool.shutdown(wait=wait)
