"""Watch-folder importer.

Every `.torrent` file dropped into the watch folder is copied into the upload
(staging) folder, registered with the engine from that copy, and removed from
the watch folder once its record is saved. A file that fails any step stays
in the watch folder and is retried on the next run.
"""

from __future__ import annotations

import logging
import os

from . import filesystem
from .config import Settings
from .engine import EngineError, TransferEngine
from .models.torrent_record import TorrentRecord
from .storage import JsonStore
from .transfers import SOURCE_FILE, add_transfer

logger = logging.getLogger(__name__)

TORRENT_EXTENSION = ".torrent"


class WatchFolderImporter:
    def __init__(self, cfg: Settings, engine: TransferEngine, store: JsonStore) -> None:
        self.cfg = cfg
        self.engine = engine
        self.store = store

    def run(self) -> list[TorrentRecord]:
        watch_folder = os.path.abspath(self.cfg.WATCH_FOLDER)
        logger.info("Running the watch folder job on %s", watch_folder)
        try:
            entries = sorted(os.scandir(watch_folder), key=lambda e: e.name)
        except OSError as exc:
            logger.error("Unable to read the watch folder %s: %s", watch_folder, exc)
            return []

        added: list[TorrentRecord] = []
        for entry in entries:
            if not entry.is_file():
                continue
            if os.path.splitext(entry.name)[1].lower() != TORRENT_EXTENSION:
                logger.debug("Skipping %s, not a torrent file", entry.name)
                continue
            record = self._import(entry.path, entry.name)
            if record is not None:
                added.append(record)
        return added

    def _import(self, path: str, filename: str) -> TorrentRecord | None:
        staged = os.path.abspath(os.path.join(self.cfg.UPLOAD_FOLDER, filename))
        try:
            filesystem.copy_file(path, staged)
        except OSError as exc:
            logger.error("Failed to copy %s to %s: %s", path, staged, exc)
            return None

        try:
            live = self.engine.add_from_file(staged)
        except EngineError as exc:
            logger.warning("Unable to add torrent %s to qBittorrent: %s", filename, exc)
            return None

        try:
            record = add_transfer(
                self.store,
                self.cfg,
                live,
                SOURCE_FILE,
                staged,
                self.cfg.DEFAULT_MOVE_FOLDER,
                "default",
            )
        except Exception:
            # The original stays in place, so the next run retries as an upsert.
            logger.exception("Failed to record torrent %s", filename)
            return None

        try:
            filesystem.remove_file(path)
        except OSError as exc:
            logger.error("Added %s but could not delete it: %s", path, exc)

        logger.info("Added torrent from watch folder %s, staged at %s", filename, staged)
        return record
