"""Shared "add transfer" operation used by every importer."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from .config import Settings
from .models.live_transfer import LiveTransfer
from .models.torrent_record import STATUS_QUEUED, TorrentRecord
from .storage import JsonStore

logger = logging.getLogger(__name__)

SOURCE_FILE = "file"
SOURCE_MAGNET = "magnet"


def add_transfer(
    store: JsonStore,
    cfg: Settings,
    live: LiveTransfer,
    source: str,
    source_path: str | None,
    storage_path: str | None,
    label: str,
) -> TorrentRecord:
    """Create or refresh the record for a transfer the engine just accepted.

    A new record starts Queued with ``moved=False`` and joins the back of the
    queue. Re-adding a known hash keeps its status, moved flag and upload
    settings and only refreshes where it came from.
    """
    existing = store.fetch_record(live.hash)
    if existing is not None:
        existing.source = source
        existing.source_path = source_path or existing.source_path
        existing.storage_path = storage_path or existing.storage_path
        existing.label = label or existing.label
        if live.has_metadata:
            existing.name = live.name or existing.name
            existing.total_size = live.total_size
        store.update_record(existing)
        store.add_to_hash_history(live.hash)
        logger.info("Torrent %s already known, refreshed its record", existing.name)
        return existing

    record = TorrentRecord(
        hash=live.hash,
        name=live.name or live.hash,
        total_size=live.total_size,
        uploaded_bytes=live.uploaded,
        status=STATUS_QUEUED,
        upload_limit=cfg.UPLOAD_LIMIT_ENABLED,
        moved=False,
        source=source,
        source_path=source_path,
        storage_path=storage_path,
        label=label,
        date_added=datetime.now(timezone.utc).isoformat(timespec="seconds"),
    )
    store.update_record(record)

    queue = store.fetch_queue_state()
    queue.enqueue(record.hash)
    store.update_queue_state(queue)
    store.add_to_hash_history(record.hash)

    logger.info(
        "Added torrent %s (%s, label=%s)", record.name, record.source, record.label
    )
    return record
