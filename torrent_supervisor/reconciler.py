"""Queue and seeding-ratio reconciliation.

Each run re-reads every stored record and the queue state, matches them to
the live qBittorrent torrents by info-hash, and applies, per record:

1. ratio stop: halt seeding once ``uploaded / completed`` reaches the
   configured ratio (only for records with ``upload_limit`` set),
2. admission: promote Queued records while the active set has room,
3. completion: relocate finished data exactly once (``moved`` flag).

A final validation pass trims the active set back to the configured maximum.
Records are processed independently; one failing record is logged and the
rest still run.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

from .config import Settings
from .engine import EngineError, TransferEngine
from .models.live_transfer import LiveTransfer
from .models.queue_state import QueueState
from .models.torrent_record import (
    STATUS_ACTIVE,
    STATUS_COMPLETED,
    STATUS_QUEUED,
    STATUS_STOPPED,
    TorrentRecord,
)
from .relocation import Relocator
from .storage import JsonStore

logger = logging.getLogger(__name__)


@dataclass
class ReconcileReport:
    stopped: list[str] = field(default_factory=list)
    admitted: list[str] = field(default_factory=list)
    relocations: list[str] = field(default_factory=list)
    demoted: list[str] = field(default_factory=list)
    errors: dict[str, str] = field(default_factory=dict)


def seed_ratio(uploaded: int, completed: int) -> float | None:
    """Return uploaded/completed, or None while nothing has completed."""
    if completed <= 0:
        return None
    return uploaded / completed


class QueueReconciler:
    def __init__(
        self,
        cfg: Settings,
        engine: TransferEngine,
        store: JsonStore,
        relocator: Relocator,
    ) -> None:
        self.cfg = cfg
        self.engine = engine
        self.store = store
        self.relocator = relocator

    def run(self) -> ReconcileReport:
        logger.debug("Running a torrent ratio and queue check")
        report = ReconcileReport()
        try:
            live_by_hash = {t.hash: t for t in self.engine.list_active()}
        except EngineError as exc:
            logger.warning("Skipping reconciliation, engine unavailable: %s", exc)
            return report

        records = self.store.fetch_all_records()
        queue = self.store.fetch_queue_state()
        by_hash: dict[str, TorrentRecord] = {}

        for record in records:
            by_hash[record.hash] = record
            before = record.to_dict()
            try:
                self._reconcile_one(record, live_by_hash.get(record.hash), queue, report)
            except Exception as exc:
                logger.exception("Failed to reconcile torrent %s", record.name)
                report.errors[record.hash] = str(exc)
            changes = {
                k: v for k, v in record.to_dict().items() if before.get(k) != v
            }
            # moved is written on its own before relocation starts
            changes.pop("moved", None)
            if changes:
                try:
                    self.store.patch_record(record.hash, changes)
                except Exception as exc:
                    logger.exception("Failed to persist torrent %s", record.name)
                    report.errors[record.hash] = str(exc)

        self.validate_queues(queue, by_hash, live_by_hash, report)
        self.store.update_queue_state(queue)
        return report

    def _reconcile_one(
        self,
        record: TorrentRecord,
        live: LiveTransfer | None,
        queue: QueueState,
        report: ReconcileReport,
    ) -> None:
        if live is not None:
            record.uploaded_bytes = live.uploaded
            if live.has_metadata:
                record.name = live.name or record.name
                record.total_size = live.total_size

        # Ratio stop
        if live is not None and record.upload_limit and record.status != STATUS_STOPPED:
            ratio = seed_ratio(record.uploaded_bytes, live.completed)
            if ratio is not None and ratio >= self.cfg.SEED_RATIO_STOP:
                logger.info(
                    "Stopping torrent %s due to seed ratio %.2f", record.name, ratio
                )
                self.engine.stop(record.hash)
                record.status = STATUS_STOPPED
                queue.discard(record.hash)
                report.stopped.append(record.hash)

        # Admission
        if (
            record.status == STATUS_QUEUED
            and len(queue.active) < self.cfg.MAX_ACTIVE_TORRENTS
        ):
            logger.info("Adding torrent %s to the active queue", record.name)
            if live is not None:
                self.engine.start(record.hash)
            queue.activate(record.hash)
            record.status = STATUS_ACTIVE
            report.admitted.append(record.hash)

        # Completion
        if (
            live is not None
            and record.total_size > 0
            and live.completed == record.total_size
            and not record.moved
        ):
            self._relocate(record, live, queue, report)

    def _relocate(
        self,
        record: TorrentRecord,
        live: LiveTransfer,
        queue: QueueState,
        report: ReconcileReport,
    ) -> None:
        logger.info("Torrent %s completed, moving", record.name)
        # Durable before the move starts, so the next tick cannot trigger it again
        self.store.patch_record(record.hash, {"moved": True})
        record.moved = True

        if record.status != STATUS_STOPPED:
            record.status = STATUS_COMPLETED
            queue.discard(record.hash)

        src = live.content_path or os.path.join(live.save_path, live.name)
        dst_dir = record.storage_path or self.cfg.DEFAULT_MOVE_FOLDER
        if self.relocator.dispatch(record.hash, record.name, src, dst_dir) is not None:
            report.relocations.append(record.hash)

    def validate_queues(
        self,
        queue: QueueState,
        by_hash: dict[str, TorrentRecord],
        live_by_hash: dict[str, LiveTransfer],
        report: ReconcileReport,
    ) -> None:
        """Keep the active set consistent with the records and its maximum.

        Excess entries are demoted newest-activation first and put back at the
        front of the queued list in their activation order.
        """
        for torrent_hash in list(queue.active):
            record = by_hash.get(torrent_hash)
            if record is None or record.status != STATUS_ACTIVE:
                queue.active.remove(torrent_hash)

        limit = max(0, self.cfg.MAX_ACTIVE_TORRENTS)
        if len(queue.active) <= limit:
            return

        excess = queue.active[limit:]
        del queue.active[limit:]
        queue.queued[:0] = [h for h in excess if h not in queue.queued]
        for torrent_hash in excess:
            record = by_hash[torrent_hash]
            logger.info("Active queue over limit, re-queueing %s", record.name)
            record.status = STATUS_QUEUED
            report.demoted.append(torrent_hash)
            try:
                if torrent_hash in live_by_hash:
                    self.engine.stop(torrent_hash)
                self.store.patch_record(torrent_hash, {"status": STATUS_QUEUED})
            except Exception as exc:
                logger.exception("Failed to re-queue torrent %s", record.name)
                report.errors[torrent_hash] = str(exc)
