"""Entrypoint for running the torrent supervisor.

This module wires up the engine, the store and the three recurring jobs and
runs them until interrupted.
"""

from __future__ import annotations

import asyncio
import logging

from . import config
from .config import Settings
from .engine import TransferEngine
from .feeds import FeedImporter
from .logger import setup_logging
from .reconciler import QueueReconciler
from .relocation import Relocator
from .scheduler import JobScheduler
from .storage import JsonStore, StorageError
from .watch_folder import WatchFolderImporter

logger = logging.getLogger(__name__)


def build_scheduler(
    cfg: Settings, engine: TransferEngine, store: JsonStore, relocator: Relocator
) -> JobScheduler:
    scheduler = JobScheduler()
    scheduler.schedule(
        "watch_folder",
        cfg.WATCH_INTERVAL_S,
        WatchFolderImporter(cfg, engine, store).run,
    )
    scheduler.schedule(
        "reconcile",
        cfg.RECONCILE_INTERVAL_S,
        QueueReconciler(cfg, engine, store, relocator).run,
    )
    scheduler.schedule(
        "feeds",
        cfg.FEED_INTERVAL_S,
        FeedImporter(cfg, engine, store).run,
    )
    return scheduler


def seed_feeds(cfg: Settings, store: JsonStore) -> None:
    for url in cfg.FEED_URLS:
        try:
            store.add_feed_subscription(url)
        except StorageError as exc:
            logger.warning("Failed to subscribe to feed %s: %s", url, exc)


async def serve(cfg: Settings) -> None:
    store = JsonStore(cfg.STATE_FILE)
    engine = TransferEngine(cfg)
    if not engine.connect():
        logger.warning("qBittorrent not reachable yet; jobs will retry each run")
    relocator = Relocator(store, engine, max_workers=cfg.RELOCATION_WORKERS)
    seed_feeds(cfg, store)

    scheduler = build_scheduler(cfg, engine, store, relocator).start()
    try:
        await asyncio.Event().wait()
    finally:
        await scheduler.stop()
        relocator.shutdown(wait=True)
        for line in scheduler.summary():
            logger.info("Job status %s", line)


def run() -> None:
    setup_logging()
    logger.info("Starting torrent_supervisor")
    config.validate_settings()
    try:
        asyncio.run(serve(config.settings))
    except KeyboardInterrupt:
        logger.info("Stopping torrent_supervisor")


if __name__ == "__main__":
    run()
