"""RSS/Atom feed polling and import.

`fetch_feed` downloads one feed and returns its items; `FeedImporter` walks
every subscription, skips items whose info-hash was already added, hands the
rest to the engine as magnet links and records what it imported.
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from typing import Callable

import requests

from . import infohash
from .config import Settings
from .engine import EngineError, TransferEngine
from .models.feed import FeedItem, FeedSubscription, HashHistory
from .storage import JsonStore
from .transfers import SOURCE_MAGNET, add_transfer

logger = logging.getLogger(__name__)

_ATOM_NS = "{http://www.w3.org/2005/Atom}"


class FeedError(Exception):
    """Raised when a feed cannot be fetched or parsed."""


def _text(node: ET.Element | None, tag: str) -> str:
    if node is None:
        return ""
    child = node.find(tag)
    return (child.text or "").strip() if child is not None else ""


def _rss_link(item: ET.Element) -> str:
    link = _text(item, "link")
    if link:
        return link
    enclosure = item.find("enclosure")
    if enclosure is not None:
        return (enclosure.get("url") or "").strip()
    return ""


def _atom_link(entry: ET.Element) -> str:
    links = entry.findall(f"{_ATOM_NS}link")
    for rel in ("enclosure", "alternate", None):
        for link in links:
            if rel is None or link.get("rel", "alternate") == rel:
                href = (link.get("href") or "").strip()
                if href:
                    return href
    return ""


def parse_feed(xml_text: str | bytes) -> list[FeedItem]:
    """Parse RSS 2.0 or Atom text into feed items, in document order."""
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as exc:
        raise FeedError(f"Invalid feed XML: {exc}") from exc

    items: list[FeedItem] = []
    for item in root.iter("item"):
        items.append(
            FeedItem(
                title=_text(item, "title"),
                link=_rss_link(item),
                published=_text(item, "pubDate"),
            )
        )
    for entry in root.iter(f"{_ATOM_NS}entry"):
        items.append(
            FeedItem(
                title=_text(entry, f"{_ATOM_NS}title"),
                link=_atom_link(entry),
                published=_text(entry, f"{_ATOM_NS}published")
                or _text(entry, f"{_ATOM_NS}updated"),
            )
        )
    return [i for i in items if i.link]


def fetch_feed(url: str, timeout: float = 15.0) -> list[FeedItem]:
    headers = {
        "User-Agent": "torrent-supervisor/1.0",
        "Accept": "application/rss+xml, application/atom+xml, application/xml;q=0.9",
    }
    try:
        resp = requests.get(url, headers=headers, timeout=timeout)
        resp.raise_for_status()
    except requests.RequestException as exc:
        raise FeedError(f"Failed to fetch {url}: {exc}") from exc
    return parse_feed(resp.content)


class FeedImporter:
    def __init__(
        self,
        cfg: Settings,
        engine: TransferEngine,
        store: JsonStore,
        fetcher: Callable[[str], list[FeedItem]] | None = None,
    ) -> None:
        self.cfg = cfg
        self.engine = engine
        self.store = store
        self.fetcher = fetcher or (lambda url: fetch_feed(url, cfg.FEED_TIMEOUT_S))

    def run(self) -> list[FeedSubscription]:
        history = self.store.fetch_hash_history()
        feeds = self.store.fetch_feed_subscriptions()
        logger.info("Refreshing %d feed(s)", len(feeds))

        for feed in feeds:
            try:
                items = self.fetcher(feed.url)
            except FeedError as exc:
                logger.error("Failed to parse feed %s: %s", feed.url, exc)
                continue
            except Exception:
                logger.exception("Unexpected error reading feed %s", feed.url)
                continue
            for item in items:
                try:
                    self._import_item(feed, item, history)
                except Exception:
                    logger.exception("Failed to import feed item %s", item.title)

        self.store.update_feed_subscriptions(feeds)
        return feeds

    def _import_item(
        self, feed: FeedSubscription, item: FeedItem, history: HashHistory
    ) -> None:
        torrent_hash = infohash.from_magnet(item.link)
        if (torrent_hash and torrent_hash in history) or feed.has_link(item.link):
            logger.warning("Torrent already added for feed item %s, skipping", item.title)
            return
        if torrent_hash is None:
            logger.warning("Feed item %s has no magnet info-hash, skipping", item.title)
            return

        logger.info("Found new torrent %s", item.title)
        try:
            live = self.engine.add_from_descriptor(item.link)
        except EngineError as exc:
            logger.warning("Unable to add torrent %s to qBittorrent: %s", item.title, exc)
            return

        try:
            add_transfer(
                self.store,
                self.cfg,
                live,
                SOURCE_MAGNET,
                None,
                self.cfg.DEFAULT_MOVE_FOLDER,
                "RSS",
            )
        except Exception:
            logger.exception("Failed to record torrent %s", item.title)
            return
        history.add(live.hash)
        feed.items.append(item)
