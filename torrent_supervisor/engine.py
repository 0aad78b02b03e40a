"""qBittorrent transfer engine adapter.

The `TransferEngine` wraps `qbittorrentapi.Client` and exposes the handful of
operations the importers and the reconciler need. Live torrents are returned
as `LiveTransfer` snapshots keyed by their lowercase info-hash; nothing here
is persisted.

Adding a transfer derives the info-hash up front (from the magnet URI or the
bencoded ``info`` dictionary), submits it, then polls the Web API briefly so
the caller gets a snapshot of the torrent it just created.
"""

from __future__ import annotations

import logging
import os
import time
from typing import Optional

import qbittorrentapi

from . import infohash
from .config import Settings
from .models.live_transfer import LiveTransfer

logger = logging.getLogger(__name__)


# New transfers are added stopped and only started on admission.
# Web API v2.11+ reads "stopped"; older releases read "paused".
ADD_STOPPED = {"is_stopped": True, "is_paused": True}


class EngineError(Exception):
    """Raised when the engine is unreachable or rejects an operation."""


def _get_torrent_hash(torrent_obj: object) -> str | None:
    for attr in ("hash", "info_hash", "hashString"):
        val = getattr(torrent_obj, attr, None)
        if val:
            return str(val).lower()
    return None


def _as_int(raw: object) -> int:
    try:
        return int(raw or 0)
    except (TypeError, ValueError):
        return 0


def snapshot(torrent_obj: object) -> LiveTransfer | None:
    """Convert a qbittorrentapi torrent object into a `LiveTransfer`."""
    torrent_hash = _get_torrent_hash(torrent_obj)
    if not torrent_hash:
        return None

    total_size_raw = getattr(torrent_obj, "total_size", None)
    if total_size_raw is None:
        total_size_raw = getattr(torrent_obj, "size", None)
    total_size = _as_int(total_size_raw)

    completed = _as_int(getattr(torrent_obj, "completed", None))
    if completed <= 0 and total_size > 0:
        try:
            progress = float(getattr(torrent_obj, "progress", 0.0) or 0.0)
        except (TypeError, ValueError):
            progress = 0.0
        completed = int(progress * total_size)
    if total_size > 0:
        completed = max(0, min(completed, total_size))

    return LiveTransfer(
        hash=torrent_hash,
        name=str(getattr(torrent_obj, "name", "") or ""),
        total_size=total_size,
        completed=completed,
        uploaded=_as_int(getattr(torrent_obj, "uploaded", None)),
        save_path=str(getattr(torrent_obj, "save_path", "") or ""),
        content_path=str(getattr(torrent_obj, "content_path", "") or ""),
        state=str(getattr(torrent_obj, "state", "unknown") or "unknown"),
    )


class TransferEngine:
    """Minimal wrapper around `qbittorrentapi.Client`.

    Create an instance and call the operations directly; the client is built
    and logged in lazily on first use.
    """

    ADD_POLL_ATTEMPTS = 10
    ADD_POLL_INTERVAL_S = 0.5

    def __init__(
        self, cfg: Settings, client: Optional["qbittorrentapi.Client"] = None
    ) -> None:
        self._base_url = f"http://{cfg.QBT_HOST}:{cfg.QBT_PORT}"
        self.username = cfg.QBT_USER
        self.password = cfg.QBT_PASS
        self.timeout_s = cfg.QBT_TIMEOUT_S
        self.qbt_client = client

    def connect(self) -> bool:
        """Build the client and log in to the WebUI.

        Returns True on success, False otherwise.
        """
        try:
            self.qbt_client = qbittorrentapi.Client(
                host=self._base_url,
                username=self.username,
                password=self.password,
                REQUESTS_ARGS={"timeout": self.timeout_s},
            )
            self.qbt_client.auth_log_in()
            logger.info("Connected to qBittorrent at %s", self._base_url)
            return True
        except qbittorrentapi.LoginFailed:
            logger.warning("Invalid qBittorrent login credentials")
        except Exception as exc:
            logger.error("Connection error to qBittorrent: %s", exc)
        self.qbt_client = None
        return False

    def _client(self) -> "qbittorrentapi.Client":
        if self.qbt_client is None and not self.connect():
            raise EngineError(f"qBittorrent unreachable at {self._base_url}")
        return self.qbt_client

    def list_active(self) -> list[LiveTransfer]:
        try:
            torrents = self._client().torrents_info() or []
        except EngineError:
            raise
        except Exception as exc:
            raise EngineError(f"torrents_info failed: {exc}") from exc
        out: list[LiveTransfer] = []
        for t in torrents:
            snap = snapshot(t)
            if snap is not None:
                out.append(snap)
        return out

    def find(self, torrent_hash: str) -> LiveTransfer | None:
        try:
            torrents = self._client().torrents_info(torrent_hashes=torrent_hash) or []
        except EngineError:
            raise
        except Exception as exc:
            raise EngineError(f"torrents_info failed: {exc}") from exc
        for t in torrents:
            snap = snapshot(t)
            if snap is not None and snap.hash == torrent_hash:
                return snap
        return None

    def add_from_file(self, path: str, save_path: str | None = None) -> LiveTransfer:
        """Register a `.torrent` file and return a snapshot of the new transfer."""
        try:
            expected = infohash.from_torrent_file(path)
        except OSError as exc:
            raise EngineError(f"cannot read {path}: {exc}") from exc
        if expected is None:
            raise EngineError(f"not a valid torrent file: {path}")

        def submit(client: "qbittorrentapi.Client") -> object:
            kwargs: dict[str, object] = {"torrent_files": path, **ADD_STOPPED}
            if save_path:
                kwargs["save_path"] = save_path
            return client.torrents_add(**kwargs)

        fallback_name = os.path.splitext(os.path.basename(path))[0]
        return self._add(expected, fallback_name, submit)

    def add_from_descriptor(
        self, uri: str, save_path: str | None = None
    ) -> LiveTransfer:
        """Register a magnet URI and return a snapshot of the new transfer."""
        expected = infohash.from_magnet(uri)
        if expected is None:
            raise EngineError(f"magnet link has no usable info-hash: {uri}")

        def submit(client: "qbittorrentapi.Client") -> object:
            kwargs: dict[str, object] = {"urls": uri, **ADD_STOPPED}
            if save_path:
                kwargs["save_path"] = save_path
            return client.torrents_add(**kwargs)

        return self._add(expected, infohash.magnet_display_name(uri) or expected, submit)

    def _add(self, expected: str, fallback_name: str, submit) -> LiveTransfer:
        client = self._client()
        try:
            result = submit(client)
        except Exception as exc:
            raise EngineError(f"torrents_add failed: {exc}") from exc
        accepted = str(result or "").strip().lower().startswith("ok")

        # qBittorrent answers "Fails." for duplicates too, so look before giving up.
        for attempt in range(self.ADD_POLL_ATTEMPTS):
            found = self.find(expected)
            if found is not None:
                return found
            if not accepted:
                break
            if attempt < self.ADD_POLL_ATTEMPTS - 1:
                time.sleep(self.ADD_POLL_INTERVAL_S)

        if not accepted:
            raise EngineError(f"qBittorrent rejected torrent {expected}: {result}")
        logger.debug("Torrent %s accepted but not listed yet", expected)
        return LiveTransfer(
            hash=expected, name=fallback_name, total_size=0, completed=0, uploaded=0
        )

    def start(self, torrent_hash: str) -> None:
        self._call("torrents_start", "torrents_resume", torrent_hash)

    def stop(self, torrent_hash: str) -> None:
        self._call("torrents_stop", "torrents_pause", torrent_hash)

    def verify(self, torrent_hash: str) -> None:
        self._call("torrents_recheck", None, torrent_hash)

    def _call(self, method: str, legacy: str | None, torrent_hash: str) -> None:
        client = self._client()
        fn = getattr(client, method, None)
        if fn is None and legacy:
            # Older qbittorrentapi releases only know pause/resume
            fn = getattr(client, legacy, None)
        if fn is None:
            raise EngineError(f"qBittorrent client has no {method}")
        try:
            fn(torrent_hashes=torrent_hash)
        except Exception as exc:
            raise EngineError(f"{method} failed for {torrent_hash}: {exc}") from exc
