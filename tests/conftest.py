"""Shared test fixtures and dummy classes."""

from __future__ import annotations

import dataclasses
import hashlib
import os
from unittest import mock

import pytest

from torrent_supervisor import config
from torrent_supervisor.engine import EngineError
from torrent_supervisor.models.live_transfer import LiveTransfer
from torrent_supervisor.storage import JsonStore

HASH_A = "a" * 40
HASH_B = "b" * 40
HASH_C = "c" * 40

INFO_DICT = (
    b"d6:lengthi3e4:name5:a.txt12:piece lengthi16384e6:pieces20:"
    + b"x" * 20
    + b"e"
)
TORRENT_BYTES = b"d8:announce14:http://tracker4:info" + INFO_DICT + b"e"
TORRENT_HASH = hashlib.sha1(INFO_DICT).hexdigest()


def live(
    torrent_hash: str,
    total_size: int = 1000,
    completed: int = 0,
    uploaded: int = 0,
    name: str | None = None,
    content_path: str = "",
) -> LiveTransfer:
    return LiveTransfer(
        hash=torrent_hash,
        name=name or f"torrent-{torrent_hash[:4]}",
        total_size=total_size,
        completed=completed,
        uploaded=uploaded,
        save_path="/downloads",
        content_path=content_path,
    )


class DummyEngine:
    """In-memory stand-in for the qBittorrent adapter."""

    def __init__(self) -> None:
        self.live: dict[str, LiveTransfer] = {}
        self.added: dict[str, LiveTransfer] = {}
        self.failing: set[str] = set()
        self.calls: list[tuple[str, str]] = []
        self.list_error: Exception | None = None
        self.stop_errors: set[str] = set()

    def list_active(self) -> list[LiveTransfer]:
        if self.list_error is not None:
            raise self.list_error
        return list(self.live.values())

    def _add(self, key: str) -> LiveTransfer:
        self.calls.append(("add", key))
        if key in self.failing or key not in self.added:
            raise EngineError(f"rejected {key}")
        transfer = self.added[key]
        self.live[transfer.hash] = transfer
        return transfer

    def add_from_file(self, path: str, save_path: str | None = None) -> LiveTransfer:
        return self._add(os.path.basename(path))

    def add_from_descriptor(self, uri: str, save_path: str | None = None) -> LiveTransfer:
        return self._add(uri)

    def start(self, torrent_hash: str) -> None:
        self.calls.append(("start", torrent_hash))

    def stop(self, torrent_hash: str) -> None:
        self.calls.append(("stop", torrent_hash))
        if torrent_hash in self.stop_errors:
            raise EngineError("stop failed")

    def verify(self, torrent_hash: str) -> None:
        self.calls.append(("verify", torrent_hash))

    def count(self, action: str, torrent_hash: str | None = None) -> int:
        return sum(
            1
            for a, h in self.calls
            if a == action and (torrent_hash is None or h == torrent_hash)
        )


class DummyRelocator:
    def __init__(self) -> None:
        self.dispatched: list[tuple[str, str, str]] = []

    def dispatch(self, torrent_hash: str, name: str, src: str, dst_dir: str):
        self.dispatched.append((torrent_hash, src, dst_dir))
        return object()


@pytest.fixture
def settings(tmp_path):
    with mock.patch.dict(os.environ, {}, clear=True):
        base = config._read_settings()
    folders = {}
    for key, name in (
        ("WATCH_FOLDER", "watch"),
        ("UPLOAD_FOLDER", "uploads"),
        ("DEFAULT_MOVE_FOLDER", "completed"),
    ):
        path = tmp_path / name
        path.mkdir()
        folders[key] = str(path)
    return dataclasses.replace(
        base,
        STATE_FILE=str(tmp_path / "state.json"),
        SEED_RATIO_STOP=1.0,
        MAX_ACTIVE_TORRENTS=2,
        **folders,
    )


@pytest.fixture
def store(settings) -> JsonStore:
    return JsonStore(settings.STATE_FILE)


@pytest.fixture
def engine() -> DummyEngine:
    return DummyEngine()


@pytest.fixture
def relocator() -> DummyRelocator:
    return DummyRelocator()
