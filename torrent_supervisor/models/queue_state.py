"""Active/queued transfer ordering."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class QueueState:
    # Oldest activation first.
    active: list[str] = field(default_factory=list)
    queued: list[str] = field(default_factory=list)

    def activate(self, torrent_hash: str) -> None:
        if torrent_hash in self.queued:
            self.queued.remove(torrent_hash)
        if torrent_hash not in self.active:
            self.active.append(torrent_hash)

    def enqueue(self, torrent_hash: str) -> None:
        if torrent_hash not in self.queued and torrent_hash not in self.active:
            self.queued.append(torrent_hash)

    def discard(self, torrent_hash: str) -> None:
        if torrent_hash in self.active:
            self.active.remove(torrent_hash)
        if torrent_hash in self.queued:
            self.queued.remove(torrent_hash)

    def to_dict(self) -> dict[str, list[str]]:
        return {"active": list(self.active), "queued": list(self.queued)}

    @classmethod
    def from_dict(cls, data: dict[str, object] | None) -> "QueueState":
        data = data or {}
        return cls(
            active=[str(h) for h in data.get("active") or []],
            queued=[str(h) for h in data.get("queued") or []],
        )
