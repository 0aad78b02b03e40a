"""Persisted torrent record."""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields

STATUS_QUEUED = "Queued"
STATUS_ACTIVE = "Active"
STATUS_STOPPED = "Stopped"
STATUS_COMPLETED = "Completed"

STATUSES = frozenset({STATUS_QUEUED, STATUS_ACTIVE, STATUS_STOPPED, STATUS_COMPLETED})


@dataclass
class TorrentRecord:
    """Persisted view of one transfer, keyed by its content hash."""

    hash: str
    name: str
    total_size: int = 0
    uploaded_bytes: int = 0
    status: str = STATUS_QUEUED
    upload_limit: bool = True
    moved: bool = False
    source: str = "manual"  # file | magnet | manual
    source_path: str | None = None
    storage_path: str | None = None
    label: str = "default"
    date_added: str = ""

    def to_dict(self) -> dict[str, object]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> "TorrentRecord":
        known = {f.name for f in fields(cls)}
        record = cls(**{k: v for k, v in data.items() if k in known})
        if record.status not in STATUSES:
            record.status = STATUS_QUEUED
        return record
