"""Live transfer snapshot used by the reconciler."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class LiveTransfer:
    hash: str
    name: str
    total_size: int
    completed: int
    uploaded: int
    save_path: str = ""
    content_path: str = ""
    state: str = "unknown"

    @property
    def has_metadata(self) -> bool:
        return self.total_size > 0
