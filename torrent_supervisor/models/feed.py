"""Feed subscription dataclasses."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class FeedItem:
    title: str
    link: str
    published: str = ""

    def to_dict(self) -> dict[str, str]:
        return {"title": self.title, "link": self.link, "published": self.published}

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> "FeedItem":
        return cls(
            title=str(data.get("title") or ""),
            link=str(data.get("link") or ""),
            published=str(data.get("published") or ""),
        )


@dataclass
class FeedSubscription:
    """One polled feed URL plus every item already imported from it."""

    url: str
    name: str = ""
    items: list[FeedItem] = field(default_factory=list)

    def has_link(self, link: str) -> bool:
        return any(item.link == link for item in self.items)

    def to_dict(self) -> dict[str, object]:
        return {
            "url": self.url,
            "name": self.name,
            "items": [item.to_dict() for item in self.items],
        }

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> "FeedSubscription":
        return cls(
            url=str(data.get("url") or ""),
            name=str(data.get("name") or ""),
            items=[FeedItem.from_dict(i) for i in data.get("items") or []],
        )


@dataclass
class HashHistory:
    hashes: set[str] = field(default_factory=set)

    def __contains__(self, torrent_hash: object) -> bool:
        return isinstance(torrent_hash, str) and torrent_hash.lower() in self.hashes

    def add(self, torrent_hash: str) -> None:
        self.hashes.add(torrent_hash.lower())
