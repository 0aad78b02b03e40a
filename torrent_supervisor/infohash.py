"""Content-hash (info-hash) extraction helpers.

Magnet URIs and ``.torrent`` metainfo are decoded with torf. Every helper
returns the lowercase 40-character hex form, or ``None`` when the input does
not carry a usable v1 info-hash.
"""

from __future__ import annotations

import base64
import binascii
import io
import logging
import string

import torf

logger = logging.getLogger(__name__)


def normalize(value: str | None) -> str | None:
    if not value:
        return None
    trimmed = str(value).strip()
    if not trimmed:
        return None
    candidate = trimmed.lower()
    if len(candidate) == 40 and all(ch in string.hexdigits for ch in candidate):
        return candidate
    if len(trimmed) == 32:
        try:
            return base64.b32decode(trimmed.upper()).hex()
        except (binascii.Error, ValueError):
            return None
    return None


def _magnet(uri: str | None) -> "torf.Magnet | None":
    if not uri or not uri.strip().lower().startswith("magnet:"):
        return None
    try:
        return torf.Magnet.from_string(uri.strip())
    except torf.TorfError as exc:
        logger.debug("Not a usable magnet link %s: %s", uri, exc)
        return None


def from_magnet(uri: str | None) -> str | None:
    """Return the v1 info-hash carried by a magnet URI."""
    magnet = _magnet(uri)
    return normalize(magnet.infohash) if magnet is not None else None


def magnet_display_name(uri: str) -> str | None:
    magnet = _magnet(uri)
    return (magnet.dn or None) if magnet is not None else None


def from_torrent_bytes(data: bytes) -> str | None:
    if not data:
        return None
    try:
        torrent = torf.Torrent.read_stream(io.BytesIO(data))
        return normalize(torrent.infohash)
    except torf.TorfError as exc:
        logger.debug("Unreadable torrent metainfo: %s", exc)
        return None


def from_torrent_file(path: str) -> str | None:
    with open(path, "rb") as fh:
        return from_torrent_bytes(fh.read())
