"""Filesystem primitives: staging copies and move-with-symlink relocation."""

from __future__ import annotations

import logging
import os
import shutil

import psutil

logger = logging.getLogger(__name__)


class RelocationError(Exception):
    """Raised when completed data cannot be moved to its destination."""


def copy_file(src: str, dst: str) -> str:
    os.makedirs(os.path.dirname(dst) or ".", exist_ok=True)
    return shutil.copy2(src, dst)


def remove_file(path: str) -> None:
    os.remove(path)


def _tree_size(path: str) -> int:
    if os.path.isfile(path):
        return os.path.getsize(path)
    total = 0
    for root, _dirs, files in os.walk(path):
        for name in files:
            try:
                total += os.path.getsize(os.path.join(root, name))
            except OSError:
                continue
    return total


def _same_device(a: str, b: str) -> bool:
    return os.stat(a).st_dev == os.stat(b).st_dev


def move_and_link_back(src: str, dst_dir: str) -> str:
    """Move `src` into `dst_dir` and leave a symlink at `src` pointing to it.

    Returns the new location. Calling it again for data that was already
    moved (``src`` is a link to the destination) is a no-op.
    """
    dst = os.path.join(dst_dir, os.path.basename(os.path.normpath(src)))

    if os.path.islink(src):
        if os.path.realpath(src) == os.path.realpath(dst):
            logger.info("%s already relocated to %s", src, dst)
            return dst
        raise RelocationError(f"{src} is a link to somewhere else")
    if not os.path.exists(src):
        raise RelocationError(f"Source does not exist: {src}")
    if os.path.exists(dst):
        raise RelocationError(f"Destination already exists: {dst}")

    try:
        os.makedirs(dst_dir, exist_ok=True)
        needed = _tree_size(src)
        free = psutil.disk_usage(dst_dir).free
        if not _same_device(src, dst_dir) and needed > free:
            raise RelocationError(
                f"Not enough space in {dst_dir}: need {needed} bytes, {free} free"
            )
        is_dir = os.path.isdir(src)
        shutil.move(src, dst)
        os.symlink(dst, src, target_is_directory=is_dir)
    except RelocationError:
        raise
    except OSError as exc:
        raise RelocationError(f"Failed to move {src} to {dst_dir}: {exc}") from exc

    logger.info("Moved %s to %s and left a symlink behind", src, dst)
    return dst
