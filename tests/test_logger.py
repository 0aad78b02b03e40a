import logging
import logging.handlers

import pytest

from torrent_supervisor.logger import setup_logging


@pytest.fixture
def clean_root():
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    root.handlers = []
    yield root
    for handler in root.handlers:
        if isinstance(handler, logging.handlers.RotatingFileHandler):
            handler.close()
    root.handlers = saved_handlers
    root.setLevel(saved_level)


def test_level_and_quiet_loggers(clean_root, monkeypatch):
    monkeypatch.delenv("LOG_FILE", raising=False)
    setup_logging("debug")

    assert clean_root.level == logging.DEBUG
    assert logging.getLogger("qbittorrentapi").level == logging.WARNING


def test_unknown_level_falls_back_to_info(clean_root, monkeypatch):
    monkeypatch.setenv("LOG_LEVEL", "chatty")
    monkeypatch.delenv("LOG_FILE", raising=False)
    setup_logging()

    assert clean_root.level == logging.INFO


def test_log_file_added_once(clean_root, tmp_path):
    log_file = tmp_path / "logs" / "supervisor.log"

    setup_logging("info", str(log_file))
    setup_logging("info", str(log_file))

    rotating = [
        h
        for h in clean_root.handlers
        if isinstance(h, logging.handlers.RotatingFileHandler)
    ]
    assert len(rotating) == 1
    logging.getLogger("torrent_supervisor.test").info("hello")
    rotating[0].flush()
    assert "hello" in log_file.read_text()
