import dataclasses

from torrent_supervisor.models.torrent_record import STATUS_ACTIVE, STATUS_QUEUED
from torrent_supervisor.transfers import SOURCE_FILE, SOURCE_MAGNET, add_transfer

from conftest import HASH_A, live


def test_add_transfer_creates_queued_record(store, settings):
    record = add_transfer(
        store, settings, live(HASH_A), SOURCE_FILE, "/up/a.torrent", "/done", "default"
    )

    assert record.status == STATUS_QUEUED
    assert record.moved is False
    assert record.upload_limit is True
    assert record.date_added

    stored = store.fetch_record(HASH_A)
    assert stored == record
    assert store.fetch_queue_state().queued == [HASH_A]
    assert HASH_A in store.fetch_hash_history()


def test_upload_limit_follows_configuration(store, settings):
    cfg = dataclasses.replace(settings, UPLOAD_LIMIT_ENABLED=False)
    record = add_transfer(store, cfg, live(HASH_A), SOURCE_MAGNET, None, "/done", "RSS")
    assert record.upload_limit is False


def test_re_adding_known_hash_keeps_state(store, settings):
    add_transfer(store, settings, live(HASH_A), SOURCE_MAGNET, None, "/done", "RSS")
    store.patch_record(HASH_A, {"status": STATUS_ACTIVE, "moved": True})
    queue = store.fetch_queue_state()
    queue.activate(HASH_A)
    store.update_queue_state(queue)

    record = add_transfer(
        store, settings, live(HASH_A), SOURCE_FILE, "/up/a.torrent", None, "default"
    )

    assert len(store.fetch_all_records()) == 1
    assert record.status == STATUS_ACTIVE
    assert record.moved is True
    assert record.source == SOURCE_FILE
    assert record.source_path == "/up/a.torrent"
    assert record.storage_path == "/done"
    queue = store.fetch_queue_state()
    assert queue.active == [HASH_A]
    assert queue.queued == []
