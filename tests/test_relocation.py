import threading

from torrent_supervisor.filesystem import RelocationError
from torrent_supervisor.models.torrent_record import TorrentRecord
from torrent_supervisor.relocation import Relocator

from conftest import HASH_A


def test_successful_relocation_keeps_moved_flag(store, engine):
    store.update_record(TorrentRecord(hash=HASH_A, name="a", moved=True))
    moves: list[tuple[str, str]] = []

    def mover(src, dst_dir):
        moves.append((src, dst_dir))
        return dst_dir

    relocator = Relocator(store, engine, mover=mover)
    future = relocator.dispatch(HASH_A, "a", "/downloads/a", "/done")
    relocator.shutdown(wait=True)

    assert future.result() == "/done"
    assert moves == [("/downloads/a", "/done")]
    assert store.fetch_record(HASH_A).moved is True
    assert engine.count("verify") == 0
    assert relocator.in_flight() == set()


def test_failed_relocation_verifies_and_resets_flag(store, engine):
    store.update_record(TorrentRecord(hash=HASH_A, name="a", moved=True))

    def mover(src, dst_dir):
        raise RelocationError("no space")

    relocator = Relocator(store, engine, mover=mover)
    relocator.dispatch(HASH_A, "a", "/downloads/a", "/done")
    relocator.shutdown(wait=True)

    assert engine.count("verify", HASH_A) == 1
    assert store.fetch_record(HASH_A).moved is False
    assert relocator.in_flight() == set()


def test_second_dispatch_for_same_hash_is_refused(store, engine):
    release = threading.Event()

    def mover(src, dst_dir):
        release.wait(timeout=5)
        return dst_dir

    relocator = Relocator(store, engine, mover=mover)
    first = relocator.dispatch(HASH_A, "a", "/downloads/a", "/done")
    second = relocator.dispatch(HASH_A, "a", "/downloads/a", "/done")
    release.set()
    relocator.shutdown(wait=True)

    assert first is not None
    assert second is None


def test_retry_dispatched_during_moved_reset_is_accepted(store, engine):
    store.update_record(TorrentRecord(hash=HASH_A, name="a", moved=True))
    attempts: list[str] = []
    retried = threading.Event()
    retries: list[object] = []

    def mover(src, dst_dir):
        attempts.append(src)
        if len(attempts) == 1:
            raise RelocationError("no space")
        return dst_dir

    relocator = Relocator(store, engine, mover=mover)
    original_patch = store.patch_record

    def patch_then_retry(torrent_hash, changes):
        result = original_patch(torrent_hash, changes)
        if changes == {"moved": False}:
            # a reconcile tick sees moved=False and relocates again
            original_patch(torrent_hash, {"moved": True})
            retries.append(relocator.dispatch(torrent_hash, "a", "/downloads/a", "/done"))
            retried.set()
        return result

    store.patch_record = patch_then_retry
    relocator.dispatch(HASH_A, "a", "/downloads/a", "/done")
    assert retried.wait(timeout=5)
    assert retries[0] is not None
    retries[0].result(timeout=5)
    relocator.shutdown(wait=True)

    assert attempts == ["/downloads/a", "/downloads/a"]
    assert store.fetch_record(HASH_A).moved is True
    assert relocator.in_flight() == set()
