import os
import threading
import time

from live_screensaver.extraction_lock import EXTRACTION_LOCK_TIMEOUT_SEC, ExtractionLock
from live_screensaver.utils import cache_file_path

SOURCE = "https://www.twitch.tv/somechannel"


def test_lock_path_sits_next_to_cache_file(cache_dir):
    lock = ExtractionLock(directory=cache_dir)
    assert lock.path_for(SOURCE).name == cache_file_path(SOURCE, cache_dir).name + "_lock"


def test_acquire_is_exclusive_until_release(cache_dir):
    lock = ExtractionLock(directory=cache_dir)

    assert lock.try_acquire(SOURCE)
    assert lock.path_for(SOURCE).exists()
    assert lock.is_held(SOURCE)
    assert not lock.try_acquire(SOURCE)

    lock.release(SOURCE)
    assert not lock.path_for(SOURCE).exists()
    assert lock.try_acquire(SOURCE)


def test_other_process_marker_blocks(cache_dir):
    lock = ExtractionLock(directory=cache_dir)
    lock.path_for(SOURCE).write_text("", encoding="utf-8")
    assert not lock.try_acquire(SOURCE)


def test_stale_marker_is_reclaimed(cache_dir):
    lock = ExtractionLock(directory=cache_dir)
    path = lock.path_for(SOURCE)
    path.write_text("", encoding="utf-8")
    then = time.time() - (EXTRACTION_LOCK_TIMEOUT_SEC + 1)
    os.utime(path, (then, then))

    assert not lock.is_held(SOURCE)
    assert lock.try_acquire(SOURCE)
    assert path.exists()


def test_release_without_marker_is_harmless(cache_dir):
    ExtractionLock(directory=cache_dir).release(SOURCE)


def test_locks_are_per_source(cache_dir):
    lock = ExtractionLock(directory=cache_dir)
    assert lock.try_acquire(SOURCE)
    assert lock.try_acquire(SOURCE + "/other")


def test_concurrent_acquire_has_a_single_winner(cache_dir):
    contenders = 8
    barrier = threading.Barrier(contenders)
    results = []

    def contend():
        lock = ExtractionLock(directory=cache_dir)
        barrier.wait()
        results.append(lock.try_acquire(SOURCE))

    threads = [threading.Thread(target=contend) for _ in range(contenders)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=5)

    assert len(results) == contenders
    assert results.count(True) == 1
