import threading

import pytest

from athena.core.exceptions import ConcurrencyError, TransientStorageError, ValidationError
from athena.services import ConcurrencyManager


def test_lock_is_reentrant_and_released():
    manager = ConcurrencyManager(lock_timeout=0.5)
    key = ConcurrencyManager.course_key("c1")
    with manager.lock(key):
        with manager.lock(key) as info:
            assert info.depth == 2
        assert manager.get_lock_info(key).depth == 1
    assert not manager.is_locked(key)


def test_lock_times_out_when_held_elsewhere():
    manager = ConcurrencyManager(lock_timeout=0.05)
    key = ConcurrencyManager.submission_key("q1", "s1")
    held, release = threading.Event(), threading.Event()

    def holder():
        with manager.lock(key):
            held.set()
            release.wait(2)

    thread = threading.Thread(target=holder)
    thread.start()
    held.wait(2)
    try:
        with pytest.raises(ConcurrencyError) as excinfo:
            with manager.lock(key):
                pass
        assert isinstance(excinfo.value, TransientStorageError)
        assert excinfo.value.details['retryable'] is True
    finally:
        release.set()
        thread.join()


def test_release_without_holding_is_an_error():
    manager = ConcurrencyManager()
    with pytest.raises(ConcurrencyError):
        manager.release_lock("course:none")


def test_keys_are_independent():
    manager = ConcurrencyManager(lock_timeout=0.05)
    with manager.lock(ConcurrencyManager.course_key("a")):
        done = []

        def other_course():
            with manager.lock(ConcurrencyManager.course_key("b")):
                done.append(True)

        thread = threading.Thread(target=other_course)
        thread.start()
        thread.join()
        assert done == [True]


def test_timeout_must_be_positive():
    with pytest.raises(ValidationError):
        ConcurrencyManager(lock_timeout=0)


def test_released_locks_are_forgotten():
    manager = ConcurrencyManager(lock_timeout=0.5)
    for n in range(50):
        with manager.lock(ConcurrencyManager.course_key(f"c{n}")):
            assert manager.tracked_resources() == 1
    assert manager.tracked_resources() == 0

    key = ConcurrencyManager.course_key("nested")
    with manager.lock(key):
        with manager.lock(key):
            pass
        assert manager.tracked_resources() == 1
    assert manager.tracked_resources() == 0


def test_timed_out_waiter_does_not_leak_its_lock():
    manager = ConcurrencyManager(lock_timeout=0.05)
    key = ConcurrencyManager.course_key("busy")
    held, release = threading.Event(), threading.Event()

    def holder():
        with manager.lock(key):
            held.set()
            release.wait(2)

    thread = threading.Thread(target=holder)
    thread.start()
    held.wait(2)
    try:
        with pytest.raises(ConcurrencyError):
            manager.acquire_lock(key)
        assert manager.tracked_resources() == 1
    finally:
        release.set()
        thread.join()
    assert manager.tracked_resources() == 0
    with manager.lock(key):
        assert manager.is_locked(key)
