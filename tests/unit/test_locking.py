# ABOUTME: Unit tests for the token mutex
# ABOUTME: Tests shared reads, exclusive writes, and writer preference

import threading
import time

import pytest

from argocd_provider.utils.locking import TokenMutex


def wait_until(predicate, timeout: float = 2.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return predicate()


@pytest.mark.unit
class TestTokenMutex:
    """Tests for TokenMutex class."""

    def test_readers_share_lock(self):
        """Test that several readers hold the lock together."""
        mutex = TokenMutex()

        with mutex.read(), mutex.read():
            assert mutex.readers == 2
            assert mutex.write_locked is False

        assert mutex.readers == 0

    def test_write_lock_released_after_block(self):
        """Test the write lock is released when the block exits."""
        mutex = TokenMutex()

        with mutex.write():
            assert mutex.write_locked is True

        assert mutex.write_locked is False

    def test_write_lock_released_on_exception(self):
        """Test the write lock is released when the block raises."""
        mutex = TokenMutex()

        with pytest.raises(ValueError), mutex.write():
            raise ValueError("boom")

        assert mutex.write_locked is False

    def test_writer_waits_for_readers(self):
        """Test a writer blocks until all readers are gone."""
        mutex = TokenMutex()
        acquired = threading.Event()

        def writer():
            with mutex.write():
                acquired.set()

        mutex.acquire_read()
        thread = threading.Thread(target=writer)
        thread.start()

        assert not acquired.wait(0.1)
        mutex.release_read()
        assert acquired.wait(2.0)
        thread.join(2.0)

    def test_reader_waits_for_writer(self):
        """Test a reader blocks while a writer holds the lock."""
        mutex = TokenMutex()
        acquired = threading.Event()

        def reader():
            with mutex.read():
                acquired.set()

        mutex.acquire_write()
        thread = threading.Thread(target=reader)
        thread.start()

        assert not acquired.wait(0.1)
        mutex.release_write()
        assert acquired.wait(2.0)
        thread.join(2.0)

    def test_waiting_writer_blocks_new_readers(self):
        """Test new readers queue behind a waiting writer."""
        mutex = TokenMutex()
        order: list[str] = []

        def writer():
            with mutex.write():
                order.append("writer")

        def reader():
            with mutex.read():
                order.append("reader")

        mutex.acquire_read()
        writer_thread = threading.Thread(target=writer)
        writer_thread.start()
        assert wait_until(lambda: mutex._writers_waiting == 1)

        reader_thread = threading.Thread(target=reader)
        reader_thread.start()
        time.sleep(0.05)
        assert order == []

        mutex.release_read()
        writer_thread.join(2.0)
        reader_thread.join(2.0)
        assert order == ["writer", "reader"]

    def test_writers_are_exclusive(self):
        """Test concurrent writers never overlap."""
        mutex = TokenMutex()
        active = 0
        max_active = 0
        guard = threading.Lock()

        def writer():
            nonlocal active, max_active
            with mutex.write():
                with guard:
                    active += 1
                    max_active = max(max_active, active)
                time.sleep(0.01)
                with guard:
                    active -= 1

        threads = [threading.Thread(target=writer) for _ in range(5)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(5.0)

        assert max_active == 1

    def test_release_without_acquire(self):
        """Test unbalanced releases raise."""
        mutex = TokenMutex()

        with pytest.raises(RuntimeError):
            mutex.release_read()
        with pytest.raises(RuntimeError):
            mutex.release_write()

    def test_sessions_have_independent_mutexes(self):
        """Test that one mutex held for writing does not block another."""
        first = TokenMutex()
        second = TokenMutex()

        with first.write(), second.write():
            assert first.write_locked
            assert second.write_locked
