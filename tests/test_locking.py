"""Tests for the per-subtree lock registry."""

import threading
import time

from filerepo.core.locking import SubtreeLocks


class TestSubtreeLocks:

    def test_entries_dropped_after_release(self):
        locks = SubtreeLocks()
        with locks.hold(1, None, 5):
            assert sorted(locks.held_keys(), key=str) == sorted([(1, None), (1, 5)], key=str)
        assert locks.held_keys() == []

    def test_duplicate_roots_taken_once(self):
        locks = SubtreeLocks()
        with locks.hold(1, 7, 7):
            assert locks.held_keys() == [(1, 7)]

    def test_same_key_is_exclusive(self):
        locks = SubtreeLocks()
        events = []

        def worker():
            with locks.hold(1, 3):
                events.append("second")

        with locks.hold(1, 3):
            thread = threading.Thread(target=worker)
            thread.start()
            time.sleep(0.05)
            events.append("first")
        thread.join(timeout=2)

        assert events == ["first", "second"]

    def test_different_keys_do_not_block(self):
        locks = SubtreeLocks()
        entered = threading.Event()

        def worker():
            with locks.hold(2, 3):
                entered.set()

        with locks.hold(1, 3):
            thread = threading.Thread(target=worker)
            thread.start()
            assert entered.wait(timeout=2)
        thread.join(timeout=2)

    def test_opposite_order_does_not_deadlock(self):
        locks = SubtreeLocks()
        done = []

        def worker(roots):
            for _ in range(50):
                with locks.hold(1, *roots):
                    pass
            done.append(roots)

        threads = [
            threading.Thread(target=worker, args=((4, None),)),
            threading.Thread(target=worker, args=((None, 4),)),
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=5)

        assert len(done) == 2
        assert locks.held_keys() == []

    def test_released_when_block_raises(self):
        locks = SubtreeLocks()
        try:
            with locks.hold(1, 9):
                raise RuntimeError("boom")
        except RuntimeError:
            pass
        assert locks.held_keys() == []
