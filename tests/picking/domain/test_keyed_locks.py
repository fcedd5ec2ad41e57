import threading

from picking.utils.locks import KeyedLocks


class TestKeyedLocks:
    def test_same_key_shares_one_lock(self):
        locks = KeyedLocks()
        with locks.hold("order-1"):
            with locks.hold("order-1"):
                assert len(locks) == 1

    def test_composite_keys_are_distinct(self):
        locks = KeyedLocks()
        with locks.hold("B-1", "milk"):
            with locks.hold("B-1", "eggs"):
                assert len(locks) == 2

    def test_idle_keys_are_evicted(self):
        locks = KeyedLocks()
        for number in range(50):
            with locks.hold(f"order-{number}"):
                pass
        assert len(locks) == 0

    def test_reentrant_for_the_holding_thread(self):
        locks = KeyedLocks()
        with locks.hold("order-1"):
            with locks.hold("order-1"):
                entered = True
        assert entered

    def test_different_keys_do_not_block(self):
        locks = KeyedLocks()
        acquired = threading.Event()

        def other():
            with locks.hold("order-2"):
                acquired.set()

        with locks.hold("order-1"):
            worker = threading.Thread(target=other)
            worker.start()
            assert acquired.wait(timeout=2)
            worker.join()

    def test_same_key_blocks_other_threads(self):
        locks = KeyedLocks()
        acquired = threading.Event()

        def other():
            with locks.hold("order-1"):
                acquired.set()

        with locks.hold("order-1"):
            worker = threading.Thread(target=other)
            worker.start()
            assert not acquired.wait(timeout=0.2)
        worker.join(timeout=2)
        assert acquired.is_set()
