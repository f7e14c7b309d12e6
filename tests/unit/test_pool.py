"""
Unit tests for the handle pool.
"""
import threading

import pytest
from entitydb.pool import ConnectionPool
from tests.fixtures.mocks import FakeHandle


def test_empty_pool_returns_none():
    pool = ConnectionPool(size=2)
    assert pool.get() is None
    assert len(pool) == 0


def test_release_and_get_fifo():
    pool = ConnectionPool(size=3)
    first, second = FakeHandle(), FakeHandle()
    assert pool.release(first)
    assert pool.release(second)
    assert len(pool) == 2
    assert pool.get() is first
    assert pool.get() is second
    assert pool.get() is None


def test_release_into_full_pool_closes_handle():
    pool = ConnectionPool(size=1)
    kept, extra = FakeHandle(), FakeHandle()
    assert pool.release(kept)
    assert not pool.release(extra)
    assert extra.closed
    assert not kept.closed
    assert len(pool) == 1


def test_zero_size_pool_closes_everything():
    pool = ConnectionPool(size=0)
    handle = FakeHandle()
    assert not pool.release(handle)
    assert handle.closed
    assert pool.get() is None


def test_get_skips_closed_handles():
    pool = ConnectionPool(size=2)
    stale, fresh = FakeHandle(), FakeHandle()
    pool.release(stale)
    pool.release(fresh)
    stale.closed = True
    assert pool.get() is fresh


def test_resize_closes_overflow():
    pool = ConnectionPool(size=3)
    handles = [FakeHandle() for _ in range(3)]
    for handle in handles:
        pool.release(handle)
    pool.resize(1)
    assert pool.size == 1
    assert len(pool) == 1
    assert [h.closed for h in handles] == [False, True, True]
    assert pool.get() is handles[0]


def test_resize_grows_pool():
    pool = ConnectionPool(size=1)
    pool.resize(2)
    assert pool.release(FakeHandle())
    assert pool.release(FakeHandle())


def test_dispose_closes_all():
    pool = ConnectionPool(size=2)
    handles = [FakeHandle(), FakeHandle()]
    for handle in handles:
        pool.release(handle)
    pool.dispose()
    assert all(h.closed for h in handles)
    assert len(pool) == 0


def test_negative_size_rejected():
    with pytest.raises(ValueError):
        ConnectionPool(size=-1)
    with pytest.raises(ValueError):
        ConnectionPool().resize(-1)


def test_concurrent_release_and_get():
    pool = ConnectionPool(size=50)
    handles = [FakeHandle() for _ in range(100)]

    def release(chunk):
        for handle in chunk:
            pool.release(handle)

    threads = [threading.Thread(target=release, args=(handles[i::4],)) for i in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(pool) == 50
    assert sum(h.closed for h in handles) == 50

    taken = []
    while (handle := pool.get()) is not None:
        taken.append(handle)
    assert len(taken) == 50
    assert len({id(h) for h in taken}) == 50


if __name__ == '__main__':
    __import__('pytest').main([__file__])
