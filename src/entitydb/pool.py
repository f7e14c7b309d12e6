"""
Bounded free list of reusable database handles.

The pool never blocks: `get()` returns None when nothing is free, telling
the caller to open a fresh handle, and `release()` closes the handle when
the pool is already full instead of queueing it. Handles are reused in
first-in, first-out order.

Examples
    pool = ConnectionPool(size=10)
    session = connect(options, pool=pool)
    ...
    session.close()   # handle goes back into the pool
    pool.dispose()    # at shutdown
"""
import logging
import queue
import threading
from typing import Any

__all__ = ['ConnectionPool']

logger = logging.getLogger(__name__)

DEFAULT_POOL_SIZE = 10


class ConnectionPool:
    """Thread-safe, non-blocking FIFO pool of handles.
    """

    def __init__(self, size: int = DEFAULT_POOL_SIZE) -> None:
        if size < 0:
            raise ValueError(f'pool size must be >= 0, got {size}')
        self._size = size
        self._free: queue.Queue | None = queue.Queue(maxsize=size) if size else None
        self._lock = threading.Lock()

    @property
    def size(self) -> int:
        return self._size

    def __len__(self) -> int:
        return self._free.qsize() if self._free is not None else 0

    def get(self) -> Any | None:
        """Check out a free handle, or None if the pool is empty.

        Handles closed while pooled are dropped.
        """
        with self._lock:
            while self._free is not None:
                try:
                    handle = self._free.get_nowait()
                except queue.Empty:
                    return None
                if getattr(handle, 'closed', False):
                    logger.debug('Dropping closed handle from pool')
                    continue
                logger.debug(f'Checked out pooled handle ({len(self)} left)')
                return handle
        return None

    def release(self, handle: Any) -> bool:
        """Check a handle back in.

        Returns True if the handle was pooled, False if the pool was full
        and the handle was closed.
        """
        with self._lock:
            if self._free is not None:
                try:
                    self._free.put_nowait(handle)
                    logger.debug(f'Returned handle to pool ({len(self)} free)')
                    return True
                except queue.Full:
                    pass
        logger.debug('Pool full, closing handle')
        handle.close()
        return False

    def resize(self, size: int) -> None:
        """Change the pool bound; handles beyond it are closed.
        """
        if size < 0:
            raise ValueError(f'pool size must be >= 0, got {size}')
        with self._lock:
            handles = self._drain()
            self._size = size
            self._free = queue.Queue(maxsize=size) if size else None
            overflow = handles[size:]
            for handle in handles[:size]:
                self._free.put_nowait(handle)
        for handle in overflow:
            handle.close()
        logger.debug(f'Resized pool to {size}, closed {len(overflow)} handles')

    def dispose(self) -> None:
        """Close every pooled handle.
        """
        with self._lock:
            handles = self._drain()
        for handle in handles:
            handle.close()
        logger.debug(f'Disposed pool, closed {len(handles)} handles')

    def _drain(self) -> list[Any]:
        handles = []
        while self._free is not None:
            try:
                handles.append(self._free.get_nowait())
            except queue.Empty:
                break
        return handles
