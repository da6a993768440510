"""Bounded pool of FTP storage backends.

An FTP session cannot serve two callers at once, so concurrent code checks a
backend out, uses it exclusively, and hands it back. Each pooled backend owns
its own session.
"""

import queue
import threading
from contextlib import contextmanager
from typing import Callable, Iterator, Optional

from ftp_storage.core.errors import ErrorCode, StorageError
from ftp_storage.core.logging_config import get_logger
from ftp_storage.storage.ftp import FtpStorageBackend


logger = get_logger(__name__)


class FtpStoragePool:
    """Hands out FTP backends one caller at a time.

    At most ``size`` backends are checked out at once; they are created
    lazily and reused afterwards. A backend whose session was lost (or that
    raised out of a ``checkout`` block) is closed instead of reused.
    """

    def __init__(self, factory: Callable[[], FtpStorageBackend], size: int = 4):
        if size < 1:
            raise ValueError(f"Pool size must be at least 1, got {size}")

        self._factory = factory
        self.size = size
        self._idle: "queue.LifoQueue[FtpStorageBackend]" = queue.LifoQueue()
        self._slots = threading.BoundedSemaphore(size)
        self._closed = False

    @property
    def idle(self) -> int:
        return self._idle.qsize()

    @contextmanager
    def checkout(self, timeout: Optional[float] = None) -> Iterator[FtpStorageBackend]:
        """Borrow a backend for the duration of the ``with`` block.

        Args:
            timeout: Seconds to wait for a free slot (None waits forever)

        Raises:
            StorageError: If the pool is closed or no slot freed up within ``timeout``
            StorageConnectionError: If a new backend could not connect
        """
        if self._closed:
            raise StorageError(ErrorCode.STORAGE_POOL_EXHAUSTED, "Storage pool is closed")

        if not self._slots.acquire(timeout=timeout):
            logger.warning("ftp_pool_exhausted", size=self.size, timeout=timeout)
            raise StorageError(
                ErrorCode.STORAGE_POOL_EXHAUSTED,
                "No FTP storage backend became available",
                {"size": self.size, "timeout": timeout},
            )

        try:
            backend = self._take_idle() or self._create()
        except BaseException:
            self._slots.release()
            raise

        healthy = False
        try:
            yield backend
            healthy = True
        finally:
            self._release(backend, healthy)

    def _take_idle(self) -> Optional[FtpStorageBackend]:
        try:
            return self._idle.get_nowait()
        except queue.Empty:
            return None

    def _create(self) -> FtpStorageBackend:
        backend = self._factory()
        logger.debug("ftp_pool_backend_created", size=self.size)
        return backend

    def _release(self, backend: FtpStorageBackend, healthy: bool) -> None:
        try:
            if healthy and not backend.closed and not self._closed:
                self._idle.put(backend)
            else:
                backend.close()
                logger.debug("ftp_pool_backend_discarded", healthy=healthy, pool_closed=self._closed)
        finally:
            self._slots.release()

    def close(self) -> None:
        """Close all idle backends; checked-out ones close when returned."""
        self._closed = True
        while True:
            backend = self._take_idle()
            if backend is None:
                break
            backend.close()
        logger.info("ftp_pool_closed", size=self.size)

    def __enter__(self) -> "FtpStoragePool":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
