"""Process-wide cache of analyzed record descriptors."""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager

from rowmap.types import TypeDescriptor

logger = logging.getLogger(__name__)


class ReadWriteLock:
    """Lock allowing many concurrent readers or one exclusive writer."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writing = False

    @contextmanager
    def read(self) -> Iterator[None]:
        """Hold the lock in shared mode."""
        with self._cond:
            while self._writing:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        """Hold the lock in exclusive mode."""
        with self._cond:
            while self._writing or self._readers:
                self._cond.wait()
            self._writing = True
        try:
            yield
        finally:
            with self._cond:
                self._writing = False
                self._cond.notify_all()


class DescriptorRegistry:
    """Registry of analyzed record descriptors keyed by table name.

    Lookups take the lock in shared mode and publication takes it in exclusive
    mode. Analysis itself runs outside the lock, so two threads seeing the same
    new type may both analyze it; the last one to publish wins.
    """

    def __init__(self) -> None:
        self._descriptors: dict[str, TypeDescriptor] = {}
        self._lock = ReadWriteLock()

    def lookup(self, table: str) -> TypeDescriptor | None:
        """Get a descriptor by table name."""
        with self._lock.read():
            return self._descriptors.get(table)

    def publish(self, descriptor: TypeDescriptor) -> None:
        """Store a completed descriptor under its table name."""
        with self._lock.write():
            self._descriptors[descriptor.table] = descriptor
        logger.debug("published descriptor for table %r", descriptor.table)

    def clear(self) -> None:
        """Forget every descriptor so types are analyzed again."""
        with self._lock.write():
            self._descriptors.clear()

    def list_tables(self) -> list[str]:
        """List all cached table names."""
        with self._lock.read():
            return list(self._descriptors.keys())

    def __contains__(self, table: str) -> bool:
        with self._lock.read():
            return table in self._descriptors

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._descriptors)


default_registry = DescriptorRegistry()
