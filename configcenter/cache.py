"""
In-memory config cache.

``ConfigCache`` holds two mappings for one namespace:

- raw: config key -> serialized value of the enabled version
- typed: config key -> {requested type -> decoded value}

Typed entries are derived from raw values and are dropped whenever the raw
value of their key changes. Both mappings are guarded by one ReadWriteLock.
"""

import copy
import threading
from contextlib import contextmanager
from typing import Any

from configcenter import codec
from configcenter.exceptions import NotFound


_MISSING = object()


class ReadWriteLock:
    """
    Shared/exclusive lock.

    Any number of readers may hold the lock together; a writer holds it alone.
    Waiting writers block new readers so refreshes are not starved by a steady
    stream of reads. Not reentrant.
    """

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    def acquire_read(self) -> None:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1

    def release_read(self) -> None:
        with self._cond:
            self._readers -= 1
            if not self._readers:
                self._cond.notify_all()

    def acquire_write(self) -> None:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True

    def release_write(self) -> None:
        with self._cond:
            self._writer = False
            self._cond.notify_all()

    @contextmanager
    def read_locked(self):
        self.acquire_read()
        try:
            yield
        finally:
            self.release_read()

    @contextmanager
    def write_locked(self):
        self.acquire_write()
        try:
            yield
        finally:
            self.release_write()


class ConfigCache:
    """Raw and typed config values of one namespace."""

    def __init__(self, namespace: str = ""):
        self.namespace = namespace
        self.lock = ReadWriteLock()
        self._raw: dict[str, str] = {}
        self._typed: dict[str, dict[type, Any]] = {}
        # bumped by every local write so an older refresh cannot overwrite it
        self._generation = 0

    def __len__(self) -> int:
        with self.lock.read_locked():
            return len(self._raw)

    def __contains__(self, key: str) -> bool:
        with self.lock.read_locked():
            return key in self._raw

    @property
    def generation(self) -> int:
        with self.lock.read_locked():
            return self._generation

    def raw(self, key: str) -> str | None:
        with self.lock.read_locked():
            return self._raw.get(key)

    def get(self, key: str, type_: type = object) -> Any:
        """
        Return the value of ``key`` decoded as ``type_``.

        Every call returns its own copy, so callers may mutate the result
        without affecting the cached entry.

        Raises:
            NotFound: no enabled value is cached for the key
            DecodeError: the cached value cannot be decoded as ``type_``
        """
        with self.lock.read_locked():
            value = self._typed.get(key, {}).get(type_, _MISSING)
            if value is not _MISSING:
                return copy.deepcopy(value)
            raw = self._raw.get(key)

        if raw is None:
            raise NotFound(key)

        value = codec.decode(key, raw, type_)

        with self.lock.write_locked():
            # skip if the raw value changed while decoding
            if self._raw.get(key) == raw:
                self._typed.setdefault(key, {})[type_] = value
        return copy.deepcopy(value)

    def merge(self, mapping: dict[str, str], generation: int | None = None) -> bool:
        """
        Publish a freshly loaded raw mapping.

        Typed entries of keys whose value changed or vanished are evicted.
        Returns False, leaving the cache untouched, when local writes happened
        after ``generation`` was read.
        """
        with self.lock.write_locked():
            if generation is not None and generation != self._generation:
                return False
            for key, raw in self._raw.items():
                if mapping.get(key) != raw:
                    self._typed.pop(key, None)
            self._raw = dict(mapping)
            return True

    # The methods below expect the caller to hold ``lock`` for writing.

    def set_raw(self, key: str, raw: str) -> None:
        if self._raw.get(key) != raw:
            self._typed.pop(key, None)
        self._raw[key] = raw
        self._generation += 1

    def evict(self, key: str) -> None:
        self._raw.pop(key, None)
        self._typed.pop(key, None)
        self._generation += 1
