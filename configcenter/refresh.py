"""
Background refresh of the raw config cache.

``bootstrap()`` loads the enabled value of every config in a namespace and
publishes it to the cache in one step. ``RefreshLoop`` repeats that on a fixed
interval in a daemon thread until stopped.
"""

import logging
import threading
from datetime import datetime
from typing import Callable

from django.db import close_old_connections, connections
from django.utils import timezone

from configcenter.cache import ConfigCache
from configcenter.exceptions import StoreError
from configcenter.stores.base import ConfigStore

logger = logging.getLogger(__name__)


def bootstrap(store: ConfigStore, namespace: str, cache: ConfigCache) -> bool:
    """
    Reload ``cache`` from the store.

    The new mapping is built completely before it is merged, so readers never
    see a half-refreshed cache. If the store query fails, ``StoreError``
    propagates and the cache keeps its previous contents.

    Returns:
        False if the result was discarded because a local write raced with it
    """
    generation = cache.generation
    rows = store.find_configs_with_enabled_version(namespace)
    mapping = {config.key: version.value for config, version in rows if version is not None}

    if not cache.merge(mapping, generation):
        logger.debug(f"Discarded refresh of namespace {namespace}: local write happened meanwhile")
        return False

    logger.debug(f"Refreshed namespace {namespace}: {len(mapping)} enabled configs")
    return True


class RefreshLoop(threading.Thread):
    """
    Periodically call ``refresh`` until ``stop()`` is called.

    Failures are logged and counted; the loop keeps running and retries on the
    next tick.
    """

    def __init__(self, refresh: Callable[[], object], interval: float, name: str = "default"):
        super().__init__(name=f"configcenter-refresh-{name}", daemon=True)
        self._refresh = refresh
        self.interval = interval
        self._stop_event = threading.Event()

        self.last_success: datetime | None = None
        self.last_error: str | None = None
        self.failures = 0

    def run(self) -> None:
        logger.info(f"Config refresh loop started ({self.name}, every {self.interval}s)")
        while not self._stop_event.wait(self.interval):
            self.tick()
            # long-lived thread: drop connections past CONN_MAX_AGE or broken ones
            close_old_connections()
        # connections are per thread; release this one's before it exits
        connections.close_all()
        logger.info(f"Config refresh loop stopped ({self.name})")

    def tick(self) -> None:
        try:
            self._refresh()
        except StoreError as e:
            self.failures += 1
            self.last_error = str(e)
            logger.error(f"Config refresh failed, keeping cached values: {e}", exc_info=True)
        except Exception as e:
            self.failures += 1
            self.last_error = str(e)
            logger.exception(f"Unexpected error refreshing configs: {e}")
        else:
            self.last_success = timezone.now()
            self.last_error = None

    def stop(self, timeout: float | None = None) -> None:
        self._stop_event.set()
        if self.is_alive() and threading.current_thread() is not self:
            self.join(timeout)

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()
