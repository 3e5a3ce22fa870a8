"""
Namespaces and the process-wide namespace registry.

A ``Namespace`` owns everything needed to serve one logical partition of
config keys: the store handle, the raw/typed cache with its lock, the version
manager and the background refresh loop.

Consistency: within a process, ``get`` reflects ``enable_config`` and
``remove_config`` as soon as they return. Changes made by other processes
become visible only through the refresh loop, i.e. after at most
``REFRESH_INTERVAL`` seconds (60 by default).
"""

import logging
import threading
from typing import Any

from configcenter import conf
from configcenter.cache import ConfigCache
from configcenter.exceptions import NotFound, SchemaError
from configcenter.models import Config, Version
from configcenter.refresh import RefreshLoop, bootstrap
from configcenter.stores.base import ConfigStore
from configcenter.versions import VersionManager

logger = logging.getLogger(__name__)


class Namespace:
    def __init__(self, name: str, store: ConfigStore, refresh_interval: float | None = None):
        self.name = name
        self.store = store
        self.refresh_interval = refresh_interval or conf.get_setting("REFRESH_INTERVAL")
        self.cache = ConfigCache(name)
        self.versions = VersionManager(name, store, self.cache)
        self._refresh_loop: RefreshLoop | None = None

    def __repr__(self) -> str:
        return f"<Namespace {self.name}>"

    def start(self, refresh: bool = True) -> "Namespace":
        """
        Load the cache, then keep it fresh in the background.

        The first load runs synchronously so reads right after ``start`` see
        the stored state; a store failure here propagates to the caller.
        """
        self.bootstrap()
        if refresh and self._refresh_loop is None:
            self._refresh_loop = RefreshLoop(self.bootstrap, self.refresh_interval, name=self.name)
            self._refresh_loop.start()
        return self

    def stop(self, timeout: float | None = None) -> None:
        if self._refresh_loop is not None:
            self._refresh_loop.stop(timeout)
            self._refresh_loop = None

    def bootstrap(self) -> bool:
        return bootstrap(self.store, self.name, self.cache)

    def get(self, key: str, type_: type = object) -> Any:
        return self.cache.get(key, type_)

    def save_config(self, key: str, name: str, payload: Any, description: str = "", operator: str = "") -> int:
        return self.versions.save_config(key, name, payload, description, operator)

    def save_version(self, key: str, payload: Any, operator: str = "") -> int:
        return self.versions.save_version(key, payload, operator)

    def enable_config(self, key: str, number: int) -> Version:
        return self.versions.enable_config(key, number)

    def remove_config(self, key: str) -> None:
        self.versions.remove_config(key)

    def list_configs(self) -> list[Config]:
        return self.store.list_configs(self.name)

    def _require_config(self, key: str) -> Config:
        config = self.store.find_config(self.name, key)
        if config is None:
            raise NotFound(key)
        return config

    def list_versions(self, key: str, page: int = 1, size: int = 20) -> tuple[list[Version], int]:
        if page < 1 or size < 1:
            raise ValueError("page and size must be positive")
        return self.store.list_versions(self._require_config(key).id, page, size)

    def get_enabled_version(self, key: str) -> Version:
        version = self.store.find_enabled_version(self._require_config(key).id)
        if version is None:
            raise NotFound(key)
        return version

    def status(self) -> dict:
        loop = self._refresh_loop
        return {
            "namespace": self.name,
            "cached_keys": len(self.cache),
            "refresh": {
                "running": bool(loop and loop.is_alive()),
                "interval": self.refresh_interval,
                "last_success": loop.last_success.isoformat() if loop and loop.last_success else None,
                "last_error": loop.last_error if loop else None,
                "failures": loop.failures if loop else 0,
            },
        }


_registry: dict[str, Namespace] = {}
_registry_lock = threading.Lock()


def init(name: str, store: ConfigStore | None = None, refresh: bool | None = None) -> Namespace:
    """
    Start serving namespace ``name`` in this process.

    Safe to call more than once: later calls return the running namespace
    instead of starting another refresh loop.

    Raises:
        SchemaError: the config tables cannot be created
        StoreError: the initial load failed
    """
    with _registry_lock:
        namespace = _registry.get(name)
        if namespace is not None:
            return namespace

        store = store or conf.get_store()
        try:
            store.ensure_schema()
        except SchemaError as e:
            logger.critical(f"Cannot start config namespace {name}: {e}")
            raise

        if refresh is None:
            refresh = conf.get_setting("REFRESH_ENABLED")
        namespace = Namespace(name, store).start(refresh=refresh)
        _registry[name] = namespace
        logger.info(f"Config namespace {name} initialized")
        return namespace


def get_namespace(name: str) -> Namespace:
    with _registry_lock:
        try:
            return _registry[name]
        except KeyError:
            raise LookupError(f"config namespace '{name}' is not initialized") from None


def running_namespaces() -> list[Namespace]:
    with _registry_lock:
        return list(_registry.values())


def shutdown(name: str | None = None, timeout: float | None = 5.0) -> None:
    """Stop one namespace, or all of them when ``name`` is None."""
    with _registry_lock:
        names = [name] if name is not None else list(_registry)
        for key in names:
            namespace = _registry.pop(key, None)
            if namespace is not None:
                namespace.stop(timeout)
                logger.info(f"Config namespace {key} shut down")
