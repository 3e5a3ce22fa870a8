"""
Version management for one namespace.

Creates new config versions and activates a chosen version. Activation and
removal hold the namespace cache's write lock across the store call, so the
cache changes strictly after the store commits and no reader sees an
intermediate state.
"""

import logging
from typing import Any

from configcenter import codec
from configcenter.cache import ConfigCache
from configcenter.exceptions import NotFound
from configcenter.models import Config, Version
from configcenter.stores.base import ConfigStore

logger = logging.getLogger(__name__)


class VersionManager:
    def __init__(self, namespace: str, store: ConfigStore, cache: ConfigCache):
        self.namespace = namespace
        self.store = store
        self.cache = cache

    def _append_version(self, store: ConfigStore, config: Config, value: str, operator: str) -> int:
        number = store.latest_version_number(self.namespace, config.key) + 1
        store.save_version(
            Version(config_id=config.id, number=number, value=value, enabled=False, operator=operator)
        )
        return number

    def save_config(
        self,
        key: str,
        name: str,
        payload: Any,
        description: str = "",
        operator: str = "",
    ) -> int:
        """
        Create the config if needed, overwrite its metadata and append a new
        disabled version holding ``payload``.

        The metadata update and the version insert commit together.

        Returns:
            The new version number
        """
        value = codec.encode(key, payload)

        def write(store: ConfigStore) -> int:
            config = store.find_config(self.namespace, key) or Config(namespace=self.namespace, key=key)
            config.name = name
            config.description = description
            config.operator = operator
            store.save_config(config)
            return self._append_version(store, config, value, operator)

        number = self.store.run_transaction(write)
        logger.info(f"Saved config {self.namespace}/{key} version {number} (operator: {operator or '-'})")
        return number

    def save_version(self, key: str, payload: Any, operator: str = "") -> int:
        """Append a new disabled version to an existing config."""
        value = codec.encode(key, payload)

        def write(store: ConfigStore) -> int:
            config = store.find_config(self.namespace, key)
            if config is None:
                raise NotFound(key)
            return self._append_version(store, config, value, operator)

        number = self.store.run_transaction(write)
        logger.info(f"Saved version {number} of {self.namespace}/{key} (operator: {operator or '-'})")
        return number

    def enable_config(self, key: str, number: int) -> Version:
        """
        Make version ``number`` the only enabled version of ``key``.

        Disabling the siblings and enabling the target happen in one
        transaction; if the target does not exist nothing changes.
        """

        def activate(store: ConfigStore) -> Version:
            config = store.find_config(self.namespace, key)
            if config is None:
                raise NotFound(key)
            store.disable_versions(config.id)
            version = store.enable_version(config.id, number)
            if version is None:
                raise NotFound(key, number)
            return version

        with self.cache.lock.write_locked():
            version = self.store.run_transaction(activate)
            self.cache.set_raw(key, version.value)

        logger.info(f"Enabled version {number} of {self.namespace}/{key}")
        return version

    def remove_config(self, key: str) -> None:
        """Soft-delete a config and drop it from the cache."""
        with self.cache.lock.write_locked():
            if not self.store.soft_delete_config(self.namespace, key):
                raise NotFound(key)
            self.cache.evict(key)

        logger.info(f"Removed config {self.namespace}/{key}")
