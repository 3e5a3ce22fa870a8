"""In-memory ConfigStore.

Keeps unsaved model instances in dictionaries. Useful for tests and for
embedding the cache without a database. Every read hands out copies, so
callers cannot change stored state without going through the store.
"""

import copy
import itertools
import threading

from django.utils import timezone

from configcenter.exceptions import StoreError
from configcenter.models import Config, Version
from configcenter.stores.base import PRELOAD_ALL, PRELOAD_LATEST, ConfigStore


class InMemoryConfigStore(ConfigStore):
    """ConfigStore kept in process memory."""

    def __init__(self):
        self._configs: dict[int, Config] = {}
        self._versions: dict[int, Version] = {}
        self._config_ids = itertools.count(1)
        self._version_ids = itertools.count(1)
        self._lock = threading.RLock()

    def ensure_schema(self) -> None:
        pass

    def _live_config(self, namespace: str, key: str) -> Config | None:
        for config in self._configs.values():
            if config.namespace == namespace and config.key == key and config.deleted_at is None:
                return config
        return None

    def _live_versions(self, config_id: int) -> list[Version]:
        versions = [
            v for v in self._versions.values()
            if v.config_id == config_id and v.deleted_at is None
        ]
        return sorted(versions, key=lambda v: v.number, reverse=True)

    def find_configs_with_enabled_version(self, namespace):
        with self._lock:
            result = []
            for config in sorted(self._configs.values(), key=lambda c: c.id, reverse=True):
                if config.namespace != namespace or config.deleted_at is not None:
                    continue
                enabled = next((v for v in self._live_versions(config.id) if v.enabled), None)
                result.append((copy.copy(config), copy.copy(enabled) if enabled else None))
            return result

    def find_config(self, namespace, key, versions=None):
        with self._lock:
            config = self._live_config(namespace, key)
            if config is None:
                return None
            found = copy.copy(config)
            if versions in (PRELOAD_LATEST, PRELOAD_ALL):
                loaded = [copy.copy(v) for v in self._live_versions(config.id)]
                found.loaded_versions = loaded[:1] if versions == PRELOAD_LATEST else loaded
            return found

    def latest_version_number(self, namespace, key):
        with self._lock:
            config_ids = {
                c.id for c in self._configs.values()
                if c.namespace == namespace and c.key == key
            }
            numbers = [v.number for v in self._versions.values() if v.config_id in config_ids]
            return max(numbers, default=0)

    def save_config(self, config):
        with self._lock:
            now = timezone.now()
            if config.id is None:
                if self._live_config(config.namespace, config.key) is not None:
                    raise StoreError(
                        f"config {config.namespace}/{config.key} already exists",
                        operation="save_config",
                    )
                config.id = next(self._config_ids)
                config.created_at = now
            config.updated_at = now
            self._configs[config.id] = copy.copy(config)
            return config.id

    def save_version(self, version):
        with self._lock:
            now = timezone.now()
            if version.id is None:
                if any(
                    v.config_id == version.config_id and v.number == version.number
                    for v in self._versions.values()
                ):
                    raise StoreError(
                        f"version {version.number} of config {version.config_id} already exists",
                        operation="save_version",
                    )
                version.id = next(self._version_ids)
                version.created_at = now
            version.updated_at = now
            self._versions[version.id] = copy.copy(version)
            return version.id

    def run_transaction(self, fn):
        with self._lock:
            configs = {pk: copy.copy(c) for pk, c in self._configs.items()}
            versions = {pk: copy.copy(v) for pk, v in self._versions.items()}
            try:
                return fn(self)
            except BaseException:
                self._configs, self._versions = configs, versions
                raise

    def disable_versions(self, config_id):
        with self._lock:
            touched = 0
            for version in self._live_versions(config_id):
                version.enabled = False
                version.updated_at = timezone.now()
                touched += 1
            return touched

    def enable_version(self, config_id, number):
        with self._lock:
            for version in self._live_versions(config_id):
                if version.number == number:
                    version.enabled = True
                    version.updated_at = timezone.now()
                    return copy.copy(version)
            return None

    def soft_delete_config(self, namespace, key):
        with self._lock:
            config = self._live_config(namespace, key)
            if config is None:
                return False
            now = timezone.now()
            for version in self._live_versions(config.id):
                version.deleted_at = now
            config.deleted_at = now
            config.updated_at = now
            return True

    def list_configs(self, namespace):
        with self._lock:
            configs = [
                copy.copy(c) for c in self._configs.values()
                if c.namespace == namespace and c.deleted_at is None
            ]
            return sorted(configs, key=lambda c: c.id, reverse=True)

    def list_versions(self, config_id, page, size):
        with self._lock:
            versions = self._live_versions(config_id)
            offset = (page - 1) * size
            return [copy.copy(v) for v in versions[offset:offset + size]], len(versions)

    def find_enabled_version(self, config_id):
        with self._lock:
            for version in self._live_versions(config_id):
                if version.enabled:
                    return copy.copy(version)
            return None
