"""ConfigStore backed by the Django ORM."""

import logging
from contextlib import contextmanager

from django.db import DatabaseError, connections, router, transaction
from django.db.models import Max, Prefetch
from django.utils import timezone

from configcenter.exceptions import SchemaError, StoreError
from configcenter.models import Config, Version
from configcenter.stores.base import PRELOAD_ALL, PRELOAD_LATEST, ConfigStore

logger = logging.getLogger(__name__)


@contextmanager
def _store_errors(operation: str):
    try:
        yield
    except DatabaseError as exc:
        raise StoreError(f"{operation} failed: {exc}", operation=operation) from exc


class DjangoConfigStore(ConfigStore):
    """
    Persist configs through the Django ORM.

    Works on whichever database alias the router picks for ``Config`` unless
    ``using`` is given explicitly.
    """

    def __init__(self, using: str | None = None):
        self.using = using or router.db_for_write(Config)

    def ensure_schema(self) -> None:
        connection = connections[self.using]
        try:
            existing = set(connection.introspection.table_names())
            missing = [model for model in (Config, Version) if model._meta.db_table not in existing]
            if not missing:
                return
            with connection.schema_editor() as editor:
                for model in missing:
                    editor.create_model(model)
                    logger.info(f"{model._meta.db_table} table created")
        except DatabaseError as exc:
            raise SchemaError(f"Failed to create config tables: {exc}") from exc

    def find_configs_with_enabled_version(self, namespace):
        enabled = Prefetch(
            "versions",
            queryset=Version.objects.using(self.using).filter(enabled=True),
            to_attr="enabled_versions",
        )
        with _store_errors("find_configs_with_enabled_version"):
            configs = list(
                Config.objects.using(self.using)
                .filter(namespace=namespace)
                .prefetch_related(enabled)
            )
        return [
            (config, config.enabled_versions[0] if config.enabled_versions else None)
            for config in configs
        ]

    def find_config(self, namespace, key, versions=None):
        queryset = Config.objects.using(self.using).filter(namespace=namespace, key=key)
        if versions in (PRELOAD_LATEST, PRELOAD_ALL):
            queryset = queryset.prefetch_related(
                Prefetch(
                    "versions",
                    queryset=Version.objects.using(self.using).order_by("-number"),
                    to_attr="loaded_versions",
                )
            )
        with _store_errors("find_config"):
            config = queryset.first()
        if config is not None and versions == PRELOAD_LATEST:
            config.loaded_versions = config.loaded_versions[:1]
        return config

    def latest_version_number(self, namespace, key):
        with _store_errors("latest_version_number"):
            result = Version.all_objects.using(self.using).filter(
                config__namespace=namespace, config__key=key
            ).aggregate(latest=Max("number"))
        return result["latest"] or 0

    def save_config(self, config):
        with _store_errors("save_config"):
            config.save(using=self.using)
        return config.id

    def save_version(self, version):
        with _store_errors("save_version"):
            version.save(using=self.using)
        return version.id

    def run_transaction(self, fn):
        with _store_errors("transaction"), transaction.atomic(using=self.using):
            return fn(self)

    def disable_versions(self, config_id):
        with _store_errors("disable_versions"):
            return Version.objects.using(self.using).filter(config_id=config_id).update(
                enabled=False, updated_at=timezone.now()
            )

    def enable_version(self, config_id, number):
        versions = Version.objects.using(self.using).filter(config_id=config_id, number=number)
        with _store_errors("enable_version"):
            if not versions.update(enabled=True, updated_at=timezone.now()):
                return None
            return versions.get()

    def soft_delete_config(self, namespace, key):
        with _store_errors("soft_delete_config"), transaction.atomic(using=self.using):
            config_ids = list(
                Config.objects.using(self.using)
                .filter(namespace=namespace, key=key)
                .values_list("id", flat=True)
            )
            if not config_ids:
                return False
            Version.objects.using(self.using).filter(config_id__in=config_ids).soft_delete()
            Config.objects.using(self.using).filter(id__in=config_ids).soft_delete()
        return True

    def list_configs(self, namespace):
        with _store_errors("list_configs"):
            return list(Config.objects.using(self.using).filter(namespace=namespace).order_by("-id"))

    def list_versions(self, config_id, page, size):
        queryset = Version.objects.using(self.using).filter(config_id=config_id).order_by("-number")
        offset = (page - 1) * size
        with _store_errors("list_versions"):
            return list(queryset[offset:offset + size]), queryset.count()

    def find_enabled_version(self, config_id):
        with _store_errors("find_enabled_version"):
            return (
                Version.objects.using(self.using)
                .filter(config_id=config_id, enabled=True)
                .first()
            )
