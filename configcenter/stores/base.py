"""ConfigStore abstract interface.

Durable storage of configs and their version history. Implementations return
``Config``/``Version`` model instances and raise ``StoreError`` when the
underlying storage fails.
"""

from abc import ABC, abstractmethod
from typing import Callable, TypeVar

from configcenter.models import Config, Version

T = TypeVar("T")

PRELOAD_LATEST = "latest"
PRELOAD_ALL = "all"


class ConfigStore(ABC):
    """Abstract interface for config and version persistence."""

    @abstractmethod
    def ensure_schema(self) -> None:
        """Create the config/version tables if they do not exist yet."""

    @abstractmethod
    def find_configs_with_enabled_version(
        self, namespace: str
    ) -> list[tuple[Config, Version | None]]:
        """Live configs of a namespace paired with their enabled version."""

    @abstractmethod
    def find_config(
        self, namespace: str, key: str, versions: str | None = None
    ) -> Config | None:
        """Get a live config by key.

        With ``versions="latest"`` or ``versions="all"`` the returned config
        carries ``loaded_versions``, newest first.
        """

    @abstractmethod
    def latest_version_number(self, namespace: str, key: str) -> int:
        """Highest version number ever used for the key, deleted configs included."""

    @abstractmethod
    def save_config(self, config: Config) -> int:
        """Insert or update a config, returning its id."""

    @abstractmethod
    def save_version(self, version: Version) -> int:
        """Insert or update a version, returning its id."""

    @abstractmethod
    def run_transaction(self, fn: Callable[["ConfigStore"], T]) -> T:
        """Run ``fn(store)`` atomically; any exception rolls everything back."""

    @abstractmethod
    def disable_versions(self, config_id: int) -> int:
        """Disable every version of a config, returning the number of rows touched."""

    @abstractmethod
    def enable_version(self, config_id: int, number: int) -> Version | None:
        """Enable one version of a config. None if it does not exist."""

    @abstractmethod
    def soft_delete_config(self, namespace: str, key: str) -> bool:
        """Soft-delete a config and its versions. False if there was none."""

    @abstractmethod
    def list_configs(self, namespace: str) -> list[Config]:
        """Live configs of a namespace, newest first."""

    @abstractmethod
    def list_versions(self, config_id: int, page: int, size: int) -> tuple[list[Version], int]:
        """One page of a config's versions, newest first, with the total count."""

    @abstractmethod
    def find_enabled_version(self, config_id: int) -> Version | None:
        """The currently enabled version of a config, if any."""
