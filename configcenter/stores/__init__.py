from configcenter.stores.base import ConfigStore
from configcenter.stores.inmemory import InMemoryConfigStore
from configcenter.stores.orm import DjangoConfigStore

__all__ = ["ConfigStore", "DjangoConfigStore", "InMemoryConfigStore"]
