"""Settings for the configuration center.

Read from the ``CONFIG_CENTER`` dict in Django settings, for example::

    CONFIG_CENTER = {
        "REFRESH_INTERVAL": 30,
        "STORE": "configcenter.stores.orm.DjangoConfigStore",
    }
"""

from django.conf import settings
from django.utils.module_loading import import_string

DEFAULTS = {
    "REFRESH_INTERVAL": 60,  # seconds
    "REFRESH_ENABLED": True,
    "STORE": "configcenter.stores.orm.DjangoConfigStore",
    "DEFAULT_PAGE_SIZE": 20,
    "MAX_PAGE_SIZE": 100,
    # namespaces served over HTTP; others return 404
    "NAMESPACES": ["default"],
}


def get_setting(name: str):
    return getattr(settings, "CONFIG_CENTER", {}).get(name, DEFAULTS[name])


def get_store():
    """Instantiate the configured ConfigStore."""
    return import_string(get_setting("STORE"))()
