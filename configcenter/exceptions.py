"""
Exceptions raised by the configuration center.

Every error carries a human readable ``message``. Callers of read and write
operations receive these directly; the background refresh loop logs them.
"""


class ConfigCenterError(Exception):
    """Base exception for configuration center errors"""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class NotFound(ConfigCenterError):
    """A config key, or a version of it, does not exist"""

    def __init__(self, key: str, version: int | None = None):
        self.key = key
        self.version = version
        if version is None:
            message = f"config with key '{key}' not found"
        else:
            message = f"version {version} of config '{key}' not found"
        super().__init__(message)


class DecodeError(ConfigCenterError):
    """A stored payload cannot be turned into the requested type"""

    def __init__(self, key: str, type_: type, cause: object):
        self.key = key
        self.type = type_
        self.cause = cause
        type_name = getattr(type_, "__name__", repr(type_))
        super().__init__(f"failed to decode config '{key}' as {type_name}: {cause}")


class EncodeError(ConfigCenterError):
    """A payload cannot be serialized for storage"""

    def __init__(self, key: str, cause: object):
        self.key = key
        self.cause = cause
        super().__init__(f"failed to encode config '{key}': {cause}")


class StoreError(ConfigCenterError):
    """The backing store failed (connectivity, constraint violation, ...)"""

    def __init__(self, message: str, operation: str | None = None):
        self.operation = operation
        super().__init__(message)


class SchemaError(StoreError):
    """Config tables could not be created. Fatal at startup."""

    def __init__(self, message: str):
        super().__init__(message, operation="ensure_schema")
