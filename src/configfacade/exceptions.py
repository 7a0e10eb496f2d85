"""Exceptions for configfacade."""

from typing import Any


class ConfigError(Exception):
    """Base exception for configuration errors."""

    pass


class ConfigFileError(ConfigError):
    """Error reading a configuration file."""

    pass


class InvalidPathError(ConfigError, ValueError):
    """Path string is empty or starts or ends with the separator."""

    pass


class PropertyAbsentError(ConfigError, LookupError):
    """A value was requested from a property that is absent."""

    def __init__(self, key: str | None):
        self.key = key
        super().__init__(f"No value present for property '{key}'")


class ConversionError(ConfigError, ValueError):
    """Raw value is present but cannot be converted to the target type."""

    def __init__(self, key: str | None, value: Any, target: str, reason: str | None = None):
        self.key = key
        self.value = value
        self.target = target
        message = f"Cannot convert {value!r} at '{key}' to {target}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class UnsupportedTypeError(ConfigError, TypeError):
    """No converter is registered for the requested property type."""

    pass
