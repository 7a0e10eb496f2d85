"""Utility functions for configfacade."""

from collections.abc import Mapping
from typing import Any

from .exceptions import InvalidPathError

SEPARATOR = "."


def deep_merge(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    """Deep merge two dictionaries with overlay precedence.

    Recursively merges nested dictionaries. Non-dict values in overlay
    completely replace corresponding values in base.

    Args:
        base: Base dictionary
        overlay: Overlay dictionary (takes precedence)

    Returns:
        New merged dictionary (base and overlay are not modified)

    Examples:
        >>> base = {"a": 1, "b": {"c": 2, "d": 3}}
        >>> overlay = {"b": {"c": 20}, "e": 5}
        >>> deep_merge(base, overlay)
        {'a': 1, 'b': {'c': 20, 'd': 3}, 'e': 5}

        >>> deep_merge({}, {"a": 1})
        {'a': 1}
    """
    result = base.copy()

    for key, value in overlay.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            # Both base and overlay have dict at this key - recurse
            result[key] = deep_merge(result[key], value)
        else:
            # Overlay wins - replace completely
            result[key] = value

    return result


def flatten(data: Mapping[str, Any], prefix: str = "") -> dict[str, Any]:
    """Flatten nested mappings into a single level of dotted keys.

    Non-mapping values (including lists) are kept as leaves. Empty nested
    mappings produce no keys.

    Examples:
        >>> flatten({"a": {"b": {"c": 1}, "d": 2}, "e": [1, 2]})
        {'a.b.c': 1, 'a.d': 2, 'e': [1, 2]}

        >>> flatten({"b": 1}, prefix="a")
        {'a.b': 1}
    """
    result: dict[str, Any] = {}

    for key, value in data.items():
        path = f"{prefix}{SEPARATOR}{key}" if prefix else str(key)
        if isinstance(value, Mapping):
            result.update(flatten(value, path))
        else:
            result[path] = value

    return result


def validate_path(path: str) -> str:
    """Check a relative path is usable as a scope.

    Raises:
        InvalidPathError: If the path is None or empty, or starts or ends
            with the separator
    """
    if path is None:
        raise InvalidPathError("Path should not be None")
    if not path:
        raise InvalidPathError("Path should not be empty")
    if path.startswith(SEPARATOR):
        raise InvalidPathError(f"Path should not start with a '{SEPARATOR}': {path!r}")
    if path.endswith(SEPARATOR):
        raise InvalidPathError(f"Path should not end with a '{SEPARATOR}': {path!r}")
    return path
