"""Hierarchical, read-only view over a flat dotted-key map."""

from collections.abc import Mapping
from concurrent.futures import Executor
from typing import Any
from typing import Callable

from .callbacks import DIRECT_EXECUTOR
from .callbacks import Callback
from .callbacks import Subscription
from .config_map import ChainedConfigMap
from .config_map import ConfigMap
from .config_map import ReplaceableConfigMap
from .config_map import replaceable
from .conversion import PropertyType
from .exceptions import ConversionError
from .exceptions import UnsupportedTypeError
from .property import Property
from .property import SupplierProperty
from .utils import SEPARATOR
from .utils import validate_path


class Config:
    """Scoped view of a ReplaceableConfigMap.

    Paths are resolved relative to the view's base path: the raw key for
    ``path`` is ``base_path + path``, where a non-empty base path already ends
    with the separator. Views are cheap and never change their base path;
    every view created from this one shares the same underlying map, so a
    ``replace`` through any of them is seen by all.

    A Config is itself a ReplaceableConfigMap whose keys are relative to its
    base path.

    Args:
        config_map: Map that values are read from
        base_path: Prefix for every lookup; empty for the root view
    """

    def __init__(self, config_map: ReplaceableConfigMap, base_path: str = ""):
        self._map = config_map
        self._base = base_path

    @property
    def current_path(self) -> str:
        return self._base

    @property
    def config_map(self) -> ReplaceableConfigMap:
        return self._map

    # ===== Scoping =====

    def at_path(self, path: str) -> "Config":
        """Return a view scoped to ``path`` below this one.

        Raises:
            InvalidPathError: If ``path`` is empty or starts or ends with '.'
        """
        validate_path(path)
        return Config(self._map, f"{self._base}{path}{SEPARATOR}")

    def has_path(self, path: str) -> bool:
        return self.get(path) is not None

    def get_keys(self) -> list[str]:
        """Direct children of this view's base path."""
        return [p for p in self.get_paths() if SEPARATOR not in p]

    def get_paths(self) -> list[str]:
        """Every key below this view's base path, relative to it."""
        base = self._base
        return [
            key[len(base) :]
            for key in self._map.raw_keys()
            if isinstance(key, str) and key != base and key.startswith(base)
        ]

    def with_fallback(self, other: ConfigMap | Mapping[str, Any]) -> "Config":
        """Return a view that reads this view's map first, then ``other``.

        ``other`` is keyed like this view's root map. A Config works too, in
        which case its own base path applies.
        """
        chained = ChainedConfigMap(self._map, replaceable(other))
        return Config(chained, self._base)

    # ===== Typed properties =====

    def get_string(self, path: str) -> Property[str]:
        return self.get_property(path, PropertyType.STRING)

    def get_long(self, path: str) -> Property[int]:
        return self.get_property(path, PropertyType.LONG)

    def get_integer(self, path: str) -> Property[int]:
        return self.get_property(path, PropertyType.INTEGER)

    def get_boolean(self, path: str) -> Property[bool]:
        return self.get_property(path, PropertyType.BOOLEAN)

    def get_double(self, path: str) -> Property[float]:
        return self.get_property(path, PropertyType.DOUBLE)

    def get_property(
        self,
        path: str,
        type_: PropertyType | type | str = PropertyType.STRING,
        converter: Callable[[str], Any] | None = None,
    ) -> Property[Any]:
        """Bind a live property to ``path``.

        Each read looks the raw value up again. A missing value is absent;
        a value already of the target type is returned as is; anything else
        is converted from its string form.

        Args:
            path: Path relative to this view
            type_: Target type: a PropertyType, a Python type or a type name
            converter: Custom string converter; ``type_`` must then be a class
                and need not be one of the supported property types

        Raises:
            UnsupportedTypeError: If no converter exists for ``type_``
        """
        key = f"{self._base}{path}"
        config_map = self._map

        if converter is None:
            property_type = PropertyType.resolve(type_)

            def resolve() -> Any:
                raw = config_map.get(key)
                if raw is None:
                    return None
                if property_type.matches(raw):
                    return property_type.accept(raw, key)
                return property_type.parse(raw, key)

        else:
            if not isinstance(type_, type):
                raise UnsupportedTypeError(f"A custom converter needs a class as target type, got {type_!r}")

            def resolve() -> Any:
                raw = config_map.get(key)
                if raw is None:
                    return None
                if isinstance(raw, type_):
                    return raw
                try:
                    return converter(str(raw))
                except (TypeError, ValueError) as e:
                    raise ConversionError(key, raw, type_.__name__, str(e)) from e

        return SupplierProperty(resolve, key, config_map)

    # ===== ConfigMap relative to the base path =====

    def get(self, key: str) -> Any:
        return self._map.get(f"{self._base}{key}")

    def contains_key(self, key: str) -> bool:
        return self.get(key) is not None

    def raw_keys(self) -> list[str]:
        return self.get_paths()

    def to_dict(self) -> dict[str, Any]:
        """Snapshot of every raw value below this view, keyed by relative path."""
        return {path: self.get(path) for path in self.get_paths()}

    def to_properties(self) -> dict[str, str]:
        """Like ``to_dict`` with every value in string form.

        Absent values are left out. The result can be fed back to
        ``from_properties``.
        """
        properties = {}
        for path, value in self.to_dict().items():
            if value is not None:
                properties[path] = str(value)
        return properties

    # ===== Replacement =====

    def replace(self, config_map: ConfigMap | Mapping[str, Any]) -> None:
        """Replace the underlying map shared by all views."""
        self._map.replace(config_map)

    def reload(self) -> None:
        self._map.reload()

    def add_listener(self, callback: Callback, executor: Executor = DIRECT_EXECUTOR) -> Subscription:
        return self._map.add_listener(callback, executor)

    def __repr__(self) -> str:
        return f"Config(base_path={self._base!r}, map={self._map!r})"
