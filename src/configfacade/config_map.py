"""Flat string-keyed stores that back a Config.

A ``ConfigMap`` knows nothing about hierarchy: keys are raw dotted strings
and values are opaque. ``VolatileConfigMap`` promotes any ConfigMap into a
``ReplaceableConfigMap`` whose current snapshot can be hot-swapped while
readers keep going.
"""

import dataclasses
import inspect
import logging
import threading
from collections.abc import Iterable
from collections.abc import Mapping
from concurrent.futures import Executor
from typing import Any
from typing import Callable
from typing import Protocol
from typing import runtime_checkable

from .callbacks import DIRECT_EXECUTOR
from .callbacks import Callback
from .callbacks import CallbackExecutionList
from .callbacks import ChangeNotifier
from .callbacks import Subscription
from .callbacks import UpstreamLink
from .property import Property

logger = logging.getLogger(__name__)


@runtime_checkable
class ConfigMap(Protocol):
    """Read-only flat key-value store. ``None`` from ``get`` means absent."""

    def get(self, key: str) -> Any: ...

    def contains_key(self, key: str) -> bool: ...

    def raw_keys(self) -> list[str]: ...


@runtime_checkable
class ReplaceableConfigMap(ConfigMap, Protocol):
    """ConfigMap whose contents can be swapped and observed."""

    def replace(self, config_map: ConfigMap) -> None: ...

    def reload(self) -> None: ...

    def add_listener(self, callback: Callback, executor: Executor = DIRECT_EXECUTOR) -> Subscription: ...


class DictConfigMap:
    """ConfigMap over a mapping, held by reference.

    Changes made to the wrapped mapping are visible immediately to anything
    reading through this map.
    """

    def __init__(self, mapping: Mapping[str, Any]):
        self._mapping = mapping

    def get(self, key: str) -> Any:
        return self._mapping.get(key)

    def contains_key(self, key: str) -> bool:
        return key in self._mapping

    def raw_keys(self) -> list[str]:
        return list(self._mapping)

    def __repr__(self) -> str:
        return f"DictConfigMap({len(self._mapping)} keys)"


class ObjectConfigMap:
    """ConfigMap over an object's public attributes and accessor methods.

    Accessors are discovered once at construction and called on every
    ``get``. Data attributes and properties keep their name. Methods are
    exposed only when they take no arguments at all and are named ``get_x``
    or ``is_x``, which maps to key ``x``; other methods are never called.
    Keys keep declaration order: dataclass fields and instance attributes
    first, then class attributes from the base class down.

    Values that are properties are read through ``optional()`` and other
    callables returned by an accessor are called.

    Args:
        obj: Object to reflect
        accessors: Attribute or method names to expose instead of discovering
            them; any zero-argument method may be named here
    """

    def __init__(self, obj: Any, accessors: Iterable[str] | None = None):
        self._obj = obj
        self._accessors = _discover_accessors(obj, accessors)

    def get(self, key: str) -> Any:
        accessor = self._accessors.get(key)
        if accessor is None:
            return None
        return _unwrap(accessor())

    def contains_key(self, key: str) -> bool:
        return key in self._accessors

    def raw_keys(self) -> list[str]:
        return list(self._accessors)

    def __repr__(self) -> str:
        return f"ObjectConfigMap({type(self._obj).__name__}, {len(self._accessors)} keys)"


_ACCESSOR_PREFIXES = ("get_", "is_")


def _discover_accessors(obj: Any, names: Iterable[str] | None = None) -> dict[str, Callable[[], Any]]:
    explicit = names is not None
    accessors: dict[str, Callable[[], Any]] = {}
    for name in list(names) if explicit else _declared_names(obj):
        if not explicit and name.startswith("_"):
            continue
        try:
            static = inspect.getattr_static(obj, name)
        except AttributeError:
            if explicit:
                raise ValueError(f"{type(obj).__name__} has no attribute '{name}'") from None
            continue
        if inspect.isclass(static):
            continue
        if isinstance(static, property) or not callable(static):
            accessors.setdefault(name, _attribute_reader(obj, name))
            continue
        key = _accessor_key(name)
        if key is None and not explicit:
            continue
        method = getattr(obj, name)
        if not _takes_no_arguments(method):
            if explicit:
                raise ValueError(f"Accessor '{name}' of {type(obj).__name__} takes arguments")
            continue
        accessors.setdefault(key or name, method)
    return accessors


def _declared_names(obj: Any) -> list[str]:
    names: list[str] = []
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        names.extend(f.name for f in dataclasses.fields(obj))
    try:
        names.extend(vars(obj))
    except TypeError:
        pass
    for cls in reversed(type(obj).__mro__):
        if cls is not object:
            names.extend(vars(cls))
    return list(dict.fromkeys(names))


def _accessor_key(name: str) -> str | None:
    for prefix in _ACCESSOR_PREFIXES:
        if name.startswith(prefix) and len(name) > len(prefix):
            return name[len(prefix) :]
    return None


def _attribute_reader(obj: Any, name: str) -> Callable[[], Any]:
    def read() -> Any:
        return getattr(obj, name, None)

    return read


def _takes_no_arguments(fn: Callable) -> bool:
    try:
        signature = inspect.signature(fn)
    except (TypeError, ValueError):
        return False
    return not signature.parameters


def _unwrap(value: Any) -> Any:
    if isinstance(value, Property):
        return value.optional()
    if callable(value) and not inspect.isclass(value):
        return value()
    return value


class VolatileConfigMap:
    """ReplaceableConfigMap holding the current ConfigMap in a single slot.

    Readers read the slot without locking and always see one whole snapshot.
    Writers are serialized; each replacement notifies every registered
    listener with the new map before ``replace`` returns (or, for listeners
    registered with a background executor, once their delivery is enqueued).
    """

    def __init__(self, config_map: ConfigMap):
        self._map = config_map
        self._lock = threading.RLock()
        self._listeners = CallbackExecutionList()

    @property
    def current(self) -> ConfigMap:
        """The snapshot currently installed."""
        return self._map

    @property
    def listener_count(self) -> int:
        """Number of listeners that have not been cancelled."""
        return len(self._listeners)

    def get(self, key: str) -> Any:
        return self._map.get(key)

    def contains_key(self, key: str) -> bool:
        return self._map.contains_key(key)

    def raw_keys(self) -> list[str]:
        return self._map.raw_keys()

    def replace(self, config_map: ConfigMap | Mapping[str, Any]) -> None:
        """Install a new snapshot and notify listeners with it.

        Args:
            config_map: New ConfigMap, or a mapping to wrap in a DictConfigMap
        """
        new_map = to_config_map(config_map)
        with self._lock:
            self._map = new_map
            logger.info(f"Replaced configuration map with {type(new_map).__name__} ({len(new_map.raw_keys())} keys)")
            self._listeners.on_success(new_map)

    def reload(self) -> None:
        """Notify listeners with the current snapshot without changing it."""
        with self._lock:
            current = self._map
            logger.debug(f"Reloading configuration map {type(current).__name__}")
            self._listeners.on_success(current)

    def add_listener(self, callback: Callback, executor: Executor = DIRECT_EXECUTOR) -> Subscription:
        """Register a callback for every future replace or reload."""
        logger.debug(f"Adding configuration map listener {callback!r}")
        return self._listeners.add(callback, executor)

    def __repr__(self) -> str:
        return f"VolatileConfigMap({self._map!r})"


class ChainedConfigMap:
    """ReplaceableConfigMap that reads a primary map, then a fallback.

    The first non-None value wins. ``replace`` swaps the primary's snapshot.
    Listeners are notified with the chain itself whenever either side
    changes, and on ``reload``.

    Neither side keeps the chain alive while the chain has no listeners of
    its own; once collected, its subscriptions on both sides are cancelled.
    ``close()`` cancels them right away.
    """

    def __init__(self, primary: ReplaceableConfigMap, fallback: ReplaceableConfigMap):
        self._primary = primary
        self._fallback = fallback
        self._listeners = ChangeNotifier()
        self._link = UpstreamLink(self, self._changed, [primary, fallback])
        self._listeners.attach(self._link)

    def _changed(self, _event: Any) -> None:
        self._listeners.notify(self)

    def get(self, key: str) -> Any:
        value = self._primary.get(key)
        if value is None:
            value = self._fallback.get(key)
        return value

    def contains_key(self, key: str) -> bool:
        return self._primary.contains_key(key) or self._fallback.contains_key(key)

    def raw_keys(self) -> list[str]:
        return list(dict.fromkeys([*self._primary.raw_keys(), *self._fallback.raw_keys()]))

    def replace(self, config_map: ConfigMap | Mapping[str, Any]) -> None:
        self._primary.replace(config_map)

    def reload(self) -> None:
        logger.debug("Reloading chained configuration map")
        self._listeners.notify(self)

    def add_listener(self, callback: Callback, executor: Executor = DIRECT_EXECUTOR) -> Subscription:
        return self._listeners.add_listener(callback, executor)

    def close(self) -> None:
        """Stop following changes of the primary and the fallback."""
        self._link.close()

    def __repr__(self) -> str:
        return f"ChainedConfigMap({self._primary!r}, {self._fallback!r})"


def to_config_map(source: ConfigMap | Mapping[str, Any]) -> ConfigMap:
    """Return ``source`` if it is a ConfigMap, else wrap a mapping.

    Raises:
        TypeError: If ``source`` is neither
    """
    if isinstance(source, ConfigMap):
        return source
    if isinstance(source, Mapping):
        return DictConfigMap(source)
    raise TypeError(f"Expected a ConfigMap or a mapping, got {type(source).__name__}")


def replaceable(source: ConfigMap | Mapping[str, Any]) -> ReplaceableConfigMap:
    """Return ``source`` if it already supports replacement, else promote it."""
    if isinstance(source, ReplaceableConfigMap):
        return source
    return VolatileConfigMap(to_config_map(source))
