"""Lazily evaluated, typed configuration properties.

A ``Property`` is a named, possibly absent value that is computed each time
it is read. ``optional()`` is the one method a variant must provide; it
returns the value, or ``None`` when absent. Everything else (``get``,
``is_present``, the combinators and listener fan-out) is built on it.

Combinators wrap other properties:

- ``cache()`` remembers the last result until the upstream reports a change
- ``backup()`` keeps serving the last present value while the upstream is absent
- ``or_()`` (or ``|``) returns the first present value from a chain

Example:
    ```python
    timeout = config.get_integer("http.timeout").or_(30).cache()
    timeout.add_listener(lambda value: client.set_timeout(value))
    ```
"""

import logging
import threading
from abc import ABC
from abc import abstractmethod
from collections.abc import Sequence
from concurrent.futures import Executor
from typing import Any
from typing import Callable
from typing import Generic
from typing import Protocol
from typing import TypeVar

from .callbacks import DIRECT_EXECUTOR
from .callbacks import Callback
from .callbacks import CallbackExecutionList
from .callbacks import ChangeNotifier
from .callbacks import FunctionCallback
from .callbacks import Subscription
from .callbacks import UpstreamLink
from .callbacks import call_failure
from .callbacks import call_success
from .exceptions import PropertyAbsentError
from .models import CacheState
from .models import Outcome

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ChangeSource(Protocol):
    """Anything that announces changes to registered callbacks."""

    def add_listener(self, callback: Callback, executor: Executor = DIRECT_EXECUTOR) -> Subscription: ...


def evaluate(prop: "Property[Any]") -> Outcome:
    """Read a property once, capturing an exception instead of raising it."""
    try:
        value = prop.optional()
    except Exception as e:
        return Outcome(error=e)
    return Outcome(value=value)


class Property(ABC, Generic[T]):
    """Lazily evaluated, typed, possibly absent value.

    Args:
        key: Raw key this property reads, used in error messages and reprs
    """

    def __init__(self, key: str | None = None):
        self._key = key
        self._lock = threading.RLock()
        self._listeners: CallbackExecutionList | None = None
        self._upstream_subscriptions: list[Subscription] = []

    @property
    def key(self) -> str | None:
        return self._key

    @abstractmethod
    def optional(self) -> T | None:
        """Evaluate the property. Returns None when absent."""

    def get(self) -> T:
        """Evaluate the property.

        Raises:
            PropertyAbsentError: If the property is absent
        """
        value = self.optional()
        if value is None:
            raise PropertyAbsentError(self.key)
        return value

    def is_present(self) -> bool:
        return self.optional() is not None

    def supplier(self) -> Callable[[], T | None]:
        """Zero-argument callable that evaluates ``optional()``."""
        return self.optional

    # ===== Combinators =====

    def cache(self) -> "CachedProperty[T]":
        return CachedProperty(self)

    def backup(self) -> "BackupProperty[T]":
        return BackupProperty(self)

    def or_(self, *alternatives: "Property[T] | T") -> "ChainedProperty[T]":
        """Chain this property with alternatives tried in order.

        Args:
            alternatives: Properties or literal values
        """
        return ChainedProperty([self, *alternatives])

    def __or__(self, other: "Property[T] | T") -> "ChainedProperty[T]":
        return self.or_(other)

    # ===== Listeners =====

    def add_listener(
        self, callback: Callback | Callable[[T], None], executor: Executor = DIRECT_EXECUTOR
    ) -> Subscription:
        """Register a callback for the current value and every later change.

        The callback receives the current result right away: ``on_success``
        with the value if ``get()`` succeeds, ``on_failure`` with the error
        otherwise. The first registration also subscribes this property, once,
        to its upstream change sources; on each change the property is
        evaluated again and the result fanned out to all its callbacks.

        The upstream subscription keeps this property alive, so a listener
        keeps firing even when nothing else refers to the property. It is
        dropped once every subscription returned here has been cancelled.

        Args:
            callback: Callback, or a plain callable receiving values
            executor: Executor deliveries to this callback are submitted to

        Returns:
            Subscription that can be cancelled to stop future deliveries
        """
        with self._lock:
            if self._listeners is None:
                self._listeners = CallbackExecutionList()
                hook = FunctionCallback(self._upstream_changed, self._upstream_changed)
                self._upstream_subscriptions = [source.add_listener(hook) for source in self._change_sources()]
            subscription = self._listeners.add(callback, executor, on_cancel=self._listener_cancelled)
        logger.debug(f"Added listener {subscription.callback!r} to property '{self.key}'")
        self._deliver(evaluate(self), subscription.callback, executor)
        return subscription

    def _listener_cancelled(self, _subscription: Subscription) -> None:
        with self._lock:
            if self._listeners is None or len(self._listeners):
                return
            upstream, self._upstream_subscriptions = self._upstream_subscriptions, []
            self._listeners = None
        for subscription in upstream:
            subscription.cancel()
        logger.debug(f"Released upstream subscriptions of property '{self.key}'")

    def _change_sources(self) -> list[ChangeSource]:
        """Sources whose notifications mean this property may have changed."""
        return []

    def _upstream_changed(self, _event: Any) -> None:
        listeners = self._listeners
        if listeners is None:
            return
        outcome = evaluate(self)
        if outcome.present:
            listeners.on_success(outcome.value)
        else:
            listeners.on_failure(self._failure(outcome))

    def _deliver(self, outcome: Outcome, callback: Callback, executor: Executor) -> None:
        if outcome.present:
            call_success(callback, outcome.value, executor)
        else:
            call_failure(callback, self._failure(outcome), executor)

    def _failure(self, outcome: Outcome) -> Exception:
        return outcome.error if outcome.failed else PropertyAbsentError(self.key)

    # ===== Constructors =====

    @staticmethod
    def of(value: T, key: str | None = None) -> "Property[T]":
        return StaticProperty(value, key)

    @staticmethod
    def absent(key: str | None = None) -> "Property[Any]":
        return StaticProperty(None, key)

    @staticmethod
    def from_supplier(
        supplier: Callable[[], T | None], key: str | None = None, source: ChangeSource | None = None
    ) -> "Property[T]":
        return SupplierProperty(supplier, key, source)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(key={self.key!r})"


class StaticProperty(Property[T]):
    """Property with a fixed value, or fixed absence."""

    def __init__(self, value: T | None, key: str | None = None):
        super().__init__(key)
        self._value = value

    def optional(self) -> T | None:
        return self._value

    def __repr__(self) -> str:
        return f"StaticProperty({self._value!r}, key={self.key!r})"


class SupplierProperty(Property[T]):
    """Property evaluated by calling a supplier on every read.

    Args:
        supplier: Zero-argument callable returning the value or None
        key: Raw key the supplier reads
        source: Change source whose notifications reach this property's listeners
    """

    def __init__(
        self, supplier: Callable[[], T | None], key: str | None = None, source: ChangeSource | None = None
    ):
        super().__init__(key)
        self._supplier = supplier
        self._source = source

    def optional(self) -> T | None:
        return self._supplier()

    def _change_sources(self) -> list[ChangeSource]:
        return [self._source] if self._source is not None else []


class ChainedProperty(Property[T]):
    """First present value of an ordered sequence of properties.

    Errors from every member but the last count as absent; the last
    member's error propagates since nothing is left to fall back on.
    Literal values in ``properties`` are wrapped in StaticProperty.
    """

    def __init__(self, properties: Sequence["Property[T] | T"]):
        members = tuple(p if isinstance(p, Property) else StaticProperty(p) for p in properties)
        if not members:
            raise ValueError("A chained property needs at least one member")
        super().__init__(members[0].key)
        self._properties = members

    @property
    def properties(self) -> tuple["Property[T]", ...]:
        return self._properties

    def optional(self) -> T | None:
        last = len(self._properties) - 1
        for index, prop in enumerate(self._properties):
            outcome = evaluate(prop)
            if outcome.present:
                return outcome.value
            if outcome.failed:
                if index == last:
                    raise outcome.error
                logger.debug(f"Falling back past property '{prop.key}': {outcome.error}")
        return None

    def _change_sources(self) -> list[ChangeSource]:
        # Members bound to the same map share one subscription
        sources: dict[int, ChangeSource] = {}
        for prop in self._properties:
            for source in prop._change_sources():
                sources.setdefault(id(source), source)
        return list(sources.values())


_EMPTY = object()


class CachedProperty(Property[T]):
    """Remembers the upstream's last result until the upstream changes.

    The slot starts EMPTY, is filled by the first read and emptied by every
    upstream change notification. Invalidation never recomputes; the next
    read does. Absence is cached like a value, errors are not.

    The upstream does not keep the cache alive unless the cache has
    listeners of its own. A cache that is no longer referenced is collected
    and its upstream subscription cancelled; ``close()`` cancels it sooner.
    """

    def __init__(self, upstream: Property[T]):
        super().__init__(upstream.key)
        self._upstream = upstream
        self._slot: Any = _EMPTY
        self._epoch = 0
        self._slot_lock = threading.Lock()
        self._invalidations = ChangeNotifier()
        self._link = UpstreamLink(self, self._invalidate, upstream._change_sources())
        self._invalidations.attach(self._link)

    @property
    def state(self) -> CacheState:
        return CacheState.EMPTY if self._slot is _EMPTY else CacheState.POPULATED

    def optional(self) -> T | None:
        slot = self._slot
        if slot is not _EMPTY:
            return slot
        epoch = self._epoch
        value = self._upstream.optional()
        with self._slot_lock:
            # A change that arrived while computing makes this value stale
            if self._epoch == epoch:
                self._slot = value
        return value

    def _invalidate(self, _event: Any) -> None:
        with self._slot_lock:
            self._epoch += 1
            self._slot = _EMPTY
        self._invalidations.notify(self)

    def close(self) -> None:
        """Stop following upstream changes. The cached value is kept for good."""
        self._link.close()
        logger.debug(f"Closed cache of property '{self.key}'")

    def _change_sources(self) -> list[ChangeSource]:
        return [self._invalidations]


class BackupProperty(Property[T]):
    """Serves the upstream's last present value while the upstream is absent.

    Seeded on construction from ``upstream.get()``, so the upstream must be
    present at that point. Upstream errors propagate.

    Raises:
        PropertyAbsentError: From the constructor if the upstream is absent
    """

    def __init__(self, upstream: Property[T]):
        super().__init__(upstream.key)
        self._upstream = upstream
        self._last: T = upstream.get()

    @property
    def last_value(self) -> T:
        return self._last

    def optional(self) -> T | None:
        value = self._upstream.optional()
        if value is None:
            return self._last
        self._last = value
        return value

    def _change_sources(self) -> list[ChangeSource]:
        return self._upstream._change_sources()
