"""Callbacks and the listener fan-out list.

A ``CallbackExecutionList`` delivers one success or failure event to many
callbacks, each submitted to the executor it was registered with. Pass
``DIRECT_EXECUTOR`` for synchronous delivery on the notifying thread, or any
``concurrent.futures.Executor`` (for example a ``ThreadPoolExecutor``) to hand
delivery off to a worker.
"""

import logging
import threading
import weakref
from concurrent.futures import Executor
from concurrent.futures import Future
from typing import Any
from typing import Callable
from typing import NamedTuple
from typing import Protocol
from typing import runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class Callback(Protocol):
    """Receiver of a successful value or a failure."""

    def on_success(self, value: Any) -> None: ...

    def on_failure(self, error: Exception) -> None: ...


class FunctionCallback:
    """Adapts plain functions to the Callback protocol.

    Failures are logged at DEBUG level when no failure handler is given.
    """

    def __init__(
        self,
        on_success: Callable[[Any], None],
        on_failure: Callable[[Exception], None] | None = None,
    ):
        self._on_success = on_success
        self._on_failure = on_failure

    def on_success(self, value: Any) -> None:
        self._on_success(value)

    def on_failure(self, error: Exception) -> None:
        if self._on_failure is None:
            logger.debug(f"No failure handler for {self._on_success!r}: {error}")
            return
        self._on_failure(error)

    def __repr__(self) -> str:
        return f"FunctionCallback({self._on_success!r})"


def as_callback(callback: Callback | Callable[[Any], None]) -> Callback:
    """Return ``callback`` itself or wrap a plain callable in FunctionCallback.

    Raises:
        TypeError: If ``callback`` is neither a Callback nor callable
    """
    if isinstance(callback, Callback):
        return callback
    if callable(callback):
        return FunctionCallback(callback)
    raise TypeError(f"Expected a Callback or a callable, got {callback!r}")


class DirectExecutor(Executor):
    """Executor that runs each task immediately on the submitting thread."""

    def submit(self, fn, /, *args, **kwargs) -> Future:
        future: Future = Future()
        try:
            result = fn(*args, **kwargs)
        except Exception as e:
            future.set_exception(e)
        else:
            future.set_result(result)
        return future


DIRECT_EXECUTOR = DirectExecutor()


def _run(fn: Callable[[Any], None], arg: Any) -> None:
    try:
        fn(arg)
    except Exception:
        # One listener failing must not affect the others
        logger.exception(f"Listener callback {fn!r} raised")


def _submit(executor: Executor, fn: Callable[[Any], None], arg: Any) -> None:
    try:
        executor.submit(_run, fn, arg)
    except RuntimeError as e:
        logger.warning(f"Could not dispatch {fn!r}, executor rejected it: {e}")


def call_success(callback: Callback, value: Any, executor: Executor = DIRECT_EXECUTOR) -> None:
    """Deliver ``value`` to one callback through ``executor``."""
    _submit(executor, callback.on_success, value)


def call_failure(callback: Callback, error: Exception, executor: Executor = DIRECT_EXECUTOR) -> None:
    """Deliver ``error`` to one callback through ``executor``."""
    _submit(executor, callback.on_failure, error)


class Subscription:
    """Handle for one registered callback.

    Cancelling stops all deliveries that have not been dispatched yet.
    ``on_cancel`` runs once, on the first ``cancel``.
    """

    def __init__(
        self,
        callback: Callback,
        executor: Executor,
        on_cancel: Callable[["Subscription"], None] | None = None,
    ):
        self.callback = callback
        self.executor = executor
        self._active = True
        self._on_cancel = on_cancel

    @property
    def active(self) -> bool:
        return self._active

    def cancel(self) -> None:
        if not self._active:
            return
        self._active = False
        on_cancel, self._on_cancel = self._on_cancel, None
        if on_cancel is not None:
            on_cancel(self)

    def __repr__(self) -> str:
        state = "active" if self._active else "cancelled"
        return f"Subscription({self.callback!r}, {state})"


class _Node(NamedTuple):
    subscription: Subscription
    next: "_Node | None"


class CallbackExecutionList:
    """Append-only list of callbacks that fans one event out to all of them.

    Writers prepend an immutable node under a lock; readers take the current
    head without locking and walk it, so a notification sees exactly the
    callbacks registered when it started. Callbacks sharing an executor are
    submitted in registration order.

    The list is itself a Callback, so it can be registered as a listener of
    another list.
    """

    def __init__(self):
        self._head: _Node | None = None
        self._lock = threading.Lock()

    def add(
        self,
        callback: Callback | Callable[[Any], None],
        executor: Executor = DIRECT_EXECUTOR,
        on_cancel: Callable[[Subscription], None] | None = None,
    ) -> Subscription:
        """Register a callback to run under ``executor`` for every future event.

        Args:
            callback: Callback, or a plain callable receiving successful values
            executor: Executor each delivery is submitted to
            on_cancel: Called with the subscription when it is cancelled

        Returns:
            Subscription that can be cancelled to stop deliveries
        """
        if executor is None:
            raise ValueError("Executor was None")
        subscription = Subscription(as_callback(callback), executor, on_cancel)
        with self._lock:
            self._head = _Node(subscription, _prune(self._head))
        return subscription

    def add_listener(
        self, callback: Callback | Callable[[Any], None], executor: Executor = DIRECT_EXECUTOR
    ) -> Subscription:
        """Same as ``add``; lets the list stand in wherever a change source is expected."""
        return self.add(callback, executor)

    def on_success(self, value: Any) -> None:
        for subscription in self._snapshot():
            if subscription.active:
                call_success(subscription.callback, value, subscription.executor)

    def on_failure(self, error: Exception) -> None:
        for subscription in self._snapshot():
            if subscription.active:
                call_failure(subscription.callback, error, subscription.executor)

    def _snapshot(self) -> list[Subscription]:
        subscriptions = []
        node = self._head
        while node is not None:
            subscriptions.append(node.subscription)
            node = node.next
        subscriptions.reverse()
        return subscriptions

    def __len__(self) -> int:
        return sum(1 for s in self._snapshot() if s.active)


def _prune(head: _Node | None) -> _Node | None:
    """Rebuild a node chain without cancelled subscriptions.

    Returns ``head`` unchanged when nothing was cancelled.
    """
    live = []
    pruned = False
    node = head
    while node is not None:
        if node.subscription.active:
            live.append(node.subscription)
        else:
            pruned = True
        node = node.next
    if not pruned:
        return head
    rebuilt = None
    for subscription in reversed(live):
        rebuilt = _Node(subscription, rebuilt)
    return rebuilt


class WeakMethodCallback:
    """Callback calling a bound method without keeping its object alive.

    Events arriving after the object was collected are dropped. ``pin()``
    holds a strong reference until ``unpin()``.
    """

    def __init__(self, method: Callable[[Any], None]):
        self._method = weakref.WeakMethod(method)
        self._pinned: Callable[[Any], None] | None = None

    def on_success(self, value: Any) -> None:
        self._call(value)

    def on_failure(self, error: Exception) -> None:
        self._call(error)

    def _call(self, arg: Any) -> None:
        method = self._method()
        if method is not None:
            method(arg)

    def pin(self) -> None:
        self._pinned = self._method()

    def unpin(self) -> None:
        self._pinned = None

    def __repr__(self) -> str:
        return f"WeakMethodCallback({self._method()!r})"


class UpstreamLink:
    """Subscriptions an owner holds on its upstream change sources.

    The sources only reference the owner weakly, so an owner nobody else
    refers to is collected, and its subscriptions are cancelled when that
    happens. While pinned, the sources keep the owner alive.

    Args:
        owner: Object whose lifetime bounds the subscriptions
        method: Bound method of ``owner`` called on every upstream event
        sources: Change sources to subscribe to
    """

    def __init__(self, owner: Any, method: Callable[[Any], None], sources: list[Any]):
        self._hook = WeakMethodCallback(method)
        self._subscriptions = [source.add_listener(self._hook) for source in sources]
        self._finalizer = weakref.finalize(owner, _cancel_all, self._subscriptions)

    @property
    def active(self) -> bool:
        return self._finalizer.alive

    def pin(self) -> None:
        if self._finalizer.alive:
            self._hook.pin()

    def unpin(self) -> None:
        self._hook.unpin()

    def close(self) -> None:
        """Cancel the upstream subscriptions now."""
        self._hook.unpin()
        self._finalizer()


def _cancel_all(subscriptions: list[Subscription]) -> None:
    for subscription in subscriptions:
        subscription.cancel()


class ChangeNotifier:
    """Listener list that pins an UpstreamLink while it has listeners.

    Something that listens to a derived object needs the derived object to
    stay subscribed upstream, so the link is pinned from the first listener
    until the last one is cancelled.
    """

    def __init__(self):
        self._listeners = CallbackExecutionList()
        self._link: UpstreamLink | None = None
        self._lock = threading.RLock()

    def attach(self, link: UpstreamLink) -> None:
        with self._lock:
            self._link = link
            if len(self._listeners):
                link.pin()

    def add_listener(
        self, callback: Callback | Callable[[Any], None], executor: Executor = DIRECT_EXECUTOR
    ) -> Subscription:
        with self._lock:
            subscription = self._listeners.add(callback, executor, on_cancel=self._cancelled)
            if self._link is not None:
                self._link.pin()
        return subscription

    def _cancelled(self, _subscription: Subscription) -> None:
        with self._lock:
            if self._link is not None and not len(self._listeners):
                self._link.unpin()

    def notify(self, value: Any) -> None:
        self._listeners.on_success(value)

    def __len__(self) -> int:
        return len(self._listeners)
