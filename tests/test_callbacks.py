"""Tests for callbacks and CallbackExecutionList."""

import gc
import logging
import threading
import weakref
from concurrent.futures import ThreadPoolExecutor

import pytest
from configfacade import DIRECT_EXECUTOR
from configfacade import Callback
from configfacade import CallbackExecutionList
from configfacade import FunctionCallback
from configfacade.callbacks import ChangeNotifier
from configfacade.callbacks import UpstreamLink
from configfacade.callbacks import WeakMethodCallback
from configfacade.callbacks import as_callback


class TestCallbackExecutionList:
    """Test fan-out of events to registered callbacks."""

    @pytest.fixture
    def callbacks(self):
        """Create an empty callback list."""
        return CallbackExecutionList()

    def test_success_reaches_every_callback(self, callbacks, recorder_factory):
        """Test on_success is delivered to all callbacks."""
        first, second = recorder_factory(), recorder_factory()
        callbacks.add(first, DIRECT_EXECUTOR)
        callbacks.add(second, DIRECT_EXECUTOR)

        callbacks.on_success("value")

        assert first.values == ["value"]
        assert second.values == ["value"]

    def test_failure_reaches_every_callback(self, callbacks, recorder_factory):
        """Test on_failure is delivered to all callbacks."""
        first, second = recorder_factory(), recorder_factory()
        callbacks.add(first)
        callbacks.add(second)
        error = RuntimeError("boom")

        callbacks.on_failure(error)

        assert first.errors == [error]
        assert second.errors == [error]
        assert first.values == []

    def test_registration_order_preserved(self, callbacks):
        """Test callbacks on the same executor run in registration order."""
        log = []
        for name in ("first", "second", "third"):
            callbacks.add(lambda value, name=name: log.append((name, value)))

        callbacks.on_success(1)
        callbacks.on_success(2)

        assert log == [
            ("first", 1),
            ("second", 1),
            ("third", 1),
            ("first", 2),
            ("second", 2),
            ("third", 2),
        ]

    def test_raising_callback_does_not_block_others(self, callbacks, recorder, caplog):
        """Test one failing callback is logged and the rest still run."""

        def broken(value):
            raise ValueError("listener bug")

        callbacks.add(broken)
        callbacks.add(recorder)

        with caplog.at_level(logging.ERROR, logger="configfacade.callbacks"):
            callbacks.on_success("value")

        assert recorder.values == ["value"]
        assert "raised" in caplog.text

    def test_every_event_delivered(self, callbacks, recorder):
        """Test a callback receives every event, not just the next one."""
        callbacks.add(recorder)

        for i in range(3):
            callbacks.on_success(i)

        assert recorder.values == [0, 1, 2]

    def test_cancelled_subscription_skipped(self, callbacks, recorder_factory):
        """Test a cancelled subscription receives no further events."""
        kept, cancelled = recorder_factory(), recorder_factory()
        callbacks.add(kept)
        subscription = callbacks.add(cancelled)

        callbacks.on_success(1)
        subscription.cancel()
        callbacks.on_success(2)

        assert kept.values == [1, 2]
        assert cancelled.values == [1]
        assert not subscription.active

    def test_on_cancel_runs_once(self, callbacks, recorder):
        """Test the cancel hook runs on the first cancel only."""
        cancelled = []
        subscription = callbacks.add(recorder, on_cancel=cancelled.append)

        subscription.cancel()
        subscription.cancel()

        assert cancelled == [subscription]

    def test_cancelled_subscriptions_pruned(self, callbacks, recorder_factory):
        """Test cancelled entries are dropped and order is kept."""
        log = []
        callbacks.add(lambda v: log.append("a"))
        middle = callbacks.add(lambda v: log.append("b"))
        middle.cancel()
        callbacks.add(lambda v: log.append("c"))

        assert len(callbacks) == 2
        callbacks.on_success(None)
        assert log == ["a", "c"]

    def test_background_executor(self, callbacks):
        """Test delivery through a thread pool happens off the calling thread."""
        delivered = threading.Event()
        threads = []

        def listener(value):
            threads.append(threading.current_thread())
            delivered.set()

        with ThreadPoolExecutor(max_workers=1) as pool:
            callbacks.add(listener, pool)
            callbacks.on_success("value")
            assert delivered.wait(timeout=5)

        assert threads[0] is not threading.current_thread()

    def test_rejected_submission_does_not_block_others(self, callbacks, recorder, caplog):
        """Test a shut down executor only loses its own callback."""
        pool = ThreadPoolExecutor(max_workers=1)
        pool.shutdown()
        callbacks.add(lambda value: None, pool)
        callbacks.add(recorder)

        with caplog.at_level(logging.WARNING, logger="configfacade.callbacks"):
            callbacks.on_success("value")

        assert recorder.values == ["value"]
        assert "rejected" in caplog.text

    def test_none_executor_rejected(self, callbacks, recorder):
        """Test registering without an executor fails."""
        with pytest.raises(ValueError):
            callbacks.add(recorder, None)

    def test_list_is_a_callback(self, callbacks, recorder):
        """Test a list can be registered as a listener of another list."""
        outer = CallbackExecutionList()
        callbacks.add(recorder)
        outer.add(callbacks)

        outer.on_success("nested")

        assert isinstance(callbacks, Callback)
        assert recorder.values == ["nested"]


class TestFunctionCallback:
    """Test adapting functions to callbacks."""

    def test_success_and_failure_handlers(self):
        """Test both handlers are called."""
        values, errors = [], []
        callback = FunctionCallback(values.append, errors.append)
        error = KeyError("x")

        callback.on_success(1)
        callback.on_failure(error)

        assert values == [1]
        assert errors == [error]

    def test_missing_failure_handler_ignored(self):
        """Test failures without a handler do not raise."""
        callback = FunctionCallback(lambda value: None)
        callback.on_failure(RuntimeError("ignored"))

    def test_as_callback_wraps_callables(self):
        """Test plain callables are wrapped."""
        callback = as_callback(lambda value: None)
        assert isinstance(callback, FunctionCallback)

    def test_as_callback_keeps_callbacks(self, recorder):
        """Test callback objects are returned as is."""
        assert as_callback(recorder) is recorder

    def test_as_callback_rejects_other_objects(self):
        """Test non-callables are rejected."""
        with pytest.raises(TypeError):
            as_callback(42)


class TestDirectExecutor:
    """Test the same-thread executor."""

    def test_runs_immediately(self):
        """Test the task has run when submit returns."""
        future = DIRECT_EXECUTOR.submit(lambda a, b: a + b, 1, 2)
        assert future.done()
        assert future.result() == 3

    def test_captures_exception(self):
        """Test exceptions end up in the future."""

        def fail():
            raise RuntimeError("boom")

        future = DIRECT_EXECUTOR.submit(fail)
        assert isinstance(future.exception(), RuntimeError)


class Target:
    """Object whose bound method is registered weakly."""

    def __init__(self):
        self.values = []

    def handle(self, value):
        self.values.append(value)


class TestUpstreamLink:
    """Test weak upstream subscriptions."""

    def test_weak_callback_does_not_keep_target(self):
        """Test events stop once the target is collected."""
        target = Target()
        callback = WeakMethodCallback(target.handle)
        callback.on_success(1)
        assert target.values == [1]

        del target
        gc.collect()
        callback.on_success(2)

    def test_collected_owner_cancels_subscriptions(self):
        """Test subscriptions are cancelled when the owner goes away."""
        source = CallbackExecutionList()
        target = Target()
        UpstreamLink(target, target.handle, [source])
        assert len(source) == 1

        del target
        gc.collect()
        assert len(source) == 0

    def test_pinned_owner_kept_alive(self):
        """Test a pinned link keeps its owner subscribed."""
        source = CallbackExecutionList()
        target = Target()
        link = UpstreamLink(target, target.handle, [source])
        link.pin()
        owner = weakref.ref(target)

        del target
        gc.collect()
        source.on_success("kept")

        assert owner() is not None
        assert owner().values == ["kept"]

        link.unpin()
        gc.collect()
        assert owner() is None
        assert len(source) == 0

    def test_close(self):
        """Test close cancels right away."""
        source = CallbackExecutionList()
        target = Target()
        link = UpstreamLink(target, target.handle, [source])

        link.close()
        source.on_success("dropped")

        assert not link.active
        assert target.values == []


class TestChangeNotifier:
    """Test pinning through a ChangeNotifier."""

    def test_pins_while_listened_to(self, recorder):
        """Test the owner stays alive from the first listener to the last cancel."""
        source = CallbackExecutionList()
        target = Target()
        notifier = ChangeNotifier()
        notifier.attach(UpstreamLink(target, target.handle, [source]))
        owner = weakref.ref(target)
        subscription = notifier.add_listener(recorder)

        del target
        gc.collect()
        assert owner() is not None

        subscription.cancel()
        gc.collect()
        assert owner() is None

    def test_notify(self, recorder):
        """Test notify reaches active listeners."""
        notifier = ChangeNotifier()
        notifier.add_listener(recorder)
        notifier.notify("event")
        assert recorder.values == ["event"]
        assert len(notifier) == 1
