"""Lifecycle state machine, cancellation cause and cleanup ordering."""

import asyncio

import pytest

from services.audit.runtime.lifecycle import LifecycleManager, LifecycleState
from shared.errors import ConnectionLost, ShutdownRequested


class TestCleanupOrdering:
    def test_actions_run_in_reverse_registration_order(self):
        calls = []
        lifecycle = LifecycleManager()
        for name in ("A", "B", "C"):
            lifecycle.register_cleanup(name, lambda name=name: calls.append(name))

        lifecycle.teardown()

        assert calls == ["C", "B", "A"]

    def test_failing_action_does_not_stop_the_rest(self):
        calls = []

        def broken():
            calls.append("B")
            raise RuntimeError("close failed")

        lifecycle = LifecycleManager()
        lifecycle.register_cleanup("A", lambda: calls.append("A"))
        lifecycle.register_cleanup("B", broken)
        lifecycle.register_cleanup("C", lambda: calls.append("C"))

        failed = lifecycle.teardown()

        assert calls == ["C", "B", "A"]
        assert failed == ["B"]
        assert lifecycle.state is LifecycleState.TERMINATED

    def test_teardown_runs_actions_exactly_once(self):
        calls = []
        lifecycle = LifecycleManager()
        lifecycle.register_cleanup("A", lambda: calls.append("A"))

        lifecycle.teardown()
        assert lifecycle.teardown() == []

        assert calls == ["A"]

    def test_register_after_teardown_is_rejected(self):
        lifecycle = LifecycleManager()
        lifecycle.teardown()

        with pytest.raises(RuntimeError):
            lifecycle.register_cleanup("late", lambda: None)

    def test_register_during_teardown_is_rejected(self):
        lifecycle = LifecycleManager()
        errors = []

        def sneaky():
            try:
                lifecycle.register_cleanup("nested", lambda: None)
            except RuntimeError as e:
                errors.append(e)

        lifecycle.register_cleanup("sneaky", sneaky)
        lifecycle.teardown()

        assert len(errors) == 1
        assert lifecycle.pending_cleanup == []

    def test_register_while_shutting_down_is_allowed(self):
        calls = []
        lifecycle = LifecycleManager()
        lifecycle.cancel(ShutdownRequested())

        lifecycle.register_cleanup("close sinks", lambda: calls.append("close"))
        lifecycle.teardown()

        assert calls == ["close"]

    def test_non_callable_action_is_rejected(self):
        with pytest.raises(TypeError):
            LifecycleManager().register_cleanup("bad", None)


class TestStates:
    def test_happy_path(self):
        lifecycle = LifecycleManager()
        assert lifecycle.state is LifecycleState.STARTING

        lifecycle.mark_connected()
        assert lifecycle.state is LifecycleState.CONNECTED

        lifecycle.cancel(ShutdownRequested())
        assert lifecycle.state is LifecycleState.SHUTTING_DOWN

        lifecycle.teardown()
        assert lifecycle.state is LifecycleState.TERMINATED

    def test_connect_after_cancel_is_ignored(self):
        lifecycle = LifecycleManager()
        lifecycle.cancel(ShutdownRequested())

        lifecycle.mark_connected()

        assert lifecycle.state is LifecycleState.SHUTTING_DOWN

    def test_first_cause_wins(self):
        lifecycle = LifecycleManager()
        failure = ConnectionLost(RuntimeError("gateway gone"))

        assert lifecycle.cancel(failure) is True
        assert lifecycle.cancel(ShutdownRequested()) is False

        assert lifecycle.cause is failure
        assert lifecycle.connection_failed

    def test_user_shutdown_is_not_a_connection_failure(self):
        lifecycle = LifecycleManager()
        lifecycle.cancel(ShutdownRequested("interrupt"))

        assert lifecycle.cancelled
        assert not lifecycle.connection_failed

    def test_teardown_without_cancel_records_a_cause(self):
        lifecycle = LifecycleManager()

        lifecycle.teardown()

        assert isinstance(lifecycle.cause, ShutdownRequested)

    def test_snapshot_reports_state_and_cause(self):
        lifecycle = LifecycleManager()
        lifecycle.register_cleanup("A", lambda: None)
        lifecycle.cancel(ShutdownRequested("bye"))

        snap = lifecycle.snapshot()

        assert snap["state"] == "shutting_down"
        assert snap["cause"] == "bye"
        assert snap["pending_cleanup"] == ["A"]
        assert snap["terminated_at"] is None


@pytest.mark.asyncio
async def test_wait_cancelled_returns_cause():
    lifecycle = LifecycleManager()
    waiter = asyncio.create_task(lifecycle.wait_cancelled())
    await asyncio.sleep(0)
    assert not waiter.done()

    cause = ShutdownRequested("signal")
    lifecycle.cancel(cause)

    assert await asyncio.wait_for(waiter, timeout=1) is cause
