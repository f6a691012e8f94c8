"""Tests for operation tracking."""

import asyncio
from datetime import datetime, timezone

import pytest

from catlet.errors import OperationFailedError, OperationTimeoutError
from catlet.lifecycle.tracker import OperationTracker
from catlet.models.operation import (
    LogLine,
    Operation,
    OperationFinished,
    ResourceAttached,
    TaskStarted,
    TaskUpdated,
)


def _ts(second):
    return datetime(2024, 5, 1, 10, 0, second, tzinfo=timezone.utc)


def _snapshot(status="running", resources=(), tasks=(), logs=()):
    return Operation(
        id="op1",
        status=status,
        resources=[{"resource_type": t, "resource_id": i} for t, i in resources],
        tasks=list(tasks),
        log_entries=[{"message": m, "timestamp": ts} for m, ts in logs],
    )


async def _collect(tracker, operation_id="op1", timeout=600):
    return [event async for event in tracker.watch(operation_id, timeout=timeout)]


@pytest.mark.asyncio
class TestOperationTracker:
    """Test OperationTracker polling."""

    async def test_events_in_order(self, fake_api, tracker):
        """Test resource, task, log and finish events across polls."""
        task = {"id": "t1", "parent_task_id": "op1", "name": "CreateCatlet", "display_name": "Create catlet"}
        fake_api.script_operation("op1", [
            _snapshot(tasks=[{**task, "progress": 0}], logs=[("Preparing", _ts(1))]),
            _snapshot(
                resources=[("Catlet", "c1")],
                tasks=[{**task, "progress": 50}, {"id": "t2", "parent_task_id": "t1", "name": "PullGene"}],
                logs=[("Pulling gene", _ts(2))],
            ),
            _snapshot(status="completed", resources=[("Catlet", "c1")], tasks=[{**task, "progress": 100}]),
        ])

        events = await _collect(tracker)

        assert [type(e) for e in events] == [
            TaskStarted, LogLine,
            ResourceAttached, TaskUpdated, TaskStarted, LogLine,
            TaskUpdated,
            OperationFinished,
        ]
        assert events[0].primary is True
        assert events[0].name == "Create catlet"
        assert events[2] == ResourceAttached("op1", "Catlet", "c1")
        assert events[3].progress == 50
        assert events[4].primary is False
        assert events[4].name == "PullGene"
        assert [e.message for e in events if isinstance(e, LogLine)] == ["Preparing", "Pulling gene"]
        assert events[-1].result.catlet_id == "c1"

    async def test_log_since_passed_back(self, fake_api, tracker):
        """Test that only newer log lines are requested and reported."""
        fake_api.script_operation("op1", [
            _snapshot(logs=[("one", _ts(1)), ("two", _ts(2))]),
            _snapshot(logs=[("two", _ts(2)), ("three", _ts(3))]),
            _snapshot(status="completed"),
        ])

        events = await _collect(tracker)

        assert [e.message for e in events if isinstance(e, LogLine)] == ["one", "two", "three"]
        polls = fake_api.calls_named("operation")
        assert polls[0][2] is None
        assert polls[1][2] == _ts(2)
        assert polls[2][2] == _ts(3)

    async def test_already_terminal_resolves_on_first_poll(self, fake_api, tracker, clock):
        """Test that a completed operation needs one poll and no sleep."""
        fake_api.script_operation("op1", [_snapshot(status="completed", resources=[("Catlet", "c1")])])

        result = await tracker.wait("op1")

        assert result.completed
        assert result.catlet_id == "c1"
        assert len(fake_api.calls_named("operation")) == 1
        assert clock.sleeps == []

    async def test_terminal_result_is_stable(self, fake_api, tracker):
        """Test that waiting twice on a terminal operation returns the same result."""
        fake_api.script_operation("op1", [_snapshot(status="completed", resources=[("Catlet", "c1")])])

        first = await tracker.wait("op1")
        second = await tracker.wait("op1")

        assert first == second

    async def test_failed_operation(self, fake_api, tracker):
        """Test that a failed operation raises with the remote message."""
        fake_api.script_operation("op1", [
            _snapshot(),
            Operation(id="op1", status="failed", status_message="Gene dbosoft/nope not found"),
        ])

        with pytest.raises(OperationFailedError) as exc_info:
            await tracker.wait("op1")

        assert exc_info.value.operation_id == "op1"
        assert exc_info.value.status_message == "Gene dbosoft/nope not found"
        assert "op1" in str(exc_info.value)

    async def test_timeout(self, fake_api, tracker, clock):
        """Test that the deadline raises a timeout distinct from failure."""
        fake_api.script_operation("op1", [_snapshot()])

        with pytest.raises(OperationTimeoutError) as exc_info:
            await tracker.wait("op1", timeout=5)

        assert isinstance(exc_info.value, TimeoutError)
        assert not isinstance(exc_info.value, OperationFailedError)
        assert exc_info.value.operation_id == "op1"
        assert clock.now == 5
        assert sum(clock.sleeps) == 5

    async def test_last_sleep_bounded_by_deadline(self, fake_api, tracker, clock):
        """Test that polling never sleeps past the deadline."""
        tracker.poll_interval = 2.0
        fake_api.script_operation("op1", [_snapshot()])

        with pytest.raises(OperationTimeoutError):
            await tracker.wait("op1", timeout=3)

        assert clock.sleeps == [2.0, 1.0]

    async def test_listener_receives_events(self, fake_api, tracker):
        """Test that the listener sees every event before the result."""
        fake_api.script_operation("op1", [
            _snapshot(resources=[("Catlet", "c1")], logs=[("hello", _ts(1))]),
            _snapshot(status="completed", resources=[("Catlet", "c1")]),
        ])
        seen = []

        await tracker.wait("op1", listener=seen.append)

        assert [type(e) for e in seen] == [ResourceAttached, LogLine]

    async def test_listener_errors_are_ignored(self, fake_api, tracker):
        """Test that a failing listener does not abort the wait."""
        fake_api.script_operation("op1", [
            _snapshot(logs=[("hello", _ts(1))]),
            _snapshot(status="completed"),
        ])

        def broken(event):
            raise RuntimeError("listener bug")

        result = await tracker.wait("op1", listener=broken)

        assert result.completed

    async def test_closing_watch_stops_polling(self, fake_api, tracker):
        """Test that abandoning the iterator stops further polls."""
        fake_api.script_operation("op1", [_snapshot(resources=[("Catlet", "c1")])])

        events = tracker.watch("op1")
        first = await events.__anext__()
        await events.aclose()

        assert isinstance(first, ResourceAttached)
        assert len(fake_api.calls_named("operation")) == 1

    async def test_untimed_log_lines_reported_once(self, fake_api, tracker):
        """Test that log lines without a timestamp are not repeated on every poll."""
        entries = [{"id": "l1", "message": "Preparing disks"}, {"id": "l2", "message": "Copying gene"}]
        fake_api.script_operation("op1", [
            Operation(id="op1", status="running", log_entries=entries[:1]),
            Operation(id="op1", status="running", log_entries=entries),
            Operation(id="op1", status="completed", log_entries=entries),
        ])

        events = await _collect(tracker)

        assert [e.message for e in events if isinstance(e, LogLine)] == ["Preparing disks", "Copying gene"]


@pytest.mark.asyncio
class TestTrackerDeadline:
    """Test the deadline against a remote side that stops answering."""

    async def test_stalled_poll_times_out(self, fake_api):
        """Test that a hanging status request still ends at the deadline."""
        async def hang(operation_id, log_since=None):
            await asyncio.sleep(3600)

        fake_api.get_operation = hang
        tracker = OperationTracker(fake_api, poll_interval=0.01)

        with pytest.raises(OperationTimeoutError) as exc_info:
            await asyncio.wait_for(tracker.wait("op1", timeout=0.2), 5)

        assert exc_info.value.operation_id == "op1"
        assert exc_info.value.timeout == 0.2
