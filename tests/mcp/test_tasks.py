"""Tests for task status routing and wait_for_task."""

import asyncio
import time

import pytest

from multiplex_mcp.errors import MCPProtocolError, TaskAbortedError, TaskTimeoutError
from multiplex_mcp.mcp.cancellation import CancellationController
from multiplex_mcp.mcp.tasks import (
    Task,
    TaskResult,
    TaskState,
    TaskStatusManager,
    ToolTaskHandle,
    wait_for_task,
)


class FakeTaskClient:
    """Serves a scripted sequence of task states; the last one repeats."""

    def __init__(self, states, error=None):
        self.states = list(states)
        self.error = error
        self.get_task_calls = 0
        self.status_manager = TaskStatusManager()

    async def get_task(self, task_id):
        self.get_task_calls += 1
        if self.error is not None:
            raise self.error
        state = self.states.pop(0) if len(self.states) > 1 else self.states[0]
        return Task(id=task_id, state=state)

    async def get_task_result(self, task_id, poll_interval=None):
        return TaskResult(id=task_id, result={"answer": 42})

    def on_task_status(self, task_id, callback):
        return self.status_manager.subscribe(task_id, callback)


class TestTaskModels:
    """Tests for task snapshots and tool task handles."""

    @pytest.mark.parametrize(
        "state, terminal",
        [("pending", False), ("running", False), ("completed", True), ("failed", True), ("canceled", True)],
    )
    def test_is_terminal(self, state, terminal):
        assert Task(id="t", state=state).is_terminal is terminal

    def test_task_id_prefers_meta(self):
        """The task id in ``_meta`` wins over a top-level one."""
        handle = ToolTaskHandle.model_validate({"taskId": "top", "_meta": {"taskId": "meta"}})

        assert handle.task_id == "meta"
        assert ToolTaskHandle.model_validate({"taskId": "top"}).task_id == "top"
        assert ToolTaskHandle.model_validate({}).task_id is None


class TestTaskStatusManager:
    """Tests for TaskStatusManager."""

    @pytest.fixture
    def manager(self):
        return TaskStatusManager()

    def test_delivers_to_subscribers_of_task(self, manager):
        """Only subscribers of the snapshot's task are called."""
        first, other = [], []
        manager.subscribe("t-1", first.append)
        manager.subscribe("t-2", other.append)

        manager.handle_status(Task(id="t-1", state="running"))

        assert [task.state for task in first] == [TaskState.RUNNING]
        assert other == []

    def test_unsubscribe_removes_entry(self, manager):
        """The last unsubscribe leaves no trace of the task."""
        unsubscribe = manager.subscribe("t-1", lambda task: None)

        assert manager.has_subscribers("t-1")
        unsubscribe()
        unsubscribe()
        assert not manager.has_subscribers("t-1")

    def test_failing_subscriber_is_isolated(self, manager):
        """One failing callback does not stop delivery to the others."""
        received = []

        def explode(task):
            raise RuntimeError("subscriber failed")

        manager.subscribe("t-1", explode)
        manager.subscribe("t-1", received.append)

        manager.handle_status(Task(id="t-1", state="completed"))

        assert len(received) == 1

    def test_clear(self, manager):
        manager.subscribe("t-1", lambda task: None)

        manager.clear()

        assert not manager.has_subscribers("t-1")


class TestWaitForTask:
    """Tests for wait_for_task."""

    async def test_polls_until_terminal(self):
        """The task is polled until it completes, then its result is fetched."""
        client = FakeTaskClient(["pending", "running", "completed"])
        seen = []

        result = await wait_for_task(client, "t-1", poll_interval=0.001, on_status=seen.append)

        assert result.result == {"answer": 42}
        assert client.get_task_calls == 3
        assert [task.state for task in seen] == [
            TaskState.PENDING,
            TaskState.RUNNING,
            TaskState.COMPLETED,
        ]
        assert not client.status_manager.has_subscribers("t-1")

    async def test_failed_task_is_terminal(self):
        """A failed task still returns its result without further polling."""
        client = FakeTaskClient(["failed"])

        result = await wait_for_task(client, "t-1", poll_interval=10)

        assert result.id == "t-1"
        assert client.get_task_calls == 1

    async def test_timeout(self):
        """A task that never finishes raises TaskTimeoutError."""
        client = FakeTaskClient(["running"])
        seen = []
        started = time.monotonic()

        with pytest.raises(TaskTimeoutError) as exc_info:
            await wait_for_task(
                client, "t-1", poll_interval=0.01, timeout=0.025, on_status=seen.append
            )

        elapsed = time.monotonic() - started
        assert 0.025 <= elapsed < 0.1
        assert exc_info.value.timeout == 0.025
        assert exc_info.value.task_id == "t-1"
        assert client.get_task_calls >= 2
        assert not client.status_manager.has_subscribers("t-1")

    async def test_pre_aborted_signal(self):
        """An already aborted signal stops the wait before any poll."""
        client = FakeTaskClient(["running"])
        signal = CancellationController()
        signal.abort()

        with pytest.raises(TaskAbortedError):
            await wait_for_task(client, "t-1", signal=signal, on_status=lambda task: None)

        assert client.get_task_calls == 0
        assert not client.status_manager.has_subscribers("t-1")

    async def test_abort_interrupts_sleep(self):
        """Aborting during the poll interval wakes the wait immediately."""
        client = FakeTaskClient(["running"])
        signal = CancellationController()
        asyncio.get_running_loop().call_later(0.02, signal.abort)

        start = time.monotonic()
        with pytest.raises(TaskAbortedError):
            await wait_for_task(client, "t-1", poll_interval=30, signal=signal)

        assert time.monotonic() - start < 5
        assert client.get_task_calls == 1

    async def test_poll_error_propagates_and_unsubscribes(self):
        """Errors from polling reach the caller and the subscription is dropped."""
        client = FakeTaskClient(["running"], error=MCPProtocolError("Task not found", -32602))

        with pytest.raises(MCPProtocolError):
            await wait_for_task(client, "t-1", on_status=lambda task: None)

        assert not client.status_manager.has_subscribers("t-1")
