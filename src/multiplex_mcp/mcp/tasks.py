"""
Background task support for the MCP client.

Tasks let a server run a long operation in the background. The client observes
task snapshots pushed by the server or fetched by polling, and never changes a
task's state itself.
"""

import time
from enum import Enum
from typing import Any, Callable, Dict, Generic, List, Optional, Protocol, Set, TypeVar

import anyio
from pydantic import BaseModel, ConfigDict, Field

from multiplex_mcp.errors import TaskAbortedError, TaskTimeoutError
from multiplex_mcp.mcp.cancellation import CancellationController
from multiplex_mcp.utils.logging import get_logger

logger = get_logger(__name__)

TaskId = str

T = TypeVar("T")


class TaskState(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELED = "canceled"


TERMINAL_STATES = frozenset({TaskState.COMPLETED, TaskState.FAILED, TaskState.CANCELED})


class TaskProgress(BaseModel):
    current: float
    total: Optional[float] = None


class Task(BaseModel):
    """Snapshot of a server-side task."""

    model_config = ConfigDict(extra="allow")

    id: TaskId
    state: TaskState
    message: Optional[str] = None
    progress: Optional[TaskProgress] = None

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES


class TaskError(BaseModel):
    code: int
    message: str
    data: Any = None


class TaskResult(BaseModel, Generic[T]):
    """Outcome of a task that reached a terminal state."""

    model_config = ConfigDict(extra="allow")

    id: TaskId
    result: Optional[T] = None
    error: Optional[TaskError] = None


class ListTasksResult(BaseModel):
    model_config = ConfigDict(extra="allow")

    tasks: List[Task] = Field(default_factory=list)
    nextCursor: Optional[str] = None


class TaskRequest(BaseModel):
    """
    JSON-RPC request for the ``tasks/*`` methods.

    These methods are experimental and are not part of the SDK's request
    union, so they are sent as plain request models.
    """

    method: str
    params: Optional[Dict[str, Any]] = None


class ToolTaskHandle(BaseModel):
    """Response to a ``tools/call`` issued as a background task."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    taskId: Optional[TaskId] = None
    meta: Optional[Dict[str, Any]] = Field(default=None, alias="_meta")

    @property
    def task_id(self) -> Optional[TaskId]:
        if self.meta and self.meta.get("taskId"):
            return self.meta["taskId"]
        return self.taskId


TaskStatusCallback = Callable[[Task], None]


class TaskCapableClient(Protocol):
    """The subset of a connection that ``wait_for_task`` needs."""

    async def get_task(self, task_id: TaskId) -> Task: ...

    async def get_task_result(
        self, task_id: TaskId, poll_interval: Optional[float] = None
    ) -> TaskResult: ...

    def on_task_status(
        self, task_id: TaskId, callback: TaskStatusCallback
    ) -> Callable[[], None]: ...


class TaskStatusManager:
    """
    Routes ``notifications/tasks/status`` snapshots to subscribers of a task.
    """

    def __init__(self):
        self._callbacks: Dict[TaskId, Set[TaskStatusCallback]] = {}

    def subscribe(
        self, task_id: TaskId, callback: TaskStatusCallback
    ) -> Callable[[], None]:
        """
        Register a callback for status updates of a task.

        Args:
            task_id: Task to subscribe to.
            callback: Function to call with each task snapshot.

        Returns:
            A function that removes this callback again.
        """
        callbacks = self._callbacks.setdefault(task_id, set())
        callbacks.add(callback)

        def unsubscribe() -> None:
            callbacks.discard(callback)
            if not callbacks and self._callbacks.get(task_id) is callbacks:
                del self._callbacks[task_id]

        return unsubscribe

    def handle_status(self, task: Task) -> None:
        """
        Deliver a task snapshot to every subscriber of the task.

        A failing subscriber does not prevent delivery to the others.
        """
        callbacks = self._callbacks.get(task.id)
        if not callbacks:
            return

        for callback in list(callbacks):
            try:
                callback(task)
            except Exception as e:
                logger.warning(f"Task status callback for task {task.id} failed: {e}")

    def has_subscribers(self, task_id: TaskId) -> bool:
        return bool(self._callbacks.get(task_id))

    def clear(self) -> None:
        self._callbacks.clear()


async def _sleep(seconds: float, signal: Optional[CancellationController], task_id: TaskId) -> None:
    if signal is None:
        await anyio.sleep(seconds)
        return

    with anyio.move_on_after(seconds):
        await signal.wait()
    if signal.aborted:
        raise TaskAbortedError(task_id)


async def wait_for_task(
    client: TaskCapableClient,
    task_id: TaskId,
    poll_interval: float = 1.0,
    timeout: Optional[float] = None,
    on_status: Optional[TaskStatusCallback] = None,
    signal: Optional[CancellationController] = None,
) -> TaskResult:
    """
    Poll a task until it reaches a terminal state and return its result.

    If ``on_status`` is given it is also subscribed to pushed status updates
    while waiting. Polling does not depend on those updates arriving.

    Args:
        client: Connection to poll through.
        task_id: ID of the task to wait for.
        poll_interval: Seconds between polls.
        timeout: Seconds before giving up, measured from the start of the wait.
        on_status: Called with every task snapshot.
        signal: Aborts the wait, including a pending sleep, when triggered.

    Returns:
        The task's result.

    Raises:
        TaskTimeoutError: If the timeout is reached.
        TaskAbortedError: If the signal is triggered.
    """
    start = time.monotonic()
    unsubscribe = client.on_task_status(task_id, on_status) if on_status else None

    try:
        if signal is not None and signal.aborted:
            raise TaskAbortedError(task_id)

        while True:
            if signal is not None and signal.aborted:
                raise TaskAbortedError(task_id)

            if timeout is not None and time.monotonic() - start > timeout:
                raise TaskTimeoutError(task_id, timeout)

            task = await client.get_task(task_id)
            logger.debug(f"Task {task_id} is {task.state.value}")

            if on_status:
                on_status(task)

            if task.is_terminal:
                return await client.get_task_result(task_id)

            await _sleep(poll_interval, signal, task_id)
    finally:
        if unsubscribe:
            unsubscribe()
