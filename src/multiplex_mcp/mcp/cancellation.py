"""
Request cancellation for the MCP client.

Tracks pending requests by id together with a controller whose abort signal
in-flight operations can wait on.
"""

import asyncio
import itertools
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Generic, Optional, TypeVar, Union

from multiplex_mcp.utils.logging import get_logger

logger = get_logger(__name__)

RequestId = Union[str, int]

T = TypeVar("T")


class CancellationController:
    """
    Abort signal for a single request.

    Once aborted it stays aborted; waiters are released immediately.
    """

    def __init__(self):
        self._event = asyncio.Event()

    @property
    def aborted(self) -> bool:
        return self._event.is_set()

    def abort(self) -> None:
        self._event.set()

    async def wait(self) -> None:
        """Block until the signal is aborted."""
        await self._event.wait()


class CancellationManager:
    """
    Tracks pending requests and their cancellation controllers.

    A request id is either pending or absent. ``cancel`` and ``complete`` both
    remove the entry, so whichever runs first wins and the other is a no-op.
    """

    def __init__(self):
        self._pending: Dict[RequestId, CancellationController] = {}
        self._counter = itertools.count()

    def generate_request_id(self) -> RequestId:
        """Return a request id not previously issued by this manager."""
        return f"req-{int(time.time() * 1000)}-{next(self._counter)}"

    def create(self, request_id: RequestId) -> CancellationController:
        """
        Create and track a controller for a request.

        Must be called before the request is dispatched so that a concurrent
        cancellation finds the entry.

        Args:
            request_id: Unique identifier for the request.

        Returns:
            The controller for the request.
        """
        controller = CancellationController()
        self._pending[request_id] = controller
        return controller

    def complete(self, request_id: RequestId) -> None:
        """Stop tracking a request without aborting it."""
        self._pending.pop(request_id, None)

    def cancel(self, request_id: RequestId) -> bool:
        """
        Abort a pending request.

        Args:
            request_id: ID of the request to cancel.

        Returns:
            True if the request was pending and is now cancelled, False if it
            was unknown or had already completed.
        """
        controller = self._pending.pop(request_id, None)
        if controller is None:
            return False
        controller.abort()
        return True

    def is_pending(self, request_id: RequestId) -> bool:
        return request_id in self._pending

    def get_signal(self, request_id: RequestId) -> Optional[CancellationController]:
        return self._pending.get(request_id)

    @property
    def size(self) -> int:
        return len(self._pending)

    def cancel_all(self) -> None:
        """Abort every pending request and stop tracking them."""
        controllers = list(self._pending.values())
        self._pending.clear()
        for controller in controllers:
            controller.abort()
        if controllers:
            logger.debug(f"Aborted {len(controllers)} pending request(s)")


@dataclass
class CancellableOperation(Generic[T]):
    """
    Handle for a request started with cancellation support.

    ``task`` resolves with the result, or raises ``MCPAbortedError`` if the
    request was cancelled before it completed.
    """

    task: "asyncio.Task[T]"
    request_id: RequestId
    _cancel: Callable[[Optional[str]], Awaitable[None]]

    async def cancel(self, reason: Optional[str] = "User cancelled") -> None:
        """Cancel the request. Does nothing if it has already finished."""
        await self._cancel(reason)

    def __await__(self):
        return self.task.__await__()
