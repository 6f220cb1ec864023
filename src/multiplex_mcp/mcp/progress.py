"""
Progress tracking for long-running requests.

A progress token is attached to a request's ``_meta`` so that the server's
``notifications/progress`` messages can be routed back to the caller.
"""

import itertools
import time
from typing import Callable, Dict, Optional, Union

from pydantic import BaseModel

from multiplex_mcp.utils.logging import get_logger

logger = get_logger(__name__)

ProgressToken = Union[str, int]


class ProgressInfo(BaseModel):
    """Progress update delivered to a callback."""

    progress: float
    total: Optional[float] = None
    message: Optional[str] = None


class ProgressNotification(BaseModel):
    """Parameters of a progress notification received from the server."""

    progressToken: ProgressToken
    progress: float
    total: Optional[float] = None
    message: Optional[str] = None


ProgressCallback = Callable[[ProgressInfo], None]


class ProgressTracker:
    """
    Maps progress tokens to the callback of the request that owns them.

    Tokens are unique within a tracker instance only. Notifications for a token
    that is no longer registered are dropped: they can legitimately arrive
    after the request has already completed.
    """

    def __init__(self):
        self._callbacks: Dict[ProgressToken, ProgressCallback] = {}
        self._counter = itertools.count()

    def generate_token(self) -> ProgressToken:
        """Return a token not previously issued by this tracker."""
        return f"progress-{int(time.time() * 1000)}-{next(self._counter)}"

    def register(self, token: ProgressToken, callback: ProgressCallback) -> None:
        self._callbacks[token] = callback

    def unregister(self, token: ProgressToken) -> None:
        self._callbacks.pop(token, None)

    def handle_progress(self, notification: ProgressNotification) -> None:
        """
        Dispatch a progress notification to the callback registered for its token.

        Args:
            notification: The progress notification from the server.
        """
        callback = self._callbacks.get(notification.progressToken)
        if callback is None:
            logger.debug(
                f"Dropping progress for unregistered token {notification.progressToken!r}"
            )
            return

        info = ProgressInfo(
            progress=notification.progress,
            total=notification.total,
            message=notification.message,
        )
        try:
            callback(info)
        except Exception as e:
            logger.warning(
                f"Progress callback for token {notification.progressToken!r} failed: {e}"
            )

    def has_callback(self, token: ProgressToken) -> bool:
        return token in self._callbacks

    @property
    def size(self) -> int:
        return len(self._callbacks)

    def clear(self) -> None:
        """Drop every registered callback."""
        self._callbacks.clear()
