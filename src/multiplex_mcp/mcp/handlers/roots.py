"""
Filesystem roots advertised to a server.

Servers query the roots with ``roots/list``. The client can change them at
runtime; listeners are told about every change so the owning connection can
send ``notifications/roots/list_changed``.
"""

from typing import Any, Callable, Iterable, List, Optional

from mcp.client.session import ClientSession
from mcp.shared.context import RequestContext
import mcp.types as types

from multiplex_mcp.utils.logging import get_logger

logger = get_logger(__name__)

RootsChangedCallback = Callable[[], None]


class RootsHandler:
    """
    Holds the roots of one connection.

    Roots are identified by URI; adding a root whose URI is already present
    does nothing.
    """

    def __init__(self, roots: Optional[Iterable[types.Root]] = None):
        self._roots: List[types.Root] = list(roots or [])
        self._listeners: List[RootsChangedCallback] = []

    def handle_list(self) -> types.ListRootsResult:
        return types.ListRootsResult(roots=list(self._roots))

    async def __call__(
        self, context: RequestContext[ClientSession, Any]
    ) -> types.ListRootsResult:
        """Answer a ``roots/list`` request from the server."""
        logger.debug(f"Listing {len(self._roots)} root(s) for server")
        return self.handle_list()

    def get_roots(self) -> List[types.Root]:
        return list(self._roots)

    def set_roots(self, roots: Iterable[types.Root]) -> None:
        """Replace all roots."""
        self._roots = list(roots)
        self._notify_change()

    def add_root(self, root: types.Root) -> None:
        if self.has_root(str(root.uri)):
            return
        self._roots.append(root)
        self._notify_change()

    def remove_root(self, uri: str) -> bool:
        """
        Remove a root by URI.

        Returns:
            True if a root was removed, False if no root had that URI.
        """
        for index, root in enumerate(self._roots):
            if str(root.uri) == uri:
                del self._roots[index]
                self._notify_change()
                return True
        return False

    def has_root(self, uri: str) -> bool:
        return any(str(root.uri) == uri for root in self._roots)

    def on_roots_changed(self, callback: RootsChangedCallback) -> Callable[[], None]:
        """
        Subscribe to root changes.

        Returns:
            A function that removes the subscription.
        """
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def _notify_change(self) -> None:
        for listener in list(self._listeners):
            try:
                listener()
            except Exception as e:
                logger.warning(f"Roots change listener failed: {e}")
