"""
Custom client session for the Multiplex MCP client.

This extends the base MCP client session with traffic logging and with
forwarding of server notifications to the connection that owns the session.
"""

from typing import Any, Callable, Dict, Optional

from mcp import ClientSession
from mcp.shared.session import (
    ReceiveResultT,
    RequestId,
    SendNotificationT,
    SendRequestT,
    SendResultT,
)
from mcp.types import ErrorData, ServerNotification

from multiplex_mcp.utils.logging import get_logger

logger = get_logger(__name__)

NotificationHandler = Callable[[str, Optional[Dict[str, Any]]], None]
"""Called with the method and params of every notification from the server."""

RequestIdCallback = Callable[[RequestId], None]


class MultiplexClientSession(ClientSession):
    """
    Client session for Multiplex MCP connections to MCP servers.

    Supports:
    - Traffic logging
    - Notification forwarding
    - Reporting the JSON-RPC id of an outgoing request, for cancellation
    """

    def __init__(
        self,
        *args,
        notification_handler: Optional[NotificationHandler] = None,
        **kwargs,
    ):
        super().__init__(*args, **kwargs)
        self.notification_handler = notification_handler

    async def send_request(
        self,
        request: SendRequestT,
        result_type: type[ReceiveResultT],
        *args,
        on_request_id: Optional[RequestIdCallback] = None,
        **kwargs,
    ) -> ReceiveResultT:
        logger.debug("send_request: request=", data=request.model_dump())
        if on_request_id is not None:
            # The base session takes the next id synchronously before its first await
            on_request_id(self._request_id)
        try:
            result = await super().send_request(request, result_type, *args, **kwargs)
            logger.debug("send_request: response=", data=result.model_dump())
            return result
        except Exception as e:
            logger.debug(f"send_request failed: {e}")
            raise

    async def send_notification(self, notification: SendNotificationT, *args, **kwargs) -> None:
        logger.debug("send_notification:", data=notification.model_dump())
        try:
            return await super().send_notification(notification, *args, **kwargs)
        except Exception as e:
            logger.error("send_notification failed", data=e)
            raise

    async def _send_response(
        self, request_id: RequestId, response: SendResultT | ErrorData
    ) -> None:
        logger.debug(
            f"send_response: request_id={request_id}, response=",
            data=response.model_dump(),
        )
        return await super()._send_response(request_id, response)

    async def _received_notification(self, notification: ServerNotification) -> None:
        """
        Handle a notification from the server.

        The notification is passed to the notification handler before the base
        session processes it.
        """
        logger.debug(
            "_received_notification: notification=",
            data=notification.model_dump(),
        )
        if self.notification_handler is not None:
            root = notification.root
            params = (
                root.params.model_dump(by_alias=True, mode="json", exclude_none=True)
                if root.params is not None
                else None
            )
            self.notification_handler(root.method, params)
        return await super()._received_notification(notification)
