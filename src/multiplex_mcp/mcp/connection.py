"""
A long-lived connection to a single MCP server.
"""

import asyncio
from datetime import timedelta
from enum import Enum
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    Iterable,
    List,
    Optional,
    TypeVar,
)

import anyio
from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream
import mcp.types as types
from mcp.shared.exceptions import McpError
from pydantic import AnyUrl, ValidationError

from multiplex_mcp.config import ClientSettings, MCPServerSettings
from multiplex_mcp.errors import (
    MCPAbortedError,
    MCPConnectionError,
    MCPError,
    MCPProtocolError,
    MCPTimeoutError,
)
from multiplex_mcp.mcp.cancellation import (
    CancellableOperation,
    CancellationManager,
    RequestId,
)
from multiplex_mcp.mcp.client_session import MultiplexClientSession
from multiplex_mcp.mcp.handlers.elicitation import ElicitationHandler
from multiplex_mcp.mcp.handlers.roots import RootsHandler
from multiplex_mcp.mcp.handlers.sampling import SamplingHandler
from multiplex_mcp.mcp.notifications import (
    ListChanged,
    LogMessage,
    Message,
    NotificationMethod,
    Progress,
    ResourceUpdated,
    TaskStatus,
    parse_notification,
)
from multiplex_mcp.mcp.progress import ProgressCallback, ProgressTracker
from multiplex_mcp.mcp.tasks import (
    ListTasksResult,
    Task,
    TaskId,
    TaskRequest,
    TaskResult,
    TaskStatusCallback,
    TaskStatusManager,
    ToolTaskHandle,
)
from multiplex_mcp.mcp.transports import (
    TransportContextFactory,
    http_transport,
    sse_transport,
    stdio_transport,
    transport_from_settings,
)
from multiplex_mcp.utils.logging import get_logger

logger = get_logger(__name__)

R = TypeVar("R")

ClientSessionFactory = Callable[..., MultiplexClientSession]
"""
Called as ``factory(read_stream, write_stream, read_timeout, **callbacks)`` and
returns an unentered client session.
"""

DEFAULT_CLIENT_INFO = types.Implementation(name="multiplex-mcp", version="0.1.0")


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class ServerConnection:
    """
    Represents a long-lived MCP server connection.

    Includes:
    - The ClientSession to the server
    - The transport streams (via stdio, streamable HTTP or SSE)
    - Registries that route progress, cancellation and task status
      notifications back to the calls that own them

    The transport and the session are entered and exited by one lifecycle task,
    so ``connect`` and ``close`` may be called from different tasks.
    A closed connection cannot be reconnected.
    """

    def __init__(
        self,
        transport_context_factory: TransportContextFactory,
        client_session_factory: ClientSessionFactory = MultiplexClientSession,
        server_name: Optional[str] = None,
        client_info: Optional[types.Implementation] = None,
        connection_timeout: float = 30.0,
        read_timeout_seconds: Optional[float] = None,
        roots: Optional[Iterable[types.Root]] = None,
        roots_list_changed: bool = True,
        sampling_handler: Optional[SamplingHandler] = None,
        elicitation_handler: Optional[ElicitationHandler] = None,
    ):
        """
        Args:
            transport_context_factory: Creates the transport context on connect.
            client_session_factory: Factory for the client session.
            server_name: Name of the server, for registry-owned connections.
            client_info: Client name and version sent during initialization.
            connection_timeout: Seconds allowed for the initialization handshake.
            read_timeout_seconds: Seconds to wait for each response.
            roots: Enables the roots capability with these initial roots.
            roots_list_changed: Whether root changes are announced to the server.
            sampling_handler: Enables the sampling capability.
            elicitation_handler: Enables the elicitation capability.
        """
        self.server_name = server_name
        self.session: Optional[MultiplexClientSession] = None
        self.server_capabilities: Optional[types.ServerCapabilities] = None
        self.server_info: Optional[types.Implementation] = None
        self.instructions: Optional[str] = None

        self._transport_context_factory = transport_context_factory
        self._client_session_factory = client_session_factory
        self._client_info = client_info or DEFAULT_CLIENT_INFO
        self._connection_timeout = connection_timeout
        self._read_timeout_seconds = read_timeout_seconds
        self._sampling_handler = sampling_handler
        self._elicitation_handler = elicitation_handler
        self._roots_list_changed = roots_list_changed
        self._roots_handler = RootsHandler(roots) if roots is not None else None
        if self._roots_handler is not None:
            self._roots_handler.on_roots_changed(self._on_roots_changed)

        self._state = ConnectionState.DISCONNECTED
        self._closed = False
        self._lifecycle_task: Optional[asyncio.Task] = None
        self._initialized_event: Optional[anyio.Event] = None
        self._shutdown_event: Optional[anyio.Event] = None
        self._lifecycle_error: Optional[BaseException] = None
        self._background_tasks: set[asyncio.Task] = set()

        self.progress_tracker = ProgressTracker()
        self.cancellation_manager = CancellationManager()
        self.task_status_manager = TaskStatusManager()
        self._wire_request_ids: Dict[RequestId, RequestId] = {}
        self._listeners: Dict[NotificationMethod, List[Callable[..., None]]] = {}

    @property
    def label(self) -> str:
        return self.server_name or "server"

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    # Lifecycle

    def _create_session(
        self,
        read_stream: MemoryObjectReceiveStream,
        send_stream: MemoryObjectSendStream,
    ) -> MultiplexClientSession:
        read_timeout = (
            timedelta(seconds=self._read_timeout_seconds)
            if self._read_timeout_seconds
            else None
        )

        session = self._client_session_factory(
            read_stream,
            send_stream,
            read_timeout,
            sampling_callback=self._sampling_handler,
            list_roots_callback=self._roots_handler,
            elicitation_callback=self._elicitation_handler,
            client_info=self._client_info,
            notification_handler=self._dispatch_notification,
        )
        self.session = session
        return session

    async def _lifecycle(self) -> None:
        """
        Own the transport and the session until shutdown is requested.
        """
        try:
            async with self._transport_context_factory() as (read_stream, write_stream):
                session = self._create_session(read_stream, write_stream)
                async with session:
                    result = await session.initialize()
                    self.server_capabilities = result.capabilities
                    self.server_info = result.serverInfo
                    self.instructions = result.instructions
                    self._initialized_event.set()

                    await self._shutdown_event.wait()
        except Exception as exc:
            self._lifecycle_error = exc
            if self._state is ConnectionState.CONNECTED:
                logger.error(f"{self.label}: Connection lost: {exc}")
            else:
                logger.debug(f"{self.label}: Lifecycle task failed: {exc}")
        finally:
            # Unblock connect() if the handshake never completed
            self._initialized_event.set()
            if self._state is ConnectionState.CONNECTED and not self._shutdown_event.is_set():
                self._state = ConnectionState.DISCONNECTED
                self._clear_registries()

    async def connect(self) -> None:
        """
        Connect to the server and perform the initialization handshake.

        Does nothing if already connected.

        Raises:
            MCPTimeoutError: If the handshake does not finish within the connection timeout.
            MCPConnectionError: If the handshake fails, or the connection was closed.
        """
        if self._state is ConnectionState.CONNECTED:
            return
        if self._closed:
            raise MCPConnectionError(f"{self.label}: Connection has been closed")
        if self._state is ConnectionState.CONNECTING:
            await self._initialized_event.wait()
            self._ensure_connected()
            return

        self._state = ConnectionState.CONNECTING
        self._initialized_event = anyio.Event()
        self._shutdown_event = anyio.Event()
        self._lifecycle_error = None
        logger.info(f"{self.label}: Connecting...")
        self._lifecycle_task = asyncio.create_task(self._lifecycle())

        try:
            with anyio.fail_after(self._connection_timeout):
                await self._initialized_event.wait()
        except TimeoutError:
            logger.error(f"{self.label}: Connection timed out after {self._connection_timeout}s")
            try:
                await self._stop_lifecycle(cancel=True)
            except Exception as e:
                logger.debug(f"{self.label}: Error while closing half-open connection: {e}")
            self._state = ConnectionState.DISCONNECTED
            raise MCPTimeoutError(
                f"Connection to {self.label} timed out after {self._connection_timeout}s",
                self._connection_timeout,
            ) from None

        error = self._lifecycle_error
        if error is not None or self.server_capabilities is None:
            self._state = ConnectionState.DISCONNECTED
            await self._stop_lifecycle(cancel=True)
            raise MCPConnectionError(
                f"Failed to connect to {self.label}: {error}", cause=error
            ) from error

        self._state = ConnectionState.CONNECTED
        name = self.server_info.name if self.server_info else "unknown"
        logger.info(f"{self.label}: Connected to '{name}'")

    async def _stop_lifecycle(self, cancel: bool = False) -> None:
        task = self._lifecycle_task
        if task is None:
            return
        self._shutdown_event.set()
        if cancel:
            task.cancel()
        _, pending = await asyncio.wait({task}, timeout=None if cancel else self._connection_timeout)
        if pending:
            logger.warning(f"{self.label}: Shutdown timed out, cancelling lifecycle task")
            task.cancel()
            await asyncio.wait({task})

    async def close(self) -> None:
        """
        Close the connection.

        Safe to call more than once. Pending requests are aborted and all
        progress and task status subscriptions are dropped, even if closing the
        transport fails.
        """
        if self._closed or self._lifecycle_task is None:
            return
        self._closed = True
        self._state = ConnectionState.DISCONNECTED
        try:
            logger.info(f"{self.label}: Closing connection")
            await self._stop_lifecycle()
        finally:
            self._clear_registries()
            self.session = None

    def _clear_registries(self) -> None:
        self.progress_tracker.clear()
        self.cancellation_manager.cancel_all()
        self.task_status_manager.clear()
        self._wire_request_ids.clear()

    async def __aenter__(self) -> "ServerConnection":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def _ensure_connected(self) -> MultiplexClientSession:
        if self._state is not ConnectionState.CONNECTED or self.session is None:
            raise MCPConnectionError(f"Not connected to {self.label}")
        return self.session

    async def _request(self, call: Callable[[MultiplexClientSession], Awaitable[R]]) -> R:
        session = self._ensure_connected()
        try:
            return await call(session)
        except McpError as e:
            raise MCPProtocolError(e.error.message, e.error.code, e.error.data) from e

    # Notifications

    def _dispatch_notification(self, method: str, params: Optional[Dict[str, Any]]) -> None:
        try:
            notification = parse_notification(method, params)
        except (KeyError, ValidationError) as e:
            logger.warning(f"{self.label}: Malformed {method} notification: {e}")
            return

        if isinstance(notification, Progress):
            self.progress_tracker.handle_progress(notification.params)
        elif isinstance(notification, TaskStatus):
            if notification.task is not None:
                self.task_status_manager.handle_status(notification.task)
        elif isinstance(notification, ListChanged):
            self._emit(notification.method)
        elif isinstance(notification, ResourceUpdated):
            self._emit(NotificationMethod.RESOURCE_UPDATED, notification.uri)
        elif isinstance(notification, Message):
            self._emit(NotificationMethod.MESSAGE, notification.params)
        else:
            logger.debug(f"{self.label}: Ignoring notification {method}")

    def _emit(self, method: NotificationMethod, *args: Any) -> None:
        for listener in list(self._listeners.get(method, ())):
            try:
                listener(*args)
            except Exception as e:
                logger.warning(f"{self.label}: Listener for {method.value} failed: {e}")

    def _subscribe(self, method: NotificationMethod, callback: Callable[..., None]) -> Callable[[], None]:
        listeners = self._listeners.setdefault(method, [])
        listeners.append(callback)

        def unsubscribe() -> None:
            if callback in listeners:
                listeners.remove(callback)

        return unsubscribe

    def on_tools_changed(self, callback: Callable[[], None]) -> Callable[[], None]:
        return self._subscribe(NotificationMethod.TOOLS_LIST_CHANGED, callback)

    def on_resources_changed(self, callback: Callable[[], None]) -> Callable[[], None]:
        return self._subscribe(NotificationMethod.RESOURCES_LIST_CHANGED, callback)

    def on_prompts_changed(self, callback: Callable[[], None]) -> Callable[[], None]:
        return self._subscribe(NotificationMethod.PROMPTS_LIST_CHANGED, callback)

    def on_resource_updated(self, callback: Callable[[str], None]) -> Callable[[], None]:
        """Called with the URI of a subscribed resource when it changes."""
        return self._subscribe(NotificationMethod.RESOURCE_UPDATED, callback)

    def on_log_message(self, callback: Callable[[LogMessage], None]) -> Callable[[], None]:
        return self._subscribe(NotificationMethod.MESSAGE, callback)

    def on_task_status(self, task_id: TaskId, callback: TaskStatusCallback) -> Callable[[], None]:
        return self.task_status_manager.subscribe(task_id, callback)

    # Tools

    async def list_tools(self, cursor: Optional[str] = None) -> types.ListToolsResult:
        return await self._request(lambda s: s.list_tools(cursor=cursor))

    async def list_all_tools(self) -> List[types.Tool]:
        """Fetch every page of the tool list."""
        tools: List[types.Tool] = []
        cursor = None
        while True:
            result = await self.list_tools(cursor)
            tools.extend(result.tools)
            cursor = result.nextCursor
            if not cursor:
                return tools

    async def call_tool(
        self,
        name: str,
        arguments: Optional[Dict[str, Any]] = None,
        meta: Optional[Dict[str, Any]] = None,
    ) -> types.CallToolResult:
        """
        Call a tool on the server.

        Args:
            name: Tool name as known to the server.
            arguments: Tool arguments.
            meta: Request metadata sent as ``_meta``, such as a progress token.
        """
        if meta is None:
            return await self._request(lambda s: s.call_tool(name, arguments))
        return await self._send_call_tool(name, arguments, meta)

    async def _send_call_tool(
        self,
        name: str,
        arguments: Optional[Dict[str, Any]],
        meta: Optional[Dict[str, Any]],
        on_request_id: Optional[Callable[[RequestId], None]] = None,
        result_type: type = types.CallToolResult,
    ):
        params: Dict[str, Any] = {"name": name, "arguments": arguments}
        if meta is not None:
            params["_meta"] = meta
        request = types.ClientRequest(
            types.CallToolRequest(
                method="tools/call",
                params=types.CallToolRequestParams.model_validate(params),
            )
        )
        return await self._request(
            lambda s: s.send_request(request, result_type, on_request_id=on_request_id)
        )

    async def call_tool_with_progress(
        self,
        name: str,
        arguments: Optional[Dict[str, Any]],
        on_progress: ProgressCallback,
    ) -> types.CallToolResult:
        """
        Call a tool and report its progress notifications to a callback.

        The callback is unregistered when the call finishes, whether or not it
        succeeded. Later notifications for the call are dropped.
        """
        self._ensure_connected()
        token = self.progress_tracker.generate_token()
        self.progress_tracker.register(token, on_progress)
        try:
            return await self._send_call_tool(name, arguments, {"progressToken": token})
        finally:
            self.progress_tracker.unregister(token)

    def call_tool_cancellable(
        self, name: str, arguments: Optional[Dict[str, Any]] = None
    ) -> CancellableOperation[types.CallToolResult]:
        """
        Start a tool call that can be cancelled.

        Must be called from a running event loop.

        Returns:
            An operation whose ``task`` resolves with the result, or raises
            ``MCPAbortedError`` if the call is cancelled first.
        """
        self._ensure_connected()
        request_id = self.cancellation_manager.generate_request_id()
        controller = self.cancellation_manager.create(request_id)

        def record_wire_id(wire_id: RequestId) -> None:
            self._wire_request_ids[request_id] = wire_id

        async def run() -> types.CallToolResult:
            outcome: Dict[str, Any] = {}
            try:
                async with anyio.create_task_group() as tg:

                    async def watch_abort() -> None:
                        await controller.wait()
                        tg.cancel_scope.cancel()

                    async def send() -> None:
                        # Call errors are re-raised after the task group exits
                        try:
                            outcome["result"] = await self._send_call_tool(
                                name, arguments, None, on_request_id=record_wire_id
                            )
                        except Exception as e:
                            outcome["error"] = e
                        self.cancellation_manager.complete(request_id)
                        tg.cancel_scope.cancel()

                    tg.start_soon(watch_abort)
                    tg.start_soon(send)
            finally:
                self.cancellation_manager.complete(request_id)
                self._wire_request_ids.pop(request_id, None)

            if "error" in outcome:
                raise outcome["error"]
            if "result" not in outcome:
                raise MCPAbortedError(f"Call to tool '{name}' was cancelled")
            return outcome["result"]

        async def cancel(reason: Optional[str]) -> None:
            await self.cancel_request(request_id, reason)

        return CancellableOperation(asyncio.create_task(run()), request_id, cancel)

    async def cancel_request(self, request_id: RequestId, reason: Optional[str] = None) -> bool:
        """
        Cancel a pending request and tell the server about it.

        Returns:
            True if the request was pending, False if it had already finished.
        """
        wire_id = self._wire_request_ids.pop(request_id, None)
        if not self.cancellation_manager.cancel(request_id):
            return False

        logger.debug(f"{self.label}: Cancelled request {request_id}", data={"reason": reason})
        if wire_id is not None and self.is_connected:
            notification = types.ClientNotification(
                types.CancelledNotification(
                    method="notifications/cancelled",
                    params=types.CancelledNotificationParams(requestId=wire_id, reason=reason),
                )
            )
            await self._request(lambda s: s.send_notification(notification))
        return True

    # Resources

    async def list_resources(self, cursor: Optional[str] = None) -> types.ListResourcesResult:
        return await self._request(lambda s: s.list_resources(cursor=cursor))

    async def list_all_resources(self) -> List[types.Resource]:
        resources: List[types.Resource] = []
        cursor = None
        while True:
            result = await self.list_resources(cursor)
            resources.extend(result.resources)
            cursor = result.nextCursor
            if not cursor:
                return resources

    async def list_resource_templates(
        self, cursor: Optional[str] = None
    ) -> types.ListResourceTemplatesResult:
        return await self._request(lambda s: s.list_resource_templates(cursor=cursor))

    async def list_all_resource_templates(self) -> List[types.ResourceTemplate]:
        templates: List[types.ResourceTemplate] = []
        cursor = None
        while True:
            result = await self.list_resource_templates(cursor)
            templates.extend(result.resourceTemplates)
            cursor = result.nextCursor
            if not cursor:
                return templates

    async def read_resource(self, uri: str) -> types.ReadResourceResult:
        return await self._request(lambda s: s.read_resource(AnyUrl(uri)))

    async def read_resource_with_progress(
        self, uri: str, on_progress: ProgressCallback
    ) -> types.ReadResourceResult:
        """Read a resource and report its progress notifications to a callback."""
        self._ensure_connected()
        token = self.progress_tracker.generate_token()
        self.progress_tracker.register(token, on_progress)
        try:
            request = types.ClientRequest(
                types.ReadResourceRequest(
                    method="resources/read",
                    params=types.ReadResourceRequestParams.model_validate(
                        {"uri": uri, "_meta": {"progressToken": token}}
                    ),
                )
            )
            return await self._request(
                lambda s: s.send_request(request, types.ReadResourceResult)
            )
        finally:
            self.progress_tracker.unregister(token)

    async def subscribe_resource(self, uri: str) -> None:
        await self._request(lambda s: s.subscribe_resource(AnyUrl(uri)))

    async def unsubscribe_resource(self, uri: str) -> None:
        await self._request(lambda s: s.unsubscribe_resource(AnyUrl(uri)))

    # Prompts

    async def list_prompts(self, cursor: Optional[str] = None) -> types.ListPromptsResult:
        return await self._request(lambda s: s.list_prompts(cursor=cursor))

    async def list_all_prompts(self) -> List[types.Prompt]:
        prompts: List[types.Prompt] = []
        cursor = None
        while True:
            result = await self.list_prompts(cursor)
            prompts.extend(result.prompts)
            cursor = result.nextCursor
            if not cursor:
                return prompts

    async def get_prompt(
        self, name: str, arguments: Optional[Dict[str, str]] = None
    ) -> types.GetPromptResult:
        return await self._request(lambda s: s.get_prompt(name, arguments))

    # Completions, logging, ping

    async def complete_prompt_argument(
        self, prompt_name: str, argument_name: str, value: str
    ) -> types.CompleteResult:
        """Ask the server for completions of a prompt argument."""
        ref = types.PromptReference(type="ref/prompt", name=prompt_name)
        return await self._request(
            lambda s: s.complete(ref, {"name": argument_name, "value": value})
        )

    async def complete_resource_argument(
        self, uri_template: str, argument_name: str, value: str
    ) -> types.CompleteResult:
        """Ask the server for completions of a resource template argument."""
        ref = types.ResourceTemplateReference(type="ref/resource", uri=uri_template)
        return await self._request(
            lambda s: s.complete(ref, {"name": argument_name, "value": value})
        )

    async def set_log_level(self, level: types.LoggingLevel) -> None:
        await self._request(lambda s: s.set_logging_level(level))

    async def ping(self) -> None:
        await self._request(lambda s: s.send_ping())

    # Tasks

    async def get_task(self, task_id: TaskId) -> Task:
        request = TaskRequest(method="tasks/get", params={"id": task_id})
        return await self._request(lambda s: s.send_request(request, Task))

    async def get_task_result(
        self, task_id: TaskId, poll_interval: Optional[float] = None
    ) -> TaskResult:
        """
        Fetch the result of a task. The server may block until the task finishes.

        Args:
            task_id: Task identifier.
            poll_interval: Seconds between polls, for servers that poll internally.
        """
        params: Dict[str, Any] = {"id": task_id}
        if poll_interval is not None:
            params["pollInterval"] = int(poll_interval * 1000)
        request = TaskRequest(method="tasks/result", params=params)
        return await self._request(lambda s: s.send_request(request, TaskResult))

    async def list_tasks(self, cursor: Optional[str] = None) -> ListTasksResult:
        request = TaskRequest(method="tasks/list", params={"cursor": cursor} if cursor else {})
        return await self._request(lambda s: s.send_request(request, ListTasksResult))

    async def list_all_tasks(self) -> List[Task]:
        tasks: List[Task] = []
        cursor = None
        while True:
            result = await self.list_tasks(cursor)
            tasks.extend(result.tasks)
            cursor = result.nextCursor
            if not cursor:
                return tasks

    async def cancel_task(self, task_id: TaskId) -> None:
        request = TaskRequest(method="tasks/cancel", params={"id": task_id})
        await self._request(lambda s: s.send_request(request, types.EmptyResult))

    async def call_tool_as_task(
        self, name: str, arguments: Optional[Dict[str, Any]] = None
    ) -> TaskId:
        """
        Call a tool as a background task.

        Returns:
            The ID of the task, for ``get_task``, ``on_task_status`` or
            ``wait_for_task``.

        Raises:
            MCPError: If the server did not return a task ID.
        """
        handle = await self._send_call_tool(
            name, arguments, {"task": True}, result_type=ToolTaskHandle
        )
        if not handle.task_id:
            raise MCPError(f"{self.label} did not start tool '{name}' as a task")
        return handle.task_id

    # Roots

    def _require_roots(self) -> RootsHandler:
        if self._roots_handler is None:
            raise MCPError(f"Roots are not enabled for {self.label}")
        return self._roots_handler

    def get_roots(self) -> List[types.Root]:
        return self._require_roots().get_roots()

    def set_roots(self, roots: Iterable[types.Root]) -> None:
        self._require_roots().set_roots(roots)

    def add_root(self, root: types.Root) -> None:
        self._require_roots().add_root(root)

    def remove_root(self, uri: str) -> bool:
        return self._require_roots().remove_root(uri)

    def _on_roots_changed(self) -> None:
        if not self._roots_list_changed or not self.is_connected:
            return
        task = asyncio.create_task(self._send_roots_changed())
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    async def _send_roots_changed(self) -> None:
        try:
            await self._request(lambda s: s.send_roots_list_changed())
        except MCPError as e:
            logger.warning(f"{self.label}: Failed to announce root change: {e}")

    # Factories

    @classmethod
    async def from_stdio(
        cls,
        command: str,
        args: Optional[List[str]] = None,
        env: Optional[Dict[str, str]] = None,
        cwd: Optional[str] = None,
        **kwargs,
    ) -> "ServerConnection":
        """
        Connect to a local server spawned as a subprocess.

        Remaining keyword arguments are passed to the constructor.
        """
        transport = stdio_transport(
            command, args=args, env=env, cwd=cwd, server_name=kwargs.get("server_name")
        )
        connection = cls(transport, **kwargs)
        await connection.connect()
        return connection

    @classmethod
    async def from_http(
        cls,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        transport: str = "http",
        **kwargs,
    ) -> "ServerConnection":
        """
        Connect to a remote server over streamable HTTP, or SSE if ``transport`` is "sse".
        """
        if transport == "sse":
            factory = sse_transport(url, headers=headers)
        else:
            factory = http_transport(url, headers=headers)
        connection = cls(factory, **kwargs)
        await connection.connect()
        return connection

    @classmethod
    async def from_settings(
        cls,
        settings: MCPServerSettings,
        server_name: Optional[str] = None,
        client_settings: Optional[ClientSettings] = None,
        **kwargs,
    ) -> "ServerConnection":
        """
        Connect to a server described by its settings.

        Args:
            settings: The server's settings.
            server_name: Name of the server.
            client_settings: Client name, version and timeouts.
            **kwargs: Passed to the constructor, such as handlers.
        """
        client_settings = client_settings or ClientSettings()
        roots = kwargs.pop("roots", None)
        if settings.roots is not None:
            roots = [types.Root(uri=root.uri, name=root.name) for root in settings.roots]
        kwargs.setdefault(
            "client_info",
            types.Implementation(name=client_settings.name, version=client_settings.version),
        )
        kwargs.setdefault("connection_timeout", client_settings.connection_timeout)
        kwargs.setdefault(
            "read_timeout_seconds",
            settings.read_timeout_seconds or client_settings.request_timeout,
        )
        connection = cls(
            transport_from_settings(settings, server_name),
            server_name=server_name,
            roots=roots,
            **kwargs,
        )
        await connection.connect()
        return connection
