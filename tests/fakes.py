"""
In-memory MCP server and session used in place of a real transport.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Any, Dict, Iterable, List, Optional

import anyio
import mcp.types as types
from mcp.shared.exceptions import McpError
from pydantic import BaseModel

from multiplex_mcp.mcp.connection import ServerConnection


def text_result(text: str, is_error: bool = False) -> types.CallToolResult:
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=text)], isError=is_error
    )


async def echo_tool(server: "FakeServer", name: str, arguments, meta) -> types.CallToolResult:
    """Default tool handler: answers with ``"<server>:<tool>"``."""
    return text_result(f"{server.name}:{name}")


def _page(items: List[Any], cursor: Optional[str], page_size: Optional[int]):
    if page_size is None:
        return list(items), None
    start = int(cursor or 0)
    end = start + page_size
    return list(items[start:end]), (str(end) if end < len(items) else None)


class FakeSession:
    """Stands in for MultiplexClientSession without any transport."""

    def __init__(self, server: "FakeServer", notification_handler=None, **callbacks):
        self.server = server
        self.notification_handler = notification_handler
        self.callbacks = callbacks
        self.closed = False
        self._next_request_id = 0

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        self.closed = True

    async def initialize(self) -> types.InitializeResult:
        if self.server.init_delay:
            await anyio.sleep(self.server.init_delay)
        if self.server.init_error is not None:
            raise self.server.init_error
        return types.InitializeResult(
            protocolVersion=types.LATEST_PROTOCOL_VERSION,
            capabilities=types.ServerCapabilities(tools=types.ToolsCapability()),
            serverInfo=types.Implementation(name=self.server.name, version="1.0.0"),
        )

    def _record(self, method: str, params: Any = None) -> None:
        self.server.requests.append((method, params))

    def _read(self, uri: str) -> types.ReadResourceResult:
        if uri not in self.server.resources:
            raise McpError(types.ErrorData(code=-32002, message=f"Resource not found: {uri}"))
        return types.ReadResourceResult(
            contents=[
                types.TextResourceContents(
                    uri=uri, mimeType="text/plain", text=self.server.resources[uri]
                )
            ]
        )

    async def list_tools(self, cursor=None) -> types.ListToolsResult:
        self._record("tools/list", cursor)
        tools, next_cursor = _page(self.server.tools, cursor, self.server.page_size)
        return types.ListToolsResult(tools=tools, nextCursor=next_cursor)

    async def call_tool(self, name, arguments=None) -> types.CallToolResult:
        self._record("tools/call", name)
        return await self.server.tool_handler(self.server, name, arguments, None)

    async def list_resources(self, cursor=None) -> types.ListResourcesResult:
        self._record("resources/list", cursor)
        resources = [
            types.Resource(uri=uri, name=uri.rsplit("/", 1)[-1]) for uri in self.server.resources
        ]
        page, next_cursor = _page(resources, cursor, self.server.page_size)
        return types.ListResourcesResult(resources=page, nextCursor=next_cursor)

    async def list_resource_templates(self, cursor=None) -> types.ListResourceTemplatesResult:
        self._record("resources/templates/list", cursor)
        return types.ListResourceTemplatesResult(
            resourceTemplates=[
                types.ResourceTemplate(uriTemplate="file:///docs/{name}", name="docs")
            ]
        )

    async def read_resource(self, uri) -> types.ReadResourceResult:
        self._record("resources/read", str(uri))
        return self._read(str(uri))

    async def subscribe_resource(self, uri) -> types.EmptyResult:
        self._record("resources/subscribe", str(uri))
        return types.EmptyResult()

    async def unsubscribe_resource(self, uri) -> types.EmptyResult:
        self._record("resources/unsubscribe", str(uri))
        return types.EmptyResult()

    async def list_prompts(self, cursor=None) -> types.ListPromptsResult:
        self._record("prompts/list", cursor)
        page, next_cursor = _page(self.server.prompts, cursor, self.server.page_size)
        return types.ListPromptsResult(prompts=page, nextCursor=next_cursor)

    async def get_prompt(self, name, arguments=None) -> types.GetPromptResult:
        self._record("prompts/get", name)
        if name not in {prompt.name for prompt in self.server.prompts}:
            raise McpError(types.ErrorData(code=-32602, message=f"Unknown prompt: {name}"))
        return types.GetPromptResult(
            messages=[
                types.PromptMessage(
                    role="user",
                    content=types.TextContent(type="text", text=f"{self.server.name}:{name}"),
                )
            ]
        )

    async def complete(self, ref, argument, context_arguments=None) -> types.CompleteResult:
        self._record("completion/complete", (ref, argument))
        return types.CompleteResult(
            completion=types.Completion(values=[argument["value"] + "-completed"])
        )

    async def set_logging_level(self, level) -> types.EmptyResult:
        self._record("logging/setLevel", level)
        return types.EmptyResult()

    async def send_ping(self) -> types.EmptyResult:
        self._record("ping")
        return types.EmptyResult()

    async def send_roots_list_changed(self) -> None:
        self._record("notifications/roots/list_changed")

    async def send_notification(self, notification) -> None:
        self.server.notifications.append(notification)

    async def send_request(self, request, result_type, on_request_id=None, **kwargs):
        root = getattr(request, "root", request)
        params = root.params
        if isinstance(params, BaseModel):
            params = params.model_dump(by_alias=True, mode="json", exclude_none=True)
        params = params or {}

        if on_request_id is not None:
            on_request_id(self._next_request_id)
        self._next_request_id += 1

        self._record(root.method, params)
        result = await self._handle(root.method, params)
        if isinstance(result, BaseModel):
            result = result.model_dump(by_alias=True, exclude_none=True)
        return result_type.model_validate(result)

    async def _handle(self, method: str, params: Dict[str, Any]) -> Any:
        if method == "tools/call":
            return await self.server.tool_handler(
                self.server, params["name"], params.get("arguments"), params.get("_meta")
            )
        if method == "resources/read":
            return self._read(params["uri"])
        if method == "tasks/get":
            states = self.server.task_states[params["id"]]
            state = states.pop(0) if len(states) > 1 else states[0]
            return {"id": params["id"], "state": state}
        if method == "tasks/result":
            return {"id": params["id"], "result": {"done": True}}
        if method == "tasks/list":
            tasks = [
                {"id": task_id, "state": states[0]}
                for task_id, states in self.server.task_states.items()
            ]
            page, next_cursor = _page(tasks, params.get("cursor"), self.server.page_size)
            return {"tasks": page, "nextCursor": next_cursor}
        if method == "tasks/cancel":
            self.server.cancelled_tasks.append(params["id"])
            return {}
        raise McpError(types.ErrorData(code=-32601, message=f"Method not found: {method}"))


class FakeServer:
    """
    In-memory MCP server: provides a transport context factory and a session
    factory for ServerConnection, and records the traffic it sees.
    """

    def __init__(
        self,
        name: str = "fake",
        tools: Iterable[str] = (),
        resources: Optional[Dict[str, str]] = None,
        prompts: Iterable[str] = (),
        page_size: Optional[int] = None,
        init_delay: float = 0.0,
        init_error: Optional[BaseException] = None,
        fail_on_exit: bool = False,
    ):
        self.name = name
        self.tools = [
            types.Tool(name=tool, description=f"{tool} tool", inputSchema={"type": "object"})
            for tool in tools
        ]
        self.resources = dict(resources or {})
        self.prompts = [types.Prompt(name=prompt) for prompt in prompts]
        self.page_size = page_size
        self.init_delay = init_delay
        self.init_error = init_error
        self.fail_on_exit = fail_on_exit

        self.tool_handler = echo_tool
        self.task_states: Dict[str, List[str]] = {}
        self.cancelled_tasks: List[str] = []
        self.requests: List[tuple] = []
        self.notifications: List[Any] = []
        self.session: Optional[FakeSession] = None
        self.sessions_created = 0
        self.transport_entered = False
        self.transport_exited = False

    @asynccontextmanager
    async def transport(self):
        self.transport_entered = True
        try:
            yield None, None
        finally:
            self.transport_exited = True
            if self.fail_on_exit:
                raise RuntimeError("transport close failed")

    def session_factory(self, read_stream, write_stream, read_timeout=None, **kwargs) -> FakeSession:
        self.sessions_created += 1
        self.session = FakeSession(self, **kwargs)
        return self.session

    def notify(self, method: str, params: Optional[Dict[str, Any]] = None) -> None:
        """Deliver a notification to the connected client."""
        self.session.notification_handler(method, params)

    def methods(self) -> List[str]:
        return [method for method, _ in self.requests]

    def connection(self, **kwargs) -> ServerConnection:
        kwargs.setdefault("server_name", self.name)
        return ServerConnection(
            self.transport, client_session_factory=self.session_factory, **kwargs
        )


async def settle() -> None:
    """Let scheduled callbacks and background tasks run."""
    for _ in range(5):
        await asyncio.sleep(0)
