"""
Handling of ``sampling/createMessage`` requests.

Servers may ask the client for an LLM completion. The request is approved,
converted to chat messages and passed to an injected completion function,
which returns an OpenAI-style chat completion response.
"""

from typing import Any, Awaitable, Callable, Dict, List, Optional

import aiohttp
from mcp.client.session import ClientSession
from mcp.shared.context import RequestContext
import mcp.types as types

from multiplex_mcp.errors import ErrorCode, MCPProtocolError
from multiplex_mcp.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_MODEL = "gpt-4o"
DEFAULT_MAX_TOKENS = 4096

ChatMessage = Dict[str, str]

CompletionFn = Callable[..., Awaitable[Dict[str, Any]]]
"""
An async function called as ``complete(model=..., messages=..., max_tokens=..., stop=...)``
that returns a chat completion response with ``model`` and ``choices``.
"""

ApprovalCallback = Callable[[types.CreateMessageRequestParams], Awaitable[bool]]


class OpenAICompletion:
    """Chat completions against an OpenAI-compatible API."""

    def __init__(self, api_key: str, api_base: Optional[str] = None):
        """
        Initialize the completion client.

        Args:
            api_key: API key sent as a bearer token.
            api_base: Optional API base URL.
        """
        self.api_key = api_key
        self.api_base = api_base or "https://api.openai.com/v1"

    async def __call__(
        self,
        model: str,
        messages: List[ChatMessage],
        max_tokens: int,
        stop: Optional[List[str]] = None,
    ) -> Dict[str, Any]:
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }

        payload: Dict[str, Any] = {
            "model": model,
            "messages": messages,
            "max_tokens": max_tokens,
        }
        if stop:
            payload["stop"] = stop

        async with aiohttp.ClientSession() as session:
            async with session.post(
                f"{self.api_base}/chat/completions",
                headers=headers,
                json=payload,
            ) as response:
                if response.status != 200:
                    error_text = await response.text()
                    raise ValueError(f"Completion API error: {response.status} - {error_text}")

                return await response.json()


def resolve_model(
    preferences: Optional[types.ModelPreferences], default_model: str
) -> str:
    """Return the first named model hint, or the default."""
    if preferences and preferences.hints:
        for hint in preferences.hints:
            if hint.name:
                return hint.name
    return default_model


def _block_text(block: Any) -> str:
    if getattr(block, "type", None) == "text":
        return block.text or ""
    return f"[{getattr(block, 'type', 'unknown')} content]"


def extract_text(content: Any) -> str:
    """
    Extract text from a sampling message's content.

    Content may be a single block or a list of blocks. Non-text blocks are
    rendered as ``[<type> content]``.
    """
    if isinstance(content, list):
        return "\n".join(text for text in (_block_text(block) for block in content) if text)
    return _block_text(content)


def convert_messages(
    messages: List[types.SamplingMessage], system_prompt: Optional[str] = None
) -> List[ChatMessage]:
    converted = [{"role": message.role, "content": extract_text(message.content)} for message in messages]
    if system_prompt:
        converted.insert(0, {"role": "system", "content": system_prompt})
    return converted


_STOP_REASONS = {
    "stop": "endTurn",
    "length": "maxTokens",
    "content_filter": "endTurn",
}


def map_stop_reason(finish_reason: Optional[str]) -> Optional[str]:
    if finish_reason is None:
        return None
    return _STOP_REASONS.get(finish_reason)


class SamplingHandler:
    """
    Answers sampling requests through an injected completion function.
    """

    def __init__(
        self,
        complete: CompletionFn,
        default_model: str = DEFAULT_MODEL,
        approval_callback: Optional[ApprovalCallback] = None,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ):
        self.complete = complete
        self.default_model = default_model
        self.approval_callback = approval_callback
        self.max_tokens = max_tokens

    async def create_message(
        self, params: types.CreateMessageRequestParams
    ) -> types.CreateMessageResult:
        """
        Produce a completion for a sampling request.

        Raises:
            MCPProtocolError: If the approval callback rejects the request, or
                the completion returned no choices.
        """
        if self.approval_callback is not None:
            approved = await self.approval_callback(params)
            if not approved:
                raise MCPProtocolError("User rejected sampling request", ErrorCode.USER_REJECTED)

        model = resolve_model(params.modelPreferences, self.default_model)
        requested = params.maxTokens if params.maxTokens is not None else self.max_tokens

        response = await self.complete(
            model=model,
            messages=convert_messages(params.messages, params.systemPrompt),
            max_tokens=min(requested, self.max_tokens),
            stop=params.stopSequences,
        )

        choices = response.get("choices") or []
        if not choices:
            raise MCPProtocolError("No response from completion API", ErrorCode.INTERNAL_ERROR)

        choice = choices[0]
        return types.CreateMessageResult(
            role="assistant",
            content=types.TextContent(type="text", text=(choice.get("message") or {}).get("content") or ""),
            model=response.get("model", model),
            stopReason=map_stop_reason(choice.get("finish_reason")),
        )

    async def __call__(
        self,
        context: RequestContext[ClientSession, Any],
        params: types.CreateMessageRequestParams,
    ) -> types.CreateMessageResult | types.ErrorData:
        """Answer a ``sampling/createMessage`` request from the server."""
        logger.info("Handling sampling request", data={"messages": len(params.messages)})
        try:
            return await self.create_message(params)
        except MCPProtocolError as e:
            return types.ErrorData(code=e.code, message=str(e), data=e.data)
        except Exception as e:
            logger.error(f"Error handling sampling request: {e}")
            return types.ErrorData(code=ErrorCode.INTERNAL_ERROR, message=str(e))


def create_sampling_handler(
    complete: CompletionFn,
    default_model: str = DEFAULT_MODEL,
    approval_callback: Optional[ApprovalCallback] = None,
    max_tokens: int = DEFAULT_MAX_TOKENS,
) -> SamplingHandler:
    """
    Create a handler for sampling requests.

    Args:
        complete: Completion function, for example an ``OpenAICompletion``.
        default_model: Model used when the request names no model hint.
        approval_callback: Called before every request; returning False rejects it.
        max_tokens: Upper bound on the tokens a server may request.

    Returns:
        A handler usable as a connection's sampling handler.
    """
    return SamplingHandler(
        complete,
        default_model=default_model,
        approval_callback=approval_callback,
        max_tokens=max_tokens,
    )
