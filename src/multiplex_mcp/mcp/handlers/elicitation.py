"""
Handling of ``elicitation/create`` requests.

A server can ask the user for input either through a form described by a JSON
schema, or by sending the user to an external URL. Both are delegated to
caller-supplied handlers; this module only validates and routes them.
"""

from typing import Any, Awaitable, Callable, Dict, Iterable, List, Literal, Optional
from urllib.parse import urlparse

from mcp.client.session import ClientSession
from mcp.shared.context import RequestContext
import mcp.types as types
from pydantic import BaseModel

from multiplex_mcp.utils.logging import get_logger

logger = get_logger(__name__)

ElicitationAction = Literal["accept", "decline", "cancel"]

DEFAULT_ALLOWED_SCHEMES = ("https", "data")


class FormElicitationRequest(BaseModel):
    request_id: str
    message: str
    requested_schema: Dict[str, Any]


class URLElicitationRequest(BaseModel):
    request_id: str
    message: str
    url: str


class ElicitationResponse(BaseModel):
    action: ElicitationAction
    content: Optional[Dict[str, Any]] = None


FormElicitationHandler = Callable[[FormElicitationRequest], Awaitable[ElicitationResponse]]
URLElicitationHandler = Callable[[URLElicitationRequest], Awaitable[ElicitationResponse]]


class ElicitationHandler:
    """
    Routes elicitation requests to a form handler or a URL handler.

    Requests are declined when there is no handler for their mode, when the
    mode is unknown, or when a URL uses a scheme that is not allowed. A handler
    that raises results in ``cancel``.
    """

    def __init__(
        self,
        form_handler: Optional[FormElicitationHandler] = None,
        url_handler: Optional[URLElicitationHandler] = None,
        allowed_schemes: Optional[Iterable[str]] = None,
    ):
        self.form_handler = form_handler
        self.url_handler = url_handler
        self._allowed_schemes = {
            scheme.lower()
            for scheme in (allowed_schemes if allowed_schemes is not None else DEFAULT_ALLOWED_SCHEMES)
        }

    def supports_form(self) -> bool:
        return self.form_handler is not None

    def supports_url(self) -> bool:
        return self.url_handler is not None

    @property
    def allowed_schemes(self) -> List[str]:
        return sorted(self._allowed_schemes)

    def add_allowed_scheme(self, scheme: str) -> None:
        self._allowed_schemes.add(scheme.lower())

    def remove_allowed_scheme(self, scheme: str) -> None:
        self._allowed_schemes.discard(scheme.lower())

    async def handle_elicitation(
        self, request_id: str, params: Dict[str, Any]
    ) -> ElicitationResponse:
        """
        Handle the params of an ``elicitation/create`` request.

        Args:
            request_id: ID of the request, passed through to the handler.
            params: Request params. ``mode`` selects "form" (the default) or "url".

        Returns:
            The action taken, with form content when a form was accepted.
        """
        mode = params.get("mode", "form")
        message = params.get("message", "")

        if mode == "form":
            return await self._handle_form(
                FormElicitationRequest(
                    request_id=request_id,
                    message=message,
                    requested_schema=params.get("requestedSchema") or {},
                )
            )
        if mode == "url":
            return await self._handle_url(
                URLElicitationRequest(request_id=request_id, message=message, url=params.get("url", ""))
            )

        logger.warning(f"Declining elicitation with unknown mode '{mode}'")
        return ElicitationResponse(action="decline")

    async def _handle_form(self, request: FormElicitationRequest) -> ElicitationResponse:
        if self.form_handler is None:
            return ElicitationResponse(action="decline")

        try:
            result = await self.form_handler(request)
        except Exception as e:
            logger.warning(f"Form elicitation handler failed: {e}")
            return ElicitationResponse(action="cancel")

        if result.action == "accept" and result.content:
            return ElicitationResponse(action="accept", content=result.content)
        return ElicitationResponse(action=result.action)

    async def _handle_url(self, request: URLElicitationRequest) -> ElicitationResponse:
        if self.url_handler is None:
            return ElicitationResponse(action="decline")

        scheme = urlparse(request.url).scheme.lower()
        if not scheme or scheme not in self._allowed_schemes:
            logger.warning(f"Declining elicitation URL with disallowed scheme '{scheme}'")
            return ElicitationResponse(action="decline")

        try:
            result = await self.url_handler(request)
        except Exception as e:
            logger.warning(f"URL elicitation handler failed: {e}")
            return ElicitationResponse(action="cancel")

        return ElicitationResponse(action=result.action)

    async def __call__(
        self,
        context: RequestContext[ClientSession, Any],
        params: types.ElicitRequestParams,
    ) -> types.ElicitResult:
        """Answer an ``elicitation/create`` request from the server."""
        response = await self.handle_elicitation(
            str(context.request_id),
            params.model_dump(by_alias=True, mode="json", exclude_none=True),
        )
        return types.ElicitResult(action=response.action, content=response.content)
