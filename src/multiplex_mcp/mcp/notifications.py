"""
Typed view over the notifications a server can send to the client.

Each known method maps to one payload model. Anything else parses to
``UnknownNotification`` so that dispatch stays exhaustive.
"""

from enum import Enum
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict

from multiplex_mcp.mcp.progress import ProgressNotification
from multiplex_mcp.mcp.tasks import Task


class NotificationMethod(str, Enum):
    TOOLS_LIST_CHANGED = "notifications/tools/list_changed"
    RESOURCES_LIST_CHANGED = "notifications/resources/list_changed"
    PROMPTS_LIST_CHANGED = "notifications/prompts/list_changed"
    RESOURCE_UPDATED = "notifications/resources/updated"
    PROGRESS = "notifications/progress"
    MESSAGE = "notifications/message"
    TASK_STATUS = "notifications/tasks/status"


LIST_CHANGED_METHODS = frozenset(
    {
        NotificationMethod.TOOLS_LIST_CHANGED,
        NotificationMethod.RESOURCES_LIST_CHANGED,
        NotificationMethod.PROMPTS_LIST_CHANGED,
    }
)


class LogMessage(BaseModel):
    """A log message received from a server."""

    model_config = ConfigDict(extra="allow")

    level: str
    logger: Optional[str] = None
    data: Any = None


class ListChanged(BaseModel):
    method: NotificationMethod


class ResourceUpdated(BaseModel):
    uri: str


class Progress(BaseModel):
    params: ProgressNotification


class Message(BaseModel):
    params: LogMessage


class TaskStatus(BaseModel):
    task: Optional[Task] = None


class UnknownNotification(BaseModel):
    method: str
    params: Optional[Dict[str, Any]] = None


InboundNotification = Union[
    ListChanged, ResourceUpdated, Progress, Message, TaskStatus, UnknownNotification
]


def parse_notification(
    method: str, params: Optional[Dict[str, Any]] = None
) -> InboundNotification:
    """
    Parse a raw notification into its typed variant.

    Args:
        method: The notification method.
        params: The notification params, if any.

    Returns:
        The typed notification. Unknown methods yield ``UnknownNotification``.
    """
    params = params or {}
    try:
        kind = NotificationMethod(method)
    except ValueError:
        return UnknownNotification(method=method, params=params)

    if kind in LIST_CHANGED_METHODS:
        return ListChanged(method=kind)
    if kind is NotificationMethod.RESOURCE_UPDATED:
        return ResourceUpdated(uri=str(params["uri"]))
    if kind is NotificationMethod.PROGRESS:
        return Progress(params=ProgressNotification.model_validate(params))
    if kind is NotificationMethod.MESSAGE:
        return Message(params=LogMessage.model_validate(params))
    task = params.get("task")
    return TaskStatus(task=Task.model_validate(task) if task else None)
