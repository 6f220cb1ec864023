"""Tests for parse_notification."""

import pytest
from pydantic import ValidationError

from multiplex_mcp.mcp.notifications import (
    ListChanged,
    Message,
    NotificationMethod,
    Progress,
    ResourceUpdated,
    TaskStatus,
    UnknownNotification,
    parse_notification,
)
from multiplex_mcp.mcp.tasks import TaskState


class TestParseNotification:
    """Tests for mapping raw notifications to typed variants."""

    @pytest.mark.parametrize(
        "method",
        [
            "notifications/tools/list_changed",
            "notifications/resources/list_changed",
            "notifications/prompts/list_changed",
        ],
    )
    def test_list_changed(self, method):
        """The three list-changed methods share one variant."""
        notification = parse_notification(method)

        assert isinstance(notification, ListChanged)
        assert notification.method == NotificationMethod(method)

    def test_resource_updated(self):
        notification = parse_notification(
            "notifications/resources/updated", {"uri": "file:///docs/readme.md"}
        )

        assert isinstance(notification, ResourceUpdated)
        assert notification.uri == "file:///docs/readme.md"

    def test_progress(self):
        notification = parse_notification(
            "notifications/progress", {"progressToken": "tok", "progress": 2, "total": 4}
        )

        assert isinstance(notification, Progress)
        assert notification.params.progressToken == "tok"
        assert notification.params.total == 4

    def test_progress_without_token_is_rejected(self):
        """Malformed payloads raise a validation error."""
        with pytest.raises(ValidationError):
            parse_notification("notifications/progress", {"progress": 2})

    def test_log_message(self):
        notification = parse_notification(
            "notifications/message", {"level": "warning", "logger": "db", "data": {"slow": True}}
        )

        assert isinstance(notification, Message)
        assert notification.params.level == "warning"
        assert notification.params.data == {"slow": True}

    def test_task_status(self):
        notification = parse_notification(
            "notifications/tasks/status", {"task": {"id": "t-1", "state": "running"}}
        )

        assert isinstance(notification, TaskStatus)
        assert notification.task.id == "t-1"
        assert notification.task.state is TaskState.RUNNING

    def test_task_status_without_task(self):
        notification = parse_notification("notifications/tasks/status", {})

        assert isinstance(notification, TaskStatus)
        assert notification.task is None

    def test_unknown_method(self):
        """Unknown methods are preserved rather than rejected."""
        notification = parse_notification("notifications/custom", {"x": 1})

        assert isinstance(notification, UnknownNotification)
        assert notification.method == "notifications/custom"
        assert notification.params == {"x": 1}
