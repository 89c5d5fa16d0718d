"""
Unit tests for KanboardBoardService.

Uses a mock kanboard client; no Kanboard instance is needed.
"""

import asyncio
import os
from unittest.mock import Mock

import pytest
from dotenv import load_dotenv

# Load environment before imports
load_dotenv()

from boardsync.kanban.config import load_board_config
from boardsync.kanban.services.kanboard import KanboardBoardService
from boardsync.kanban.types import CustomStatus


COLUMNS = [
    {"id": "3", "title": "Done", "position": "3", "task_limit": "0"},
    {"id": "1", "title": "Backlog", "position": "1", "task_limit": "0"},
    {"id": "2", "title": "In Progress", "position": "2", "task_limit": "2"},
]

TASKS = [
    {"id": "11", "project_id": "1", "column_id": "1", "position": "1", "title": "One", "owner_id": "0"},
    {"id": "12", "project_id": "1", "column_id": "1", "position": "2", "title": "Two", "owner_id": "4"},
    {"id": "13", "project_id": "1", "column_id": "2", "position": "1", "title": "Three", "owner_id": "0"},
]


@pytest.fixture
def mock_client():
    client = Mock()
    client.get_columns.return_value = COLUMNS
    client.get_all_tasks.return_value = TASKS
    client.get_column.side_effect = lambda column_id: next(
        (dict(c) for c in COLUMNS if int(c["id"]) == column_id), None
    )
    client.get_task.side_effect = lambda task_id: next(
        (dict(t, swimlane_id="1") for t in TASKS if int(t["id"]) == task_id), None
    )
    client.move_task_position.return_value = True
    client.update_column.return_value = True
    client.remove_column.return_value = True
    client.add_column.return_value = 7
    return client


@pytest.fixture
def service(mock_client):
    service = KanboardBoardService({"url": "http://kb.test/jsonrpc.php", "user": "jsonrpc", "token": "t"})
    service._client = mock_client
    return service


class TestKanboardServiceReads:
    """Test read operations."""

    def test_name(self, service):
        assert service.name == "kanboard"

    def test_fetch_statuses_in_column_order(self, service):
        result = asyncio.run(service.fetch_statuses("1"))
        assert [s.name for s in result.data] == ["Backlog", "In Progress", "Done"]
        assert result.data[0] == CustomStatus(id="1", name="Backlog", position=1)

    def test_fetch_wip_limits(self, service):
        """task_limit 0 means unlimited."""
        result = asyncio.run(service.fetch_wip_limits("1"))
        assert result.data == {"Backlog": None, "In Progress": 2, "Done": None}

    def test_fetch_board(self, service, mock_client):
        result = asyncio.run(service.fetch_board("1"))

        assert [i.id for i in result.data["Backlog"]] == ["11", "12"]
        assert result.data["In Progress"][0].status == "In Progress"
        assert result.data["Done"] == []
        assert result.data["Backlog"][1].assignee_id == "4"
        assert result.data["Backlog"][0].assignee_id is None
        mock_client.get_all_tasks.assert_called_once_with(project_id=1, status_id=1)

    def test_client_error_is_failure(self, service, mock_client):
        mock_client.get_columns.side_effect = RuntimeError("connection refused")

        result = asyncio.run(service.fetch_statuses("1"))

        assert not result.success
        assert "connection refused" in result.error.message


class TestKanboardServiceMoves:
    """Test update_issue()."""

    def test_move_converts_order_to_position(self, service, mock_client):
        result = asyncio.run(service.update_issue("13", {"status": "Backlog", "order": 1.5}))

        assert result.success
        assert result.data.status == "Backlog"
        assert result.data.order == 1.5
        mock_client.move_task_position.assert_called_once_with(
            project_id=1, task_id=13, column_id=1, position=2, swimlane_id=1,
        )

    def test_move_to_top(self, service, mock_client):
        asyncio.run(service.update_issue("13", {"status": "Backlog", "order": 0}))
        assert mock_client.move_task_position.call_args[1]["position"] == 1

    def test_unknown_task(self, service):
        result = asyncio.run(service.update_issue("99", {"status": "Backlog", "order": 0}))
        assert result.error.code == "ISSUE_NOT_FOUND"

    def test_unknown_column(self, service):
        result = asyncio.run(service.update_issue("13", {"status": "Archive", "order": 0}))
        assert result.error.code == "INVALID_STATUS"

    def test_rejected_move(self, service, mock_client):
        mock_client.move_task_position.return_value = False
        result = asyncio.run(service.update_issue("13", {"status": "Backlog", "order": 0}))
        assert not result.success


class TestKanboardServiceStatuses:
    """Test column CRUD and WIP limits."""

    def test_create_status(self, service, mock_client):
        mock_client.get_column.side_effect = None
        mock_client.get_column.return_value = {"id": "7", "title": "Review", "position": "4", "task_limit": "0"}

        result = asyncio.run(service.create_status("1", {"name": " Review "}))

        assert result.data == CustomStatus(id="7", name="Review", position=4)
        mock_client.add_column.assert_called_once_with(project_id=1, title="Review", task_limit=0)

    def test_create_duplicate(self, service, mock_client):
        result = asyncio.run(service.create_status("1", {"name": "Done"}))
        assert result.error.code == "DUPLICATE_STATUS"
        mock_client.add_column.assert_not_called()

    def test_create_without_name(self, service):
        result = asyncio.run(service.create_status("1", {"name": "  "}))
        assert result.error.code == "MISSING_NAME"

    def test_rename_keeps_task_limit(self, service, mock_client):
        asyncio.run(service.update_status("1", "2", {"name": "Doing"}))
        mock_client.update_column.assert_called_once_with(column_id=2, title="Doing", task_limit=2)

    def test_reposition(self, service, mock_client):
        asyncio.run(service.update_status("1", "3", {"order": 1}))
        mock_client.change_column_position.assert_called_once_with(project_id=1, column_id=3, position=1)

    def test_update_unknown_column(self, service):
        result = asyncio.run(service.update_status("1", "42", {"name": "Doing"}))
        assert result.error.code == "STATUS_NOT_FOUND"

    def test_delete_in_use(self, service, mock_client):
        result = asyncio.run(service.delete_status("1", "1"))

        assert result.error.code == "STATUS_IN_USE"
        assert "2 issue(s)" in result.error.message
        mock_client.remove_column.assert_not_called()

    def test_delete_empty(self, service, mock_client):
        result = asyncio.run(service.delete_status("1", "3"))
        assert result.success
        mock_client.remove_column.assert_called_once_with(column_id=3)

    def test_set_wip_limit(self, service, mock_client):
        result = asyncio.run(service.set_wip_limit("1", "Done", 3))
        assert result.data == {"status": "Done", "limit": 3}
        mock_client.update_column.assert_called_once_with(column_id=3, title="Done", task_limit=3)

    def test_clear_wip_limit(self, service, mock_client):
        asyncio.run(service.set_wip_limit("1", "In Progress", None))
        assert mock_client.update_column.call_args[1]["task_limit"] == 0

    def test_wip_limit_unknown_column(self, service):
        result = asyncio.run(service.set_wip_limit("1", "Archive", 3))
        assert result.error.code == "INVALID_STATUS"


@pytest.mark.skipif(
    not os.environ.get("KANBOARD_TOKEN"),
    reason="KANBOARD_TOKEN not set - skipping integration tests"
)
class TestKanboardServiceIntegration:
    """Read-only checks against a real Kanboard instance."""

    @pytest.fixture
    def live_service(self):
        config = load_board_config()
        return KanboardBoardService(config.get("services", {}).get("kanboard", {}))

    def test_fetch_statuses(self, live_service):
        project_id = os.environ.get("KANBOARD_PROJECT_ID", "1")
        result = asyncio.run(live_service.fetch_statuses(project_id))
        assert result.success, result.error
        assert all(s.name for s in result.data)

    def test_board_partitions_tasks_by_column(self, live_service):
        project_id = os.environ.get("KANBOARD_PROJECT_ID", "1")
        result = asyncio.run(live_service.fetch_board(project_id))
        assert result.success, result.error
        for status, issues in result.data.items():
            assert all(i.status == status for i in issues)
