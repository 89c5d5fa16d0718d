"""
Kanboard Board Service.

Implements BoardService for a Kanboard backend. Kanboard columns are the
statuses, a column's ``task_limit`` is its WIP limit (0 = unlimited) and a
task's ``position`` is its order.
"""

import asyncio
from typing import Any, Callable

from kanboard import Client

from boardsync.logger import get_logger
from boardsync.kanban.config import get_service_config
from boardsync.kanban.envelope import ApiResponse, failure_from_exception
from boardsync.kanban.types import CustomStatus, Issue

OPEN_TASKS = 1


class KanboardBoardService:
    """
    BoardService implementation for Kanboard.

    Wraps the kanboard Python client and translates between Kanboard's
    column/task model and the board types. The client is blocking, so every
    call runs in a worker thread.
    """

    def __init__(self, config: dict | None = None):
        """
        Initialize service with configuration.

        Args:
            config: Service config dict. If None, loads from config file.
                    Expected keys: url, user, token
        """
        if config is None:
            config = get_service_config("kanboard")

        self._config = config
        self._url = config.get("url") or "http://localhost:188/jsonrpc.php"
        self._user = config.get("user") or "jsonrpc"
        self._token = config.get("token", "")

        # Lazy client initialization
        self._client: Client | None = None
        self._log = get_logger("kanboard")

    @property
    def client(self) -> Client:
        """Get or create Kanboard client (lazy initialization)."""
        if self._client is None:
            self._client = Client(self._url, self._user, self._token)
        return self._client

    @property
    def name(self) -> str:
        """Service identifier."""
        return "kanboard"

    async def _call(self, operation: str, func: Callable[[], ApiResponse[Any]]) -> ApiResponse[Any]:
        """Run a blocking client sequence; client errors become failure envelopes."""
        def guarded() -> ApiResponse[Any]:
            try:
                return func()
            except Exception as e:
                self._log.error("Kanboard call failed", operation=operation, error=str(e))
                return failure_from_exception(e)

        return await asyncio.to_thread(guarded)

    # --- Helpers ---

    def _columns(self, project_id: int) -> list[dict]:
        columns = self.client.get_columns(project_id=project_id) or []
        return sorted(columns, key=lambda c: int(c.get("position", 0)))

    def _column_by_title(self, project_id: int, title: str) -> dict | None:
        for column in self._columns(project_id):
            if column.get("title") == title:
                return column
        return None

    @staticmethod
    def _column_to_status(column: dict) -> CustomStatus:
        return CustomStatus(
            id=str(column["id"]),
            name=column.get("title", ""),
            position=int(column.get("position", 0)),
        )

    @staticmethod
    def _task_to_issue(task: dict, column_title: str) -> Issue:
        return Issue(
            id=str(task["id"]),
            status=column_title,
            order=int(task.get("position", 0)),
            project_id=str(task.get("project_id", "")),
            title=task.get("title", "") or "",
            assignee_id=str(task["owner_id"]) if task.get("owner_id") not in (None, 0, "0") else None,
        )

    @staticmethod
    def _limit_from_column(column: dict) -> int | None:
        limit = int(column.get("task_limit") or 0)
        return limit or None

    # --- Read Operations ---

    async def fetch_board(self, project_id: str) -> ApiResponse[dict[str, list[Issue]]]:
        def fetch() -> ApiResponse[dict[str, list[Issue]]]:
            pid = int(project_id)
            titles = {int(c["id"]): c["title"] for c in self._columns(pid)}
            board: dict[str, list[Issue]] = {title: [] for title in titles.values()}
            for task in self.client.get_all_tasks(project_id=pid, status_id=OPEN_TASKS) or []:
                title = titles.get(int(task.get("column_id", 0)), "")
                board.setdefault(title, []).append(self._task_to_issue(task, title))
            return ApiResponse.ok(board)

        return await self._call("fetch_board", fetch)

    async def fetch_statuses(self, project_id: str) -> ApiResponse[list[CustomStatus]]:
        return await self._call(
            "fetch_statuses",
            lambda: ApiResponse.ok([self._column_to_status(c) for c in self._columns(int(project_id))]),
        )

    async def fetch_wip_limits(self, project_id: str) -> ApiResponse[dict[str, int | None]]:
        return await self._call(
            "fetch_wip_limits",
            lambda: ApiResponse.ok({
                c["title"]: self._limit_from_column(c) for c in self._columns(int(project_id))
            }),
        )

    # --- Issue Moves ---

    async def update_issue(self, issue_id: str, changes: dict[str, Any]) -> ApiResponse[Issue]:
        """
        Move a task. Kanboard positions are 1-based integers, so the requested
        order is converted to the position among the column's open tasks.

        Kanboard renumbers the whole column, so the returned issue echoes the
        requested order; the next refresh reads the renumbered positions.
        """
        def move() -> ApiResponse[Issue]:
            task = self.client.get_task(task_id=int(issue_id))
            if not task:
                return ApiResponse.fail(f"Issue {issue_id} not found", "ISSUE_NOT_FOUND")

            pid = int(task["project_id"])
            status = changes["status"]
            column = self._column_by_title(pid, status)
            if column is None:
                return ApiResponse.fail(f"Unknown status '{status}'", "INVALID_STATUS")

            order = changes.get("order") or 0
            siblings = [
                t for t in self.client.get_all_tasks(project_id=pid, status_id=OPEN_TASKS) or []
                if int(t.get("column_id", 0)) == int(column["id"]) and str(t["id"]) != str(issue_id)
            ]
            position = 1 + sum(1 for t in siblings if int(t.get("position", 0)) < order)

            moved = self.client.move_task_position(
                project_id=pid,
                task_id=int(issue_id),
                column_id=int(column["id"]),
                position=position,
                swimlane_id=int(task.get("swimlane_id") or 0) or 1,
            )
            if not moved:
                return ApiResponse.fail(f"Failed to move issue {issue_id}")

            return ApiResponse.ok(self._task_to_issue(task, status).moved(status, order))

        return await self._call("update_issue", move)

    # --- Status CRUD ---

    async def create_status(self, project_id: str, data: dict[str, Any]) -> ApiResponse[CustomStatus]:
        def create() -> ApiResponse[CustomStatus]:
            pid = int(project_id)
            title = (data.get("name") or "").strip()
            if not title:
                return ApiResponse.fail("Status name is required", "MISSING_NAME")
            if self._column_by_title(pid, title) is not None:
                return ApiResponse.fail(f"Status '{title}' already exists", "DUPLICATE_STATUS")

            column_id = self.client.add_column(project_id=pid, title=title, task_limit=0)
            if not column_id:
                return ApiResponse.fail("Failed to create custom status")

            column = self.client.get_column(column_id=int(column_id))
            return ApiResponse.ok(self._column_to_status(column))

        return await self._call("create_status", create)

    async def update_status(
        self,
        project_id: str,
        status_id: str,
        data: dict[str, Any],
    ) -> ApiResponse[CustomStatus]:
        def update() -> ApiResponse[CustomStatus]:
            column = self.client.get_column(column_id=int(status_id))
            if not column:
                return ApiResponse.fail(f"Status {status_id} not found", "STATUS_NOT_FOUND")

            title = (data.get("name") or column["title"]).strip()
            updated = self.client.update_column(
                column_id=int(status_id),
                title=title,
                task_limit=int(column.get("task_limit") or 0),
            )
            if not updated:
                return ApiResponse.fail("Failed to update custom status")

            if data.get("order") is not None:
                self.client.change_column_position(
                    project_id=int(project_id),
                    column_id=int(status_id),
                    position=int(data["order"]),
                )

            return ApiResponse.ok(self._column_to_status(self.client.get_column(column_id=int(status_id))))

        return await self._call("update_status", update)

    async def delete_status(self, project_id: str, status_id: str) -> ApiResponse[None]:
        def delete() -> ApiResponse[None]:
            column = self.client.get_column(column_id=int(status_id))
            if not column:
                return ApiResponse.fail(f"Status {status_id} not found", "STATUS_NOT_FOUND")

            in_use = [
                t for t in self.client.get_all_tasks(project_id=int(project_id), status_id=OPEN_TASKS) or []
                if int(t.get("column_id", 0)) == int(status_id)
            ]
            if in_use:
                return ApiResponse.fail(
                    f"Status '{column['title']}' is used by {len(in_use)} issue(s)",
                    "STATUS_IN_USE",
                )

            if not self.client.remove_column(column_id=int(status_id)):
                return ApiResponse.fail("Failed to delete custom status")
            return ApiResponse.ok(None)

        return await self._call("delete_status", delete)

    # --- WIP Limits ---

    async def set_wip_limit(
        self,
        project_id: str,
        status: str,
        limit: int | None,
    ) -> ApiResponse[dict[str, Any]]:
        def set_limit() -> ApiResponse[dict[str, Any]]:
            column = self._column_by_title(int(project_id), status)
            if column is None:
                return ApiResponse.fail(f"Unknown status '{status}'", "INVALID_STATUS")

            updated = self.client.update_column(
                column_id=int(column["id"]),
                title=column["title"],
                task_limit=limit or 0,
            )
            if not updated:
                return ApiResponse.fail("Failed to update WIP limit")
            return ApiResponse.ok({"status": status, "limit": limit})

        return await self._call("set_wip_limit", set_limit)
