"""
In-memory Board Service.

Keeps projects in process and applies the shared backend's rules: trimmed
names of 1-30 characters, unique per project, at most the configured number
of custom statuses, WIP limits of 1-50 or None, and no deleting a status
that issues still use. Used by the tests and for offline runs of the CLI.
"""

import asyncio
import itertools
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import yaml

from boardsync.kanban.config import PROJECT_ROOT, BoardLimits
from boardsync.kanban.envelope import ApiResponse
from boardsync.kanban.types import CustomStatus, Issue


@dataclass
class ProjectData:
    """Mutable backend rows for one project."""
    statuses: list[CustomStatus] = field(default_factory=list)
    issues: dict[str, Issue] = field(default_factory=dict)
    wip_limits: dict[str, int | None] = field(default_factory=dict)


class InMemoryBoardService:
    """
    BoardService kept in memory.

    Extras for tests:
        fail_next(operation, message, code): next call of ``operation`` fails
        pause(operation): next call of ``operation`` waits for the returned event
        calls: list of (operation, args) in call order
    """

    def __init__(self, limits: BoardLimits | None = None):
        self.limits = limits or BoardLimits()
        self.projects: dict[str, ProjectData] = {}
        self.calls: list[tuple[str, tuple]] = []
        self._failures: dict[str, list[ApiResponse[Any]]] = {}
        self._gates: dict[str, list[asyncio.Event]] = {}
        self._ids = itertools.count(1)

    @classmethod
    def from_config(cls, config: dict | None = None, limits: BoardLimits | None = None) -> "InMemoryBoardService":
        """
        Create service from its config section.

        Args:
            config: Optional dict with ``seed`` (path to a YAML file) and/or
                    ``projects`` (inline seed data)
            limits: Validation limits shared with the engine
        """
        config = config or {}
        service = cls(limits)
        seed = dict(config.get("projects") or {})
        if config.get("seed"):
            seed_path = Path(config["seed"])
            if not seed_path.is_absolute():
                seed_path = PROJECT_ROOT / seed_path
            with open(seed_path) as f:
                seed.update((yaml.safe_load(f) or {}).get("projects") or {})
        for project_id, data in seed.items():
            service.load_project(str(project_id), data or {})
        return service

    @property
    def name(self) -> str:
        """Service identifier."""
        return "memory"

    # --- Seeding ---

    def load_project(self, project_id: str, data: dict[str, Any]) -> ProjectData:
        """
        Replace a project's rows.

        ``statuses`` may be names or dicts; ``issues`` are dicts in wire format;
        ``wip_limits`` maps status name to limit.
        """
        project = ProjectData()
        raw_statuses = data.get("statuses")
        if raw_statuses is None:
            raw_statuses = list(self.limits.default_statuses)

        for position, raw in enumerate(raw_statuses):
            if isinstance(raw, str):
                raw = {"name": raw, "position": position}
            status = CustomStatus.from_dict({"position": position, **raw})
            if not status.id:
                status = replace(status, id=self._next_id("status"))
            project.statuses.append(status)

        for raw in data.get("issues") or []:
            issue = Issue.from_dict({"projectId": project_id, **raw})
            project.issues[issue.id] = issue

        project.wip_limits = dict(data.get("wip_limits") or {})
        self.projects[project_id] = project
        return project

    def _project(self, project_id: str) -> ProjectData:
        if project_id not in self.projects:
            self.load_project(project_id, {})
        return self.projects[project_id]

    def _next_id(self, prefix: str) -> str:
        return f"{prefix}-{next(self._ids)}"

    # --- Test controls ---

    def fail_next(self, operation: str, message: str, code: str | None = None) -> None:
        """Make the next call of ``operation`` return a failure envelope."""
        self._failures.setdefault(operation, []).append(ApiResponse.fail(message, code))

    def pause(self, operation: str) -> asyncio.Event:
        """Hold the next call of ``operation`` until the returned event is set."""
        gate = asyncio.Event()
        self._gates.setdefault(operation, []).append(gate)
        return gate

    def call_count(self, operation: str) -> int:
        return sum(1 for name, _ in self.calls if name == operation)

    async def _enter(self, operation: str, *args: Any) -> ApiResponse[Any] | None:
        self.calls.append((operation, args))
        gates = self._gates.get(operation)
        if gates:
            await gates.pop(0).wait()
        failures = self._failures.get(operation)
        if failures:
            return failures.pop(0)
        return None

    # --- Validation ---

    def _check_name(self, project: ProjectData, name: Any, status_id: str | None = None) -> ApiResponse[Any] | str:
        if name is None or not str(name).strip():
            return ApiResponse.fail("Status name is required", "MISSING_NAME")
        cleaned = str(name).strip()
        if len(cleaned) > self.limits.status_name_max:
            return ApiResponse.fail(
                f"Status name must be between 1 and {self.limits.status_name_max} characters",
                "INVALID_STATUS_NAME",
            )
        for status in project.statuses:
            if status.name == cleaned and status.id != status_id:
                return ApiResponse.fail(f"Status '{cleaned}' already exists", "DUPLICATE_STATUS")
        return cleaned

    @staticmethod
    def _find_status(project: ProjectData, status_id: str) -> CustomStatus | None:
        for status in project.statuses:
            if status.id == status_id:
                return status
        return None

    # --- Read Operations ---

    async def fetch_board(self, project_id: str) -> ApiResponse[dict[str, list[Issue]]]:
        failure = await self._enter("fetch_board", project_id)
        if failure:
            return failure
        board: dict[str, list[Issue]] = {}
        for issue in self._project(project_id).issues.values():
            board.setdefault(issue.status, []).append(issue)
        return ApiResponse.ok(board)

    async def fetch_statuses(self, project_id: str) -> ApiResponse[list[CustomStatus]]:
        failure = await self._enter("fetch_statuses", project_id)
        if failure:
            return failure
        return ApiResponse.ok(sorted(self._project(project_id).statuses, key=lambda s: s.position))

    async def fetch_wip_limits(self, project_id: str) -> ApiResponse[dict[str, int | None]]:
        failure = await self._enter("fetch_wip_limits", project_id)
        if failure:
            return failure
        return ApiResponse.ok(dict(self._project(project_id).wip_limits))

    # --- Issue Moves ---

    async def update_issue(self, issue_id: str, changes: dict[str, Any]) -> ApiResponse[Issue]:
        failure = await self._enter("update_issue", issue_id, dict(changes))
        if failure:
            return failure
        if not changes.get("status"):
            return ApiResponse.fail("Status is required", "MISSING_STATUS")

        for project in self.projects.values():
            issue = project.issues.get(issue_id)
            if issue is not None:
                updated = replace(
                    issue.moved(changes["status"], changes.get("order") or 0),
                    updated_at=datetime.now(timezone.utc),
                )
                project.issues[issue_id] = updated
                return ApiResponse.ok(updated)

        return ApiResponse.fail(f"Issue {issue_id} not found", "ISSUE_NOT_FOUND")

    # --- Status CRUD ---

    async def create_status(self, project_id: str, data: dict[str, Any]) -> ApiResponse[CustomStatus]:
        failure = await self._enter("create_status", project_id, dict(data))
        if failure:
            return failure

        project = self._project(project_id)
        checked = self._check_name(project, data.get("name"))
        if isinstance(checked, ApiResponse):
            return checked
        custom = [s for s in project.statuses if s.name not in self.limits.default_statuses]
        if checked not in self.limits.default_statuses and len(custom) >= self.limits.max_custom_statuses:
            return ApiResponse.fail(
                f"Project already has the maximum of {self.limits.max_custom_statuses} custom statuses",
                "MAX_STATUSES",
            )

        position = data.get("order")
        if position is None:
            position = max((s.position for s in project.statuses), default=-1) + 1
        status = CustomStatus(
            id=self._next_id("status"),
            name=checked,
            color=data.get("color") or None,
            position=int(position),
            created_at=datetime.now(timezone.utc),
        )
        project.statuses.append(status)
        return ApiResponse.ok(status)

    async def update_status(
        self,
        project_id: str,
        status_id: str,
        data: dict[str, Any],
    ) -> ApiResponse[CustomStatus]:
        failure = await self._enter("update_status", project_id, status_id, dict(data))
        if failure:
            return failure

        project = self._project(project_id)
        current = self._find_status(project, status_id)
        if current is None:
            return ApiResponse.fail(f"Status {status_id} not found", "STATUS_NOT_FOUND")

        updated = current
        if "name" in data:
            checked = self._check_name(project, data["name"], status_id)
            if isinstance(checked, ApiResponse):
                return checked
            updated = replace(updated, name=checked)
        if "color" in data:
            updated = replace(updated, color=data["color"] or None)
        if data.get("order") is not None:
            updated = replace(updated, position=int(data["order"]))

        project.statuses = [updated if s.id == status_id else s for s in project.statuses]
        if updated.name != current.name:
            for issue in list(project.issues.values()):
                if issue.status == current.name:
                    project.issues[issue.id] = issue.moved(updated.name, issue.order)
        return ApiResponse.ok(updated)

    async def delete_status(self, project_id: str, status_id: str) -> ApiResponse[None]:
        failure = await self._enter("delete_status", project_id, status_id)
        if failure:
            return failure

        project = self._project(project_id)
        status = self._find_status(project, status_id)
        if status is None:
            return ApiResponse.fail(f"Status {status_id} not found", "STATUS_NOT_FOUND")
        in_use = sum(1 for i in project.issues.values() if i.status == status.name)
        if in_use:
            return ApiResponse.fail(
                f"Status '{status.name}' is used by {in_use} issue(s)",
                "STATUS_IN_USE",
            )
        project.statuses = [s for s in project.statuses if s.id != status_id]
        return ApiResponse.ok(None)

    # --- WIP Limits ---

    async def set_wip_limit(
        self,
        project_id: str,
        status: str,
        limit: int | None,
    ) -> ApiResponse[dict[str, Any]]:
        failure = await self._enter("set_wip_limit", project_id, status, limit)
        if failure:
            return failure

        if not status:
            return ApiResponse.fail("Status is required", "MISSING_STATUS")
        if limit is not None and not 1 <= limit <= self.limits.wip_limit_max:
            return ApiResponse.fail(
                f"WIP limit must be between 1 and {self.limits.wip_limit_max} or null for unlimited",
                "INVALID_WIP_LIMIT",
            )
        self._project(project_id).wip_limits[status] = limit
        return ApiResponse.ok({"status": status, "limit": limit})
