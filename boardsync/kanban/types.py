"""
Board types and data structures.

This module defines backend-agnostic data classes for issues, custom statuses
and the derived board state, decoupling the engine from the wire formats of
the REST and Kanboard backends.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Mapping


class WipState(Enum):
    """Display classification of a column against its WIP limit."""
    WITHIN_LIMIT = "within_limit"
    AT_LIMIT = "at_limit"
    OVER_LIMIT = "over_limit"


class OperationPhase(Enum):
    """
    Lifecycle of a single mutating operation.

    IDLE -> OPTIMISTIC -> CONFIRMED | ROLLING_BACK -> IDLE
    """
    IDLE = "idle"
    OPTIMISTIC = "optimistic"
    CONFIRMED = "confirmed"
    ROLLING_BACK = "rolling_back"


def _parse_datetime(value: Any) -> datetime | None:
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except (ValueError, TypeError):
        return None


def _parse_order(value: Any) -> float:
    if value is None or value == "":
        return 0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    return int(number) if number.is_integer() else number


@dataclass(frozen=True)
class Issue:
    """
    Board-relevant subset of an issue.

    Frozen so board states can share issue objects between snapshots.

    Attributes:
        id: Opaque, stable identifier
        status: Status name; joins against CustomStatus.name by exact match
        order: Position within the status column (not unique)
        project_id: Owning project
        title: Display-only fields below are carried, never interpreted
    """
    id: str
    status: str
    order: float = 0
    project_id: str = ""
    title: str = ""
    priority: str | None = None
    assignee_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def sort_key(self) -> tuple:
        """Column ordering: ascending order, ties broken by id."""
        return (self.order, self.id)

    def moved(self, status: str, order: float) -> "Issue":
        return replace(self, status=status, order=order)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "status": self.status,
            "order": self.order,
            "projectId": self.project_id,
            "title": self.title,
            "priority": self.priority,
            "assigneeId": self.assignee_id,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Issue":
        """Create Issue from a backend payload (camelCase or snake_case)."""
        return cls(
            id=str(data.get("id", "")),
            status=str(data.get("status") or ""),
            order=_parse_order(data.get("order")),
            project_id=str(data.get("projectId") or data.get("project_id") or ""),
            title=data.get("title", "") or "",
            priority=data.get("priority"),
            assignee_id=data.get("assigneeId") or data.get("assignee_id"),
            created_at=_parse_datetime(data.get("createdAt") or data.get("created_at")),
            updated_at=_parse_datetime(data.get("updatedAt") or data.get("updated_at")),
        )


@dataclass(frozen=True)
class CustomStatus:
    """
    A board column definition.

    Attributes:
        id: Status identifier
        name: 1-30 chars, unique per project; the join key for Issue.status
        color: Optional display hint, unused by the engine
        position: Column order among statuses
        created_at: Creation timestamp
    """
    id: str
    name: str
    color: str | None = None
    position: int = 0
    created_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "color": self.color,
            "position": self.position,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CustomStatus":
        """Create CustomStatus; accepts position, orderIndex or order_index."""
        position = data.get("position")
        if position is None:
            position = data.get("orderIndex", data.get("order_index", 0))
        return cls(
            id=str(data.get("id", "")),
            name=str(data.get("name", "")),
            color=data.get("color") or None,
            position=int(position or 0),
            created_at=_parse_datetime(data.get("createdAt") or data.get("created_at")),
        )


@dataclass(frozen=True)
class MoveDelta:
    """
    Planned change for exactly one issue.

    A delta without a target status is a no-op and must not be synchronized.
    """
    issue_id: str
    from_status: str
    to_status: str | None = None
    order: float | None = None

    @property
    def is_noop(self) -> bool:
        return self.to_status is None

    def to_payload(self) -> dict[str, Any]:
        """Body for the remote update_issue call."""
        return {"status": self.to_status, "order": self.order}

    @classmethod
    def noop(cls, issue_id: str, status: str) -> "MoveDelta":
        return cls(issue_id=issue_id, from_status=status)


@dataclass(frozen=True)
class BoardState:
    """
    Immutable value holding everything the engine owns for one project.

    Every mutation produces a new BoardState, so a snapshot is just a
    reference to the previous instance and restoring it is an assignment.

    Attributes:
        columns: Status name -> issues sorted by (order, id)
        orphans: Issues whose status matches no known status name
        statuses: Custom statuses sorted by (position, name)
        wip_limits: Status name -> limit or None
    """
    columns: Mapping[str, tuple[Issue, ...]] = field(default_factory=dict)
    orphans: tuple[Issue, ...] = ()
    statuses: tuple[CustomStatus, ...] = ()
    wip_limits: Mapping[str, int | None] = field(default_factory=dict)

    def status_names(self) -> list[str]:
        return [s.name for s in self.statuses]

    def find_status(self, status_id: str) -> CustomStatus | None:
        for status in self.statuses:
            if status.id == status_id:
                return status
        return None

    def find_status_by_name(self, name: str) -> CustomStatus | None:
        for status in self.statuses:
            if status.name == name:
                return status
        return None

    def find_issue(self, issue_id: str) -> Issue | None:
        for issues in self.columns.values():
            for issue in issues:
                if issue.id == issue_id:
                    return issue
        for issue in self.orphans:
            if issue.id == issue_id:
                return issue
        return None

    def all_issues(self) -> list[Issue]:
        issues = [i for column in self.columns.values() for i in column]
        issues.extend(self.orphans)
        return issues

    def count(self, status: str) -> int:
        return len(self.columns.get(status, ()))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization (CLI --json, debugging)."""
        return {
            "columns": {
                name: [i.to_dict() for i in issues]
                for name, issues in self.columns.items()
            },
            "orphans": [i.to_dict() for i in self.orphans],
            "statuses": [s.to_dict() for s in self.statuses],
            "wipLimits": dict(self.wip_limits),
        }
