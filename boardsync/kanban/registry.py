"""
Status registry rules and transforms.

The registry entries and WIP limits live inside the engine's BoardState;
this module validates requested changes and produces the next BoardState.

Issue.status is a denormalized copy of CustomStatus.name, so every change to
a status name is applied to the registry entry, the column key and the
issues' status strings in one transform.
"""

from dataclasses import replace

from boardsync.kanban.config import BoardLimits
from boardsync.kanban.errors import ConflictError, NotFoundError, ValidationError
from boardsync.kanban.projection import sort_column, sort_statuses
from boardsync.kanban.types import BoardState, CustomStatus


class StatusRegistry:
    """Validation and state transforms for custom statuses and WIP limits."""

    def __init__(self, limits: BoardLimits | None = None):
        self.limits = limits or BoardLimits()

    # --- Validation ---

    def normalize_name(self, name: str | None) -> str:
        """
        Trim and length-check a status name.

        Raises:
            ValidationError: If the trimmed name is empty or too long
        """
        cleaned = (name or "").strip()
        if not cleaned or len(cleaned) > self.limits.status_name_max:
            raise ValidationError(
                f"Status name must be between 1 and {self.limits.status_name_max} characters",
                "INVALID_STATUS_NAME",
            )
        return cleaned

    def custom_count(self, state: BoardState) -> int:
        return sum(1 for s in state.statuses if s.name not in self.limits.default_statuses)

    def validate_create(self, state: BoardState, name: str | None) -> str:
        """
        Check a new status name against length, uniqueness and the cap.

        Returns:
            The trimmed name

        Raises:
            ValidationError: On any rule violation
        """
        cleaned = self.normalize_name(name)
        if state.find_status_by_name(cleaned) is not None:
            raise ValidationError(f"Status '{cleaned}' already exists", "DUPLICATE_STATUS")
        if (
            cleaned not in self.limits.default_statuses
            and self.custom_count(state) >= self.limits.max_custom_statuses
        ):
            raise ValidationError(
                f"Project already has the maximum of {self.limits.max_custom_statuses} custom statuses",
                "MAX_STATUSES",
            )
        return cleaned

    def validate_rename(self, state: BoardState, status_id: str, name: str | None) -> str:
        """
        Check a rename; the status being renamed does not clash with itself.

        Raises:
            NotFoundError: If the status id is unknown
            ValidationError: On length or uniqueness violation
        """
        current = self.require_status(state, status_id)
        cleaned = self.normalize_name(name)
        clash = state.find_status_by_name(cleaned)
        if clash is not None and clash.id != current.id:
            raise ValidationError(f"Status '{cleaned}' already exists", "DUPLICATE_STATUS")
        return cleaned

    def validate_wip_limit(self, state: BoardState, status: str, limit: int | None) -> None:
        """
        Raises:
            ValidationError: If the status is unknown or the limit out of range
        """
        if state.find_status_by_name(status) is None:
            raise ValidationError(f"Unknown status '{status}'", "INVALID_STATUS")
        if limit is None:
            return
        if isinstance(limit, bool) or not isinstance(limit, int) or not 1 <= limit <= self.limits.wip_limit_max:
            raise ValidationError(
                f"WIP limit must be between 1 and {self.limits.wip_limit_max} or null for unlimited",
                "INVALID_WIP_LIMIT",
            )

    def require_status(self, state: BoardState, status_id: str) -> CustomStatus:
        status = state.find_status(status_id)
        if status is None:
            raise NotFoundError(f"Status {status_id} not found", "STATUS_NOT_FOUND")
        return status

    def check_deletable(self, state: BoardState, status_id: str) -> CustomStatus:
        """
        Pre-flight check for delete. Issues are never reassigned silently.

        Raises:
            NotFoundError: If the status id is unknown
            ConflictError: If any issue still references the status name
        """
        status = self.require_status(state, status_id)
        in_use = sum(1 for i in state.all_issues() if i.status == status.name)
        if in_use:
            raise ConflictError(
                f"Status '{status.name}' is used by {in_use} issue(s)",
                "STATUS_IN_USE",
            )
        return status

    # --- Transforms ---

    def with_status_added(self, state: BoardState, status: CustomStatus) -> BoardState:
        """Add a status and its column; matching orphans join the column."""
        joining = [i for i in state.orphans if i.status == status.name]
        columns = dict(state.columns)
        columns[status.name] = sort_column(joining)
        return replace(
            state,
            columns=self._ordered(columns, state.statuses + (status,)),
            orphans=tuple(i for i in state.orphans if i.status != status.name),
            statuses=sort_statuses(state.statuses + (status,)),
        )

    def with_status_updated(self, state: BoardState, status_id: str, updated: CustomStatus) -> BoardState:
        """
        Replace a registry entry; a name change cascades in the same step.

        Every issue whose status equals the old name (exact match) is
        relabeled and the column is re-keyed. Orphans already carrying the
        new name join the column.
        """
        current = self.require_status(state, status_id)
        statuses = tuple(updated if s.id == status_id else s for s in state.statuses)
        columns = dict(state.columns)
        orphans = state.orphans

        if updated.name != current.name:
            relabeled = [
                i.moved(updated.name, i.order) for i in columns.pop(current.name, ())
            ]
            relabeled.extend(i for i in orphans if i.status == updated.name)
            orphans = tuple(i for i in orphans if i.status != updated.name)
            columns[updated.name] = sort_column(relabeled)

        return replace(
            state,
            columns=self._ordered(columns, statuses),
            orphans=orphans,
            statuses=sort_statuses(statuses),
        )

    def with_status_removed(self, state: BoardState, status_id: str) -> BoardState:
        """
        Drop a status and its column.

        Raises:
            ConflictError: If the column is not empty
        """
        status = self.require_status(state, status_id)
        if state.columns.get(status.name):
            raise ConflictError(f"Status '{status.name}' still has issues", "STATUS_IN_USE")
        columns = {k: v for k, v in state.columns.items() if k != status.name}
        return replace(
            state,
            columns=columns,
            statuses=tuple(s for s in state.statuses if s.id != status_id),
        )

    def with_wip_limit(self, state: BoardState, status: str, limit: int | None) -> BoardState:
        wip_limits = dict(state.wip_limits)
        wip_limits[status] = limit
        return replace(state, wip_limits=wip_limits)

    @staticmethod
    def _ordered(columns: dict, statuses) -> dict:
        """Keep column keys in display order."""
        ordered = {s.name: columns[s.name] for s in sort_statuses(statuses) if s.name in columns}
        for name, issues in columns.items():
            ordered.setdefault(name, issues)
        return ordered
