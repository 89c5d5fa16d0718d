"""
Board synchronization engine.

Owns the single BoardState of the open project. Every mutating operation
follows the same shape:

    IDLE -> OPTIMISTIC -> CONFIRMED | ROLLING_BACK -> IDLE

The optimistic step captures the current BoardState (the snapshot) and
swaps in the mutated one synchronously; the only suspension point is the
awaited remote call. Operations are neither queued nor locked, so a second
gesture layers on top of the first one's optimistic state and the last
response to arrive wins.
"""

import asyncio
import uuid
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable

from boardsync.logger import get_logger, set_level
from boardsync.kanban.config import BoardLimits, get_service_config, load_board_config, load_limits
from boardsync.kanban.envelope import ApiResponse
from boardsync.kanban.errors import BoardError, NotFoundError, TransportError, ValidationError
from boardsync.kanban.planner import plan_move
from boardsync.kanban.projection import flatten, project, sort_column, sort_statuses
from boardsync.kanban.protocol import BoardService
from boardsync.kanban.registry import StatusRegistry
from boardsync.kanban.types import (
    BoardState,
    CustomStatus,
    Issue,
    OperationPhase,
    WipState,
)
from boardsync.kanban.wip import classify, classify_board


@dataclass(frozen=True)
class BoardEvent:
    """Change notification delivered to subscribers."""
    kind: str  # "refreshed" | "optimistic" | "confirmed" | "rolled_back"
    operation: str
    phase: OperationPhase
    state: BoardState
    error: BoardError | None = None


Listener = Callable[[BoardEvent], None]


def place_issue(state: BoardState, issue: Issue) -> BoardState:
    """
    Put ``issue`` in the bucket matching its status, removing any previous copy.

    Only the source and destination buckets are rebuilt; all other columns
    keep their tuples.
    """
    columns = dict(state.columns)
    orphans = state.orphans
    previous = state.find_issue(issue.id)

    if previous is not None:
        if previous.status in columns:
            columns[previous.status] = tuple(i for i in columns[previous.status] if i.id != issue.id)
        else:
            orphans = tuple(i for i in orphans if i.id != issue.id)

    if issue.status in columns:
        columns[issue.status] = sort_column(columns[issue.status] + (issue,))
    else:
        orphans = sort_column(orphans + (issue,))

    return replace(state, columns=columns, orphans=orphans)


class BoardSyncEngine:
    """
    Optimistic board state with snapshot rollback.

    Example:
        engine = BoardSyncEngine.from_config("project-1")
        await engine.refresh()
        await engine.move_issue("issue-7", "In Progress", target_index=0)
        engine.wip_state("In Progress")
    """

    def __init__(
        self,
        project_id: str,
        service: BoardService,
        limits: BoardLimits | None = None,
    ):
        """
        Initialize engine with a backend service.

        Args:
            project_id: Project whose board this engine owns
            service: Board backend implementing BoardService
            limits: Validation limits (defaults apply when None)
        """
        self.project_id = project_id
        self._service = service
        self._registry = StatusRegistry(limits)
        self._state = BoardState()
        self._loading = False
        self._error: str | None = None
        self._pending = 0
        self._listeners: list[Listener] = []
        self._log = get_logger("engine")

    @classmethod
    def from_config(cls, project_id: str, config_path: str | None = None) -> "BoardSyncEngine":
        """
        Create engine from configuration file.

        Loads config and instantiates the default service.

        Args:
            project_id: Project identifier
            config_path: Optional path to config file

        Returns:
            Configured BoardSyncEngine (not yet refreshed)

        Raises:
            ValueError: If service not supported
        """
        config = load_board_config(config_path)
        service_name = config.get("default_service") or "http"

        level = (config.get("logging") or {}).get("level")
        if level:
            set_level(level)

        limits = load_limits(config)
        service = cls._create_service(service_name, config, limits)
        return cls(project_id, service, limits=limits)

    @staticmethod
    def _create_service(name: str, config: dict, limits: BoardLimits | None = None) -> BoardService:
        """Create service instance by name."""
        if name == "http":
            from boardsync.kanban.services.http import HttpBoardService
            return HttpBoardService(get_service_config("http", config))

        if name == "kanboard":
            from boardsync.kanban.services.kanboard import KanboardBoardService
            return KanboardBoardService(get_service_config("kanboard", config))

        if name == "memory":
            from boardsync.kanban.services.memory import InMemoryBoardService
            return InMemoryBoardService.from_config(get_service_config("memory", config), limits)

        raise ValueError(f"Unknown service: {name}")

    # --- Read access ---

    @property
    def service_name(self) -> str:
        return self._service.name

    @property
    def state(self) -> BoardState:
        """Current BoardState (immutable; safe to keep as a snapshot)."""
        return self._state

    @property
    def columns(self) -> dict[str, tuple[Issue, ...]]:
        return dict(self._state.columns)

    @property
    def orphans(self) -> tuple[Issue, ...]:
        return self._state.orphans

    @property
    def statuses(self) -> tuple[CustomStatus, ...]:
        return self._state.statuses

    @property
    def wip_limits(self) -> dict[str, int | None]:
        return dict(self._state.wip_limits)

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def error(self) -> str | None:
        return self._error

    @property
    def pending(self) -> int:
        """Operations currently in the OPTIMISTIC phase."""
        return self._pending

    def wip_state(self, status: str) -> WipState:
        """Classify a column from its current length and limit."""
        return classify(self._state.count(status), self._state.wip_limits.get(status))

    def wip_states(self) -> dict[str, WipState]:
        return classify_board(self._state.columns, self._state.wip_limits)

    # --- Subscriptions ---

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register a listener called after every state change.

        Returns:
            Function that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, event: BoardEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                self._log.error(
                    f"Listener failed on {event.kind}",
                    project_id=self.project_id,
                    operation=event.operation,
                    error=str(e),
                )

    def _set_state(
        self,
        state: BoardState,
        kind: str,
        operation: str,
        phase: OperationPhase,
        error: BoardError | None = None,
    ) -> None:
        self._state = state
        self._emit(BoardEvent(kind=kind, operation=operation, phase=phase, state=state, error=error))

    # --- Refresh ---

    async def refresh(self) -> BoardState:
        """
        Re-fetch board, statuses and WIP limits and rebuild the board.

        All three fetches run concurrently. Nothing is applied unless all
        three succeed.

        Raises:
            BoardError: First failing fetch, after ``error`` is set
        """
        self._loading = True
        self._error = None
        pid = self.project_id
        try:
            try:
                board_response, statuses_response, limits_response = await asyncio.gather(
                    self._service.fetch_board(pid),
                    self._service.fetch_statuses(pid),
                    self._service.fetch_wip_limits(pid),
                )
                board = board_response.unwrap("Failed to load board")
                statuses = statuses_response.unwrap("Failed to load statuses")
                wip_limits = limits_response.unwrap("Failed to load WIP limits")
            except BoardError:
                raise
            except Exception as exc:
                raise TransportError(f"Failed to load board: {exc}") from exc
        except BoardError as err:
            self._error = err.message
            self._log.error("Board refresh failed", project_id=pid, code=err.code, error=err.message)
            raise
        finally:
            self._loading = False

        projection = project(flatten(board), statuses)
        state = BoardState(
            columns=projection.columns,
            orphans=projection.orphans,
            statuses=sort_statuses(statuses),
            wip_limits=dict(wip_limits),
        )
        if projection.orphans:
            self._log.warning(
                "Issues reference unknown statuses",
                project_id=pid,
                orphans=[i.id for i in projection.orphans],
            )
        self._set_state(state, "refreshed", "refresh", OperationPhase.IDLE)
        self._log.info(
            "Board refreshed",
            project_id=pid,
            columns=len(state.columns),
            issues=len(state.all_issues()),
        )
        return state

    # --- Operation runner ---

    async def _run(
        self,
        operation: str,
        optimistic: BoardState,
        call: Callable[[], Awaitable[ApiResponse[Any]]],
        confirm: Callable[[BoardState, Any], BoardState],
        default_message: str,
        require_data: bool = True,
        refresh_on_failure: bool = False,
    ) -> Any:
        """
        Apply ``optimistic``, await ``call``, then confirm or roll back.

        Args:
            operation: Name used in logs and events
            optimistic: State to show while the call is in flight
            call: Remote call returning an envelope
            confirm: Adopts server-assigned values into the then-current state
            default_message: Error message when the envelope has none
            require_data: A successful envelope without payload is a failure
            refresh_on_failure: Re-fetch everything after rolling back

        Returns:
            The envelope payload

        Raises:
            BoardError: After the snapshot has been restored
        """
        snapshot = self._state
        self._error = None
        self._pending += 1
        self._log.debug("Applying optimistic change", project_id=self.project_id,
                        operation=operation, phase=OperationPhase.OPTIMISTIC.value)
        self._set_state(optimistic, "optimistic", operation, OperationPhase.OPTIMISTIC)

        try:
            try:
                response = await call()
                payload = response.unwrap(default_message, require_data=require_data)
                confirmed = confirm(self._state, payload)
            except BoardError:
                raise
            except Exception as exc:
                raise TransportError(f"{default_message}: {exc}") from exc
        except BoardError as err:
            self._roll_back(operation, snapshot, err)
            if refresh_on_failure:
                await self._recover(err)
            raise
        finally:
            self._pending -= 1

        self._set_state(confirmed, "confirmed", operation, OperationPhase.CONFIRMED)
        self._log.info("Operation confirmed", project_id=self.project_id,
                       operation=operation, phase=OperationPhase.IDLE.value)
        return payload

    def _roll_back(self, operation: str, snapshot: BoardState, err: BoardError) -> None:
        self._error = err.message
        self._log.warning(
            "Rolling back optimistic change",
            project_id=self.project_id,
            operation=operation,
            phase=OperationPhase.ROLLING_BACK.value,
            code=err.code,
            error=err.message,
        )
        self._set_state(snapshot, "rolled_back", operation, OperationPhase.ROLLING_BACK, err)

    async def _recover(self, err: BoardError) -> None:
        """Refresh after a failed move; the move's error stays the reported one."""
        try:
            await self.refresh()
        except BoardError as refresh_err:
            self._log.error(
                "Refresh after rollback failed",
                project_id=self.project_id,
                code=refresh_err.code,
                error=refresh_err.message,
            )
        self._error = err.message

    # --- Issue moves ---

    async def move_issue(
        self,
        issue_id: str,
        to_status: str,
        target_index: int | None = None,
    ) -> Issue | None:
        """
        Move an issue to ``to_status`` at ``target_index``.

        A same-column drop without a position (or onto its own position) is
        a no-op: nothing changes and no remote call is made.

        Args:
            issue_id: Issue to move
            to_status: Destination status name
            target_index: Final index in the destination column; None appends

        Returns:
            Server copy of the moved issue, or None for a no-op

        Raises:
            NotFoundError: If the issue is not on the board
            ValidationError: If the destination status is unknown
            BoardError: Remote failure (board rolled back and refreshed)
        """
        issue = self._state.find_issue(issue_id)
        if issue is None:
            raise NotFoundError(f"Issue {issue_id} not found", "ISSUE_NOT_FOUND")
        if self._state.find_status_by_name(to_status) is None:
            raise ValidationError(f"Unknown status '{to_status}'", "INVALID_STATUS")

        delta = plan_move(issue, issue.status, to_status, target_index, self._state.columns)
        if delta.is_noop:
            self._log.debug("Move is a no-op", project_id=self.project_id, issue_id=issue_id)
            return None

        optimistic = place_issue(self._state, issue.moved(delta.to_status, delta.order))

        def confirm(state: BoardState, server_issue: Issue) -> BoardState:
            # Server order is authoritative
            status = server_issue.status or delta.to_status
            current = state.find_issue(server_issue.id)
            if current is None:
                return place_issue(state, server_issue.moved(status, server_issue.order))
            if current.status == status and current.order == server_issue.order:
                return state
            return place_issue(state, current.moved(status, server_issue.order))

        return await self._run(
            "move_issue",
            optimistic,
            lambda: self._service.update_issue(issue_id, delta.to_payload()),
            confirm,
            "Failed to move issue",
            refresh_on_failure=True,
        )

    # --- Status CRUD ---

    async def create_status(
        self,
        name: str,
        color: str | None = None,
        position: int | None = None,
    ) -> CustomStatus:
        """
        Create a custom status column.

        Raises:
            ValidationError: Bad name, duplicate, or too many custom statuses
            BoardError: Remote failure (rolled back)
        """
        cleaned = self._registry.validate_create(self._state, name)
        if position is None:
            position = max((s.position for s in self._state.statuses), default=-1) + 1

        provisional = CustomStatus(
            id=f"pending-{uuid.uuid4().hex[:8]}",
            name=cleaned,
            color=color,
            position=position,
            created_at=datetime.now(timezone.utc),
        )
        optimistic = self._registry.with_status_added(self._state, provisional)

        def confirm(state: BoardState, stored: CustomStatus) -> BoardState:
            if state.find_status(provisional.id) is not None:
                return self._registry.with_status_updated(state, provisional.id, stored)
            if state.find_status_by_name(stored.name) is None:
                return self._registry.with_status_added(state, stored)
            return state

        data: dict[str, Any] = {"name": cleaned, "order": position}
        if color is not None:
            data["color"] = color

        return await self._run(
            "create_status",
            optimistic,
            lambda: self._service.create_status(self.project_id, data),
            confirm,
            "Failed to create status",
        )

    async def update_status(
        self,
        status_id: str,
        name: str | None = None,
        color: str | None = None,
        position: int | None = None,
    ) -> CustomStatus:
        """
        Rename, recolor or reposition a status.

        A rename relabels every issue carrying the old name and re-keys its
        column in the same state transition.

        Raises:
            NotFoundError: Unknown status id
            ValidationError: Bad or duplicate name
            BoardError: Remote failure (rolled back)
        """
        current = self._registry.require_status(self._state, status_id)
        data: dict[str, Any] = {}
        updated = current
        if name is not None:
            cleaned = self._registry.validate_rename(self._state, status_id, name)
            data["name"] = cleaned
            updated = replace(updated, name=cleaned)
        if color is not None:
            data["color"] = color
            updated = replace(updated, color=color)
        if position is not None:
            data["order"] = position
            updated = replace(updated, position=position)

        optimistic = self._registry.with_status_updated(self._state, status_id, updated)

        def confirm(state: BoardState, stored: CustomStatus) -> BoardState:
            if state.find_status(status_id) is None:
                return state
            return self._registry.with_status_updated(state, status_id, replace(stored, id=status_id))

        result = await self._run(
            "update_status",
            optimistic,
            lambda: self._service.update_status(self.project_id, status_id, data),
            confirm,
            "Failed to update status",
        )
        if updated.name != current.name:
            self._log.info(
                "Status renamed",
                project_id=self.project_id,
                old_status=current.name,
                new_status=updated.name,
            )
        return result

    async def delete_status(self, status_id: str) -> None:
        """
        Delete an empty status column.

        Raises:
            NotFoundError: Unknown status id
            ConflictError: Issues still use the status (checked before any
                remote call, and again by the backend)
            BoardError: Remote failure (rolled back)
        """
        self._registry.check_deletable(self._state, status_id)
        optimistic = self._registry.with_status_removed(self._state, status_id)

        await self._run(
            "delete_status",
            optimistic,
            lambda: self._service.delete_status(self.project_id, status_id),
            lambda state, _payload: state,
            "Failed to delete status",
            require_data=False,
        )

    # --- WIP limits ---

    async def set_wip_limit(self, status: str, limit: int | None) -> None:
        """
        Set a column's WIP limit (None = unlimited). Display-only: moves are
        never blocked by it.

        Raises:
            ValidationError: Unknown status or limit outside 1..max
            BoardError: Remote failure (rolled back)
        """
        self._registry.validate_wip_limit(self._state, status, limit)
        optimistic = self._registry.with_wip_limit(self._state, status, limit)

        def confirm(state: BoardState, stored: dict) -> BoardState:
            return self._registry.with_wip_limit(
                state,
                stored.get("status") or status,
                stored.get("limit", limit),
            )

        await self._run(
            "set_wip_limit",
            optimistic,
            lambda: self._service.set_wip_limit(self.project_id, status, limit),
            confirm,
            "Failed to set WIP limit",
        )
