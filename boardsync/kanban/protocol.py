"""
Board Service Protocol.

Defines the interface that all board backends must implement.
Uses Python's Protocol for structural typing - services don't need
to explicitly inherit from this class.
"""

from typing import Any, Protocol, runtime_checkable

from boardsync.kanban.envelope import ApiResponse
from boardsync.kanban.types import CustomStatus, Issue


@runtime_checkable
class BoardService(Protocol):
    """
    Backend-agnostic interface for the shared board backend.

    Implementations include:
    - HttpBoardService (REST backend of the web application)
    - KanboardBoardService (Kanboard JSON-RPC)
    - InMemoryBoardService (tests and offline use)

    Every method is a coroutine and returns an ApiResponse envelope.
    Remote failures are reported as ``success=False`` envelopes, never raised.
    """

    @property
    def name(self) -> str:
        """
        Service identifier.

        Returns:
            Service name (e.g., "http", "kanboard", "memory")
        """
        ...

    # --- Read Operations ---

    async def fetch_board(self, project_id: str) -> ApiResponse[dict[str, list[Issue]]]:
        """
        Fetch all issues of a project grouped by status name.

        Args:
            project_id: Project identifier

        Returns:
            Envelope with status name -> issue list
        """
        ...

    async def fetch_statuses(self, project_id: str) -> ApiResponse[list[CustomStatus]]:
        """
        Fetch the project's statuses in column order.

        Args:
            project_id: Project identifier

        Returns:
            Envelope with ordered CustomStatus list
        """
        ...

    async def fetch_wip_limits(self, project_id: str) -> ApiResponse[dict[str, int | None]]:
        """
        Fetch WIP limits keyed by status name.

        Args:
            project_id: Project identifier

        Returns:
            Envelope with status name -> limit (None = unlimited)
        """
        ...

    # --- Issue Moves ---

    async def update_issue(self, issue_id: str, changes: dict[str, Any]) -> ApiResponse[Issue]:
        """
        Persist a move.

        Args:
            issue_id: Issue identifier
            changes: ``{"status": str, "order": number}``

        Returns:
            Envelope with the updated Issue (server-assigned order)
        """
        ...

    # --- Status CRUD ---

    async def create_status(self, project_id: str, data: dict[str, Any]) -> ApiResponse[CustomStatus]:
        """
        Create a custom status.

        Args:
            project_id: Project identifier
            data: ``{"name": str, "color"?: str, "order"?: int}``

        Returns:
            Envelope with the stored CustomStatus (server id)
        """
        ...

    async def update_status(
        self,
        project_id: str,
        status_id: str,
        data: dict[str, Any],
    ) -> ApiResponse[CustomStatus]:
        """
        Update name, color or order of a status.

        Args:
            project_id: Project identifier
            status_id: Status identifier
            data: Partial fields

        Returns:
            Envelope with the stored CustomStatus
        """
        ...

    async def delete_status(self, project_id: str, status_id: str) -> ApiResponse[None]:
        """
        Delete a status. Backends must reject deletion while issues use it.

        Args:
            project_id: Project identifier
            status_id: Status identifier

        Returns:
            Envelope; failure code STATUS_IN_USE / CONFLICT when referenced
        """
        ...

    # --- WIP Limits ---

    async def set_wip_limit(
        self,
        project_id: str,
        status: str,
        limit: int | None,
    ) -> ApiResponse[dict[str, Any]]:
        """
        Set or clear a column's WIP limit.

        Args:
            project_id: Project identifier
            status: Status name
            limit: 1-50, or None for unlimited

        Returns:
            Envelope with ``{"status": str, "limit": int | None}``
        """
        ...
