"""
Kanban Board Synchronization Package

Backend-agnostic board state for a project: status-keyed columns, optimistic
moves and status edits, WIP-limit display and rollback on failure.
Supports the REST backend and Kanboard out of the box.
"""

from boardsync.kanban.types import (
    BoardState,
    CustomStatus,
    Issue,
    MoveDelta,
    OperationPhase,
    WipState,
)
from boardsync.kanban.errors import (
    BoardError,
    ConflictError,
    NotFoundError,
    TransportError,
    ValidationError,
)
from boardsync.kanban.envelope import ApiError, ApiResponse
from boardsync.kanban.protocol import BoardService
from boardsync.kanban.config import BoardLimits, load_board_config, get_service_config
from boardsync.kanban.engine import BoardEvent, BoardSyncEngine

__all__ = [
    "BoardState",
    "CustomStatus",
    "Issue",
    "MoveDelta",
    "OperationPhase",
    "WipState",
    "BoardError",
    "ConflictError",
    "NotFoundError",
    "TransportError",
    "ValidationError",
    "ApiError",
    "ApiResponse",
    "BoardService",
    "BoardLimits",
    "load_board_config",
    "get_service_config",
    "BoardEvent",
    "BoardSyncEngine",
]
