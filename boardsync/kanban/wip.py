"""WIP limit classification. Derived view only: recompute on every render."""

from typing import Mapping, Sequence

from boardsync.kanban.types import WipState


def classify(count: int, limit: int | None) -> WipState:
    """
    Classify a column's issue count against its WIP limit.

    Args:
        count: Current number of issues in the column
        limit: Maximum count, or None for unlimited

    Returns:
        WITHIN_LIMIT, AT_LIMIT or OVER_LIMIT
    """
    if limit is None:
        return WipState.WITHIN_LIMIT
    if count > limit:
        return WipState.OVER_LIMIT
    if count == limit:
        return WipState.AT_LIMIT
    return WipState.WITHIN_LIMIT


def usage_ratio(count: int, limit: int | None) -> float | None:
    """Fill fraction for a progress bar, capped at 1.0; None when unlimited."""
    if limit is None or limit <= 0:
        return None
    return min(count / limit, 1.0)


def classify_board(
    columns: Mapping[str, Sequence],
    wip_limits: Mapping[str, int | None],
) -> dict[str, WipState]:
    """Classify every column of a board."""
    return {
        status: classify(len(issues), wip_limits.get(status))
        for status, issues in columns.items()
    }
