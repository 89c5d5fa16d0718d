"""
Move planner: drag-drop gesture -> MoveDelta.

Only the moved issue receives a new order value. Neighbours are never
renumbered, so a failed move can never leave a partially renumbered column.
"""

import math
from typing import Mapping, Sequence

from boardsync.kanban.types import Issue, MoveDelta


def order_between(above: float | None, below: float | None) -> float:
    """
    Order value for a card placed between two neighbours.

    Args:
        above: Order of the card that will sit above (None at index 0)
        below: Order of the card that will sit below (None at end of list)

    Returns:
        Midpoint when one exists strictly between the neighbours, an integer
        step past the boundary at either end, 0 for an empty column.
    """
    if above is None and below is None:
        return 0
    if above is None:
        return math.ceil(below) - 1
    if below is None:
        return math.floor(above) + 1

    midpoint = (above + below) / 2
    if above < midpoint < below:
        return midpoint
    # No denser value: equal neighbours or float exhaustion. The id tie-break
    # decides the final place inside the tie group.
    return above


def append_order(column: Sequence[Issue]) -> float:
    """Order that places a card after the current maximum."""
    if not column:
        return 0
    return math.floor(max(i.order for i in column)) + 1


def plan_move(
    issue: Issue,
    from_status: str,
    to_status: str,
    target_index: int | None,
    columns: Mapping[str, Sequence[Issue]],
) -> MoveDelta:
    """
    Compute the delta for dropping ``issue`` on ``to_status``.

    Args:
        issue: The dragged issue
        from_status: Column the drag started in
        to_status: Column the card was dropped on
        target_index: Final position of the card in the destination column,
            counted without the card itself; None appends (cross-column) or
            means "no position" (same column)
        columns: Current sorted columns

    Returns:
        MoveDelta; ``is_noop`` when nothing should change or be synchronized
    """
    destination = [i for i in columns.get(to_status, ()) if i.id != issue.id]

    if from_status == to_status:
        if target_index is None:
            return MoveDelta.noop(issue.id, from_status)
        current = [i.id for i in columns.get(from_status, ())]
        if issue.id in current and current.index(issue.id) == _clamp(target_index, len(destination)):
            return MoveDelta.noop(issue.id, from_status)

    if target_index is None:
        order = append_order(destination)
    else:
        index = _clamp(target_index, len(destination))
        above = destination[index - 1].order if index > 0 else None
        below = destination[index].order if index < len(destination) else None
        order = order_between(above, below)

    # Same order in the same column sorts back into the same slot
    if from_status == to_status and order == issue.order:
        return MoveDelta.noop(issue.id, from_status)

    return MoveDelta(
        issue_id=issue.id,
        from_status=from_status,
        to_status=to_status,
        order=order,
    )


def _clamp(index: int, size: int) -> int:
    return max(0, min(index, size))
