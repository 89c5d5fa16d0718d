"""
Unit tests for the move planner.
"""

import math

import pytest

from boardsync.kanban.planner import append_order, order_between, plan_move
from boardsync.kanban.types import Issue


def _columns() -> dict[str, tuple[Issue, ...]]:
    return {
        "Backlog": (Issue(id="A", status="Backlog", order=1), Issue(id="B", status="Backlog", order=2)),
        "In Progress": (Issue(id="C", status="In Progress", order=1),),
        "Done": (),
    }


def _issue(columns, issue_id: str) -> Issue:
    for column in columns.values():
        for issue in column:
            if issue.id == issue_id:
                return issue
    raise KeyError(issue_id)


class TestOrderBetween:
    """Test order_between()."""

    @pytest.mark.parametrize("above,below,expected", [
        (None, None, 0),
        (None, 1, 0),
        (None, 1.5, 1),
        (None, -2, -3),
        (2, None, 3),
        (2.5, None, 3),
        (1, 2, 1.5),
        (1, 1.5, 1.25),
    ])
    def test_values(self, above, below, expected):
        assert order_between(above, below) == expected

    def test_equal_neighbours_take_upper_order(self):
        assert order_between(4, 4) == 4

    def test_float_exhaustion_takes_upper_order(self):
        """No representable value between adjacent floats."""
        above = 1.0
        below = math.nextafter(1.0, 2.0)
        assert order_between(above, below) == above


class TestAppendOrder:
    """Test append_order()."""

    def test_empty_column(self):
        assert append_order(()) == 0

    def test_after_max(self):
        column = (Issue(id="x", status="s", order=2.5), Issue(id="y", status="s", order=1))
        assert append_order(column) == 3


class TestPlanMove:
    """Test plan_move()."""

    def test_cross_column_move_to_top(self):
        """Moving A to index 0 of In Progress puts it above C."""
        columns = _columns()
        delta = plan_move(_issue(columns, "A"), "Backlog", "In Progress", 0, columns)

        assert delta.issue_id == "A"
        assert delta.to_status == "In Progress"
        assert delta.order < 1

    def test_cross_column_append(self):
        columns = _columns()
        delta = plan_move(_issue(columns, "A"), "Backlog", "In Progress", None, columns)
        assert delta.order == 2

    def test_move_into_empty_column(self):
        columns = _columns()
        delta = plan_move(_issue(columns, "C"), "In Progress", "Done", 0, columns)
        assert delta.order == 0

    def test_target_index_clamped_to_end(self):
        columns = _columns()
        delta = plan_move(_issue(columns, "A"), "Backlog", "In Progress", 99, columns)
        assert delta.order == 2

    def test_negative_index_clamped_to_top(self):
        columns = _columns()
        delta = plan_move(_issue(columns, "A"), "Backlog", "In Progress", -5, columns)
        assert delta.order == 0

    def test_same_column_without_index_is_noop(self):
        columns = _columns()
        delta = plan_move(_issue(columns, "A"), "Backlog", "Backlog", None, columns)
        assert delta.is_noop

    def test_same_column_same_index_is_noop(self):
        columns = _columns()
        delta = plan_move(_issue(columns, "B"), "Backlog", "Backlog", 1, columns)
        assert delta.is_noop

    def test_same_column_tie_group_is_noop(self):
        """C between two equal-order neighbours sorts back into its own slot."""
        columns = {
            "Backlog": tuple(Issue(id=i, status="Backlog", order=1) for i in ["A", "B", "C"]),
        }
        delta = plan_move(_issue(columns, "C"), "Backlog", "Backlog", 1, columns)
        assert delta.is_noop

    def test_cross_column_tie_is_not_noop(self):
        columns = {
            "Backlog": (Issue(id="A", status="Backlog", order=1),),
            "Done": (Issue(id="B", status="Done", order=1), Issue(id="C", status="Done", order=1)),
        }
        delta = plan_move(_issue(columns, "A"), "Backlog", "Done", 1, columns)
        assert not delta.is_noop
        assert delta.order == 1

    def test_same_column_reorder(self):
        """B to the top of its own column gets an order below A's."""
        columns = _columns()
        delta = plan_move(_issue(columns, "B"), "Backlog", "Backlog", 0, columns)
        assert not delta.is_noop
        assert delta.order < 1

    def test_reorder_between_neighbours(self):
        columns = {
            "Backlog": tuple(
                Issue(id=i, status="Backlog", order=n) for n, i in enumerate(["w", "x", "y", "z"], start=1)
            ),
        }
        # z (order 4) between w (1) and x (2); index counted without z
        delta = plan_move(_issue(columns, "z"), "Backlog", "Backlog", 1, columns)
        assert delta.order == 1.5

    def test_only_moved_issue_changes(self):
        """Neighbours keep their order values."""
        columns = _columns()
        before = {i.id: i.order for c in columns.values() for i in c}
        delta = plan_move(_issue(columns, "A"), "Backlog", "In Progress", 0, columns)

        assert delta.issue_id == "A"
        after = {i.id: i.order for c in columns.values() for i in c}
        assert after == before
