"""
Unit tests for the status registry.
"""

import pytest

from boardsync.kanban.config import BoardLimits
from boardsync.kanban.errors import ConflictError, NotFoundError, ValidationError
from boardsync.kanban.projection import project
from boardsync.kanban.registry import StatusRegistry
from boardsync.kanban.types import BoardState, CustomStatus, Issue


def _state(issues=None, statuses=None, wip_limits=None) -> BoardState:
    statuses = statuses or [
        CustomStatus(id="s1", name="Backlog", position=0),
        CustomStatus(id="s2", name="In Progress", position=1),
        CustomStatus(id="s3", name="Done", position=2),
    ]
    issues = issues if issues is not None else [
        Issue(id="1", status="Backlog", order=1),
        Issue(id="2", status="In Progress", order=1),
        Issue(id="3", status="In Progress", order=2),
        Issue(id="4", status="Doing", order=1),
    ]
    projection = project(issues, statuses)
    return BoardState(
        columns=projection.columns,
        orphans=projection.orphans,
        statuses=tuple(statuses),
        wip_limits=wip_limits or {},
    )


@pytest.fixture
def registry():
    return StatusRegistry()


class TestNameValidation:
    """Test name rules."""

    def test_name_trimmed(self, registry):
        assert registry.normalize_name("  Review  ") == "Review"

    @pytest.mark.parametrize("name", ["", "   ", None, "x" * 31])
    def test_invalid_length(self, registry, name):
        with pytest.raises(ValidationError) as exc:
            registry.normalize_name(name)
        assert exc.value.code == "INVALID_STATUS_NAME"

    def test_thirty_characters_allowed(self, registry):
        assert registry.normalize_name("x" * 30) == "x" * 30

    def test_duplicate_rejected(self, registry):
        with pytest.raises(ValidationError) as exc:
            registry.validate_create(_state(), " Done ")
        assert exc.value.code == "DUPLICATE_STATUS"

    def test_uniqueness_is_exact_match(self, registry):
        assert registry.validate_create(_state(), "done") == "done"

    def test_custom_status_cap(self):
        registry = StatusRegistry(BoardLimits(max_custom_statuses=1))
        state = _state(statuses=[
            CustomStatus(id="s1", name="Backlog"),
            CustomStatus(id="s4", name="Review"),
        ])
        with pytest.raises(ValidationError) as exc:
            registry.validate_create(state, "QA")
        assert exc.value.code == "MAX_STATUSES"

    def test_default_statuses_not_counted(self, registry):
        assert registry.custom_count(_state()) == 0

    def test_rename_to_own_name_allowed(self, registry):
        assert registry.validate_rename(_state(), "s2", "In Progress") == "In Progress"

    def test_rename_to_other_name_rejected(self, registry):
        with pytest.raises(ValidationError):
            registry.validate_rename(_state(), "s2", "Done")

    def test_rename_unknown_status(self, registry):
        with pytest.raises(NotFoundError):
            registry.validate_rename(_state(), "nope", "Review")


class TestWipValidation:
    """Test validate_wip_limit()."""

    @pytest.mark.parametrize("limit", [1, 50, None])
    def test_valid(self, registry, limit):
        registry.validate_wip_limit(_state(), "Done", limit)

    @pytest.mark.parametrize("limit", [0, 51, -1, True, "3", 2.5])
    def test_invalid(self, registry, limit):
        with pytest.raises(ValidationError) as exc:
            registry.validate_wip_limit(_state(), "Done", limit)
        assert exc.value.code == "INVALID_WIP_LIMIT"

    def test_unknown_status(self, registry):
        with pytest.raises(ValidationError) as exc:
            registry.validate_wip_limit(_state(), "Nope", 3)
        assert exc.value.code == "INVALID_STATUS"


class TestDeleteCheck:
    """Test check_deletable()."""

    def test_in_use(self, registry):
        with pytest.raises(ConflictError) as exc:
            registry.check_deletable(_state(), "s2")
        assert exc.value.code == "STATUS_IN_USE"
        assert "2 issue(s)" in exc.value.message

    def test_empty_status(self, registry):
        assert registry.check_deletable(_state(), "s3").name == "Done"

    def test_unknown(self, registry):
        with pytest.raises(NotFoundError):
            registry.check_deletable(_state(), "missing")


class TestTransforms:
    """Test BoardState transforms."""

    def test_add_status_adopts_orphans(self, registry):
        state = registry.with_status_added(_state(), CustomStatus(id="s9", name="Doing", position=3))
        assert [i.id for i in state.columns["Doing"]] == ["4"]
        assert state.orphans == ()
        assert list(state.columns)[-1] == "Doing"

    def test_rename_cascade(self, registry):
        """Old bucket gone, new bucket holds the relabeled issues."""
        before = _state()
        renamed = CustomStatus(id="s2", name="Active", position=1)
        state = registry.with_status_updated(before, "s2", renamed)

        assert "In Progress" not in state.columns
        assert [i.id for i in state.columns["Active"]] == ["2", "3"]
        assert all(i.status == "Active" for i in state.columns["Active"])
        assert state.find_status("s2").name == "Active"
        assert list(state.columns) == ["Backlog", "Active", "Done"]

    def test_rename_merges_orphans_with_new_name(self, registry):
        renamed = CustomStatus(id="s2", name="Doing", position=1)
        state = registry.with_status_updated(_state(), "s2", renamed)
        assert [i.id for i in state.columns["Doing"]] == ["2", "4", "3"]
        assert state.orphans == ()

    def test_rename_leaves_other_columns_untouched(self, registry):
        before = _state()
        state = registry.with_status_updated(before, "s2", CustomStatus(id="s2", name="Active", position=1))
        assert state.columns["Backlog"] is before.columns["Backlog"]

    def test_rename_does_not_touch_source_state(self, registry):
        before = _state()
        registry.with_status_updated(before, "s2", CustomStatus(id="s2", name="Active", position=1))
        assert "In Progress" in before.columns

    def test_recolor_keeps_issues(self, registry):
        state = registry.with_status_updated(_state(), "s3", CustomStatus(id="s3", name="Done", color="#0f0", position=2))
        assert state.find_status("s3").color == "#0f0"
        assert state.columns["Done"] == ()

    def test_remove_empty_status(self, registry):
        state = registry.with_status_removed(_state(), "s3")
        assert "Done" not in state.columns
        assert state.find_status("s3") is None

    def test_remove_non_empty_status(self, registry):
        with pytest.raises(ConflictError):
            registry.with_status_removed(_state(), "s1")

    def test_with_wip_limit(self, registry):
        before = _state(wip_limits={"Done": 2})
        state = registry.with_wip_limit(before, "In Progress", None)
        assert state.wip_limits == {"Done": 2, "In Progress": None}
        assert before.wip_limits == {"Done": 2}
