"""
Board projection: flat issue collection -> status-keyed columns.

Pure functions, safe to call on every fetch and every optimistic patch.
"""

from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

from boardsync.kanban.types import CustomStatus, Issue


@dataclass(frozen=True)
class Projection:
    """Columns for every known status plus the orphan bucket."""
    columns: dict[str, tuple[Issue, ...]] = field(default_factory=dict)
    orphans: tuple[Issue, ...] = ()


def sort_column(issues: Iterable[Issue]) -> tuple[Issue, ...]:
    """Sort by ascending order, ties broken by id."""
    return tuple(sorted(issues, key=Issue.sort_key))


def sort_statuses(statuses: Iterable[CustomStatus]) -> tuple[CustomStatus, ...]:
    """Column display order."""
    return tuple(sorted(statuses, key=lambda s: (s.position, s.name)))


def project(issues: Iterable[Issue], statuses: Iterable[CustomStatus]) -> Projection:
    """
    Partition issues into one bucket per known status.

    Every known status gets a bucket even when empty. Issues whose status
    matches no known name go to the orphan bucket instead of being dropped.

    Args:
        issues: Flat issue collection
        statuses: Known statuses for the project

    Returns:
        Projection with sorted columns and sorted orphans
    """
    buckets: dict[str, list[Issue]] = {s.name: [] for s in sort_statuses(statuses)}
    orphans: list[Issue] = []

    for issue in issues:
        bucket = buckets.get(issue.status)
        if bucket is None:
            orphans.append(issue)
        else:
            bucket.append(issue)

    return Projection(
        columns={name: sort_column(bucket) for name, bucket in buckets.items()},
        orphans=sort_column(orphans),
    )


def flatten(board: Mapping[str, Iterable[Any]]) -> list[Issue]:
    """
    Flatten a fetched board payload into issues.

    The backend groups by status already, but the grouping key is not
    trusted: each issue keeps its own status field, falling back to the
    bucket key only when the field is missing.
    """
    issues: list[Issue] = []
    for status, raw_issues in board.items():
        for raw in raw_issues or []:
            issue = raw if isinstance(raw, Issue) else Issue.from_dict(raw)
            if not issue.status:
                issue = issue.moved(status, issue.order)
            issues.append(issue)
    return issues
