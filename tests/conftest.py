"""Pytest configuration for BoardSync tests."""
import asyncio
import sys
from pathlib import Path

import pytest

# Add project root to path so 'boardsync' can be imported
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from boardsync.kanban.engine import BoardSyncEngine  # noqa: E402
from boardsync.kanban.services.memory import InMemoryBoardService  # noqa: E402

PROJECT_ID = "proj-1"


def seed_project() -> dict:
    """Backlog=[A(1), B(2)], In Progress=[C(1)], Done=[]."""
    return {
        "statuses": [
            {"id": "s-backlog", "name": "Backlog", "position": 0},
            {"id": "s-progress", "name": "In Progress", "position": 1},
            {"id": "s-done", "name": "Done", "position": 2},
        ],
        "issues": [
            {"id": "A", "status": "Backlog", "order": 1, "title": "Alpha"},
            {"id": "B", "status": "Backlog", "order": 2, "title": "Bravo"},
            {"id": "C", "status": "In Progress", "order": 1, "title": "Charlie"},
        ],
        "wip_limits": {"In Progress": 2},
    }


@pytest.fixture
def service():
    """In-memory backend seeded with the standard three-column board."""
    service = InMemoryBoardService()
    service.load_project(PROJECT_ID, seed_project())
    return service


@pytest.fixture
def engine(service):
    """Engine refreshed from the seeded backend; recorded calls cleared."""
    engine = BoardSyncEngine(PROJECT_ID, service)
    asyncio.run(engine.refresh())
    service.calls.clear()
    return engine
