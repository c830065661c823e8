"""
Pytest configuration and shared fixtures for the journeymap test suite.
"""
import sys
from pathlib import Path

import pytest

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))


@pytest.fixture(autouse=True)
def reset_global_state():
    """Reset the global mutation logger before each test to ensure isolation."""
    import infrastructure.logger as mutation_log

    mutation_log._global_logger = None

    yield

    if mutation_log._global_logger is not None:
        mutation_log._global_logger.close()
    mutation_log._global_logger = None


@pytest.fixture
def sample_tree():
    """The stock loyalty journey (n1..n8)."""
    from core.schemas import sample_journey
    return sample_journey()


@pytest.fixture
def ids(sample_tree):
    """Id generator seeded past every id in the sample journey."""
    from core.schemas import IdGenerator
    return IdGenerator.after(sample_tree)


@pytest.fixture
def two_level_tree():
    """root(action) -> [A(action), B(action)], no branches."""
    from core.schemas import JourneyNode
    return JourneyNode(
        id="root",
        kind="action",
        title="Root",
        children=[
            JourneyNode(id="A", kind="action", title="A", children=[]),
            JourneyNode(id="B", kind="action", title="B", children=[]),
        ],
    )


@pytest.fixture
def layout_config():
    from core.layout import LayoutConfig
    return LayoutConfig()


@pytest.fixture
def events():
    """A fresh in-memory mutation logger."""
    from infrastructure.logger import MutationLogger
    logger = MutationLogger()
    yield logger
    logger.close()


@pytest.fixture
def editor(sample_tree, events):
    """Editor over the sample journey with invariant checking enabled."""
    from core.editor import JourneyEditor
    return JourneyEditor(sample_tree, events=events, validate_after_mutation=True)
