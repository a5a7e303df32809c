"""
Pytest configuration and shared fixtures.
"""

import sys
from pathlib import Path

# Add backend to path
backend_path = Path(__file__).parent.parent
sys.path.insert(0, str(backend_path))

# Import fixtures
from tests.fixtures.exercise_fixtures import (
    call_log,
    container_host,
    controller,
    fixed_flags,
    library,
    network,
    registry,
    web_exercise,
    vm_only_exercise,
)

__all__ = [
    "call_log",
    "container_host",
    "controller",
    "fixed_flags",
    "library",
    "network",
    "registry",
    "web_exercise",
    "vm_only_exercise",
]


def pytest_configure(config):
    """Configure pytest."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
