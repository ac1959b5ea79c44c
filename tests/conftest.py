"""
Shared test fixtures and configuration.
"""

import logging
from pathlib import Path

import pytest

from vpsforge.adapters.mock import MockAdapter
from vpsforge.adapters.registry import AdapterRegistry
from vpsforge.core.context import InstallContext, current_user


@pytest.fixture
def home(tmp_path: Path) -> Path:
    """A throwaway target home directory."""
    path = tmp_path / "home"
    path.mkdir()
    return path


@pytest.fixture
def install_ctx(tmp_path: Path, home: Path) -> InstallContext:
    """Run context targeting the current user with a temp home and logs dir."""
    return InstallContext(
        mode="vibe",
        target_user=current_user(),
        target_home=str(home),
        logs_dir=str(tmp_path / "logs"),
        extra_path=[],
    )


@pytest.fixture
def mock_adapter() -> MockAdapter:
    return MockAdapter()


@pytest.fixture
def mock_registry(mock_adapter: MockAdapter) -> AdapterRegistry:
    """Registry that routes every action to ``mock_adapter``."""
    registry = AdapterRegistry()
    registry.route_all(mock_adapter)
    return registry


@pytest.fixture(autouse=True)
def restore_root_logger():
    """CLI invocations reconfigure the root logger; put it back afterwards."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
