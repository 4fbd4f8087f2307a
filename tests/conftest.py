"""Pytest configuration and shared fixtures for DeployDeck tests."""

import os
import shutil
import tempfile
from collections.abc import Generator
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, patch

import pytest

from deploydeck.deploy.executor import RemoteExecutor, SSHResult
from deploydeck.models.deployment import DeployConfig


@pytest.fixture
def temp_dir() -> Generator[Path]:
    """Create a temporary directory for test file operations.

    Yields:
        Path to temporary directory

    Cleanup:
        Automatically removes directory after test
    """
    tmp = Path(tempfile.mkdtemp())
    yield tmp
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def isolated_env() -> Generator[dict[str, str]]:
    """Provide isolated environment variables for testing.

    Saves current environment and restores after test.

    Yields:
        Dictionary of original environment variables
    """
    original_env = os.environ.copy()
    yield original_env
    os.environ.clear()
    os.environ.update(original_env)


@pytest.fixture
def config_data() -> dict[str, Any]:
    """Raw configuration mapping as written in deploy.yaml (camelCase keys)."""
    return {
        "host": "debian@beaglebone.local",
        "project": "bbgw",
        "baseDir": "/home/debian/deploy",
        "keepHours": 48,
        "services": [
            {
                "name": "api",
                "label": "API Server",
                "exec": {"command": "/usr/bin/node", "args": ["server.js"]},
                "sync": [{"from": "dist", "to": "."}],
                "requires": [".db"],
                "env": {"PORT": "8080"},
            },
            {
                "name": "db",
                "label": "Database",
                "exec": {"command": "/usr/bin/redis-server"},
            },
        ],
    }


@pytest.fixture
def deploy_config(config_data: dict[str, Any]) -> DeployConfig:
    """Validated two-service deployment configuration."""
    return DeployConfig.model_validate(config_data)


@pytest.fixture
def mock_invoke() -> Generator[AsyncMock]:
    """Patch the transport so no ssh process is spawned.

    Tests set ``return_value`` or ``side_effect`` to script the remote
    side; each call receives ``(host, script, input)``.
    """
    invoke = AsyncMock(return_value=SSHResult(stdout="", stderr=""))
    with patch.object(RemoteExecutor, "_invoke", new=invoke):
        yield invoke


# Configure pytest
def pytest_configure(config: Any) -> None:
    """Configure pytest with marker options."""
    config.addinivalue_line(
        "markers",
        "slow: marks tests as slow (deselect with '-m \"not slow\"')",
    )
    config.addinivalue_line(
        "markers",
        "integration: marks tests as integration tests",
    )
    config.addinivalue_line(
        "markers",
        "unit: marks tests as unit tests",
    )


def pytest_pycollect_makeitem(collector: Any, name: str, obj: Any) -> Any:
    """Hook to prevent collection of classes with __init__ constructors.

    Keeps pytest from collecting non-test classes whose names start with
    'Test'.
    """
    if isinstance(obj, type) and name.startswith("Test") and "__init__" in obj.__dict__:
        return None
    return None
