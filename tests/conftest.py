"""
Shared test fixtures and configuration for claude-code-step tests.
"""

# Note: config.py skips the default config.yaml automatically under pytest
# unless CLAUDE_STEP_CONFIG_FILE is set, so a local config cannot leak in.
import sys
import textwrap
from pathlib import Path

import pytest

# Add project root to path for imports
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))


@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Each test sees settings built from its own environment."""
    from claude_code_step.config import get_settings

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def mock_env(monkeypatch):
    """Set up test environment variables."""
    test_env = {
        "CLAUDE_CLI_PATH": "/opt/claude/bin/claude",
        "CLAUDE_TIMEOUT": "42",
        "LOG_LEVEL": "WARNING",  # Reduce noise in tests
    }
    for key, value in test_env.items():
        monkeypatch.setenv(key, value)
    return test_env


@pytest.fixture
def python_runner():
    """ProcessRunner whose 'CLI' is the current Python interpreter."""
    from claude_code_step.process_runner import ProcessRunner

    return ProcessRunner(executable=sys.executable)


@pytest.fixture
def script_args():
    """Build `-c <code>` arguments for python_runner from an indented snippet."""

    def _build(code: str):
        return ["-c", textwrap.dedent(code)]

    return _build
