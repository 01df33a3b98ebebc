"""
Shared fixtures for the live exporter E2E scenarios.

The live suite needs Docker, the Go toolchain and the exporter sources, so it
only runs when EXPORTER_E2E=1. Settings come from e2e/.env.test and the
environment (see e2e/runner/settings.py).
"""

import os

import pytest

from e2e.runner.errors import SetupError
from e2e.runner.runner import SuiteRunner
from e2e.runner.settings import load_settings

LIVE_ENABLED = os.environ.get("EXPORTER_E2E", "") == "1"


def pytest_configure(config):
    config.addinivalue_line("markers", "e2e: live suite against a real broker and exporter")


def pytest_collection_modifyitems(config, items):
    if LIVE_ENABLED:
        return
    skip_live = pytest.mark.skip(reason="set EXPORTER_E2E=1 to run the live exporter suite")
    for item in items:
        # keywords also hold parent directory names, and every test lives under e2e/
        if item.get_closest_marker("e2e") is not None:
            item.add_marker(skip_live)


@pytest.fixture(scope="session")
def suite_runner():
    """Broker container + built exporter shared by every scenario (session scope)."""
    runner = SuiteRunner(load_settings())
    try:
        runner.setup()
    except SetupError as e:
        runner.teardown()
        pytest.exit(f"E2E setup failed: {e}", returncode=2)
    yield runner
    runner.teardown()
