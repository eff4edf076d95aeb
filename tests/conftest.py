"""Suite-wide pytest hooks for devlink."""

import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


def pytest_addoption(parser):
    parser.addoption(
        "--run-hardware",
        action="store_true",
        default=False,
        help="also run tests that talk to a real USB device",
    )


def pytest_collection_modifyitems(config, items):
    """Hardware tests are skipped unless --run-hardware is given."""
    if config.getoption("--run-hardware"):
        return
    skip = pytest.mark.skip(reason="needs --run-hardware and an attached device")
    for item in items:
        if item.get_closest_marker("hardware"):
            item.add_marker(skip)


@pytest.fixture
def project_root() -> Path:
    return PROJECT_ROOT
