"""Pytest configuration for machinery."""
import os

import pytest

from machinery.base.config import set_config


def pytest_configure():
    # Keep tool output relays quiet unless a test asks for more.
    os.environ.setdefault("MACHINERY_VERBOSE", "NOTICE")


@pytest.fixture(autouse=True)
def fresh_config():
    """Every test starts from a configuration rebuilt from the environment."""
    set_config(None)
    yield
    set_config(None)
