"""
Shared test setup.

Logging goes to the console only (no rotating files) for the whole session.
"""

import pytest

from Shared_Utils.logger import setup_structured_logging


@pytest.fixture(scope="session", autouse=True)
def quiet_logging():
    """Console-only logging at WARNING for the test session"""
    return setup_structured_logging(console_level='WARNING', use_json=False, write_files=False)
