"""
Pytest configuration for the toolstream test suite.

Async tests are marked ``@pytest.mark.anyio`` and run on the asyncio backend
only.
"""

import pytest


@pytest.fixture
def anyio_backend():
    return "asyncio"
