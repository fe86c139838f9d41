import asyncio
import os
import sys

import pytest

# Make `from _utils import ...` work regardless of how pytest was invoked.
sys.path.insert(0, os.path.dirname(__file__))


@pytest.fixture
def event_loop():
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    yield loop
    loop.close()
