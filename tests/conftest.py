import logging
import os
import sys

import pytest

# Ensure the package and the test helpers are importable without installation
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from inheritable.config import invalidate_config_cache
from inheritable.store import SqliteStateStore


@pytest.fixture
def sqlite_store(tmp_path):
    store = SqliteStateStore(str(tmp_path / "state.db"))
    yield store
    store.close()


@pytest.fixture(autouse=True)
def _isolate_logging_and_cache():
    """CLI runs reconfigure the root logger; restore it after each test."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers = handlers
    root.setLevel(level)
    invalidate_config_cache()
