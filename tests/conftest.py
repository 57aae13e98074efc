# tests/conftest.py
import pytest

from vent.core import log, metrics
from vent.core.default import reset_default


@pytest.fixture(scope="session", autouse=True)
def _bootstrap_logging():
    # reads LOG_LEVEL / LOG_JSON / .env if present
    log.setup()
    yield


@pytest.fixture(autouse=True)
def _fresh_state():
    metrics.reset()
    reset_default()
    yield
    reset_default()


@pytest.fixture
def calls():
    return []


@pytest.fixture
def rec(calls):
    """rec(name, result) -> processor that logs (name, event) into calls and returns result."""
    def make(name, result=False):
        def processor(ev):
            calls.append((name, ev))
            return result
        processor.__qualname__ = name
        return processor
    return make
