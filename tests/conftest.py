"""Shared fixtures for streamfilter tests."""

import pytest

from streamfilter import FailureEvent, open_memory
from streamfilter.config import clear_config_instance


@pytest.fixture(autouse=True)
def cleanup(monkeypatch, tmp_path):
    """Isolate tests from user configuration and reset the config singleton."""
    monkeypatch.delenv("STREAMFILTER_CONFIG_DIR", raising=False)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    clear_config_instance()
    yield
    clear_config_instance()


@pytest.fixture
def stream():
    """Open in-memory stream, closed after the test if still open."""
    s = open_memory()
    yield s
    s.close()


@pytest.fixture
def failures(stream) -> list[FailureEvent]:
    """Failure events reported on the stream fixture."""
    events: list[FailureEvent] = []
    stream.on_failure(events.append)
    return events
