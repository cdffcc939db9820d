"""
Global pytest configuration for appctl tests.

Keeps the suite independent of the developer's environment (APPCTL_* variables
and ~/.appctl/config.yaml) and provides a fake clock so convergence polling
runs without real delays.
"""

import os

import pytest

from appctl.polling import Clock


class FakeClock(Clock):
    """Clock whose time only moves when sleep() is called."""

    def __init__(self, start: float = 0.0):
        self.current = start
        self.sleeps = []

    def now(self) -> float:
        return self.current

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.current += seconds


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch, tmp_path):
    """Remove APPCTL_* settings and point the config file at an empty location."""
    for name in list(os.environ):
        if name.startswith("APPCTL_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("APPCTL_CONFIG", str(tmp_path / "missing-config.yaml"))
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    monkeypatch.delenv("LOG_FORMAT", raising=False)


@pytest.fixture
def clock():
    """A FakeClock starting at t=0."""
    return FakeClock()
