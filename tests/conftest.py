"""Shared fixtures for configfacade tests."""

import pytest


class Recorder:
    """Callback that records everything delivered to it."""

    def __init__(self):
        self.values = []
        self.errors = []

    def on_success(self, value):
        self.values.append(value)

    def on_failure(self, error):
        self.errors.append(error)


@pytest.fixture
def recorder_factory():
    """Create independent recording callbacks."""
    return Recorder


@pytest.fixture
def recorder():
    """A single recording callback."""
    return Recorder()
