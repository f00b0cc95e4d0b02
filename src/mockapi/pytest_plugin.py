"""pytest integration: a ``mock_api`` fixture that asserts expectations at teardown."""

import pytest

from .common.errors import ExpectationsFailed
from .common.reporter import FailureCollector
from .mock.server import MockServer


class PytestReporter(FailureCollector):
    """Collects failures and fails the current test when checked."""

    def check(self) -> None:
        try:
            super().check()
        except ExpectationsFailed as e:
            pytest.fail(str(e), pytrace=False)


@pytest.fixture
def mock_api():
    """Started MockServer; teardown stops it and asserts every expectation."""
    server = MockServer(reporter=PytestReporter())
    server.start()
    yield server
    server.close()
