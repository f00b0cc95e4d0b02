"""
mockapi Failure Reporting

Reporters receive failures detected while serving traffic or asserting
expectations. The server thread cannot fail a test directly, so failures are
collected and surfaced on the test's thread by ``check()``.
"""

import logging
import threading
from abc import ABC, abstractmethod
from typing import List, Optional

from .errors import ExpectationsFailed, MockAPIError


logger = logging.getLogger("mockapi.reporter")


class Reporter(ABC):
    """Destination for mock API failures."""

    @abstractmethod
    def report(self, error: MockAPIError) -> None:
        """Record a failure."""

    def check(self) -> None:
        """Surface recorded failures, if the reporter defers them."""


class FailureCollector(Reporter):
    """
    Thread-safe reporter that stores failures until checked.

    Every failure is logged as soon as it is reported. ``check()`` raises
    ExpectationsFailed with everything collected so far and clears the store,
    so each failure is surfaced once.

    Example:
        collector = FailureCollector()
        server = MockServer(reporter=collector)
        ...
        collector.check()  # raises if any request went wrong
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._failures: List[MockAPIError] = []

    def report(self, error: MockAPIError) -> None:
        logger.error(f"{type(error).__name__}: {error}")
        with self._lock:
            self._failures.append(error)

    @property
    def failures(self) -> List[MockAPIError]:
        """Snapshot of the failures collected so far."""
        with self._lock:
            return list(self._failures)

    def drain(self) -> List[MockAPIError]:
        """Return and forget every collected failure."""
        with self._lock:
            failures, self._failures = self._failures, []
        return failures

    def check(self) -> None:
        failures = self.drain()
        if failures:
            raise ExpectationsFailed(failures)


def report_or_raise(reporter: Optional[Reporter], error: MockAPIError) -> None:
    """Hand ``error`` to ``reporter``, or raise it when there is none."""
    if reporter is None:
        raise error
    reporter.report(error)
