"""
mockapi Expectation Registry

Ordered collection of expectations and the selection algorithm that decides
which one answers an inbound request.

Selection:
- Only expectations whose fingerprint equals the request's are candidates
- The first registered candidate with remaining budget wins (FIFO)
- Otherwise the default handler, if one was registered, answers
- Otherwise there is no match
"""

import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..common.errors import ExpectationsFailed, UnmetExpectation
from ..common.reporter import Reporter
from .expectation import Cardinality, Expectation, ResponseAction
from .fingerprint import RequestFingerprint


@dataclass
class MatchResult:
    """Result of matching a request."""

    matched: bool
    expectation: Optional[Expectation] = None
    reason: str = ""
    closest: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'matched': self.matched,
            'reason': self.reason,
            'expectation': self.expectation.describe() if self.expectation else None,
            'closest_match': self.closest,
        }


class ExpectationHandle:
    """
    Fluent handle for configuring a registered expectation.

    Configuration is meant to happen right after registration, before the
    expectation sees traffic.

    Example:
        server.with_json_reply(req, 200, {'count': 3}).twice()
        server.with_no_response_body(req, 204).maybe()
    """

    def __init__(self, registry: 'ExpectationRegistry', expectation: Expectation):
        self._registry = registry
        self._expectation = expectation

    def once(self) -> 'ExpectationHandle':
        """Expect exactly one call."""
        return self.times(1)

    def twice(self) -> 'ExpectationHandle':
        """Expect exactly two calls."""
        return self.times(2)

    def times(self, count: int) -> 'ExpectationHandle':
        """Expect exactly ``count`` calls (an upper bound if also ``maybe``)."""
        with self._registry.lock:
            self._expectation.cardinality = self._expectation.cardinality.with_times(count)
        return self

    def maybe(self) -> 'ExpectationHandle':
        """Mark the call as optional."""
        with self._registry.lock:
            self._expectation.cardinality = self._expectation.cardinality.as_optional()
        return self

    def wait_until(self, gate: Any) -> 'ExpectationHandle':
        """
        Hold responses to this expectation until ``gate`` fires.

        The wait happens before the status code is written. ``gate`` may be a
        ReleaseGate or anything with a blocking ``wait()`` method, such as a
        threading.Event.
        """
        if not callable(getattr(gate, 'wait', None)):
            raise TypeError(f"release gate must have a wait() method, got {type(gate).__name__}")
        with self._registry.lock:
            self._expectation.release_gate = gate
        return self

    @property
    def call_count(self) -> int:
        with self._registry.lock:
            return self._expectation.call_count

    @property
    def expectation(self) -> Expectation:
        return self._expectation

    def __repr__(self) -> str:
        return f"ExpectationHandle({self._expectation.describe()})"


class ExpectationRegistry:
    """
    Thread-safe, ordered store of expectations.

    One registry-wide lock guards the expectation list and every call
    counter, so concurrent requests never double-count.
    """

    def __init__(self):
        self.lock = threading.Lock()
        self.logger = logging.getLogger("mockapi.registry")
        self._expectations: List[Expectation] = []
        self._default: Optional[Expectation] = None
        self._registered = 0

    def register(
        self,
        match: RequestFingerprint,
        response: ResponseAction,
        cardinality: Optional[Cardinality] = None
    ) -> ExpectationHandle:
        """
        Append a new expectation.

        Args:
            match: Fingerprint the request must equal
            response: Response to dispatch when matched
            cardinality: Call count policy (exactly once when omitted)

        Returns:
            ExpectationHandle for fluent configuration
        """
        with self.lock:
            expectation = Expectation(
                index=self._next_index(),
                match=match,
                response=response,
                cardinality=cardinality or Cardinality(),
            )
            self._expectations.append(expectation)
        self.logger.debug(f"Registered {expectation.describe()}")
        return ExpectationHandle(self, expectation)

    def register_default(self, response: ResponseAction) -> ExpectationHandle:
        """Register the handler that answers requests nothing else matches."""
        with self.lock:
            if self._default is not None:
                self.logger.warning(f"Replacing {self._default.describe()}")
            expectation = Expectation(
                index=self._next_index(),
                match=None,
                response=response,
                cardinality=Cardinality.any_number(),
                is_default=True,
            )
            self._default = expectation
        self.logger.debug(f"Registered {expectation.describe()}")
        return ExpectationHandle(self, expectation)

    def _next_index(self) -> int:
        index = self._registered
        self._registered += 1
        return index

    def match(self, fingerprint: RequestFingerprint) -> MatchResult:
        """
        Select the expectation answering ``fingerprint`` and count the call.

        Args:
            fingerprint: Normalized inbound request

        Returns:
            MatchResult with the selected expectation, or no match
        """
        with self.lock:
            exhausted = None
            for expectation in self._expectations:
                if expectation.match != fingerprint:
                    continue
                if expectation.has_budget():
                    expectation.call_count += 1
                    return MatchResult(
                        matched=True,
                        expectation=expectation,
                        reason=f"Matched {expectation.describe()}"
                    )
                exhausted = exhausted or expectation

            default = self._default
            if default is not None and default.has_budget():
                default.call_count += 1
                return MatchResult(
                    matched=True,
                    expectation=default,
                    reason="Matched default handler"
                )

            if exhausted is not None:
                return MatchResult(
                    matched=False,
                    reason=(
                        f"{exhausted.describe()} matches but was already "
                        f"called {exhausted.call_count} time(s)"
                    )
                )

            return MatchResult(
                matched=False,
                reason="No expectation matches",
                closest=self._closest(fingerprint)
            )

    def _closest(self, fingerprint: RequestFingerprint) -> Optional[Dict[str, Any]]:
        """Expectation differing from ``fingerprint`` in the fewest fields."""
        best = None
        best_differences = None

        for expectation in self._expectations:
            differences = expectation.match.differences(fingerprint)
            # Method and path mismatches outweigh everything else
            weight = len(differences) + 2 * sum(1 for d in differences if d in ('method', 'path'))
            if best is None or weight < best_differences[0]:
                best = expectation
                best_differences = (weight, differences)

        if best is None:
            return None
        return {
            'expectation': best.describe(),
            'request': best.match.describe(),
            'differences': best_differences[1],
        }

    def assert_all(self, reporter: Optional[Reporter] = None) -> List[UnmetExpectation]:
        """
        Check every required expectation's call count.

        Each unmet expectation is reported once. Without a reporter, all of
        them are raised together as ExpectationsFailed.

        Args:
            reporter: Destination for UnmetExpectation failures

        Returns:
            The unmet expectations found
        """
        with self.lock:
            unmet = [
                UnmetExpectation(
                    method=e.method,
                    path=e.path,
                    required=e.cardinality.describe(),
                    actual=e.call_count,
                )
                for e in self._expectations
                if not e.is_satisfied()
            ]

        if unmet:
            if reporter is None:
                raise ExpectationsFailed(unmet)
            for failure in unmet:
                reporter.report(failure)
        return unmet

    @property
    def expectations(self) -> List[Expectation]:
        """Snapshot of the registered expectations, default handler last."""
        with self.lock:
            snapshot = list(self._expectations)
            if self._default is not None:
                snapshot.append(self._default)
        return snapshot

    def __len__(self) -> int:
        with self.lock:
            return len(self._expectations) + (1 if self._default is not None else 0)
