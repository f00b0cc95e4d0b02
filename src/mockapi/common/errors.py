"""
mockapi Errors

Failure kinds raised or reported by the expectation engine.

Per-request failures (MultiValueFieldDetected, UnmatchedRequest,
ResponseEncodingFailed) are produced while serving traffic. UnmetExpectation
is produced only when expectations are asserted.
"""

from typing import Any, Dict, List, Optional, Sequence


class MockAPIError(Exception):
    """Base class for every failure the mock API reports."""

    fatal = True


class MultiValueFieldDetected(MockAPIError):
    """A header or query key kept more than one value after filtering."""

    fatal = False

    def __init__(self, kind: str, name: str, values: Sequence[str], method: str, path: str):
        self.kind = kind
        self.name = name
        self.values = list(values)
        self.method = method
        self.path = path
        super().__init__(
            f"multi-value {kind} {name!r} was unexpected in {method} {path}: "
            f"{self.values} (using {self.values[0]!r})"
        )


class UnmatchedRequest(MockAPIError):
    """No expectation, including a default handler, accepted the request."""

    def __init__(self, fingerprint: Any, reason: str = "", closest: Optional[Dict[str, Any]] = None):
        self.fingerprint = fingerprint
        self.reason = reason
        self.closest = closest
        message = f"unexpected request {fingerprint.describe()}"
        if reason:
            message += f": {reason}"
        if closest:
            message += (
                f" (closest expectation: {closest['expectation']}, "
                f"differs in {', '.join(closest['differences']) or 'nothing'})"
            )
        super().__init__(message)


class ResponseEncodingFailed(MockAPIError):
    """Serializing or copying a response body failed."""

    def __init__(self, expectation: Any, cause: BaseException):
        self.expectation = expectation
        self.cause = cause
        super().__init__(f"failed to write response for {expectation.describe()}: {cause}")


class UnmetExpectation(MockAPIError):
    """A required expectation was not called the required number of times."""

    def __init__(self, method: str, path: str, required: str, actual: int):
        self.method = method
        self.path = path
        self.required = required
        self.actual = actual
        super().__init__(
            f"expected {method} {path} to be called {required}, "
            f"but it was called {actual} time(s)"
        )


class ExpectationsFailed(AssertionError):
    """Aggregate of every failure collected for one mock server."""

    def __init__(self, errors: List[MockAPIError]):
        self.errors = list(errors)
        lines = [f"{len(self.errors)} mock API failure(s):"]
        lines.extend(f"  - {error}" for error in self.errors)
        super().__init__("\n".join(lines))
