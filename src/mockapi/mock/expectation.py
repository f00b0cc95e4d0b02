"""
mockapi Expectations

Data model for one registered rule: what request it matches, how it
responds, how often it may and must be called, and an optional release gate
that holds its response back.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Dict, Optional

from .fingerprint import RequestFingerprint


@dataclass(frozen=True)
class Cardinality:
    """
    How many times an expectation may and must be matched.

    ``count`` is the exact requirement of a required expectation. For an
    optional one it is an upper bound only when it was set explicitly, so
    ``maybe()`` alone means "any number of times" while ``times(2).maybe()``
    means "at most twice".
    """

    count: int = 1
    optional: bool = False
    explicit: bool = False

    @classmethod
    def exactly(cls, count: int) -> 'Cardinality':
        if count < 1:
            raise ValueError(f"expected call count must be at least 1, got {count}")
        return cls(count=count, explicit=True)

    @classmethod
    def once(cls) -> 'Cardinality':
        return cls.exactly(1)

    @classmethod
    def twice(cls) -> 'Cardinality':
        return cls.exactly(2)

    @classmethod
    def maybe(cls) -> 'Cardinality':
        return cls(optional=True)

    @classmethod
    def any_number(cls) -> 'Cardinality':
        """Implicit cardinality of a default handler."""
        return cls(count=0, optional=True)

    def with_times(self, count: int) -> 'Cardinality':
        if count < 1:
            raise ValueError(f"expected call count must be at least 1, got {count}")
        return replace(self, count=count, explicit=True)

    def as_optional(self) -> 'Cardinality':
        return replace(self, optional=True)

    @property
    def limit(self) -> Optional[int]:
        """Maximum number of matches, or None when unbounded."""
        if self.optional and not self.explicit:
            return None
        return self.count

    def allows_another(self, call_count: int) -> bool:
        limit = self.limit
        return limit is None or call_count < limit

    def is_satisfied(self, call_count: int) -> bool:
        if self.optional:
            return True
        return call_count == self.count

    def describe(self) -> str:
        if self.optional:
            if self.limit is None:
                return "any number of times"
            return f"at most {self.limit} time(s)"
        if self.count == 1:
            return "exactly once"
        if self.count == 2:
            return "exactly twice"
        return f"exactly {self.count} times"


class ReleaseGate:
    """
    One-shot signal that holds a response until fired.

    Firing more than once is a no-op and waiting on a fired gate returns
    immediately. Any number of threads may wait on the same gate.

    Example:
        gate = ReleaseGate()
        server.with_json_reply(req, 200, {'ok': True}).wait_until(gate)
        ...  # request is now pending
        gate.fire()
    """

    def __init__(self):
        self._event = threading.Event()
        self._timer: Optional[threading.Timer] = None

    @classmethod
    def after(cls, seconds: float) -> 'ReleaseGate':
        """Gate that fires by itself ``seconds`` from now."""
        gate = cls()
        gate._timer = threading.Timer(seconds, gate.fire)
        gate._timer.daemon = True
        gate._timer.start()
        return gate

    def fire(self) -> None:
        self._event.set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self._event.wait(timeout)

    @property
    def fired(self) -> bool:
        return self._event.is_set()

    def __repr__(self) -> str:
        return f"ReleaseGate(fired={self.fired})"


class ResponseFormat(str, Enum):
    """Shape of the body written for a matched expectation."""

    NONE = "none"
    JSON = "json"
    STRING = "string"
    STREAM = "stream"
    FUNC = "func"


@dataclass(frozen=True)
class ResponseAction:
    """
    What to send back for a matched expectation.

    ``body`` holds the JSON reply value, the literal string, the stream
    source (or a zero-argument factory returning one), or the custom handler,
    depending on ``format``.
    """

    format: ResponseFormat
    status: int = 200
    body: Any = None
    headers: Optional[Dict[str, str]] = None

    @classmethod
    def no_body(cls, status: int, headers: Optional[Dict[str, str]] = None) -> 'ResponseAction':
        return cls(ResponseFormat.NONE, status, None, headers)

    @classmethod
    def json(cls, status: int, reply: Any, headers: Optional[Dict[str, str]] = None) -> 'ResponseAction':
        return cls(ResponseFormat.JSON, status, reply, headers)

    @classmethod
    def text(cls, status: int, reply: str, headers: Optional[Dict[str, str]] = None) -> 'ResponseAction':
        return cls(ResponseFormat.STRING, status, reply, headers)

    @classmethod
    def stream(cls, status: int, source: Any, headers: Optional[Dict[str, str]] = None) -> 'ResponseAction':
        return cls(ResponseFormat.STREAM, status, source, headers)

    @classmethod
    def func(cls, handler: Callable[[RequestFingerprint], Any]) -> 'ResponseAction':
        return cls(ResponseFormat.FUNC, 0, handler)


@dataclass
class Expectation:
    """One registered rule. Mutated only under the registry lock."""

    index: int
    match: Optional[RequestFingerprint]
    response: ResponseAction
    cardinality: Cardinality = field(default_factory=Cardinality)
    call_count: int = 0
    release_gate: Any = None
    is_default: bool = False

    @property
    def method(self) -> str:
        return self.match.method if self.match else "*"

    @property
    def path(self) -> str:
        return self.match.path if self.match else "*"

    def has_budget(self) -> bool:
        return self.cardinality.allows_another(self.call_count)

    def is_satisfied(self) -> bool:
        return self.is_default or self.cardinality.is_satisfied(self.call_count)

    def describe(self) -> str:
        name = "default handler" if self.is_default else f"{self.method} {self.path}"
        return f"{name} (#{self.index}, {self.cardinality.describe()})"
