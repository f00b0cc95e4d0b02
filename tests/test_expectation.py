"""
Tests for mockapi Expectations

Tests the cardinality model, release gates and response actions.
"""

import threading
import time

import pytest

from mockapi.mock.expectation import (
    Cardinality,
    Expectation,
    ReleaseGate,
    ResponseAction,
    ResponseFormat
)
from mockapi.mock.fingerprint import RequestFingerprint


class TestCardinality:
    """Test Cardinality dataclass."""

    def test_default_is_exactly_once(self):
        """Test the implicit default requires exactly one call."""
        card = Cardinality()

        assert card.limit == 1
        assert not card.is_satisfied(0)
        assert card.is_satisfied(1)
        assert not card.is_satisfied(2)
        assert card.describe() == 'exactly once'

    def test_exactly(self):
        """Test exactly(n) requires precisely n calls."""
        card = Cardinality.exactly(3)

        assert card.allows_another(2)
        assert not card.allows_another(3)
        assert card.is_satisfied(3)
        assert not card.is_satisfied(2)
        assert card.describe() == 'exactly 3 times'

    def test_once_and_twice(self):
        """Test named shortcuts."""
        assert Cardinality.once() == Cardinality.exactly(1)
        assert Cardinality.twice().count == 2
        assert Cardinality.twice().describe() == 'exactly twice'

    def test_invalid_count(self):
        """Test counts below one are rejected."""
        with pytest.raises(ValueError):
            Cardinality.exactly(0)
        with pytest.raises(ValueError):
            Cardinality().with_times(-1)

    def test_maybe_unbounded(self):
        """Test maybe() alone is optional with no upper bound."""
        card = Cardinality().as_optional()

        assert card.limit is None
        assert card.allows_another(1000)
        for calls in (0, 1, 50):
            assert card.is_satisfied(calls)
        assert card.describe() == 'any number of times'

    def test_maybe_with_times_is_upper_bound(self):
        """Test times(n) plus maybe() allows at most n calls."""
        card = Cardinality().with_times(2).as_optional()

        assert card.limit == 2
        assert card.allows_another(1)
        assert not card.allows_another(2)
        assert card.is_satisfied(0)
        assert card.describe() == 'at most 2 time(s)'

    def test_order_of_configuration_irrelevant(self):
        """Test maybe() then times(n) equals times(n) then maybe()."""
        assert Cardinality().as_optional().with_times(2) == Cardinality().with_times(2).as_optional()

    def test_default_handler_cardinality(self):
        """Test the default handler is never required and unbounded."""
        card = Cardinality.any_number()

        assert card.limit is None
        assert card.is_satisfied(0)


class TestReleaseGate:
    """Test ReleaseGate one-shot signal."""

    def test_not_fired_initially(self):
        """Test a new gate holds waiters."""
        gate = ReleaseGate()

        assert not gate.fired
        assert gate.wait(timeout=0.01) is False

    def test_fire_releases_waiters(self):
        """Test firing releases every waiting thread."""
        gate = ReleaseGate()
        released = []

        def waiter():
            gate.wait()
            released.append(True)

        threads = [threading.Thread(target=waiter) for _ in range(3)]
        for t in threads:
            t.start()

        time.sleep(0.05)
        assert released == []

        gate.fire()
        for t in threads:
            t.join(timeout=2)

        assert released == [True, True, True]

    def test_fire_is_idempotent(self):
        """Test firing twice is a no-op."""
        gate = ReleaseGate()
        gate.fire()
        gate.fire()

        assert gate.fired

    def test_wait_after_fire_returns_immediately(self):
        """Test waiting on a fired gate does not block."""
        gate = ReleaseGate()
        gate.fire()

        start = time.monotonic()
        assert gate.wait() is True
        assert time.monotonic() - start < 0.5

    def test_after_fires_by_itself(self):
        """Test timer gates fire after the delay."""
        gate = ReleaseGate.after(0.05)

        assert gate.wait(timeout=2) is True


class TestResponseAction:
    """Test ResponseAction factories."""

    def test_no_body(self):
        """Test the status-only action."""
        action = ResponseAction.no_body(204)

        assert action.format == ResponseFormat.NONE
        assert action.status == 204
        assert action.body is None

    def test_json(self):
        """Test the JSON action."""
        action = ResponseAction.json(200, {'count': 3}, headers={'X-Id': '1'})

        assert action.format == ResponseFormat.JSON
        assert action.body == {'count': 3}
        assert action.headers == {'X-Id': '1'}

    def test_text_and_stream(self):
        """Test the string and stream actions."""
        assert ResponseAction.text(200, 'hi').format == ResponseFormat.STRING
        assert ResponseAction.stream(200, None).format == ResponseFormat.STREAM

    def test_func(self):
        """Test the custom handler action."""
        handler = lambda fp: None
        action = ResponseAction.func(handler)

        assert action.format == ResponseFormat.FUNC
        assert action.body is handler


class TestExpectation:
    """Test Expectation dataclass."""

    def test_budget(self):
        """Test budget follows cardinality and call count."""
        exp = Expectation(
            index=0,
            match=RequestFingerprint('GET', '/x'),
            response=ResponseAction.no_body(200),
            cardinality=Cardinality.twice()
        )

        assert exp.has_budget()
        exp.call_count = 2
        assert not exp.has_budget()
        assert exp.is_satisfied()

    def test_describe(self):
        """Test the description names method, path and cardinality."""
        exp = Expectation(
            index=4,
            match=RequestFingerprint('DELETE', '/widgets/1'),
            response=ResponseAction.no_body(204)
        )

        assert exp.describe() == 'DELETE /widgets/1 (#4, exactly once)'

    def test_default_handler_always_satisfied(self):
        """Test a default handler never fails assertions."""
        exp = Expectation(
            index=0,
            match=None,
            response=ResponseAction.no_body(404),
            cardinality=Cardinality.any_number(),
            is_default=True
        )

        assert exp.is_satisfied()
        assert exp.method == '*'
        assert exp.describe().startswith('default handler')


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
