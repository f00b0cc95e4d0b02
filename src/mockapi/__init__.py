"""
mockapi - programmable mock HTTP API for integration tests

Register expectations, point the code under test at the server's URL, and
let teardown verify that every required call happened.
"""

from .mock import (
    MockServer,
    MockConfig,
    create_mock_server,
    MockRequest,
    RequestFingerprint,
    ReleaseGate,
    ResponseAction,
    ExpectationHandle,
)
from .common import (
    MockAPIError,
    MultiValueFieldDetected,
    UnmatchedRequest,
    ResponseEncodingFailed,
    UnmetExpectation,
    ExpectationsFailed,
    Reporter,
    FailureCollector,
)
from .scenario import MockScenario, Endpoint, EndpointMock

__all__ = [
    'MockServer',
    'MockConfig',
    'create_mock_server',
    'MockRequest',
    'RequestFingerprint',
    'ReleaseGate',
    'ResponseAction',
    'ExpectationHandle',
    'MockAPIError',
    'MultiValueFieldDetected',
    'UnmatchedRequest',
    'ResponseEncodingFailed',
    'UnmetExpectation',
    'ExpectationsFailed',
    'Reporter',
    'FailureCollector',
    'MockScenario',
    'Endpoint',
    'EndpointMock',
]

__version__ = '1.0.0'
