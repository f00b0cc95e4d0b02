"""
mockapi Mock Server Module

Expectation-driven mock HTTP server for integration tests.

This module provides:
- FastAPI-based mock server
- Request fingerprinting and normalization
- Expectation registry with FIFO selection and cardinality checks
- Response dispatch with release gates
"""

from .server import MockServer, MockConfig, create_mock_server
from .fingerprint import RequestFingerprint, MockRequest
from .normalizer import RequestNormalizer
from .expectation import (
    Cardinality,
    Expectation,
    ReleaseGate,
    ResponseAction,
    ResponseFormat
)
from .registry import ExpectationRegistry, ExpectationHandle, MatchResult
from .dispatcher import ResponseDispatcher

__all__ = [
    # Server
    'MockServer',
    'MockConfig',
    'create_mock_server',

    # Requests
    'RequestFingerprint',
    'MockRequest',
    'RequestNormalizer',

    # Expectations
    'Cardinality',
    'Expectation',
    'ReleaseGate',
    'ResponseAction',
    'ResponseFormat',
    'ExpectationRegistry',
    'ExpectationHandle',
    'MatchResult',

    # Dispatch
    'ResponseDispatcher',
]
