"""
mockapi Common Utilities

Shared errors, failure reporting and canonicalization helpers.
"""

from .errors import (
    MockAPIError,
    MultiValueFieldDetected,
    UnmatchedRequest,
    ResponseEncodingFailed,
    UnmetExpectation,
    ExpectationsFailed,
)
from .reporter import Reporter, FailureCollector, report_or_raise
from .utils import safe_json_parse, decode_body, canonical_header_name, json_equal

__all__ = [
    'MockAPIError',
    'MultiValueFieldDetected',
    'UnmatchedRequest',
    'ResponseEncodingFailed',
    'UnmetExpectation',
    'ExpectationsFailed',
    'Reporter',
    'FailureCollector',
    'report_or_raise',
    'safe_json_parse',
    'decode_body',
    'canonical_header_name',
    'json_equal',
]
