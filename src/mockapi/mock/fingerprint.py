"""
mockapi Request Fingerprints

Canonical, comparable representation of an HTTP request, and the builder
used by tests to describe the request they expect.
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Union

from ..common.utils import Body, canonical_header_name, decode_body, json_equal


@dataclass(frozen=True, eq=False)
class RequestFingerprint:
    """
    Canonical form of a request used for equality-based matching.

    Empty header and query maps are stored as None, so "no headers" compares
    equal however it was produced. The body is None, raw bytes, or a decoded
    JSON object. Bodies compare as JSON values, so a boolean never equals
    a number.
    """

    method: str
    path: str
    headers: Optional[Dict[str, str]] = None
    query_params: Optional[Dict[str, str]] = None
    body: Optional[Body] = None

    def differences(self, other: 'RequestFingerprint') -> list:
        """Names of the fields that differ from ``other``."""
        return [
            name for name in ('method', 'path', 'headers', 'query_params', 'body')
            if not self._field_equal(name, other)
        ]

    def _field_equal(self, name: str, other: 'RequestFingerprint') -> bool:
        if name == 'body':
            return json_equal(self.body, other.body)
        return getattr(self, name) == getattr(other, name)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RequestFingerprint):
            return NotImplemented
        return not self.differences(other)

    __hash__ = None

    def describe(self) -> str:
        """Human readable summary for failure messages."""
        parts = [f"{self.method} {self.path}"]
        if self.headers:
            parts.append(f"headers={self.headers}")
        if self.query_params:
            parts.append(f"query={self.query_params}")
        if isinstance(self.body, dict):
            parts.append(f"body={json.dumps(self.body, sort_keys=True, default=str)}")
        elif self.body is not None:
            parts.append(f"body={self.body!r}")
        return " ".join(parts)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        body = self.body
        if isinstance(body, bytes):
            body = body.decode('utf-8', errors='replace')
        return {
            'method': self.method,
            'path': self.path,
            'headers': self.headers,
            'query_params': self.query_params,
            'body': body,
        }


def _string_values(values: Optional[Mapping[str, Any]]) -> Optional[Dict[str, str]]:
    if values is None:
        return None
    # Request header and query values always arrive as text
    return {k: str(v) for k, v in values.items()}


class MockRequest:
    """
    Builder for the request an expectation should match.

    Example:
        req = (MockRequest('POST', '/widgets')
               .with_body({'name': 'bolt'})
               .with_headers({'Authorization': 'Bearer abc'}))
        server.with_no_response_body(req, 201)
    """

    def __init__(self, method: str, path: str):
        self.method = method
        self.path = path
        self.body: Optional[Body] = None
        self.headers: Optional[Dict[str, str]] = None
        self.query_params: Optional[Dict[str, str]] = None

    def with_body(self, body: Union[Mapping[str, Any], bytes, str, None]) -> 'MockRequest':
        """
        Set the expected body.

        Mappings are compared against JSON-object request bodies. Bytes and
        strings go through the same canonicalization as inbound bodies, so
        ``b'{"a": 1}'`` expects the JSON object ``{"a": 1}``.
        """
        if body is None:
            self.body = None
        elif isinstance(body, Mapping):
            self.body = dict(body)
        elif isinstance(body, str):
            self.body = decode_body(body.encode('utf-8'))
        elif isinstance(body, (bytes, bytearray, memoryview)):
            self.body = decode_body(bytes(body))
        else:
            raise TypeError(f"body must be a mapping, bytes or str, not {type(body).__name__}")
        return self

    def with_headers(self, headers: Optional[Mapping[str, Any]]) -> 'MockRequest':
        """
        Set the headers expected in the request.

        Values are sent as text on the wire, so they are stored as strings.
        """
        self.headers = _string_values(headers)
        return self

    def with_query_params(self, params: Optional[Mapping[str, Any]]) -> 'MockRequest':
        """Set the query params expected in the request."""
        self.query_params = _string_values(params)
        return self

    def fingerprint(self) -> RequestFingerprint:
        headers = None
        if self.headers:
            headers = {canonical_header_name(k): v for k, v in self.headers.items()}
        return RequestFingerprint(
            method=self.method.upper(),
            path=self.path,
            headers=headers,
            query_params=dict(self.query_params) if self.query_params else None,
            body=self.body,
        )

    def __repr__(self) -> str:
        return f"MockRequest({self.fingerprint().describe()!r})"
