"""
mockapi Endpoint Descriptors

Describes an HTTP endpoint once (method, path template, body and response
formats) and turns it into expectation helpers, so tests mocking the same
API call repeatedly don't rebuild the request by hand.

Example:
    get_widget = Endpoint(
        method='GET',
        path='/widgets/{widget_id}',
        response_format=EndpointResponseFormat.JSON,
    )
    EndpointMock(server, get_widget).expect(
        path_params={'widget_id': '42'},
        status=200,
        reply={'id': 42},
    ).once()
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from ..mock.expectation import ResponseAction
from ..mock.fingerprint import MockRequest
from ..mock.registry import ExpectationHandle


PATH_PARAM_PATTERN = re.compile(r'\{([^}/]+)\}')


class BodyFormat(str, Enum):
    NONE = "none"
    JSON = "json"
    STRING = "string"
    STREAM = "stream"


class EndpointResponseFormat(str, Enum):
    JSON = "json"
    STRING = "string"
    STREAM = "stream"
    FUNC = "func"


@dataclass
class Endpoint:
    """
    An HTTP endpoint to be mocked.

    ``headers`` and ``query_params`` say whether the endpoint's behaviour
    depends on them, and therefore whether expectations may include them.
    ``body_type`` and ``response_type`` are free-form documentation.
    """

    path: str
    method: str = "GET"
    body_format: BodyFormat = BodyFormat.NONE
    body_type: str = ""
    path_parameters: List[str] = field(default_factory=list)
    response_format: EndpointResponseFormat = EndpointResponseFormat.JSON
    response_type: str = ""
    headers: bool = False
    query_params: bool = False

    def __post_init__(self):
        self.method = self.method.upper()
        self.body_format = BodyFormat(self.body_format)
        self.response_format = EndpointResponseFormat(self.response_format)
        if not self.path_parameters:
            self.path_parameters = PATH_PARAM_PATTERN.findall(self.path)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Endpoint':
        """Create Endpoint from dictionary."""
        return cls(
            path=data['path'],
            method=data.get('method', 'GET'),
            body_format=data.get('body_format', 'none'),
            body_type=data.get('body_type', ''),
            path_parameters=list(data.get('path_parameters', [])),
            response_format=data.get('response_format', 'json'),
            response_type=data.get('response_type', ''),
            headers=bool(data.get('headers', False)),
            query_params=bool(data.get('query_params', False))
        )

    def format_path(self, path_params: Optional[Dict[str, Any]] = None) -> str:
        """
        Substitute path parameters into the path template.

        Raises:
            ValueError: If a declared path parameter is missing
        """
        path_params = path_params or {}
        missing = [name for name in self.path_parameters if name not in path_params]
        if missing:
            raise ValueError(f"{self.method} {self.path} is missing path parameters: {missing}")

        return PATH_PARAM_PATTERN.sub(lambda m: str(path_params[m.group(1)]), self.path)


class EndpointMock:
    """Registers expectations for one Endpoint on a MockServer."""

    def __init__(self, server, endpoint: Endpoint):
        self.server = server
        self.endpoint = endpoint

    def request(
        self,
        path_params: Optional[Dict[str, Any]] = None,
        body: Any = None,
        headers: Optional[Dict[str, str]] = None,
        query: Optional[Dict[str, str]] = None
    ) -> MockRequest:
        """Build the MockRequest for this endpoint, validating each piece."""
        endpoint = self.endpoint
        if body is not None and endpoint.body_format == BodyFormat.NONE:
            raise ValueError(f"{endpoint.method} {endpoint.path} takes no request body")
        if headers and not endpoint.headers:
            raise ValueError(f"{endpoint.method} {endpoint.path} does not depend on headers")
        if query and not endpoint.query_params:
            raise ValueError(f"{endpoint.method} {endpoint.path} does not depend on query params")

        return (MockRequest(endpoint.method, endpoint.format_path(path_params))
                .with_body(body)
                .with_headers(headers)
                .with_query_params(query))

    def expect(
        self,
        status: int = 200,
        reply: Any = None,
        path_params: Optional[Dict[str, Any]] = None,
        body: Any = None,
        headers: Optional[Dict[str, str]] = None,
        query: Optional[Dict[str, str]] = None
    ) -> ExpectationHandle:
        """
        Expect one call of this endpoint.

        Args:
            status: Response status code
            reply: JSON value, text, stream source or handler, per response_format
            path_params: Values for the path template
            body: Expected request body
            headers: Expected headers (only for header-dependent endpoints)
            query: Expected query params (only for query-dependent endpoints)

        Returns:
            ExpectationHandle for fluent configuration
        """
        req = self.request(path_params=path_params, body=body, headers=headers, query=query)
        fmt = self.endpoint.response_format

        if fmt == EndpointResponseFormat.JSON:
            action = ResponseAction.json(status, reply)
        elif fmt == EndpointResponseFormat.STRING:
            action = ResponseAction.text(status, reply if reply is not None else "")
        elif fmt == EndpointResponseFormat.STREAM:
            action = ResponseAction.stream(status, reply)
        else:
            if not callable(reply):
                raise TypeError(f"{self.endpoint.method} {self.endpoint.path} needs a callable reply")
            action = ResponseAction.func(reply)

        return self.server.with_request(req, action)
