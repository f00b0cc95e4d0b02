"""
mockapi Scenario Configuration

YAML-based mock scenarios: filtered fields, expectations and a default
handler declared in one file and registered on a MockServer.

Example scenario:

    filtered_headers: [User-Agent, Accept, Accept-Encoding]
    expectations:
      - request: {method: GET, path: /widgets}
        response: {status: 200, json: {count: 3}}
        times: 2
      - request: {method: POST, path: /widgets, body: {name: bolt}}
        response: {status: 201}
        maybe: true
    default:
      status: 404
      text: not here
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from ..mock.expectation import ResponseAction
from ..mock.fingerprint import MockRequest
from ..mock.registry import ExpectationHandle


BODY_KEYS = ('json', 'text', 'file')


def _file_opener(path: Path):
    def open_file():
        return open(path, 'rb')
    return open_file


def build_response(data: Dict[str, Any], base_dir: Path) -> ResponseAction:
    """
    Build a ResponseAction from a scenario ``response`` mapping.

    Args:
        data: Mapping with ``status`` and at most one of json/text/file
        base_dir: Directory relative ``file`` paths resolve against

    Returns:
        ResponseAction
    """
    status = int(data.get('status', 200))
    headers = data.get('headers')
    body_keys = [key for key in BODY_KEYS if key in data]

    if len(body_keys) > 1:
        raise ValueError(f"Response may set only one of {', '.join(BODY_KEYS)}; got {body_keys}")

    if not body_keys:
        return ResponseAction.no_body(status, headers)

    key = body_keys[0]
    if key == 'json':
        return ResponseAction.json(status, data['json'], headers)
    if key == 'text':
        return ResponseAction.text(status, str(data['text']), headers)

    file_path = Path(data['file'])
    if not file_path.is_absolute():
        file_path = base_dir / file_path
    if not file_path.exists():
        raise FileNotFoundError(f"Response file not found: {file_path}")
    return ResponseAction.stream(status, _file_opener(file_path), headers)


@dataclass
class ScenarioExpectation:
    """One expectation declared in a scenario."""

    request: Dict[str, Any]
    response: Dict[str, Any] = field(default_factory=dict)
    times: Optional[int] = None
    maybe: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ScenarioExpectation':
        """Create ScenarioExpectation from dictionary."""
        request = data.get('request') or {}
        if 'method' not in request or 'path' not in request:
            raise ValueError(f"Expectation request needs 'method' and 'path': {request}")

        return cls(
            request=request,
            response=data.get('response') or {},
            times=data.get('times'),
            maybe=bool(data.get('maybe', False))
        )

    def to_mock_request(self) -> MockRequest:
        return (MockRequest(self.request['method'], self.request['path'])
                .with_headers(self.request.get('headers'))
                .with_query_params(self.request.get('query'))
                .with_body(self.request.get('body')))


@dataclass
class MockScenario:
    """A complete mock scenario."""

    name: str
    description: str = ""
    filtered_headers: List[str] = field(default_factory=list)
    filtered_query_params: List[str] = field(default_factory=list)
    expectations: List[ScenarioExpectation] = field(default_factory=list)
    default: Optional[Dict[str, Any]] = None
    base_dir: Path = field(default_factory=Path.cwd)

    @classmethod
    def from_yaml(cls, yaml_path: str) -> 'MockScenario':
        """Load scenario from YAML file."""
        path = Path(yaml_path)
        if not path.exists():
            raise FileNotFoundError(f"Scenario file not found: {path}")

        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise ValueError(f"Unexpected YAML format in {path}: expected a mapping")

        data.setdefault('name', path.stem)
        return cls.from_dict(data, base_dir=path.parent)

    @classmethod
    def from_dict(cls, data: Dict[str, Any], base_dir: Optional[Path] = None) -> 'MockScenario':
        """Create scenario from dictionary."""
        expectations = [ScenarioExpectation.from_dict(e) for e in data.get('expectations', [])]

        return cls(
            name=data.get('name', 'Unnamed Scenario'),
            description=data.get('description', ''),
            filtered_headers=list(data.get('filtered_headers', [])),
            filtered_query_params=list(data.get('filtered_query_params', [])),
            expectations=expectations,
            default=data.get('default'),
            base_dir=base_dir or Path.cwd()
        )

    def apply(self, server) -> List[ExpectationHandle]:
        """
        Register this scenario on ``server``.

        Args:
            server: MockServer to configure

        Returns:
            Handles of the registered expectations, in declaration order
        """
        if self.filtered_headers:
            server.set_filtered_headers(self.filtered_headers)
        if self.filtered_query_params:
            server.set_filtered_query_params(self.filtered_query_params)

        handles = []
        for item in self.expectations:
            action = build_response(item.response, self.base_dir)
            handle = server.with_request(item.to_mock_request(), action)
            if item.times is not None:
                handle.times(int(item.times))
            if item.maybe:
                handle.maybe()
            handles.append(handle)

        if self.default is not None:
            server.default_handler(build_response(self.default, self.base_dir))

        return handles
