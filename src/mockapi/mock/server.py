"""
mockapi Mock Server

FastAPI-based HTTP server that answers requests from registered
expectations and verifies at teardown that every required one was used.

Features:
- Exact request matching on method, path, headers, query and body
- Header and query parameter filtering
- Cardinality enforcement (once, twice, times, maybe)
- Release gates for deterministic concurrency tests
- Default handler for unexpected traffic
- Live server on a background thread, or in-process via TestClient
"""

from __future__ import annotations  # Enable forward references for type hints

import json
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Union

import uvicorn
from fastapi import FastAPI, Request, Response

from ..common.errors import UnmatchedRequest
from ..common.reporter import FailureCollector, Reporter
from .dispatcher import ResponseDispatcher
from .expectation import ResponseAction
from .fingerprint import MockRequest, RequestFingerprint
from .normalizer import RequestNormalizer
from .registry import ExpectationHandle, ExpectationRegistry


HTTP_METHODS = ["GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS", "TRACE"]


@dataclass
class MockConfig:
    """Configuration for mock server behavior."""

    # Server options
    host: str = "127.0.0.1"
    port: int = 0  # 0 picks a free port
    log_level: str = "warning"
    startup_timeout: float = 5.0

    # Request normalization
    filtered_headers: List[str] = field(default_factory=list)
    filtered_query_params: List[str] = field(default_factory=list)

    # Response behavior
    unmatched_status: int = 500
    stream_chunk_size: int = 64 * 1024


class MockServer:
    """
    Programmable stand-in HTTP server for integration tests.

    Each inbound request is normalized into a fingerprint, matched against
    the registered expectations and answered with the matched response.
    Failures are handed to the reporter and surfaced by
    ``assert_expectations()`` or ``close()``.

    Example:
        with MockServer() as api:
            api.set_filtered_headers(['User-Agent', 'Accept', 'Accept-Encoding'])
            api.with_json_reply(MockRequest('GET', '/widgets'), 200, {'count': 3}).once()

            requests.get(f"{api.url}/widgets")
        # leaving the block stops the server and asserts expectations
    """

    def __init__(
        self,
        config: Optional[MockConfig] = None,
        reporter: Optional[Reporter] = None
    ):
        """
        Initialize mock server.

        Args:
            config: Optional MockConfig for server behavior
            reporter: Destination for failures (a FailureCollector if None)
        """
        self.config = config or MockConfig()
        self.reporter = reporter or FailureCollector()
        self.logger = logging.getLogger("mockapi.server")

        self.registry = ExpectationRegistry()
        self.normalizer = RequestNormalizer(
            filtered_headers=self.config.filtered_headers,
            filtered_query_params=self.config.filtered_query_params,
            reporter=self.reporter
        )
        self.dispatcher = ResponseDispatcher(
            reporter=self.reporter,
            chunk_size=self.config.stream_chunk_size
        )

        self._server: Optional[uvicorn.Server] = None
        self._thread: Optional[threading.Thread] = None
        self._port: Optional[int] = None
        self._closed = False

        self.app = self._create_app()

    def _create_app(self) -> FastAPI:
        """Create FastAPI application with a catch-all route."""
        app = FastAPI(
            title="mockapi",
            description="Programmable mock HTTP API",
            docs_url=None,
            redoc_url=None,
            openapi_url=None
        )

        @app.api_route("/{path:path}", methods=HTTP_METHODS, include_in_schema=False)
        async def mock_request(request: Request, path: str):
            """Handle incoming requests and serve expectation responses."""
            return await self._handle_request(request)

        return app

    async def _handle_request(self, request: Request) -> Response:
        """
        Normalize, match and dispatch one request.

        Args:
            request: FastAPI Request object

        Returns:
            Response from the matched expectation, or an error response
        """
        body = await request.body()
        headers = [(k.decode('latin-1'), v.decode('latin-1')) for k, v in request.headers.raw]

        fingerprint = self.normalizer.normalize(
            method=request.method,
            path=request.url.path,
            headers=headers,
            query_params=request.query_params.multi_items(),
            body=body
        )
        self.logger.debug(f"Incoming: {fingerprint.describe()}")

        result = self.registry.match(fingerprint)
        if not result.matched:
            return self._unmatched(fingerprint, result.reason, result.closest)

        self.logger.debug(f"{result.reason} for {fingerprint.method} {fingerprint.path}")
        return await self.dispatcher.dispatch(result.expectation, fingerprint)

    def _unmatched(
        self,
        fingerprint: RequestFingerprint,
        reason: str,
        closest: Optional[Dict[str, Any]]
    ) -> Response:
        """Report the request and still complete the exchange."""
        self.logger.warning(f"No match found for {fingerprint.method} {fingerprint.path}: {reason}")
        self.reporter.report(UnmatchedRequest(fingerprint, reason, closest))

        content = {
            "error": "No matching expectation",
            "reason": reason,
            "request": fingerprint.to_dict()
        }
        if closest:
            content["closest_match"] = closest

        return Response(
            content=json.dumps(content, default=str),
            status_code=self.config.unmatched_status,
            media_type="application/json",
            headers={'X-MockAPI-Matched': 'false'}
        )

    # Configuration

    def set_filtered_headers(self, headers: List[str]) -> None:
        """Headers that are not taken into account when matching a request."""
        self.normalizer.set_filtered_headers(headers)

    def set_filtered_query_params(self, params: List[str]) -> None:
        """Query params that are not taken into account when matching a request."""
        self.normalizer.set_filtered_query_params(params)

    # Registration

    def with_request(
        self,
        req: MockRequest,
        response: Union[ResponseAction, Callable[[RequestFingerprint], Any]]
    ) -> ExpectationHandle:
        """
        Expect a request and answer it with ``response``.

        ``response`` is a ResponseAction, or a callable that receives the
        request fingerprint and returns a Starlette Response.
        """
        if not isinstance(response, ResponseAction):
            response = ResponseAction.func(response)
        return self.registry.register(req.fingerprint(), response)

    def with_no_response_body(
        self,
        req: MockRequest,
        status: int,
        headers: Optional[Dict[str, str]] = None
    ) -> ExpectationHandle:
        """Expect a request and answer with ``status`` and no body."""
        return self.with_request(req, ResponseAction.no_body(status, headers))

    def with_json_reply(
        self,
        req: MockRequest,
        status: int,
        reply: Any,
        headers: Optional[Dict[str, str]] = None
    ) -> ExpectationHandle:
        """Expect a request and answer with ``reply`` encoded as JSON."""
        return self.with_request(req, ResponseAction.json(status, reply, headers))

    def with_text_reply(
        self,
        req: MockRequest,
        status: int,
        reply: str,
        headers: Optional[Dict[str, str]] = None
    ) -> ExpectationHandle:
        """Expect a request and answer with ``reply`` written verbatim."""
        return self.with_request(req, ResponseAction.text(status, reply, headers))

    def with_streaming_reply(
        self,
        req: MockRequest,
        status: int,
        reply: Any,
        headers: Optional[Dict[str, str]] = None
    ) -> ExpectationHandle:
        """
        Expect a request and answer with the content of a binary stream.

        ``reply`` is a readable object, or a zero-argument callable opening
        a fresh one per response (needed when the call repeats).
        """
        return self.with_request(req, ResponseAction.stream(status, reply, headers))

    def default_handler(
        self,
        response: Union[ResponseAction, Callable[[RequestFingerprint], Any]]
    ) -> ExpectationHandle:
        """Answer every request no other expectation accepts. Never required."""
        if not isinstance(response, ResponseAction):
            response = ResponseAction.func(response)
        return self.registry.register_default(response)

    # Verification

    def assert_expectations(self, reporter: Optional[Reporter] = None) -> None:
        """
        Fail if a required call did not happen or a request went wrong.

        Args:
            reporter: Reporter to use instead of the server's own
        """
        target = reporter or self.reporter
        self.registry.assert_all(target)
        target.check()

    # Lifecycle

    @property
    def url(self) -> str:
        """Base URL of the running server, e.g. http://127.0.0.1:54321."""
        if self._port is None:
            raise RuntimeError("Mock server is not running; call start() first")
        return f"http://{self.config.host}:{self._port}"

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _build_server(self) -> uvicorn.Server:
        return uvicorn.Server(uvicorn.Config(
            self.app,
            host=self.config.host,
            port=self.config.port,
            log_level=self.config.log_level,
            access_log=False,
            lifespan="off"
        ))

    def start(self) -> 'MockServer':
        """Start serving on a background thread and wait until it listens."""
        if self.running:
            return self
        if self._closed:
            raise RuntimeError("Mock server was closed and cannot be restarted")

        self._server = self._build_server()
        self._thread = threading.Thread(
            target=self._server.run,
            name="mockapi-server",
            daemon=True
        )
        self._thread.start()

        deadline = time.monotonic() + self.config.startup_timeout
        while not self._server.started:
            if not self._thread.is_alive():
                raise RuntimeError(f"Mock server failed to start on {self.config.host}:{self.config.port}")
            if time.monotonic() > deadline:
                self._server.should_exit = True
                raise TimeoutError(f"Mock server did not start within {self.config.startup_timeout}s")
            time.sleep(0.01)

        self._port = self._server.servers[0].sockets[0].getsockname()[1]
        self.logger.info(f"Mock server listening on {self.url}")
        return self

    def serve_forever(self) -> None:
        """Serve in the foreground until interrupted."""
        self._server = self._build_server()
        self._port = self.config.port
        self._server.run()

    def stop(self) -> None:
        """Stop accepting traffic."""
        if self._server is not None:
            self._server.should_exit = True
        if self._thread is not None:
            self._thread.join(timeout=self.config.startup_timeout)
            if self._thread.is_alive():
                self.logger.warning("Mock server thread did not stop in time")
        self._thread = None

    def close(self) -> None:
        """Stop the server and assert that all expected calls happened."""
        if self._closed:
            return
        self._closed = True
        self.stop()
        self.assert_expectations()

    def get_app(self) -> FastAPI:
        """
        Get the FastAPI app instance for in-process testing.

        Returns:
            FastAPI application instance
        """
        return self.app

    def __enter__(self) -> 'MockServer':
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is not None:
            # Keep the original error; expectations are secondary to it
            self._closed = True
            self.stop()
            return
        self.close()


def create_mock_server(
    host: str = "127.0.0.1",
    port: int = 0,
    filtered_headers: Optional[List[str]] = None,
    filtered_query_params: Optional[List[str]] = None,
    unmatched_status: int = 500,
    log_level: str = "warning",
    reporter: Optional[Reporter] = None
) -> MockServer:
    """
    Convenience function to create and configure a mock server.

    Args:
        host: Host to bind to
        port: Port to bind to (0 for a free port)
        filtered_headers: Header names ignored when matching
        filtered_query_params: Query keys ignored when matching
        unmatched_status: Status sent for requests nothing matched
        log_level: uvicorn log level
        reporter: Destination for failures

    Returns:
        Configured MockServer instance (not started)
    """
    config = MockConfig(
        host=host,
        port=port,
        filtered_headers=list(filtered_headers or []),
        filtered_query_params=list(filtered_query_params or []),
        unmatched_status=unmatched_status,
        log_level=log_level
    )

    return MockServer(config=config, reporter=reporter)
