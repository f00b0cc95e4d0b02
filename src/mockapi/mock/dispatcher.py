"""
mockapi Response Dispatcher

Writes the response configured on a matched expectation.

Formats:
- none: status code only
- json: status code and the reply serialized as JSON
- string: status code and the literal text
- stream: status code and the full content of a binary stream
- func: whatever the custom handler returns

If the expectation carries a release gate, dispatch waits for it before
anything is written. The wait runs on a worker thread drawn from a limiter
reserved for gates, so held responses never stall the event loop nor take
threads from the shared pool that serves streaming bodies.
"""

import asyncio
import inspect
import json
import logging
import math
import weakref
from typing import Any, Iterator, Optional

import anyio
import anyio.to_thread
from starlette.responses import Response, StreamingResponse

from ..common.errors import ResponseEncodingFailed
from ..common.reporter import Reporter, report_or_raise
from .expectation import Expectation, ResponseFormat
from .fingerprint import RequestFingerprint


class ResponseDispatcher:
    """
    Builds the HTTP response for a matched expectation.

    Example:
        dispatcher = ResponseDispatcher(reporter=FailureCollector())
        response = await dispatcher.dispatch(result.expectation, fingerprint)
    """

    def __init__(
        self,
        reporter: Optional[Reporter] = None,
        chunk_size: int = 64 * 1024,
        error_status: int = 500
    ):
        """
        Initialize dispatcher.

        Args:
            reporter: Destination for encoding failures (raise when None)
            chunk_size: Read size used when copying stream bodies
            error_status: Status sent when a body cannot be produced
        """
        self.logger = logging.getLogger("mockapi.dispatcher")
        self.reporter = reporter
        self.chunk_size = chunk_size
        self.error_status = error_status
        self._gate_limiters = weakref.WeakKeyDictionary()

    async def dispatch(self, expectation: Expectation, fingerprint: RequestFingerprint) -> Response:
        """
        Wait for the release gate, then produce the response.

        Args:
            expectation: Matched expectation
            fingerprint: Inbound request, passed to custom handlers

        Returns:
            Starlette Response
        """
        gate = expectation.release_gate
        if gate is not None:
            self.logger.debug(f"Holding response for {expectation.describe()}")
            await anyio.to_thread.run_sync(gate.wait, limiter=self._gate_limiter())
            self.logger.debug(f"Releasing response for {expectation.describe()}")

        action = expectation.response
        headers = action.headers

        if action.format == ResponseFormat.NONE:
            return Response(status_code=action.status, headers=headers)

        if action.format == ResponseFormat.JSON:
            if action.body is None:
                return Response(status_code=action.status, headers=headers)
            try:
                content = json.dumps(action.body)
            except (TypeError, ValueError) as e:
                return self._encoding_failed(expectation, e)
            return Response(
                content=content,
                status_code=action.status,
                headers=headers,
                media_type="application/json"
            )

        if action.format == ResponseFormat.STRING:
            return Response(
                content=action.body,
                status_code=action.status,
                headers=headers,
                media_type="text/plain"
            )

        if action.format == ResponseFormat.STREAM:
            return self._stream_response(expectation)

        if action.format == ResponseFormat.FUNC:
            result = action.body(fingerprint)
            if inspect.isawaitable(result):
                result = await result
            return result

        raise ValueError(f"Unknown response format: {action.format}")

    def _gate_limiter(self) -> anyio.CapacityLimiter:
        # Limiters belong to one event loop; TestClient and uvicorn each run their own
        loop = asyncio.get_running_loop()
        limiter = self._gate_limiters.get(loop)
        if limiter is None:
            limiter = anyio.CapacityLimiter(math.inf)
            self._gate_limiters[loop] = limiter
        return limiter

    def _stream_response(self, expectation: Expectation) -> Response:
        action = expectation.response
        source = action.body
        if source is None:
            return Response(status_code=action.status, headers=action.headers)

        owned = False
        if not hasattr(source, 'read') and callable(source):
            try:
                source = source()
            except OSError as e:
                return self._encoding_failed(expectation, e)
            owned = True

        return StreamingResponse(
            self._copy_stream(expectation, source, owned),
            status_code=action.status,
            headers=action.headers,
            media_type="application/octet-stream"
        )

    def _copy_stream(self, expectation: Expectation, source: Any, owned: bool) -> Iterator[bytes]:
        try:
            while True:
                try:
                    chunk = source.read(self.chunk_size)
                except (OSError, ValueError) as e:
                    # Status is already on the wire; the body ends here
                    report_or_raise(self.reporter, ResponseEncodingFailed(expectation, e))
                    return
                if not chunk:
                    return
                yield chunk.encode('utf-8') if isinstance(chunk, str) else chunk
        finally:
            if owned:
                source.close()

    def _encoding_failed(self, expectation: Expectation, cause: BaseException) -> Response:
        error = ResponseEncodingFailed(expectation, cause)
        report_or_raise(self.reporter, error)
        return Response(
            content=str(error),
            status_code=self.error_status,
            media_type="text/plain"
        )
