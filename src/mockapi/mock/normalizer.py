"""
mockapi Request Normalizer

Turns a raw inbound request into a RequestFingerprint: drops filtered and
transport-level headers, drops filtered query keys, collapses multi-value
fields to their first value and canonicalizes the body.
"""

import logging
from typing import Dict, Iterable, List, Optional, Tuple

from ..common.errors import MultiValueFieldDetected
from ..common.reporter import Reporter, report_or_raise
from ..common.utils import canonical_header_name, decode_body
from .fingerprint import RequestFingerprint


# Connection framing headers set by the HTTP client and server themselves
TRANSPORT_HEADERS = frozenset({'host', 'content-length', 'transfer-encoding', 'connection'})


class RequestNormalizer:
    """
    Converts raw requests into fingerprints.

    Example:
        normalizer = RequestNormalizer(filtered_headers=['User-Agent'])
        fp = normalizer.normalize('GET', '/widgets', [('User-Agent', 'x')], [], b'')
        assert fp.headers is None
    """

    def __init__(
        self,
        filtered_headers: Iterable[str] = (),
        filtered_query_params: Iterable[str] = (),
        reporter: Optional[Reporter] = None
    ):
        """
        Initialize normalizer.

        Args:
            filtered_headers: Header names ignored when fingerprinting (any case)
            filtered_query_params: Query keys ignored when fingerprinting
            reporter: Destination for multi-value reports (raise when None)
        """
        self.logger = logging.getLogger("mockapi.normalizer")
        self.reporter = reporter
        self.set_filtered_headers(filtered_headers)
        self.set_filtered_query_params(filtered_query_params)

    def set_filtered_headers(self, headers: Iterable[str]) -> None:
        self.filtered_headers = frozenset(canonical_header_name(h) for h in headers)

    def set_filtered_query_params(self, params: Iterable[str]) -> None:
        self.filtered_query_params = frozenset(params)

    def normalize(
        self,
        method: str,
        path: str,
        headers: Iterable[Tuple[str, str]],
        query_params: Iterable[Tuple[str, str]],
        body: Optional[bytes]
    ) -> RequestFingerprint:
        """
        Build the fingerprint of one request.

        Args:
            method: HTTP method
            path: Request path without query string
            headers: Every (name, value) header pair, repeats included
            query_params: Every (key, value) query pair, repeats included
            body: Raw body bytes (None or empty for no body)

        Returns:
            RequestFingerprint
        """
        method = method.upper()
        skipped_headers = self.filtered_headers | TRANSPORT_HEADERS

        grouped_headers = self._group(
            ((canonical_header_name(k), v) for k, v in headers),
            skipped_headers
        )
        grouped_params = self._group(query_params, self.filtered_query_params)

        fingerprint = RequestFingerprint(
            method=method,
            path=path,
            headers=self._collapse('header', grouped_headers, method, path),
            query_params=self._collapse('query param', grouped_params, method, path),
            body=decode_body(body),
        )
        self.logger.debug(f"Normalized request: {fingerprint.describe()}")
        return fingerprint

    @staticmethod
    def _group(pairs: Iterable[Tuple[str, str]], skipped: frozenset) -> Dict[str, List[str]]:
        grouped: Dict[str, List[str]] = {}
        for key, value in pairs:
            if key in skipped:
                continue
            grouped.setdefault(key, []).append(value)
        return grouped

    def _collapse(
        self,
        kind: str,
        grouped: Dict[str, List[str]],
        method: str,
        path: str
    ) -> Optional[Dict[str, str]]:
        if not grouped:
            return None

        collapsed = {}
        for key, values in grouped.items():
            if len(values) > 1:
                report_or_raise(
                    self.reporter,
                    MultiValueFieldDetected(kind, key, values, method, path)
                )
            collapsed[key] = values[0]
        return collapsed
