"""
mockapi Common Utilities

Body and header canonicalization shared by the expectation side and the
inbound request side, so both produce comparable values.
"""

import json
from typing import Any, Dict, Optional, Union


Body = Union[bytes, Dict[str, Any]]


def _reject_constant(name: str) -> Any:
    # NaN and Infinity are not JSON
    raise ValueError(f"Invalid JSON constant: {name}")


def safe_json_parse(json_string: Union[str, bytes, None], default: Any = None) -> Any:
    """
    Safely parse a JSON document with error handling.

    Args:
        json_string: JSON text or bytes to parse
        default: Value to return if parsing fails

    Returns:
        Parsed JSON value, or default if parsing fails
    """
    if not json_string:
        return default

    try:
        return json.loads(json_string, parse_constant=_reject_constant)
    except (json.JSONDecodeError, TypeError, ValueError):
        return default


def decode_body(raw: Optional[bytes]) -> Optional[Body]:
    """
    Canonicalize a request body.

    Empty or missing bodies become None. Bodies that parse as a JSON object
    become that mapping. Anything else (malformed JSON, JSON arrays, JSON
    scalars, binary data) is kept as the original bytes.

    Args:
        raw: Raw body bytes

    Returns:
        None, a dict, or the raw bytes
    """
    if not raw:
        return None

    parsed = safe_json_parse(raw)
    if isinstance(parsed, dict):
        return parsed
    return bytes(raw)


def canonical_header_name(name: str) -> str:
    """Header names compare case-insensitively; lowercase is the canonical form."""
    return name.strip().lower()


def json_equal(a: Any, b: Any) -> bool:
    """
    Compare decoded JSON values the way JSON defines them.

    Python treats ``True == 1`` and ``False == 0``; JSON booleans and numbers
    are distinct, so booleans only equal booleans. Integers and floats with
    the same value are the same JSON number.
    """
    if isinstance(a, bool) or isinstance(b, bool):
        return type(a) is type(b) and a == b
    if isinstance(a, dict) and isinstance(b, dict):
        return a.keys() == b.keys() and all(json_equal(a[k], b[k]) for k in a)
    if isinstance(a, (list, tuple)) and isinstance(b, (list, tuple)):
        return len(a) == len(b) and all(json_equal(x, y) for x, y in zip(a, b))
    if isinstance(a, (dict, list, tuple)) or isinstance(b, (dict, list, tuple)):
        return False
    return a == b
