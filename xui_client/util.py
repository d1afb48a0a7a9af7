"""Utility functions and helpers for the 3X-UI client.

This module provides common utilities used across the client including:
- Panel URL composition with percent-encoded path segments
- Tolerant decoders for the panel's loosely typed JSON
- Subscription ID / email generation for new clients
- Expiry helpers working on the panel's millisecond timestamps
"""

import json
import logging
import secrets
import string
from datetime import UTC, datetime
from typing import Any, Tuple
from urllib.parse import quote

import httpx

from .errors import InvalidUrlError

logger = logging.getLogger(__name__)

INBOUNDS_PATH: Tuple[str, ...] = ("panel", "api", "inbounds")
SERVER_PATH: Tuple[str, ...] = ("panel", "api", "server")

# RFC 3986 pchar minus the unreserved set, which quote() never touches
_SEGMENT_SAFE = "!$&'()*+,;=:@"

_ALPHABET = string.ascii_letters + string.digits

MS_PER_DAY = 86_400_000


def quote_segment(segment: Any) -> str:
    """Percent-encode one path segment.

    ``/``, ``?``, ``#``, ``%``, whitespace and non-ASCII characters are escaped,
    so caller data (emails, UUIDs, file names) can never change the route. A
    segment that is exactly ``.`` or ``..`` has its dots escaped too, otherwise
    URL normalization would drop it or climb to the parent path.

    Examples:
        >>> quote_segment("a/b?c")
        'a%2Fb%3Fc'
        >>> quote_segment("foo@x")
        'foo@x'
        >>> quote_segment("..")
        '%2E%2E'
    """
    text = quote(str(segment), safe=_SEGMENT_SAFE)
    if text in (".", ".."):
        return text.replace(".", "%2E")
    return text


def compose_url(base_url: str, *segments: Any, trailing_slash: bool = False) -> httpx.URL:
    """Build ``<base>/<seg>/<seg>...`` from a panel base URL.

    The base keeps its own path (panels are often served under a secret
    prefix); only a trailing slash is trimmed before the segments are appended.

    Args:
        base_url: Panel base URL, e.g. ``https://host:2053/secret/``.
        *segments: Raw path segments, encoded here.
        trailing_slash: Append ``/`` after the last segment.

    Returns:
        The composed URL.

    Raises:
        InvalidUrlError: If the base is not an http(s) URL with a host.
    """
    try:
        base = httpx.URL(str(base_url).rstrip("/"))
    except (httpx.InvalidURL, TypeError) as exc:
        raise InvalidUrlError(f"Invalid base URL {base_url!r}: {exc}") from exc
    if base.scheme not in ("http", "https") or not base.host:
        raise InvalidUrlError(f"Cannot be a base URL: {base_url!r}")
    if base.query or base.fragment:
        raise InvalidUrlError(f"Base URL must not carry a query or fragment: {base_url!r}")

    path = base.raw_path.decode("ascii").split("?", 1)[0].rstrip("/")
    for segment in segments:
        path = f"{path}/{quote_segment(segment)}"
    if trailing_slash or not path:
        path += "/"
    url = base.copy_with(raw_path=path.encode("ascii"))
    logger.debug("Generated URL: %s", url)
    return url


def json_string_or_object(value: Any) -> Any:
    """Decode a field the panel sends as a JSON object packed into a string.

    Accepts either the string form (``"{\\"clients\\": []}"``) or an already
    decoded object. An empty string means "not set" and yields ``None``.

    Raises:
        ValueError: If the string is not valid JSON or does not hold an object.
    """
    if isinstance(value, (bytes, bytearray)):
        value = value.decode("utf-8")
    if isinstance(value, str):
        if not value.strip():
            return None
        try:
            value = json.loads(value)
        except json.JSONDecodeError as exc:
            raise ValueError(f"expected a JSON object encoded as a string: {exc}") from exc
        if not isinstance(value, dict):
            raise ValueError(f"expected a JSON object inside the string, got {type(value).__name__}")
    return value


def number_or_numeric_string(value: Any) -> Any:
    """Turn ``"42"`` into ``42`` and ``"0.5"`` into ``0.5``; other input is left alone.

    Examples:
        >>> number_or_numeric_string("42")
        42
        >>> number_or_numeric_string(" 1.5 ")
        1.5
        >>> number_or_numeric_string(7)
        7
    """
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text)
        except ValueError:
            pass
        try:
            return float(text)
        except ValueError:
            return value
    return value


def now_ms() -> int:
    """Current UTC time as a panel timestamp (milliseconds since epoch)."""
    return int(datetime.now(UTC).timestamp() * 1000)


def generate_sub_id(length: int = 16) -> str:
    """Generate a random subscription ID.

    Args:
        length: The length of the generated subscription string.

    Returns:
        A random alphanumeric string for use as a client's ``subId``.
    """
    return "".join(secrets.choice(_ALPHABET) for _ in range(length))


def generate_random_email(length: int = 8) -> str:
    """Generate a random alphanumeric email identifier.

    The panel uses ``email`` as a free-form unique client label, it does not
    have to be a mailbox.
    """
    return "".join(secrets.choice(_ALPHABET) for _ in range(length))


def days_until_expiry(expiry_time: int) -> float:
    """Calculate the number of days until a client or inbound expires.

    Args:
        expiry_time: Panel expiry time in milliseconds since epoch. ``0`` means
            "never expires"; negative values are the panel's "N ms after first
            use" form and are reported as that duration.

    Returns:
        Days until expiry, negative if already expired, ``inf`` for no expiry.

    Examples:
        >>> days_until_expiry(0)
        inf
        >>> days_until_expiry(-86_400_000)
        1.0
    """
    if expiry_time == 0:
        return float("inf")
    if expiry_time < 0:
        return -expiry_time / MS_PER_DAY
    return (expiry_time - now_ms()) / MS_PER_DAY
