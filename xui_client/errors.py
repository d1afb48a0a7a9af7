"""Exceptions raised by the 3X-UI client.

Every failure that crosses the HTTP, decoding or panel-response boundary is
raised as a subclass of :class:`XUIError`, so callers can catch the whole family
with one ``except`` clause and still tell the kinds apart.
"""

from typing import Optional


class XUIError(Exception):
    """Base class for all 3X-UI client errors."""


class InvalidUrlError(XUIError):
    """The panel base URL is malformed or cannot carry a path."""


class NotFoundError(XUIError):
    """The panel answered 404 where no fallback is left (login form)."""


class XUIConnectionError(XUIError):
    """Transport failure (connect, timeout, protocol) after retries were exhausted."""


class ApiError(XUIError):
    """The panel answered ``success: false``.

    Attributes:
        msg: The ``msg`` field from the panel envelope.
    """

    DEFAULT_MESSAGE = "panel reported a failure without a message"

    def __init__(self, msg: str):
        self.msg: str = msg or self.DEFAULT_MESSAGE
        super().__init__(self.msg)


class InvalidCredentialsError(ApiError):
    """Login was rejected by the panel."""


class DatabaseLockedError(ApiError):
    """The panel's SQLite database was locked by another operation.

    The request is not retried automatically because most panel mutations are
    POST requests and are not safe to repeat.
    """


class HttpStatusError(XUIError):
    """Non-2xx status; the body is kept for diagnostics and never parsed."""

    def __init__(self, status: int, body: str):
        self.status: int = status
        self.body: str = body
        super().__init__(f"http status {status}: {body}")


class DecodeError(XUIError):
    """The response body did not match the expected schema.

    Attributes:
        path: JSON pointer to the offending value, ``""`` for the document root.
        source: The underlying ``json.JSONDecodeError`` or ``pydantic.ValidationError``.
        body: The raw response body.
    """

    def __init__(self, path: str, source: Exception, body: str):
        self.path: str = path
        self.source: Exception = source
        self.body: str = body
        super().__init__(f"json decode at {path or '/'}: {source}. body={body}")


class Utf8DecodeError(XUIError):
    """The response body is not valid UTF-8."""

    def __init__(self, body: bytes, source: Optional[UnicodeDecodeError] = None):
        self.body: bytes = body
        self.source: Optional[UnicodeDecodeError] = source
        super().__init__(f"response body is not valid UTF-8: {source}")


class OtherError(XUIError):
    """Anything that does not fit the other kinds (e.g. serialization failure)."""
