"""Envelope decoding for 3X-UI responses.

Every JSON endpoint of the panel answers ``{"success": bool, "msg": str, "obj": T}``,
usually with HTTP 200 even when the operation failed. :meth:`Envelope.from_response`
turns such a response into either the typed ``obj`` or a typed error, keeping the
raw body and a JSON pointer to the offending field when decoding fails.
"""

import json
import logging
from typing import Any, Generic, Optional, Self, Sequence, TypeVar

import httpx
import pydantic

from .errors import ApiError, DatabaseLockedError, DecodeError, HttpStatusError, Utf8DecodeError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def json_pointer(loc: Sequence[Any]) -> str:
    """Render a pydantic error location as a JSON pointer (RFC 6901).

    Examples:
        >>> json_pointer(("obj", 0, "port"))
        '/obj/0/port'
        >>> json_pointer(())
        ''
    """
    parts = (str(part).replace("~", "~0").replace("/", "~1") for part in loc)
    return "".join(f"/{part}" for part in parts)


def read_body(response: httpx.Response, *, check_status: bool = True) -> str:
    """Return the response body as text.

    Raises:
        Utf8DecodeError: If the body is not UTF-8.
        HttpStatusError: If ``check_status`` is set and the status is not 2xx.
    """
    raw = response.content
    try:
        body = raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise Utf8DecodeError(raw, exc) from exc
    if check_status and not response.is_success:
        logger.debug("status=%s body=%s", response.status_code, body)
        raise HttpStatusError(response.status_code, body)
    return body


class Envelope(pydantic.BaseModel, Generic[T]):
    """The ``{success, msg, obj}`` wrapper around every JSON payload."""
    success: bool
    msg: str = ""
    obj: T

    @classmethod
    def from_response(cls, response: httpx.Response, *, check_status: bool = True) -> Self:
        """Decode a panel response into a parametrized envelope.

        Use on a parametrized class, e.g. ``Envelope[List[Inbound]].from_response(resp)``.

        Args:
            response: A fully read httpx response.
            check_status: Reject non-2xx statuses before looking at the body.
                Login disables it because some panels answer the form login
                with odd statuses and a valid envelope.

        Returns:
            The envelope; ``success`` is always true.

        Raises:
            Utf8DecodeError: Body is not UTF-8.
            HttpStatusError: Non-2xx status (only with ``check_status``).
            DecodeError: Body is not JSON or does not match the schema.
            ApiError: The panel reported ``success: false``.
        """
        body = read_body(response, check_status=check_status)
        try:
            data = json.loads(body)
        except json.JSONDecodeError as exc:
            logger.debug("raw=%s", body)
            raise DecodeError("", exc, body) from exc
        logger.debug("json=%s", body)

        if isinstance(data, dict):
            data.setdefault("obj", None)
        try:
            head = Envelope[Any].model_validate(data)
        except pydantic.ValidationError as exc:
            raise DecodeError(_first_error_path(exc), exc, body) from exc
        if not head.success:
            raise _api_error(head.msg)

        try:
            return cls.model_validate(data)
        except pydantic.ValidationError as exc:
            raise DecodeError(_first_error_path(exc), exc, body) from exc

    def unwrap(self) -> T:
        if not self.success:
            raise _api_error(self.msg)
        return self.obj


def _first_error_path(exc: pydantic.ValidationError) -> str:
    errors = exc.errors()
    return json_pointer(errors[0]["loc"]) if errors else ""


def _api_error(msg: Optional[str]) -> ApiError:
    text = (msg or "").lower()
    if "database" in text and "locked" in text:
        logger.warning("Panel database is locked: %s", msg)
        return DatabaseLockedError(msg or "")
    return ApiError(msg or "")
