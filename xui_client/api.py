import asyncio
import logging
from collections.abc import Mapping, Sequence
from typing import Any, AsyncIterable, Dict, FrozenSet, Iterable, Optional, Self, Tuple, Union

import httpx
import pydantic
from httpx import AsyncClient, Response

from . import endpoints, util
from .errors import (ApiError, DatabaseLockedError, InvalidCredentialsError, NotFoundError, OtherError,
                     XUIConnectionError)
from .models import LoginInfo, LoginResult
from .response import Envelope

logger = logging.getLogger(__name__)

DataType = Union[str, bytes, Iterable[bytes], AsyncIterable[bytes]]
PrimitiveData = Optional[Union[str, int, float, bool]]
FileContent = Union[str, bytes, Any]
FileType = Union[
    Mapping[str, Union[FileContent, Tuple[Optional[str], FileContent], Tuple[Optional[str], FileContent, Optional[str]]]],
    Sequence[Tuple[str, Any]],
]
FormType = Mapping[str, Union[PrimitiveData, Sequence[PrimitiveData]]]

RETRYABLE_ERRORS = (httpx.ConnectError, httpx.TimeoutException, asyncio.TimeoutError)


class ClientOptions(pydantic.BaseModel):
    """Retry policy and timeouts. Durations are in seconds.

    Attributes:
        retry_count: Extra attempts allowed for idempotent requests.
        retry_base_delay: Backoff before the first retry; doubles every attempt.
        retry_max_delay: Ceiling for the computed backoff.
        retry_methods: HTTP methods that may be retried.
        connect_timeout: Deadline for establishing a connection.
        request_timeout: Deadline for one whole attempt, body included.
    """
    model_config = pydantic.ConfigDict(frozen=True)

    retry_count: int = pydantic.Field(default=2, ge=0)
    retry_base_delay: float = pydantic.Field(default=0.2, ge=0)
    retry_max_delay: float = pydantic.Field(default=2.0, ge=0)
    retry_methods: FrozenSet[str] = frozenset({"GET", "HEAD"})
    connect_timeout: float = pydantic.Field(default=5.0, gt=0)
    request_timeout: float = pydantic.Field(default=30.0, gt=0)

    # noinspection PyNestedDecorators
    @pydantic.field_validator("retry_methods", mode="after")
    @classmethod
    def upper_case_methods(cls, value: FrozenSet[str]) -> FrozenSet[str]:
        return frozenset(method.upper() for method in value)

    def is_retryable_method(self, method: str) -> bool:
        return method.upper() in self.retry_methods

    def retry_delay(self, attempt: int, retry_after: Optional[str] = None) -> float:
        """Seconds to wait before retry number ``attempt + 1``.

        A ``Retry-After`` header holding whole seconds wins over the computed
        backoff; HTTP-date values are ignored.

        Examples:
            >>> ClientOptions().retry_delay(0)
            0.2
            >>> ClientOptions().retry_delay(5)
            2.0
            >>> ClientOptions().retry_delay(0, "7")
            7.0
        """
        if retry_after is not None:
            text = retry_after.strip()
            if text.isascii() and text.isdigit():
                return float(int(text))
        backoff = self.retry_base_delay * (2 ** min(attempt, 62))
        return min(self.retry_max_delay, backoff)


def _is_replayable(content: Any, files: Any) -> bool:
    """True when the request body can be rebuilt for another attempt."""
    if content is not None and not isinstance(content, (str, bytes)):
        return False
    if files:
        items = files.values() if isinstance(files, Mapping) else (value for _, value in files)
        for value in items:
            payload = value[1] if isinstance(value, tuple) else value
            if not isinstance(payload, (str, bytes)):
                return False
    return True


class XUIClient:
    """Async client for one 3X-UI panel.

    Create it with :meth:`create` (or ``async with``), which connects and logs
    in; the session cookie then lives in the httpx cookie jar and is shared by
    every request. Operations are grouped like the panel's API:

    * ``client.inbounds_end`` - ``/panel/api/inbounds/...`` inbound operations
    * ``client.clients_end`` - ``/panel/api/inbounds/...`` client operations
    * ``client.server_end`` - ``/panel/api/server/...``

    There is no automatic re-login. If the session expires, build a new client.
    """

    def __init__(self, base_url: str, username: str, password: str, *,
                 two_fac_code: str | None = None,
                 options: ClientOptions | None = None,
                 transport: httpx.AsyncBaseTransport | None = None) -> None:
        # fail fast on a URL that cannot carry the API paths
        util.compose_url(base_url)
        self.base_url: str = base_url
        self.session: AsyncClient | None = None
        self.xui_username: str = username
        self.xui_password: str = password
        self.two_fac_code: str | None = two_fac_code
        self.options: ClientOptions = options or ClientOptions()
        self.login_result: LoginResult | None = None
        self._transport = transport

        self.inbounds_end = endpoints.Inbounds(self)
        self.clients_end = endpoints.Clients(self)
        self.server_end = endpoints.Server(self)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(base_url={self.base_url!r}, username={self.xui_username!r}, options={self.options!r})"

    @classmethod
    async def create(cls, base_url: str, username: str, password: str, **kwargs: Any) -> Self:
        """Construct a client, connect and log in.

        Raises:
            InvalidUrlError: The base URL cannot host the panel paths.
            NotFoundError: Neither login form exists at this base URL.
            InvalidCredentialsError: The panel rejected the credentials.
            XUIConnectionError: The panel could not be reached.
        """
        client = cls(base_url, username, password, **kwargs)
        client.connect()
        try:
            await client.login()
        except BaseException:
            await client.disconnect()
            raise
        return client

    @classmethod
    async def from_parts(cls, host: str, port: int, base_path: str, username: str, password: str, *,
                         scheme: str = "https", **kwargs: Any) -> Self:
        """Like :meth:`create`, with the base URL given as host, port and secret path."""
        path = base_path.strip("/")
        base_url = f"{scheme}://{host}:{port}/{path}" if path else f"{scheme}://{host}:{port}"
        return await cls.create(base_url, username, password, **kwargs)

    def connect(self) -> None:
        if self.session is not None:
            return
        timeout = httpx.Timeout(self.options.request_timeout, connect=self.options.connect_timeout)
        self.session = AsyncClient(timeout=timeout, transport=self._transport)

    async def disconnect(self) -> None:
        if self.session is None:
            return
        session, self.session = self.session, None
        self.login_result = None
        await session.aclose()

    async def __aenter__(self) -> Self:
        if self.session is None:
            self.connect()
        if self.login_result is None:
            try:
                await self.login()
            except BaseException:
                await self.disconnect()
                raise
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.disconnect()
        return

    def inbounds_url(self, *segments: Any) -> httpx.URL:
        return util.compose_url(self.base_url, *util.INBOUNDS_PATH, *segments)

    def server_url(self, *segments: Any) -> httpx.URL:
        return util.compose_url(self.base_url, *util.SERVER_PATH, *segments)

    async def login(self) -> LoginResult:
        """Log in and store the session cookie.

        Tries a JSON body on ``<base>/login`` first and falls back to the
        multipart form on ``<base>/login/`` when the panel answers 404 or 415.
        """
        payload: Dict[str, str] = {"username": self.xui_username, "password": self.xui_password}
        if self.two_fac_code is not None:
            payload["twoFactorCode"] = self.two_fac_code

        logger.debug("Sending login request to %s", self.base_url)
        resp = await self.safe_post(util.compose_url(self.base_url, "login"), json=payload)
        if resp.status_code in (httpx.codes.NOT_FOUND, httpx.codes.UNSUPPORTED_MEDIA_TYPE):
            logger.debug("JSON login answered %s, retrying with the form", resp.status_code)
            form = {"username": self.xui_username, "password": self.xui_password}
            files = {"twoFactorCode": (None, self.two_fac_code or "")}
            resp = await self.safe_post(util.compose_url(self.base_url, "login", trailing_slash=True),
                                        data=form, files=files)
            if resp.status_code == httpx.codes.NOT_FOUND:
                raise NotFoundError(f"Login form not found at {resp.request.url}")

        if resp.status_code != httpx.codes.OK:
            logger.warning("Unexpected login status %s, parsing the body anyway", resp.status_code)

        try:
            envelope = Envelope[Optional[LoginInfo]].from_response(resp, check_status=False)
        except DatabaseLockedError:
            raise
        except ApiError as exc:
            raise InvalidCredentialsError(exc.msg) from exc

        self.login_result = LoginResult(message=envelope.msg, details=envelope.obj)
        logger.debug("Logged in to %s", self.base_url)
        return self.login_result

    async def safe_get(self, url: httpx.URL | str) -> Response:
        return await self._send("GET", url)

    async def safe_post(self,
                        url: httpx.URL | str,
                        *,
                        content: DataType | None = None,
                        data: FormType | None = None,
                        files: FileType | None = None,
                        json: Any | None = None) -> Response:
        return await self._send("POST", url, content=content, data=data, files=files, json=json)

    async def _send(self, method: str, url: httpx.URL | str, **kwargs: Any) -> Response:
        """Send a request through the retry policy.

        Every attempt rebuilds the request from ``kwargs``. Bodies that cannot
        be rebuilt (iterators, open files) are sent exactly once.

        Returns:
            The last response, whatever its status.

        Raises:
            XUIConnectionError: Transport failure on the last allowed attempt.
        """
        if self.session is None:
            raise OtherError("Session is not initialized, call connect() first")
        kwargs = {key: value for key, value in kwargs.items() if value is not None}

        retries = self.options.retry_count
        if not _is_replayable(kwargs.get("content"), kwargs.get("files")):
            logger.debug("%s %s has a streaming body, sending without retry", method, url)
            retries = 0

        for attempt in range(retries + 1):
            request = self.session.build_request(method, url, **kwargs)
            logger.debug("%s %s (attempt %d)", method, request.url, attempt + 1)
            try:
                resp = await asyncio.wait_for(self.session.send(request), timeout=self.options.request_timeout)
            except RETRYABLE_ERRORS as exc:
                if attempt < retries and self.options.is_retryable_method(method):
                    delay = self.options.retry_delay(attempt)
                    logger.warning("%s %s failed (%r), retrying in %.2fs", method, request.url, exc, delay)
                    await asyncio.sleep(delay)
                    continue
                raise XUIConnectionError(f"{method} {request.url} failed: {exc!r}") from exc
            except httpx.HTTPError as exc:
                raise XUIConnectionError(f"{method} {request.url} failed: {exc!r}") from exc

            if attempt < retries and self._should_retry_status(method, resp):
                delay = self.options.retry_delay(attempt, resp.headers.get("Retry-After"))
                logger.warning("%s %s answered %s, retrying in %.2fs",
                               method, request.url, resp.status_code, delay)
                await resp.aclose()
                await asyncio.sleep(delay)
                continue
            return resp

        raise OtherError("request retry failed")

    def _should_retry_status(self, method: str, resp: Response) -> bool:
        if not self.options.is_retryable_method(method):
            return False
        return resp.status_code == httpx.codes.TOO_MANY_REQUESTS or resp.is_server_error
