"""Async client for the 3X-UI proxy panel HTTP API."""

from .api import ClientOptions, XUIClient
from .errors import (ApiError, DatabaseLockedError, DecodeError, HttpStatusError, InvalidCredentialsError,
                     InvalidUrlError, NotFoundError, OtherError, Utf8DecodeError, XUIConnectionError, XUIError)
from .models import (ClientIps, ClientRequest, ClientStats, CreateInboundRequest, Inbound, ServerStatus, Settings,
                     StreamSettings, User)

__all__ = [
    "XUIClient",
    "ClientOptions",
    "XUIError",
    "InvalidUrlError",
    "NotFoundError",
    "XUIConnectionError",
    "ApiError",
    "InvalidCredentialsError",
    "DatabaseLockedError",
    "HttpStatusError",
    "DecodeError",
    "Utf8DecodeError",
    "OtherError",
    "Inbound",
    "CreateInboundRequest",
    "ClientRequest",
    "ClientStats",
    "ClientIps",
    "Settings",
    "StreamSettings",
    "ServerStatus",
    "User",
]
