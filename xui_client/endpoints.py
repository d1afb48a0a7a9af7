"""API endpoint handlers for the 3X-UI panel.

This module provides endpoint classes that wrap the 3X-UI API endpoints
for server operations, inbound management, and client management.
"""

import logging
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple, Union

import httpx

from . import models, util
from .errors import HttpStatusError
from .models import ClientIps, ClientRequest, ClientStats, CreateInboundRequest, Inbound, User
from .response import Envelope, read_body

if TYPE_CHECKING:
    from .api import XUIClient

logger = logging.getLogger(__name__)


class BaseEndpoint:
    """Base class for API endpoint handlers.

    Provides common functionality for making API requests to the 3X-UI panel.

    Attributes:
        _url: The base path segments for this endpoint group.
        client: Reference to the XUIClient instance.
    """
    _url: Tuple[str, ...]

    def __init__(self, client: "XUIClient") -> None:
        self.client = client

    def _endpoint_url(self, *segments: Any) -> httpx.URL:
        return util.compose_url(self.client.base_url, *self._url, *segments)

    async def _simple_get(self, obj_type: Any, *segments: Any) -> Any:
        """GET ``<group>/<segments>`` and return the decoded ``obj``.

        Args:
            obj_type: Type of the envelope's ``obj`` (e.g. ``List[Inbound]``).
            *segments: Raw path segments after the group prefix.

        Raises:
            HttpStatusError, DecodeError, ApiError: See :class:`Envelope`.
        """
        resp = await self.client.safe_get(self._endpoint_url(*segments))
        return Envelope[obj_type].from_response(resp).obj

    async def _simple_post(self, obj_type: Any, *segments: Any, **body: Any) -> Any:
        """POST ``<group>/<segments>`` (optional ``json``/``data``/``files`` body) and return ``obj``."""
        resp = await self.client.safe_post(self._endpoint_url(*segments), **body)
        return Envelope[obj_type].from_response(resp).obj


class Server(BaseEndpoint):
    """Handler for server-related API endpoints.

    Provides methods for status and logs, Xray lifecycle, database
    backup/restore and key generation.

    Endpoints:
        - /panel/api/server/status
        - /panel/api/server/getDb, importDB
        - /panel/api/server/getXrayVersion, installXray/{version}
        - /panel/api/server/stopXrayService, restartXrayService
        - /panel/api/server/updateGeofile[/{name}]
        - /panel/api/server/logs/{count}, xraylogs/{count}
        - /panel/api/server/getConfigJson, cpuHistory/{minutes}
        - /panel/api/server/getNewUUID, getNewX25519Cert, getNewmldsa65,
          getNewmlkem768, getNewVlessEnc, getNewEchCert
    """
    _url = util.SERVER_PATH

    async def status(self) -> Optional[models.ServerStatus]:
        """Host and Xray metrics."""
        return await self._simple_get(Optional[models.ServerStatus], "status")

    async def get_db(self) -> bytes:
        """Download the panel database (raw SQLite file, not an envelope).

        Raises:
            HttpStatusError: If the panel does not answer 2xx.
        """
        resp = await self.client.safe_get(self._endpoint_url("getDb"))
        if not resp.is_success:
            raise HttpStatusError(resp.status_code, resp.text)
        logger.debug("Downloaded panel database, %d bytes", len(resp.content))
        return resp.content

    async def import_db(self, filename: str, data: bytes) -> str:
        """Replace the panel database with ``data``.

        Args:
            filename: File name sent with the ``db`` part.
            data: SQLite database bytes, e.g. from :meth:`get_db`.

        Returns:
            The panel's message.
        """
        files = {"db": (filename, data, "application/octet-stream")}
        logger.debug("Uploading panel database %s, %d bytes", filename, len(data))
        resp = await self.client.safe_post(self._endpoint_url("importDB"), files=files)
        envelope = Envelope[Optional[str]].from_response(resp)
        return envelope.obj if envelope.obj is not None else envelope.msg

    async def xray_version(self) -> Optional[List[str]]:
        """Xray versions available for installation."""
        return await self._simple_get(Optional[List[str]], "getXrayVersion")

    async def config_json(self) -> models.ConfigJson:
        return await self._simple_get(models.ConfigJson, "getConfigJson")

    async def cpu_history(self, minutes: int) -> Optional[List[models.CpuHistoryPoint]]:
        """CPU usage samples aggregated over ``minutes``-sized buckets."""
        return await self._simple_get(Optional[List[models.CpuHistoryPoint]], "cpuHistory", minutes)

    async def new_uuid(self) -> models.Uuid:
        return await self._simple_get(models.Uuid, "getNewUUID")

    async def new_x25519(self) -> models.X25519Cert:
        """Generate a new X25519 key pair (REALITY keys)."""
        return await self._simple_get(models.X25519Cert, "getNewX25519Cert")

    async def new_mldsa65(self) -> models.Mldsa65:
        """Generate a new ML-DSA-65 post-quantum key pair.

        ML-DSA-65 is a post-quantum signature algorithm.
        """
        return await self._simple_get(models.Mldsa65, "getNewmldsa65")

    async def new_mlkem768(self) -> models.Mlkem768:
        """Generate a new ML-KEM-768 post-quantum key pair.

        ML-KEM-768 is a post-quantum key encapsulation mechanism.
        """
        return await self._simple_get(models.Mlkem768, "getNewmlkem768")

    async def new_vless_enc(self) -> models.VlessEnc:
        """Generate VLESS encryption/decryption pairs."""
        return await self._simple_get(models.VlessEnc, "getNewVlessEnc")

    async def new_ech_cert(self) -> models.EchCert:
        return await self._simple_post(models.EchCert, "getNewEchCert")

    async def stop_xray(self) -> None:
        await self._simple_post(Optional[Any], "stopXrayService")

    async def restart_xray(self) -> None:
        await self._simple_post(Optional[Any], "restartXrayService")

    async def install_xray(self, version: str) -> None:
        """Install the given Xray version (one of :meth:`xray_version`)."""
        await self._simple_post(Optional[Any], "installXray", version)

    async def update_geofile(self, name: Optional[str] = None) -> None:
        """Refresh all geo files, or only ``name`` (e.g. ``geoip.dat``)."""
        segments = ("updateGeofile",) if name is None else ("updateGeofile", name)
        await self._simple_post(Optional[Any], *segments)

    async def logs(self, count: int) -> List[str]:
        """Last ``count`` lines of the panel log."""
        return await self._simple_post(List[str], "logs", count)

    async def xray_logs(self, count: int) -> Optional[List[str]]:
        """Last ``count`` lines of the Xray log."""
        return await self._simple_post(Optional[List[str]], "xraylogs", count)


class Inbounds(BaseEndpoint):
    """Handler for inbound-related API endpoints.

    Provides methods for listing, creating, updating, importing and deleting
    inbounds and for inbound-wide traffic operations.

    Endpoints:
        - /panel/api/inbounds/list
        - /panel/api/inbounds/get/{id}
        - /panel/api/inbounds/add, update/{id}, del/{id}, import
        - /panel/api/inbounds/resetAllTraffics, resetAllClientTraffics/{id}
        - /panel/api/inbounds/onlines
        - /panel/api/inbounds/createbackup
    """
    _url = util.INBOUNDS_PATH

    async def get_all(self) -> List[Inbound]:
        """Retrieve all inbounds from the server.

        Returns:
            A list of Inbound model instances.
        """
        return await self._simple_get(List[Inbound], "list")

    async def get_specific_inbound(self, inbound_id: int) -> Inbound:
        """Retrieve a specific inbound by ID.

        Args:
            inbound_id: The ID of the inbound to retrieve.

        Returns:
            An Inbound model instance for the specified ID.
        """
        return await self._simple_get(Inbound, "get", inbound_id)

    async def add_inbound(self, inbound: CreateInboundRequest) -> Inbound:
        """Create an inbound; returns it as stored by the panel (with its new id)."""
        return await self._simple_post(Inbound, "add", json=inbound.to_wire())

    async def update_inbound(self, inbound_id: int, inbound: Union[CreateInboundRequest, Inbound]) -> Inbound:
        """Replace inbound ``inbound_id`` with ``inbound``.

        Args:
            inbound_id: The ID of the inbound to update.
            inbound: New body. An :class:`Inbound` read from the panel can be
                edited and passed back as is.
        """
        return await self._simple_post(Inbound, "update", inbound_id, json=inbound.to_wire())

    async def delete_inbound_by_id(self, inbound_id: int) -> int:
        """Delete an inbound; returns the deleted id as echoed by the panel."""
        return await self._simple_post(int, "del", inbound_id)

    async def import_inbound(self, inbound: Inbound) -> Inbound:
        """Import a full inbound record (as exported by :meth:`get_specific_inbound`).

        The record, packed fields included, is sent as the multipart text part ``data``.
        """
        files = {"data": (None, inbound.to_wire_json())}
        return await self._simple_post(Inbound, "import", files=files)

    async def reset_all_traffics(self) -> None:
        """Zero the traffic counters of every inbound."""
        await self._simple_post(Optional[Any], "resetAllTraffics")

    async def reset_all_client_traffics(self, inbound_id: int) -> None:
        """Zero the traffic counters of every client of one inbound."""
        await self._simple_post(Optional[Any], "resetAllClientTraffics", inbound_id)

    async def online_clients(self) -> Optional[List[str]]:
        """Emails of the clients currently online."""
        return await self._simple_post(Optional[List[str]], "onlines")

    async def last_online(self) -> Optional[List[str]]:
        """Same request as :meth:`online_clients`.

        Kept as a separate call because the panel exposes "last online" data
        through the same ``onlines`` route.
        """
        return await self._simple_post(Optional[List[str]], "onlines")

    async def send_backup_by_bot(self) -> None:
        """Ask the panel to send a DB backup through its Telegram bot.

        Only the HTTP status is checked; the body is ignored.

        Raises:
            HttpStatusError: If the panel does not answer 200.
        """
        resp = await self.client.safe_get(self._endpoint_url("createbackup"))
        if resp.status_code != httpx.codes.OK:
            raise HttpStatusError(resp.status_code, read_body(resp, check_status=False))


class Clients(BaseEndpoint):
    """Handler for client-related API endpoints.

    Provides methods for retrieving, adding, updating, and deleting clients.

    Endpoints:
        - /panel/api/inbounds/getClientTraffics/{email}
        - /panel/api/inbounds/getClientTrafficsById/{uuid}
        - /panel/api/inbounds/addClient
        - /panel/api/inbounds/updateClient/{uuid}
        - /panel/api/inbounds/delDepletedClients/{inbound_id}
        - /panel/api/inbounds/{inbound_id}/delClient/{uuid}
        - /panel/api/inbounds/{inbound_id}/delClientByEmail/{email}
        - /panel/api/inbounds/clientIps/{email}, clearClientIps/{email}
        - /panel/api/inbounds/{inbound_id}/resetClientTraffic/{email}
    """
    _url = util.INBOUNDS_PATH

    async def get_client_with_email(self, email: str) -> Optional[ClientStats]:
        """Retrieve client statistics by email.

        Args:
            email: The client's email identifier.

        Returns:
            The client's statistics, or None if the panel has no such client.
        """
        return await self._simple_get(Optional[ClientStats], "getClientTraffics", email)

    async def get_client_with_uuid(self, uuid: str) -> List[ClientStats]:
        """Retrieve client statistics by UUID.

        Args:
            uuid: The client's unique identifier.

        Returns:
            A list of ClientStats model instances matching the UUID.
        """
        return await self._simple_get(Optional[List[ClientStats]], "getClientTrafficsById", uuid) or []

    @staticmethod
    def _as_request(client: Union[ClientRequest, User, Dict[str, Any]], inbound_id: Optional[int]) -> ClientRequest:
        if isinstance(client, dict):
            if "settings" in client:
                client = ClientRequest.model_validate(client)
            else:
                client = User.model_validate(client)
        if isinstance(client, User):
            if inbound_id is None:
                raise ValueError("A single client was provided but no parent inbound id")
            return ClientRequest.for_users(inbound_id, client)
        if isinstance(client, ClientRequest):
            if inbound_id is not None:
                client = client.model_copy(update={"inbound_id": inbound_id})
            return client
        raise TypeError(f"Unsupported client type {type(client).__name__}")

    async def add_client(self, client: Union[ClientRequest, User, Dict[str, Any]],
                         inbound_id: Optional[int] = None) -> None:
        """Add one or more clients to an inbound.

        Args:
            client: The client(s) to add. Can be:
                - A ClientRequest (inbound id and client list)
                - A single User (requires inbound_id)
                - A dict in either of those wire shapes
            inbound_id: The ID of the inbound to add the client to.
                Required for a single User, overrides the id of a ClientRequest.

        Raises:
            ValueError: If a single client is provided without an inbound_id.
            TypeError: If the client type is not supported.
        """
        request = self._as_request(client, inbound_id)
        await self._simple_post(Optional[Any], "addClient", json=request.to_wire())

    async def update_client(self, uuid: str, client: Union[ClientRequest, User],
                            inbound_id: Optional[int] = None) -> None:
        """Replace the client identified by ``uuid``.

        Args:
            uuid: The current UUID of the client (it may change in ``client``).
            client: A ClientRequest holding exactly one client, or a User.
            inbound_id: The parent inbound, required for a User.
        """
        request = self._as_request(client, inbound_id)
        if len(request.settings.clients) != 1:
            raise ValueError(f"You can only update 1 client at a time, instead got {len(request.settings.clients)}")
        await self._simple_post(Optional[Any], "updateClient", uuid, json=request.to_wire())

    async def update_single_client(self, existing_client: User, inbound_id: int, /, **changes: Any) -> User:
        """Update some fields of an existing client and push it to the panel.

        Args:
            existing_client: The client as currently stored (e.g. from
                ``Inbound.clients``).
            inbound_id: The ID of the inbound the client belongs to.
            **changes: Field values to change, by Python name
                (``limit_ip=2``, ``enable=False`` ...). ``None`` values are ignored.

        Returns:
            The updated client as sent, with ``updated_at`` refreshed.
        """
        if existing_client.id is None:
            raise ValueError("Client has no id; the panel identifies clients to update by id")
        changes = {k: v for k, v in changes.items() if v is not None}
        changes["updated_at"] = util.now_ms()
        # validate so that aliases and coercions apply to the changed values too
        updated = User.model_validate({**existing_client.model_dump(exclude_unset=True), **changes})
        await self.update_client(existing_client.id, updated, inbound_id)
        return updated

    async def delete_expired_clients(self, inbound_id: int) -> None:
        """Delete depleted (expired or out of traffic) clients from an inbound."""
        await self._simple_post(Optional[Any], "delDepletedClients", inbound_id)

    async def delete_client_by_uuid(self, uuid: str, inbound_id: int) -> None:
        await self._simple_post(Optional[Any], inbound_id, "delClient", uuid)

    async def delete_client_by_email(self, email: str, inbound_id: int) -> None:
        await self._simple_post(Optional[Any], inbound_id, "delClientByEmail", email)

    async def client_ips(self, email: str) -> ClientIps:
        """IPs recorded for a client, or the panel's "No IP Record" message."""
        return await self._simple_post(ClientIps, "clientIps", email)

    async def clear_client_ips(self, email: str) -> None:
        await self._simple_post(Optional[Any], "clearClientIps", email)

    async def reset_client_traffic(self, email: str, inbound_id: int) -> None:
        """Zero the traffic counters of one client."""
        await self._simple_post(Optional[Any], inbound_id, "resetClientTraffic", email)
