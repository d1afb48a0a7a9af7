import uuid
from typing import Any, Annotated, Dict, List, Optional, Self, TypeAlias, Union

import pydantic
from pydantic import BeforeValidator, Field, ValidationInfo, AliasChoices, field_serializer, field_validator

from . import util
from .base_model import BaseModel
from .enums import (AlpnOption, DomainStrategy, Protocol, SniffingOption, SSMethod, TcpCongestion,
                    TlsFlowControl, TlsVersion, TrafficReset, TransportProtocol, UsageOption,
                    UsersSecurity, UtlsFingerprint, XhttpMode)

# The panel is inconsistent about numbers: most arrive as JSON numbers, some
# (server status in particular) as numeric strings.
timestamp: TypeAlias = Annotated[int, BeforeValidator(util.number_or_numeric_string)]  # ms since epoch
counter: TypeAlias = Annotated[int, BeforeValidator(util.number_or_numeric_string), Field(ge=0)]
metric: TypeAlias = Annotated[float, BeforeValidator(util.number_or_numeric_string)]
port_number: TypeAlias = Annotated[int, BeforeValidator(util.number_or_numeric_string), Field(ge=1, le=65535)]
ip_address: TypeAlias = str
TgId: TypeAlias = Union[int, str]


class PackedJsonFields(BaseModel):
    """Mixin for records whose nested objects travel as JSON strings.

    ``settings``, ``streamSettings``, ``sniffing`` and ``allocate`` are sent by
    the panel as strings holding JSON (``"settings": "{\\"clients\\": []}"``).
    They are parsed into models on the way in and packed back into strings on
    the way out. Packing emits only the keys that were received or assigned,
    so a record read from the panel goes back unchanged.
    """

    # noinspection PyNestedDecorators
    @field_validator("settings", "stream_settings", "sniffing", "allocate", mode="before", check_fields=False)
    @classmethod
    def parse_json_fields(cls, value: Any, info: ValidationInfo) -> Any:
        parsed = util.json_string_or_object(value)
        if parsed is None and info.field_name == "settings":
            return {}
        return parsed

    @field_serializer("settings", "stream_settings", "sniffing", "allocate", check_fields=False)
    def stringify_json_fields(self, value: Optional[BaseModel]) -> Optional[str]:
        if value is None:
            return None
        return value.to_wire_json(only_set=True)


class User(BaseModel):
    """A single client inside an inbound's ``settings.clients``.

    Attributes:
        id: Client UUID (VMess/VLESS). Trojan and Shadowsocks clients are keyed
            by ``password`` and may have no id.
        email: Unique client label inside the panel.
        flow: VLESS flow, ``""`` for none.
        total_gb: Traffic limit in bytes, despite the wire name ``totalGB``.
        expiry_time: Milliseconds since epoch, 0 for no expiry.
        tg_id: Telegram id; the panel stores either a number or a string and the
            variant is kept as received.
    """
    id: Optional[str] = None
    email: str
    flow: Optional[str] = None
    security: Optional[str] = None
    password: Optional[str] = None
    limit_ip: Annotated[Optional[counter], Field(alias="limitIp")] = None
    total_gb: Annotated[Optional[counter], Field(alias="totalGB")] = None
    expiry_time: Annotated[Optional[timestamp], Field(alias="expiryTime")] = None
    enable: Optional[bool] = None
    tg_id: Annotated[Optional[TgId], Field(alias="tgId")] = None
    sub_id: Annotated[Optional[str], Field(alias="subId")] = None
    comment: Optional[str] = None
    reset: Optional[counter] = None
    created_at: Optional[timestamp] = None
    updated_at: Optional[timestamp] = None

    @classmethod
    def new(cls, email: Optional[str] = None, *,
            flow: str = "",
            limit_ip: int = 0,
            total_gb: int = 0,
            expiry_time: int = 0,
            enable: bool = True,
            tg_id: TgId = "",
            comment: str = "",
            **extra: Any) -> Self:
        """Build a fresh client with a random UUID, sub id and current timestamps."""
        now = util.now_ms()
        return cls(id=str(uuid.uuid4()),
                   email=email or util.generate_random_email(),
                   flow=flow,
                   limit_ip=limit_ip,
                   total_gb=total_gb,
                   expiry_time=expiry_time,
                   enable=enable,
                   tg_id=tg_id,
                   sub_id=util.generate_sub_id(),
                   comment=comment,
                   reset=0,
                   created_at=now,
                   updated_at=now,
                   **extra)

    @property
    def flow_control(self) -> Optional[TlsFlowControl]:
        return TlsFlowControl(self.flow) if self.flow else None

    @property
    def security_option(self) -> Optional[UsersSecurity]:
        return UsersSecurity(self.security) if self.security else None


class Fallback(BaseModel):
    sni: Annotated[str, Field(validation_alias=AliasChoices("name", "SNI", "sni"), serialization_alias="name")] = ""
    alpn: Annotated[str, Field(validation_alias=AliasChoices("alpn", "ALPN"), serialization_alias="alpn")] = ""
    path: str = ""
    dest: Union[str, int] = ""
    x_ver: Annotated[int, Field(validation_alias=AliasChoices("xver", "xVer", "x_ver"),
                                serialization_alias="xver", ge=0, le=65535)] = 0


class Settings(BaseModel):
    """Protocol settings of an inbound (the packed ``settings`` field).

    Protocol specific keys that are not modelled here (wireguard ``peers``,
    dokodemo ``address``, socks ``accounts``...) are kept as extra fields.
    """
    clients: Optional[List[User]] = None
    decryption: Optional[str] = None
    encryption: Optional[str] = None
    fallbacks: Optional[List[Fallback]] = None
    method: Optional[SSMethod] = None  # shadowsocks


class ClientSettings(BaseModel):
    clients: List[User]


# StreamSettings stuff


class TcpHeader(BaseModel):
    header_type: Annotated[Optional[str], Field(alias="type")] = None
    request: Optional[Dict[str, Any]] = None
    response: Optional[Dict[str, Any]] = None


class TcpSettings(BaseModel):
    accept_proxy_protocol: Annotated[Optional[bool], Field(alias="acceptProxyProtocol")] = None
    header: Optional[TcpHeader] = None


class KcpSettings(BaseModel):
    mtu: Optional[counter] = None
    tti: Optional[counter] = None
    uplink_capacity: Annotated[Optional[counter], Field(alias="uplinkCapacity")] = None
    downlink_capacity: Annotated[Optional[counter], Field(alias="downlinkCapacity")] = None
    congestion: Optional[bool] = None
    read_buffer_size: Annotated[Optional[counter], Field(alias="readBufferSize")] = None
    write_buffer_size: Annotated[Optional[counter], Field(alias="writeBufferSize")] = None
    header: Optional[Dict[str, Any]] = None
    seed: Optional[str] = None


class WsSettings(BaseModel):
    accept_proxy_protocol: Annotated[Optional[bool], Field(alias="acceptProxyProtocol")] = None
    path: Optional[str] = None
    host: Optional[str] = None
    headers: Optional[Dict[str, Any]] = None
    heartbeat_period: Annotated[Optional[counter], Field(alias="heartbeatPeriod")] = None


class GrpcSettings(BaseModel):
    service_name: Annotated[Optional[str], Field(alias="serviceName")] = None
    authority: Optional[str] = None
    multi_mode: Annotated[Optional[bool], Field(alias="multiMode")] = None


class HttpUpgradeSettings(BaseModel):
    accept_proxy_protocol: Annotated[Optional[bool], Field(alias="acceptProxyProtocol")] = None
    path: Optional[str] = None
    host: Optional[str] = None
    headers: Optional[Dict[str, Any]] = None


class XhttpSettings(BaseModel):
    path: Optional[str] = None
    host: Optional[str] = None
    headers: Optional[Dict[str, Any]] = None
    mode: Optional[XhttpMode] = None


class TlsCertificate(BaseModel):
    certificate_file: Annotated[Optional[str], Field(alias="certificateFile")] = None
    key_file: Annotated[Optional[str], Field(alias="keyFile")] = None
    certificate: Optional[List[str]] = None
    key: Optional[List[str]] = None
    usage: Optional[UsageOption] = None
    ocsp_stapling: Annotated[Optional[counter], Field(alias="ocspStapling")] = None
    one_time_loading: Annotated[Optional[bool], Field(alias="oneTimeLoading")] = None
    build_chain: Annotated[Optional[bool], Field(alias="buildChain")] = None


class TlsSettings(BaseModel):
    server_name: Annotated[Optional[str], Field(alias="serverName")] = None
    min_version: Annotated[Optional[TlsVersion], Field(alias="minVersion")] = None
    max_version: Annotated[Optional[TlsVersion], Field(alias="maxVersion")] = None
    cipher_suites: Annotated[Optional[str], Field(alias="cipherSuites")] = None  # colon separated TlsCipher values
    reject_unknown_sni: Annotated[Optional[bool], Field(alias="rejectUnknownSni")] = None
    certificates: Optional[List[TlsCertificate]] = None
    alpn: Optional[List[AlpnOption]] = None
    settings: Optional[Dict[str, Any]] = None

    @property
    def fingerprint(self) -> Optional[UtlsFingerprint]:
        value = (self.settings or {}).get("fingerprint")
        return UtlsFingerprint(value) if value else None


class RealitySettings(BaseModel):
    show: Optional[bool] = None
    xver: Optional[counter] = None
    dest: Optional[str] = None
    target: Optional[str] = None
    server_names: Annotated[Optional[List[str]], Field(alias="serverNames")] = None
    private_key: Annotated[Optional[str], Field(alias="privateKey")] = None
    short_ids: Annotated[Optional[List[str]], Field(alias="shortIds")] = None
    settings: Optional[Dict[str, Any]] = None


class SockOpt(BaseModel):
    accept_proxy_protocol: Annotated[Optional[bool], Field(alias="acceptProxyProtocol")] = None
    tcp_fast_open: Annotated[Optional[bool], Field(alias="tcpFastOpen")] = None
    mark: Optional[int] = None
    tproxy: Optional[str] = None
    tcp_mptcp: Annotated[Optional[bool], Field(alias="tcpMptcp")] = None
    domain_strategy: Annotated[Optional[DomainStrategy], Field(alias="domainStrategy")] = None
    tcp_congestion: Annotated[Optional[TcpCongestion], Field(alias="tcpcongestion")] = None
    dialer_proxy: Annotated[Optional[str], Field(alias="dialerProxy")] = None
    interface: Optional[str] = None


class StreamSettings(BaseModel):
    network: Optional[TransportProtocol] = None
    security: Optional[str] = None  # none, tls, reality
    external_proxy: Annotated[Optional[List[Dict[str, Any]]], Field(alias="externalProxy")] = None
    tcp_settings: Annotated[Optional[TcpSettings], Field(alias="tcpSettings")] = None
    kcp_settings: Annotated[Optional[KcpSettings], Field(alias="kcpSettings")] = None
    ws_settings: Annotated[Optional[WsSettings], Field(alias="wsSettings")] = None
    grpc_settings: Annotated[Optional[GrpcSettings], Field(alias="grpcSettings")] = None
    http_upgrade_settings: Annotated[Optional[HttpUpgradeSettings], Field(alias="httpupgradeSettings")] = None
    xhttp_settings: Annotated[Optional[XhttpSettings], Field(alias="xhttpSettings")] = None
    tls_settings: Annotated[Optional[TlsSettings], Field(alias="tlsSettings")] = None
    reality_settings: Annotated[Optional[RealitySettings], Field(alias="realitySettings")] = None
    sockopt: Optional[SockOpt] = None


class Sniffing(BaseModel):
    enabled: bool = False
    dest_override: Annotated[List[SniffingOption], Field(alias="destOverride", default_factory=list)]
    metadata_only: Annotated[bool, Field(alias="metadataOnly")] = False
    route_only: Annotated[bool, Field(alias="routeOnly")] = False


class Allocate(BaseModel):
    strategy: Optional[str] = None  # always, random
    refresh: Optional[counter] = None
    concurrency: Optional[counter] = None


class ClientStats(BaseModel):
    """Traffic statistics and limits of one client, as tracked by the panel.

    Attributes:
        inbound_id: The ID of the inbound this client belongs to.
        up: Total uploaded bytes.
        down: Total downloaded bytes.
        all_time: Bytes transferred since creation, not cleared by resets.
        expiry_time: Milliseconds since epoch, 0 for no expiry.
        total: Traffic limit in bytes, 0 for unlimited.
        reset: Auto-reset period in days.
        last_online: Milliseconds since epoch of the last connection.
    """
    id: int
    inbound_id: Annotated[int, Field(alias="inboundId")]
    enable: bool
    email: str
    uuid: Optional[str] = None
    sub_id: Annotated[Optional[str], Field(alias="subId")] = None
    up: counter
    down: counter
    all_time: Annotated[Optional[counter], Field(alias="allTime")] = None
    expiry_time: Annotated[timestamp, Field(alias="expiryTime")]
    total: counter
    reset: int = 0
    last_online: Annotated[Optional[timestamp], Field(alias="lastOnline")] = None


class Inbound(PackedJsonFields):
    """Represents one proxy listener configured in the panel.

    Attributes:
        id: The unique identifier for this inbound.
        up: Total uploaded bytes through this inbound.
        down: Total downloaded bytes through this inbound.
        total: Total data limit in bytes, 0 for unlimited.
        all_time: Bytes transferred since creation.
        remark: Human-readable name for the inbound.
        expiry_time: Milliseconds since epoch, 0 for no expiry.
        traffic_reset: Traffic reset schedule.
        client_stats: Per-client statistics, or None if the inbound has no clients.
        listen: The IP address the inbound listens on, empty for all.
        settings: Protocol settings (packed JSON on the wire).
        stream_settings: Transport settings (packed JSON on the wire).
        sniffing: Sniffing configuration (packed JSON on the wire).
        allocate: Port allocation strategy (packed JSON on the wire).
        tag: Internal tag identifier for routing.
    """
    id: int
    up: counter
    down: counter
    total: counter
    all_time: Annotated[Optional[counter], Field(alias="allTime")] = None
    remark: str = ""
    enable: bool
    expiry_time: Annotated[timestamp, Field(alias="expiryTime")] = 0
    traffic_reset: Annotated[Optional[TrafficReset], Field(alias="trafficReset")] = None
    last_traffic_reset_time: Annotated[Optional[timestamp], Field(alias="lastTrafficResetTime")] = None
    client_stats: Annotated[Optional[List[ClientStats]], Field(alias="clientStats")] = None
    listen: Optional[ip_address] = None
    port: port_number
    protocol: Protocol
    settings: Settings = Field(default_factory=Settings)
    stream_settings: Annotated[Optional[StreamSettings], Field(alias="streamSettings")] = None
    tag: Optional[str] = None
    sniffing: Optional[Sniffing] = None
    allocate: Optional[Allocate] = None

    @property
    def clients(self) -> List[User]:
        return self.settings.clients or []


class CreateInboundRequest(PackedJsonFields):
    """Body of ``add`` and ``update/{id}``: an inbound without server-assigned fields."""
    up: counter = 0
    down: counter = 0
    total: counter = 0
    remark: str = ""
    enable: bool = True
    expiry_time: Annotated[timestamp, Field(alias="expiryTime")] = 0
    traffic_reset: Annotated[Optional[TrafficReset], Field(alias="trafficReset")] = None
    listen: Optional[ip_address] = None
    port: port_number
    protocol: Protocol
    settings: Settings = Field(default_factory=Settings)
    stream_settings: Annotated[Optional[StreamSettings], Field(alias="streamSettings")] = None
    sniffing: Optional[Sniffing] = None
    allocate: Optional[Allocate] = None
    tag: Optional[str] = None

    @classmethod
    def from_inbound(cls, inbound: Inbound) -> Self:
        """Copy the editable part of an existing inbound, e.g. to update it."""
        fields = inbound.model_dump(include=set(cls.model_fields), exclude_unset=True)
        return cls.model_validate(fields)


class ClientRequest(PackedJsonFields):
    """Body of ``addClient`` and ``updateClient/{uuid}``.

    Attributes:
        inbound_id: The ID of the parent inbound (wire name ``id``).
        settings: Container of the clients to add (packed JSON on the wire).
    """
    inbound_id: Annotated[int, Field(alias="id")]
    settings: ClientSettings

    @classmethod
    def for_users(cls, inbound_id: int, *users: User) -> Self:
        return cls(inbound_id=inbound_id, settings=ClientSettings(clients=list(users)))


_IP_LIST = pydantic.TypeAdapter(List[ip_address])


class ClientIps(pydantic.RootModel[Union[List[ip_address], str]]):
    """IPs recorded for a client, or the panel's diagnostic message.

    The panel answers ``["1.2.3.4", ...]`` when it has records and a plain
    string such as ``"No IP Record"`` when it does not. Some versions pack the
    list into a string; that form is unpacked as well.
    """

    # noinspection PyNestedDecorators
    @field_validator("root", mode="before")
    @classmethod
    def unpack_json_list(cls, value: Any) -> Any:
        if isinstance(value, str) and value.lstrip().startswith("["):
            try:
                return _IP_LIST.validate_json(value)
            except pydantic.ValidationError:
                return value
        return value

    @property
    def ips(self) -> List[ip_address]:
        return self.root if isinstance(self.root, list) else []

    @property
    def message(self) -> Optional[str]:
        return self.root if isinstance(self.root, str) else None

    @property
    def has_ips(self) -> bool:
        return isinstance(self.root, list)


class Usage(BaseModel):
    current: Optional[counter] = None
    total: Optional[counter] = None


class XrayState(BaseModel):
    state: Optional[str] = None  # running, stop, error
    error_msg: Annotated[Optional[str], Field(alias="errorMsg")] = None
    version: Optional[str] = None


class NetIO(BaseModel):
    up: Optional[counter] = None
    down: Optional[counter] = None


class NetTraffic(BaseModel):
    sent: Optional[counter] = None
    recv: Optional[counter] = None


class PublicIp(BaseModel):
    ipv4: Optional[str] = None
    ipv6: Optional[str] = None


class AppStats(BaseModel):
    threads: Optional[counter] = None
    mem: Optional[counter] = None
    uptime: Optional[counter] = None


class ServerStatus(BaseModel):
    """Host and Xray metrics from ``server/status``; every field is optional."""
    cpu: Optional[metric] = None
    cpu_cores: Annotated[Optional[counter], Field(alias="cpuCores")] = None
    logical_pro: Annotated[Optional[counter], Field(alias="logicalPro")] = None
    cpu_speed_mhz: Annotated[Optional[metric], Field(alias="cpuSpeedMhz")] = None
    mem: Optional[Usage] = None
    swap: Optional[Usage] = None
    disk: Optional[Usage] = None
    xray: Optional[XrayState] = None
    uptime: Optional[counter] = None
    loads: Optional[List[metric]] = None
    tcp_count: Annotated[Optional[counter], Field(alias="tcpCount")] = None
    udp_count: Annotated[Optional[counter], Field(alias="udpCount")] = None
    net_io: Annotated[Optional[NetIO], Field(alias="netIO")] = None
    net_traffic: Annotated[Optional[NetTraffic], Field(alias="netTraffic")] = None
    public_ip: Annotated[Optional[PublicIp], Field(alias="publicIP")] = None
    app_stats: Annotated[Optional[AppStats], Field(alias="appStats")] = None


class ConfigJson(BaseModel):
    """The Xray config the panel generates; sections are kept as raw JSON."""
    log: Optional[Dict[str, Any]] = None
    api: Optional[Dict[str, Any]] = None
    dns: Optional[Dict[str, Any]] = None
    inbounds: Optional[List[Dict[str, Any]]] = None
    outbounds: Optional[List[Dict[str, Any]]] = None
    policy: Optional[Dict[str, Any]] = None
    routing: Optional[Dict[str, Any]] = None
    stats: Optional[Dict[str, Any]] = None


class CpuHistoryPoint(BaseModel):
    t: timestamp  # seconds since epoch
    cpu: metric


class Uuid(BaseModel):
    uuid: str


class X25519Cert(BaseModel):
    private_key: Annotated[Optional[str], Field(alias="privateKey")] = None
    public_key: Annotated[Optional[str], Field(alias="publicKey")] = None


class Mldsa65(BaseModel):
    seed: Optional[str] = None
    verify: Optional[str] = None


class Mlkem768(BaseModel):
    seed: Optional[str] = None
    client: Optional[str] = None


class VlessEncAuth(BaseModel):
    label: Optional[str] = None
    decryption: Optional[str] = None
    encryption: Optional[str] = None


class VlessEnc(BaseModel):
    auths: Optional[List[VlessEncAuth]] = None


class EchCert(BaseModel):
    ech_server_keys: Annotated[Optional[str], Field(alias="echServerKeys")] = None
    ech_config_list: Annotated[Optional[str], Field(alias="echConfigList")] = None


class LoginInfo(BaseModel):
    """Whatever the panel returns in ``obj`` on login (usually nothing)."""


class LoginResult(BaseModel):
    message: str = ""
    details: Optional[LoginInfo] = None
