"""Closed sets of wire tokens used by the panel and by Xray.

Each enum carries an ``UNKNOWN`` member. Tokens the panel sends that are not
listed here (new protocols, new transports after a server upgrade) decode to an
unknown member that still carries the original token, so a record read from the
panel is written back unchanged.
"""

from enum import Enum


class OpenEnum(str, Enum):
    """``str`` enum whose lookup never fails for string tokens.

    An unlisted token yields a pseudo-member named ``UNKNOWN`` whose value is
    the token itself; :attr:`is_unknown` tells it apart from listed members.
    Matching is exact, the panel's casing is preserved.

    Examples:
        >>> Protocol("hysteria2").value
        'hysteria2'
        >>> Protocol("hysteria2").is_unknown
        True
    """

    @classmethod
    def _missing_(cls, value):
        if not isinstance(value, str):
            return None
        pseudo = str.__new__(cls, value)
        pseudo._name_ = "UNKNOWN"
        pseudo._value_ = value
        return pseudo

    @property
    def is_unknown(self) -> bool:
        return self._name_ == "UNKNOWN"

    def __str__(self) -> str:
        return self.value


class Protocol(OpenEnum):
    VMESS = "vmess"
    VLESS = "vless"
    TROJAN = "trojan"
    SHADOWSOCKS = "shadowsocks"
    DOKODEMO_DOOR = "dokodemo-door"
    SOCKS = "socks"
    HTTP = "http"
    WIREGUARD = "wireguard"
    UNKNOWN = "unknown"


class TransportProtocol(OpenEnum):
    TCP = "tcp"
    KCP = "kcp"
    WS = "ws"
    GRPC = "grpc"
    HTTP_UPGRADE = "httpupgrade"
    XHTTP = "xhttp"
    UNKNOWN = "unknown"


class SniffingOption(OpenEnum):
    HTTP = "http"
    TLS = "tls"
    QUIC = "quic"
    FAKEDNS = "fakedns"
    UNKNOWN = "unknown"


class TrafficReset(OpenEnum):
    NEVER = "never"
    HOURLY = "hourly"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    UNKNOWN = "unknown"


class SSMethod(OpenEnum):
    AES_256_GCM = "aes-256-gcm"
    AES_128_GCM = "aes-128-gcm"
    CHACHA20_POLY1305 = "chacha20-poly1305"
    CHACHA20_IETF_POLY1305 = "chacha20-ietf-poly1305"
    XCHACHA20_POLY1305 = "xchacha20-poly1305"
    XCHACHA20_IETF_POLY1305 = "xchacha20-ietf-poly1305"
    BLAKE3_AES_128_GCM = "2022-blake3-aes-128-gcm"
    BLAKE3_AES_256_GCM = "2022-blake3-aes-256-gcm"
    BLAKE3_CHACHA20_POLY1305 = "2022-blake3-chacha20-poly1305"
    UNKNOWN = "unknown"


class TlsFlowControl(OpenEnum):
    VISION = "xtls-rprx-vision"
    VISION_UDP443 = "xtls-rprx-vision-udp443"
    UNKNOWN = "unknown"


class TlsVersion(OpenEnum):
    TLS10 = "1.0"
    TLS11 = "1.1"
    TLS12 = "1.2"
    TLS13 = "1.3"
    UNKNOWN = "unknown"


class TlsCipher(OpenEnum):
    AES_128_GCM = "TLS_AES_128_GCM_SHA256"
    AES_256_GCM = "TLS_AES_256_GCM_SHA384"
    CHACHA20_POLY1305 = "TLS_CHACHA20_POLY1305_SHA256"
    ECDHE_ECDSA_AES_128_CBC = "TLS_ECDHE_ECDSA_WITH_AES_128_CBC_SHA"
    ECDHE_ECDSA_AES_256_CBC = "TLS_ECDHE_ECDSA_WITH_AES_256_CBC_SHA"
    ECDHE_RSA_AES_128_CBC = "TLS_ECDHE_RSA_WITH_AES_128_CBC_SHA"
    ECDHE_RSA_AES_256_CBC = "TLS_ECDHE_RSA_WITH_AES_256_CBC_SHA"
    ECDHE_ECDSA_AES_128_GCM = "TLS_ECDHE_ECDSA_WITH_AES_128_GCM_SHA256"
    ECDHE_ECDSA_AES_256_GCM = "TLS_ECDHE_ECDSA_WITH_AES_256_GCM_SHA384"
    ECDHE_RSA_AES_128_GCM = "TLS_ECDHE_RSA_WITH_AES_128_GCM_SHA256"
    ECDHE_RSA_AES_256_GCM = "TLS_ECDHE_RSA_WITH_AES_256_GCM_SHA384"
    ECDHE_ECDSA_CHACHA20_POLY1305 = "TLS_ECDHE_ECDSA_WITH_CHACHA20_POLY1305_SHA256"
    ECDHE_RSA_CHACHA20_POLY1305 = "TLS_ECDHE_RSA_WITH_CHACHA20_POLY1305_SHA256"
    UNKNOWN = "unknown"


class UtlsFingerprint(OpenEnum):
    CHROME = "chrome"
    FIREFOX = "firefox"
    SAFARI = "safari"
    IOS = "ios"
    ANDROID = "android"
    EDGE = "edge"
    UTLS_360 = "360"
    QQ = "qq"
    RANDOM = "random"
    RANDOMIZED = "randomized"
    RANDOMIZED_NO_ALPN = "randomizednoalpn"
    UNSAFE = "unsafe"
    UNKNOWN = "unknown"


class AlpnOption(OpenEnum):
    H3 = "h3"
    H2 = "h2"
    HTTP1 = "http/1.1"
    UNKNOWN = "unknown"


class UsageOption(OpenEnum):
    ENCIPHERMENT = "encipherment"
    VERIFY = "verify"
    ISSUE = "issue"
    UNKNOWN = "unknown"


class DomainStrategy(OpenEnum):
    AS_IS = "AsIs"
    USE_IP = "UseIP"
    USE_IPV6V4 = "UseIPv6v4"
    USE_IPV6 = "UseIPv6"
    USE_IPV4V6 = "UseIPv4v6"
    USE_IPV4 = "UseIPv4"
    FORCE_IP = "ForceIP"
    FORCE_IPV6V4 = "ForceIPv6v4"
    FORCE_IPV6 = "ForceIPv6"
    FORCE_IPV4V6 = "ForceIPv4v6"
    FORCE_IPV4 = "ForceIPv4"
    UNKNOWN = "unknown"


class TcpCongestion(OpenEnum):
    BBR = "bbr"
    CUBIC = "cubic"
    RENO = "reno"
    UNKNOWN = "unknown"


class UsersSecurity(OpenEnum):
    AES_128_GCM = "aes-128-gcm"
    CHACHA20_POLY1305 = "chacha20-poly1305"
    AUTO = "auto"
    NONE = "none"
    ZERO = "zero"
    UNKNOWN = "unknown"


class XhttpMode(OpenEnum):
    AUTO = "auto"
    PACKET_UP = "packet-up"
    STREAM_UP = "stream-up"
    STREAM_ONE = "stream-one"
    UNKNOWN = "unknown"
