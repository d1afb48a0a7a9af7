"""Unit tests for the panel records: packed JSON fields, open enums and loose typing."""
import json

import pydantic
import pytest
from conftest import CLIENT_UUID, inbound_payload

from xui_client.enums import (Protocol, SniffingOption, TlsFlowControl, TrafficReset, TransportProtocol, UsersSecurity,
                               UtlsFingerprint)
from xui_client.models import (ClientIps, ClientRequest, ClientStats, CreateInboundRequest, Fallback, Inbound,
                               ServerStatus, Settings, Sniffing, TlsSettings, User)


class TestPackedJsonFields:
    """Test suite for fields the panel sends as JSON inside a string."""

    def test_decodes_string_fields(self):
        inbound = Inbound.model_validate(inbound_payload())
        assert inbound.clients[0].id == CLIENT_UUID
        assert inbound.settings.decryption == "none"
        assert inbound.stream_settings.network is TransportProtocol.TCP
        assert inbound.stream_settings.reality_settings.server_names == ["example.com"]
        assert inbound.sniffing.dest_override == [SniffingOption.HTTP, SniffingOption.TLS]
        assert inbound.allocate.refresh == 5

    def test_accepts_already_decoded_objects(self):
        inbound = Inbound.model_validate(inbound_payload(sniffing={"enabled": False}, settings={"clients": []}))
        assert inbound.sniffing.enabled is False
        assert inbound.clients == []

    def test_empty_strings_mean_unset(self):
        inbound = Inbound.model_validate(inbound_payload(settings="", streamSettings="", sniffing="", allocate=""))
        assert inbound.settings == Settings()
        assert inbound.stream_settings is None
        assert inbound.sniffing is None

    def test_wire_form_packs_fields_back_into_strings(self):
        wire = Inbound.model_validate(inbound_payload()).to_wire()
        for key in ("settings", "streamSettings", "sniffing", "allocate"):
            assert isinstance(wire[key], str)
        settings = json.loads(wire["settings"])
        assert settings["clients"][0]["id"] == CLIENT_UUID
        assert settings["clients"][0]["tgId"] == ""
        assert settings["decryption"] == "none"

    def test_round_trip_is_stable(self):
        """Test decode(encode(decode(x))) equals decode(x)."""
        inbound = Inbound.model_validate(inbound_payload())
        again = Inbound.model_validate(json.loads(inbound.to_wire_json()))
        assert again == inbound

    @pytest.mark.parametrize("key", ["settings", "streamSettings", "sniffing", "allocate"])
    def test_packed_fields_go_back_unchanged(self, key):
        """Test each packed field is written back with the same JSON it was read from."""
        payload = inbound_payload()
        wire = Inbound.model_validate(payload).to_wire()
        assert json.loads(wire[key]) == json.loads(payload[key])

    def test_partial_records_gain_no_defaults(self):
        """Test sparse packed records with unlisted tokens are not filled in or renamed."""
        packed = {
            "settings": {"clients": [], "method": "aes-192-gcm", "fallbacks": [{"dest": 80}]},
            "streamSettings": {"network": "raw", "security": "none"},
            "sniffing": {"enabled": True, "destOverride": ["http", "bittorrent"]},
            "allocate": {"strategy": "always"},
        }
        payload = inbound_payload(protocol="hysteria2", **{k: json.dumps(v) for k, v in packed.items()})
        wire = Inbound.model_validate(payload).to_wire()
        assert wire["protocol"] == "hysteria2"
        for key, value in packed.items():
            assert json.loads(wire[key]) == value

    def test_explicit_nulls_are_kept(self):
        payload = inbound_payload(allocate=json.dumps({"strategy": "always", "refresh": None}))
        wire = Inbound.model_validate(payload).to_wire()
        assert json.loads(wire["allocate"]) == {"strategy": "always", "refresh": None}

    def test_built_records_pack_only_assigned_keys(self):
        request = CreateInboundRequest(port=1080, protocol="vless", sniffing=Sniffing(enabled=True))
        assert json.loads(request.to_wire()["sniffing"]) == {"enabled": True}

    def test_malformed_packed_json_fails_validation(self):
        with pytest.raises(pydantic.ValidationError) as exc_info:
            Inbound.model_validate(inbound_payload(settings="{broken"))
        assert exc_info.value.errors()[0]["loc"] == ("settings",)

    def test_client_request_wire_form(self):
        user = User(id=CLIENT_UUID, email="foo@x", enable=True)
        wire = ClientRequest.for_users(3, user).to_wire()
        assert wire["id"] == 3
        assert json.loads(wire["settings"]) == {"clients": [{"id": CLIENT_UUID, "email": "foo@x", "enable": True}]}

    def test_create_request_from_inbound(self):
        inbound = Inbound.model_validate(inbound_payload())
        request = CreateInboundRequest.from_inbound(inbound)
        wire = request.to_wire()
        assert "id" not in wire
        assert wire["port"] == 443
        assert json.loads(wire["settings"])["clients"][0]["email"] == "foo@x"


class TestOpenTypes:
    """Test suite for unknown variants and unknown keys."""

    def test_unknown_protocol(self):
        inbound = Inbound.model_validate(inbound_payload(protocol="hysteria2"))
        assert inbound.protocol.is_unknown
        assert inbound.protocol == "hysteria2"
        assert inbound.to_wire()["protocol"] == "hysteria2"

    def test_listed_tokens_are_not_unknown(self):
        assert Protocol("dokodemo-door") is Protocol.DOKODEMO_DOOR
        assert not Protocol.VLESS.is_unknown
        assert Protocol.UNKNOWN.is_unknown

    def test_enum_lookup_keeps_token_case(self):
        """Test a token in another case is kept verbatim rather than folded onto a member."""
        reset = TrafficReset("Monthly")
        assert reset.is_unknown
        assert reset.value == "Monthly"
        assert TrafficReset("monthly") is TrafficReset.MONTHLY

    def test_unknown_sniffing_option(self):
        inbound = Inbound.model_validate(inbound_payload(sniffing={"destOverride": ["http", "bittorrent"]}))
        assert inbound.sniffing.dest_override == ["http", "bittorrent"]
        assert inbound.sniffing.dest_override[0] is SniffingOption.HTTP
        assert inbound.sniffing.dest_override[1].is_unknown

    def test_unknown_keys_survive(self):
        payload = inbound_payload(nodeId=9)
        settings = json.loads(payload["settings"])
        settings["peers"] = [{"publicKey": "k"}]
        payload["settings"] = json.dumps(settings)

        wire = Inbound.model_validate(payload).to_wire()
        assert wire["nodeId"] == 9
        assert json.loads(wire["settings"])["peers"] == [{"publicKey": "k"}]

    def test_flow_accessor(self):
        user = User(email="a", flow="xtls-rprx-vision")
        assert user.flow_control is TlsFlowControl.VISION
        assert User(email="a", flow="").flow_control is None

    def test_security_and_fingerprint_accessors(self):
        assert User(email="a", security="auto").security_option is UsersSecurity.AUTO
        assert User(email="a", security="").security_option is None
        tls = TlsSettings.model_validate({"serverName": "a.com", "settings": {"fingerprint": "chrome"}})
        assert tls.fingerprint is UtlsFingerprint.CHROME
        assert TlsSettings().fingerprint is None


class TestLooseTyping:
    """Test suite for polymorphic and stringly numeric values."""

    @pytest.mark.parametrize("tg_id", [123456789, "123456789", ""])
    def test_tg_id_keeps_variant(self, tg_id):
        user = User.model_validate({"email": "a", "tgId": tg_id})
        assert user.tg_id == tg_id
        assert type(user.tg_id) is type(tg_id)
        assert user.to_wire()["tgId"] == tg_id

    def test_numeric_strings_are_coerced(self):
        status = ServerStatus.model_validate({"cpu": "12.5", "cpuCores": "4", "uptime": 100,
                                              "mem": {"current": "1024", "total": 4096}})
        assert status.cpu == 12.5
        assert status.cpu_cores == 4
        assert status.mem.current == 1024

    def test_port_out_of_range(self):
        with pytest.raises(pydantic.ValidationError):
            Inbound.model_validate(inbound_payload(port=70000))

    def test_negative_counter_rejected(self):
        with pytest.raises(pydantic.ValidationError):
            ClientStats.model_validate({"id": 1, "inboundId": 1, "enable": True, "email": "a",
                                        "up": -1, "down": 0, "expiryTime": 0, "total": 0})

    def test_client_ips_message(self):
        ips = ClientIps.model_validate("No IP Record")
        assert ips.message == "No IP Record"
        assert ips.ips == []
        assert not ips.has_ips

    def test_client_ips_list(self):
        ips = ClientIps.model_validate(["1.2.3.4", "::1"])
        assert ips.ips == ["1.2.3.4", "::1"]
        assert ips.message is None

    def test_client_ips_packed_list(self):
        assert ClientIps.model_validate('["1.2.3.4"]').ips == ["1.2.3.4"]


class TestUser:
    """Test suite for client construction helpers."""

    def test_new_user(self):
        user = User.new("bob", limit_ip=2, tg_id=42)
        assert user.email == "bob"
        assert len(user.id) == 36
        assert len(user.sub_id) == 16
        assert user.created_at == user.updated_at
        assert user.tg_id == 42
        assert user.limit_ip == 2

    def test_new_user_random_email(self):
        assert len(User.new().email) == 8

    def test_trojan_client_without_id(self):
        user = User.model_validate({"password": "p", "email": "t"})
        assert user.id is None
        assert "id" not in user.to_wire()


class TestFallback:
    """Test suite for the fallback record's alternative key names."""

    @pytest.mark.parametrize("key", ["name", "SNI", "sni"])
    def test_sni_aliases(self, key):
        fallback = Fallback.model_validate({key: "example.com", "dest": 8080, "xver": 1})
        assert fallback.sni == "example.com"
        assert fallback.dest == 8080
        assert fallback.x_ver == 1

    def test_wire_names(self):
        wire = Fallback(sni="a.com", dest="/dev/shm/x.sock", x_ver=2).to_wire()
        assert wire == {"name": "a.com", "alpn": "", "path": "", "dest": "/dev/shm/x.sock", "xver": 2}
