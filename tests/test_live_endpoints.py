"""Read-only checks against the panel configured in .env."""
import pytest

from xui_client import XUIClient
from xui_client.models import ClientStats, Inbound, ServerStatus


class TestReadOnlyEndpoints:
    """Test suite for read-only endpoints on a real panel."""

    @pytest.mark.dependency(name="live_get_inbounds_all")
    async def test_get_all_inbounds(self, live_client: XUIClient):
        """Test get_all returns list of Inbounds."""
        inbounds = await live_client.inbounds_end.get_all()
        assert isinstance(inbounds, list)
        assert all(isinstance(i, Inbound) for i in inbounds)
        assert all(1 <= i.port <= 65535 for i in inbounds)

    @pytest.mark.dependency(depends=["live_get_inbounds_all"])
    async def test_get_specific_inbound_matches_get_all(self, live_client: XUIClient):
        """Test get_specific_inbound matches data from get_all."""
        all_inbounds = await live_client.inbounds_end.get_all()
        if not all_inbounds:
            pytest.skip("No inbounds available for testing")
        specific = await live_client.inbounds_end.get_specific_inbound(all_inbounds[0].id)
        assert specific.id == all_inbounds[0].id
        assert specific.remark == all_inbounds[0].remark
        assert specific.port == all_inbounds[0].port

    @pytest.mark.dependency(depends=["live_get_inbounds_all"])
    async def test_get_client_with_email(self, live_client: XUIClient):
        """Test get_client_with_email returns ClientStats."""
        emails = [s.email for inb in await live_client.inbounds_end.get_all() for s in inb.client_stats or []]
        if not emails:
            pytest.skip("No clients available for testing")
        client_stats = await live_client.clients_end.get_client_with_email(emails[0])
        assert isinstance(client_stats, ClientStats)
        assert client_stats.email == emails[0]

    async def test_status(self, live_client: XUIClient):
        status = await live_client.server_end.status()
        assert isinstance(status, ServerStatus)

    async def test_new_uuid(self, live_client: XUIClient):
        assert len((await live_client.server_end.new_uuid()).uuid) == 36

    async def test_onlines(self, live_client: XUIClient):
        online = await live_client.inbounds_end.online_clients()
        assert online is None or all(isinstance(email, str) for email in online)
