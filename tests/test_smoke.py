import pytest

from client import create_client
from sessionauth.models import SessionState
from sessionclient.env import ClientSettings


@pytest.mark.asyncio
async def test_create_client_defaults() -> None:
    async with create_client(ClientSettings()) as client:
        assert client.session.state is SessionState.UNAUTHENTICATED
        assert str(client.http_client.base_url) == "http://localhost:8000/api/"
        assert client.pipeline is client.api.pipeline
