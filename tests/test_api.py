import json

import httpx
import pytest

from sessionauth.api import oauth_callback, refresh_tokens, sign_in, sign_out, sign_up
from sessionauth.models import SignInRequest, SignUpRequest
from sessionauth.token_store import TokenPair
from sessionclient.errors import AuthExpiredError, NetworkError, ServerError, ValidationError

BASE_URL = "http://api.test"

AUTH_PAYLOAD = {
    "success": True,
    "data": {
        "user": {
            "id": 42,
            "name": "Ada Lovelace",
            "email": "ada@example.com",
            "emailVerified": True,
            "role": "admin",
            "status": "active",
        },
        "tokens": {"accessToken": "access-1", "refreshToken": "refresh-1"},
    },
}


@pytest.mark.asyncio
async def test_sign_in_success(httpx_mock) -> None:
    httpx_mock.add_response(url=f"{BASE_URL}/auth/login", method="POST", json=AUTH_PAYLOAD)

    async with httpx.AsyncClient(base_url=BASE_URL) as client:
        auth = await sign_in(SignInRequest("ada@example.com", "secret"), client=client)

    assert auth.tokens == TokenPair("access-1", "refresh-1")
    assert auth.user.id == "42"
    assert auth.user.email_verified is True
    assert auth.user.role == "admin"
    request = httpx_mock.get_request()
    assert json.loads(request.content) == {"email": "ada@example.com", "password": "secret"}
    assert "authorization" not in request.headers


@pytest.mark.asyncio
async def test_sign_in_rejected(httpx_mock) -> None:
    httpx_mock.add_response(
        url=f"{BASE_URL}/auth/login",
        method="POST",
        status_code=401,
        json={"message": "Unauthorized"},
    )

    async with httpx.AsyncClient(base_url=BASE_URL) as client:
        with pytest.raises(AuthExpiredError):
            await sign_in(SignInRequest("ada@example.com", "wrong"), client=client)


@pytest.mark.asyncio
async def test_sign_up_sends_registration(httpx_mock) -> None:
    httpx_mock.add_response(url=f"{BASE_URL}/auth/register", method="POST", json=AUTH_PAYLOAD)

    async with httpx.AsyncClient(base_url=BASE_URL) as client:
        auth = await sign_up(SignUpRequest("Ada", "ada@example.com", "secret"), client=client)

    assert auth.tokens.access_token == "access-1"
    assert json.loads(httpx_mock.get_request().content) == {
        "name": "Ada",
        "email": "ada@example.com",
        "password": "secret",
    }


@pytest.mark.asyncio
async def test_sign_in_missing_tokens(httpx_mock) -> None:
    httpx_mock.add_response(
        url=f"{BASE_URL}/auth/login",
        method="POST",
        json={"success": True, "data": {"user": AUTH_PAYLOAD["data"]["user"], "tokens": {}}},
    )

    async with httpx.AsyncClient(base_url=BASE_URL) as client:
        with pytest.raises(ServerError, match="accessToken"):
            await sign_in(SignInRequest("ada@example.com", "secret"), client=client)


@pytest.mark.asyncio
async def test_refresh_tokens_success(httpx_mock) -> None:
    httpx_mock.add_response(
        url=f"{BASE_URL}/auth/refresh",
        method="POST",
        json={"success": True, "data": {"tokens": {"accessToken": "a2", "refreshToken": "r2"}}},
    )

    async with httpx.AsyncClient(base_url=BASE_URL) as client:
        pair = await refresh_tokens("r1", client=client)

    assert pair == TokenPair("a2", "r2")
    assert json.loads(httpx_mock.get_request().content) == {"refreshToken": "r1"}


@pytest.mark.asyncio
async def test_refresh_tokens_invalid_grant(httpx_mock) -> None:
    httpx_mock.add_response(
        url=f"{BASE_URL}/auth/refresh",
        method="POST",
        status_code=400,
        json={"message": "Refresh token is invalid.", "code": "invalid_grant"},
    )

    async with httpx.AsyncClient(base_url=BASE_URL) as client:
        with pytest.raises(ValidationError) as exc_info:
            await refresh_tokens("r1", client=client)

    assert exc_info.value.code == "invalid_grant"


@pytest.mark.asyncio
async def test_refresh_tokens_missing_tokens(httpx_mock) -> None:
    httpx_mock.add_response(
        url=f"{BASE_URL}/auth/refresh",
        method="POST",
        json={"success": True, "data": {}},
    )

    async with httpx.AsyncClient(base_url=BASE_URL) as client:
        with pytest.raises(ServerError, match="missing tokens"):
            await refresh_tokens("r1", client=client)


@pytest.mark.asyncio
async def test_refresh_tokens_network_error(httpx_mock) -> None:
    httpx_mock.add_exception(httpx.ConnectError("refused"), url=f"{BASE_URL}/auth/refresh")

    async with httpx.AsyncClient(base_url=BASE_URL) as client:
        with pytest.raises(NetworkError):
            await refresh_tokens("r1", client=client)


@pytest.mark.asyncio
async def test_sign_out_sends_bearer(httpx_mock) -> None:
    httpx_mock.add_response(url=f"{BASE_URL}/auth/signout", method="POST", json={"success": True})

    async with httpx.AsyncClient(base_url=BASE_URL) as client:
        await sign_out("access-1", client=client)

    assert httpx_mock.get_request().headers["authorization"] == "Bearer access-1"


@pytest.mark.asyncio
async def test_oauth_callback_exchange(httpx_mock) -> None:
    httpx_mock.add_response(
        url=f"{BASE_URL}/auth/oauth/callback",
        method="POST",
        json=AUTH_PAYLOAD,
    )

    async with httpx.AsyncClient(base_url=BASE_URL) as client:
        auth = await oauth_callback("code-1", "state-1", client=client)

    assert auth.user.name == "Ada Lovelace"
    assert json.loads(httpx_mock.get_request().content) == {"code": "code-1", "state": "state-1"}
