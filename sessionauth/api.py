from __future__ import annotations

from typing import Any

import httpx

from sessionclient.api_client import ApiResponse
from sessionclient.constants import REFRESH_PATH, SIGN_IN_PATH, SIGN_OUT_PATH, SIGN_UP_PATH
from sessionclient.errors import ServerError, error_from_response, network_error

from .models import AuthResponse, SignInRequest, SignUpRequest, tokens_from_payload
from .token_store import TokenPair

OAUTH_CALLBACK_PATH = "/auth/oauth/callback"


async def _auth_request(
    path: str,
    payload: dict[str, Any] | None,
    *,
    client: httpx.AsyncClient,
    access_token: str | None = None,
) -> Any:
    headers = {}
    if access_token:
        headers["Authorization"] = f"Bearer {access_token}"

    request = client.build_request("POST", path, json=payload, headers=headers)
    try:
        response = await client.send(request)
    except httpx.TransportError as error:
        raise network_error(error, request) from error

    if response.status_code >= 400:
        raise error_from_response(response)

    return ApiResponse.from_response(response).data


def _expect_object(data: Any, what: str) -> dict:
    if not isinstance(data, dict):
        raise ServerError(f"{what} response is missing its data object.")
    return data


async def sign_in(request: SignInRequest, *, client: httpx.AsyncClient) -> AuthResponse:
    data = await _auth_request(SIGN_IN_PATH, request.to_payload(), client=client)
    return AuthResponse.from_payload(_expect_object(data, "Sign-in"))


async def sign_up(request: SignUpRequest, *, client: httpx.AsyncClient) -> AuthResponse:
    data = await _auth_request(SIGN_UP_PATH, request.to_payload(), client=client)
    return AuthResponse.from_payload(_expect_object(data, "Sign-up"))


async def oauth_callback(code: str, state: str, *, client: httpx.AsyncClient) -> AuthResponse:
    data = await _auth_request(
        OAUTH_CALLBACK_PATH,
        {"code": code, "state": state},
        client=client,
    )
    return AuthResponse.from_payload(_expect_object(data, "OAuth callback"))


async def refresh_tokens(refresh_token: str, *, client: httpx.AsyncClient) -> TokenPair:
    data = await _auth_request(REFRESH_PATH, {"refreshToken": refresh_token}, client=client)
    tokens = _expect_object(data, "Refresh").get("tokens")
    if not isinstance(tokens, dict):
        raise ServerError("Refresh response missing tokens.")
    return tokens_from_payload(tokens)


async def sign_out(access_token: str, *, client: httpx.AsyncClient) -> None:
    await _auth_request(SIGN_OUT_PATH, None, client=client, access_token=access_token)
