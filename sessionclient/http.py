from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Mapping

import httpx

from .constants import APP_VERSION, HTTP_METHODS, LOGGER
from .env import ClientSettings
from .errors import AuthExpiredError, error_from_response, network_error

if TYPE_CHECKING:
    from sessionauth.refresh import RefreshCoordinator
    from sessionauth.token_store import TokenStore


@dataclass(frozen=True)
class RequestSpec:
    """One outbound call, kept whole so it can be replayed with a new token."""

    method: str
    path: str
    params: Mapping[str, Any] | None = None
    headers: Mapping[str, str] = field(default_factory=dict)
    body: Any = None
    files: Mapping[str, Any] | None = None

    def __post_init__(self) -> None:
        if self.method.lower() not in HTTP_METHODS:
            raise ValueError(f"Unsupported HTTP method: {self.method}")
        object.__setattr__(self, "method", self.method.upper())

    def with_bearer(self, access_token: str) -> "RequestSpec":
        headers = {
            key: value
            for key, value in self.headers.items()
            if key.lower() != "authorization"
        }
        headers["Authorization"] = f"Bearer {access_token}"
        return replace(self, headers=headers)


class ResponseKind(str, Enum):
    SUCCESS = "success"
    AUTH_EXPIRED = "auth_expired"
    OTHER_ERROR = "other_error"


def classify_response(response: httpx.Response) -> ResponseKind:
    if response.status_code < 400:
        return ResponseKind.SUCCESS
    if response.status_code == 401:
        return ResponseKind.AUTH_EXPIRED
    return ResponseKind.OTHER_ERROR


class RequestPipeline:
    """Authenticated transport with a single refresh-and-retry on 401.

    The pipeline only reads the token store. Renewal writes belong to the
    refresh coordinator, session writes to the session controller.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        store: "TokenStore",
        coordinator: "RefreshCoordinator",
        *,
        on_auth_failure: Callable[[AuthExpiredError], None] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._client = client
        self._store = store
        self._coordinator = coordinator
        self._on_auth_failure = on_auth_failure
        self._logger = logger or LOGGER

    def set_auth_failure_handler(
        self, handler: Callable[[AuthExpiredError], None] | None
    ) -> None:
        self._on_auth_failure = handler

    async def execute(self, spec: RequestSpec) -> httpx.Response:
        pair = self._store.get()
        sent_token = pair.access_token if pair is not None else None
        outbound = spec.with_bearer(sent_token) if sent_token else spec

        response = await self._send(outbound)
        kind = classify_response(response)
        if kind is not ResponseKind.AUTH_EXPIRED:
            return self._finish(response, kind)

        current = self._store.get()
        if current is None:
            error = error_from_response(response)
            self._logger.warning(
                "Credential rejected with no refresh token available (%s %s)",
                spec.method,
                spec.path,
            )
            if self._on_auth_failure is not None:
                self._on_auth_failure(error)
            raise error

        if current.access_token != sent_token:
            # Renewed by another caller while this request was on the wire.
            self._logger.info(
                "Retrying with already renewed credential (%s %s)", spec.method, spec.path
            )
            await response.aclose()
            retried = await self._send(spec.with_bearer(current.access_token))
            return self._finish(retried, classify_response(retried))

        await response.aclose()
        renewed = await self._coordinator.refresh()

        self._logger.info("Retrying after credential refresh (%s %s)", spec.method, spec.path)
        retried = await self._send(spec.with_bearer(renewed.access_token))
        return self._finish(retried, classify_response(retried))

    async def _send(self, spec: RequestSpec) -> httpx.Response:
        request = self._client.build_request(
            spec.method,
            spec.path,
            params=spec.params,
            headers=dict(spec.headers),
            json=spec.body if spec.files is None else None,
            data=spec.body if spec.files is not None else None,
            files=spec.files,
        )
        try:
            response = await self._client.send(request)
        except httpx.TransportError as error:
            self._logger.warning(
                "Network error %s (%s %s)", type(error).__name__, spec.method, spec.path
            )
            raise network_error(error, request) from error
        return response

    def _finish(self, response: httpx.Response, kind: ResponseKind) -> httpx.Response:
        if kind is ResponseKind.SUCCESS:
            return response
        raise error_from_response(response)


async def log_request(request: httpx.Request) -> None:
    LOGGER.info("API request %s %s", request.method, request.url)


async def log_response(response: httpx.Response) -> None:
    LOGGER.info(
        "API response %s %s -> %s",
        response.request.method,
        response.request.url,
        response.status_code,
    )
    if response.status_code >= 400:
        body = await response.aread()
        text = body.decode("utf-8", errors="replace")
        if len(text) > 1000:
            text = text[:1000] + "...<truncated>"
        LOGGER.warning("API error body: %s", text)


def build_http_client(
    settings: ClientSettings,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    event_hooks: dict[str, list] = {"request": [], "response": []}
    if settings.debug:
        event_hooks = {"request": [log_request], "response": [log_response]}

    return httpx.AsyncClient(
        base_url=settings.base_url,
        headers={
            "Accept": "application/json",
            "User-Agent": f"sessionclient/{APP_VERSION}",
        },
        timeout=settings.timeout,
        transport=transport,
        event_hooks=event_hooks,
    )
