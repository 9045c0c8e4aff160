from __future__ import annotations

import logging
from typing import Awaitable, Callable

import httpx

from sessionclient.api_client import ApiClient
from sessionclient.constants import AUTH_LOGGER, CURRENT_USER_PATH, REAUTH_PATH
from sessionclient.errors import (
    ApiError,
    InvalidCredentialsError,
    NetworkError,
    ServerError,
    ValidationError,
)

from . import api
from .models import (
    AuthResponse,
    ResetPasswordRequest,
    SessionState,
    SignInRequest,
    SignUpRequest,
    UpdatePasswordRequest,
    User,
)
from .refresh import RefreshCoordinator
from .token_store import TokenPair, TokenStore

OAUTH_PROVIDERS = ("google", "github", "auth0")

StateListener = Callable[[SessionState], None]


def _invalid_credentials(error: ApiError, fallback: str) -> InvalidCredentialsError:
    message = error.message
    if error.status_code == 401 or not message:
        message = fallback
    return InvalidCredentialsError(
        message,
        status_code=error.status_code,
        code=error.code,
        details=error.details,
    )


class SessionController:
    """Owns sign-in, sign-up and sign-out, and whether a session is active.

    The session is a view over the token store: a stored pair means
    ``AUTHENTICATED``, an empty store means ``UNAUTHENTICATED``. The only
    extra state is ``AUTHENTICATING`` while an exchange is on the wire.
    """

    def __init__(
        self,
        store: TokenStore,
        coordinator: RefreshCoordinator,
        api_client: ApiClient,
        auth_client: httpx.AsyncClient,
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        self._store = store
        self._coordinator = coordinator
        self._api = api_client
        self._auth_client = auth_client
        self._logger = logger or AUTH_LOGGER
        self._state = SessionState.UNAUTHENTICATED
        self._listeners: list[StateListener] = []

        self.user: User | None = None
        self.session_expired = False
        self.reauth_path: str | None = None

        store.subscribe(self._on_tokens_changed)
        coordinator.add_failure_listener(self.force_sign_out)
        api_client.pipeline.set_auth_failure_handler(self.force_sign_out)

    # -- state -----------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_authenticated(self) -> bool:
        return self._state is SessionState.AUTHENTICATED

    @property
    def access_token(self) -> str | None:
        pair = self._store.get()
        return pair.access_token if pair is not None else None

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set_state(self, state: SessionState) -> None:
        if state is self._state:
            return
        self._logger.info("Session state %s -> %s", self._state.value, state.value)
        self._state = state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                self._logger.exception("Session state listener %r failed", listener)

    def _on_tokens_changed(self, pair: TokenPair | None) -> None:
        if pair is None:
            self.user = None
            self._set_state(SessionState.UNAUTHENTICATED)
        else:
            self._set_state(SessionState.AUTHENTICATED)

    def bootstrap(self) -> SessionState:
        if self._store.get() is not None:
            self._set_state(SessionState.AUTHENTICATED)
        else:
            self._set_state(SessionState.UNAUTHENTICATED)
        return self._state

    # -- sign-in / sign-up / sign-out --------------------------------------------

    async def sign_in(self, credentials: SignInRequest) -> AuthResponse:
        return await self._authenticate(
            api.sign_in(credentials, client=self._auth_client),
            "Invalid email or password.",
        )

    async def sign_up(self, registration: SignUpRequest) -> AuthResponse:
        return await self._authenticate(
            api.sign_up(registration, client=self._auth_client),
            "Registration was rejected.",
        )

    async def handle_oauth_callback(self, code: str, state: str) -> AuthResponse:
        return await self._authenticate(
            api.oauth_callback(code, state, client=self._auth_client),
            "The sign-in provider rejected the login.",
        )

    async def _authenticate(
        self, exchange: Awaitable[AuthResponse], rejected_message: str
    ) -> AuthResponse:
        self._begin_authentication()
        try:
            auth = await exchange
        except (NetworkError, ServerError):
            self._abort_authentication()
            raise
        except ApiError as error:
            self._abort_authentication()
            raise _invalid_credentials(error, rejected_message) from error
        except BaseException:
            # Cancelled mid-exchange.
            self._abort_authentication()
            raise
        await self._complete_authentication(auth)
        return auth

    async def sign_out(self) -> None:
        pair = self._store.get()
        self._coordinator.discard_in_flight()
        self._store.clear()
        self.user = None
        self.session_expired = False
        self.reauth_path = None
        self._set_state(SessionState.UNAUTHENTICATED)

        if pair is None:
            return
        try:
            await api.sign_out(pair.access_token, client=self._auth_client)
        except ApiError as error:
            self._logger.warning("Remote sign-out failed; local session cleared anyway: %s", error)

    def force_sign_out(self, error: ApiError) -> None:
        self._coordinator.discard_in_flight()
        if self._store.get() is not None:
            self._store.clear()
        self.user = None
        self.session_expired = True
        self.reauth_path = REAUTH_PATH
        self._set_state(SessionState.UNAUTHENTICATED)
        self._logger.warning("Session ended by the transport: %s", error)

    def _begin_authentication(self) -> None:
        self.session_expired = False
        self.reauth_path = None
        self._set_state(SessionState.AUTHENTICATING)

    def _abort_authentication(self) -> None:
        if self._store.get() is not None:
            self._set_state(SessionState.AUTHENTICATED)
        else:
            self._set_state(SessionState.UNAUTHENTICATED)

    async def _complete_authentication(self, auth: AuthResponse) -> None:
        self._store.set(auth.tokens)
        self.user = auth.user
        try:
            await self.current_user()
        except (NetworkError, ServerError, ValidationError) as error:
            self._logger.warning("Profile fetch after sign-in failed; using summary: %s", error)

    # -- account operations ----------------------------------------------------

    async def current_user(self) -> User:
        response = await self._api.get(CURRENT_USER_PATH)
        if not isinstance(response.data, dict):
            raise ServerError("Current user response is missing its data object.")
        self.user = User.from_payload(response.data)
        return self.user

    async def reset_password(self, request: ResetPasswordRequest) -> None:
        await self._api.post("/auth/reset-password", request.to_payload())

    async def update_password(self, request: UpdatePasswordRequest) -> None:
        await self._api.post("/auth/update-password", request.to_payload())

    async def verify_email(self, token: str) -> None:
        await self._api.post("/auth/verify-email", {"token": token})
        if self.is_authenticated:
            await self.current_user()

    async def resend_verification_email(self, email: str) -> None:
        await self._api.post("/auth/resend-verification", {"email": email})

    async def oauth_url(self, provider: str) -> str:
        if provider not in OAUTH_PROVIDERS:
            raise ValueError(
                f"Unsupported OAuth provider {provider!r}; expected one of {', '.join(OAUTH_PROVIDERS)}."
            )
        response = await self._api.get(f"/auth/oauth/{provider}")
        url = response.data.get("url") if isinstance(response.data, dict) else None
        if not isinstance(url, str) or not url:
            raise ServerError("OAuth URL response missing url.")
        return url
