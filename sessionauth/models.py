from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from sessionclient.errors import ServerError

from .token_store import TokenPair


class SessionState(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"


@dataclass
class User:
    id: str
    name: str
    email: str
    email_verified: bool = False
    role: str = "guest"
    status: str = "active"
    image: str | None = None
    created_at: str | None = None
    updated_at: str | None = None

    @classmethod
    def from_payload(cls, payload: dict) -> "User":
        user_id = payload.get("id")
        email = payload.get("email")
        if user_id is None or not isinstance(email, str):
            raise ServerError("User payload missing id or email.")

        return cls(
            id=str(user_id),
            name=str(payload.get("name", "")),
            email=email,
            email_verified=bool(payload.get("emailVerified", False)),
            role=str(payload.get("role", "guest")),
            status=str(payload.get("status", "active")),
            image=payload.get("image"),
            created_at=payload.get("createdAt"),
            updated_at=payload.get("updatedAt"),
        )


def tokens_from_payload(payload: dict) -> TokenPair:
    access_token = payload.get("accessToken")
    refresh_token = payload.get("refreshToken")

    if not isinstance(access_token, str) or not access_token:
        raise ServerError("Token response missing accessToken.")
    if not isinstance(refresh_token, str) or not refresh_token:
        raise ServerError("Token response missing refreshToken.")

    return TokenPair(access_token=access_token, refresh_token=refresh_token)


@dataclass
class AuthResponse:
    user: User
    tokens: TokenPair

    @classmethod
    def from_payload(cls, payload: dict) -> "AuthResponse":
        user = payload.get("user")
        tokens = payload.get("tokens")
        if not isinstance(user, dict):
            raise ServerError("Auth response missing user.")
        if not isinstance(tokens, dict):
            raise ServerError("Auth response missing tokens.")
        return cls(user=User.from_payload(user), tokens=tokens_from_payload(tokens))


@dataclass
class SignInRequest:
    email: str
    password: str

    def to_payload(self) -> dict[str, str]:
        return {"email": self.email, "password": self.password}


@dataclass
class SignUpRequest:
    name: str
    email: str
    password: str

    def to_payload(self) -> dict[str, str]:
        return {"name": self.name, "email": self.email, "password": self.password}


@dataclass
class ResetPasswordRequest:
    email: str

    def to_payload(self) -> dict[str, str]:
        return {"email": self.email}


@dataclass
class UpdatePasswordRequest:
    token: str
    password: str

    def to_payload(self) -> dict[str, str]:
        return {"token": self.token, "password": self.password}
