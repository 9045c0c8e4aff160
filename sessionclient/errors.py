from __future__ import annotations

from typing import Any

import httpx


class ApiError(RuntimeError):
    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        code: str | None = None,
        details: Any = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code
        self.details = details


class NetworkError(ApiError):
    """The request never produced an HTTP response (timeout, DNS, refused)."""


class AuthExpiredError(ApiError):
    """The server rejected the access token as stale or invalid (401)."""


class RefreshFailedError(ApiError):
    """Renewing the credential pair failed; the session is over."""


class ValidationError(ApiError):
    """Non-auth 4xx response."""


class ServerError(ApiError):
    """5xx response, or a success response the client could not understand."""


class InvalidCredentialsError(ApiError):
    """Sign-in, sign-up or OAuth callback rejected by the server."""


def _friendly_error_message(status_code: int) -> str:
    if status_code == 401:
        return "Authentication failed. Your session may have expired."
    if status_code == 403:
        return "You don't have permission to perform this action."
    if status_code == 404:
        return "The requested resource was not found."
    if status_code == 409:
        return "The request conflicts with the current state of the resource."
    if status_code == 422:
        return "The request was well-formed but contained invalid data."
    if status_code == 429:
        return "Too many requests. Please slow down and try again."
    if status_code >= 500:
        return "The API is experiencing issues. Please try again later."
    return f"API request failed with status {status_code}."


def _error_body(response: httpx.Response) -> dict:
    try:
        payload = response.json()
    except ValueError:
        text = response.text.strip()
        return {"raw": text} if text else {}
    if isinstance(payload, dict):
        return payload
    return {"raw": payload}


def error_from_response(response: httpx.Response) -> ApiError:
    status_code = response.status_code
    body = _error_body(response)

    message = body.get("message")
    if not isinstance(message, str) or not message.strip():
        message = _friendly_error_message(status_code)
    code = body.get("code")
    if not isinstance(code, str):
        code = None
    details = body.get("details", body.get("raw"))

    if status_code == 401:
        error_cls: type[ApiError] = AuthExpiredError
    elif status_code >= 500:
        error_cls = ServerError
    else:
        error_cls = ValidationError

    return error_cls(message, status_code=status_code, code=code, details=details)


def network_error(error: httpx.TransportError, request: httpx.Request | None = None) -> NetworkError:
    if isinstance(error, httpx.TimeoutException):
        message = "The API did not respond in time. Please check your connection."
    else:
        message = "Could not reach the API. Please check your connection."
    target = None if request is None else f"{request.method} {request.url}"
    return NetworkError(message, code=type(error).__name__, details=target)
