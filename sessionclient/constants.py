from __future__ import annotations

import logging
from pathlib import Path

HTTP_METHODS = {
    "get",
    "post",
    "put",
    "patch",
    "delete",
}

LOGGER = logging.getLogger("sessionclient.http")
AUTH_LOGGER = logging.getLogger("sessionclient.auth")
APP_VERSION = "0.1.0"

DEFAULT_BASE_URL = "http://localhost:8000/api"
DEFAULT_TIMEOUT_SECONDS = 10.0
ENV_FILE = Path(__file__).resolve().parent.parent / ".env"

ACCESS_TOKEN_KEY = "auth_token"
REFRESH_TOKEN_KEY = "refresh_token"

SIGN_IN_PATH = "/auth/login"
SIGN_UP_PATH = "/auth/register"
REFRESH_PATH = "/auth/refresh"
SIGN_OUT_PATH = "/auth/signout"
CURRENT_USER_PATH = "/auth/me"
REAUTH_PATH = "/sign-in?expired=1"
