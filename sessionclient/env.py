from __future__ import annotations

import logging
import os
from dataclasses import dataclass

from dotenv import load_dotenv
from pydantic import AnyHttpUrl, ValidationError

from .constants import AUTH_LOGGER, DEFAULT_BASE_URL, DEFAULT_TIMEOUT_SECONDS, ENV_FILE, LOGGER


def is_truthy(value: str | None) -> bool:
    if value is None:
        return False
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_env_float(key: str, default: float) -> float:
    raw = os.getenv(key, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        raise RuntimeError(f"{key} must be a number.")
    if value <= 0:
        raise RuntimeError(f"{key} must be greater than zero.")
    return value


@dataclass(frozen=True)
class ClientSettings:
    base_url: str = DEFAULT_BASE_URL
    timeout: float = DEFAULT_TIMEOUT_SECONDS
    token_store_path: str | None = None
    debug: bool = False


def load_env() -> None:
    if not ENV_FILE.exists():
        return
    load_dotenv(ENV_FILE, override=False)


def load_settings() -> ClientSettings:
    raw_base_url = os.getenv("API_BASE_URL", "").strip() or DEFAULT_BASE_URL
    try:
        AnyHttpUrl(raw_base_url)
    except ValidationError as error:
        raise RuntimeError(
            "API_BASE_URL must be a valid HTTP(S) URL (for example: "
            "https://api.example.com/api)."
        ) from error

    token_store_path = os.getenv("API_TOKEN_STORE_PATH", "").strip() or None

    return ClientSettings(
        base_url=raw_base_url.rstrip("/"),
        timeout=_get_env_float("API_TIMEOUT", DEFAULT_TIMEOUT_SECONDS),
        token_store_path=token_store_path,
        debug=is_truthy(os.getenv("API_DEBUG")),
    )


def setup_logging(settings: ClientSettings) -> bool:
    if settings.debug:
        logging.basicConfig(level=logging.INFO)
        LOGGER.setLevel(logging.INFO)
        AUTH_LOGGER.setLevel(logging.INFO)
    return settings.debug
