from __future__ import annotations

import json
import os
import tempfile
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from sessionclient.constants import ACCESS_TOKEN_KEY, AUTH_LOGGER, REFRESH_TOKEN_KEY

TokenListener = Callable[["TokenPair | None"], None]


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str

    def to_payload(self) -> dict[str, str]:
        return {
            ACCESS_TOKEN_KEY: self.access_token,
            REFRESH_TOKEN_KEY: self.refresh_token,
        }

    @classmethod
    def from_payload(cls, payload: dict) -> "TokenPair | None":
        access_token = payload.get(ACCESS_TOKEN_KEY)
        refresh_token = payload.get(REFRESH_TOKEN_KEY)
        if not isinstance(access_token, str) or not access_token:
            return None
        if not isinstance(refresh_token, str) or not refresh_token:
            return None
        return cls(access_token=access_token, refresh_token=refresh_token)


class TokenStore(ABC):
    """Holds the current credential pair, or nothing.

    ``set`` and ``clear`` are a single synchronous write followed by listener
    notification, so no reader on the event loop can see half a pair.
    """

    def __init__(self) -> None:
        self._listeners: list[TokenListener] = []

    @abstractmethod
    def get(self) -> TokenPair | None:
        raise NotImplementedError

    @abstractmethod
    def _write(self, pair: TokenPair) -> None:
        raise NotImplementedError

    @abstractmethod
    def _erase(self) -> None:
        raise NotImplementedError

    def set(self, pair: TokenPair) -> None:
        self._write(pair)
        self._notify(pair)

    def clear(self) -> None:
        self._erase()
        self._notify(None)

    def subscribe(self, listener: TokenListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, pair: TokenPair | None) -> None:
        for listener in list(self._listeners):
            try:
                listener(pair)
            except Exception:
                AUTH_LOGGER.exception("Token store listener %r failed", listener)


class MemoryTokenStore(TokenStore):
    def __init__(self, pair: TokenPair | None = None) -> None:
        super().__init__()
        self._pair = pair

    def get(self) -> TokenPair | None:
        return self._pair

    def _write(self, pair: TokenPair) -> None:
        self._pair = pair

    def _erase(self) -> None:
        self._pair = None


class FileTokenStore(TokenStore):
    def __init__(self, path: str | Path = ".tokens.json") -> None:
        super().__init__()
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def get(self) -> TokenPair | None:
        if not self._path.exists():
            return None

        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except ValueError as error:
            raise RuntimeError("Token store file is invalid; expected top-level JSON object.") from error
        if not isinstance(raw, dict):
            raise RuntimeError("Token store file is invalid; expected top-level JSON object.")
        return TokenPair.from_payload(raw)

    def _write(self, pair: TokenPair) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(
            prefix=f"{self._path.name}.",
            suffix=".tmp",
            dir=self._path.parent,
        )
        tmp_path = Path(tmp_name)

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(pair.to_payload(), handle, indent=2, sort_keys=True)
            os.replace(tmp_path, self._path)
        finally:
            if tmp_path.exists():
                tmp_path.unlink()

    def _erase(self) -> None:
        self._path.unlink(missing_ok=True)
