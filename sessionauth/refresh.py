from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from sessionclient.constants import AUTH_LOGGER
from sessionclient.errors import RefreshFailedError

from .token_store import TokenPair, TokenStore

RenewFn = Callable[[str], Awaitable[TokenPair]]
FailureListener = Callable[[RefreshFailedError], None]


class RefreshCoordinator:
    """Single-flight renewal of the credential pair.

    Refresh tokens rotate on every exchange, so two concurrent renewals with
    the same token would make the server reject the second one. Only the first
    caller while idle starts an exchange; everyone else queues a future and
    gets the same outcome.

    The exchange runs in its own task. Callers only ever await their own
    future, so a cancelled caller leaves the queue without aborting the
    exchange for the others.
    """

    def __init__(
        self,
        store: TokenStore,
        renew: RenewFn,
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        self._store = store
        self._renew = renew
        self._logger = logger or AUTH_LOGGER
        self._waiters: list[asyncio.Future[TokenPair]] = []
        self._task: asyncio.Task[None] | None = None
        self._detached: set[asyncio.Task[None]] = set()
        self._generation = 0
        self._failure_listeners: list[FailureListener] = []

    @property
    def is_refreshing(self) -> bool:
        return self._task is not None

    @property
    def pending_waiters(self) -> int:
        return len(self._waiters)

    def add_failure_listener(self, listener: FailureListener) -> None:
        self._failure_listeners.append(listener)

    def discard_in_flight(self) -> None:
        """Detach the running exchange, if any; its result is dropped when it lands.

        Its waiters stay with the detached exchange and are rejected then. The
        next ``refresh()`` starts a new exchange with whatever the store holds.
        """
        self._generation += 1
        if self._task is not None:
            self._logger.info("Discarding in-flight credential refresh")
            self._detached.add(self._task)
            self._task.add_done_callback(self._detached.discard)
        self._task = None
        self._waiters = []

    async def refresh(self) -> TokenPair:
        if self._task is None:
            pair = self._store.get()
            if pair is None:
                raise RefreshFailedError("No refresh token available; sign in again.")
            self._logger.info("Starting credential refresh")
            self._task = asyncio.create_task(
                self._run(pair.refresh_token, self._generation, self._waiters)
            )

        waiters = self._waiters
        waiter: asyncio.Future[TokenPair] = asyncio.get_running_loop().create_future()
        waiters.append(waiter)
        try:
            return await waiter
        except asyncio.CancelledError:
            if waiter in waiters:
                waiters.remove(waiter)
            raise

    async def _run(
        self,
        refresh_token: str,
        generation: int,
        waiters: list[asyncio.Future[TokenPair]],
    ) -> None:
        try:
            pair = await self._renew(refresh_token)
        except asyncio.CancelledError as error:
            self._settle_failure(generation, waiters, error)
            raise
        except Exception as error:
            self._settle_failure(generation, waiters, error)
        else:
            self._settle_success(generation, waiters, pair)

    def _take_waiters(
        self, generation: int, waiters: list[asyncio.Future[TokenPair]]
    ) -> list[asyncio.Future[TokenPair]]:
        if generation == self._generation:
            self._task = None
            self._waiters = []
        pending = [waiter for waiter in waiters if not waiter.done()]
        waiters.clear()
        return pending

    def _settle_success(
        self,
        generation: int,
        waiters: list[asyncio.Future[TokenPair]],
        pair: TokenPair,
    ) -> None:
        if generation != self._generation:
            self._reject(
                self._take_waiters(generation, waiters),
                "Session ended while the credential refresh was in flight.",
            )
            return

        self._store.set(pair)
        pending = self._take_waiters(generation, waiters)
        self._logger.info("Credential refresh succeeded; resuming %s waiter(s)", len(pending))
        for waiter in pending:
            waiter.set_result(pair)

    def _settle_failure(
        self,
        generation: int,
        waiters: list[asyncio.Future[TokenPair]],
        cause: BaseException,
    ) -> None:
        if generation != self._generation:
            self._reject(
                self._take_waiters(generation, waiters),
                "Session ended while the credential refresh was in flight.",
                cause=cause,
            )
            return

        self._store.clear()
        pending = self._take_waiters(generation, waiters)
        self._logger.warning(
            "Credential refresh failed (%s); rejecting %s waiter(s)",
            type(cause).__name__,
            len(pending),
        )
        self._reject(pending, "Your session has expired. Please sign in again.", cause=cause)

        failure = self._failure("Your session has expired. Please sign in again.", cause)
        for listener in list(self._failure_listeners):
            try:
                listener(failure)
            except Exception:
                self._logger.exception("Refresh failure listener %r failed", listener)

    def _reject(
        self,
        waiters: list[asyncio.Future[TokenPair]],
        message: str,
        *,
        cause: BaseException | None = None,
    ) -> None:
        for waiter in waiters:
            waiter.set_exception(self._failure(message, cause))

    @staticmethod
    def _failure(message: str, cause: BaseException | None) -> RefreshFailedError:
        status_code = getattr(cause, "status_code", None)
        error = RefreshFailedError(message, status_code=status_code, code="refresh_failed")
        error.__cause__ = cause
        return error
