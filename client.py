from __future__ import annotations

import argparse
import asyncio
import getpass
import sys
from dataclasses import dataclass

import httpx

from sessionauth import api as auth_api
from sessionauth.models import SignInRequest
from sessionauth.refresh import RefreshCoordinator
from sessionauth.session import SessionController
from sessionauth.token_store import FileTokenStore, MemoryTokenStore, TokenPair, TokenStore
from sessionclient.api_client import ApiClient
from sessionclient.constants import APP_VERSION, LOGGER
from sessionclient.env import ClientSettings, load_env, load_settings, setup_logging
from sessionclient.errors import ApiError
from sessionclient.http import RequestPipeline, build_http_client


@dataclass
class SessionClient:
    settings: ClientSettings
    http_client: httpx.AsyncClient
    store: TokenStore
    coordinator: RefreshCoordinator
    pipeline: RequestPipeline
    api: ApiClient
    session: SessionController

    async def aclose(self) -> None:
        await self.http_client.aclose()

    async def __aenter__(self) -> "SessionClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()


def build_token_store(settings: ClientSettings) -> TokenStore:
    if settings.token_store_path:
        return FileTokenStore(settings.token_store_path)
    return MemoryTokenStore()


def create_client(
    settings: ClientSettings | None = None,
    *,
    store: TokenStore | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> SessionClient:
    """Wire the store, coordinator, pipeline and session around one HTTP client."""
    if settings is None:
        load_env()
        settings = load_settings()

    http_client = build_http_client(settings, transport=transport)
    token_store = store if store is not None else build_token_store(settings)

    async def renew(refresh_token: str) -> TokenPair:
        return await auth_api.refresh_tokens(refresh_token, client=http_client)

    coordinator = RefreshCoordinator(token_store, renew)
    pipeline = RequestPipeline(http_client, token_store, coordinator)
    api_client = ApiClient(pipeline)
    session = SessionController(token_store, coordinator, api_client, http_client)
    session.bootstrap()

    return SessionClient(
        settings=settings,
        http_client=http_client,
        store=token_store,
        coordinator=coordinator,
        pipeline=pipeline,
        api=api_client,
        session=session,
    )


async def _whoami(client: SessionClient) -> int:
    if not client.session.is_authenticated:
        print("Not signed in.")
        return 1
    user = await client.session.current_user()
    print(f"{user.name} <{user.email}> ({user.role})")
    return 0


async def _sign_in(client: SessionClient, email: str) -> int:
    password = getpass.getpass("Password: ")
    auth = await client.session.sign_in(SignInRequest(email=email, password=password))
    user = client.session.user or auth.user
    print(f"Signed in as {user.name} <{user.email}>.")
    return 0


async def _sign_out(client: SessionClient) -> int:
    await client.session.sign_out()
    print("Signed out.")
    return 0


async def run_command(args: argparse.Namespace) -> int:
    load_env()
    settings = load_settings()
    setup_logging(settings)

    async with create_client(settings) as client:
        try:
            if args.command == "whoami":
                return await _whoami(client)
            if args.command == "sign-in":
                return await _sign_in(client, args.email)
            if args.command == "sign-out":
                return await _sign_out(client)
        except ApiError as error:
            LOGGER.debug("Command %s failed", args.command, exc_info=True)
            print(f"Error: {error.message}", file=sys.stderr)
            if client.session.reauth_path:
                print("Your session has expired. Run `sign-in` again.", file=sys.stderr)
            return 1
    raise RuntimeError(f"Unknown command {args.command!r}.")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sessionclient",
        description="Authenticated API client with transparent credential refresh.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {APP_VERSION}")
    commands = parser.add_subparsers(dest="command", required=True)
    commands.add_parser("whoami", help="Show the signed-in user.")
    sign_in = commands.add_parser("sign-in", help="Sign in and store the credential pair.")
    sign_in.add_argument("email")
    commands.add_parser("sign-out", help="Sign out and clear the stored credential pair.")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    return asyncio.run(run_command(args))


if __name__ == "__main__":
    sys.exit(main())
