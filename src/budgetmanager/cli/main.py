"""budgetmanager CLI: operator tasks against the database and a running API.

Usage:
    budgetmanager create-admin admin@example.com     # prompts for a password
    budgetmanager activate-user someone@example.com
    budgetmanager purge-revoked-tokens
    budgetmanager status                             # GET /api/v1/health
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import json
import os
import sys

import click
import httpx

from budgetmanager.auth.roles import Role
from budgetmanager.db.engine import async_session_factory
from budgetmanager.errors import BudgetError
from budgetmanager.services.auth_service import find_user_by_email
from budgetmanager.services.token_cleanup import RevokedTokenCleanup
from budgetmanager.services.user_service import UserService

DEFAULT_API_URL = "http://localhost:8000"


def _api_url() -> str:
    return os.environ.get("BUDGETMANAGER_API_URL", DEFAULT_API_URL).rstrip("/")


def _run(coro):
    """Run a coroutine from a synchronous click handler.

    Offloads to a thread when an event loop is already running (e.g.
    CliRunner inside an async test).
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
        return pool.submit(asyncio.run, coro).result()


def _fail(message: str) -> None:
    click.secho(f"Error: {message}", fg="red", err=True)
    sys.exit(1)


@click.group()
@click.version_option(package_name="budget-manager")
def cli():
    """Budget Manager operator commands."""


@cli.command("create-admin")
@click.argument("email")
@click.password_option()
def create_admin(email: str, password: str):
    """Create an active Admin account."""

    async def _create():
        async with async_session_factory() as db:
            user = await UserService(db).create_user(
                email, password, password, role=Role.ADMIN, is_active=True
            )
            await db.commit()
            return user.id

    try:
        user_id = _run(_create())
    except BudgetError as e:
        _fail(e.message)
    click.secho(f"Admin {email} created (id {user_id}).", fg="green")


@cli.command("activate-user")
@click.argument("email")
def activate_user(email: str):
    """Activate an account without the email confirmation step."""

    async def _activate():
        async with async_session_factory() as db:
            user = await find_user_by_email(db, email)
            if user is None:
                return False
            user.is_active = True
            user.activation_token = None
            await db.commit()
            return True

    if not _run(_activate()):
        _fail(f"no user with email {email}")
    click.secho(f"{email} is active.", fg="green")


@cli.command("purge-revoked-tokens")
def purge_revoked_tokens():
    """Delete expired entries from the token revocation list once."""
    cleanup = RevokedTokenCleanup(session_factory=async_session_factory)
    purged = _run(cleanup.purge_once())
    click.echo(f"Purged {purged} expired revoked token(s).")


@cli.command()
def status():
    """Show the health of a running API server."""

    async def _status():
        async with httpx.AsyncClient(base_url=_api_url(), timeout=10.0) as client:
            resp = await client.get("/api/v1/health")
            resp.raise_for_status()
            return resp.json()

    try:
        data = _run(_status())
    except httpx.HTTPError as e:
        _fail(f"cannot reach {_api_url()}: {e}")
    color = "green" if data.get("status") == "healthy" else "yellow"
    click.secho(data.get("status", "unknown"), fg=color, bold=True)
    click.echo(json.dumps(data, indent=2))


if __name__ == "__main__":
    cli()
