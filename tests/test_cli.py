"""CLI tests: commands run against a throwaway SQLite file."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from click.testing import CliRunner
from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from conftest import PASSWORD
from budgetmanager.auth.roles import Role
from budgetmanager.cli import main as cli_main
from budgetmanager.db.models import Base, RevokedToken, User


@pytest.fixture()
def cli_db(tmp_path, monkeypatch):
    """A file database shared across the event loops each command starts."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'cli.db'}", poolclass=NullPool
    )

    async def _create():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    asyncio.run(_create())
    factory = async_sessionmaker(engine, expire_on_commit=False)
    monkeypatch.setattr(cli_main, "async_session_factory", factory)
    yield factory
    asyncio.run(engine.dispose())


def _query(factory, stmt):
    async def _go():
        async with factory() as db:
            return (await db.execute(stmt)).scalars().all()

    return asyncio.run(_go())


def test_create_admin(cli_db):
    result = CliRunner().invoke(
        cli_main.cli,
        ["create-admin", "Root@Example.com"],
        input=f"{PASSWORD}\n{PASSWORD}\n",
    )
    assert result.exit_code == 0, result.output
    assert "created" in result.output

    [user] = _query(cli_db, select(User))
    assert user.email == "root@example.com"
    assert user.role == Role.ADMIN
    assert user.is_active


def test_create_admin_weak_password(cli_db):
    result = CliRunner().invoke(
        cli_main.cli, ["create-admin", "root@example.com"], input="weak\nweak\n"
    )
    assert result.exit_code == 1
    assert _query(cli_db, select(User)) == []


def test_activate_user(cli_db):
    async def _seed():
        async with cli_db() as db:
            db.add(User(email="late@example.com", password_hash="x", is_active=False,
                        activation_token="abc"))
            await db.commit()

    asyncio.run(_seed())
    result = CliRunner().invoke(cli_main.cli, ["activate-user", "late@example.com"])
    assert result.exit_code == 0, result.output

    [user] = _query(cli_db, select(User))
    assert user.is_active
    assert user.activation_token is None


def test_activate_unknown_user(cli_db):
    result = CliRunner().invoke(cli_main.cli, ["activate-user", "ghost@example.com"])
    assert result.exit_code == 1


def test_purge_revoked_tokens(cli_db):
    async def _seed():
        now = datetime.now(timezone.utc)
        async with cli_db() as db:
            db.add(RevokedToken(token="old", expiry_date=now - timedelta(hours=1)))
            db.add(RevokedToken(token="new", expiry_date=now + timedelta(hours=1)))
            await db.commit()

    asyncio.run(_seed())
    result = CliRunner().invoke(cli_main.cli, ["purge-revoked-tokens"])
    assert result.exit_code == 0, result.output
    assert "Purged 1" in result.output
    assert _query(cli_db, select(RevokedToken.token)) == ["new"]
