"""Revocation registry and cleanup loop tests."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select

from budgetmanager.auth.revocation import RevocationRegistry
from budgetmanager.db.models import RevokedToken
from budgetmanager.services.token_cleanup import CleanupState, RevokedTokenCleanup


async def _seed(session_factory, **tokens: timedelta):
    """Insert revoked tokens expiring at now + offset."""
    now = datetime.now(timezone.utc)
    async with session_factory() as db:
        registry = RevocationRegistry(db)
        for token, offset in tokens.items():
            await registry.revoke(token, now + offset)
        await db.commit()


async def _remaining(session_factory) -> set[str]:
    async with session_factory() as db:
        return set((await db.execute(select(RevokedToken.token))).scalars())


# ═══════════════════════════════════════════════════════════
# Registry
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_revoke_is_idempotent(db_session):
    registry = RevocationRegistry(db_session)
    expiry = datetime.now(timezone.utc) + timedelta(hours=1)
    await registry.revoke("tok", expiry)
    await registry.revoke("tok", expiry)
    await db_session.commit()

    assert await registry.is_revoked("tok")
    assert not await registry.is_revoked("other")
    rows = (await db_session.execute(select(RevokedToken))).scalars().all()
    assert len(rows) == 1


@pytest.mark.asyncio
async def test_purge_removes_only_expired(session_factory):
    await _seed(
        session_factory,
        old=timedelta(hours=-2),
        older=timedelta(days=-3),
        fresh=timedelta(hours=1),
    )
    purged = await RevokedTokenCleanup(session_factory=session_factory).purge_once()

    assert purged == 2
    assert await _remaining(session_factory) == {"fresh"}


@pytest.mark.asyncio
async def test_purge_with_nothing_expired(session_factory):
    await _seed(session_factory, fresh=timedelta(minutes=5))
    assert await RevokedTokenCleanup(session_factory=session_factory).purge_once() == 0
    assert await _remaining(session_factory) == {"fresh"}


# ═══════════════════════════════════════════════════════════
# Loop lifecycle
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_loop_runs_a_pass_then_stops_promptly(session_factory, monkeypatch):
    await _seed(session_factory, old=timedelta(hours=-1))
    cleanup = RevokedTokenCleanup(interval=3600, session_factory=session_factory)
    assert cleanup.state == CleanupState.STOPPED

    passed = asyncio.Event()
    original = cleanup.purge_once

    async def tracked():
        count = await original()
        passed.set()
        return count

    monkeypatch.setattr(cleanup, "purge_once", tracked)

    task = asyncio.create_task(cleanup.run_loop())
    await asyncio.wait_for(passed.wait(), timeout=1)
    assert cleanup.state == CleanupState.RUNNING

    # stop() must cut the hour-long sleep short
    cleanup.stop()
    await asyncio.wait_for(task, timeout=1)
    assert cleanup.state == CleanupState.STOPPED
    assert await _remaining(session_factory) == set()


@pytest.mark.asyncio
async def test_loop_survives_a_failing_pass(session_factory, monkeypatch):
    cleanup = RevokedTokenCleanup(interval=0.01, session_factory=session_factory)
    calls = []
    second_pass = asyncio.Event()

    async def flaky():
        calls.append(1)
        if len(calls) == 1:
            raise RuntimeError("database went away")
        second_pass.set()
        return 0

    monkeypatch.setattr(cleanup, "purge_once", flaky)

    task = asyncio.create_task(cleanup.run_loop())
    await asyncio.wait_for(second_pass.wait(), timeout=1)
    cleanup.stop()
    await asyncio.wait_for(task, timeout=1)

    assert len(calls) >= 2
    assert cleanup.state == CleanupState.STOPPED


@pytest.mark.asyncio
async def test_stop_before_first_run_ends_loop_without_a_pass(session_factory, monkeypatch):
    cleanup = RevokedTokenCleanup(interval=3600, session_factory=session_factory)
    calls = []

    async def counting():
        calls.append(1)
        return 0

    monkeypatch.setattr(cleanup, "purge_once", counting)

    # Shutdown racing startup: stop() lands before the task is scheduled
    task = asyncio.create_task(cleanup.run_loop())
    cleanup.stop()
    await asyncio.wait_for(task, timeout=1)

    assert calls == []
    assert cleanup.state == CleanupState.STOPPED


@pytest.mark.asyncio
async def test_loop_can_restart_after_stop(session_factory, monkeypatch):
    cleanup = RevokedTokenCleanup(interval=3600, session_factory=session_factory)
    passes = asyncio.Queue()

    async def counting():
        passes.put_nowait(1)
        return 0

    monkeypatch.setattr(cleanup, "purge_once", counting)

    for _ in range(2):
        task = asyncio.create_task(cleanup.run_loop())
        await asyncio.wait_for(passes.get(), timeout=1)
        cleanup.stop()
        await asyncio.wait_for(task, timeout=1)
        assert cleanup.state == CleanupState.STOPPED
