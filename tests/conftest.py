"""Test fixtures: a fresh in-memory SQLite database per test.

Each test gets its own engine (StaticPool keeps the single in-memory
connection alive), the schema created from the ORM metadata, and a
session factory. The app's get_db is overridden to open one session per
request from that factory, so requests see each other's commits like
they would against a real database.

Email goes to RecordingNotifier instead of SMTP. Redis is never
initialized (ASGITransport does not run the lifespan), so rate
limiting is skipped.
"""

import os

os.environ["BUDGETMANAGER_DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["BUDGETMANAGER_BCRYPT_ROUNDS"] = "4"
os.environ["BUDGETMANAGER_ENVIRONMENT"] = "development"

import uuid
from dataclasses import dataclass, field
from typing import Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from budgetmanager.auth.dependencies import get_email_notifier
from budgetmanager.auth.password import hash_password
from budgetmanager.auth.roles import Role
from budgetmanager.db.engine import get_db
from budgetmanager.db.models import Base, User
from budgetmanager.main import app
from budgetmanager.services.email import EmailDeliveryError, EmailNotifier

PASSWORD = "Passw0rd!"


@dataclass
class SentEmail:
    recipient: str
    subject: str
    body: str


@dataclass
class RecordingNotifier(EmailNotifier):
    """Keeps every message; raises EmailDeliveryError when fail is set."""

    sent: list[SentEmail] = field(default_factory=list)
    fail: bool = False

    async def send(self, recipient: str, subject: str, body: str) -> None:
        if self.fail:
            raise EmailDeliveryError("SMTP server unavailable")
        self.sent.append(SentEmail(recipient, subject, body))

    def to(self, recipient: str) -> list[SentEmail]:
        return [m for m in self.sent if m.recipient == recipient]


@dataclass
class Account:
    id: int
    email: str
    headers: dict[str, str]


def token_from(body: str) -> str:
    """Pull the ?token= value out of a mailed link."""
    return body.split("token=", 1)[1].split()[0]


@pytest_asyncio.fixture()
async def engine():
    eng = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture()
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest_asyncio.fixture()
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture()
def notifier():
    return RecordingNotifier()


@pytest_asyncio.fixture()
async def client(session_factory, notifier):
    """HTTP client against the app with DB and email overridden."""

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_email_notifier] = lambda: notifier

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ─── Account helpers ────────────────────────────────────


@pytest.fixture()
def create_user(session_factory):
    """Insert a user directly, skipping the registration flow."""

    async def _create(
        email: Optional[str] = None,
        role: Role = Role.USER,
        is_active: bool = True,
        password: str = PASSWORD,
    ) -> User:
        async with session_factory() as db:
            user = User(
                email=email or f"user-{uuid.uuid4().hex[:8]}@example.com",
                password_hash=hash_password(password),
                role=role,
                is_active=is_active,
                activation_token=None if is_active else uuid.uuid4().hex,
            )
            db.add(user)
            await db.commit()
            return user

    return _create


@pytest.fixture()
def login(client):
    async def _login(email: str, password: str = PASSWORD) -> dict[str, str]:
        r = await client.post(
            "/api/v1/auth/login", json={"email": email, "password": password}
        )
        assert r.status_code == 200, r.text
        return {"Authorization": f"Bearer {r.json()['access_token']}"}

    return _login


@pytest.fixture()
def account(create_user, login):
    """Create an active user with the given role and log them in."""

    async def _account(role: Role = Role.USER) -> Account:
        user = await create_user(role=role)
        return Account(id=user.id, email=user.email, headers=await login(user.email))

    return _account


@pytest_asyncio.fixture()
async def user(account):
    return await account(Role.USER)


@pytest_asyncio.fixture()
async def pro(account):
    return await account(Role.PRO)


@pytest_asyncio.fixture()
async def admin(account):
    return await account(Role.ADMIN)
