"""
Test configuration and fixtures for the LeadFlow API.

Service tests run against a fresh in-memory SQLite database per test; route
tests use the TestClient with the current user dependency overridden.
"""

import itertools
import os
import tempfile
from typing import Generator

from dotenv import load_dotenv

load_dotenv()

test_db_url = os.getenv("TEST_DATABASE_URL")
if test_db_url:
    if "postgresql://" in test_db_url and "asyncpg" not in test_db_url:
        test_db_url = test_db_url.replace("postgresql://", "postgresql+asyncpg://")
    os.environ["DATABASE_URL"] = test_db_url
else:
    test_db_path = tempfile.mktemp(suffix=".db")
    os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{test_db_path}"

os.environ.setdefault("COOLDOWN_BACKEND", "memory")

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.features.auth.models.user import Account, UserRole
from app.features.auth.routes.auth import get_current_user
from app.features.auth.utils.security import hash_password
from app.features.leads.models.lead import Lead
from app.features.profile.models.delegation import DelegationGrant
from app.platform.db import models  # noqa: F401
from app.platform.db.base import Base

# Factories skip bcrypt unless a test needs a real password.
PLACEHOLDER_HASH = "not-a-real-hash"

_emails = itertools.count(1)


@pytest_asyncio.fixture
async def db_session():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, expire_on_commit=False, autoflush=False)
    async with session_factory() as session:
        yield session

    await engine.dispose()


@pytest.fixture
def make_account(db_session):
    async def _make(
        company_name="Acme Corp",
        role=UserRole.MANAGEMENT.value,
        is_active=True,
        email=None,
        full_name="Test User",
        password=None,
    ) -> Account:
        account = Account(
            email=email or f"user{next(_emails)}@example.com",
            full_name=full_name,
            password_hash=hash_password(password) if password else PLACEHOLDER_HASH,
            role=role,
            company_name=company_name,
            is_active=is_active,
        )
        db_session.add(account)
        await db_session.commit()
        await db_session.refresh(account)
        return account

    return _make


@pytest.fixture
def make_delegate(db_session, make_account):
    async def _make(parent: Account, can_view=True, can_edit=False, can_add=False, **kwargs) -> Account:
        kwargs.setdefault("role", UserRole.SALES_REPRESENTATIVE.value)
        kwargs.setdefault("company_name", parent.company_name)
        delegate = await make_account(**kwargs)
        db_session.add(
            DelegationGrant(
                delegate_id=delegate.id,
                parent_id=parent.id,
                can_view=can_view,
                can_edit=can_edit,
                can_add=can_add,
            )
        )
        await db_session.commit()
        return delegate

    return _make


@pytest.fixture
def make_lead(db_session):
    async def _make(owner: Account, name="Jane Doe", phone_number="+15550100", **fields) -> Lead:
        lead = Lead(name=name, phone_number=phone_number, owner_id=owner.id, **fields)
        db_session.add(lead)
        await db_session.commit()
        await db_session.refresh(lead)
        return lead

    return _make


@pytest.fixture(scope="session")
def test_app():
    """Create FastAPI test application."""
    from app.main import app

    return app


@pytest.fixture(scope="function")
def client(test_app) -> Generator[TestClient, None, None]:
    with TestClient(test_app) as test_client:
        yield test_client


# Mock account for authenticated tests
MOCK_ACCOUNT = Account(
    id=1,
    email="manager@acme.example",
    full_name="Morgan Manager",
    password_hash=PLACEHOLDER_HASH,
    role=UserRole.MANAGEMENT.value,
    company_name="Acme Corp",
    is_active=True,
)


def override_get_current_user():
    """Mock dependency that always returns a fixed authenticated account."""
    return MOCK_ACCOUNT


@pytest.fixture
def auth_client(client, test_app):
    """Client with the get_current_user dependency overridden for authenticated tests."""
    test_app.dependency_overrides[get_current_user] = override_get_current_user

    yield client

    test_app.dependency_overrides.pop(get_current_user, None)
