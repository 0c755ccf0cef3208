"""Shared pytest fixtures for the Campus CMS application.

This module provides fixtures used across all test files, including:
- A throwaway SQLite database per test
- File storage rooted in the test's temporary directory
- An HTTP client bound to the application
- Admin and author accounts with ready-made auth headers
- Helpers for seeding rows directly through the data-store handle
"""

import os

os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("ID_SECRET", "test-id-secret")
os.environ.setdefault("ACCESS_TOKEN_SECRET", "test-access-token-secret")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from typing import Any, AsyncGenerator, Dict, List, Type

import httpx
import pytest

from campus_cms.core.ids import encode_id
from campus_cms.core.security import create_access_token
from campus_cms.database.session import SessionManager, get_session_manager
from campus_cms.main import app
from campus_cms.models.database import Base, User
from campus_cms.services.storage import FileStorage, get_storage


@pytest.fixture
async def manager(tmp_path) -> AsyncGenerator[SessionManager, None]:
    """Session manager over a fresh database file."""
    manager = SessionManager(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False)
    await manager.create_all()
    yield manager
    await manager.dispose()


@pytest.fixture
def storage(tmp_path) -> FileStorage:
    return FileStorage(str(tmp_path / "files"))


@pytest.fixture
async def client(manager, storage) -> AsyncGenerator[httpx.AsyncClient, None]:
    """HTTP client talking to the app with test overrides installed."""
    app.dependency_overrides[get_session_manager] = lambda: manager
    app.dependency_overrides[get_storage] = lambda: storage
    transport = httpx.ASGITransport(app=app, raise_app_exceptions=False)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as test_client:
        yield test_client
    app.dependency_overrides.clear()


async def seed(manager: SessionManager, model: Type[Base], rows: List[Dict[str, Any]]) -> List[Any]:
    """Insert rows in one transaction and return the created instances."""
    async with manager.transaction() as session:
        instances = [model(**row) for row in rows]
        session.add_all(instances)
        await session.flush()
    return instances


async def seed_one(manager: SessionManager, model: Type[Base], **fields) -> Any:
    return (await seed(manager, model, [fields]))[0]


@pytest.fixture
async def admin(manager) -> User:
    return await seed_one(
        manager, User, username="admin", email="admin@college.edu", full_name="Site Admin", role="admin"
    )


@pytest.fixture
async def author(manager) -> User:
    return await seed_one(
        manager, User, username="author", email="author@college.edu", full_name="Staff Writer", role="author"
    )


def auth_headers(user: User) -> Dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


@pytest.fixture
def admin_headers(admin) -> Dict[str, str]:
    return auth_headers(admin)


@pytest.fixture
def author_headers(author) -> Dict[str, str]:
    return auth_headers(author)


def token(instance: Any) -> str:
    """Public identifier of a seeded row."""
    return encode_id(instance.id)
