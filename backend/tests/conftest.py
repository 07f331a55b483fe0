"""
Shared fixtures.

The app is built with in-memory sessions and repositories and a connection
manager whose client factory hands back a MagicMock, so nothing here needs a
running MongoDB.
"""

import asyncio
import os
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from config import Settings
from database import ConnectionManager
from main import create_app
from models.home import Home
from routes.auth import create_user
from sessions import MemorySessionStore
from store import Repositories

PASSWORD = "secret123"


class FakeClientFactory:
    """Counts connect calls; fails the first `failures` of them."""

    def __init__(self, failures: int = 0):
        self.calls = 0
        self.failures = failures
        self.client = MagicMock(name="mongo_client")

    async def __call__(self, uri):
        self.calls += 1
        if self.calls <= self.failures:
            raise ConnectionError("connection refused")
        return self.client


@pytest.fixture
def settings(tmp_path):
    public_dir = tmp_path / "public"
    upload_dir = public_dir / "uploads"
    upload_dir.mkdir(parents=True)
    return Settings(
        mongo_uri="mongodb://test",
        session_secret="test-secret",
        public_dir=str(public_dir),
        upload_dir=str(upload_dir),
    )


@pytest.fixture
def client_factory():
    return FakeClientFactory()


@pytest.fixture
def connection(settings, client_factory):
    return ConnectionManager(settings.mongo_uri, settings.database_name, client_factory=client_factory)


@pytest.fixture
def session_store():
    return MemorySessionStore()


@pytest.fixture
def repos():
    return Repositories.memory()


@pytest.fixture
def app(settings, connection, session_store, repos):
    return create_app(settings, connection=connection, session_store=session_store, repositories=repos)


@pytest.fixture
def client(app):
    return TestClient(app)


def run(coro):
    """Drive a repository coroutine from a sync test."""
    return asyncio.run(coro)


@pytest.fixture
def host_user(repos):
    return run(create_user(repos, "Hana", "Host", "hana@example.com", PASSWORD, "host"))


@pytest.fixture
def guest_user(repos):
    return run(create_user(repos, "Gus", "Guest", "gus@example.com", PASSWORD, "guest"))


def login(client, email, password=PASSWORD):
    return client.post(
        "/login",
        data={"email": email, "password": password},
        follow_redirects=False,
    )


def add_home(repos, host, name="Sea View", **fields):
    home = Home(
        id=fields.pop("id", name.lower().replace(" ", "-")),
        name=name,
        price_per_night=fields.pop("price_per_night", 120.0),
        location=fields.pop("location", "Lisbon"),
        host_id=host.id if host else None,
        **fields,
    )
    return run(repos.homes.add(home))


def write_file(directory, name, content=b"data"):
    path = os.path.join(directory, name)
    with open(path, "wb") as f:
        f.write(content)
    return path
