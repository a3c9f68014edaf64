"""
Shared fixtures.

The database URL is pointed at a throwaway SQLite file before any app module
is imported, and the schema is rebuilt for every test.
"""

import os
import tempfile

_tmp_dir = tempfile.mkdtemp(prefix="finance-tests-")
_db_file = os.path.join(_tmp_dir, "test.db")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_db_file}"
os.environ["SECRET_KEY"] = "test-secret-key"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine

import database
import users
from schemas import Identity


@pytest.fixture(autouse=True)
def fresh_db():
    sync_engine = create_engine(f"sqlite:///{_db_file}")
    database.Base.metadata.drop_all(sync_engine)
    database.Base.metadata.create_all(sync_engine)
    sync_engine.dispose()
    yield


@pytest.fixture
def drop_table():
    def _drop(name):
        sync_engine = create_engine(f"sqlite:///{_db_file}")
        database.Base.metadata.tables[name].drop(sync_engine)
        sync_engine.dispose()

    return _drop


@pytest.fixture
async def db():
    async with database.async_session() as session:
        yield session


@pytest.fixture
def make_identity(db):
    async def _make(email, password="pw", name=None):
        user_id = await users.create_user(db, name, email, password)
        return Identity(id=user_id, email=email, name=name)

    return _make


@pytest.fixture
def client():
    from main import app

    return TestClient(app)


@pytest.fixture
def other_client():
    from main import app

    return TestClient(app)


def register_and_login(client, email, password, name=None):
    data = {"email": email, "password": password}
    if name:
        data["name"] = name
    r = client.post("/register", json=data, follow_redirects=False)
    assert r.status_code == 303, r.text
    r = client.post("/login", json={"email": email, "password": password}, follow_redirects=False)
    assert r.status_code == 303, r.text
    return r


@pytest.fixture
def login_as():
    return register_and_login
