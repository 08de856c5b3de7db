
import pytest
from typing import Generator
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# It is important to set environment variables before importing app modules
import os
import tempfile
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENVIRONMENT"] = "testing"
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="recipebox-uploads-")

from recipebox.db.session import Base
from recipebox.main import app
from recipebox.storage import DatabaseStorage, get_storage
from recipebox.api.auth import create_access_token


@pytest.fixture(scope="function")
def db_engine():
    # One in-memory database per test, shared across connections
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def storage(db_engine) -> DatabaseStorage:
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    return DatabaseStorage(TestingSessionLocal)


@pytest.fixture(scope="function")
def client(storage) -> Generator:
    app.dependency_overrides[get_storage] = lambda: storage
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def upload_dir():
    return os.environ["UPLOAD_DIR"]


def auth_headers(user_id: str = "user-1", **claims) -> dict:
    token = create_access_token({"sub": user_id, **claims})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def make_headers():
    return auth_headers
