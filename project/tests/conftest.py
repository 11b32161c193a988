"""Shared fixtures: storage over an in-memory key-value store, repositories, HTTP client."""
import os
import tempfile

# Settings are read at import time, so the environment is prepared first
os.environ["LOG_DIR"] = tempfile.mkdtemp(prefix="leadstore-log-")
os.environ["LOG_PRINT"] = "0"
os.environ["LOG_PRINT_DB"] = "0"
os.environ["PASSWORD_HASH_ROUNDS"] = "1000"
os.environ["DEFAULT_ADMIN_PASSWORD"] = "admin"
os.environ["AUTH_SECRET_KEY"] = "test-secret-key-for-hs256-signing-0123456789"
os.environ["DEBUG_ROUTES"] = "1"

import pytest
import pytest_asyncio

from leadstore.config import settings
from leadstore.schemas.lead import LeadCreate
from leadstore.services.leads import LeadRepository
from leadstore.services.users import UserRepository
from leadstore.utils.database import Storage
from leadstore.utils.kv_store import MemoryKeyValueStore
from leadstore.utils.log import Log


@pytest_asyncio.fixture
async def log(tmp_path):
    log = Log(log_dir=str(tmp_path / "log"), log_print=False)
    yield log
    await log.shutdown()


@pytest.fixture
def kv():
    return MemoryKeyValueStore()


@pytest_asyncio.fixture
async def storage(kv, log):
    storage = Storage(kv, log)
    yield storage
    await storage.close()


@pytest.fixture
def leads(storage, log):
    return LeadRepository(storage, log)


@pytest.fixture
def users(storage, log):
    return UserRepository(storage, log)


@pytest.fixture
def make_lead():
    """Factory for valid registration payloads, unique per index."""
    def _make(index: int = 1, **overrides) -> LeadCreate:
        data = {
            "full_name": f"Lead Number {index}",
            "phone_number": f"+62 812 0000 {index:04d}",
            "email": f"lead{index}@example.com",
            "institution": "State University",
            "occupation": "Student",
        }
        data.update(overrides)
        return LeadCreate(**data)
    return _make


@pytest.fixture
def client(tmp_path, monkeypatch):
    """FastAPI TestClient with the snapshot directory inside tmp_path."""
    from fastapi.testclient import TestClient
    from leadstore.main import app

    monkeypatch.setattr(settings, "STORAGE_DIR", str(tmp_path / "storage"))
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def admin_headers(client):
    response = client.post("/auth/token", data={"username": "admin", "password": "admin"})
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['access_token']}"}
