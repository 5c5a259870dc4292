"""
Pytest fixtures for API tests.

Provides a FastAPI test client and resets the in-memory stores between tests.
"""
import pytest
from fastapi.testclient import TestClient

from main import app
from app.api.dependencies import download_store, stats_cache
from app.config import settings


@pytest.fixture(autouse=True)
def clean_stores():
    stats_cache.invalidate()
    for token in list(download_store._entries):
        download_store.release(token)
    download_store.enabled = True
    yield


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def admin_headers():
    return {"X-Admin-Key": settings.admin_api_key}


@pytest.fixture
def payload():
    return {
        "institutions": [
            {
                "id": "inst-1",
                "name": "Colegio San Martín",
                "address": "Av. Libertador 1200",
                "phone": "+54 11 4000-0000",
                "email": "contacto@sanmartin.edu",
                "created_at": "2024-01-15T09:00:00",
            },
            {"id": "inst-2", "name": "Instituto Belgrano"},
        ],
        "options": {"format": "excel"},
    }
