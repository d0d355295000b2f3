# tests/conftest.py
import pytest
from fastapi.testclient import TestClient

from inmoflow.adapters.memory_repo import Repositories
from inmoflow.api.http import create_app


@pytest.fixture
def repos():
    # fresh demo stores per test; no latency
    return Repositories.seeded(property_count=50, seed=7)


@pytest.fixture
def client(repos):
    return TestClient(create_app(repos))
