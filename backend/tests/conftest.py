import pytest
from fastapi.testclient import TestClient

from app.config import settings
from app.main import create_app
from app.services.inventory_service import InventoryService
from app.storage.memory import InMemoryStorage


@pytest.fixture
def storage():
    return InMemoryStorage()


@pytest.fixture
def inventory(storage):
    return InventoryService(storage, auto_remove_on_zero=True)


@pytest.fixture
def client(inventory, monkeypatch):
    monkeypatch.setattr(settings, "LOW_STOCK_SCAN_SECONDS", 0)
    with TestClient(create_app(inventory=inventory)) as c:
        yield c
