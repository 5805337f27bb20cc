import os

# Avant l'import de l'app: pas de Redis ni de compteur mémoire pendant les tests
os.environ["DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS"] = "1"
os.environ.pop("LOCAL_RATE_LIMIT_FALLBACK", None)

import pytest
from typing import Generator, Dict, Any
from fastapi.testclient import TestClient

from backend.app import app as fastapi_app
from backend.dependencies import (
    get_catalog_repository,
    get_customers_repository,
    get_orders_repository,
    get_stripe_gateway,
)
from backend.utils.security import require_user
from fakes import FakeCatalog, FakeCustomers, FakeGateway, FakeOrders

TEST_USER: Dict[str, Any] = {
    "id": "test-user",
    "email": "test@example.com",
    "metadata": {"full_name": "Test User"},
    "token": "fake-token",
}

# Marquage automatique selon le dossier
def pytest_collection_modifyitems(config, items):
    for item in items:
        nodeid = item.nodeid.replace("\\", "/")
        if "tests/unit/" in nodeid:
            item.add_marker(pytest.mark.unit)
        elif "tests/integration/" in nodeid:
            item.add_marker(pytest.mark.integration)

@pytest.fixture(scope="session")
def app():
    return fastapi_app

@pytest.fixture()
def client(app) -> Generator[TestClient, None, None]:
    with TestClient(app) as c:
        yield c

# Simuler un utilisateur authentifié pour les endpoints protégés
@pytest.fixture(autouse=True)
def _override_require_user(app):
    app.dependency_overrides[require_user] = lambda: dict(TEST_USER)
    try:
        yield
    finally:
        app.dependency_overrides.pop(require_user, None)

@pytest.fixture
def catalog() -> FakeCatalog:
    return FakeCatalog({
        "p1": {"name": "Mug", "price": 12.5, "stock": 5},
        "p2": {"name": "Poster", "price": "19.99", "stock": 10},
        "p3": {"name": "Badge", "price": 3, "stock": 0},
    })

@pytest.fixture
def orders(catalog) -> FakeOrders:
    repo = FakeOrders()
    catalog.orders = repo
    return repo

@pytest.fixture
def customers() -> FakeCustomers:
    return FakeCustomers()

@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()

# Supabase et Stripe remplacés par des doubles mémoire pour tous les endpoints
@pytest.fixture(autouse=True)
def _override_collaborators(app, catalog, orders, customers, gateway):
    app.dependency_overrides[get_catalog_repository] = lambda: catalog
    app.dependency_overrides[get_orders_repository] = lambda: orders
    app.dependency_overrides[get_customers_repository] = lambda: customers
    app.dependency_overrides[get_stripe_gateway] = lambda: gateway
    try:
        yield
    finally:
        for dep in (get_catalog_repository, get_orders_repository, get_customers_repository, get_stripe_gateway):
            app.dependency_overrides.pop(dep, None)
