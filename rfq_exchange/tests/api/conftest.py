import pytest
from fastapi.testclient import TestClient

from rfq_exchange.core.clock import get_clock
from rfq_exchange.db.session import get_db
from rfq_exchange.main import app
from rfq_exchange.tests.factories import auth


@pytest.fixture
def client(db, clock):
    def _get_db():
        yield db

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_clock] = lambda: clock
    try:
        with TestClient(app) as c:
            yield c
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def buyer_headers():
    return auth("buyer-1", "BUYER", display_name="Acme Buying", organization="Acme")


@pytest.fixture
def vendor_headers():
    return auth("vendor-1", "VENDOR", display_name="Vendor 1")


@pytest.fixture
def vendor2_headers():
    return auth("vendor-2", "VENDOR", display_name="Vendor 2")


@pytest.fixture
def admin_headers():
    return auth("admin-1", "admin")
