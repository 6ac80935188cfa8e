import os

# settings are read at import time by db.session; point them at sqlite first
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# FORCE model registration
import rfq_exchange.models  # noqa

from rfq_exchange.db.base import Base
from rfq_exchange.models.enums import ParticipantRole
from rfq_exchange.policies.rbac import Principal
from rfq_exchange.tests.factories import FrozenClock, Services, make_vendor, new_tender


@pytest.fixture(scope="function")
def engine():
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
def db(engine):
    SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def svc(clock):
    return Services(clock)


@pytest.fixture
def buyer():
    return Principal(actor_id="buyer-1", role=ParticipantRole.BUYER, display_name="Acme Buying", organization="Acme")


@pytest.fixture
def other_buyer():
    return Principal(actor_id="buyer-2", role=ParticipantRole.BUYER, display_name="Other Buyer")


@pytest.fixture
def admin():
    return Principal(actor_id="admin-1", role=ParticipantRole.ADMIN, display_name="Ops")


@pytest.fixture
def vendor():
    return make_vendor(1)


@pytest.fixture
def vendor2():
    return make_vendor(2)


@pytest.fixture
def open_tender(db, svc, buyer):
    return new_tender(svc, db, buyer)
