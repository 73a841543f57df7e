# tests/conftest.py
from __future__ import annotations

import os
from collections.abc import Generator, Iterator
from itertools import count

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("PYTEST_RUNNING", "true")

from tallyrank.api.v1.dependencies import get_rate_limiter_dep
from tallyrank.core.security import create_access_token
from tallyrank.db.session import Base, build_engine
from tallyrank.db.session import get_db as app_get_session
from tallyrank.main import app as fastapi_app
from tallyrank.models import Product
from tallyrank.services.identity import Identity, IdentityKind
from tallyrank.services.rate_limiter import InMemoryCooldownStore, RateLimiter

TEST_DB_URL = "sqlite://"

_PRODUCT_COUNTER = count(1)

ANON_FINGERPRINT = "fp_test-0123456789abcdef"
OTHER_FINGERPRINT = "fp_other-0123456789abcdef"


@pytest.fixture(scope="session")
def engine() -> Generator[Engine, None, None]:
    engine = build_engine(TEST_DB_URL, poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def db_session(engine: Engine) -> Iterator[Session]:
    # The vote store commits and rolls back on its own, so each test runs
    # against the real engine and the tables are emptied afterwards.
    TestingSession = sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )
    session = TestingSession()
    try:
        yield session
    finally:
        session.rollback()
        session.close()
        with engine.begin() as cleanup_conn:
            for table in reversed(Base.metadata.sorted_tables):
                cleanup_conn.execute(table.delete())


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture()
def rate_limiter() -> RateLimiter:
    """Rate limiter with a fresh in-memory store and cooldown disabled."""
    return RateLimiter(InMemoryCooldownStore(), cooldown_ms=0)


@pytest.fixture(autouse=True)
def override_dependencies(
    app: FastAPI,
    db_session: Session,
    rate_limiter: RateLimiter,
) -> Iterator[None]:
    def _get_session_override() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[app_get_session] = _get_session_override
    app.dependency_overrides[get_rate_limiter_dep] = lambda: rate_limiter
    try:
        yield
    finally:
        app.dependency_overrides.pop(app_get_session, None)
        app.dependency_overrides.pop(get_rate_limiter_dep, None)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


def make_product(db: Session, **fields: object) -> Product:
    """Persist and return a product; extra ``fields`` override the defaults."""
    n = next(_PRODUCT_COUNTER)
    values: dict[str, object] = {"slug": f"product-{n}", "name": f"Product {n}"}
    values.update(fields)
    product = Product(**values)
    db.add(product)
    db.commit()
    db.refresh(product)
    return product


@pytest.fixture()
def product(db_session: Session) -> Product:
    """Create a baseline product with no votes."""
    return make_product(db_session)


@pytest.fixture()
def other_product(db_session: Session) -> Product:
    return make_product(db_session)


@pytest.fixture()
def anon_identity() -> Identity:
    return Identity(IdentityKind.ANONYMOUS, ANON_FINGERPRINT)


@pytest.fixture()
def account_identity() -> Identity:
    return Identity(IdentityKind.ACCOUNT, "42")


@pytest.fixture()
def anon_headers() -> dict[str, str]:
    """Return headers identifying an anonymous voter."""
    return {"X-Client-Fingerprint": ANON_FINGERPRINT}


@pytest.fixture()
def auth_token() -> dict[str, str]:
    """Return authorization headers for account ``42``."""
    token = create_access_token("42")
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def product_factory(db_session: Session):
    """Return a callable creating persisted products."""

    def _create(**fields: object) -> Product:
        return make_product(db_session, **fields)

    return _create
