"""Pytest configuration and fixtures."""

import os

# Keep the application engine off the working directory during tests
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

import pytest
from typing import Generator

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from outlet_ledger.core.config import Settings
from outlet_ledger.db.base import Base
from outlet_ledger.db.session import get_db
from outlet_ledger.main import app
# Import all models to ensure they're registered with Base.metadata
from outlet_ledger.models import *  # noqa: F401,F403
from outlet_ledger.models.outlet import Outlet, OutletType
from outlet_ledger.models.product import Product, ProductCategory, ProductConversion
from outlet_ledger.api.routes.live_inventory import get_coordinator
from outlet_ledger.services.recompute_coordinator import RecomputeCoordinator

# Use in-memory SQLite for tests
TEST_DATABASE_URL = "sqlite:///:memory:"


@pytest.fixture(scope="function")
def db_engine():
    """Create a test database engine."""
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def session_factory(db_engine):
    """Session factory bound to the test engine."""
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture(scope="function")
def db_session(session_factory) -> Generator[Session, None, None]:
    """Create a test database session."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def test_settings() -> Settings:
    """Settings independent of the environment."""
    return Settings(_env_file=None, rate_limit_enabled=False)


@pytest.fixture
def coordinator(session_factory, test_settings) -> RecomputeCoordinator:
    """Recompute coordinator reading the test database."""
    return RecomputeCoordinator(session_factory, settings=test_settings)


@pytest.fixture(scope="function")
def client(db_session: Session, coordinator: RecomputeCoordinator) -> Generator[TestClient, None, None]:
    """Create a test client with database and coordinator overrides."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_coordinator] = lambda: coordinator
    # Disable rate limiter during tests to avoid flaky failures
    from outlet_ledger.core.rate_limit import limiter as global_limiter
    global_limiter.enabled = False
    # Don't raise server exceptions so we can test error status codes
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client
    global_limiter.enabled = True
    app.dependency_overrides.clear()


@pytest.fixture
def sales_outlet(db_session: Session) -> Outlet:
    """Create a sales outlet."""
    outlet = Outlet(name="Main", outlet_type=OutletType.SALES, location="High Street")
    db_session.add(outlet)
    db_session.commit()
    db_session.refresh(outlet)
    return outlet


@pytest.fixture
def production_outlet(db_session: Session) -> Outlet:
    """Create a production outlet."""
    outlet = Outlet(name="Kitchen", outlet_type=OutletType.PRODUCTION, location="Unit 4")
    db_session.add(outlet)
    db_session.commit()
    db_session.refresh(outlet)
    return outlet


@pytest.fixture
def cake(db_session: Session) -> Product:
    """Create a whole-unit product."""
    product = Product(name="Chocolate Cake", unit="whole", category=ProductCategory.KITCHEN)
    db_session.add(product)
    db_session.commit()
    db_session.refresh(product)
    return product


@pytest.fixture
def cake_slice(db_session: Session) -> Product:
    """Create the sub-unit product of the cake."""
    product = Product(name="Chocolate Cake Slice", unit="slice", category=ProductCategory.KITCHEN)
    db_session.add(product)
    db_session.commit()
    db_session.refresh(product)
    return product


@pytest.fixture
def cake_conversion(db_session: Session, cake: Product, cake_slice: Product) -> ProductConversion:
    """1 cake = 10 slices."""
    conversion = ProductConversion(
        whole_product_id=cake.id,
        sub_unit_product_id=cake_slice.id,
        factor=10,
    )
    db_session.add(conversion)
    db_session.commit()
    db_session.refresh(conversion)
    return conversion


@pytest.fixture
def flour(db_session: Session) -> Product:
    """Create a standalone raw material."""
    product = Product(name="Flour", unit="kg", category=ProductCategory.RAW)
    db_session.add(product)
    db_session.commit()
    db_session.refresh(product)
    return product
