"""
Root test configuration and fixtures.

Provides database fixtures plus a seeded shop, customer and products that
the service and route tests share.
"""

import os
from datetime import datetime, timezone
from typing import Generator

import pytest
from sqlalchemy import create_engine, event, text
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

# Set test environment
os.environ.setdefault("ENV", "test")

SHOP_ID = "1001"
SHOP_DOMAIN = "clinic-test.myshopify.com"
OTHER_SHOP_ID = "2002"
OTHER_SHOP_DOMAIN = "other-shop.myshopify.com"


@pytest.fixture(scope="session", autouse=True)
def _httpx_app_kwarg_patch():
    """
    Compatibility patch for httpx>=0.28 where Client(app=...) is not supported.

    Starlette's TestClient (used by FastAPI) passes app= into httpx.Client.
    This patch removes the app kwarg to avoid TypeError in environments
    with newer httpx while remaining safe for older versions.
    """
    import httpx

    original_init = httpx.Client.__init__

    def patched_init(self, *args, **kwargs):
        kwargs.pop("app", None)
        return original_init(self, *args, **kwargs)

    httpx.Client.__init__ = patched_init
    try:
        yield
    finally:
        httpx.Client.__init__ = original_init


def _get_test_database_url() -> str:
    """Get database URL for tests."""
    database_url = os.getenv("TEST_DATABASE_URL")

    if database_url:
        if database_url.startswith("postgres://"):
            database_url = database_url.replace("postgres://", "postgresql://", 1)
        return database_url

    # Default to SQLite for unit tests if no PostgreSQL available
    return "sqlite:///:memory:"


def _is_postgres() -> bool:
    """Check if using PostgreSQL."""
    return _get_test_database_url().startswith("postgresql")


@pytest.fixture(scope="session")
def db_engine():
    """
    Create database engine for tests.

    Uses PostgreSQL if TEST_DATABASE_URL is set, otherwise SQLite in-memory.
    """
    database_url = _get_test_database_url()

    if _is_postgres():
        try:
            engine = create_engine(database_url, pool_pre_ping=True)
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except Exception as e:
            pytest.skip(f"PostgreSQL not available. Error: {e}")
    else:
        engine = create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

    from activation_mailer.db_base import Base
    import activation_mailer.models  # noqa: F401

    Base.metadata.create_all(bind=engine)

    yield engine

    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db_session(db_engine) -> Generator[Session, None, None]:
    """
    Create database session with transaction rollback for test isolation.

    Each test gets a fresh session that rolls back after the test completes.
    """
    connection = db_engine.connect()
    transaction = connection.begin()

    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=connection)
    session = SessionLocal()

    if _is_postgres():
        nested = connection.begin_nested()

        @event.listens_for(session, "after_transaction_end")
        def restart_savepoint(session, transaction):
            nonlocal nested
            if transaction.nested and not transaction._parent.nested:
                nested = connection.begin_nested()

    yield session

    session.close()
    transaction.rollback()
    connection.close()


# =============================================================================
# Seed data
# =============================================================================


@pytest.fixture
def shop(db_session):
    from activation_mailer.models import ShopifyShop

    record = ShopifyShop(
        id=SHOP_ID,
        domain=SHOP_DOMAIN,
        name="myon.clinic Test",
        access_token="shpat_test_token",
    )
    db_session.add(record)
    db_session.flush()
    return record


@pytest.fixture
def other_shop(db_session):
    from activation_mailer.models import ShopifyShop

    record = ShopifyShop(
        id=OTHER_SHOP_ID,
        domain=OTHER_SHOP_DOMAIN,
        name="Other Shop",
        access_token="shpat_other_token",
    )
    db_session.add(record)
    db_session.flush()
    return record


@pytest.fixture
def customer(db_session, shop):
    from activation_mailer.models import ShopifyCustomer

    record = ShopifyCustomer(
        id="7001",
        shop_id=shop.id,
        first_name="Erika",
        last_name="Mustermann",
        email="erika@example.com",
    )
    db_session.add(record)
    db_session.flush()
    return record


@pytest.fixture
def products(db_session, shop):
    from activation_mailer.models import ShopifyProduct

    records = [
        ShopifyProduct(
            id="9001",
            shop_id=shop.id,
            title="Rückenprogramm",
            pathway_longurl="https://app.myoncare.care/activate?pathway=back",
            featured_image_url="https://cdn.example.com/back.png",
        ),
        ShopifyProduct(
            id="9002",
            shop_id=shop.id,
            title="Knieprogramm",
            pathway_longurl="https://app.myoncare.care/activate?pathway=knee",
            featured_image_url="https://cdn.example.com/knee.png",
        ),
        ShopifyProduct(
            id="9003",
            shop_id=shop.id,
            title="Gutschein",
            pathway_longurl=None,
            featured_image_url=None,
        ),
    ]
    db_session.add_all(records)
    db_session.flush()
    return records


def make_order_payload(order_id=5001, email="erika@example.com", line_items=None, **overrides):
    """Build an orders/paid webhook body."""
    if line_items is None:
        line_items = [
            {"id": 11, "name": "Rückenprogramm", "title": "Rückenprogramm", "quantity": 1, "product_id": 9001},
            {"id": 12, "name": "Knieprogramm", "title": "Knieprogramm", "quantity": 2, "product_id": 9002},
        ]
    payload = {
        "id": order_id,
        "name": f"#{order_id}",
        "email": email,
        "processed_at": "2025-05-08T15:04:00+00:00",
        "created_at": "2025-05-08T15:03:00+00:00",
        "customer": {"id": 7001, "first_name": "Erika", "last_name": "Mustermann", "email": email},
        "line_items": line_items,
        "total_price": "49.90",
        "currency": "EUR",
        "financial_status": "paid",
        "fulfillment_status": None,
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def order_payload():
    return make_order_payload()


@pytest.fixture
def order_record(db_session, shop, customer):
    from activation_mailer.models import ShopifyOrder

    record = ShopifyOrder(
        id="5001",
        shop_id=shop.id,
        admin_graphql_api_id="gid://shopify/Order/5001",
        name="#5001",
        email=None,
        processed_at=datetime(2025, 5, 8, 15, 4, tzinfo=timezone.utc),
        customer_id=customer.id,
        total_price="49.90",
        currency="EUR",
        financial_status="paid",
        line_items=make_order_payload()["line_items"],
    )
    db_session.add(record)
    db_session.flush()
    return record


# =============================================================================
# Markers
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "security: mark test as security-focused")
