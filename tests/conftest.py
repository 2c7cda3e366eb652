"""
conftest.py — Shared Test Fixtures for the catalog sync service

Provides an in-memory SQLite database, a FastAPI TestClient bound to it,
and factory fixtures for catalog entities (units, products, warehouses,
counterparties, price types, agreements).

Business Rules:
- All tests run against an isolated in-memory DB
- pysqlite's implicit transaction handling is disabled so SAVEPOINTs
  (one per batch item) behave like they do on PostgreSQL
- Each test function gets freshly created tables

Called by: all test files via pytest autodiscovery
Depends on: app.models (Base), app.database (get_db), app.main
"""

import os

os.environ["TESTING"] = "1"  # Must be set before importing app modules
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ERP_SHARED_SECRET"] = "test-secret"
os.environ["RATE_LIMIT_ENABLED"] = "false"

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.models import (
    Base,
    ClientAgreement,
    ClientContract,
    Counterparty,
    PriceType,
    Product,
    ProductGroup,
    StockBalance,
    Unit,
    Warehouse,
)

SECRET = "test-secret"

# ── In-memory SQLite engine ──────────────────────────────────────────

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@event.listens_for(engine, "connect")
def _on_connect(dbapi_conn, _):
    """Let SQLAlchemy emit BEGIN itself and turn foreign keys on."""
    dbapi_conn.isolation_level = None
    dbapi_conn.execute("PRAGMA foreign_keys=ON")


@event.listens_for(engine, "begin")
def _on_begin(conn):
    conn.exec_driver_sql("BEGIN")


# ── Fixtures ─────────────────────────────────────────────────────────


@pytest.fixture(autouse=True)
def db_session():
    """Create all tables, yield a session, then tear down."""
    Base.metadata.create_all(bind=engine)
    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def client(db_session: Session) -> TestClient:
    """FastAPI TestClient with get_db overridden to the test session."""
    from app.database import get_db
    from app.main import app

    def _override_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
def make_unit(db_session: Session):
    def _make(guid="unit-pcs", name="Piece", symbol="pcs") -> Unit:
        unit = Unit(guid=guid, name=name, symbol=symbol)
        db_session.add(unit)
        db_session.commit()
        return unit

    return _make


@pytest.fixture()
def test_unit(make_unit) -> Unit:
    return make_unit()


@pytest.fixture()
def make_product(db_session: Session, test_unit: Unit):
    def _make(guid="prod-1", name="Widget", group: ProductGroup | None = None, **kw) -> Product:
        product = Product(
            guid=guid,
            name=name,
            base_unit_id=test_unit.id,
            group_id=group.id if group else None,
            **kw,
        )
        db_session.add(product)
        db_session.commit()
        return product

    return _make


@pytest.fixture()
def test_product(make_product) -> Product:
    return make_product()


@pytest.fixture()
def make_warehouse(db_session: Session):
    def _make(guid="wh-main", name="Main", **kw) -> Warehouse:
        wh = Warehouse(guid=guid, name=name, **kw)
        db_session.add(wh)
        db_session.commit()
        return wh

    return _make


@pytest.fixture()
def test_warehouse(make_warehouse) -> Warehouse:
    return make_warehouse(is_default=True)


@pytest.fixture()
def make_counterparty(db_session: Session):
    def _make(guid="cp-1", name="Acme LLC", **kw) -> Counterparty:
        cp = Counterparty(guid=guid, name=name, **kw)
        db_session.add(cp)
        db_session.commit()
        return cp

    return _make


@pytest.fixture()
def test_counterparty(make_counterparty) -> Counterparty:
    return make_counterparty()


@pytest.fixture()
def make_price_type(db_session: Session):
    def _make(guid="pt-wholesale", name="Wholesale", **kw) -> PriceType:
        pt = PriceType(guid=guid, name=name, **kw)
        db_session.add(pt)
        db_session.commit()
        return pt

    return _make


@pytest.fixture()
def test_price_type(make_price_type) -> PriceType:
    return make_price_type()


@pytest.fixture()
def make_agreement(db_session: Session):
    def _make(counterparty: Counterparty, guid="agr-1", price_type: PriceType | None = None,
              **kw) -> ClientAgreement:
        contract = ClientContract(
            guid=f"{guid}-contract",
            counterparty_id=counterparty.id,
            number="C-1",
            date=date(2024, 1, 1),
        )
        db_session.add(contract)
        db_session.flush()
        agreement = ClientAgreement(
            guid=guid,
            name=f"Agreement {guid}",
            counterparty_id=counterparty.id,
            contract_id=contract.id,
            price_type_id=price_type.id if price_type else None,
            **kw,
        )
        db_session.add(agreement)
        db_session.commit()
        return agreement

    return _make


@pytest.fixture()
def test_agreement(make_agreement, test_counterparty) -> ClientAgreement:
    return make_agreement(test_counterparty)


@pytest.fixture()
def make_stock(db_session: Session):
    def _make(product: Product, warehouse: Warehouse, quantity, reserved=0) -> StockBalance:
        row = StockBalance(
            product_id=product.id,
            warehouse_id=warehouse.id,
            quantity=Decimal(str(quantity)),
            reserved=Decimal(str(reserved)),
            updated_at=datetime.now(timezone.utc),
        )
        db_session.add(row)
        db_session.commit()
        return row

    return _make
