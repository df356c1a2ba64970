import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from clinic_stock.app.api.deps import get_db, get_inventory_client, get_stock_source
from clinic_stock.app.db.base import Base
from clinic_stock.app.db.models import snapshot  # noqa: F401  (tables)
from clinic_stock.app.main import app
from clinic_stock.app.schemas.stock import LocationStockEntry
from clinic_stock.app.schemas.units import ProductUnitRead
from clinic_stock.services.upstream import UpstreamError


# ---------- Doubles ----------
class FakeSource:
    """Source de stock en mémoire (unités par produit, stock par location, stock par lot)."""

    def __init__(self, units=None, entries=None, batches=None, failing_products=(), failing_batches=()):
        self.units = units or {}
        self.entries = entries or []
        self.batches = batches or {}
        self.failing_products = set(failing_products)
        self.failing_batches = set(failing_batches)
        self.calls = []

    def list_units(self, product_id):
        self.calls.append(("units", product_id))
        if product_id in self.failing_products:
            raise UpstreamError("boom", status_code=500)
        return list(self.units.get(product_id, []))

    def get_unit(self, unit_id):
        self.calls.append(("unit", unit_id))
        for units in self.units.values():
            for u in units:
                if u.id == unit_id:
                    return u
        return None

    def list_location_stock(self):
        self.calls.append(("location_stock",))
        return list(self.entries)

    def batch_available(self, batch_id):
        self.calls.append(("batch", batch_id))
        if batch_id in self.failing_batches:
            raise UpstreamError("Gateway timeout", status_code=504)
        return float(self.batches.get(batch_id, 0))


class FakeInventoryClient:
    """Client amont : documents en mémoire, enregistre ce qui est envoyé."""

    def __init__(self, requests=None, withdrawals=None):
        self.requests = requests or {}
        self.withdrawals = withdrawals or {}
        self.sent = []

    def get_request(self, request_id):
        if request_id not in self.requests:
            raise UpstreamError("Request not found", status_code=404)
        return self.requests[request_id]

    def approve_request(self, request_id, payload):
        self.sent.append(("approve", request_id, payload))
        return {"success": True}

    def get_withdrawal(self, withdrawal_id):
        if withdrawal_id not in self.withdrawals:
            raise UpstreamError("Withdrawal not found", status_code=404)
        return self.withdrawals[withdrawal_id]

    def update_withdrawal(self, withdrawal_id, payload):
        self.sent.append(("withdrawal", withdrawal_id, payload))
        return {"success": True}


# ---------- Données ----------
@pytest.fixture
def units():
    """P1 : pièce (base, défaut) + boîte de 5."""
    return {
        "P1": [
            ProductUnitRead(id="U1", product_id="P1", name="Piece", conversion_to_base=1, is_default=True),
            ProductUnitRead(id="U5", product_id="P1", name="Box", conversion_to_base=5),
        ],
        "P2": [
            ProductUnitRead(id="U2", product_id="P2", name="Pack", conversion_to_base=10),
        ],
    }


@pytest.fixture
def entries():
    return [
        LocationStockEntry(batch_id="B1", location_id="L1", quantity=10, location_name="Main Store"),
        LocationStockEntry(batch_id="B1", location_id="L2", quantity=3, location_name="Surgery 2"),
        LocationStockEntry(batch_id="B0", location_id="L1", quantity=0, location_name="Main Store"),
    ]


@pytest.fixture
def source(units, entries):
    return FakeSource(units=units, entries=entries, batches={"B1": 10, "B2": 0, "B4": 4})


@pytest.fixture
def inventory_client():
    return FakeInventoryClient(
        requests={
            "R1": {
                "_id": "R1",
                "requestNo": "REQ-100001",
                "approvalStatus": "PENDING",
                "notes": "Restock surgery 2",
                "items": [
                    {
                        "_id": "I1",
                        "productId": {"_id": "P1", "name": "Gloves"},
                        "batchId": {"_id": "B1", "batchNumber": "LOT-001"},
                        "productUnitId": {"_id": "U5", "name": "Box"},
                        "requestedQuantity": 3,
                        "approvedQuantity": 0,
                    }
                ],
            }
        },
        withdrawals={
            "W1": {
                "_id": "W1",
                "status": "PENDING",
                "notes": "",
                "items": [
                    {
                        "productId": "P1",
                        "batchId": "B1",
                        "productUnitId": "U5",
                        "requestedQuantity": 2,
                        "fromLocationId": "L1",
                        "toLocationId": "L2",
                    }
                ],
            }
        },
    )


# ---------- DB ----------
@pytest.fixture(scope="function")
def db_session() -> Session:
    """
    Base SQLite en mémoire, recréée pour chaque test.
    """
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(bind=engine, autoflush=False, autocommit=False)()

    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


# ---------- API ----------
@pytest.fixture
def client(db_session, source, inventory_client):
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_inventory_client] = lambda: inventory_client
    app.dependency_overrides[get_stock_source] = lambda: source

    try:
        with TestClient(app) as c:
            yield c
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def make_source():
    return FakeSource
