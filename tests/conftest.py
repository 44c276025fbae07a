import copy
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from awb_gateway.main import app
from awb_gateway.core.database import Base, get_db
from awb_gateway.models.transmission import TransmissionLog
from awb_gateway.schemas.shipment import Shipment
from awb_gateway.services.policy_store import PolicyStore, policy_store

# Use in-memory SQLite for tests
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

FIXED_NOW = datetime(2025, 3, 14, 12, 30, tzinfo=timezone.utc)

# 1234567 % 7 == 5, so the serial passes the check digit
VALID_AWB = "145-12345675"

DIRECT_SHIPMENT = {
    "awbNumber": VALID_AWB,
    "origin": "BOG",
    "destination": "MIA",
    "pieces": 10,
    "weight": 250.5,
    "description": "FRESH CUT ROSES",
    "currency": "USD",
    "paymentMethod": "Prepaid",
    "shipper": {
        "name": "FLORES DEL CAMPO SAS",
        "address": {
            "street": "CALLE 80 NO 45-10",
            "place": "BOGOTA",
            "countryCode": "CO",
            "postalCode": "110111",
        },
        "contact": {"identifier": "TE", "number": "+57 1 555 1234"},
    },
    "consignee": {
        "name": "MIAMI FLOWER IMPORTS LLC",
        "taxId": "123456789",
        "email": "ops@miamiflowers.example",
        "address": {
            "street": "1200 NW 72ND AVE",
            "place": "MIAMI",
            "state": "FL",
            "countryCode": "US",
            "postalCode": "33126",
        },
        "contact": {"identifier": "TE", "number": "305-555-0100"},
    },
    "agent": {
        "name": "CARGO MASTER",
        "iataCode": "1234567",
        "cassCode": "0001",
        "place": "BOGOTA",
    },
    "flights": [
        {
            "flightNumber": "LA1234",
            "date": "2025-03-14",
            "origin": "BOG",
            "destination": "MIA",
            "carrierCode": "LA",
        }
    ],
    "rates": [
        {
            "pieces": 10,
            "weight": 250.5,
            "chargeableWeight": 260,
            "rateClassCode": "Q",
            "rateOrCharge": 1.5,
            "total": 390.0,
            "description": "FRESH CUT ROSES",
            "commodityCode": "0603",
            "hsCodes": ["0603.11"],
        }
    ],
    "executionDate": "2025-03-14",
    "executionPlace": "BOGOTA",
    "signature": "JOHN DOE",
}

HOUSES = [
    {
        "hawbNumber": "CM12345",
        "shipperName": "FINCA LA ESPERANZA",
        "consigneeName": "ROSES USA INC",
        "pieces": 4,
        "weight": 100,
        "natureOfGoods": "FRESH CUT ROSES",
        "htsCodes": ["0603.11.0060"],
    },
    {
        "hawbNumber": "HAWB0002",
        "shipperName": "FLORES DE LA SABANA",
        "consigneeName": "BLOOM DISTRIBUTORS",
        "pieces": 6,
        "weight": 150.5,
        "natureOfGoods": "FRESH CUT CARNATIONS",
        "htsCodes": ["0603.12"],
    },
]


def fixed_clock():
    return FIXED_NOW


@pytest.fixture
def direct_payload():
    return copy.deepcopy(DIRECT_SHIPMENT)


@pytest.fixture
def consolidated_payload():
    payload = copy.deepcopy(DIRECT_SHIPMENT)
    payload["hasHouses"] = True
    payload["houseBills"] = copy.deepcopy(HOUSES)
    return payload


@pytest.fixture
def direct_shipment(direct_payload):
    return Shipment.model_validate(direct_payload)


@pytest.fixture
def consolidated_shipment(consolidated_payload):
    return Shipment.model_validate(consolidated_payload)


@pytest.fixture
def store():
    """A private policy store so tests never leak overrides into each other."""
    return PolicyStore()


@pytest.fixture(autouse=True)
def reset_policy_store():
    policy_store.reset()
    yield
    policy_store.reset()


@pytest.fixture(scope="module")
def db():
    # Create tables
    Base.metadata.create_all(bind=engine)

    session = TestingSessionLocal()

    yield session

    session.close()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="module")
def client(db):
    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def clean_log(db):
    db.query(TransmissionLog).delete()
    db.commit()
    return db
