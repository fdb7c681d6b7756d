"""
Shared fixtures for the API tests.

The app runs in-process through FastAPI's TestClient against an in-memory
SQLite database that is rebuilt for every test.
"""
import os
import tempfile

# Settings are read at import time, so the environment has to be ready first
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="liftdesk-uploads-")
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["SMTP_USERNAME"] = ""
os.environ["SMTP_PASSWORD"] = ""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from main import app
from liftdesk.database import Base, get_db

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

ADMIN_EMAIL = "admin@liftco.example.com"
ADMIN_PASSWORD = "Secret123"


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def db_session():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def client(db_session):
    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _bearer(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def auth_headers(client):
    """Register a company; its first user is the admin"""
    response = client.post("/api/auth/register", json={
        "company_name": "Lift Co",
        "email": ADMIN_EMAIL,
        "password": ADMIN_PASSWORD,
        "full_name": "Dana Admin",
    })
    assert response.status_code == 201, response.text
    return _bearer(response.json()["access_token"])


@pytest.fixture()
def user_headers(client, auth_headers):
    """Create another user in the admin's company and log in as them"""
    def _login_as(role, email=None):
        email = email or f"{role}@liftco.example.com"
        response = client.post("/api/auth/users", json={
            "email": email,
            "password": "Userpass1",
            "full_name": f"{role.title()} User",
            "role": role,
        }, headers=auth_headers)
        assert response.status_code == 201, response.text

        response = client.post("/api/auth/login", json={"email": email, "password": "Userpass1"})
        assert response.status_code == 200, response.text
        return _bearer(response.json()["access_token"])
    return _login_as


@pytest.fixture()
def readonly_headers(user_headers):
    return user_headers("readonly")


@pytest.fixture()
def other_company_headers(client):
    response = client.post("/api/auth/register", json={
        "company_name": "Other Lifts",
        "email": "owner@otherlifts.example.com",
        "password": "Other1234",
        "full_name": "Other Owner",
    })
    assert response.status_code == 201, response.text
    return _bearer(response.json()["access_token"])


# ============================================================================
# Record factories
# ============================================================================

def _post(client, url, payload, headers):
    response = client.post(url, json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


@pytest.fixture()
def new_client(client, auth_headers):
    def _create(**overrides):
        payload = {
            "name": "Herzl 12 Residents Committee",
            "contact_name": "Dana Levi",
            "contact_phone": "+972-52-555-0101",
            "contact_email": "committee@herzl12.example.com",
        }
        payload.update(overrides)
        return _post(client, "/api/clients/", payload, auth_headers)
    return _create


@pytest.fixture()
def new_building(client, auth_headers, new_client):
    def _create(client_id=None, **overrides):
        payload = {
            "client_id": client_id or new_client()["id"],
            "address": "Herzl 12",
            "city": "Tel Aviv",
            "entrance": "A",
            "floors": 8,
        }
        payload.update(overrides)
        return _post(client, "/api/buildings/", payload, auth_headers)
    return _create


@pytest.fixture()
def new_elevator(client, auth_headers, new_building):
    def _create(building_id=None, **overrides):
        payload = {
            "building_id": building_id or new_building()["id"],
            "mol_number": "41-1001",
            "manufacturer": "Schindler",
        }
        payload.update(overrides)
        return _post(client, "/api/elevators/", payload, auth_headers)
    return _create


@pytest.fixture()
def new_technician(client, auth_headers):
    def _create(**overrides):
        payload = {
            "full_name": "Yossi Cohen",
            "phone": "+972-50-555-0201",
            "email": "yossi@liftco.example.com",
            "specialization": ["traction"],
        }
        payload.update(overrides)
        return _post(client, "/api/technicians/", payload, auth_headers)
    return _create


@pytest.fixture()
def new_supplier(client, auth_headers):
    def _create(**overrides):
        payload = {
            "company_name": "Lift Parts Ltd",
            "primary_contact_name": "Moshe Katz",
            "primary_contact_phone": "+972-3-555-0301",
            "primary_contact_email": "orders@liftparts.example.com",
            "lead_time_days": 10,
        }
        payload.update(overrides)
        return _post(client, "/api/suppliers/", payload, auth_headers)
    return _create


@pytest.fixture()
def new_part(client, auth_headers):
    def _create(**overrides):
        payload = {
            "part_number": "DR-ROLL-01",
            "name": "Door roller",
            "category": "door",
            "unit_price": 45.0,
            "quantity_in_stock": 20,
            "minimum_stock_level": 10,
            "reorder_point": 5,
        }
        payload.update(overrides)
        return _post(client, "/api/parts/", payload, auth_headers)
    return _create


@pytest.fixture()
def site(new_client, new_building, new_elevator):
    """A client with one building and one elevator"""
    client_record = new_client()
    building = new_building(client_id=client_record["id"])
    elevator = new_elevator(building_id=building["id"])
    return {"client": client_record, "building": building, "elevator": elevator}


@pytest.fixture()
def new_ticket(client, auth_headers, site):
    def _create(**overrides):
        payload = {
            "building_id": site["building"]["id"],
            "elevator_id": site["elevator"]["id"],
            "title": "Door closes slowly",
            "severity": "medium",
        }
        payload.update(overrides)
        return _post(client, "/api/tickets/", payload, auth_headers)
    return _create
