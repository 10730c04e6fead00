import os
import tempfile
from datetime import date, timedelta

# Settings are read at import time
_TMP = tempfile.mkdtemp(prefix="invoicely-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP, 'test.db')}"
os.environ["TEMP_DIR"] = os.path.join(_TMP, "documents")
os.environ["SECRET_KEY"] = "test-secret-key-not-for-production"
os.environ["ALLOWED_HOSTS"] = "testserver,localhost"
os.environ["RATE_LIMIT_REQUESTS"] = "100000"
os.environ["OVERDUE_SCAN_ENABLED"] = "false"
os.environ["SENDGRID_API_KEY"] = ""
os.environ["AUTH0_DOMAIN"] = ""

import pytest
from fastapi.testclient import TestClient

from invoicely.db.init_db import drop_db, init_db
from invoicely.db.session import SessionLocal
from invoicely.main import app
from invoicely.models.user import User
from invoicely.schemas.invoice import InvoiceCreate
from invoicely.services.invoice_service import create_invoice


class FakeMailer:
    """Records deliveries instead of calling the email provider."""

    def __init__(self, error=None):
        self.error = error
        self.sent = []

    def send_invoice(self, email, attachment_path, filename):
        self.sent.append(
            {
                "email": email,
                "path": attachment_path,
                "filename": filename,
                "existed": attachment_path.exists(),
                "size": attachment_path.stat().st_size,
            }
        )
        if self.error is not None:
            raise self.error


def fake_renderer(document):
    return b"%PDF-1.4 fake " + document.sequence_number.encode()


@pytest.fixture(autouse=True)
def fresh_db():
    drop_db()
    init_db()
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def make_user(db, username="alice", email=None) -> User:
    user = User(username=username, email=email or f"{username}@example.com", hashed_password=None)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def user(db):
    return make_user(db, "alice")


@pytest.fixture
def other_user(db):
    return make_user(db, "bob")


def invoice_payload(**overrides) -> dict:
    payload = {
        "tempClient": {"name": "Acme Traders", "email": "billing@acme.example.com"},
        "dueDate": (date.today() + timedelta(days=30)).isoformat(),
        "lineItems": [
            {"description": "Design work", "quantity": 2, "unitPrice": 100, "taxable": True},
            {"description": "Hosting", "quantity": 1, "unitPrice": 50, "taxable": False},
        ],
        "taxInfo": {"cgstRate": 9, "sgstRate": 9},
    }
    payload.update(overrides)
    return payload


def new_invoice(db, user_id, **overrides):
    return create_invoice(db, user_id, InvoiceCreate.model_validate(invoice_payload(**overrides)))


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def register(client, username="alice", password="secret123") -> dict:
    response = client.post(
        "/auth/register",
        json={"username": username, "email": f"{username}@example.com", "password": password},
    )
    assert response.status_code == 201, response.text
    return {"Authorization": f"Bearer {response.json()['accessToken']}"}


@pytest.fixture
def auth_headers(client):
    # Bearer header only; drop the cookie so each test chooses its own credentials
    headers = register(client, "alice")
    client.cookies.clear()
    return headers
