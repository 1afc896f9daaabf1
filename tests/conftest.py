"""
Shared fixtures: an in-memory SQLite database rebuilt per test, one organization
with a user per role, and stand-ins for R2, Resend and Dodo Payments.
"""

import base64
import os
import uuid
from decimal import Decimal

# Configuration is read at import time
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["DB_LOG_SLOW_QUERIES"] = "false"
os.environ["APP_TIMEZONE"] = "America/New_York"
os.environ["FRONTEND_URL"] = "https://portal.example.com"
os.environ["R2_PUBLIC_URL"] = "https://files.example.com"
os.environ["DODO_PAYMENTS_WEBHOOK_SECRET"] = "whsec_" + base64.b64encode(
    b"portal-test-signing-key"
).decode()

import pytest
from fastapi import Depends
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from portal import models, models_invoice  # noqa: F401
from portal.auth import get_current_user
from portal.database import Base, SessionLocal, engine, get_db
from portal.main import app
from portal.models import Organization, ServiceTemplate, User
from portal.storage import decode_signature_data_url


# ============================================================================
# DATABASE
# ============================================================================


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def org(db) -> Organization:
    organization = Organization(
        name="St. Brendan Parish",
        slug="st-brendan",
        invoice_prefix="SBP",
        next_invoice_number=1,
        hourly_rate=Decimal("75.00"),
        monthly_retainer=Decimal("1000.00"),
        payment_terms="Net 15",
        email="office@stbrendan.example.org",
    )
    db.add(organization)
    db.commit()
    db.refresh(organization)
    return organization


def make_user(db, org, role, email=None, **fields) -> User:
    user = User(
        organization_id=org.id,
        email=email or f"{role}-{uuid.uuid4().hex[:6]}@example.org",
        first_name=fields.pop("first_name", role.split("_")[0].title()),
        last_name=fields.pop("last_name", role.split("_")[1].title()),
        role=role,
        **fields,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def users(db, org) -> dict:
    return {
        "vendor_admin": make_user(db, org, "vendor_admin", email="admin@avcrew.example.com"),
        "vendor_staff": make_user(db, org, "vendor_staff", email="tech@avcrew.example.com"),
        "client_admin": make_user(
            db, org, "client_admin", email="bursar@stbrendan.example.org", can_pay=True
        ),
        "client_approver": make_user(
            db,
            org,
            "client_approver",
            email="pastor@stbrendan.example.org",
            first_name="Michael",
            last_name="Walsh",
            title="Pastor",
            is_approver=True,
        ),
        "client_viewer": make_user(
            db, org, "client_viewer", email="secretary@stbrendan.example.org"
        ),
    }


@pytest.fixture
def services(db, org) -> list[ServiceTemplate]:
    templates = [
        ServiceTemplate(organization_id=org.id, name="Livestream", sort_order=1),
        ServiceTemplate(organization_id=org.id, name="Audio Mixing", sort_order=2),
    ]
    db.add_all(templates)
    db.commit()
    for template in templates:
        db.refresh(template)
    return templates


# ============================================================================
# EXTERNAL SERVICES
# ============================================================================


@pytest.fixture(autouse=True)
def fake_storage(monkeypatch):
    """Signature uploads decode the image but never reach R2"""
    uploaded = []

    def upload(data_url, key):
        decode_signature_data_url(data_url)
        uploaded.append(key)
        return key

    monkeypatch.setattr("portal.domain.approvals.service.upload_signature_image", upload)
    return uploaded


@pytest.fixture(autouse=True)
def outbox(monkeypatch):
    """Every outbound email lands here instead of Resend"""
    sent = []

    def recorder(kind):
        async def send(**kwargs):
            sent.append({"kind": kind, **kwargs})
            return {"id": f"email_{len(sent)}"}

        return send

    targets = {
        "portal.domain.change_orders.service.send_change_order_approval_request": "change_order",
        "portal.domain.invoices.service.send_invoice_email": "invoice",
        "portal.domain.invoices.automation.send_invoice_reminder_email": "reminder",
        "portal.domain.comments.service.send_invoice_comment_notification": "comment",
        "portal.domain.payments.service.send_payment_received_notification": "payment",
    }
    for target, kind in targets.items():
        monkeypatch.setattr(target, recorder(kind))
    return sent


class FakeDodo:
    def __init__(self):
        self.checkouts = []

    def is_available(self):
        return True

    async def create_invoice_checkout(self, **kwargs):
        self.checkouts.append(kwargs)
        return f"https://checkout.example.com/cs_{len(self.checkouts)}", f"cs_{len(self.checkouts)}"


@pytest.fixture(autouse=True)
def dodo(monkeypatch):
    fake = FakeDodo()
    monkeypatch.setattr("portal.domain.payments.service.dodo_service", fake)
    return fake


# ============================================================================
# HTTP CLIENT
# ============================================================================


class LoginState:
    """Which user the next request is made as"""

    user_id = None


@pytest.fixture
def api(db, users):
    session_state = LoginState()
    session_state.user_id = users["vendor_admin"].id

    def current_user(request_db: Session = Depends(get_db)) -> User:
        return request_db.get(User, session_state.user_id)

    app.dependency_overrides[get_current_user] = current_user
    client = TestClient(app)

    def login(user: User):
        session_state.user_id = user.id
        return client

    client.login = login
    try:
        yield client
    finally:
        app.dependency_overrides.clear()

