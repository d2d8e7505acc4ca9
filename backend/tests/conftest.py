"""Shared fixtures: in-memory database, scripted AI client, recording mailer, API client."""

import os

# rfpflow.database builds its engine at import time.
os.environ.setdefault("DATABASE_URL", "sqlite://")

import json

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from rfpflow.database import get_db
from rfpflow.errors import CompletionError, MailDeliveryError
from rfpflow.main import app
from rfpflow.models import RFP, RFPLineItem, Vendor
from rfpflow.models.base import Base
from rfpflow.services.completion_client import get_completion_client
from rfpflow.services.mail_service import get_mailer


class FakeCompletionClient:
    """Replays scripted generator output.

    Each scripted item is a string (returned), an exception (raised) or a
    callable ``(prompt, structured) -> str``. When the script runs out,
    ``default`` is used the same way; a ``None`` default behaves like an
    unreachable generator.
    """

    def __init__(self, responses=None, default=None):
        self.responses = list(responses or [])
        self.default = default
        self.calls = []

    def script(self, *responses):
        self.responses.extend(responses)

    def generate(self, prompt, structured=False):
        self.calls.append({"prompt": prompt, "structured": structured})
        item = self.responses.pop(0) if self.responses else self.default
        if item is None:
            raise CompletionError("no scripted response")
        if isinstance(item, BaseException):
            raise item
        if callable(item):
            return item(prompt, structured)
        return item


class RecordingMailer:
    def __init__(self):
        self.sent = []
        self.fail_for = set()

    def send(self, message):
        if message.to in self.fail_for:
            raise MailDeliveryError(f"Could not send email to {message.to}: mailbox unavailable")
        self.sent.append(message)


def proposal_json(**overrides):
    record = {
        "totalPrice": 28500,
        "currency": "USD",
        "deliveryDays": 21,
        "paymentTerms": "Net 30",
        "warranty": "2 years",
        "lineItems": [
            {"name": "Laptop", "quantity": 20, "spec": "16GB RAM", "unitPrice": 1200, "totalPrice": 24000},
        ],
        "scoreOverall": 82,
        "scoreBreakdown": {"price": 90, "delivery": 80, "terms": 75, "warranty": 85},
        "summary": "Under budget with fast delivery.",
    }
    record.update(overrides)
    return json.dumps(record)


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=eng)
    yield eng
    Base.metadata.drop_all(bind=eng)
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db_session(session_factory):
    db = session_factory()
    yield db
    db.close()


@pytest.fixture
def completion():
    return FakeCompletionClient()


@pytest.fixture
def mailer():
    return RecordingMailer()


@pytest.fixture
def api(session_factory, completion, mailer):
    def _get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_completion_client] = lambda: completion
    app.dependency_overrides[get_mailer] = lambda: mailer
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_vendor(db_session):
    counter = {"n": 0}

    def _make(name=None, email=None, phone="+15550100"):
        counter["n"] += 1
        vendor = Vendor(
            name=name or f"Vendor {counter['n']}",
            email=email or f"vendor{counter['n']}@example.com",
            phone=phone,
        )
        db_session.add(vendor)
        db_session.commit()
        db_session.refresh(vendor)
        return vendor

    return _make


@pytest.fixture
def make_rfp(db_session):
    def _make(title="Office laptops", **fields):
        rfp = RFP(
            title=title,
            description_nlp=fields.pop("description_nlp", "We need 20 laptops within 30 days."),
            budget=fields.pop("budget", 50000),
            delivery_days=fields.pop("delivery_days", 30),
            payment_terms=fields.pop("payment_terms", "Net 30"),
            warranty=fields.pop("warranty", "1 year"),
            line_items=fields.pop(
                "line_items",
                [RFPLineItem(position=0, name="Laptop", quantity=20, spec="16GB RAM")],
            ),
        )
        db_session.add(rfp)
        db_session.commit()
        db_session.refresh(rfp)
        return rfp

    return _make
