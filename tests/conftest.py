import os
import re
from types import SimpleNamespace

os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("JWT_SECRET", "test-secret")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from admitbot import mailer
from admitbot.clients import get_llm
from admitbot.database import get_db
from admitbot.main import app
from admitbot.models import Base

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
    future=True,
)
TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, future=True)

OTP_IN_TEXT = re.compile(r"Your OTP code is (\d+)")


class FakeCompletion:
    def __init__(self, payload):
        self.payload = payload

    def model_dump(self, **kwargs):
        return self.payload


class FakeCompletions:
    def __init__(self):
        self.calls = []
        self.error = None
        self.payload = {
            "id": "chatcmpl-1",
            "object": "chat.completion",
            "model": "mixtral-8x7b-32768",
            "choices": [
                {
                    "index": 0,
                    "message": {"role": "assistant", "content": "GUJCET is held in April."},
                    "finish_reason": "stop",
                }
            ],
        }

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return FakeCompletion(self.payload)


@pytest.fixture(autouse=True)
def _schema():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def outbox(monkeypatch):
    sent = []

    def fake_send_mail(to, subject, html, text=None):
        sent.append({"to": to, "subject": subject, "html": html, "text": text})

    monkeypatch.setattr(mailer, "send_mail", fake_send_mail)
    return sent


@pytest.fixture
def fake_llm():
    return SimpleNamespace(chat=SimpleNamespace(completions=FakeCompletions()))


@pytest.fixture
def client(fake_llm):
    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_llm] = lambda: fake_llm
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def last_otp(outbox, email):
    for mail in reversed(outbox):
        if mail["to"] == email:
            return OTP_IN_TEXT.search(mail["text"]).group(1)
    raise AssertionError(f"no OTP mailed to {email}")


@pytest.fixture
def signup(client, outbox):
    """Register and log in a user; returns (user dict, auth headers)."""

    def _signup(email="asha@gmail.com", username="asha", password="secret123"):
        client.post("/api/otp/send", json={"email": email})
        resp = client.post(
            "/api/auth/register",
            json={
                "email": email,
                "username": username,
                "password": password,
                "otp": last_otp(outbox, email),
            },
        )
        assert resp.status_code == 201, resp.text
        login = client.post("/api/auth/login", json={"email": email, "password": password})
        assert login.status_code == 200, login.text
        body = login.json()
        return body["user"], {"Authorization": f"Bearer {body['access_token']}"}

    return _signup
