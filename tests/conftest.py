import re

import mongomock
import pytest
import requests
import resend

from chefstore import create_app
from chefstore.config import Settings

STRONG_PASSWORD = "Abc123!@"
VERIFY_LINK = re.compile(r"http://shop\.test/verify/(\S+)")


class FakeResponse:
    def __init__(self, status_code, body):
        self.status_code = status_code
        self._body = body

    def json(self):
        if isinstance(self._body, Exception):
            raise self._body
        return self._body


@pytest.fixture
def settings(tmp_path):
    return Settings(
        jwt_secret_key="test-secret-key-with-enough-bytes-for-hs256",
        resend_api_key="re_test_key",
        frontend_url="http://shop.test",
        paystack_secret_key="sk_test_key",
        upload_folder=str(tmp_path / "uploads"),
        trusted_proxy_hops=0,
        bcrypt_rounds=4,
        admin_email="admin@shop.com",
        admin_password="admin123",
    )


@pytest.fixture
def db():
    return mongomock.MongoClient().chefstore


@pytest.fixture
def app(settings, db):
    app = create_app(settings, db=db)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def sent_emails(monkeypatch):
    sent = []

    def fake_send(payload):
        sent.append(payload)
        return {"id": f"email-{len(sent)}"}

    monkeypatch.setattr(resend.Emails, "send", fake_send)
    return sent


@pytest.fixture
def paystack(monkeypatch):
    """Stubs the Paystack verify endpoint; tests flip ``state`` to change it."""
    state = {"status_code": 200, "transaction_status": "success", "calls": []}

    def fake_get(url, headers=None, **kwargs):
        state["calls"].append(
            {"url": url, "headers": headers, "timeout": kwargs.get("timeout")}
        )
        if isinstance(state.get("raise"), Exception):
            raise state["raise"]
        body = state.get("body") or {
            "status": True,
            "message": "Verification successful",
            "data": {"status": state["transaction_status"], "reference": url.rsplit("/", 1)[-1]},
        }
        return FakeResponse(state["status_code"], body)

    monkeypatch.setattr(requests, "get", fake_get)
    return state


def last_verification_token(sent_emails):
    match = VERIFY_LINK.search(sent_emails[-1]["text"])
    assert match, "verification email did not contain a link"
    return match.group(1)


def signup(client, email="ada@example.com", password=STRONG_PASSWORD, **extra):
    payload = {
        "firstName": "Ada",
        "lastName": "Lovelace",
        "email": email,
        "password": password,
    }
    payload.update(extra)
    return client.post("/api/users/signup", json=payload)


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def register_verified_user(client, sent_emails):
    def register(email="ada@example.com", password=STRONG_PASSWORD):
        assert signup(client, email=email, password=password).status_code == 201
        token = last_verification_token(sent_emails)
        assert client.get(f"/api/users/verify/{token}").status_code == 200
        response = client.post(
            "/api/users/login", json={"email": email, "password": password}
        )
        assert response.status_code == 200
        return response.get_json()

    return register


@pytest.fixture
def user_token(register_verified_user):
    return register_verified_user()["token"]


@pytest.fixture
def admin_token(client, settings):
    client.get("/api/admin/create-admin")
    response = client.post(
        "/api/admin/login",
        json={"email": settings.admin_email, "password": settings.admin_password},
    )
    assert response.status_code == 200
    return response.get_json()["token"]


def order_payload(payment_ref="PAY-1", **overrides):
    payload = {
        "name": "Ada Lovelace",
        "email": "Ada@Example.com",
        "phone": "+2348000000000",
        "address": "12 Analytical Way, Lagos",
        "cart": [
            {"id": "sku-1", "name": "Chef Knife", "price": 40, "qty": 2},
            {"id": "sku-2", "name": "Apron", "price": 20, "qty": 1},
        ],
        "total": 100,
        "paymentRef": payment_ref,
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def create_order(client, user_token, paystack):
    def create(payment_ref="PAY-1", token=None, **overrides):
        return client.post(
            "/api/orders",
            json=order_payload(payment_ref, **overrides),
            headers=bearer(token or user_token),
        )

    return create
