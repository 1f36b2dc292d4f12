import pytest
from fastapi import Depends
from fastapi.testclient import TestClient

from ada_auth.database import get_db
from ada_auth.deps import get_clock, get_otp_issuer, get_store
from ada_auth.main import app
from ada_auth.otp_provider import FATAL, OTPIssuer
from ada_auth.otp_store import OTPStore

from conftest import BASE_TIME, FIXED_CODE, IDENTIFIER, MINUTE, fixed_bytes


@pytest.fixture
def client(session_factory, clock, gateway):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    def override_issuer(store: OTPStore = Depends(get_store)):
        return OTPIssuer(store, gateway, FATAL, clock=clock, random_bytes=fixed_bytes)

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_otp_issuer] = override_issuer

    yield TestClient(app)

    app.dependency_overrides.clear()


def send(client, name="Ada", phone="555 123 45 67"):
    return client.post("/api/auth/send-otp", json={"name": name, "phoneNumber": phone})


def verify(client, code=FIXED_CODE, phone="5551234567"):
    return client.post("/api/auth/verify-otp", json={"phoneNumber": phone, "otpCode": code})


def test_health(client):
    assert client.get("/healthz").json() == {"ok": True, "status": "UP"}
    assert client.get("/").json()["service"] == "Ada Auth API"


def test_send_otp(client, gateway):
    r = send(client)

    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    assert body["message"] == "Doğrulama kodu gönderildi."
    assert body["identifier"] == IDENTIFIER
    assert body["expiresAt"] == BASE_TIME + 10 * MINUTE
    assert "code" not in body
    assert len(gateway.sent) == 1


def test_send_otp_accepts_logical_field_names(client):
    r = client.post("/api/auth/send-otp", json={"holderName": "Ada", "rawPhone": "5551234567"})

    assert r.status_code == 200
    assert r.json()["identifier"] == IDENTIFIER


@pytest.mark.parametrize(
    "payload, message",
    [
        ({"name": "A", "phoneNumber": "5551234567"}, "İsim en az 2 karakter olmalı."),
        ({"phoneNumber": "5551234567"}, "İsim en az 2 karakter olmalı."),
        ({"name": "Ada"}, "Telefon numarası gerekli."),
        ({"name": "Ada", "phoneNumber": "05551234567"}, "Geçerli bir telefon numarası girin (5XX XXX XX XX)."),
        ({"name": "Ada", "phoneNumber": "+905551234567"}, "Geçerli bir telefon numarası girin (5XX XXX XX XX)."),
    ],
)
def test_send_otp_validation(client, gateway, payload, message):
    r = client.post("/api/auth/send-otp", json=payload)

    assert r.status_code == 400
    assert r.json() == {"success": False, "message": message, "error": "validation_error"}
    assert gateway.sent == []


def test_send_otp_already_active(client):
    send(client)
    r = send(client)

    assert r.status_code == 429
    assert r.json()["error"] == "already_active"
    assert r.json()["success"] is False


def test_send_otp_rate_limited(client, clock):
    for _ in range(3):
        send(client)
    clock.advance(MINUTE)
    r = send(client)

    assert r.status_code == 429
    body = r.json()
    assert body["error"] == "rate_limited"
    assert body["retryAfter"] == 240
    assert r.headers["Retry-After"] == "240"


def test_send_otp_delivery_failed(client, gateway):
    gateway.fail = True
    r = send(client)

    assert r.status_code == 502
    assert r.json()["error"] == "delivery_failed"


def test_verify_otp_sets_session(client):
    send(client)
    r = verify(client)

    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    assert body["identifier"] == IDENTIFIER
    assert body["holderName"] == "Ada"
    assert isinstance(body["userId"], int)
    assert body["token"]
    assert client.cookies.get("auth-token") == body["token"]

    me = client.get("/api/auth/me")
    assert me.status_code == 200
    assert me.json() == {
        "phoneNumber": IDENTIFIER,
        "name": "Ada",
        "userId": body["userId"],
        "loginTime": BASE_TIME,
    }


def test_verify_otp_cannot_be_reused(client):
    send(client)
    assert verify(client).status_code == 200

    r = verify(client)
    assert r.status_code == 400
    assert r.json()["error"] == "invalid_or_expired"


def test_verify_otp_wrong_code(client):
    send(client)
    r = verify(client, code="000000")

    assert r.status_code == 400
    assert r.json() == {
        "success": False,
        "message": "Doğrulama kodu yanlış veya süresi dolmuş.",
        "error": "invalid_or_expired",
    }


@pytest.mark.parametrize("code", ["12345", "1234567", "12a456", ""])
def test_verify_otp_code_format(client, code):
    r = verify(client, code=code)

    assert r.status_code == 400
    assert r.json()["message"] == "Doğrulama kodu 6 haneli olmalı."


def test_verify_otp_bad_phone(client):
    r = verify(client, phone="12345")

    assert r.status_code == 400
    assert r.json()["error"] == "invalid_phone_format"


def test_verify_otp_rate_limited(client):
    send(client)
    for _ in range(5):
        verify(client, code="999999")

    r = verify(client)
    assert r.status_code == 429
    assert r.json()["error"] == "rate_limited"


def test_me_requires_token(client):
    r = client.get("/api/auth/me")
    assert r.status_code == 401


def test_me_accepts_bearer_header(client):
    send(client)
    token = verify(client).json()["token"]

    fresh = TestClient(app)
    r = fresh.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})

    assert r.status_code == 200
    assert r.json()["phoneNumber"] == IDENTIFIER


def test_me_rejects_bad_token(client):
    r = client.get("/api/auth/me", headers={"Authorization": "Bearer nope"})
    assert r.status_code == 401


def test_me_rejects_session_older_than_thirty_days(client, clock):
    send(client)
    verify(client)

    clock.advance(30 * 24 * 60 * MINUTE)
    assert client.get("/api/auth/me").status_code == 200

    clock.advance(1)
    assert client.get("/api/auth/me").status_code == 401


def test_logout_clears_cookie(client):
    send(client)
    verify(client)

    r = client.post("/api/auth/logout")

    assert r.status_code == 200
    assert r.json()["success"] is True
    assert "auth-token=" in r.headers["set-cookie"]
    assert client.cookies.get("auth-token") is None


def test_otp_status(client):
    assert client.get("/api/auth/otp-status", params={"phoneNumber": "5551234567"}).json() == {
        "hasActiveOTP": False,
        "expiresAt": None,
        "attempts": 0,
    }

    send(client)
    r = client.get("/api/auth/otp-status", params={"phoneNumber": "5551234567"})

    assert r.json() == {"hasActiveOTP": True, "expiresAt": BASE_TIME + 10 * MINUTE, "attempts": 0}
