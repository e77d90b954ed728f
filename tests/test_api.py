import base64
import uuid

import pyotp

from app.core.errors import ERR_MFA_INVALID_CODE, ERR_PASSWORD_MISMATCH, ERR_UNAUTHORIZED

API = "/api/v1"
PASSWORD = "TestPassword123!"


def _register(client, email="user@example.com", password=PASSWORD):
    resp = client.post(f"{API}/auth/register", json={"name": "Test User", "email": email, "password": password})
    assert resp.status_code == 201, resp.text
    return resp.json()


def _login(client, email="user@example.com", password=PASSWORD):
    return client.post(f"{API}/auth/login", json={"email": email, "password": password})


def _bearer(token):
    return {"Authorization": f"Bearer {token}"}


def test_healthz(client):
    assert client.get("/healthz").json() == {"status": "ok"}


def test_register_and_me(client):
    created = _register(client)
    assert created["email"] == "user@example.com"
    assert "hashed_password" not in created

    body = _login(client).json()
    me = client.get(f"{API}/auth/me", headers=_bearer(body["access_token"]["token"]))
    assert me.status_code == 200
    assert me.json()["id"] == created["id"]


def test_register_duplicate_email_conflicts(client):
    _register(client)
    resp = client.post(f"{API}/auth/register", json={"name": "x", "email": "USER@example.com", "password": PASSWORD})
    assert resp.status_code == 409


def test_login_failures_look_the_same(client):
    _register(client)
    unknown = _login(client, email="ghost@example.com")
    wrong = _login(client, password="wrong-password")

    assert unknown.status_code == wrong.status_code == 401
    assert unknown.json() == wrong.json()


def test_me_requires_token(client):
    resp = client.get(f"{API}/auth/me")
    assert resp.status_code == 401
    assert resp.json()["code"] == ERR_UNAUTHORIZED


def test_refresh_flow(client):
    _register(client)
    first = _login(client).json()

    resp = client.post(f"{API}/auth/refresh-token", json={
        "refresh_token": first["refresh_token"]["token"],
        "access_token": first["access_token"]["token"],
    })
    assert resp.status_code == 200, resp.text
    second = resp.json()
    assert second["refresh_token"]["token"] != first["refresh_token"]["token"]

    replay = client.post(f"{API}/auth/refresh-token", json={
        "refresh_token": first["refresh_token"]["token"],
        "access_token": second["access_token"]["token"],
    })
    assert replay.status_code == 401


def test_mfa_enrollment_and_login(client):
    _register(client)
    access = _login(client).json()["access_token"]["token"]

    setup = client.post(f"{API}/mfa/setup", headers=_bearer(access))
    assert setup.status_code == 200, setup.text
    setup_body = setup.json()
    assert setup_body["qr_code"].startswith("data:image/png;base64,")
    png = base64.b64decode(setup_body["qr_code"].split(",", 1)[1])
    assert png.startswith(b"\x89PNG")
    assert len(setup_body["backup_codes"]) == 10

    totp = pyotp.TOTP(setup_body["secret"])
    verified = client.post(f"{API}/mfa/verify-setup", json={"code": totp.now()}, headers=_bearer(access))
    assert verified.status_code == 200, verified.text
    assert client.get(f"{API}/mfa/status", headers=_bearer(access)).json() == {"mfa_enabled": True}

    challenge = _login(client).json()
    assert challenge["mfa_required"] is True
    assert "access_token" not in challenge
    pending = challenge["temporary_token"]

    # the pending token is not an access token
    assert client.get(f"{API}/auth/me", headers=_bearer(pending)).status_code == 401

    bad = client.post(f"{API}/mfa/verify", json={"code": "ZZZZZZZZZZ"}, headers=_bearer(pending))
    assert bad.status_code == 401
    assert bad.json()["code"] == ERR_MFA_INVALID_CODE

    ok = client.post(f"{API}/mfa/verify", json={"code": setup_body["backup_codes"][0]}, headers=_bearer(pending))
    assert ok.status_code == 200, ok.text
    assert "refresh_token" in ok.json()

    reused = client.post(f"{API}/mfa/verify", json={"code": setup_body["backup_codes"][0]}, headers=_bearer(pending))
    assert reused.status_code == 401


def test_mfa_disable(client):
    _register(client)
    access = _login(client).json()["access_token"]["token"]
    setup = client.post(f"{API}/mfa/setup", headers=_bearer(access)).json()
    client.post(
        f"{API}/mfa/verify-setup",
        json={"code": pyotp.TOTP(setup["secret"]).now()},
        headers=_bearer(access),
    )

    wrong = client.post(f"{API}/mfa/disable", json={"password": "nope"}, headers=_bearer(access))
    assert wrong.status_code == 401

    for _ in range(2):
        resp = client.post(f"{API}/mfa/disable", json={"password": PASSWORD}, headers=_bearer(access))
        assert resp.status_code == 200
    assert client.get(f"{API}/mfa/status", headers=_bearer(access)).json() == {"mfa_enabled": False}
    assert "access_token" in _login(client).json()


def test_password_reset_flow(client, mailer):
    _register(client)

    resp = client.post(f"{API}/auth/forgot-password", json={"email": "user@example.com"})
    assert resp.status_code == 200
    email, token = mailer.sent[-1]
    assert email == "user@example.com"

    resp = client.post(f"{API}/auth/reset-password", json={"token": token, "new_password": "BrandNewPass1!"})
    assert resp.status_code == 200, resp.text
    assert _login(client, password="BrandNewPass1!").status_code == 200
    assert _login(client).status_code == 401

    replay = client.post(f"{API}/auth/reset-password", json={"token": token, "new_password": "Again123!"})
    assert replay.status_code == 404


def test_change_password(client):
    _register(client)
    access = _login(client).json()["access_token"]["token"]

    mismatch = client.post(f"{API}/auth/change-password", headers=_bearer(access), json={
        "old_password": PASSWORD, "new_password": "NewPass123!", "confirm_password": "Other123!",
    })
    assert mismatch.status_code == 400
    assert mismatch.json()["code"] == ERR_PASSWORD_MISMATCH

    ok = client.post(f"{API}/auth/change-password", headers=_bearer(access), json={
        "old_password": PASSWORD, "new_password": "NewPass123!", "confirm_password": "NewPass123!",
    })
    assert ok.status_code == 200
    assert _login(client, password="NewPass123!").status_code == 200


def test_request_id_generated_when_absent(client):
    resp = client.get("/healthz")
    assert uuid.UUID(resp.headers["X-Request-ID"]).version == 4


def test_request_id_echoed_from_caller(client):
    resp = client.get("/healthz", headers={"X-Request-ID": "trace-42"})
    assert resp.headers["X-Request-ID"] == "trace-42"


def test_requests_are_logged_with_masked_body(client, captured_logs):
    resp = client.post(
        f"{API}/auth/login",
        json={"email": "ghost@example.com", "password": "SuperSecret99"},
        headers={"X-Request-ID": "trace-login"},
    )
    assert resp.status_code == 401

    http = [e for e in captured_logs.entries if e["event"] == "http_request"]
    assert len(http) == 1
    entry = http[0]
    assert entry["method"] == "POST"
    assert entry["path"] == "/api/v1/auth/login"
    assert entry["status"] == 401
    assert entry["latency_ms"] >= 0
    assert entry["request_id"] == "trace-login"
    assert entry["body"]["password"] != "SuperSecret99"
    assert entry["body"]["email"] != "ghost@example.com"

    # service events of the same request carry its id
    failed = [e for e in captured_logs.entries if e["event"] == "login_failed"]
    assert failed and failed[0]["request_id"] == "trace-login"
    assert failed[0]["reason"] == "unknown_email"
