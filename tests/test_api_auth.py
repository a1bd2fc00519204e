"""
Integration tests for the /api/auth routes.

Each test drives the real FastAPI app (gates, store, route handlers) through
TestClient. The mailer is a MagicMock, so the plaintext OTP and tokens a
route generated are read back from its call_args.

Coverage:
- register -> verify -> login happy path, including the read-only link check
- gate rejections surface as {status: "error", msg} with HTTP 400
- verification and reset tokens are single-use
- resend requires an upstream session token and re-issues both codes
- forgot/reset password replaces the stored hash
- secret hashes never appear in any response body
"""

from __future__ import annotations

from jose import jwt

from auth.models import SECRET_FIELDS
from core.config import get_settings

_REGISTRATION = {
    "firstName": "Ada",
    "lastName": "Lovelace",
    "email": "ada@lovelace.dev",
    "password": "Str0ngPass",
}


def _register(client, mailer, body=None):
    """Register and return (user_id, otp, token) from the mailer call."""
    resp = client.post("/api/auth/register", json=body or _REGISTRATION)
    assert resp.status_code == 201, resp.text
    user, otp, token = mailer.send_account_verification.call_args.args
    return user.id, otp, token


def _session_headers(user_id: int) -> dict:
    token = jwt.encode({"user_id": user_id}, get_settings().secret_key, algorithm="HS256")
    return {"Authorization": f"Bearer {token}"}


def _assert_public(payload: dict) -> None:
    user = payload.get("user", {})
    for name in SECRET_FIELDS:
        assert name not in user
    assert "password" not in str(payload)


# ---------------------------------------------------------------------------
# Register
# ---------------------------------------------------------------------------


def test_register_creates_unverified_user(api_client):
    client, store, mailer = api_client
    resp = client.post("/api/auth/register", json=_REGISTRATION)
    assert resp.status_code == 201
    data = resp.json()
    assert data["status"] == "success"
    assert data["user"]["firstName"] == "Ada"
    assert data["user"]["is_account_verified"] is False
    assert resp.headers["cache-control"] == "no-store"
    _assert_public(data)

    stored = store.find_by_email("ada@lovelace.dev", select=("password", "account_verify_otp"))
    assert stored.password != "Str0ngPass"
    assert stored.password.startswith("$2")
    mailer.send_account_verification.assert_called_once()


def test_register_sends_six_digit_otp(api_client):
    client, _, mailer = api_client
    _, otp, token = _register(client, mailer)
    assert len(otp) == 6 and otp.isdigit()
    assert len(token) == 64


def test_register_duplicate_rejected(api_client):
    client, _, mailer = api_client
    _register(client, mailer)
    resp = client.post("/api/auth/register", json=_REGISTRATION)
    assert resp.status_code == 400
    assert resp.json() == {"status": "error", "msg": "the entered email address is already registered."}


def test_register_missing_field_rejected(api_client):
    client, _, mailer = api_client
    resp = client.post("/api/auth/register", json={"email": "ada@lovelace.dev"})
    assert resp.status_code == 400
    assert resp.json()["status"] == "error"
    mailer.send_account_verification.assert_not_called()


def test_register_non_json_body_treated_as_empty(api_client):
    client, _, _ = api_client
    resp = client.post("/api/auth/register", content=b"not json", headers={"Content-Type": "application/json"})
    assert resp.status_code == 400
    assert "required fields" in resp.json()["msg"]


def test_register_weak_password_rejected(api_client):
    client, _, _ = api_client
    resp = client.post("/api/auth/register", json={**_REGISTRATION, "password": "password"})
    assert resp.status_code == 400
    assert resp.json()["msg"].startswith("your password must be at least 8 characters")


# ---------------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------------


def test_login_success_returns_public_user(api_client):
    client, _, mailer = api_client
    _register(client, mailer)
    resp = client.post("/api/auth/login", json={"email": "ada@lovelace.dev", "password": "Str0ngPass"})
    assert resp.status_code == 200
    data = resp.json()
    assert data["msg"] == "logged in successfully."
    assert data["user"]["email"] == "ada@lovelace.dev"
    _assert_public(data)


def test_login_failures_share_one_response(api_client):
    client, _, mailer = api_client
    _register(client, mailer)
    wrong = client.post("/api/auth/login", json={"email": "ada@lovelace.dev", "password": "Wr0ngPass"})
    unknown = client.post("/api/auth/login", json={"email": "nobody@lovelace.dev", "password": "Str0ngPass"})
    assert wrong.status_code == unknown.status_code == 400
    assert wrong.json() == unknown.json()


# ---------------------------------------------------------------------------
# Verification
# ---------------------------------------------------------------------------


def test_verification_link_check_is_read_only(api_client):
    client, store, mailer = api_client
    user_id, _, token = _register(client, mailer)

    first = client.get(f"/api/auth/verify/{user_id}/{token}")
    second = client.get(f"/api/auth/verify/{user_id}/{token}")
    assert first.status_code == second.status_code == 200
    assert first.json() == second.json()
    assert first.json()["msg"] == "valid token"
    _assert_public(first.json())
    assert store.find_by_id(user_id).is_account_verified is False


def test_verify_account_marks_verified_and_burns_codes(api_client):
    client, store, mailer = api_client
    user_id, otp, token = _register(client, mailer)

    resp = client.post(f"/api/auth/verify/{user_id}/{token}", json={"otp": otp})
    assert resp.status_code == 200, resp.text
    assert resp.json()["user"]["is_account_verified"] is True

    stored = store.find_by_id(user_id, select=("account_verify_otp", "account_verify_token"))
    assert stored.is_account_verified is True
    assert stored.account_verify_otp is None
    assert stored.account_verify_token is None

    again = client.post(f"/api/auth/verify/{user_id}/{token}", json={"otp": otp})
    assert again.status_code == 400
    assert again.json()["msg"] == "invalid or expired account verification token, try request again."


def test_verify_account_wrong_otp(api_client):
    client, store, mailer = api_client
    user_id, otp, token = _register(client, mailer)
    wrong = "0" * 6 if otp != "000000" else "1" * 6
    resp = client.post(f"/api/auth/verify/{user_id}/{token}", json={"otp": wrong})
    assert resp.status_code == 400
    assert resp.json()["msg"] == "incorrect otp code."
    assert store.find_by_id(user_id).is_account_verified is False


def test_verify_account_non_integer_id(api_client):
    client, _, _ = api_client
    resp = client.post("/api/auth/verify/abc/" + "a" * 64, json={"otp": "123456"})
    assert resp.status_code == 400
    assert resp.json()["msg"] == "invalid or expired account verification token, try request again."


# ---------------------------------------------------------------------------
# Resend verification
# ---------------------------------------------------------------------------


def test_resend_requires_session(api_client):
    client, _, _ = api_client
    resp = client.post("/api/auth/verify/resend")
    assert resp.status_code == 401
    assert resp.json() == {"status": "error", "msg": "please login to continue."}


def test_resend_rejects_forged_session(api_client):
    client, _, mailer = api_client
    user_id, _, _ = _register(client, mailer)
    forged = jwt.encode({"user_id": user_id}, "x" * 64, algorithm="HS256")
    resp = client.post("/api/auth/verify/resend", headers={"Authorization": f"Bearer {forged}"})
    assert resp.status_code == 401


def test_resend_replaces_codes(api_client):
    client, _, mailer = api_client
    user_id, old_otp, old_token = _register(client, mailer)

    resp = client.post("/api/auth/verify/resend", headers=_session_headers(user_id))
    assert resp.status_code == 200, resp.text
    _, new_otp, new_token = mailer.send_account_verification.call_args.args
    assert new_token != old_token

    stale = client.get(f"/api/auth/verify/{user_id}/{old_token}")
    assert stale.status_code == 400
    verified = client.post(f"/api/auth/verify/{user_id}/{new_token}", json={"otp": new_otp})
    assert verified.status_code == 200


def test_resend_after_verification_rejected(api_client):
    client, _, mailer = api_client
    user_id, otp, token = _register(client, mailer)
    client.post(f"/api/auth/verify/{user_id}/{token}", json={"otp": otp})

    resp = client.post("/api/auth/verify/resend", headers=_session_headers(user_id))
    assert resp.status_code == 400
    assert resp.json()["msg"] == "your account is already verified."


# ---------------------------------------------------------------------------
# Forgot / reset password
# ---------------------------------------------------------------------------


def test_forgot_password_unknown_email(api_client):
    client, _, mailer = api_client
    resp = client.post("/api/auth/forgot-password", json={"email": "nobody@lovelace.dev"})
    assert resp.status_code == 400
    assert resp.json()["msg"] == "incorrect email address."
    mailer.send_password_reset.assert_not_called()


def test_reset_password_flow(api_client):
    client, store, mailer = api_client
    user_id, _, _ = _register(client, mailer)

    resp = client.post("/api/auth/forgot-password", json={"email": "ada@lovelace.dev"})
    assert resp.status_code == 200
    user, reset_token = mailer.send_password_reset.call_args.args
    assert user.id == user_id

    new = {"newPassword": "N3wSecret", "newPasswordConfirmation": "N3wSecret"}
    resp = client.post(f"/api/auth/reset-password/{user_id}/{reset_token}", json=new)
    assert resp.status_code == 200, resp.text
    assert store.find_by_id(user_id, select=("reset_password_token",)).reset_password_token is None

    old_login = client.post("/api/auth/login", json={"email": "ada@lovelace.dev", "password": "Str0ngPass"})
    new_login = client.post("/api/auth/login", json={"email": "ada@lovelace.dev", "password": "N3wSecret"})
    assert old_login.status_code == 400
    assert new_login.status_code == 200

    reused = client.post(f"/api/auth/reset-password/{user_id}/{reset_token}", json=new)
    assert reused.status_code == 400
    assert reused.json()["msg"] == "invalid or expired reset password token, try request again."


def test_reset_password_mismatch_keeps_old_password(api_client):
    client, _, mailer = api_client
    user_id, _, _ = _register(client, mailer)
    client.post("/api/auth/forgot-password", json={"email": "ada@lovelace.dev"})
    _, reset_token = mailer.send_password_reset.call_args.args

    resp = client.post(
        f"/api/auth/reset-password/{user_id}/{reset_token}",
        json={"newPassword": "N3wSecret", "newPasswordConfirmation": "N3wSecreT"},
    )
    assert resp.status_code == 400
    assert resp.json()["msg"] == "password and password confirmation are not the same."
    login = client.post("/api/auth/login", json={"email": "ada@lovelace.dev", "password": "Str0ngPass"})
    assert login.status_code == 200


def test_reset_password_without_pending_reset(api_client):
    client, _, mailer = api_client
    user_id, _, _ = _register(client, mailer)
    resp = client.post(
        f"/api/auth/reset-password/{user_id}/{'b' * 64}",
        json={"newPassword": "N3wSecret", "newPasswordConfirmation": "N3wSecret"},
    )
    assert resp.status_code == 400


# ---------------------------------------------------------------------------
# Wrong-typed and oversized input
# ---------------------------------------------------------------------------

_LONG_PASSWORD = "Aa1" + "x" * 77  # 80 bytes, over bcrypt's 72-byte limit


def test_register_oversized_password_rejected(api_client):
    client, store, mailer = api_client
    resp = client.post("/api/auth/register", json={**_REGISTRATION, "password": _LONG_PASSWORD})
    assert resp.status_code == 400
    assert resp.json()["msg"].startswith("your password must be at least 8 characters")
    assert store.find_by_email("ada@lovelace.dev") is None
    mailer.send_account_verification.assert_not_called()


def test_reset_oversized_password_rejected(api_client):
    client, _, mailer = api_client
    user_id, _, _ = _register(client, mailer)
    client.post("/api/auth/forgot-password", json={"email": "ada@lovelace.dev"})
    _, reset_token = mailer.send_password_reset.call_args.args

    resp = client.post(
        f"/api/auth/reset-password/{user_id}/{reset_token}",
        json={"newPassword": _LONG_PASSWORD, "newPasswordConfirmation": _LONG_PASSWORD},
    )
    assert resp.status_code == 400
    assert resp.json()["msg"].startswith("your password must be at least 8 characters")
    login = client.post("/api/auth/login", json={"email": "ada@lovelace.dev", "password": "Str0ngPass"})
    assert login.status_code == 200


def test_login_oversized_password_rejected(api_client):
    client, _, mailer = api_client
    _register(client, mailer)
    resp = client.post("/api/auth/login", json={"email": "ada@lovelace.dev", "password": _LONG_PASSWORD})
    assert resp.status_code == 400
    assert resp.json()["msg"] == "the entered email address or password is incorrect."


def test_register_list_email_rejected(api_client):
    client, _, mailer = api_client
    resp = client.post("/api/auth/register", json={**_REGISTRATION, "email": ["ada@lovelace.dev"]})
    assert resp.status_code == 400
    assert resp.json() == {"status": "error", "msg": "please enter a valid email address."}
    mailer.send_account_verification.assert_not_called()


def test_login_object_email_rejected(api_client):
    client, _, mailer = api_client
    _register(client, mailer)
    resp = client.post("/api/auth/login", json={"email": {"x": 1}, "password": "Str0ngPass"})
    assert resp.status_code == 400
    assert resp.json()["msg"] == "the entered email address or password is incorrect."


def test_forgot_password_list_email_rejected(api_client):
    client, _, mailer = api_client
    resp = client.post("/api/auth/forgot-password", json={"email": ["ada@lovelace.dev"]})
    assert resp.status_code == 400
    assert resp.json()["msg"] == "incorrect email address."
    mailer.send_password_reset.assert_not_called()
