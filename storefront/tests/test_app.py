"""Application wiring: session auth, error translation and verification routes."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

import storefront.main as storefront_main
from storefront.app.auth import policy as policy_module
from storefront.app.routes import admin as admin_routes
from storefront.app.routes import subscriptions as subscriptions_routes
from storefront.app.routes import verification as verification_routes
from storefront.app.verification import ResendResult, VerificationAccount
from storefront.app.verification.rate_limit import (
    InMemoryRateLimitStore,
    RateLimitPolicy,
    VerificationRateLimiter,
)
from storefront.app.verification.service import VerificationService


@pytest.fixture
def client():
    app = storefront_main.app
    app.dependency_overrides[policy_module.current_user] = lambda: SimpleNamespace(
        id=1, username="alice", role="user"
    )
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def test_healthz():
    assert TestClient(storefront_main.app).get("/api/healthz").json() == {"ok": True}


def test_me_requires_session_cookie():
    response = TestClient(storefront_main.app).get("/api/auth/me")

    assert response.status_code == 401


def test_session_token_resolves_user(monkeypatch):
    user = storefront_main.UserOut(id=5, username="alice", role="user")
    monkeypatch.setattr(storefront_main, "get_user_by_id", lambda uid: user if uid == 5 else None)

    token = storefront_main.session_tokens.issue(5)

    assert storefront_main.resolve_user_from_session_token(token) is user
    assert storefront_main.get_current_user(token) is user


def test_expired_session_token_is_rejected(monkeypatch):
    def _unexpected(_uid):
        raise AssertionError("expired tokens must not reach the database")

    monkeypatch.setattr(storefront_main, "get_user_by_id", _unexpected)
    token = storefront_main.session_tokens.issue(5, lifetime=timedelta(minutes=-5))

    assert storefront_main.resolve_user_from_session_token(token) is None
    with pytest.raises(storefront_main.HTTPException) as excinfo:
        storefront_main.get_current_user(token)
    assert excinfo.value.status_code == 401


def test_login_sets_session_cookie(monkeypatch):
    row = {
        "id": 5,
        "username": "alice",
        "email": "alice@example.com",
        "password_hash": "hashed",
        "role": "user",
        "is_email_verified": False,
    }
    monkeypatch.setattr(storefront_main, "get_user_with_password", lambda identifier: row)
    monkeypatch.setattr(
        storefront_main,
        "bcrypt",
        SimpleNamespace(verify=lambda password, hashed: password == "correct horse"),
    )
    test_client = TestClient(storefront_main.app)

    rejected = test_client.post("/api/auth/login", json={"username": "alice", "password": "nope"})
    accepted = test_client.post("/api/auth/login", json={"username": "alice", "password": "correct horse"})

    assert rejected.status_code == 401
    assert accepted.status_code == 200
    assert accepted.json()["username"] == "alice"
    assert storefront_main.SESSION.cookie_name in accepted.cookies


def test_repeated_login_does_not_consume_the_stored_hash(monkeypatch):
    row = {
        "id": 5,
        "username": "alice",
        "email": None,
        "password_hash": "hashed",
        "role": "user",
        "is_email_verified": True,
    }
    monkeypatch.setattr(storefront_main, "get_user_with_password", lambda identifier: row)
    monkeypatch.setattr(storefront_main, "bcrypt", SimpleNamespace(verify=lambda password, hashed: True))
    test_client = TestClient(storefront_main.app)

    first = test_client.post("/api/auth/login", json={"username": "alice", "password": "pw"})
    second = test_client.post("/api/auth/login", json={"username": "alice", "password": "pw"})

    assert first.status_code == 200
    assert second.status_code == 200
    assert "password_hash" not in second.json()
    assert second.json()["isEmailVerified"] is True
    assert row["password_hash"] == "hashed"


def test_billing_errors_become_json_responses(client, billing, monkeypatch):
    monkeypatch.setattr(subscriptions_routes, "get_subscription_service", lambda: billing.service)

    missing = client.post("/api/subscriptions", json={"planId": 99})
    crypto = client.post("/api/subscriptions", json={"planId": 1, "paymentMethod": "crypto"})

    assert missing.status_code == 404
    assert missing.json() == {"error": "plan_not_found", "message": "Plan 99 not found", "planId": 99}
    assert crypto.status_code == 400
    assert crypto.json()["error"] == "conflict"


def test_card_checkout_over_http(client, billing, monkeypatch):
    monkeypatch.setattr(subscriptions_routes, "get_subscription_service", lambda: billing.service)

    response = client.post("/api/subscriptions", json={"planId": 1})

    assert response.status_code == 200
    assert response.json() == {
        "subscriptionId": 1,
        "remoteSubscriptionId": "sub_remote_1",
        "clientSecret": "pi_1_secret",
    }


def test_admin_routes_reject_regular_users(client, billing, monkeypatch):
    monkeypatch.setattr(admin_routes, "get_subscription_service", lambda: billing.service)

    response = client.delete("/api/admin/users/2")

    assert response.status_code == 403
    assert response.json()["error"] == "forbidden"
    assert billing.accounts.get_account(2) is not None


def test_resend_route_reports_rate_limit(client, monkeypatch):
    users = SimpleNamespace(
        get_account=lambda user_id: VerificationAccount(id=user_id, username="alice", email="a@example.com"),
        store_token=lambda user_id, token_hash, expires_at: None,
    )
    mailer = SimpleNamespace(send_verification_email=lambda to, username, token: True)
    service = VerificationService(
        users=users,
        limiter=VerificationRateLimiter(InMemoryRateLimitStore(), RateLimitPolicy()),
        mailer=mailer,
        clock=lambda: datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc),
    )
    monkeypatch.setattr(verification_routes, "get_verification_service", lambda: service)

    first = client.post("/api/verification/resend")
    second = client.post("/api/verification/resend")

    assert first.status_code == 200
    body = first.json()
    assert body["success"] is True
    assert body["rateLimitInfo"] == {"attemptCount": 1, "remainingAttempts": 4, "cooldownSeconds": 60}
    assert second.status_code == 429
    assert second.json()["remainingSeconds"] == 60


def test_resend_route_direct_call(monkeypatch):
    expires_at = datetime(2024, 3, 2, 9, 0, tzinfo=timezone.utc)
    result = ResendResult(
        sent=False, attempt_count=2, remaining_attempts=3, cooldown_seconds=60, expires_at=expires_at
    )
    monkeypatch.setattr(
        verification_routes,
        "get_verification_service",
        lambda: SimpleNamespace(resend_verification=lambda user_id: result),
    )

    response = verification_routes.resend_verification_email(current_user=SimpleNamespace(id=1))

    assert response.success is False
    assert "could not be delivered" in response.message
    assert response.rate_limit_info.remaining_attempts == 3


def test_verify_route(monkeypatch):
    account = VerificationAccount(id=3, username="carol", is_email_verified=True)
    monkeypatch.setattr(
        verification_routes,
        "get_verification_service",
        lambda: SimpleNamespace(confirm=lambda token: account),
    )

    response = verification_routes.verify_email(verification_routes.VerifyEmailRequest(token="abc"))

    assert response.model_dump(by_alias=True) == {"success": True, "userId": 3}
