"""Tests for the login endpoint and account lockout"""

import datetime
from unittest.mock import patch

from conftest import USER_TEST_PASSWORD, WRONG_PASSWORD, create_test_user
import pytest

from pncapi import db
from pncapi.errors import TransientStoreFailure
from pncapi.services.login_service import LoginService
from pncapi.utils.lockout_policy import utcnow


@pytest.fixture
def lockout_test_user(app_no_rate_limiting):
    """Create a test user for lockout testing (uses app without rate limiting)"""
    return create_test_user(
        "lockout_test@test.com", USER_TEST_PASSWORD, "Lockout Test User"
    )


def _login(client, email, password, origin="127.0.0.1"):
    return client.post(
        "/auth",
        json={"email": email, "password": password},
        environ_base={"REMOTE_ADDR": origin},
    )


class TestLoginEndpoint:
    def test_successful_login(self, client_no_rate_limiting, lockout_test_user):
        response = _login(
            client_no_rate_limiting, "lockout_test@test.com", USER_TEST_PASSWORD
        )

        assert response.status_code == 200
        data = response.json["data"]
        assert data["email"] == "lockout_test@test.com"
        assert data["user_id"] == str(lockout_test_user.id)
        assert data["access_token"]
        assert data["expires_in"] == 3600

    def test_session_cookie_is_http_only_and_strict(
        self, client_no_rate_limiting, lockout_test_user
    ):
        response = _login(
            client_no_rate_limiting, "lockout_test@test.com", USER_TEST_PASSWORD
        )

        cookies = response.headers.getlist("Set-Cookie")
        session_cookie = next(
            c for c in cookies if c.startswith("access_token_cookie=")
        )
        assert "HttpOnly" in session_cookie
        assert "SameSite=Strict" in session_cookie

    def test_cookie_authenticates_follow_up_requests(
        self, client_no_rate_limiting, lockout_test_user
    ):
        _login(client_no_rate_limiting, "lockout_test@test.com", USER_TEST_PASSWORD)

        response = client_no_rate_limiting.get("/api/v1/user/me")
        assert response.status_code == 200
        assert response.json["data"]["email"] == "lockout_test@test.com"

    def test_logout_clears_cookie(self, client_no_rate_limiting, lockout_test_user):
        _login(client_no_rate_limiting, "lockout_test@test.com", USER_TEST_PASSWORD)

        response = client_no_rate_limiting.post("/auth/logout")
        assert response.status_code == 200
        assert client_no_rate_limiting.get("/api/v1/user/me").status_code == 401

    @pytest.mark.parametrize(
        "body",
        [
            {},
            {"email": "lockout_test@test.com"},
            {"password": USER_TEST_PASSWORD},
            {"email": "", "password": ""},
            {"email": 42, "password": USER_TEST_PASSWORD},
        ],
    )
    def test_missing_fields(self, client_no_rate_limiting, body):
        response = client_no_rate_limiting.post("/auth", json=body)
        assert response.status_code == 400

    def test_unknown_user_looks_like_wrong_password(
        self, client_no_rate_limiting, lockout_test_user
    ):
        unknown = _login(client_no_rate_limiting, "nobody@test.com", WRONG_PASSWORD)
        wrong = _login(client_no_rate_limiting, "lockout_test@test.com", WRONG_PASSWORD)

        assert unknown.status_code == wrong.status_code == 401
        assert unknown.json == wrong.json
        assert unknown.json["detail"] == "Invalid email or password"
        assert unknown.json["error_code"] == "invalid_credentials"

    def test_external_identity_cannot_use_password(
        self, client_no_rate_limiting, lockout_test_user
    ):
        create_test_user("oauth@test.com", name="OAuth User", auth_provider="google")

        response = _login(client_no_rate_limiting, "oauth@test.com", "attacker-guess")
        wrong = _login(client_no_rate_limiting, "lockout_test@test.com", WRONG_PASSWORD)

        assert response.status_code == 401
        assert response.json == wrong.json
        assert "access_token" not in response.json
        cookies = response.headers.getlist("Set-Cookie")
        assert not any(c.startswith("access_token_cookie=") for c in cookies)

    def test_store_failure_returns_503(
        self, client_no_rate_limiting, lockout_test_user
    ):
        with patch.object(LoginService, "login", side_effect=TransientStoreFailure()):
            response = _login(
                client_no_rate_limiting, "lockout_test@test.com", WRONG_PASSWORD
            )
        assert response.status_code == 503


class TestAccountLockout:
    """Test account lockout after failed login attempts"""

    def test_third_failure_locks_account(
        self, client_no_rate_limiting, lockout_test_user
    ):
        statuses = [
            _login(
                client_no_rate_limiting, "lockout_test@test.com", WRONG_PASSWORD
            ).status_code
            for _ in range(2)
        ]
        assert statuses == [401, 401]

        response = _login(
            client_no_rate_limiting, "lockout_test@test.com", WRONG_PASSWORD
        )
        assert response.status_code == 423
        body = response.json
        assert body["error_code"] == "account_locked"
        assert body["permanent"] is False
        assert 1790 <= body["remaining_seconds"] <= 1800
        assert datetime.datetime.fromisoformat(body["locked_until"])

        db.session.refresh(lockout_test_user)
        assert lockout_test_user.consecutive_failures == 3
        assert lockout_test_user.lockout_stage == 1

    def test_correct_password_rejected_while_locked(
        self, client_no_rate_limiting, lockout_test_user
    ):
        for _ in range(3):
            _login(client_no_rate_limiting, "lockout_test@test.com", WRONG_PASSWORD)

        response = _login(
            client_no_rate_limiting, "lockout_test@test.com", USER_TEST_PASSWORD
        )
        assert response.status_code == 423
        assert "access_token" not in response.json

        db.session.refresh(lockout_test_user)
        assert lockout_test_user.consecutive_failures == 3

    def test_login_allowed_after_lock_expires(
        self, client_no_rate_limiting, lockout_test_user
    ):
        for _ in range(3):
            _login(client_no_rate_limiting, "lockout_test@test.com", WRONG_PASSWORD)

        # Move the lock into the past instead of waiting for it
        db.session.refresh(lockout_test_user)
        lockout_test_user.lockout_expires_at = utcnow() - datetime.timedelta(seconds=1)
        db.session.commit()

        response = _login(
            client_no_rate_limiting, "lockout_test@test.com", USER_TEST_PASSWORD
        )
        assert response.status_code == 200

        db.session.refresh(lockout_test_user)
        assert lockout_test_user.consecutive_failures == 0
        assert lockout_test_user.lockout_stage == 0
        assert lockout_test_user.lockout_expires_at is None

    def test_permanent_lock_payload(self, client_no_rate_limiting, lockout_test_user):
        lockout_test_user.consecutive_failures = 12
        lockout_test_user.lockout_stage = 3
        lockout_test_user.is_permanently_locked = True
        db.session.commit()

        response = _login(
            client_no_rate_limiting, "lockout_test@test.com", USER_TEST_PASSWORD
        )
        assert response.status_code == 423
        assert response.json["permanent"] is True
        assert "administrator" in response.json["detail"]
        assert "remaining_seconds" not in response.json


class TestLoginRateLimit:
    def test_sixth_attempt_per_minute_is_rejected(self, client, regular_user):
        for _ in range(5):
            response = _login(client, "nobody@test.com", WRONG_PASSWORD, "10.9.9.9")
            assert response.status_code == 401

        response = _login(client, "nobody@test.com", WRONG_PASSWORD, "10.9.9.9")
        assert response.status_code == 429
        assert response.json["error_code"] == "RATE_LIMIT_EXCEEDED"
        assert int(response.headers["Retry-After"]) >= 1

    def test_rate_limited_attempt_never_reaches_account(self, client, regular_user):
        for _ in range(5):
            _login(client, "nobody@test.com", WRONG_PASSWORD, "10.9.9.8")

        response = _login(client, "user@test.com", WRONG_PASSWORD, "10.9.9.8")
        assert response.status_code == 429

        db.session.refresh(regular_user)
        assert regular_user.consecutive_failures == 0
        assert regular_user.total_failures == 0

    def test_other_origins_are_unaffected(self, client, regular_user):
        for _ in range(6):
            _login(client, "nobody@test.com", WRONG_PASSWORD, "10.9.9.7")

        response = _login(client, "user@test.com", USER_TEST_PASSWORD, "10.9.9.6")
        assert response.status_code == 200
