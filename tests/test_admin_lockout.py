"""Tests for the administrator lockout endpoints"""

import datetime
from unittest.mock import patch

from conftest import create_test_user
import pytest

from pncapi import db
from pncapi.services.notification_service import (
    AccountUnlocked,
    NotificationService,
    PasswordResetRequired,
)
from pncapi.services.user_service import hash_reset_token
from pncapi.utils.lockout_policy import utcnow


def _lock(user, failures=3, stage=1, minutes=30, permanent=False):
    user.consecutive_failures = failures
    user.total_failures = failures
    user.lockout_stage = stage
    user.is_permanently_locked = permanent
    user.lockout_expires_at = (
        None if permanent else utcnow() + datetime.timedelta(minutes=minutes)
    )
    db.session.commit()


@pytest.fixture
def locked_user(app):
    user = create_test_user("locked@test.com", "LockedPass123!", "Locked Player")
    _lock(user, failures=12, stage=3, permanent=True)
    return user


@pytest.fixture
def notify():
    with patch.object(NotificationService, "notify", return_value=True) as notify:
        yield notify


@pytest.mark.usefixtures("notify")
class TestUnlock:
    def test_admin_unlocks_permanent_lock(
        self, client, auth_headers_admin, admin_user, locked_user, notify
    ):
        response = client.post(
            f"/api/v1/user/{locked_user.id}/unlock", headers=auth_headers_admin
        )

        assert response.status_code == 200
        data = response.json["data"]
        assert data["unlocked_by"] == "admin@test.com"
        assert data["unlocked_at"]
        lockout = data["user"]["lockout"]
        assert lockout["consecutive_failures"] == 0
        assert lockout["stage"] == 0
        assert lockout["expires_at"] is None
        assert lockout["permanent"] is False
        # The lifetime counter survives the unlock
        assert lockout["total_failures"] == 12
        assert lockout["last_unlocked_by"] == "admin@test.com"

        notify.assert_called_once()
        recipient, event = notify.call_args[0]
        assert recipient == "locked@test.com"
        assert isinstance(event, AccountUnlocked)
        assert event.unlocked_by == "admin@test.com"

    def test_unlock_by_email(self, client, auth_headers_admin, locked_user):
        response = client.post(
            "/api/v1/user/locked@test.com/unlock", headers=auth_headers_admin
        )
        assert response.status_code == 200
        db.session.refresh(locked_user)
        assert not locked_user.is_permanently_locked

    def test_unlock_is_idempotent(
        self, client, auth_headers_admin, regular_user, notify
    ):
        for _ in range(2):
            response = client.post(
                f"/api/v1/user/{regular_user.id}/unlock", headers=auth_headers_admin
            )
            assert response.status_code == 200
            assert response.json["data"]["user"]["lockout"]["stage"] == 0

        # Nothing was locked, so nobody is told it was unlocked
        notify.assert_not_called()

    def test_unlock_is_audited(self, app, client, auth_headers_admin, locked_user):
        admin_service = app.extensions["lockout"]["admin"]
        with patch.object(admin_service, "audit") as audit:
            client.post(
                f"/api/v1/user/{locked_user.id}/unlock", headers=auth_headers_admin
            )

        audit.assert_called_once()
        _, admin_email, action, target_id, _ = audit.call_args[0]
        assert admin_email == "admin@test.com"
        assert action == "unlock_account"
        assert target_id == str(locked_user.id)

    def test_user_cannot_unlock(self, client, auth_headers_user, locked_user):
        response = client.post(
            f"/api/v1/user/{locked_user.id}/unlock", headers=auth_headers_user
        )
        assert response.status_code == 403
        db.session.refresh(locked_user)
        assert locked_user.is_permanently_locked

    def test_admin_cannot_unlock_superadmin(
        self, client, auth_headers_admin, superadmin_user
    ):
        _lock(superadmin_user)
        response = client.post(
            f"/api/v1/user/{superadmin_user.id}/unlock", headers=auth_headers_admin
        )
        assert response.status_code == 403
        db.session.refresh(superadmin_user)
        assert superadmin_user.lockout_stage == 1

    def test_superadmin_can_unlock_anyone(
        self, client, auth_headers_superadmin, superadmin_user, admin_user
    ):
        _lock(admin_user)
        response = client.post(
            f"/api/v1/user/{admin_user.id}/unlock", headers=auth_headers_superadmin
        )
        assert response.status_code == 200

    def test_unknown_user(self, client, auth_headers_admin):
        response = client.post(
            "/api/v1/user/nobody@test.com/unlock", headers=auth_headers_admin
        )
        assert response.status_code == 404

    def test_requires_authentication(self, client, locked_user):
        response = client.post(f"/api/v1/user/{locked_user.id}/unlock")
        assert response.status_code == 401


class TestRequirePasswordReset:
    def test_issues_hashed_token(
        self, client, auth_headers_admin, admin_user, regular_user, notify
    ):
        before = utcnow()
        response = client.post(
            f"/api/v1/user/{regular_user.id}/require-password-reset",
            headers=auth_headers_admin,
        )

        assert response.status_code == 200
        data = response.json["data"]
        assert data["notification_sent"] is True
        assert data["user"]["password_reset_required"] is True
        assert "token" not in str(data["user"])

        _, event = notify.call_args[0]
        assert isinstance(event, PasswordResetRequired)
        assert event.approved_by == "admin@test.com"

        db.session.refresh(regular_user)
        assert regular_user.password_reset_required
        assert regular_user.password_reset_token_hash == hash_reset_token(
            event.reset_token
        )
        assert regular_user.password_reset_token_hash != event.reset_token
        assert regular_user.password_reset_approved_by == "admin@test.com"

        expires_at = regular_user.password_reset_token_expires_at
        assert (
            before + datetime.timedelta(minutes=59)
            < expires_at
            <= utcnow() + datetime.timedelta(hours=1)
        )
        assert data["token_expires_at"] == expires_at.isoformat()

    def test_new_token_replaces_old_one(
        self, client, auth_headers_admin, regular_user, notify
    ):
        for _ in range(2):
            client.post(
                f"/api/v1/user/{regular_user.id}/require-password-reset",
                headers=auth_headers_admin,
            )
        first, second = (call[0][1] for call in notify.call_args_list)
        assert first.reset_token != second.reset_token

        db.session.refresh(regular_user)
        assert regular_user.password_reset_token_hash == hash_reset_token(
            second.reset_token
        )

    def test_without_notification(
        self, client, auth_headers_admin, regular_user, notify
    ):
        response = client.post(
            f"/api/v1/user/{regular_user.id}/require-password-reset",
            headers=auth_headers_admin,
            json={"send_notification": False},
        )
        assert response.status_code == 200
        assert response.json["data"]["notification_sent"] is False
        notify.assert_not_called()

    def test_reports_failed_notification(
        self, client, auth_headers_admin, regular_user, notify
    ):
        notify.return_value = False
        response = client.post(
            f"/api/v1/user/{regular_user.id}/require-password-reset",
            headers=auth_headers_admin,
        )
        assert response.status_code == 200
        assert response.json["data"]["notification_sent"] is False

    def test_rejects_non_boolean_flag(self, client, auth_headers_admin, regular_user):
        response = client.post(
            f"/api/v1/user/{regular_user.id}/require-password-reset",
            headers=auth_headers_admin,
            json={"send_notification": "yes"},
        )
        assert response.status_code == 400

    def test_user_cannot_require_reset(
        self, client, auth_headers_user, admin_user, notify
    ):
        response = client.post(
            f"/api/v1/user/{admin_user.id}/require-password-reset",
            headers=auth_headers_user,
        )
        assert response.status_code == 403
        notify.assert_not_called()


@pytest.mark.usefixtures("notify")
class TestLockoutStatus:
    def test_active_temporary_lock(self, client, auth_headers_admin, regular_user):
        _lock(regular_user, minutes=30)
        response = client.get(
            f"/api/v1/user/{regular_user.id}/lockout", headers=auth_headers_admin
        )

        assert response.status_code == 200
        lockout = response.json["data"]["lockout"]
        assert lockout["active"] is True
        assert lockout["stage"] == 1
        assert 1790 <= lockout["remaining_seconds"] <= 1800

    def test_expired_lock_reads_as_inactive(
        self, client, auth_headers_admin, regular_user
    ):
        _lock(regular_user, minutes=-1)
        response = client.get(
            f"/api/v1/user/{regular_user.id}/lockout", headers=auth_headers_admin
        )

        lockout = response.json["data"]["lockout"]
        assert lockout["active"] is False
        assert lockout["remaining_seconds"] == 0
        # Cleared lazily by the next login attempt, not by reading it
        assert lockout["stage"] == 1

    def test_permanent_lock(self, client, auth_headers_admin, locked_user):
        response = client.get(
            f"/api/v1/user/{locked_user.id}/lockout", headers=auth_headers_admin
        )
        lockout = response.json["data"]["lockout"]
        assert lockout["active"] is True
        assert lockout["permanent"] is True
        assert lockout["remaining_seconds"] == 0

    def test_user_cannot_read_status(self, client, auth_headers_user, admin_user):
        response = client.get(
            f"/api/v1/user/{admin_user.id}/lockout", headers=auth_headers_user
        )
        assert response.status_code == 403
