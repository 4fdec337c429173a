"""ADMIN SERVICE"""

import datetime
import logging
import secrets

import rollbar
from sqlalchemy.exc import SQLAlchemyError

from pncapi import db
from pncapi.config import SETTINGS
from pncapi.errors import NotAllowed, TransientStoreFailure
from pncapi.services.notification_service import (
    AccountUnlocked,
    NotificationService,
    PasswordResetRequired,
)
from pncapi.services.user_service import UserService, hash_reset_token
from pncapi.utils.lockout_policy import is_lock_active, remaining_seconds, utcnow
from pncapi.utils.permissions import can_manage_lockout
from pncapi.utils.security_events import (
    log_admin_action,
    log_password_event,
    log_security_event,
)

logger = logging.getLogger(__name__)


class AdminService:
    """Administrator overrides on the lockout state"""

    def __init__(self, notifier=NotificationService, audit=log_admin_action):
        self.notifier = notifier
        self.audit = audit

    @staticmethod
    def _check_permission(administrator, target, action):
        if can_manage_lockout(administrator, target):
            return
        log_security_event(
            "UNAUTHORIZED_ACCESS",
            user_id=str(administrator.id) if administrator else None,
            user_email=administrator.email if administrator else None,
            details={"action": action, "target_user_id": str(target.id)},
        )
        raise NotAllowed(message="Not allowed to manage this user's lockout")

    def _commit(self, action):
        try:
            db.session.commit()
        except SQLAlchemyError as error:
            db.session.rollback()
            logger.error(f"[SERVICE]: {action} failed: {error}")
            rollbar.report_exc_info()
            raise TransientStoreFailure() from error

    def unlock_account(self, identifier, administrator, now=None):
        """Clear every lockout counter and flag on an account.

        Unlocking an account that is not locked is allowed and leaves it in the
        same clean state. ``total_failures`` is kept.
        """
        now = now or utcnow()
        user = UserService.get_user(identifier)
        self._check_permission(administrator, user, "unlock_account")
        was_locked = is_lock_active(user, now)

        logger.info(f"[SERVICE]: {administrator.email} unlocking {user.email}")
        user.clear_lockout()
        user.last_unlocked_by = administrator.email
        user.last_unlocked_at = now
        user.updated_at = now
        db.session.add(user)
        self._commit("unlock_account")

        self.audit(
            str(administrator.id),
            administrator.email,
            "unlock_account",
            str(user.id),
            now,
        )
        log_security_event(
            "ACCOUNT_UNLOCKED",
            user_id=str(user.id),
            user_email=user.email,
            details={"unlocked_by": administrator.email, "was_locked": was_locked},
            level="info",
        )
        if was_locked:
            self.notifier.notify(
                user.email,
                AccountUnlocked(
                    unlocked_by=administrator.email, unlocked_at=now.isoformat()
                ),
            )
        return user, administrator.email, now

    def require_password_reset(
        self, identifier, administrator, send_notification=True, now=None
    ):
        """Issue a single-use reset token and flag the account for reset.

        Any earlier token is replaced. Only the SHA-256 digest of the token is
        stored; the raw token only leaves through the notification.

        Returns:
            tuple: (user, token_expires_at, notification_sent)
        """
        now = now or utcnow()
        user = UserService.get_user(identifier)
        self._check_permission(administrator, user, "require_password_reset")

        token = secrets.token_urlsafe(48)
        expiry_seconds = SETTINGS.get("LOCKOUT", {}).get(
            "PASSWORD_RESET_TOKEN_EXPIRY_SECONDS", 3600
        )
        expires_at = now + datetime.timedelta(seconds=expiry_seconds)

        user.password_reset_required = True
        user.password_reset_token_hash = hash_reset_token(token)
        user.password_reset_token_expires_at = expires_at
        user.password_reset_approved_by = administrator.email
        user.password_reset_approved_at = now
        user.updated_at = now
        db.session.add(user)
        self._commit("require_password_reset")

        self.audit(
            str(administrator.id),
            administrator.email,
            "require_password_reset",
            str(user.id),
            now,
        )
        log_password_event(
            "PASSWORD_RESET_REQUIRED", str(user.id), user.email, admin_action=True
        )

        notification_sent = False
        if send_notification:
            notification_sent = self.notifier.notify(
                user.email,
                PasswordResetRequired(
                    reset_token=token,
                    expires_at=expires_at.isoformat(),
                    approved_by=administrator.email,
                ),
            )
        return user, expires_at, notification_sent

    def get_lockout_status(self, identifier, administrator=None, now=None):
        now = now or utcnow()
        user = UserService.get_user(identifier)
        if administrator is not None:
            self._check_permission(administrator, user, "get_lockout_status")
        active = is_lock_active(user, now)
        status = user.serialize(include=["lockout"])
        status["lockout"]["active"] = active
        status["lockout"]["remaining_seconds"] = (
            remaining_seconds(user.lockout_expires_at, now)
            if active and not user.is_permanently_locked
            else 0
        )
        return status
