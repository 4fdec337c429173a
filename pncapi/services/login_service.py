"""LOGIN SERVICE

One call to ``LoginService.login`` runs one login attempt through the lockout
state machine::

    ACCEPTING -> CHECK_LOCK -> LOCKED_TEMP | LOCKED_PERMANENT | VERIFY
    VERIFY -> SUCCESS | FAIL
    ACCEPTING -> RATE_LIMITED

Everything that outlives the attempt is stored on the ``User`` row. Writes are
conditional UPDATEs that only apply if the row still looks the way it did when
it was read; a lost race re-reads the row and runs the attempt again from
CHECK_LOCK.
"""

from dataclasses import dataclass, field
import enum
import logging
from typing import Optional

from flask import current_app
from flask_jwt_extended import create_access_token
import rollbar
from sqlalchemy import or_, update
from sqlalchemy.exc import SQLAlchemyError

from pncapi import db
from pncapi.config import SETTINGS
from pncapi.errors import (
    InvalidCredential,
    PermanentLocked,
    RateLimited,
    TemporaryLocked,
    TransientStoreFailure,
)
from pncapi.models import User
from pncapi.services.credential_service import CredentialService
from pncapi.services.notification_service import AccountLocked, NotificationService
from pncapi.utils.lockout_policy import (
    escalation_for_failure,
    has_stale_lock,
    is_lock_active,
    lock_expiry,
    remaining_seconds,
    utcnow,
)
from pncapi.utils.rate_limiting import RateLimitConfig
from pncapi.utils.security_events import (
    log_authentication_event,
    log_lockout_event,
    log_rate_limit_exceeded,
    log_security_event,
)

logger = logging.getLogger(__name__)


class LoginState(enum.Enum):
    ACCEPTING = "accepting"
    CHECK_LOCK = "check_lock"
    LOCKED_TEMP = "locked_temp"
    LOCKED_PERMANENT = "locked_permanent"
    VERIFY = "verify"
    SUCCESS = "success"
    FAIL = "fail"
    RATE_LIMITED = "rate_limited"


@dataclass
class LoginAttempt:
    """A single login attempt; never reused across requests."""

    identifier: str
    password: str = field(repr=False)
    origin: Optional[str] = None
    state: LoginState = LoginState.ACCEPTING
    verified: Optional[bool] = None
    conflicts: int = 0

    def advance(self, state):
        logger.debug(f"[LOGIN]: {self.identifier} {self.state.value} -> {state.value}")
        self.state = state


@dataclass
class LoginResult:
    state: LoginState
    user: User
    access_token: str
    expires_in: int

    def serialize(self):
        return {
            "user_id": str(self.user.id),
            "email": self.user.email,
            "access_token": self.access_token,
            "expires_in": self.expires_in,
            "password_reset_required": self.user.password_reset_required,
        }


def _default_token_factory(user):
    return create_access_token(identity=str(user.id))


class LoginService:
    """Runs login attempts against the lockout policy"""

    def __init__(
        self,
        rate_limiter=None,
        notifier=NotificationService,
        credentials=CredentialService,
        stages=None,
        max_retries=None,
        token_factory=_default_token_factory,
    ):
        self.rate_limiter = rate_limiter
        self.notifier = notifier
        self.credentials = credentials
        self.stages = stages
        if max_retries is None:
            max_retries = SETTINGS.get("LOCKOUT", {}).get("MAX_UPDATE_RETRIES", 3)
        self.max_retries = max_retries
        self.token_factory = token_factory

    def login(self, identifier, password, origin=None, now=None):
        """Run one login attempt.

        Returns:
            LoginResult: on success

        Raises:
            RateLimited: the origin spent its attempt budget
            InvalidCredential: unknown identifier or wrong password
            TemporaryLocked: account is, or just became, temporarily locked
            PermanentLocked: account is, or just became, permanently locked
            TransientStoreFailure: the account record could not be updated
        """
        attempt = LoginAttempt(
            identifier=(identifier or "").strip().lower(),
            password=password,
            origin=origin,
        )
        self._check_rate_limit(attempt)

        now = now or utcnow()
        try:
            return self._run(attempt, now)
        except SQLAlchemyError as error:
            db.session.rollback()
            logger.error(f"[LOGIN]: Store failure for {attempt.identifier}: {error}")
            rollbar.report_exc_info()
            raise TransientStoreFailure() from error

    def _check_rate_limit(self, attempt):
        if self.rate_limiter is None or attempt.origin is None:
            return
        if not RateLimitConfig.is_enabled():
            return
        if self.rate_limiter.hit(attempt.origin):
            return
        attempt.advance(LoginState.RATE_LIMITED)
        retry_after = self.rate_limiter.retry_after(attempt.origin)
        logger.warning(f"[LOGIN]: Origin {attempt.origin} exceeded the login limit")
        log_rate_limit_exceeded("login")
        raise RateLimited(retry_after=retry_after)

    def _run(self, attempt, now):
        while attempt.conflicts <= self.max_retries:
            user = User.query.filter_by(email=attempt.identifier).one_or_none()
            if user is None:
                self.credentials.burn_time(attempt.password)
                self._record_unknown(attempt.identifier, now)
                attempt.advance(LoginState.FAIL)
                log_authentication_event(
                    False, attempt.identifier, reason="unknown_identifier"
                )
                raise InvalidCredential()

            # Accounts owned by an external provider have no password to check.
            if not user.has_local_credential:
                self.credentials.burn_time(attempt.password)
                self._record_unknown(attempt.identifier, now)
                attempt.advance(LoginState.FAIL)
                log_authentication_event(
                    False, attempt.identifier, reason="external_identity"
                )
                raise InvalidCredential()

            attempt.advance(LoginState.CHECK_LOCK)
            self._reject_if_locked(attempt, user, now)

            if has_stale_lock(user, now) and not self._clear_stale_lock(user, now):
                attempt.conflicts += 1
                continue

            attempt.advance(LoginState.VERIFY)
            if attempt.verified is None:
                attempt.verified = self.credentials.verify(user, attempt.password)

            if attempt.verified:
                if self._record_success(user, now):
                    return self._issue_session(attempt, user)
            elif self._record_failure(attempt, user, now):
                raise InvalidCredential()

            attempt.conflicts += 1
            logger.info(
                f"[LOGIN]: Concurrent update on {attempt.identifier}, "
                f"retry {attempt.conflicts}/{self.max_retries}"
            )

        logger.error(f"[LOGIN]: Gave up updating {attempt.identifier}")
        raise TransientStoreFailure("Account is busy, please try again")

    def _reject_if_locked(self, attempt, user, now):
        if not is_lock_active(user, now):
            return
        log_security_event(
            "LOGIN_BLOCKED",
            user_id=str(user.id),
            user_email=user.email,
            details={
                "stage": user.lockout_stage,
                "permanent": user.is_permanently_locked,
            },
        )
        if user.is_permanently_locked:
            attempt.advance(LoginState.LOCKED_PERMANENT)
            raise PermanentLocked()
        attempt.advance(LoginState.LOCKED_TEMP)
        raise TemporaryLocked(
            stage=user.lockout_stage,
            locked_until=user.lockout_expires_at,
            remaining_seconds=remaining_seconds(user.lockout_expires_at, now),
        )

    def _conditional_update(self, user_id, seen_failures, values, *conditions):
        """Apply values only if the row still matches what was read."""
        statement = (
            update(User)
            .where(
                User.id == user_id,
                User.consecutive_failures == seen_failures,
                User.is_permanently_locked.is_(False),
                *conditions,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = db.session.execute(statement)
        db.session.commit()
        return result.rowcount == 1

    def _record_unknown(self, identifier, now):
        """Issue the same write round trip a failure on a real account costs.

        The statement matches no row, so nothing changes.
        """
        statement = (
            update(User)
            .where(User.email == identifier, User.id.is_(None))
            .values(updated_at=now)
            .execution_options(synchronize_session=False)
        )
        db.session.execute(statement)
        db.session.commit()

    def _clear_stale_lock(self, user, now):
        logger.info(f"[LOGIN]: Clearing expired lock on {user.email}")
        return self._conditional_update(
            user.id,
            user.consecutive_failures,
            {"lockout_stage": 0, "lockout_expires_at": None, "updated_at": now},
            User.lockout_expires_at == user.lockout_expires_at,
        )

    def _record_success(self, user, now):
        return self._conditional_update(
            user.id,
            user.consecutive_failures,
            {
                "consecutive_failures": 0,
                "lockout_stage": 0,
                "lockout_expires_at": None,
                "last_success_at": now,
                "updated_at": now,
            },
            or_(User.lockout_expires_at.is_(None), User.lockout_expires_at <= now),
        )

    def _record_failure(self, attempt, user, now):
        """Count a failed verification. Raises the lock if this failure set one.

        Returns False when the row changed under us and nothing was written.
        """
        seen = user.consecutive_failures
        user_id = str(user.id)
        email = user.email
        escalation = escalation_for_failure(seen, seen + 1, self.stages)

        values = {
            "consecutive_failures": seen + 1,
            "total_failures": User.total_failures + 1,
            "last_failed_at": now,
            "updated_at": now,
        }
        expires_at = None
        if escalation is not None:
            expires_at = lock_expiry(escalation, now)
            values.update(
                lockout_stage=escalation.stage,
                lockout_expires_at=expires_at,
                is_permanently_locked=escalation.permanent,
            )

        if not self._conditional_update(
            user.id,
            seen,
            values,
            or_(User.lockout_expires_at.is_(None), User.lockout_expires_at <= now),
        ):
            return False

        attempt.advance(LoginState.FAIL)
        log_authentication_event(False, email, reason="invalid_password")
        if escalation is None:
            return True

        logger.warning(
            f"[LOGIN]: {email} locked at stage {escalation.stage} after "
            f"{seen + 1} consecutive failures"
        )
        log_lockout_event(
            user_id,
            email,
            escalation.stage,
            escalation.permanent,
            seen + 1,
            expires_at,
        )
        self.notifier.notify(
            email,
            AccountLocked(
                stage=escalation.stage,
                permanent=escalation.permanent,
                consecutive_failures=seen + 1,
                locked_until=expires_at.isoformat() if expires_at else None,
            ),
        )
        if escalation.permanent:
            attempt.advance(LoginState.LOCKED_PERMANENT)
            raise PermanentLocked()
        attempt.advance(LoginState.LOCKED_TEMP)
        raise TemporaryLocked(
            stage=escalation.stage,
            locked_until=expires_at,
            remaining_seconds=remaining_seconds(expires_at, now),
        )

    def _issue_session(self, attempt, user):
        attempt.advance(LoginState.SUCCESS)
        log_authentication_event(True, user.email)
        expires = current_app.config.get("JWT_ACCESS_TOKEN_EXPIRES")
        return LoginResult(
            state=attempt.state,
            user=user,
            access_token=self.token_factory(user),
            expires_in=int(expires.total_seconds()) if expires else 3600,
        )
