"""USER SERVICE"""

import hashlib
import logging
from uuid import UUID

import rollbar
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError

from pncapi import db
from pncapi.config import SETTINGS
from pncapi.errors import (
    InvalidResetToken,
    PasswordValidationError,
    TransientStoreFailure,
    UserDuplicated,
    UserNotFound,
)
from pncapi.models import User
from pncapi.utils.lockout_policy import utcnow
from pncapi.utils.security_events import log_password_event

ROLES = SETTINGS.get("ROLES")


logger = logging.getLogger()


def hash_reset_token(token):
    """Reset tokens are only ever stored and looked up by their SHA-256 digest."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class UserService:
    """User Class"""

    @staticmethod
    def create_user(user):
        logger.info("[SERVICE]: Creating user")
        email = user.get("email", None)
        password = user.get("password", None)
        name = user.get("name", "notset")
        role = user.get("role", "USER")
        if role not in ROLES:
            role = "USER"
        if email is None or password is None:
            raise PasswordValidationError(message="Email and password are required")

        email = email.strip().lower()
        current_user = User.query.filter_by(email=email).first()
        if current_user:
            raise UserDuplicated(message="User with email " + email + " already exists")

        user = User(email=email, password=password, role=role, name=name)
        try:
            logger.info("[DB]: ADD")
            db.session.add(user)
            db.session.commit()
        except SQLAlchemyError as error:
            db.session.rollback()
            rollbar.report_exc_info()
            raise TransientStoreFailure() from error
        return user

    @staticmethod
    def get_user(user_id):
        logger.info(f"[SERVICE]: Getting user {user_id}")
        logger.info("[DB]: QUERY")
        try:
            # If user_id is already a UUID object, use it directly
            if isinstance(user_id, UUID):
                user = User.query.get(user_id)
            else:
                UUID(user_id, version=4)
                user = User.query.get(user_id)
        except ValueError:
            user = User.query.filter_by(email=str(user_id).strip().lower()).first()
        except Exception as error:
            rollbar.report_exc_info()
            raise error
        if not user:
            raise UserNotFound(message=f"User with id {user_id} does not exist")
        return user

    @staticmethod
    def reset_password_with_token(token, new_password, now=None):
        """Consume an admin-issued reset token and set a new password.

        The token is single use. Consuming it also clears the lockout
        counters, since the reset was approved by an administrator.
        """
        now = now or utcnow()
        if not token:
            raise InvalidResetToken(message="Invalid or expired reset token")

        digest = hash_reset_token(token)
        user = User.query.filter_by(password_reset_token_hash=digest).first()
        if user is None:
            logger.warning("[SERVICE]: Password reset attempted with unknown token")
            raise InvalidResetToken(message="Invalid or expired reset token")

        if (
            user.password_reset_token_expires_at is None
            or user.password_reset_token_expires_at <= now
        ):
            logger.info(f"[SERVICE]: Expired reset token used for {user.email}")
            user.clear_password_reset()
            user.password_reset_required = True
            try:
                db.session.add(user)
                db.session.commit()
            except SQLAlchemyError as error:
                db.session.rollback()
                rollbar.report_exc_info()
                raise TransientStoreFailure() from error
            raise InvalidResetToken(message="Invalid or expired reset token")

        logger.info(f"[SERVICE]: Resetting password for {user.email}")
        values = {
            "password": user.set_password(new_password),
            "password_reset_required": False,
            "password_reset_token_hash": None,
            "password_reset_token_expires_at": None,
            "consecutive_failures": 0,
            "lockout_stage": 0,
            "lockout_expires_at": None,
            "is_permanently_locked": False,
            "updated_at": now,
        }
        try:
            consumed = UserService._consume_reset_token(user.id, digest, now, values)
        except SQLAlchemyError as error:
            db.session.rollback()
            rollbar.report_exc_info()
            raise TransientStoreFailure() from error
        if not consumed:
            logger.warning(f"[SERVICE]: Reset token for {user.email} already used")
            raise InvalidResetToken(message="Invalid or expired reset token")

        db.session.refresh(user)
        log_password_event("PASSWORD_RESET", str(user.id), user.email)
        return user

    @staticmethod
    def _consume_reset_token(user_id, digest, now, values):
        """Apply values only while the token is still stored and unexpired."""
        statement = (
            update(User)
            .where(
                User.id == user_id,
                User.password_reset_token_hash == digest,
                User.password_reset_token_expires_at > now,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = db.session.execute(statement)
        db.session.commit()
        return result.rowcount == 1
