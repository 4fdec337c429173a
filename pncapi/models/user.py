"""USER MODEL"""

import datetime
import logging
import uuid

from werkzeug.security import generate_password_hash

from pncapi import db
from pncapi.models import GUID

db.GUID = GUID

logger = logging.getLogger(__name__)

LOCAL_AUTH_PROVIDER = "local"


class User(db.Model):
    """User Model

    Besides the profile, each row carries the login lockout state: the
    consecutive and total failure counters, the current lockout stage with its
    expiry, the permanent lock flag and any pending admin-forced password reset.
    """

    id = db.Column(
        db.GUID(),
        default=lambda: str(uuid.uuid4()),
        primary_key=True,
        autoincrement=False,
    )
    email = db.Column(db.String(120), unique=True, nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)
    # NULL for identities provisioned through an external identity provider
    password = db.Column(db.String(200), nullable=True)
    auth_provider = db.Column(
        db.String(40), nullable=False, default=LOCAL_AUTH_PROVIDER
    )
    role = db.Column(db.String(10))
    created_at = db.Column(db.DateTime(), default=datetime.datetime.utcnow)
    updated_at = db.Column(db.DateTime(), default=datetime.datetime.utcnow)

    # Lockout state
    consecutive_failures = db.Column(db.Integer(), nullable=False, default=0)
    total_failures = db.Column(db.Integer(), nullable=False, default=0)
    lockout_stage = db.Column(db.Integer(), nullable=False, default=0)
    lockout_expires_at = db.Column(db.DateTime(), nullable=True, index=True)
    is_permanently_locked = db.Column(db.Boolean(), nullable=False, default=False)
    last_failed_at = db.Column(db.DateTime(), nullable=True)
    last_success_at = db.Column(db.DateTime(), nullable=True)
    last_unlocked_by = db.Column(db.String(120), nullable=True)
    last_unlocked_at = db.Column(db.DateTime(), nullable=True)

    # Admin-forced password reset. Only the SHA-256 digest of the token is kept.
    password_reset_required = db.Column(db.Boolean(), nullable=False, default=False)
    password_reset_token_hash = db.Column(db.String(64), nullable=True, index=True)
    password_reset_token_expires_at = db.Column(db.DateTime(), nullable=True)
    password_reset_approved_by = db.Column(db.String(120), nullable=True)
    password_reset_approved_at = db.Column(db.DateTime(), nullable=True)

    def __init__(
        self,
        email,
        name,
        password=None,
        role="USER",
        auth_provider=LOCAL_AUTH_PROVIDER,
    ):
        self.email = email.strip().lower()
        self.password = self.set_password(password) if password else None
        self.role = role if role in ["USER", "ADMIN", "SUPERADMIN"] else "USER"
        self.name = name
        self.auth_provider = auth_provider
        self.consecutive_failures = 0
        self.total_failures = 0
        self.lockout_stage = 0
        self.is_permanently_locked = False
        self.password_reset_required = False

    def __repr__(self):
        return f"<User {self.email!r}>"

    @property
    def has_local_credential(self):
        return self.password is not None

    def set_password(self, password):
        return generate_password_hash(password)

    def clear_lockout(self):
        """Reset the lockout counters and flags (totals are kept for audit)."""
        self.consecutive_failures = 0
        self.lockout_stage = 0
        self.lockout_expires_at = None
        self.is_permanently_locked = False

    def clear_password_reset(self):
        self.password_reset_required = False
        self.password_reset_token_hash = None
        self.password_reset_token_expires_at = None

    def serialize(self, include=None, exclude=None):
        """Return object data in easily serializeable format

        Args:
            include (list, optional): Additional sections, currently only
                'lockout'
            exclude (list, optional): Fields to drop from the output

        Returns:
            dict: User object serialized as dictionary
        """
        include = include if include else []
        exclude = exclude if exclude else []
        user = {
            "id": str(self.id),
            "email": self.email,
            "name": self.name,
            "role": self.role,
            "auth_provider": self.auth_provider,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            "password_reset_required": self.password_reset_required,
        }

        if "lockout" in include:
            user["lockout"] = {
                "consecutive_failures": self.consecutive_failures,
                "total_failures": self.total_failures,
                "stage": self.lockout_stage,
                "expires_at": _isoformat(self.lockout_expires_at),
                "permanent": self.is_permanently_locked,
                "last_failed_at": _isoformat(self.last_failed_at),
                "last_success_at": _isoformat(self.last_success_at),
                "last_unlocked_by": self.last_unlocked_by,
                "last_unlocked_at": _isoformat(self.last_unlocked_at),
            }

        for field in exclude:
            user.pop(field, None)

        return user


def _isoformat(value):
    return value.isoformat() if value else None
