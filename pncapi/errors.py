"""PNC API ERRORS"""


class Error(Exception):
    def __init__(self, message):
        self.message = message
        super().__init__(message)

    @property
    def serialize(self):
        return {"message": self.message}


class UserNotFound(Error):
    pass


class UserDuplicated(Error):
    pass


class NotAllowed(Error):
    pass


class EmailError(Error):
    pass


class PasswordValidationError(Error):
    pass


class InvalidResetToken(Error):
    pass


class InvalidCredential(Error):
    """Wrong password or unknown identifier. The two are never told apart."""

    def __init__(self, message: str = "Invalid email or password"):
        super().__init__(message)

    @property
    def serialize(self):
        return {"message": self.message, "error_code": "invalid_credentials"}


class RateLimited(Error):
    """Raised when an origin address exceeds its login attempt budget."""

    def __init__(
        self,
        message: str = "Too many login attempts. Please try again later.",
        retry_after: int | None = None,
    ):
        super().__init__(message)
        self.retry_after = retry_after

    @property
    def serialize(self):
        return {
            "message": self.message,
            "error_code": "RATE_LIMIT_EXCEEDED",
            "retry_after": self.retry_after,
        }


class AccountLockedError(Error):
    """Raised when a user account is locked due to too many failed login attempts."""

    permanent = False

    def __init__(self, message: str, stage: int):
        super().__init__(message)
        self.stage = stage

    @property
    def serialize(self):
        return {
            "message": self.message,
            "error_code": "account_locked",
            "permanent": self.permanent,
        }


class TemporaryLocked(AccountLockedError):
    def __init__(self, stage: int, locked_until, remaining_seconds: int):
        super().__init__(
            "Account temporarily locked due to too many failed login attempts. "
            "Please try again later.",
            stage,
        )
        self.locked_until = locked_until
        self.remaining_seconds = remaining_seconds

    @property
    def serialize(self):
        data = super().serialize
        data["locked_until"] = self.locked_until.isoformat()
        data["remaining_seconds"] = self.remaining_seconds
        return data


class PermanentLocked(AccountLockedError):
    permanent = True

    def __init__(self):
        super().__init__(
            "Account locked due to too many failed login attempts. "
            "Please contact an administrator to unlock it.",
            3,
        )


class TransientStoreFailure(Error):
    """The account record could not be read or written. Nothing was counted."""

    def __init__(self, message: str = "Service temporarily unavailable"):
        super().__init__(message)


class NotificationFailure(Error):
    pass
