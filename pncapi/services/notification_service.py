"""NOTIFICATION SERVICE

Notifications are a closed set of event kinds with fixed fields. They are
built here, handed to Celery as plain dicts and checked again with
``parse_event`` when the worker picks them up.
"""

from dataclasses import asdict, dataclass, fields
import logging
from typing import ClassVar, Optional

from pncapi.errors import NotificationFailure
from pncapi.utils.security_events import log_notification_failure

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccountLocked:
    kind: ClassVar[str] = "account_locked"

    stage: int
    permanent: bool
    consecutive_failures: int
    locked_until: Optional[str] = None

    def __post_init__(self):
        if not 1 <= self.stage <= 3:
            raise ValueError(f"Invalid lockout stage {self.stage}")
        if self.permanent == (self.locked_until is not None):
            raise ValueError("A lock is either permanent or has an expiry")


@dataclass(frozen=True)
class AccountUnlocked:
    kind: ClassVar[str] = "account_unlocked"

    unlocked_by: str
    unlocked_at: str


@dataclass(frozen=True)
class PasswordResetRequired:
    kind: ClassVar[str] = "password_reset_required"

    reset_token: str
    expires_at: str
    approved_by: str

    def __post_init__(self):
        if not self.reset_token:
            raise ValueError("Reset notifications must carry a token")


EVENT_TYPES = {
    event.kind: event
    for event in (AccountLocked, AccountUnlocked, PasswordResetRequired)
}


def serialize_event(event):
    return {"kind": event.kind, **asdict(event)}


def parse_event(payload):
    """Rebuild a notification event from its dict form.

    Raises:
        ValueError: unknown kind, missing or unexpected fields
    """
    if not isinstance(payload, dict):
        raise ValueError("Notification payload must be a mapping")
    data = dict(payload)
    kind = data.pop("kind", None)
    event_type = EVENT_TYPES.get(kind)
    if event_type is None:
        raise ValueError(f"Unknown notification kind: {kind!r}")
    allowed = {f.name for f in fields(event_type)}
    unexpected = set(data) - allowed
    if unexpected:
        raise ValueError(
            f"Unexpected fields for {kind}: {', '.join(sorted(unexpected))}"
        )
    try:
        return event_type(**data)
    except TypeError as e:
        raise ValueError(f"Invalid {kind} payload: {e}") from e


class NotificationService:
    """Fire-and-forget notification sink"""

    @staticmethod
    def notify(recipient, event):
        """Queue a notification for delivery.

        Returns True when the notification was handed off. Failures are
        logged as security events and reported as False; they never raise.
        """
        try:
            from pncapi.tasks.notifications import deliver_notification

            deliver_notification.delay(recipient, serialize_event(event))
            logger.info(f"[NOTIFY]: Queued {event.kind} notification for {recipient}")
            return True
        except Exception as error:
            failure = NotificationFailure(
                f"Could not queue {event.kind} notification: {error}"
            )
            logger.error(f"[NOTIFY]: {failure.message}")
            log_notification_failure(recipient, event.kind, error)
            return False
