"""NOTIFICATION DELIVERY TASKS"""

import logging

from celery import Task
import rollbar

from pncapi.errors import EmailError
from pncapi.services.email_service import EmailService
from pncapi.services.notification_service import (
    AccountLocked,
    AccountUnlocked,
    PasswordResetRequired,
    parse_event,
)
from pncapi.utils.security_events import log_notification_failure

logger = logging.getLogger(__name__)


class NotificationTask(Task):
    """Base task for notification delivery"""

    def on_failure(self, exc, task_id, args, kwargs, einfo):
        logger.error(f"Notification delivery task failed: {exc}")
        rollbar.report_exc_info()


def render_notification(event):
    """Return (subject, html) for a notification event."""
    if isinstance(event, AccountLocked):
        if event.permanent:
            body = (
                "<p>Your PhishNClick account has been locked after "
                f"{event.consecutive_failures} consecutive failed sign-in "
                "attempts.</p><p>Please contact an administrator to unlock it.</p>"
            )
        else:
            body = (
                "<p>Your PhishNClick account has been temporarily locked after "
                f"{event.consecutive_failures} consecutive failed sign-in "
                f"attempts.</p><p>You can try again after {event.locked_until} "
                "UTC.</p>"
            )
        return "[PhishNClick] Account locked", body + _NOT_YOU

    if isinstance(event, PasswordResetRequired):
        return (
            "[PhishNClick] Password reset required",
            "<p>An administrator has required a password reset on your "
            "account.</p>"
            f"<p>Your reset token is: <b>{event.reset_token}</b></p>"
            f"<p>It expires at {event.expires_at} UTC and can be used once.</p>"
            + _NOT_YOU,
        )

    if isinstance(event, AccountUnlocked):
        return (
            "[PhishNClick] Account unlocked",
            "<p>Your PhishNClick account was unlocked by an administrator at "
            f"{event.unlocked_at} UTC.</p>" + _NOT_YOU,
        )

    raise ValueError(f"No template for {type(event).__name__}")


_NOT_YOU = (
    "<p>If this wasn't you, please contact your security team.</p>"
    "<p>Thank you,<br>The PhishNClick team</p>"
)


# Import celery after other imports to avoid circular dependency
from pncapi import celery  # noqa: E402


@celery.task(base=NotificationTask, bind=True)
def deliver_notification(self, recipient, payload):
    """Validate and send one notification email"""
    try:
        event = parse_event(payload)
    except ValueError as error:
        # A malformed payload will not improve on retry
        kind = payload.get("kind") if isinstance(payload, dict) else None
        logger.error(f"[TASK]: Rejected notification for {recipient}: {error}")
        log_notification_failure(recipient, str(kind or "unknown"), error)
        return {"status": "rejected", "error": str(error)}

    subject, html = render_notification(event)
    logger.info(f"[TASK]: Delivering {event.kind} notification to {recipient}")
    try:
        result = EmailService.send_html_email(
            recipients=[{"address": recipient}], html=html, subject=subject
        )
    except EmailError as error:
        log_notification_failure(recipient, event.kind, error)
        raise self.retry(exc=error, countdown=60, max_retries=3) from error

    return {"status": "sent", "kind": event.kind, "result": result}
