"""PNCAPI SERVICES MODULE"""

import logging
import sys

logger = logging.getLogger()


def handle_exception(exc_type, exc_value, exc_traceback):
    if issubclass(exc_type, KeyboardInterrupt):
        sys.__excepthook__(exc_type, exc_value, exc_traceback)
        return
    logger.critical("Uncaught exception", exc_info=(exc_type, exc_value, exc_traceback))


sys.excepthook = handle_exception

from pncapi.services.credential_service import CredentialService  # noqa: E402
from pncapi.services.email_service import EmailService  # noqa: E402
from pncapi.services.notification_service import NotificationService  # noqa: E402
from pncapi.services.user_service import UserService  # noqa: E402

# Import last to avoid circular dependency
from pncapi.services.admin_service import AdminService  # noqa:E402, isort:skip
from pncapi.services.login_service import LoginService  # noqa:E402, isort:skip

__all__ = [
    "AdminService",
    "CredentialService",
    "EmailService",
    "LoginService",
    "NotificationService",
    "UserService",
]
