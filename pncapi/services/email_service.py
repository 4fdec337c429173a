"""EMAIL SERVICE"""

import logging
import os

import rollbar
from sparkpost import SparkPost

from pncapi.config import SETTINGS
from pncapi.errors import EmailError

logger = logging.getLogger(__name__)


class EmailService:
    """MailService Class"""

    @staticmethod
    def send_html_email(
        recipients=None,
        html="",
        from_email=None,
        subject="[PhishNClick] Undefined Subject",
    ):
        if recipients is None:
            recipients = []
        if from_email is None:
            from_email = SETTINGS.get("NOTIFICATION_FROM_EMAIL")

        # Delivery is stubbed out until a SparkPost key is configured
        sparkpost_api_key = os.getenv("SPARKPOST_API_KEY")
        if not sparkpost_api_key:
            logger.warning(
                f"Cannot send email with subject '{subject}' to "
                f"{len(recipients)} recipients: SPARKPOST_API_KEY is not "
                "configured. Email functionality is disabled."
            )
            return {"errors": ["Email disabled: SPARKPOST_API_KEY not configured"]}

        logger.debug(f"Sending email with subject {subject}")
        try:
            sp = SparkPost(sparkpost_api_key)
            return sp.transmissions.send(
                recipients=recipients, html=html, from_email=from_email, subject=subject
            )
        except Exception as error:
            logger.error(f"Failed to send email with subject '{subject}': {error}")
            rollbar.report_exc_info()
            raise EmailError(f"Failed to send email: {error}") from error
