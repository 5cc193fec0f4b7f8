import logging
from email.utils import parseaddr

import requests
from django.conf import settings
from django.core.mail.backends.base import BaseEmailBackend

logger = logging.getLogger(__name__)


class BrevoEmailBackend(BaseEmailBackend):
    """
    Email backend for the Brevo (formerly Sendinblue) transactional HTTP API.

    Enable with EMAIL_BACKEND="project.mail.BrevoEmailBackend" and BREVO_API_KEY.
    HTML alternatives attached via EmailMultiAlternatives are sent as htmlContent.
    """

    def __init__(self, fail_silently=False, **kwargs):
        super().__init__(fail_silently=fail_silently, **kwargs)
        self.api_key = settings.BREVO_API_KEY
        self.api_url = settings.BREVO_API_URL

    def send_messages(self, email_messages):
        sent = 0
        for message in email_messages:
            try:
                self._send(message)
                sent += 1
            except requests.RequestException:
                logger.exception("Brevo rejected email to %s", message.to)
                if not self.fail_silently:
                    raise
        return sent

    def _payload(self, message):
        name, address = parseaddr(message.from_email or settings.DEFAULT_FROM_EMAIL)
        payload = {
            "sender": {"name": name or "PhotoFlow", "email": address},
            "to": [{"email": recipient} for recipient in message.to],
            "subject": message.subject,
            "textContent": message.body,
        }
        for content, mimetype in getattr(message, "alternatives", []):
            if mimetype == "text/html":
                payload["htmlContent"] = content
        return payload

    def _send(self, message):
        response = requests.post(
            self.api_url,
            json=self._payload(message),
            headers={
                "api-key": self.api_key,
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
            timeout=10,
        )
        response.raise_for_status()
        logger.info("Brevo accepted email to %s", message.to)
        return response.json()
