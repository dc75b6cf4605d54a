"""Outbound email senders.

ResendEmailSender posts to the Resend HTTP API. Without an API key the
LoggingEmailSender is used, which only writes the message to the log.
"""

import logging

import httpx

from config.settings import settings
from src.ws_notify.domain.models import EmailMessage, EmailSenderProtocol

logger = logging.getLogger(__name__)

_TIMEOUT_SECONDS = 10.0


class ResendEmailSender:
    def __init__(self, api_key: str, api_url: str, sender: str) -> None:
        self._api_key = api_key
        self._api_url = api_url
        self._sender = sender

    async def send(self, message: EmailMessage) -> None:
        payload = {
            "from": self._sender,
            "to": [message.to],
            "subject": message.subject,
            "html": message.html,
        }
        async with httpx.AsyncClient(timeout=_TIMEOUT_SECONDS) as client:
            response = await client.post(
                self._api_url,
                json=payload,
                headers={"Authorization": f"Bearer {self._api_key}"},
            )
            response.raise_for_status()
        logger.info("Email sent to %s: %s", message.to, message.subject)


class LoggingEmailSender:
    async def send(self, message: EmailMessage) -> None:
        logger.info("Email (not sent, no API key) to %s: %s", message.to, message.subject)


def get_email_sender() -> EmailSenderProtocol:
    if settings.RESEND_API_KEY:
        return ResendEmailSender(
            settings.RESEND_API_KEY, settings.RESEND_API_URL, settings.EMAIL_FROM
        )
    return LoggingEmailSender()
