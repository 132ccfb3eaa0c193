"""
SMS and WhatsApp Service using Twilio

Both channels go through the Twilio Messages API; WhatsApp differs only in
the "whatsapp:" address prefix. Numbers are normalized to E.164 before
sending, and provider errors are logged and reported as a failed send.
"""

import asyncio
import logging
import re

from twilio.http.http_client import TwilioHttpClient
from twilio.rest import Client as TwilioClient

from portal.core.config import settings

logger = logging.getLogger(__name__)

_PHONE_SEPARATORS = re.compile(r"[\s\-()]")


def normalize_phone_number(phone: str, country_code: str | None = None) -> str:
    """
    Normalize a phone number to E.164.

    - A number already starting with "+" is returned unchanged.
    - Spaces, dashes and parentheses are stripped.
    - A leading national "0" is replaced with "+{country_code}".
    - Anything else gets a "+" prefix.

    Example:
        normalize_phone_number("03001234567")  # "+923001234567"

    Args:
        phone: Raw phone number
        country_code: Dialing code without "+", defaults to DEFAULT_COUNTRY_CODE

    Returns:
        E.164 formatted number
    """
    phone = phone.strip()
    if phone.startswith("+"):
        return phone

    code = country_code or settings.default_country_code
    digits = _PHONE_SEPARATORS.sub("", phone)

    if digits.startswith("0"):
        return f"+{code}{digits[1:]}"
    return f"+{digits}"


class TwilioSender:
    """Base class for senders using the Twilio Messages API."""

    channel = "sms"

    def __init__(
        self,
        account_sid: str | None,
        auth_token: str | None,
        from_number: str | None,
        timeout: float = 10.0,
    ):
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number
        self.timeout = timeout
        self._client: TwilioClient | None = None

    @property
    def is_configured(self) -> bool:
        return bool(self.account_sid and self.auth_token and self.from_number)

    def _get_client(self) -> TwilioClient:
        if self._client is None:
            self._client = TwilioClient(
                self.account_sid,
                self.auth_token,
                http_client=TwilioHttpClient(timeout=self.timeout),
            )
        return self._client

    def _address(self, number: str) -> str:
        return number

    async def send(self, phone: str, body: str) -> bool:
        """
        Send one message.

        Args:
            phone: Recipient number in any accepted format
            body: Message text

        Returns:
            True if Twilio accepted the message
        """
        if not self.is_configured:
            logger.info(f"Twilio not configured, skipping {self.channel}")
            return False

        to_number = normalize_phone_number(phone)

        try:
            client = self._get_client()
            # Run sync Twilio call in thread pool to avoid blocking event loop
            message = await asyncio.to_thread(
                client.messages.create,
                body=body,
                from_=self._address(self.from_number),
                to=self._address(to_number),
            )
            logger.info(f"{self.channel} sent to {to_number}, sid: {message.sid}")
            return True
        except Exception as e:
            logger.error(f"{self.channel} failed to {to_number}: {e}")
            return False


class SmsSender(TwilioSender):
    """Plain SMS sender."""

    channel = "sms"


class WhatsAppSender(TwilioSender):
    """WhatsApp sender; Twilio routes on the "whatsapp:" prefix."""

    channel = "whatsapp"

    def _address(self, number: str) -> str:
        return f"whatsapp:{number}"


def get_sms_sender() -> SmsSender:
    """Build an SmsSender from settings."""
    return SmsSender(
        account_sid=settings.twilio_account_sid,
        auth_token=settings.twilio_auth_token,
        from_number=settings.twilio_phone_number,
        timeout=settings.channel_timeout_seconds,
    )


def get_whatsapp_sender() -> WhatsAppSender:
    """Build a WhatsAppSender from settings."""
    return WhatsAppSender(
        account_sid=settings.twilio_account_sid,
        auth_token=settings.twilio_auth_token,
        from_number=settings.twilio_phone_number,
        timeout=settings.channel_timeout_seconds,
    )


# ============================================
# Message Templates
# ============================================


def whatsapp_announcement(title: str, body: str) -> str:
    """Format a general announcement for WhatsApp (Markdown-style emphasis)."""
    return (
        f"*{settings.school_name}*\n\n"
        f"*{title}*\n\n"
        f"{body}\n\n"
        "_Visit the school portal for more details._"
    )


def whatsapp_results_published(exam_name: str, subject_name: str) -> str:
    return (
        f"*{settings.school_name}*\n\n"
        "*Exam Results Published*\n\n"
        f"*Exam:* {exam_name}\n"
        f"*Subject:* {subject_name}\n\n"
        "The exam results are now available. Log in to the school portal "
        "to view detailed results and grades."
    )


def sms_results_published(exam_name: str, subject_name: str) -> str:
    return (
        f"Results Published: {exam_name} - {subject_name}. "
        f"Log in to view grades. - {settings.school_name}"
    )
