"""
Twilio SMS client.

Thin wrapper around twilio.rest.Client that raises SmsGatewayError for every
delivery failure so callers can record it against the message.
"""

import logging
import re

from twilio.base.exceptions import TwilioException, TwilioRestException
from twilio.http.http_client import TwilioHttpClient
from twilio.rest import Client as TwilioClient

logger = logging.getLogger(__name__)

# E.164: leading +, country code, up to 15 digits total
_E164_RE = re.compile(r"^\+[1-9]\d{7,14}$")


class SmsGatewayError(Exception):
    """Raised when an SMS cannot be delivered."""


class TwilioSmsClient:
    """Send SMS messages through Twilio."""

    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        from_number: str,
        timeout: float = 10,
    ):
        """
        Raises:
            ValueError: If any credential is empty
        """
        if not account_sid:
            raise ValueError("account_sid is required")
        if not auth_token:
            raise ValueError("auth_token is required")
        if not from_number:
            raise ValueError("from_number is required")

        self.from_number = from_number
        self._client = TwilioClient(
            account_sid,
            auth_token,
            http_client=TwilioHttpClient(timeout=timeout),
        )

    def is_valid_phone_number(self, number: str) -> bool:
        """Accept E.164 numbers only (e.g. +15551234567)."""
        return bool(number) and _E164_RE.match(number.strip()) is not None

    def send_sms(self, to: str, sender: str, body: str) -> None:
        """
        Send one SMS.

        Args:
            to: Recipient number in E.164 format
            sender: Twilio number to send from; falls back to from_number
            body: Message text

        Raises:
            SmsGatewayError: On invalid recipient or Twilio failure
        """
        if not self.is_valid_phone_number(to):
            raise SmsGatewayError(f"Invalid recipient phone number: '{to}'")

        try:
            message = self._client.messages.create(
                to=to,
                from_=sender or self.from_number,
                body=body,
            )
        except TwilioRestException as e:
            logger.error(f"Twilio API error sending to {to}: {e.msg}")
            raise SmsGatewayError(f"Twilio error {e.code}: {e.msg}")
        except TwilioException as e:
            logger.error(f"Twilio request failed for {to}: {e}")
            raise SmsGatewayError(f"Twilio request failed: {e}")

        logger.info(f"SMS sent to {to} (SID: {message.sid})")
