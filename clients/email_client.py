"""
Email gateway client for sending emails via HTTP gateway.

Uses HMAC-SHA256 signature for request authentication.
"""

import hashlib
import hmac
import json
import logging
import re

import requests

logger = logging.getLogger(__name__)

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class EmailGatewayError(Exception):
    """Raised when email gateway request fails."""


class EmailGatewayClient:
    """Send emails via HTTP gateway with HMAC signature verification."""

    def __init__(
        self,
        gateway_url: str,
        api_key: str,
        hmac_secret: str,
        default_sender: str = "",
        timeout: float = 10,
    ):
        """
        Initialize with gateway credentials.

        Args:
            gateway_url: Full URL to the email gateway endpoint
            api_key: API key for X-API-Key header
            hmac_secret: Secret for HMAC-SHA256 signature
            default_sender: From address used when the caller passes none
            timeout: Per-request timeout in seconds

        Raises:
            ValueError: If any credential is empty
        """
        if not gateway_url:
            raise ValueError("gateway_url is required")
        if not api_key:
            raise ValueError("api_key is required")
        if not hmac_secret:
            raise ValueError("hmac_secret is required")

        self.gateway_url = gateway_url
        self.api_key = api_key
        self.hmac_secret = hmac_secret
        self.default_sender = default_sender
        self.timeout = timeout

    def _sign_and_send(self, payload: dict) -> None:
        """
        Sign payload with HMAC and send to gateway.

        Args:
            payload: Dict to send as JSON

        Raises:
            EmailGatewayError: On any failure
        """
        payload_json = json.dumps(payload, separators=(",", ":"))

        signature = hmac.new(
            self.hmac_secret.encode("utf-8"),
            payload_json.encode("utf-8"),
            hashlib.sha256,
        ).hexdigest()

        headers = {
            "Content-Type": "application/json",
            "X-API-Key": self.api_key,
            "X-Signature": signature,
        }

        try:
            response = requests.post(
                self.gateway_url,
                data=payload_json,
                headers=headers,
                timeout=self.timeout,
            )
        except (requests.exceptions.RequestException, ConnectionError) as e:
            logger.error(f"Email gateway connection failed: {e}")
            raise EmailGatewayError(f"Connection failed: {e}")

        try:
            response_data = response.json()
        except json.JSONDecodeError:
            logger.error(f"Email gateway returned invalid JSON: {response.text}")
            raise EmailGatewayError("Invalid response from gateway")

        if response.status_code != 200 or not response_data.get("success"):
            error_msg = response_data.get("message", "Unknown error")
            logger.error(f"Email gateway error: {error_msg}")
            raise EmailGatewayError(f"Gateway error: {error_msg}")

    def is_valid_email(self, address: str) -> bool:
        """Syntactic check only; deliverability is the gateway's problem."""
        return bool(address) and _EMAIL_RE.match(address.strip()) is not None

    def send_email(
        self,
        to: str,
        sender: str,
        subject: str,
        body: str,
        is_html: bool = False,
    ) -> None:
        """
        Send an email via gateway.

        Args:
            to: Recipient email address
            sender: From address; falls back to default_sender when empty
            subject: Email subject line
            body: Email body, HTML when is_html is True
            is_html: Whether body is HTML

        Raises:
            EmailGatewayError: On invalid recipient or gateway failure
        """
        if not self.is_valid_email(to):
            raise EmailGatewayError(f"Invalid recipient email address: '{to}'")

        payload = {
            "type": "custom",
            "email": to,
            "from": sender or self.default_sender,
            "subject": subject,
            "body": body,
            "is_html": is_html,
        }
        self._sign_and_send(payload)
        logger.info(f"Email sent to {to}: {subject}")
