"""
Interfaces for the external collaborators the core depends on.

Concrete adapters live in clients/. Services accept anything that satisfies
these protocols, which keeps them testable without network access.
"""

from decimal import Decimal
from typing import Protocol, runtime_checkable

from core.models import ChargeResult


@runtime_checkable
class PaymentGateway(Protocol):
    """Charges a stored payment method."""

    def charge(
        self,
        amount: Decimal,
        currency: str,
        payment_method_token: str,
        order_reference: str,
        description: str | None = None,
    ) -> ChargeResult:
        """
        Attempt one charge.

        `order_reference` is unique per attempt. Declines come back as
        ChargeResult(success=False); transport problems may raise.
        """
        ...


@runtime_checkable
class EmailTransport(Protocol):
    """Delivers a single email. Raises a recoverable error on failure."""

    def send_email(
        self,
        to: str,
        sender: str,
        subject: str,
        body: str,
        is_html: bool = False,
    ) -> None:
        ...

    def is_valid_email(self, address: str) -> bool:
        ...


@runtime_checkable
class SmsTransport(Protocol):
    """Delivers a single SMS. Raises a recoverable error on failure."""

    def send_sms(self, to: str, sender: str, body: str) -> None:
        ...

    def is_valid_phone_number(self, number: str) -> bool:
        ...


@runtime_checkable
class CadenceStateStore(Protocol):
    """Small key/value store used to persist loop timestamps across restarts."""

    def get(self, key: str) -> str | None:
        ...

    def set(self, key: str, value: str, expire_seconds: int | None = None) -> None:
        ...

