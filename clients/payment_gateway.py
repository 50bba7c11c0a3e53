"""
Stripe payment gateway for off-session recurring charges.

The stored payment-method token is either a bare PaymentMethod id
("pm_...") or "cus_...:pm_..." when the method is attached to a customer.
The order reference doubles as the Stripe idempotency key, so a retried
network call for the same attempt never double-charges.
"""

import logging
from decimal import Decimal, ROUND_HALF_UP

import stripe

from core.models import ChargeResult

logger = logging.getLogger(__name__)

# Currencies Stripe expects in whole units rather than cents
_ZERO_DECIMAL_CURRENCIES = {
    "bif", "clp", "djf", "gnf", "jpy", "kmf", "krw", "mga",
    "pyg", "rwf", "ugx", "vnd", "vuv", "xaf", "xof", "xpf",
}


class PaymentGatewayError(Exception):
    """Raised when the gateway could not be reached or rejected the request itself."""


def to_minor_units(amount: Decimal, currency: str) -> int:
    """Convert a Decimal amount into the integer unit Stripe charges in."""
    if currency.lower() in _ZERO_DECIMAL_CURRENCIES:
        return int(amount.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def split_payment_token(token: str) -> tuple[str | None, str]:
    """Split "cus_x:pm_y" into (customer, payment_method); bare tokens have no customer."""
    if ":" in token:
        customer, payment_method = token.split(":", 1)
        return customer or None, payment_method
    return None, token


class StripePaymentGateway:
    """Charges saved payment methods through Stripe PaymentIntents."""

    def __init__(self, secret_key: str):
        """
        Raises:
            ValueError: If secret_key is empty
        """
        if not secret_key:
            raise ValueError("secret_key is required")

        self.secret_key = secret_key

    def charge(
        self,
        amount: Decimal,
        currency: str,
        payment_method_token: str,
        order_reference: str,
        description: str | None = None,
    ) -> ChargeResult:
        """
        Create and confirm an off-session PaymentIntent.

        Returns:
            ChargeResult(success=True, transaction_id=<PaymentIntent id>) when
            the intent succeeded; success=False with the decline reason when the
            card was declined or needs customer action.

        Raises:
            PaymentGatewayError: On network, auth or request errors
        """
        customer, payment_method = split_payment_token(payment_method_token)

        params = {
            "amount": to_minor_units(amount, currency),
            "currency": currency.lower(),
            "payment_method": payment_method,
            "confirm": True,
            "off_session": True,
            "metadata": {"order_reference": order_reference},
        }
        if customer:
            params["customer"] = customer
        if description:
            params["description"] = description

        try:
            intent = stripe.PaymentIntent.create(
                api_key=self.secret_key,
                idempotency_key=order_reference,
                **params,
            )
        except stripe.CardError as e:
            reason = e.user_message or str(e)
            logger.warning(f"Charge {order_reference} declined: {reason}")
            return ChargeResult(success=False, error_message=reason)
        except stripe.StripeError as e:
            logger.error(f"Stripe request failed for {order_reference}: {e}")
            raise PaymentGatewayError(f"Stripe request failed: {e}")

        if intent.status != "succeeded":
            logger.warning(f"Charge {order_reference} not completed (status: {intent.status})")
            return ChargeResult(
                success=False,
                transaction_id=intent.id,
                error_message=f"Payment not completed (status: {intent.status})",
            )

        logger.info(f"Charge {order_reference} succeeded ({intent.id})")
        return ChargeResult(success=True, transaction_id=intent.id)
