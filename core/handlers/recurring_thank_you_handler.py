"""
Handler for RecurringChargeSucceeded events.

Sends the donor the recurring thank-you email. Best effort: the charge and
donation are already committed, and a send failure is recorded on the
message for the retry pass.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Callable

from core.events import RecurringChargeSucceeded
from core.models import DispatchStatus, RecurringFrequency
from core.services.template_service import RECURRING_THANK_YOU_TEMPLATE

logger = logging.getLogger(__name__)


def format_amount(amount: Decimal, currency: str) -> str:
    """Display amount for donor-facing messages ("$25.00" for USD)."""
    if currency.upper() == "USD":
        return f"${amount:,.2f}"
    return f"{amount:,.2f} {currency.upper()}"


def format_date(when: datetime) -> str:
    """Long date for donor-facing messages ("March 1, 2026")."""
    return f"{when:%B} {when.day}, {when.year}"


def frequency_label(frequency: RecurringFrequency) -> str:
    """Adjective used in copy: "monthly donation", "annual donation"."""
    if frequency == RecurringFrequency.ANNUALLY:
        return "annual"
    return "monthly"


def handle_recurring_charge_succeeded(message_service) -> Callable:
    """
    Factory that returns a RecurringChargeSucceeded handler.

    Args:
        message_service: MessageService instance

    Returns:
        Handler callable that sends the thank-you email
    """

    def handler(event: RecurringChargeSucceeded):
        schedule = event.schedule
        donation = event.donation

        if not schedule.donor_email:
            logger.info(f"Schedule {schedule.id} has no donor email, skipping thank-you")
            return

        result = message_service.send_templated_by_name(
            RECURRING_THANK_YOU_TEMPLATE,
            to=schedule.donor_email,
            values={
                "donorName": schedule.donor_name or "Valued Donor",
                "donationAmountInDollars": format_amount(donation.donation_amount, donation.currency),
                "frequency": frequency_label(schedule.frequency),
                "nextDonationDate": format_date(schedule.next_process_date),
            },
        )

        if result.status == DispatchStatus.SENT:
            logger.info(f"Thank-you email sent for schedule {schedule.id}")
        else:
            logger.warning(
                f"Thank-you email for schedule {schedule.id} not sent: {result.error_message}"
            )

    return handler
