"""
Handler for RecurringScheduleFailed events.

Tells the donor their recurring donation stopped and needs a new payment
method.
"""

import logging
from typing import Callable

from core.events import RecurringScheduleFailed
from core.handlers.recurring_thank_you_handler import format_amount, frequency_label
from core.services.template_service import RECURRING_PAYMENT_FAILED_TEMPLATE

logger = logging.getLogger(__name__)


def handle_recurring_schedule_failed(message_service) -> Callable:
    """
    Factory that returns a RecurringScheduleFailed handler.

    Args:
        message_service: MessageService instance

    Returns:
        Handler callable that sends the payment-failed email
    """

    def handler(event: RecurringScheduleFailed):
        schedule = event.schedule

        if not schedule.donor_email:
            logger.info(f"Schedule {schedule.id} has no donor email, skipping failure notice")
            return

        message_service.send_templated_by_name(
            RECURRING_PAYMENT_FAILED_TEMPLATE,
            to=schedule.donor_email,
            values={
                "donorName": schedule.donor_name or "Valued Donor",
                "donationAmountInDollars": format_amount(schedule.charge_amount, schedule.currency),
                "frequency": frequency_label(schedule.frequency),
                "failedAttempts": str(schedule.failed_attempt_count),
            },
        )

    return handler
