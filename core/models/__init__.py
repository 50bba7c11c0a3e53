"""Core domain models."""

from core.models.recurring_schedule import (
    RecurringSchedule, RecurringScheduleCreate, RecurringFrequency, RecurringStatus,
    ChargeOutcome, ChargeOutcomeStatus, MIN_RECURRING_AMOUNT,
)
from core.models.donation import Donation, ChargeResult
from core.models.message import (
    Message, MessageCreate, MessageType, TemplateUsage, DispatchResult, DispatchStatus,
)
from core.models.message_template import MessageTemplate, MessageTemplateCreate

__all__ = [
    # RecurringSchedule
    "RecurringSchedule", "RecurringScheduleCreate", "RecurringFrequency", "RecurringStatus",
    "ChargeOutcome", "ChargeOutcomeStatus", "MIN_RECURRING_AMOUNT",
    # Donation
    "Donation", "ChargeResult",
    # Message
    "Message", "MessageCreate", "MessageType", "TemplateUsage", "DispatchResult", "DispatchStatus",
    # MessageTemplate
    "MessageTemplate", "MessageTemplateCreate",
]
