"""
Domain events for recurring billing.

Immutable event objects published by RecurringScheduleService after the
corresponding state change has been persisted. Events carry the full domain
objects so handlers don't need to re-fetch state.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import uuid4

from utils.timezone import now_utc


@dataclass(frozen=True, kw_only=True)
class BillingEvent:
    """Base class for all billing domain events."""
    event_id: str = field(default_factory=lambda: str(uuid4()))
    occurred_at: datetime = field(default_factory=now_utc)


# =============================================================================
# RECURRING SCHEDULE EVENTS
# =============================================================================


@dataclass(frozen=True)
class RecurringEvent(BillingEvent):
    """Events related to recurring schedule processing."""
    pass


@dataclass(frozen=True)
class RecurringChargeSucceeded(RecurringEvent):
    """A recurring charge went through and its donation was recorded."""
    schedule: Any = None  # RecurringSchedule after the update
    donation: Any = None  # Donation

    @classmethod
    def create(cls, schedule: Any, donation: Any) -> "RecurringChargeSucceeded":
        return cls(schedule=schedule, donation=donation)


@dataclass(frozen=True)
class RecurringChargeFailed(RecurringEvent):
    """
    A charge attempt failed; the schedule is still active and will retry next cycle.

    The worker registers no handler for it. Subscribe to it for failure
    notices (e.g. a dunning email asking the donor to update their card).
    """
    schedule: Any = None
    error_message: str = ""

    @classmethod
    def create(cls, schedule: Any, error_message: str) -> "RecurringChargeFailed":
        return cls(schedule=schedule, error_message=error_message)


@dataclass(frozen=True)
class RecurringScheduleFailed(RecurringEvent):
    """The schedule reached its failed-attempt ceiling and stopped charging."""
    schedule: Any = None

    @classmethod
    def create(cls, schedule: Any) -> "RecurringScheduleFailed":
        return cls(schedule=schedule)
