"""Recurring schedule domain models.

Amounts are Decimal end to end. A schedule is never deleted; cancellation is
a terminal status.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field

MIN_RECURRING_AMOUNT = Decimal("25.00")


class RecurringFrequency(str, Enum):
    """How often a schedule is charged."""

    MONTHLY = "monthly"
    ANNUALLY = "annually"


class RecurringStatus(str, Enum):
    """Recurring schedule lifecycle status."""

    ACTIVE = "active"
    PAUSED = "paused"
    CANCELLED = "cancelled"  # Terminal
    FAILED = "failed"  # Max failed attempts reached; needs a new payment method


class ChargeOutcomeStatus(str, Enum):
    """Result of a single charge attempt."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"  # Not due or no longer active at re-check


class RecurringScheduleCreate(BaseModel):
    """Data required to set up a recurring schedule."""

    donor_id: UUID
    donor_email: str | None = Field(None, max_length=255)
    donor_name: str | None = Field(None, max_length=255)
    amount: Decimal = Field(..., ge=MIN_RECURRING_AMOUNT, decimal_places=2)
    currency: str = Field("USD", min_length=3, max_length=3)
    frequency: RecurringFrequency
    payment_method_token: str = Field(..., min_length=1, max_length=500)
    pay_transaction_fee: bool = False
    transaction_fee_amount: Decimal = Field(Decimal("0.00"), ge=0, decimal_places=2)
    start_date: datetime
    end_date: datetime | None = None
    donation_message: str | None = Field(None, max_length=1000)
    referral_code: str | None = Field(None, max_length=100)
    campaign_code: str | None = Field(None, max_length=100)


class RecurringSchedule(BaseModel):
    """Full recurring schedule entity as stored."""

    id: UUID
    donor_id: UUID
    donor_email: str | None
    donor_name: str | None
    amount: Decimal
    currency: str
    frequency: RecurringFrequency
    payment_method_token: str
    pay_transaction_fee: bool
    transaction_fee_amount: Decimal
    status: RecurringStatus
    start_date: datetime
    end_date: datetime | None
    next_process_date: datetime
    last_processed_date: datetime | None
    successful_count: int = Field(0, ge=0)
    failed_attempt_count: int = Field(0, ge=0)
    last_error_message: str | None
    donation_message: str | None
    referral_code: str | None
    campaign_code: str | None
    cancelled_at: datetime | None
    cancelled_by: str | None
    cancellation_reason: str | None
    created_at: datetime
    created_by: str
    updated_at: datetime
    updated_by: str

    model_config = {"from_attributes": True}

    @property
    def charge_amount(self) -> Decimal:
        """Amount sent to the gateway: base amount plus any covered fee."""
        if self.pay_transaction_fee:
            return self.amount + self.transaction_fee_amount
        return self.amount

    def is_due(self, as_of: datetime) -> bool:
        """Whether an attempt should be made at `as_of`."""
        return self.status == RecurringStatus.ACTIVE and self.next_process_date <= as_of


class ChargeOutcome(BaseModel):
    """Per-schedule result of one processing pass."""

    schedule_id: UUID
    status: ChargeOutcomeStatus
    transaction_id: str | None = None
    error_message: str | None = None
