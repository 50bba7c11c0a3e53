"""Donation records produced by successful recurring charges."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel


class Donation(BaseModel):
    """A completed charge, linked back to its schedule and gateway transaction."""

    id: UUID
    schedule_id: UUID
    donor_id: UUID
    donation_amount: Decimal
    transaction_fee_amount: Decimal
    currency: str
    gateway_transaction_id: str | None
    order_reference: str
    is_monthly: bool
    is_annual: bool
    donation_message: str | None = None
    referral_code: str | None = None
    campaign_code: str | None = None
    created_at: datetime
    created_by: str

    model_config = {"from_attributes": True}

    @property
    def total_charged(self) -> Decimal:
        return self.donation_amount + self.transaction_fee_amount


class ChargeResult(BaseModel):
    """What the payment gateway reports for a single charge."""

    success: bool
    transaction_id: str | None = None
    error_message: str | None = None
