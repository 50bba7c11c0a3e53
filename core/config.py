"""Billing and notification configuration."""

from pydantic import BaseModel, Field


class BillingConfig(BaseModel):
    """
    Tunables for the recurring processor and the message processor.

    Intervals are in minutes. The two message intervals here are only the
    defaults; the live values come from the settings store at worker start.
    """

    # Recurring charges
    max_failed_attempts: int = Field(
        default=3,
        description="Failed charges before a schedule moves to FAILED",
        ge=1,
        le=10,
    )
    recurring_interval_minutes: int = Field(
        default=60,
        description="How often the recurring processor polls for due schedules",
        ge=1,
        le=1440,
    )
    recurring_batch_limit: int = Field(
        default=200,
        description="Max schedules fetched per processing pass",
        ge=1,
    )

    # Messages
    scheduled_interval_minutes: int = Field(
        default=5,
        description="Default cadence for sending due scheduled messages",
        ge=1,
        le=1440,
    )
    failed_retry_interval_minutes: int = Field(
        default=480,
        description="Default cadence for retrying failed messages",
        ge=1,
        le=10080,
    )
    max_message_retries: int = Field(
        default=3,
        description="Retry ceiling; messages at this count stay unsent for inspection",
        ge=1,
        le=20,
    )
    message_batch_limit: int = Field(
        default=50,
        description="Max messages fetched per pass",
        ge=1,
        le=1000,
    )

    # Senders
    default_email_sender: str = Field(
        default="",
        description="Used when neither the caller nor the template names a sender",
    )
    default_sms_sender: str = Field(
        default="",
        description="Twilio number used when no sender is given",
    )
