"""Message record domain models."""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field


class MessageType(str, Enum):
    """Delivery channel. Closed set: every dispatch path handles both."""

    EMAIL = "email"
    SMS = "sms"


class DispatchStatus(str, Enum):
    """Result of one dispatch attempt."""

    SENT = "sent"
    FAILED = "failed"
    SKIPPED = "skipped"  # Already sent by another worker, or record vanished


class MessageCreate(BaseModel):
    """Data required to record a message."""

    message_type: MessageType
    sender: str = Field("", max_length=255)
    recipient: str = Field(..., min_length=1, max_length=255)
    subject: str | None = Field(None, max_length=255)
    content: str = Field("", max_length=100000)
    is_html: bool = False
    scheduled_for: datetime | None = None


class Message(BaseModel):
    """Full message entity as stored."""

    id: UUID
    message_type: MessageType
    sender: str
    recipient: str
    subject: str | None
    content: str
    is_html: bool
    scheduled_for: datetime | None
    is_sent: bool
    sent_on: datetime | None
    error_message: str | None
    retry_count: int = Field(0, ge=0)
    created_at: datetime
    created_by: str
    updated_at: datetime
    updated_by: str

    model_config = {"from_attributes": True}


class TemplateUsage(BaseModel):
    """Links a message to the template and values that produced it."""

    message_id: UUID
    template_id: UUID
    placeholder_values: dict[str, str] = Field(default_factory=dict)

    model_config = {"from_attributes": True}


class DispatchResult(BaseModel):
    """Per-message result of one dispatch attempt."""

    message_id: UUID
    status: DispatchStatus
    error_message: str | None = None
