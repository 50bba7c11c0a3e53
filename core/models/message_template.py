"""Message template domain models."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from core.models.message import MessageType


class MessageTemplateCreate(BaseModel):
    """Data required to create a template."""

    name: str = Field(..., min_length=1, max_length=100)
    description: str = Field("", max_length=500)
    category: str = Field(..., min_length=1, max_length=50)
    message_type: MessageType
    is_html: bool = False
    default_sender: str = Field("", max_length=255)
    default_subject: str = Field("", max_length=255)
    content: str = Field(..., min_length=1)
    available_placeholders: list[str] = Field(default_factory=list)
    is_default: bool = False


class MessageTemplate(BaseModel):
    """Full template entity as stored."""

    id: UUID
    name: str
    description: str
    category: str
    message_type: MessageType
    is_html: bool
    default_sender: str
    default_subject: str
    content: str
    available_placeholders: list[str]
    is_default: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
