"""
Message template service.

Templates are looked up by name from the billing flows, so names are unique.
At most one template per (category, message type) is the default; setting a
new default unsets the others first.
"""

import logging
from datetime import datetime
from typing import Callable
from uuid import UUID, uuid4

from core.audit import AuditLogger, AuditAction, compute_changes
from core.exceptions import InvalidRequestError, NotFoundError
from core.models import MessageTemplate, MessageTemplateCreate, MessageType
from core.repositories import TemplateStore
from core.templates import extract_placeholders
from utils.timezone import now_utc

logger = logging.getLogger(__name__)

RECURRING_THANK_YOU_TEMPLATE = "Recurring Donation Thank You Email"
RECURRING_PAYMENT_FAILED_TEMPLATE = "Recurring Donation Payment Failed Email"

_DEFAULT_TEMPLATES = [
    MessageTemplateCreate(
        name=RECURRING_THANK_YOU_TEMPLATE,
        description="Sent to the donor after each successful recurring charge",
        category="ThankYou",
        message_type=MessageType.EMAIL,
        is_html=True,
        default_subject="Thank you for your {{frequency}} donation",
        content=(
            "<p>Dear {{donorName}},</p>\n"
            "<p>Thank you for your {{frequency}} donation of {{donationAmountInDollars}}. "
            "Your continued support makes our work possible.</p>\n"
            "<p>Your next donation is scheduled for {{nextDonationDate}}.</p>\n"
            "<p>Please retain this receipt for your tax records.</p>"
        ),
        is_default=True,
    ),
    MessageTemplateCreate(
        name=RECURRING_PAYMENT_FAILED_TEMPLATE,
        description="Sent when a recurring schedule stops after repeated failed charges",
        category="Billing",
        message_type=MessageType.EMAIL,
        is_html=True,
        default_subject="We couldn't process your {{frequency}} donation",
        content=(
            "<p>Dear {{donorName}},</p>\n"
            "<p>We were unable to charge your payment method for your {{frequency}} "
            "donation of {{donationAmountInDollars}} after {{failedAttempts}} attempts, "
            "so the donation has been paused.</p>\n"
            "<p>Update your payment method to resume your support.</p>"
        ),
        is_default=True,
    ),
]


class TemplateService:
    """Service for message template operations."""

    def __init__(
        self,
        templates: TemplateStore,
        audit: AuditLogger,
        clock: Callable[[], datetime] = now_utc,
    ):
        self.templates = templates
        self.audit = audit
        self.clock = clock

    def create(self, data: MessageTemplateCreate) -> MessageTemplate:
        """
        Create a template.

        When no placeholders are declared they are taken from the content.

        Raises:
            InvalidRequestError: If a template with the same name exists
        """
        if self.templates.get_by_name(data.name) is not None:
            raise InvalidRequestError(f"Template '{data.name}' already exists")

        now = self.clock()
        if data.is_default:
            self.templates.clear_default(data.category, data.message_type, now)

        template = self.templates.add(MessageTemplate(
            id=uuid4(),
            name=data.name,
            description=data.description,
            category=data.category,
            message_type=data.message_type,
            is_html=data.is_html,
            default_sender=data.default_sender,
            default_subject=data.default_subject,
            content=data.content,
            available_placeholders=data.available_placeholders or extract_placeholders(data.content),
            is_default=data.is_default,
            created_at=now,
            updated_at=now,
        ))

        self.audit.log_change(
            entity_type="message_template",
            entity_id=template.id,
            action=AuditAction.CREATE,
            changes={"created": data.model_dump(mode="json")}
        )

        logger.info(f"Created template '{template.name}' ({template.message_type.value})")
        return template

    def get_by_id(self, template_id: UUID) -> MessageTemplate | None:
        return self.templates.get_by_id(template_id)

    def get_by_name(self, name: str) -> MessageTemplate | None:
        return self.templates.get_by_name(name)

    def list_templates(self, message_type: MessageType | None = None) -> list[MessageTemplate]:
        """All templates, defaults first then by name."""
        return self.templates.list_all(message_type)

    def list_by_category(
        self, category: str, message_type: MessageType | None = None
    ) -> list[MessageTemplate]:
        """Templates in a category, defaults first then by name."""
        return self.templates.list_by_category(category, message_type)

    def get_default(self, category: str, message_type: MessageType) -> MessageTemplate | None:
        """
        Default template for a (category, type) pair.

        Falls back to the first template in the pair when none is flagged.
        """
        candidates = self.templates.list_by_category(category, message_type)
        if not candidates:
            return None
        for template in candidates:
            if template.is_default:
                return template
        return candidates[0]

    def set_as_default(self, template_id: UUID) -> MessageTemplate:
        """
        Make a template the default of its (category, type) pair.

        Raises:
            NotFoundError: If template not found
        """
        current = self._get_or_raise(template_id)
        if current.is_default:
            return current

        now = self.clock()
        self.templates.clear_default(current.category, current.message_type, now)
        return self._update(current, {"is_default": True, "updated_at": now})

    def update_content(
        self,
        template_id: UUID,
        content: str,
        default_subject: str | None = None,
        is_html: bool | None = None,
    ) -> MessageTemplate:
        """
        Replace a template's body (and optionally subject and format).

        Messages already scheduled from this template render with the new
        content on their next dispatch.

        Raises:
            NotFoundError: If template not found
            InvalidRequestError: If content is empty
        """
        if not content or not content.strip():
            raise InvalidRequestError("Template content cannot be empty")

        current = self._get_or_raise(template_id)
        updates = {
            "content": content,
            "available_placeholders": extract_placeholders(content),
            "updated_at": self.clock(),
        }
        if default_subject is not None:
            updates["default_subject"] = default_subject
        if is_html is not None:
            updates["is_html"] = is_html

        return self._update(current, updates)

    def seed_default_templates(self) -> list[MessageTemplate]:
        """
        Create the templates the billing flows send by name, if missing.

        Returns:
            Templates created by this call (empty when all exist)
        """
        created = []
        for data in _DEFAULT_TEMPLATES:
            if self.templates.get_by_name(data.name) is None:
                created.append(self.create(data))
        if created:
            logger.info(f"Seeded {len(created)} default templates")
        return created

    def _get_or_raise(self, template_id: UUID) -> MessageTemplate:
        template = self.templates.get_by_id(template_id)
        if template is None:
            raise NotFoundError("Message template", template_id)
        return template

    def _update(self, current: MessageTemplate, updates: dict) -> MessageTemplate:
        updated = self.templates.update(current.model_copy(update=updates))
        if updated is None:
            raise NotFoundError("Message template", current.id)

        changes = compute_changes(current.model_dump(mode="json"), updated.model_dump(mode="json"))
        if changes:
            self.audit.log_change(
                entity_type="message_template",
                entity_id=current.id,
                action=AuditAction.UPDATE,
                changes=changes
            )
        return updated
