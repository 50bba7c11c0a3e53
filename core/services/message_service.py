"""
Message service for email and SMS delivery.

Every message is recorded before it is sent. Immediate sends are dispatched
right away; scheduled ones wait for the message processor. Delivery outcomes
are written with guarded updates (`is_sent = false`), so a message that
another worker already delivered is never sent again by this one.

Messages created from a template keep a TemplateUsage. On every dispatch the
body is rendered from the template's current content and the originally
supplied values. The stored content is the body rendered at creation and is
sent only when the usage row is missing.
"""

import logging
import threading
from datetime import datetime
from typing import Callable, Mapping
from uuid import UUID, uuid4

from core.audit import AuditLogger, AuditAction
from core.config import BillingConfig
from core.exceptions import InvalidRequestError, MissingPlaceholdersError, NotFoundError
from core.models import (
    DispatchResult,
    DispatchStatus,
    Message,
    MessageCreate,
    MessageTemplate,
    MessageType,
    TemplateUsage,
)
from core.ports import EmailTransport, SmsTransport
from core.repositories import MessageStore, TemplateStore
from core.templates import render, validate
from utils.actor_context import get_current_actor
from utils.timezone import now_utc, to_utc

logger = logging.getLogger(__name__)


class MessageService:
    """Service for recording, sending and retrying messages."""

    def __init__(
        self,
        messages: MessageStore,
        templates: TemplateStore,
        email: EmailTransport,
        sms: SmsTransport,
        audit: AuditLogger,
        config: BillingConfig | None = None,
        clock: Callable[[], datetime] = now_utc,
    ):
        self.messages = messages
        self.templates = templates
        self.email = email
        self.sms = sms
        self.audit = audit
        self.config = config or BillingConfig()
        self.clock = clock

    # =========================================================================
    # IMMEDIATE SENDS
    # =========================================================================

    def send_email(
        self,
        to: str,
        subject: str,
        body: str,
        sender: str | None = None,
        is_html: bool = True,
    ) -> DispatchResult:
        """
        Record and send an email now.

        Delivery failures are recorded on the message for the retry pass,
        not raised.

        Raises:
            InvalidRequestError: If recipient or sender is invalid
        """
        message = self._record(self._email_request(to, subject, body, sender, is_html))
        return self.dispatch(message)

    def send_sms(self, to: str, body: str, sender: str | None = None) -> DispatchResult:
        """
        Record and send an SMS now.

        Raises:
            InvalidRequestError: If recipient is invalid or body is empty
        """
        message = self._record(self._sms_request(to, body, sender))
        return self.dispatch(message)

    def send_templated(
        self,
        template: MessageTemplate,
        to: str,
        values: Mapping[str, str] | None = None,
        sender: str | None = None,
        subject: str | None = None,
    ) -> DispatchResult:
        """
        Render a template and send it now.

        Args:
            template: Template to render
            to: Recipient address or phone number
            values: Placeholder values
            sender: Overrides the template's default sender
            subject: Overrides the template's default subject (email only)

        Raises:
            MissingPlaceholdersError: If a placeholder has no value
            InvalidRequestError: If recipient or sender is invalid
        """
        message = self._record_templated(template, to, values, sender, subject, scheduled_for=None)
        return self.dispatch(message)

    def send_templated_by_id(
        self,
        template_id: UUID,
        to: str,
        values: Mapping[str, str] | None = None,
        sender: str | None = None,
        subject: str | None = None,
    ) -> DispatchResult:
        template = self.templates.get_by_id(template_id)
        if template is None:
            raise NotFoundError("Message template", template_id)
        return self.send_templated(template, to, values, sender, subject)

    def send_templated_by_name(
        self,
        template_name: str,
        to: str,
        values: Mapping[str, str] | None = None,
        sender: str | None = None,
        subject: str | None = None,
    ) -> DispatchResult:
        template = self.templates.get_by_name(template_name)
        if template is None:
            raise NotFoundError("Message template", template_name)
        return self.send_templated(template, to, values, sender, subject)

    # =========================================================================
    # SCHEDULING
    # =========================================================================

    def schedule_email(
        self,
        to: str,
        subject: str,
        body: str,
        scheduled_for: datetime,
        sender: str | None = None,
        is_html: bool = True,
    ) -> Message:
        """Record an email for the message processor to send at `scheduled_for`."""
        data = self._email_request(to, subject, body, sender, is_html)
        data.scheduled_for = to_utc(scheduled_for)
        return self._record(data)

    def schedule_sms(
        self,
        to: str,
        body: str,
        scheduled_for: datetime,
        sender: str | None = None,
    ) -> Message:
        """Record an SMS for the message processor to send at `scheduled_for`."""
        data = self._sms_request(to, body, sender)
        data.scheduled_for = to_utc(scheduled_for)
        return self._record(data)

    def schedule_templated(
        self,
        template_id: UUID,
        to: str,
        scheduled_for: datetime,
        values: Mapping[str, str] | None = None,
        sender: str | None = None,
        subject: str | None = None,
    ) -> Message:
        """
        Record a templated message for later.

        The stored content is rendered with the supplied values. Dispatch
        renders again from the template's content at that time.

        Raises:
            NotFoundError: If template not found
            MissingPlaceholdersError: If a placeholder has no value
        """
        template = self.templates.get_by_id(template_id)
        if template is None:
            raise NotFoundError("Message template", template_id)
        return self._record_templated(
            template, to, values, sender, subject, scheduled_for=to_utc(scheduled_for)
        )

    # =========================================================================
    # QUERIES
    # =========================================================================

    def get_by_id(self, message_id: UUID) -> Message | None:
        return self.messages.get_by_id(message_id)

    def get_history(self, recipient: str, limit: int = 50) -> list[Message]:
        """Messages sent or scheduled to a recipient, newest first."""
        return self.messages.list_by_recipient(recipient, limit)

    def list_recent(self, message_type: MessageType | None = None, limit: int = 50) -> list[Message]:
        return self.messages.list_recent(message_type, limit)

    # =========================================================================
    # DISPATCH
    # =========================================================================

    def dispatch(self, message: Message) -> DispatchResult:
        """
        Deliver one message and record the outcome.

        The record is re-read first; a message that is gone or already sent
        is skipped. Transport failures are recorded (retry_count + 1) and
        returned, never raised.
        """
        current = self.messages.get_by_id(message.id)
        if current is None:
            return DispatchResult(
                message_id=message.id,
                status=DispatchStatus.SKIPPED,
                error_message="Message not found",
            )
        if current.is_sent:
            return DispatchResult(
                message_id=message.id,
                status=DispatchStatus.SKIPPED,
                error_message="Already sent",
            )

        actor = get_current_actor()
        try:
            subject, body = self._resolve_content(current)
            self._deliver(current, subject, body)
        except Exception as e:
            error_message = str(e) or e.__class__.__name__
            logger.warning(
                f"Failed to send {current.message_type.value} {current.id} "
                f"(attempt {current.retry_count + 1}): {error_message}"
            )
            failed = self.messages.mark_failed(current.id, error_message, self.clock(), actor)
            if failed is not None:
                self._audit_status(current, failed, actor)
            return DispatchResult(
                message_id=current.id,
                status=DispatchStatus.FAILED,
                error_message=error_message,
            )

        sent = self.messages.mark_sent(current.id, self.clock(), actor)
        if sent is None:
            logger.warning(f"Message {current.id} was marked sent by another worker")
            return DispatchResult(
                message_id=current.id,
                status=DispatchStatus.SKIPPED,
                error_message="Already sent",
            )

        self._audit_status(current, sent, actor)
        logger.info(f"Sent {current.message_type.value} {current.id}")
        return DispatchResult(message_id=current.id, status=DispatchStatus.SENT)

    def process_scheduled(self, limit: int | None = None, stop_event: threading.Event | None = None) -> int:
        """
        Send never-attempted messages whose send time has arrived.

        Returns:
            Number of messages sent
        """
        due = self.messages.list_due_scheduled(self.clock(), limit or self.config.message_batch_limit)
        return self._dispatch_batch("scheduled", due, stop_event)

    def process_failed(self, limit: int | None = None, stop_event: threading.Event | None = None) -> int:
        """
        Retry failed messages that are under the retry ceiling.

        Returns:
            Number of messages sent
        """
        retryable = self.messages.list_failed_for_retry(
            self.config.max_message_retries,
            limit or self.config.message_batch_limit,
        )
        return self._dispatch_batch("failed-retry", retryable, stop_event)

    def _dispatch_batch(
        self,
        label: str,
        batch: list[Message],
        stop_event: threading.Event | None,
    ) -> int:
        if not batch:
            return 0

        results: list[DispatchResult] = []
        for message in batch:
            if stop_event is not None and stop_event.is_set():
                logger.info(f"Stop requested, leaving remaining {label} messages for the next pass")
                break
            try:
                results.append(self.dispatch(message))
            except Exception:
                logger.exception(f"Error dispatching message {message.id}")

        sent = sum(1 for r in results if r.status == DispatchStatus.SENT)
        failed = sum(1 for r in results if r.status == DispatchStatus.FAILED)
        logger.info(f"{label.capitalize()} pass: {len(batch)} fetched, {sent} sent, {failed} failed")
        return sent

    def _resolve_content(self, message: Message) -> tuple[str | None, str]:
        """Subject and body to send: re-rendered when the message came from a template."""
        usage = self.messages.get_template_usage(message.id)
        if usage is None:
            return message.subject, message.content

        template = self.templates.get_by_id(usage.template_id)
        if template is None:
            raise NotFoundError("Message template", usage.template_id)

        missing = validate(template.content, usage.placeholder_values)
        if missing:
            raise MissingPlaceholdersError(missing)

        return message.subject, render(template.content, usage.placeholder_values)

    def _deliver(self, message: Message, subject: str | None, body: str) -> None:
        match message.message_type:
            case MessageType.EMAIL:
                self.email.send_email(
                    to=message.recipient,
                    sender=message.sender,
                    subject=subject or "",
                    body=body,
                    is_html=message.is_html,
                )
            case MessageType.SMS:
                self.sms.send_sms(to=message.recipient, sender=message.sender, body=body)
            case _:
                raise ValueError(f"Unsupported message type: {message.message_type}")

    # =========================================================================
    # RECORDING
    # =========================================================================

    def _email_request(
        self,
        to: str,
        subject: str | None,
        body: str,
        sender: str | None,
        is_html: bool,
    ) -> MessageCreate:
        to = (to or "").strip()
        if not to:
            raise InvalidRequestError("Recipient cannot be empty")
        if not self.email.is_valid_email(to):
            raise InvalidRequestError(f"Invalid email address: {to}")

        sender = (sender or self.config.default_email_sender).strip()
        if sender and not self.email.is_valid_email(sender):
            raise InvalidRequestError(f"Invalid sender address: {sender}")

        return MessageCreate(
            message_type=MessageType.EMAIL,
            sender=sender,
            recipient=to,
            subject=subject or "",
            content=body or "",
            is_html=is_html,
        )

    def _sms_request(self, to: str, body: str, sender: str | None) -> MessageCreate:
        to = (to or "").strip()
        if not to:
            raise InvalidRequestError("Recipient cannot be empty")
        if not self.sms.is_valid_phone_number(to):
            raise InvalidRequestError(f"Invalid phone number: {to}")
        if not body or not body.strip():
            raise InvalidRequestError("SMS body cannot be empty")

        sender = (sender or self.config.default_sms_sender).strip()
        if sender and not self.sms.is_valid_phone_number(sender):
            raise InvalidRequestError(f"Invalid sender number: {sender}")

        return MessageCreate(
            message_type=MessageType.SMS,
            sender=sender,
            recipient=to,
            subject=None,
            content=body,
            is_html=False,
        )

    def _record_templated(
        self,
        template: MessageTemplate,
        to: str,
        values: Mapping[str, str] | None,
        sender: str | None,
        subject: str | None,
        scheduled_for: datetime | None,
    ) -> Message:
        values = {key: str(value) for key, value in (values or {}).items()}
        missing = validate(template.content, values)
        if missing:
            raise MissingPlaceholdersError(missing)

        # Stored rendered so the row is sendable without its TemplateUsage.
        content = render(template.content, values)
        sender = sender or template.default_sender or None

        match template.message_type:
            case MessageType.EMAIL:
                data = self._email_request(
                    to,
                    render(subject or template.default_subject, values),
                    content,
                    sender,
                    template.is_html,
                )
            case MessageType.SMS:
                data = self._sms_request(to, content, sender)
            case _:
                raise ValueError(f"Unsupported message type: {template.message_type}")

        data.scheduled_for = scheduled_for
        message = self._record(data)
        self.messages.add_template_usage(TemplateUsage(
            message_id=message.id,
            template_id=template.id,
            placeholder_values=values,
        ))
        return message

    def _record(self, data: MessageCreate) -> Message:
        actor = get_current_actor()
        now = self.clock()

        message = self.messages.add(Message(
            id=uuid4(),
            message_type=data.message_type,
            sender=data.sender,
            recipient=data.recipient,
            subject=data.subject,
            content=data.content,
            is_html=data.is_html,
            scheduled_for=data.scheduled_for,
            is_sent=False,
            sent_on=None,
            error_message=None,
            retry_count=0,
            created_at=now,
            created_by=actor,
            updated_at=now,
            updated_by=actor,
        ))

        self.audit.log_change(
            entity_type="message",
            entity_id=message.id,
            action=AuditAction.CREATE,
            changes={"created": data.model_dump(mode="json", exclude_none=True)},
            actor=actor
        )
        return message

    def _audit_status(self, old: Message, new: Message, actor: str) -> None:
        changes = {}
        for field in ("is_sent", "sent_on", "error_message", "retry_count"):
            old_value = getattr(old, field)
            new_value = getattr(new, field)
            if old_value != new_value:
                changes[field] = {
                    "old": old_value.isoformat() if isinstance(old_value, datetime) else old_value,
                    "new": new_value.isoformat() if isinstance(new_value, datetime) else new_value,
                }
        if changes:
            self.audit.log_change(
                entity_type="message",
                entity_id=new.id,
                action=AuditAction.UPDATE,
                changes=changes,
                actor=actor
            )
