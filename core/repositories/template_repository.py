"""Message template persistence."""

from datetime import datetime
from typing import Protocol
from uuid import UUID

from clients.postgres_client import PostgresClient
from core.models import MessageTemplate, MessageType
from core.repositories.base import insert_statement, model_values

_COLUMNS = tuple(MessageTemplate.model_fields)


class TemplateStore(Protocol):
    """Record store contract for message templates."""

    def add(self, template: MessageTemplate) -> MessageTemplate: ...

    def get_by_id(self, template_id: UUID) -> MessageTemplate | None: ...

    def get_by_name(self, name: str) -> MessageTemplate | None: ...

    def list_all(self, message_type: MessageType | None = None) -> list[MessageTemplate]: ...

    def list_by_category(
        self, category: str, message_type: MessageType | None = None
    ) -> list[MessageTemplate]: ...

    def clear_default(self, category: str, message_type: MessageType, updated_at: datetime) -> None: ...

    def update(self, template: MessageTemplate) -> MessageTemplate | None: ...


class PostgresTemplateRepository:
    """TemplateStore backed by the message_templates table."""

    def __init__(self, postgres: PostgresClient):
        self.postgres = postgres

    def add(self, template: MessageTemplate) -> MessageTemplate:
        row = self.postgres.execute_returning(
            insert_statement("message_templates", _COLUMNS),
            model_values(template, _COLUMNS),
        )[0]
        return MessageTemplate.model_validate(row)

    def get_by_id(self, template_id: UUID) -> MessageTemplate | None:
        row = self.postgres.execute_single(
            "SELECT * FROM message_templates WHERE id = %s",
            (template_id,)
        )
        if row is None:
            return None
        return MessageTemplate.model_validate(row)

    def get_by_name(self, name: str) -> MessageTemplate | None:
        row = self.postgres.execute_single(
            "SELECT * FROM message_templates WHERE name = %s",
            (name,)
        )
        if row is None:
            return None
        return MessageTemplate.model_validate(row)

    def list_all(self, message_type: MessageType | None = None) -> list[MessageTemplate]:
        """Templates ordered defaults first, then by name."""
        if message_type is None:
            rows = self.postgres.execute(
                "SELECT * FROM message_templates ORDER BY is_default DESC, name ASC"
            )
        else:
            rows = self.postgres.execute(
                """
                SELECT * FROM message_templates
                WHERE message_type = %s
                ORDER BY is_default DESC, name ASC
                """,
                (message_type.value,)
            )
        return [MessageTemplate.model_validate(row) for row in rows]

    def list_by_category(
        self, category: str, message_type: MessageType | None = None
    ) -> list[MessageTemplate]:
        if message_type is None:
            rows = self.postgres.execute(
                """
                SELECT * FROM message_templates
                WHERE category = %s
                ORDER BY is_default DESC, name ASC
                """,
                (category,)
            )
        else:
            rows = self.postgres.execute(
                """
                SELECT * FROM message_templates
                WHERE category = %s AND message_type = %s
                ORDER BY is_default DESC, name ASC
                """,
                (category, message_type.value)
            )
        return [MessageTemplate.model_validate(row) for row in rows]

    def clear_default(self, category: str, message_type: MessageType, updated_at: datetime) -> None:
        """Unset is_default on every template in the (category, type) pair."""
        self.postgres.execute(
            """
            UPDATE message_templates
            SET is_default = false, updated_at = %s
            WHERE category = %s AND message_type = %s AND is_default = true
            """,
            (updated_at, category, message_type.value)
        )

    def update(self, template: MessageTemplate) -> MessageTemplate | None:
        rows = self.postgres.execute_returning(
            """
            UPDATE message_templates
            SET description = %s, default_sender = %s, default_subject = %s,
                content = %s, is_html = %s, available_placeholders = %s,
                is_default = %s, updated_at = %s
            WHERE id = %s
            RETURNING *
            """,
            (
                template.description,
                template.default_sender,
                template.default_subject,
                template.content,
                template.is_html,
                template.available_placeholders,
                template.is_default,
                template.updated_at,
                template.id,
            )
        )
        if not rows:
            return None
        return MessageTemplate.model_validate(rows[0])
