"""
Message record persistence.

Status transitions are guarded on `is_sent = false` so a message already
delivered by another worker is never marked sent twice or marked failed after
delivery. A guarded write that matches no row returns None.
"""

from datetime import datetime
from typing import Protocol
from uuid import UUID

from psycopg2.extras import Json

from clients.postgres_client import PostgresClient
from core.models import Message, MessageType, TemplateUsage
from core.repositories.base import insert_statement, model_values

_COLUMNS = tuple(Message.model_fields)


class MessageStore(Protocol):
    """Record store contract for messages and their template usages."""

    def add(self, message: Message) -> Message: ...

    def get_by_id(self, message_id: UUID) -> Message | None: ...

    def add_template_usage(self, usage: TemplateUsage) -> TemplateUsage: ...

    def get_template_usage(self, message_id: UUID) -> TemplateUsage | None: ...

    def list_due_scheduled(self, as_of: datetime, limit: int) -> list[Message]: ...

    def list_failed_for_retry(self, max_retries: int, limit: int) -> list[Message]: ...

    def list_by_recipient(self, recipient: str, limit: int = 100) -> list[Message]: ...

    def list_recent(self, message_type: MessageType | None = None, limit: int = 100) -> list[Message]: ...

    def mark_sent(self, message_id: UUID, sent_on: datetime, actor: str) -> Message | None: ...

    def mark_failed(
        self, message_id: UUID, error_message: str, failed_at: datetime, actor: str
    ) -> Message | None: ...


class PostgresMessageRepository:
    """MessageStore backed by the messages and message_template_usages tables."""

    def __init__(self, postgres: PostgresClient):
        self.postgres = postgres

    def add(self, message: Message) -> Message:
        row = self.postgres.execute_returning(
            insert_statement("messages", _COLUMNS),
            model_values(message, _COLUMNS),
        )[0]
        return Message.model_validate(row)

    def get_by_id(self, message_id: UUID) -> Message | None:
        row = self.postgres.execute_single(
            "SELECT * FROM messages WHERE id = %s",
            (message_id,)
        )
        if row is None:
            return None
        return Message.model_validate(row)

    def add_template_usage(self, usage: TemplateUsage) -> TemplateUsage:
        row = self.postgres.execute_returning(
            """
            INSERT INTO message_template_usages (message_id, template_id, placeholder_values)
            VALUES (%s, %s, %s)
            RETURNING *
            """,
            (usage.message_id, usage.template_id, Json(usage.placeholder_values))
        )[0]
        return TemplateUsage.model_validate(row)

    def get_template_usage(self, message_id: UUID) -> TemplateUsage | None:
        row = self.postgres.execute_single(
            "SELECT * FROM message_template_usages WHERE message_id = %s",
            (message_id,)
        )
        if row is None:
            return None
        return TemplateUsage.model_validate(row)

    def list_due_scheduled(self, as_of: datetime, limit: int) -> list[Message]:
        """Unsent, never-attempted messages whose send time has arrived."""
        rows = self.postgres.execute(
            """
            SELECT * FROM messages
            WHERE is_sent = false
              AND retry_count = 0
              AND (scheduled_for IS NULL OR scheduled_for <= %s)
            ORDER BY scheduled_for ASC NULLS FIRST, created_at ASC
            LIMIT %s
            """,
            (as_of, limit)
        )
        return [Message.model_validate(row) for row in rows]

    def list_failed_for_retry(self, max_retries: int, limit: int) -> list[Message]:
        """Unsent messages with a recorded failure and retries left."""
        rows = self.postgres.execute(
            """
            SELECT * FROM messages
            WHERE is_sent = false
              AND retry_count > 0
              AND retry_count < %s
              AND error_message IS NOT NULL
              AND error_message <> ''
            ORDER BY updated_at ASC
            LIMIT %s
            """,
            (max_retries, limit)
        )
        return [Message.model_validate(row) for row in rows]

    def list_by_recipient(self, recipient: str, limit: int = 100) -> list[Message]:
        rows = self.postgres.execute(
            """
            SELECT * FROM messages
            WHERE recipient = %s
            ORDER BY created_at DESC
            LIMIT %s
            """,
            (recipient, limit)
        )
        return [Message.model_validate(row) for row in rows]

    def list_recent(self, message_type: MessageType | None = None, limit: int = 100) -> list[Message]:
        if message_type is None:
            rows = self.postgres.execute(
                "SELECT * FROM messages ORDER BY created_at DESC LIMIT %s",
                (limit,)
            )
        else:
            rows = self.postgres.execute(
                """
                SELECT * FROM messages
                WHERE message_type = %s
                ORDER BY created_at DESC
                LIMIT %s
                """,
                (message_type.value, limit)
            )
        return [Message.model_validate(row) for row in rows]

    def mark_sent(self, message_id: UUID, sent_on: datetime, actor: str) -> Message | None:
        rows = self.postgres.execute_returning(
            """
            UPDATE messages
            SET is_sent = true, sent_on = %s, error_message = NULL,
                updated_at = %s, updated_by = %s
            WHERE id = %s AND is_sent = false
            RETURNING *
            """,
            (sent_on, sent_on, actor, message_id)
        )
        if not rows:
            return None
        return Message.model_validate(rows[0])

    def mark_failed(
        self, message_id: UUID, error_message: str, failed_at: datetime, actor: str
    ) -> Message | None:
        rows = self.postgres.execute_returning(
            """
            UPDATE messages
            SET error_message = %s, retry_count = retry_count + 1,
                updated_at = %s, updated_by = %s
            WHERE id = %s AND is_sent = false
            RETURNING *
            """,
            (error_message, failed_at, actor, message_id)
        )
        if not rows:
            return None
        return Message.model_validate(rows[0])
