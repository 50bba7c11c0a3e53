"""
Universal audit trail for billing state changes.

Every schedule transition and every message delivery outcome is logged here.
The audit log is:
- Append-only (entries never modified or deleted)
- Actor-attributed (who or which worker made the change)
- Detailed (captures old and new values)
"""

from enum import Enum
from uuid import UUID, uuid4
from typing import Any

from psycopg2.extras import Json

from clients.postgres_client import PostgresClient
from utils.actor_context import get_current_actor
from utils.timezone import now_utc


class AuditAction(Enum):
    """Type of change made to an entity."""

    CREATE = "create"
    UPDATE = "update"


def compute_changes(
    old: dict[str, Any],
    new: dict[str, Any],
    exclude_fields: set[str] | None = None
) -> dict[str, dict[str, Any]]:
    """
    Compute changes between two entity states.

    Args:
        old: Previous state of entity
        new: New state of entity
        exclude_fields: Fields to ignore (defaults to {"updated_at", "updated_by"})

    Returns:
        Dict of {field: {"old": old_val, "new": new_val}} for changed fields.
        Empty dict if no changes.
    """
    exclude = exclude_fields or {"updated_at", "updated_by"}
    changes = {}

    all_keys = set(old.keys()) | set(new.keys())
    for key in all_keys:
        if key in exclude:
            continue

        old_val = old.get(key)
        new_val = new.get(key)

        if old_val != new_val:
            changes[key] = {"old": old_val, "new": new_val}

    return changes


class AuditLogger:
    """
    Audit trail writer.

    Always use model_dump(mode="json") when passing Pydantic models so UUIDs,
    Decimals and datetimes are serialized to JSON-compatible values.

    Usage:
        audit = AuditLogger(postgres)

        audit.log_change(
            entity_type="recurring_schedule",
            entity_id=schedule.id,
            action=AuditAction.UPDATE,
            changes=compute_changes(
                old.model_dump(mode="json"),
                new.model_dump(mode="json")
            )
        )
    """

    def __init__(self, postgres: PostgresClient):
        self.postgres = postgres

    def log_change(
        self,
        entity_type: str,
        entity_id: UUID,
        action: AuditAction,
        changes: dict[str, Any],
        actor: str | None = None
    ) -> None:
        """
        Log an entity change.

        Args:
            entity_type: Type of entity ("recurring_schedule", "message", ...)
            entity_id: ID of the entity
            action: The action performed (CREATE, UPDATE)
            changes: The changes made (format depends on action)
            actor: Who made the change (defaults to current context)

        Changes format by action:
        - CREATE: {"created": {full entity data}}
        - UPDATE: {"field": {"old": old_val, "new": new_val}, ...}
        """
        if actor is None:
            actor = get_current_actor()

        self.postgres.execute(
            """
            INSERT INTO audit_log (id, actor, entity_type, entity_id, action, changes, created_at)
            VALUES (%s, %s, %s, %s, %s, %s, %s)
            """,
            (
                uuid4(),
                actor,
                entity_type,
                entity_id,
                action.value,
                Json(changes),
                now_utc()
            )
        )

    def get_entity_history(
        self,
        entity_type: str,
        entity_id: UUID
    ) -> list[dict[str, Any]]:
        """
        Get full audit history for an entity.

        Returns:
            List of audit entries, newest first.
        """
        return self.postgres.execute(
            """
            SELECT id, actor, entity_type, entity_id, action, changes, created_at
            FROM audit_log
            WHERE entity_type = %s AND entity_id = %s
            ORDER BY created_at DESC
            """,
            (entity_type, entity_id)
        )
