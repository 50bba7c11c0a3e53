"""
Recurring schedule persistence.

Writes from the state machine go through `save`, which can carry a guard on
the status and next_process_date that were read before the charge. When
another worker has already moved the schedule on, the guarded UPDATE matches
no row and `save` returns None instead of overwriting its result.
"""

from datetime import datetime
from typing import Protocol
from uuid import UUID

from clients.postgres_client import PostgresClient
from core.models import RecurringSchedule, RecurringStatus
from core.repositories.base import db_value, insert_statement, model_values

_COLUMNS = tuple(RecurringSchedule.model_fields)

_MUTABLE_COLUMNS = (
    "donor_email", "donor_name", "amount", "payment_method_token",
    "pay_transaction_fee", "transaction_fee_amount", "status", "end_date",
    "next_process_date", "last_processed_date", "successful_count",
    "failed_attempt_count", "last_error_message", "cancelled_at",
    "cancelled_by", "cancellation_reason", "updated_at", "updated_by",
)


class RecurringScheduleStore(Protocol):
    """Record store contract for recurring schedules."""

    def add(self, schedule: RecurringSchedule) -> RecurringSchedule: ...

    def get_by_id(self, schedule_id: UUID) -> RecurringSchedule | None: ...

    def list_due(self, as_of: datetime, limit: int) -> list[RecurringSchedule]: ...

    def list_for_donor(self, donor_id: UUID) -> list[RecurringSchedule]: ...

    def list_by_status(self, status: RecurringStatus, limit: int = 100) -> list[RecurringSchedule]: ...

    def save(
        self,
        schedule: RecurringSchedule,
        expected_status: RecurringStatus | None = None,
        expected_next_process_date: datetime | None = None,
    ) -> RecurringSchedule | None: ...


class PostgresRecurringScheduleRepository:
    """RecurringScheduleStore backed by the recurring_schedules table."""

    def __init__(self, postgres: PostgresClient):
        self.postgres = postgres

    def add(self, schedule: RecurringSchedule) -> RecurringSchedule:
        row = self.postgres.execute_returning(
            insert_statement("recurring_schedules", _COLUMNS),
            model_values(schedule, _COLUMNS),
        )[0]
        return RecurringSchedule.model_validate(row)

    def get_by_id(self, schedule_id: UUID) -> RecurringSchedule | None:
        row = self.postgres.execute_single(
            "SELECT * FROM recurring_schedules WHERE id = %s",
            (schedule_id,)
        )
        if row is None:
            return None
        return RecurringSchedule.model_validate(row)

    def list_due(self, as_of: datetime, limit: int) -> list[RecurringSchedule]:
        """Active schedules whose next_process_date has passed, oldest first."""
        rows = self.postgres.execute(
            """
            SELECT * FROM recurring_schedules
            WHERE status = %s AND next_process_date <= %s
            ORDER BY next_process_date ASC
            LIMIT %s
            """,
            (RecurringStatus.ACTIVE.value, as_of, limit)
        )
        return [RecurringSchedule.model_validate(row) for row in rows]

    def list_for_donor(self, donor_id: UUID) -> list[RecurringSchedule]:
        rows = self.postgres.execute(
            """
            SELECT * FROM recurring_schedules
            WHERE donor_id = %s
            ORDER BY created_at DESC
            """,
            (donor_id,)
        )
        return [RecurringSchedule.model_validate(row) for row in rows]

    def list_by_status(self, status: RecurringStatus, limit: int = 100) -> list[RecurringSchedule]:
        rows = self.postgres.execute(
            """
            SELECT * FROM recurring_schedules
            WHERE status = %s
            ORDER BY updated_at DESC
            LIMIT %s
            """,
            (status.value, limit)
        )
        return [RecurringSchedule.model_validate(row) for row in rows]

    def save(
        self,
        schedule: RecurringSchedule,
        expected_status: RecurringStatus | None = None,
        expected_next_process_date: datetime | None = None,
    ) -> RecurringSchedule | None:
        """
        Persist the mutable fields of `schedule`.

        Returns:
            The stored schedule, or None if the row is gone or a guard failed.
        """
        assignments = ", ".join(f"{column} = %s" for column in _MUTABLE_COLUMNS)
        params = [db_value(getattr(schedule, column)) for column in _MUTABLE_COLUMNS]

        where = "id = %s"
        params.append(schedule.id)
        if expected_status is not None:
            where += " AND status = %s"
            params.append(expected_status.value)
        if expected_next_process_date is not None:
            where += " AND next_process_date = %s"
            params.append(expected_next_process_date)

        rows = self.postgres.execute_returning(
            f"UPDATE recurring_schedules SET {assignments} WHERE {where} RETURNING *",
            tuple(params)
        )
        if not rows:
            return None
        return RecurringSchedule.model_validate(rows[0])
