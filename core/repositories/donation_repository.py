"""Donation persistence. Donations are insert-only."""

from typing import Protocol
from uuid import UUID

from clients.postgres_client import PostgresClient
from core.models import Donation
from core.repositories.base import insert_statement, model_values

_COLUMNS = tuple(Donation.model_fields)


class DonationStore(Protocol):
    """Record store contract for donations."""

    def add(self, donation: Donation) -> Donation: ...

    def list_for_schedule(self, schedule_id: UUID) -> list[Donation]: ...


class PostgresDonationRepository:
    """DonationStore backed by the donations table."""

    def __init__(self, postgres: PostgresClient):
        self.postgres = postgres

    def add(self, donation: Donation) -> Donation:
        row = self.postgres.execute_returning(
            insert_statement("donations", _COLUMNS),
            model_values(donation, _COLUMNS),
        )[0]
        return Donation.model_validate(row)

    def list_for_schedule(self, schedule_id: UUID) -> list[Donation]:
        rows = self.postgres.execute(
            """
            SELECT * FROM donations
            WHERE schedule_id = %s
            ORDER BY created_at DESC
            """,
            (schedule_id,)
        )
        return [Donation.model_validate(row) for row in rows]
