"""Key/value settings persistence."""

from typing import Protocol

from clients.postgres_client import PostgresClient
from utils.timezone import now_utc


class ConfigurationStore(Protocol):
    """String key/value configuration store."""

    def get_value(self, key: str) -> str | None: ...

    def set_value(self, key: str, value: str) -> None: ...


class PostgresSettingsRepository:
    """ConfigurationStore backed by the settings table."""

    def __init__(self, postgres: PostgresClient):
        self.postgres = postgres

    def get_value(self, key: str) -> str | None:
        return self.postgres.execute_scalar(
            "SELECT value FROM settings WHERE key = %s",
            (key,)
        )

    def set_value(self, key: str, value: str) -> None:
        self.postgres.execute(
            """
            INSERT INTO settings (key, value, updated_at)
            VALUES (%s, %s, %s)
            ON CONFLICT (key) DO UPDATE
            SET value = EXCLUDED.value, updated_at = EXCLUDED.updated_at
            """,
            (key, value, now_utc())
        )
