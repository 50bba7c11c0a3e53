"""Helpers shared by the Postgres repositories."""

from enum import Enum
from typing import Any, Iterable

from pydantic import BaseModel


def db_value(value: Any) -> Any:
    """Unwrap enums; everything else is adapted by psycopg2 directly."""
    if isinstance(value, Enum):
        return value.value
    return value


def insert_statement(table: str, columns: Iterable[str]) -> str:
    """Build `INSERT ... RETURNING *` for the given columns."""
    columns = list(columns)
    placeholders = ", ".join(["%s"] * len(columns))
    return (
        f"INSERT INTO {table} ({', '.join(columns)}) "
        f"VALUES ({placeholders}) RETURNING *"
    )


def model_values(model: BaseModel, columns: Iterable[str]) -> tuple:
    """Column values for `model` in column order."""
    return tuple(db_value(getattr(model, column)) for column in columns)
