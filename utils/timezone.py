"""UTC-everywhere time handling. Eliminates timezone bugs at the source."""

from datetime import datetime, timezone

from dateutil.relativedelta import relativedelta


def now_utc() -> datetime:
    """
    Current time in UTC.

    Use this instead of datetime.now() everywhere.
    """
    return datetime.now(timezone.utc)


def to_utc(dt: datetime) -> datetime:
    """
    Convert a datetime to UTC.

    Raises ValueError if datetime is naive (no timezone).
    """
    if dt.tzinfo is None:
        raise ValueError(
            "Cannot convert naive datetime to UTC. Datetime must be timezone-aware."
        )
    return dt.astimezone(timezone.utc)


def parse_iso(iso_string: str) -> datetime:
    """
    Parse ISO 8601 datetime string to UTC datetime.

    Raises ValueError if string has no timezone info.
    """
    dt = datetime.fromisoformat(iso_string)
    if dt.tzinfo is None:
        raise ValueError(
            "Cannot parse naive datetime string. "
            "Include timezone offset (e.g., 'Z' or '+00:00')."
        )
    return to_utc(dt)


def add_months(dt: datetime, months: int) -> datetime:
    """
    Add calendar months, clamping to the last day of a shorter month.

    Jan 31 + 1 month = Feb 28 (or Feb 29 in a leap year).
    """
    return dt + relativedelta(months=months)


def add_years(dt: datetime, years: int) -> datetime:
    """Add calendar years. Feb 29 + 1 year = Feb 28."""
    return dt + relativedelta(years=years)
