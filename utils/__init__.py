"""Utility modules for cross-cutting concerns."""

from utils.timezone import now_utc, to_utc, parse_iso, add_months, add_years
from utils.actor_context import (
    get_current_actor,
    set_current_actor,
    clear_current_actor,
    actor_context,
)
