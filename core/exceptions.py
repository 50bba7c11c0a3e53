"""Typed exceptions for billing and messaging failures."""


class BillingError(Exception):
    """Base class for recurring billing and messaging errors."""


class InvalidRequestError(BillingError, ValueError):
    """Bad input to a public operation. Raised to the caller, never swallowed."""


class NotFoundError(BillingError, ValueError):
    """Referenced entity does not exist."""

    def __init__(self, entity_type: str, entity_id: object):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} {entity_id} not found")


class MissingPlaceholdersError(InvalidRequestError):
    """Template placeholders without a supplied value."""

    def __init__(self, missing: list[str]):
        self.missing = missing
        super().__init__(f"Missing required placeholders: {', '.join(missing)}")


class InvalidTransitionError(BillingError):
    """Requested status change is not allowed from the current status."""

    def __init__(self, schedule_id: object, current: str, target: str):
        self.schedule_id = schedule_id
        self.current = current
        self.target = target
        super().__init__(
            f"Recurring schedule {schedule_id} cannot move from {current} to {target}"
        )
