"""
Settings service.

Thin typed layer over the key/value configuration store. Integer settings
fall back to their default when absent or unparseable; absent keys are seeded
with the default so operators can find and edit them.
"""

import logging

from core.config import BillingConfig
from core.repositories import ConfigurationStore

logger = logging.getLogger(__name__)

SCHEDULED_INTERVAL_KEY = "Messages.ScheduledIntervalMinutes"
FAILED_RETRY_INTERVAL_KEY = "Messages.FailedRetryIntervalMinutes"


class SettingsService:
    """Typed access to the configuration store."""

    def __init__(self, store: ConfigurationStore):
        self.store = store

    def get_value(self, key: str, default: str | None = None) -> str | None:
        value = self.store.get_value(key)
        return default if value is None else value

    def set_value(self, key: str, value: str) -> None:
        self.store.set_value(key, value)
        logger.info(f"Setting {key} = {value}")

    def get_int(self, key: str, default: int, minimum: int = 1, seed: bool = True) -> int:
        """
        Read an integer setting.

        Args:
            key: Setting key
            default: Value used when the key is absent, unparseable or below minimum
            minimum: Smallest accepted value
            seed: Store the default when the key is absent

        Returns:
            The stored value, or the default
        """
        raw = self.store.get_value(key)
        if raw is None:
            if seed:
                self.store.set_value(key, str(default))
                logger.info(f"Seeded setting {key} = {default}")
            return default

        try:
            value = int(raw.strip())
        except ValueError:
            logger.warning(f"Setting {key} has non-integer value {raw!r}, using {default}")
            return default

        if value < minimum:
            logger.warning(f"Setting {key} = {value} is below {minimum}, using {default}")
            return default
        return value

    def resolve_message_intervals(self, config: BillingConfig) -> BillingConfig:
        """
        Copy of `config` with the message intervals read from the store.

        Resolved once at worker start; later edits take effect on restart.
        """
        return config.model_copy(update={
            "scheduled_interval_minutes": self.get_int(
                SCHEDULED_INTERVAL_KEY, config.scheduled_interval_minutes
            ),
            "failed_retry_interval_minutes": self.get_int(
                FAILED_RETRY_INTERVAL_KEY, config.failed_retry_interval_minutes
            ),
        })
