"""Record stores: protocols consumed by the services and their Postgres implementations."""

from core.repositories.recurring_schedule_repository import (
    RecurringScheduleStore, PostgresRecurringScheduleRepository,
)
from core.repositories.donation_repository import DonationStore, PostgresDonationRepository
from core.repositories.message_repository import MessageStore, PostgresMessageRepository
from core.repositories.template_repository import TemplateStore, PostgresTemplateRepository
from core.repositories.settings_repository import ConfigurationStore, PostgresSettingsRepository

__all__ = [
    "RecurringScheduleStore", "PostgresRecurringScheduleRepository",
    "DonationStore", "PostgresDonationRepository",
    "MessageStore", "PostgresMessageRepository",
    "TemplateStore", "PostgresTemplateRepository",
    "ConfigurationStore", "PostgresSettingsRepository",
]
