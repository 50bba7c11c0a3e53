"""Polls for due recurring schedules and charges them."""

import logging

from core.config import BillingConfig
from core.services.recurring_service import RecurringScheduleService
from core.workers.base import PollingWorker

logger = logging.getLogger(__name__)

RECURRING_PROCESSOR_ACTOR = "system:recurring-processor"


class RecurringProcessor(PollingWorker):
    """Runs RecurringScheduleService.process_due() on the recurring interval."""

    name = "recurring-processor"

    def __init__(
        self,
        recurring_service: RecurringScheduleService,
        config: BillingConfig,
        actor: str = RECURRING_PROCESSOR_ACTOR,
    ):
        super().__init__(config.recurring_interval_minutes * 60, actor)
        self.recurring_service = recurring_service

    def run_once(self) -> int:
        return self.recurring_service.process_due(stop_event=self.stop_event)
