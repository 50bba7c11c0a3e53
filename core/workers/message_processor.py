"""
Sends scheduled messages and retries failed ones.

Two cadences share one loop. The loop wakes on the shorter interval and
always runs the scheduled pass; the failed-retry pass runs only when the
failed-retry interval has elapsed since the last one. The time of the last
retry pass lives on the instance and, when a cadence store is configured, is
persisted there so a restart does not reset it.
"""

import logging
from datetime import datetime, timedelta
from typing import Callable

from core.config import BillingConfig
from core.ports import CadenceStateStore
from core.services.message_service import MessageService
from core.workers.base import PollingWorker
from utils.timezone import now_utc, parse_iso

logger = logging.getLogger(__name__)

MESSAGE_PROCESSOR_ACTOR = "system:message-processor"
LAST_FAILED_RETRY_KEY = "billing:messages:last_failed_retry_at"


class MessageProcessor(PollingWorker):
    """
    Message scheduling and retry loop.

    `config` must already carry the resolved intervals
    (see SettingsService.resolve_message_intervals).
    """

    name = "message-processor"

    def __init__(
        self,
        message_service: MessageService,
        config: BillingConfig,
        cadence_store: CadenceStateStore | None = None,
        clock: Callable[[], datetime] = now_utc,
        actor: str = MESSAGE_PROCESSOR_ACTOR,
    ):
        interval_minutes = min(config.scheduled_interval_minutes, config.failed_retry_interval_minutes)
        super().__init__(interval_minutes * 60, actor)
        self.message_service = message_service
        self.failed_retry_interval = timedelta(minutes=config.failed_retry_interval_minutes)
        self.cadence_store = cadence_store
        self.clock = clock
        self.last_failed_retry_at = self._load_last_failed_retry()

    def run_once(self) -> int:
        return self.process_scheduled_and_failed()

    def process_scheduled_and_failed(self) -> int:
        """
        Run the scheduled pass, then the failed-retry pass if it is due.

        Returns:
            Number of messages sent across both passes
        """
        sent = self.message_service.process_scheduled(stop_event=self.stop_event)

        now = self.clock()
        if self.stop_event.is_set() or not self.failed_retry_due(now):
            return sent

        sent += self.message_service.process_failed(stop_event=self.stop_event)
        self._record_failed_retry(now)
        return sent

    def failed_retry_due(self, now: datetime) -> bool:
        if self.last_failed_retry_at is None:
            return True
        return now - self.last_failed_retry_at >= self.failed_retry_interval

    def _record_failed_retry(self, now: datetime) -> None:
        self.last_failed_retry_at = now
        if self.cadence_store is None:
            return
        try:
            self.cadence_store.set(LAST_FAILED_RETRY_KEY, now.isoformat())
        except Exception:
            logger.exception("Could not persist failed-retry timestamp")

    def _load_last_failed_retry(self) -> datetime | None:
        if self.cadence_store is None:
            return None
        try:
            raw = self.cadence_store.get(LAST_FAILED_RETRY_KEY)
        except Exception:
            logger.exception("Could not read failed-retry timestamp, retry pass will run on first tick")
            return None
        if not raw:
            return None
        try:
            return parse_iso(raw)
        except ValueError:
            logger.warning(f"Ignoring unparseable failed-retry timestamp {raw!r}")
            return None
