"""
Billing worker process.

Wires the Postgres stores, Vault-sourced gateway clients and event handlers,
then runs the recurring processor and the message processor side by side
until SIGINT or SIGTERM. On shutdown each loop finishes its in-flight item
and exits.

Environment:
    VAULT_ADDR, VAULT_ROLE_ID, VAULT_SECRET_ID: Vault AppRole credentials
    LOG_LEVEL: logging level (default INFO)
    BILLING_EMAIL_SENDER: default From address for emails
    BILLING_DISABLE_VALKEY: set to "1" to run without persisted retry cadence
"""

import logging
import os
import signal
import threading

from dotenv import load_dotenv

from clients.email_client import EmailGatewayClient
from clients.payment_gateway import StripePaymentGateway
from clients.postgres_client import PostgresClient
from clients.sms_client import TwilioSmsClient
from clients.valkey_client import ValkeyClient
from clients.vault_client import (
    get_database_url,
    get_email_config,
    get_stripe_config,
    get_twilio_config,
    get_valkey_url,
)
from core.audit import AuditLogger
from core.config import BillingConfig
from core.event_bus import EventBus
from core.handlers.recurring_failure_handler import handle_recurring_schedule_failed
from core.handlers.recurring_thank_you_handler import handle_recurring_charge_succeeded
from core.repositories import (
    PostgresDonationRepository,
    PostgresMessageRepository,
    PostgresRecurringScheduleRepository,
    PostgresSettingsRepository,
    PostgresTemplateRepository,
)
from core.services.message_service import MessageService
from core.services.recurring_service import RecurringScheduleService
from core.services.settings_service import SettingsService
from core.services.template_service import TemplateService
from core.workers.message_processor import MessageProcessor
from core.workers.recurring_processor import RecurringProcessor
from utils.actor_context import actor_context

logger = logging.getLogger(__name__)

STARTUP_ACTOR = "system:worker-startup"


def build_workers(postgres: PostgresClient, valkey: ValkeyClient | None) -> list:
    """Assemble services and both processors. Reads secrets from Vault."""
    twilio = get_twilio_config()
    config = BillingConfig(
        default_email_sender=os.getenv("BILLING_EMAIL_SENDER", ""),
        default_sms_sender=twilio["from_number"],
    )

    email_config = get_email_config()
    email = EmailGatewayClient(
        gateway_url=email_config["gateway_url"],
        api_key=email_config["api_key"],
        hmac_secret=email_config["hmac_secret"],
        default_sender=config.default_email_sender,
    )
    sms = TwilioSmsClient(
        account_sid=twilio["account_sid"],
        auth_token=twilio["auth_token"],
        from_number=twilio["from_number"],
    )
    gateway = StripePaymentGateway(get_stripe_config()["secret_key"])

    audit = AuditLogger(postgres)
    event_bus = EventBus()
    templates = PostgresTemplateRepository(postgres)

    settings = SettingsService(PostgresSettingsRepository(postgres))
    template_service = TemplateService(templates, audit)
    message_service = MessageService(
        messages=PostgresMessageRepository(postgres),
        templates=templates,
        email=email,
        sms=sms,
        audit=audit,
        config=config,
    )
    recurring_service = RecurringScheduleService(
        schedules=PostgresRecurringScheduleRepository(postgres),
        donations=PostgresDonationRepository(postgres),
        gateway=gateway,
        audit=audit,
        event_bus=event_bus,
        config=config,
    )

    event_bus.subscribe("RecurringChargeSucceeded", handle_recurring_charge_succeeded(message_service))
    event_bus.subscribe("RecurringScheduleFailed", handle_recurring_schedule_failed(message_service))

    with actor_context(STARTUP_ACTOR):
        template_service.seed_default_templates()
        message_config = settings.resolve_message_intervals(config)

    logger.info(
        f"Message intervals: scheduled {message_config.scheduled_interval_minutes}m, "
        f"failed retry {message_config.failed_retry_interval_minutes}m"
    )

    return [
        RecurringProcessor(recurring_service, config),
        MessageProcessor(message_service, message_config, cadence_store=valkey),
    ]


def main() -> None:
    load_dotenv()
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    postgres = PostgresClient(get_database_url())
    valkey = None
    if os.getenv("BILLING_DISABLE_VALKEY") != "1":
        valkey = ValkeyClient(get_valkey_url())

    workers = build_workers(postgres, valkey)

    shutdown = threading.Event()

    def request_shutdown(signum, frame):
        logger.info(f"Received signal {signum}, shutting down")
        shutdown.set()

    signal.signal(signal.SIGINT, request_shutdown)
    signal.signal(signal.SIGTERM, request_shutdown)

    for worker in workers:
        worker.start()

    try:
        while not shutdown.wait(timeout=1.0):
            pass
    finally:
        for worker in workers:
            worker.stop()
        if valkey is not None:
            valkey.close()
        postgres.close()


if __name__ == "__main__":
    main()
