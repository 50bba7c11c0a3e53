"""Shared test fixtures for the billing test suite."""

from pathlib import Path

import pytest
from dotenv import load_dotenv

# Load .env file BEFORE any other imports that might use env vars
load_dotenv(Path(__file__).parent.parent / ".env", override=True)

# Reset vault client singleton to pick up env vars
import clients.vault_client as vault_module
vault_module._vault_client_instance = None
vault_module._secret_cache.clear()

from core.config import BillingConfig
from core.event_bus import EventBus
from core.services.message_service import MessageService
from core.services.recurring_service import RecurringScheduleService
from core.services.settings_service import SettingsService
from core.services.template_service import TemplateService
from tests.fakes import (
    FakeEmailTransport,
    FakePaymentGateway,
    FakeSmsTransport,
    InMemoryDonationStore,
    InMemoryMessageStore,
    InMemoryScheduleStore,
    InMemorySettingsStore,
    InMemoryTemplateStore,
    MutableClock,
    RecordingAudit,
)
from utils.actor_context import actor_context, clear_current_actor


# =============================================================================
# ACTOR CONTEXT
# =============================================================================

TEST_ACTOR = "tester@test.local"


@pytest.fixture(autouse=True)
def reset_actor_context():
    """Ensure clean actor context before and after each test."""
    clear_current_actor()
    yield
    clear_current_actor()


@pytest.fixture
def as_test_actor():
    """Run the test body as the primary test actor."""
    with actor_context(TEST_ACTOR):
        yield TEST_ACTOR


# =============================================================================
# IN-MEMORY STORES AND COLLABORATORS
# =============================================================================


@pytest.fixture
def clock():
    return MutableClock()


@pytest.fixture
def config():
    return BillingConfig(default_email_sender="donations@example.org")


@pytest.fixture
def schedule_store():
    return InMemoryScheduleStore()


@pytest.fixture
def donation_store():
    return InMemoryDonationStore()


@pytest.fixture
def message_store():
    return InMemoryMessageStore()


@pytest.fixture
def template_store():
    return InMemoryTemplateStore()


@pytest.fixture
def settings_store():
    return InMemorySettingsStore()


@pytest.fixture
def gateway():
    return FakePaymentGateway()


@pytest.fixture
def email_transport():
    return FakeEmailTransport()


@pytest.fixture
def sms_transport():
    return FakeSmsTransport()


@pytest.fixture
def audit():
    return RecordingAudit()


@pytest.fixture
def event_bus():
    return EventBus()


# =============================================================================
# SERVICES
# =============================================================================


@pytest.fixture
def recurring_service(schedule_store, donation_store, gateway, audit, event_bus, config, clock):
    return RecurringScheduleService(
        schedules=schedule_store,
        donations=donation_store,
        gateway=gateway,
        audit=audit,
        event_bus=event_bus,
        config=config,
        clock=clock,
    )


@pytest.fixture
def template_service(template_store, audit, clock):
    return TemplateService(template_store, audit, clock=clock)


@pytest.fixture
def message_service(message_store, template_store, email_transport, sms_transport, audit, config, clock):
    return MessageService(
        messages=message_store,
        templates=template_store,
        email=email_transport,
        sms=sms_transport,
        audit=audit,
        config=config,
        clock=clock,
    )


@pytest.fixture
def settings_service(settings_store):
    return SettingsService(settings_store)
