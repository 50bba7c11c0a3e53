"""Tests for EventBus."""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from core.event_bus import EventBus
from core.events import RecurringChargeFailed, RecurringChargeSucceeded, RecurringScheduleFailed
from core.models import RecurringFrequency, RecurringSchedule, RecurringStatus


# =============================================================================
# FIXTURES: lightweight in-memory objects, no DB needed
# =============================================================================


@pytest.fixture
def _schedule():
    now = datetime(2025, 2, 1, tzinfo=timezone.utc)
    return RecurringSchedule(
        id=uuid4(), donor_id=uuid4(),
        donor_email="ann@example.com", donor_name="Ann",
        amount=Decimal("25.00"), currency="USD",
        frequency=RecurringFrequency.MONTHLY, payment_method_token="pm_1",
        pay_transaction_fee=False, transaction_fee_amount=Decimal("0.00"),
        status=RecurringStatus.ACTIVE,
        start_date=now, end_date=None, next_process_date=now,
        last_processed_date=None, successful_count=0, failed_attempt_count=0,
        last_error_message=None, donation_message=None, referral_code=None,
        campaign_code=None, cancelled_at=None, cancelled_by=None,
        cancellation_reason=None, created_at=now, created_by="tester",
        updated_at=now, updated_by="tester",
    )


# =============================================================================
# SUBSCRIBE AND PUBLISH
# =============================================================================


class TestSubscribeAndPublish:

    def test_single_handler_receives_the_exact_event_object(self, _schedule):
        bus = EventBus()
        received = []
        bus.subscribe("RecurringScheduleFailed", received.append)

        event = RecurringScheduleFailed.create(schedule=_schedule)
        bus.publish(event)

        assert len(received) == 1
        assert received[0] is event

    def test_multiple_handlers_called_in_subscription_order(self, _schedule):
        bus = EventBus()
        order = []
        bus.subscribe("RecurringScheduleFailed", lambda e: order.append("A"))
        bus.subscribe("RecurringScheduleFailed", lambda e: order.append("B"))
        bus.subscribe("RecurringScheduleFailed", lambda e: order.append("C"))

        bus.publish(RecurringScheduleFailed.create(schedule=_schedule))

        assert order == ["A", "B", "C"]

    def test_type_isolation_only_matching_subscribers_called(self, _schedule):
        bus = EventBus()
        failed_calls = []
        succeeded_calls = []
        bus.subscribe("RecurringChargeFailed", failed_calls.append)
        bus.subscribe("RecurringChargeSucceeded", succeeded_calls.append)

        bus.publish(RecurringChargeFailed.create(schedule=_schedule, error_message="declined"))

        assert len(failed_calls) == 1
        assert succeeded_calls == []

    def test_no_subscribers_does_not_raise(self, _schedule):
        bus = EventBus()
        bus.publish(RecurringChargeSucceeded.create(schedule=_schedule, donation=None))


# =============================================================================
# HANDLER ERROR ISOLATION
# =============================================================================


class TestHandlerErrorIsolation:

    def test_handler_exception_does_not_propagate(self, _schedule):
        bus = EventBus()

        def failing_handler(event):
            raise RuntimeError("boom")

        bus.subscribe("RecurringScheduleFailed", failing_handler)

        # Must not raise
        bus.publish(RecurringScheduleFailed.create(schedule=_schedule))

    def test_handler_exception_is_logged_with_event_type_and_event_id(self, _schedule, caplog):
        bus = EventBus()

        def failing_handler(event):
            raise ValueError("template missing")

        bus.subscribe("RecurringScheduleFailed", failing_handler)

        with caplog.at_level(logging.ERROR, logger="core.event_bus"):
            event = RecurringScheduleFailed.create(schedule=_schedule)
            bus.publish(event)

        assert "template missing" in caplog.text
        assert "failing_handler" in caplog.text
        assert "RecurringScheduleFailed" in caplog.text
        assert event.event_id in caplog.text

    def test_second_handler_runs_after_first_handler_raises(self, _schedule):
        bus = EventBus()
        received = []

        def failing_handler(event):
            raise RuntimeError("boom")

        bus.subscribe("RecurringScheduleFailed", failing_handler)
        bus.subscribe("RecurringScheduleFailed", received.append)

        bus.publish(RecurringScheduleFailed.create(schedule=_schedule))

        assert len(received) == 1
