"""Tests for PostgresRecurringScheduleRepository SQL and row mapping."""

from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import Mock
from uuid import uuid4

import pytest

from core.models import RecurringFrequency, RecurringSchedule, RecurringStatus
from core.repositories import PostgresRecurringScheduleRepository

NOW = datetime(2025, 3, 1, tzinfo=timezone.utc)


@pytest.fixture
def schedule():
    return RecurringSchedule(
        id=uuid4(), donor_id=uuid4(), donor_email=None, donor_name=None,
        amount=Decimal("25.00"), currency="USD",
        frequency=RecurringFrequency.MONTHLY, payment_method_token="pm_1",
        pay_transaction_fee=False, transaction_fee_amount=Decimal("0.00"),
        status=RecurringStatus.ACTIVE, start_date=NOW, end_date=None,
        next_process_date=NOW, last_processed_date=None,
        successful_count=0, failed_attempt_count=0, last_error_message=None,
        donation_message=None, referral_code=None, campaign_code=None,
        cancelled_at=None, cancelled_by=None, cancellation_reason=None,
        created_at=NOW, created_by="t", updated_at=NOW, updated_by="t",
    )


@pytest.fixture
def postgres():
    return Mock()


@pytest.fixture
def repo(postgres):
    return PostgresRecurringScheduleRepository(postgres)


class TestReads:

    def test_get_by_id_missing(self, repo, postgres):
        postgres.execute_single.return_value = None
        assert repo.get_by_id(uuid4()) is None

    def test_get_by_id_maps_row(self, repo, postgres, schedule):
        postgres.execute_single.return_value = schedule.model_dump()

        loaded = repo.get_by_id(schedule.id)

        assert loaded == schedule

    def test_list_due_filters_active_and_limits(self, repo, postgres, schedule):
        postgres.execute.return_value = [schedule.model_dump()]

        due = repo.list_due(NOW, 10)

        query, params = postgres.execute.call_args[0]
        assert "next_process_date <= %s" in query
        assert "ORDER BY next_process_date ASC" in query
        assert params == ("active", NOW, 10)
        assert [s.id for s in due] == [schedule.id]


class TestAdd:

    def test_add_inserts_every_column(self, repo, postgres, schedule):
        postgres.execute_returning.return_value = [schedule.model_dump()]

        repo.add(schedule)

        query, params = postgres.execute_returning.call_args[0]
        assert query.startswith("INSERT INTO recurring_schedules (id, donor_id")
        assert len(params) == len(RecurringSchedule.model_fields)
        assert "monthly" in params
        assert "active" in params


class TestGuardedSave:

    def test_unguarded_save(self, repo, postgres, schedule):
        postgres.execute_returning.return_value = [schedule.model_dump()]

        assert repo.save(schedule) == schedule

        query, params = postgres.execute_returning.call_args[0]
        assert query.endswith("WHERE id = %s RETURNING *")
        assert params[-1] == schedule.id

    def test_guards_appended_to_where(self, repo, postgres, schedule):
        postgres.execute_returning.return_value = [schedule.model_dump()]

        repo.save(schedule, expected_status=RecurringStatus.ACTIVE, expected_next_process_date=NOW)

        query, params = postgres.execute_returning.call_args[0]
        assert "WHERE id = %s AND status = %s AND next_process_date = %s" in query
        assert params[-3:] == (schedule.id, "active", NOW)

    def test_failed_guard_returns_none(self, repo, postgres, schedule):
        postgres.execute_returning.return_value = []

        assert repo.save(schedule, expected_status=RecurringStatus.ACTIVE) is None

    def test_immutable_columns_not_updated(self, repo, postgres, schedule):
        postgres.execute_returning.return_value = []

        repo.save(schedule)

        query = postgres.execute_returning.call_args[0][0]
        set_clause = query.split(" WHERE ")[0]
        assert "donor_id" not in set_clause
        assert "created_by" not in set_clause
        assert "frequency" not in set_clause
