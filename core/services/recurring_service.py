"""
Recurring schedule service.

Owns the lifecycle of a recurring pledge: creation, pause/resume/cancel,
payment method refresh, and the per-cycle charge attempt. Every processing
write is guarded on the status and next_process_date read before the charge,
so a schedule that another worker already advanced is skipped rather than
charged twice.
"""

import logging
import threading
from datetime import datetime
from decimal import Decimal
from typing import Callable
from uuid import UUID, uuid4

from core.audit import AuditLogger, AuditAction, compute_changes
from core.config import BillingConfig
from core.event_bus import EventBus
from core.events import RecurringChargeFailed, RecurringChargeSucceeded, RecurringScheduleFailed
from core.exceptions import InvalidRequestError, InvalidTransitionError, NotFoundError
from core.models import (
    MIN_RECURRING_AMOUNT,
    ChargeOutcome,
    ChargeOutcomeStatus,
    ChargeResult,
    Donation,
    RecurringFrequency,
    RecurringSchedule,
    RecurringScheduleCreate,
    RecurringStatus,
)
from core.ports import PaymentGateway
from core.repositories import DonationStore, RecurringScheduleStore
from utils.actor_context import get_current_actor
from utils.timezone import add_months, add_years, now_utc, to_utc

logger = logging.getLogger(__name__)

END_DATE_REACHED = "End date reached"


def advance(when: datetime, frequency: RecurringFrequency) -> datetime:
    """
    Next charge date one calendar cycle after `when`.

    Month ends clamp (Jan 31 + 1 month = Feb 28/29).
    """
    if frequency == RecurringFrequency.MONTHLY:
        return add_months(when, 1)
    if frequency == RecurringFrequency.ANNUALLY:
        return add_years(when, 1)
    raise ValueError(f"Unsupported frequency: {frequency}")


def order_reference_for(schedule_id: UUID, attempted_at: datetime) -> str:
    """Gateway order reference, unique per attempt."""
    return f"recurring-{schedule_id}-{attempted_at:%Y%m%d%H%M%S}"


class RecurringScheduleService:
    """Service for recurring schedule operations and charge processing."""

    def __init__(
        self,
        schedules: RecurringScheduleStore,
        donations: DonationStore,
        gateway: PaymentGateway,
        audit: AuditLogger,
        event_bus: EventBus,
        config: BillingConfig | None = None,
        clock: Callable[[], datetime] = now_utc,
    ):
        self.schedules = schedules
        self.donations = donations
        self.gateway = gateway
        self.audit = audit
        self.event_bus = event_bus
        self.config = config or BillingConfig()
        self.clock = clock

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def create(self, data: RecurringScheduleCreate) -> RecurringSchedule:
        """
        Set up a new recurring schedule.

        The first charge is due one cycle after the start date.

        Args:
            data: Schedule creation data

        Returns:
            Created schedule in ACTIVE status
        """
        actor = get_current_actor()
        now = self.clock()
        start_date = to_utc(data.start_date)

        if data.end_date is not None and to_utc(data.end_date) <= start_date:
            raise InvalidRequestError("end_date must be after start_date")

        schedule = RecurringSchedule(
            id=uuid4(),
            donor_id=data.donor_id,
            donor_email=data.donor_email,
            donor_name=data.donor_name,
            amount=data.amount,
            currency=data.currency.upper(),
            frequency=data.frequency,
            payment_method_token=data.payment_method_token,
            pay_transaction_fee=data.pay_transaction_fee,
            transaction_fee_amount=data.transaction_fee_amount,
            status=RecurringStatus.ACTIVE,
            start_date=start_date,
            end_date=to_utc(data.end_date) if data.end_date else None,
            next_process_date=advance(start_date, data.frequency),
            last_processed_date=None,
            successful_count=0,
            failed_attempt_count=0,
            last_error_message=None,
            donation_message=data.donation_message,
            referral_code=data.referral_code,
            campaign_code=data.campaign_code,
            cancelled_at=None,
            cancelled_by=None,
            cancellation_reason=None,
            created_at=now,
            created_by=actor,
            updated_at=now,
            updated_by=actor,
        )

        created = self.schedules.add(schedule)

        self.audit.log_change(
            entity_type="recurring_schedule",
            entity_id=created.id,
            action=AuditAction.CREATE,
            changes={"created": data.model_dump(mode="json", exclude_none=True)}
        )

        logger.info(
            f"Created {created.frequency.value} schedule {created.id} "
            f"for {created.amount} {created.currency}, first charge {created.next_process_date.isoformat()}"
        )
        return created

    def get_by_id(self, schedule_id: UUID) -> RecurringSchedule | None:
        """Get schedule by ID, or None if it doesn't exist."""
        return self.schedules.get_by_id(schedule_id)

    def list_for_donor(self, donor_id: UUID) -> list[RecurringSchedule]:
        """All schedules of a donor, newest first."""
        return self.schedules.list_for_donor(donor_id)

    def list_by_status(self, status: RecurringStatus, limit: int = 100) -> list[RecurringSchedule]:
        return self.schedules.list_by_status(status, limit)

    def pause(self, schedule_id: UUID) -> RecurringSchedule:
        """
        Pause an active schedule.

        Raises:
            NotFoundError: If schedule not found
            InvalidTransitionError: If schedule is not ACTIVE
        """
        current = self._get_or_raise(schedule_id)
        if current.status != RecurringStatus.ACTIVE:
            raise InvalidTransitionError(schedule_id, current.status.value, RecurringStatus.PAUSED.value)

        return self._apply(current, {"status": RecurringStatus.PAUSED}, RecurringStatus.PAUSED)

    def resume(self, schedule_id: UUID) -> RecurringSchedule:
        """
        Resume a paused schedule.

        If the stored next_process_date elapsed during the pause it is moved
        up to now, so the missed cycles collapse into a single due charge.
        The date is set to now rather than now plus one cycle, so the first
        charge after a late resume happens on the next pass.

        Raises:
            NotFoundError: If schedule not found
            InvalidTransitionError: If schedule is not PAUSED
        """
        current = self._get_or_raise(schedule_id)
        if current.status != RecurringStatus.PAUSED:
            raise InvalidTransitionError(schedule_id, current.status.value, RecurringStatus.ACTIVE.value)

        now = self.clock()
        updates = {"status": RecurringStatus.ACTIVE}
        if current.next_process_date < now:
            updates["next_process_date"] = now

        return self._apply(current, updates, RecurringStatus.ACTIVE)

    def cancel(self, schedule_id: UUID, reason: str | None = None) -> RecurringSchedule:
        """
        Cancel a schedule. Terminal.

        Cancelling an already cancelled schedule returns it unchanged.

        Raises:
            NotFoundError: If schedule not found
        """
        current = self._get_or_raise(schedule_id)
        if current.status == RecurringStatus.CANCELLED:
            return current

        return self._cancel(current, reason, get_current_actor())

    def update_payment_method(self, schedule_id: UUID, payment_method_token: str) -> RecurringSchedule:
        """
        Replace the payment method and clear the failure history.

        A FAILED schedule goes back to ACTIVE. If its charge date passed while
        it was failed, the next charge is due immediately.

        Raises:
            NotFoundError: If schedule not found
            InvalidRequestError: If the token is empty
            InvalidTransitionError: If schedule is CANCELLED
        """
        if not payment_method_token or not payment_method_token.strip():
            raise InvalidRequestError("payment_method_token is required")

        current = self._get_or_raise(schedule_id)
        if current.status == RecurringStatus.CANCELLED:
            raise InvalidTransitionError(schedule_id, current.status.value, current.status.value)

        updates = {
            "payment_method_token": payment_method_token.strip(),
            "failed_attempt_count": 0,
            "last_error_message": None,
        }
        target = current.status
        if current.status == RecurringStatus.FAILED:
            target = RecurringStatus.ACTIVE
            updates["status"] = RecurringStatus.ACTIVE
            now = self.clock()
            if current.next_process_date < now:
                updates["next_process_date"] = now

        return self._apply(current, updates, target)

    def update_amount(self, schedule_id: UUID, amount: Decimal) -> RecurringSchedule:
        """
        Change the per-cycle amount.

        Raises:
            NotFoundError: If schedule not found
            InvalidRequestError: If amount is below the minimum
            InvalidTransitionError: If schedule is CANCELLED
        """
        if amount < MIN_RECURRING_AMOUNT:
            raise InvalidRequestError(f"Recurring amount must be at least {MIN_RECURRING_AMOUNT}")
        if amount != amount.quantize(Decimal("0.01")):
            raise InvalidRequestError("Recurring amount must have at most 2 decimal places")

        current = self._get_or_raise(schedule_id)
        if current.status == RecurringStatus.CANCELLED:
            raise InvalidTransitionError(schedule_id, current.status.value, current.status.value)

        return self._apply(current, {"amount": amount}, current.status)

    # =========================================================================
    # PROCESSING
    # =========================================================================

    def process_due(self, stop_event: threading.Event | None = None) -> int:
        """
        Attempt a charge on every due schedule.

        Schedules are processed one at a time; a failure on one never stops
        the rest. A failure fetching the batch propagates to the caller.

        Args:
            stop_event: When set, no further schedule is started

        Returns:
            Number of successful charges
        """
        now = self.clock()
        due = self.schedules.list_due(now, self.config.recurring_batch_limit)
        if not due:
            return 0

        outcomes: list[ChargeOutcome] = []
        for schedule in due:
            if stop_event is not None and stop_event.is_set():
                logger.info("Stop requested, leaving remaining schedules for the next pass")
                break
            try:
                outcomes.append(self.process_schedule(schedule.id))
            except Exception:
                logger.exception(f"Error processing recurring schedule {schedule.id}")

        succeeded = sum(1 for o in outcomes if o.status == ChargeOutcomeStatus.SUCCEEDED)
        failed = sum(1 for o in outcomes if o.status == ChargeOutcomeStatus.FAILED)
        skipped = sum(1 for o in outcomes if o.status == ChargeOutcomeStatus.SKIPPED)
        logger.info(
            f"Recurring pass: {len(due)} due, {succeeded} succeeded, "
            f"{failed} failed, {skipped} skipped"
        )
        return succeeded

    def process_schedule(self, schedule_id: UUID) -> ChargeOutcome:
        """
        Attempt one charge for a schedule.

        The schedule is re-read first; if it is no longer active and due the
        attempt is skipped without contacting the gateway.

        Returns:
            Outcome of the attempt
        """
        now = self.clock()
        schedule = self.schedules.get_by_id(schedule_id)
        if schedule is None:
            return ChargeOutcome(
                schedule_id=schedule_id,
                status=ChargeOutcomeStatus.SKIPPED,
                error_message="Schedule not found",
            )

        if (
            schedule.status == RecurringStatus.ACTIVE
            and schedule.end_date is not None
            and schedule.end_date <= now
        ):
            self._cancel(schedule, END_DATE_REACHED, get_current_actor(), guard=True)
            return ChargeOutcome(
                schedule_id=schedule_id,
                status=ChargeOutcomeStatus.SKIPPED,
                error_message=END_DATE_REACHED,
            )

        if not schedule.is_due(now):
            return ChargeOutcome(
                schedule_id=schedule_id,
                status=ChargeOutcomeStatus.SKIPPED,
                error_message="Not due",
            )

        order_reference = order_reference_for(schedule.id, now)
        try:
            result = self.gateway.charge(
                amount=schedule.charge_amount,
                currency=schedule.currency,
                payment_method_token=schedule.payment_method_token,
                order_reference=order_reference,
                description=f"Recurring {schedule.frequency.value} donation",
            )
        except Exception as e:
            logger.exception(f"Payment gateway error for schedule {schedule.id}")
            result = ChargeResult(success=False, error_message=str(e) or e.__class__.__name__)

        if result.success:
            return self._record_success(schedule, result, order_reference, now)
        return self._record_failure(schedule, result.error_message or "Payment failed", now)

    def _record_success(
        self,
        schedule: RecurringSchedule,
        result: ChargeResult,
        order_reference: str,
        now: datetime,
    ) -> ChargeOutcome:
        actor = get_current_actor()

        # The charge has gone through. A failed donation insert must still
        # advance the schedule, otherwise the next pass charges again.
        try:
            donation = self._add_donation(schedule, result, order_reference, now, actor)
        except Exception:
            logger.exception(
                f"Charge {result.transaction_id} for schedule {schedule.id} succeeded "
                f"but the donation was not recorded (order {order_reference}); reconcile manually"
            )
            donation = None

        updated = self._save_processed(schedule, {
            "successful_count": schedule.successful_count + 1,
            "next_process_date": advance(now, schedule.frequency),
            "last_processed_date": now,
            "last_error_message": None,
        }, actor, now)

        outcome = ChargeOutcome(
            schedule_id=schedule.id,
            status=ChargeOutcomeStatus.SUCCEEDED,
            transaction_id=result.transaction_id,
        )
        if updated is None:
            logger.warning(
                f"Schedule {schedule.id} changed during charge {result.transaction_id}; "
                f"donation {donation.id if donation else None} recorded, schedule left as is"
            )
            return outcome

        logger.info(
            f"Charged schedule {schedule.id}: {schedule.charge_amount} {schedule.currency} "
            f"(transaction {result.transaction_id}), next {updated.next_process_date.isoformat()}"
        )
        if donation is not None:
            self.event_bus.publish(RecurringChargeSucceeded.create(schedule=updated, donation=donation))
        return outcome

    def _add_donation(
        self,
        schedule: RecurringSchedule,
        result: ChargeResult,
        order_reference: str,
        now: datetime,
        actor: str,
    ) -> Donation:
        return self.donations.add(Donation(
            id=uuid4(),
            schedule_id=schedule.id,
            donor_id=schedule.donor_id,
            donation_amount=schedule.amount,
            transaction_fee_amount=(
                schedule.transaction_fee_amount if schedule.pay_transaction_fee else Decimal("0.00")
            ),
            currency=schedule.currency,
            gateway_transaction_id=result.transaction_id,
            order_reference=order_reference,
            is_monthly=schedule.frequency == RecurringFrequency.MONTHLY,
            is_annual=schedule.frequency == RecurringFrequency.ANNUALLY,
            donation_message=schedule.donation_message,
            referral_code=schedule.referral_code,
            campaign_code=schedule.campaign_code,
            created_at=now,
            created_by=actor,
        ))

    def _record_failure(self, schedule: RecurringSchedule, error_message: str, now: datetime) -> ChargeOutcome:
        actor = get_current_actor()
        failed_attempts = schedule.failed_attempt_count + 1
        exhausted = failed_attempts >= self.config.max_failed_attempts

        updates = {
            "failed_attempt_count": failed_attempts,
            "last_error_message": error_message,
        }
        if exhausted:
            updates["status"] = RecurringStatus.FAILED
        else:
            updates["next_process_date"] = advance(now, schedule.frequency)

        updated = self._save_processed(schedule, updates, actor, now)
        outcome = ChargeOutcome(
            schedule_id=schedule.id,
            status=ChargeOutcomeStatus.FAILED,
            error_message=error_message,
        )
        if updated is None:
            logger.warning(f"Schedule {schedule.id} changed during a failed charge; failure not recorded")
            return outcome

        if exhausted:
            logger.warning(
                f"Schedule {schedule.id} failed {failed_attempts} times, marked failed: {error_message}"
            )
            self.event_bus.publish(RecurringScheduleFailed.create(schedule=updated))
        else:
            logger.warning(
                f"Charge failed for schedule {schedule.id} "
                f"(attempt {failed_attempts}/{self.config.max_failed_attempts}): {error_message}"
            )
            self.event_bus.publish(RecurringChargeFailed.create(schedule=updated, error_message=error_message))
        return outcome

    # =========================================================================
    # PERSISTENCE HELPERS
    # =========================================================================

    def _get_or_raise(self, schedule_id: UUID) -> RecurringSchedule:
        schedule = self.schedules.get_by_id(schedule_id)
        if schedule is None:
            raise NotFoundError("Recurring schedule", schedule_id)
        return schedule

    def _save_processed(
        self,
        schedule: RecurringSchedule,
        updates: dict,
        actor: str,
        now: datetime,
    ) -> RecurringSchedule | None:
        """Guarded save for the processing path. None if another worker got there first."""
        candidate = schedule.model_copy(update={**updates, "updated_at": now, "updated_by": actor})
        updated = self.schedules.save(
            candidate,
            expected_status=schedule.status,
            expected_next_process_date=schedule.next_process_date,
        )
        if updated is not None:
            self._audit_update(schedule, updated, actor)
        return updated

    def _apply(self, current: RecurringSchedule, updates: dict, target: RecurringStatus) -> RecurringSchedule:
        """Save a user-initiated change, guarded on the status it was validated against."""
        actor = get_current_actor()
        candidate = current.model_copy(update={**updates, "updated_at": self.clock(), "updated_by": actor})
        updated = self.schedules.save(candidate, expected_status=current.status)
        if updated is None:
            latest = self._get_or_raise(current.id)
            raise InvalidTransitionError(current.id, latest.status.value, target.value)

        self._audit_update(current, updated, actor)
        if current.status != updated.status:
            logger.info(
                f"Schedule {current.id}: {current.status.value} -> {updated.status.value} by {actor}"
            )
        return updated

    def _cancel(
        self,
        current: RecurringSchedule,
        reason: str | None,
        actor: str,
        guard: bool = False,
    ) -> RecurringSchedule | None:
        now = self.clock()
        candidate = current.model_copy(update={
            "status": RecurringStatus.CANCELLED,
            "cancelled_at": now,
            "cancelled_by": actor,
            "cancellation_reason": reason,
            "updated_at": now,
            "updated_by": actor,
        })
        updated = self.schedules.save(
            candidate,
            expected_status=current.status,
            expected_next_process_date=current.next_process_date if guard else None,
        )
        if updated is None:
            if guard:
                return None
            latest = self._get_or_raise(current.id)
            if latest.status == RecurringStatus.CANCELLED:
                return latest
            raise InvalidTransitionError(current.id, latest.status.value, RecurringStatus.CANCELLED.value)

        self._audit_update(current, updated, actor)
        logger.info(f"Cancelled schedule {current.id} by {actor}: {reason or 'no reason given'}")
        return updated

    def _audit_update(self, old: RecurringSchedule, new: RecurringSchedule, actor: str) -> None:
        changes = compute_changes(old.model_dump(mode="json"), new.model_dump(mode="json"))
        if changes:
            self.audit.log_change(
                entity_type="recurring_schedule",
                entity_id=new.id,
                action=AuditAction.UPDATE,
                changes=changes,
                actor=actor
            )
