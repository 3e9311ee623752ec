"""End-to-end booking and tracking through VisitScheduler."""
import random
from datetime import timedelta

import pytest

from bankvisit.errors import (
    AppointmentNotFoundError,
    BranchNotFoundError,
    ServiceNotFoundError,
    SlotNotFoundError,
    SlotUnavailableError,
    TransitionRejected,
)
from bankvisit.kv_store import JsonFileKeyValueStore
from bankvisit.scheduler import VisitScheduler
from bankvisit.state import AppointmentCategory, AppointmentStatus, CrowdLabel, CrowdScale

BRANCH = "br-mg-road"


class TestBooking:
    """book_slot validation and side effects."""

    def test_book_creates_scheduled_appointment(self, scheduler, visit_date):
        appointment = scheduler.book_slot("loans", BRANCH, visit_date, "10:30 AM", "Asha")

        assert appointment.status == AppointmentStatus.SCHEDULED
        assert appointment.branch_name == "MG Road Main Branch"
        assert appointment.user_name == "Asha"
        assert appointment.id.startswith("APP-")
        assert scheduler.get_appointment(appointment.id) == appointment

    def test_book_records_slot_count(self, scheduler, visit_date):
        before = scheduler.density.get_counts(BRANCH, visit_date)
        scheduler.book_slot("loans", BRANCH, visit_date, "10:30 AM")
        after = scheduler.density.get_counts(BRANCH, visit_date)
        assert after["10:30 AM"] == before["10:30 AM"] + 1

    def test_blank_user_name_defaults(self, scheduler, visit_date):
        appointment = scheduler.book_slot("loans", BRANCH, visit_date, "10:30 AM", "  ")
        assert appointment.user_name == "Customer"

    @pytest.mark.parametrize("service_id,branch_id,slot,error", [
        ("mortgage", BRANCH, "10:30 AM", ServiceNotFoundError),
        ("loans", "br-mars", "10:30 AM", BranchNotFoundError),
        ("loans", BRANCH, "01:00 PM", SlotNotFoundError),
    ])
    def test_unknown_identifiers_rejected(self, scheduler, visit_date, service_id, branch_id, slot, error):
        with pytest.raises(error):
            scheduler.book_slot(service_id, branch_id, visit_date, slot)
        assert scheduler.list_appointments() == []

    def test_past_slot_unavailable(self, scheduler, clock, visit_date):
        clock.set(11, 15)
        with pytest.raises(SlotUnavailableError):
            scheduler.book_slot("loans", BRANCH, visit_date, "11:00 AM")

    def test_past_date_unavailable(self, scheduler, visit_date):
        with pytest.raises(SlotUnavailableError):
            scheduler.book_slot("loans", BRANCH, visit_date - timedelta(days=1), "04:30 PM")

    def test_rejected_booking_leaves_counts_untouched(self, scheduler, clock, visit_date):
        before = scheduler.density.get_counts(BRANCH, visit_date)
        clock.set(12, 0)
        with pytest.raises(SlotUnavailableError):
            scheduler.book_slot("loans", BRANCH, visit_date, "10:00 AM")
        assert scheduler.density.get_counts(BRANCH, visit_date) == before

    def test_available_slots_hide_started_ones(self, scheduler, clock, visit_date):
        clock.set(15, 10)
        slots = scheduler.available_slots("loans", BRANCH, visit_date)
        assert list(slots) == ["03:30 PM", "04:00 PM", "04:30 PM"]
        assert all(isinstance(label, CrowdLabel) for label in slots.values())

    def test_missing_documents(self, scheduler):
        missing = scheduler.missing_documents("kyc_update", ["PAN Card"])
        assert missing == ["Identity Proof (Aadhar/Passport)", "Latest Electricity Bill"]


class TestRecommendationFlow:

    def test_recommendation_then_booking(self, kv_store, clock, visit_date):
        scheduler = VisitScheduler(
            kv_store=kv_store,
            rng=random.Random(5),
            clock=clock,
            slots=["10:00 AM", "10:30 AM", "11:00 AM"],
            scale=CrowdScale.THREE_LEVEL,
        )
        scheduler.density.set_counts(BRANCH, visit_date, {"10:00 AM": 3, "10:30 AM": 6, "11:00 AM": 1})

        assert scheduler.get_recommendation("kyc_update", BRANCH, visit_date).recommended_slot == "10:00 AM"

        for _ in range(3):
            scheduler.book_slot("kyc_update", BRANCH, visit_date, "10:00 AM")

        recommendation = scheduler.get_recommendation("kyc_update", BRANCH, visit_date)
        assert recommendation.recommended_slot == "11:00 AM"
        assert recommendation.crowd_label == CrowdLabel.LOW

    def test_unknown_service_rejected(self, scheduler, visit_date):
        with pytest.raises(ServiceNotFoundError):
            scheduler.get_recommendation("nope", BRANCH, visit_date)

    def test_bookable_only_skips_started_slots(self, scheduler, clock, visit_date):
        counts = {slot: 7 for slot in scheduler.slots}
        counts["10:00 AM"] = 0
        counts["02:30 PM"] = 1
        scheduler.density.set_counts(BRANCH, visit_date, counts)
        clock.set(11, 15)

        assert scheduler.get_recommendation("loans", BRANCH, visit_date).recommended_slot == "10:00 AM"

        recommendation = scheduler.get_recommendation("loans", BRANCH, visit_date, bookable_only=True)
        assert recommendation.recommended_slot == "02:30 PM"
        scheduler.book_slot("loans", BRANCH, visit_date, recommendation.recommended_slot)

    def test_bookable_only_after_last_slot(self, scheduler, clock, visit_date):
        clock.set(16, 45)
        with pytest.raises(SlotUnavailableError):
            scheduler.get_recommendation("loans", BRANCH, visit_date, bookable_only=True)

    def test_explanation_never_changes_pick(self, scheduler, visit_date):
        recommendation, advisory = scheduler.explain_recommendation("loans", BRANCH, visit_date)
        assert advisory.recommended_slot == recommendation.recommended_slot
        assert advisory.source == "fallback"


class TestTracking:
    """Status tracking, wait estimates and user actions."""

    def test_wait_estimate_uses_queue(self, scheduler, clock, visit_date):
        scheduler.book_slot("open_account", BRANCH, visit_date, "10:00 AM")
        clock.advance(minutes=1)
        scheduler.book_slot("kyc_update", BRANCH, visit_date, "11:00 AM")
        clock.advance(minutes=1)
        target = scheduler.book_slot("loans", BRANCH, visit_date, "04:30 PM")
        scheduler.density.set_counts(BRANCH, visit_date, {"04:30 PM": 1})

        estimate = scheduler.get_wait_estimate(target.id)

        assert estimate.ahead_count == 2
        assert estimate.estimate_minutes == 7
        assert estimate.confidence == "High"
        assert scheduler.get_wait_estimate(target.id) == estimate

    def test_wait_estimate_drops_cancelled(self, scheduler, clock, visit_date):
        first = scheduler.book_slot("loans", BRANCH, visit_date, "10:00 AM")
        clock.advance(minutes=1)
        target = scheduler.book_slot("loans", BRANCH, visit_date, "11:00 AM")
        assert scheduler.get_wait_estimate(target.id).ahead_count == 1

        scheduler.cancel(first.id)

        assert scheduler.get_wait_estimate(target.id).ahead_count == 0

    def test_unknown_appointment(self, scheduler):
        with pytest.raises(AppointmentNotFoundError):
            scheduler.get_wait_estimate("APP-0001")

    def test_full_visit_lifecycle(self, scheduler, clock, visit_date):
        appointment = scheduler.book_slot("kyc_update", BRANCH, visit_date, "10:00 AM")
        clock.set(9, 55)

        assert scheduler.mark_arrival(appointment.id).accepted is True
        assert scheduler.tick() == []

        clock.advance(seconds=10)
        assert scheduler.tick() == [(appointment.id, AppointmentStatus.IN_PROGRESS)]
        assert scheduler.tick() == []

        clock.advance(seconds=10)
        assert scheduler.tick() == [(appointment.id, AppointmentStatus.COMPLETED)]
        assert scheduler.get_appointment(appointment.id).status == AppointmentStatus.COMPLETED
        assert scheduler.active_appointment() is None
        assert scheduler.has_pending() is False

    def test_cancel_rejected_in_progress(self, scheduler, clock, visit_date):
        appointment = scheduler.book_slot("kyc_update", BRANCH, visit_date, "10:00 AM")
        scheduler.mark_arrival(appointment.id)
        clock.advance(seconds=10)
        scheduler.tick()

        result = scheduler.cancel(appointment.id)

        assert result.accepted is False
        assert scheduler.get_appointment(appointment.id).status == AppointmentStatus.IN_PROGRESS
        with pytest.raises(TransitionRejected):
            scheduler.request_reschedule(appointment.id)

    def test_missed_then_late_arrival(self, scheduler, clock, visit_date):
        appointment = scheduler.book_slot("kyc_update", BRANCH, visit_date, "10:00 AM")
        clock.set(10, 40)

        assert scheduler.tick() == [(appointment.id, AppointmentStatus.MISSED)]
        assert scheduler.list_appointments(AppointmentCategory.UPCOMING)[0].id == appointment.id

        result = scheduler.mark_arrival(appointment.id)
        assert result.accepted is True
        assert result.from_status == AppointmentStatus.MISSED

    def test_user_action_sees_due_transitions(self, scheduler, clock, visit_date):
        """Cancel arriving after the day ended loses to Expired."""
        appointment = scheduler.book_slot("kyc_update", BRANCH, visit_date, "10:00 AM")
        clock.set(17, 30)

        result = scheduler.cancel(appointment.id)

        assert result.accepted is False
        assert result.status == AppointmentStatus.EXPIRED

    def test_completed_wins_over_late_cancel(self, scheduler, clock, visit_date):
        appointment = scheduler.book_slot("kyc_update", BRANCH, visit_date, "10:00 AM")
        scheduler.mark_arrival(appointment.id)
        clock.advance(seconds=10)
        scheduler.tick()
        clock.advance(seconds=10)

        # Timer due but not yet ticked: cancel still sees Completed
        result = scheduler.cancel(appointment.id)
        assert result.accepted is False
        assert result.status == AppointmentStatus.COMPLETED

    def test_countdown(self, scheduler, clock, visit_date):
        appointment = scheduler.book_slot("kyc_update", BRANCH, visit_date, "10:00 AM")
        scheduler.mark_arrival(appointment.id)
        clock.advance(seconds=4)
        assert scheduler.countdown(appointment.id) == 6


class TestReschedule:

    def test_reschedule_supersedes_original(self, scheduler, visit_date):
        original = scheduler.book_slot("locker", BRANCH, visit_date, "10:00 AM", "Ravi")

        context = scheduler.request_reschedule(original.id)

        assert context.service_id == "locker"
        assert context.branch_id == BRANCH
        assert context.previous_slot == "10:00 AM"
        assert scheduler.get_appointment(original.id).status == AppointmentStatus.CANCELLED

        replacement = scheduler.book_slot(
            context.service_id, context.branch_id, context.visit_date, "02:00 PM",
            "Ravi", rescheduled_from=context.previous_appointment_id,
        )
        assert replacement.rescheduled_from == original.id
        assert scheduler.active_appointment().id == replacement.id

    def test_reschedule_to_moves_visit(self, scheduler, visit_date):
        original = scheduler.book_slot("locker", BRANCH, visit_date, "10:00 AM", "Ravi")

        replacement = scheduler.reschedule_to(original.id, "03:00 PM")

        assert replacement.time_slot == "03:00 PM"
        assert replacement.user_name == "Ravi"
        assert replacement.rescheduled_from == original.id
        assert scheduler.get_appointment(original.id).status == AppointmentStatus.CANCELLED

    def test_reschedule_to_started_slot_keeps_original(self, scheduler, clock, visit_date):
        """A refused move leaves the original booking in place."""
        original = scheduler.book_slot("locker", BRANCH, visit_date, "02:00 PM")
        clock.set(11, 0)

        with pytest.raises(SlotUnavailableError):
            scheduler.reschedule_to(original.id, "10:00 AM")

        assert scheduler.get_appointment(original.id).status == AppointmentStatus.SCHEDULED
        assert len(scheduler.list_appointments()) == 1

    def test_reschedule_to_unknown_slot_keeps_original(self, scheduler, visit_date):
        original = scheduler.book_slot("locker", BRANCH, visit_date, "02:00 PM")

        with pytest.raises(SlotNotFoundError):
            scheduler.reschedule_to(original.id, "01:00 PM")

        assert scheduler.get_appointment(original.id).status == AppointmentStatus.SCHEDULED

    def test_reschedule_completed_rejected(self, scheduler, clock, visit_date):
        appointment = scheduler.book_slot("locker", BRANCH, visit_date, "10:00 AM")
        scheduler.cancel(appointment.id)
        with pytest.raises(TransitionRejected, match="already Cancelled"):
            scheduler.request_reschedule(appointment.id)


class TestHistory:

    def test_list_by_category(self, scheduler, clock, visit_date):
        a = scheduler.book_slot("loans", BRANCH, visit_date, "10:00 AM")
        clock.advance(minutes=1)
        b = scheduler.book_slot("loans", BRANCH, visit_date, "11:00 AM")
        clock.advance(minutes=1)
        c = scheduler.book_slot("loans", BRANCH, visit_date, "02:00 PM")

        scheduler.cancel(b.id)
        scheduler.mark_arrival(c.id)

        assert [x.id for x in scheduler.list_appointments()] == [a.id, b.id, c.id]
        assert [x.id for x in scheduler.list_appointments(AppointmentCategory.UPCOMING)] == [a.id]
        assert [x.id for x in scheduler.list_appointments(AppointmentCategory.ACTIVE)] == [c.id]
        assert [x.id for x in scheduler.list_appointments("cancelled")] == [b.id]
        assert scheduler.active_appointment().id == a.id


class TestPersistence:

    def test_session_survives_restart(self, tmp_path, clock, visit_date):
        path = str(tmp_path / "session.json")
        first = VisitScheduler(kv_store=JsonFileKeyValueStore(path), rng=random.Random(1), clock=clock)
        appointment = first.book_slot("senior", BRANCH, visit_date, "03:00 PM")
        counts = first.density.get_counts(BRANCH, visit_date)

        second = VisitScheduler(kv_store=JsonFileKeyValueStore(path), rng=random.Random(2), clock=clock)

        assert second.get_appointment(appointment.id) == appointment
        assert second.density.get_counts(BRANCH, visit_date) == counts
