"""VisitScheduler: the engine's interface to the booking and tracker views.

Wires the density model, recommendation engine, wait estimator, state
machine and appointment store together. All operations run under one lock,
so the periodic ticker and user actions never interleave.
"""
import random
import threading
from datetime import date, datetime
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from bankvisit import config
from bankvisit.advisory import SlotAdvisor, create_llm
from bankvisit.availability import TimeFilter, TimeOfDay, is_slot_past
from bankvisit.density import SlotDensityModel
from bankvisit.errors import (
    BranchNotFoundError,
    ServiceNotFoundError,
    SlotNotFoundError,
    SlotUnavailableError,
    TransitionRejected,
)
from bankvisit.kv_store import InMemoryKeyValueStore, JsonFileKeyValueStore, KeyValueStore
from bankvisit.lifecycle import AppointmentStateMachine
from bankvisit.logging_config import get_logger
from bankvisit.models import (
    Advisory,
    Appointment,
    BankService,
    BookingContext,
    Branch,
    Recommendation,
    TransitionResult,
    WaitEstimate,
)
from bankvisit.recommendation import RecommendationEngine
from bankvisit.state import AppointmentCategory, AppointmentStatus, CrowdLabel, CrowdScale
from bankvisit.store import AppointmentStore
from bankvisit.wait_time import WaitTimeEstimator

logger = get_logger(__name__)


class VisitScheduler:
    """Book, recommend, estimate and track branch visits for one session."""

    def __init__(
        self,
        kv_store: Optional[KeyValueStore] = None,
        rng: Optional[random.Random] = None,
        clock: Optional[Callable[[], datetime]] = None,
        services: Optional[Sequence[dict]] = None,
        branches: Optional[Sequence[dict]] = None,
        slots: Sequence[str] = config.TIME_SLOTS,
        capacity: int = config.SLOT_CAPACITY,
        scale: CrowdScale = CrowdScale(config.CROWD_SCALE),
        counters: int = config.SERVICE_COUNTERS,
        dwell_seconds: int = config.DWELL_SECONDS,
        advisor: Optional[SlotAdvisor] = None,
    ):
        """
        Args:
            kv_store: Persistence for appointments and slot counts (default: in-memory)
            rng: Seeded generator for baseline counts and reference numbers
            clock: Returns "now" (default: datetime.now)
            services / branches: Catalog overrides (default: config)
            slots: Canonical slot labels
            capacity: Bookings per slot considered full
            scale: Crowd label scale
            counters: Parallel service counters for wait estimates
            dwell_seconds: Arrived/In Progress dwell before auto-advance
            advisor: Advisory narrator (default: template text only)
        """
        self.kv_store = kv_store or InMemoryKeyValueStore()
        self.rng = rng or random.Random()
        self.clock = clock or datetime.now
        self.slots = list(slots)

        self.services: Dict[str, BankService] = {
            s["id"]: BankService(**s) for s in (services or config.SERVICES)
        }
        self.branches: Dict[str, Branch] = {
            b["id"]: Branch(**b) for b in (branches or config.BRANCHES)
        }

        self.density = SlotDensityModel(
            self.kv_store, rng=self.rng, slots=self.slots, capacity=capacity, scale=scale
        )
        self.recommender = RecommendationEngine(self.density)
        self.store = AppointmentStore(self.kv_store)
        self.estimator = WaitTimeEstimator(
            self.store,
            self.density,
            service_time=lambda service_id: self.get_service(service_id).average_time,
            counters=counters,
        )
        self.machine = AppointmentStateMachine(dwell_seconds=dwell_seconds)
        self.advisor = advisor or SlotAdvisor()
        self.time_filter = TimeFilter()
        self._lock = threading.RLock()

    # Catalog lookups

    def get_service(self, service_id: str) -> BankService:
        try:
            return self.services[service_id]
        except KeyError:
            raise ServiceNotFoundError(service_id)

    def get_branch(self, branch_id: str) -> Branch:
        try:
            return self.branches[branch_id]
        except KeyError:
            raise BranchNotFoundError(branch_id)

    def _check_slot(self, slot: str):
        if slot not in self.slots:
            raise SlotNotFoundError(slot)

    def check_bookable(self, visit_date: date, slot: str, now: Optional[datetime] = None):
        """
        Raise unless `slot` could be booked on `visit_date` right now.

        Raises:
            SlotNotFoundError: Unknown slot label
            SlotUnavailableError: Slot already started
        """
        self._check_slot(slot)
        if is_slot_past(visit_date, slot, now or self.clock()):
            raise SlotUnavailableError(slot, visit_date)

    def missing_documents(self, service_id: str, ready: List[str]) -> List[str]:
        return self.get_service(service_id).missing_documents(ready)

    # Booking

    def _new_reference(self) -> str:
        for _ in range(100):
            candidate = f"APP-{self.rng.randint(1000, 9999)}"
            if not self.store.exists(candidate):
                return candidate
        # Four-digit space crowded; widen
        return f"APP-{len(self.store) + 10000}"

    def available_slots(
        self,
        service_id: str,
        branch_id: str,
        visit_date: date,
        time_of_day: TimeOfDay = TimeOfDay.ANY,
    ) -> Dict[str, CrowdLabel]:
        """Bookable slots (not yet started) with their crowd labels."""
        self.get_service(service_id)
        self.get_branch(branch_id)
        with self._lock:
            labels = self.density.labels(branch_id, visit_date)
        slots = self.time_filter.filter_by_time_of_day(self.slots, time_of_day)
        slots = self.time_filter.drop_past(slots, visit_date, self.clock())
        return {slot: labels[slot] for slot in slots}

    def book_slot(
        self,
        service_id: str,
        branch_id: str,
        visit_date: date,
        slot: str,
        user_name: str = "Customer",
        rescheduled_from: Optional[str] = None,
    ) -> Appointment:
        """
        Confirm a booking.

        Raises:
            ServiceNotFoundError / BranchNotFoundError / SlotNotFoundError:
                Unknown identifiers
            SlotUnavailableError: Slot already started
        """
        service = self.get_service(service_id)
        branch = self.get_branch(branch_id)

        with self._lock:
            now = self.clock()
            self.check_bookable(visit_date, slot, now)

            self.density.record_booking(branch.id, visit_date, slot)
            appointment = Appointment(
                id=self._new_reference(),
                service_id=service.id,
                branch_id=branch.id,
                branch_name=branch.name,
                user_name=user_name,
                visit_date=visit_date,
                time_slot=slot,
                status=AppointmentStatus.SCHEDULED,
                created_at=now,
                status_changed_at=now,
                rescheduled_from=rescheduled_from,
            )
            self.store.add(appointment)

        logger.info(
            "appointment_booked",
            appointment_id=appointment.id,
            service_id=service.id,
            branch_id=branch.id,
            visit_date=visit_date.isoformat(),
            time_slot=slot,
        )
        return appointment

    # Recommendation

    def get_recommendation(
        self,
        service_id: str,
        branch_id: str,
        visit_date: date,
        bookable_only: bool = False
    ) -> Recommendation:
        """
        Best slot for the day.

        With `bookable_only`, slots that already started are left out of
        the ranking, so the pick can always be booked.

        Raises:
            SlotUnavailableError: bookable_only and the last slot already started
        """
        self.get_service(service_id)
        self.get_branch(branch_id)
        with self._lock:
            candidates = None
            if bookable_only:
                candidates = self.time_filter.drop_past(self.slots, visit_date, self.clock())
                if not candidates:
                    raise SlotUnavailableError(self.slots[-1], visit_date)
            return self.recommender.recommend(
                branch_id, visit_date, service_id=service_id, candidates=candidates
            )

    def explain_recommendation(
        self,
        service_id: str,
        branch_id: str,
        visit_date: date,
        bookable_only: bool = False
    ) -> Tuple[Recommendation, Advisory]:
        """Recommendation plus narration; the narration never changes the slot."""
        recommendation = self.get_recommendation(
            service_id, branch_id, visit_date, bookable_only=bookable_only
        )
        advisory = self.advisor.narrate(recommendation, self.get_service(service_id))
        return recommendation, advisory

    # Tracking

    def get_appointment(self, appointment_id: str) -> Appointment:
        with self._lock:
            return self.store.get(appointment_id)

    def active_appointment(self) -> Optional[Appointment]:
        with self._lock:
            return self.store.active()

    def list_appointments(
        self,
        category: AppointmentCategory = AppointmentCategory.ALL
    ) -> List[Appointment]:
        """Appointments in the category, oldest first."""
        with self._lock:
            return self.store.by_category(AppointmentCategory(category))

    def get_wait_estimate(self, appointment_id: str) -> WaitEstimate:
        with self._lock:
            return self.estimator.estimate(self.store.get(appointment_id))

    def countdown(self, appointment_id: str) -> Optional[int]:
        """Seconds until the next automatic status change, if any."""
        with self._lock:
            appointment = self.store.get(appointment_id)
            return self.machine.seconds_until_next_transition(appointment, self.clock())

    def has_pending(self) -> bool:
        with self._lock:
            return bool(self.store.non_terminal())

    def tick(self, now: Optional[datetime] = None) -> List[Tuple[str, AppointmentStatus]]:
        """
        Apply due automatic transitions to every appointment.

        Idempotent: a second call with no time passing changes nothing.

        Returns:
            (appointment_id, new status) for each transition made, in order
        """
        changes = []
        with self._lock:
            now = now or self.clock()
            for appointment in self.store.non_terminal():
                updated, entered = self.machine.advance(appointment, now)
                if entered:
                    self.store.save(updated)
                    changes.extend((appointment.id, status) for status in entered)
        return changes

    def _catch_up(self, appointment_id: str, now: datetime) -> Appointment:
        # Time-driven transitions land before the user's request is judged
        appointment = self.store.get(appointment_id)
        updated, entered = self.machine.advance(appointment, now)
        if entered:
            self.store.save(updated)
        return updated

    def _user_action(self, appointment_id: str, action) -> Tuple[Appointment, TransitionResult]:
        with self._lock:
            now = self.clock()
            appointment = self._catch_up(appointment_id, now)
            updated, result = action(appointment, now)
            if result.accepted:
                self.store.save(updated)
            return updated, result

    def mark_arrival(self, appointment_id: str) -> TransitionResult:
        return self._user_action(appointment_id, self.machine.mark_arrival)[1]

    def cancel(self, appointment_id: str) -> TransitionResult:
        return self._user_action(appointment_id, self.machine.cancel)[1]

    def request_reschedule(self, appointment_id: str) -> BookingContext:
        """
        Supersede an appointment and hand back what the booking flow needs.

        The original becomes Cancelled; pass previous_appointment_id as
        `rescheduled_from` when booking the replacement.

        Raises:
            TransitionRejected: If the appointment is In Progress or finalized
        """
        appointment, result = self._user_action(appointment_id, self.machine.reschedule)
        if not result.accepted:
            raise TransitionRejected(result.reason, result.status)

        return BookingContext(
            service_id=appointment.service_id,
            branch_id=appointment.branch_id,
            visit_date=appointment.visit_date,
            previous_appointment_id=appointment.id,
            previous_slot=appointment.time_slot,
        )

    def reschedule_to(self, appointment_id: str, slot: str) -> Appointment:
        """
        Move a visit to another slot on the same day.

        The new slot is checked before the original is cancelled, so a
        refused move leaves the original booking untouched.

        Raises:
            SlotNotFoundError / SlotUnavailableError: New slot cannot be booked
            TransitionRejected: Original is In Progress or finalized
        """
        with self._lock:
            original = self.store.get(appointment_id)
            self.check_bookable(original.visit_date, slot)
            context = self.request_reschedule(appointment_id)
            return self.book_slot(
                context.service_id,
                context.branch_id,
                context.visit_date,
                slot,
                original.user_name,
                rescheduled_from=context.previous_appointment_id,
            )


def create_scheduler(**overrides) -> VisitScheduler:
    """Scheduler wired from config: file store when BANKVISIT_DATA_FILE is set, LLM advisor when a key exists."""
    if "kv_store" not in overrides and config.DATA_FILE:
        overrides["kv_store"] = JsonFileKeyValueStore(config.DATA_FILE)
    if "advisor" not in overrides:
        overrides["advisor"] = SlotAdvisor(llm=create_llm())
    return VisitScheduler(**overrides)
