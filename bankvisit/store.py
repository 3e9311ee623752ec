"""Appointment store: ordered collection of a session's appointments."""
import threading
from datetime import date
from typing import Iterable, List, Optional

from bankvisit.errors import AppointmentNotFoundError
from bankvisit.kv_store import KeyValueStore
from bankvisit.logging_config import get_logger
from bankvisit.models import Appointment
from bankvisit.state import (
    CATEGORY_STATUSES,
    AppointmentCategory,
    AppointmentStatus,
    is_terminal,
)

logger = get_logger(__name__)

APPOINTMENTS_KEY = "appointments"


class AppointmentStore:
    """
    Appointments kept in creation order and persisted as a flat list.

    Responsibilities:
    - Add and update appointments (never delete)
    - Query primitives for the estimator and state machine
      (active one, queue ahead, status filters)

    Pattern: Thin wrapper around an injected KeyValueStore.
    """

    def __init__(self, kv_store: KeyValueStore):
        """
        Initialize store, loading any persisted appointments.

        Args:
            kv_store: Storage capability (in-memory or file)
        """
        self.kv_store = kv_store
        self._lock = threading.RLock()
        raw = kv_store.get(APPOINTMENTS_KEY, []) or []
        self._appointments: List[Appointment] = [
            Appointment.model_validate(item) for item in raw
        ]
        self._sort()

    def _sort(self):
        self._appointments.sort(key=lambda a: a.created_at)

    def _persist(self):
        self.kv_store.set(
            APPOINTMENTS_KEY,
            [a.model_dump(mode="json") for a in self._appointments]
        )

    def add(self, appointment: Appointment) -> Appointment:
        """
        Add a new appointment.

        Raises:
            ValueError: If the id is already taken
        """
        with self._lock:
            if any(a.id == appointment.id for a in self._appointments):
                raise ValueError(f"Duplicate appointment id: {appointment.id}")
            self._appointments.append(appointment.model_copy())
            self._sort()
            self._persist()
        logger.info(
            "appointment_added",
            appointment_id=appointment.id,
            branch_id=appointment.branch_id,
            time_slot=appointment.time_slot,
        )
        return appointment

    def save(self, appointment: Appointment) -> Appointment:
        """Replace the stored copy of an existing appointment."""
        with self._lock:
            for index, existing in enumerate(self._appointments):
                if existing.id == appointment.id:
                    self._appointments[index] = appointment.model_copy()
                    self._persist()
                    return appointment
        raise AppointmentNotFoundError(appointment.id)

    def get(self, appointment_id: str) -> Appointment:
        """
        Get appointment by id.

        Raises:
            AppointmentNotFoundError: If no such appointment
        """
        with self._lock:
            for appointment in self._appointments:
                if appointment.id == appointment_id:
                    return appointment.model_copy()
        raise AppointmentNotFoundError(appointment_id)

    def exists(self, appointment_id: str) -> bool:
        with self._lock:
            return any(a.id == appointment_id for a in self._appointments)

    def all(self) -> List[Appointment]:
        """All appointments, oldest first."""
        with self._lock:
            return [a.model_copy() for a in self._appointments]

    def non_terminal(self) -> List[Appointment]:
        return [a for a in self.all() if not is_terminal(a.status)]

    def active(self) -> Optional[Appointment]:
        """Earliest-created appointment that is not finalized, or None."""
        pending = self.non_terminal()
        return pending[0] if pending else None

    def with_status(self, statuses: Iterable[AppointmentStatus]) -> List[Appointment]:
        wanted = set(statuses)
        return [a for a in self.all() if a.status in wanted]

    def by_category(self, category: AppointmentCategory) -> List[Appointment]:
        return self.with_status(CATEGORY_STATUSES[category])

    def for_branch_date(self, branch_id: str, visit_date: date) -> List[Appointment]:
        return [
            a for a in self.all()
            if a.branch_id == branch_id and a.visit_date == visit_date
        ]

    def ahead_of(self, appointment: Appointment) -> List[Appointment]:
        """
        Appointments queued ahead of `appointment`.

        FIFO by creation time: same branch and date, not finalized,
        created strictly earlier. Slot time is not considered.
        """
        return [
            a for a in self.for_branch_date(appointment.branch_id, appointment.visit_date)
            if a.id != appointment.id
            and not is_terminal(a.status)
            and a.created_at < appointment.created_at
        ]

    def __len__(self) -> int:
        with self._lock:
            return len(self._appointments)
