"""Appointment lifecycle: user actions and time-driven transitions.

User-triggered:
- mark arrival (Scheduled/Missed -> Arrived)
- cancel, reschedule (any non-terminal status except In Progress)

System-triggered (tick):
- Scheduled -> Missed once the slot has started
- Scheduled/Missed/Arrived -> Expired at close of business
- Arrived -> In Progress -> Completed after a fixed dwell

In Progress is never interrupted: once work starts it runs to Completed.
"""
import math
from datetime import datetime
from typing import List, Optional, Tuple

from bankvisit import config
from bankvisit.availability import business_close, slot_start
from bankvisit.logging_config import get_logger
from bankvisit.models import Appointment, TransitionResult
from bankvisit.state import AppointmentStatus, is_terminal, validate_transition

logger = get_logger(__name__)

Status = AppointmentStatus


class AppointmentStateMachine:
    """Transition guards and the pure tick function for one appointment."""

    def __init__(
        self,
        dwell_seconds: int = config.DWELL_SECONDS,
        close: str = config.BUSINESS_HOURS["close"],
    ):
        """
        Args:
            dwell_seconds: Time spent in Arrived and In Progress before the
                system moves on (seconds in the demo loop)
            close: End of business day, "HH:MM"
        """
        self.dwell_seconds = dwell_seconds
        self.close = close

    def _dwell_elapsed(self, appointment: Appointment, now: datetime) -> bool:
        return (now - appointment.status_changed_at).total_seconds() >= self.dwell_seconds

    def tick(self, appointment: Appointment, now: datetime) -> Optional[AppointmentStatus]:
        """
        Next automatic status, or None if nothing is due.

        Pure: reads only the appointment and `now`. Calling it again on an
        unchanged appointment with the same `now` gives the same answer.
        """
        status = appointment.status

        if is_terminal(status):
            return None

        if status == Status.IN_PROGRESS:
            return Status.COMPLETED if self._dwell_elapsed(appointment, now) else None

        if now >= business_close(appointment.visit_date, self.close):
            # Scheduled goes through Missed first; Expired is one step further
            if status == Status.SCHEDULED:
                return Status.MISSED
            return Status.EXPIRED

        if status == Status.SCHEDULED:
            if now > slot_start(appointment.visit_date, appointment.time_slot):
                return Status.MISSED
            return None

        if status == Status.ARRIVED and self._dwell_elapsed(appointment, now):
            return Status.IN_PROGRESS

        return None

    def advance(
        self,
        appointment: Appointment,
        now: datetime
    ) -> Tuple[Appointment, List[AppointmentStatus]]:
        """
        Apply tick until nothing is due.

        Returns:
            (updated appointment, statuses entered in order)
        """
        entered = []
        current = appointment
        while True:
            next_status = self.tick(current, now)
            if next_status is None:
                break
            current = self._apply(current, next_status, now, trigger="system")
            entered.append(next_status)
        return current, entered

    def _apply(
        self,
        appointment: Appointment,
        target: AppointmentStatus,
        now: datetime,
        trigger: str,
    ) -> Appointment:
        if not validate_transition(appointment.status, target):
            # tick/guards only produce legal targets
            raise RuntimeError(
                f"Illegal transition {appointment.status.value} -> {target.value}"
            )
        logger.info(
            "appointment_transition",
            appointment_id=appointment.id,
            from_status=appointment.status.value,
            to_status=target.value,
            trigger=trigger,
        )
        return appointment.model_copy(
            update={"status": target, "status_changed_at": now}
        )

    def _request(
        self,
        appointment: Appointment,
        target: AppointmentStatus,
        now: datetime,
        action: str,
    ) -> Tuple[Appointment, TransitionResult]:
        current = appointment.status

        if not validate_transition(current, target):
            if is_terminal(current):
                reason = f"Appointment is already {current.value}"
            elif current == Status.IN_PROGRESS:
                reason = "Visit is in progress and can no longer be changed"
            else:
                reason = f"Cannot {action} while {current.value}"

            logger.warning(
                "appointment_transition_rejected",
                appointment_id=appointment.id,
                action=action,
                status=current.value,
                reason=reason,
            )
            return appointment, TransitionResult(
                appointment_id=appointment.id,
                accepted=False,
                from_status=current,
                status=current,
                reason=reason,
            )

        updated = self._apply(appointment, target, now, trigger=action)
        return updated, TransitionResult(
            appointment_id=appointment.id,
            accepted=True,
            from_status=current,
            status=target,
        )

    def mark_arrival(self, appointment: Appointment, now: datetime):
        """Scheduled or Missed -> Arrived; starts the dwell timer."""
        return self._request(appointment, Status.ARRIVED, now, "mark arrival")

    def cancel(self, appointment: Appointment, now: datetime):
        """Any non-terminal status except In Progress -> Cancelled."""
        return self._request(appointment, Status.CANCELLED, now, "cancel")

    def reschedule(self, appointment: Appointment, now: datetime):
        """Supersede the appointment: it becomes Cancelled and a new booking follows."""
        return self._request(appointment, Status.CANCELLED, now, "reschedule")

    def seconds_until_next_transition(
        self,
        appointment: Appointment,
        now: datetime
    ) -> Optional[int]:
        """Countdown for the tracker view; None when no automatic change is pending."""
        status = appointment.status

        if is_terminal(status):
            return None

        if status in (Status.ARRIVED, Status.IN_PROGRESS):
            elapsed = (now - appointment.status_changed_at).total_seconds()
            remaining = self.dwell_seconds - elapsed
        elif status == Status.SCHEDULED:
            remaining = (slot_start(appointment.visit_date, appointment.time_slot) - now).total_seconds()
        else:
            remaining = (business_close(appointment.visit_date, self.close) - now).total_seconds()

        return max(0, math.ceil(remaining))
