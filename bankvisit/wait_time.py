"""Expected wait time for a queued appointment.

    raw      = (sum of service times ahead / counters) * smoothing
    estimate = clamp(round(raw * crowd multiplier), min, max)

Counters are an abstract divisor, not modeled as separate queues.
"""
from typing import Callable, Dict

from bankvisit import config
from bankvisit.density import SlotDensityModel, round_half_up
from bankvisit.models import Appointment, WaitEstimate
from bankvisit.state import CrowdLabel
from bankvisit.store import AppointmentStore

CROWD_MULTIPLIERS: Dict[CrowdLabel, float] = {
    CrowdLabel(label): factor for label, factor in config.CROWD_MULTIPLIERS.items()
}


class WaitTimeEstimator:
    """Estimate wait from the FIFO queue ahead plus the slot's crowd level."""

    def __init__(
        self,
        store: AppointmentStore,
        density: SlotDensityModel,
        service_time: Callable[[str], int],
        counters: int = config.SERVICE_COUNTERS,
        smoothing_factor: float = config.SMOOTHING_FACTOR,
        min_minutes: int = config.MIN_WAIT_MINUTES,
        max_minutes: int = config.MAX_WAIT_MINUTES,
        high_confidence_below: int = config.HIGH_CONFIDENCE_MAX_AHEAD,
    ):
        """
        Args:
            store: Appointment queue source
            density: Supplies the target slot's crowd label
            service_time: service_id -> average service minutes
            counters: Parallel service counters at the branch
            smoothing_factor: Damping for counter overlap and staggered starts
            min_minutes / max_minutes: Clamp bounds for the estimate
            high_confidence_below: Queue length under which confidence is "High"
        """
        if counters <= 0:
            raise ValueError("counters must be positive")
        self.store = store
        self.density = density
        self.service_time = service_time
        self.counters = counters
        self.smoothing_factor = smoothing_factor
        self.min_minutes = min_minutes
        self.max_minutes = max_minutes
        self.high_confidence_below = high_confidence_below

    def estimate(self, appointment: Appointment) -> WaitEstimate:
        ahead = self.store.ahead_of(appointment)
        workload = sum(self.service_time(a.service_id) for a in ahead)

        raw_wait = (workload / self.counters) * self.smoothing_factor

        crowd_label = self.density.slot_label(
            appointment.branch_id, appointment.visit_date, appointment.time_slot
        )
        adjusted = round_half_up(raw_wait * CROWD_MULTIPLIERS[crowd_label])
        minutes = max(self.min_minutes, min(self.max_minutes, adjusted))

        # Two levels only; "Low" confidence is never reported
        confidence = "High" if len(ahead) < self.high_confidence_below else "Medium"

        return WaitEstimate(
            appointment_id=appointment.id,
            estimate_minutes=minutes,
            confidence=confidence,
            ahead_count=len(ahead),
            workload_minutes=workload,
            crowd_label=crowd_label,
        )
