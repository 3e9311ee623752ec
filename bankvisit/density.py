"""Per-slot crowd density for a branch and date.

Booking counts are seeded once per (branch, date) with a pseudo-random
baseline, then grow by one per confirmed booking. Seeds come from an
injected random.Random so runs are reproducible.
"""
import math
import random
from datetime import date
from typing import Dict, Optional, Sequence

from bankvisit import config
from bankvisit.errors import SlotNotFoundError
from bankvisit.kv_store import KeyValueStore
from bankvisit.logging_config import get_logger
from bankvisit.state import CrowdLabel, CrowdScale

logger = get_logger(__name__)

COUNTS_KEY_PREFIX = "slotBookingCounts"

# Upper bound (inclusive) of each four-level tier, in percent of capacity
FOUR_LEVEL_THRESHOLDS = [
    (25, CrowdLabel.LOW),
    (60, CrowdLabel.MODERATE),
    (85, CrowdLabel.HIGH),
]


def round_half_up(value: float) -> int:
    """Round .5 away from zero for non-negative values (Python's round() is banker's)."""
    return int(math.floor(value + 0.5))


class SlotDensityModel:
    """Owns per-slot booking counts and classifies them into crowd labels."""

    def __init__(
        self,
        kv_store: KeyValueStore,
        rng: Optional[random.Random] = None,
        slots: Sequence[str] = config.TIME_SLOTS,
        capacity: int = config.SLOT_CAPACITY,
        scale: CrowdScale = CrowdScale(config.CROWD_SCALE),
        baseline_max: int = config.BASELINE_MAX_BOOKINGS,
    ):
        """
        Initialize density model.

        Args:
            kv_store: Where counts are persisted
            rng: Seeded generator for baseline counts (default: unseeded Random)
            slots: Canonical chronological slot labels
            capacity: Bookings per slot considered "full"
            scale: Four-level (percent) or three-level (thirds) labels
            baseline_max: Largest seeded baseline count (inclusive)
        """
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        if not slots:
            raise ValueError("at least one slot is required")

        self.kv_store = kv_store
        self.rng = rng or random.Random()
        self.slots = list(slots)
        self.capacity = capacity
        self.scale = CrowdScale(scale)
        self.baseline_max = baseline_max

    @staticmethod
    def _key(branch_id: str, visit_date: date) -> str:
        return f"{COUNTS_KEY_PREFIX}:{branch_id}|{visit_date.isoformat()}"

    def _check_slot(self, slot: str):
        if slot not in self.slots:
            raise SlotNotFoundError(slot)

    def get_counts(self, branch_id: str, visit_date: date) -> Dict[str, int]:
        """
        Booking counts for every slot, in canonical order.

        First access for a (branch, date) seeds each slot with a baseline
        in [0, baseline_max] and persists it, so later calls are stable.
        """
        key = self._key(branch_id, visit_date)
        stored = self.kv_store.get(key)

        if stored is None:
            stored = {
                slot: self.rng.randint(0, self.baseline_max)
                for slot in self.slots
            }
            self.kv_store.set(key, stored)
            logger.debug(
                "slot_counts_seeded",
                branch_id=branch_id,
                visit_date=visit_date.isoformat(),
                counts=stored,
            )

        return {slot: int(stored.get(slot, 0)) for slot in self.slots}

    def set_counts(self, branch_id: str, visit_date: date, counts: Dict[str, int]):
        """Replace the stored counts (restoring a snapshot). Missing slots become 0."""
        for slot, count in counts.items():
            self._check_slot(slot)
            if count < 0:
                raise ValueError(f"Negative count for {slot}: {count}")
        snapshot = {slot: int(counts.get(slot, 0)) for slot in self.slots}
        self.kv_store.set(self._key(branch_id, visit_date), snapshot)

    def record_booking(self, branch_id: str, visit_date: date, slot: str) -> int:
        """
        Increment one slot's count by exactly 1.

        Returns:
            The new count for that slot

        Raises:
            SlotNotFoundError: If slot is not in the slot set
        """
        self._check_slot(slot)
        counts = self.get_counts(branch_id, visit_date)
        counts[slot] += 1
        self.kv_store.set(self._key(branch_id, visit_date), counts)
        logger.info(
            "slot_booking_recorded",
            branch_id=branch_id,
            visit_date=visit_date.isoformat(),
            time_slot=slot,
            count=counts[slot],
        )
        return counts[slot]

    def percent(self, count: int, capacity: Optional[int] = None) -> int:
        cap = capacity or self.capacity
        return min(100, round_half_up(count / cap * 100))

    def classify(self, count: int, capacity: Optional[int] = None) -> CrowdLabel:
        """
        Crowd label for a booking count. Pure: depends only on the arguments
        and the model's fixed scale.
        """
        cap = capacity or self.capacity

        if self.scale == CrowdScale.THREE_LEVEL:
            if count <= math.ceil(cap / 3):
                return CrowdLabel.LOW
            if count <= math.ceil(2 * cap / 3):
                return CrowdLabel.MODERATE
            return CrowdLabel.HIGH

        pct = self.percent(count, cap)
        for upper, label in FOUR_LEVEL_THRESHOLDS:
            if pct <= upper:
                return label
        return CrowdLabel.VERY_HIGH

    def labels(self, branch_id: str, visit_date: date) -> Dict[str, CrowdLabel]:
        counts = self.get_counts(branch_id, visit_date)
        return {slot: self.classify(count) for slot, count in counts.items()}

    def slot_label(self, branch_id: str, visit_date: date, slot: str) -> CrowdLabel:
        self._check_slot(slot)
        return self.classify(self.get_counts(branch_id, visit_date)[slot])

    def average_load(self, branch_id: str, visit_date: date) -> int:
        """Total bookings as a percent of total capacity, clamped to 100."""
        counts = self.get_counts(branch_id, visit_date)
        total_capacity = len(self.slots) * self.capacity
        return min(100, round_half_up(100 * sum(counts.values()) / total_capacity))
