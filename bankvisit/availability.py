"""Slot time helpers and availability filtering.

- Slot labels are 12h strings ("10:30 AM") from config.TIME_SLOTS
- Convert labels to datetimes for past-slot and end-of-day checks
- Time-of-day filtering: morning, afternoon, or any
"""
from datetime import date, datetime, time
from enum import Enum
from typing import List, Optional, Sequence

from bankvisit import config
from bankvisit.errors import SlotNotFoundError


class TimeOfDay(str, Enum):
    """Time of day preferences."""
    MORNING = "morning"  # Before 12:00
    AFTERNOON = "afternoon"  # 12:00 and after
    ANY = "any"


def parse_slot(slot: str) -> time:
    """
    Parse a 12h slot label.

    Raises:
        SlotNotFoundError: If the label is not a valid "HH:MM AM/PM" string
    """
    try:
        return datetime.strptime(slot.strip(), "%I:%M %p").time()
    except (ValueError, AttributeError):
        raise SlotNotFoundError(str(slot))


def slot_start(visit_date: date, slot: str) -> datetime:
    return datetime.combine(visit_date, parse_slot(slot))


def business_close(visit_date: date, close: Optional[str] = None) -> datetime:
    """End of the business day for `visit_date` (default config close, 17:00)."""
    hour, minute = map(int, (close or config.BUSINESS_HOURS["close"]).split(":"))
    return datetime.combine(visit_date, time(hour, minute))


def is_slot_past(visit_date: date, slot: str, now: datetime) -> bool:
    """True once the slot has started (a slot starting exactly now is no longer bookable)."""
    return slot_start(visit_date, slot) <= now


def normalize_slot(text: str, slots: Sequence[str] = config.TIME_SLOTS) -> str:
    """
    Map user input ("2:00 pm", "2 PM", "14:00", "02:00 PM") to a canonical slot label.

    Raises:
        SlotNotFoundError: If the input matches no canonical slot
    """
    raw = " ".join(text.split()).upper()
    parsed = None
    for fmt in ("%I:%M %p", "%I:%M%p", "%I %p", "%I%p", "%H:%M"):
        try:
            parsed = datetime.strptime(raw, fmt).time()
            break
        except ValueError:
            continue

    if parsed is None:
        raise SlotNotFoundError(text)

    for slot in slots:
        if parse_slot(slot) == parsed:
            return slot
    raise SlotNotFoundError(text)


class TimeFilter:
    """Filter slot labels by time of day."""

    MORNING_CUTOFF = 12  # 12:00 (noon)

    def filter_by_time_of_day(
        self,
        slots: Sequence[str],
        preference: TimeOfDay
    ) -> List[str]:
        """
        Filter slots by time of day preference.

        Args:
            slots: Slot labels in canonical order
            preference: Morning, afternoon, or any

        Returns:
            Filtered slots, order preserved
        """
        if preference == TimeOfDay.ANY:
            return list(slots)

        filtered = []
        for slot in slots:
            hour = parse_slot(slot).hour

            if preference == TimeOfDay.MORNING and hour < self.MORNING_CUTOFF:
                filtered.append(slot)
            elif preference == TimeOfDay.AFTERNOON and hour >= self.MORNING_CUTOFF:
                filtered.append(slot)

        return filtered

    def drop_past(
        self,
        slots: Sequence[str],
        visit_date: date,
        now: datetime
    ) -> List[str]:
        """Remove slots that have already started on `visit_date`."""
        return [slot for slot in slots if not is_slot_past(visit_date, slot, now)]
