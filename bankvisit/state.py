"""Appointment status schema and transition map.

- Enums for discrete states (str-valued, so they serialize as display text)
- Explicit transition map, validated before every status change
"""
from enum import Enum
from typing import Dict, FrozenSet, List


class AppointmentStatus(str, Enum):
    """
    Lifecycle status of a branch visit.

    Main path: SCHEDULED -> ARRIVED -> IN_PROGRESS -> COMPLETED
    Side states: MISSED (slot passed), EXPIRED (day ended), CANCELLED
    """
    SCHEDULED = "Scheduled"
    ARRIVED = "Arrived"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"
    MISSED = "Missed"
    EXPIRED = "Expired"


class CrowdLabel(str, Enum):
    """Qualitative crowd tier, ordered best to worst."""
    LOW = "Low"
    MODERATE = "Moderate"
    HIGH = "High"
    VERY_HIGH = "Very High"

    @property
    def rank(self) -> int:
        return CROWD_TIERS.index(self)


CROWD_TIERS: List[CrowdLabel] = [
    CrowdLabel.LOW,
    CrowdLabel.MODERATE,
    CrowdLabel.HIGH,
    CrowdLabel.VERY_HIGH,
]


class CrowdScale(str, Enum):
    """Threshold scheme used to turn a booking count into a CrowdLabel."""
    FOUR_LEVEL = "four_level"  # Low/Moderate/High/Very High by percent
    THREE_LEVEL = "three_level"  # Low/Medium/High by thirds of capacity


class AppointmentCategory(str, Enum):
    """History view buckets."""
    ACTIVE = "active"
    UPCOMING = "upcoming"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"
    ALL = "all"


# No further transitions from these
TERMINAL_STATUSES: FrozenSet[AppointmentStatus] = frozenset({
    AppointmentStatus.COMPLETED,
    AppointmentStatus.CANCELLED,
    AppointmentStatus.EXPIRED,
})

CATEGORY_STATUSES: Dict[AppointmentCategory, FrozenSet[AppointmentStatus]] = {
    AppointmentCategory.ACTIVE: frozenset({
        AppointmentStatus.ARRIVED,
        AppointmentStatus.IN_PROGRESS,
    }),
    AppointmentCategory.UPCOMING: frozenset({
        AppointmentStatus.SCHEDULED,
        AppointmentStatus.MISSED,
    }),
    AppointmentCategory.COMPLETED: frozenset({AppointmentStatus.COMPLETED}),
    AppointmentCategory.CANCELLED: frozenset({AppointmentStatus.CANCELLED}),
    AppointmentCategory.EXPIRED: frozenset({AppointmentStatus.EXPIRED}),
    AppointmentCategory.ALL: frozenset(AppointmentStatus),
}


# Current status -> [allowed next statuses]
VALID_TRANSITIONS: Dict[AppointmentStatus, List[AppointmentStatus]] = {
    AppointmentStatus.SCHEDULED: [
        AppointmentStatus.ARRIVED,
        AppointmentStatus.MISSED,
        AppointmentStatus.CANCELLED,
    ],
    AppointmentStatus.MISSED: [
        AppointmentStatus.ARRIVED,  # Late check-in, same day
        AppointmentStatus.CANCELLED,
        AppointmentStatus.EXPIRED,
    ],
    AppointmentStatus.ARRIVED: [
        AppointmentStatus.IN_PROGRESS,
        AppointmentStatus.CANCELLED,
        AppointmentStatus.EXPIRED,
    ],
    AppointmentStatus.IN_PROGRESS: [
        AppointmentStatus.COMPLETED,  # Work started: must finish
    ],
    AppointmentStatus.COMPLETED: [],
    AppointmentStatus.CANCELLED: [],
    AppointmentStatus.EXPIRED: [],
}


def validate_transition(
    current: AppointmentStatus,
    intended: AppointmentStatus
) -> bool:
    """
    Validate status transition.

    Args:
        current: Current appointment status
        intended: Intended next status

    Returns:
        True if transition is valid

    Example:
        >>> validate_transition(
        ...     AppointmentStatus.SCHEDULED,
        ...     AppointmentStatus.ARRIVED
        ... )
        True
    """
    allowed = VALID_TRANSITIONS.get(current, [])
    return intended in allowed


def is_terminal(status: AppointmentStatus) -> bool:
    return status in TERMINAL_STATUSES
