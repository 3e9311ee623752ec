"""Shared test fixtures."""
import random
from datetime import date, datetime, timedelta

import pytest

from bankvisit.kv_store import InMemoryKeyValueStore
from bankvisit.models import Appointment
from bankvisit.scheduler import VisitScheduler
from bankvisit.state import AppointmentStatus

VISIT_DATE = date(2025, 11, 17)  # Monday


class FakeClock:
    """Manually advanced wall clock."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)
        return self.now

    def set(self, hour: int, minute: int = 0, second: int = 0, day: date = VISIT_DATE):
        self.now = datetime(day.year, day.month, day.day, hour, minute, second)
        return self.now


@pytest.fixture
def visit_date() -> date:
    return VISIT_DATE


@pytest.fixture
def clock() -> FakeClock:
    """Clock at 08:00 on the visit date, before the branch opens."""
    return FakeClock(datetime(2025, 11, 17, 8, 0))


@pytest.fixture
def kv_store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def scheduler(kv_store, clock) -> VisitScheduler:
    """Scheduler with seeded randomness, fake clock and 10s dwell."""
    return VisitScheduler(
        kv_store=kv_store,
        rng=random.Random(42),
        clock=clock,
        dwell_seconds=10,
    )


@pytest.fixture
def make_appointment():
    """Build an Appointment with sensible defaults."""
    counter = [1000]

    def _create(
        status: AppointmentStatus = AppointmentStatus.SCHEDULED,
        time_slot: str = "10:00 AM",
        created_at: datetime = datetime(2025, 11, 17, 8, 0),
        status_changed_at: datetime = None,
        service_id: str = "kyc_update",
        branch_id: str = "br-mg-road",
        visit_date: date = VISIT_DATE,
    ) -> Appointment:
        counter[0] += 1
        return Appointment(
            id=f"APP-{counter[0]}",
            service_id=service_id,
            branch_id=branch_id,
            user_name="Test User",
            visit_date=visit_date,
            time_slot=time_slot,
            status=status,
            created_at=created_at,
            status_changed_at=status_changed_at or created_at,
        )
    return _create
