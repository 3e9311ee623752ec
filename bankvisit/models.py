"""Pydantic models for catalog entries, appointments and engine results."""
from datetime import date, datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from bankvisit.state import AppointmentStatus, CrowdLabel


class BankService(BaseModel):
    """Service offered at a branch counter."""
    id: str = Field(..., min_length=1, description="Service identifier (e.g., open_account)")
    label: str = Field(..., min_length=1, max_length=100)
    description: str = Field(default="", max_length=500)
    required_documents: List[str] = Field(default_factory=list)
    average_time: int = Field(..., gt=0, le=480, description="Average service time in minutes")

    def missing_documents(self, ready: List[str]) -> List[str]:
        """Required documents not in `ready`, in catalog order."""
        have = set(ready)
        return [doc for doc in self.required_documents if doc not in have]


class Branch(BaseModel):
    """Physical branch location."""
    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    city: Optional[str] = None


class Appointment(BaseModel):
    """
    A booked branch visit.

    Never deleted: finalized visits stay in the store with a terminal status.
    created_at orders the FIFO queue; status_changed_at starts the dwell timer.
    """
    id: str = Field(..., pattern=r"^APP-\d{4,}$")
    service_id: str
    branch_id: str
    branch_name: Optional[str] = None
    user_name: str = "Customer"
    visit_date: date
    time_slot: str
    status: AppointmentStatus = AppointmentStatus.SCHEDULED
    created_at: datetime
    status_changed_at: datetime
    rescheduled_from: Optional[str] = None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "APP-4821",
                "service_id": "kyc_update",
                "branch_id": "br-mg-road",
                "branch_name": "MG Road Main Branch",
                "user_name": "Asha",
                "visit_date": "2025-11-17",
                "time_slot": "10:30 AM",
                "status": "Scheduled",
                "created_at": "2025-11-16T18:04:11",
                "status_changed_at": "2025-11-16T18:04:11",
            }
        }
    )

    @field_validator("user_name")
    @classmethod
    def default_blank_name(cls, value: str) -> str:
        return value.strip() or "Customer"


class Recommendation(BaseModel):
    """Deterministic best-slot pick for a branch/date."""
    service_id: Optional[str] = None
    branch_id: str
    visit_date: date
    recommended_slot: str
    crowd_label: CrowdLabel
    average_load_percent: int = Field(..., ge=0, le=100)
    slot_labels: Dict[str, CrowdLabel] = Field(default_factory=dict)
    alternatives: List[str] = Field(
        default_factory=list,
        description="Next-best slots by tier then time, excluding recommended_slot"
    )


class WaitEstimate(BaseModel):
    """Expected wait for one appointment."""
    appointment_id: str
    estimate_minutes: int = Field(..., ge=0)
    confidence: str = Field(..., description="High or Medium")
    ahead_count: int = Field(..., ge=0)
    workload_minutes: int = Field(..., ge=0)
    crowd_label: CrowdLabel


class TransitionResult(BaseModel):
    """Outcome of a requested status change; rejected requests leave status unchanged."""
    appointment_id: str
    accepted: bool
    from_status: AppointmentStatus
    status: AppointmentStatus
    reason: Optional[str] = None


class BookingContext(BaseModel):
    """What the booking flow needs to pick a new slot after a reschedule."""
    service_id: str
    branch_id: str
    visit_date: date
    previous_appointment_id: str
    previous_slot: str


class Advisory(BaseModel):
    """Human-readable narration of a recommendation."""
    recommended_slot: str
    text: str
    source: str = Field(..., description="'llm' or 'fallback'")
