"""Exceptions raised by the branch-visit engine."""


class BankVisitError(Exception):
    """Base class for engine errors."""
    pass


class NotFoundError(BankVisitError):
    """Raised when an identifier does not exist in the catalog or store."""

    kind = "resource"

    def __init__(self, identifier: str):
        super().__init__(f"{self.kind.capitalize()} not found: {identifier}")
        self.identifier = identifier


class ServiceNotFoundError(NotFoundError):
    kind = "service"


class BranchNotFoundError(NotFoundError):
    kind = "branch"


class SlotNotFoundError(NotFoundError):
    kind = "slot"


class AppointmentNotFoundError(NotFoundError):
    kind = "appointment"


class SlotUnavailableError(BankVisitError):
    """Raised when booking a slot that has already started."""

    def __init__(self, slot: str, visit_date):
        super().__init__(f"Slot unavailable: {slot} on {visit_date} is in the past")
        self.slot = slot
        self.visit_date = visit_date


class TransitionRejected(BankVisitError):
    """Raised when an operation must return a value but the state guard refuses it."""

    def __init__(self, message: str, status):
        super().__init__(message)
        self.status = status
