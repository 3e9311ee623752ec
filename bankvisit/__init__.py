"""Branch-visit scheduling engine: crowd density, slot recommendation,
wait-time estimation and appointment lifecycle."""
from bankvisit.scheduler import VisitScheduler

__all__ = ["VisitScheduler"]
