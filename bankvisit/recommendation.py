"""Deterministic best-slot recommendation.

The pick is the first slot, in chronological order, within the best crowd
tier present. This is the single authority on which slot is "recommended";
advisory text may only narrate it.
"""
from datetime import date
from typing import List, Optional, Sequence

from bankvisit.density import SlotDensityModel
from bankvisit.errors import SlotNotFoundError
from bankvisit.logging_config import get_logger
from bankvisit.models import Recommendation
from bankvisit.state import CROWD_TIERS

logger = get_logger(__name__)


class RecommendationEngine:
    """Select the lowest-crowd slot from a density snapshot."""

    def __init__(self, density: SlotDensityModel):
        self.density = density

    def ranked_slots(
        self,
        branch_id: str,
        visit_date: date,
        candidates: Optional[Sequence[str]] = None
    ) -> List[str]:
        """Candidate slots (default: all) ordered by crowd tier, then chronologically."""
        labels = self.density.labels(branch_id, visit_date)
        order = {slot: index for index, slot in enumerate(self.density.slots)}
        pool = self._pool(candidates)
        return sorted(pool, key=lambda slot: (labels[slot].rank, order[slot]))

    def _pool(self, candidates: Optional[Sequence[str]]) -> List[str]:
        if candidates is None:
            return list(self.density.slots)
        wanted = set(candidates)
        for slot in wanted:
            if slot not in self.density.slots:
                raise SlotNotFoundError(slot)
        return [slot for slot in self.density.slots if slot in wanted]

    def recommend(
        self,
        branch_id: str,
        visit_date: date,
        service_id: Optional[str] = None,
        alternatives: int = 2,
        candidates: Optional[Sequence[str]] = None
    ) -> Recommendation:
        """
        Pick the recommended slot.

        Tiers are tried Low -> Moderate -> High -> Very High, so a slot is
        always returned even when every slot is crowded.

        Args:
            branch_id: Branch identifier
            visit_date: Visit date
            service_id: Carried through to the result for display
            alternatives: How many runner-up slots to include
            candidates: Restrict the pick to these slots (default: all)

        Returns:
            Recommendation with slot, its label and the day's average load
        """
        labels = self.density.labels(branch_id, visit_date)
        pool = self._pool(candidates)
        if not pool:
            raise ValueError("No candidate slots to recommend from")

        recommended = None
        for tier in CROWD_TIERS:
            recommended = next(
                (slot for slot in pool if labels[slot] == tier),
                None
            )
            if recommended is not None:
                break

        ranked = self.ranked_slots(branch_id, visit_date, pool)
        runners_up = [slot for slot in ranked if slot != recommended][:alternatives]

        result = Recommendation(
            service_id=service_id,
            branch_id=branch_id,
            visit_date=visit_date,
            recommended_slot=recommended,
            crowd_label=labels[recommended],
            average_load_percent=self.density.average_load(branch_id, visit_date),
            slot_labels=labels,
            alternatives=runners_up,
        )

        logger.debug(
            "slot_recommended",
            branch_id=branch_id,
            visit_date=visit_date.isoformat(),
            recommended_slot=recommended,
            crowd_label=result.crowd_label.value,
            average_load_percent=result.average_load_percent,
        )
        return result
