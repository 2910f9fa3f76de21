"""Deterministic itinerary used when optimization cannot produce one.

The output is a pure function of the intent and the discovered candidates:
no clock, no randomness, so the same inputs always yield the same plan.
"""

from vibetrip.app.core.utils import content_hash
from vibetrip.app.services.pipeline.models import (
    DayPlan,
    DiscoveryResult,
    Itinerary,
    OptimizationResult,
    PlanReasoning,
    TripIntent,
)

FALLBACK_CONFIDENCE = 0.2
FALLBACK_ASSUMPTION = "System fallback: Simple logic used due to AI timeout."


def generate_fallback_itinerary(
    intent: TripIntent, discovery: DiscoveryResult
) -> OptimizationResult:
    """Distribute discovered places over the trip days round-robin.

    For day ``d`` (1-based) with ``k`` activities and ``m`` dining options:

    - morning: ``activities[(d-1) % k]`` when ``k > 0``
    - afternoon: ``activities[(d + k//2) % k]`` when ``k > 1``
    - evening: ``dining[(d-1) % m]`` when ``m > 0``
    """
    activities = discovery.activities
    dining = discovery.dining
    k, m = len(activities), len(dining)

    days = []
    for d in range(1, intent.duration_days + 1):
        days.append(DayPlan(
            day=d,
            title=f"Day {d}: Highlights of {intent.destination}",
            morning=[activities[(d - 1) % k]] if k > 0 else [],
            afternoon=[activities[(d + k // 2) % k]] if k > 1 else [],
            evening=[dining[(d - 1) % m]] if m > 0 else [],
            total_estimated_cost=0,
        ))

    seed = {"intent": intent.to_json_dict(), "discovery": discovery.to_json_dict()}
    itinerary = Itinerary(
        id=f"fallback_{content_hash(seed)}",
        title="Essential Trip Plan (Auto-Generated)",
        description=(
            "A streamlined itinerary based on your top interests. "
            "(Generated via fallback logic due to high demand)"
        ),
        tags=["Simple", "Highlights"],
        total_estimated_cost=0,
        currency=next(iter(intent.currency_rates), "USD"),
        days=days,
        reasoning=PlanReasoning(
            vibe_analysis=[],
            constraint_log=[
                "Optimization service was busy, applied standard distribution logic."
            ],
            selected_assumptions=["Standard pacing applied", "Selected top rated candidates"],
        ),
    )

    return OptimizationResult(
        itineraries=[itinerary],
        confidence_score=FALLBACK_CONFIDENCE,
        assumptions=[FALLBACK_ASSUMPTION],
    )
