"""Heuristic cost estimates for discovered places.

Estimates are produced in the destination's local currency:

    base USD range * city tier * budget level * rate_to_usd

then rounded the way prices are usually quoted in that currency.
"""

from dataclasses import dataclass

from vibetrip.app.services.pipeline.models import CurrencyInfo

# Very expensive cities
TIER_1_CITIES = (
    "New York", "London", "Paris", "Tokyo", "Zurich", "Singapore",
    "San Francisco", "Reykjavik", "Dubai", "Sydney", "Hong Kong",
    "Copenhagen", "Oslo", "Geneva",
)

# Budget-friendly cities
TIER_3_CITIES = (
    "Bangkok", "Hanoi", "Cairo", "Delhi", "Bali", "Mexico City",
    "Istanbul", "Manila", "Buenos Aires", "Lima", "Ho Chi Minh City",
    "Prague", "Budapest", "Lisbon",
)

TIER_1_MULTIPLIER = 1.6
TIER_3_MULTIPLIER = 0.5

BUDGET_MULTIPLIERS = {
    "Budget": 0.6,
    "Moderate": 1.1,
    "Luxury": 3.5,
}

# USD [min, max] for a moderate budget in a standard city
BASE_COSTS = {
    "Hotel": (120, 220),     # per night
    "Food": (20, 50),        # per meal
    "Activity": (20, 60),    # per ticket
    "Landmark": (5, 25),     # entry fee
}
DEFAULT_BASE_COST = (10, 40)

ZERO_DECIMAL_CURRENCIES = frozenset(("JPY", "KRW", "VND", "HUF", "IDR"))
THREE_DECIMAL_CURRENCIES = frozenset(("KWD", "BHD", "OMR"))


@dataclass(frozen=True)
class CostEstimate:
    min_cost: int
    max_cost: int
    currency: str
    formatted: str

    def to_dict(self) -> dict:
        return {
            "minCost": self.min_cost,
            "maxCost": self.max_cost,
            "currency": self.currency,
            "formatted": self.formatted,
        }


def city_multiplier(city: str) -> float:
    normalized = city.lower()
    if any(c.lower() in normalized for c in TIER_1_CITIES):
        return TIER_1_MULTIPLIER
    if any(c.lower() in normalized for c in TIER_3_CITIES):
        return TIER_3_MULTIPLIER
    return 1.0


def format_local_amount(amount: float, currency: CurrencyInfo) -> str:
    """Round and render an amount in ``currency``.

    Zero-decimal currencies round to the nearest 100, three-decimal ones
    keep their precision, everything else rounds to the nearest 5 above 50
    and to the nearest unit below.
    """
    if currency.code in ZERO_DECIMAL_CURRENCIES:
        rounded = round(amount / 100) * 100
        return f"{currency.symbol}{rounded:,.0f}"

    if currency.code in THREE_DECIMAL_CURRENCIES:
        return f"{currency.symbol}{amount:,.3f}"

    rounded = round(amount / 5) * 5 if amount > 50 else round(amount)
    return f"{currency.symbol}{rounded:,.0f}"


def estimate_activity_cost(
    place_type: str,
    city: str,
    budget_level: str,
    currency: CurrencyInfo,
) -> CostEstimate:
    """Estimate the local-currency price range for one place.

    Args:
        place_type: Activity, Food, Hotel or Landmark; anything else uses a default range
        city: Destination, matched case-insensitively against the tier lists
        budget_level: Budget, Moderate or Luxury
        currency: Target currency with its USD rate

    Returns:
        CostEstimate with rounded bounds and a display string such as
        ``"€25-€70"``, ``"Free-€9"`` or ``"Free"``
    """
    base_min, base_max = BASE_COSTS.get(place_type, DEFAULT_BASE_COST)
    factor = (
        city_multiplier(city)
        * BUDGET_MULTIPLIERS.get(budget_level, BUDGET_MULTIPLIERS["Moderate"])
        * currency.rate_to_usd
    )
    min_cost = base_min * factor
    max_cost = base_max * factor

    # Budget travellers rarely pay full entry for landmarks
    if place_type == "Landmark" and budget_level == "Budget":
        min_cost = 0.0
        max_cost = min(max_cost, 15 * currency.rate_to_usd)

    max_str = format_local_amount(max_cost, currency)
    if min_cost <= 1 and max_cost <= 1:
        formatted = "Free"
    elif min_cost <= 1:
        formatted = f"Free-{max_str}"
    else:
        formatted = f"{format_local_amount(min_cost, currency)}-{max_str}"

    return CostEstimate(
        min_cost=round(min_cost),
        max_cost=round(max_cost),
        currency=currency.code,
        formatted=formatted,
    )
