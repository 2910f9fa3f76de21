"""Pydantic models for pipeline stage payloads.

Field names follow the camelCase JSON the model returns and the client
consumes; Python attributes are snake_case. Only ``confidence_score`` and
``assumptions`` influence control flow, everything else is carried as data.
"""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

BudgetLevel = Literal["Budget", "Moderate", "Luxury"]
PlaceType = Literal["Activity", "Food", "Hotel", "Landmark"]


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_json_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Coordinates(CamelModel):
    lat: float
    lng: float


class Travelers(CamelModel):
    adults: int = Field(default=1, ge=1)
    children: int = Field(default=0, ge=0)
    seniors: int = Field(default=0, ge=0)


class CurrencyInfo(CamelModel):
    """``rate_to_usd`` is how many units of this currency buy 1 USD."""

    code: str
    symbol: str = "$"
    rate_to_usd: float = Field(default=1.0, gt=0, alias="rateToUSD")


USD = CurrencyInfo(code="USD", symbol="$", rate_to_usd=1.0)


class UserPreferences(CamelModel):
    pace: Literal["Relaxed", "Moderate", "Fast Paced"] = "Moderate"
    budget_tier: BudgetLevel = "Moderate"
    accessibility: list[str] = Field(default_factory=list)
    dietary_restrictions: list[str] = Field(default_factory=list)


class UserProfile(CamelModel):
    id: str = ""
    name: str = ""
    preferences: UserPreferences = Field(default_factory=UserPreferences)


class StageMetadata(CamelModel):
    confidence_score: float = Field(ge=0.0, le=1.0)
    assumptions: list[str] = Field(default_factory=list)


class TripIntent(StageMetadata):
    """Structured trip request extracted from the conversation.

    The model returns ``currencies`` as a list; it is folded into
    ``currency_rates`` keyed by ISO code, defaulting to USD when empty.
    """

    destination: str = Field(min_length=1)
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    duration_days: int = Field(default=3, ge=1)
    budget_level: BudgetLevel
    travelers: Travelers = Field(default_factory=Travelers)
    vibes: list[str] = Field(default_factory=list)
    constraints: list[str] = Field(default_factory=list)
    currency_rates: dict[str, CurrencyInfo] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def fold_currencies(cls, data):
        if not isinstance(data, dict):
            return data
        data = dict(data)
        currencies = data.pop("currencies", None) or []
        rates = dict(data.get("currencyRates") or data.get("currency_rates") or {})
        for currency in currencies:
            if isinstance(currency, dict) and currency.get("code"):
                rates[currency["code"]] = currency
        if not rates:
            rates = {"USD": USD.to_json_dict()}
        data.pop("currency_rates", None)
        data["currencyRates"] = rates
        return data

    @property
    def primary_currency(self) -> CurrencyInfo:
        return next(iter(self.currency_rates.values()), USD)


class Place(CamelModel):
    name: str
    description: str = ""
    type: str = "Activity"
    coordinates: Optional[Coordinates] = None
    estimated_cost: str = ""
    currency_code: Optional[str] = None
    booking_url: Optional[str] = None
    image_url: Optional[str] = None
    rating: Optional[float] = None
    address: Optional[str] = None


class DiscoveryResult(StageMetadata):
    activities: list[Place] = Field(default_factory=list)
    dining: list[Place] = Field(default_factory=list)
    accommodations: list[Place] = Field(default_factory=list)


class DayPlan(CamelModel):
    day: int
    title: str = ""
    morning: list[Place] = Field(default_factory=list)
    afternoon: list[Place] = Field(default_factory=list)
    evening: list[Place] = Field(default_factory=list)
    total_estimated_cost: float = 0


class VibeMatch(CamelModel):
    vibe: str
    matched_activities: list[str] = Field(default_factory=list)


class PlanReasoning(CamelModel):
    vibe_analysis: list[VibeMatch] = Field(default_factory=list)
    constraint_log: list[str] = Field(default_factory=list)
    selected_assumptions: list[str] = Field(default_factory=list)


class Itinerary(CamelModel):
    id: str
    title: str
    description: str = ""
    tags: list[str] = Field(default_factory=list)
    total_estimated_cost: float = 0
    currency: str = "USD"
    days: list[DayPlan] = Field(default_factory=list)
    reasoning: Optional[PlanReasoning] = None


class OptimizationResult(StageMetadata):
    itineraries: list[Itinerary] = Field(min_length=1)
