"""Tests for local-currency cost estimates."""

import pytest

from vibetrip.app.services.cost_estimator import (
    city_multiplier,
    estimate_activity_cost,
    format_local_amount,
)
from vibetrip.app.services.pipeline.models import USD, CurrencyInfo

EUR = CurrencyInfo(code="EUR", symbol="€", rate_to_usd=0.92)
JPY = CurrencyInfo(code="JPY", symbol="¥", rate_to_usd=150)
KWD = CurrencyInfo(code="KWD", symbol="KD", rate_to_usd=0.31)


@pytest.mark.parametrize(
    "city, expected",
    [
        ("Tokyo", 1.6),
        ("new york city", 1.6),
        ("Lisbon", 0.5),
        ("Bangkok", 0.5),
        ("Porto", 1.0),
    ],
)
def test_city_multiplier(city, expected):
    assert city_multiplier(city) == expected


class TestFormatLocalAmount:
    def test_zero_decimal_currency_rounds_to_hundreds(self):
        assert format_local_amount(12345, JPY) == "¥12,300"

    def test_three_decimal_currency_keeps_precision(self):
        assert format_local_amount(12.3456, KWD) == "KD12.346"

    def test_large_amounts_round_to_five(self):
        assert format_local_amount(63, EUR) == "€65"

    def test_small_amounts_round_to_unit(self):
        assert format_local_amount(12.4, USD) == "$12"


class TestEstimateActivityCost:
    def test_moderate_activity_in_mid_tier_city(self):
        estimate = estimate_activity_cost("Activity", "Porto", "Moderate", USD)

        # 20-60 USD * 1.1
        assert estimate.min_cost == 22
        assert estimate.max_cost == 66
        assert estimate.formatted == "$22-$65"
        assert estimate.currency == "USD"

    def test_luxury_hotel_in_tier_one_city_converted(self):
        estimate = estimate_activity_cost("Hotel", "Tokyo", "Luxury", JPY)

        # 120 * 1.6 * 3.5 * 150 = 100800, 220 * 1.6 * 3.5 * 150 = 184800
        assert estimate.formatted == "¥100,800-¥184,800"

    def test_budget_landmark_is_free_from(self):
        estimate = estimate_activity_cost("Landmark", "Lisbon", "Budget", EUR)

        assert estimate.min_cost == 0
        assert estimate.formatted.startswith("Free-€")

    def test_budget_landmark_max_is_capped(self):
        estimate = estimate_activity_cost("Landmark", "Zurich", "Budget", USD)

        # 25 * 1.6 * 0.6 = 24 is capped at 15
        assert estimate.max_cost == 15

    def test_unknown_type_uses_default_range(self):
        estimate = estimate_activity_cost("Spa", "Porto", "Moderate", USD)

        assert (estimate.min_cost, estimate.max_cost) == (11, 44)

    def test_to_dict_uses_camel_case(self):
        data = estimate_activity_cost("Food", "Porto", "Budget", USD).to_dict()

        assert set(data) == {"minCost", "maxCost", "currency", "formatted"}
