"""Tests for the deterministic fallback itinerary."""

from vibetrip.app.services.pipeline.fallback import (
    FALLBACK_ASSUMPTION,
    FALLBACK_CONFIDENCE,
    generate_fallback_itinerary,
)
from vibetrip.app.services.pipeline.models import DiscoveryResult, Place, TripIntent
from vibetrip.app.services.pipeline.state import requires_confirmation


def _intent(days=3):
    return TripIntent.model_validate({
        "destination": "Lisbon",
        "durationDays": days,
        "budgetLevel": "Moderate",
        "currencies": [{"code": "EUR", "symbol": "€", "rateToUSD": 0.92}],
        "confidenceScore": 0.9,
    })


def _discovery(activities=4, dining=2):
    return DiscoveryResult(
        activities=[Place(name=f"A{i}") for i in range(activities)],
        dining=[Place(name=f"D{i}", type="Food") for i in range(dining)],
        confidence_score=0.9,
    )


def _names(slot):
    return [p.name for p in slot]


class TestFallbackItinerary:
    def test_round_robin_distribution(self):
        result = generate_fallback_itinerary(_intent(3), _discovery(4, 2))
        days = result.itineraries[0].days

        assert [d.day for d in days] == [1, 2, 3]
        # morning: (d-1) % k, afternoon: (d + k//2) % k, evening: (d-1) % m
        assert [_names(d.morning) for d in days] == [["A0"], ["A1"], ["A2"]]
        assert [_names(d.afternoon) for d in days] == [["A3"], ["A0"], ["A1"]]
        assert [_names(d.evening) for d in days] == [["D0"], ["D1"], ["D0"]]

    def test_single_activity_has_no_afternoon(self):
        result = generate_fallback_itinerary(_intent(2), _discovery(1, 0))
        days = result.itineraries[0].days

        assert all(_names(d.morning) == ["A0"] for d in days)
        assert all(d.afternoon == [] for d in days)
        assert all(d.evening == [] for d in days)

    def test_no_candidates_yields_empty_days(self):
        result = generate_fallback_itinerary(_intent(2), _discovery(0, 0))

        assert len(result.itineraries[0].days) == 2
        assert all(not (d.morning or d.afternoon or d.evening) for d in result.itineraries[0].days)

    def test_low_confidence_marks_fallback(self):
        result = generate_fallback_itinerary(_intent(), _discovery())

        assert result.confidence_score == FALLBACK_CONFIDENCE == 0.2
        assert result.assumptions == [FALLBACK_ASSUMPTION]
        assert requires_confirmation(result) is True

    def test_deterministic_for_same_input(self):
        first = generate_fallback_itinerary(_intent(), _discovery())
        second = generate_fallback_itinerary(_intent(), _discovery())

        assert first.to_json_dict() == second.to_json_dict()
        assert first.itineraries[0].id.startswith("fallback_")

    def test_different_input_gets_different_id(self):
        first = generate_fallback_itinerary(_intent(3), _discovery())
        second = generate_fallback_itinerary(_intent(4), _discovery())

        assert first.itineraries[0].id != second.itineraries[0].id

    def test_itinerary_metadata(self):
        itinerary = generate_fallback_itinerary(_intent(), _discovery()).itineraries[0]

        assert itinerary.title == "Essential Trip Plan (Auto-Generated)"
        assert itinerary.currency == "EUR"
        assert itinerary.tags == ["Simple", "Highlights"]
        assert itinerary.days[0].title == "Day 1: Highlights of Lisbon"
