"""Prompts and response schemas for the pipeline stages.

Each builder returns a ``StageRequest``: the operation name used in logs and
errors plus the ``contents`` and ``config`` sent to the model. Schemas use the
Gemini REST schema dialect (upper-case type names).
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from vibetrip.app.services.pipeline.models import (
    DiscoveryResult,
    Itinerary,
    TripIntent,
    UserProfile,
)

INTENT_OPERATION = "IntentParser"
DISCOVERY_OPERATION = "DiscoveryAgent"
OPTIMIZATION_OPERATION = "OptimizationAgent"
REFINE_OPERATION = "RefineItineraryAgent"


@dataclass
class StageRequest:
    operation_name: str
    model: str
    contents: str
    config: Dict[str, Any] = field(default_factory=dict)


def _array(items: dict) -> dict:
    return {"type": "ARRAY", "items": items}


STRING_LIST = _array({"type": "STRING"})
META_PROPERTIES = {
    "confidenceScore": {"type": "NUMBER", "description": "0.0 to 1.0"},
    "assumptions": STRING_LIST,
}

INTENT_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "destination": {"type": "STRING"},
        "startDate": {"type": "STRING", "description": "YYYY-MM-DD or null"},
        "endDate": {"type": "STRING", "description": "YYYY-MM-DD or null"},
        "durationDays": {"type": "INTEGER"},
        "budgetLevel": {"type": "STRING", "enum": ["Budget", "Moderate", "Luxury"]},
        "travelers": {
            "type": "OBJECT",
            "properties": {
                "adults": {"type": "INTEGER"},
                "children": {"type": "INTEGER"},
                "seniors": {"type": "INTEGER"},
            },
        },
        "vibes": STRING_LIST,
        "constraints": STRING_LIST,
        "currencies": _array({
            "type": "OBJECT",
            "properties": {
                "code": {"type": "STRING"},
                "symbol": {"type": "STRING"},
                "rateToUSD": {"type": "NUMBER", "description": "1 USD = X local currency"},
            },
            "required": ["code", "symbol", "rateToUSD"],
        }),
        **META_PROPERTIES,
    },
    "required": [
        "destination", "durationDays", "budgetLevel", "travelers", "vibes",
        "confidenceScore", "assumptions", "currencies",
    ],
}

PLACE_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "name": {"type": "STRING"},
        "description": {"type": "STRING"},
        "type": {"type": "STRING", "enum": ["Activity", "Food", "Hotel", "Landmark"]},
        "estimatedCost": {"type": "STRING"},
        "currencyCode": {"type": "STRING"},
        "coordinates": {
            "type": "OBJECT",
            "properties": {"lat": {"type": "NUMBER"}, "lng": {"type": "NUMBER"}},
        },
    },
}

DISCOVERY_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "activities": _array(PLACE_SCHEMA),
        "dining": _array(PLACE_SCHEMA),
        "accommodations": _array(PLACE_SCHEMA),
        **META_PROPERTIES,
    },
    "required": ["activities", "dining", "accommodations", "confidenceScore", "assumptions"],
}

ITINERARY_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "id": {"type": "STRING"},
        "title": {"type": "STRING"},
        "description": {"type": "STRING"},
        "tags": STRING_LIST,
        "totalEstimatedCost": {"type": "NUMBER"},
        "currency": {"type": "STRING"},
        "reasoning": {
            "type": "OBJECT",
            "properties": {
                "vibeAnalysis": _array({
                    "type": "OBJECT",
                    "properties": {
                        "vibe": {"type": "STRING"},
                        "matchedActivities": STRING_LIST,
                    },
                }),
                "constraintLog": STRING_LIST,
                "selectedAssumptions": STRING_LIST,
            },
        },
        "days": _array({
            "type": "OBJECT",
            "properties": {
                "day": {"type": "INTEGER"},
                "title": {"type": "STRING"},
                "morning": _array(PLACE_SCHEMA),
                "afternoon": _array(PLACE_SCHEMA),
                "evening": _array(PLACE_SCHEMA),
                "totalEstimatedCost": {"type": "NUMBER"},
            },
        }),
    },
    "required": ["id", "title", "days"],
}

OPTIMIZATION_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "itineraries": _array(ITINERARY_SCHEMA),
        **META_PROPERTIES,
    },
    "required": ["itineraries", "confidenceScore", "assumptions"],
}


def _json_config(system_instruction: str, schema: dict) -> dict:
    return {
        "systemInstruction": system_instruction,
        "responseMimeType": "application/json",
        "responseSchema": schema,
    }


def _profile_context(profile: Optional[UserProfile]) -> str:
    if profile is None:
        return ""
    prefs = profile.preferences
    return (
        "USER PROFILE DEFAULTS (apply unless the conversation overrides them):\n"
        f"- Preferred Pace: {prefs.pace}\n"
        f"- Default Budget: {prefs.budget_tier}\n"
        f"- Accessibility Needs: {', '.join(prefs.accessibility) or 'None'}\n"
        f"- Dietary Restrictions: {', '.join(prefs.dietary_restrictions) or 'None'}\n"
        "Add accessibility needs to 'constraints' and the pace to 'vibes'.\n"
    )


def build_intent_request(
    message: str, model: str, profile: Optional[UserProfile] = None
) -> StageRequest:
    system_instruction = (
        "You are an expert Travel Intent Parser. Extract the trip details from "
        "the conversation into JSON matching the schema.\n"
        f"{_profile_context(profile)}"
        "Identify the local currency of each destination with an approximate "
        "rate (units per 1 USD). List every guess in 'assumptions' and give a "
        "'confidenceScore' between 0.0 and 1.0."
    )
    return StageRequest(
        operation_name=INTENT_OPERATION,
        model=model,
        contents=f"History: {message}\n\nExtract the trip intent.",
        config=_json_config(system_instruction, INTENT_SCHEMA),
    )


def build_discovery_request(intent: TripIntent, model: str) -> StageRequest:
    return StageRequest(
        operation_name=DISCOVERY_OPERATION,
        model=model,
        contents=(
            f"Find candidates for a {intent.duration_days}-day trip to "
            f"{intent.destination}. Budget: {intent.budget_level}. "
            f"Vibe: {', '.join(intent.vibes)}. Provide approximate lat/lng "
            "coordinates and the local currency code for each place."
        ),
        config=_json_config(
            "You are an expert Travel Scout. Find specific, real places.",
            DISCOVERY_SCHEMA,
        ),
    )


def build_optimization_request(
    intent: TripIntent, discovery: DiscoveryResult, model: str
) -> StageRequest:
    return StageRequest(
        operation_name=OPTIMIZATION_OPERATION,
        model=model,
        contents=(
            f"Intent: {json.dumps(intent.to_json_dict(), ensure_ascii=False)}\n"
            f"Candidates: {json.dumps(discovery.to_json_dict(), ensure_ascii=False)}\n"
            "Sequence the candidates into day-by-day itineraries."
        ),
        config=_json_config(
            "You are a Travel Optimizer. Group nearby places on the same day, "
            "respect the constraints and explain choices in 'reasoning'.",
            OPTIMIZATION_SCHEMA,
        ),
    )


def build_refine_request(
    itinerary: Itinerary,
    instruction: str,
    discovery: Optional[DiscoveryResult],
    model: str,
) -> StageRequest:
    candidates = discovery.to_json_dict() if discovery else {}
    return StageRequest(
        operation_name=REFINE_OPERATION,
        model=model,
        contents=(
            f"Current Itinerary: {json.dumps(itinerary.to_json_dict(), ensure_ascii=False)}\n"
            f"User Instruction: {instruction}\n"
            f"Available Candidates: {json.dumps(candidates, ensure_ascii=False)}"
        ),
        config=_json_config(
            "Edit itinerary based on request. Maintain structure. "
            "Include coordinates and currency codes.",
            ITINERARY_SCHEMA,
        ),
    )
