"""Mock provider for local development and tests.

This provider simulates Gemini responses without making external API calls.
When a response schema is supplied it returns deterministic JSON shaped for
the pipeline stage that schema belongs to, so the whole pipeline can run
offline.

Enable by setting environment variable:
    VIBETRIP_MOCK_PROVIDER=true
"""

import asyncio
import json
import random
import re
from typing import Any, Dict, Optional

from vibetrip.app.exceptions import TransientRemoteError
from vibetrip.app.providers.base import BaseProvider, Contents

_DESTINATION_RE = re.compile(r"\bto ([A-Z][\w' -]*?)(?=\s+for\b|[.,!?\n]|$)")
_DURATION_RE = re.compile(r"(\d+)[\s-]*days?\b", re.IGNORECASE)
_SECTION_RE = r"^{label}: (.*)$"

DEFAULT_DESTINATION = "Lisbon"
DEFAULT_DURATION = 3

_CURRENCIES = {
    "tokyo": {"code": "JPY", "symbol": "¥", "rateToUSD": 150},
    "kyoto": {"code": "JPY", "symbol": "¥", "rateToUSD": 150},
    "london": {"code": "GBP", "symbol": "£", "rateToUSD": 0.79},
    "new york": {"code": "USD", "symbol": "$", "rateToUSD": 1},
}
_EURO = {"code": "EUR", "symbol": "€", "rateToUSD": 0.92}


def _prompt_text(contents: Contents) -> str:
    if isinstance(contents, str):
        return contents
    turns = [contents] if isinstance(contents, dict) else contents
    texts = []
    for turn in turns:
        if isinstance(turn, dict):
            for part in turn.get("parts", []):
                if isinstance(part, dict) and "text" in part:
                    texts.append(str(part["text"]))
        elif isinstance(turn, str):
            texts.append(turn)
    return "\n".join(texts)


def _section(text: str, label: str) -> Optional[dict]:
    match = re.search(_SECTION_RE.format(label=re.escape(label)), text, re.MULTILINE)
    if not match:
        return None
    try:
        return json.loads(match.group(1))
    except json.JSONDecodeError:
        return None


class MockProvider(BaseProvider):
    """Mock model provider that returns simulated responses.

    Features:
    - Stage-shaped JSON chosen from the ``required`` fields of
      ``config["responseSchema"]``
    - Consistent output for the same input
    - Configurable delay and failure rate for exercising resilience code
    """

    def __init__(
        self,
        base_url: str = "http://mock.provider",
        api_key: str = "mock-key",
        http_client: Optional[Any] = None,
        timeout: float = 60.0,
        min_delay: float = 0.05,
        max_delay: float = 0.2,
        failure_rate: float = 0.0,
    ):
        """Initialize the mock provider.

        Args:
            base_url: Not used, provided for API compatibility
            api_key: Not used, provided for API compatibility
            http_client: Not used, provided for API compatibility
            timeout: Not used, provided for API compatibility
            min_delay: Minimum response delay in seconds
            max_delay: Maximum response delay in seconds
            failure_rate: Probability of a simulated transient failure (0-1)
        """
        super().__init__(base_url, api_key, http_client, timeout)
        self.min_delay = min_delay
        self.max_delay = max_delay
        self.failure_rate = failure_rate

    async def generate(
        self, model: str, contents: Contents, config: Optional[Dict[str, Any]] = None
    ) -> str:
        if self.max_delay > 0:
            await asyncio.sleep(random.uniform(self.min_delay, self.max_delay))

        if self.failure_rate and random.random() < self.failure_rate:
            raise TransientRemoteError("Simulated provider failure")

        text = _prompt_text(contents)
        schema = (config or {}).get("responseSchema") or {}
        required = set(schema.get("required", []))

        if "destination" in required:
            payload = self._intent(text)
        elif "accommodations" in required:
            payload = self._discovery(text)
        elif "itineraries" in required:
            payload = self._optimization(text)
        elif "days" in required:
            payload = self._refine(text)
        else:
            return f"Mock response from {model}: {text[:200]}"
        return json.dumps(payload, ensure_ascii=False)

    def _intent(self, text: str) -> dict:
        destination_match = _DESTINATION_RE.search(text)
        duration_match = _DURATION_RE.search(text)

        assumptions = []
        if destination_match:
            destination = destination_match.group(1).strip()
        else:
            destination = DEFAULT_DESTINATION
            assumptions.append(f"No destination given, suggested {DEFAULT_DESTINATION}")
        if duration_match:
            duration = max(1, int(duration_match.group(1)))
        else:
            duration = DEFAULT_DURATION
            assumptions.append(f"Assumed a {DEFAULT_DURATION}-day trip")

        return {
            "destination": destination,
            "startDate": None,
            "endDate": None,
            "durationDays": duration,
            "budgetLevel": "Moderate",
            "travelers": {"adults": 1, "children": 0, "seniors": 0},
            "vibes": ["Culture", "Food"],
            "constraints": [],
            "currencies": [_CURRENCIES.get(destination.lower(), _EURO)],
            "confidenceScore": 0.5 if assumptions else 0.95,
            "assumptions": assumptions,
        }

    def _discovery(self, text: str) -> dict:
        match = re.search(r"trip to (.+?)\. Budget", text)
        destination = match.group(1) if match else DEFAULT_DESTINATION

        def place(name: str, place_type: str, lat: float, lng: float) -> dict:
            return {
                "name": f"{destination} {name}",
                "description": f"{name} in {destination}",
                "type": place_type,
                "estimatedCost": "",
                "coordinates": {"lat": lat, "lng": lng},
            }

        return {
            "activities": [
                place("Old Town Walk", "Activity", 0.01, 0.01),
                place("Cathedral", "Landmark", 0.02, 0.01),
                place("History Museum", "Activity", 0.01, 0.03),
                place("Riverside Park", "Activity", 0.03, 0.02),
            ],
            "dining": [
                place("Market Hall", "Food", 0.01, 0.02),
                place("Harbour Bistro", "Food", 0.02, 0.03),
            ],
            "accommodations": [place("Central Hotel", "Hotel", 0.0, 0.0)],
            "confidenceScore": 0.9,
            "assumptions": [],
        }

    def _optimization(self, text: str) -> dict:
        intent = _section(text, "Intent") or {}
        candidates = _section(text, "Candidates") or {}
        destination = intent.get("destination", DEFAULT_DESTINATION)
        duration = int(intent.get("durationDays", DEFAULT_DURATION))
        activities = candidates.get("activities", [])
        dining = candidates.get("dining", [])

        days = []
        for d in range(duration):
            days.append({
                "day": d + 1,
                "title": f"Day {d + 1} in {destination}",
                "morning": activities[d * 2 % len(activities):][:1] if activities else [],
                "afternoon": activities[(d * 2 + 1) % len(activities):][:1] if activities else [],
                "evening": dining[d % len(dining):][:1] if dining else [],
                "totalEstimatedCost": 0,
            })

        currency = next(iter(intent.get("currencyRates", {})), "USD")
        return {
            "itineraries": [{
                "id": f"plan-{destination.lower().replace(' ', '-')}-1",
                "title": f"Best of {destination}",
                "description": f"A balanced {duration}-day plan.",
                "tags": ["Balanced"],
                "totalEstimatedCost": 0,
                "currency": currency,
                "days": days,
                "reasoning": {
                    "vibeAnalysis": [],
                    "constraintLog": [],
                    "selectedAssumptions": [],
                },
            }],
            "confidenceScore": 0.9,
            "assumptions": [],
        }

    def _refine(self, text: str) -> dict:
        itinerary = _section(text, "Current Itinerary") or {}
        instruction = re.search(r"^User Instruction: (.*)$", text, re.MULTILINE)
        itinerary.setdefault("id", "refined")
        itinerary.setdefault("title", "Refined plan")
        itinerary.setdefault("days", [])
        if instruction:
            itinerary["description"] = f"Refined: {instruction.group(1)}"
        return itinerary

    async def health_check(self, timeout: float = 2.0) -> bool:
        """Mock provider is always healthy."""
        return True
