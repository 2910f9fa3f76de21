"""Pipeline session state machine.

    IDLE ─► RUNNING(intent) ─► AWAITING_CONFIRMATION(intent) ─┐
                  │                                           │ confirm
                  ▼                                           ▼
            RUNNING(discovery) ◄──────────────────────────────┘
                  │
                  ▼
            AWAITING_CONFIRMATION(discovery) ─► RUNNING(optimization) ─► COMPLETE

Any stage that fails without a fallback moves the session to FAILED; cancel
from a gate moves it to CANCELLED and discards all stage data.
"""

import enum
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from vibetrip.app.services.pipeline.models import (
    DiscoveryResult,
    Itinerary,
    OptimizationResult,
    TripIntent,
    UserProfile,
)

# Results below this confidence, or with any assumption, pause for review
CONFIDENCE_THRESHOLD = 0.7


class Stage(str, enum.Enum):
    INTENT = "intent"
    DISCOVERY = "discovery"
    OPTIMIZATION = "optimization"
    REFINE = "refine"


class PipelineStatus(str, enum.Enum):
    IDLE = "IDLE"
    RUNNING = "RUNNING"
    AWAITING_CONFIRMATION = "AWAITING_CONFIRMATION"
    COMPLETE = "COMPLETE"
    CANCELLED = "CANCELLED"
    FAILED = "FAILED"


GatedResult = Union[TripIntent, DiscoveryResult, OptimizationResult]


def requires_confirmation(result: GatedResult) -> bool:
    return result.confidence_score < CONFIDENCE_THRESHOLD or bool(result.assumptions)


@dataclass
class PipelineSession:
    """One user's progress through the pipeline.

    Sessions are mutated only while the session store's per-trip lock is held.
    """

    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    message: str = ""
    user_profile: Optional[UserProfile] = None
    status: PipelineStatus = PipelineStatus.IDLE
    stage: Optional[Stage] = None

    intent: Optional[TripIntent] = None
    discovery: Optional[DiscoveryResult] = None
    optimization: Optional[OptimizationResult] = None

    notice: Optional[str] = None
    error: Optional[dict] = None
    created_at: float = field(default_factory=time.time)
    updated_at: float = field(default_factory=time.time)

    @property
    def pending_result(self) -> Optional[GatedResult]:
        if self.status is not PipelineStatus.AWAITING_CONFIRMATION:
            return None
        if self.stage is Stage.INTENT:
            return self.intent
        if self.stage is Stage.DISCOVERY:
            return self.discovery
        return None

    def find_itinerary(self, itinerary_id: str) -> Optional[Itinerary]:
        if self.optimization is None:
            return None
        return next(
            (it for it in self.optimization.itineraries if it.id == itinerary_id),
            None,
        )

    def replace_itinerary(self, itinerary: Itinerary) -> None:
        if self.optimization is None:
            return
        self.optimization.itineraries = [
            itinerary if it.id == itinerary.id else it
            for it in self.optimization.itineraries
        ]

    def enter(self, status: PipelineStatus, stage: Optional[Stage] = None) -> None:
        self.status = status
        self.stage = stage
        self.updated_at = time.time()

    def clear(self) -> None:
        """Discard all stage data (cancel)."""
        self.intent = None
        self.discovery = None
        self.optimization = None
        self.notice = None
        self.error = None
        self.enter(PipelineStatus.CANCELLED)

    def to_dict(self) -> dict[str, Any]:
        pending = self.pending_result
        return {
            "id": self.id,
            "status": self.status.value,
            "stage": self.stage.value if self.stage else None,
            "requiresConfirmation": pending is not None,
            "pending": pending.to_json_dict() if pending is not None else None,
            "intent": self.intent.to_json_dict() if self.intent else None,
            "discovery": self.discovery.to_json_dict() if self.discovery else None,
            "itineraries": (
                [it.to_json_dict() for it in self.optimization.itineraries]
                if self.optimization else []
            ),
            "confidenceScore": (
                self.optimization.confidence_score if self.optimization else None
            ),
            "notice": self.notice,
            "error": self.error,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }
