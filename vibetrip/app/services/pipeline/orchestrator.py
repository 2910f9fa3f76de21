"""Trip planning pipeline: Intent -> Discovery -> Optimization (-> Refine).

Each stage is one call through the resilient model client. After Intent and
after Discovery the pipeline pauses for user confirmation when the result is
uncertain; the pause is a stored session state, resumed by ``confirm`` or
abandoned by ``cancel``. Optimization never fails the trip: once retries are
spent a deterministic itinerary is generated instead. Refine runs on demand
against a finished trip and surfaces its failures to the caller.
"""

import json
from dataclasses import dataclass
from typing import Optional

from vibetrip.app.core.cache import TTLCache
from vibetrip.app.core.config import Settings
from vibetrip.app.core.logging import get_log_context, get_logger
from vibetrip.app.core.utils import content_hash
from vibetrip.app.exceptions import (
    CircuitOpenError,
    GatewayException,
    InvalidTransitionError,
    NotFoundError,
    RetryExhaustedError,
    TerminalPipelineError,
)
from vibetrip.app.services.cost_estimator import estimate_activity_cost
from vibetrip.app.services.model_client import ResilientModelClient
from vibetrip.app.services.pipeline import agents
from vibetrip.app.services.pipeline.fallback import generate_fallback_itinerary
from vibetrip.app.services.pipeline.models import (
    USD,
    DiscoveryResult,
    Itinerary,
    OptimizationResult,
    Place,
    TripIntent,
    UserProfile,
)
from vibetrip.app.services.pipeline.sessions import SessionStore
from vibetrip.app.services.pipeline.state import (
    PipelineSession,
    PipelineStatus,
    Stage,
    requires_confirmation,
)
from vibetrip.app.services.stage_logger import StageLogger

logger = get_logger(__name__)

INTENT_APOLOGY = (
    "I couldn't quite catch the details of your trip. Could you please clarify "
    "where you want to go and for how long?"
)

BUSY_MESSAGE = (
    "We're experiencing high traffic right now. Please try again in a minute."
)


def parse_intent(text: str) -> TripIntent:
    return TripIntent.model_validate(json.loads(text))


def parse_discovery(text: str) -> DiscoveryResult:
    return DiscoveryResult.model_validate(json.loads(text))


def parse_optimization(text: str) -> OptimizationResult:
    return OptimizationResult.model_validate(json.loads(text))


def parse_itinerary(text: str) -> Itinerary:
    return Itinerary.model_validate(json.loads(text))


def _root_cause(error: BaseException) -> BaseException:
    if isinstance(error, RetryExhaustedError):
        return error.last_error
    return error


@dataclass
class PipelineCaches:
    intent: Optional[TTLCache] = None
    discovery: Optional[TTLCache] = None
    places: Optional[TTLCache] = None


class OrchestrationPipeline:
    """Runs trip sessions through the stage state machine.

    Usage:
        session = await pipeline.start("5 days in Kyoto, temples and food")
        if session.status is PipelineStatus.AWAITING_CONFIRMATION:
            session = await pipeline.confirm(session.id)
    """

    def __init__(
        self,
        client: ResilientModelClient,
        sessions: SessionStore,
        settings: Settings,
        stage_logger: Optional[StageLogger] = None,
        caches: Optional[PipelineCaches] = None,
    ):
        self.client = client
        self.sessions = sessions
        self.settings = settings
        self.stage_logger = stage_logger or StageLogger()
        self.caches = caches or PipelineCaches()

    # -- transitions --------------------------------------------------------

    async def start(
        self, message: str, user_profile: Optional[UserProfile] = None
    ) -> PipelineSession:
        """Create a session and run it until it pauses, completes or fails."""
        session = self.sessions.add(PipelineSession(message=message, user_profile=user_profile))
        async with self.sessions.locked(session.id) as session:
            await self._run_intent(session)
            if session.status is PipelineStatus.RUNNING:
                await self._advance_from(session, Stage.INTENT)
        return session

    async def confirm(self, trip_id: str) -> PipelineSession:
        """Accept the paused result and continue with the next stage.

        Raises:
            InvalidTransitionError: If the session is not awaiting confirmation
        """
        async with self.sessions.locked(trip_id) as session:
            self._require_awaiting(session, "confirm")
            stage = session.stage
            logger.info(
                f"[{stage.value}] Result confirmed",
                extra=get_log_context(stage=stage.value, trip_id=trip_id),
            )
            await self._advance_from(session, stage)
        return session

    async def cancel(self, trip_id: str) -> PipelineSession:
        """Abandon a paused session; all stage data is discarded.

        Raises:
            InvalidTransitionError: If the session is not awaiting confirmation
        """
        async with self.sessions.locked(trip_id) as session:
            self._require_awaiting(session, "cancel")
            logger.info(
                "Trip cancelled at confirmation gate",
                extra=get_log_context(stage=session.stage.value, trip_id=trip_id),
            )
            session.clear()
        return session

    async def refine(self, trip_id: str, itinerary_id: str, instruction: str) -> Itinerary:
        """Apply a free-form edit to one itinerary of a completed trip.

        The session stays COMPLETE whether or not the edit succeeds.

        Raises:
            InvalidTransitionError: If the trip is not complete
            NotFoundError: If the itinerary does not belong to the trip
            TerminalPipelineError: If the edit failed (retryable)
        """
        async with self.sessions.locked(trip_id) as session:
            if session.status is not PipelineStatus.COMPLETE:
                raise InvalidTransitionError(
                    f"Cannot refine trip in state {session.status.value}"
                )
            itinerary = session.find_itinerary(itinerary_id)
            if itinerary is None:
                raise NotFoundError(f"Itinerary {itinerary_id} not found")

            request = agents.build_refine_request(
                itinerary, instruction, session.discovery, self.settings.refine_model
            )
            entry_id = await self.stage_logger.start(
                Stage.REFINE.value,
                {"itinerary_id": itinerary_id, "instruction": instruction},
                trip_id=trip_id,
            )
            try:
                refined = await self._call(request, self.settings.timeout_refine, parse_itinerary)
            except GatewayException as e:
                await self.stage_logger.error(entry_id, e)
                raise TerminalPipelineError(
                    Stage.REFINE.value, e.message, retryable=True, trip_id=trip_id
                ) from e

            # The edited plan replaces the original in place
            refined.id = itinerary.id
            session.replace_itinerary(refined)
            session.enter(PipelineStatus.COMPLETE)
            await self.stage_logger.success(entry_id, refined, confidence=1.0)
            return refined

    # -- stages -------------------------------------------------------------

    async def _advance_from(self, session: PipelineSession, stage: Stage) -> None:
        if stage is Stage.INTENT:
            await self._run_discovery(session)
            if session.status is not PipelineStatus.RUNNING:
                return
        await self._run_optimization(session)

    async def _run_intent(self, session: PipelineSession) -> None:
        session.enter(PipelineStatus.RUNNING, Stage.INTENT)
        request = agents.build_intent_request(
            session.message, self.settings.intent_model, session.user_profile
        )
        cache_key = content_hash({
            "message": session.message,
            "profile": session.user_profile.to_json_dict() if session.user_profile else None,
        })
        entry_id = await self.stage_logger.start(
            Stage.INTENT.value, session.message, trip_id=session.id
        )

        try:
            intent = await self._call(
                request,
                self.settings.timeout_intent,
                parse_intent,
                cache=self.caches.intent,
                cache_key=f"intent:{cache_key}",
            )
        except Exception as e:
            await self.stage_logger.error(entry_id, e)
            if isinstance(_root_cause(e), ValueError):
                raise self._fail(session, Stage.INTENT, INTENT_APOLOGY, retryable=False) from e
            raise self._fail(session, Stage.INTENT, self._user_message(e)) from e

        session.intent = intent.model_copy(deep=True)
        await self.stage_logger.success(entry_id, intent, intent.confidence_score)
        self._gate(session, Stage.INTENT, session.intent)

    async def _run_discovery(self, session: PipelineSession) -> None:
        intent = session.intent
        session.enter(PipelineStatus.RUNNING, Stage.DISCOVERY)
        request = agents.build_discovery_request(intent, self.settings.discovery_model)
        entry_id = await self.stage_logger.start(
            Stage.DISCOVERY.value, intent, trip_id=session.id
        )

        try:
            discovery = await self._call(
                request,
                self.settings.timeout_discovery,
                parse_discovery,
                cache=self.caches.discovery,
                cache_key=f"discovery:{content_hash(intent.to_json_dict())}",
            )
        except Exception as e:
            await self.stage_logger.error(entry_id, e)
            raise self._fail(session, Stage.DISCOVERY, self._user_message(e)) from e

        discovery = discovery.model_copy(deep=True)
        await self._enrich_costs(intent, discovery)
        session.discovery = discovery
        await self.stage_logger.success(entry_id, discovery, discovery.confidence_score)
        self._gate(session, Stage.DISCOVERY, discovery)

    async def _run_optimization(self, session: PipelineSession) -> None:
        intent, discovery = session.intent, session.discovery
        session.enter(PipelineStatus.RUNNING, Stage.OPTIMIZATION)
        request = agents.build_optimization_request(
            intent, discovery, self.settings.optimization_model
        )
        entry_id = await self.stage_logger.start(
            Stage.OPTIMIZATION.value,
            {"intent": intent.to_json_dict(), "candidates": discovery.to_json_dict()},
            trip_id=session.id,
        )

        try:
            result = await self._call(
                request, self.settings.timeout_optimization, parse_optimization
            )
            await self.stage_logger.success(entry_id, result, result.confidence_score)
        except Exception as e:
            logger.warning(
                f"Optimization failed, switching to fallback: {e}",
                extra=get_log_context(stage=Stage.OPTIMIZATION.value, trip_id=session.id),
            )
            await self.stage_logger.error(entry_id, f"Optimization failed, using fallback: {e}")
            result = generate_fallback_itinerary(intent, discovery)

        session.optimization = result
        if requires_confirmation(result):
            session.notice = "Please review this plan: " + "; ".join(
                result.assumptions or ["low confidence in the generated plan"]
            )
        session.enter(PipelineStatus.COMPLETE)

    # -- helpers ------------------------------------------------------------

    async def _call(self, request, timeout, parse, cache=None, cache_key=None):
        return await self.client.generate(
            request.operation_name,
            request.model,
            request.contents,
            request.config,
            timeout=timeout,
            parse=parse,
            cache=cache,
            cache_key=cache_key,
        )

    def _gate(self, session: PipelineSession, stage: Stage, result) -> None:
        if requires_confirmation(result):
            session.enter(PipelineStatus.AWAITING_CONFIRMATION, stage)
            logger.info(
                f"[{stage.value}] Awaiting confirmation "
                f"(confidence={result.confidence_score}, assumptions={len(result.assumptions)})",
                extra=get_log_context(stage=stage.value, trip_id=session.id),
            )

    def _fail(
        self,
        session: PipelineSession,
        stage: Stage,
        message: str,
        retryable: bool = True,
    ) -> TerminalPipelineError:
        error = TerminalPipelineError(stage.value, message, retryable=retryable, trip_id=session.id)
        session.error = error.to_response()
        session.enter(PipelineStatus.FAILED, stage)
        return error

    @staticmethod
    def _user_message(error: BaseException) -> str:
        if isinstance(_root_cause(error), CircuitOpenError):
            return BUSY_MESSAGE
        if isinstance(error, GatewayException):
            return error.message
        return "Something went wrong while planning your trip. Please try again."

    def _require_awaiting(self, session: PipelineSession, action: str) -> None:
        if session.status is not PipelineStatus.AWAITING_CONFIRMATION:
            raise InvalidTransitionError(
                f"Cannot {action} trip in state {session.status.value}"
            )

    async def _enrich_costs(self, intent: TripIntent, discovery: DiscoveryResult) -> None:
        """Replace model-provided costs with local-currency estimates."""
        for place in (*discovery.activities, *discovery.dining, *discovery.accommodations):
            await self._enrich_place(intent, place)

    async def _enrich_place(self, intent: TripIntent, place: Place) -> None:
        code = place.currency_code or next(iter(intent.currency_rates), None)
        currency = intent.currency_rates.get(code) if code else None
        currency = currency or USD

        key = (
            f"cost:{place.type}:{intent.destination.lower()}:"
            f"{intent.budget_level}:{currency.code}:{currency.rate_to_usd}"
        )

        async def compute():
            return estimate_activity_cost(
                place.type, intent.destination, intent.budget_level, currency
            )

        if self.caches.places is not None:
            estimate = await self.caches.places.get_or_compute(key, compute)
        else:
            estimate = await compute()
        place.estimated_cost = estimate.formatted
        place.currency_code = currency.code
