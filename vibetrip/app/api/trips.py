"""Trip planning endpoints.

A trip is started from a free-text message and then driven through the
pipeline by confirm/cancel decisions at the review gates. Completed trips
can be refined one itinerary at a time.
"""

from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, Request, Response
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from vibetrip.app.api.deps import get_container
from vibetrip.app.core.logging import get_log_context, get_logger
from vibetrip.app.exceptions import ValidationError
from vibetrip.app.middleware.rate_limit import enforce_rate_limit
from vibetrip.app.middleware.request_id import get_request_id
from vibetrip.app.middleware.validation import read_json_body
from vibetrip.app.services.pipeline.models import UserProfile

logger = get_logger(__name__)
router = APIRouter(prefix="/api", tags=["trips"])


class StartTripRequest(BaseModel):
    message: str = Field(min_length=1, max_length=10000)
    user_profile: Optional[UserProfile] = Field(default=None, alias="userProfile")


class RefineRequest(BaseModel):
    itinerary_id: str = Field(min_length=1)
    instruction: str = Field(min_length=1, max_length=5000)


def _parse(model: type[BaseModel], payload: dict) -> Any:
    try:
        return model.model_validate(payload)
    except PydanticValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(p) for p in first["loc"]) or "body"
        raise ValidationError(f"{field}: {first['msg']}") from e


@router.post("/trips", status_code=201)
async def start_trip(
    request: Request, response: Response, container=Depends(get_container)
) -> dict[str, Any]:
    """Start planning from a message; runs until the first pause or the end."""
    await enforce_rate_limit(container.gemini_limiter, request, response)
    body = _parse(StartTripRequest, await read_json_body(request))

    session = await container.pipeline.start(body.message, body.user_profile)
    logger.info(
        f"Trip started in state {session.status.value}",
        extra=get_log_context(request_id=get_request_id(request), trip_id=session.id),
    )
    return session.to_dict()


@router.get("/trips/{trip_id}")
async def get_trip(trip_id: str, container=Depends(get_container)) -> dict[str, Any]:
    return container.sessions.get(trip_id).to_dict()


@router.post("/trips/{trip_id}/confirm")
async def confirm_trip(
    trip_id: str, request: Request, response: Response, container=Depends(get_container)
) -> dict[str, Any]:
    """Accept the result under review and continue."""
    await enforce_rate_limit(container.gemini_limiter, request, response)
    session = await container.pipeline.confirm(trip_id)
    return session.to_dict()


@router.post("/trips/{trip_id}/cancel")
async def cancel_trip(trip_id: str, container=Depends(get_container)) -> dict[str, Any]:
    """Reject the result under review and reset the trip."""
    session = await container.pipeline.cancel(trip_id)
    return session.to_dict()


@router.post("/trips/{trip_id}/refine")
async def refine_trip(
    trip_id: str, request: Request, response: Response, container=Depends(get_container)
) -> dict[str, Any]:
    """Edit one itinerary of a completed trip."""
    await enforce_rate_limit(container.gemini_limiter, request, response)
    body = _parse(RefineRequest, await read_json_body(request))

    itinerary = await container.pipeline.refine(trip_id, body.itinerary_id, body.instruction)
    return {"tripId": trip_id, "itinerary": itinerary.to_json_dict()}


@router.get("/debug/stage-logs")
async def stage_logs(
    container=Depends(get_container),
    limit: int = Query(default=50, ge=1, le=500),
    trip_id: Optional[str] = None,
) -> dict[str, Any]:
    """Most recent stage runs, newest first."""
    return {"logs": container.stage_logger.recent(limit=limit, trip_id=trip_id)}
