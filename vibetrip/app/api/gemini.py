"""Proxy endpoint for direct model generation.

POST /api/gemini/generate runs a single generation through the same
cache, circuit breaker and retry stack the pipeline uses, behind the
stricter model-call rate limiter.
"""

import json
from typing import Any, Optional

from fastapi import APIRouter, Depends, Request, Response

from vibetrip.app.api.deps import get_container
from vibetrip.app.core.logging import get_log_context, get_logger
from vibetrip.app.core.utils import content_hash
from vibetrip.app.exceptions import RemoteModelError, RetryExhaustedError, ValidationError
from vibetrip.app.middleware.rate_limit import enforce_rate_limit
from vibetrip.app.middleware.request_id import get_request_id
from vibetrip.app.middleware.validation import read_json_body

logger = get_logger(__name__)
router = APIRouter(prefix="/api/gemini", tags=["gemini"])

OPERATION_NAME = "GeminiGenerate"


def validate_generate_request(
    payload: dict, valid_models: list[str], max_contents_length: int
) -> tuple[str, Any, Optional[dict]]:
    """Check a generate request body.

    Returns:
        (model, contents, config)

    Raises:
        ValidationError: On the first violated rule
    """
    model = payload.get("model")
    contents = payload.get("contents")
    config = payload.get("config")

    if not model or not isinstance(model, str):
        raise ValidationError("model is required and must be a string")
    if not contents:
        raise ValidationError("contents is required")
    if model not in valid_models:
        raise ValidationError(f"Invalid model. Must be one of: {', '.join(valid_models)}")

    serialized = (
        contents
        if isinstance(contents, str)
        else json.dumps(contents, ensure_ascii=False, separators=(",", ":"))
    )
    if len(serialized) > max_contents_length:
        raise ValidationError(
            f"contents exceeds maximum length of {max_contents_length // 1000}KB"
        )
    if config is not None and not isinstance(config, dict):
        raise ValidationError("config must be an object")

    return model, contents, config


@router.post("/generate")
async def generate(
    request: Request,
    response: Response,
    container=Depends(get_container),
) -> dict[str, str]:
    """Generate text with the requested model.

    Remote errors are returned with the remote's status and message; an
    open circuit is a 503.
    """
    await enforce_rate_limit(container.gemini_limiter, request, response)

    settings = container.settings
    payload = await read_json_body(request)
    model, contents, config = validate_generate_request(
        payload, settings.gemini_models, settings.max_contents_length
    )

    logger.info(
        "Incoming generate request",
        extra=get_log_context(
            request_id=get_request_id(request),
            operation=OPERATION_NAME,
            model=model,
            has_config=config is not None,
        ),
    )

    cache_key = "generate:" + content_hash(
        {"model": model, "contents": contents, "config": config}
    )
    try:
        text = await container.model_client.generate(
            OPERATION_NAME,
            model,
            contents,
            config,
            timeout=settings.httpx_read_timeout,
            cache=container.caches["general"],
            cache_key=cache_key,
        )
    except RetryExhaustedError as e:
        # Surface what the remote actually said
        if isinstance(e.last_error, RemoteModelError):
            raise e.last_error from e
        raise

    return {"text": text}
