from typing import Any, Dict, Optional

import httpx

from vibetrip.app.core.logging import get_logger
from vibetrip.app.exceptions import ConfigurationError, RemoteModelError, TransientRemoteError
from vibetrip.app.providers.base import BaseProvider, Contents

logger = get_logger(__name__)

# Config keys that live at the top level of a generateContent request
_TOP_LEVEL_KEYS = ("systemInstruction", "tools", "toolConfig", "safetySettings")


def normalize_contents(contents: Contents) -> list:
    """Turn a prompt string or a single turn into a list of content turns."""
    if isinstance(contents, str):
        return [{"role": "user", "parts": [{"text": contents}]}]
    if isinstance(contents, dict):
        return [contents]
    return contents


def build_request_body(contents: Contents, config: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    body: Dict[str, Any] = {"contents": normalize_contents(contents)}
    generation_config = dict(config or {})

    for key in _TOP_LEVEL_KEYS:
        value = generation_config.pop(key, None)
        if value is None:
            continue
        if key == "systemInstruction" and isinstance(value, str):
            value = {"parts": [{"text": value}]}
        body[key] = value

    if generation_config:
        body["generationConfig"] = generation_config
    return body


def extract_text(data: Dict[str, Any]) -> str:
    """Concatenate the text parts of the first candidate."""
    candidates = data.get("candidates") or []
    if not candidates:
        feedback = data.get("promptFeedback", {})
        reason = feedback.get("blockReason", "no candidates returned")
        raise RemoteModelError(502, f"Gemini returned no content: {reason}", details=feedback)

    parts = candidates[0].get("content", {}).get("parts") or []
    text = "".join(part.get("text", "") for part in parts)
    if not text:
        raise RemoteModelError(502, "Gemini backend returned invalid response")
    return text


class GeminiProvider(BaseProvider):
    """Gemini REST provider (``models/{model}:generateContent``).

    Uses the shared HTTP client when one is provided. Non-2xx responses
    become ``RemoteModelError`` carrying the remote's status and message,
    connection problems become ``TransientRemoteError``.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 60.0
    ):
        super().__init__(base_url, api_key, http_client, timeout)

    def _build_headers(self) -> Dict[str, str]:
        return {
            "x-goog-api-key": self.api_key,
            "Content-Type": "application/json",
        }

    async def generate(
        self, model: str, contents: Contents, config: Optional[Dict[str, Any]] = None
    ) -> str:
        if not self.api_key:
            raise ConfigurationError("GEMINI_API_KEY is not set")

        url = self._get_endpoint_url(f"/models/{model}:generateContent")
        body = build_request_body(contents, config)

        try:
            async with self._client_context() as client:
                resp = await client.post(url, headers=self.headers, json=body)
        except httpx.TimeoutException as e:
            raise TransientRemoteError(f"Gemini request timed out: {e}") from e
        except httpx.RequestError as e:
            raise TransientRemoteError(f"Gemini request failed: {e}") from e

        if resp.status_code >= 400:
            raise self._error_from_response(resp)
        return extract_text(resp.json())

    @staticmethod
    def _error_from_response(resp: httpx.Response) -> RemoteModelError:
        message = f"Gemini API error ({resp.status_code})"
        details = None
        try:
            payload = resp.json()
        except ValueError:
            payload = None

        if isinstance(payload, dict):
            error = payload.get("error")
            if isinstance(error, dict):
                message = error.get("message") or message
                details = error.get("details") or error.get("status")
            elif isinstance(error, str):
                message = error

        logger.warning(
            f"Gemini API returned {resp.status_code}: {message}",
            extra={"status_code": resp.status_code},
        )
        return RemoteModelError(resp.status_code, message, details=details)

    async def health_check(self, timeout: float = 2.0) -> bool:
        """Check the Gemini API by listing models with a short timeout."""
        if not self.api_key:
            return False
        try:
            url = self._get_endpoint_url("/models")
            async with self._client_context() as client:
                resp = await client.get(url, headers=self.headers, timeout=timeout)
                return resp.status_code == 200
        except httpx.HTTPError:
            return False
