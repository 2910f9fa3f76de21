from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional, Union

import httpx

# Plain prompt text or Gemini-style ``[{"role": ..., "parts": [...]}]`` turns
Contents = Union[str, list, dict]


class BaseProvider(ABC):
    """Base class for remote model providers.

    Subclasses can accept an external httpx.AsyncClient for connection pooling,
    or create their own if not provided.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 60.0
    ):
        """Initialize the provider.

        Args:
            base_url: The API base URL
            api_key: The API key for authentication
            http_client: Optional shared HTTP client for connection pooling
            timeout: Request timeout in seconds
        """
        self._http_client = http_client
        self.base_url = base_url.rstrip('/')
        self.api_key = api_key
        self.timeout = timeout
        self.headers = self._build_headers()

    @property
    def http_client(self) -> Optional[httpx.AsyncClient]:
        return self._http_client

    def attach_http_client(self, http_client: Optional[httpx.AsyncClient]) -> None:
        """Use ``http_client`` for later calls; None falls back to per-request clients."""
        self._http_client = http_client

    def _build_headers(self) -> Dict[str, str]:
        return {"Content-Type": "application/json"}

    @asynccontextmanager
    async def _client_context(self):
        """Yield the shared client, or a per-request client closed afterwards."""
        if self._http_client is not None:
            yield self._http_client
            return
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            yield client

    def _get_endpoint_url(self, endpoint: str) -> str:
        return f"{self.base_url}{endpoint}"

    @property
    def configured(self) -> bool:
        """Whether the provider has credentials to make real calls."""
        return bool(self.api_key)

    @abstractmethod
    async def generate(
        self, model: str, contents: Contents, config: Optional[Dict[str, Any]] = None
    ) -> str:
        """Run one generation and return the response text.

        Args:
            model: Model identifier, e.g. "gemini-2.5-flash"
            contents: Prompt text or structured conversation turns
            config: Generation options (system instruction, response schema, ...)

        Raises:
            RemoteModelError: The remote answered with a non-2xx status
            TransientRemoteError: The remote could not be reached
        """
        pass

    @abstractmethod
    async def health_check(self, timeout: float = 2.0) -> bool:
        """Check if the provider is reachable.

        Args:
            timeout: Request timeout in seconds (default: 2.0)

        Returns:
            True if the provider is healthy, False otherwise
        """
        pass
