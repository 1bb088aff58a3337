"""Sources for the remediation API key."""
import logging
from typing import Optional

import httpx

from core.errors import CredentialUnavailable

logger = logging.getLogger(__name__)


class StaticCredentialProvider:
    """Key read once from configuration."""

    def __init__(self, api_key: Optional[str]):
        self._api_key = api_key

    async def get_api_key(self) -> str:
        if not self._api_key:
            raise CredentialUnavailable("Groq API key not configured")
        return self._api_key


class HttpCredentialProvider:
    """Key fetched from a running scan service's ``GET /credential`` endpoint."""

    def __init__(self, base_url: str, timeout: float = 10.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    async def get_api_key(self) -> str:
        url = f"{self.base_url}/credential"
        logger.debug(f"Fetching API key from {url}")
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.get(url)
        except httpx.HTTPError as e:
            raise CredentialUnavailable(f"Failed to get API key: {e}") from e

        if response.status_code != 200:
            raise CredentialUnavailable(f"Failed to get API key: {response.status_code}")
        try:
            api_key = response.json().get("apiKey")
        except ValueError as e:
            raise CredentialUnavailable(f"Malformed credential response: {e}") from e
        if not api_key:
            raise CredentialUnavailable("No API key returned from backend")
        return api_key
