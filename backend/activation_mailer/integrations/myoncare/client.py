"""
myoncare URL shortener client.

Turns an activation long URL into a click-limited short URL via
create-limited-url. Shortening is best-effort: every failure yields an
empty string and is logged, so a single bad line item never blocks an
order confirmation email.
"""

import logging
import os
from typing import Optional

import httpx

from activation_mailer.integrations.myoncare.models import ShortenRequest
from activation_mailer.integrations.myoncare.token_cache import TokenCache

logger = logging.getLogger(__name__)

DEFAULT_SHORTENER_URL = "https://url.myoncare.care/url/create-limited-url"
DEFAULT_TIMEOUT_SECONDS = 8.0


class UrlShortenerClient:
    """
    Async client for the myoncare shortener.

    The token cache is shared across clients and requests; the client
    never retries on its own.
    """

    def __init__(
        self,
        token_cache: TokenCache,
        shortener_url: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        self.token_cache = token_cache
        self.shortener_url = (
            shortener_url or os.getenv("MYONCARE_SHORTENER_URL") or DEFAULT_SHORTENER_URL
        )
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            headers={"Content-Type": "application/json"},
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> "UrlShortenerClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def shorten(
        self,
        long_url: str,
        max_clicks_count: int = 1,
        patient_id: str = "0",
        pathway_id: int = 0,
        task_id: int = 0,
    ) -> str:
        """
        Create a click-limited short URL.

        Args:
            long_url: Activation destination
            max_clicks_count: How often the short URL may be opened (clamped to >= 1)
            patient_id: Optional firebase patient id
            pathway_id: Optional care pathway id
            task_id: Optional care task id

        Returns:
            The short URL, or "" on any failure
        """
        request = ShortenRequest(
            long_url=long_url,
            max_clicks_count=max_clicks_count,
            patient_id=patient_id,
            pathway_id=pathway_id,
            task_id=task_id,
        )

        token = await self.token_cache.get_token()
        if not token:
            logger.error(
                "URL shortening skipped: no access token available",
                extra={"long_url": long_url},
            )
            return ""

        try:
            response = await self._client.post(
                self.shortener_url,
                json=request.to_dict(),
                headers={"Authorization": f"Bearer {token}"},
            )
        except httpx.HTTPError as e:
            logger.error(
                "URL shortening request failed",
                extra={
                    "long_url": long_url,
                    "error": f"{type(e).__name__}: {e}",
                },
            )
            return ""

        if not response.is_success:
            logger.error(
                "URL shortening API error",
                extra={
                    "status_code": response.status_code,
                    "response_text": response.text[:500],
                    "long_url": long_url,
                    "max_clicks_count": request.max_clicks_count,
                },
            )
            return ""

        try:
            data = response.json()
        except ValueError:
            logger.error("Invalid JSON in shortener response", extra={"long_url": long_url})
            return ""

        short_url = data.get("shortURL") if isinstance(data, dict) else None
        if not short_url:
            logger.error(
                "No short URL found in API response",
                extra={"long_url": long_url},
            )
            return ""

        logger.debug("Short URL generated successfully", extra={"short_url": short_url})
        return short_url
