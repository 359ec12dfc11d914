"""
Cached bearer token for the myoncare shortener API.

The shortener accepts access tokens issued by the myoncare token
endpoint. A token is obtained by presenting a short-lived HS256
assertion signed with the shared MYONCARE_API_TOKEN secret.

One TokenCache instance is created per process (see main.lifespan) and
injected into every UrlShortenerClient. Concurrent refreshes are benign:
the last writer wins and every caller receives a valid token.

SECURITY: neither the shared secret nor issued tokens are ever logged.
"""

import logging
import os
import time
from typing import Callable, Optional

import httpx
import jwt

from activation_mailer.integrations.myoncare.models import AuthToken

logger = logging.getLogger(__name__)

DEFAULT_TOKEN_URL = "https://internal.myoncare.care/firebaseManager/webshop/token/request"
DEFAULT_TIMEOUT_SECONDS = 8.0

# Refresh this many seconds before expiry
TOKEN_EXPIRY_BUFFER_SECONDS = 30
# Lifetime assumed for issued tokens when the endpoint does not say
DEFAULT_TOKEN_LIFETIME_SECONDS = 300
ASSERTION_LIFETIME_SECONDS = 300

ASSERTION_SUBJECT = "myonclinic Webshop"
ASSERTION_AUDIENCE = "myoncare-shortener"
ASSERTION_ISSUER = "shopify-flow-action"


class TokenCache:
    """
    Single-slot token cache with early refresh.

    get_token() returns an empty string when no token can be issued;
    callers must treat that as "no token available" and skip the
    dependent request.
    """

    def __init__(
        self,
        secret: Optional[str] = None,
        token_url: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the token cache.

        Args:
            secret: Shared signing secret (default: from MYONCARE_API_TOKEN env)
            token_url: Token issuance endpoint (default: from MYONCARE_TOKEN_URL env)
            timeout: Request timeout in seconds
            clock: Time source returning epoch seconds
        """
        self.secret = secret or os.getenv("MYONCARE_API_TOKEN")
        self.token_url = token_url or os.getenv("MYONCARE_TOKEN_URL") or DEFAULT_TOKEN_URL
        self._clock = clock
        self._token: Optional[AuthToken] = None
        self._client = httpx.AsyncClient(timeout=httpx.Timeout(timeout))

        if not self.secret:
            logger.warning("MYONCARE_API_TOKEN not configured")

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    def is_valid(self) -> bool:
        """True while the cached token has more than the refresh buffer left."""
        if self._token is None:
            logger.debug("No token in cache")
            return False

        remaining = self._token.seconds_remaining(self._clock())
        if remaining <= 0:
            return False
        if remaining < TOKEN_EXPIRY_BUFFER_SECONDS:
            logger.info("Token expiring soon, marking as invalid")
            return False
        return True

    async def get_token(self) -> str:
        """Return a valid access token, issuing a new one if needed."""
        if self.is_valid():
            logger.debug("Using cached token")
            return self._token.access_token

        token = await self._issue_token()
        if token is None:
            return ""

        self._token = token
        logger.info(
            "New token cached",
            extra={"expires_in_seconds": int(token.expires_at - token.created_at)},
        )
        return token.access_token

    def _build_assertion(self, now: float) -> str:
        issued_at = int(now)
        claims = {
            "Username": ASSERTION_SUBJECT,
            "iat": issued_at,
            "aud": ASSERTION_AUDIENCE,
            "iss": ASSERTION_ISSUER,
            "exp": issued_at + ASSERTION_LIFETIME_SECONDS,
        }
        return jwt.encode(claims, self.secret, algorithm="HS256")

    async def _issue_token(self) -> Optional[AuthToken]:
        """Exchange a signed assertion for an access token. Never raises."""
        if not self.secret:
            logger.error("Cannot request access token: MYONCARE_API_TOKEN not configured")
            return None

        now = self._clock()
        assertion = self._build_assertion(now)

        try:
            response = await self._client.get(
                self.token_url,
                headers={"Authorization": f"Bearer {assertion}"},
            )
        except httpx.HTTPError as e:
            logger.error(
                "Error fetching access token",
                extra={"url": self.token_url, "error": f"{type(e).__name__}: {e}"},
            )
            return None

        if not response.is_success:
            logger.error(
                "Error fetching access token",
                extra={
                    "url": self.token_url,
                    "status_code": response.status_code,
                    "response_text": response.text[:500],
                },
            )
            return None

        try:
            data = response.json()
        except ValueError:
            logger.error("Invalid JSON in token response", extra={"url": self.token_url})
            return None

        access_token = data.get("accessToken") if isinstance(data, dict) else None
        if not access_token:
            logger.error(
                "No token found in auth response",
                extra={"response_keys": list(data.keys()) if isinstance(data, dict) else None},
            )
            return None

        lifetime = DEFAULT_TOKEN_LIFETIME_SECONDS
        expires_in = data.get("expiresIn")
        if isinstance(expires_in, (int, float)) and expires_in > 0:
            lifetime = expires_in

        return AuthToken.issued(access_token, lifetime, now=now)
