"""
myoncare integration: token issuance and click-limited URL shortening.
"""

from activation_mailer.integrations.myoncare.client import UrlShortenerClient
from activation_mailer.integrations.myoncare.token_cache import TokenCache
from activation_mailer.integrations.myoncare.models import (
    AuthToken,
    ShortenRequest,
    clamp_clicks,
)

__all__ = [
    "UrlShortenerClient",
    "TokenCache",
    "AuthToken",
    "ShortenRequest",
    "clamp_clicks",
]
