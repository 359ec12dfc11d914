"""
myoncare API request/response models.

Dataclasses for structured request handling.
"""

import time
from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass
class AuthToken:
    """An access token issued by the myoncare token endpoint."""
    access_token: str
    created_at: float
    expires_at: float

    def seconds_remaining(self, now: float) -> float:
        return self.expires_at - now

    @classmethod
    def issued(cls, access_token: str, lifetime_seconds: float, now: Optional[float] = None) -> "AuthToken":
        now = time.time() if now is None else now
        return cls(
            access_token=access_token,
            created_at=now,
            expires_at=now + lifetime_seconds,
        )


@dataclass
class ShortenRequest:
    """Payload for create-limited-url."""
    long_url: str
    max_clicks_count: int = 1
    patient_id: str = "0"
    pathway_id: int = 0
    task_id: int = 0

    def __post_init__(self):
        self.max_clicks_count = clamp_clicks(self.max_clicks_count)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "longURL": self.long_url,
            "firebasePatientId": self.patient_id,
            "carepathwayId": self.pathway_id,
            "caretaskId": self.task_id,
            "maxClicksCount": self.max_clicks_count,
        }


def clamp_clicks(value: Any) -> int:
    """Parse a click/quantity count; anything missing or below 1 becomes 1."""
    try:
        count = int(str(value).strip())
    except (TypeError, ValueError):
        return 1
    return count if count > 0 else 1
