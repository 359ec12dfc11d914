"""
In-memory projections of order line items and their short URL mappings.
"""

from dataclasses import dataclass, replace
from typing import Any, Dict, Optional

from activation_mailer.integrations.myoncare.models import clamp_clicks


@dataclass
class LineItem:
    """A purchased line item on its way to an activation link."""
    id: str
    name: str = ""
    quantity: int = 1
    image: str = ""
    long_url: str = ""
    short_url: str = ""
    patient_id: str = "0"
    pathway_id: int = 0
    task_id: int = 0

    def __post_init__(self):
        self.id = str(self.id) if self.id is not None else ""
        self.quantity = clamp_clicks(self.quantity)

    def with_short_url(self, short_url: str) -> "LineItem":
        return replace(self, short_url=short_url)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "quantity": self.quantity,
            "image": self.image,
            "longURL": self.long_url,
            "shortUrl": self.short_url,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LineItem":
        """Build from a Flow/JSON record, accepting both camel and snake case."""
        return cls(
            id=data.get("id", ""),
            name=data.get("name") or data.get("title") or "",
            quantity=data.get("quantity", 1),
            image=data.get("image") or data.get("imageUrl") or data.get("lineItemPic") or "",
            long_url=data.get("longURL") or data.get("longUrl") or data.get("long_url") or "",
            short_url=data.get("shortUrl") or data.get("short_url") or "",
            patient_id=str(data.get("patientId") or "0"),
            pathway_id=_as_int(data.get("pathwayId")),
            task_id=_as_int(data.get("taskId")),
        )


@dataclass(frozen=True)
class ShortUrlMapping:
    """One entry of the orderurls metafield."""
    line_item_id: str
    short_url: str

    def to_dict(self) -> Dict[str, str]:
        return {"lineItemId": self.line_item_id, "shortUrl": self.short_url}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Optional["ShortUrlMapping"]:
        line_item_id = data.get("lineItemId")
        if line_item_id is None or line_item_id == "":
            return None
        return cls(line_item_id=str(line_item_id), short_url=str(data.get("shortUrl") or ""))


def _as_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0
