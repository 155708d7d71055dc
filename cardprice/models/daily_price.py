# cardprice/models/daily_price.py

"""Canonical daily price model produced by the resolver."""

from dataclasses import dataclass, field
from datetime import date, datetime


@dataclass
class SourceContribution:
    """Audit summary of a snapshot that fed a daily price."""

    source: str
    price_type: str
    condition: str | None
    value_cents: int

    def to_dict(self) -> dict[str, object]:
        return {
            "source": self.source,
            "price_type": self.price_type,
            "condition": self.condition,
            "value_cents": self.value_cents,
        }


@dataclass
class DailyPrice:
    """The one resolved price for an item, date and currency."""

    item_id: int
    as_of_date: date
    currency: str
    value_cents: int
    confidence: int
    method: str
    sources_used: list[SourceContribution] = field(
        default_factory=lambda: list[SourceContribution]()
    )
    updated_at: datetime | None = None
