# cardprice/models/price_snapshot.py

"""Canonical price snapshot model shared by the normalizer and resolver."""

from dataclasses import dataclass, field
from datetime import date
from typing import Any

SnapshotKey = tuple[int, str, date, str, str, str | None]


@dataclass
class PriceSnapshot:
    """A single vendor price observation normalised to a common shape.

    ``value_cents`` is always a positive integer in minor currency units.
    """

    item_id: int
    source: str
    as_of_date: date
    currency: str
    price_type: str
    value_cents: int
    condition: str | None = None
    raw: dict[str, Any] = field(
        default_factory=lambda: dict[str, Any]()
    )

    @property
    def key(self) -> SnapshotKey:
        """Identity key; a ``None`` condition is a value of its own."""
        return (
            self.item_id,
            self.source,
            self.as_of_date,
            self.currency,
            self.price_type,
            self.condition,
        )
