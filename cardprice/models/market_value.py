# cardprice/models/market_value.py

"""Sale-comp input and market value estimate models.

Prices here are plain dollar floats rounded to cents, unlike the
integer ``value_cents`` used by snapshots and daily prices.
"""

from dataclasses import dataclass
from datetime import date, datetime


@dataclass
class SaleComp:
    """One observed completed sale."""

    card_key: str
    grade: str
    sold_price: float
    sold_at: datetime
    id: int | None = None


@dataclass
class MarketValueEstimate:
    """Trailing-window value estimate for a card key and grade."""

    as_of_date: date
    card_key: str
    grade: str
    market_value: float
    range_low: float
    range_high: float
    last_sale_price: float
    last_sale_at: datetime
    sales_count: int
    confidence: str
