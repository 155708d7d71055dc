# cardprice/pricing/rollup.py

"""Sale-comp rollup into trailing-window market value estimates.

For every (card_key, grade) with sales in the last 180 days this
computes the median and the 25th/75th percentiles (continuous
interpolation, like SQL ``percentile_cont``), the most recent sale,
and a confidence grade from the number of sales.  Values stay in
dollars rounded to cents.
"""

import logging
import math
from collections import defaultdict
from datetime import date, datetime, time, timedelta
from decimal import ROUND_HALF_UP, Decimal

from cardprice.config.settings import Settings
from cardprice.models.market_value import MarketValueEstimate, SaleComp
from cardprice.storage.price_store import PriceStore

logger = logging.getLogger("cardprice.rollup")

GroupKey = tuple[str, str]

_CENT = Decimal("0.01")


def percentile_cont(sorted_values: list[float], fraction: float) -> float:
    """Linear-interpolated percentile of an already sorted list."""
    if not sorted_values:
        raise ValueError("percentile_cont of empty data")
    position = fraction * (len(sorted_values) - 1)
    lower = math.floor(position)
    upper = math.ceil(position)
    if lower == upper:
        return sorted_values[lower]
    # Decimal keeps half-cent midpoints exact for round_money
    low = Decimal(str(sorted_values[lower]))
    high = Decimal(str(sorted_values[upper]))
    weight = Decimal(str(position - lower))
    return float(low + (high - low) * weight)


def round_money(value: float) -> float:
    """Round dollars to cents, half away from zero."""
    return float(Decimal(str(value)).quantize(_CENT, rounding=ROUND_HALF_UP))


def confidence_grade(count: int) -> str:
    """Map a sale count to a grade: >=10 A, >=5 B, >=2 C, else D."""
    for threshold, grade in Settings.CONFIDENCE_THRESHOLDS:
        if count >= threshold:
            return grade
    return Settings.LOWEST_CONFIDENCE


def rollup_window(as_of_date: date) -> tuple[datetime, datetime]:
    """Return ``[start, end)`` covering the window ending on *as_of_date*."""
    end = datetime.combine(
        as_of_date + timedelta(days=1),
        time.min,
        tzinfo=Settings.REFERENCE_TIMEZONE,
    )
    return end - timedelta(days=Settings.ROLLUP_WINDOW_DAYS), end


def _last_sale(comps: list[SaleComp]) -> SaleComp:
    # Same-timestamp sales: the later-recorded comp wins
    return max(comps, key=lambda c: (c.sold_at, c.id or 0))


def summarize(
    as_of_date: date, card_key: str, grade: str, comps: list[SaleComp],
) -> MarketValueEstimate:
    """Build the estimate for one non-empty group of sales."""
    prices = sorted(c.sold_price for c in comps)
    last = _last_sale(comps)
    return MarketValueEstimate(
        as_of_date=as_of_date,
        card_key=card_key,
        grade=grade,
        market_value=round_money(percentile_cont(prices, 0.5)),
        range_low=round_money(percentile_cont(prices, 0.25)),
        range_high=round_money(percentile_cont(prices, 0.75)),
        last_sale_price=round_money(last.sold_price),
        last_sale_at=last.sold_at,
        sales_count=len(prices),
        confidence=confidence_grade(len(prices)),
    )


def build_estimates(
    as_of_date: date, comps: list[SaleComp],
) -> list[MarketValueEstimate]:
    """Group sales by (card_key, grade) and summarise each group."""
    groups: dict[GroupKey, list[SaleComp]] = defaultdict(list)
    for comp in comps:
        groups[(comp.card_key, comp.grade)].append(comp)
    return [
        summarize(as_of_date, card_key, grade, group)
        for (card_key, grade), group in sorted(groups.items())
    ]


class SaleCompRollup:
    """Computes and stores market value estimates for one date."""

    def __init__(self, store: PriceStore) -> None:
        self.store = store

    def run(self, as_of_date: date) -> int:
        """Roll up the trailing window ending on *as_of_date*.

        Returns the number of estimate rows upserted.
        """
        start, end = rollup_window(as_of_date)
        comps = self.store.fetch_sale_comps(start, end)
        logger.info(
            "Rolling up %d sales between %s and %s",
            len(comps),
            start.isoformat(),
            end.isoformat(),
        )
        estimates = build_estimates(as_of_date, comps)
        return self.store.upsert_market_values(estimates)
