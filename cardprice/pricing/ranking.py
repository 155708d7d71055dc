# cardprice/pricing/ranking.py

"""Source and price-type priority tables for picking a daily price.

Lower rank wins.  The tables are policy data: a new vendor or price
type only needs an entry here.
"""

from collections.abc import Iterable

from cardprice.models.price_snapshot import PriceSnapshot

UNKNOWN_SOURCE_RANK = 99
UNKNOWN_PRICE_TYPE_RANK = 90

SOURCE_RANK: dict[str, int] = {
    "tcgplayer": 10,
    "scryfall": 20,
    "cardmarket": 30,
    "pricecharting": 40,
    "ebay": 50,
    "amazon": 60,
}

PRICE_TYPE_RANK: dict[str, int] = {
    "market": 10,
    "trend": 12,
    "mid": 14,
    "avg_7d": 16,
    "avg_30d": 18,
    "low": 22,
    "high": 24,
    "loose": 30,
    "cib": 32,
    "new": 34,
    "graded": 36,
    "foil": 60,
    "etched": 62,
    "tix": 80,
}

RankKey = tuple[int, int, int, str, str, str]


def source_rank(source: str) -> int:
    return SOURCE_RANK.get(source, UNKNOWN_SOURCE_RANK)


def price_type_rank(price_type: str) -> int:
    return PRICE_TYPE_RANK.get(price_type, UNKNOWN_PRICE_TYPE_RANK)


def rank_key(snapshot: PriceSnapshot) -> RankKey:
    """Sort key where the best snapshot sorts first.

    Source rank, then price-type rank, then the larger value.  The
    trailing name fields only matter between equal-rank, equal-value
    candidates, and keep the order total.
    """
    return (
        source_rank(snapshot.source),
        price_type_rank(snapshot.price_type),
        -snapshot.value_cents,
        snapshot.source,
        snapshot.price_type,
        snapshot.condition or "",
    )


def pick_winner(snapshots: Iterable[PriceSnapshot]) -> PriceSnapshot | None:
    """Return the highest-priority snapshot, or ``None`` for no input."""
    return min(snapshots, key=rank_key, default=None)
