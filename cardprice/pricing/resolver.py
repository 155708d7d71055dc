# cardprice/pricing/resolver.py

"""Daily price resolution: one canonical price per item/date/currency."""

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date

from cardprice.config.settings import Settings
from cardprice.errors import ConfigurationError
from cardprice.models.daily_price import DailyPrice, SourceContribution
from cardprice.models.price_snapshot import PriceSnapshot
from cardprice.pricing.ranking import pick_winner
from cardprice.storage.price_store import PriceStore

logger = logging.getLogger("cardprice.resolver")

PartitionKey = tuple[int, str, date]


@dataclass(frozen=True)
class ResolveScope:
    """Which snapshot dates a resolver run covers.

    A single ``as_of_date`` unless ``all_dates`` is set, in which case
    every snapshot date is covered, optionally narrowed by the
    inclusive ``since``/``until`` bounds.
    """

    as_of_date: date
    all_dates: bool = False
    since: date | None = None
    until: date | None = None

    def __post_init__(self) -> None:
        if (
            self.all_dates
            and self.since is not None
            and self.until is not None
            and self.since > self.until
        ):
            raise ConfigurationError(
                f"--since {self.since} is after --until {self.until}"
            )

    def describe(self) -> str:
        """Human-readable range, e.g. ``for ALL dates since 2025-12-01``."""
        if not self.all_dates:
            return f"for {self.as_of_date.isoformat()}"
        if self.since and self.until:
            return f"for ALL dates {self.since} → {self.until}"
        if self.since:
            return f"for ALL dates since {self.since}"
        if self.until:
            return f"for ALL dates up to {self.until}"
        return "for ALL dates in snapshots"

    def filters(self) -> dict[str, date | None]:
        """Keyword filters for :meth:`PriceStore.fetch_snapshots`."""
        if not self.all_dates:
            return {"on": self.as_of_date}
        return {"since": self.since, "until": self.until}

    def dates_in(self, store: PriceStore, currency: str) -> list[date]:
        """Distinct snapshot dates for *currency* covered by this scope."""
        if not self.all_dates:
            return store.snapshot_dates(
                currency, since=self.as_of_date, until=self.as_of_date,
            )
        return store.snapshot_dates(
            currency, since=self.since, until=self.until,
        )


def build_daily_prices(
    snapshots: list[PriceSnapshot],
    confidence: int | None = None,
    method: str | None = None,
) -> list[DailyPrice]:
    """Pick one winning snapshot per (item, currency, date).

    Partitions never span dates, so a snapshot only competes with
    snapshots from its own day.
    """
    score = Settings.DAILY_CONFIDENCE if confidence is None else confidence
    tag = method or Settings.DAILY_METHOD

    partitions: dict[PartitionKey, list[PriceSnapshot]] = defaultdict(list)
    for snap in snapshots:
        partitions[(snap.item_id, snap.currency, snap.as_of_date)].append(
            snap,
        )

    prices: list[DailyPrice] = []
    for (item_id, currency, as_of_date), group in sorted(
        partitions.items(),
    ):
        winner = pick_winner(group)
        if winner is None:
            continue
        prices.append(DailyPrice(
            item_id=item_id,
            as_of_date=as_of_date,
            currency=currency,
            value_cents=winner.value_cents,
            confidence=score,
            method=tag,
            sources_used=[
                SourceContribution(
                    source=winner.source,
                    price_type=winner.price_type,
                    condition=winner.condition,
                    value_cents=winner.value_cents,
                ),
            ],
        ))
    return prices


class DailyPriceResolver:
    """Reduces same-day snapshots to canonical daily prices."""

    def __init__(self, store: PriceStore) -> None:
        self.store = store

    def resolve(
        self,
        scope: ResolveScope,
        currency: str | None = None,
        chunk_by_day: bool = False,
    ) -> int:
        """Resolve and upsert daily prices for *scope*.

        With ``chunk_by_day`` each snapshot date is committed in its
        own transaction.  Returns the number of rows upserted.
        """
        code = (currency or Settings.DEFAULT_CURRENCY).strip().upper()
        if not code:
            raise ConfigurationError("Currency must not be empty")

        logger.info(
            "Building daily prices (%s) %s", code, scope.describe(),
        )

        if not chunk_by_day:
            return self._resolve_once(scope, code)

        days = scope.dates_in(self.store, code)

        total = 0
        for day in days:
            total += self._resolve_once(ResolveScope(as_of_date=day), code)
        logger.info(
            "Resolved %d daily rows across %d dates", total, len(days),
        )
        return total

    def _resolve_once(self, scope: ResolveScope, currency: str) -> int:
        snapshots = self.store.fetch_snapshots(
            currency, **scope.filters(),
        )
        if not snapshots:
            logger.info("No %s snapshots %s", currency, scope.describe())
            return 0
        prices = build_daily_prices(snapshots)
        logger.debug(
            "Picked %d winners from %d snapshots %s",
            len(prices),
            len(snapshots),
            scope.describe(),
        )
        return self.store.upsert_daily_prices(prices)
