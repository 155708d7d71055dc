# cardprice/normalize/normalizer.py

"""Vendor price payloads to canonical price snapshots."""

import logging
from dataclasses import dataclass
from datetime import date

from cardprice.models.price_snapshot import PriceSnapshot, SnapshotKey
from cardprice.models.vendor_row import VendorRow
from cardprice.normalize.money import to_minor_units
from cardprice.normalize.vendors import VendorProfile, get_vendor
from cardprice.storage.price_store import PriceStore, UpsertCounts

logger = logging.getLogger("cardprice.normalize")


@dataclass
class NormalizeResult:
    """Outcome of one vendor/date normalization run."""

    source: str
    as_of_date: date
    rows_read: int = 0
    rows_skipped: int = 0
    snapshots: int = 0
    counts: UpsertCounts | None = None

    @property
    def updated(self) -> int:
        return self.counts.updated if self.counts else 0

    @property
    def inserted(self) -> int:
        return self.counts.inserted if self.counts else 0


def build_snapshots(
    profile: VendorProfile,
    rows: list[VendorRow],
    as_of_date: date,
) -> list[PriceSnapshot]:
    """Map vendor rows to snapshots, one per present price field.

    Absent, unparseable and non-positive prices produce nothing.
    Repeated identity keys collapse to the last one seen.
    """
    batch: dict[SnapshotKey, PriceSnapshot] = {}
    for row in rows:
        prices = profile.extract(row.payload)
        if prices is None:
            logger.debug(
                "[%s] id %s has no '%s' document",
                profile.source,
                row.external_id,
                profile.document_key,
            )
            continue
        for field_name, target in profile.fields.items():
            cents = to_minor_units(prices.get(field_name))
            if cents is None:
                continue
            snap = PriceSnapshot(
                item_id=row.item_id,
                source=profile.source,
                as_of_date=as_of_date,
                currency=target.currency,
                price_type=target.price_type,
                condition=target.condition,
                value_cents=cents,
                raw={profile.audit_key: prices, "key": field_name},
            )
            batch[snap.key] = snap
    return list(batch.values())


class SnapshotNormalizer:
    """Normalizes one vendor's raw prices for a given date."""

    def __init__(self, store: PriceStore) -> None:
        self.store = store

    def normalize(self, source: str, as_of_date: date) -> NormalizeResult:
        """Read, map and upsert snapshots for *source* on *as_of_date*.

        Raises ``ConfigurationError`` for an unknown vendor before
        touching the store.
        """
        profile = get_vendor(source)
        logger.info(
            "Normalizing %s prices into snapshots for %s",
            profile.label,
            as_of_date.isoformat(),
        )

        rows, skipped = self.store.fetch_vendor_rows(profile.source, as_of_date)
        snapshots = build_snapshots(profile, rows, as_of_date)
        counts = self.store.upsert_snapshots(snapshots)

        if skipped:
            logger.info(
                "[%s] skipped %d unmapped or unreadable rows",
                profile.source,
                skipped,
            )
        return NormalizeResult(
            source=profile.source,
            as_of_date=as_of_date,
            rows_read=len(rows),
            rows_skipped=skipped,
            snapshots=len(snapshots),
            counts=counts,
        )
