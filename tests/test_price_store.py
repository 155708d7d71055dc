# tests/test_price_store.py

"""Tests for the SQLite price store."""

import tempfile
import unittest
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import patch

from cardprice.config.settings import Settings
from cardprice.errors import ConfigurationError, StoreError
from cardprice.models.daily_price import DailyPrice, SourceContribution
from cardprice.models.price_snapshot import PriceSnapshot
from cardprice.storage.price_store import (
    PriceStore,
    format_timestamp,
    resolve_db_path,
)

DAY = date(2025, 12, 19)


def _snap(
    item_id: int,
    value_cents: int,
    source: str = "scryfall",
    price_type: str = "market",
    condition: str | None = None,
    currency: str = "USD",
    as_of_date: date = DAY,
) -> PriceSnapshot:
    """Create a snapshot with sensible defaults."""
    return PriceSnapshot(
        item_id=item_id,
        source=source,
        as_of_date=as_of_date,
        currency=currency,
        price_type=price_type,
        condition=condition,
        value_cents=value_cents,
        raw={"key": price_type},
    )


class TestResolveDbPath(unittest.TestCase):
    """Database path configuration."""

    def test_explicit_path_wins(self) -> None:
        """An explicit argument overrides the environment setting."""
        with patch.object(Settings, "DB_PATH", Path("/env.db")):
            self.assertEqual(resolve_db_path("/cli.db"), Path("/cli.db"))

    def test_falls_back_to_settings(self) -> None:
        """Without an argument the configured path is used."""
        with patch.object(Settings, "DB_PATH", Path("/env.db")):
            self.assertEqual(resolve_db_path(), Path("/env.db"))

    def test_missing_path_is_configuration_error(self) -> None:
        """No argument and no env var is fatal."""
        with patch.object(Settings, "DB_PATH", None):
            with self.assertRaises(ConfigurationError):
                resolve_db_path()


class TestFormatTimestamp(unittest.TestCase):
    """Timestamp normalisation for text columns."""

    def test_naive_is_utc(self) -> None:
        """Naive datetimes are stored as UTC."""
        self.assertEqual(
            format_timestamp(datetime(2026, 1, 2, 3, 4, 5)),
            "2026-01-02T03:04:05.000000+00:00",
        )

    def test_aware_is_converted(self) -> None:
        """Offsets are converted to UTC so strings sort correctly."""
        tz = timezone(timedelta(hours=2))
        self.assertEqual(
            format_timestamp(datetime(2026, 1, 2, 3, 0, tzinfo=tz)),
            "2026-01-02T01:00:00.000000+00:00",
        )


class TestPriceStore(unittest.TestCase):
    """PriceStore reads, writes and transactions."""

    def setUp(self) -> None:
        """Create a fresh temp DB for each test."""
        self.tmp_dir = tempfile.mkdtemp()
        self.db_path = Path(self.tmp_dir) / "test.db"
        self.store = PriceStore(db_path=self.db_path)
        self.item_a = self.store.add_item("mtg", "scryfall", "card-a")
        self.item_b = self.store.add_item("mtg", "scryfall", "card-b")

    def tearDown(self) -> None:
        """Close the database."""
        self.store.close()

    # ── items + vendor rows ──────────────────────────────

    def test_add_item_is_idempotent(self) -> None:
        """Re-registering an external id returns the same item id."""
        again = self.store.add_item("mtg", "scryfall", "card-a", "Renamed")
        self.assertEqual(again, self.item_a)

    def test_fetch_vendor_rows_joins_mapping(self) -> None:
        """Mapped rows resolve to item ids, unmapped rows are counted."""
        self.store.record_vendor_rows("scryfall", [
            ("card-a", {"prices": {"usd": "1.00"}}),
            ("unknown", {"prices": {"usd": "2.00"}}),
        ])
        rows, skipped = self.store.fetch_vendor_rows("scryfall", DAY)
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0].item_id, self.item_a)
        self.assertEqual(rows[0].payload, {"prices": {"usd": "1.00"}})
        self.assertEqual(skipped, 1)

    def test_fetch_vendor_rows_filters_dated_rows(self) -> None:
        """Dated rows only apply to their own day."""
        self.store.record_vendor_rows(
            "scryfall",
            [("card-a", {"prices": {"usd": "1.00"}})],
            as_of_date=date(2025, 12, 18),
        )
        rows, _ = self.store.fetch_vendor_rows("scryfall", DAY)
        self.assertEqual(rows, [])

    def test_fetch_vendor_rows_other_source_ignored(self) -> None:
        """A mapping for another vendor does not match."""
        self.store.record_vendor_rows(
            "cardmarket", [("card-a", {"priceGuide": {"trend": 1}})],
        )
        rows, skipped = self.store.fetch_vendor_rows("cardmarket", DAY)
        self.assertEqual(rows, [])
        self.assertEqual(skipped, 1)

    # ── transaction ──────────────────────────────────────

    def test_transaction_rolls_back_on_error(self) -> None:
        """Nothing written inside a failed block persists."""
        with self.assertRaises(RuntimeError):
            with self.store.transaction() as cur:
                cur.execute(
                    "INSERT INTO vendor_prices_raw "
                    "(source, external_id, payload) "
                    "VALUES ('scryfall', 'card-a', '{}')"
                )
                raise RuntimeError("boom")
        rows, skipped = self.store.fetch_vendor_rows("scryfall", DAY)
        self.assertEqual((rows, skipped), ([], 0))

    def test_sqlite_errors_become_store_errors(self) -> None:
        """Database failures surface as StoreError."""
        with self.assertRaises(StoreError):
            with self.store.transaction() as cur:
                cur.execute("INSERT INTO no_such_table VALUES (1)")

    # ── snapshots ────────────────────────────────────────

    def test_upsert_snapshots_inserts_then_updates(self) -> None:
        """A second write of the same keys updates in place."""
        first = self.store.upsert_snapshots([
            _snap(self.item_a, 100),
            _snap(self.item_b, 200),
        ])
        self.assertEqual((first.updated, first.inserted), (0, 2))

        second = self.store.upsert_snapshots([
            _snap(self.item_a, 150),
            _snap(self.item_b, 200),
        ])
        self.assertEqual((second.updated, second.inserted), (2, 0))

        stored = {s.item_id: s.value_cents for s in self.store.fetch_snapshots()}
        self.assertEqual(stored, {self.item_a: 150, self.item_b: 200})

    def test_null_condition_is_one_key(self) -> None:
        """Two writes with a NULL condition hit the same row."""
        self.store.upsert_snapshots([_snap(self.item_a, 100)])
        counts = self.store.upsert_snapshots([_snap(self.item_a, 100)])
        self.assertEqual(counts.inserted, 0)
        self.assertEqual(len(self.store.fetch_snapshots()), 1)

    def test_condition_distinguishes_keys(self) -> None:
        """A graded condition is a separate key from no condition."""
        counts = self.store.upsert_snapshots([
            _snap(self.item_a, 100, price_type="graded"),
            _snap(self.item_a, 900, price_type="graded", condition="PSA 10"),
        ])
        self.assertEqual(counts.inserted, 2)

    def test_batch_duplicates_last_write_wins(self) -> None:
        """Repeated keys inside one batch collapse to the last value."""
        counts = self.store.upsert_snapshots([
            _snap(self.item_a, 100),
            _snap(self.item_a, 300),
        ])
        self.assertEqual(counts.total, 1)
        self.assertEqual(self.store.fetch_snapshots()[0].value_cents, 300)

    def test_upsert_snapshots_empty(self) -> None:
        """An empty batch is a zero-count success."""
        counts = self.store.upsert_snapshots([])
        self.assertEqual(counts.total, 0)

    def test_failed_batch_leaves_no_rows(self) -> None:
        """A constraint failure rolls back the whole batch."""
        with self.assertRaises(StoreError):
            self.store.upsert_snapshots([
                _snap(self.item_a, 100),
                _snap(9999, 100),  # no such market item
            ])
        self.assertEqual(self.store.fetch_snapshots(), [])

    def test_fetch_snapshots_filters(self) -> None:
        """Currency, single-day and range filters combine."""
        self.store.upsert_snapshots([
            _snap(self.item_a, 100, as_of_date=date(2025, 12, 1)),
            _snap(self.item_a, 200, as_of_date=date(2025, 12, 2)),
            _snap(self.item_a, 300, as_of_date=date(2025, 12, 3)),
            _snap(self.item_a, 400, currency="EUR", as_of_date=date(2025, 12, 2)),
        ])
        on_day = self.store.fetch_snapshots("USD", on=date(2025, 12, 2))
        self.assertEqual([s.value_cents for s in on_day], [200])

        since = self.store.fetch_snapshots("USD", since=date(2025, 12, 2))
        self.assertEqual([s.value_cents for s in since], [200, 300])

        until = self.store.fetch_snapshots("USD", until=date(2025, 12, 2))
        self.assertEqual([s.value_cents for s in until], [100, 200])

        self.assertEqual(len(self.store.fetch_snapshots()), 4)

    def test_snapshot_dates(self) -> None:
        """Distinct dates come back sorted."""
        self.store.upsert_snapshots([
            _snap(self.item_a, 100, as_of_date=date(2025, 12, 3)),
            _snap(self.item_b, 100, as_of_date=date(2025, 12, 1)),
            _snap(self.item_a, 100, as_of_date=date(2025, 12, 1)),
        ])
        self.assertEqual(
            self.store.snapshot_dates("USD"),
            [date(2025, 12, 1), date(2025, 12, 3)],
        )

    def test_snapshot_raw_round_trips(self) -> None:
        """The audit payload is stored as JSON and read back."""
        snap = _snap(self.item_a, 100)
        snap.raw = {"prices": {"usd": "1.00"}, "key": "usd"}
        self.store.upsert_snapshots([snap])
        self.assertEqual(self.store.fetch_snapshots()[0].raw, snap.raw)

    # ── daily prices ─────────────────────────────────────

    def _daily(self, value_cents: int) -> DailyPrice:
        return DailyPrice(
            item_id=self.item_a,
            as_of_date=DAY,
            currency="USD",
            value_cents=value_cents,
            confidence=70,
            method="priority_best_of_day",
            sources_used=[
                SourceContribution("scryfall", "market", None, value_cents),
            ],
        )

    def test_upsert_daily_overwrites(self) -> None:
        """One row per item/date/currency, last write wins."""
        self.store.upsert_daily_prices([self._daily(100)])
        self.store.upsert_daily_prices([self._daily(250)])
        rows = self.store.fetch_daily_prices(DAY, "USD")
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0].value_cents, 250)
        self.assertEqual(rows[0].sources_used[0].value_cents, 250)
        self.assertIsNotNone(rows[0].updated_at)

    def test_upsert_daily_empty(self) -> None:
        """Nothing to write is a zero count."""
        self.assertEqual(self.store.upsert_daily_prices([]), 0)


if __name__ == "__main__":
    unittest.main()
