# cardprice/storage/price_store.py

"""SQLite-backed store for vendor prices, snapshots and derived prices.

Every write path runs inside :meth:`PriceStore.transaction`, so a batch
either commits as a whole or leaves no rows behind.
"""

import json
import logging
import sqlite3
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any

from cardprice.config.settings import Settings
from cardprice.errors import ConfigurationError, StoreError
from cardprice.models.daily_price import DailyPrice, SourceContribution
from cardprice.models.market_value import MarketValueEstimate, SaleComp
from cardprice.models.price_snapshot import PriceSnapshot
from cardprice.models.vendor_row import VendorRow

logger = logging.getLogger("cardprice.store")

_SCHEMA = """\
CREATE TABLE IF NOT EXISTS market_items (
    id               INTEGER PRIMARY KEY AUTOINCREMENT,
    game             TEXT    NOT NULL,
    canonical_source TEXT    NOT NULL,
    canonical_id     TEXT    NOT NULL,
    name             TEXT    NOT NULL DEFAULT '',
    UNIQUE (canonical_source, canonical_id)
);

CREATE TABLE IF NOT EXISTS vendor_prices_raw (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    source      TEXT    NOT NULL,
    external_id TEXT    NOT NULL,
    as_of_date  TEXT,
    payload     TEXT    NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_vendor_raw_source
    ON vendor_prices_raw(source, external_id);

CREATE TABLE IF NOT EXISTS market_price_snapshots (
    id             INTEGER PRIMARY KEY AUTOINCREMENT,
    market_item_id INTEGER NOT NULL
                   REFERENCES market_items(id) ON DELETE CASCADE,
    source         TEXT    NOT NULL,
    as_of_date     TEXT    NOT NULL,
    currency       TEXT    NOT NULL,
    price_type     TEXT    NOT NULL,
    condition      TEXT,
    value_cents    INTEGER NOT NULL CHECK (value_cents >= 0),
    raw            TEXT    NOT NULL DEFAULT '{}'
);

CREATE INDEX IF NOT EXISTS idx_snapshots_item_date
    ON market_price_snapshots(market_item_id, as_of_date, currency);

CREATE INDEX IF NOT EXISTS idx_snapshots_currency_date
    ON market_price_snapshots(currency, as_of_date);

CREATE TABLE IF NOT EXISTS market_price_daily (
    market_item_id INTEGER NOT NULL
                   REFERENCES market_items(id) ON DELETE CASCADE,
    as_of_date     TEXT    NOT NULL,
    currency       TEXT    NOT NULL,
    value_cents    INTEGER NOT NULL,
    confidence     INTEGER NOT NULL,
    sources_used   TEXT    NOT NULL,
    method         TEXT    NOT NULL,
    updated_at     TEXT    NOT NULL,
    PRIMARY KEY (market_item_id, as_of_date, currency)
);

CREATE TABLE IF NOT EXISTS market_sales_comps (
    id         INTEGER PRIMARY KEY AUTOINCREMENT,
    card_key   TEXT    NOT NULL,
    grade      TEXT    NOT NULL,
    sold_price REAL    NOT NULL,
    sold_at    TEXT    NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_sales_comps_sold_at
    ON market_sales_comps(sold_at);

CREATE TABLE IF NOT EXISTS market_values_daily (
    as_of_date       TEXT    NOT NULL,
    card_key         TEXT    NOT NULL,
    grade            TEXT    NOT NULL,
    market_value     REAL    NOT NULL,
    range_low        REAL    NOT NULL,
    range_high       REAL    NOT NULL,
    last_sale_price  REAL    NOT NULL,
    last_sale_at     TEXT    NOT NULL,
    sales_count      INTEGER NOT NULL,
    confidence       TEXT    NOT NULL,
    PRIMARY KEY (as_of_date, card_key, grade)
);
"""

# Identity match for a snapshot; ``IS`` makes NULL conditions compare equal
_SNAPSHOT_KEY_MATCH = (
    "market_item_id = ? AND source = ? AND as_of_date = ? "
    "AND currency = ? AND price_type = ? AND condition IS ?"
)

_UPDATE_SNAPSHOT = (
    "UPDATE market_price_snapshots "
    "SET value_cents = ?, raw = ? "
    f"WHERE {_SNAPSHOT_KEY_MATCH}"
)

_INSERT_MISSING_SNAPSHOT = (
    "INSERT INTO market_price_snapshots "
    "(market_item_id, source, as_of_date, currency, "
    " price_type, condition, value_cents, raw) "
    "SELECT ?, ?, ?, ?, ?, ?, ?, ? "
    "WHERE NOT EXISTS ("
    "  SELECT 1 FROM market_price_snapshots "
    f"  WHERE {_SNAPSHOT_KEY_MATCH}"
    ")"
)

_UPSERT_DAILY = (
    "INSERT INTO market_price_daily "
    "(market_item_id, as_of_date, currency, value_cents, "
    " confidence, sources_used, method, updated_at) "
    "VALUES (?, ?, ?, ?, ?, ?, ?, ?) "
    "ON CONFLICT (market_item_id, as_of_date, currency) DO UPDATE SET "
    "  value_cents = excluded.value_cents, "
    "  confidence = excluded.confidence, "
    "  sources_used = excluded.sources_used, "
    "  method = excluded.method, "
    "  updated_at = excluded.updated_at"
)

_UPSERT_MARKET_VALUE = (
    "INSERT INTO market_values_daily "
    "(as_of_date, card_key, grade, market_value, range_low, "
    " range_high, last_sale_price, last_sale_at, sales_count, "
    " confidence) "
    "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?) "
    "ON CONFLICT (as_of_date, card_key, grade) DO UPDATE SET "
    "  market_value = excluded.market_value, "
    "  range_low = excluded.range_low, "
    "  range_high = excluded.range_high, "
    "  last_sale_price = excluded.last_sale_price, "
    "  last_sale_at = excluded.last_sale_at, "
    "  sales_count = excluded.sales_count, "
    "  confidence = excluded.confidence"
)


@dataclass
class UpsertCounts:
    """Row counts reported by the two-phase snapshot upsert."""

    updated: int = 0
    inserted: int = 0

    @property
    def total(self) -> int:
        return self.updated + self.inserted


def format_timestamp(value: datetime) -> str:
    """Render a datetime as a sortable UTC ISO string.

    Naive values are taken to be UTC already.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(
        timespec="microseconds",
    )


def _dump(payload: object) -> str:
    return json.dumps(payload, sort_keys=True, separators=(",", ":"))


def resolve_db_path(db_path: Path | str | None = None) -> Path:
    """Pick the database path from the argument or ``Settings.DB_PATH``.

    Raises ``ConfigurationError`` when neither is set.
    """
    path = db_path or Settings.DB_PATH
    if not path:
        raise ConfigurationError(
            "No database configured: set CARDPRICE_DB_PATH or pass --db"
        )
    return Path(path)


class PriceStore:
    """SQLite-backed store for the pricing pipeline tables."""

    def __init__(
        self, db_path: Path | str | None = None,
    ) -> None:
        path = resolve_db_path(db_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        # Autocommit mode: transactions are opened explicitly below
        self._conn = sqlite3.connect(
            str(path), isolation_level=None,
        )
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA foreign_keys=ON")
        self._conn.executescript(_SCHEMA)
        logger.debug("PriceStore opened at %s", path)

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Cursor]:
        """Run a block of statements atomically.

        Commits when the block exits cleanly and rolls back on any
        exception.  ``sqlite3`` errors are re-raised as ``StoreError``.
        """
        cur = self._conn.cursor()
        try:
            cur.execute("BEGIN IMMEDIATE")
            yield cur
        except sqlite3.Error as exc:
            self._conn.rollback()
            logger.error(
                "Transaction rolled back: %s", exc, exc_info=True,
            )
            raise StoreError(str(exc)) from exc
        except BaseException:
            self._conn.rollback()
            logger.warning("Transaction rolled back")
            raise
        else:
            self._conn.commit()
        finally:
            cur.close()

    # ── Item identity + raw vendor data ─────────────────

    def add_item(
        self,
        game: str,
        canonical_source: str,
        canonical_id: str,
        name: str = "",
    ) -> int:
        """Register an external id for an internal item; return its id."""
        with self.transaction() as cur:
            cur.execute(
                "INSERT INTO market_items "
                "(game, canonical_source, canonical_id, name) "
                "VALUES (?, ?, ?, ?) "
                "ON CONFLICT(canonical_source, canonical_id) "
                "DO UPDATE SET name = excluded.name",
                (game, canonical_source, canonical_id, name),
            )
            item_id: int = cur.execute(
                "SELECT id FROM market_items "
                "WHERE canonical_source = ? AND canonical_id = ?",
                (canonical_source, canonical_id),
            ).fetchone()[0]
        return item_id

    def record_vendor_rows(
        self,
        source: str,
        rows: Iterable[tuple[str, dict[str, Any]]],
        as_of_date: date | None = None,
    ) -> int:
        """Store raw vendor payloads as ``(external_id, payload)`` pairs."""
        day = as_of_date.isoformat() if as_of_date else None
        params = [
            (source, external_id, day, _dump(payload))
            for external_id, payload in rows
        ]
        with self.transaction() as cur:
            cur.executemany(
                "INSERT INTO vendor_prices_raw "
                "(source, external_id, as_of_date, payload) "
                "VALUES (?, ?, ?, ?)",
                params,
            )
        return len(params)

    def fetch_vendor_rows(
        self, source: str, as_of_date: date,
    ) -> tuple[list[VendorRow], int]:
        """Return mapped vendor rows for a day plus the unmapped count.

        Undated rows (latest-state dumps) apply to every day.  Rows
        whose external id has no ``market_items`` entry are skipped.
        """
        rows = self._conn.execute(
            "SELECT mi.id, v.external_id, v.payload "
            "FROM vendor_prices_raw v "
            "LEFT JOIN market_items mi "
            "  ON mi.canonical_source = v.source "
            " AND mi.canonical_id = v.external_id "
            "WHERE v.source = ? "
            "  AND (v.as_of_date IS NULL OR v.as_of_date = ?) "
            "ORDER BY v.id",
            (source, as_of_date.isoformat()),
        ).fetchall()

        mapped: list[VendorRow] = []
        skipped = 0
        for item_id, external_id, payload in rows:
            if item_id is None:
                logger.debug(
                    "No item mapping for %s id %s, skipping",
                    source,
                    external_id,
                )
                skipped += 1
                continue
            try:
                decoded = json.loads(payload)
            except json.JSONDecodeError:
                logger.warning(
                    "Corrupt payload for %s id %s, skipping",
                    source,
                    external_id,
                )
                skipped += 1
                continue
            if not isinstance(decoded, dict):
                skipped += 1
                continue
            mapped.append(VendorRow(
                item_id=item_id,
                external_id=external_id,
                payload=decoded,
            ))
        return mapped, skipped

    # ── Snapshots ────────────────────────────────────────

    def upsert_snapshots(
        self, snapshots: Iterable[PriceSnapshot],
    ) -> UpsertCounts:
        """Write snapshots with last-write-wins set semantics.

        The snapshot table carries no unique index, so the upsert runs
        as an update of existing keys followed by an insert of missing
        keys, both inside one transaction.
        """
        batch: dict[tuple[Any, ...], PriceSnapshot] = {}
        for snap in snapshots:
            batch[snap.key] = snap
        if not batch:
            return UpsertCounts()

        key_params = [
            (
                s.item_id,
                s.source,
                s.as_of_date.isoformat(),
                s.currency,
                s.price_type,
                s.condition,
            )
            for s in batch.values()
        ]
        value_params = [
            (s.value_cents, _dump(s.raw)) for s in batch.values()
        ]

        with self.transaction() as cur:
            cur.executemany(
                _UPDATE_SNAPSHOT,
                [v + k for v, k in zip(value_params, key_params)],
            )
            updated = cur.rowcount
            cur.executemany(
                _INSERT_MISSING_SNAPSHOT,
                [k + v + k for v, k in zip(value_params, key_params)],
            )
            inserted = cur.rowcount

        counts = UpsertCounts(updated=updated, inserted=inserted)
        logger.info(
            "Snapshot upsert: %d updated, %d inserted",
            counts.updated,
            counts.inserted,
        )
        return counts

    def fetch_snapshots(
        self,
        currency: str | None = None,
        on: date | None = None,
        since: date | None = None,
        until: date | None = None,
    ) -> list[PriceSnapshot]:
        """Return snapshots filtered by currency and date.

        ``on`` selects a single day; otherwise ``since``/``until`` are
        optional inclusive bounds.
        """
        where, params = self._snapshot_filter(currency, on, since, until)
        rows = self._conn.execute(
            "SELECT market_item_id, source, as_of_date, currency, "
            "       price_type, condition, value_cents, raw "
            "FROM market_price_snapshots "
            f"WHERE {where} "
            "ORDER BY id",
            params,
        ).fetchall()
        return [
            PriceSnapshot(
                item_id=r[0],
                source=r[1],
                as_of_date=date.fromisoformat(r[2]),
                currency=r[3],
                price_type=r[4],
                condition=r[5],
                value_cents=r[6],
                raw=json.loads(r[7]),
            )
            for r in rows
        ]

    def snapshot_dates(
        self,
        currency: str | None = None,
        since: date | None = None,
        until: date | None = None,
    ) -> list[date]:
        """Distinct snapshot dates in range, oldest first."""
        where, params = self._snapshot_filter(currency, None, since, until)
        rows = self._conn.execute(
            "SELECT DISTINCT as_of_date FROM market_price_snapshots "
            f"WHERE {where} ORDER BY as_of_date",
            params,
        ).fetchall()
        return [date.fromisoformat(r[0]) for r in rows]

    @staticmethod
    def _snapshot_filter(
        currency: str | None,
        on: date | None,
        since: date | None,
        until: date | None,
    ) -> tuple[str, list[object]]:
        parts: list[str] = ["1 = 1"]
        params: list[object] = []
        if currency is not None:
            parts.append("currency = ?")
            params.append(currency)
        if on is not None:
            parts.append("as_of_date = ?")
            params.append(on.isoformat())
        else:
            if since is not None:
                parts.append("as_of_date >= ?")
                params.append(since.isoformat())
            if until is not None:
                parts.append("as_of_date <= ?")
                params.append(until.isoformat())
        return " AND ".join(parts), params

    # ── Daily prices ─────────────────────────────────────

    def upsert_daily_prices(self, prices: list[DailyPrice]) -> int:
        """Insert or overwrite daily prices keyed by item/date/currency."""
        if not prices:
            return 0
        now = format_timestamp(datetime.now(timezone.utc))
        params = [
            (
                p.item_id,
                p.as_of_date.isoformat(),
                p.currency,
                p.value_cents,
                p.confidence,
                _dump([c.to_dict() for c in p.sources_used]),
                p.method,
                format_timestamp(p.updated_at) if p.updated_at else now,
            )
            for p in prices
        ]
        with self.transaction() as cur:
            cur.executemany(_UPSERT_DAILY, params)
        logger.info("Upserted %d daily price rows", len(params))
        return len(params)

    def fetch_daily_prices(
        self,
        as_of_date: date | None = None,
        currency: str | None = None,
    ) -> list[DailyPrice]:
        """Return resolved daily prices, optionally filtered."""
        parts: list[str] = ["1 = 1"]
        params: list[object] = []
        if as_of_date is not None:
            parts.append("as_of_date = ?")
            params.append(as_of_date.isoformat())
        if currency is not None:
            parts.append("currency = ?")
            params.append(currency)
        rows = self._conn.execute(
            "SELECT market_item_id, as_of_date, currency, value_cents, "
            "       confidence, sources_used, method, updated_at "
            "FROM market_price_daily "
            f"WHERE {' AND '.join(parts)} "
            "ORDER BY as_of_date, market_item_id, currency",
            params,
        ).fetchall()
        return [
            DailyPrice(
                item_id=r[0],
                as_of_date=date.fromisoformat(r[1]),
                currency=r[2],
                value_cents=r[3],
                confidence=r[4],
                sources_used=[
                    SourceContribution(
                        source=c["source"],
                        price_type=c["price_type"],
                        condition=c["condition"],
                        value_cents=c["value_cents"],
                    )
                    for c in json.loads(r[5])
                ],
                method=r[6],
                updated_at=datetime.fromisoformat(r[7]),
            )
            for r in rows
        ]

    # ── Sale comps + market values ───────────────────────

    def record_sale_comps(self, comps: Iterable[SaleComp]) -> int:
        """Insert observed sales. Returns the number inserted."""
        params = [
            (c.card_key, c.grade, c.sold_price, format_timestamp(c.sold_at))
            for c in comps
        ]
        with self.transaction() as cur:
            cur.executemany(
                "INSERT INTO market_sales_comps "
                "(card_key, grade, sold_price, sold_at) "
                "VALUES (?, ?, ?, ?)",
                params,
            )
        return len(params)

    def fetch_sale_comps(
        self, window_start: datetime, window_end: datetime,
    ) -> list[SaleComp]:
        """Sales with ``window_start <= sold_at < window_end``."""
        rows = self._conn.execute(
            "SELECT id, card_key, grade, sold_price, sold_at "
            "FROM market_sales_comps "
            "WHERE sold_at >= ? AND sold_at < ? "
            "ORDER BY card_key, grade, sold_at, id",
            (
                format_timestamp(window_start),
                format_timestamp(window_end),
            ),
        ).fetchall()
        return [
            SaleComp(
                id=r[0],
                card_key=r[1],
                grade=r[2],
                sold_price=r[3],
                sold_at=datetime.fromisoformat(r[4]),
            )
            for r in rows
        ]

    def upsert_market_values(
        self, estimates: list[MarketValueEstimate],
    ) -> int:
        """Insert or overwrite estimates keyed by date/card_key/grade."""
        if not estimates:
            return 0
        params = [
            (
                e.as_of_date.isoformat(),
                e.card_key,
                e.grade,
                e.market_value,
                e.range_low,
                e.range_high,
                e.last_sale_price,
                format_timestamp(e.last_sale_at),
                e.sales_count,
                e.confidence,
            )
            for e in estimates
        ]
        with self.transaction() as cur:
            cur.executemany(_UPSERT_MARKET_VALUE, params)
        logger.info("Upserted %d market value rows", len(params))
        return len(params)

    def fetch_market_values(
        self, as_of_date: date | None = None,
    ) -> list[MarketValueEstimate]:
        """Return stored estimates, optionally for one date."""
        where = "as_of_date = ?" if as_of_date else "1 = 1"
        params = [as_of_date.isoformat()] if as_of_date else []
        rows = self._conn.execute(
            "SELECT as_of_date, card_key, grade, market_value, "
            "       range_low, range_high, last_sale_price, "
            "       last_sale_at, sales_count, confidence "
            "FROM market_values_daily "
            f"WHERE {where} "
            "ORDER BY as_of_date, card_key, grade",
            params,
        ).fetchall()
        return [
            MarketValueEstimate(
                as_of_date=date.fromisoformat(r[0]),
                card_key=r[1],
                grade=r[2],
                market_value=r[3],
                range_low=r[4],
                range_high=r[5],
                last_sale_price=r[6],
                last_sale_at=datetime.fromisoformat(r[7]),
                sales_count=r[8],
                confidence=r[9],
            )
            for r in rows
        ]
