# cardprice/cli/runner.py

"""Headless batch runners for the three pricing jobs.

Each ``run_*`` function returns a process exit code (0 ok, 1 failed)
and prints a row-count summary to stderr.
"""

import logging
import sqlite3
from collections.abc import Callable
from datetime import date, datetime
from pathlib import Path

from rich.console import Console

from cardprice.config.settings import Settings
from cardprice.errors import ConfigurationError, PricingError
from cardprice.normalize.normalizer import SnapshotNormalizer
from cardprice.normalize.vendors import get_vendor
from cardprice.pricing.resolver import DailyPriceResolver, ResolveScope
from cardprice.pricing.rollup import SaleCompRollup
from cardprice.storage.price_store import PriceStore

logger = logging.getLogger("cardprice.cli")

# Stderr console for status messages
_err = Console(stderr=True)


def today_utc() -> date:
    """Current date in the reference timezone."""
    return datetime.now(Settings.REFERENCE_TIMEZONE).date()


def parse_date(value: str | None, option: str = "--date") -> date | None:
    """Parse a ``YYYY-MM-DD`` argument.

    Blank or ``None`` returns ``None``; anything else that is not a
    calendar date raises ``ConfigurationError``.
    """
    if value is None or not value.strip():
        return None
    text = value.strip()
    try:
        # strptime alone accepts unpadded "2025-1-9"
        if len(text) != 10:
            raise ValueError(text)
        return datetime.strptime(text, "%Y-%m-%d").date()
    except ValueError:
        raise ConfigurationError(
            f"Invalid {option} '{value}', expected YYYY-MM-DD"
        ) from None


def _with_store(
    db_path: str | Path | None,
    job: Callable[[PriceStore], None],
) -> int:
    """Open the store, run *job*, and map failures to exit codes."""
    try:
        store = PriceStore(db_path)
    except ConfigurationError as exc:
        _err.print(f"[red]✗ {exc}[/red]")
        return 1
    except sqlite3.Error as exc:
        logger.critical("Could not open store: %s", exc, exc_info=True)
        _err.print(f"[red]✗ Could not open database: {exc}[/red]")
        return 1

    try:
        job(store)
    except PricingError as exc:
        logger.error("Run failed: %s", exc, exc_info=True)
        _err.print(f"[red]✗ {exc}[/red]")
        return 1
    except Exception as exc:
        logger.critical("Unexpected failure: %s", exc, exc_info=True)
        _err.print(f"[red]✗ Unexpected error: {exc}[/red]")
        return 1
    finally:
        store.close()
    return 0


def run_normalize(
    vendor: str,
    date_arg: str | None = None,
    db_path: str | Path | None = None,
) -> int:
    """Normalize one vendor's prices into snapshots."""
    try:
        profile = get_vendor(vendor)
        as_of_date = parse_date(date_arg) or today_utc()
    except ConfigurationError as exc:
        _err.print(f"[red]✗ {exc}[/red]")
        return 1

    _err.print(
        f"[bold]Normalizing {profile.label} prices[/bold] "
        f"[dim]for {as_of_date.isoformat()}[/dim]"
    )

    def job(store: PriceStore) -> None:
        result = SnapshotNormalizer(store).normalize(profile.source, as_of_date)
        if result.rows_skipped:
            _err.print(
                f"[dim]Skipped {result.rows_skipped} unmapped rows[/dim]"
            )
        _err.print(
            f"[green]✓ Updated {result.updated} existing snapshot rows[/green]"
        )
        _err.print(
            f"[green]✓ Inserted {result.inserted} new snapshot rows[/green]"
        )
        _err.print(
            f"[green]✓ Total affected "
            f"{result.updated + result.inserted}[/green]"
        )

    return _with_store(db_path, job)


def run_resolve(
    date_arg: str | None = None,
    currency: str | None = None,
    all_dates: bool = False,
    since_arg: str | None = None,
    until_arg: str | None = None,
    chunk_by_day: bool = False,
    db_path: str | Path | None = None,
) -> int:
    """Build canonical daily prices from snapshots."""
    try:
        scope = ResolveScope(
            as_of_date=parse_date(date_arg) or today_utc(),
            all_dates=all_dates,
            since=parse_date(since_arg, "--since"),
            until=parse_date(until_arg, "--until"),
        )
    except ConfigurationError as exc:
        _err.print(f"[red]✗ {exc}[/red]")
        return 1

    code = (currency or Settings.DEFAULT_CURRENCY).upper()
    _err.print(
        f"[bold]Building daily prices ({code})[/bold] "
        f"[dim]{scope.describe()}[/dim]"
    )

    def job(store: PriceStore) -> None:
        count = DailyPriceResolver(store).resolve(
            scope, currency=code, chunk_by_day=chunk_by_day,
        )
        _err.print(f"[green]✓ Upserted {count} daily rows[/green]")

    return _with_store(db_path, job)


def run_rollup(
    date_arg: str | None = None,
    db_path: str | Path | None = None,
) -> int:
    """Roll up sale comps into market value estimates."""
    try:
        as_of_date = parse_date(date_arg) or today_utc()
    except ConfigurationError as exc:
        _err.print(f"[red]✗ {exc}[/red]")
        return 1

    _err.print(
        f"[bold]Rolling up sale comps[/bold] "
        f"[dim]for {as_of_date.isoformat()} "
        f"({Settings.ROLLUP_WINDOW_DAYS}-day window)[/dim]"
    )

    def job(store: PriceStore) -> None:
        count = SaleCompRollup(store).run(as_of_date)
        _err.print(f"[green]✓ Upserted {count} market value rows[/green]")

    return _with_store(db_path, job)
