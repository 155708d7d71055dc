# cardprice/normalize/vendors.py

"""Declarative vendor price-field tables.

Each vendor maps its native price fields to a fixed
``(currency, price_type, condition)`` target.  Adding a vendor means
adding a :class:`VendorProfile` here; the normalizer itself is generic.

Note: Scryfall ``tix`` is an MTGO ticket price, not dollars.  It is
stored under ``USD`` and told apart only by ``price_type="tix"``,
matching how the upstream data has always been kept.
"""

from dataclasses import dataclass
from typing import Any

from cardprice.errors import ConfigurationError

LAYOUT_DOCUMENT = "document"
LAYOUT_COLUMNS = "columns"


@dataclass(frozen=True)
class FieldTarget:
    """Canonical slot a vendor price field lands in."""

    currency: str
    price_type: str
    condition: str | None = None


@dataclass(frozen=True)
class VendorProfile:
    """Static description of one vendor's price layout."""

    source: str
    label: str
    layout: str
    fields: dict[str, FieldTarget]
    document_key: str | None = None

    def extract(self, payload: dict[str, Any]) -> dict[str, Any] | None:
        """Return the mapping that holds this vendor's price fields.

        Document vendors nest prices under ``document_key``; a payload
        without that key (or with a non-object there) has no prices.
        """
        if self.layout == LAYOUT_COLUMNS:
            return payload
        container = payload.get(self.document_key or "")
        if not isinstance(container, dict):
            return None
        return container

    @property
    def audit_key(self) -> str:
        return self.document_key or "row"


VENDORS: dict[str, VendorProfile] = {
    "scryfall": VendorProfile(
        source="scryfall",
        label="Scryfall",
        layout=LAYOUT_DOCUMENT,
        document_key="prices",
        fields={
            "usd": FieldTarget("USD", "market"),
            "usd_foil": FieldTarget("USD", "foil"),
            "usd_etched": FieldTarget("USD", "etched"),
            "eur": FieldTarget("EUR", "market"),
            "eur_foil": FieldTarget("EUR", "foil"),
            "tix": FieldTarget("USD", "tix"),
        },
    ),
    "pricecharting": VendorProfile(
        source="pricecharting",
        label="PriceCharting",
        layout=LAYOUT_COLUMNS,
        fields={
            "loose_price": FieldTarget("USD", "loose"),
            "cib_price": FieldTarget("USD", "cib"),
            "new_price": FieldTarget("USD", "new"),
            "graded_price": FieldTarget("USD", "graded"),
            "box_only_price": FieldTarget("USD", "box_only"),
            "manual_only_price": FieldTarget("USD", "manual_only"),
            "bgs_10_price": FieldTarget("USD", "graded", "BGS 10"),
            "cgc_10_price": FieldTarget("USD", "graded", "CGC 10"),
            "psa_10_price": FieldTarget("USD", "graded", "PSA 10"),
        },
    ),
    "cardmarket": VendorProfile(
        source="cardmarket",
        label="Cardmarket",
        layout=LAYOUT_DOCUMENT,
        document_key="priceGuide",
        fields={
            "trend": FieldTarget("EUR", "trend"),
            "avg7": FieldTarget("EUR", "avg_7d"),
            "avg30": FieldTarget("EUR", "avg_30d"),
            "low": FieldTarget("EUR", "low"),
            "trendFoil": FieldTarget("EUR", "foil"),
        },
    ),
}


def get_vendor(source: str) -> VendorProfile:
    """Look up a vendor profile by source id.

    Raises ``ConfigurationError`` on unknown ids.
    """
    profile = VENDORS.get(source.strip().lower())
    if profile is None:
        valid = ", ".join(sorted(VENDORS))
        raise ConfigurationError(
            f"Unknown vendor '{source}' (available: {valid})"
        )
    return profile
