# cardprice/models/vendor_row.py

"""Vendor-native price row already joined to an internal item id."""

from dataclasses import dataclass
from typing import Any


@dataclass
class VendorRow:
    """A raw vendor payload resolved to a ``market_items`` id."""

    item_id: int
    external_id: str
    payload: dict[str, Any]
