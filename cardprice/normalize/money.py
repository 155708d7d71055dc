# cardprice/normalize/money.py

"""Vendor price text to integer minor-currency units."""

import logging
import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

logger = logging.getLogger("cardprice.normalize")

# Anything that is not part of a plain decimal number ("$", ",", " ", "€")
_FORMATTING_RE = re.compile(r"[^0-9.\-]")
_NUMBER_RE = re.compile(r"^-?(\d+(\.\d*)?|\.\d+)$")

_HUNDRED = Decimal(100)

# Largest value a SQLite INTEGER column can hold
MAX_MINOR_UNITS = 2**63 - 1


def to_minor_units(value: object) -> int | None:
    """Parse a vendor price into cents, or ``None`` when absent.

    Formatting characters are stripped first, so ``"$1,234.56"``
    becomes ``123456``.  Missing, blank, unparseable, zero and
    negative values all come back as ``None`` (never ``0``), and so do
    amounts too large to store as a 64-bit integer.
    """
    if value is None or isinstance(value, bool):
        return None

    cleaned = _FORMATTING_RE.sub("", str(value).strip())
    if not cleaned or not _NUMBER_RE.match(cleaned):
        if cleaned:
            logger.debug("Unparseable price value: %r", value)
        return None

    try:
        cents = (Decimal(cleaned) * _HUNDRED).quantize(
            Decimal(1), rounding=ROUND_HALF_UP,
        )
    except InvalidOperation:
        logger.debug("Unparseable price value: %r", value)
        return None

    result = int(cents)
    if result > MAX_MINOR_UNITS:
        logger.debug("Price value out of range: %r", value)
        return None
    return result if result > 0 else None
