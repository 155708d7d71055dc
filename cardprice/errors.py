# cardprice/errors.py

"""Error taxonomy for the pricing batch jobs.

Only two kinds of failure abort a run:

* :class:`ConfigurationError` is raised before any write is attempted
  (missing database path, malformed date, unknown vendor, inverted
  date range).
* :class:`StoreError` wraps a database failure raised inside a
  transaction, after that transaction has been rolled back.

Per-field parse problems never surface as exceptions: an unparseable
price is simply absent.
"""


class PricingError(Exception):
    """Base class for all cardprice failures."""


class ConfigurationError(PricingError):
    """Invalid or missing run configuration. Nothing was written."""


class StoreError(PricingError):
    """A transactional write failed and was rolled back."""
