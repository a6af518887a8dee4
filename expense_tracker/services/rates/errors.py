"""Currency error taxonomy.

ProviderUnavailable never leaves the rate cache (it is turned into a fallback
table). ConversionError subclasses are fatal to a single `convert` call and
absorbed per record by the aggregator.
"""

from __future__ import annotations


class CurrencyError(Exception):
    pass


class ProviderUnavailable(CurrencyError):
    """Network, HTTP or provider-reported failure while fetching rates."""


class ConversionError(CurrencyError):
    pass


class UnsupportedCurrency(ConversionError):
    def __init__(self, currency: str):
        self.currency = currency
        super().__init__(f"Unsupported currency: {currency}")


class InvalidAmount(ConversionError):
    pass


class RateNotFound(ConversionError):
    def __init__(self, currency: str, base: str | None = None):
        self.currency = currency
        self.base = base
        super().__init__(f"Exchange rate not found for {currency}")


class RecordConversionFailed(ConversionError):
    """Marker for a batch record kept at its original amount."""

    def __init__(self, record_id, cause: ConversionError):
        self.record_id = record_id
        self.cause = cause
        super().__init__(str(cause))
