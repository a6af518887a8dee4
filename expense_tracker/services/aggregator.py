from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict, dataclass, is_dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from expense_tracker.services.money import sum2
from expense_tracker.services.rates.base import normalize_currency
from expense_tracker.services.rates.conversion import (
    TRIANGULATED,
    ConversionEngine,
    Quote,
    check_amount,
)
from expense_tracker.services.rates.errors import (
    ConversionError,
    RecordConversionFailed,
)

"""Batch conversion of expense records into one target currency.

Per-record failure isolation: a record whose conversion fails is kept at its
original amount *and original currency*, with `conversion_error` set, and the
batch carries on. Sums include those records at face value, so every
AggregateTotal reports `failed_count`; a total is only fully normalized when
that count is zero.

Records may be objects with `amount` / `currency` attributes (pydantic models,
dataclasses) or plain mappings.
"""

logger = logging.getLogger("expense_tracker.aggregator")


def _field(record: Any, name: str, default: Any = None) -> Any:
    if isinstance(record, Mapping):
        return record.get(name, default)
    return getattr(record, name, default)


def _record_fields(record: Any) -> Dict[str, Any]:
    if isinstance(record, Mapping):
        return dict(record)
    if hasattr(record, "model_dump"):
        return record.model_dump()
    if is_dataclass(record) and not isinstance(record, type):
        return asdict(record)
    return dict(vars(record))


@dataclass(frozen=True)
class ConvertedRecord:
    record: Any
    original_amount: float
    original_currency: str
    converted_amount: float
    converted_currency: str
    effective_rate: float
    conversion_error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.conversion_error is not None

    def as_dict(self) -> Dict[str, Any]:
        out = _record_fields(self.record)
        out.update(
            original_amount=self.original_amount,
            original_currency=self.original_currency,
            converted_amount=self.converted_amount,
            converted_currency=self.converted_currency,
            effective_rate=self.effective_rate,
        )
        if self.conversion_error is not None:
            out["conversion_error"] = self.conversion_error
        return out


@dataclass(frozen=True)
class AggregateTotal:
    currency: str
    total: float
    count: int
    failed_count: int = 0

    @property
    def normalized(self) -> bool:
        return self.failed_count == 0

    def as_dict(self) -> Dict[str, Any]:
        return {
            "currency": self.currency,
            "total": self.total,
            "count": self.count,
            "failed_count": self.failed_count,
            "normalized": self.normalized,
        }


def total_of(converted: Sequence[ConvertedRecord], target: str) -> AggregateTotal:
    return AggregateTotal(
        currency=target,
        total=sum2(c.converted_amount for c in converted),
        count=len(converted),
        failed_count=sum(1 for c in converted if c.failed),
    )


class ExpenseAggregator:
    def __init__(self, engine: ConversionEngine):
        self.engine = engine

    async def _quotes(
        self, currencies: Iterable[str], target: str
    ) -> Dict[str, Quote | ConversionError]:
        unique = list(dict.fromkeys(currencies))
        reference = None
        if self.engine.strategy == TRIANGULATED and any(
            c.strip().upper() != target for c in unique
        ):
            # One reference fetch for the whole batch, not one per currency.
            reference = await self.engine.reference_table()
        results = await asyncio.gather(
            *(self.engine.quote(c, target, reference=reference) for c in unique),
            return_exceptions=True,
        )
        quotes: Dict[str, Quote | ConversionError] = {}
        for currency, result in zip(unique, results):
            if isinstance(result, BaseException) and not isinstance(result, ConversionError):
                raise result
            quotes[currency] = result
        return quotes

    def _convert_one(
        self, record: Any, quote: Quote | ConversionError, target: str
    ) -> ConvertedRecord:
        amount = _field(record, "amount")
        currency = _field(record, "currency")
        try:
            if isinstance(quote, ConversionError):
                raise quote
            value = check_amount(amount)
            return ConvertedRecord(
                record=record,
                original_amount=amount,
                original_currency=currency,
                converted_amount=quote.apply(value),
                converted_currency=target,
                effective_rate=quote.rate,
            )
        except ConversionError as e:
            face_value = amount if isinstance(amount, (int, float)) else 0.0
            failure = RecordConversionFailed(_field(record, "id"), e)
            logger.info(
                "kept expense %s at original amount: %s", failure.record_id, failure
            )
            return ConvertedRecord(
                record=record,
                original_amount=amount,
                original_currency=currency,
                converted_amount=face_value,
                converted_currency=currency,
                effective_rate=1.0,
                conversion_error=str(failure),
            )

    async def convert_batch(
        self, records: Sequence[Any], target: str
    ) -> List[ConvertedRecord]:
        target = normalize_currency(target)
        records = list(records)
        quotes = await self._quotes(
            (str(_field(r, "currency") or "") for r in records), target
        )
        return [
            self._convert_one(r, quotes[str(_field(r, "currency") or "")], target)
            for r in records
        ]

    async def sum(self, records: Sequence[Any], target: str) -> AggregateTotal:
        converted = await self.convert_batch(records, target)
        return total_of(converted, normalize_currency(target))
