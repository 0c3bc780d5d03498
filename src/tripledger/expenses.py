from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, Mapping

from .models import TravelEvent

BASE_CURRENCY = "HKD"

# 1 unit of the code = N units of HKD; user-editable afterwards.
DEFAULT_RATES: Dict[str, float] = {
    "EUR": 8.5,
    "USD": 7.8,
    "GBP": 10.1,
    "JPY": 0.052,
    "KRW": 0.006,
    "TWD": 0.25,
    "CNY": 1.1,
    "HKD": 1.0,
}


@dataclass(frozen=True)
class ExpenseSummary:
    total_in_base: float
    per_currency: Dict[str, float] = field(default_factory=dict)
    base_currency: str = BASE_CURRENCY


def rate_for(code: str, rates: Mapping[str, float]) -> float:
    rate = rates.get(code)
    if not rate or rate <= 0:
        return 1.0
    return float(rate)


def convert(cost: float, currency: str, rates: Mapping[str, float]) -> float:
    return cost * rate_for(currency, rates)


def summarize(
    events: Iterable[TravelEvent],
    rates: Mapping[str, float],
    base_currency: str = BASE_CURRENCY,
) -> ExpenseSummary:
    """Total every costed event in the base currency.

    Unknown currencies count at 1.0 instead of failing. Neither argument is
    modified.
    """
    total = 0.0
    per_currency: Dict[str, float] = {}
    for event in events:
        if not event.cost or event.cost <= 0:
            continue
        total += convert(event.cost, event.currency, rates)
        per_currency[event.currency] = per_currency.get(event.currency, 0.0) + event.cost
    return ExpenseSummary(total_in_base=total, per_currency=per_currency, base_currency=base_currency)
