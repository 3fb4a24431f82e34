"""Currency-indexed tables shared by the ledger and the reporting engine.

Rate tables are expressed as units of each currency per one unit of the
common base (USD), the shape returned by the exchange-rate provider.
"""
from __future__ import annotations

from collections.abc import Mapping
from decimal import Decimal

from app.models.enums import Currency


# Outgoing amounts strictly above the ceiling need explicit approval.
APPROVAL_THRESHOLDS: dict[Currency, Decimal] = {
    Currency.VND: Decimal("5000000"),
    Currency.USD: Decimal("100"),
    Currency.KHR: Decimal("100"),
    Currency.TRY: Decimal("100"),
}

FALLBACK_RATES: dict[str, Decimal] = {
    "USD": Decimal("1"),
    "VND": Decimal("25400"),
    "KHR": Decimal("4100"),
    "TRY": Decimal("35"),
}

RateTable = Mapping[str, Decimal]


def currency_code(currency: Currency | str) -> str:
    return currency.value if isinstance(currency, Currency) else str(currency).upper()


def approval_threshold(currency: Currency | str) -> Decimal:
    return APPROVAL_THRESHOLDS[Currency(currency_code(currency))]


def exceeds_threshold(amount: Decimal, currency: Currency | str) -> bool:
    return Decimal(str(amount)) > approval_threshold(currency)


def rate_for(rates: RateTable, currency: Currency | str) -> Decimal:
    # Missing or unusable entries count as 1 so reports degrade instead of failing.
    value = rates.get(currency_code(currency))
    if value is None:
        return Decimal("1")
    value = Decimal(str(value))
    return value if value > 0 else Decimal("1")


def cross_rate(from_currency: Currency | str, to_currency: Currency | str, rates: RateTable) -> Decimal:
    if currency_code(from_currency) == currency_code(to_currency):
        return Decimal("1")
    return rate_for(rates, to_currency) / rate_for(rates, from_currency)


def convert_currency(
    amount: Decimal,
    from_currency: Currency | str,
    to_currency: Currency | str,
    rates: RateTable,
) -> Decimal:
    amount = Decimal(str(amount))
    if currency_code(from_currency) == currency_code(to_currency):
        return amount
    return amount * rate_for(rates, to_currency) / rate_for(rates, from_currency)
