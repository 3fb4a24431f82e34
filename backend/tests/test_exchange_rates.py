from decimal import Decimal

import httpx
import pytest

from app.core.errors import UpstreamFailure
from app.services.exchange_rates import ExchangeRateProvider
from app.utils.currency import FALLBACK_RATES, convert_currency, cross_rate


URL = "https://rates.test/latest/USD"


def _provider(handler) -> ExchangeRateProvider:
    return ExchangeRateProvider(URL, timeout=2.0, transport=httpx.MockTransport(handler))


def test_fetch_parses_rates_as_decimals() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert str(request.url) == URL
        return httpx.Response(200, json={"base": "USD", "rates": {"usd": 1, "VND": 25400.5, "KHR": "4100", "BAD": "x"}})

    rates = _provider(handler).fetch()

    assert rates == {"USD": Decimal("1"), "VND": Decimal("25400.5"), "KHR": Decimal("4100")}


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(503, text="maintenance"),
        httpx.Response(200, text="<html>not json</html>"),
        httpx.Response(200, json={"base": "USD"}),
    ],
)
def test_fetch_failures_surface_as_upstream_failure(response: httpx.Response) -> None:
    provider = _provider(lambda request: response)

    with pytest.raises(UpstreamFailure):
        provider.fetch()


def test_network_error_surfaces_as_upstream_failure() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("timed out", request=request)

    with pytest.raises(UpstreamFailure):
        _provider(handler).fetch()


def test_reports_fall_back_to_static_table() -> None:
    provider = _provider(lambda request: httpx.Response(500))

    rates, is_fallback = provider.fetch_or_fallback()

    assert is_fallback is True
    assert rates == FALLBACK_RATES


def test_cross_rate_uses_units_per_base() -> None:
    rates = {"USD": Decimal("1"), "VND": Decimal("25000")}

    assert cross_rate("VND", "USD", rates) == Decimal("0.00004")
    assert convert_currency(Decimal("1000000"), "VND", "USD", rates) == Decimal("40")
    assert convert_currency(Decimal("12"), "TRY", "TRY", {}) == Decimal("12")
