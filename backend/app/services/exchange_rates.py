from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation

import httpx

from app.core.config import get_settings
from app.core.errors import UpstreamFailure
from app.utils.currency import FALLBACK_RATES


logger = logging.getLogger("ledger.rates")


class ExchangeRateProvider:
    """Fetches ``currency -> units per base`` from a JSON rates endpoint.

    No caching: every report or transfer asks for the freshest table.
    """

    def __init__(
        self,
        url: str,
        *,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.url = url
        self.timeout = timeout
        self._transport = transport

    def fetch(self) -> dict[str, Decimal]:
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                response = client.get(self.url)
                response.raise_for_status()
                payload = response.json()
        except httpx.HTTPError as exc:
            raise UpstreamFailure(f"Exchange-rate provider unavailable: {exc}") from exc
        except ValueError as exc:
            raise UpstreamFailure("Exchange-rate provider returned invalid JSON.") from exc

        raw_rates = payload.get("rates") if isinstance(payload, dict) else None
        if not isinstance(raw_rates, dict) or not raw_rates:
            raise UpstreamFailure("Exchange-rate provider returned no rates.")
        rates: dict[str, Decimal] = {}
        for code, value in raw_rates.items():
            try:
                parsed = Decimal(str(value))
            except InvalidOperation:
                continue
            if parsed > 0:
                rates[str(code).upper()] = parsed
        return rates

    def fetch_or_fallback(self) -> tuple[dict[str, Decimal], bool]:
        """Rates for read-only reporting. Returns ``(rates, is_fallback)``."""
        try:
            return self.fetch(), False
        except UpstreamFailure as exc:
            logger.warning("Using fallback exchange rates: %s", exc.detail)
            return dict(FALLBACK_RATES), True


def get_rate_provider() -> ExchangeRateProvider:
    settings = get_settings()
    return ExchangeRateProvider(
        settings.exchange_rate_url,
        timeout=settings.exchange_rate_timeout_seconds,
    )
