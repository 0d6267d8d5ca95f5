"""Token pricing in GBP for the generation models."""
import asyncio
import logging
import time
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

import aiohttp
from aiohttp import ClientError, ClientTimeout

from edify.config import get_settings

logger = logging.getLogger(__name__)

# USD per 1,000 tokens
MODEL_PRICES_USD: dict[str, dict[str, Decimal]] = {
    "gpt-4-turbo-preview": {"input": Decimal("0.01"), "output": Decimal("0.03")},
    "gpt-4o-mini": {"input": Decimal("0.01"), "output": Decimal("0.03")},
    "gpt-4o": {"input": Decimal("0.01"), "output": Decimal("0.03")},
}

PRICE_QUANTUM = Decimal("0.000001")


class ExchangeRateProvider:
    """Fetches the USD to GBP rate and keeps it for a few hours.

    When the exchange-rate API is unavailable the last known rate is used,
    falling back to the configured constant when nothing was ever fetched.
    """

    def __init__(self):
        self.settings = get_settings()
        self._rate: Optional[float] = None
        self._expires_at = 0.0
        self._last_rate: Optional[float] = None
        self._lock = asyncio.Lock()

    def _fresh_rate(self) -> Optional[float]:
        if self._rate is not None and time.monotonic() < self._expires_at:
            return self._rate
        return None

    async def get_rate(self) -> float:
        rate = self._fresh_rate()
        if rate is not None:
            return rate

        async with self._lock:
            rate = self._fresh_rate()
            if rate is not None:
                return rate

            rate = await self._fetch_rate()
            if rate is None:
                fallback = self._last_rate or self.settings.fallback_usd_to_gbp_rate
                logger.warning(f"Using fallback USD to GBP rate {fallback}")
                return fallback

            self._rate = rate
            self._expires_at = time.monotonic() + self.settings.exchange_rate_cache_hours * 3600
            self._last_rate = rate
            return rate

    async def _fetch_rate(self) -> Optional[float]:
        timeout = ClientTimeout(total=10)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.get(self.settings.exchange_rate_url) as response:
                    if response.status != 200:
                        logger.error(f"Exchange rate API error {response.status}")
                        return None
                    data = await response.json()
        except asyncio.TimeoutError:
            logger.error("Exchange rate API timeout")
            return None
        except ClientError as e:
            logger.error(f"Exchange rate API client error: {e}")
            return None

        rate = (data.get("rates") or {}).get("GBP")
        if not isinstance(rate, (int, float)) or rate <= 0:
            logger.error(f"Exchange rate API returned unusable GBP rate: {rate!r}")
            return None
        return float(rate)

    def clear(self) -> None:
        self._rate = None
        self._expires_at = 0.0
        self._last_rate = None


_exchange_rates: Optional[ExchangeRateProvider] = None


def get_exchange_rate_provider() -> ExchangeRateProvider:
    global _exchange_rates
    if _exchange_rates is None:
        _exchange_rates = ExchangeRateProvider()
    return _exchange_rates


def calculate_usd_price(input_tokens: int, output_tokens: int, model: str) -> Decimal:
    """USD cost of a call; raises ValueError for a model without a price."""
    prices = MODEL_PRICES_USD.get(model)
    if prices is None:
        raise ValueError(f"Invalid model for pricing: {model}")
    return (
        Decimal(input_tokens) / 1000 * prices["input"]
        + Decimal(output_tokens) / 1000 * prices["output"]
    )


async def calculate_gbp_price(input_tokens: int, output_tokens: int, model: str) -> Decimal:
    """GBP cost of a call, rounded to six decimal places."""
    usd_price = calculate_usd_price(input_tokens, output_tokens, model)
    rate = await get_exchange_rate_provider().get_rate()
    gbp_price = (usd_price * Decimal(str(rate))).quantize(PRICE_QUANTUM, rounding=ROUND_HALF_UP)
    logger.debug(f"Priced {model} call: {input_tokens} in / {output_tokens} out = ${usd_price} = £{gbp_price}")
    return gbp_price
