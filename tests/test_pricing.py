"""Tests for model pricing and the cached exchange rate."""
import time
from decimal import Decimal
from unittest.mock import AsyncMock, patch

import pytest

from edify.services.ai import pricing
from edify.services.ai.pricing import ExchangeRateProvider, calculate_gbp_price, calculate_usd_price


def test_usd_price_per_thousand_tokens():
    assert calculate_usd_price(1000, 1000, "gpt-4o") == Decimal("0.04")
    assert calculate_usd_price(500, 0, "gpt-4o-mini") == Decimal("0.005")


def test_unknown_model_is_rejected():
    with pytest.raises(ValueError, match="Invalid model for pricing"):
        calculate_usd_price(10, 10, "not-a-model")


@pytest.mark.asyncio
async def test_rate_is_fetched_once_and_cached():
    provider = ExchangeRateProvider()
    with patch.object(provider, "_fetch_rate", AsyncMock(return_value=0.8)) as mock_fetch:
        assert await provider.get_rate() == 0.8
        assert await provider.get_rate() == 0.8

    assert mock_fetch.await_count == 1


@pytest.mark.asyncio
async def test_failed_fetch_uses_last_known_rate_then_constant():
    provider = ExchangeRateProvider()

    with patch.object(provider, "_fetch_rate", AsyncMock(return_value=None)):
        assert await provider.get_rate() == provider.settings.fallback_usd_to_gbp_rate

    with patch.object(provider, "_fetch_rate", AsyncMock(return_value=0.75)):
        assert await provider.get_rate() == 0.75

    provider._expires_at = 0.0
    with patch.object(provider, "_fetch_rate", AsyncMock(return_value=None)) as mock_fetch:
        assert await provider.get_rate() == 0.75
    assert mock_fetch.await_count == 1


@pytest.mark.asyncio
async def test_rate_is_refetched_after_it_expires():
    provider = ExchangeRateProvider()
    with patch.object(provider, "_fetch_rate", AsyncMock(side_effect=[0.8, 0.82])) as mock_fetch:
        assert await provider.get_rate() == 0.8
        provider._expires_at = time.monotonic() - 1
        assert await provider.get_rate() == 0.82

    assert mock_fetch.await_count == 2

    provider.clear()
    with patch.object(provider, "_fetch_rate", AsyncMock(return_value=None)):
        assert await provider.get_rate() == provider.settings.fallback_usd_to_gbp_rate


@pytest.mark.asyncio
async def test_gbp_price_is_rounded_to_six_places():
    provider = ExchangeRateProvider()
    with patch.object(pricing, "get_exchange_rate_provider", return_value=provider), \
            patch.object(provider, "_fetch_rate", AsyncMock(return_value=0.79)):
        price = await calculate_gbp_price(123, 456, "gpt-4o")

    # (0.123 * 0.01 + 0.456 * 0.03) * 0.79
    assert price == Decimal("0.011779")
