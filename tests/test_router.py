"""Tests for the routing module."""

from decimal import Decimal

import pytest

from conftest import SENDER, USDC_ETH, USDC_OP, USDT_ETH
from swapflow.config import Settings
from swapflow.routing.base import NO_ROUTE_MESSAGE, BridgeStatus, QuoteParams
from swapflow.routing.dry_run import SIMULATED_SPENDER, DryRunQuoteProvider
from swapflow.routing.factory import create_quote_provider
from swapflow.routing.lifi import LiFiProvider
from swapflow.utils.addresses import NATIVE_TOKEN_ADDRESS, to_address


def make_params(from_token=USDC_ETH, to_token=USDT_ETH, amount=1_000_000_000, to_chain_id=1) -> QuoteParams:
    return QuoteParams(
        from_chain_id=1,
        to_chain_id=to_chain_id,
        from_token=from_token,
        to_token=to_token,
        from_amount=amount,
        from_address=SENDER,
        to_address=SENDER,
    )


class TestDryRunQuoteProvider:
    """Tests for the simulated aggregator."""

    @pytest.mark.asyncio
    async def test_quote_basic(self):
        """1000 USDC -> USDT at par minus the 0.5% fee."""
        provider = DryRunQuoteProvider()
        result = await provider.fetch_quote(make_params(), request_id="dry-1")

        assert result.success is True
        quote = result.quote
        assert quote.request_id == "dry-1"
        assert quote.tool == "dry_run"
        assert quote.from_amount == 1_000_000_000
        assert quote.to_amount == 995_000_000
        assert quote.to_amount_min == 985_050_000
        assert quote.approval_address == to_address(SIMULATED_SPENDER)
        assert quote.from_amount_usd == Decimal("1000.00")

    @pytest.mark.asyncio
    async def test_quote_with_custom_fee(self):
        provider = DryRunQuoteProvider(fee_percent=Decimal("0.01"))
        result = await provider.fetch_quote(make_params())

        assert result.quote.to_amount == 990_000_000

    @pytest.mark.asyncio
    async def test_native_input_carries_value(self):
        provider = DryRunQuoteProvider()
        result = await provider.fetch_quote(
            make_params(from_token=NATIVE_TOKEN_ADDRESS, to_token=USDC_ETH, amount=10**18)
        )

        quote = result.quote
        assert quote.is_native_input is True
        assert quote.transaction_request.value == 10**18
        assert quote.to_amount == 3_880_500_000

    @pytest.mark.asyncio
    async def test_set_price(self):
        provider = DryRunQuoteProvider(fee_percent=Decimal("0"))
        provider.set_price("ETH", Decimal("2000"))
        result = await provider.fetch_quote(
            make_params(from_token=NATIVE_TOKEN_ADDRESS, to_token=USDC_ETH, amount=10**18)
        )

        assert result.quote.to_amount == 2_000_000_000

    @pytest.mark.asyncio
    async def test_unknown_token_has_no_route(self):
        provider = DryRunQuoteProvider()
        result = await provider.fetch_quote(
            make_params(to_token="0x000000000000000000000000000000000000dEaD")
        )

        assert result.success is False
        assert result.error.message == NO_ROUTE_MESSAGE

    @pytest.mark.asyncio
    async def test_registered_token_is_quoted(self):
        provider = DryRunQuoteProvider()
        provider.register_token(1, "0x514910771AF9Ca656af840dff83E8264EcF986CA", "LINK", 18)
        result = await provider.fetch_quote(
            make_params(to_token="0x514910771AF9Ca656af840dff83E8264EcF986CA")
        )

        assert result.success is True
        assert result.quote.to_token.symbol == "LINK"

    @pytest.mark.asyncio
    async def test_cross_chain_quote(self):
        provider = DryRunQuoteProvider()
        result = await provider.fetch_quote(make_params(to_token=USDC_OP, to_chain_id=10))

        assert result.quote.is_cross_chain is True
        assert result.quote.execution_duration == 120

    @pytest.mark.asyncio
    async def test_zero_amount_has_no_route(self):
        provider = DryRunQuoteProvider()
        result = await provider.fetch_quote(make_params(amount=0))

        assert result.success is False

    @pytest.mark.asyncio
    async def test_status_sequence_repeats_last(self):
        provider = DryRunQuoteProvider(status_sequence=[BridgeStatus.PENDING, BridgeStatus.DONE])

        statuses = [(await provider.fetch_status(1, 10, "0x1")).status for _ in range(3)]

        assert statuses == [BridgeStatus.PENDING, BridgeStatus.DONE, BridgeStatus.DONE]


class TestFactory:
    """Tests for create_quote_provider."""

    def test_dry_run_settings(self):
        provider = create_quote_provider(Settings(dry_run=True))

        assert isinstance(provider, DryRunQuoteProvider)
        assert provider.name == "dry_run"

    def test_lifi_settings(self):
        settings = Settings(
            dry_run=False,
            lifi_api_url="https://staging.li.quest/v1/",
            lifi_integrator="swapflow",
            referrer_address=SENDER,
            http_timeout_seconds=10,
        )
        provider = create_quote_provider(settings)

        assert isinstance(provider, LiFiProvider)
        assert provider.base_url == "https://staging.li.quest/v1"
        assert provider.integrator == "swapflow"
        assert provider.referrer == SENDER
        assert provider.api_key is None
        assert provider.timeout == 10
