"""Tests for the LI.FI quote and status client."""

from decimal import Decimal

import httpx
import pytest

from conftest import SENDER, USDC_ETH, USDC_OP, USDT_ETH, quote_payload
from swapflow.routing.base import NO_ROUTE_MESSAGE, BridgeStatus, QuoteErrorKind, QuoteParams, StatusFetchError
from swapflow.routing.lifi import LiFiProvider
from swapflow.swap.models import RoutePreference


def make_params(**changes) -> QuoteParams:
    values = dict(
        from_chain_id=1,
        to_chain_id=1,
        from_token=USDC_ETH,
        to_token=USDT_ETH,
        from_amount=100_000_000,
        from_address=SENDER,
        to_address=SENDER,
        slippage=Decimal("0.005"),
        order=RoutePreference.CHEAPEST,
    )
    values.update(changes)
    return QuoteParams(**values)


def make_provider(handler, **kwargs) -> LiFiProvider:
    return LiFiProvider(
        base_url="https://li.quest/v1",
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


class TestFetchQuote:
    """Tests for LiFiProvider.fetch_quote."""

    @pytest.mark.asyncio
    async def test_sends_query_parameters(self):
        """One GET /quote carrying the normalized request."""
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=quote_payload(make_params(), 99_500_000))

        provider = make_provider(handler, referrer=SENDER, integrator="swapflow", api_key="secret")
        result = await provider.fetch_quote(make_params(), request_id="req-1")

        assert result.success is True
        assert len(seen) == 1
        request = seen[0]
        assert request.method == "GET"
        assert request.url.path == "/v1/quote"
        query = request.url.params
        assert query["fromChain"] == "1"
        assert query["toChain"] == "1"
        assert query["fromToken"] == USDC_ETH
        assert query["toToken"] == USDT_ETH
        assert query["fromAmount"] == "100000000"
        assert query["fromAddress"] == SENDER
        assert query["toAddress"] == SENDER
        assert query["slippage"] == "0.005"
        assert query["order"] == "CHEAPEST"
        assert query["referrer"] == SENDER
        assert query["integrator"] == "swapflow"
        assert request.headers["x-lifi-api-key"] == "secret"

    @pytest.mark.asyncio
    async def test_optional_parameters_omitted(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=quote_payload(make_params(), 1))

        await make_provider(handler).fetch_quote(make_params())

        assert "referrer" not in seen[0].url.params
        assert "integrator" not in seen[0].url.params
        assert "x-lifi-api-key" not in seen[0].headers

    @pytest.mark.asyncio
    async def test_parses_quote(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=quote_payload(make_params(), 99_500_000, duration=42))

        result = await make_provider(handler).fetch_quote(make_params(), request_id="req-7")
        quote = result.quote

        assert result.request_id == "req-7"
        assert quote.request_id == "req-7"
        assert quote.from_amount == 100_000_000
        assert quote.to_amount == 99_500_000
        assert quote.to_amount_min == 98_505_000
        assert quote.execution_duration == 42
        assert quote.from_amount_usd == Decimal("100.00")
        assert quote.transaction_request.gas_limit == 250_000
        assert quote.transaction_request.chain_id == 1
        assert quote.is_cross_chain is False
        assert quote.is_native_input is False

    @pytest.mark.asyncio
    async def test_remote_message_is_surfaced(self):
        """A 4xx body's message becomes the advisory error."""
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                404, json={"message": "No available quotes for the requested transfer", "code": 1002}
            )

        result = await make_provider(handler).fetch_quote(make_params(), request_id="req-2")

        assert result.success is False
        assert result.request_id == "req-2"
        assert result.error.kind == QuoteErrorKind.NO_ROUTE
        assert result.error.message == "No available quotes for the requested transfer"

    @pytest.mark.asyncio
    async def test_generic_message_without_body(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, text="upstream exploded")

        result = await make_provider(handler).fetch_quote(make_params())

        assert result.error.message == NO_ROUTE_MESSAGE

    @pytest.mark.asyncio
    async def test_transport_error_is_generic(self):
        """Transport detail is logged, never shown."""
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        result = await make_provider(handler).fetch_quote(make_params())

        assert result.success is False
        assert result.error.message == NO_ROUTE_MESSAGE

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>maintenance</html>")

        result = await make_provider(handler).fetch_quote(make_params())

        assert result.error.kind == QuoteErrorKind.INVALID_RESPONSE
        assert result.error.message == NO_ROUTE_MESSAGE


class TestFetchStatus:
    """Tests for LiFiProvider.fetch_status."""

    @pytest.mark.asyncio
    async def test_status_query_and_parse(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={
                "status": "DONE",
                "substatus": "COMPLETED",
                "substatusMessage": "The transfer is complete.",
                "receiving": {"txHash": "0xfeed"},
            })

        status = await make_provider(handler).fetch_status(1, 10, "0xabc")

        assert seen[0].url.path == "/v1/status"
        assert seen[0].url.params["fromChain"] == "1"
        assert seen[0].url.params["toChain"] == "10"
        assert seen[0].url.params["txHash"] == "0xabc"
        assert status.status == BridgeStatus.DONE
        assert status.is_terminal is True
        assert status.substatus_message == "The transfer is complete."
        assert status.receiving_tx_hash == "0xfeed"

    @pytest.mark.asyncio
    async def test_pending(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"status": "PENDING", "substatus": "WAIT_DESTINATION_TRANSACTION"})

        status = await make_provider(handler).fetch_status(1, 10, "0xabc")

        assert status.status == BridgeStatus.PENDING
        assert status.is_terminal is False

    @pytest.mark.asyncio
    async def test_not_yet_indexed(self):
        """LI.FI answers 404 until it sees the transaction."""
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404, json={"status": "NOT_FOUND"})

        status = await make_provider(handler).fetch_status(1, 10, "0xabc")

        assert status.status == BridgeStatus.NOT_FOUND

    @pytest.mark.asyncio
    async def test_unknown_status_is_invalid(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"status": "SOMETHING_NEW"})

        status = await make_provider(handler).fetch_status(1, 10, "0xabc")

        assert status.status == BridgeStatus.INVALID

    @pytest.mark.asyncio
    async def test_server_error_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(502, json={"message": "bad gateway"})

        with pytest.raises(StatusFetchError, match="bad gateway"):
            await make_provider(handler).fetch_status(1, 10, "0xabc")

    @pytest.mark.asyncio
    async def test_cross_chain_quote_flag(self):
        params = make_params(to_chain_id=10, to_token=USDC_OP)

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=quote_payload(params, 99_000_000))

        result = await make_provider(handler).fetch_quote(params)

        assert result.quote.is_cross_chain is True
        assert result.quote.to_chain_id == 10
