"""Dry-run quote provider returning simulated LI.FI-shaped quotes."""

import asyncio
import hashlib
import random
import time
from decimal import Decimal
from typing import Iterable, Optional

from swapflow.routing.base import (
    NO_ROUTE_MESSAGE,
    BridgeStatus,
    CrossChainStatus,
    Quote,
    QuoteError,
    QuoteParams,
    QuoteProvider,
    QuoteResult,
)
from swapflow.utils.addresses import NATIVE_TOKEN_ADDRESS, is_native_address, to_address

# Simulated market prices in USD, for demonstration only
SIMULATED_PRICES: dict[str, Decimal] = {
    "ETH": Decimal("3900.00"),
    "WETH": Decimal("3900.00"),
    "BNB": Decimal("710.00"),
    "POL": Decimal("0.62"),
    "AVAX": Decimal("52.00"),
    "USDT": Decimal("1.00"),
    "USDC": Decimal("1.00"),
    "DAI": Decimal("1.00"),
    "WBTC": Decimal("100000.00"),
    "LINK": Decimal("28.00"),
}

# (chain_id, address) -> (symbol, decimals)
SIMULATED_TOKENS: dict[tuple[int, str], tuple[str, int]] = {
    (1, NATIVE_TOKEN_ADDRESS): ("ETH", 18),
    (1, "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48"): ("USDC", 6),
    (1, "0xdAC17F958D2ee523a2206206994597C13D831ec7"): ("USDT", 6),
    (1, "0x6B175474E89094C44Da98b954EedeAC495271d0F"): ("DAI", 18),
    (1, "0x2260FAC5E5542a773Aa44fBCfeDf7C193bc2C599"): ("WBTC", 8),
    (10, NATIVE_TOKEN_ADDRESS): ("ETH", 18),
    (10, "0x0b2C639c533813f4Aa9D7837CAf62653d097Ff85"): ("USDC", 6),
    (10, "0x94b008aA00579c1307B0EF2c499aD98a8ce58e58"): ("USDT", 6),
    (56, NATIVE_TOKEN_ADDRESS): ("BNB", 18),
    (137, NATIVE_TOKEN_ADDRESS): ("POL", 18),
    (8453, NATIVE_TOKEN_ADDRESS): ("ETH", 18),
    (8453, "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913"): ("USDC", 6),
    (42161, NATIVE_TOKEN_ADDRESS): ("ETH", 18),
    (42161, "0xaf88d065e77c8cC2239327C5EDb3A432268e5831"): ("USDC", 6),
}

SIMULATED_SPENDER = "0x1231DEB6f5749EF6cE6943a275A1D3E7486F4EaE"


class DryRunQuoteProvider(QuoteProvider):
    """
    Simulated aggregator for offline runs and tests.

    Provides quotes priced from SIMULATED_PRICES with:
    - Configurable fee
    - Optional random variance within the slippage tolerance
    - A scripted status sequence for cross-chain polling (DONE by default)
    """

    def __init__(
        self,
        fee_percent: Decimal = Decimal("0.005"),
        add_random_variance: bool = False,
        latency_seconds: float = 0.0,
        status_sequence: Optional[Iterable[BridgeStatus]] = None,
    ):
        self.fee_percent = fee_percent
        self.add_random_variance = add_random_variance
        self.latency_seconds = latency_seconds
        self._prices = SIMULATED_PRICES.copy()
        self._tokens = {
            (chain_id, to_address(address)): info
            for (chain_id, address), info in SIMULATED_TOKENS.items()
        }
        self._status_sequence = list(status_sequence or [BridgeStatus.DONE])
        self._status_calls = 0

    @property
    def name(self) -> str:
        return "dry_run"

    def set_price(self, symbol: str, price: Decimal) -> None:
        """Set simulated price for a symbol."""
        self._prices[symbol.upper()] = price

    def register_token(self, chain_id: int, address: str, symbol: str, decimals: int) -> None:
        """Make a token known to the simulator."""
        self._tokens[(chain_id, to_address(address))] = (symbol.upper(), decimals)

    def _lookup(self, chain_id: int, address: str) -> Optional[tuple[str, int]]:
        return self._tokens.get((chain_id, to_address(address)))

    async def fetch_quote(self, params: QuoteParams, request_id: str = "") -> QuoteResult:
        """Generate a simulated quote."""
        if self.latency_seconds:
            await asyncio.sleep(self.latency_seconds)

        from_info = self._lookup(params.from_chain_id, params.from_token)
        to_info = self._lookup(params.to_chain_id, params.to_token)
        if from_info is None or to_info is None or params.from_amount <= 0:
            return QuoteResult(request_id=request_id, error=QuoteError(NO_ROUTE_MESSAGE))

        from_symbol, from_decimals = from_info
        to_symbol, to_decimals = to_info
        from_price = self._prices.get(from_symbol)
        to_price = self._prices.get(to_symbol)
        if from_price is None or to_price is None:
            return QuoteResult(request_id=request_id, error=QuoteError(NO_ROUTE_MESSAGE))

        from_amount = Decimal(params.from_amount) / (Decimal(10) ** from_decimals)
        usd_value = from_amount * from_price
        to_amount = usd_value * (1 - self.fee_percent) / to_price

        if self.add_random_variance:
            # Random slippage between 0% and the tolerance
            to_amount -= to_amount * Decimal(str(random.uniform(0, float(params.slippage))))

        to_amount_raw = int(to_amount * (Decimal(10) ** to_decimals))
        if to_amount_raw <= 0:
            return QuoteResult(request_id=request_id, error=QuoteError(NO_ROUTE_MESSAGE))
        to_amount_min = int(Decimal(to_amount_raw) * (1 - params.slippage))

        quote_id = hashlib.sha256(f"{request_id}{params}{time.time()}".encode()).hexdigest()[:32]
        is_native = is_native_address(params.from_token)
        data = {
            "id": quote_id,
            "tool": "dry_run",
            "action": {
                "fromToken": {"address": params.from_token, "chainId": params.from_chain_id,
                              "symbol": from_symbol, "decimals": from_decimals,
                              "priceUSD": str(from_price)},
                "toToken": {"address": params.to_token, "chainId": params.to_chain_id,
                            "symbol": to_symbol, "decimals": to_decimals,
                            "priceUSD": str(to_price)},
                "fromAmount": str(params.from_amount),
                "fromChainId": params.from_chain_id,
                "toChainId": params.to_chain_id,
                "slippage": str(params.slippage),
                "fromAddress": params.from_address,
                "toAddress": params.to_address,
            },
            "estimate": {
                "approvalAddress": SIMULATED_SPENDER,
                "toAmount": str(to_amount_raw),
                "toAmountMin": str(to_amount_min),
                "fromAmountUSD": str(usd_value.quantize(Decimal("0.01"))),
                "toAmountUSD": str((to_amount * to_price).quantize(Decimal("0.01"))),
                "executionDuration": 30 if params.from_chain_id == params.to_chain_id else 120,
            },
            "transactionRequest": {
                "to": SIMULATED_SPENDER,
                "data": "0x" + quote_id,
                "value": hex(params.from_amount if is_native else 0),
                "chainId": params.from_chain_id,
                "gasPrice": hex(30 * 10**9),
                "gasLimit": hex(250000),
                "from": params.from_address,
            },
        }
        return QuoteResult(request_id=request_id, quote=Quote.from_api(data, request_id=request_id))

    async def fetch_status(
        self,
        from_chain_id: int,
        to_chain_id: int,
        tx_hash: str,
    ) -> CrossChainStatus:
        """Replay the scripted status sequence, repeating its last entry."""
        index = min(self._status_calls, len(self._status_sequence) - 1)
        self._status_calls += 1
        status = self._status_sequence[index]
        message = None if status.is_terminal else "Waiting for the bridge to process the transfer."
        return CrossChainStatus(status=status, substatus_message=message)
