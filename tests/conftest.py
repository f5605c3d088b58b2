"""Pytest configuration and fixtures."""

import asyncio
import os
from typing import Optional

import pytest

# Set test environment
os.environ["ENVIRONMENT"] = "test"
os.environ["DRY_RUN"] = "true"
os.environ["DEBUG"] = "true"

from swapflow.routing.base import (
    CrossChainStatus,
    BridgeStatus,
    Quote,
    QuoteError,
    QuoteParams,
    QuoteProvider,
    QuoteResult,
    TransactionPayload,
)
from swapflow.swap.models import Token
from swapflow.swap.signer import TransactionReceipt, WalletError, WalletGateway
from swapflow.utils.addresses import NATIVE_TOKEN_ADDRESS, to_address
from swapflow.utils.locks import clear_wallet_locks
from swapflow.utils.numbers import from_display

SENDER = to_address("0x1111111111111111111111111111111111111111")
OTHER_RECEIVER = to_address("0x2222222222222222222222222222222222222222")
SPENDER = to_address("0x1231deb6f5749ef6ce6943a275a1d3e7486f4eae")
USDC_ETH = to_address("0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48")
USDT_ETH = to_address("0xdac17f958d2ee523a2206206994597c13d831ec7")
USDC_OP = to_address("0x0b2c639c533813f4aa9d7837caf62653d097ff85")
NATIVE = to_address(NATIVE_TOKEN_ADDRESS)
TX_HASH = "0x" + "ab" * 32
APPROVAL_HASH = "0x" + "a9" * 32


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, now: float = 1_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


async def settle(rounds: int = 10) -> None:
    """Let scheduled tasks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


def quote_payload(
    params: QuoteParams,
    to_amount: int,
    to_decimals: int = 6,
    duration: int = 30,
    quote_id: str = "quote-1",
) -> dict:
    """LI.FI-shaped quote body for the given request."""
    return {
        "id": quote_id,
        "tool": "test-dex",
        "action": {
            "fromToken": {"address": params.from_token, "chainId": params.from_chain_id,
                          "symbol": "IN", "decimals": 6},
            "toToken": {"address": params.to_token, "chainId": params.to_chain_id,
                        "symbol": "OUT", "decimals": to_decimals},
            "fromAmount": str(params.from_amount),
            "fromChainId": params.from_chain_id,
            "toChainId": params.to_chain_id,
            "slippage": str(params.slippage),
            "fromAddress": params.from_address,
            "toAddress": params.to_address,
        },
        "estimate": {
            "approvalAddress": SPENDER,
            "toAmount": str(to_amount),
            "toAmountMin": str(to_amount * 99 // 100),
            "fromAmountUSD": "100.00",
            "toAmountUSD": "99.50",
            "executionDuration": duration,
        },
        "transactionRequest": {
            "to": SPENDER,
            "data": "0xdeadbeef",
            "value": "0x0",
            "chainId": params.from_chain_id,
            "gasPrice": "0x6fc23ac00",
            "gasLimit": "0x3d090",
        },
    }


def make_quote(
    from_token: str = USDC_ETH,
    to_token: str = USDT_ETH,
    from_amount: int = 100_000_000,
    to_amount: int = 99_500_000,
    from_chain_id: int = 1,
    to_chain_id: int = 1,
    duration: int = 30,
    quote_id: str = "quote-1",
) -> Quote:
    params = QuoteParams(
        from_chain_id=from_chain_id,
        to_chain_id=to_chain_id,
        from_token=from_token,
        to_token=to_token,
        from_amount=from_amount,
        from_address=SENDER,
        to_address=SENDER,
    )
    return Quote.from_api(quote_payload(params, to_amount, duration=duration, quote_id=quote_id))


class FakeProvider(QuoteProvider):
    """Scriptable aggregator.

    With ``hold=True`` every quote waits on a gate future that the test
    releases; with ``ignore_cancel=True`` the fetch keeps running after its
    task is cancelled, like an HTTP call that cannot be aborted.
    """

    def __init__(
        self,
        to_amount: int = 99_500_000,
        error: Optional[str] = None,
        statuses: Optional[list] = None,
        hold: bool = False,
        ignore_cancel: bool = False,
    ):
        self.to_amount = to_amount
        self.error = error
        self.statuses = list(statuses or [BridgeStatus.DONE])
        self.hold = hold
        self.ignore_cancel = ignore_cancel
        self.calls: list[tuple[QuoteParams, str]] = []
        self.gates: list[asyncio.Future] = []
        self.status_calls = 0
        self.cancelled = 0

    @property
    def name(self) -> str:
        return "fake"

    async def fetch_quote(self, params: QuoteParams, request_id: str = "") -> QuoteResult:
        self.calls.append((params, request_id))
        to_amount = self.to_amount
        if self.hold:
            gate = asyncio.get_running_loop().create_future()
            self.gates.append(gate)
            try:
                to_amount = await asyncio.shield(gate)
            except asyncio.CancelledError:
                self.cancelled += 1
                if not self.ignore_cancel:
                    raise
                to_amount = await gate

        if self.error:
            return QuoteResult(request_id=request_id, error=QuoteError(self.error))
        quote = Quote.from_api(
            quote_payload(params, to_amount, quote_id=f"quote-{len(self.calls)}"),
            request_id=request_id,
        )
        return QuoteResult(request_id=request_id, quote=quote)

    async def fetch_status(self, from_chain_id: int, to_chain_id: int, tx_hash: str) -> CrossChainStatus:
        index = min(self.status_calls, len(self.statuses) - 1)
        self.status_calls += 1
        status = self.statuses[index]
        if isinstance(status, Exception):
            raise status
        return CrossChainStatus(
            status=status,
            substatus="WAIT_DESTINATION_TRANSACTION" if not status.is_terminal else "COMPLETED",
            substatus_message=f"bridge {status.value.lower()}",
            receiving_tx_hash="0x" + "cd" * 32 if status == BridgeStatus.DONE else None,
        )


class FakeWallet(WalletGateway):
    """In-memory wallet recording every call."""

    def __init__(self, chain_id: int = 1, allowance: int = 0):
        self.chain_id = chain_id
        self.allowance = allowance
        self.balances: dict[tuple[int, str], int] = {}
        self.calls: list[str] = []
        self.switch_error: Optional[str] = None
        self.gas_error: Optional[str] = None
        self.send_error: Optional[str] = None
        self.receipt_status = 1
        self.approval_receipt_status = 1
        self.sent: list[TransactionPayload] = []
        self.approvals: list[tuple[str, str, int]] = []

    @property
    def address(self) -> str:
        return SENDER

    async def get_chain_id(self) -> int:
        return self.chain_id

    async def switch_chain(self, chain_id: int) -> None:
        self.calls.append("switch_chain")
        if self.switch_error:
            raise WalletError("Failed to switch chain", details=self.switch_error)
        self.chain_id = chain_id

    async def estimate_gas(self, payload: TransactionPayload) -> int:
        self.calls.append("estimate_gas")
        if self.gas_error:
            raise WalletError("Gas estimation failed", details=self.gas_error)
        return 210_000

    async def sign_and_send(self, payload: TransactionPayload, gas_limit: int) -> str:
        self.calls.append("sign_and_send")
        if self.send_error:
            raise WalletError("Transaction broadcast failed", details=self.send_error)
        self.sent.append(payload)
        return TX_HASH

    async def wait_for_receipt(self, tx_hash: str, chain_id: int) -> TransactionReceipt:
        self.calls.append("wait_for_receipt")
        status = self.approval_receipt_status if tx_hash == APPROVAL_HASH else self.receipt_status
        return TransactionReceipt(tx_hash=tx_hash, status=status, block_number=100)

    async def read_allowance(self, chain_id: int, token: str, owner: str, spender: str) -> int:
        self.calls.append("read_allowance")
        return self.allowance

    async def send_approval(self, chain_id: int, token: str, spender: str, amount: int) -> str:
        self.calls.append("send_approval")
        self.approvals.append((token, spender, amount))
        self.allowance = amount
        return APPROVAL_HASH

    async def read_balance(self, chain_id: int, token: str) -> int:
        self.calls.append("read_balance")
        return self.balances.get((chain_id, to_address(token)), 0)


@pytest.fixture(autouse=True)
def reset_locks():
    """Clear wallet locks before each test."""
    clear_wallet_locks()
    yield
    clear_wallet_locks()


@pytest.fixture
def usdc() -> Token:
    return Token(address=USDC_ETH, chain_id=1, symbol="USDC", decimals=6,
                 balance=from_display("250", 6))


@pytest.fixture
def usdt() -> Token:
    return Token(address=USDT_ETH, chain_id=1, symbol="USDT", decimals=6,
                 balance=from_display("40", 6))


@pytest.fixture
def usdc_op() -> Token:
    return Token(address=USDC_OP, chain_id=10, symbol="USDC", decimals=6)


@pytest.fixture
def eth() -> Token:
    return Token(address=NATIVE, chain_id=1, symbol="ETH", decimals=18,
                 balance=from_display("1.5", 18))


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def wallet() -> FakeWallet:
    return FakeWallet()


@pytest.fixture
def hundred_usdc():
    return from_display("100", 6)

