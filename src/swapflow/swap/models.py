"""User-facing swap configuration and per-transaction status types."""

import uuid
from dataclasses import dataclass, field, replace
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from swapflow.utils.addresses import ZERO_ADDRESS, is_zero_address, same_address
from swapflow.utils.numbers import ZERO_AMOUNT, NormalizedAmount


class RoutePreference(str, Enum):
    """Route ordering requested from the aggregator."""

    RECOMMENDED = "RECOMMENDED"
    SAFEST = "SAFEST"
    FASTEST = "FASTEST"
    CHEAPEST = "CHEAPEST"


@dataclass(frozen=True)
class Token:
    """An ERC-20 token (or the native coin) on a given chain."""

    address: str
    chain_id: int
    symbol: str
    decimals: int
    name: str = ""
    balance: NormalizedAmount = ZERO_AMOUNT

    def same_as(self, other: Optional["Token"]) -> bool:
        return (
            other is not None
            and self.chain_id == other.chain_id
            and same_address(self.address, other.address)
        )


@dataclass(frozen=True)
class TokenAmountInput:
    """One side (input or output) of a swap form."""

    token: Optional[Token] = None
    amount: NormalizedAmount = ZERO_AMOUNT
    value_usd: Optional[Decimal] = None
    is_valid: Optional[bool] = None
    uuid: str = field(default_factory=lambda: str(uuid.uuid4()))


@dataclass(frozen=True)
class SwapRequest:
    """The user-editable swap configuration."""

    receiver: str = ZERO_ADDRESS
    input: TokenAmountInput = field(default_factory=TokenAmountInput)
    output: TokenAmountInput = field(default_factory=TokenAmountInput)
    slippage_tolerance: Decimal = Decimal("0.01")
    order: RoutePreference = RoutePreference.RECOMMENDED

    @property
    def is_fetchable(self) -> bool:
        """Both tokens set to non-zero addresses and a positive input amount."""
        has_valid_in = self.input.token is not None and not is_zero_address(self.input.token.address)
        has_valid_out = self.output.token is not None and not is_zero_address(self.output.token.address)
        return has_valid_in and has_valid_out and self.input.amount.raw > 0

    @property
    def is_cross_chain(self) -> bool:
        if not self.input.token or not self.output.token:
            return False
        return self.input.token.chain_id != self.output.token.chain_id

    def resolve_receiver(self, sender: Optional[str]) -> str:
        """Receiver address, falling back to the sender when unset."""
        if is_zero_address(self.receiver):
            return sender or ZERO_ADDRESS
        return self.receiver

    def with_changes(self, **changes) -> "SwapRequest":
        return replace(self, **changes)


class TxState(str, Enum):
    """Lifecycle of a single on-chain transaction attempt."""

    IDLE = "idle"
    PENDING = "pending"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class TransactionStatus:
    """Status of one logical transaction attempt.

    Instances are never mutated; every transition produces a new one.
    """

    state: TxState = TxState.IDLE
    error_message: Optional[str] = None
    data: Optional[Any] = None

    @classmethod
    def idle(cls) -> "TransactionStatus":
        return cls(state=TxState.IDLE)

    @classmethod
    def pending(cls, data: Optional[Any] = None) -> "TransactionStatus":
        return cls(state=TxState.PENDING, data=data)

    @classmethod
    def success(cls, data: Optional[Any] = None) -> "TransactionStatus":
        return cls(state=TxState.SUCCESS, data=data)

    @classmethod
    def error(cls, message: Optional[str] = None, data: Optional[Any] = None) -> "TransactionStatus":
        return cls(state=TxState.ERROR, error_message=message, data=data)

    @property
    def is_pending(self) -> bool:
        return self.state == TxState.PENDING

    @property
    def is_success(self) -> bool:
        return self.state == TxState.SUCCESS

    @property
    def is_error(self) -> bool:
        return self.state == TxState.ERROR
