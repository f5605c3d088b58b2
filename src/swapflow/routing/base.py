"""Abstract quote provider interface and the aggregator data model."""

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Optional

from swapflow.swap.models import RoutePreference
from swapflow.utils.addresses import is_native_address, to_address
from swapflow.utils.numbers import to_decimal, to_int

logger = logging.getLogger(__name__)

NO_ROUTE_MESSAGE = "We are sorry, we couldn't find a route for this transaction. Please try again later."


@dataclass(frozen=True)
class QuoteToken:
    """Token descriptor as returned by the aggregator."""

    address: str
    chain_id: int
    symbol: str = ""
    decimals: int = 18
    price_usd: Optional[Decimal] = None

    @classmethod
    def from_api(cls, data: Optional[dict], chain_id: int) -> "QuoteToken":
        data = data or {}
        price = data.get("priceUSD")
        return cls(
            address=to_address(data.get("address")),
            chain_id=int(data.get("chainId") or chain_id),
            symbol=data.get("symbol", ""),
            decimals=int(data.get("decimals", 18)),
            price_usd=to_decimal(price) if price is not None else None,
        )


@dataclass(frozen=True)
class TransactionPayload:
    """Executable transaction returned with a quote."""

    to: str
    data: str
    value: int
    chain_id: int
    gas_limit: int = 0
    gas_price: int = 0
    from_address: Optional[str] = None

    @classmethod
    def from_api(cls, data: Optional[dict], chain_id: int) -> "TransactionPayload":
        data = data or {}
        return cls(
            to=to_address(data.get("to")),
            data=data.get("data") or "0x",
            value=to_int(data.get("value")),
            chain_id=int(data.get("chainId") or chain_id),
            gas_limit=to_int(data.get("gasLimit")),
            gas_price=to_int(data.get("gasPrice")),
            from_address=to_address(data.get("from")) if data.get("from") else None,
        )


@dataclass(frozen=True)
class Quote:
    """Immutable snapshot of one aggregator quote.

    Amounts are raw integers in the token's smallest unit; USD values are
    advisory only.
    """

    id: str
    tool: str
    from_token: QuoteToken
    to_token: QuoteToken
    from_chain_id: int
    to_chain_id: int
    from_amount: int
    to_amount: int
    to_amount_min: int
    approval_address: str
    transaction_request: TransactionPayload
    from_amount_usd: Optional[Decimal] = None
    to_amount_usd: Optional[Decimal] = None
    execution_duration: int = 0
    slippage: Optional[Decimal] = None
    from_address: Optional[str] = None
    to_address: Optional[str] = None
    request_id: str = ""
    timestamp: float = field(default_factory=time.time)

    @property
    def is_cross_chain(self) -> bool:
        return self.from_chain_id != self.to_chain_id

    @property
    def is_native_input(self) -> bool:
        """True when the input is the chain's native coin (no ERC-20 approval)."""
        return is_native_address(self.from_token.address)

    @classmethod
    def from_api(cls, data: dict, request_id: str = "") -> "Quote":
        """Parse a LI.FI ``/quote`` response body."""
        action = data.get("action") or {}
        estimate = data.get("estimate") or {}
        from_chain_id = int(action.get("fromChainId") or 0)
        to_chain_id = int(action.get("toChainId") or 0)

        from_amount_usd = estimate.get("fromAmountUSD")
        to_amount_usd = estimate.get("toAmountUSD")
        slippage = action.get("slippage")

        return cls(
            id=str(data.get("id", "")),
            tool=data.get("tool") or estimate.get("tool") or "",
            from_token=QuoteToken.from_api(action.get("fromToken"), from_chain_id),
            to_token=QuoteToken.from_api(action.get("toToken"), to_chain_id),
            from_chain_id=from_chain_id,
            to_chain_id=to_chain_id,
            from_amount=to_int(action.get("fromAmount") or estimate.get("fromAmount")),
            to_amount=to_int(estimate.get("toAmount")),
            to_amount_min=to_int(estimate.get("toAmountMin")),
            approval_address=to_address(estimate.get("approvalAddress")),
            transaction_request=TransactionPayload.from_api(
                data.get("transactionRequest"), from_chain_id
            ),
            from_amount_usd=to_decimal(from_amount_usd) if from_amount_usd is not None else None,
            to_amount_usd=to_decimal(to_amount_usd) if to_amount_usd is not None else None,
            execution_duration=int(estimate.get("executionDuration") or 0),
            slippage=to_decimal(slippage) if slippage is not None else None,
            from_address=action.get("fromAddress"),
            to_address=action.get("toAddress"),
            request_id=request_id,
        )


@dataclass(frozen=True)
class QuoteParams:
    """Normalized parameters of one quote request."""

    from_chain_id: int
    to_chain_id: int
    from_token: str
    to_token: str
    from_amount: int
    from_address: str
    to_address: str
    slippage: Decimal = Decimal("0.01")
    order: RoutePreference = RoutePreference.RECOMMENDED


class QuoteErrorKind(str, Enum):
    """Why a quote could not be obtained."""

    NO_ROUTE = "no_route"
    CANCELED = "canceled"
    INVALID_RESPONSE = "invalid_response"


class QuoteError(Exception):
    """A failed quote request, carrying a human-readable message."""

    def __init__(self, message: str, kind: QuoteErrorKind = QuoteErrorKind.NO_ROUTE):
        self.kind = kind
        self.message = message
        super().__init__(message)

    @classmethod
    def canceled(cls) -> "QuoteError":
        return cls("canceled", kind=QuoteErrorKind.CANCELED)

    @property
    def is_canceled(self) -> bool:
        return self.kind == QuoteErrorKind.CANCELED


@dataclass(frozen=True)
class QuoteResult:
    """Outcome of a quote request: exactly one of ``quote`` / ``error`` is set."""

    request_id: str
    quote: Optional[Quote] = None
    error: Optional[QuoteError] = None

    @property
    def success(self) -> bool:
        return self.quote is not None and self.error is None


class BridgeStatus(str, Enum):
    """Cross-chain transfer status reported by the aggregator."""

    NOT_FOUND = "NOT_FOUND"
    INVALID = "INVALID"
    PENDING = "PENDING"
    DONE = "DONE"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (BridgeStatus.DONE, BridgeStatus.FAILED)


@dataclass(frozen=True)
class CrossChainStatus:
    """One polling snapshot of a cross-chain transfer."""

    status: BridgeStatus
    substatus: Optional[str] = None
    substatus_message: Optional[str] = None
    receiving_tx_hash: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @classmethod
    def from_api(cls, data: dict) -> "CrossChainStatus":
        raw_status = str(data.get("status", "NOT_FOUND")).upper()
        try:
            status = BridgeStatus(raw_status)
        except ValueError:
            logger.warning(f"Unknown bridge status '{raw_status}', treating as INVALID")
            status = BridgeStatus.INVALID
        receiving = data.get("receiving") or {}
        return cls(
            status=status,
            substatus=data.get("substatus"),
            substatus_message=data.get("substatusMessage"),
            receiving_tx_hash=receiving.get("txHash"),
        )


class StatusFetchError(Exception):
    """Raised when the status endpoint could not be reached or parsed."""

    pass


class QuoteProvider(ABC):
    """Abstract base class for swap/bridge aggregators."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name identifier."""
        pass

    @abstractmethod
    async def fetch_quote(self, params: QuoteParams, request_id: str = "") -> QuoteResult:
        """
        Request a quote.

        Args:
            params: Normalized request parameters
            request_id: Identifier of the request, echoed back in the result

        Returns:
            QuoteResult with either a Quote or a QuoteError. Transport and
            validation failures are reported in the result, never raised.
            Cancelling the awaiting task cancels the HTTP call.
        """
        pass

    @abstractmethod
    async def fetch_status(
        self,
        from_chain_id: int,
        to_chain_id: int,
        tx_hash: str,
    ) -> CrossChainStatus:
        """
        Fetch the status of a cross-chain transfer (one request, no looping).

        Raises:
            StatusFetchError: If the endpoint could not be queried
        """
        pass
