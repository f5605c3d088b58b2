"""Swap execution engine.

Drives one swap attempt through its phases:

    IDLE -> CHAIN_SWITCHING -> GAS_ESTIMATING -> SUBMITTING -> CONFIRMING
         -> (CROSS_CHAIN_POLLING) -> SUCCESS | ERROR

Same-chain swaps finish when the source transaction is mined. Cross-chain
swaps keep polling the aggregator's status endpoint until the bridge reports
DONE or FAILED. Balances are refreshed once the attempt is terminal and the
store is reset only on success.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from swapflow.routing.base import BridgeStatus, CrossChainStatus, Quote, QuoteProvider, StatusFetchError
from swapflow.swap.events import SwapEventBus, SwapEventType
from swapflow.swap.models import TransactionStatus
from swapflow.swap.signer import WalletError, WalletGateway
from swapflow.swap.store import SwapStateStore
from swapflow.utils.addresses import NATIVE_TOKEN_ADDRESS, is_zero_address, to_address
from swapflow.utils.locks import LockTimeoutError, wallet_lock

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_SECONDS = 5.0

StatusHandler = Callable[[TransactionStatus], Any]


class ExecutionPhase(str, Enum):
    """Where a swap attempt currently is."""

    IDLE = "idle"
    CHAIN_SWITCHING = "chain_switching"
    GAS_ESTIMATING = "gas_estimating"
    SUBMITTING = "submitting"
    CONFIRMING = "confirming"
    CROSS_CHAIN_POLLING = "cross_chain_polling"
    SUCCESS = "success"
    ERROR = "error"


class ExecutionErrorKind(str, Enum):
    """Why a swap attempt ended without success."""

    NO_WALLET = "no_wallet"
    NO_QUOTE = "no_quote"
    STALE_QUOTE = "stale_quote"
    CHAIN_SWITCH = "chain_switch"
    GAS_ESTIMATION = "gas_estimation"
    BROADCAST = "broadcast"
    RECEIPT = "receipt"
    BRIDGE_FAILED = "bridge_failed"
    CANCELED = "canceled"


@dataclass
class ExecutionResult:
    """Result of a swap attempt."""
    success: bool
    phase: ExecutionPhase
    tx_hash: Optional[str] = None
    error: Optional[str] = None
    error_kind: Optional[ExecutionErrorKind] = None
    bridge_status: Optional[CrossChainStatus] = None

    @property
    def receiving_tx_hash(self) -> Optional[str]:
        return self.bridge_status.receiving_tx_hash if self.bridge_status else None


class ExecutionStepError(Exception):
    """A swap step failed; carries the kind and the user-facing message."""

    def __init__(self, kind: ExecutionErrorKind, message: str, tx_hash: Optional[str] = None):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.tx_hash = tx_hash


class ExecutionEngine:
    """Executes the store's current quote through a wallet."""

    def __init__(
        self,
        store: SwapStateStore,
        provider: QuoteProvider,
        wallet: WalletGateway,
        events: Optional[SwapEventBus] = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
    ):
        self.store = store
        self.provider = provider
        self.wallet = wallet
        self.events = events or SwapEventBus()
        self.poll_interval = poll_interval
        self.phase = ExecutionPhase.IDLE
        self.status = TransactionStatus.idle()
        self._cancel_event: Optional[asyncio.Event] = None

    def cancel(self) -> None:
        """Stop cross-chain polling; the attempt ends as CANCELED without reset."""
        if self._cancel_event is not None:
            logger.info("Cancelling swap status polling")
            self._cancel_event.set()

    # ======================
    # Status plumbing
    # ======================

    async def _enter(self, phase: ExecutionPhase, **payload) -> None:
        self.phase = phase
        logger.debug(f"Swap phase -> {phase.value}")
        await self.events.emit(SwapEventType.STATUS_CHANGE, phase=phase, **payload)

    async def _set_status(self, status: TransactionStatus, handler: Optional[StatusHandler]) -> None:
        self.status = status
        if handler is not None:
            result = handler(status)
            if asyncio.iscoroutine(result):
                await result

    async def _finish(
        self,
        result: ExecutionResult,
        handler: Optional[StatusHandler],
    ) -> ExecutionResult:
        if result.success:
            await self._set_status(TransactionStatus.success(data=result.tx_hash), handler)
        else:
            await self._set_status(TransactionStatus.error(result.error, data=result.tx_hash), handler)
        self.phase = result.phase
        return result

    async def _terminal(self, result: ExecutionResult) -> None:
        await self.events.emit(
            SwapEventType.TERMINAL,
            success=result.success,
            tx_hash=result.tx_hash,
            error=result.error,
            error_kind=result.error_kind,
        )

    def _error(
        self,
        kind: ExecutionErrorKind,
        message: str,
        tx_hash: Optional[str] = None,
        bridge_status: Optional[CrossChainStatus] = None,
    ) -> ExecutionResult:
        return ExecutionResult(
            success=False,
            phase=ExecutionPhase.ERROR,
            tx_hash=tx_hash,
            error=message,
            error_kind=kind,
            bridge_status=bridge_status,
        )

    # ======================
    # Execution
    # ======================

    async def execute_swap(self, status_handler: Optional[StatusHandler] = None) -> ExecutionResult:
        """Execute the loaded quote.

        Args:
            status_handler: Receives each TransactionStatus transition (sync or async)

        Returns:
            ExecutionResult; failures are reported, never raised
        """
        quote = self.store.quote
        if quote is None:
            return await self._finish(
                self._error(ExecutionErrorKind.NO_QUOTE, "No quote available"), status_handler
            )
        if not self.store.quote_matches_request(quote):
            return await self._finish(
                self._error(ExecutionErrorKind.STALE_QUOTE, "Quote is out of date, please refresh"),
                status_handler,
            )

        self._cancel_event = asyncio.Event()
        await self._set_status(TransactionStatus.pending(), status_handler)
        logger.info(
            f"Executing quote {quote.id} via {quote.tool}: "
            f"{quote.from_amount} {quote.from_token.symbol} (chain {quote.from_chain_id}) -> "
            f"{quote.to_token.symbol} (chain {quote.to_chain_id})"
        )

        try:
            async with wallet_lock(self.wallet.address, operation="swap"):
                tx_hash = await self._submit(quote)
        except ExecutionStepError as e:
            logger.error(f"Swap failed ({e.kind.value}): {e.message}")
            result = self._error(e.kind, e.message, tx_hash=e.tx_hash)
            await self._enter(ExecutionPhase.ERROR, error=e.message)
            await self._finish(result, status_handler)
            await self._terminal(result)
            return result
        except LockTimeoutError as e:
            result = self._error(ExecutionErrorKind.BROADCAST, str(e))
            await self._finish(result, status_handler)
            await self._terminal(result)
            return result

        bridge_status = None
        if quote.is_cross_chain:
            await self._enter(ExecutionPhase.CROSS_CHAIN_POLLING, tx_hash=tx_hash)
            bridge_status = await self._poll_bridge(quote, tx_hash)
            if bridge_status is None:
                result = self._error(
                    ExecutionErrorKind.CANCELED, "Swap status polling cancelled", tx_hash=tx_hash
                )
                await self._finish(result, status_handler)
                await self._terminal(result)
                return result

            if bridge_status.status == BridgeStatus.FAILED:
                logger.error(f"Bridge transfer for {tx_hash} failed: {bridge_status.substatus}")
                result = self._error(
                    ExecutionErrorKind.BRIDGE_FAILED,
                    bridge_status.substatus_message or "The cross-chain transfer failed",
                    tx_hash=tx_hash,
                    bridge_status=bridge_status,
                )
                await self._enter(ExecutionPhase.ERROR, tx_hash=tx_hash, error=result.error)
                await self._finish(result, status_handler)
                await self._refresh_balances(quote)
                await self._terminal(result)
                return result

        result = ExecutionResult(
            success=True,
            phase=ExecutionPhase.SUCCESS,
            tx_hash=tx_hash,
            bridge_status=bridge_status,
        )
        await self._enter(ExecutionPhase.SUCCESS, tx_hash=tx_hash)
        await self._finish(result, status_handler)
        await self._refresh_balances(quote)
        self.store.reset()
        logger.info(f"Swap {tx_hash} completed")
        await self._terminal(result)
        return result

    async def _submit(self, quote: Quote) -> str:
        """Switch chain, estimate gas, broadcast and wait for the receipt."""
        payload = quote.transaction_request

        await self._enter(ExecutionPhase.CHAIN_SWITCHING, chain_id=quote.from_chain_id)
        try:
            if await self.wallet.get_chain_id() != quote.from_chain_id:
                await self.wallet.switch_chain(quote.from_chain_id)
        except Exception as e:
            logger.warning(f"Chain switch to {quote.from_chain_id} failed: {_failure_detail(e)}")
            raise ExecutionStepError(ExecutionErrorKind.CHAIN_SWITCH, "Failed to switch chain")

        await self._enter(ExecutionPhase.GAS_ESTIMATING)
        try:
            gas_limit = await self.wallet.estimate_gas(payload)
        except Exception as e:
            message = f"The transaction failed with the following error: {_failure_detail(e)}"
            self.store.set_error(message)
            raise ExecutionStepError(ExecutionErrorKind.GAS_ESTIMATION, message)

        await self._enter(ExecutionPhase.SUBMITTING)
        try:
            tx_hash = await self.wallet.sign_and_send(payload, gas_limit)
        except Exception as e:
            logger.warning(f"Broadcast failed: {_failure_detail(e)}")
            raise ExecutionStepError(ExecutionErrorKind.BROADCAST, _failure_detail(e))

        await self._enter(ExecutionPhase.CONFIRMING, tx_hash=tx_hash)
        try:
            receipt = await self.wallet.wait_for_receipt(tx_hash, quote.from_chain_id)
        except Exception as e:
            logger.warning(f"Receipt for {tx_hash} unavailable: {_failure_detail(e)}")
            raise ExecutionStepError(ExecutionErrorKind.RECEIPT, "Transaction failed", tx_hash=tx_hash)
        if not receipt.success:
            raise ExecutionStepError(ExecutionErrorKind.RECEIPT, "Transaction failed", tx_hash=tx_hash)

        logger.info(f"Source transaction {tx_hash} mined in block {receipt.block_number}")
        return tx_hash

    async def _pause(self) -> None:
        try:
            await asyncio.wait_for(self._cancel_event.wait(), timeout=self.poll_interval)
        except asyncio.TimeoutError:
            pass

    async def _poll_bridge(self, quote: Quote, tx_hash: str) -> Optional[CrossChainStatus]:
        """Poll the bridge until DONE/FAILED; returns None when cancelled."""
        expected_end_time = time.time() + quote.execution_duration

        while not self._cancel_event.is_set():
            try:
                status = await self.provider.fetch_status(
                    quote.from_chain_id, quote.to_chain_id, tx_hash
                )
            except StatusFetchError as e:
                logger.warning(f"Status check for {tx_hash} failed, retrying: {e}")
                status = None

            if status is not None:
                await self.events.emit(
                    SwapEventType.PROGRESS,
                    tx_hash=tx_hash,
                    status=status.status,
                    substatus=status.substatus,
                    message=status.substatus_message,
                    expected_end_time=expected_end_time,
                )
                if status.is_terminal:
                    return status

            await self._pause()

        return None

    async def _refresh_balances(self, quote: Quote) -> dict[tuple[int, str], int]:
        """Re-read native, input and output balances of the wallet."""
        targets = [(quote.from_chain_id, to_address(NATIVE_TOKEN_ADDRESS))]
        for chain_id, address in (
            (quote.from_chain_id, quote.from_token.address),
            (quote.to_chain_id, quote.to_token.address),
        ):
            key = (chain_id, to_address(address))
            if not is_zero_address(address) and key not in targets:
                targets.append(key)

        balances: dict[tuple[int, str], int] = {}
        for chain_id, address in targets:
            try:
                balances[(chain_id, address)] = await self.wallet.read_balance(chain_id, address)
            except Exception as e:
                logger.warning(f"Balance refresh of {address} on chain {chain_id} failed: {_failure_detail(e)}")

        await self.events.emit(SwapEventType.BALANCES_REFRESHED, balances=balances)
        return balances


def _failure_detail(error: Exception) -> str:
    """Most specific message of a wallet failure, including non-WalletError ones."""
    if isinstance(error, WalletError):
        return error.details or error.message
    return str(error) or type(error).__name__
