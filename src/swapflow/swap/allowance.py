"""ERC-20 allowance checks and approvals for the loaded quote."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from swapflow.swap.models import TransactionStatus
from swapflow.swap.signer import WalletError, WalletGateway
from swapflow.swap.store import SwapStateStore
from swapflow.utils.locks import LockTimeoutError, wallet_lock

logger = logging.getLogger(__name__)

StatusHandler = Callable[[TransactionStatus], Any]


@dataclass(frozen=True)
class AllowanceState:
    """Allowance read for one quote."""

    quote_id: str
    owner: str
    spender: str
    token: str
    amount: int
    required: int

    @property
    def sufficient(self) -> bool:
        return self.amount >= self.required


class AllowanceManager:
    """Checks and grants the spender allowance a quote needs.

    Both operations refuse to act on a quote that no longer matches the
    store's request; native-coin inputs never need an approval.
    """

    def __init__(self, store: SwapStateStore, wallet: WalletGateway):
        self.store = store
        self.wallet = wallet
        self._cached: Optional[AllowanceState] = None
        self.status = TransactionStatus.idle()

    def _usable_quote(self):
        quote = self.store.quote
        if quote is None:
            logger.debug("No quote loaded, allowance check refused")
            return None
        if not self.store.quote_matches_request(quote):
            logger.debug(f"Quote {quote.id} is stale, allowance check refused")
            return None
        return quote

    def invalidate(self) -> None:
        self._cached = None

    async def read_state(self) -> Optional[AllowanceState]:
        """Read (or reuse) the allowance for the current quote."""
        quote = self._usable_quote()
        if quote is None or quote.is_native_input:
            return None

        owner = self.wallet.address
        if (
            self._cached is not None
            and self._cached.quote_id == quote.id
            and self._cached.owner == owner
        ):
            return self._cached

        amount = await self.wallet.read_allowance(
            quote.from_chain_id,
            quote.from_token.address,
            owner,
            quote.approval_address,
        )
        self._cached = AllowanceState(
            quote_id=quote.id,
            owner=owner,
            spender=quote.approval_address,
            token=quote.from_token.address,
            amount=amount,
            required=quote.from_amount,
        )
        return self._cached

    async def has_sufficient_allowance(self) -> bool:
        """True when the loaded quote can be executed without an approval.

        Returns False when there is no usable quote or the read fails.
        """
        quote = self._usable_quote()
        if quote is None:
            return False
        if quote.is_native_input:
            return True

        try:
            state = await self.read_state()
        except WalletError as e:
            logger.warning(f"Allowance read failed: {e.message} {e.details or ''}")
            return False
        return state is not None and state.sufficient

    async def _set_status(self, status: TransactionStatus, handler: Optional[StatusHandler]) -> None:
        self.status = status
        if handler is not None:
            result = handler(status)
            if asyncio.iscoroutine(result):
                await result

    async def approve(
        self,
        on_success: Optional[Callable[[], Any]] = None,
        status_handler: Optional[StatusHandler] = None,
    ) -> bool:
        """Approve exactly the quote's input amount for its spender.

        Native-coin inputs need no approval: the continuation runs right away
        and no transaction is sent.

        Args:
            on_success: Continuation run after the approval is mined (sync or async)
            status_handler: Receives each TransactionStatus transition

        Returns:
            True if the approval was mined successfully or was not needed
        """
        quote = self._usable_quote()
        if quote is None:
            return False
        if quote.is_native_input:
            await _run_continuation(on_success)
            return True

        await self._set_status(TransactionStatus.pending(), status_handler)
        try:
            async with wallet_lock(self.wallet.address, operation="approve"):
                tx_hash = await self.wallet.send_approval(
                    quote.from_chain_id,
                    quote.from_token.address,
                    quote.approval_address,
                    quote.from_amount,
                )
                receipt = await self.wallet.wait_for_receipt(tx_hash, quote.from_chain_id)
        except (WalletError, LockTimeoutError) as e:
            message = e.message if isinstance(e, WalletError) else str(e)
            logger.error(f"Approval of {quote.from_token.symbol} failed: {message}")
            await self._set_status(TransactionStatus.error(message), status_handler)
            return False
        finally:
            self.invalidate()

        if not receipt.success:
            await self._set_status(TransactionStatus.error("Transaction failed", data=tx_hash), status_handler)
            return False

        logger.info(f"Approval {tx_hash} confirmed for quote {quote.id}")
        await self._set_status(TransactionStatus.success(data=tx_hash), status_handler)
        await _run_continuation(on_success)
        return True


async def _run_continuation(on_success: Optional[Callable[[], Any]]) -> None:
    if on_success is None:
        return
    result = on_success()
    if asyncio.iscoroutine(result):
        await result
