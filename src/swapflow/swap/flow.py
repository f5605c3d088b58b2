"""SwapFlow: the one object a UI talks to.

Wires the state store, the quote session, the allowance manager and the
execution engine for one swap form.

Example:
    flow = SwapFlow.from_settings()
    flow.set_input(usdc, from_display("100", 6))
    flow.set_output(usdt)
    await flow.retrieve_expected_out()
    if not await flow.has_allowance():
        await flow.approve()
    result = await flow.execute_swap()
"""

import asyncio
import logging
from decimal import Decimal
from typing import Any, Callable, Optional, Union

from swapflow.config import Settings, get_settings
from swapflow.routing.base import Quote, QuoteProvider
from swapflow.routing.factory import create_quote_provider
from swapflow.swap.allowance import AllowanceManager
from swapflow.swap.events import SwapEventBus
from swapflow.swap.executor import ExecutionEngine, ExecutionErrorKind, ExecutionPhase, ExecutionResult
from swapflow.swap.fingerprint import FingerprintGuard
from swapflow.swap.models import RoutePreference, Token, TokenAmountInput, TransactionStatus
from swapflow.swap.session import QuoteSessionManager
from swapflow.swap.signer import LocalEVMWallet, WalletGateway
from swapflow.swap.store import ChangeKind, SwapStateStore
from swapflow.utils.numbers import NormalizedAmount

logger = logging.getLogger(__name__)


class SwapFlow:
    """Swap form controller."""

    def __init__(
        self,
        provider: QuoteProvider,
        wallet: Optional[WalletGateway] = None,
        events: Optional[SwapEventBus] = None,
        auto_quote: bool = False,
        quote_ttl_seconds: float = 60.0,
        poll_interval: float = 5.0,
        default_slippage: Union[Decimal, float] = Decimal("0.01"),
        default_order: RoutePreference = RoutePreference.RECOMMENDED,
    ):
        self.provider = provider
        self.wallet = wallet
        self.events = events or SwapEventBus()
        self.store = SwapStateStore(default_slippage=default_slippage, default_order=default_order)
        self.session = QuoteSessionManager(
            self.store,
            provider,
            sender=lambda: self.wallet.address if self.wallet else None,
            guard=FingerprintGuard(ttl_seconds=quote_ttl_seconds),
        )
        self.allowance = AllowanceManager(self.store, wallet) if wallet else None
        self.executor = (
            ExecutionEngine(self.store, provider, wallet, self.events, poll_interval=poll_interval)
            if wallet
            else None
        )
        self._auto_tasks: set[asyncio.Task] = set()
        self._unsubscribe = self.store.subscribe(self._on_change) if auto_quote else None

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Settings] = None,
        wallet: Optional[WalletGateway] = None,
        auto_quote: bool = False,
    ) -> "SwapFlow":
        """Build a flow from application settings.

        Uses the local key wallet when ``WALLET_PRIVATE_KEY`` is configured
        and no wallet is passed.
        """
        settings = settings or get_settings()
        if wallet is None and settings.has_wallet:
            wallet = LocalEVMWallet(
                settings.wallet_private_key,
                rpc_url_for=settings.get_rpc_url,
                receipt_timeout=settings.receipt_timeout_seconds,
            )
        return cls(
            provider=create_quote_provider(settings),
            wallet=wallet,
            auto_quote=auto_quote,
            quote_ttl_seconds=settings.quote_ttl_seconds,
            poll_interval=settings.status_poll_interval_seconds,
            default_slippage=settings.default_slippage,
            default_order=RoutePreference(settings.default_order.upper()),
        )

    # ======================
    # Read-only state
    # ======================

    @property
    def input(self) -> TokenAmountInput:
        return self.store.input

    @property
    def output(self) -> TokenAmountInput:
        return self.store.output

    @property
    def quote(self) -> Optional[Quote]:
        return self.store.quote

    @property
    def is_fetching_quote(self) -> bool:
        return self.store.is_fetching_quote

    @property
    def current_error(self) -> Optional[str]:
        return self.store.current_error

    @property
    def estimated_time(self) -> Optional[int]:
        return self.store.estimated_time

    @property
    def is_valid(self) -> bool:
        return self.store.is_valid

    # ======================
    # Configuration commands
    # ======================

    def set_input(
        self,
        token: Optional[Token] = None,
        amount: Optional[NormalizedAmount] = None,
        value_usd: Optional[Decimal] = None,
    ) -> None:
        self.store.set_input(token, amount, value_usd)

    def set_output(
        self,
        token: Optional[Token] = None,
        amount: Optional[NormalizedAmount] = None,
        value_usd: Optional[Decimal] = None,
    ) -> None:
        self.store.set_output(token, amount, value_usd)

    def set_receiver(self, receiver: Optional[str]) -> None:
        self.store.set_receiver(receiver)

    def set_slippage(self, slippage: Union[Decimal, float, str]) -> None:
        self.store.set_slippage(slippage)

    def set_order(self, order: Union[RoutePreference, str]) -> None:
        self.store.set_order(order)

    def inverse_tokens(self) -> None:
        self.store.inverse_tokens()

    def reset_input(self) -> None:
        self.store.reset_input()

    def reset_output(self) -> None:
        self.store.reset_output()

    def reset(self) -> None:
        """Abort any fetch or polling and return to the idle defaults."""
        self.session.cancel()
        self.session.guard.forget()
        if self.executor is not None:
            self.executor.cancel()
        self.store.reset()

    # ======================
    # Quote / allowance / execution
    # ======================

    async def retrieve_expected_out(self, force: bool = False) -> None:
        await self.session.retrieve_expected_out(force=force)

    async def has_allowance(self) -> bool:
        if self.allowance is None:
            return False
        return await self.allowance.has_sufficient_allowance()

    async def approve(
        self,
        on_success: Optional[Callable[[], Any]] = None,
        status_handler: Optional[Callable[[TransactionStatus], Any]] = None,
    ) -> bool:
        if self.allowance is None:
            logger.warning("Approve requested without a connected wallet")
            return False
        return await self.allowance.approve(on_success=on_success, status_handler=status_handler)

    async def execute_swap(
        self,
        status_handler: Optional[Callable[[TransactionStatus], Any]] = None,
    ) -> ExecutionResult:
        if self.executor is None:
            logger.warning("Swap requested without a connected wallet")
            return ExecutionResult(
                success=False,
                phase=ExecutionPhase.ERROR,
                error="No wallet connected",
                error_kind=ExecutionErrorKind.NO_WALLET,
            )
        return await self.executor.execute_swap(status_handler=status_handler)

    def cancel_polling(self) -> None:
        if self.executor is not None:
            self.executor.cancel()

    # ======================
    # Auto-quote
    # ======================

    def _on_change(self, kind: ChangeKind) -> None:
        if kind != ChangeKind.CONFIG:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop, auto-quote skipped")
            return
        task = loop.create_task(self.retrieve_expected_out())
        self._auto_tasks.add(task)
        task.add_done_callback(self._auto_tasks.discard)

    async def wait_idle(self) -> None:
        """Wait for scheduled auto-quote fetches to settle."""
        while self._auto_tasks:
            await asyncio.wait(set(self._auto_tasks))

    async def close(self) -> None:
        """Stop listening, cancel fetches, scheduled quotes and polling."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self.session.cancel()
        self.cancel_polling()
        for task in list(self._auto_tasks):
            task.cancel()
        if self._auto_tasks:
            await asyncio.gather(*self._auto_tasks, return_exceptions=True)
        self._auto_tasks.clear()
