"""Quote Session Manager.

Owns the single in-flight quote request of a swap session:

    Idle -> Fetching -> Ready | Errored

A new fetch cancels the previous one (task cancellation) and takes a new
request identifier. Cancellation of an HTTP call is best-effort, so the
identifier check is what guarantees that only the most recent request
mutates published state.
"""

import asyncio
import logging
from typing import Callable, Optional

from swapflow.routing.base import NO_ROUTE_MESSAGE, QuoteError, QuoteParams, QuoteProvider, QuoteResult
from swapflow.swap.fingerprint import FetchGuardState, FingerprintGuard, request_identifier
from swapflow.swap.store import SwapStateStore
from swapflow.utils.addresses import to_address

logger = logging.getLogger(__name__)


class QuoteSessionManager:
    """Fetches and publishes quotes for one SwapStateStore."""

    def __init__(
        self,
        store: SwapStateStore,
        provider: QuoteProvider,
        sender: Callable[[], Optional[str]],
        guard: Optional[FingerprintGuard] = None,
    ):
        """Initialize the session.

        Args:
            store: State store the quotes are published to
            provider: Aggregator client
            sender: Returns the connected wallet address (None if disconnected)
            guard: Fingerprint guard (a fresh one per session by default)
        """
        self.store = store
        self.provider = provider
        self._sender = sender
        self.guard = guard or FingerprintGuard()
        self._inflight: Optional[asyncio.Task] = None

    @property
    def state(self) -> FetchGuardState:
        return self.guard.state

    @property
    def current_identifier(self) -> Optional[str]:
        return self.state.current_identifier

    @property
    def is_fetching(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    def cancel(self) -> None:
        """Abort the in-flight fetch and invalidate its identifier."""
        self.state.current_identifier = None
        if self._inflight is not None and not self._inflight.done():
            logger.debug("Cancelling in-flight quote request")
            self._inflight.cancel()
        self._inflight = None
        if self.store.is_fetching_quote:
            self.store.end_quote_fetch()

    def _build_params(self, sender: str) -> QuoteParams:
        request = self.store.request
        return QuoteParams(
            from_chain_id=request.input.token.chain_id,
            to_chain_id=request.output.token.chain_id,
            from_token=to_address(request.input.token.address),
            to_token=to_address(request.output.token.address),
            from_amount=request.input.amount.raw,
            from_address=to_address(sender),
            to_address=to_address(request.resolve_receiver(sender)),
            slippage=request.slippage_tolerance,
            order=request.order,
        )

    async def retrieve_expected_out(self, force: bool = False) -> None:
        """Fetch a quote for the current request and publish it.

        Never raises for quote failures: errors are published to the store
        as advisory text.

        Args:
            force: Bypass the fingerprint TTL window (explicit refresh)
        """
        request = self.store.request
        if not request.is_fetchable:
            # Nothing to quote: stale results must not land, stale quote must go
            self.cancel()
            self.store.clear_quote()
            return

        sender = self._sender()
        if not self.guard.should_fetch(request, sender, force=force):
            return

        if self._inflight is not None and not self._inflight.done():
            self._inflight.cancel()

        self.state.attempt += 1
        identifier = request_identifier(request, sender, self.state.attempt)
        self.state.current_identifier = identifier

        self.store.begin_quote_fetch()
        params = self._build_params(sender)
        logger.info(
            f"Fetching quote {identifier[:10]}: {request.input.amount.display} "
            f"{request.input.token.symbol} -> {request.output.token.symbol}"
        )

        task = asyncio.ensure_future(self.provider.fetch_quote(params, request_id=identifier))
        self._inflight = task
        try:
            await asyncio.wait({task})
        except asyncio.CancelledError:
            task.cancel()
            raise

        if self._inflight is task:
            self._inflight = None
        self._handle_result(self._collect(task, identifier), identifier)

    @staticmethod
    def _collect(task: asyncio.Task, identifier: str) -> QuoteResult:
        if task.cancelled():
            return QuoteResult(request_id=identifier, error=QuoteError.canceled())
        exc = task.exception()
        if exc is not None:
            logger.error(f"Quote provider raised: {type(exc).__name__}: {exc}")
            message = exc.message if isinstance(exc, QuoteError) else NO_ROUTE_MESSAGE
            return QuoteResult(request_id=identifier, error=QuoteError(message))
        return task.result()

    def _handle_result(self, result: QuoteResult, identifier: str) -> None:
        # Only the most recent request may mutate published state
        origin = result.request_id or identifier
        if origin != self.current_identifier:
            logger.debug(f"Discarding stale quote result {origin[:10]}")
            return

        if result.error is not None:
            if result.error.is_canceled:
                self.store.end_quote_fetch()
                return
            logger.info(f"Quote {identifier[:10]} failed: {result.error.message}")
            self.store.publish_quote_error(result.error.message)
            return

        out = self.store.publish_quote(result.quote)
        logger.info(
            f"Quote {identifier[:10]} ready: {out.display} "
            f"{self.store.output.token.symbol if self.store.output.token else ''}"
        )
