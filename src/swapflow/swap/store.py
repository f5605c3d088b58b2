"""Swap State Store.

Holds the user-editable swap configuration and the derived, read-only
state (quote, error, busy flag) shown by the UI. Each command below is one
transition that replaces the immutable SwapRequest with a new one.

Writers:
- UI code calls the ``set_*`` / ``reset*`` commands.
- The quote session manager calls ``begin_quote_fetch`` / ``publish_*``.
- The execution engine calls ``set_error`` and ``reset``.
"""

import logging
from dataclasses import replace
from decimal import Decimal
from enum import Enum
from typing import Callable, Optional, Union

from swapflow.routing.base import Quote
from swapflow.swap.models import RoutePreference, SwapRequest, Token, TokenAmountInput
from swapflow.utils.addresses import ZERO_ADDRESS, same_token_address, to_address
from swapflow.utils.numbers import ZERO_AMOUNT, NormalizedAmount, to_normalized

logger = logging.getLogger(__name__)


class ChangeKind(str, Enum):
    """What part of the store changed."""

    CONFIG = "config"  # user-editable request
    DERIVED = "derived"  # quote, error, busy flag, derived amounts


StoreListener = Callable[[ChangeKind], None]


class SwapStateStore:
    """In-memory swap state for one session."""

    def __init__(
        self,
        default_slippage: Union[Decimal, float] = Decimal("0.01"),
        default_order: RoutePreference = RoutePreference.RECOMMENDED,
    ):
        self._default_slippage = _to_slippage(default_slippage)
        self._default_order = RoutePreference(default_order)
        self._request = self._default_request()
        self._quote: Optional[Quote] = None
        self._is_fetching_quote = False
        self._current_error: Optional[str] = None
        self._listeners: list[StoreListener] = []

    def _default_request(self) -> SwapRequest:
        return SwapRequest(
            receiver=ZERO_ADDRESS,
            input=TokenAmountInput(),
            output=TokenAmountInput(),
            slippage_tolerance=self._default_slippage,
            order=self._default_order,
        )

    # ======================
    # Read-only state
    # ======================

    @property
    def request(self) -> SwapRequest:
        return self._request

    @property
    def receiver(self) -> str:
        return self._request.receiver

    @property
    def input(self) -> TokenAmountInput:
        return self._request.input

    @property
    def output(self) -> TokenAmountInput:
        return self._request.output

    @property
    def slippage_tolerance(self) -> Decimal:
        return self._request.slippage_tolerance

    @property
    def order(self) -> RoutePreference:
        return self._request.order

    @property
    def quote(self) -> Optional[Quote]:
        return self._quote

    @property
    def is_fetching_quote(self) -> bool:
        return self._is_fetching_quote

    @property
    def current_error(self) -> Optional[str]:
        return self._current_error

    @property
    def estimated_time(self) -> Optional[int]:
        """Aggregator's execution estimate in seconds, if a quote is loaded."""
        if self._quote is None or not self._quote.execution_duration:
            return None
        return self._quote.execution_duration

    @property
    def is_valid(self) -> bool:
        """A quote is loaded and no error is shown."""
        return self._quote is not None and self._current_error is None

    def quote_matches_request(self, quote: Optional[Quote] = None) -> bool:
        """Check that a quote still describes the current request.

        A quote is stale once the input/output token or the input amount
        changed after it was fetched.
        """
        quote = quote or self._quote
        request = self._request
        if quote is None or request.input.token is None or request.output.token is None:
            return False
        return (
            quote.from_chain_id == request.input.token.chain_id
            and same_token_address(quote.from_token.address, request.input.token.address)
            and quote.to_chain_id == request.output.token.chain_id
            and same_token_address(quote.to_token.address, request.output.token.address)
            and quote.from_amount == request.input.amount.raw
        )

    # ======================
    # Change notifications
    # ======================

    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        """Register a change listener; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, kind: ChangeKind) -> None:
        for listener in list(self._listeners):
            try:
                listener(kind)
            except Exception as e:
                logger.warning(f"Store listener failed: {e}")

    def _set_request(self, request: SwapRequest) -> None:
        self._request = request
        self._notify(ChangeKind.CONFIG)

    # ======================
    # User commands
    # ======================

    def set_receiver(self, receiver: Optional[str]) -> None:
        """Set the address receiving the output (zero = the sender)."""
        self._set_request(replace(self._request, receiver=to_address(receiver)))

    def set_input(
        self,
        token: Optional[Token] = None,
        amount: Optional[NormalizedAmount] = None,
        value_usd: Optional[Decimal] = None,
    ) -> None:
        """Update the input side.

        Calling with no arguments resets the input. Selecting a different
        token without an amount pre-fills the token's balance.
        """
        if token is None and amount is None:
            self._set_request(replace(self._request, input=TokenAmountInput()))
            return

        previous = self._request.input
        if token is None or token.same_as(previous.token):
            updated = replace(
                previous,
                token=token or previous.token,
                amount=amount if amount is not None else previous.amount,
                value_usd=value_usd,
            )
        else:
            updated = TokenAmountInput(
                token=token,
                amount=amount if amount is not None else token.balance,
                value_usd=value_usd,
            )
        self._set_request(replace(self._request, input=updated))

    def set_output(
        self,
        token: Optional[Token] = None,
        amount: Optional[NormalizedAmount] = None,
        value_usd: Optional[Decimal] = None,
    ) -> None:
        """Update the output side. Calling with no arguments resets it."""
        if token is None and amount is None:
            self._set_request(replace(self._request, output=TokenAmountInput()))
            return

        previous = self._request.output
        updated = replace(
            previous,
            token=token or previous.token,
            amount=amount if amount is not None else previous.amount,
            value_usd=value_usd,
        )
        self._set_request(replace(self._request, output=updated))

    def set_slippage(self, slippage: Union[Decimal, float, str]) -> None:
        """Set slippage tolerance as a fraction (0.01 = 1%)."""
        self._set_request(replace(self._request, slippage_tolerance=_to_slippage(slippage)))

    def set_order(self, order: Union[RoutePreference, str]) -> None:
        self._set_request(replace(self._request, order=RoutePreference(order)))

    def inverse_tokens(self) -> None:
        """Swap input and output tokens.

        Each side is pre-filled with its token balance: the new input gets
        the old output token's balance, the new output the old input's. The
        next quote replaces the output amount.
        """
        previous_in = self._request.input
        previous_out = self._request.output
        new_input = replace(
            previous_out,
            amount=previous_out.token.balance if previous_out.token else ZERO_AMOUNT,
            value_usd=None,
            is_valid=None,
        )
        new_output = replace(
            previous_in,
            amount=previous_in.token.balance if previous_in.token else ZERO_AMOUNT,
            value_usd=None,
            is_valid=None,
        )
        self._set_request(replace(self._request, input=new_input, output=new_output))

    def reset_input(self) -> None:
        """Clear the input and the derived output amount."""
        output = replace(self._request.output, amount=ZERO_AMOUNT, value_usd=None)
        self._set_request(replace(self._request, input=TokenAmountInput(), output=output))

    def reset_output(self) -> None:
        self._set_request(replace(self._request, output=TokenAmountInput()))

    def reset(self) -> None:
        """Return everything to the idle defaults."""
        self._quote = None
        self._current_error = None
        self._is_fetching_quote = False
        self._set_request(self._default_request())
        self._notify(ChangeKind.DERIVED)

    # ======================
    # Derived state (engine-only)
    # ======================

    def begin_quote_fetch(self) -> None:
        """Clear derived values and flag a quote fetch in progress."""
        request = self._request
        self._request = replace(
            request,
            input=replace(request.input, value_usd=None),
            output=replace(request.output, amount=ZERO_AMOUNT, value_usd=None, is_valid=False),
        )
        self._quote = None
        self._current_error = None
        self._is_fetching_quote = True
        self._notify(ChangeKind.DERIVED)

    def publish_quote(self, quote: Quote) -> NormalizedAmount:
        """Publish an accepted quote and its derived output amount.

        Returns:
            The normalized output amount
        """
        request = self._request
        decimals = request.output.token.decimals if request.output.token else 18
        out = to_normalized(quote.to_amount, decimals or 18)
        self._request = replace(
            request,
            input=replace(request.input, value_usd=quote.from_amount_usd),
            output=replace(
                request.output,
                amount=out,
                value_usd=quote.to_amount_usd,
                is_valid=True,
            ),
        )
        self._quote = quote
        self._current_error = None
        self._is_fetching_quote = False
        self._notify(ChangeKind.DERIVED)
        return out

    def publish_quote_error(self, message: str) -> None:
        """Publish a quote failure; any stale quote is dropped."""
        self._quote = None
        self._current_error = message
        self._is_fetching_quote = False
        self._notify(ChangeKind.DERIVED)

    def clear_quote(self) -> None:
        """Drop the quote and derived output (request no longer fetchable)."""
        request = self._request
        self._request = replace(
            request,
            output=replace(request.output, amount=ZERO_AMOUNT, value_usd=None, is_valid=None),
        )
        self._quote = None
        self._current_error = None
        self._is_fetching_quote = False
        self._notify(ChangeKind.DERIVED)

    def end_quote_fetch(self) -> None:
        """Lower the busy flag without publishing anything."""
        self._is_fetching_quote = False
        self._notify(ChangeKind.DERIVED)

    def set_error(self, message: Optional[str]) -> None:
        self._current_error = message
        self._notify(ChangeKind.DERIVED)


def _to_slippage(value: Union[Decimal, float, str]) -> Decimal:
    slippage = Decimal(str(value))
    if slippage < 0 or slippage >= 1:
        raise ValueError(f"Slippage must be a fraction in [0, 1): {value}")
    return slippage
