"""Quote request de-duplication.

Two keys protect the aggregator and the published state:

- the *fingerprint* is a coarse equality key over the swap parameters. An
  equivalent request made within the TTL window is not sent again.
- the *request identifier* is unique per fetch attempt. Only the response
  carrying the current identifier may update published state.
"""

import hashlib
import logging
import time
from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, Optional

from swapflow.swap.models import RoutePreference, SwapRequest
from swapflow.utils.addresses import to_address

logger = logging.getLogger(__name__)

DEFAULT_FETCH_TTL_SECONDS = 60.0


@dataclass(frozen=True)
class RequestFingerprint:
    """Parameters of the last fetched request plus when it was fetched."""

    input_token: str
    output_token: str
    input_amount_display: str
    receiver: str
    slippage_tolerance: Decimal
    order: RoutePreference
    timestamp: float

    @classmethod
    def from_request(cls, request: SwapRequest, sender: str, timestamp: float) -> "RequestFingerprint":
        return cls(
            input_token=to_address(request.input.token.address) if request.input.token else "",
            output_token=to_address(request.output.token.address) if request.output.token else "",
            input_amount_display=request.input.amount.display,
            receiver=to_address(request.resolve_receiver(sender)),
            slippage_tolerance=Decimal(str(request.slippage_tolerance)),
            order=request.order,
            timestamp=timestamp,
        )

    def is_equivalent(self, other: Optional["RequestFingerprint"]) -> bool:
        """Same parameters, ignoring the timestamp."""
        if other is None:
            return False
        return (
            self.input_token == other.input_token
            and self.output_token == other.output_token
            and self.input_amount_display == other.input_amount_display
            and self.receiver == other.receiver
            and self.slippage_tolerance == other.slippage_tolerance
            and self.order == other.order
        )


@dataclass
class FetchGuardState:
    """Per-session fetch bookkeeping shared by the guard and the session manager."""

    last_fetch: Optional[RequestFingerprint] = None
    current_identifier: Optional[str] = None
    attempt: int = 0


def request_identifier(request: SwapRequest, sender: str, attempt: int) -> str:
    """Identifier of one fetch attempt.

    Hashes the canonical request tuple together with the attempt number, so
    two fetches of the same parameters still get distinct identifiers.
    """
    input_token = request.input.token
    output_token = request.output.token
    parts = (
        str(input_token.chain_id if input_token else ""),
        to_address(input_token.address) if input_token else "",
        str(output_token.chain_id if output_token else ""),
        to_address(output_token.address) if output_token else "",
        str(request.input.amount.raw),
        to_address(request.resolve_receiver(sender)),
        str(request.slippage_tolerance),
        request.order.value,
        str(attempt),
    )
    return hashlib.sha256("|".join(parts).encode()).hexdigest()


class FingerprintGuard:
    """Decides whether a quote fetch is warranted.

    Example:
        guard = FingerprintGuard()
        if guard.should_fetch(request, sender):
            ...  # fetch
    """

    def __init__(
        self,
        state: Optional[FetchGuardState] = None,
        ttl_seconds: float = DEFAULT_FETCH_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.state = state or FetchGuardState()
        self.ttl_seconds = ttl_seconds
        self._clock = clock

    def should_fetch(self, request: SwapRequest, sender: Optional[str], force: bool = False) -> bool:
        """Check the request against the last fetch and record it when accepted.

        Args:
            request: Current swap configuration
            sender: Connected wallet address
            force: Bypass the TTL window (explicit user refresh)

        Returns:
            True if the caller should fetch a new quote
        """
        if not request.input.token or not request.output.token or not sender:
            return False
        if request.input.amount.raw == 0:
            return False

        now = self._clock()
        current = RequestFingerprint.from_request(request, sender, now)
        last = self.state.last_fetch

        if (
            not force
            and current.is_equivalent(last)
            and now - last.timestamp < self.ttl_seconds
        ):
            logger.debug(
                f"Skipping quote fetch: identical request {now - last.timestamp:.1f}s ago"
            )
            return False

        self.state.last_fetch = current
        return True

    def forget(self) -> None:
        """Drop the last fetch so the next request is always sent."""
        self.state.last_fetch = None
