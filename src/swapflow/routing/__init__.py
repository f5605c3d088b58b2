"""Routing module: aggregator quote and status clients.

Providers:
- LI.FI: same-chain swaps and cross-chain bridges
- Dry run: simulated quotes for offline use
"""

from swapflow.routing.base import (
    BridgeStatus,
    CrossChainStatus,
    Quote,
    QuoteError,
    QuoteErrorKind,
    QuoteParams,
    QuoteProvider,
    QuoteResult,
    QuoteToken,
    StatusFetchError,
    TransactionPayload,
)
from swapflow.routing.dry_run import DryRunQuoteProvider
from swapflow.routing.factory import create_quote_provider
from swapflow.routing.lifi import LiFiProvider

__all__ = [
    # Data model
    "BridgeStatus",
    "CrossChainStatus",
    "Quote",
    "QuoteError",
    "QuoteErrorKind",
    "QuoteParams",
    "QuoteResult",
    "QuoteToken",
    "StatusFetchError",
    "TransactionPayload",
    # Providers
    "QuoteProvider",
    "LiFiProvider",
    "DryRunQuoteProvider",
    # Factories
    "create_quote_provider",
]
