"""Factory for creating the quote provider.

Creates the real LI.FI provider unless dry-run mode is enabled.
"""

import logging
from typing import Optional

from swapflow.config import Settings, get_settings
from swapflow.routing.base import QuoteProvider

logger = logging.getLogger(__name__)


def create_quote_provider(settings: Optional[Settings] = None) -> QuoteProvider:
    """Create the aggregator provider configured by settings."""
    settings = settings or get_settings()

    if settings.dry_run:
        from swapflow.routing.dry_run import DryRunQuoteProvider

        logger.info("Dry-run mode: using simulated aggregator")
        return DryRunQuoteProvider()

    from swapflow.routing.lifi import LiFiProvider

    return LiFiProvider(
        base_url=settings.lifi_api_url,
        referrer=settings.referrer_address or None,
        integrator=settings.lifi_integrator or None,
        api_key=settings.lifi_api_key or None,
        timeout=settings.http_timeout_seconds,
    )
