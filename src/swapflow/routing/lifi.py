"""LI.FI swap/bridge aggregator integration.

Uses the LI.FI REST API for same-chain swaps and cross-chain bridges.
API docs: https://docs.li.fi/li.fi-api/li.fi-api
"""

import logging
from typing import Optional

import httpx

from swapflow.routing.base import (
    NO_ROUTE_MESSAGE,
    CrossChainStatus,
    Quote,
    QuoteError,
    QuoteErrorKind,
    QuoteParams,
    QuoteProvider,
    QuoteResult,
    StatusFetchError,
)

logger = logging.getLogger(__name__)

LIFI_API_V1 = "https://li.quest/v1"


class LiFiProvider(QuoteProvider):
    """LI.FI aggregator provider.

    Each call opens a short-lived ``httpx.AsyncClient``; cancelling the task
    awaiting ``fetch_quote`` aborts the underlying request.
    """

    def __init__(
        self,
        base_url: str = LIFI_API_V1,
        referrer: Optional[str] = None,
        integrator: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize LI.FI provider.

        Args:
            base_url: API base URL
            referrer: Address sent as the ``referrer`` parameter
            integrator: Integrator string (optional)
            api_key: LI.FI API key for higher rate limits (optional)
            timeout: HTTP timeout in seconds
            transport: Custom httpx transport (used in tests)
        """
        self.base_url = base_url.rstrip("/")
        self.referrer = referrer
        self.integrator = integrator
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport

    @property
    def name(self) -> str:
        return "LI.FI"

    def _get_headers(self) -> dict:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["x-lifi-api-key"] = self.api_key
        return headers

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            headers=self._get_headers(),
            transport=self._transport,
        )

    def build_quote_params(self, params: QuoteParams) -> dict:
        """Translate QuoteParams into LI.FI query parameters."""
        query = {
            "fromChain": params.from_chain_id,
            "toChain": params.to_chain_id,
            "fromToken": params.from_token,
            "toToken": params.to_token,
            "fromAmount": str(params.from_amount),
            "fromAddress": params.from_address,
            "toAddress": params.to_address,
            "slippage": str(params.slippage),
            "order": params.order.value,
        }
        if self.referrer:
            query["referrer"] = self.referrer
        if self.integrator:
            query["integrator"] = self.integrator
        return query

    async def fetch_quote(self, params: QuoteParams, request_id: str = "") -> QuoteResult:
        """Get a quote from LI.FI.

        Args:
            params: Normalized request parameters
            request_id: Identifier echoed back in the result

        Returns:
            QuoteResult with the parsed Quote, or a QuoteError whose message
            comes from the remote error body when present
        """
        logger.debug(
            f"Requesting LI.FI quote: {params.from_amount} {params.from_token} "
            f"(chain {params.from_chain_id}) -> {params.to_token} (chain {params.to_chain_id})"
        )
        try:
            async with self._client() as client:
                response = await client.get("/quote", params=self.build_quote_params(params))
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as e:
            message = _extract_error_message(e.response) or NO_ROUTE_MESSAGE
            logger.warning(f"LI.FI quote error: {e.response.status_code} - {message}")
            return QuoteResult(request_id=request_id, error=QuoteError(message))
        except httpx.HTTPError as e:
            logger.warning(f"LI.FI quote request failed: {type(e).__name__}: {e}")
            return QuoteResult(request_id=request_id, error=QuoteError(NO_ROUTE_MESSAGE))
        except ValueError as e:
            logger.warning(f"LI.FI returned invalid JSON: {e}")
            return QuoteResult(
                request_id=request_id,
                error=QuoteError(NO_ROUTE_MESSAGE, kind=QuoteErrorKind.INVALID_RESPONSE),
            )

        try:
            quote = Quote.from_api(data, request_id=request_id)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Could not parse LI.FI quote: {e}")
            return QuoteResult(
                request_id=request_id,
                error=QuoteError(NO_ROUTE_MESSAGE, kind=QuoteErrorKind.INVALID_RESPONSE),
            )

        logger.info(
            f"LI.FI quote {quote.id} via {quote.tool}: {quote.from_amount} -> {quote.to_amount} "
            f"(min {quote.to_amount_min}, ~{quote.execution_duration}s)"
        )
        return QuoteResult(request_id=request_id, quote=quote)

    async def fetch_status(
        self,
        from_chain_id: int,
        to_chain_id: int,
        tx_hash: str,
    ) -> CrossChainStatus:
        """Get the status of a cross-chain transfer from LI.FI."""
        try:
            async with self._client() as client:
                response = await client.get(
                    "/status",
                    params={
                        "fromChain": from_chain_id,
                        "toChain": to_chain_id,
                        "txHash": tx_hash,
                    },
                )
                # LI.FI answers 404 with a NOT_FOUND body until it indexes the tx
                if response.status_code == 404:
                    return CrossChainStatus.from_api(_safe_json(response) or {"status": "NOT_FOUND"})
                response.raise_for_status()
                return CrossChainStatus.from_api(response.json())
        except httpx.HTTPStatusError as e:
            message = _extract_error_message(e.response) or str(e)
            raise StatusFetchError(f"LI.FI status error: {e.response.status_code} - {message}") from e
        except httpx.HTTPError as e:
            raise StatusFetchError(f"LI.FI status request failed: {e}") from e
        except ValueError as e:
            raise StatusFetchError(f"LI.FI returned invalid status JSON: {e}") from e


def _safe_json(response: httpx.Response) -> Optional[dict]:
    try:
        data = response.json()
    except ValueError:
        return None
    return data if isinstance(data, dict) else None


def _extract_error_message(response: httpx.Response) -> Optional[str]:
    """Pull the ``message`` field out of an error body, if any."""
    data = _safe_json(response)
    if data and data.get("message"):
        return str(data["message"])
    return None
