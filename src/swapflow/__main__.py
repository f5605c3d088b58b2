"""Command line entry point.

Usage:
    python -m swapflow quote --from-chain 1 --from-token 0xA0b8... --from-decimals 6 \
        --to-chain 1 --to-token 0xdAC1... --amount 100 --from-address 0x...
    python -m swapflow status --from-chain 1 --to-chain 10 --tx-hash 0x...
    python -m swapflow swap --from-chain 1 --from-token 0xEeee... --to-chain 10 \
        --to-token 0x0b2C... --to-decimals 6 --amount 0.1

Set DRY_RUN=true to use the simulated aggregator; ``swap`` needs
WALLET_PRIVATE_KEY.
"""

import argparse
import asyncio
import logging
import sys
from decimal import Decimal, InvalidOperation

from swapflow.chains import get_all_chains, get_chain, get_native_decimals, get_native_symbol
from swapflow.config import get_settings
from swapflow.routing.base import QuoteParams, StatusFetchError
from swapflow.routing.factory import create_quote_provider
from swapflow.swap.events import SwapEvent, SwapEventType
from swapflow.swap.flow import SwapFlow
from swapflow.swap.models import RoutePreference, Token
from swapflow.utils.addresses import ZERO_ADDRESS, is_native_address, to_address
from swapflow.utils.numbers import from_display, to_normalized

logger = logging.getLogger("swapflow")


def _slippage_arg(value: str) -> Decimal:
    """Slippage fraction in [0, 1), e.g. 0.005 for 0.5%."""
    try:
        slippage = Decimal(value)
    except InvalidOperation:
        raise argparse.ArgumentTypeError(f"invalid slippage: {value}")
    if not slippage.is_finite() or not 0 <= slippage < 1:
        raise argparse.ArgumentTypeError(f"slippage must be a fraction in [0, 1): {value}")
    return slippage


def _add_pair_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--from-chain", type=int, required=True, help="Source chain id")
    parser.add_argument("--from-token", required=True, help="Source token address")
    parser.add_argument("--from-symbol", default="", help="Source token symbol")
    parser.add_argument("--from-decimals", type=int, default=None, help="Source token decimals")
    parser.add_argument("--to-chain", type=int, required=True, help="Destination chain id")
    parser.add_argument("--to-token", required=True, help="Destination token address")
    parser.add_argument("--to-symbol", default="", help="Destination token symbol")
    parser.add_argument("--to-decimals", type=int, default=None, help="Destination token decimals")
    parser.add_argument("--amount", required=True, help="Input amount in token units (e.g. 1.5)")
    parser.add_argument("--slippage", type=_slippage_arg, default=None, help="Slippage tolerance as a fraction")
    parser.add_argument(
        "--order",
        default=None,
        choices=[p.value for p in RoutePreference],
        help="Route preference",
    )
    parser.add_argument("--receiver", default=None, help="Destination address (defaults to sender)")


def _token_from_args(address: str, chain_id: int, symbol: str, decimals) -> Token:
    """Build a Token, filling native coin metadata from the chain table."""
    native = is_native_address(address)
    if decimals is None:
        decimals = get_native_decimals(chain_id) if native else 18
    if not symbol and native:
        symbol = get_native_symbol(chain_id)
    return Token(address=to_address(address), chain_id=chain_id, symbol=symbol, decimals=decimals)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="swapflow", description="Swap and bridge via LI.FI")
    subparsers = parser.add_subparsers(dest="command", required=True)

    quote = subparsers.add_parser("quote", help="Fetch a quote")
    _add_pair_arguments(quote)
    quote.add_argument("--from-address", required=True, help="Address that would send the swap")

    status = subparsers.add_parser("status", help="Check a cross-chain transfer")
    status.add_argument("--from-chain", type=int, required=True)
    status.add_argument("--to-chain", type=int, required=True)
    status.add_argument("--tx-hash", required=True)

    swap = subparsers.add_parser("swap", help="Quote, approve and execute a swap")
    _add_pair_arguments(swap)
    swap.add_argument("--yes", action="store_true", help="Do not ask for confirmation")

    subparsers.add_parser("chains", help="List supported chains")

    return parser


async def run_chains(args) -> int:
    for chain in get_all_chains():
        print(f"{chain.chain_id:>6}  {chain.name:<20} {chain.native_symbol}")
    return 0


async def run_quote(args) -> int:
    settings = get_settings()
    provider = create_quote_provider(settings)
    from_address = to_address(args.from_address)
    from_token = _token_from_args(args.from_token, args.from_chain, args.from_symbol, args.from_decimals)
    to_token = _token_from_args(args.to_token, args.to_chain, args.to_symbol, args.to_decimals)
    amount = from_display(args.amount, from_token.decimals)

    params = QuoteParams(
        from_chain_id=args.from_chain,
        to_chain_id=args.to_chain,
        from_token=from_token.address,
        to_token=to_token.address,
        from_amount=amount.raw,
        from_address=from_address,
        to_address=to_address(args.receiver) if args.receiver else from_address,
        slippage=args.slippage if args.slippage is not None else Decimal(str(settings.default_slippage)),
        order=RoutePreference(args.order or settings.default_order.upper()),
    )
    result = await provider.fetch_quote(params)
    if not result.success:
        print(f"No quote: {result.error.message}")
        return 1

    quote = result.quote
    out = to_normalized(quote.to_amount, quote.to_token.decimals)
    out_min = to_normalized(quote.to_amount_min, quote.to_token.decimals)
    print(f"Route:     {quote.tool}")
    print(f"You pay:   {amount.display} {quote.from_token.symbol}")
    print(f"You get:   {out.display} {quote.to_token.symbol} (min {out_min.display})")
    if quote.to_amount_usd is not None:
        print(f"Value:     ${quote.to_amount_usd}")
    print(f"Duration:  ~{quote.execution_duration}s")
    print(f"Spender:   {quote.approval_address}")
    return 0


async def run_status(args) -> int:
    provider = create_quote_provider(get_settings())
    try:
        status = await provider.fetch_status(args.from_chain, args.to_chain, args.tx_hash)
    except StatusFetchError as e:
        print(f"Status unavailable: {e}")
        return 1
    print(f"Status:    {status.status.value}")
    if status.substatus:
        print(f"Substatus: {status.substatus}")
    if status.substatus_message:
        print(f"Message:   {status.substatus_message}")
    if status.receiving_tx_hash:
        print(f"Receiving: {status.receiving_tx_hash}")
    return 0


def _print_event(event: SwapEvent) -> None:
    if event.type == SwapEventType.STATUS_CHANGE:
        print(f"  -> {event.payload['phase'].value}")
    elif event.type == SwapEventType.PROGRESS:
        message = event.payload.get("message") or ""
        print(f"  .. bridge {event.payload['status'].value} {message}")


async def run_swap(args) -> int:
    settings = get_settings()
    if not settings.has_wallet:
        print("WALLET_PRIVATE_KEY is not configured")
        return 1

    flow = SwapFlow.from_settings(settings)
    flow.events.subscribe(_print_event)
    try:
        from_token = _token_from_args(args.from_token, args.from_chain, args.from_symbol, args.from_decimals)
        to_token = _token_from_args(args.to_token, args.to_chain, args.to_symbol, args.to_decimals)
        flow.set_input(from_token, from_display(args.amount, from_token.decimals))
        flow.set_output(to_token)
        flow.set_receiver(args.receiver or ZERO_ADDRESS)
        if args.slippage is not None:
            flow.set_slippage(args.slippage)
        if args.order:
            flow.set_order(args.order)

        await flow.retrieve_expected_out(force=True)
        if not flow.is_valid:
            print(f"No quote: {flow.current_error}")
            return 1
        print(f"Expected output: {flow.output.amount.display} {to_token.symbol}")

        if not args.yes and input("Proceed? [y/N] ").strip().lower() != "y":
            print("Aborted")
            return 1

        if not await flow.has_allowance():
            print("Approving input token...")
            if not await flow.approve():
                print("Approval failed")
                return 1

        result = await flow.execute_swap()
        if not result.success:
            print(f"Swap failed ({result.error_kind.value}): {result.error}")
            return 1
        print(f"Swap completed: {result.tx_hash}")
        chain = get_chain(args.from_chain)
        if chain:
            print(f"Explorer: {chain.explorer_url}/tx/{result.tx_hash}")
        if result.receiving_tx_hash:
            print(f"Received in: {result.receiving_tx_hash}")
        return 0
    finally:
        await flow.close()


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    settings = get_settings()
    log_level = logging.DEBUG if settings.debug else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    logger.debug(f"Settings: {settings.get_safe_dict()}")

    commands = {
        "quote": run_quote,
        "status": run_status,
        "swap": run_swap,
        "chains": run_chains,
    }
    return asyncio.run(commands[args.command](args))


if __name__ == "__main__":
    sys.exit(main())
