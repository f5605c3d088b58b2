"""Concurrency control for wallet-submitted transactions.

Provides per-wallet locking so approval and swap submissions for one owner
address never interleave (nonce ordering, allowance re-checks).
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

logger = logging.getLogger(__name__)

# Global lock registry: lowercase wallet address -> asyncio.Lock
_wallet_locks: dict[str, asyncio.Lock] = {}


class LockTimeoutError(Exception):
    """Raised when a lock cannot be acquired within the timeout period."""

    pass


def get_wallet_lock(address: str) -> asyncio.Lock:
    """Get or create the lock for a wallet address.

    Args:
        address: Owner address (any checksum casing)

    Returns:
        asyncio.Lock for the wallet
    """
    key = (address or "").lower()
    if key not in _wallet_locks:
        _wallet_locks[key] = asyncio.Lock()
    return _wallet_locks[key]


@asynccontextmanager
async def wallet_lock(
    address: str,
    timeout: Optional[float] = 30.0,
    operation: str = "wallet_operation",
):
    """Exclusive access to a wallet for one submission.

    Args:
        address: Owner address
        timeout: Maximum time to wait for lock (None = wait forever)
        operation: Description for logging

    Example:
        async with wallet_lock(owner, operation="approve"):
            await wallet.send_approval(...)
    """
    lock = get_wallet_lock(address)

    try:
        if timeout:
            await asyncio.wait_for(lock.acquire(), timeout=timeout)
        else:
            await lock.acquire()
    except asyncio.TimeoutError:
        logger.warning(f"Lock timeout for wallet {address} after {timeout}s: {operation}")
        raise LockTimeoutError(
            f"Could not acquire lock for wallet {address} within {timeout}s"
        )

    logger.debug(f"Lock acquired for wallet {address}: {operation}")
    try:
        yield
    finally:
        lock.release()
        logger.debug(f"Lock released for wallet {address}: {operation}")


def clear_wallet_locks() -> None:
    """Clear all wallet locks (useful for testing)."""
    _wallet_locks.clear()
