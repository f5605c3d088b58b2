"""Utility modules for Swapflow."""

from swapflow.utils.locks import LockTimeoutError, get_wallet_lock, wallet_lock

__all__ = ["LockTimeoutError", "get_wallet_lock", "wallet_lock"]
