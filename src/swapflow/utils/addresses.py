"""Address helpers shared by the swap engine."""

from typing import Optional

from eth_utils import is_address, to_checksum_address

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

# Placeholder used by aggregators for the chain's native coin
NATIVE_TOKEN_ADDRESS = "0xEeeeeEeeeEeEeeEeEeEeeEEEeeeeEeeeeeeeEEeE"


def to_address(value: Optional[str]) -> str:
    """Return the checksummed form of ``value``, or the zero address if invalid."""
    if not value or not isinstance(value, str):
        return ZERO_ADDRESS
    # Lowercase first so a wrong checksum does not reject a valid address
    value = value.strip().lower()
    if not is_address(value):
        return ZERO_ADDRESS
    return to_checksum_address(value)


def is_zero_address(value: Optional[str]) -> bool:
    return to_address(value) == ZERO_ADDRESS


def is_native_address(value: Optional[str]) -> bool:
    """Check if ``value`` designates the native coin (placeholder or zero address)."""
    address = to_address(value)
    return address.lower() in (NATIVE_TOKEN_ADDRESS.lower(), ZERO_ADDRESS)


def same_address(a: Optional[str], b: Optional[str]) -> bool:
    """Case-insensitive address equality."""
    return to_address(a) == to_address(b)


def same_token_address(a: Optional[str], b: Optional[str]) -> bool:
    """Token equality where both native coin forms (placeholder, zero) match."""
    if is_native_address(a) and is_native_address(b):
        return True
    return same_address(a, b)
