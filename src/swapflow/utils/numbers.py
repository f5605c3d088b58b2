"""Raw/normalized token amount helpers.

On-chain amounts are integers in the token's smallest unit. The UI works
with the normalized (decimal-adjusted) value and its display string, so the
three are carried together and always derived from the raw integer.
"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, localcontext
from typing import Union

# Enough digits for any uint256 amount at any token precision
AMOUNT_PRECISION = 100


@dataclass(frozen=True)
class NormalizedAmount:
    """A token amount in raw units plus its decimal-adjusted forms."""

    raw: int
    normalized: Decimal
    display: str

    def __post_init__(self):
        if self.raw < 0:
            raise ValueError(f"Amount cannot be negative: {self.raw}")

    @property
    def is_zero(self) -> bool:
        return self.raw == 0


def _format_display(value: Decimal) -> str:
    if value == 0:
        return "0"
    with localcontext() as ctx:
        ctx.prec = AMOUNT_PRECISION
        return format(value.normalize(), "f")


def to_normalized(raw: Union[int, str, None], decimals: int) -> NormalizedAmount:
    """Build a NormalizedAmount from a raw integer amount.

    Args:
        raw: Amount in smallest units (int or decimal string)
        decimals: Token decimals

    Returns:
        NormalizedAmount (zero for empty or unparsable input)
    """
    raw_int = to_int(raw)
    with localcontext() as ctx:
        ctx.prec = AMOUNT_PRECISION
        normalized = Decimal(raw_int).scaleb(-decimals)
    return NormalizedAmount(raw=raw_int, normalized=normalized, display=_format_display(normalized))


def from_display(value: Union[str, Decimal, None], decimals: int) -> NormalizedAmount:
    """Build a NormalizedAmount from a human-readable amount (e.g. "100.5").

    Digits beyond the token's precision are truncated.
    """
    if value is None or value == "":
        return ZERO_AMOUNT
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation:
        return ZERO_AMOUNT
    if amount <= 0:
        return ZERO_AMOUNT
    with localcontext() as ctx:
        ctx.prec = AMOUNT_PRECISION
        raw = int(amount.scaleb(decimals))
    return to_normalized(raw, decimals)


def to_int(value: Union[int, str, None]) -> int:
    """Parse an integer amount coming from JSON (decimal or hex string)."""
    if value is None or value == "":
        return 0
    if isinstance(value, int):
        return value
    text = str(value).strip()
    try:
        if text.lower().startswith("0x"):
            return int(text, 16)
        return int(text)
    except ValueError:
        return 0


def to_decimal(value) -> Decimal:
    """Parse an advisory decimal value (USD amounts); invalid input gives 0."""
    if value is None or value == "":
        return Decimal("0")
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return Decimal("0")


ZERO_AMOUNT = NormalizedAmount(raw=0, normalized=Decimal("0"), display="0")
