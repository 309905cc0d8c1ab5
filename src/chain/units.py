from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, localcontext
from typing import Any, Optional


DEFAULT_ERC20_DECIMALS = 18
DEFAULT_PRIVATE_DECIMALS = 2
MAX_DECIMALS = 36


def parse_units(value: str, decimals: int) -> int:
    """Convert a human decimal string to an integer amount of the smallest unit.

    Extra fractional digits beyond `decimals` are rounded half-up.
    Raises ValueError for anything that is not a finite decimal number.
    """
    if decimals < 0:
        raise ValueError("decimals must be >= 0")
    text = (value or "").strip()
    if not text:
        raise ValueError("empty amount")
    try:
        d = Decimal(text)
    except InvalidOperation as exc:
        raise ValueError(f"not a number: {value!r}") from exc
    if not d.is_finite():
        raise ValueError(f"not a finite number: {value!r}")
    try:
        with localcontext() as ctx:
            ctx.prec = 120
            scaled = d.scaleb(decimals).quantize(Decimal(1), rounding=ROUND_HALF_UP)
    except ArithmeticError as exc:
        raise ValueError(f"amount out of range: {value!r}") from exc
    return int(scaled)


def format_units(value: int, decimals: int) -> str:
    """Render an atomic amount as a decimal string without trailing zeros."""
    if decimals <= 0:
        return str(value)
    sign = "-" if value < 0 else ""
    digits = str(abs(value)).rjust(decimals + 1, "0")
    whole, frac = digits[:-decimals], digits[-decimals:].rstrip("0")
    return f"{sign}{whole}.{frac}" if frac else f"{sign}{whole}"


def resolve_private_decimals(raw: Any) -> int:
    """Private balance decimals, or 2 when the reported value is absent or outside (0, 36]."""
    if isinstance(raw, bool):
        return DEFAULT_PRIVATE_DECIMALS
    if isinstance(raw, float) and not raw.is_integer():
        return DEFAULT_PRIVATE_DECIMALS
    try:
        n = int(raw)
    except (TypeError, ValueError, OverflowError):
        return DEFAULT_PRIVATE_DECIMALS
    return n if 0 < n <= MAX_DECIMALS else DEFAULT_PRIVATE_DECIMALS


def resolve_erc20_decimals(raw: Optional[Any]) -> int:
    if isinstance(raw, bool):
        return DEFAULT_ERC20_DECIMALS
    try:
        n = int(raw)  # type: ignore[arg-type]
    except (TypeError, ValueError, OverflowError):
        return DEFAULT_ERC20_DECIMALS
    return n if 0 <= n <= MAX_DECIMALS else DEFAULT_ERC20_DECIMALS


def short_address(addr: Optional[str]) -> str:
    return f"{addr[:6]}…{addr[-4:]}" if addr else ""


__all__ = [
    "parse_units",
    "format_units",
    "resolve_private_decimals",
    "resolve_erc20_decimals",
    "short_address",
    "DEFAULT_ERC20_DECIMALS",
    "DEFAULT_PRIVATE_DECIMALS",
]
