"""
Checked Uint128 arithmetic.

Python integers never wrap, so every helper here bounds its result to
[0, UINT128_MAX] explicitly and raises ArithmeticOverflow outside that range.
"""

from __future__ import annotations

from vestledger.core.constants import UINT128_MAX
from vestledger.core.ledger_exceptions import ArithmeticOverflow


def require_uint128(value: int, field: str = "amount") -> int:
    """Validate that value is an int in the Uint128 range and return it."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ArithmeticOverflow(
            f"{field} must be an integer, got {type(value).__name__}",
            details={"field": field},
        )
    if value < 0 or value > UINT128_MAX:
        raise ArithmeticOverflow(
            f"{field} out of Uint128 range: {value}", details={"field": field}
        )
    return value


def checked_add(a: int, b: int) -> int:
    result = a + b
    if result > UINT128_MAX:
        raise ArithmeticOverflow(
            f"Overflow: cannot add {a} + {b}", details={"op": "add", "a": str(a), "b": str(b)}
        )
    return result


def checked_sub(a: int, b: int) -> int:
    result = a - b
    if result < 0:
        raise ArithmeticOverflow(
            f"Underflow: cannot subtract {a} - {b}",
            details={"op": "sub", "a": str(a), "b": str(b)},
        )
    return result


def checked_mul(a: int, b: int) -> int:
    result = a * b
    if result > UINT128_MAX:
        raise ArithmeticOverflow(
            f"Overflow: cannot multiply {a} * {b}",
            details={"op": "mul", "a": str(a), "b": str(b)},
        )
    return result


def saturating_sub(a: int, b: int) -> int:
    """Subtract, flooring at zero."""
    return a - b if a > b else 0
