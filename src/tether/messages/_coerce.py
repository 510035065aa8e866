"""Lenient field coercion shared by the content-block and message decoders."""

from __future__ import annotations

import math
from typing import Any


def as_str(value: Any, default: str = "") -> str:
    return value if isinstance(value, str) else default


def as_opt_str(value: Any) -> str | None:
    return value if isinstance(value, str) else None


def as_bool(value: Any) -> bool:
    return value if isinstance(value, bool) else False


def as_finite(value: Any) -> float | None:
    """*value* as a finite float, or ``None``.

    Booleans, non-numbers, NaN, infinities, and integers too large for a
    float all give ``None``.
    """
    if isinstance(value, bool) or not isinstance(value, int | float):
        return None
    try:
        number = float(value)
    except OverflowError:
        return None
    return number if math.isfinite(number) else None


def as_int(value: Any, default: int = 0) -> int:
    if as_finite(value) is None:
        return default
    return int(value)


def as_opt_float(value: Any) -> float | None:
    return as_finite(value)


def as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def as_opt_dict(value: Any) -> dict[str, Any] | None:
    return value if isinstance(value, dict) else None
