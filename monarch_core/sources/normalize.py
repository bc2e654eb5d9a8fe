"""Null-tolerant field coercion shared by the backend parsers."""
from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any

from ..models import TimeseriesPoint


def amount(value: Any, default: str = "0") -> str:
    """Integer amount as a decimal string; None and garbage become ``default``."""
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, int):
        return str(value)
    try:
        return str(int(Decimal(str(value))))
    except (InvalidOperation, ValueError, OverflowError):
        return default


def safe_float(value: Any) -> float:
    if value is None:
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def safe_int(value: Any) -> int:
    if value is None:
        return 0
    try:
        return int(value)
    except (TypeError, ValueError):
        try:
            return int(float(value))
        except (TypeError, ValueError, OverflowError):
            return 0


def to_units(raw_amount: str, decimals: int) -> float:
    """Raw integer amount to a float in whole token units."""
    try:
        return float(Decimal(raw_amount) / (Decimal(10) ** decimals))
    except (InvalidOperation, ValueError):
        return 0.0


def sorted_points(raw: Any) -> tuple[TimeseriesPoint, ...]:
    """Convert ``[{x, y}]`` into points sorted by timestamp ascending."""
    points = [
        TimeseriesPoint(x=safe_int(p.get("x")), y=safe_float(p.get("y")))
        for p in (raw or [])
        if isinstance(p, dict)
    ]
    return tuple(sorted(points, key=lambda p: p.x))


def by_timestamp_desc(items: list[Any]) -> list[Any]:
    return sorted(items, key=lambda item: item.timestamp, reverse=True)
