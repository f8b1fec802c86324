"""Validation helpers shared across packages."""

from __future__ import annotations

from datetime import date
from typing import Any


def require_positive(value: int, *, name: str) -> int:
    """Return *value* if it is a positive integer, otherwise raise an error."""

    if not isinstance(value, int) or isinstance(value, bool):
        raise TypeError(f"{name} must be an int")
    if value <= 0:
        raise ValueError(f"{name} must be positive")
    return value


def coerce_release_date(raw: Any) -> date | None:
    """Best-effort conversion of TMDb ``release_date`` values to :class:`date`.

    TMDb reports unknown release dates as an empty string rather than
    ``null``; both are treated as missing.
    """

    if raw is None or isinstance(raw, date):
        return raw
    if isinstance(raw, str):
        raw = raw.strip()
        if not raw:
            return None
        return date.fromisoformat(raw)
    raise TypeError(f"release_date must be an ISO date string, got {type(raw).__name__}")


__all__ = ["require_positive", "coerce_release_date"]
