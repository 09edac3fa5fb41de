"""
Deterministic identifiers for fills and trades.

Ids are pure functions of semantic fields so that re-importing the same
history yields the same ids (safe for de-duplication and change keys).
"""

from __future__ import annotations

import hashlib
from datetime import datetime

OPEN_SENTINEL = "OPEN"


def _digest(raw: str, length: int = 16) -> str:
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()[:length]


def _num(value: float | None) -> str:
    return "-" if value is None else f"{value:.6f}"


def fill_fingerprint(
    symbol: str,
    side: str,
    quantity: float,
    price: float,
    filled_time: datetime,
) -> str:
    """Fingerprint a fill as symbol|side|qty|price|timestamp."""
    normalized = "|".join(
        [
            symbol.strip().upper(),
            str(side).strip().upper(),
            _num(quantity),
            _num(price),
            filled_time.isoformat(),
        ]
    )
    return _digest(normalized)


def fill_id(fingerprint: str) -> str:
    return f"fill_{fingerprint}"


def trade_id(
    symbol: str,
    entry_time: datetime,
    exit_time: datetime | None,
    quantity: float,
    entry_price: float,
    exit_price: float | None,
    legs: int,
) -> str:
    """Stable trade id from symbol, timestamps, size, prices and leg count."""
    raw = "|".join(
        [
            symbol,
            entry_time.isoformat(),
            exit_time.isoformat() if exit_time is not None else OPEN_SENTINEL,
            _num(quantity),
            _num(entry_price),
            _num(exit_price),
            str(legs),
        ]
    )
    return f"trade_{_digest(raw)}"
