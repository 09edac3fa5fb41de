"""
Fill source boundary: load normalized fills and pending orders, validated once.

Depends on throttle_core.contracts for Fill; no dependency from throttle_core back to data.
"""

from data.fill_loader import (
    FillLoadError,
    load_fills,
    load_pending_orders,
    parse_fill,
    parse_pending_order,
)

__all__ = [
    "FillLoadError",
    "load_fills",
    "load_pending_orders",
    "parse_fill",
    "parse_pending_order",
]
