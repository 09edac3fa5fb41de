"""
Load normalized fills and pending orders from JSON / JSON-lines files.

This is the validation edge: records are checked once against a JSON
Schema here, timestamps are normalized to UTC, and missing ids, row
ordinals and market days are filled in. throttle_core trusts what it gets.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import jsonschema

from throttle_core.contracts import Fill, OrderStatus, OrderType, PendingOrder, Side
from throttle_core.date_keys import market_day_key, normalize_date_key
from throttle_core.trade_ids import fill_fingerprint, fill_id

logger = logging.getLogger("throttle.data")

_NUMBER_OR_NULL = {"type": ["number", "null"]}

FILL_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["symbol", "side", "quantity", "price", "filled_time"],
    "properties": {
        "id": {"type": "string", "minLength": 1},
        "symbol": {"type": "string", "minLength": 1},
        "side": {"enum": ["BUY", "SELL"]},
        "quantity": {"type": "number", "exclusiveMinimum": 0},
        "price": {"type": "number", "exclusiveMinimum": 0},
        "filled_time": {"type": "string", "minLength": 1},
        "order_id": {"type": "string"},
        "commission": {"type": "number", "minimum": 0},
        "market_date": {"type": "string"},
        "row_index": {"type": "integer", "minimum": 0},
        "stop_price": _NUMBER_OR_NULL,
    },
}

PENDING_ORDER_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["symbol", "side", "quantity", "placed_time"],
    "properties": {
        "symbol": {"type": "string", "minLength": 1},
        "side": {"enum": ["BUY", "SELL"]},
        "quantity": {"type": "number", "minimum": 0},
        "placed_time": {"type": "string", "minLength": 1},
        "price": _NUMBER_OR_NULL,
        "stop_price": _NUMBER_OR_NULL,
        "limit_price": _NUMBER_OR_NULL,
        "type": {"enum": [t.value for t in OrderType]},
        "status": {"enum": [s.value for s in OrderStatus]},
    },
}


class FillLoadError(Exception):
    """Raised when a fills or pending-orders file cannot be loaded."""


def _utc_ts(value: str) -> datetime:
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    ts = datetime.fromisoformat(text)
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def _read_records(path: str | Path) -> list[dict[str, Any]]:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"File not found: {p}")
    text = p.read_text()
    try:
        if p.suffix == ".jsonl":
            records = [json.loads(line) for line in text.splitlines() if line.strip()]
        else:
            records = json.loads(text) if text.strip() else []
    except json.JSONDecodeError as exc:
        raise FillLoadError(f"{p.name} is not valid JSON: {exc}") from exc
    if not isinstance(records, list):
        raise FillLoadError(f"{p.name} must contain a JSON array, got {type(records).__name__}")
    return records


def _normalize(record: Any, schema: dict[str, Any], row: int, label: str) -> dict[str, Any]:
    if not isinstance(record, dict):
        raise FillLoadError(f"{label} row {row}: expected an object, got {type(record).__name__}")
    data = dict(record)
    for key in ("side", "type", "status"):
        if isinstance(data.get(key), str):
            data[key] = data[key].strip().upper()
    if isinstance(data.get("symbol"), str):
        data["symbol"] = data["symbol"].strip().upper()
    try:
        jsonschema.validate(instance=data, schema=schema)
    except jsonschema.ValidationError as exc:
        raise FillLoadError(f"{label} row {row}: {exc.message}") from exc
    return data


def parse_fill(record: Any, row: int) -> Fill:
    """Validate one raw record and build a Fill."""
    data = _normalize(record, FILL_SCHEMA, row, "Fill")
    try:
        filled_time = _utc_ts(data["filled_time"])
    except ValueError as exc:
        raise FillLoadError(f"Fill row {row}: invalid filled_time {data['filled_time']!r}") from exc

    market_date = market_day_key(filled_time)
    if data.get("market_date", "").strip():
        market_date = normalize_date_key(data["market_date"])
        if market_date is None:
            raise FillLoadError(f"Fill row {row}: invalid market_date {data['market_date']!r}")

    fid = data.get("id") or fill_id(
        fill_fingerprint(data["symbol"], data["side"], data["quantity"], data["price"], filled_time)
    )
    return Fill(
        id=fid,
        symbol=data["symbol"],
        side=Side(data["side"]),
        quantity=float(data["quantity"]),
        price=float(data["price"]),
        filled_time=filled_time,
        order_id=data.get("order_id", ""),
        commission=float(data.get("commission", 0.0)),
        market_date=market_date,
        row_index=data.get("row_index", row),
        stop_price=data.get("stop_price"),
    )


def parse_pending_order(record: Any, row: int) -> PendingOrder:
    data = _normalize(record, PENDING_ORDER_SCHEMA, row, "Pending order")
    try:
        placed_time = _utc_ts(data["placed_time"])
    except ValueError as exc:
        raise FillLoadError(f"Pending order row {row}: invalid placed_time {data['placed_time']!r}") from exc
    return PendingOrder(
        symbol=data["symbol"],
        side=Side(data["side"]),
        quantity=float(data["quantity"]),
        placed_time=placed_time,
        price=data.get("price"),
        stop_price=data.get("stop_price"),
        limit_price=data.get("limit_price"),
        type=OrderType(data.get("type", OrderType.UNKNOWN.value)),
        status=OrderStatus(data.get("status", OrderStatus.PENDING.value)),
    )


def load_fills(path: str | Path) -> list[Fill]:
    """Load fills in file order, dropping exact duplicates by id.

    Raises
    ------
    FileNotFoundError
        If *path* does not exist.
    FillLoadError
        If the file is not valid JSON or a record fails validation.
    """
    fills: list[Fill] = []
    seen: set[str] = set()
    for row, record in enumerate(_read_records(path)):
        fill = parse_fill(record, row)
        if fill.id in seen:
            logger.info("Duplicate fill %s at row %d skipped", fill.id, row)
            continue
        seen.add(fill.id)
        fills.append(fill)
    logger.debug("Loaded %d fills from %s", len(fills), path)
    return fills


def load_pending_orders(path: str | Path) -> list[PendingOrder]:
    return [parse_pending_order(record, row) for row, record in enumerate(_read_records(path))]
