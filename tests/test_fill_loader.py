"""Tests for the fill loader: JSON / JSONL parsing, validation, normalization."""

import json
from datetime import datetime, timezone
from pathlib import Path

import pytest

from data import FillLoadError, load_fills, load_pending_orders, parse_fill, parse_pending_order
from throttle_core.contracts import OrderStatus, OrderType, Side


def _record(**overrides) -> dict:
    rec = {
        "id": "f1",
        "symbol": "AAPL",
        "side": "BUY",
        "quantity": 10,
        "price": 10.0,
        "filled_time": "2024-03-05T02:00:00Z",
    }
    rec.update(overrides)
    return rec


def _write(path: Path, records: list) -> Path:
    path.write_text(json.dumps(records))
    return path


class TestParseFill:
    def test_normalizes_fields(self) -> None:
        fill = parse_fill(_record(symbol=" aapl ", side="buy", commission=1.5), row=3)
        assert fill.symbol == "AAPL"
        assert fill.side == Side.BUY
        assert fill.filled_time == datetime(2024, 3, 5, 2, 0, tzinfo=timezone.utc)
        assert fill.market_date == "2024-03-04"
        assert fill.row_index == 3
        assert fill.commission == 1.5

    def test_offset_timestamp_converted_to_utc(self) -> None:
        fill = parse_fill(_record(filled_time="2024-03-04T10:00:00-05:00"), row=0)
        assert fill.filled_time == datetime(2024, 3, 4, 15, 0, tzinfo=timezone.utc)

    def test_naive_timestamp_is_utc(self) -> None:
        fill = parse_fill(_record(filled_time="2024-03-04T15:00:00"), row=0)
        assert fill.filled_time.tzinfo is not None

    def test_missing_id_gets_fingerprint(self) -> None:
        rec = _record()
        del rec["id"]
        a = parse_fill(rec, row=0)
        b = parse_fill(dict(rec), row=7)
        assert a.id.startswith("fill_")
        assert a.id == b.id

    def test_stop_price_kept(self) -> None:
        assert parse_fill(_record(stop_price=9.5), row=0).stop_price == 9.5

    @pytest.mark.parametrize(
        "overrides",
        [
            {"side": "HOLD"},
            {"quantity": 0},
            {"price": -1},
            {"symbol": ""},
            {"commission": -0.5},
        ],
    )
    def test_invalid_records_rejected(self, overrides: dict) -> None:
        with pytest.raises(FillLoadError, match="row 2"):
            parse_fill(_record(**overrides), row=2)

    def test_missing_required_field(self) -> None:
        rec = _record()
        del rec["price"]
        with pytest.raises(FillLoadError):
            parse_fill(rec, row=0)

    def test_bad_timestamp(self) -> None:
        with pytest.raises(FillLoadError, match="filled_time"):
            parse_fill(_record(filled_time="not a time"), row=0)

    @pytest.mark.parametrize("raw, expected", [("2024-03-01", "2024-03-01"), ("3/1/2024", "2024-03-01"), ("  ", "2024-03-04")])
    def test_market_date_normalized(self, raw: str, expected: str) -> None:
        assert parse_fill(_record(market_date=raw), row=0).market_date == expected

    @pytest.mark.parametrize("raw", ["2024-02-30", "1/1/1980", "yesterday"])
    def test_bad_market_date(self, raw: str) -> None:
        with pytest.raises(FillLoadError, match="market_date"):
            parse_fill(_record(market_date=raw), row=0)

    def test_non_object_record(self) -> None:
        with pytest.raises(FillLoadError, match="expected an object"):
            parse_fill(["AAPL"], row=0)


class TestParsePendingOrder:
    def test_defaults(self) -> None:
        order = parse_pending_order(
            {"symbol": "aapl", "side": "sell", "quantity": 10, "placed_time": "2024-03-04T15:00:01Z", "stop_price": 9.5},
            row=0,
        )
        assert order.symbol == "AAPL"
        assert order.side == Side.SELL
        assert order.type == OrderType.UNKNOWN
        assert order.status == OrderStatus.PENDING
        assert order.resting_price() == 9.5

    def test_status_normalized(self) -> None:
        order = parse_pending_order(
            {"symbol": "AAPL", "side": "SELL", "quantity": 1, "placed_time": "2024-03-04T15:00:01Z", "status": "cancelled"},
            row=0,
        )
        assert order.status == OrderStatus.CANCELLED


class TestLoadFiles:
    def test_load_json_array(self, tmp_path: Path) -> None:
        path = _write(tmp_path / "fills.json", [_record(id="a"), _record(id="b", side="SELL")])
        fills = load_fills(path)
        assert [f.id for f in fills] == ["a", "b"]
        assert [f.row_index for f in fills] == [0, 1]

    def test_load_jsonl(self, tmp_path: Path) -> None:
        path = tmp_path / "fills.jsonl"
        path.write_text("\n".join(json.dumps(_record(id=i)) for i in ("a", "b")) + "\n\n")
        assert len(load_fills(path)) == 2

    def test_duplicates_dropped(self, tmp_path: Path) -> None:
        path = _write(tmp_path / "fills.json", [_record(id="a"), _record(id="a")])
        assert len(load_fills(path)) == 1

    def test_empty_file(self, tmp_path: Path) -> None:
        path = tmp_path / "fills.json"
        path.write_text("")
        assert load_fills(path) == []

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_fills(tmp_path / "absent.json")

    def test_not_an_array(self, tmp_path: Path) -> None:
        path = tmp_path / "fills.json"
        path.write_text(json.dumps({"fills": []}))
        with pytest.raises(FillLoadError, match="JSON array"):
            load_fills(path)

    def test_invalid_json(self, tmp_path: Path) -> None:
        path = tmp_path / "fills.json"
        path.write_text("[{")
        with pytest.raises(FillLoadError, match="not valid JSON"):
            load_fills(path)

    def test_load_pending_orders(self, tmp_path: Path) -> None:
        path = _write(
            tmp_path / "orders.json",
            [{"symbol": "AAPL", "side": "SELL", "quantity": 10, "placed_time": "2024-03-04T15:00:01Z", "limit_price": 11}],
        )
        orders = load_pending_orders(path)
        assert len(orders) == 1
        assert orders[0].resting_price() == 11
