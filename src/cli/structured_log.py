"""
Structured JSON event logger for throttle rebuilds.

One JSON object per line on stderr, suitable for log aggregators
(Grafana Loki, CloudWatch, ELK). Enum and datetime fields are written as
their primitive values.

Optional webhook: alert events (mode_change, error) are also POSTed to
the configured URL. Delivery failures are logged and never raised.
"""

from __future__ import annotations

import json
import logging
import sys
import urllib.request
from datetime import datetime, timezone
from typing import Any, TextIO

from throttle_core.contracts import to_primitive

logger = logging.getLogger("throttle.events")

ALERT_EVENTS = frozenset({"mode_change", "error"})
WEBHOOK_TIMEOUT_S = 5


class StructuredEventLogger:
    """Emit structured JSON events to stderr and optional webhook."""

    def __init__(
        self,
        account: str = "default",
        *,
        enabled: bool = True,
        webhook_url: str = "",
        stream: TextIO | None = None,
    ) -> None:
        self._account = account
        self._enabled = enabled
        self._webhook_url = webhook_url.strip()
        self._out = stream or sys.stderr

    def _emit(self, event: str, **fields: Any) -> dict:
        record = to_primitive(
            {
                "ts": datetime.now(timezone.utc),
                "event": event,
                "account": self._account,
                **fields,
            }
        )
        line = json.dumps(record)
        if self._enabled:
            print(line, file=self._out, flush=True)
        if event in ALERT_EVENTS and self._webhook_url:
            self._notify(line)
        return record

    def _notify(self, body: str) -> None:
        req = urllib.request.Request(
            self._webhook_url,
            data=body.encode("utf-8"),
            headers={"Content-Type": "application/json"},
            method="POST",
        )
        try:
            urllib.request.urlopen(req, timeout=WEBHOOK_TIMEOUT_S)
        except Exception as exc:
            logger.warning("Alert webhook failed: %s", exc)

    # -- rebuild lifecycle ---------------------------------------------------

    def rebuild_start(self, fills: int, pending_orders: int, strategy: str) -> dict:
        return self._emit("rebuild_start", fills=fills, pending_orders=pending_orders, strategy=strategy)

    def import_warning(self, level: str, message: str, symbol: str) -> dict:
        return self._emit("import_warning", level=level, message=message, symbol=symbol)

    def rebuild_complete(self, trades: int, closed: int, warnings: int) -> dict:
        return self._emit("rebuild_complete", trades=trades, closed=closed, warnings=warnings)

    # -- throttle state ------------------------------------------------------

    def mode_change(self, previous: Any, current: Any, risk_pct: float) -> dict:
        """Mode flipped on the latest closed trade. Accepts Mode or plain strings."""
        return self._emit("mode_change", previous=previous, current=current, risk_pct=risk_pct)

    def risk_state(
        self,
        mode: Any,
        risk_pct: float,
        allowed_risk_dollars: float,
        equity: float,
        low_wins_progress: int,
    ) -> dict:
        return self._emit(
            "risk_state",
            mode=mode,
            risk_pct=risk_pct,
            allowed_risk_dollars=round(allowed_risk_dollars, 2),
            equity=round(equity, 2),
            low_wins_progress=low_wins_progress,
        )

    def error(self, message: str, detail: str = "") -> dict:
        return self._emit("error", message=message, detail=detail)
