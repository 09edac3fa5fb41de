"""
Structured journal: append-only JSON lines of trades, warnings, directives and risk state.
"""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from throttle_core.contracts import (
    DailyDirective,
    ReconstructionWarning,
    RiskState,
    Trade,
    to_primitive,
)


class JournalWriter:
    """Append-only journal. Each line is a JSON object with event type and payload."""

    def __init__(self, path: str | Path, *, echo_stdout: bool = False) -> None:
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._echo = echo_stdout

    def _write(self, event_type: str, payload: dict) -> None:
        record = {"ts_utc": datetime.now(timezone.utc).isoformat(), "event": event_type, **payload}
        line = json.dumps(to_primitive(record)) + "\n"
        with open(self._path, "a") as f:
            f.write(line)
        if self._echo:
            print(line.rstrip())

    def trade(self, trade: Trade, **extra: Any) -> None:
        payload = trade.to_dict()
        # Fills are referenced by id only.
        payload["entry_fill_ids"] = [f.id for f in trade.entry_fills]
        payload["exit_fill_ids"] = [f.id for f in trade.exit_fills]
        del payload["entry_fills"], payload["exit_fills"]
        self._write("trade", {**payload, **extra})

    def warning(self, warning: ReconstructionWarning, **extra: Any) -> None:
        self._write("warning", {**to_primitive(warning), **extra})

    def directive(self, directive: DailyDirective, **extra: Any) -> None:
        self._write("directive", {**to_primitive(directive), **extra})

    def risk_state(self, risk: RiskState, **extra: Any) -> None:
        payload = risk.to_dict()
        payload.pop("history", None)
        self._write("risk_state", {**payload, **extra})
