"""
throttle-core: pure fill-to-trade reconstruction and restart-throttle risk engine.

No I/O, no network, no side effects. Consumes fills, produces trades,
risk directives, daily equity rows and metrics. Fully deterministic and
unit-testable.
"""

from throttle_core.contracts import (
    DailyRow,
    Fill,
    Metrics,
    Mode,
    Outcome,
    PendingOrder,
    RiskState,
    Side,
    Trade,
)
from throttle_core.pipeline import PipelineResult, run_pipeline
from throttle_core.reconstructor import reconstruct
from throttle_core.risk_engine import compute_risk_state

__all__ = [
    "compute_risk_state",
    "DailyRow",
    "Fill",
    "Metrics",
    "Mode",
    "Outcome",
    "PendingOrder",
    "PipelineResult",
    "reconstruct",
    "RiskState",
    "run_pipeline",
    "Side",
    "Trade",
]
