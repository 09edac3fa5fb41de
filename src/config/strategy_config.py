"""
Strategy config loader: JSON file -> frozen StrategyConfig, validated against JSON Schema.

Default values:      docs/config/strategy.default.json
Schema:              docs/config/strategy_config.schema.json

Variants: place a partial JSON file named ``strategy.{VARIANT}.json`` next to
the default config (e.g. ``docs/config/strategy.conservative.json``). Only the
keys you want to change need to be present; they are deep-merged on top of
the base config before schema validation. This lets alternative throttle
parameters be evaluated side by side over the same trades.

Usage:
    from config.strategy_config import load_strategy_config
    cfg = load_strategy_config()                         # loads default
    cfg = load_strategy_config(variant="conservative")   # merges strategy.conservative.json
    cfg = load_strategy_config("my_strategy.json")       # loads custom file
    cfg.high_mode_risk_pct  # -> 0.03
"""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import jsonschema

logger = logging.getLogger("throttle.config")

# ---------------------------------------------------------------------------
# Project root detection (walk up from this file to find pyproject.toml)
# ---------------------------------------------------------------------------


def _find_project_root() -> Path:
    """Walk up from this file looking for pyproject.toml.

    When running from source, finds the repo root.  When installed as a
    package, pyproject.toml won't exist, so fall back to CWD.
    """
    candidate = Path(__file__).resolve().parent
    for _ in range(10):
        if (candidate / "pyproject.toml").exists():
            return candidate
        parent = candidate.parent
        if parent == candidate:
            break
        candidate = parent
    return Path.cwd()


_PROJECT_ROOT = _find_project_root()

DEFAULT_CONFIG_PATH = _PROJECT_ROOT / "docs" / "config" / "strategy.default.json"
DEFAULT_SCHEMA_PATH = _PROJECT_ROOT / "docs" / "config" / "strategy_config.schema.json"


@dataclass(frozen=True)
class StrategyConfig:
    """Restart-throttle parameters. Immutable; threaded through every call."""

    high_mode_risk_pct: float
    low_mode_risk_pct: float
    wins_to_recover: int = 2
    losses_to_drop: int = 1
    id: str = "restart-throttle"
    name: str = "Restart Throttle"

    @property
    def wins_needed(self) -> int:
        return max(1, math.floor(self.wins_to_recover))

    @property
    def losses_needed(self) -> int:
        return max(1, math.floor(self.losses_to_drop))


# ---------------------------------------------------------------------------
# Deep merge for variant overrides
# ---------------------------------------------------------------------------


def _deep_merge(base: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge *overrides* into a copy of *base*.

    - Dict values are merged recursively (override keys win).
    - Non-dict values in overrides replace the base value.
    - Keys in base that are absent from overrides are preserved.
    """
    merged = dict(base)
    for key, val in overrides.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(val, dict):
            merged[key] = _deep_merge(merged[key], val)
        else:
            merged[key] = val
    return merged


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------


class StrategyConfigError(Exception):
    """Raised when strategy config loading or validation fails."""


def _validate_schema(data: dict[str, Any], schema_path: Path) -> None:
    """Validate *data* against the JSON Schema at *schema_path*."""
    if not schema_path.exists():
        raise StrategyConfigError(f"Schema file not found: {schema_path}")
    with open(schema_path) as f:
        schema = json.load(f)
    try:
        jsonschema.validate(instance=data, schema=schema)
    except jsonschema.ValidationError as exc:
        raise StrategyConfigError(f"Strategy config validation failed: {exc.message}") from exc


def _build_config(data: dict[str, Any]) -> StrategyConfig:
    """Convert a raw dict (already validated) into StrategyConfig."""
    risk = data["risk"]
    recovery = data.get("recovery", {})
    return StrategyConfig(
        id=data["id"],
        name=data.get("name", data["id"]),
        high_mode_risk_pct=float(risk["high_mode_risk_pct"]),
        low_mode_risk_pct=float(risk["low_mode_risk_pct"]),
        wins_to_recover=int(recovery.get("wins_to_recover", 2)),
        losses_to_drop=int(recovery.get("losses_to_drop", 1)),
    )


def _read_json(path: Path, label: str) -> dict[str, Any]:
    try:
        with open(path) as f:
            return json.load(f)
    except json.JSONDecodeError as exc:
        raise StrategyConfigError(f"{label} is not valid JSON: {exc}") from exc


def load_strategy_config(
    config_path: str | Path | None = None,
    schema_path: str | Path | None = None,
    variant: str | None = None,
) -> StrategyConfig:
    """Load and validate a strategy configuration.

    Parameters
    ----------
    config_path:
        Path to a strategy JSON file.  Defaults to ``docs/config/strategy.default.json``.
    schema_path:
        Path to the JSON Schema file.  Defaults to ``docs/config/strategy_config.schema.json``.
    variant:
        Optional variant name.  When provided, the loader looks for
        ``strategy.{variant}.json`` in the same directory as the base config
        and deep-merges it on top before validation.  A missing variant
        file raises StrategyConfigError.

    Raises
    ------
    StrategyConfigError
        If a file is missing, unparseable, or fails schema validation.
    """
    cfg_path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
    sch_path = Path(schema_path) if schema_path else DEFAULT_SCHEMA_PATH

    if not cfg_path.exists():
        raise StrategyConfigError(f"Strategy config file not found: {cfg_path}")

    data = _read_json(cfg_path, "Strategy config")

    if variant:
        variant_path = cfg_path.parent / f"strategy.{variant.lower()}.json"
        if not variant_path.exists():
            raise StrategyConfigError(f"Strategy variant not found: {variant_path.name}")
        data = _deep_merge(data, _read_json(variant_path, f"Strategy variant {variant_path.name}"))
        logger.info("Loaded strategy variant: %s", variant_path.name)

    _validate_schema(data, sch_path)

    return _build_config(data)
