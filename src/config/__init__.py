"""
Configuration loaders.

App config:       reads config.yaml, resolves env vars for secrets.
Strategy config:  reads strategy.default.json (or a variant), validates against JSON Schema.
"""

from config.loader import (
    AccountConfig,
    AlertingConfig,
    AppConfig,
    DataConfig,
    JournalConfig,
    StrategySelection,
    load_config,
)
from config.strategy_config import (
    StrategyConfig,
    StrategyConfigError,
    load_strategy_config,
)

__all__ = [
    # App config (YAML)
    "AccountConfig",
    "AlertingConfig",
    "AppConfig",
    "DataConfig",
    "JournalConfig",
    "StrategySelection",
    "load_config",
    # Strategy config (JSON + schema)
    "StrategyConfig",
    "StrategyConfigError",
    "load_strategy_config",
]
