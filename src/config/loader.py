"""
Config loader: YAML file -> frozen dataclass tree.

Webhook URL resolved from the environment (THROTTLE_WEBHOOK_URL).
Config file holds only non-secret values.
"""

import os
from dataclasses import dataclass
from pathlib import Path

import yaml


@dataclass(frozen=True)
class AccountConfig:
    starting_equity: float = 25_000.0


@dataclass(frozen=True)
class DataConfig:
    fills_path: str = "data/fills.json"
    pending_orders_path: str = ""


@dataclass(frozen=True)
class StrategySelection:
    config_path: str = ""
    variant: str = ""


@dataclass(frozen=True)
class JournalConfig:
    path: str = "data/journal.jsonl"
    echo_stdout: bool = False


@dataclass(frozen=True)
class AlertingConfig:
    structured_logs: bool = True
    webhook_url: str = ""


@dataclass(frozen=True)
class AppConfig:
    account: AccountConfig
    data: DataConfig
    strategy: StrategySelection
    journal: JournalConfig
    alerting: AlertingConfig = AlertingConfig()


def load_config(path: str | Path = "config.yaml") -> AppConfig:
    """
    Load configuration from a YAML file.

    The alerting webhook URL is resolved from the THROTTLE_WEBHOOK_URL
    environment variable when set; otherwise the file value is used.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        raw = yaml.safe_load(f)

    if not isinstance(raw, dict):
        raise ValueError(f"Config file must be a YAML mapping, got {type(raw).__name__}")

    acct_raw = raw.get("account", {})
    acct_cfg = AccountConfig(
        starting_equity=float(acct_raw.get("starting_equity", 25_000)),
    )
    if acct_cfg.starting_equity <= 0:
        raise ValueError(f"account.starting_equity must be positive, got {acct_cfg.starting_equity}")

    data_raw = raw.get("data", {})
    data_cfg = DataConfig(
        fills_path=str(data_raw.get("fills_path", "data/fills.json")),
        pending_orders_path=str(data_raw.get("pending_orders_path", "") or ""),
    )

    s_raw = raw.get("strategy", {})
    s_cfg = StrategySelection(
        config_path=str(s_raw.get("config_path", "") or ""),
        variant=str(s_raw.get("variant", "") or ""),
    )

    j_raw = raw.get("journal", {})
    j_cfg = JournalConfig(
        path=j_raw.get("path", "data/journal.jsonl"),
        echo_stdout=bool(j_raw.get("echo_stdout", False)),
    )

    a_raw = raw.get("alerting", {})
    a_cfg = AlertingConfig(
        structured_logs=bool(a_raw.get("structured_logs", True)),
        webhook_url=os.environ.get("THROTTLE_WEBHOOK_URL", str(a_raw.get("webhook_url", ""))),
    )

    return AppConfig(
        account=acct_cfg,
        data=data_cfg,
        strategy=s_cfg,
        journal=j_cfg,
        alerting=a_cfg,
    )
