"""Pytest fixtures: throttle parameters shared across tests."""

import pytest

from config.strategy_config import StrategyConfig


@pytest.fixture
def cfg() -> StrategyConfig:
    """HIGH 3%, LOW 0.1%, two wins to recover, one loss to drop."""
    return StrategyConfig(high_mode_risk_pct=0.03, low_mode_risk_pct=0.001)


@pytest.fixture
def slow_drop_cfg() -> StrategyConfig:
    """Same risk levels, but two consecutive losses are needed to drop to LOW."""
    return StrategyConfig(high_mode_risk_pct=0.03, low_mode_risk_pct=0.001, losses_to_drop=2)
