"""Backtest engine exports."""

from portfoliolab.core.backtest.engine import (
    build_asset_snapshot,
    calculate_transaction_cost,
    calculate_turnover,
    run_strategy_backtest,
)
from portfoliolab.core.backtest.metrics import calculate_max_drawdown, calculate_metrics
from portfoliolab.core.backtest.types import BacktestResult, PerformanceMetrics, TransactionCosts

__all__ = [
    "BacktestResult",
    "PerformanceMetrics",
    "TransactionCosts",
    "build_asset_snapshot",
    "calculate_max_drawdown",
    "calculate_metrics",
    "calculate_transaction_cost",
    "calculate_turnover",
    "run_strategy_backtest",
]
