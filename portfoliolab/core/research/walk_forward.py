"""Walk-forward in-sample/out-of-sample validation harness."""

from __future__ import annotations

from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

from portfoliolab.core.backtest.engine import run_strategy_backtest
from portfoliolab.core.backtest.types import BacktestResult, TransactionCosts
from portfoliolab.core.data.types import UniverseAsset
from portfoliolab.core.research.strategy import StrategyDefinition
from portfoliolab.core.scoring.thresholds import ScoreWeights, ScoringThresholds
from portfoliolab.core.utils.errors import WalkForwardError
from portfoliolab.core.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class WalkForwardSettings:
    """Window sizes in trading days."""

    in_sample_period: int = 252
    out_sample_period: int = 63
    step_size: int = 21

    def __post_init__(self) -> None:
        """Validate window sizes."""
        if self.in_sample_period < 1 or self.out_sample_period < 1 or self.step_size < 1:
            raise WalkForwardError("Walk-forward periods and step size must be >= 1.")


@dataclass(frozen=True)
class WalkForwardWindow:
    """Independent in-sample and out-of-sample backtests for one split point."""

    start_index: int
    in_sample_result: BacktestResult
    out_sample_result: BacktestResult


@dataclass(frozen=True)
class WalkForwardSummary:
    """Average in-sample vs out-of-sample performance across windows."""

    n_windows: int
    mean_in_sample_sharpe: float
    mean_out_sample_sharpe: float
    mean_in_sample_cagr: float
    mean_out_sample_cagr: float
    sharpe_decay: float
    cagr_decay: float

    def as_dict(self) -> dict[str, float]:
        """Flat scalar summary."""
        return {
            "n_windows": float(self.n_windows),
            "mean_in_sample_sharpe": self.mean_in_sample_sharpe,
            "mean_out_sample_sharpe": self.mean_out_sample_sharpe,
            "mean_in_sample_cagr": self.mean_in_sample_cagr,
            "mean_out_sample_cagr": self.mean_out_sample_cagr,
            "sharpe_decay": self.sharpe_decay,
            "cagr_decay": self.cagr_decay,
        }


def window_split_points(data_length: int, settings: WalkForwardSettings) -> list[int]:
    """Return split indices ``i`` with in-sample ``[i - in, i)`` and out-sample ``[i, i + out)``."""
    return list(
        range(
            settings.in_sample_period,
            data_length - settings.out_sample_period + 1,
            settings.step_size,
        )
    )


def run_walk_forward_test(
    universe: Sequence[UniverseAsset],
    strategy: StrategyDefinition,
    thresholds: ScoringThresholds,
    weights: ScoreWeights,
    settings: WalkForwardSettings | None = None,
    top_n: int = 10,
    rebalance_every: int = 21,
    allocation_method: str = "equal_weight",
    benchmark_prices: Sequence[float] | None = None,
    transaction_costs: TransactionCosts | None = None,
    max_workers: int = 1,
) -> list[WalkForwardWindow]:
    """
    Run independent backtests on consecutive in-sample/out-of-sample windows.

    Args:
        universe: Assets with price/volume histories.
        strategy: Scoring strategy.
        thresholds: Scoring thresholds.
        weights: Sub-score weights.
        settings: Window sizes; defaults to 252/63/21.
        top_n: Maximum holdings per backtest.
        rebalance_every: Trading days between rebalances.
        allocation_method: Allocation method name.
        benchmark_prices: Optional benchmark closes, sliced like the assets.
        transaction_costs: Cost model.
        max_workers: Thread pool size; windows keep split order either way.

    Returns:
        One window per split point.
    """
    cfg = settings or WalkForwardSettings()
    if max_workers < 1:
        raise WalkForwardError("max_workers must be >= 1.")

    lengths = [len(asset.data) for asset in universe if asset.data]
    if not lengths:
        raise WalkForwardError("Walk-forward requires at least one asset with data.")
    data_length = min(lengths)
    split_points = window_split_points(data_length, cfg)
    strategy_key = strategy.strategy_name or "walk_forward"

    def _backtest(start: int, stop: int) -> BacktestResult:
        return run_strategy_backtest(
            universe=[asset.slice(start, stop) for asset in universe],
            strategy=strategy,
            thresholds=thresholds,
            weights=weights,
            top_n=top_n,
            rebalance_every=rebalance_every,
            allocation_method=allocation_method,
            benchmark_prices=(
                list(benchmark_prices[start:stop]) if benchmark_prices is not None else None
            ),
            transaction_costs=transaction_costs,
            strategy_key=strategy_key,
        )

    def _run_window(split: int) -> WalkForwardWindow:
        in_start = split - cfg.in_sample_period
        return WalkForwardWindow(
            start_index=in_start,
            in_sample_result=_backtest(in_start, split),
            out_sample_result=_backtest(split, split + cfg.out_sample_period),
        )

    logger.info(
        "Walk-forward: %d windows over %d days (in=%d, out=%d, step=%d, workers=%d).",
        len(split_points),
        data_length,
        cfg.in_sample_period,
        cfg.out_sample_period,
        cfg.step_size,
        max_workers,
    )

    if max_workers == 1 or len(split_points) <= 1:
        return [_run_window(split) for split in split_points]

    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        return list(executor.map(_run_window, split_points))


def _mean(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def summarize_walk_forward(windows: Sequence[WalkForwardWindow]) -> WalkForwardSummary:
    """Average Sharpe and CAGR per side; decay is in-sample minus out-of-sample."""
    in_sharpe: list[float] = []
    out_sharpe: list[float] = []
    in_cagr: list[float] = []
    out_cagr: list[float] = []
    for window in windows:
        if window.in_sample_result.metrics is not None:
            in_sharpe.append(window.in_sample_result.metrics.sharpe_ratio)
            in_cagr.append(window.in_sample_result.metrics.cagr)
        if window.out_sample_result.metrics is not None:
            out_sharpe.append(window.out_sample_result.metrics.sharpe_ratio)
            out_cagr.append(window.out_sample_result.metrics.cagr)

    mean_in_sharpe = _mean(in_sharpe)
    mean_out_sharpe = _mean(out_sharpe)
    mean_in_cagr = _mean(in_cagr)
    mean_out_cagr = _mean(out_cagr)
    return WalkForwardSummary(
        n_windows=len(windows),
        mean_in_sample_sharpe=mean_in_sharpe,
        mean_out_sample_sharpe=mean_out_sharpe,
        mean_in_sample_cagr=mean_in_cagr,
        mean_out_sample_cagr=mean_out_cagr,
        sharpe_decay=mean_in_sharpe - mean_out_sharpe,
        cagr_decay=mean_in_cagr - mean_out_cagr,
    )
