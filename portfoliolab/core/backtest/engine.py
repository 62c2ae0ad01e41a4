"""Deterministic periodic-rebalance strategy backtest engine."""

from __future__ import annotations

import math
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from portfoliolab.core.allocation import AllocationResult, RankedAsset, allocate_capital
from portfoliolab.core.backtest.metrics import calculate_metrics
from portfoliolab.core.backtest.types import BacktestResult, BacktestState, TransactionCosts
from portfoliolab.core.data.types import UniverseAsset
from portfoliolab.core.research.strategy import StrategyDefinition
from portfoliolab.core.scoring.indicators import Bar
from portfoliolab.core.scoring.thresholds import ScoreWeights, ScoringThresholds
from portfoliolab.core.utils.errors import BacktestError
from portfoliolab.core.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_INITIAL_CAPITAL = 10_000.0

Allocator = Callable[[Sequence[RankedAsset], str], AllocationResult]


@dataclass(frozen=True)
class AssetSnapshot:
    """Scored view of one asset as of a rebalance index."""

    ticker: str
    name: str | None
    score: float
    volatility: float | None
    details: dict[str, Any]


def _is_finite(value: Any) -> bool:
    return isinstance(value, (int, float)) and math.isfinite(value)


def build_asset_snapshot(
    asset: UniverseAsset,
    end_index: int,
    strategy: StrategyDefinition,
    thresholds: ScoringThresholds,
    weights: ScoreWeights,
) -> AssetSnapshot | None:
    """
    Score an asset using only data up to and including ``end_index``.

    Returns:
        Snapshot, or ``None`` when history is too short or a hard filter rejects the asset.
    """
    window = asset.data[: end_index + 1]
    closes = [point.close for point in window if _is_finite(point.close)]
    if len(closes) < thresholds.min_days_history:
        return None

    volumes = [point.volume if point.volume is not None else 0.0 for point in window]
    bars = [
        Bar(
            close=point.close,
            high=point.high if point.high is not None else point.close,
            low=point.low if point.low is not None else point.close,
        )
        for point in window
    ]

    filters = strategy.apply_hard_filters(bars, closes, volumes, thresholds)
    if not filters.passed:
        logger.debug("Rejected %s at index %d: %s", asset.ticker, end_index, "; ".join(filters.reasons))
        return None

    trend = strategy.calculate_trend_score(bars, closes, thresholds)
    momentum = strategy.calculate_momentum_score(closes, thresholds)
    risk = strategy.calculate_risk_score(bars, closes, thresholds)
    liquidity = strategy.calculate_liquidity_score(volumes, thresholds)
    score = strategy.calculate_final_score(
        trend.score, momentum.score, risk.score, liquidity.score, weights
    )

    volatility = risk.details.get("volatility")
    return AssetSnapshot(
        ticker=asset.ticker,
        name=asset.name,
        score=float(score),
        volatility=float(volatility) if _is_finite(volatility) else None,
        details={
            "trend": trend.details,
            "momentum": momentum.details,
            "risk": risk.details,
            "liquidity": liquidity.details,
            "warnings": list(filters.reasons),
        },
    )


def calculate_turnover(previous: Mapping[str, float], new: Mapping[str, float]) -> float:
    """One-way turnover: half the summed absolute weight change over the union of tickers."""
    tickers = set(previous) | set(new)
    return sum(abs(new.get(ticker, 0.0) - previous.get(ticker, 0.0)) for ticker in tickers) / 2.0


def calculate_transaction_cost(capital: float, turnover: float, costs: TransactionCosts) -> float:
    """Commission (with minimum) plus slippage on the traded notional."""
    traded = capital * turnover
    commission = max(traded * costs.commission_pct, costs.min_commission)
    return commission + traded * costs.slippage_pct


def _forward_return(data: Sequence[Any], index: int, horizon: int) -> float:
    if index + horizon >= len(data):
        return 0.0
    current = data[index].close
    following = data[index + horizon].close
    if not _is_finite(current) or not _is_finite(following) or current == 0:
        return 0.0
    return following / current - 1.0


def _benchmark_return(prices: Sequence[float], index: int, horizon: int) -> float:
    if index + horizon >= len(prices):
        return 0.0
    current = prices[index]
    following = prices[index + horizon]
    if not _is_finite(current) or not _is_finite(following) or current == 0:
        return 0.0
    return following / current - 1.0


def _rebalance_date(universe: Sequence[UniverseAsset], index: int, state: BacktestState, step: int) -> str:
    for asset in universe:
        if index < len(asset.data) and asset.data[index].date:
            return str(asset.data[index].date)
    return f"t+{state.rebalances * step}"


def _default_allocator(ranked: Sequence[RankedAsset], method: str) -> AllocationResult:
    return allocate_capital(ranked, method)


def run_strategy_backtest(
    universe: Sequence[UniverseAsset],
    strategy: StrategyDefinition,
    thresholds: ScoringThresholds,
    weights: ScoreWeights,
    top_n: int = 10,
    rebalance_every: int = 21,
    allocation_method: str = "equal_weight",
    benchmark_prices: Sequence[float] | None = None,
    transaction_costs: TransactionCosts | None = None,
    initial_capital: float = DEFAULT_INITIAL_CAPITAL,
    allocator: Allocator | None = None,
    strategy_key: str | None = None,
) -> BacktestResult:
    """
    Simulate periodic rebalancing into the top-scored assets.

    Execution model:
    - At rebalance index ``i`` each asset is scored on data ``[0, i]`` only.
    - The top ``top_n`` are allocated and held for ``rebalance_every`` days.
    - The period return is the weighted close-to-close return from ``i`` to
      ``i + rebalance_every`` minus transaction costs as a fraction of capital.

    Args:
        universe: Assets with price/volume histories.
        strategy: Scoring strategy (hard filters, sub-scores, final score).
        thresholds: Scoring thresholds; ``min_days_history`` sets the first rebalance.
        weights: Sub-score weights for the final score.
        top_n: Maximum number of holdings.
        rebalance_every: Trading days between rebalances.
        allocation_method: Allocation method name passed to the allocator.
        benchmark_prices: Optional benchmark closes aligned to the universe indices.
        transaction_costs: Cost model; defaults to ``TransactionCosts()``.
        initial_capital: Starting capital in currency units.
        allocator: Allocation collaborator; defaults to ``allocate_capital``.
        strategy_key: Identifier reported in the result (defaults to the strategy name).

    Returns:
        Backtest result container; ``metrics`` is ``None`` when no rebalance fits.
    """
    if rebalance_every < 1:
        raise BacktestError("rebalance_every must be >= 1.")
    if top_n < 1:
        raise BacktestError("top_n must be >= 1.")
    if initial_capital <= 0:
        raise BacktestError("initial_capital must be greater than 0.")

    costs = transaction_costs or TransactionCosts()
    allocate = allocator or _default_allocator
    key = strategy_key or strategy.strategy_name

    max_history = max((len(asset.data) for asset in universe), default=0)
    start_index = thresholds.min_days_history
    end_index = max_history - rebalance_every - 1

    if max_history == 0 or start_index >= end_index:
        logger.info(
            "Backtest '%s' skipped: history %d too short for start %d and step %d.",
            key,
            max_history,
            start_index,
            rebalance_every,
        )
        return BacktestResult(
            strategy_key=key,
            strategy_name=strategy.strategy_name,
            initial_capital=initial_capital,
            metrics=None,
            returns=[],
            equity_curve=[],
            benchmark_returns=None,
            rebalance_dates=[],
            sample=0,
        )

    by_ticker = {asset.ticker: asset for asset in universe}
    state = BacktestState()

    for i in range(start_index, end_index + 1, rebalance_every):
        snapshots = [
            snapshot
            for snapshot in (
                build_asset_snapshot(asset, i, strategy, thresholds, weights) for asset in universe
            )
            if snapshot is not None
        ]
        if not snapshots:
            continue

        ranked = sorted(snapshots, key=lambda item: item.score, reverse=True)[:top_n]
        allocation = allocate(
            [
                RankedAsset(ticker=item.ticker, score=item.score, volatility=item.volatility, name=item.name)
                for item in ranked
            ],
            allocation_method,
        )
        next_weights = {item.ticker: item.weight for item in allocation.allocation}

        turnover = calculate_turnover(state.previous_weights, next_weights)
        portfolio_return = sum(
            weight * _forward_return(by_ticker[ticker].data, i, rebalance_every)
            for ticker, weight in next_weights.items()
        )
        current_capital = state.equity_curve[-1] * initial_capital
        cost = calculate_transaction_cost(current_capital, turnover, costs)
        net_return = portfolio_return - cost / current_capital if current_capital > 0 else portfolio_return

        state.returns.append(net_return)
        state.equity_curve.append(state.equity_curve[-1] * (1.0 + net_return))
        state.rebalances += 1
        state.total_turnover += turnover
        state.total_transaction_costs += cost
        state.previous_weights = next_weights
        state.weights_history.append(dict(next_weights))
        state.rebalance_dates.append(_rebalance_date(universe, i, state, rebalance_every))

        if benchmark_prices is not None:
            state.benchmark_returns.append(_benchmark_return(benchmark_prices, i, rebalance_every))

    avg_turnover = state.total_turnover / state.rebalances if state.rebalances else 0.0
    benchmark_returns = state.benchmark_returns or None
    metrics = calculate_metrics(
        returns=state.returns,
        equity_curve=state.equity_curve,
        rebalance_every=rebalance_every,
        benchmark_returns=benchmark_returns,
        total_transaction_costs=state.total_transaction_costs,
        avg_turnover=avg_turnover,
    )
    logger.info(
        "Backtest '%s' completed: %d rebalances, final equity %.4f.",
        key,
        state.rebalances,
        state.equity_curve[-1],
    )

    return BacktestResult(
        strategy_key=key,
        strategy_name=strategy.strategy_name,
        initial_capital=initial_capital,
        metrics=metrics,
        returns=state.returns,
        equity_curve=state.equity_curve,
        benchmark_returns=benchmark_returns,
        rebalance_dates=state.rebalance_dates,
        sample=state.rebalances,
        total_transaction_costs=state.total_transaction_costs,
        total_turnover=state.total_turnover,
        weights_history=state.weights_history,
    )
