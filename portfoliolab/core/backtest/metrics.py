"""Backtest performance metrics calculations."""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass

import pandas as pd

from portfoliolab.core.backtest.types import DrawdownEpisode, PerformanceMetrics

TRADING_DAYS_PER_YEAR = 252
DEFAULT_RISK_FREE_RATE = 0.02
DEFAULT_TAX_RATE = 0.19
ZERO_DISPERSION_TOLERANCE = 1e-12


@dataclass(frozen=True)
class WinMetrics:
    """Return-distribution statistics."""

    win_rate: float
    profit_factor: float
    avg_win: float
    avg_loss: float


@dataclass(frozen=True)
class BenchmarkMetrics:
    """Benchmark-relative statistics."""

    alpha: float = 0.0
    beta: float = 1.0
    information_ratio: float = 0.0
    tracking_error: float = 0.0


@dataclass(frozen=True)
class DrawdownRecovery:
    """Drawdown episodes and recovery statistics."""

    drawdowns: tuple[DrawdownEpisode, ...]
    avg_recovery_days: float
    num_drawdowns: int
    longest_drawdown: int


def _series(values: Sequence[float]) -> pd.Series:
    return pd.Series(list(values), dtype=float)


def _is_negligible(dispersion: float, level: float) -> bool:
    """Whether a dispersion is floating-point noise relative to the series level."""
    return dispersion <= ZERO_DISPERSION_TOLERANCE * max(1.0, abs(level))


def calculate_std_dev(values: Sequence[float]) -> float:
    """Population standard deviation; 0 for an empty input."""
    series = _series(values)
    if series.empty:
        return 0.0
    return float(series.std(ddof=0))


def calculate_max_drawdown(equity_curve: Sequence[float]) -> float:
    """
    Calculate max drawdown from an equity curve.

    Args:
        equity_curve: Cumulative equity curve where 1.0 is starting equity.

    Returns:
        Largest peak-to-trough decline as a positive percentage, capped at 100
        when equity falls below zero.
    """
    curve = _series(equity_curve)
    if curve.empty:
        return 0.0

    running_max = curve.cummax()
    drawdowns = curve / running_max - 1.0
    return min(abs(float(drawdowns.min())) * 100.0, 100.0)


def calculate_sharpe_ratio(
    returns: Sequence[float],
    rebalance_every: int,
    risk_free_rate: float = DEFAULT_RISK_FREE_RATE,
) -> float:
    """Annualized Sharpe ratio of per-period returns; 0 when dispersion is zero."""
    series = _series(returns)
    if series.empty:
        return 0.0

    periods_per_year = TRADING_DAYS_PER_YEAR / rebalance_every
    excess = series - risk_free_rate / periods_per_year
    mean = float(excess.mean())
    std_dev = float(excess.std(ddof=0))
    if _is_negligible(std_dev, mean):
        return 0.0
    return mean / std_dev * math.sqrt(periods_per_year)


def calculate_calmar_ratio(cagr: float, max_drawdown: float) -> float:
    """CAGR over max drawdown (both in percent); 0 without drawdown."""
    if max_drawdown == 0:
        return 0.0
    return cagr / max_drawdown


def calculate_win_metrics(returns: Sequence[float]) -> WinMetrics:
    """Win rate (%), profit factor and average win/loss magnitudes."""
    series = _series(returns)
    if series.empty:
        return WinMetrics(0.0, 0.0, 0.0, 0.0)

    wins = series[series > 0]
    losses = series[series < 0]
    total_gains = float(wins.sum())
    total_losses = abs(float(losses.sum()))

    return WinMetrics(
        win_rate=len(wins) / len(series) * 100.0,
        profit_factor=total_gains / total_losses if total_losses > 0 else 0.0,
        avg_win=total_gains / len(wins) if len(wins) else 0.0,
        avg_loss=total_losses / len(losses) if len(losses) else 0.0,
    )


def calculate_benchmark_metrics(
    portfolio_returns: Sequence[float],
    benchmark_returns: Sequence[float] | None,
) -> BenchmarkMetrics:
    """
    Beta, annualized alpha, tracking error and information ratio.

    Both series are truncated to their common length. Without a benchmark, or
    with a constant one, beta defaults to 1.
    """
    if not benchmark_returns:
        return BenchmarkMetrics()
    length = min(len(portfolio_returns), len(benchmark_returns))
    if length == 0:
        return BenchmarkMetrics()

    portfolio = _series(portfolio_returns[:length])
    benchmark = _series(benchmark_returns[:length])
    portfolio_mean = float(portfolio.mean())
    benchmark_mean = float(benchmark.mean())

    if _is_negligible(calculate_std_dev(benchmark.tolist()), benchmark_mean):
        beta = 1.0
    else:
        covariance = float(((portfolio - portfolio_mean) * (benchmark - benchmark_mean)).sum())
        benchmark_variance = float(((benchmark - benchmark_mean) ** 2).sum())
        beta = covariance / benchmark_variance
    alpha = (portfolio_mean - benchmark_mean * beta) * TRADING_DAYS_PER_YEAR

    active = portfolio - benchmark
    active_std = calculate_std_dev(active.tolist())
    if _is_negligible(active_std, float(active.mean())):
        tracking_error = 0.0
        information_ratio = 0.0
    else:
        tracking_error = active_std * math.sqrt(TRADING_DAYS_PER_YEAR)
        information_ratio = alpha / tracking_error
    return BenchmarkMetrics(
        alpha=alpha,
        beta=beta,
        information_ratio=information_ratio,
        tracking_error=tracking_error,
    )


def analyze_drawdown_recovery(equity_curve: Sequence[float], rebalance_every: int) -> DrawdownRecovery:
    """
    Detect peak-to-trough-to-new-peak drawdown episodes.

    Recovery time is measured in trading days. A drawdown still open at the end
    of the curve counts towards ``longest_drawdown`` but is not an episode.
    """
    if not equity_curve:
        return DrawdownRecovery(drawdowns=(), avg_recovery_days=0.0, num_drawdowns=0, longest_drawdown=0)

    peak = equity_curve[0]
    trough = equity_curve[0]
    in_drawdown = False
    drawdown_start = 0
    longest = 0
    episodes: list[DrawdownEpisode] = []

    for i, value in enumerate(equity_curve):
        if value >= peak:
            if in_drawdown:
                recovery_days = (i - drawdown_start) * rebalance_every
                depth = (peak - trough) / peak * 100.0 if peak else 0.0
                episodes.append(DrawdownEpisode(depth=depth, recovery_days=recovery_days))
                longest = max(longest, recovery_days)
                in_drawdown = False
            peak = value
        elif not in_drawdown:
            in_drawdown = True
            drawdown_start = i
            trough = value
        elif value < trough:
            trough = value

    if in_drawdown:
        longest = max(longest, (len(equity_curve) - 1 - drawdown_start) * rebalance_every)

    avg_recovery = (
        sum(episode.recovery_days for episode in episodes) / len(episodes) if episodes else 0.0
    )
    return DrawdownRecovery(
        drawdowns=tuple(episodes),
        avg_recovery_days=avg_recovery,
        num_drawdowns=len(episodes),
        longest_drawdown=longest,
    )


def estimate_tax_drag(
    returns: Sequence[float], avg_turnover: float, tax_rate: float = DEFAULT_TAX_RATE
) -> float:
    """Approximate tax cost: realized gains proportional to turnover, taxed at ``tax_rate``."""
    realized = sum(value for value in returns if value > 0)
    return realized * avg_turnover * tax_rate


def calculate_metrics(
    returns: Sequence[float],
    equity_curve: Sequence[float],
    rebalance_every: int,
    benchmark_returns: Sequence[float] | None = None,
    total_transaction_costs: float = 0.0,
    avg_turnover: float = 0.0,
    risk_free_rate: float = DEFAULT_RISK_FREE_RATE,
    tax_rate: float = DEFAULT_TAX_RATE,
) -> PerformanceMetrics:
    """
    Calculate performance metrics for per-rebalance-period returns.

    Args:
        returns: Net period returns.
        equity_curve: Equity multiples starting at 1.0.
        rebalance_every: Trading days per period.
        benchmark_returns: Optional benchmark period returns.
        total_transaction_costs: Currency amount paid over the run.
        avg_turnover: Mean one-way turnover per rebalance.
        risk_free_rate: Annual risk-free rate used for Sharpe.
        tax_rate: Rate used for the tax-drag estimate.

    Returns:
        Metrics container; all zeros (beta 1) for empty returns.
    """
    if not returns or not equity_curve or rebalance_every <= 0:
        return PerformanceMetrics()

    periods_per_year = TRADING_DAYS_PER_YEAR / rebalance_every
    total_years = len(returns) * rebalance_every / TRADING_DAYS_PER_YEAR
    final_equity = float(equity_curve[-1])

    total_return = (final_equity - 1.0) * 100.0
    cagr = (
        (final_equity ** (1.0 / total_years) - 1.0) * 100.0
        if total_years > 0 and final_equity > 0
        else 0.0
    )
    volatility = calculate_std_dev(returns) * math.sqrt(periods_per_year) * 100.0
    max_drawdown = calculate_max_drawdown(equity_curve)
    wins = calculate_win_metrics(returns)
    benchmark = calculate_benchmark_metrics(returns, benchmark_returns)
    recovery = analyze_drawdown_recovery(equity_curve, rebalance_every)

    return PerformanceMetrics(
        total_return=total_return,
        cagr=cagr,
        volatility=volatility,
        max_drawdown=max_drawdown,
        sharpe_ratio=calculate_sharpe_ratio(returns, rebalance_every, risk_free_rate),
        calmar_ratio=calculate_calmar_ratio(cagr, max_drawdown),
        win_rate=wins.win_rate,
        profit_factor=wins.profit_factor,
        avg_win=wins.avg_win,
        avg_loss=wins.avg_loss,
        alpha=benchmark.alpha,
        beta=benchmark.beta,
        information_ratio=benchmark.information_ratio,
        tracking_error=benchmark.tracking_error,
        avg_turnover=avg_turnover,
        total_transaction_costs=total_transaction_costs,
        avg_recovery_days=recovery.avg_recovery_days,
        num_drawdowns=recovery.num_drawdowns,
        longest_drawdown=recovery.longest_drawdown,
        estimated_tax_drag=estimate_tax_drag(returns, avg_turnover, tax_rate),
        drawdowns=recovery.drawdowns,
    )
