"""Unit tests for backtest performance metrics."""

from __future__ import annotations

import math
import unittest

from portfoliolab.core.backtest.metrics import (
    analyze_drawdown_recovery,
    calculate_benchmark_metrics,
    calculate_calmar_ratio,
    calculate_max_drawdown,
    calculate_metrics,
    calculate_sharpe_ratio,
    calculate_win_metrics,
    estimate_tax_drag,
)
from portfoliolab.core.backtest.types import PerformanceMetrics


def _equity(returns: list[float]) -> list[float]:
    curve = [1.0]
    for value in returns:
        curve.append(curve[-1] * (1.0 + value))
    return curve


class TestDrawdown(unittest.TestCase):
    """Validate drawdown statistics."""

    def test_max_drawdown_single_decline(self) -> None:
        max_dd = calculate_max_drawdown([1.0, 1.2, 0.9, 1.1, 1.3])
        self.assertAlmostEqual(max_dd, 25.0, places=12)

    def test_max_drawdown_monotonic_and_empty(self) -> None:
        self.assertEqual(calculate_max_drawdown([1.0, 1.1, 1.2]), 0.0)
        self.assertEqual(calculate_max_drawdown([]), 0.0)

    def test_max_drawdown_is_bounded(self) -> None:
        max_dd = calculate_max_drawdown([1.0, 0.5, 0.01, 0.2])
        self.assertGreaterEqual(max_dd, 0.0)
        self.assertLessEqual(max_dd, 100.0)

    def test_max_drawdown_capped_when_equity_turns_negative(self) -> None:
        self.assertEqual(calculate_max_drawdown([1.0, 0.4, -0.2, -0.1]), 100.0)

    def test_recovery_episodes(self) -> None:
        recovery = analyze_drawdown_recovery([1.0, 0.9, 0.8, 1.05, 1.0, 1.1, 1.0], rebalance_every=21)

        self.assertEqual(recovery.num_drawdowns, 2)
        self.assertEqual(recovery.drawdowns[0].recovery_days, 42)
        self.assertAlmostEqual(recovery.drawdowns[0].depth, 20.0, places=9)
        self.assertEqual(recovery.drawdowns[1].recovery_days, 21)
        self.assertAlmostEqual(recovery.avg_recovery_days, 31.5, places=12)
        self.assertEqual(recovery.longest_drawdown, 42)

    def test_open_drawdown_counts_towards_longest_only(self) -> None:
        recovery = analyze_drawdown_recovery([1.0, 0.9, 0.95, 0.97, 0.99], rebalance_every=5)
        self.assertEqual(recovery.num_drawdowns, 0)
        self.assertEqual(recovery.avg_recovery_days, 0.0)
        self.assertEqual(recovery.longest_drawdown, 15)


class TestRatios(unittest.TestCase):
    """Validate ratio edge cases."""

    def test_sharpe_zero_dispersion(self) -> None:
        self.assertEqual(calculate_sharpe_ratio([0.01, 0.01, 0.01], rebalance_every=21), 0.0)
        self.assertEqual(calculate_sharpe_ratio([], rebalance_every=21), 0.0)

    def test_sharpe_zero_for_constant_returns(self) -> None:
        for value in (0.03, 0.1, 0.0217, -0.004):
            for length in (7, 10, 11, 13, 50):
                with self.subTest(value=value, length=length):
                    self.assertEqual(calculate_sharpe_ratio([value] * length, rebalance_every=21), 0.0)

    def test_sharpe_formula(self) -> None:
        returns = [0.02, -0.01, 0.03, 0.0]
        periods = 252 / 21
        excess = [value - 0.02 / periods for value in returns]
        mean = sum(excess) / len(excess)
        std = math.sqrt(sum((value - mean) ** 2 for value in excess) / len(excess))
        self.assertAlmostEqual(
            calculate_sharpe_ratio(returns, rebalance_every=21),
            mean / std * math.sqrt(periods),
            places=12,
        )

    def test_calmar_zero_drawdown(self) -> None:
        self.assertEqual(calculate_calmar_ratio(12.0, 0.0), 0.0)
        self.assertAlmostEqual(calculate_calmar_ratio(12.0, 6.0), 2.0, places=12)

    def test_win_metrics(self) -> None:
        wins = calculate_win_metrics([0.02, -0.01, 0.04, 0.0, -0.03])
        self.assertAlmostEqual(wins.win_rate, 40.0, places=12)
        self.assertAlmostEqual(wins.profit_factor, 0.06 / 0.04, places=12)
        self.assertAlmostEqual(wins.avg_win, 0.03, places=12)
        self.assertAlmostEqual(wins.avg_loss, 0.02, places=12)

    def test_profit_factor_without_losses(self) -> None:
        self.assertEqual(calculate_win_metrics([0.01, 0.02]).profit_factor, 0.0)

    def test_tax_drag(self) -> None:
        self.assertAlmostEqual(estimate_tax_drag([0.1, -0.05, 0.1], 0.5), 0.2 * 0.5 * 0.19, places=12)


class TestBenchmarkMetrics(unittest.TestCase):
    """Validate benchmark-relative statistics."""

    def test_without_benchmark(self) -> None:
        metrics = calculate_benchmark_metrics([0.01, 0.02], None)
        self.assertEqual(metrics.beta, 1.0)
        self.assertEqual(metrics.alpha, 0.0)

    def test_constant_benchmark_keeps_unit_beta(self) -> None:
        metrics = calculate_benchmark_metrics([0.01, 0.02, -0.01], [0.005, 0.005, 0.005])
        self.assertEqual(metrics.beta, 1.0)

    def test_constant_benchmark_across_lengths(self) -> None:
        for value in (0.03, 0.1, 0.0217):
            for length in (7, 10, 11, 13):
                with self.subTest(value=value, length=length):
                    portfolio = [0.01 * ((index % 3) - 1) for index in range(length)]
                    metrics = calculate_benchmark_metrics(portfolio, [value] * length)
                    self.assertEqual(metrics.beta, 1.0)

    def test_constant_active_return_has_no_tracking_error(self) -> None:
        benchmark = [0.0217, -0.013, 0.031, 0.007, -0.022, 0.015, 0.004, -0.009, 0.012, 0.018, -0.03]
        portfolio = [value + 0.03 for value in benchmark]
        metrics = calculate_benchmark_metrics(portfolio, benchmark)
        self.assertAlmostEqual(metrics.beta, 1.0, places=9)
        self.assertEqual(metrics.tracking_error, 0.0)
        self.assertEqual(metrics.information_ratio, 0.0)

    def test_scaled_portfolio_has_matching_beta(self) -> None:
        benchmark = [0.01, -0.02, 0.03, 0.0, 0.015]
        portfolio = [2.0 * value for value in benchmark]
        metrics = calculate_benchmark_metrics(portfolio, benchmark)
        self.assertAlmostEqual(metrics.beta, 2.0, places=12)
        self.assertAlmostEqual(metrics.alpha, 0.0, places=12)
        self.assertGreater(metrics.tracking_error, 0.0)

    def test_series_truncated_to_common_length(self) -> None:
        benchmark = [0.01, -0.02, 0.03]
        portfolio = [0.01, -0.02, 0.03, 0.5, -0.5]
        metrics = calculate_benchmark_metrics(portfolio, benchmark)
        self.assertAlmostEqual(metrics.beta, 1.0, places=12)
        self.assertEqual(metrics.tracking_error, 0.0)
        self.assertEqual(metrics.information_ratio, 0.0)


class TestCalculateMetrics(unittest.TestCase):
    """Validate the aggregate metrics."""

    def test_empty_returns_give_defaults(self) -> None:
        self.assertEqual(calculate_metrics([], [1.0], rebalance_every=21), PerformanceMetrics())

    def test_headline_metrics(self) -> None:
        returns = [0.05, -0.02, 0.03, 0.01] * 3
        curve = _equity(returns)
        metrics = calculate_metrics(returns, curve, rebalance_every=21, avg_turnover=0.4)

        total_years = len(returns) * 21 / 252
        self.assertAlmostEqual(metrics.total_return, (curve[-1] - 1.0) * 100.0, places=9)
        self.assertAlmostEqual(metrics.cagr, (curve[-1] ** (1.0 / total_years) - 1.0) * 100.0, places=9)
        self.assertAlmostEqual(metrics.win_rate, 75.0, places=9)
        self.assertGreater(metrics.max_drawdown, 0.0)
        self.assertAlmostEqual(metrics.calmar_ratio, metrics.cagr / metrics.max_drawdown, places=9)
        self.assertEqual(metrics.num_drawdowns, 3)
        self.assertEqual(len(metrics.drawdowns), 3)
        self.assertAlmostEqual(metrics.avg_turnover, 0.4, places=12)

    def test_wiped_out_equity_has_zero_cagr(self) -> None:
        metrics = calculate_metrics([-1.0], [1.0, 0.0], rebalance_every=21)
        self.assertEqual(metrics.cagr, 0.0)
        self.assertAlmostEqual(metrics.max_drawdown, 100.0, places=12)

    def test_as_dict_is_flat(self) -> None:
        payload = PerformanceMetrics().as_dict()
        self.assertNotIn("drawdowns", payload)
        self.assertEqual(payload["beta"], 1.0)
        self.assertTrue(all(isinstance(value, float) for value in payload.values()))


if __name__ == "__main__":
    unittest.main()
