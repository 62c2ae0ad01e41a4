"""Tests for the walk-forward validation harness."""

from __future__ import annotations

import unittest

from portfoliolab.core.backtest.types import TransactionCosts
from portfoliolab.core.research.strategy import default_strategy
from portfoliolab.core.research.walk_forward import (
    WalkForwardSettings,
    run_walk_forward_test,
    summarize_walk_forward,
    window_split_points,
)
from portfoliolab.core.scoring.thresholds import ScoreWeights, ScoringThresholds
from portfoliolab.core.utils.errors import WalkForwardError
from portfoliolab.tests.helpers import make_universe, trending_closes


class TestWindowSplits(unittest.TestCase):
    """Validate split point generation."""

    def test_default_windows_over_400_days(self) -> None:
        self.assertEqual(window_split_points(400, WalkForwardSettings()), [252, 273, 294, 315, 336])

    def test_too_short_history_has_no_windows(self) -> None:
        self.assertEqual(window_split_points(300, WalkForwardSettings()), [])

    def test_invalid_settings_rejected(self) -> None:
        with self.assertRaises(WalkForwardError):
            WalkForwardSettings(step_size=0)


class TestWalkForward(unittest.TestCase):
    """Validate window backtests and their summary."""

    def setUp(self) -> None:
        self.universe = make_universe(4, 400)
        self.params = {
            "strategy": default_strategy(),
            "thresholds": ScoringThresholds.with_defaults(min_days_history=20),
            "weights": ScoreWeights(),
            "top_n": 2,
            "rebalance_every": 21,
            "transaction_costs": TransactionCosts(),
        }

    def test_windows_are_independent_backtests(self) -> None:
        windows = run_walk_forward_test(self.universe, **self.params)

        self.assertEqual(len(windows), 5)
        self.assertEqual([window.start_index for window in windows], [0, 21, 42, 63, 84])
        for window in windows:
            self.assertIsNotNone(window.in_sample_result.metrics)
            self.assertIsNotNone(window.out_sample_result.metrics)
            # in-sample: range(20, 231, 21); out-of-sample: range(20, 42, 21)
            self.assertEqual(window.in_sample_result.sample, 11)
            self.assertEqual(window.out_sample_result.sample, 2)
            self.assertEqual(window.out_sample_result.equity_curve[0], 1.0)

    def test_out_sample_dates_follow_split(self) -> None:
        windows = run_walk_forward_test(self.universe, **self.params)
        first = windows[0]
        self.assertEqual(first.out_sample_result.rebalance_dates[0], self.universe[0].data[252 + 20].date)

    def test_parallel_run_matches_sequential(self) -> None:
        sequential = run_walk_forward_test(self.universe, **self.params)
        parallel = run_walk_forward_test(self.universe, max_workers=3, **self.params)
        self.assertEqual(sequential, parallel)

    def test_benchmark_is_sliced_per_window(self) -> None:
        benchmark = trending_closes(400, base=300.0, drift=0.0001)
        windows = run_walk_forward_test(self.universe, benchmark_prices=benchmark, **self.params)
        out_sample = windows[1].out_sample_result
        self.assertAlmostEqual(
            out_sample.benchmark_returns[0], benchmark[273 + 41] / benchmark[273 + 20] - 1.0, places=12
        )

    def test_summary_decay(self) -> None:
        windows = run_walk_forward_test(self.universe, **self.params)
        summary = summarize_walk_forward(windows)

        in_sharpes = [window.in_sample_result.metrics.sharpe_ratio for window in windows]
        out_sharpes = [window.out_sample_result.metrics.sharpe_ratio for window in windows]
        self.assertEqual(summary.n_windows, 5)
        self.assertAlmostEqual(summary.mean_in_sample_sharpe, sum(in_sharpes) / 5, places=12)
        self.assertAlmostEqual(
            summary.sharpe_decay, summary.mean_in_sample_sharpe - summary.mean_out_sample_sharpe, places=12
        )
        self.assertEqual(summary.as_dict()["n_windows"], 5.0)
        self.assertAlmostEqual(summary.mean_out_sample_sharpe, sum(out_sharpes) / 5, places=12)

    def test_empty_summary(self) -> None:
        summary = summarize_walk_forward([])
        self.assertEqual(summary.n_windows, 0)
        self.assertEqual(summary.sharpe_decay, 0.0)

    def test_empty_universe_rejected(self) -> None:
        with self.assertRaises(WalkForwardError):
            run_walk_forward_test([], **self.params)

    def test_invalid_worker_count_rejected(self) -> None:
        with self.assertRaises(WalkForwardError):
            run_walk_forward_test(self.universe, max_workers=0, **self.params)


if __name__ == "__main__":
    unittest.main()
