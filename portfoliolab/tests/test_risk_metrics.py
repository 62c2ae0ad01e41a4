"""Unit tests for portfolio VaR, CVaR and the risk report."""

from __future__ import annotations

import math
import unittest

import numpy as np

from portfoliolab.core.data.types import AssetSeries
from portfoliolab.core.risk.metrics import (
    annualization_factor,
    autocorrelation,
    calculate_correlation_matrix,
    calculate_portfolio_cvar,
    calculate_portfolio_var,
    calculate_var,
    generate_risk_report,
    z_score,
)
from portfoliolab.tests.helpers import (
    closes_from_log_returns,
    make_asset_series,
    orthogonal_returns,
    trending_closes,
)

CAPITAL = 100_000.0
WEIGHTS = (0.5, 0.3, 0.2)
SCALES = (0.01, 0.02, 0.015)


def _uncorrelated_portfolio(n_observations: int = 252):
    returns = orthogonal_returns(n_observations, [5, 9, 14], SCALES)
    assets = [
        make_asset_series(ticker, closes_from_log_returns(returns[:, i]), WEIGHTS[i])
        for i, ticker in enumerate(("AAA", "BBB", "CCC"))
    ]
    return assets, returns


class TestParametricVaR(unittest.TestCase):
    """Validate diversified and undiversified VaR."""

    def test_uncorrelated_assets_match_closed_form(self) -> None:
        assets, returns = _uncorrelated_portfolio()
        result = calculate_portfolio_var(assets, CAPITAL, confidence=0.95)

        self.assertIsNone(result.error)
        self.assertEqual(result.observations, 252)
        sigmas = returns.std(axis=0, ddof=1)
        weights = np.asarray(WEIGHTS)
        expected_diversified = 1.65 * math.sqrt(float(np.sum(weights**2 * sigmas**2))) * CAPITAL
        expected_undiversified = 1.65 * float(np.dot(weights, sigmas)) * CAPITAL

        self.assertAlmostEqual(result.diversified_var, expected_diversified, places=6)
        self.assertAlmostEqual(result.undiversified_var, expected_undiversified, places=6)
        self.assertLess(result.diversified_var, result.undiversified_var)
        self.assertAlmostEqual(
            result.diversification_benefit,
            (1.0 - expected_diversified / expected_undiversified) * 100.0,
            places=9,
        )

    def test_diversified_below_undiversified_for_partial_correlation(self) -> None:
        base = orthogonal_returns(252, [5, 9, 14], SCALES)
        mixed = np.column_stack([base[:, 0], 0.5 * base[:, 0] + base[:, 1], base[:, 2] - 0.3 * base[:, 1]])
        assets = [
            make_asset_series(ticker, closes_from_log_returns(mixed[:, i]), WEIGHTS[i])
            for i, ticker in enumerate(("AAA", "BBB", "CCC"))
        ]
        result = calculate_portfolio_var(assets, CAPITAL)
        self.assertIsNone(result.error)
        self.assertLess(result.diversified_var, result.undiversified_var)
        self.assertGreater(result.diversification_benefit, 0.0)

    def test_single_asset_is_an_error_result(self) -> None:
        asset = make_asset_series("AAA", trending_closes(100), 1.0)
        result = calculate_portfolio_var([asset], CAPITAL)
        self.assertIsNotNone(result.error)
        self.assertEqual(result.diversified_var, 0.0)

    def test_short_history_is_an_error_result(self) -> None:
        first = make_asset_series("AAA", trending_closes(20), 0.5)
        second = make_asset_series("BBB", trending_closes(20, base=80.0), 0.5)
        result = calculate_portfolio_var([first, second], CAPITAL)
        self.assertIsNotNone(result.error)
        self.assertEqual(result.undiversified_var, 0.0)

    def test_undated_float_prices(self) -> None:
        _, returns = _uncorrelated_portfolio()
        dated = [
            make_asset_series(ticker, closes_from_log_returns(returns[:, i]), WEIGHTS[i])
            for i, ticker in enumerate(("AAA", "BBB", "CCC"))
        ]
        undated = [
            AssetSeries(
                ticker=ticker,
                weight=WEIGHTS[i],
                prices=tuple(closes_from_log_returns(returns[:, i])),
            )
            for i, ticker in enumerate(("AAA", "BBB", "CCC"))
        ]

        expected = calculate_portfolio_var(dated, CAPITAL)
        result = calculate_portfolio_var(undated, CAPITAL)

        self.assertIsNone(result.error)
        self.assertEqual(result.observations, 252)
        self.assertAlmostEqual(result.diversified_var, expected.diversified_var, places=9)
        self.assertAlmostEqual(result.undiversified_var, expected.undiversified_var, places=9)

    def test_z_scores(self) -> None:
        self.assertEqual(z_score(0.90), 1.28)
        self.assertEqual(z_score(0.95), 1.65)
        self.assertEqual(z_score(0.99), 2.33)
        self.assertEqual(z_score(0.97), 1.65)


class TestAutocorrelation(unittest.TestCase):
    """Validate serial-correlation time scaling."""

    def test_short_series_has_zero_autocorrelation(self) -> None:
        self.assertEqual(autocorrelation([0.01, -0.02, 0.03, 0.0, 0.01]), 0.0)

    def test_constant_series_has_zero_autocorrelation(self) -> None:
        for value in (0.03, 0.1, 0.0217):
            with self.subTest(value=value):
                self.assertEqual(autocorrelation([value] * 40), 0.0)

    def test_alternating_series_is_negative(self) -> None:
        values = [0.01 if i % 2 == 0 else -0.01 for i in range(50)]
        self.assertLess(autocorrelation(values), -0.9)

    def test_var_scales_volatility_for_autocorrelated_portfolio(self) -> None:
        returns = orthogonal_returns(252, [2, 3], (0.01, 0.02))
        weights = (0.6, 0.4)
        assets = [
            make_asset_series(ticker, closes_from_log_returns(returns[:, i]), weights[i])
            for i, ticker in enumerate(("AAA", "BBB"))
        ]
        result = calculate_portfolio_var(assets, CAPITAL)

        rho = autocorrelation(returns @ np.asarray(weights))
        self.assertGreater(rho, 0.1)
        self.assertAlmostEqual(result.autocorrelation, rho, places=9)
        self.assertAlmostEqual(
            result.portfolio_volatility,
            result.daily_volatility * math.sqrt(252 * (1.0 + 2.0 * rho)),
            places=9,
        )
        self.assertGreater(result.portfolio_volatility, result.daily_volatility * math.sqrt(252))

    def test_var_keeps_square_root_of_252_without_autocorrelation(self) -> None:
        returns = orthogonal_returns(252, [63, 64], (0.01, 0.02))
        assets = [
            make_asset_series(ticker, closes_from_log_returns(returns[:, i]), 0.5)
            for i, ticker in enumerate(("AAA", "BBB"))
        ]
        result = calculate_portfolio_var(assets, CAPITAL)

        self.assertLessEqual(abs(result.autocorrelation), 0.1)
        self.assertAlmostEqual(
            result.portfolio_volatility, result.daily_volatility * math.sqrt(252), places=9
        )

    def test_scaling_factor(self) -> None:
        self.assertAlmostEqual(annualization_factor(0.05), math.sqrt(252), places=12)
        self.assertAlmostEqual(annualization_factor(0.2), math.sqrt(252 * 1.4), places=12)
        self.assertEqual(annualization_factor(-0.6), 0.0)


class TestHistoricalRisk(unittest.TestCase):
    """Validate CVaR and single-asset VaR."""

    def test_cvar_averages_worst_tail(self) -> None:
        assets, returns = _uncorrelated_portfolio()
        result = calculate_portfolio_cvar(assets, CAPITAL, confidence=0.95)

        portfolio = np.sort(returns @ np.asarray(WEIGHTS))
        tail = portfolio[: int(math.floor(0.05 * 252)) + 1]
        self.assertEqual(result.tail_observations, 13)
        self.assertAlmostEqual(result.cvar_pct, float(tail.mean()) * 100.0, places=9)
        self.assertAlmostEqual(result.cvar, abs(float(tail.mean()) * CAPITAL), places=6)

    def test_single_asset_var(self) -> None:
        closes = trending_closes(120)
        result = calculate_var(closes, confidence=0.95, capital=1_000.0)
        returns = np.sort(np.log(np.asarray(closes[1:]) / np.asarray(closes[:-1])))
        expected = float(returns[int(math.floor(0.05 * returns.shape[0]))])
        self.assertAlmostEqual(result.pct, expected * 100.0, places=9)
        self.assertAlmostEqual(result.value, expected * 1_000.0, places=9)

    def test_single_asset_var_short_history(self) -> None:
        result = calculate_var(trending_closes(10))
        self.assertEqual(result.pct, 0.0)
        self.assertEqual(result.value, 0.0)


class TestRiskReport(unittest.TestCase):
    """Validate correlation report and the full risk report."""

    def test_correlation_report(self) -> None:
        assets, _ = _uncorrelated_portfolio()
        report = calculate_correlation_matrix(assets)
        self.assertIsNone(report.error)
        self.assertEqual([row.ticker for row in report.matrix], ["AAA", "BBB", "CCC"])
        self.assertAlmostEqual(report.average, 0.0, places=9)
        self.assertEqual(report.near_duplicates, [])
        for i in range(3):
            self.assertEqual(report.matrix[i].values[i], 1.0)
            self.assertAlmostEqual(report.distance_matrix[i][i], 0.0, places=6)

    def test_report_flags_riskiest_asset_and_concentration(self) -> None:
        assets, _ = _uncorrelated_portfolio()
        report = generate_risk_report(assets, CAPITAL)
        self.assertIsNone(report.error)
        self.assertEqual(report.riskiest_asset.ticker, "BBB")
        self.assertEqual(report.concentration_risk, "high")
        self.assertAlmostEqual(report.diversification_score, 100.0, places=6)
        self.assertIn("diversified_var", report.as_dict())

    def test_report_failure_is_neutral(self) -> None:
        asset = make_asset_series("AAA", trending_closes(10), 1.0)
        report = generate_risk_report([asset], CAPITAL)
        self.assertIsNotNone(report.error)
        self.assertEqual(report.portfolio_var.diversified_var, 0.0)


if __name__ == "__main__":
    unittest.main()
