"""Unit tests for log returns and time-series alignment."""

from __future__ import annotations

import math
import unittest

from portfoliolab.core.data.types import AssetSeries, PricePoint
from portfoliolab.core.risk.alignment import (
    align_series_by_date,
    align_series_by_length,
    calculate_log_returns,
)
from portfoliolab.core.utils.errors import (
    AlignmentError,
    DataValidationError,
    InsufficientHistoryError,
)
from portfoliolab.tests.helpers import business_dates, make_asset_series, trending_closes


class TestLogReturns(unittest.TestCase):
    """Validate log return calculation."""

    def test_log_returns(self) -> None:
        returns = calculate_log_returns([100.0, 110.0, 99.0])
        self.assertEqual(returns.shape[0], 2)
        self.assertAlmostEqual(returns[0], math.log(1.1), places=12)
        self.assertAlmostEqual(returns[1], math.log(0.9), places=12)

    def test_invalid_pairs_are_skipped(self) -> None:
        with self.assertLogs("portfoliolab.core.risk.alignment", level="WARNING"):
            returns = calculate_log_returns([100.0, float("nan"), 105.0, 0.0, 110.0, 121.0])
        self.assertEqual(returns.shape[0], 1)
        self.assertAlmostEqual(returns[0], math.log(1.1), places=12)


class TestAlignment(unittest.TestCase):
    """Validate date and length alignment."""

    def test_align_by_date_uses_common_dates(self) -> None:
        dates = business_dates(60)
        closes = trending_closes(60)
        full = AssetSeries(
            ticker="FULL",
            weight=0.5,
            prices=tuple(PricePoint(close=c, date=d) for c, d in zip(closes, dates)),
        )
        # Every fifth date is missing from the second asset.
        kept = [(c, d) for i, (c, d) in enumerate(zip(closes, dates)) if i % 5 != 0]
        gappy = AssetSeries(
            ticker="GAPPY",
            weight=0.5,
            prices=tuple(PricePoint(close=c, date=d) for c, d in kept),
        )

        aligned = align_series_by_date([full, gappy])

        self.assertEqual(aligned.tickers, ["FULL", "GAPPY"])
        self.assertEqual(aligned.returns_matrix.shape, (len(kept) - 1, 2))
        self.assertEqual(aligned.n_observations, len(kept) - 1)
        self.assertEqual(aligned.dates, [d for _, d in kept][1:])
        self.assertAlmostEqual(
            aligned.returns_matrix[0, 0], aligned.returns_matrix[0, 1], places=12
        )

    def test_align_by_date_requires_thirty_common_dates(self) -> None:
        first = make_asset_series("A", trending_closes(29), 0.5)
        second = make_asset_series("B", trending_closes(29, base=80.0), 0.5)
        with self.assertRaises(InsufficientHistoryError):
            align_series_by_date([first, second])

    def test_nan_close_on_common_date_is_alignment_error(self) -> None:
        dates = business_dates(40)
        clean = AssetSeries(
            ticker="CLEAN",
            weight=0.5,
            prices=tuple(PricePoint(close=c, date=d) for c, d in zip(trending_closes(40), dates)),
        )
        broken_closes = trending_closes(40, base=80.0)
        broken_closes[20] = float("nan")
        broken = AssetSeries(
            ticker="BROKEN",
            weight=0.5,
            prices=tuple(PricePoint(close=c, date=d) for c, d in zip(broken_closes, dates)),
        )
        with self.assertRaises(AlignmentError):
            align_series_by_date([clean, broken])

    def test_duplicate_dates_keep_last_observation(self) -> None:
        dates = business_dates(40)
        closes = trending_closes(40)
        first = AssetSeries(
            ticker="A",
            weight=0.5,
            prices=tuple(PricePoint(close=c, date=d) for c, d in zip(closes, dates)),
        )
        repeated = [PricePoint(close=c, date=d) for c, d in zip(closes, dates)]
        repeated.insert(1, PricePoint(close=1.0, date=dates[1]))
        second = AssetSeries(ticker="B", weight=0.5, prices=tuple(repeated))

        aligned = align_series_by_date([first, second])

        self.assertEqual(aligned.n_observations, 39)
        self.assertAlmostEqual(aligned.returns_matrix[0, 0], aligned.returns_matrix[0, 1], places=12)

    def test_bare_float_prices_align_by_length(self) -> None:
        first = AssetSeries(ticker="A", weight=0.5, prices=tuple(trending_closes(50)))
        second = AssetSeries(ticker="B", weight=0.5, prices=tuple(trending_closes(50, base=80.0)))

        self.assertFalse(first.has_dates)
        self.assertEqual(first.closes(), trending_closes(50))
        aligned = align_series_by_date([first, second])

        self.assertEqual(aligned.tickers, ["A", "B"])
        self.assertEqual(aligned.returns_matrix.shape, (49, 2))

    def test_missing_float_price_becomes_nan(self) -> None:
        series = AssetSeries(ticker="A", weight=0.5, prices=(None, 101.0))
        self.assertTrue(math.isnan(series.prices[0].close))
        self.assertEqual(series.prices[1].close, 101.0)

    def test_invalid_price_value_rejected(self) -> None:
        with self.assertRaises(DataValidationError):
            AssetSeries(ticker="A", weight=0.5, prices=("abc",))

    def test_align_by_length_truncates_to_shortest_tail(self) -> None:
        long_closes = trending_closes(80)
        short_closes = trending_closes(40, base=70.0)
        first = make_asset_series("LONG", long_closes, 0.5, with_dates=False)
        second = make_asset_series("SHORT", short_closes, 0.5, with_dates=False)

        aligned = align_series_by_length([first, second])

        self.assertEqual(aligned.returns_matrix.shape, (39, 2))
        self.assertAlmostEqual(
            aligned.returns_matrix[-1, 0], math.log(long_closes[-1] / long_closes[-2]), places=12
        )
        self.assertEqual(aligned.dates, [])

    def test_align_by_date_falls_back_without_dates(self) -> None:
        first = make_asset_series("A", trending_closes(50), 0.5, with_dates=False)
        second = make_asset_series("B", trending_closes(50, base=80.0), 0.5, with_dates=False)
        aligned = align_series_by_date([first, second])
        self.assertEqual(aligned.n_observations, 49)

    def test_empty_input_rejected(self) -> None:
        with self.assertRaises(DataValidationError):
            align_series_by_date([])

    def test_weight_bounds_validated(self) -> None:
        with self.assertRaises(DataValidationError):
            make_asset_series("A", trending_closes(40), 1.5)


if __name__ == "__main__":
    unittest.main()
