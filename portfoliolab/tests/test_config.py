"""Unit tests for YAML configuration loading."""

from __future__ import annotations

import tempfile
import textwrap
import unittest
from pathlib import Path

from portfoliolab.core.config import (
    dump_config_to_yaml,
    load_config,
    load_config_from_yaml_text,
)
from portfoliolab.core.utils.errors import ConfigLoadError

MINIMAL_YAML = """
data:
  prices_dir: prices
  tickers: [AAA, BBB]
"""


class TestLoadConfig(unittest.TestCase):
    """Validate config parsing, defaults and path resolution."""

    def test_defaults_and_relative_paths(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            root = Path(temp_dir)
            config_path = root / "config.yaml"
            config_path.write_text(MINIMAL_YAML.strip() + "\n", encoding="utf-8")

            config = load_config(config_path)

            self.assertEqual(config.data.prices_dir, (root / "prices").resolve())
            self.assertEqual(config.output.artifacts_dir, (root / "../artifacts").resolve())
            self.assertEqual(config.risk.confidence, 0.95)
            self.assertEqual(config.backtest.rebalance_every, 21)
            self.assertEqual(config.walk_forward.in_sample_period, 252)
            self.assertEqual(config.strategy.resolve_thresholds().min_days_history, 150)

    def test_overrides(self) -> None:
        config = load_config_from_yaml_text(
            textwrap.dedent("""
                data:
                  tickers: [AAA]
                  weights: {AAA: 0.4}
                strategy:
                  profile: sector_rotation
                  thresholds:
                    min_days_history: 90
                    max_atr_pct: 12.5
                  weights:
                    trend: 0.5
                backtest:
                  allocation_method: ERC
                """),
            base_dir=Path("/tmp"),
        )
        thresholds = config.strategy.resolve_thresholds()
        self.assertEqual(thresholds.min_days_history, 90)
        self.assertIsInstance(thresholds.min_days_history, int)
        self.assertEqual(thresholds.max_atr_pct, 12.5)
        self.assertEqual(thresholds.roc_short, 63)
        weights = config.strategy.resolve_weights()
        self.assertEqual(weights.trend, 0.5)
        self.assertEqual(weights.momentum, 0.40)
        self.assertEqual(config.backtest.allocation_method, "inverse_volatility")
        self.assertEqual(config.data.weights, {"AAA": 0.4})

    def test_round_trip_yaml(self) -> None:
        config = load_config_from_yaml_text(MINIMAL_YAML, base_dir=Path("/tmp"))
        reloaded = load_config_from_yaml_text(dump_config_to_yaml(config), base_dir=Path("/tmp"))
        self.assertEqual(config, reloaded)

    def test_missing_file(self) -> None:
        with self.assertRaises(ConfigLoadError):
            load_config(Path("/nonexistent/config.yaml"))

    def test_invalid_values(self) -> None:
        invalid_documents = [
            "data: {tickers: []}",
            "data: {tickers: [AAA, AAA]}",
            "data: {tickers: [AAA], weights: {BBB: 0.5}}",
            "data: {tickers: [AAA]}\nrisk: {confidence: 0.8}",
            "data: {tickers: [AAA]}\nrisk: {capital: 0}",
            "data: {tickers: [AAA]}\nstrategy: {profile: unknown}",
            "data: {tickers: [AAA]}\nstrategy: {thresholds: {ema_huge: 5}}",
            "data: {tickers: [AAA]}\nstrategy: {weights: {beta: 1.0}}",
            "data: {tickers: [AAA]}\nbacktest: {allocation_method: kelly}",
            "data: {tickers: [AAA]}\nbacktest: {top_n: 0}",
            "data: {tickers: [AAA]}\nwalk_forward: {step_size: 0}",
            "- not\n- a mapping",
            "data: [unclosed",
        ]
        for document in invalid_documents:
            with self.subTest(document=document):
                with self.assertRaises(ConfigLoadError):
                    load_config_from_yaml_text(document, base_dir=Path("/tmp"))


if __name__ == "__main__":
    unittest.main()
