"""Scoring strategy interface utilities."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from importlib import import_module
from types import ModuleType

from portfoliolab.core.scoring.indicators import Bar
from portfoliolab.core.scoring.scoring import HardFilterResult, ScoreResult
from portfoliolab.core.scoring.thresholds import ScoreWeights, ScoringThresholds
from portfoliolab.core.utils.errors import StrategyError

DEFAULT_STRATEGY_MODULE = "portfoliolab.strategies.examples.technical_momentum"

HardFilterFn = Callable[[Sequence[Bar], Sequence[float], Sequence[float], ScoringThresholds], HardFilterResult]
BarScoreFn = Callable[[Sequence[Bar], Sequence[float], ScoringThresholds], ScoreResult]
SeriesScoreFn = Callable[[Sequence[float], ScoringThresholds], ScoreResult]
FinalScoreFn = Callable[[float, float, float, float, ScoreWeights], float]

_REQUIRED_CALLABLES: tuple[str, ...] = (
    "apply_hard_filters",
    "calculate_trend_score",
    "calculate_momentum_score",
    "calculate_risk_score",
    "calculate_liquidity_score",
    "calculate_final_score",
)


@dataclass(frozen=True)
class StrategyDefinition:
    """Validated scoring strategy: hard filters, four sub-scores and a final score."""

    strategy_name: str
    apply_hard_filters: HardFilterFn
    calculate_trend_score: BarScoreFn
    calculate_momentum_score: SeriesScoreFn
    calculate_risk_score: BarScoreFn
    calculate_liquidity_score: SeriesScoreFn
    calculate_final_score: FinalScoreFn


def _load_module(module_path: str) -> ModuleType:
    """Import a strategy module by path."""
    try:
        return import_module(module_path)
    except Exception as exc:  # pragma: no cover
        raise StrategyError(f"Unable to import strategy module '{module_path}': {exc}") from exc


def load_strategy(module_path: str = DEFAULT_STRATEGY_MODULE) -> StrategyDefinition:
    """
    Load and validate a scoring strategy module.

    Required module attributes:
    - ``STRATEGY_NAME: str``
    - ``apply_hard_filters(bars, closes, volumes, thresholds) -> HardFilterResult``
    - ``calculate_trend_score(bars, closes, thresholds) -> ScoreResult``
    - ``calculate_momentum_score(closes, thresholds) -> ScoreResult``
    - ``calculate_risk_score(bars, closes, thresholds) -> ScoreResult``
    - ``calculate_liquidity_score(volumes, thresholds) -> ScoreResult``
    - ``calculate_final_score(trend, momentum, risk, liquidity, weights) -> float``

    Args:
        module_path: Python import path for the strategy module.

    Returns:
        Validated strategy definition.
    """
    module = _load_module(module_path)

    strategy_name = getattr(module, "STRATEGY_NAME", None)
    if not isinstance(strategy_name, str) or not strategy_name.strip():
        raise StrategyError(
            f"Strategy module '{module_path}' is missing a valid STRATEGY_NAME string."
        )

    functions = {}
    for name in _REQUIRED_CALLABLES:
        fn = getattr(module, name, None)
        if not callable(fn):
            raise StrategyError(f"Strategy module '{module_path}' is missing callable {name}().")
        functions[name] = fn

    return StrategyDefinition(strategy_name=strategy_name.strip(), **functions)


def default_strategy() -> StrategyDefinition:
    """Return the bundled technical momentum strategy."""
    return load_strategy(DEFAULT_STRATEGY_MODULE)
