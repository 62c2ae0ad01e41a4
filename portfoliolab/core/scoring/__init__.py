"""Default asset scoring: indicators, hard filters, sub-scores and profiles."""

from portfoliolab.core.scoring.indicators import Bar
from portfoliolab.core.scoring.scoring import (
    HardFilterResult,
    ScoreResult,
    apply_hard_filters,
    calculate_final_score,
    calculate_liquidity_score,
    calculate_momentum_score,
    calculate_risk_score,
    calculate_trend_score,
)
from portfoliolab.core.scoring.thresholds import (
    STRATEGY_PROFILES,
    ScoreWeights,
    ScoringThresholds,
    StrategyProfile,
    get_strategy_profile,
)

__all__ = [
    "Bar",
    "HardFilterResult",
    "STRATEGY_PROFILES",
    "ScoreResult",
    "ScoreWeights",
    "ScoringThresholds",
    "StrategyProfile",
    "apply_hard_filters",
    "calculate_final_score",
    "calculate_liquidity_score",
    "calculate_momentum_score",
    "calculate_risk_score",
    "calculate_trend_score",
    "get_strategy_profile",
]
