"""Technical momentum scoring strategy built on the default scorer."""

from __future__ import annotations

from portfoliolab.core.scoring.scoring import (
    apply_hard_filters,
    calculate_final_score,
    calculate_liquidity_score,
    calculate_momentum_score,
    calculate_risk_score,
    calculate_trend_score,
)

STRATEGY_NAME: str = "technical_momentum"

__all__ = [
    "STRATEGY_NAME",
    "apply_hard_filters",
    "calculate_final_score",
    "calculate_liquidity_score",
    "calculate_momentum_score",
    "calculate_risk_score",
    "calculate_trend_score",
]
