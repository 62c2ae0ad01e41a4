"""Immutable scoring thresholds, score weights and named strategy profiles."""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from typing import Any

from portfoliolab.core.utils.errors import ConfigLoadError

_INTEGER_FIELDS: tuple[str, ...] = (
    "ema_short",
    "ema_medium",
    "ema_long",
    "rsi_period",
    "atr_period",
    "adx_period",
    "roc_short",
    "roc_long",
    "min_days_history",
)


@dataclass(frozen=True)
class ScoringThresholds:
    """
    Numeric thresholds shared by the hard filters and the sub-score functions.

    Attributes:
        ema_short: Short EMA period.
        ema_medium: Medium EMA period used for trend position.
        ema_long: Long EMA period used for trend position and consistency.
        rsi_period: RSI lookback.
        atr_period: ATR lookback.
        adx_period: ADX lookback.
        roc_short: Short rate-of-change window (trading days).
        roc_long: Long rate-of-change window (trading days).
        min_days_history: Minimum closes required before an asset is scored.
        min_volume_20d: Soft 20-day average volume floor.
        min_volume_60d: Soft 60-day average volume floor.
        max_atr_pct: ATR percentage above which a volatility warning is raised.
        max_drawdown_52w: 52-week drawdown (%) above which a warning is raised.
    """

    ema_short: int = 20
    ema_medium: int = 50
    ema_long: int = 200
    rsi_period: int = 14
    atr_period: int = 14
    adx_period: int = 14
    roc_short: int = 126
    roc_long: int = 252
    min_days_history: int = 150
    min_volume_20d: float = 5_000.0
    min_volume_60d: float = 2_000.0
    max_atr_pct: float = 25.0
    max_drawdown_52w: float = 85.0

    def __post_init__(self) -> None:
        """Validate threshold ranges."""
        for name in _INTEGER_FIELDS:
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise ConfigLoadError(f"Scoring threshold '{name}' must be a positive integer.")
        if self.ema_short > self.ema_medium or self.ema_medium > self.ema_long:
            raise ConfigLoadError("EMA periods must satisfy ema_short <= ema_medium <= ema_long.")
        if self.roc_short > self.roc_long:
            raise ConfigLoadError("roc_short must be <= roc_long.")
        if self.min_volume_20d < 0 or self.min_volume_60d < 0:
            raise ConfigLoadError("Minimum volume thresholds must be >= 0.")
        if self.max_atr_pct <= 0:
            raise ConfigLoadError("max_atr_pct must be > 0.")
        if not 0 < self.max_drawdown_52w <= 100:
            raise ConfigLoadError("max_drawdown_52w must be within (0, 100].")

    @classmethod
    def with_defaults(cls, **overrides: Any) -> ScoringThresholds:
        """
        Build thresholds from documented defaults plus explicit overrides.

        Args:
            **overrides: Field values replacing the defaults.

        Returns:
            Validated thresholds.
        """
        known = {item.name for item in fields(cls)}
        unknown = sorted(set(overrides) - known)
        if unknown:
            raise ConfigLoadError(f"Unknown scoring thresholds: {unknown}")
        return cls(**overrides)

    def override(self, **changes: Any) -> ScoringThresholds:
        """Return a validated copy with selected fields replaced."""
        known = {item.name for item in fields(self)}
        unknown = sorted(set(changes) - known)
        if unknown:
            raise ConfigLoadError(f"Unknown scoring thresholds: {unknown}")
        return replace(self, **changes)


@dataclass(frozen=True)
class ScoreWeights:
    """Relative weights of the four sub-scores in the final score."""

    trend: float = 0.30
    momentum: float = 0.30
    risk: float = 0.25
    liquidity: float = 0.15

    def __post_init__(self) -> None:
        """Validate weights."""
        values = (self.trend, self.momentum, self.risk, self.liquidity)
        if any(value < 0 for value in values):
            raise ConfigLoadError("Score weights must be >= 0.")
        if sum(values) <= 0:
            raise ConfigLoadError("Score weights must not all be zero.")

    @property
    def total(self) -> float:
        """Sum of all weights."""
        return self.trend + self.momentum + self.risk + self.liquidity


@dataclass(frozen=True)
class StrategyProfile:
    """Named combination of score weights and thresholds."""

    key: str
    name: str
    description: str
    weights: ScoreWeights
    thresholds: ScoringThresholds


STRATEGY_PROFILES: dict[str, StrategyProfile] = {
    "momentum_aggressive": StrategyProfile(
        key="momentum_aggressive",
        name="Aggressive Momentum",
        description="Favors strong 6 and 12 month relative strength.",
        weights=ScoreWeights(trend=0.25, momentum=0.45, risk=0.15, liquidity=0.15),
        thresholds=ScoringThresholds.with_defaults(
            min_volume_20d=5_000.0,
            min_volume_60d=2_000.0,
            max_atr_pct=25.0,
            min_days_history=126,
            max_drawdown_52w=85.0,
        ),
    ),
    "trend_conservative": StrategyProfile(
        key="trend_conservative",
        name="Conservative Trend",
        description="Established uptrends with contained volatility.",
        weights=ScoreWeights(trend=0.45, momentum=0.20, risk=0.25, liquidity=0.10),
        thresholds=ScoringThresholds.with_defaults(
            min_volume_20d=5_000.0,
            min_volume_60d=3_000.0,
            max_atr_pct=10.0,
            min_days_history=300,
            max_drawdown_52w=60.0,
        ),
    ),
    "balanced": StrategyProfile(
        key="balanced",
        name="Balanced",
        description="Even blend of trend, momentum and risk control.",
        weights=ScoreWeights(trend=0.30, momentum=0.30, risk=0.25, liquidity=0.15),
        thresholds=ScoringThresholds.with_defaults(
            min_volume_20d=5_000.0,
            min_volume_60d=2_000.0,
            max_atr_pct=25.0,
            min_days_history=150,
            max_drawdown_52w=85.0,
        ),
    ),
    "sector_rotation": StrategyProfile(
        key="sector_rotation",
        name="Sector Rotation",
        description="Shorter momentum windows for rotating between liquid leaders.",
        weights=ScoreWeights(trend=0.20, momentum=0.40, risk=0.20, liquidity=0.20),
        thresholds=ScoringThresholds.with_defaults(
            roc_short=63,
            roc_long=189,
            min_volume_20d=20_000.0,
            min_volume_60d=15_000.0,
            max_atr_pct=13.0,
            min_days_history=250,
            max_drawdown_52w=70.0,
        ),
    ),
}


def get_strategy_profile(key: str) -> StrategyProfile:
    """Look up a named strategy profile."""
    try:
        return STRATEGY_PROFILES[key]
    except KeyError:
        raise ConfigLoadError(
            f"Unknown strategy profile '{key}'. Available: {sorted(STRATEGY_PROFILES)}"
        ) from None
