"""Default hard filters, sub-scores and weighted final score."""

from __future__ import annotations

import math
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, TypeVar

from portfoliolab.core.scoring import indicators as ind
from portfoliolab.core.scoring.indicators import Bar
from portfoliolab.core.scoring.thresholds import ScoreWeights, ScoringThresholds
from portfoliolab.core.utils.errors import IndicatorError

T = TypeVar("T")

CRITICAL_ILLIQUIDITY_VOLUME = 1_000.0
REFERENCE_VOLATILITY_PCT = 20.0


@dataclass(frozen=True)
class ScoreResult:
    """
    Sub-score with supporting details.

    Attributes:
        score: Points awarded (0-100 scale).
        details: Component points and raw indicator values.
        missing: Components that fell back to a neutral default.
    """

    score: float
    details: dict[str, Any] = field(default_factory=dict)
    missing: tuple[str, ...] = ()


@dataclass(frozen=True)
class HardFilterResult:
    """Outcome of the hard filters. ``reasons`` also carries non-blocking warnings."""

    passed: bool
    reasons: tuple[str, ...] = ()


def _evaluate(name: str, compute: Callable[[], T], default: T, missing: list[str]) -> T:
    """Run one scoring component, mapping missing data to its neutral default."""
    try:
        return compute()
    except IndicatorError:
        missing.append(name)
        return default


def _tiered(value: float, tiers: Sequence[tuple[float, float]], floor: float) -> float:
    """Points of the first ``(bound, points)`` tier where ``value > bound``."""
    for bound, points in tiers:
        if value > bound:
            return points
    return floor


def _tiered_below(value: float, tiers: Sequence[tuple[float, float]], floor: float) -> float:
    """Points of the first ``(bound, points)`` tier where ``value < bound``."""
    for bound, points in tiers:
        if value < bound:
            return points
    return floor


def apply_hard_filters(
    bars: Sequence[Bar],
    closes: Sequence[float],
    volumes: Sequence[float],
    thresholds: ScoringThresholds,
) -> HardFilterResult:
    """
    Reject assets with too little history or critical illiquidity.

    Low volume, high ATR% and deep 52-week drawdowns only add warnings.
    """
    reasons: list[str] = []
    rejected = False

    if len(closes) < thresholds.min_days_history:
        rejected = True
        reasons.append(
            f"Insufficient history ({len(closes)} < {thresholds.min_days_history})"
        )

    if len(volumes) >= 20:
        avg_volume_20 = ind.sma(volumes, 20)
        if avg_volume_20 < CRITICAL_ILLIQUIDITY_VOLUME:
            rejected = True
            reasons.append(f"Critical illiquidity ({avg_volume_20:.0f})")
        elif avg_volume_20 < thresholds.min_volume_20d:
            reasons.append(f"Warning: low volume ({avg_volume_20:.0f})")

    skipped: list[str] = []
    if len(bars) >= 20:
        atr_pct = _evaluate(
            "atr_pct", lambda: ind.atr_percent(bars, min(14, len(bars) - 1)), None, skipped
        )
        if atr_pct is not None and atr_pct > thresholds.max_atr_pct:
            reasons.append(f"Warning: high volatility ({atr_pct:.2f}%)")

    if len(closes) >= 100:
        drawdown = _evaluate(
            "max_drawdown",
            lambda: ind.max_drawdown(closes, min(252, len(closes))),
            None,
            skipped,
        )
        if drawdown is not None and drawdown > thresholds.max_drawdown_52w:
            reasons.append(f"Warning: deep drawdown ({drawdown:.1f}%)")

    return HardFilterResult(passed=not rejected, reasons=tuple(reasons))


def calculate_trend_score(
    bars: Sequence[Bar], closes: Sequence[float], thresholds: ScoringThresholds
) -> ScoreResult:
    """Trend score: EMA position (40), consistency above long EMA (30), ADX strength (30)."""
    missing: list[str] = []
    last = float(closes[-1])
    ema_medium = _evaluate("ema_medium", lambda: ind.ema(closes, thresholds.ema_medium), None, missing)
    ema_long = _evaluate("ema_long", lambda: ind.ema(closes, thresholds.ema_long), None, missing)

    if not ema_medium and not ema_long:
        return ScoreResult(
            score=0.0,
            details={"error": "Insufficient history for EMAs"},
            missing=tuple(missing) or ("ema_medium", "ema_long"),
        )

    position = 0.0
    if ema_medium and ema_long:
        if last > ema_long and ema_medium > ema_long:
            position = 40.0
        elif last > ema_long:
            position = 25.0
        elif last > ema_medium:
            position = 15.0
    elif ema_medium and last > ema_medium:
        position = 20.0

    consistency = 15.0
    if ema_long and len(closes) >= 200:
        lookback = min(200, len(closes) - thresholds.ema_long)
        consistency = _evaluate(
            "days_above_ema",
            lambda: ind.days_above_ema(closes, thresholds.ema_long, lookback) / 100.0 * 30.0,
            15.0,
            missing,
        )

    adx_points = 15.0
    if len(bars) >= 20:
        adx_points = _evaluate(
            "adx",
            lambda: min(30.0, ind.adx(bars, min(thresholds.adx_period, len(bars) - 1)) / 40.0 * 30.0),
            15.0,
            missing,
        )

    return ScoreResult(
        score=position + consistency + adx_points,
        details={
            "position_score": position,
            "consistency_score": round(consistency, 1),
            "adx_score": round(adx_points, 1),
            "ema_medium": ema_medium,
            "ema_long": ema_long,
        },
        missing=tuple(missing),
    )


def calculate_momentum_score(closes: Sequence[float], thresholds: ScoringThresholds) -> ScoreResult:
    """Momentum score: 6m ROC (25), 12m ROC (35), 20-day thrust (20), RSI zone (20)."""
    missing: list[str] = []
    n = len(closes)

    roc_short = 0.0
    if n >= thresholds.roc_short + 1:
        roc_short = _evaluate("roc_short", lambda: ind.roc(closes, thresholds.roc_short), 0.0, missing)
    roc_long = 0.0
    if n >= thresholds.roc_long + 1:
        roc_long = _evaluate("roc_long", lambda: ind.roc(closes, thresholds.roc_long), 0.0, missing)

    mom_short = _tiered(roc_short, ((15.0, 25.0), (5.0, 15.0), (0.0, 8.0), (-10.0, 3.0)), 0.0)
    mom_long = _tiered(roc_long, ((20.0, 35.0), (10.0, 25.0), (0.0, 12.0), (-15.0, 5.0)), 0.0)

    roc_20 = 0.0
    thrust = 0.0
    if n >= 21:
        roc_20 = _evaluate("roc_20", lambda: ind.roc(closes, 20), None, missing)
        if roc_20 is None:
            roc_20, thrust = 0.0, 5.0
        else:
            thrust = _tiered(roc_20, ((5.0, 20.0), (2.0, 12.0), (0.0, 5.0)), 0.0)

    rsi_value = 50.0
    rsi_points = 10.0
    if n >= 20:
        value = _evaluate("rsi", lambda: ind.rsi(closes, min(thresholds.rsi_period, n - 1)), None, missing)
        if value is not None:
            rsi_value = value
            if 50.0 <= value <= 70.0:
                rsi_points = 20.0
            elif value > 70.0:
                rsi_points = 10.0
            elif value >= 40.0:
                rsi_points = 12.0
            else:
                rsi_points = 5.0

    return ScoreResult(
        score=mom_short + mom_long + thrust + rsi_points,
        details={
            "mom6_score": mom_short,
            "mom12_score": mom_long,
            "thrust_score": thrust,
            "rsi_score": rsi_points,
            "roc_short": round(roc_short, 2),
            "roc_long": round(roc_long, 2),
            "rsi": round(rsi_value, 1),
        },
        missing=tuple(missing),
    )


def calculate_risk_score(
    bars: Sequence[Bar], closes: Sequence[float], thresholds: ScoringThresholds
) -> ScoreResult:
    """Risk score (higher is safer): ATR% (30), relative volatility (35), 52-week drawdown (35)."""
    missing: list[str] = []
    n = len(closes)

    atr_pct = 5.0
    atr_points = 15.0
    if len(bars) >= 20:
        value = _evaluate(
            "atr_pct",
            lambda: ind.atr_percent(bars, min(thresholds.atr_period, len(bars) - 1)),
            None,
            missing,
        )
        if value is not None:
            atr_pct = value
            atr_points = _tiered_below(value, ((2.0, 30.0), (4.0, 20.0), (6.0, 10.0), (10.0, 5.0)), 2.0)

    vol = REFERENCE_VOLATILITY_PCT
    relative_vol = 1.0
    vol_points = 15.0
    if n >= 60:
        value = _evaluate("volatility", lambda: ind.volatility(closes, min(252, n - 1)), None, missing)
        if value is not None:
            vol = value
            relative_vol = value / REFERENCE_VOLATILITY_PCT
            vol_points = _tiered_below(
                relative_vol, ((0.8, 35.0), (1.2, 25.0), (1.5, 12.0), (2.0, 6.0)), 3.0
            )

    drawdown = 30.0
    dd_points = 15.0
    if n >= 100:
        value = _evaluate("max_drawdown", lambda: ind.max_drawdown(closes, min(252, n)), None, missing)
        if value is not None:
            drawdown = value
            dd_points = _tiered_below(value, ((15.0, 35.0), (25.0, 25.0), (35.0, 12.0), (50.0, 6.0)), 3.0)

    return ScoreResult(
        score=atr_points + vol_points + dd_points,
        details={
            "atr_score": atr_points,
            "vol_score": vol_points,
            "dd_score": dd_points,
            "atr_pct": round(atr_pct, 2),
            "volatility": round(vol, 2),
            "relative_vol": round(relative_vol, 2),
            "max_drawdown": round(drawdown, 2),
        },
        missing=tuple(missing),
    )


def calculate_liquidity_score(volumes: Sequence[float], thresholds: ScoringThresholds) -> ScoreResult:
    """Liquidity score: 20-day volume (40), 60-day volume (30), recent volume ratio (30)."""
    missing: list[str] = []
    n = len(volumes)

    avg_20 = 0.0
    points_20 = 10.0
    if n >= 20:
        value = _evaluate("avg_volume_20", lambda: ind.sma(volumes, 20), None, missing)
        if value is not None:
            avg_20 = value
            floor_20 = thresholds.min_volume_20d
            points_20 = _tiered(value, ((floor_20 * 3, 40.0), (floor_20 * 1.5, 25.0), (floor_20, 15.0)), 5.0)

    avg_60 = 0.0
    points_60 = 10.0
    ratio = 1.0
    ratio_points = 15.0
    if n >= 60:
        value = _evaluate("avg_volume_60", lambda: ind.sma(volumes, 60), None, missing)
        if value is not None:
            avg_60 = value
            floor_60 = thresholds.min_volume_60d
            points_60 = _tiered(value, ((floor_60 * 2, 30.0), (floor_60 * 1.2, 20.0), (floor_60, 10.0)), 5.0)
        value = _evaluate("volume_ratio", lambda: ind.volume_ratio(volumes, 20, 60), None, missing)
        if value is not None:
            ratio = value
            ratio_points = _tiered(value, ((1.3, 30.0), (1.1, 20.0), (0.9, 12.0)), 8.0)

    return ScoreResult(
        score=points_20 + points_60 + ratio_points,
        details={
            "vol20_score": points_20,
            "vol60_score": points_60,
            "ratio_score": ratio_points,
            "avg_volume_20": round(avg_20),
            "avg_volume_60": round(avg_60),
            "volume_ratio": round(ratio, 2),
        },
        missing=tuple(missing),
    )


def calculate_final_score(
    trend: float, momentum: float, risk: float, liquidity: float, weights: ScoreWeights
) -> int:
    """Weighted average of the sub-scores, clamped to ``[0, 100]`` and rounded."""
    weighted = (
        trend / 100.0 * weights.trend
        + momentum / 100.0 * weights.momentum
        + risk / 100.0 * weights.risk
        + liquidity / 100.0 * weights.liquidity
    )
    score = weighted / weights.total * 100.0
    return int(math.floor(min(100.0, max(0.0, score)) + 0.5))
