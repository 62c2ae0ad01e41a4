"""Capital allocation across ranked assets."""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum

from portfoliolab.core.utils.errors import AllocationError
from portfoliolab.core.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_VOLATILITY_PCT = 20.0
ASSUMED_PAIRWISE_CORRELATION = 0.3


class AllocationMethod(str, Enum):
    """Supported weighting schemes."""

    EQUAL_WEIGHT = "equal_weight"
    SCORE_WEIGHTED = "score_weighted"
    INVERSE_VOLATILITY = "inverse_volatility"
    VOLATILITY_TARGET = "volatility_target"
    HYBRID = "hybrid"

    @classmethod
    def parse(cls, value: str | AllocationMethod) -> AllocationMethod:
        """Resolve a method name; ``erc`` is accepted as an alias of inverse volatility."""
        if isinstance(value, AllocationMethod):
            return value
        normalized = str(value).strip().lower()
        if normalized == "erc":
            return cls.INVERSE_VOLATILITY
        try:
            return cls(normalized)
        except ValueError:
            valid = sorted([item.value for item in cls] + ["erc"])
            raise AllocationError(
                f"Unknown allocation method '{value}'. Valid methods: {valid}"
            ) from None


@dataclass(frozen=True)
class AllocationConfig:
    """Position bounds, volatility target and portfolio size limits."""

    max_position_weight: float = 1.0
    min_position_weight: float = 0.02
    target_volatility: float = 15.0
    max_assets: int = 30
    min_assets: int = 1

    def __post_init__(self) -> None:
        """Validate bounds."""
        if not 0 <= self.min_position_weight <= self.max_position_weight <= 1:
            raise AllocationError("Position weights must satisfy 0 <= min <= max <= 1.")
        if self.target_volatility <= 0:
            raise AllocationError("target_volatility must be > 0.")
        if self.min_assets < 1 or self.max_assets < self.min_assets:
            raise AllocationError("Asset limits must satisfy 1 <= min_assets <= max_assets.")


@dataclass(frozen=True)
class RankedAsset:
    """Scored asset offered to the allocator. ``volatility`` is annualized %."""

    ticker: str
    score: float
    volatility: float | None = None
    name: str | None = None


@dataclass(frozen=True)
class AllocatedAsset:
    """One position of an allocation."""

    ticker: str
    weight: float
    score: float
    volatility: float


@dataclass(frozen=True)
class PortfolioRiskSummary:
    """Heuristic risk profile of an allocation (constant 0.3 pairwise correlation)."""

    portfolio_volatility: float
    diversification_ratio: float
    effective_n_assets: float
    concentration: float
    estimated_max_drawdown: float
    marginal_risk: dict[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class AllocationResult:
    """Allocation output; weights sum to 1."""

    allocation: list[AllocatedAsset]
    method: str
    n_assets: int
    portfolio_risk: PortfolioRiskSummary | None = None

    @property
    def weights(self) -> dict[str, float]:
        """Ticker to weight mapping."""
        return {item.ticker: item.weight for item in self.allocation}


def _volatility_of(asset: RankedAsset) -> float:
    vol = asset.volatility
    if vol is None or not math.isfinite(vol) or vol <= 0:
        return DEFAULT_VOLATILITY_PCT
    return float(vol)


def _clamp_and_normalize(weights: list[float], config: AllocationConfig) -> list[float]:
    clamped = [
        max(config.min_position_weight, min(weight, config.max_position_weight)) for weight in weights
    ]
    total = sum(clamped)
    return [weight / total for weight in clamped]


def _equal_weights(assets: Sequence[RankedAsset]) -> list[float]:
    return [1.0 / len(assets)] * len(assets)


def _score_weights(assets: Sequence[RankedAsset], config: AllocationConfig) -> list[float]:
    raw = [max(0.0, asset.score) / 100.0 for asset in assets]
    total = sum(raw)
    if total <= 0:
        logger.warning("All scores are zero; score weighting falls back to equal weights.")
        return _equal_weights(assets)
    return _clamp_and_normalize([weight / total for weight in raw], config)


def _inverse_volatility_weights(assets: Sequence[RankedAsset], config: AllocationConfig) -> list[float]:
    inverse = [1.0 / _volatility_of(asset) for asset in assets]
    total = sum(inverse)
    return _clamp_and_normalize([value / total for value in inverse], config)


def _volatility_target_weights(assets: Sequence[RankedAsset], config: AllocationConfig) -> list[float]:
    vols = [_volatility_of(asset) for asset in assets]
    target = config.target_volatility
    scaling = target / (sum(vols) / len(vols))
    base = 1.0 / len(assets)
    return _clamp_and_normalize([base * (target / vol) * scaling for vol in vols], config)


def _hybrid_weights(assets: Sequence[RankedAsset], config: AllocationConfig) -> list[float]:
    risk_based = _inverse_volatility_weights(assets, config)
    score_based = _score_weights(assets, config)
    return _clamp_and_normalize(
        [0.5 * first + 0.5 * second for first, second in zip(risk_based, score_based)], config
    )


def calculate_portfolio_risk(allocation: Sequence[AllocatedAsset]) -> PortfolioRiskSummary:
    """
    Estimate portfolio volatility, diversification ratio and concentration.

    Pairwise correlation is assumed constant at 0.3. The drawdown estimate maps
    scores above 70 to 15%, above 50 to 25% and the rest to 35%.
    """
    weights = [item.weight for item in allocation]
    vols = [item.volatility for item in allocation]

    variance = sum(w * w * v * v for w, v in zip(weights, vols))
    for i in range(len(weights)):
        for j in range(i + 1, len(weights)):
            variance += 2 * weights[i] * weights[j] * vols[i] * vols[j] * ASSUMED_PAIRWISE_CORRELATION
    portfolio_vol = math.sqrt(variance)

    weighted_avg_vol = sum(w * v for w, v in zip(weights, vols))
    herfindahl = sum(w * w for w in weights)
    drawdowns = [15.0 if item.score > 70 else 25.0 if item.score > 50 else 35.0 for item in allocation]

    return PortfolioRiskSummary(
        portfolio_volatility=portfolio_vol,
        diversification_ratio=weighted_avg_vol / portfolio_vol if portfolio_vol > 0 else 0.0,
        effective_n_assets=1.0 / herfindahl if herfindahl > 0 else 0.0,
        concentration=herfindahl * 100.0,
        estimated_max_drawdown=sum(w * dd for w, dd in zip(weights, drawdowns)),
        marginal_risk={
            item.ticker: (item.weight * item.volatility / portfolio_vol * 100.0) if portfolio_vol > 0 else 0.0
            for item in allocation
        },
    )


def allocate_capital(
    ranked_assets: Sequence[RankedAsset],
    method: str | AllocationMethod = AllocationMethod.EQUAL_WEIGHT,
    config: AllocationConfig | None = None,
) -> AllocationResult:
    """
    Assign weights to the top-ranked assets.

    Args:
        ranked_assets: Assets ordered best first. Only the first ``max_assets`` are used.
        method: Allocation method name or enum member.
        config: Bounds and limits; defaults to ``AllocationConfig()``.

    Returns:
        Allocation whose weights sum to 1.
    """
    cfg = config or AllocationConfig()
    resolved = AllocationMethod.parse(method)
    selected = list(ranked_assets)[: cfg.max_assets]
    if len(selected) < cfg.min_assets:
        raise AllocationError(
            f"At least {cfg.min_assets} asset(s) required for allocation, got {len(selected)}."
        )

    if resolved is AllocationMethod.EQUAL_WEIGHT:
        weights = _equal_weights(selected)
    elif resolved is AllocationMethod.SCORE_WEIGHTED:
        weights = _score_weights(selected, cfg)
    elif resolved is AllocationMethod.INVERSE_VOLATILITY:
        weights = _inverse_volatility_weights(selected, cfg)
    elif resolved is AllocationMethod.VOLATILITY_TARGET:
        weights = _volatility_target_weights(selected, cfg)
    else:
        weights = _hybrid_weights(selected, cfg)

    allocation = [
        AllocatedAsset(
            ticker=asset.ticker,
            weight=weight,
            score=asset.score,
            volatility=_volatility_of(asset),
        )
        for asset, weight in zip(selected, weights)
    ]
    return AllocationResult(
        allocation=allocation,
        method=resolved.value,
        n_assets=len(selected),
        portfolio_risk=calculate_portfolio_risk(allocation),
    )
