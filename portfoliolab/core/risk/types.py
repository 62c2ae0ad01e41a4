"""Result containers for portfolio risk calculations."""

from __future__ import annotations

from dataclasses import dataclass, field

from portfoliolab.core.risk.matrices import NearDuplicatePair


@dataclass(frozen=True)
class VaRResult:
    """Parametric portfolio Value-at-Risk with diversification statistics."""

    undiversified_var: float = 0.0
    diversified_var: float = 0.0
    diversification_benefit: float = 0.0
    portfolio_volatility: float = 0.0
    daily_volatility: float = 0.0
    autocorrelation: float = 0.0
    observations: int = 0
    confidence: float = 0.95
    method: str = "parametric"
    error: str | None = None


@dataclass(frozen=True)
class CVaRResult:
    """Historical Conditional VaR (Expected Shortfall)."""

    cvar: float = 0.0
    cvar_pct: float = 0.0
    confidence: float = 0.95
    tail_observations: int = 0
    error: str | None = None


@dataclass(frozen=True)
class SingleAssetVaR:
    """Historical VaR of one price series."""

    pct: float = 0.0
    value: float = 0.0
    confidence: float = 0.95


@dataclass(frozen=True)
class CorrelationRow:
    """Correlation values of one ticker against every ticker in the report."""

    ticker: str
    values: list[float]


@dataclass(frozen=True)
class CorrelationReport:
    """Correlation matrix summary with the raw distance matrix."""

    matrix: list[CorrelationRow] = field(default_factory=list)
    distance_matrix: list[list[float]] = field(default_factory=list)
    average: float = 0.0
    maximum: float = 0.0
    minimum: float = 0.0
    near_duplicates: list[NearDuplicatePair] = field(default_factory=list)
    error: str | None = None


@dataclass(frozen=True)
class PortfolioRiskMetrics:
    """VaR, CVaR and correlation data for one portfolio."""

    var_metrics: VaRResult
    cvar_metrics: CVaRResult
    correlation_data: CorrelationReport


@dataclass(frozen=True)
class RiskiestAsset:
    """Asset with the highest annualized volatility in the portfolio."""

    ticker: str = "N/A"
    volatility: float = 0.0
    weight: float = 0.0


@dataclass(frozen=True)
class RiskReport:
    """Complete portfolio risk report."""

    portfolio_var: VaRResult
    cvar: CVaRResult
    correlation_data: CorrelationReport
    riskiest_asset: RiskiestAsset
    concentration_risk: str
    diversification_score: float
    error: str | None = None

    def as_dict(self) -> dict[str, float]:
        """Flatten headline numbers for manifests and CLI output."""
        return {
            "diversified_var": self.portfolio_var.diversified_var,
            "undiversified_var": self.portfolio_var.undiversified_var,
            "diversification_benefit": self.portfolio_var.diversification_benefit,
            "portfolio_volatility": self.portfolio_var.portfolio_volatility,
            "daily_volatility": self.portfolio_var.daily_volatility,
            "autocorrelation": self.portfolio_var.autocorrelation,
            "cvar": self.cvar.cvar,
            "cvar_pct": self.cvar.cvar_pct,
            "average_correlation": self.correlation_data.average,
            "diversification_score": self.diversification_score,
        }
