"""Portfolio risk engine exports."""

from portfoliolab.core.risk.alignment import (
    AlignedReturns,
    align_series_by_date,
    align_series_by_length,
    calculate_log_returns,
)
from portfoliolab.core.risk.matrices import (
    NearDuplicatePair,
    RiskMatrices,
    calculate_matrices,
    detect_singularities,
    shrinkage_intensity,
)
from portfoliolab.core.risk.metrics import (
    calculate_correlation_matrix,
    calculate_portfolio_cvar,
    calculate_portfolio_metrics,
    calculate_portfolio_var,
    calculate_var,
    generate_risk_report,
)
from portfoliolab.core.risk.types import CVaRResult, RiskReport, VaRResult

__all__ = [
    "AlignedReturns",
    "CVaRResult",
    "NearDuplicatePair",
    "RiskMatrices",
    "RiskReport",
    "VaRResult",
    "align_series_by_date",
    "align_series_by_length",
    "calculate_correlation_matrix",
    "calculate_log_returns",
    "calculate_matrices",
    "calculate_portfolio_cvar",
    "calculate_portfolio_metrics",
    "calculate_portfolio_var",
    "calculate_var",
    "detect_singularities",
    "generate_risk_report",
    "shrinkage_intensity",
]
