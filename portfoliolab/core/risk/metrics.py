"""Portfolio Value-at-Risk, Expected Shortfall and diversification metrics.

Public functions in this module never raise: failures are logged and turned
into neutral results that carry a human-readable ``error`` message.
"""

from __future__ import annotations

import math
from collections.abc import Sequence

import numpy as np

from portfoliolab.core.data.types import AssetSeries
from portfoliolab.core.risk.alignment import (
    MIN_OBSERVATIONS,
    align_series_by_date,
    calculate_log_returns,
)
from portfoliolab.core.risk.matrices import calculate_matrices, detect_singularities, matmul
from portfoliolab.core.risk.types import (
    CorrelationReport,
    CorrelationRow,
    CVaRResult,
    PortfolioRiskMetrics,
    RiskiestAsset,
    RiskReport,
    SingleAssetVaR,
    VaRResult,
)
from portfoliolab.core.utils.errors import DataValidationError
from portfoliolab.core.utils.logging import get_logger

TRADING_DAYS_PER_YEAR = 252
Z_SCORES: dict[float, float] = {0.90: 1.28, 0.95: 1.65, 0.99: 2.33}
DEFAULT_Z_SCORE = 1.65
AUTOCORRELATION_THRESHOLD = 0.1
MIN_AUTOCORRELATION_PAIRS = 10
ZERO_VARIANCE_TOLERANCE = 1e-20

logger = get_logger(__name__)


def z_score(confidence: float) -> float:
    """Return the one-sided normal quantile used for a confidence level."""
    return Z_SCORES.get(round(float(confidence), 2), DEFAULT_Z_SCORE)


def autocorrelation(returns: Sequence[float], lag: int = 1) -> float:
    """
    Sample autocorrelation of a return series at ``lag``.

    Returns 0 when fewer than 10 lagged pairs exist or the series has no variance.
    """
    values = np.asarray(returns, dtype=float)
    n_pairs = values.shape[0] - lag
    if n_pairs < MIN_AUTOCORRELATION_PAIRS:
        return 0.0

    deviations = values - values.mean()
    numerator = float(np.dot(deviations[:n_pairs], deviations[lag : lag + n_pairs]))
    denominator = float(np.dot(deviations, deviations))
    if denominator <= ZERO_VARIANCE_TOLERANCE * max(1.0, float(np.dot(values, values))):
        return 0.0
    return numerator / denominator


def annualization_factor(rho: float) -> float:
    """
    Time-scaling factor from daily to annual volatility.

    ``√252`` for serially independent returns, ``√(252·(1 + 2ρ₁))`` when the
    first-lag autocorrelation is significant.
    """
    if abs(rho) > AUTOCORRELATION_THRESHOLD:
        logger.info("Autocorrelation detected (rho=%.3f); adjusting time scaling", rho)
        return math.sqrt(max(0.0, TRADING_DAYS_PER_YEAR * (1.0 + 2.0 * rho)))
    return math.sqrt(TRADING_DAYS_PER_YEAR)


def calculate_var(
    prices: Sequence[float],
    confidence: float = 0.95,
    capital: float = 10_000.0,
) -> SingleAssetVaR:
    """
    Historical VaR of a single price series.

    Args:
        prices: Close prices in time order.
        confidence: Confidence level.
        capital: Position value.

    Returns:
        VaR as a (negative) return percentage and capital value.
    """
    if len(prices) < MIN_OBSERVATIONS:
        return SingleAssetVaR(confidence=confidence)

    returns = np.sort(calculate_log_returns(prices))
    if returns.shape[0] == 0:
        return SingleAssetVaR(confidence=confidence)

    index = int(math.floor((1.0 - confidence) * returns.shape[0]))
    var_pct = float(returns[min(index, returns.shape[0] - 1)])
    return SingleAssetVaR(pct=var_pct * 100.0, value=var_pct * capital, confidence=confidence)


def calculate_portfolio_var(
    assets: Sequence[AssetSeries],
    total_capital: float,
    confidence: float = 0.95,
) -> VaRResult:
    """
    Parametric portfolio VaR from the shrunk covariance matrix.

    Diversified VaR is ``z·σ_p·capital`` with ``σ_p = √(wᵀΣw)``. Undiversified
    VaR sums weighted individual volatilities, ``z·Σwᵢσᵢ·capital``.

    Args:
        assets: Weighted asset series (at least two).
        total_capital: Portfolio value.
        confidence: Confidence level (0.90, 0.95 or 0.99).

    Returns:
        VaR result; zero-valued with ``error`` set on failure.
    """
    try:
        data = align_series_by_date(assets)
        if data.n_observations == 0:
            raise DataValidationError("Insufficient data for VaR calculation.")
        weights = data.weights
        if weights.shape[0] < 2:
            raise DataValidationError("At least two assets are required for portfolio VaR.")

        matrices = calculate_matrices(data.returns_matrix)
        sigma_w = matmul(matrices.covariance, weights)
        portfolio_variance = float(np.dot(weights, sigma_w))
        daily_vol = math.sqrt(max(0.0, portfolio_variance))

        portfolio_returns = matmul(data.returns_matrix, weights)
        rho = autocorrelation(portfolio_returns)
        annual_vol = daily_vol * annualization_factor(rho)

        z = z_score(confidence)
        diversified_var = z * daily_vol * total_capital
        weighted_vol_sum = float(np.dot(matrices.std_devs, weights))
        undiversified_var = z * weighted_vol_sum * total_capital
        benefit = (
            (1.0 - diversified_var / undiversified_var) * 100.0 if undiversified_var > 0 else 0.0
        )

        return VaRResult(
            undiversified_var=undiversified_var,
            diversified_var=diversified_var,
            diversification_benefit=benefit,
            portfolio_volatility=annual_vol * 100.0,
            daily_volatility=daily_vol * 100.0,
            autocorrelation=rho,
            observations=data.n_observations,
            confidence=confidence,
        )
    except Exception as exc:
        logger.error("VaR calculation failed: %s", exc)
        return VaRResult(confidence=confidence, error=str(exc))


def calculate_portfolio_cvar(
    assets: Sequence[AssetSeries],
    total_capital: float,
    confidence: float = 0.95,
) -> CVaRResult:
    """
    Historical CVaR: the mean of the worst ``(1 - confidence)`` share of
    portfolio returns (at least one observation).
    """
    try:
        data = align_series_by_date(assets)
        portfolio_returns = np.sort(matmul(data.returns_matrix, data.weights))
        var_index = int(math.floor((1.0 - confidence) * portfolio_returns.shape[0]))
        tail = portfolio_returns[: var_index + 1]
        if tail.shape[0] == 0:
            return CVaRResult(confidence=confidence)

        mean_tail = float(tail.mean())
        return CVaRResult(
            cvar=abs(mean_tail * total_capital),
            cvar_pct=mean_tail * 100.0,
            confidence=confidence,
            tail_observations=int(tail.shape[0]),
        )
    except Exception as exc:
        logger.error("CVaR calculation failed: %s", exc)
        return CVaRResult(confidence=confidence, error=str(exc))


def calculate_correlation_matrix(assets: Sequence[AssetSeries]) -> CorrelationReport:
    """Correlation rows, distance matrix and off-diagonal statistics."""
    try:
        data = align_series_by_date(assets)
        matrices = calculate_matrices(data.returns_matrix)
        correlation = matrices.correlation
        near_duplicates = detect_singularities(correlation, data.tickers)

        rows = [
            CorrelationRow(ticker=ticker, values=[round(float(value), 2) for value in correlation[i]])
            for i, ticker in enumerate(data.tickers)
        ]
        off_diagonal = correlation[~np.eye(correlation.shape[0], dtype=bool)]
        if off_diagonal.size == 0:
            average = maximum = minimum = 0.0
        else:
            average = float(off_diagonal.mean())
            maximum = float(off_diagonal.max())
            minimum = float(off_diagonal.min())

        return CorrelationReport(
            matrix=rows,
            distance_matrix=matrices.distance.tolist(),
            average=average,
            maximum=maximum,
            minimum=minimum,
            near_duplicates=near_duplicates,
        )
    except Exception as exc:
        logger.warning("Correlation matrix calculation failed: %s", exc)
        return CorrelationReport(error=str(exc))


def calculate_portfolio_metrics(
    assets: Sequence[AssetSeries],
    total_capital: float = 10_000.0,
    confidence: float = 0.95,
) -> PortfolioRiskMetrics:
    """Bundle VaR, CVaR and correlation data for one portfolio."""
    return PortfolioRiskMetrics(
        var_metrics=calculate_portfolio_var(assets, total_capital, confidence),
        cvar_metrics=calculate_portfolio_cvar(assets, total_capital, confidence),
        correlation_data=calculate_correlation_matrix(assets),
    )


def _annualized_volatility(asset: AssetSeries) -> float:
    """Annualized volatility (%) of one asset from its own log returns."""
    returns = calculate_log_returns(asset.closes())
    if returns.shape[0] < 2:
        return 0.0
    return float(returns.std(ddof=1) * math.sqrt(TRADING_DAYS_PER_YEAR) * 100.0)


def _concentration_label(top_weight: float) -> str:
    """Label concentration risk from the largest position weight."""
    if top_weight > 0.20:
        return "high"
    if top_weight > 0.10:
        return "medium"
    return "low"


def generate_risk_report(
    portfolio: Sequence[AssetSeries],
    total_capital: float,
    confidence: float = 0.95,
) -> RiskReport:
    """
    Build the complete portfolio risk report.

    Args:
        portfolio: Weighted asset series.
        total_capital: Portfolio value.
        confidence: Confidence level for VaR/CVaR.

    Returns:
        Risk report; neutral values with ``error`` set on failure.
    """
    try:
        var_result = calculate_portfolio_var(portfolio, total_capital, confidence)
        cvar_result = calculate_portfolio_cvar(portfolio, total_capital, confidence)
        correlation_data = calculate_correlation_matrix(portfolio)

        riskiest = RiskiestAsset()
        for asset in portfolio:
            volatility = _annualized_volatility(asset)
            if volatility > riskiest.volatility or riskiest.ticker == "N/A":
                riskiest = RiskiestAsset(
                    ticker=asset.ticker, volatility=volatility, weight=asset.weight
                )

        top_weight = max((asset.weight for asset in portfolio), default=0.0)
        has_correlations = bool(correlation_data.matrix) and correlation_data.error is None
        diversification_score = (
            100.0 - correlation_data.average * 100.0 if has_correlations else 50.0
        )

        return RiskReport(
            portfolio_var=var_result,
            cvar=cvar_result,
            correlation_data=correlation_data,
            riskiest_asset=riskiest,
            concentration_risk=_concentration_label(top_weight),
            diversification_score=diversification_score,
            error=var_result.error or cvar_result.error,
        )
    except Exception as exc:
        logger.error("Risk report generation failed: %s", exc)
        return RiskReport(
            portfolio_var=VaRResult(confidence=confidence, error=str(exc)),
            cvar=CVaRResult(confidence=confidence, error=str(exc)),
            correlation_data=CorrelationReport(error=str(exc)),
            riskiest_asset=RiskiestAsset(),
            concentration_risk="n/a",
            diversification_score=0.0,
            error=str(exc),
        )
