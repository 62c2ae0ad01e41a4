"""Covariance, correlation and distance matrices with small-sample shrinkage."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np

from portfoliolab.core.utils.errors import InsufficientHistoryError, MatrixDimensionError
from portfoliolab.core.utils.logging import get_logger

SYMMETRY_TOLERANCE = 1e-10
SHRINKAGE_THRESHOLD = 252
NEAR_DUPLICATE_THRESHOLD = 0.999

logger = get_logger(__name__)


@dataclass(frozen=True)
class RiskMatrices:
    """Covariance-derived matrices for one returns matrix."""

    covariance: np.ndarray
    correlation: np.ndarray
    distance: np.ndarray
    std_devs: np.ndarray
    shrinkage: float


@dataclass(frozen=True)
class NearDuplicatePair:
    """Two assets whose correlation magnitude exceeds the duplicate threshold."""

    first: str
    second: str
    correlation: float


def matmul(left: np.ndarray, right: np.ndarray) -> np.ndarray:
    """
    Multiply two matrices (or a matrix and a vector) with a dimension check.

    Args:
        left: Left operand.
        right: Right operand.

    Returns:
        Matrix product.
    """
    left_arr = np.asarray(left, dtype=float)
    right_arr = np.asarray(right, dtype=float)
    if left_arr.ndim == 0 or right_arr.ndim == 0:
        raise MatrixDimensionError("Matrix product requires at least one-dimensional operands.")
    inner_left = left_arr.shape[-1]
    inner_right = right_arr.shape[0]
    if inner_left != inner_right:
        raise MatrixDimensionError(f"Incompatible dimension: {inner_left} vs {inner_right}")
    return left_arr @ right_arr


def sample_covariance(returns_matrix: np.ndarray) -> np.ndarray:
    """
    Unbiased sample covariance ``XᵀX / (T-1)`` of column-centred returns.

    Args:
        returns_matrix: ``(T, N)`` returns, rows are time.

    Returns:
        ``(N, N)`` covariance matrix.
    """
    matrix = np.asarray(returns_matrix, dtype=float)
    if matrix.ndim != 2:
        raise MatrixDimensionError(f"Returns matrix must be two-dimensional, got {matrix.ndim}.")
    n_observations = matrix.shape[0]
    if n_observations < 2:
        raise InsufficientHistoryError("Insufficient history (T < 2) for covariance.")

    centered = matrix - matrix.mean(axis=0, keepdims=True)
    return matmul(centered.T, centered) / (n_observations - 1)


def validate_covariance_matrix(covariance: np.ndarray) -> bool:
    """
    Check covariance symmetry and variance signs.

    Asymmetric entries are logged as warnings only. Negative variances are
    logged as errors and reported through the return value.

    Returns:
        ``False`` when any diagonal entry is negative.
    """
    n_assets = covariance.shape[0]
    for i in range(n_assets):
        for j in range(i + 1, n_assets):
            diff = abs(covariance[i, j] - covariance[j, i])
            if diff > SYMMETRY_TOLERANCE:
                logger.warning(
                    "Covariance matrix is not symmetric at (%d, %d): diff=%.2e", i, j, diff
                )

    if np.any(np.diag(covariance) < 0):
        logger.error("Covariance matrix has negative variances")
        return False
    return True


def shrinkage_intensity(n_observations: int, n_assets: int) -> float:
    """Shrinkage intensity ``clamp((N + 1) / (T * N), 0, 1)``."""
    if n_observations <= 0 or n_assets <= 0:
        return 1.0
    return min(1.0, max(0.0, (n_assets + 1) / (n_observations * n_assets)))


def constant_correlation_target(covariance: np.ndarray) -> np.ndarray:
    """
    Build the constant-correlation shrinkage target.

    Diagonal entries equal the average variance and off-diagonal entries the
    average off-diagonal covariance.
    """
    n_assets = covariance.shape[0]
    avg_variance = float(np.trace(covariance)) / n_assets
    if n_assets < 2:
        return np.full_like(covariance, avg_variance)

    off_diagonal_sum = float(covariance.sum() - np.trace(covariance))
    avg_covariance = off_diagonal_sum / (n_assets * (n_assets - 1))
    target = np.full_like(covariance, avg_covariance)
    np.fill_diagonal(target, avg_variance)
    return target


def shrink_covariance(covariance: np.ndarray, n_observations: int) -> tuple[np.ndarray, float]:
    """
    Blend the sample covariance towards the constant-correlation target.

    ``Σ_shrunk = δ·F + (1 - δ)·Σ``.

    Returns:
        Shrunk covariance and the intensity ``δ`` used.
    """
    n_assets = covariance.shape[0]
    delta = shrinkage_intensity(n_observations, n_assets)
    target = constant_correlation_target(covariance)
    logger.info("Shrinkage applied: delta=%.3f (T=%d, N=%d)", delta, n_observations, n_assets)
    return delta * target + (1.0 - delta) * covariance, delta


def correlation_from_covariance(covariance: np.ndarray, std_devs: np.ndarray) -> np.ndarray:
    """
    Derive correlations, with 1 on the diagonal and 0 off it for zero-volatility assets.

    Values are clipped to ``[-1, 1]``.
    """
    denominator = np.outer(std_devs, std_devs)
    zero_mask = denominator == 0.0
    safe_denominator = np.where(zero_mask, 1.0, denominator)
    correlation = np.where(zero_mask, 0.0, covariance / safe_denominator)

    diagonal = np.diag(correlation).copy()
    diagonal[np.diag(zero_mask)] = 1.0
    np.fill_diagonal(correlation, diagonal)
    return np.clip(correlation, -1.0, 1.0)


def distance_from_correlation(correlation: np.ndarray) -> np.ndarray:
    """Correlation distance ``√max(0, 2(1 - ρ))`` in ``[0, 2]``."""
    return np.sqrt(np.maximum(0.0, 2.0 * (1.0 - correlation)))


def calculate_matrices(
    returns_matrix: np.ndarray,
    shrinkage_threshold: int = SHRINKAGE_THRESHOLD,
) -> RiskMatrices:
    """
    Compute covariance, correlation and distance matrices.

    Shrinkage towards the constant-correlation target is applied when the
    sample has fewer than ``shrinkage_threshold`` observations.

    Args:
        returns_matrix: ``(T, N)`` returns with ``T >= 2``.
        shrinkage_threshold: Sample size below which shrinkage applies.

    Returns:
        Risk matrices container.
    """
    matrix = np.asarray(returns_matrix, dtype=float)
    covariance = sample_covariance(matrix)
    n_observations = int(matrix.shape[0])

    if not validate_covariance_matrix(covariance):
        logger.error("Invalid covariance matrix; continuing with clipped values")

    delta = 0.0
    if n_observations < shrinkage_threshold:
        covariance, delta = shrink_covariance(covariance, n_observations)

    std_devs = np.sqrt(np.maximum(0.0, np.diag(covariance)))
    correlation = correlation_from_covariance(covariance, std_devs)
    distance = distance_from_correlation(correlation)
    return RiskMatrices(
        covariance=covariance,
        correlation=correlation,
        distance=distance,
        std_devs=std_devs,
        shrinkage=float(delta),
    )


def detect_singularities(
    correlation: np.ndarray,
    tickers: Sequence[str],
    threshold: float = NEAR_DUPLICATE_THRESHOLD,
) -> list[NearDuplicatePair]:
    """
    Flag asset pairs that are nearly perfectly correlated.

    Diagnostic only; the matrices are not modified.
    """
    duplicates: list[NearDuplicatePair] = []
    n_assets = correlation.shape[0]
    for i in range(n_assets):
        for j in range(i + 1, n_assets):
            if abs(correlation[i, j]) > threshold:
                duplicates.append(
                    NearDuplicatePair(
                        first=tickers[i],
                        second=tickers[j],
                        correlation=float(correlation[i, j]),
                    )
                )

    if duplicates:
        logger.warning(
            "Nearly identical assets detected: %s",
            ", ".join(f"{pair.first}/{pair.second} ({pair.correlation:.4f})" for pair in duplicates),
        )
    return duplicates
