"""Time-series alignment of asset price histories into a returns matrix."""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass, field

import numpy as np
import pandas as pd

from portfoliolab.core.data.types import AssetSeries
from portfoliolab.core.utils.errors import (
    AlignmentError,
    DataValidationError,
    InsufficientHistoryError,
)
from portfoliolab.core.utils.logging import get_logger

MIN_OBSERVATIONS = 30
MAX_INVALID_FRACTION = 0.05

logger = get_logger(__name__)


@dataclass(frozen=True)
class AlignedReturns:
    """Returns matrix (rows = time, columns = assets) with parallel metadata."""

    returns_matrix: np.ndarray
    tickers: list[str]
    weights: np.ndarray
    n_observations: int
    dates: list[str] = field(default_factory=list)


def _is_valid_price(value: float | None) -> bool:
    """Return whether a price can enter a log return."""
    if value is None:
        return False
    try:
        number = float(value)
    except (TypeError, ValueError):
        return False
    return not math.isnan(number) and number > 0.0


def calculate_log_returns(prices: Sequence[float | None]) -> np.ndarray:
    """
    Calculate log returns ``ln(P_t / P_{t-1})``.

    Pairs where either price is missing, NaN or non-positive are skipped rather
    than zero-filled. A data-quality warning is logged when more than 5% of the
    pairs are skipped.

    Args:
        prices: Prices in time order.

    Returns:
        Array of log returns (length at most ``len(prices) - 1``).
    """
    returns: list[float] = []
    invalid_count = 0
    for previous, current in zip(prices[:-1], prices[1:], strict=True):
        if _is_valid_price(previous) and _is_valid_price(current):
            returns.append(math.log(float(current) / float(previous)))
        else:
            invalid_count += 1

    pair_count = len(prices) - 1
    if pair_count > 0:
        invalid_fraction = invalid_count / pair_count
        if invalid_fraction > MAX_INVALID_FRACTION:
            logger.warning(
                "%.1f%% of price pairs are invalid and were skipped in return calculation",
                invalid_fraction * 100.0,
            )
    return np.asarray(returns, dtype=float)


def _build_matrix(asset_returns: list[np.ndarray]) -> np.ndarray:
    """Stack per-asset return arrays as columns, requiring equal lengths."""
    lengths = {int(returns.shape[0]) for returns in asset_returns}
    if len(lengths) > 1:
        raise AlignmentError(
            f"Alignment error: asset returns have different lengths {sorted(lengths)}."
        )
    return np.column_stack(asset_returns) if asset_returns else np.empty((0, 0))


def align_series_by_length(assets: Sequence[AssetSeries]) -> AlignedReturns:
    """
    Align series positionally after tail-truncating to the shortest history.

    Used when observations carry no dates.

    Args:
        assets: Weighted asset series.

    Returns:
        Aligned returns.
    """
    if not assets:
        raise DataValidationError("At least one asset is required for alignment.")

    min_length = min(len(asset.prices) for asset in assets)
    if min_length < MIN_OBSERVATIONS:
        raise InsufficientHistoryError(
            f"Insufficient history: {min_length} days (minimum {MIN_OBSERVATIONS})."
        )

    asset_returns = [
        calculate_log_returns([point.close for point in asset.prices[-min_length:]])
        for asset in assets
    ]
    returns_matrix = _build_matrix(asset_returns)
    return AlignedReturns(
        returns_matrix=returns_matrix,
        tickers=[asset.ticker for asset in assets],
        weights=np.asarray([asset.weight for asset in assets], dtype=float),
        n_observations=int(returns_matrix.shape[0]),
    )


def _dated_closes(asset: AssetSeries) -> pd.Series:
    """Close prices indexed by date; the last observation wins on duplicate dates."""
    dated = [point for point in asset.prices if point.date is not None]
    closes = pd.Series(
        [point.close for point in dated],
        index=pd.DatetimeIndex(pd.to_datetime([point.date for point in dated])),
        dtype=float,
    )
    return closes.loc[~closes.index.duplicated(keep="last")]


def _common_index(closes_by_asset: Sequence[pd.Series]) -> pd.DatetimeIndex:
    """Return the intersection of all date indices in sorted order."""
    common_index = closes_by_asset[0].index
    for closes in closes_by_asset[1:]:
        common_index = common_index.intersection(closes.index)
    return common_index.sort_values()


def align_series_by_date(assets: Sequence[AssetSeries]) -> AlignedReturns:
    """
    Align series on the dates present in every series (inner join).

    Falls back to :func:`align_series_by_length` when the observations carry no
    dates.

    Args:
        assets: Weighted asset series with ``PricePoint.date`` populated.

    Returns:
        Aligned returns; ``dates`` starts at the second common date because
        returns begin at ``t = 1``.
    """
    if not assets:
        raise DataValidationError("At least one asset is required for alignment.")

    if not all(asset.has_dates for asset in assets):
        logger.warning("Price series carry no dates; aligning by length instead")
        return align_series_by_length(assets)

    closes_by_asset = [_dated_closes(asset) for asset in assets]
    common_index = _common_index(closes_by_asset)
    if len(common_index) < MIN_OBSERVATIONS:
        raise InsufficientHistoryError(
            f"Insufficient common dates across assets: {len(common_index)} "
            f"(minimum {MIN_OBSERVATIONS})."
        )
    logger.debug("Alignment verified on %d common dates", len(common_index))

    asset_returns = [
        calculate_log_returns(closes.loc[common_index].tolist()) for closes in closes_by_asset
    ]
    returns_matrix = _build_matrix(asset_returns)
    return AlignedReturns(
        returns_matrix=returns_matrix,
        tickers=[asset.ticker for asset in assets],
        weights=np.asarray([asset.weight for asset in assets], dtype=float),
        n_observations=int(returns_matrix.shape[0]),
        dates=[day.date().isoformat() for day in common_index[1:]],
    )
