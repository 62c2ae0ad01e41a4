"""Local CSV loading for OHLCV price histories."""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from pathlib import Path

import pandas as pd

from portfoliolab.core.data.types import AssetSeries, PricePoint, UniverseAsset
from portfoliolab.core.utils.errors import DataValidationError
from portfoliolab.core.utils.logging import get_logger

OHLCV_COLUMNS: tuple[str, str, str, str, str] = ("open", "high", "low", "close", "volume")

logger = get_logger(__name__)


def normalize_ohlcv_frame(frame: pd.DataFrame) -> pd.DataFrame:
    """
    Normalize raw price data to a date-indexed OHLCV frame.

    Rows without a parseable date are dropped. Missing ``open``/``high``/``low``
    columns fall back to ``close``; missing volume becomes 0. Close prices that
    are non-positive or not numeric are kept as NaN so that the return
    calculation can skip them and report data quality.

    Args:
        frame: Raw dataframe with a ``date`` column or a DatetimeIndex.

    Returns:
        Normalized dataframe sorted by date with unique index values.
    """
    if frame.empty:
        raise DataValidationError("Price data is empty.")

    normalized = frame.copy()
    normalized.columns = [str(column).strip().lower() for column in normalized.columns]

    if "date" in normalized.columns:
        normalized["date"] = pd.to_datetime(normalized["date"], errors="coerce")
        normalized = normalized.set_index("date")
    elif not isinstance(normalized.index, pd.DatetimeIndex):
        raise DataValidationError("Price data must have a DatetimeIndex or a 'date' column.")

    normalized = normalized.loc[~normalized.index.isna()]
    normalized.index.name = "date"

    if "close" not in normalized.columns:
        raise DataValidationError("Price data is missing required column 'close'.")

    normalized["close"] = pd.to_numeric(normalized["close"], errors="coerce")
    normalized["close"] = normalized["close"].where(normalized["close"] > 0)
    for column in ("open", "high", "low"):
        if column not in normalized.columns:
            normalized[column] = normalized["close"]
        normalized[column] = pd.to_numeric(normalized[column], errors="coerce")
    if "volume" not in normalized.columns:
        normalized["volume"] = 0.0
    normalized["volume"] = pd.to_numeric(normalized["volume"], errors="coerce").fillna(0.0)

    normalized = normalized.loc[:, list(OHLCV_COLUMNS)].astype(float)
    normalized = normalized.sort_index(kind="mergesort")
    normalized = normalized.loc[~normalized.index.duplicated(keep="last")]
    if normalized.empty:
        raise DataValidationError("Price data has no dated rows.")
    return normalized


def _optional_float(value: float) -> float | None:
    """Convert NaN to ``None``."""
    return None if math.isnan(value) else float(value)


def frame_to_price_points(frame: pd.DataFrame) -> tuple[PricePoint, ...]:
    """Convert a normalized OHLCV frame into price points."""
    points: list[PricePoint] = []
    for timestamp, row in frame.iterrows():
        points.append(
            PricePoint(
                close=float(row["close"]),
                volume=float(row["volume"]),
                high=_optional_float(float(row["high"])),
                low=_optional_float(float(row["low"])),
                date=pd.Timestamp(timestamp).date().isoformat(),
            )
        )
    return tuple(points)


def read_price_csv(path: Path) -> pd.DataFrame:
    """
    Read and normalize one price CSV file.

    Args:
        path: CSV path with at least ``date`` and ``close`` columns.

    Returns:
        Normalized OHLCV dataframe.
    """
    resolved = path.expanduser().resolve()
    if not resolved.is_file():
        raise DataValidationError(f"Price file not found: {resolved}")
    try:
        raw = pd.read_csv(resolved)
    except (OSError, pd.errors.ParserError, pd.errors.EmptyDataError) as exc:
        raise DataValidationError(f"Failed to read price file {resolved}: {exc}") from exc
    try:
        return normalize_ohlcv_frame(raw)
    except DataValidationError as exc:
        raise DataValidationError(f"{resolved}: {exc}") from exc


def _ticker_path(prices_dir: Path, ticker: str) -> Path:
    """Return the CSV path for a ticker."""
    return prices_dir / f"{ticker}.csv"


def load_universe(prices_dir: Path, tickers: Sequence[str]) -> list[UniverseAsset]:
    """
    Load a backtest universe from ``<prices_dir>/<TICKER>.csv`` files.

    Args:
        prices_dir: Directory containing one CSV per ticker.
        tickers: Tickers to load, in universe order.

    Returns:
        Universe assets in the requested order.
    """
    universe: list[UniverseAsset] = []
    for ticker in tickers:
        frame = read_price_csv(_ticker_path(prices_dir, ticker))
        logger.info(
            "Loaded %s: rows=%d, range=[%s, %s]",
            ticker,
            frame.shape[0],
            frame.index.min().date().isoformat(),
            frame.index.max().date().isoformat(),
        )
        universe.append(UniverseAsset(ticker=ticker, data=frame_to_price_points(frame)))
    return universe


def load_asset_series(
    prices_dir: Path,
    tickers: Sequence[str],
    weights: Mapping[str, float] | None = None,
) -> list[AssetSeries]:
    """
    Load weighted asset series for risk calculations.

    Tickers without an explicit weight share the portfolio equally.

    Args:
        prices_dir: Directory containing one CSV per ticker.
        tickers: Tickers to load.
        weights: Optional ticker -> weight mapping.

    Returns:
        Weighted asset series.
    """
    if not tickers:
        raise DataValidationError("At least one ticker is required.")
    resolved_weights = dict(weights or {})
    default_weight = 1.0 / len(tickers)
    universe = load_universe(prices_dir, tickers)
    return [
        AssetSeries(
            ticker=asset.ticker,
            weight=float(resolved_weights.get(asset.ticker, default_weight)),
            prices=asset.data,
        )
        for asset in universe
    ]


def align_benchmark_closes(
    benchmark: UniverseAsset,
    universe: Sequence[UniverseAsset],
) -> list[float]:
    """
    Project benchmark closes onto the index space of the universe.

    The longest universe asset defines the index space; benchmark dates that
    are missing become NaN so that the simulator treats them as invalid.
    """
    if not universe:
        return []
    reference = max(universe, key=lambda asset: len(asset.data))
    closes_by_date = {point.date: point.close for point in benchmark.data}
    return [float(closes_by_date.get(point.date, math.nan)) for point in reference.data]
