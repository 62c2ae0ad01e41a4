"""Test helpers building deterministic synthetic price data."""

from __future__ import annotations

import math
from collections.abc import Sequence
from pathlib import Path

import numpy as np
import pandas as pd

from portfoliolab.core.data.types import AssetSeries, PricePoint, UniverseAsset


def business_dates(periods: int, start: str = "2020-01-01") -> list[str]:
    """Return ISO business dates."""
    return [day.date().isoformat() for day in pd.bdate_range(start, periods=periods)]


def trending_closes(
    periods: int,
    base: float = 100.0,
    drift: float = 0.0005,
    amplitude: float = 0.02,
    cycle: float = 17.0,
    phase: float = 0.0,
) -> list[float]:
    """Deterministic geometric trend with a sinusoidal wobble."""
    return [
        base * (1.0 + drift) ** t * (1.0 + amplitude * math.sin(t / cycle * 2.0 * math.pi + phase))
        for t in range(periods)
    ]


def closes_from_log_returns(returns: Sequence[float], base: float = 100.0) -> list[float]:
    """Rebuild a price path whose log returns are exactly ``returns``."""
    path = base * np.exp(np.concatenate([[0.0], np.cumsum(np.asarray(returns, dtype=float))]))
    return [float(value) for value in path]


def orthogonal_returns(n_observations: int, frequencies: Sequence[int], scales: Sequence[float]) -> np.ndarray:
    """
    Zero-mean, mutually uncorrelated return columns built from cosines.

    Distinct integer frequencies in ``[1, n_observations / 2)`` give exactly
    orthogonal columns over a full period.
    """
    t = np.arange(n_observations, dtype=float)
    columns = [
        scale * np.cos(2.0 * math.pi * frequency * t / n_observations)
        for frequency, scale in zip(frequencies, scales, strict=True)
    ]
    return np.column_stack(columns)


def make_points(
    closes: Sequence[float],
    volume: float = 50_000.0,
    dates: Sequence[str] | None = None,
    spread: float = 0.01,
) -> tuple[PricePoint, ...]:
    """Build price points with high/low bands around each close."""
    resolved_dates = list(dates) if dates is not None else business_dates(len(closes))
    return tuple(
        PricePoint(
            close=float(close),
            volume=volume,
            high=float(close) * (1.0 + spread),
            low=float(close) * (1.0 - spread),
            date=day,
        )
        for close, day in zip(closes, resolved_dates, strict=True)
    )


def make_asset_series(
    ticker: str,
    closes: Sequence[float],
    weight: float,
    with_dates: bool = True,
) -> AssetSeries:
    """Weighted asset series for risk tests."""
    if with_dates:
        points = make_points(closes)
    else:
        points = tuple(PricePoint(close=float(close)) for close in closes)
    return AssetSeries(ticker=ticker, weight=weight, prices=points)


def make_universe(n_assets: int, periods: int) -> list[UniverseAsset]:
    """Universe of assets with distinct drifts and cycle phases."""
    return [
        UniverseAsset(
            ticker=f"A{index}",
            data=make_points(
                trending_closes(
                    periods,
                    base=50.0 + 10.0 * index,
                    drift=0.0002 * (index + 1),
                    phase=0.7 * index,
                )
            ),
        )
        for index in range(n_assets)
    ]


def write_price_csv(path: Path, closes: Sequence[float], volume: float = 50_000.0) -> None:
    """Write a ``date,open,high,low,close,volume`` CSV file."""
    frame = pd.DataFrame(
        {
            "date": business_dates(len(closes)),
            "open": list(closes),
            "high": [value * 1.01 for value in closes],
            "low": [value * 0.99 for value in closes],
            "close": list(closes),
            "volume": volume,
        }
    )
    path.parent.mkdir(parents=True, exist_ok=True)
    frame.to_csv(path, index=False)
