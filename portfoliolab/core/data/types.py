"""Immutable price containers consumed by the risk and backtest engines."""

from __future__ import annotations

import math
from dataclasses import dataclass

from portfoliolab.core.utils.errors import DataValidationError


@dataclass(frozen=True)
class PricePoint:
    """One daily observation. ``date`` is an ISO ``YYYY-MM-DD`` string when known."""

    close: float
    volume: float = 0.0
    high: float | None = None
    low: float | None = None
    date: str | None = None


def _as_price_point(value: PricePoint | float | None) -> PricePoint:
    if isinstance(value, PricePoint):
        return value
    if value is None:
        return PricePoint(close=math.nan)
    try:
        return PricePoint(close=float(value))
    except (TypeError, ValueError) as exc:
        raise DataValidationError(f"Invalid price value: {value!r}.") from exc


@dataclass(frozen=True)
class AssetSeries:
    """
    Weighted price history used by the risk path.

    ``prices`` accepts :class:`PricePoint` objects or bare closes; bare closes
    (``None`` included, as a missing value) become undated points.
    """

    ticker: str
    weight: float
    prices: tuple[PricePoint | float, ...]

    def __post_init__(self) -> None:
        """Validate weight bounds and normalize the price container."""
        if not self.ticker.strip():
            raise DataValidationError("AssetSeries ticker must be non-empty.")
        weight = float(self.weight)
        if math.isnan(weight) or weight < 0.0 or weight > 1.0:
            raise DataValidationError(
                f"AssetSeries weight for '{self.ticker}' must be within [0, 1], got {self.weight}."
            )
        object.__setattr__(self, "weight", weight)
        object.__setattr__(self, "prices", tuple(_as_price_point(point) for point in self.prices))

    @property
    def has_dates(self) -> bool:
        """Whether the series carries per-observation dates."""
        return bool(self.prices) and self.prices[0].date is not None

    def closes(self) -> list[float]:
        """Return close prices in time order."""
        return [point.close for point in self.prices]


@dataclass(frozen=True)
class UniverseAsset:
    """Price/volume history of one asset in a backtest universe."""

    ticker: str
    data: tuple[PricePoint, ...]
    name: str | None = None

    def __post_init__(self) -> None:
        """Normalize the data container."""
        object.__setattr__(self, "data", tuple(self.data))

    def slice(self, start: int, stop: int) -> UniverseAsset:
        """Return a copy restricted to ``data[start:stop]``."""
        return UniverseAsset(ticker=self.ticker, data=self.data[start:stop], name=self.name)
