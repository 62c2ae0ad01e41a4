"""Price containers and local data loading."""

from portfoliolab.core.data.loader import (
    align_benchmark_closes,
    load_asset_series,
    load_universe,
    read_price_csv,
)
from portfoliolab.core.data.types import AssetSeries, PricePoint, UniverseAsset

__all__ = [
    "AssetSeries",
    "PricePoint",
    "UniverseAsset",
    "align_benchmark_closes",
    "load_asset_series",
    "load_universe",
    "read_price_csv",
]
