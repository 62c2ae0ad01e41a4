"""Utility helpers."""

from portfoliolab.core.utils.errors import (
    AlignmentError,
    AllocationError,
    ArtifactError,
    BacktestError,
    ConfigLoadError,
    DataValidationError,
    IndicatorError,
    InsufficientHistoryError,
    MatrixDimensionError,
    PortfolioLabError,
    StrategyError,
    WalkForwardError,
    exit_code_for_exception,
)
from portfoliolab.core.utils.logging import configure_logging, get_logger, log_duration
from portfoliolab.core.utils.manifest import RunManifestWriter

__all__ = [
    "AlignmentError",
    "AllocationError",
    "ArtifactError",
    "BacktestError",
    "ConfigLoadError",
    "DataValidationError",
    "IndicatorError",
    "InsufficientHistoryError",
    "MatrixDimensionError",
    "PortfolioLabError",
    "RunManifestWriter",
    "StrategyError",
    "WalkForwardError",
    "configure_logging",
    "exit_code_for_exception",
    "get_logger",
    "log_duration",
]
