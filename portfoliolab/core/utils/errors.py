"""Domain-specific error taxonomy for PortfolioLab."""

from __future__ import annotations


class PortfolioLabError(Exception):
    """Base PortfolioLab error with CLI exit-code metadata."""

    exit_code: int = 1
    error_code: str = "portfoliolab_error"


class ConfigLoadError(PortfolioLabError, ValueError):
    """Configuration loading/validation error."""

    exit_code = 2
    error_code = "config_error"


class DataValidationError(PortfolioLabError, ValueError):
    """Price data schema/integrity validation error."""

    exit_code = 4
    error_code = "data_validation_error"


class InsufficientHistoryError(DataValidationError):
    """Fewer observations than a computation needs to be meaningful."""

    error_code = "insufficient_history"


class AlignmentError(DataValidationError):
    """Asset return series ended with different lengths after alignment."""

    error_code = "alignment_error"


class IndicatorError(DataValidationError):
    """Indicator input is too short or contains missing values."""

    error_code = "indicator_error"


class StrategyError(PortfolioLabError, ValueError):
    """Strategy loading/execution error."""

    exit_code = 6
    error_code = "strategy_error"


class BacktestError(PortfolioLabError, ValueError):
    """Backtest execution error."""

    exit_code = 7
    error_code = "backtest_error"


class WalkForwardError(PortfolioLabError, ValueError):
    """Walk-forward harness configuration/execution error."""

    exit_code = 9
    error_code = "walk_forward_error"


class ArtifactError(PortfolioLabError, RuntimeError):
    """Artifact write/read error."""

    exit_code = 10
    error_code = "artifact_error"


class MatrixDimensionError(PortfolioLabError, ValueError):
    """Incompatible matrix or vector dimensions passed by a caller."""

    exit_code = 11
    error_code = "matrix_dimension_error"


class AllocationError(PortfolioLabError, ValueError):
    """Capital allocation error."""

    exit_code = 12
    error_code = "allocation_error"


def exit_code_for_exception(exc: Exception) -> int:
    """
    Resolve process exit code for an exception.

    Args:
        exc: Raised exception.

    Returns:
        Integer process exit code.
    """
    return int(getattr(exc, "exit_code", 1))
