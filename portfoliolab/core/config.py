"""Configuration models and YAML loading."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, model_validator

from portfoliolab.core.allocation import AllocationMethod
from portfoliolab.core.backtest.types import TransactionCosts
from portfoliolab.core.research.strategy import DEFAULT_STRATEGY_MODULE
from portfoliolab.core.research.walk_forward import WalkForwardSettings
from portfoliolab.core.risk.metrics import Z_SCORES
from portfoliolab.core.scoring.thresholds import (
    STRATEGY_PROFILES,
    ScoreWeights,
    ScoringThresholds,
    get_strategy_profile,
)
from portfoliolab.core.utils.errors import ConfigLoadError


class DataConfig(BaseModel):
    """Price data settings for a run."""

    prices_dir: Path = Path("../data/prices")
    tickers: list[str] = Field(min_length=1)
    weights: dict[str, float] | None = None
    benchmark: str | None = None

    @model_validator(mode="after")
    def validate_tickers(self) -> DataConfig:
        """Ensure tickers are unique and weights reference known tickers."""
        normalized = [ticker.strip() for ticker in self.tickers if ticker.strip()]
        if not normalized:
            raise ValueError("data.tickers must contain at least one non-empty ticker.")
        if len(set(normalized)) != len(normalized):
            raise ValueError("data.tickers must not contain duplicates.")
        self.tickers = normalized
        if self.weights is not None:
            unknown = sorted(set(self.weights) - set(normalized))
            if unknown:
                raise ValueError(f"data.weights references unknown tickers: {unknown}")
            if any(value < 0 or value > 1 for value in self.weights.values()):
                raise ValueError("data.weights values must be within [0, 1].")
        if self.benchmark is not None:
            self.benchmark = self.benchmark.strip() or None
        return self


class RiskConfig(BaseModel):
    """Portfolio risk settings."""

    capital: float = 10_000.0
    confidence: float = 0.95

    @model_validator(mode="after")
    def validate_risk(self) -> RiskConfig:
        """Validate capital and supported confidence levels."""
        if self.capital <= 0:
            raise ValueError("risk.capital must be > 0.")
        if round(self.confidence, 2) not in Z_SCORES:
            raise ValueError(f"risk.confidence must be one of {sorted(Z_SCORES)}.")
        return self


class StrategyConfig(BaseModel):
    """Scoring strategy configuration."""

    module: str = DEFAULT_STRATEGY_MODULE
    profile: str = "balanced"
    thresholds: dict[str, float] = Field(default_factory=dict)
    weights: dict[str, float] = Field(default_factory=dict)

    @model_validator(mode="after")
    def validate_strategy(self) -> StrategyConfig:
        """Ensure module path, profile and overrides are valid."""
        if not self.module.strip():
            raise ValueError("strategy.module must be a non-empty import path.")
        if self.profile not in STRATEGY_PROFILES:
            raise ValueError(
                f"strategy.profile must be one of {sorted(STRATEGY_PROFILES)}, got '{self.profile}'."
            )
        self.resolve_thresholds()
        self.resolve_weights()
        return self

    def resolve_thresholds(self) -> ScoringThresholds:
        """Profile thresholds with overrides applied."""
        overrides = {
            key: int(value) if isinstance(getattr(ScoringThresholds(), key, None), int) else value
            for key, value in self.thresholds.items()
        }
        return get_strategy_profile(self.profile).thresholds.override(**overrides)

    def resolve_weights(self) -> ScoreWeights:
        """Profile weights with overrides applied."""
        unknown = sorted(set(self.weights) - {"trend", "momentum", "risk", "liquidity"})
        if unknown:
            raise ConfigLoadError(f"Unknown score weights: {unknown}")
        base = get_strategy_profile(self.profile).weights
        return ScoreWeights(
            trend=self.weights.get("trend", base.trend),
            momentum=self.weights.get("momentum", base.momentum),
            risk=self.weights.get("risk", base.risk),
            liquidity=self.weights.get("liquidity", base.liquidity),
        )


class BacktestConfig(BaseModel):
    """Backtest simulator configuration."""

    top_n: int = 10
    rebalance_every: int = 21
    allocation_method: str = "equal_weight"
    commission_pct: float = 0.001
    slippage_pct: float = 0.0005
    min_commission: float = 1.0
    initial_capital: float = 10_000.0

    @model_validator(mode="after")
    def validate_backtest(self) -> BacktestConfig:
        """Validate simulator constraints."""
        if self.top_n < 1:
            raise ValueError("backtest.top_n must be >= 1.")
        if self.rebalance_every < 1:
            raise ValueError("backtest.rebalance_every must be >= 1.")
        if self.commission_pct < 0 or self.slippage_pct < 0 or self.min_commission < 0:
            raise ValueError("backtest transaction cost parameters must be >= 0.")
        if self.initial_capital <= 0:
            raise ValueError("backtest.initial_capital must be > 0.")
        self.allocation_method = AllocationMethod.parse(self.allocation_method).value
        return self

    def transaction_costs(self) -> TransactionCosts:
        """Cost model built from this config."""
        return TransactionCosts(
            commission_pct=self.commission_pct,
            slippage_pct=self.slippage_pct,
            min_commission=self.min_commission,
        )


class WalkForwardConfig(BaseModel):
    """Walk-forward harness configuration."""

    in_sample_period: int = 252
    out_sample_period: int = 63
    step_size: int = 21
    max_workers: int = 1

    @model_validator(mode="after")
    def validate_walk_forward(self) -> WalkForwardConfig:
        """Validate window sizes and worker count."""
        if self.in_sample_period < 1 or self.out_sample_period < 1 or self.step_size < 1:
            raise ValueError("walk_forward periods and step_size must be >= 1.")
        if self.max_workers < 1:
            raise ValueError("walk_forward.max_workers must be >= 1.")
        return self

    def settings(self) -> WalkForwardSettings:
        """Harness settings built from this config."""
        return WalkForwardSettings(
            in_sample_period=self.in_sample_period,
            out_sample_period=self.out_sample_period,
            step_size=self.step_size,
        )


class OutputConfig(BaseModel):
    """Output and artifact settings."""

    artifacts_dir: Path = Path("../artifacts")
    summary_filename: str = "summary.json"

    @model_validator(mode="after")
    def validate_output(self) -> OutputConfig:
        """Ensure output filenames are valid."""
        if not self.summary_filename.strip():
            raise ValueError("output.summary_filename must be non-empty.")
        return self


class AppConfig(BaseModel):
    """Top-level application configuration."""

    data: DataConfig
    risk: RiskConfig = Field(default_factory=RiskConfig)
    strategy: StrategyConfig = Field(default_factory=StrategyConfig)
    backtest: BacktestConfig = Field(default_factory=BacktestConfig)
    walk_forward: WalkForwardConfig = Field(default_factory=WalkForwardConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)


def _resolve_config_path(path: Path) -> Path:
    """Resolve and validate a config file path."""
    resolved_path = path.expanduser().resolve()
    if not resolved_path.exists():
        raise ConfigLoadError(f"Config file not found: {resolved_path}")
    if not resolved_path.is_file():
        raise ConfigLoadError(f"Config path is not a file: {resolved_path}")
    return resolved_path


def _resolve_path(path: Path, base_dir: Path) -> Path:
    return path.expanduser().resolve() if path.is_absolute() else (base_dir / path).resolve()


def load_config(path: Path) -> AppConfig:
    """
    Load and validate application config from YAML.

    Relative paths are resolved from the YAML file parent directory.

    Args:
        path: YAML config file path.

    Returns:
        Validated application config.
    """
    config_path = _resolve_config_path(path)
    try:
        with config_path.open("r", encoding="utf-8") as handle:
            raw_config: Any = yaml.safe_load(handle) or {}
    except OSError as exc:
        raise ConfigLoadError(f"Failed to read config file {config_path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigLoadError(f"Invalid YAML in config file {config_path}: {exc}") from exc

    if not isinstance(raw_config, dict):
        raise ConfigLoadError("YAML root must be a mapping/object.")

    return _build_config(raw_config, config_path.parent)


def _build_config(raw_config: dict[str, Any], base_dir: Path) -> AppConfig:
    """Build and path-resolve config from raw data."""
    try:
        config = AppConfig.model_validate(raw_config)
    except Exception as exc:
        raise ConfigLoadError(f"Config validation failed: {exc}") from exc

    updated_data = config.data.model_copy(
        update={"prices_dir": _resolve_path(config.data.prices_dir, base_dir)}
    )
    updated_output = config.output.model_copy(
        update={"artifacts_dir": _resolve_path(config.output.artifacts_dir, base_dir)}
    )
    return config.model_copy(update={"data": updated_data, "output": updated_output})


def load_config_from_yaml_text(yaml_text: str, base_dir: Path | None = None) -> AppConfig:
    """
    Load and validate config from YAML text.

    Args:
        yaml_text: YAML string.
        base_dir: Base directory for relative paths.

    Returns:
        Validated application config.
    """
    try:
        raw_config: Any = yaml.safe_load(yaml_text) or {}
    except yaml.YAMLError as exc:
        raise ConfigLoadError(f"Invalid YAML text: {exc}") from exc
    if not isinstance(raw_config, dict):
        raise ConfigLoadError("YAML root must be a mapping/object.")
    resolved_base_dir = (base_dir or Path.cwd()).expanduser().resolve()
    return _build_config(raw_config, resolved_base_dir)


def dump_config_to_yaml(config: AppConfig) -> str:
    """
    Serialize config to canonical YAML for reproducibility.

    Args:
        config: App config.

    Returns:
        YAML string.
    """
    payload = config.model_dump(mode="json")
    return yaml.safe_dump(payload, sort_keys=True, default_flow_style=False)
