"""Data structures for backtest inputs and results."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field

from portfoliolab.core.utils.errors import BacktestError


@dataclass(frozen=True)
class TransactionCosts:
    """Per-rebalance trading cost model."""

    commission_pct: float = 0.001
    slippage_pct: float = 0.0005
    min_commission: float = 1.0

    def __post_init__(self) -> None:
        """Validate cost rates."""
        if self.commission_pct < 0 or self.slippage_pct < 0 or self.min_commission < 0:
            raise BacktestError("Transaction cost parameters must be non-negative.")


@dataclass(frozen=True)
class DrawdownEpisode:
    """Recovered peak-to-trough-to-new-peak episode."""

    depth: float
    recovery_days: int


@dataclass(frozen=True)
class PerformanceMetrics:
    """
    Summary statistics of one backtest.

    Percent-valued fields: ``total_return``, ``cagr``, ``volatility``,
    ``max_drawdown``, ``win_rate``. ``avg_win``/``avg_loss`` are decimal period
    returns. Recovery figures are in trading days.
    """

    total_return: float = 0.0
    cagr: float = 0.0
    volatility: float = 0.0
    max_drawdown: float = 0.0
    sharpe_ratio: float = 0.0
    calmar_ratio: float = 0.0
    win_rate: float = 0.0
    profit_factor: float = 0.0
    avg_win: float = 0.0
    avg_loss: float = 0.0
    alpha: float = 0.0
    beta: float = 1.0
    information_ratio: float = 0.0
    tracking_error: float = 0.0
    avg_turnover: float = 0.0
    total_transaction_costs: float = 0.0
    avg_recovery_days: float = 0.0
    num_drawdowns: int = 0
    longest_drawdown: int = 0
    estimated_tax_drag: float = 0.0
    drawdowns: tuple[DrawdownEpisode, ...] = ()

    def as_dict(self) -> dict[str, float]:
        """Flat scalar metrics (drawdown episodes excluded)."""
        payload = asdict(self)
        payload.pop("drawdowns")
        return {key: float(value) for key, value in payload.items()}


@dataclass
class BacktestState:
    """Mutable state threaded through the sequential rebalance loop."""

    equity_curve: list[float] = field(default_factory=lambda: [1.0])
    returns: list[float] = field(default_factory=list)
    benchmark_returns: list[float] = field(default_factory=list)
    rebalance_dates: list[str] = field(default_factory=list)
    weights_history: list[dict[str, float]] = field(default_factory=list)
    previous_weights: dict[str, float] = field(default_factory=dict)
    rebalances: int = 0
    total_transaction_costs: float = 0.0
    total_turnover: float = 0.0


@dataclass(frozen=True)
class BacktestResult:
    """Container for a completed strategy backtest."""

    strategy_key: str
    strategy_name: str
    initial_capital: float
    metrics: PerformanceMetrics | None
    returns: list[float]
    equity_curve: list[float]
    benchmark_returns: list[float] | None
    rebalance_dates: list[str]
    sample: int
    total_transaction_costs: float = 0.0
    total_turnover: float = 0.0
    weights_history: list[dict[str, float]] = field(default_factory=list)

    @property
    def final_equity(self) -> float:
        """Last equity multiple, 1.0 for an empty run."""
        return self.equity_curve[-1] if self.equity_curve else 1.0
