"""PortfolioLab command-line interface."""

from __future__ import annotations

import json
import math
from collections.abc import Mapping, Sequence
from dataclasses import asdict
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import typer

from portfoliolab.core.backtest.engine import run_strategy_backtest
from portfoliolab.core.config import AppConfig, dump_config_to_yaml, load_config
from portfoliolab.core.data.loader import align_benchmark_closes, load_asset_series, load_universe
from portfoliolab.core.data.types import PricePoint, UniverseAsset
from portfoliolab.core.research.strategy import load_strategy
from portfoliolab.core.research.walk_forward import run_walk_forward_test, summarize_walk_forward
from portfoliolab.core.risk.metrics import generate_risk_report
from portfoliolab.core.utils.errors import (
    ArtifactError,
    BacktestError,
    DataValidationError,
    exit_code_for_exception,
)
from portfoliolab.core.utils.logging import configure_logging, get_logger, log_duration
from portfoliolab.core.utils.manifest import RunManifestWriter

app = typer.Typer(help="PortfolioLab CLI", no_args_is_help=True)

CONFIG_OPTION = typer.Option(
    ...,
    "--config",
    exists=True,
    file_okay=True,
    dir_okay=False,
    resolve_path=True,
    help="Path to YAML configuration file.",
)
LOG_LEVEL_OPTION = typer.Option("INFO", "--log-level", help="Logging level.")
RUN_ID_OPTION = typer.Option(None, "--run-id", help="Run identifier (defaults to a timestamp).")


@app.callback()
def callback() -> None:
    """PortfolioLab CLI commands."""


def _new_run_id(command: str) -> str:
    """Return a sortable timestamped run id."""
    return f"{command}_{datetime.now(tz=UTC):%Y%m%dT%H%M%S%f}"


def _print_metrics(metrics: dict[str, float]) -> None:
    """Print metrics in deterministic order."""
    for key in sorted(metrics):
        typer.echo(f"{key}={metrics[key]:.6f}")


def _write_summary(output_dir: Path, filename: str, payload: dict[str, Any]) -> Path:
    """Write a JSON summary artifact."""
    try:
        output_dir.mkdir(parents=True, exist_ok=True)
        path = output_dir / filename
        path.write_text(
            json.dumps(payload, indent=2, sort_keys=True, default=str) + "\n",
            encoding="utf-8",
        )
    except OSError as exc:
        raise ArtifactError(f"Failed to write summary to {output_dir}: {exc}") from exc
    return path


def _handle_cli_exception(
    logger_name: str,
    context: str,
    exc: Exception,
    manifest_writer: RunManifestWriter | None = None,
) -> None:
    """Write failure manifest (if available), log diagnostics, and exit with typed code."""
    logger = get_logger(logger_name)
    manifest_path: Path | None = None
    if manifest_writer is not None:
        try:
            manifest_writer.mark_failure(exc)
            manifest_path = manifest_writer.write()
        except Exception as manifest_exc:
            logger.error("Failed to write failure manifest for %s: %s", context, manifest_exc)

    logger.exception("%s failed: %s", context, exc)
    if manifest_path is not None:
        typer.echo(f"manifest={manifest_path}")
    raise typer.Exit(code=exit_code_for_exception(exc)) from None


def _start_manifest(
    app_config: AppConfig,
    command: str,
    run_id: str | None,
    config_path: Path,
) -> RunManifestWriter:
    """Create a manifest writer under ``artifacts_dir/<run_id>``."""
    resolved_run_id = run_id or _new_run_id(command)
    writer = RunManifestWriter(
        output_dir=app_config.output.artifacts_dir / resolved_run_id,
        command=command,
        run_id=resolved_run_id,
    )
    writer.set_inputs(config_path=config_path, prices_dir=app_config.data.prices_dir)
    writer.set_context(strategy_name=app_config.strategy.module, tickers=list(app_config.data.tickers))
    return writer


def _record_coverage(
    manifest_writer: RunManifestWriter, histories: Mapping[str, Sequence[PricePoint]]
) -> None:
    """Add per-ticker row counts, date range and unusable closes to the manifest."""
    for ticker, points in histories.items():
        invalid = sum(1 for point in points if not (math.isfinite(point.close) and point.close > 0))
        manifest_writer.add_data_coverage(
            ticker,
            rows=len(points),
            first_date=points[0].date if points else None,
            last_date=points[-1].date if points else None,
            invalid_closes=invalid,
        )


def _load_benchmark(app_config: AppConfig, universe: list[UniverseAsset]) -> list[float] | None:
    """Load benchmark closes projected onto the universe index space."""
    if app_config.data.benchmark is None:
        return None
    benchmark = load_universe(app_config.data.prices_dir, [app_config.data.benchmark])[0]
    return align_benchmark_closes(benchmark, universe)


@app.command("risk")
def risk(
    config: Path = CONFIG_OPTION,
    log_level: str = LOG_LEVEL_OPTION,
    run_id: str | None = RUN_ID_OPTION,
) -> None:
    """Compute portfolio VaR, CVaR and correlation diagnostics."""
    configure_logging(log_level)
    logger_name = __name__
    manifest_writer: RunManifestWriter | None = None

    try:
        app_config = load_config(config)
        manifest_writer = _start_manifest(app_config, "risk", run_id, config)
        manifest_writer.set_context(
            strategy_name=None,
            tickers=list(app_config.data.tickers),
            parameters=app_config.risk.model_dump(mode="json"),
        )

        assets = load_asset_series(
            app_config.data.prices_dir, app_config.data.tickers, app_config.data.weights
        )
        _record_coverage(manifest_writer, {asset.ticker: asset.prices for asset in assets})
        with log_duration(get_logger(logger_name), "Risk report"):
            report = generate_risk_report(
                assets, app_config.risk.capital, confidence=app_config.risk.confidence
            )
        if report.error is not None:
            raise DataValidationError(f"Risk report could not be computed: {report.error}")

        summary_path = _write_summary(
            manifest_writer.output_dir, app_config.output.summary_filename, asdict(report)
        )
        manifest_writer.mark_success(metrics=report.as_dict(), artifact_paths=[str(summary_path)])
        manifest_path = manifest_writer.write()
    except Exception as exc:
        _handle_cli_exception(
            logger_name=logger_name,
            context="Risk command",
            exc=exc,
            manifest_writer=manifest_writer,
        )

    typer.echo(f"tickers={','.join(app_config.data.tickers)}")
    _print_metrics(report.as_dict())
    typer.echo(f"concentration_risk={report.concentration_risk}")
    typer.echo(f"riskiest_asset={report.riskiest_asset.ticker}")
    for pair in report.correlation_data.near_duplicates:
        typer.echo(f"near_duplicate={pair.first},{pair.second},{pair.correlation:.6f}")
    typer.echo(f"summary={summary_path}")
    typer.echo(f"manifest={manifest_path}")


@app.command("backtest")
def backtest(
    config: Path = CONFIG_OPTION,
    log_level: str = LOG_LEVEL_OPTION,
    run_id: str | None = RUN_ID_OPTION,
) -> None:
    """Run a periodic-rebalance strategy backtest."""
    configure_logging(log_level)
    logger_name = __name__
    manifest_writer: RunManifestWriter | None = None

    try:
        app_config = load_config(config)
        manifest_writer = _start_manifest(app_config, "backtest", run_id, config)
        strategy = load_strategy(app_config.strategy.module)
        manifest_writer.set_context(
            strategy_name=strategy.strategy_name,
            tickers=list(app_config.data.tickers),
            parameters={
                "profile": app_config.strategy.profile,
                **app_config.backtest.model_dump(mode="json"),
            },
        )

        universe = load_universe(app_config.data.prices_dir, app_config.data.tickers)
        _record_coverage(manifest_writer, {asset.ticker: asset.data for asset in universe})
        with log_duration(get_logger(logger_name), "Backtest"):
            result = run_strategy_backtest(
                universe=universe,
                strategy=strategy,
                thresholds=app_config.strategy.resolve_thresholds(),
                weights=app_config.strategy.resolve_weights(),
                top_n=app_config.backtest.top_n,
                rebalance_every=app_config.backtest.rebalance_every,
                allocation_method=app_config.backtest.allocation_method,
                benchmark_prices=_load_benchmark(app_config, universe),
                transaction_costs=app_config.backtest.transaction_costs(),
                initial_capital=app_config.backtest.initial_capital,
                strategy_key=app_config.strategy.profile,
            )
        if result.metrics is None:
            raise BacktestError(
                "Not enough history for a single rebalance: "
                f"min_days_history={app_config.strategy.resolve_thresholds().min_days_history}, "
                f"rebalance_every={app_config.backtest.rebalance_every}."
            )

        metrics = result.metrics.as_dict()
        summary_path = _write_summary(
            manifest_writer.output_dir,
            app_config.output.summary_filename,
            {"config": dump_config_to_yaml(app_config), "result": asdict(result)},
        )
        manifest_writer.mark_success(
            metrics=metrics,
            artifact_paths=[str(summary_path)],
            extra={"rebalances": result.sample},
        )
        manifest_path = manifest_writer.write()
    except Exception as exc:
        _handle_cli_exception(
            logger_name=logger_name,
            context="Backtest command",
            exc=exc,
            manifest_writer=manifest_writer,
        )

    typer.echo(f"strategy={result.strategy_name}")
    typer.echo(f"tickers={','.join(app_config.data.tickers)}")
    typer.echo(f"rebalances={result.sample}")
    _print_metrics(metrics)
    typer.echo(f"summary={summary_path}")
    typer.echo(f"manifest={manifest_path}")


@app.command("walk-forward")
def walk_forward(
    config: Path = CONFIG_OPTION,
    log_level: str = LOG_LEVEL_OPTION,
    run_id: str | None = RUN_ID_OPTION,
) -> None:
    """Run walk-forward in-sample/out-of-sample validation."""
    configure_logging(log_level)
    logger_name = __name__
    manifest_writer: RunManifestWriter | None = None

    try:
        app_config = load_config(config)
        manifest_writer = _start_manifest(app_config, "walk-forward", run_id, config)
        strategy = load_strategy(app_config.strategy.module)
        manifest_writer.set_context(
            strategy_name=strategy.strategy_name,
            tickers=list(app_config.data.tickers),
            parameters={
                "profile": app_config.strategy.profile,
                **app_config.walk_forward.model_dump(mode="json"),
            },
        )

        universe = load_universe(app_config.data.prices_dir, app_config.data.tickers)
        _record_coverage(manifest_writer, {asset.ticker: asset.data for asset in universe})
        with log_duration(get_logger(logger_name), "Walk-forward"):
            windows = run_walk_forward_test(
                universe=universe,
                strategy=strategy,
                thresholds=app_config.strategy.resolve_thresholds(),
                weights=app_config.strategy.resolve_weights(),
                settings=app_config.walk_forward.settings(),
                top_n=app_config.backtest.top_n,
                rebalance_every=app_config.backtest.rebalance_every,
                allocation_method=app_config.backtest.allocation_method,
                benchmark_prices=_load_benchmark(app_config, universe),
                transaction_costs=app_config.backtest.transaction_costs(),
                max_workers=app_config.walk_forward.max_workers,
            )
        summary = summarize_walk_forward(windows)
        summary_path = _write_summary(
            manifest_writer.output_dir,
            app_config.output.summary_filename,
            {
                "summary": summary.as_dict(),
                "windows": [
                    {
                        "start_index": window.start_index,
                        "in_sample_rebalances": window.in_sample_result.sample,
                        "out_sample_rebalances": window.out_sample_result.sample,
                        "in_sample_metrics": (
                            window.in_sample_result.metrics.as_dict()
                            if window.in_sample_result.metrics is not None
                            else None
                        ),
                        "out_sample_metrics": (
                            window.out_sample_result.metrics.as_dict()
                            if window.out_sample_result.metrics is not None
                            else None
                        ),
                    }
                    for window in windows
                ],
            },
        )
        manifest_writer.mark_success(metrics=summary.as_dict(), artifact_paths=[str(summary_path)])
        manifest_path = manifest_writer.write()
    except Exception as exc:
        _handle_cli_exception(
            logger_name=logger_name,
            context="Walk-forward command",
            exc=exc,
            manifest_writer=manifest_writer,
        )

    typer.echo(f"strategy={strategy.strategy_name}")
    typer.echo(f"windows={summary.n_windows}")
    _print_metrics(summary.as_dict())
    typer.echo(f"summary={summary_path}")
    typer.echo(f"manifest={manifest_path}")


def main() -> None:
    """CLI entrypoint."""
    app()


if __name__ == "__main__":
    main()
