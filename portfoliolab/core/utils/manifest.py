"""Run manifest utilities for diagnostics and reproducibility."""

from __future__ import annotations

import json
import platform
import sys
import traceback
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import numpy as np
import pandas as pd

MANIFEST_VERSION = 2


@dataclass
class RunManifestWriter:
    """
    Incrementally build and persist command run manifests.

    A manifest records the inputs, the per-ticker data coverage, the run
    parameters and either headline metrics or failure diagnostics.
    """

    output_dir: Path
    command: str
    run_id: str
    manifest_name: str = "run_manifest.json"
    started_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))
    _payload: dict[str, Any] = field(init=False)

    def __post_init__(self) -> None:
        """Initialize base payload metadata."""
        self._payload = {
            "manifest_version": MANIFEST_VERSION,
            "command": self.command,
            "run_id": self.run_id,
            "status": "running",
            "started_at": self.started_at.isoformat(),
            "finished_at": None,
            "duration_seconds": None,
            "environment": {
                "python_version": sys.version.split()[0],
                "platform": platform.platform(),
                "numpy_version": np.__version__,
                "pandas_version": pd.__version__,
            },
            "inputs": {},
            "data": {},
            "context": {},
            "result": {},
            "failure": {},
        }

    @property
    def status(self) -> str:
        """Current manifest status (``running``, ``success`` or ``failed``)."""
        return str(self._payload["status"])

    def set_inputs(self, config_path: Path | None = None, prices_dir: Path | None = None) -> None:
        """Set command inputs."""
        self._payload["inputs"] = {
            "config_path": str(config_path.resolve()) if config_path is not None else None,
            "prices_dir": str(prices_dir.resolve()) if prices_dir is not None else None,
        }

    def add_data_coverage(
        self,
        ticker: str,
        rows: int,
        first_date: str | None,
        last_date: str | None,
        invalid_closes: int = 0,
    ) -> None:
        """Record the loaded history of one ticker."""
        self._payload["data"][ticker] = {
            "rows": int(rows),
            "first_date": first_date,
            "last_date": last_date,
            "invalid_closes": int(invalid_closes),
        }

    def set_context(
        self,
        strategy_name: str | None,
        tickers: list[str],
        parameters: dict[str, Any] | None = None,
    ) -> None:
        """Set run context metadata."""
        self._payload["context"] = {
            "strategy_name": strategy_name,
            "tickers": sorted(tickers),
            "parameters": dict(parameters or {}),
        }

    def mark_success(
        self,
        metrics: dict[str, float],
        artifact_paths: list[str],
        extra: dict[str, Any] | None = None,
    ) -> None:
        """Mark manifest as successful."""
        self._payload["status"] = "success"
        self._payload["result"] = {
            "metrics": {key: float(value) for key, value in metrics.items()},
            "artifact_paths": sorted({str(path) for path in artifact_paths}),
            "extra": extra or {},
        }
        self._payload["failure"] = {}

    def mark_failure(self, exc: Exception) -> None:
        """Mark manifest as failed and capture exception diagnostics."""
        self._payload["status"] = "failed"
        self._payload["result"] = {}
        self._payload["failure"] = {
            "exception_type": exc.__class__.__name__,
            "error_code": getattr(exc, "error_code", None),
            "exit_code": getattr(exc, "exit_code", 1),
            "message": str(exc),
            "traceback": "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
        }

    def write(self) -> Path:
        """Persist manifest atomically and return the written path."""
        finished_at = datetime.now(tz=UTC)
        self._payload["finished_at"] = finished_at.isoformat()
        self._payload["duration_seconds"] = (finished_at - self.started_at).total_seconds()

        self.output_dir.mkdir(parents=True, exist_ok=True)
        manifest_path = self.output_dir / self.manifest_name
        staging_path = manifest_path.with_suffix(manifest_path.suffix + ".tmp")
        staging_path.write_text(
            json.dumps(self._payload, indent=2, sort_keys=True, default=str) + "\n",
            encoding="utf-8",
        )
        staging_path.replace(manifest_path)
        return manifest_path
