"""Command line driver for single runs.

``fdcons`` loads a YAML configuration (or the built-in defaults), applies
dotted overrides, runs the selected runner under :class:`BenchRunner` and
writes the series, the final state and a JSON summary.  ``fdcons-serial`` and
``fdcons-parallel`` are the same entry point with the runner mode preset.
"""
from __future__ import annotations

import argparse
import logging
import math
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from . import config_utils, constants
from .bench import BenchReport, BenchRunner, scan_workers
from .config_utils import RunSetup, build_setup, make_runner
from .errors import MassBudgetViolationError
from .io import writer
from .runtime import ProgressReporter, RunHistory, log_stage
from .run_parallel import ParallelRunner
from .schema import Config, Sweep
from .solver import GridState, state_checksum

logger = logging.getLogger(__name__)


def load_config(path: Optional[Path] = None, overrides: Optional[Sequence[str]] = None) -> Config:
    """Load a YAML configuration file into a :class:`Config` instance.

    ``path=None`` starts from the built-in defaults; ``overrides`` are
    applied to the raw mapping before validation.
    """

    data: Any = {}
    source_path: Optional[Path] = None
    if path is not None:
        from ruamel.yaml import YAML

        yaml = YAML(typ="safe")
        source_path = Path(path).resolve()
        with source_path.open("r", encoding="utf-8") as fh:
            data = yaml.load(fh)
        if data is None:
            data = {}
    if overrides:
        if not isinstance(data, dict):
            raise TypeError("Configuration overrides require the YAML root to be a mapping")
        data = config_utils.apply_overrides_dict(data, overrides)
    if not isinstance(data, dict):
        raise TypeError(f"Configuration root must be a mapping (got {type(data).__name__})")
    cfg = Config(**data)
    if source_path is not None:
        logger.debug("loaded configuration from %s", source_path)
    return cfg


@dataclass
class RunResult:
    """Outcome of :func:`run_from_config`."""

    name: str
    setup: RunSetup
    state: GridState
    report: BenchReport
    history: RunHistory
    summary: Dict[str, Any] = field(default_factory=dict)
    outdir: Optional[Path] = None


def _write_outputs(cfg: Config, result: RunResult) -> None:
    outdir = result.outdir
    if outdir is None:
        return
    outdir.mkdir(parents=True, exist_ok=True)
    grid = result.setup.grid
    if cfg.io.write_series:
        writer.write_parquet(result.history.to_frame(), outdir / "series" / "run.parquet")
    if cfg.io.write_state:
        writer.write_state(grid.x, result.state.values, outdir / "state.parquet")
    if cfg.io.plot_final or cfg.io.animation.enable:
        from .io import plotting

        y_range = cfg.io.animation.y_range
        if cfg.io.plot_final:
            plotting.plot_state(
                grid.x,
                result.state.values,
                outdir / "state.png",
                initial=result.setup.state.values,
                title=result.name,
                y_range=y_range,
            )
        if cfg.io.animation.enable and result.history.frames:
            plotting.write_animation(
                grid.x,
                result.history.frames,
                outdir / "frames.gif",
                times=result.history.frame_times,
                fps=cfg.io.animation.fps,
                y_range=y_range,
                title=result.name,
            )
    writer.write_run_config(cfg.model_dump(mode="json"), outdir / "run_config.json")
    writer.write_summary(result.summary, outdir / "summary.json")


def experiment_name(cfg: Config) -> str:
    """Return ``"{equation}-{initial}-{scheme}"`` for ``cfg``."""

    return f"{cfg.equation.name}-{cfg.initial.name}-{cfg.scheme.name}"


def run_from_config(
    cfg: Config,
    *,
    mode: Optional[str] = None,
    workers: Optional[int] = None,
    chunk_size: Optional[int] = None,
    n_steps: Optional[int] = None,
    enforce_mass_budget: bool = False,
    name: Optional[str] = None,
    outdir: Optional[Path] = None,
    progress: Optional[bool] = None,
    concurrent: bool = False,
) -> RunResult:
    """Run one configuration and write its outputs.

    Raises :class:`MassBudgetViolationError` after the outputs are written
    when ``enforce_mass_budget`` is set, the domain is periodic and the
    relative mass drift exceeds :data:`constants.MASS_BUDGET_TOLERANCE`.
    ``concurrent`` marks runs sharing the process with other runs, whose
    timing then leaves out the process-wide user/system split.
    """

    setup = build_setup(cfg)
    run_name = name or experiment_name(cfg)
    steps = setup.time_grid.n_steps if n_steps is None else int(n_steps)
    target_dir = outdir if outdir is not None else cfg.io.outdir
    frame_every = 0
    if target_dir is not None and cfg.io.animation.enable:
        frame_every = cfg.io.animation.frame_every
    history = RunHistory(dx=setup.grid.dx, frame_every=frame_every)
    show_progress = cfg.io.progress.enable if progress is None else bool(progress)
    reporter = ProgressReporter(
        steps,
        steps * setup.time_grid.dt,
        refresh_seconds=cfg.io.progress.refresh_seconds,
        enabled=show_progress,
        label=run_name,
    )
    runner = make_runner(cfg, setup, mode=mode, workers=workers, chunk_size=chunk_size)
    log_stage(
        logger,
        "run_start",
        extra={"name": run_name, "mode": runner.mode, "n_cells": setup.grid.n_cells, "n_steps": steps},
    )
    with runner:
        bench = BenchRunner(runner, process_times=not concurrent)
        state, report = bench.run(setup.state, steps, history=history, progress=reporter)

    drift = history.mass_drift()
    total, squares = state_checksum(state)
    summary: Dict[str, Any] = {
        "name": run_name,
        "equation": repr(setup.equation),
        "scheme": repr(setup.scheme),
        "boundary": cfg.boundary.mode,
        "n_cells": setup.grid.n_cells,
        "dx": setup.grid.dx,
        "time_grid": asdict(setup.time_grid),
        "steps_run": steps,
        "final_step": state.step,
        "final_time": state.time,
        "mass_initial": history.mass_initial,
        "mass_final": float(np.sum(state.values) * setup.grid.dx),
        "mass_drift_relative": drift,
        "u_min": float(np.min(state.values)),
        "u_max": float(np.max(state.values)),
        "checksum_sum": total,
        "checksum_sq": squares,
        "backend": setup.backend_status(cfg.numerics.backend),
        "timing": report.to_dict(),
        "config": cfg.model_dump(mode="json"),
    }
    if isinstance(runner, ParallelRunner) and runner.plan is not None:
        summary["parallel"] = runner.plan.to_dict()
    result = RunResult(
        name=run_name,
        setup=setup,
        state=state,
        report=report,
        history=history,
        summary=summary,
        outdir=Path(target_dir) if target_dir is not None else None,
    )
    _write_outputs(cfg, result)
    log_stage(logger, "run_done", extra={"name": run_name, "mass_drift": drift})

    if (
        enforce_mass_budget
        and cfg.boundary.mode == "periodic"
        and (not math.isfinite(drift) or drift > constants.MASS_BUDGET_TOLERANCE)
    ):
        raise MassBudgetViolationError(
            f"relative mass drift {drift:.3e} exceeds tolerance {constants.MASS_BUDGET_TOLERANCE:.1e}"
        )
    return result


def _build_parser(default_mode: Optional[str]) -> argparse.ArgumentParser:
    prog_mode = f" ({default_mode} runner)" if default_mode else ""
    parser = argparse.ArgumentParser(
        description=f"Integrate a 1D scalar conservation law{prog_mode}"
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to YAML configuration (defaults to the built-in example)",
    )
    parser.add_argument(
        "--mode",
        choices=["serial", "parallel"],
        default=None,
        help="Override runner.mode",
    )
    parser.add_argument("--workers", type=int, default=None, help="Worker threads of the parallel runner")
    parser.add_argument("--chunk-size", type=int, default=None, help="Cells per chunk (0 = one chunk per worker)")
    parser.add_argument("--steps", type=int, default=None, help="Run exactly this many steps")
    parser.add_argument(
        "--sweep",
        action="store_true",
        help="Run the equation x initial condition x scheme matrix of the sweep section",
    )
    parser.add_argument("--jobs", type=int, default=None, help="Experiments run concurrently in --sweep mode")
    parser.add_argument(
        "--scan-workers",
        type=int,
        nargs="+",
        default=None,
        metavar="N",
        help="Time the parallel runner for each worker count and print the table",
    )
    parser.add_argument(
        "--progress",
        action="store_true",
        help="Show simulated time, step rate and remaining time of the step loop.",
    )
    parser.add_argument(
        "--quiet",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Suppress INFO logs and Python warnings (use --no-quiet to show logs).",
    )
    parser.add_argument(
        "--enforce-mass-budget",
        action="store_true",
        help=(
            "Abort when the relative mass drift of a periodic run exceeds %.0e"
            % constants.MASS_BUDGET_TOLERANCE
        ),
    )
    parser.add_argument(
        "--override",
        action="append",
        nargs="+",
        metavar="PATH=VALUE",
        help="Apply configuration overrides using dotted paths; e.g. --override numerics.cfl=0.4",
    )
    parser.add_argument(
        "--overrides-file",
        action="append",
        type=Path,
        help="Load overrides from a file (one PATH=VALUE per line).",
    )
    return parser


def main(argv: Optional[List[str]] = None, *, default_mode: Optional[str] = None) -> None:
    """Command line entry point."""

    parser = _build_parser(default_mode)
    args = parser.parse_args(argv)

    override_list: List[str] = []
    if args.overrides_file:
        for override_path in args.overrides_file:
            override_list.extend(config_utils.read_overrides_file(override_path))
    if args.override:
        for group in args.override:
            override_list.extend(group)
    cfg = load_config(args.config, overrides=override_list)

    if args.quiet is not None:
        cfg.io.quiet = bool(args.quiet)
    if args.progress:
        cfg.io.progress.enable = True
    mode = args.mode or default_mode
    if mode is not None:
        cfg.runner.mode = mode
    if args.workers is not None:
        cfg.runner.workers = args.workers
    if args.chunk_size is not None:
        cfg.runner.chunk_size = args.chunk_size
    quiet_effective = bool(cfg.io.quiet)
    config_utils.configure_logging(
        logging.WARNING if quiet_effective else logging.INFO,
        suppress_warnings=quiet_effective,
    )

    if args.scan_workers:
        table = scan_workers(cfg, args.scan_workers, n_steps=args.steps)
        columns = [
            "workers",
            "steps",
            "n_cells",
            "wall_s",
            "user_s",
            "system_s",
            "cpu_percent",
            "worker_cpu_s",
            "max_abs_diff",
        ]
        print(table[columns].to_string(index=False))
        if cfg.io.outdir is not None:
            writer.write_parquet(table, Path(cfg.io.outdir) / "scan_workers.parquet")
        return

    if args.sweep:
        from .experiments import run_sweep

        if cfg.sweep is None:
            cfg.sweep = Sweep()
        if args.jobs is not None:
            cfg.sweep.jobs = args.jobs
        sweep = run_sweep(cfg, n_steps=args.steps, enforce_mass_budget=args.enforce_mass_budget)
        for name, result in sweep.results.items():
            print(f"{name}: {result.report.summary_line()}")
        for name, message in sweep.failures.items():
            print(f"{name}: FAILED {message}")
        if sweep.failures:
            raise SystemExit(1)
        return

    result = run_from_config(
        cfg,
        n_steps=args.steps,
        enforce_mass_budget=args.enforce_mass_budget,
    )
    print(result.report.summary_line())


def main_serial(argv: Optional[List[str]] = None) -> None:
    """``fdcons-serial``: :func:`main` with the serial runner preset."""

    main(argv, default_mode="serial")


def main_parallel(argv: Optional[List[str]] = None) -> None:
    """``fdcons-parallel``: :func:`main` with the parallel runner preset."""

    main(argv, default_mode="parallel")


__all__ = [
    "load_config",
    "RunResult",
    "experiment_name",
    "run_from_config",
    "main",
    "main_serial",
    "main_parallel",
]


if __name__ == "__main__":  # pragma: no cover
    main()
