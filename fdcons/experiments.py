"""Experiment matrix: every equation x initial condition x scheme.

Each experiment is the base configuration with the equation, the initial
condition and the scheme replaced, named ``"{equation}-{initial}-{scheme}"``
and written below ``io.outdir/<name>/``.  ``sweep.jobs > 1`` runs the
experiments concurrently on a thread pool; a failing experiment is logged and
recorded while the others finish.
"""
from __future__ import annotations

import itertools
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from .errors import ConfigurationError, FdConsError
from .run import RunResult, run_from_config
from .runtime import format_exception_short, log_stage
from .schema import Config, Sweep

logger = logging.getLogger(__name__)


@dataclass
class SweepResult:
    """Finished experiments by name and the failure message of the others."""

    results: Dict[str, RunResult] = field(default_factory=dict)
    failures: Dict[str, str] = field(default_factory=dict)
    errors: Dict[str, BaseException] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failures


def expand_sweep(cfg: Config) -> List[Tuple[str, Config]]:
    """Return ``(name, config)`` for every cell of the experiment matrix."""

    sweep = cfg.sweep or Sweep()
    base = cfg.model_dump()
    base["sweep"] = None
    experiments: List[Tuple[str, Config]] = []
    for eq_name, init_name, scheme_name in itertools.product(
        sweep.equations, sweep.initial, sweep.schemes
    ):
        payload = dict(base)
        payload["equation"] = dict(base["equation"], name=eq_name)
        params = dict(cfg.initial.params) if init_name == cfg.initial.name else {}
        payload["initial"] = {"name": init_name, "params": params}
        payload["scheme"] = dict(base["scheme"], name=scheme_name)
        name = f"{eq_name}-{init_name}-{scheme_name}"
        io_payload = dict(base["io"])
        if cfg.io.outdir is not None:
            io_payload["outdir"] = Path(cfg.io.outdir) / name
        payload["io"] = io_payload
        experiments.append((name, Config(**payload)))
    names = [name for name, _ in experiments]
    if len(set(names)) != len(names):
        raise ConfigurationError("sweep produces duplicate experiment names")
    return experiments


def run_sweep(
    cfg: Config,
    *,
    jobs: Optional[int] = None,
    n_steps: Optional[int] = None,
    enforce_mass_budget: bool = False,
) -> SweepResult:
    """Run every experiment of ``cfg.sweep`` and collect the outcomes."""

    experiments = expand_sweep(cfg)
    n_jobs = int(jobs if jobs is not None else (cfg.sweep.jobs if cfg.sweep else 1))
    if n_jobs < 1:
        raise ConfigurationError(f"sweep jobs must be positive (got {n_jobs})")
    n_jobs = min(n_jobs, max(len(experiments), 1))
    log_stage(logger, "sweep_start", extra={"experiments": len(experiments), "jobs": n_jobs})
    outcome = SweepResult()

    def _one(name: str, exp_cfg: Config) -> RunResult:
        return run_from_config(
            exp_cfg,
            n_steps=n_steps,
            enforce_mass_budget=enforce_mass_budget,
            name=name,
            progress=False if n_jobs > 1 else None,
            concurrent=n_jobs > 1,
        )

    def _record_failure(name: str, exc: BaseException) -> None:
        logger.error("experiment %s failed: %s", name, format_exception_short(exc))
        outcome.failures[name] = format_exception_short(exc)
        outcome.errors[name] = exc

    if n_jobs == 1:
        for name, exp_cfg in experiments:
            try:
                outcome.results[name] = _one(name, exp_cfg)
            except FdConsError as exc:
                _record_failure(name, exc)
    else:
        with ThreadPoolExecutor(max_workers=n_jobs, thread_name_prefix="fdcons-sweep") as pool:
            futures = {pool.submit(_one, name, exp_cfg): name for name, exp_cfg in experiments}
            for fut in as_completed(futures):
                name = futures[fut]
                exc = fut.exception()
                if exc is None:
                    outcome.results[name] = fut.result()
                elif isinstance(exc, FdConsError):
                    _record_failure(name, exc)
                else:
                    raise exc
    order = [name for name, _ in experiments]
    outcome.results = {name: outcome.results[name] for name in order if name in outcome.results}
    log_stage(
        logger,
        "sweep_done",
        extra={"finished": len(outcome.results), "failed": len(outcome.failures)},
    )
    return outcome


__all__ = ["SweepResult", "expand_sweep", "run_sweep"]
