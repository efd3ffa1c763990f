"""Command-line interface for trialbench.

Subcommands:
    trialbench run       Tune and benchmark a Python callable
    trialbench judge     Compare two saved trials
"""

from __future__ import annotations

import importlib
import json
import sys
from pathlib import Path
from typing import Any

import click

from trialbench import __version__
from trialbench.bench.config import DEFAULTS, defaults_from_profile, load_profile, make_parameters
from trialbench.bench.results import load_trial, save_trial
from trialbench.bench.stats import ESTIMATORS, describe, estimate
from trialbench.bench.timing import FunctionWorkload
from trialbench.errors import TrialBenchError
from trialbench.logging import get_logger, setup_logging

log = get_logger("cli")


def resolve_target(target: str) -> Any:
    """Import ``module:attribute`` (the attribute may be dotted).

    Raises:
        click.BadParameter: If the target cannot be imported.
    """
    if ":" not in target:
        raise click.BadParameter(f"Expected 'module:callable', got '{target}'.")
    module_name, _, attr_path = target.partition(":")
    try:
        obj: Any = importlib.import_module(module_name)
    except ImportError as exc:
        raise click.BadParameter(f"Cannot import module '{module_name}': {exc}") from exc
    for attr in attr_path.split("."):
        try:
            obj = getattr(obj, attr)
        except AttributeError as exc:
            raise click.BadParameter(f"'{module_name}' has no attribute '{attr_path}'.") from exc
    if not callable(obj):
        raise click.BadParameter(f"'{target}' is not callable.")
    return obj


@click.group()
@click.version_option(version=__version__)
def main() -> None:
    """trialbench: calibrated micro-benchmarks with regression judgement."""


# ---------------------------------------------------------------------------
# run
# ---------------------------------------------------------------------------


@main.command()
@click.argument("target")
@click.option(
    "--setup", "setup_target", default=None, help="'module:callable' run before each batch."
)
@click.option("--seconds", type=float, default=None, help="Sampling time budget (default: 5.0).")
@click.option("--samples", type=int, default=None, help="Maximum sample count (default: 300).")
@click.option("--evals", type=int, default=None, help="Evaluations per sample; disables tuning.")
@click.option("--gctrial/--no-gctrial", default=None, help="Collect garbage before the trial.")
@click.option("--gcsample/--no-gcsample", default=None, help="Collect garbage before each sample.")
@click.option("--tolerance", type=float, default=None, help="Relative noise band (default: 0.05).")
@click.option(
    "--profile",
    "profile_path",
    type=click.Path(exists=True, path_type=Path),
    default=None,
    help="YAML profile with parameter defaults.",
)
@click.option("--no-tune", is_flag=True, default=False, help="Skip evals tuning.")
@click.option(
    "--track-memory",
    is_flag=True,
    default=False,
    help="Profile one untimed evaluation with tracemalloc.",
)
@click.option(
    "--estimator",
    type=click.Choice(list(ESTIMATORS)),
    default="minimum",
    show_default=True,
)
@click.option(
    "--output",
    type=click.Path(path_type=Path),
    default=None,
    help="Save the trial as JSON for 'trialbench judge'.",
)
@click.option("--json", "as_json", is_flag=True, default=False, help="Print JSON instead of text.")
@click.option("-v", "--verbose", is_flag=True, default=False)
@click.option("-q", "--quiet", is_flag=True, default=False)
def run(  # noqa: PLR0913
    target: str,
    setup_target: str | None,
    seconds: float | None,
    samples: int | None,
    evals: int | None,
    gctrial: bool | None,
    gcsample: bool | None,
    tolerance: float | None,
    profile_path: Path | None,
    no_tune: bool,
    track_memory: bool,
    estimator: str,
    output: Path | None,
    as_json: bool,
    verbose: bool,
    quiet: bool,
) -> None:
    """Benchmark TARGET, a 'module:callable' taking no arguments.

    With --setup, the setup callable's return value is passed to TARGET.

    \b
    Examples:
        trialbench run json:dumps --setup mymod:payload
        trialbench run mymod:work --seconds 2 --output base.json
    """
    from trialbench.bench.runner import benchmark

    setup_logging(verbose=verbose, quiet=quiet)

    overrides = {
        "seconds": seconds,
        "samples": samples,
        "evals": evals,
        "gctrial": gctrial,
        "gcsample": gcsample,
        "tolerance": tolerance,
    }

    func = resolve_target(target)
    setup = resolve_target(setup_target) if setup_target else None
    if isinstance(func, FunctionWorkload):
        if setup_target or track_memory:
            raise click.UsageError(
                f"'{target}' is already a FunctionWorkload; "
                "configure --setup and --track-memory where it is defined."
            )
        workload = func
    else:
        workload = FunctionWorkload(func, setup=setup, track_memory=track_memory, name=target)
    log.debug("Benchmarking %r", workload)

    try:
        if profile_path is not None:
            defaults = defaults_from_profile(load_profile(profile_path))
        else:
            defaults = DEFAULTS
        params = make_parameters(defaults, **overrides)
        params, trial = benchmark(workload, params, tune=not no_tune and evals is None)
    except TrialBenchError as exc:
        click.echo(f"Error: {exc}", err=True)
        raise SystemExit(1) from exc
    except KeyboardInterrupt:
        click.echo("\nBenchmark interrupted.", err=True)
        raise SystemExit(130)  # noqa: B904

    est = estimate(trial, estimator)
    if output is not None:
        save_trial(output, trial)
        log.debug("Saved trial to %s", output)

    if as_json:
        payload = {
            "target": target,
            "params": params.to_dict(),
            "estimator": estimator,
            "estimate": est.to_dict(),
            "stats": describe(trial).to_dict(),
        }
        click.echo(json.dumps(payload, indent=2))
    else:
        from trialbench.bench.display import format_estimate, format_trial

        click.echo(format_trial(trial))
        click.echo(format_estimate(est, label=estimator.capitalize()))
        if output is not None:
            click.echo(f"Trial saved to: {output}")


# ---------------------------------------------------------------------------
# judge
# ---------------------------------------------------------------------------


@main.command()
@click.argument("baseline", type=click.Path(exists=True, path_type=Path))
@click.argument("candidate", type=click.Path(exists=True, path_type=Path))
@click.option(
    "--estimator",
    type=click.Choice(list(ESTIMATORS)),
    default="minimum",
    show_default=True,
)
@click.option("--tolerance", type=float, default=None, help="Override both trials' tolerance.")
@click.option("--json", "as_json", is_flag=True, default=False, help="Print JSON instead of text.")
@click.option(
    "--fail-on-regression",
    is_flag=True,
    default=False,
    help="Exit with status 1 if any judged field regressed.",
)
def judge(
    baseline: Path,
    candidate: Path,
    estimator: str,
    tolerance: float | None,
    as_json: bool,
    fail_on_regression: bool,
) -> None:
    """Judge CANDIDATE against BASELINE (both saved with 'run --output')."""
    from trialbench.bench.compare import judge as judge_estimates

    if tolerance is not None and not 0 < tolerance <= 1:
        raise click.BadParameter("must be in (0, 1]", param_hint="--tolerance")

    try:
        base_trial = load_trial(baseline)
        cand_trial = load_trial(candidate)
    except ValueError as exc:
        click.echo(f"Error: {exc}", err=True)
        raise SystemExit(1) from exc

    result = judge_estimates(
        estimate(cand_trial, estimator),
        estimate(base_trial, estimator),
        tolerance,
    )

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
    else:
        from trialbench.bench.display import format_judgement

        click.echo(format_judgement(result))

    if fail_on_regression and result.is_regression():
        sys.exit(1)
