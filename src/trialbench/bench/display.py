"""Terminal display formatting for trials, estimates and judgements.

Produces short aligned blocks for the CLI.  No external dependencies.
"""

from __future__ import annotations

import math

from trialbench.bench.results import Trial, TrialEstimate, TrialJudgement, Verdict
from trialbench.bench.stats import describe


# ---------------------------------------------------------------------------
# Value formatting utilities
# ---------------------------------------------------------------------------


def format_time(ns: float, precision: int = 3) -> str:
    """Format a nanosecond value with adaptive units."""
    if math.isnan(ns):
        return "N/A"
    if ns < 1_000:
        return f"{ns:.{precision}f} ns"
    if ns < 1_000_000:
        return f"{ns / 1_000:.{precision}f} µs"
    if ns < 1_000_000_000:
        return f"{ns / 1_000_000:.{precision}f} ms"
    return f"{ns / 1_000_000_000:.{precision}f} s"


def format_memory(nbytes: float) -> str:
    """Format a byte count with binary units."""
    if nbytes < 1024:
        return f"{nbytes:.0f} bytes"
    for unit in ("KiB", "MiB", "GiB"):
        nbytes /= 1024
        if nbytes < 1024 or unit == "GiB":
            break
    return f"{nbytes:.2f} {unit}"


def format_ratio(value: float) -> str:
    """Format a ratio as a signed percentage change."""
    if math.isinf(value):
        return "+inf%"
    pct = (value - 1) * 100
    sign = "+" if pct >= 0 else ""
    return f"{sign}{pct:.2f}%"


# ---------------------------------------------------------------------------
# Blocks
# ---------------------------------------------------------------------------


def format_trial(trial: Trial) -> str:
    """Summarize a trial: sample count, evals and the spread of times."""
    stats = describe(trial)
    lines = [
        f"Trial: {len(trial)} samples with {trial.params.evals} evaluations each",
        f"  minimum: {format_time(stats.min)}",
        f"  median:  {format_time(stats.median)}",
        f"  mean:    {format_time(stats.mean)} ± {format_time(stats.stdev)}",
        f"  maximum: {format_time(stats.max)}",
        f"  memory:  {format_memory(trial.memory)}, allocs: {trial.allocs}",
    ]
    return "\n".join(lines)


def format_estimate(est: TrialEstimate, label: str = "Estimate") -> str:
    gc_pct = est.gctime / est.time * 100 if est.time else 0.0
    return "\n".join(
        [
            f"{label}:",
            f"  time:    {format_time(est.time)} ({gc_pct:.2f}% GC)",
            f"  memory:  {format_memory(est.memory)}",
            f"  allocs:  {est.allocs}",
        ]
    )


def format_judgement(j: TrialJudgement) -> str:
    """One line per field: ratio as percentage change and verdict."""
    lines = [f"Judgement (tolerance {j.tolerance * 100:.2f}%):"]
    for name, verdict in j.verdicts().items():
        value = getattr(j.ratio, name)
        marker = verdict.symbol
        lines.append(f"  {marker} {name:7s} {format_ratio(value):>10s}  {verdict.value}")
    overall = j.verdict
    if j.is_regression() and overall is not Verdict.REGRESSION:
        lines.append("  (time did not regress, but memory or allocations did)")
    return "\n".join(lines)
