"""Point estimates and spread summaries of a Trial.

The order-statistic estimators (minimum, median, maximum) pick actual
sample indices and report that index's ``gctimes`` entry alongside its
``times`` entry, so an estimate never pairs a time with a GC time from
a different sample.  The mean has no such constraint.

``describe`` gives a descriptive spread summary of the per-evaluation
times (quartiles, stdev, CV).  Nothing here performs hypothesis testing.
"""

from __future__ import annotations

import math
import statistics
from dataclasses import dataclass
from typing import Callable, Sequence

from trialbench.bench.results import Trial, TrialEstimate


# ---------------------------------------------------------------------------
# Point estimates
# ---------------------------------------------------------------------------


def _estimate(trial: Trial, time: float, gctime: float) -> TrialEstimate:
    return TrialEstimate(
        time=time,
        gctime=gctime,
        memory=trial.memory,
        allocs=trial.allocs,
        tolerance=trial.params.tolerance,
    )


def _sorted_indices(values: Sequence[int]) -> list[int]:
    # sorted() is stable, so equal values keep chronological order.
    return sorted(range(len(values)), key=values.__getitem__)


def minimum(trial: Trial) -> TrialEstimate:
    """The fastest sample (earliest one on ties)."""
    times = trial.times
    i = min(range(len(times)), key=times.__getitem__)
    return _estimate(trial, float(times[i]), float(trial.gctimes[i]))


def maximum(trial: Trial) -> TrialEstimate:
    """The slowest sample (earliest one on ties)."""
    times = trial.times
    best = 0
    for i in range(1, len(times)):
        if times[i] > times[best]:
            best = i
    return _estimate(trial, float(times[best]), float(trial.gctimes[best]))


def median(trial: Trial) -> TrialEstimate:
    """The middle sample by time.

    For an even sample count the two central samples are averaged, and
    their GC times are averaged the same way.
    """
    order = _sorted_indices(trial.times)
    n = len(order)
    mid = n // 2
    if n % 2:
        i = order[mid]
        return _estimate(trial, float(trial.times[i]), float(trial.gctimes[i]))
    lo, hi = order[mid - 1], order[mid]
    return _estimate(
        trial,
        (trial.times[lo] + trial.times[hi]) / 2,
        (trial.gctimes[lo] + trial.gctimes[hi]) / 2,
    )


def mean(trial: Trial) -> TrialEstimate:
    """Arithmetic means of times and, independently, of GC times."""
    return _estimate(
        trial,
        statistics.fmean(trial.times),
        statistics.fmean(trial.gctimes),
    )


ESTIMATORS: dict[str, Callable[[Trial], TrialEstimate]] = {
    "minimum": minimum,
    "median": median,
    "mean": mean,
    "maximum": maximum,
}


def estimate(trial: Trial, estimator: str = "minimum") -> TrialEstimate:
    """Apply the estimator called *estimator* to *trial*.

    Raises:
        ValueError: For an unknown estimator name.
    """
    try:
        fn = ESTIMATORS[estimator]
    except KeyError:
        raise ValueError(
            f"Unknown estimator '{estimator}'. Valid: {', '.join(ESTIMATORS)}"
        ) from None
    return fn(trial)


# ---------------------------------------------------------------------------
# Descriptive statistics
# ---------------------------------------------------------------------------


@dataclass
class DescriptiveStats:
    """Summary statistics for the per-evaluation times of a Trial."""

    n: int
    mean: float
    median: float
    stdev: float
    min: float
    max: float
    q1: float  # 25th percentile
    q3: float  # 75th percentile
    iqr: float  # interquartile range
    cv: float  # coefficient of variation (stdev/mean)

    def to_dict(self) -> dict[str, float | int]:
        """Serialize to a dict with rounded values."""
        return {
            "n": self.n,
            "mean": round(self.mean, 3),
            "median": round(self.median, 3),
            "stdev": round(self.stdev, 3),
            "min": round(self.min, 3),
            "max": round(self.max, 3),
            "q1": round(self.q1, 3),
            "q3": round(self.q3, 3),
            "iqr": round(self.iqr, 3),
            "cv": round(self.cv, 6),
        }


def describe(trial: Trial) -> DescriptiveStats:
    """Compute descriptive statistics of ``trial.times``.

    With a single sample, stdev and CV are 0.0.
    """
    sorted_v = sorted(trial.times)
    n = len(sorted_v)
    avg = statistics.fmean(sorted_v)

    if n >= 2:
        stdev = statistics.stdev(sorted_v)
        cv = stdev / avg if avg else 0.0
    else:
        stdev = 0.0
        cv = 0.0

    q1 = _percentile(sorted_v, 0.25)
    q3 = _percentile(sorted_v, 0.75)

    return DescriptiveStats(
        n=n,
        mean=avg,
        median=float(statistics.median(sorted_v)),
        stdev=stdev,
        min=float(sorted_v[0]),
        max=float(sorted_v[-1]),
        q1=q1,
        q3=q3,
        iqr=q3 - q1,
        cv=cv,
    )


def _percentile(sorted_values: Sequence[float], p: float) -> float:
    """The p-th percentile with linear interpolation (numpy's default).

    Assumes *sorted_values* is sorted ascending.
    """
    n = len(sorted_values)
    if n == 0:
        return float("nan")
    if n == 1:
        return float(sorted_values[0])

    k = (n - 1) * p
    f = math.floor(k)
    c = math.ceil(k)
    if f == c:
        return float(sorted_values[int(k)])
    d = k - f
    return sorted_values[int(f)] * (1 - d) + sorted_values[int(c)] * d
