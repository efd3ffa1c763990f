"""Ratio and judgement of two trial estimates.

``ratio(a, b)`` never raises: ``0/0`` is 1.0 (no change), ``x/0`` is
infinity.  Both ``judge`` (two estimates) and ``judge_ratio`` (a
precomputed ratio) go through ``_classify``, so equal inputs always give
equal judgements whichever entry point is used.

GC time is reported in every ratio but always judged ``not-applicable``:
it is dominated by collector noise rather than by the workload itself.
"""

from __future__ import annotations

import dataclasses
import logging

from trialbench.bench.results import TrialEstimate, TrialJudgement, TrialRatio, Verdict
from trialbench.errors import ConfigurationError

log = logging.getLogger("trialbench")


# ---------------------------------------------------------------------------
# Ratios
# ---------------------------------------------------------------------------


def _check_tolerance(tolerance: float | None) -> None:
    # NaN fails the comparison too.
    if tolerance is not None and not 0 < tolerance <= 1:
        raise ConfigurationError(f"Tolerance must be in (0, 1] (got {tolerance!r}).")


def ratio(a: float, b: float) -> float:
    """``a / b`` for non-negative values, with ``0/0 == 1.0``."""
    if a == 0 and b == 0:
        return 1.0
    if b == 0:
        return float("inf")
    return a / b


def trial_ratio(
    first: TrialEstimate,
    second: TrialEstimate,
    tolerance: float | None = None,
) -> TrialRatio:
    """Field-wise ``first / second``.

    The tolerance is *tolerance* if given, else the larger of the two
    estimates' tolerances.
    """
    _check_tolerance(tolerance)
    return TrialRatio(
        time=ratio(first.time, second.time),
        gctime=ratio(first.gctime, second.gctime),
        memory=ratio(first.memory, second.memory),
        allocs=ratio(first.allocs, second.allocs),
        tolerance=tolerance if tolerance is not None else max(first.tolerance, second.tolerance),
    )


# ---------------------------------------------------------------------------
# Judgement
# ---------------------------------------------------------------------------


def classify(value: float, tolerance: float) -> Verdict:
    """Verdict for one ratio against a relative noise band."""
    if value > 1 + tolerance:
        return Verdict.REGRESSION
    if value < 1 - tolerance:
        return Verdict.IMPROVEMENT
    return Verdict.INVARIANT


def _classify(r: TrialRatio, tolerance: float | None) -> TrialJudgement:
    _check_tolerance(tolerance)
    tol = tolerance if tolerance is not None else r.tolerance
    if tol != r.tolerance:
        r = dataclasses.replace(r, tolerance=tol)
    return TrialJudgement(
        ratio=r,
        time=classify(r.time, tol),
        gctime=Verdict.NOT_APPLICABLE,
        memory=classify(r.memory, tol),
        allocs=classify(r.allocs, tol),
        tolerance=tol,
    )


def judge(
    first: TrialEstimate,
    second: TrialEstimate,
    tolerance: float | None = None,
) -> TrialJudgement:
    """Judge *first* against the baseline *second*.

    A time ratio above ``1 + tolerance`` means *first* is slower
    (regression); below ``1 - tolerance`` means faster (improvement).

    Raises:
        ConfigurationError: If *tolerance* is given and not in (0, 1].
    """
    j = _classify(trial_ratio(first, second, tolerance), tolerance)
    log.debug("judge: time ratio %.4f -> %s", j.ratio.time, j.time.value)
    return j


def judge_ratio(r: TrialRatio, tolerance: float | None = None) -> TrialJudgement:
    """Judge a precomputed ratio; *tolerance* overrides ``r.tolerance``."""
    return _classify(r, tolerance)
