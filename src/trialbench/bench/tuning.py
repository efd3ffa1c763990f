"""Evaluation-count tuning.

Finds the smallest ``evals`` for which one sample's total time clears a
threshold derived from the clock resolution and the fixed call overhead,
so that ``elapsed / evals`` is a trustworthy per-evaluation time.

Search:
1. One discarded warm-up batch with ``evals=1``.
2. Double ``evals`` (capped at ``MAX_EVALS``) until a batch meets the
   threshold.
3. Bisect between the last batch that fell short and the first that
   met it.

Tuning is best-effort.  If its own time budget runs out or the cap is
reached first, the best ``evals`` found so far is returned.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field

from trialbench.bench.calibration import Calibration, Calibrator, default_calibrator
from trialbench.bench.config import Parameters, make_parameters
from trialbench.bench.locks import measurement_lock
from trialbench.bench.timing import Workload, invoke

log = logging.getLogger("trialbench")

RESOLUTION_FACTOR = 1000
OVERHEAD_FACTOR = 100
MIN_SAMPLE_NS = 1_000_000
MAX_EVALS = 10**9
MAX_SEARCH_DEPTH = 32
MAX_TUNING_SECONDS = 1.0


def tuning_threshold(calibration: Calibration) -> int:
    """Minimum total sample time (ns) considered reliably measurable."""
    return max(
        RESOLUTION_FACTOR * calibration.resolution_ns,
        OVERHEAD_FACTOR * calibration.overhead_ns,
        MIN_SAMPLE_NS,
    )


@dataclass
class TuningReport:
    """Outcome of a tuning run, for diagnostics.

    ``converged`` means the chosen evals meets the threshold.  ``minimal``
    means it is also the smallest evals that does, which is false when
    the search depth or the time budget cut bisection short.
    """

    params: Parameters
    threshold_ns: int
    calibration: Calibration
    probes: list[tuple[int, int]] = field(default_factory=list)  # (evals, elapsed_ns)
    converged: bool = True
    minimal: bool = True
    elapsed_s: float = 0.0

    @property
    def evals(self) -> int:
        return self.params.evals


class _Search:
    """Probe bookkeeping shared by the growth and bisection phases."""

    def __init__(self, workload: Workload, threshold_ns: int, deadline: float) -> None:
        self.workload = workload
        self.threshold_ns = threshold_ns
        self.deadline = deadline
        self.probes: list[tuple[int, int]] = []

    def expired(self) -> bool:
        return time.monotonic() >= self.deadline

    def meets(self, evals: int) -> bool:
        elapsed = invoke(self.workload, evals, phase="tuning").elapsed_ns
        self.probes.append((evals, elapsed))
        log.debug("tune: evals=%d elapsed=%dns threshold=%dns", evals, elapsed, self.threshold_ns)
        return elapsed >= self.threshold_ns


def _grow(search: _Search) -> tuple[int, int | None]:
    """Double evals until the threshold is met.

    Returns ``(last_short, first_met)``; ``first_met`` is None when the
    cap or the deadline stopped the growth, in which case ``last_short``
    is the largest evals tried.
    """
    evals = 1
    if search.meets(evals):
        return 0, evals
    while evals < MAX_EVALS and not search.expired():
        short = evals
        evals = min(evals * 2, MAX_EVALS)
        if search.meets(evals):
            return short, evals
    return evals, None


def _bisect(search: _Search, short: int, met: int) -> tuple[int, int]:
    """Narrow ``(short, met]`` toward the smallest evals meeting the threshold.

    Returns the final ``(short, met)`` bracket.
    """
    depth = 0
    while met - short > 1 and depth < MAX_SEARCH_DEPTH and not search.expired():
        mid = (short + met) // 2
        if search.meets(mid):
            met = mid
        else:
            short = mid
        depth += 1
    return short, met


def tune_report(
    workload: Workload,
    params: Parameters | None = None,
    *,
    calibrator: Calibrator | None = None,
) -> TuningReport:
    """Tune *workload* and return the full :class:`TuningReport`.

    Raises:
        ExecutionFailure: If the workload raises during warm-up or a probe.
    """
    params = params if params is not None else make_parameters()
    calibrator = calibrator if calibrator is not None else default_calibrator()

    with measurement_lock(workload):
        start = time.monotonic()
        invoke(workload, 1, phase="warmup")

        calibration = calibrator.get()
        threshold = tuning_threshold(calibration)
        budget = min(params.seconds, MAX_TUNING_SECONDS)
        search = _Search(workload, threshold, time.monotonic() + budget)

        short, met = _grow(search)
        if met is None:
            evals = short
            converged = False
            minimal = False
            log.warning(
                "Tuning did not reach %dns per sample; using evals=%d",
                threshold,
                evals,
            )
        else:
            if short:
                short, met = _bisect(search, short, met)
            evals = met
            converged = True
            minimal = met - short <= 1
            if not minimal:
                log.debug("Bisection stopped early; evals=%d may not be minimal", evals)

        report = TuningReport(
            params=params.replace(evals=evals),
            threshold_ns=threshold,
            calibration=calibration,
            probes=search.probes,
            converged=converged,
            minimal=minimal,
            elapsed_s=time.monotonic() - start,
        )

    log.info(
        "Tuned evals=%d after %d probes in %.3fs",
        report.evals,
        len(report.probes),
        report.elapsed_s,
    )
    return report


def tune(
    workload: Workload,
    params: Parameters | None = None,
    *,
    calibrator: Calibrator | None = None,
) -> Parameters:
    """Return a copy of *params* with ``evals`` tuned for *workload*."""
    return tune_report(workload, params, calibrator=calibrator).params
