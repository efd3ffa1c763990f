"""Trial execution engine.

Orchestrates:
1. The memory profile of one untimed evaluation, if the workload has one
2. Optional full collection before the trial (``gctrial``)
3. The sampling loop, one workload batch of ``evals`` per sample
4. Stopping on the sample budget or the wall-clock budget
5. Progress reporting

The loop never yields between samples.  The time budget is checked
after each sample, so the sample that crosses it is still recorded and
the trial may overrun ``seconds`` by up to one sample.
"""

from __future__ import annotations

import gc
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable

from trialbench.bench.calibration import Calibrator
from trialbench.bench.config import Parameters, make_parameters
from trialbench.bench.locks import measurement_lock
from trialbench.bench.results import Trial
from trialbench.bench.timing import MemoryUsage, Workload, invoke, measure_memory
from trialbench.bench.tuning import tune as tune_params
from trialbench.errors import EmptyTrialError

log = logging.getLogger("trialbench")


# ---------------------------------------------------------------------------
# Progress callback
# ---------------------------------------------------------------------------


@dataclass
class TrialProgress:
    """Progress info passed to the callback after every sample."""

    sample: int  # 1-based
    samples: int  # sample budget
    elapsed_s: float  # since the loop began
    time_ns: float  # per-evaluation time of this sample


ProgressCallback = Callable[[TrialProgress], None]


# ---------------------------------------------------------------------------
# TrialRunner
# ---------------------------------------------------------------------------


class TrialRunner:
    """Runs the sampling loop for one workload with fixed Parameters.

    Usage::

        runner = TrialRunner(params)
        trial = runner.run(workload)
    """

    def __init__(
        self,
        params: Parameters,
        progress_callback: ProgressCallback | None = None,
    ) -> None:
        self.params = params
        self.progress: ProgressCallback = progress_callback or self._default_progress

    def run(self, workload: Workload) -> Trial:
        """Collect samples until a budget is reached.

        Returns:
            The Trial, with at least one sample.  If the loop is
            interrupted (``KeyboardInterrupt``) after the first sample,
            the samples collected so far.

        Raises:
            ExecutionFailure: If the workload raises; nothing is returned.
            EmptyTrialError: If interrupted before the first sample.
        """
        params = self.params
        evals = params.evals
        times: list[int] = []
        gctimes: list[int] = []
        memory = 0
        allocs = 0
        usage: MemoryUsage | None = None

        with measurement_lock(workload):
            log.debug(
                "Trial start: samples=%d seconds=%.3f evals=%d",
                params.samples,
                params.seconds,
                evals,
            )
            try:
                usage = measure_memory(workload)
                if params.gctrial:
                    gc.collect()

                start = time.monotonic()
                while True:
                    if params.gcsample:
                        gc.collect()
                    m = invoke(workload, evals, phase="sample")
                    times.append(m.elapsed_ns // evals)
                    gctimes.append(m.gc_elapsed_ns // evals)
                    memory = m.bytes_allocated // evals
                    allocs = m.alloc_count // evals

                    elapsed = time.monotonic() - start
                    self.progress(
                        TrialProgress(
                            sample=len(times),
                            samples=params.samples,
                            elapsed_s=elapsed,
                            time_ns=times[-1],
                        )
                    )
                    if len(times) >= params.samples:
                        break
                    if elapsed >= params.seconds:
                        log.debug(
                            "Time budget of %.3fs reached after %d samples",
                            params.seconds,
                            len(times),
                        )
                        break
            except KeyboardInterrupt as exc:
                # Lists are only appended in pairs, but an interrupt can
                # land between the two appends.
                del times[len(gctimes) :]
                if not times:
                    raise EmptyTrialError("Trial interrupted before the first sample.") from exc
                log.warning("Trial interrupted; keeping %d samples", len(times))

            if usage is not None:
                memory = usage.bytes_allocated
                allocs = usage.alloc_count

        trial = Trial(
            params=params,
            times=tuple(times),
            gctimes=tuple(gctimes),
            memory=memory,
            allocs=allocs,
        )
        log.info("Trial complete: %d samples, evals=%d", len(trial), evals)
        return trial

    @staticmethod
    def _default_progress(progress: TrialProgress) -> None:
        """Default progress callback: log at DEBUG."""
        log.debug(
            "  sample %d/%d  %10.1fns  [%.2fs]",
            progress.sample,
            progress.samples,
            progress.time_ns,
            progress.elapsed_s,
        )


# ---------------------------------------------------------------------------
# Convenience entry points
# ---------------------------------------------------------------------------


def run_trial(
    workload: Workload,
    params: Parameters | None = None,
    **overrides: Any,
) -> Trial:
    """Run one trial of *workload* without tuning.

    *overrides* are applied on top of *params* (or the process-wide
    defaults when *params* is None).
    """
    if params is None:
        params = make_parameters(**overrides)
    elif overrides:
        params = params.replace(**{k: v for k, v in overrides.items() if v is not None})
    return TrialRunner(params).run(workload)


def benchmark(
    workload: Workload,
    params: Parameters | None = None,
    *,
    tune: bool = True,
    calibrator: Calibrator | None = None,
    progress_callback: ProgressCallback | None = None,
    **overrides: Any,
) -> tuple[Parameters, Trial]:
    """Tune (optionally) and run *workload*.

    Tuning is skipped when ``tune`` is False or an explicit ``evals``
    override is given.  The tuning call and the trial hold the
    workload's measurement lock as one unit.

    Returns:
        Tuple of (the Parameters the trial ran with, the Trial).
    """
    if params is None:
        params = make_parameters(**overrides)
    elif overrides:
        params = params.replace(**{k: v for k, v in overrides.items() if v is not None})

    with measurement_lock(workload):
        if tune and overrides.get("evals") is None:
            params = tune_params(workload, params, calibrator=calibrator)
        trial = TrialRunner(params, progress_callback).run(workload)
    return params, trial
